from pydantic import BaseModel, Field
from typing import List, Optional, Union

from ash.config import DEFAULT_REMINDER_MINUTES


class Participant(BaseModel):
    name: Optional[str] = None
    email: str


# Models are loose about attendees: a list of emails, a comma-separated string,
# or participant objects all arrive from the model in practice.
Attendees = Union[str, List[Union[str, Participant]]]


class GetFreeSlotsInput(BaseModel):
    start_date: str = Field(description="Start of the window to search (ISO 8601)")
    end_date: str = Field(description="End of the window to search (ISO 8601)")
    duration_minutes: int = Field(default=60, gt=0, description="Meeting length in minutes")


class CreateEventInput(BaseModel):
    title: Optional[str] = Field(default=None, description="Event title")
    start_time: str = Field(description="Start time (ISO 8601)")
    end_time: str = Field(description="End time (ISO 8601)")
    description: Optional[str] = None
    attendees: Attendees = Field(default_factory=list, description="Attendee emails")
    location: Optional[str] = None
    conferencing: Optional[str] = Field(default=None, description="Set to google_meet to attach a Meet link")


class UpdateEventInput(BaseModel):
    event_id: str = Field(description="Calendar event ID to update")
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[str] = Field(default=None, description="New start time (ISO 8601)")
    end_time: Optional[str] = Field(default=None, description="New end time (ISO 8601)")
    attendees: Optional[Attendees] = None
    location: Optional[str] = None


class DeleteEventInput(BaseModel):
    event_id: str = Field(description="Calendar event ID to delete")


class GetUpcomingEventsInput(BaseModel):
    limit: int = Field(default=10, gt=0, le=50, description="Number of events to return")


class SendInviteInput(BaseModel):
    event_id: str = Field(description="Calendar event ID to send the invitation for")
    attendees: Attendees = Field(description="People to invite")


class SetReminderInput(BaseModel):
    event_id: str = Field(description="Calendar event ID")
    minutes_before: int = Field(default=DEFAULT_REMINDER_MINUTES, gt=0, description="Minutes before the event")
