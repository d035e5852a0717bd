from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List
from zoneinfo import ZoneInfo

from dateutil import parser as dtparse

from ash.availability import compute_free_slots, parse_busy, slot_to_dict
from ash.gmail import render_invite
from ash.google_calendar import EventSpec
from ash.tools.schemas import (
    CreateEventInput,
    DeleteEventInput,
    GetFreeSlotsInput,
    GetUpcomingEventsInput,
    SendInviteInput,
    SetReminderInput,
    UpdateEventInput,
)


@dataclass
class ToolContext:
    """Per-turn collaborators handed to every tool handler."""

    user_id: str
    calendar: Any
    mailer: Any
    timezone: str = "UTC"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def normalize_attendees(attendees_raw) -> List[str]:
    """
    Accepts:
      - "a@x.com"
      - "a@x.com, b@y.com" (or semicolon-separated)
      - ["a@x.com", "b@y.com"]
      - [{"email":"a@x.com"}, ...] or Participant models
    Returns: list[str] of emails, de-duplicated in order.
    """
    emails: List[str] = []

    def add_email(s: str):
        s = (s or "").strip()
        if s and "@" in s:
            emails.append(s)

    if isinstance(attendees_raw, str):
        for p in attendees_raw.replace(";", ",").split(","):
            add_email(p)
    elif isinstance(attendees_raw, dict):
        add_email(attendees_raw.get("email", ""))
    elif isinstance(attendees_raw, list):
        for item in attendees_raw:
            if isinstance(item, str):
                add_email(item)
            elif isinstance(item, dict):
                add_email(item.get("email", ""))
            elif hasattr(item, "email"):
                add_email(item.email)

    seen = set()
    result = []
    for e in emails:
        if e not in seen:
            seen.add(e)
            result.append(e)
    return result


def parse_iso(value: str, tz: ZoneInfo, field: str) -> datetime:
    """ISO-8601 shape check; naive values are read in the organizer's timezone."""
    try:
        dt = dtparse.isoparse(value)
    except (ValueError, OverflowError):
        raise ValueError(f"{field} must be ISO8601 (e.g., 2025-10-07T15:00:00-04:00), got {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


async def get_free_slots(ctx: ToolContext, args: GetFreeSlotsInput) -> Dict[str, Any]:
    """
    Query the user's busy blocks and return the free slots long enough for the meeting.
    """
    ws = parse_iso(args.start_date, ctx.tz, "start_date")
    we = parse_iso(args.end_date, ctx.tz, "end_date")

    blocks = ctx.calendar.list_busy(ctx.user_id, ws.isoformat(), we.isoformat())
    slots = compute_free_slots(ws, we, parse_busy(blocks, ctx.tz), timedelta(minutes=args.duration_minutes))
    return {
        "window_start": ws.isoformat(),
        "window_end": we.isoformat(),
        "duration_minutes": args.duration_minutes,
        "free_slots": [slot_to_dict(s) for s in slots],
    }


async def create_event(ctx: ToolContext, args: CreateEventInput) -> Dict[str, Any]:
    attendee_emails = normalize_attendees(args.attendees)
    fallback_title = f"Meeting with {attendee_emails[0]}" if attendee_emails else "Meeting"
    title = (args.title or fallback_title).strip()

    start_dt = parse_iso(args.start_time, ctx.tz, "start_time")
    end_dt = parse_iso(args.end_time, ctx.tz, "end_time")
    if end_dt <= start_dt:
        raise ValueError("end_time must be after start_time.")

    created = ctx.calendar.create_event(ctx.user_id, EventSpec(
        title=title,
        start=start_dt.isoformat(),
        end=end_dt.isoformat(),
        tz=ctx.timezone,
        description=args.description or "",
        attendees=attendee_emails,
        location=args.location or "",
        conferencing=args.conferencing,
    ))

    return {
        "event_id": created["event_id"],
        "join_link": created.get("join_link"),
        "calendar_link": created.get("calendar_link"),
        "title": title,
        "start_time": start_dt.isoformat(),
        "end_time": end_dt.isoformat(),
        "attendees": attendee_emails,
        "message": f'Event "{title}" created successfully',
    }


async def update_event(ctx: ToolContext, args: UpdateEventInput) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    if args.title is not None:
        changes["summary"] = args.title
    if args.description is not None:
        changes["description"] = args.description
    if args.location is not None:
        changes["location"] = args.location
    if args.attendees is not None:
        changes["attendees"] = [{"email": e} for e in normalize_attendees(args.attendees)]

    start_dt = parse_iso(args.start_time, ctx.tz, "start_time") if args.start_time else None
    end_dt = parse_iso(args.end_time, ctx.tz, "end_time") if args.end_time else None
    if start_dt and end_dt and end_dt <= start_dt:
        raise ValueError("end_time must be after start_time.")
    if start_dt:
        changes["start"] = {"dateTime": start_dt.isoformat(), "timeZone": ctx.timezone}
    if end_dt:
        changes["end"] = {"dateTime": end_dt.isoformat(), "timeZone": ctx.timezone}

    if not changes:
        raise ValueError("updateEvent needs at least one field to change.")

    updated = ctx.calendar.update_event(ctx.user_id, args.event_id, changes)
    return {"event": updated, "message": "Event updated successfully"}


async def delete_event(ctx: ToolContext, args: DeleteEventInput) -> Dict[str, Any]:
    ctx.calendar.delete_event(ctx.user_id, args.event_id)
    return {"event_id": args.event_id, "message": "Event cancelled successfully"}


async def get_upcoming_events(ctx: ToolContext, args: GetUpcomingEventsInput) -> Dict[str, Any]:
    events = ctx.calendar.list_upcoming(ctx.user_id, args.limit)
    return {"events": events, "count": len(events)}


async def send_invite(ctx: ToolContext, args: SendInviteInput) -> Dict[str, Any]:
    recipients = normalize_attendees(args.attendees)
    if not recipients:
        raise ValueError("sendInvite needs at least one attendee email.")

    event = ctx.calendar.get_event(ctx.user_id, args.event_id)
    subject = f"Meeting Invitation: {event.get('title') or 'Meeting'}"
    ctx.mailer.send_mail(ctx.user_id, recipients, subject, render_invite(event, recipients))
    return {"event_id": args.event_id, "message": f"Invitations sent to {len(recipients)} attendees"}


async def set_reminder(ctx: ToolContext, args: SetReminderInput) -> Dict[str, Any]:
    ctx.calendar.set_reminder(ctx.user_id, args.event_id, args.minutes_before)
    return {
        "event_id": args.event_id,
        "minutes_before": args.minutes_before,
        "message": f"Reminder set for {args.minutes_before} minutes before the event",
    }
