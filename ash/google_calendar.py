from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ash.credentials import service_for


@dataclass
class EventSpec:
    title: str
    start: str
    end: str
    tz: str
    description: str = ""
    attendees: List[str] = field(default_factory=list)
    location: str = ""
    conferencing: Optional[str] = None


def _event_summary(item: Dict[str, Any]) -> Dict[str, Any]:
    start = item.get("start") or {}
    end = item.get("end") or {}
    return {
        "event_id": item["id"],
        "title": item.get("summary", ""),
        "description": item.get("description", ""),
        "start_time": start.get("dateTime") or start.get("date"),
        "end_time": end.get("dateTime") or end.get("date"),
        "location": item.get("location", ""),
        "attendees": [a["email"] for a in item.get("attendees", []) if a.get("email")],
        "status": item.get("status"),
        "calendar_link": item.get("htmlLink"),
    }


class GoogleCalendar:
    """
    Calendar collaborator backed by the Google Calendar v3 API.
    Every call is a fresh round-trip; nothing is cached between calls.
    """

    def __init__(self, calendar_id: str = "primary", service_factory: Callable = service_for):
        self.calendar_id = calendar_id
        self._service_factory = service_factory

    def _svc(self, user_id: str):
        return self._service_factory(user_id, "calendar", "v3")

    def list_busy(self, user_id: str, time_min: str, time_max: str) -> List[Dict[str, str]]:
        """
        Return busy blocks for the user's calendar between time_min and time_max (ISO8601).
        """
        body = {"timeMin": time_min, "timeMax": time_max, "items": [{"id": self.calendar_id}]}
        fb = self._svc(user_id).freebusy().query(body=body).execute()
        return fb["calendars"][self.calendar_id].get("busy", [])

    def create_event(self, user_id: str, spec: EventSpec) -> Dict[str, Any]:
        """
        Create a calendar event, optionally with Google Meet conferencing.
        Returns dict with event_id, join_link and calendar_link.
        """
        event: Dict[str, Any] = {
            "summary": spec.title,
            "description": spec.description,
            "start": {"dateTime": spec.start, "timeZone": spec.tz},
            "end":   {"dateTime": spec.end,   "timeZone": spec.tz},
            "attendees": [{"email": e} for e in spec.attendees],
            "location": spec.location,
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 30},
                    {"method": "popup", "minutes": 10},
                ],
            },
        }

        conf_ver = 0
        if spec.conferencing == "google_meet":
            event["conferenceData"] = {
                "createRequest": {
                    "requestId": f"req-{abs(hash((spec.title, spec.start, spec.end))) % 1_000_000}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"}
                }
            }
            conf_ver = 1

        created = self._svc(user_id).events().insert(
            calendarId=self.calendar_id,
            body=event,
            conferenceDataVersion=conf_ver,
            sendUpdates="all"
        ).execute()

        # Prefer conferenceData.entryPoints[...].uri; fall back to hangoutLink
        join_link = None
        cd = created.get("conferenceData")
        if cd:
            for ep in (cd.get("entryPoints") or []):
                uri = ep.get("uri")
                if uri:
                    join_link = uri
                    break
        if not join_link:
            join_link = created.get("hangoutLink")

        return {
            "event_id": created["id"],
            "join_link": join_link,
            "calendar_link": created.get("htmlLink"),
        }

    def update_event(self, user_id: str, event_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Patch only the given fields (already in Calendar API shape)."""
        updated = self._svc(user_id).events().patch(
            calendarId=self.calendar_id,
            eventId=event_id,
            body=changes,
            sendUpdates="all"
        ).execute()
        return _event_summary(updated)

    def delete_event(self, user_id: str, event_id: str) -> None:
        self._svc(user_id).events().delete(
            calendarId=self.calendar_id,
            eventId=event_id,
            sendUpdates="all"
        ).execute()

    def get_event(self, user_id: str, event_id: str) -> Dict[str, Any]:
        item = self._svc(user_id).events().get(calendarId=self.calendar_id, eventId=event_id).execute()
        return _event_summary(item)

    def list_upcoming(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc).isoformat()
        resp = self._svc(user_id).events().list(
            calendarId=self.calendar_id,
            timeMin=now,
            maxResults=limit,
            singleEvents=True,
            orderBy="startTime"
        ).execute()
        return [_event_summary(item) for item in resp.get("items", [])]

    def set_reminder(self, user_id: str, event_id: str, minutes_before: int) -> Dict[str, Any]:
        body = {
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": minutes_before},
                    {"method": "popup", "minutes": minutes_before},
                ],
            }
        }
        updated = self._svc(user_id).events().patch(
            calendarId=self.calendar_id,
            eventId=event_id,
            body=body
        ).execute()
        return _event_summary(updated)
