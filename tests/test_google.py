"""Tests for the Google-backed collaborators with a mocked discovery service."""

import base64
import email
from unittest.mock import MagicMock

import pytest

from ash.gmail import GmailSender, render_invite
from ash.google_calendar import EventSpec, GoogleCalendar


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def calendar(service):
    return GoogleCalendar(service_factory=lambda user_id, api, version: service)


class TestGoogleCalendar:
    def test_list_busy(self, calendar, service):
        service.freebusy().query().execute.return_value = {
            "calendars": {"primary": {"busy": [{"start": "a", "end": "b"}]}}
        }
        assert calendar.list_busy("u1", "2025-10-07T00:00:00Z", "2025-10-08T00:00:00Z") == [
            {"start": "a", "end": "b"}
        ]
        service.freebusy().query.assert_called_with(body={
            "timeMin": "2025-10-07T00:00:00Z",
            "timeMax": "2025-10-08T00:00:00Z",
            "items": [{"id": "primary"}],
        })

    def test_create_event_with_meet(self, calendar, service):
        service.events().insert().execute.return_value = {
            "id": "g-1",
            "htmlLink": "https://calendar.example/g-1",
            "conferenceData": {"entryPoints": [{"uri": "https://meet.example/abc"}]},
        }
        created = calendar.create_event("u1", EventSpec(
            title="Sync",
            start="2025-10-07T15:00:00+00:00",
            end="2025-10-07T16:00:00+00:00",
            tz="UTC",
            attendees=["sam@example.com"],
            conferencing="google_meet",
        ))

        assert created == {
            "event_id": "g-1",
            "join_link": "https://meet.example/abc",
            "calendar_link": "https://calendar.example/g-1",
        }
        kwargs = service.events().insert.call_args.kwargs
        assert kwargs["conferenceDataVersion"] == 1
        assert kwargs["sendUpdates"] == "all"
        assert kwargs["body"]["attendees"] == [{"email": "sam@example.com"}]

    def test_create_event_without_conferencing(self, calendar, service):
        service.events().insert().execute.return_value = {"id": "g-2", "hangoutLink": None}
        created = calendar.create_event("u1", EventSpec("Lunch", "s", "e", "UTC"))
        assert created["event_id"] == "g-2"
        kwargs = service.events().insert.call_args.kwargs
        assert kwargs["conferenceDataVersion"] == 0
        assert "conferenceData" not in kwargs["body"]

    def test_get_event_summary(self, calendar, service):
        service.events().get().execute.return_value = {
            "id": "g-1",
            "summary": "Sync",
            "start": {"dateTime": "2025-10-07T15:00:00Z"},
            "end": {"dateTime": "2025-10-07T16:00:00Z"},
            "attendees": [{"email": "sam@example.com"}, {"displayName": "room"}],
        }
        event = calendar.get_event("u1", "g-1")
        assert event["title"] == "Sync"
        assert event["start_time"] == "2025-10-07T15:00:00Z"
        assert event["attendees"] == ["sam@example.com"]

    def test_set_reminder_overrides(self, calendar, service):
        service.events().patch().execute.return_value = {"id": "g-1"}
        calendar.set_reminder("u1", "g-1", 15)
        body = service.events().patch.call_args.kwargs["body"]
        assert body["reminders"]["useDefault"] is False
        assert {o["minutes"] for o in body["reminders"]["overrides"]} == {15}

    def test_list_upcoming(self, calendar, service):
        service.events().list().execute.return_value = {"items": [{"id": "g-1", "summary": "A"}]}
        events = calendar.list_upcoming("u1", 5)
        assert [e["event_id"] for e in events] == ["g-1"]
        assert service.events().list.call_args.kwargs["maxResults"] == 5


class TestGmailSender:
    def test_sends_html_message(self, service):
        service.users().messages().send().execute.return_value = {"id": "m-1"}
        sender = GmailSender(service_factory=lambda user_id, api, version: service)

        out = sender.send_mail("u1", ["a@x.com", "b@y.com"], "Meeting Invitation: Sync", "<p>hi</p>")

        assert out == {"message_id": "m-1", "recipients": ["a@x.com", "b@y.com"]}
        raw = service.users().messages().send.call_args.kwargs["body"]["raw"]
        msg = email.message_from_bytes(base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)))
        assert msg["To"] == "a@x.com, b@y.com"
        assert msg["Subject"] == "Meeting Invitation: Sync"
        assert msg.get_content_type() == "text/html"

    def test_requires_recipients(self, service):
        with pytest.raises(ValueError):
            GmailSender(service_factory=lambda *a: service).send_mail("u1", [], "s", "b")


def test_render_invite_escapes_fields():
    body = render_invite(
        {"title": "<Sync>", "start_time": "2025-10-07T15:00:00Z", "end_time": None},
        ["a@x.com"],
    )
    assert "&lt;Sync&gt;" in body
    assert "TBD" in body
    assert "a@x.com" in body
