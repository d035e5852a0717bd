"""Shared fixtures for ASH tests.

- mock_calendar / mock_mailer: MagicMock collaborators with realistic returns
- agent_config: AgentConfig pinned to UTC
- fixed_now: reference timestamp for prompt composition
"""

from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from ash.agent import AgentConfig


@pytest.fixture
def mock_calendar():
    cal = MagicMock()
    cal.list_busy.return_value = []
    cal.create_event.return_value = {
        "event_id": "evt-1",
        "join_link": None,
        "calendar_link": "https://calendar.example/evt-1",
    }
    cal.get_event.return_value = {
        "event_id": "evt-1",
        "title": "Design review",
        "description": "",
        "start_time": "2025-10-07T15:00:00+00:00",
        "end_time": "2025-10-07T16:00:00+00:00",
        "location": "",
        "attendees": [],
    }
    cal.list_upcoming.return_value = [
        {"event_id": "evt-2", "title": "Standup", "start_time": "2025-10-08T09:00:00+00:00"},
    ]
    cal.update_event.return_value = {"event_id": "evt-1", "title": "Design review"}
    cal.set_reminder.return_value = {"event_id": "evt-1"}
    return cal


@pytest.fixture
def mock_mailer():
    mailer = MagicMock()
    mailer.send_mail.return_value = {"message_id": "m-1", "recipients": []}
    return mailer


@pytest.fixture
def agent_config():
    return AgentConfig(timezone="UTC")


@pytest.fixture
def fixed_now():
    return datetime(2025, 10, 6, 9, 30, tzinfo=ZoneInfo("UTC"))
