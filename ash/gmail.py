import base64
from email.mime.text import MIMEText
from html import escape
from typing import Any, Callable, Dict, List

from dateutil import parser as dtparse

from ash.credentials import service_for


def _fmt(ts: str | None) -> str:
    if not ts:
        return "TBD"
    return dtparse.isoparse(ts).strftime("%a %b %d %Y, %I:%M %p %Z").strip()


def render_invite(event: Dict[str, Any], recipients: List[str]) -> str:
    """HTML body for a meeting invitation."""
    return f"""
      <html>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2>Meeting Invitation</h2>
          <p><strong>Title:</strong> {escape(event.get("title") or "Meeting")}</p>
          <p><strong>Date &amp; Time:</strong> {_fmt(event.get("start_time"))} - {_fmt(event.get("end_time"))}</p>
          <p><strong>Location:</strong> {escape(event.get("location") or "TBD")}</p>
          <p><strong>Description:</strong> {escape(event.get("description") or "No description provided")}</p>
          <p><strong>Attendees:</strong> {escape(", ".join(recipients))}</p>
          <hr>
          <p><em>This invitation was sent by ASH - AI Scheduling Helper</em></p>
        </body>
      </html>
    """


class GmailSender:
    """Mail collaborator sending from the user's own account through Gmail v1."""

    def __init__(self, service_factory: Callable = service_for):
        self._service_factory = service_factory

    def send_mail(self, user_id: str, recipients: List[str], subject: str, body: str) -> Dict[str, Any]:
        if not recipients:
            raise ValueError("send_mail requires at least one recipient")
        msg = MIMEText(body, "html", "utf-8")
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode().rstrip("=")

        svc = self._service_factory(user_id, "gmail", "v1")
        sent = svc.users().messages().send(userId="me", body={"raw": raw}).execute()
        return {"message_id": sent.get("id"), "recipients": recipients}
