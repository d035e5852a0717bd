import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from ash import config
from ash.agent import AgentConfig, handle_utterance
from ash.availability import compute_free_slots, is_window_free, parse_busy, slot_to_dict, suggest_slots
from ash.gmail import GmailSender
from ash.google_calendar import GoogleCalendar
from ash.llm import ChatModelClient, build_llm_client
from ash.tools.calendar_tools import parse_iso

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


class ContextMessage(BaseModel):
    role: str
    content: str


class ScheduleIn(BaseModel):
    user_id: str
    text: str
    is_voice: bool = False
    context: List[ContextMessage] = Field(default_factory=list)
    timezone: Optional[str] = None


class ScheduleOut(BaseModel):
    success: bool
    reply: str
    mutations: List[Dict[str, Any]]
    processing_time_ms: int
    timestamp: str


class AvailabilityIn(BaseModel):
    user_id: str
    start_time: str
    end_time: str
    timezone: Optional[str] = None


_llm: ChatModelClient | None = None


def get_llm() -> ChatModelClient:
    global _llm
    if _llm is None:
        _llm = build_llm_client()
    return _llm


def get_agent_config() -> AgentConfig:
    return AgentConfig(context_turns=config.CONTEXT_TURNS, timezone=config.DEFAULT_TIMEZONE)


def get_calendar() -> GoogleCalendar:
    return GoogleCalendar()


def get_mailer() -> GmailSender:
    return GmailSender()


def _zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or config.DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {name}")


def _busy(calendar: GoogleCalendar, user_id: str, start: datetime, end: datetime, tz: ZoneInfo):
    try:
        blocks = calendar.list_busy(user_id, start.isoformat(), end.isoformat())
    except Exception as e:
        logger.warning("Free/busy lookup failed for %s: %s", user_id, e)
        raise HTTPException(status_code=502, detail=f"Calendar request failed: {e}")
    return parse_busy(blocks, tz)


app = FastAPI(title="ASH")


@app.get("/health")
async def health(llm: ChatModelClient = Depends(get_llm)):
    reachable = await llm.ping()
    return {"ok": True, "provider": llm.provider, "model": llm.model, "llm_reachable": reachable}


@app.post("/schedule", response_model=ScheduleOut)
async def schedule(
    body: ScheduleIn,
    agent_config: AgentConfig = Depends(get_agent_config),
    llm: ChatModelClient = Depends(get_llm),
    calendar: GoogleCalendar = Depends(get_calendar),
    mailer: GmailSender = Depends(get_mailer),
):
    if not body.text or not body.text.strip():
        raise HTTPException(status_code=400, detail="Text input is required")
    if body.timezone:
        _zone(body.timezone)
        agent_config = replace(agent_config, timezone=body.timezone)

    turn = await handle_utterance(
        body.user_id,
        body.text.strip(),
        body.context,
        config=agent_config,
        llm=llm,
        calendar=calendar,
        mailer=mailer,
        is_voice=body.is_voice,
    )
    return ScheduleOut(
        success=turn.success,
        reply=turn.reply,
        mutations=[r.to_dict() for r in turn.mutations_performed],
        processing_time_ms=turn.processing_time_ms,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.get("/schedule/suggestions")
def suggestions(
    user_id: str,
    date: str,
    duration: int = 60,
    tz_name: Optional[str] = None,
    calendar: GoogleCalendar = Depends(get_calendar),
):
    """Free slots in the 24 hours from `date`, clipped to working hours."""
    if duration <= 0:
        raise HTTPException(status_code=400, detail="duration must be positive")
    tz = _zone(tz_name)
    try:
        start = parse_iso(date, tz, "date")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    end = start + timedelta(hours=24)

    min_duration = timedelta(minutes=duration)
    slots = compute_free_slots(start, end, _busy(calendar, user_id, start, end, tz), min_duration)
    picked = suggest_slots(
        slots, tz,
        hours_start=config.WORKING_HOURS_START,
        hours_end=config.WORKING_HOURS_END,
        limit=config.SUGGESTION_LIMIT,
        min_duration=min_duration,
    )
    return {"success": True, "date": start.isoformat(), "suggestions": [slot_to_dict(s) for s in picked]}


@app.post("/schedule/check-availability")
def check_availability(body: AvailabilityIn, calendar: GoogleCalendar = Depends(get_calendar)):
    tz = _zone(body.timezone)
    try:
        start = parse_iso(body.start_time, tz, "start_time")
        end = parse_iso(body.end_time, tz, "end_time")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if end <= start:
        raise HTTPException(status_code=400, detail="end_time must be after start_time")

    available = is_window_free(start, end, _busy(calendar, user_id=body.user_id, start=start, end=end, tz=tz))
    return {
        "success": True,
        "available": available,
        "start_time": start.isoformat(),
        "end_time": end.isoformat(),
        "message": "Time slot is available" if available else "Time slot is not available",
    }
