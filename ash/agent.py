"""
ASH agent orchestration.

One utterance in, one reply out. A turn walks an explicit state machine:

    COMPOSING -> AWAITING_MODEL -> DONE
    COMPOSING -> AWAITING_MODEL -> DISPATCHING -> FINALIZING -> DONE

The model is called at most twice per turn and tools are dispatched at most
once; the finalizing call is made without tool declarations, and any tool
calls it returns anyway are ignored.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

from ash.errors import ModelUnavailableError
from ash.tools import TOOL_REGISTRY, ToolContext, ToolResult, ToolSpec, dispatch, tool_declarations

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I apologize, but I encountered an error while processing your request. Please try again."
DEFAULT_REPLY = "I'm here to help with your scheduling needs."

PERSONA = """You are ASH (AI Scheduling Helper), a polite, professional, and slightly futuristic AI assistant that manages calendars and schedules meetings.

Your personality:
- Polite and professional
- Slightly futuristic in tone
- Helpful and efficient
- Always confirm details before taking action

You can check availability, create, reschedule and cancel events, list upcoming events, send invitations and set reminders by calling the tools you are given.

Time conventions:
- Resolve relative expressions ("tomorrow at 3 PM", "next Friday morning", "in 2 hours") against the current date and time given below.
- Pass every timestamp to a tool as an ISO 8601 string with a UTC offset.
- Dates must resolve to the future unless the user clearly means the past.

Always be helpful and ask clarifying questions when needed."""


class TurnState(Enum):
    COMPOSING = "composing"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING = "dispatching"
    FINALIZING = "finalizing"
    DONE = "done"


def next_state(state: TurnState, tool_calls_pending: bool = False) -> TurnState:
    """Transition function for one turn. There is no edge back into DISPATCHING."""
    if state is TurnState.COMPOSING:
        return TurnState.AWAITING_MODEL
    if state is TurnState.AWAITING_MODEL:
        return TurnState.DISPATCHING if tool_calls_pending else TurnState.DONE
    if state is TurnState.DISPATCHING:
        return TurnState.FINALIZING
    if state is TurnState.FINALIZING:
        return TurnState.DONE
    raise ValueError(f"{state} is terminal")


@dataclass(frozen=True)
class AgentConfig:
    """Everything a turn needs to know about the agent; passed into each call."""

    persona: str = PERSONA
    tools: Tuple[Dict[str, Any], ...] = field(default_factory=lambda: tuple(tool_declarations()))
    registry: Mapping[str, ToolSpec] = field(default_factory=lambda: TOOL_REGISTRY)
    context_turns: int = 6
    timezone: str = "UTC"

    def system_prompt(self, now: datetime) -> str:
        return (
            f"{self.persona}\n\n"
            f"Current date and time: {now.isoformat(timespec='minutes')} ({self.timezone})."
        )


@dataclass
class TurnResult:
    reply: str
    mutations_performed: List[ToolResult] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None
    processing_time_ms: int = 0
    states: List[TurnState] = field(default_factory=list)


def _field(msg: Any, name: str) -> Any:
    if isinstance(msg, Mapping):
        return msg.get(name)
    return getattr(msg, name, None)


def compose_messages(
    config: AgentConfig,
    text: str,
    prior_context: Optional[Iterable[Any]] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """System persona, then the most recent prior turns, then the new utterance."""
    now = now or datetime.now(ZoneInfo(config.timezone))
    history = []
    for msg in prior_context or []:
        role, content = _field(msg, "role"), _field(msg, "content")
        if role in ("user", "assistant") and content:
            history.append({"role": role, "content": content})
    if config.context_turns > 0:
        history = history[-config.context_turns:]
    else:
        history = []

    return [
        {"role": "system", "content": config.system_prompt(now)},
        *history,
        {"role": "user", "content": text},
    ]


def summarize_results(results: List[ToolResult]) -> str:
    """Plain reply built from tool outcomes, used when the model gives no final text."""
    parts = []
    for r in results:
        if r.success:
            parts.append(r.data.get("message") or f"{r.name} completed.")
        else:
            parts.append(f"I had trouble with {r.name}: {r.error}")
    return " ".join(parts) or DEFAULT_REPLY


async def handle_utterance(
    user_id: str,
    text: str,
    prior_context: Optional[Iterable[Any]] = None,
    *,
    config: AgentConfig,
    llm,
    calendar,
    mailer,
    is_voice: bool = False,
    now: Optional[datetime] = None,
) -> TurnResult:
    """
    Run one conversational turn for user_id.

    Never raises under normal operation: model failures and unexpected errors
    produce FALLBACK_REPLY with success=False, and tool failures are folded into
    the results the model sees when writing its final reply.
    """
    started = time.monotonic()
    logger.info("Turn started for %s (voice=%s, %d chars)", user_id, is_voice, len(text))

    ctx = ToolContext(user_id=user_id, calendar=calendar, mailer=mailer, timezone=config.timezone)
    results: List[ToolResult] = []
    messages: List[Dict[str, Any]] = []
    first = None
    reply = DEFAULT_REPLY
    state = TurnState.COMPOSING
    states = [state]

    def finish(**kwargs) -> TurnResult:
        elapsed = int((time.monotonic() - started) * 1000)
        result = TurnResult(mutations_performed=results, processing_time_ms=elapsed, states=states, **kwargs)
        logger.info("Turn finished for %s in %dms (success=%s, tools=%d)",
                    user_id, elapsed, result.success, len(results))
        return result

    try:
        while state is not TurnState.DONE:
            if state is TurnState.COMPOSING:
                messages = compose_messages(config, text, prior_context, now)
                state = next_state(state)

            elif state is TurnState.AWAITING_MODEL:
                first = await llm.complete(messages, list(config.tools))
                reply = first.text or DEFAULT_REPLY
                state = next_state(state, tool_calls_pending=bool(first.tool_calls))

            elif state is TurnState.DISPATCHING:
                for call in first.tool_calls:
                    results.append(await dispatch(
                        ctx, call.name, call.arguments, call.id, config.registry, call.arguments_error
                    ))
                messages.append(llm.assistant_message(first))
                for call, result in zip(first.tool_calls, results):
                    messages.append(llm.tool_message(call, result.payload()))
                state = next_state(state)

            elif state is TurnState.FINALIZING:
                final = await llm.complete(messages)
                reply = final.text or summarize_results(results)
                state = next_state(state)

            states.append(state)

    except ModelUnavailableError as e:
        logger.error("Model unavailable during %s for %s: %s", state.value, user_id, e)
        return finish(reply=FALLBACK_REPLY, success=False, error=str(e))
    except Exception as e:
        logger.exception("Unexpected error during %s for %s", state.value, user_id)
        return finish(reply=FALLBACK_REPLY, success=False, error=e.__class__.__name__)

    return finish(reply=reply)
