import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from ash.errors import ToolExecutionError, UnknownToolError
from ash.tools import schemas
from ash.tools.calendar_tools import (
    ToolContext,
    create_event,
    delete_event,
    get_free_slots,
    get_upcoming_events,
    send_invite,
    set_reminder,
    update_event,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: Type[BaseModel]
    handler: Callable[[ToolContext, Any], Awaitable[Dict[str, Any]]]

    def declaration(self) -> Dict[str, Any]:
        """Function-calling declaration in the shape both Ollama and OpenAI accept."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_model.model_json_schema(),
            },
        }


@dataclass
class ToolResult:
    name: str
    arguments: Dict[str, Any]
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    call_id: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        """What the model sees for this call."""
        if self.success:
            return {"success": True, **self.data}
        return {"success": False, "error": self.error}

    def to_dict(self) -> Dict[str, Any]:
        return {"tool": self.name, "arguments": self.arguments, **self.payload()}


TOOL_REGISTRY: Dict[str, ToolSpec] = {
    spec.name: spec
    for spec in [
        ToolSpec("getFreeSlots", "Get available time slots for scheduling",
                 schemas.GetFreeSlotsInput, get_free_slots),
        ToolSpec("createEvent", "Create a new calendar event",
                 schemas.CreateEventInput, create_event),
        ToolSpec("updateEvent", "Update an existing calendar event",
                 schemas.UpdateEventInput, update_event),
        ToolSpec("deleteEvent", "Delete a calendar event",
                 schemas.DeleteEventInput, delete_event),
        ToolSpec("getUpcomingEvents", "Get upcoming events for the user",
                 schemas.GetUpcomingEventsInput, get_upcoming_events),
        ToolSpec("sendInvite", "Send meeting invitation via email",
                 schemas.SendInviteInput, send_invite),
        ToolSpec("setReminder", "Set a reminder for an event",
                 schemas.SetReminderInput, set_reminder),
    ]
}

TOOL_NAMES = tuple(TOOL_REGISTRY)


def tool_declarations(registry: Dict[str, ToolSpec] = TOOL_REGISTRY) -> List[Dict[str, Any]]:
    return [spec.declaration() for spec in registry.values()]


async def run_tool(spec: ToolSpec, ctx: ToolContext, arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Validate arguments against the tool's model and run its handler."""
    try:
        args = spec.input_model.model_validate(arguments)
    except ValidationError as e:
        raise ToolExecutionError(spec.name, f"Invalid arguments for {spec.name}: {e.errors(include_url=False)}")
    try:
        return await spec.handler(ctx, args)
    except ToolExecutionError:
        raise
    except Exception as e:
        raise ToolExecutionError(spec.name, str(e) or e.__class__.__name__) from e


async def dispatch(
    ctx: ToolContext,
    name: str,
    arguments: Dict[str, Any],
    call_id: Optional[str] = None,
    registry: Dict[str, ToolSpec] = TOOL_REGISTRY,
    arguments_error: Optional[str] = None,
) -> ToolResult:
    """
    Execute one tool call and always return a ToolResult.
    Unknown names, unparseable arguments and handler failures become error
    results instead of raising.
    """
    try:
        spec = registry.get(name)
        if spec is None:
            raise UnknownToolError(name)
        if arguments_error:
            raise ToolExecutionError(name, arguments_error)
        data = await run_tool(spec, ctx, arguments)
    except (UnknownToolError, ToolExecutionError) as e:
        logger.warning("Tool %s failed for %s: %s", name, ctx.user_id, e)
        return ToolResult(name, arguments, success=False, error=str(e), call_id=call_id)

    logger.info("Tool %s succeeded for %s", name, ctx.user_id)
    return ToolResult(name, arguments, success=True, data=data, call_id=call_id)


__all__ = [
    "TOOL_NAMES",
    "TOOL_REGISTRY",
    "ToolContext",
    "ToolResult",
    "ToolSpec",
    "dispatch",
    "tool_declarations",
]
