class AshError(Exception):
    """Base class for errors raised by the scheduling core."""


class InvalidRangeError(AshError, ValueError):
    """A time window or duration handed to the availability engine is malformed."""


class ModelUnavailableError(AshError):
    """The language-model call failed or returned something unusable."""


class UnknownToolError(AshError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.tool_name = name


class ToolExecutionError(AshError):
    def __init__(self, name: str, message: str):
        super().__init__(message)
        self.tool_name = name
