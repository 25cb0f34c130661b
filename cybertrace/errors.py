"""Error taxonomy for the chat service.

Only ``Unauthorized`` stops a request outright. The others are handled
where they occur: a missing chat is replaced by a new one, an unavailable
tool server degrades to the in-process tools, tool failures become the
invocation's result, and persistence failures after streaming are logged.
"""


class CybertraceError(Exception):
    """Base class for service errors."""


class Unauthorized(CybertraceError):
    """No valid session accompanies the request."""


class ChatNotFound(CybertraceError):
    """The chat does not exist or is owned by another user."""

    def __init__(self, chat_id: str):
        super().__init__(f"Chat {chat_id} not found")
        self.chat_id = chat_id


class ToolServerUnavailable(CybertraceError):
    """The external tool server could not be reached or initialized."""


class ToolExecutionError(CybertraceError):
    """A tool failed; carried as the invocation result, never raised out of a turn."""

    def __init__(self, tool_name: str, reason: str):
        super().__init__(f"Error calling tool {tool_name}: {reason}")
        self.tool_name = tool_name
        self.reason = reason


class ModelInvocationError(CybertraceError):
    """The language model call failed; the turn is aborted."""


class PersistenceError(CybertraceError):
    """Writing chat data failed."""
