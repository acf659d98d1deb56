"""Error taxonomy and tool error formatting."""

from mcp.server.fastmcp.exceptions import ToolError


class FeedbackError(Exception):
    """Base class for errors raised by the coordination layer."""


class SessionNotFoundError(FeedbackError):
    def __init__(self, session_id: str, available: list[str] | None = None):
        self.session_id = session_id
        self.available = available or []
        super().__init__(f"Session not found: {session_id}")


class SurfaceNotFoundError(FeedbackError):
    """No surface matches the request. ``available`` lists the open identifiers."""

    def __init__(self, message: str, available: list[str] | None = None):
        self.available = available or []
        super().__init__(message)


class AmbiguousSurfaceError(FeedbackError):
    """Several surfaces are open and no identifier was given."""

    def __init__(self, message: str, available: list[str]):
        self.available = available
        super().__init__(message)


class ServerNotReadyError(FeedbackError):
    """A launched server exited or timed out before accepting connections."""

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message)


class WorkflowValidationError(FeedbackError):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def format_error(
    message: str,
    context: str | None = None,
    suggested_fix: str | None = None,
) -> str:
    """Render an error with optional context and fix hint."""
    text = f"Error: {message}"
    if context:
        text += f"\nContext: {context}"
    if suggested_fix:
        text += f"\nSuggested fix: {suggested_fix}"
    return text


def tool_error(
    message: str,
    context: str | None = None,
    suggested_fix: str | None = None,
) -> ToolError:
    """Build a ToolError; FastMCP reports it to the caller with isError set."""
    return ToolError(format_error(message, context, suggested_fix))
