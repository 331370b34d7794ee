"""Error taxonomy for the chat engine.

Tool-level failures are tagged with an :class:`ErrorKind` and travel through
the dispatch boundary as data (see ``chatbot.tools.ToolOutcome``). Only
:class:`LLMTransportError` and :class:`MaxIterationsExceeded` end a chat turn.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Tag carried by a failed tool outcome."""

    PARSE_ERROR = "parse_error"
    SAFETY_VIOLATION = "safety_violation"
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_EXECUTION_ERROR = "tool_execution_error"


class ChatError(Exception):
    """Base class for every error raised by the chat engine."""


class ToolError(ChatError):
    """A non-fatal failure at the tool dispatch boundary."""

    kind: ErrorKind = ErrorKind.TOOL_EXECUTION_ERROR


class SQLParseError(ToolError):
    """SQL text or tool arguments could not be parsed."""

    kind = ErrorKind.PARSE_ERROR


class SafetyViolation(ToolError):
    """SQL was rejected by the safety gate."""

    kind = ErrorKind.SAFETY_VIOLATION


class ToolNotFound(ToolError):
    """The model asked for a tool that is not in the catalog."""

    kind = ErrorKind.TOOL_NOT_FOUND


class ToolExecutionError(ToolError):
    """A tool handler failed."""

    kind = ErrorKind.TOOL_EXECUTION_ERROR


class LLMTransportError(ChatError):
    """The LLM endpoint failed or returned something unusable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MaxIterationsExceeded(ChatError):
    """The model kept requesting tools past the round-trip bound."""

    def __init__(self, max_iterations: int) -> None:
        super().__init__(
            f"Max iterations reached without final response ({max_iterations} rounds)"
        )
        self.max_iterations = max_iterations


_ERRORS_BY_KIND = {
    ErrorKind.PARSE_ERROR: SQLParseError,
    ErrorKind.SAFETY_VIOLATION: SafetyViolation,
    ErrorKind.TOOL_NOT_FOUND: ToolNotFound,
    ErrorKind.TOOL_EXECUTION_ERROR: ToolExecutionError,
}


def error_for_kind(kind: ErrorKind, message: str) -> ToolError:
    """Build the exception matching a tagged outcome."""
    return _ERRORS_BY_KIND[kind](message)
