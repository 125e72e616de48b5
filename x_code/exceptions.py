"""Custom exceptions for X-Code."""

import re
from dataclasses import dataclass
from enum import Enum


class XCodeError(Exception):
    """Base exception for X-Code."""

    pass


class ConfigurationError(XCodeError):
    """Configuration-related errors."""

    pass


class LLMError(XCodeError):
    """LLM-related errors."""

    pass


class LLMAPIError(LLMError):
    """LLM API errors (rate limit, auth, etc.)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AgentAbortedError(XCodeError):
    """The run was cancelled through its abort event."""

    def __init__(self, message: str = "Aborted by user"):
        super().__init__(message)


class MaxTurnsExceededError(XCodeError):
    """The agent loop hit its turn limit."""

    def __init__(self, max_turns: int):
        super().__init__(f"Reached maximum turns ({max_turns}). Stopping agent loop.")
        self.max_turns = max_turns


class InteractionError(XCodeError):
    """A permission prompt or question callback failed to produce an answer."""

    def __init__(self, tool_name: str, cause: BaseException):
        super().__init__(f"Could not get an answer for '{tool_name}': {cause!r}")
        self.tool_name = tool_name


class ToolError(XCodeError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class ErrorKind(str, Enum):
    """Classification of model/network failures."""

    AUTHENTICATION = "authentication"
    FORBIDDEN = "forbidden"
    UNAVAILABLE = "unavailable"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    ABORTED = "aborted"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassifiedError:
    """User-facing explanation of a model failure."""

    kind: ErrorKind
    message: str
    retryable: bool


_STATUS_RE = re.compile(r"\b(\d{3})\b")


def _status_of(exc: BaseException, message: str) -> int:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    match = _STATUS_RE.search(message)
    return int(match.group(1)) if match else 0


def classify_api_error(exc: BaseException) -> ClassifiedError:
    """Map a model/network exception to a kind and a recovery message.

    Retries for rate limits and transient network faults are delegated to the
    model client, so a retryable error reaching the loop means retries were
    already exhausted.
    """
    if isinstance(exc, AgentAbortedError):
        return ClassifiedError(ErrorKind.ABORTED, str(exc), retryable=False)

    message = str(exc) or type(exc).__name__
    status = _status_of(exc, message)
    lowered = message.lower()

    if status == 401 or "unauthorized" in lowered or "invalid api key" in lowered:
        return ClassifiedError(
            ErrorKind.AUTHENTICATION,
            "API authentication failed (401). Check your API key or model configuration.",
            retryable=False,
        )
    if status == 403 or "forbidden" in lowered:
        return ClassifiedError(
            ErrorKind.FORBIDDEN,
            "API access forbidden (403). Your API key may not have permission for this model.",
            retryable=False,
        )
    if status == 503 or "service unavailable" in lowered or "overloaded" in lowered:
        return ClassifiedError(
            ErrorKind.UNAVAILABLE,
            "Model service unavailable (503). Try switching to a different model.",
            retryable=False,
        )
    if status == 429 or "rate limit" in lowered:
        return ClassifiedError(
            ErrorKind.RATE_LIMITED,
            "Rate limited (429). Retries were exhausted; wait a moment and try again.",
            retryable=True,
        )
    if "timeout" in lowered or "timed out" in lowered or "etimedout" in lowered or "econnreset" in lowered:
        return ClassifiedError(
            ErrorKind.NETWORK,
            f"Network error: {message}",
            retryable=True,
        )
    return ClassifiedError(ErrorKind.UNKNOWN, message, retryable=False)
