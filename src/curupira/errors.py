"""Curupira exception hierarchy.

Every error carries a stable ``ErrorCode`` and a ``retryable`` flag so the
tool boundary can report failures without inspecting message text.

PUBLIC API:
  - ErrorCode: Stable error identifiers
  - CurupiraError: Base exception for all gateway operations
  - CDPConnectionError: Transport is down or could not be opened
  - ConnectionLostError: Transport closed while a command was in flight
  - NoActiveSessionError: No attached target to route a command to
  - CDPTimeoutError: Command or event wait exceeded its deadline
  - CDPProtocolError: Browser answered a command with an error frame
  - ScriptExecutionError: In-page script threw
  - ToolValidationError: Tool arguments failed validation
  - ElementNotFoundError: Selector matched nothing
  - InvalidStateError: Operation not valid in the current state
  - ToolNotFoundError: Unknown tool name
  - ConfigError: Invalid configuration value
"""

from enum import Enum
from typing import Any

__all__ = [
    "ErrorCode",
    "CurupiraError",
    "CDPConnectionError",
    "ConnectionLostError",
    "NoActiveSessionError",
    "CDPTimeoutError",
    "CDPProtocolError",
    "ScriptExecutionError",
    "ToolValidationError",
    "ElementNotFoundError",
    "InvalidStateError",
    "ToolNotFoundError",
    "ConfigError",
]


class ErrorCode(str, Enum):
    """Stable error identifiers surfaced to callers."""

    INTERNAL = "INTERNAL_ERROR"
    NOT_CONNECTED = "NETWORK_NOT_CONNECTED"
    CONNECTION_LOST = "CONNECTION_LOST"
    NO_ACTIVE_SESSION = "NO_ACTIVE_SESSION"
    TIMEOUT = "NETWORK_TIMEOUT"
    PROTOCOL_ERROR = "PROTOCOL_ERROR"
    SCRIPT_ERROR = "SCRIPT_ERROR"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    CONFIG_INVALID = "CONFIG_INVALID"


class CurupiraError(Exception):
    """Base exception for all gateway operations.

    Attributes:
        code: Stable error identifier.
        retryable: Whether repeating the operation may succeed.
        details: Extra diagnostic context.
    """

    code: ErrorCode = ErrorCode.INTERNAL
    retryable: bool = False

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Serialize for logs and HTTP responses."""
        data = {"code": self.code.value, "message": self.message, "retryable": self.retryable}
        if self.details:
            data["details"] = self.details
        return data


class CDPConnectionError(CurupiraError):
    """Raised when the browser transport is not open or cannot be opened."""

    code = ErrorCode.NOT_CONNECTED


class ConnectionLostError(CDPConnectionError):
    """Raised for commands still pending when the transport closes."""

    code = ErrorCode.CONNECTION_LOST


class NoActiveSessionError(CurupiraError):
    """Raised when a command needs a session and none is attached."""

    code = ErrorCode.NO_ACTIVE_SESSION


class CDPTimeoutError(CurupiraError):
    """Raised when a command gets no response within its timeout."""

    code = ErrorCode.TIMEOUT
    retryable = True

    def __init__(self, method: str, timeout: float, message: str | None = None):
        super().__init__(message or f"CDP command {method} timed out after {timeout}s", method=method, timeout=timeout)
        self.method = method
        self.timeout = timeout


class CDPProtocolError(CurupiraError):
    """Raised when the browser answers a command with an error frame.

    Attributes:
        method: CDP method that failed.
        cdp_code: Numeric CDP error code, if any.
        data: Optional CDP error data.
    """

    code = ErrorCode.PROTOCOL_ERROR

    def __init__(self, method: str, message: str, cdp_code: int | None = None, data: Any = None):
        super().__init__(message, method=method, cdp_code=cdp_code)
        self.method = method
        self.cdp_code = cdp_code
        self.data = data

    @classmethod
    def from_payload(cls, method: str, error: Any) -> "CDPProtocolError":
        """Build from the ``error`` member of a CDP response frame."""
        if isinstance(error, dict):
            return cls(
                method,
                str(error.get("message") or f"{method} failed"),
                cdp_code=error.get("code"),
                data=error.get("data"),
            )
        return cls(method, str(error))


class ScriptExecutionError(CurupiraError):
    """Raised when Runtime.evaluate reports exceptionDetails.

    Attributes:
        text: Exception text reported by the page.
        exception_details: Raw CDP exceptionDetails object.
    """

    code = ErrorCode.SCRIPT_ERROR

    def __init__(self, text: str, exception_details: dict | None = None):
        super().__init__(f"Script execution error: {text}")
        self.text = text
        self.exception_details = exception_details or {}

    @classmethod
    def from_details(cls, details: dict) -> "ScriptExecutionError":
        """Extract the most useful message from exceptionDetails."""
        exception = details.get("exception") or {}
        text = exception.get("description") or details.get("text") or "Unknown error"
        # Chrome reports "Uncaught" as text and puts the real message in the description
        if text == "Uncaught" and exception.get("value") is not None:
            text = str(exception["value"])
        return cls(text.splitlines()[0] if text else text, details)


class ToolValidationError(CurupiraError):
    """Raised when tool arguments fail validation."""

    code = ErrorCode.VALIDATION_FAILED


class ElementNotFoundError(CurupiraError):
    """Raised when a selector matches nothing in the page."""

    code = ErrorCode.NOT_FOUND


class InvalidStateError(CurupiraError):
    """Raised when an operation needs a state the target is not in, e.g. paused."""

    code = ErrorCode.INVALID_STATE


class ToolNotFoundError(CurupiraError):
    """Raised when a tool name is not registered."""

    code = ErrorCode.TOOL_NOT_FOUND


class ConfigError(CurupiraError):
    """Raised for invalid configuration values."""

    code = ErrorCode.CONFIG_INVALID
