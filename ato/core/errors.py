from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    CLI_ERROR = "CLI001"
    NETWORK_ERROR = "NET001"
    CONNECTION_REFUSED = "NET002"
    API_ERROR = "API001"
    OPERATION_FAILED = "OP001"
    UNEXPECTED_STATE = "OP002"
    POLL_TIMEOUT = "OP003"


NO_DETAILS_MESSAGE = "No additional details provided by the server."
CONNECTION_REFUSED_MESSAGE = "Connection refused. Is the backend server running?"
GENERIC_NETWORK_MESSAGE = "An unexpected network error occurred."


class ATOError(Exception):
    """Base exception for every error surfaced by the client."""

    code: ErrorCode = ErrorCode.CLI_ERROR

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": str(self)}


class CLIError(ATOError):
    """Raised for invalid invocations detected before any request is sent."""


class PollError(ATOError):
    """Root of the errors that end a request or a status poll."""


class NetworkError(PollError):
    def __init__(self, message: str, *, original: BaseException | None = None, connection_refused: bool = False) -> None:
        super().__init__(f"Network Error: {message}")
        self.message = message
        self.original = original
        self.connection_refused = connection_refused
        self.code = ErrorCode.CONNECTION_REFUSED if connection_refused else ErrorCode.NETWORK_ERROR


class APIError(PollError):
    code = ErrorCode.API_ERROR

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"API Error (Status {status_code}): {message}")
        self.status_code = status_code
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["status_code"] = self.status_code
        return payload


class OperationFailed(PollError):
    """The server reported a terminal failure for the polled operation.

    The last fetched snapshot travels with the error so callers can report
    the failure reason alongside whatever partial plan data exists.
    """

    code = ErrorCode.OPERATION_FAILED

    def __init__(self, phase: str, reason: str | None, snapshot: Any = None) -> None:
        super().__init__(f"test plan {phase} failed on the server")
        self.phase = phase
        self.reason = reason
        self.snapshot = snapshot

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["reason"] = self.reason
        return payload


class UnexpectedState(PollError):
    code = ErrorCode.UNEXPECTED_STATE

    def __init__(self, phase: str, tag: str, snapshot: Any = None) -> None:
        super().__init__(f"unexpected plan status '{tag}' during {phase}")
        self.phase = phase
        self.tag = tag
        self.snapshot = snapshot


class PollTimeout(PollError):
    """Only raised when an explicit attempt limit is configured."""

    code = ErrorCode.POLL_TIMEOUT

    def __init__(self, phase: str, attempts: int, snapshot: Any = None) -> None:
        last_status = getattr(snapshot, "status", None)
        super().__init__(
            f"gave up waiting for {phase} after {attempts} status checks (last status: {last_status or 'unknown'})"
        )
        self.phase = phase
        self.attempts = attempts
        self.snapshot = snapshot


def format_error(exc: BaseException) -> str:
    """Render an exception as the single line shown to the user."""

    if isinstance(exc, OperationFailed):
        if exc.reason:
            return f"{exc}. Reason: {exc.reason}"
        return str(exc)
    if isinstance(exc, ATOError):
        return str(exc)
    return f"An unexpected error occurred: {exc}"


__all__ = [
    "APIError",
    "ATOError",
    "CLIError",
    "CONNECTION_REFUSED_MESSAGE",
    "ErrorCode",
    "GENERIC_NETWORK_MESSAGE",
    "NO_DETAILS_MESSAGE",
    "NetworkError",
    "OperationFailed",
    "PollError",
    "PollTimeout",
    "UnexpectedState",
    "format_error",
]
