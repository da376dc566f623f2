"""Application-level exception types for doplarr."""

from __future__ import annotations

TIMEOUT_ERROR_MESSAGE = "Request timed out. The backend server may be slow or unavailable."
CONNECTION_ERROR_MESSAGE = "Could not connect to the backend server. Please try again later."
AUTH_ERROR_MESSAGE = "Backend authentication error. Please contact your administrator."
SERVER_ERROR_MESSAGE = "The backend server encountered an error. Please try again later."
GENERIC_ERROR_MESSAGE = (
    "An error occurred while processing your request. Please try again or contact your administrator."
)


class DoplarrError(Exception):
    """Base exception for doplarr."""


class ConfigurationError(DoplarrError):
    """Raised when the configuration file is missing, malformed or inconsistent."""


class BackendError(DoplarrError):
    """Base exception for media backend failures."""


class BackendUnavailable(BackendError):
    """Raised when the upstream service cannot be reached."""

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class BackendProtocolError(BackendError):
    """Raised when an upstream response cannot be interpreted."""


class BackendRequestFailed(BackendError):
    """Raised when the upstream service answers with an error status."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class InteractionTimeout(DoplarrError):
    """Raised when the user does not answer within the interaction timeout."""


class ChannelClosed(DoplarrError):
    """Raised when a session channel is closed while its orchestrator still waits on it."""


class ChannelFull(DoplarrError):
    """Raised when a continuation is pushed into a session whose slot is occupied."""


class InvalidContinuation(DoplarrError):
    """Raised when a continuation does not address a live option, field or session."""


def user_facing_error(exc: BaseException) -> str:
    """Map an exception to one of the sanitized messages shown in chat."""
    if isinstance(exc, BackendUnavailable):
        return TIMEOUT_ERROR_MESSAGE if exc.timed_out else CONNECTION_ERROR_MESSAGE
    if isinstance(exc, BackendRequestFailed):
        if exc.status_code in (401, 403):
            return AUTH_ERROR_MESSAGE
        if exc.status_code >= 500:
            return SERVER_ERROR_MESSAGE
        return GENERIC_ERROR_MESSAGE

    text = str(exc).lower()
    if "timeout" in text or "timed out" in text:
        return TIMEOUT_ERROR_MESSAGE
    if "connect" in text:
        return CONNECTION_ERROR_MESSAGE
    if any(token in text for token in ("401", "403", "unauthorized", "forbidden")):
        return AUTH_ERROR_MESSAGE
    if any(token in text for token in ("500", "502", "503")):
        return SERVER_ERROR_MESSAGE
    return GENERIC_ERROR_MESSAGE
