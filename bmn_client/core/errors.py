"""
Error taxonomy for the MLS API client.

Every failure surfaced by the client is an :class:`APIError` subclass. Each
carries a short ``user_message`` that is safe to show in a UI; technical detail
(status codes, raw payloads, server stack traces) stays in ``str(exc)`` and in
the logs.
"""

from __future__ import annotations

import re
from typing import Optional

GENERIC_MESSAGE = "Something went wrong. Please try again."

# Server messages longer than this are assumed to be diagnostics.
MAX_DISPLAYABLE_MESSAGE_LENGTH = 200

_TECHNICAL_MARKERS = re.compile(
    r"(traceback|stack trace|exception|sqlstate|fatal error|warning:|"
    r"\.php\b|\.py\b|#\d+\s|\bline \d+\b|\bat [\w$.]+\(|[{}<>])",
    re.IGNORECASE,
)

_SERVER_CODE_MESSAGES = {
    "invalid_credentials": "Incorrect email or password.",
    "token_expired": "Your session has expired. Please sign in again.",
    "invalid_token": "Your session has expired. Please sign in again.",
    "no_token": "Please sign in to continue.",
    "unauthorized": "Please sign in to continue.",
    "user_not_found": "We couldn't find an account with that email.",
    "email_exists": "An account with this email already exists.",
    "missing_fields": "Please fill in all required fields.",
    "rate_limited": "Too many requests. Please wait a moment and try again.",
    "not_found": "The requested item could not be found.",
    "forbidden": "You don't have permission to do that.",
    "server_error": "The server encountered an error. Please try again later.",
}


def is_displayable_message(message: Optional[str]) -> bool:
    """Return True when a server-provided message reads like prose for people."""
    if not message:
        return False
    text = message.strip()
    if not text or len(text) > MAX_DISPLAYABLE_MESSAGE_LENGTH:
        return False
    if "\n" in text:
        return False
    return _TECHNICAL_MARKERS.search(text) is None


class APIError(Exception):
    """Base class for all client errors."""

    default_user_message = GENERIC_MESSAGE

    @property
    def user_message(self) -> str:
        return self.default_user_message


class InvalidRequestError(APIError):
    """The request could not be built (bad URL, unencodable body, bad config)."""

    default_user_message = "The request could not be completed."


class UnauthorizedError(APIError):
    """No usable credentials, or the server kept rejecting them."""

    default_user_message = "Please sign in to continue."

    def __init__(self, message: str = "Authentication required.") -> None:
        super().__init__(message)


class ForbiddenError(APIError):
    default_user_message = "You don't have permission to do that."

    def __init__(self, message: str = "Forbidden.") -> None:
        super().__init__(message)


class NotFoundError(APIError):
    default_user_message = "The requested item could not be found."

    def __init__(self, message: str = "Not found.") -> None:
        super().__init__(message)


class RateLimitedError(APIError):
    default_user_message = "Too many requests. Please wait a moment and try again."

    def __init__(self, message: str = "Rate limited.") -> None:
        super().__init__(message)


class ServerError(APIError):
    """Structured failure reported by the server (envelope error or 5xx)."""

    def __init__(self, code: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.status = status

    @property
    def user_message(self) -> str:
        tailored = _SERVER_CODE_MESSAGES.get(self.code)
        if tailored:
            return tailored
        if is_displayable_message(self.message):
            return self.message.strip()
        return GENERIC_MESSAGE


class HTTPStatusError(APIError):
    """Non-2xx status without a dedicated error kind."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Unexpected HTTP status {status_code}.")
        self.status_code = status_code


class DecodeError(APIError):
    """The transport succeeded but the payload did not have the expected shape."""

    default_user_message = "We received an unexpected response. Please try again."

    def __init__(self, message: str, *, raw_preview: str = "") -> None:
        super().__init__(message)
        self.raw_preview = raw_preview


class NetworkError(APIError):
    """Transport-level failure: timeout, DNS, refused connection and similar."""

    default_user_message = (
        "Unable to connect. Please check your internet connection and try again."
    )


def user_message_for(error: BaseException) -> str:
    """Return the display string for any exception raised by the client."""
    if isinstance(error, APIError):
        return error.user_message
    return GENERIC_MESSAGE


__all__ = [
    "APIError",
    "DecodeError",
    "ForbiddenError",
    "GENERIC_MESSAGE",
    "HTTPStatusError",
    "InvalidRequestError",
    "NetworkError",
    "NotFoundError",
    "RateLimitedError",
    "ServerError",
    "UnauthorizedError",
    "is_displayable_message",
    "user_message_for",
]
