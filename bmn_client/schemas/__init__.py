"""Expose shared schema definitions."""

from .auth import (
    DEFAULT_ACCESS_TOKEN_TTL,
    DEFAULT_REFRESH_TOKEN_TTL,
    AuthTokenPayload,
    UserPayload,
)
from .envelope import APIErrorPayload, APIResponse, WriteAcknowledgement

__all__ = [
    "APIErrorPayload",
    "APIResponse",
    "AuthTokenPayload",
    "DEFAULT_ACCESS_TOKEN_TTL",
    "DEFAULT_REFRESH_TOKEN_TTL",
    "UserPayload",
    "WriteAcknowledgement",
]
