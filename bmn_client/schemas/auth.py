"""Schemas related to authentication flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ACCESS_TOKEN_TTL = 900
DEFAULT_REFRESH_TOKEN_TTL = 2_592_000


class UserPayload(BaseModel):
    """User profile returned alongside issued tokens."""

    model_config = ConfigDict(extra="allow")

    id: int
    email: str
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    user_type: Optional[str] = None

    @property
    def is_agent(self) -> bool:
        return self.user_type == "agent"

    @property
    def is_client(self) -> bool:
        return self.user_type in (None, "client")


class AuthTokenPayload(BaseModel):
    """Data returned by ``/auth/login``, ``/auth/register`` and ``/auth/refresh``."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    user: UserPayload
    expires_in: Optional[int] = Field(
        None, description="Access token lifetime in seconds."
    )
    refresh_expires_in: Optional[int] = Field(
        None, description="Refresh token lifetime in seconds."
    )

    @property
    def access_ttl_seconds(self) -> int:
        if self.expires_in is None:
            return DEFAULT_ACCESS_TOKEN_TTL
        return self.expires_in

    @property
    def refresh_ttl_seconds(self) -> int:
        if self.refresh_expires_in is None:
            return DEFAULT_REFRESH_TOKEN_TTL
        return self.refresh_expires_in


__all__ = [
    "AuthTokenPayload",
    "DEFAULT_ACCESS_TOKEN_TTL",
    "DEFAULT_REFRESH_TOKEN_TTL",
    "UserPayload",
]
