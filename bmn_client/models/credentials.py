"""
Domain model for the persisted credential record.
"""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialRecord(BaseModel):
    """Access/refresh token pair with independently tracked expiries."""

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def issue(
        cls,
        *,
        access_token: str,
        refresh_token: str,
        access_ttl_seconds: int,
        refresh_ttl_seconds: int,
        now: datetime,
    ) -> "CredentialRecord":
        """Build a record whose expiries are ``now`` plus the given lifetimes."""
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=now + timedelta(seconds=access_ttl_seconds),
            refresh_expires_at=now + timedelta(seconds=refresh_ttl_seconds),
            updated_at=now,
        )

    def is_access_valid(self, now: datetime) -> bool:
        return now < self.access_expires_at

    def is_refresh_valid(self, now: datetime) -> bool:
        return now < self.refresh_expires_at


__all__ = ["CredentialRecord", "utcnow"]
