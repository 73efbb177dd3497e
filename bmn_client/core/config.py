"""
Client configuration models and helpers.

Centralizes settings management so the API client, the credential store and
the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class APISettings(BaseSettings):
    """Configuration for reaching the MLS REST API."""

    model_config = SettingsConfigDict(
        env_prefix="BMN_API_", env_file=".env", extra="ignore"
    )

    base_url: str = Field(
        "https://bmnboston.com/wp-json",
        description="WordPress REST root; BASE namespace endpoints are appended to it.",
    )
    mobile_namespace: str = Field("/mld-mobile/v1")
    mld_namespace: str = Field("/mld/v1")
    request_timeout_seconds: float = Field(30.0)
    max_token_refresh_retries: int = Field(2, ge=0)
    strict_write_decoding: bool = Field(
        False,
        description=(
            "Fail write requests whose 2xx body does not decode as an envelope."
        ),
    )
    user_agent: str = Field("bmn-client/0.1.0")

    @field_validator("base_url", "mobile_namespace", "mld_namespace")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def full_api_url(self) -> str:
        """Root for the default ``/mld-mobile/v1`` namespace."""
        return f"{self.base_url}{self.mobile_namespace}"

    @property
    def mld_api_url(self) -> str:
        """Root for the ``/mld/v1`` namespace."""
        return f"{self.base_url}{self.mld_namespace}"


class CredentialSettings(BaseSettings):
    """Settings for the on-device credential store."""

    model_config = SettingsConfigDict(
        env_prefix="BMN_CREDENTIALS_", env_file=".env", extra="ignore"
    )

    db_path: str = Field("data/credentials.db")
    namespace: str = Field(
        "com.bmnboston.app",
        description="Identifier used to key the stored credential record.",
    )
    encryption_secret: Optional[str] = Field(
        None,
        description="Secret used to derive the symmetric key for stored tokens.",
    )
    legacy_refresh_ttl_seconds: int = Field(
        2_592_000,
        ge=0,
        description=(
            "Lifetime assumed for migrated refresh tokens that carry no expiry."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="BMN_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field("production")
    log_level: str = Field("INFO")
    api: APISettings = Field(default_factory=APISettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "APISettings",
    "AppSettings",
    "CredentialSettings",
    "get_settings",
]
