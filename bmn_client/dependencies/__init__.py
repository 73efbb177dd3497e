"""Expose factory helpers for wiring the client together."""

from .clients import (
    ConfigurationError,
    build_api_client,
    build_auth_session,
    build_credential_store,
    build_sqlite_store,
    build_token_cipher,
)

__all__ = [
    "ConfigurationError",
    "build_api_client",
    "build_auth_session",
    "build_credential_store",
    "build_sqlite_store",
    "build_token_cipher",
]
