"""
Factory functions wiring settings into stores, clients and services.

Each factory builds a new object from explicit inputs; callers own the result
and pass it on to whatever manages the networking lifecycle.
"""

from typing import Optional

import httpx

from bmn_client.clients import BMNAPIClient, SQLiteStore
from bmn_client.core.config import AppSettings, CredentialSettings, get_settings
from bmn_client.services import AuthSessionService, CredentialStore, TokenCipherService


class ConfigurationError(RuntimeError):
    """Raised when settings are insufficient to build a component."""


def build_sqlite_store(settings: CredentialSettings) -> SQLiteStore:
    """Open the on-device record store."""
    return SQLiteStore(settings.db_path)


def build_token_cipher(settings: CredentialSettings) -> TokenCipherService:
    """Provide symmetric encryption for stored tokens."""
    if not settings.encryption_secret:
        raise ConfigurationError(
            "BMN_CREDENTIALS_ENCRYPTION_SECRET must be set to store credentials."
        )
    return TokenCipherService(secret=settings.encryption_secret)


def build_credential_store(
    settings: CredentialSettings, *, store: Optional[SQLiteStore] = None
) -> CredentialStore:
    """Build the encrypted credential store for the configured namespace."""
    return CredentialStore(
        store or build_sqlite_store(settings),
        build_token_cipher(settings),
        namespace=settings.namespace,
        legacy_refresh_ttl_seconds=settings.legacy_refresh_ttl_seconds,
    )


def build_api_client(
    settings: Optional[AppSettings] = None,
    *,
    credential_store: Optional[CredentialStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> BMNAPIClient:
    """Build an API client; a credential store is created when not supplied."""
    settings = settings or get_settings()
    return BMNAPIClient(
        settings.api,
        credential_store or build_credential_store(settings.credentials),
        http_client=http_client,
    )


def build_auth_session(api_client: BMNAPIClient) -> AuthSessionService:
    """Build the sign-in service sharing the client's credential store."""
    return AuthSessionService(api_client, api_client.credential_store)


__all__ = [
    "ConfigurationError",
    "build_api_client",
    "build_auth_session",
    "build_credential_store",
    "build_sqlite_store",
    "build_token_cipher",
]
