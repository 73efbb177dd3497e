"""Pytest configuration shared across the suite."""

from __future__ import annotations

from typing import Any, Callable, Optional

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from bmn_client.clients.api_client import BMNAPIClient
from bmn_client.clients.sqlite_store import SQLiteStore
from bmn_client.core.config import APISettings
from bmn_client.services.credential_store import CredentialStore
from bmn_client.services.token_cipher import TokenCipherService
from fake_mls_server import FakeMLSServer


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def sqlite_store(tmp_path) -> SQLiteStore:
    return SQLiteStore(str(tmp_path / "credentials.db"))


@pytest.fixture
def token_cipher() -> TokenCipherService:
    return TokenCipherService(secret="test-secret")


@pytest.fixture
def credential_store(sqlite_store: SQLiteStore, token_cipher: TokenCipherService) -> CredentialStore:
    return CredentialStore(sqlite_store, token_cipher, namespace="com.bmnboston.tests")


@pytest.fixture
def api_settings() -> APISettings:
    return APISettings(base_url="http://testserver/wp-json")


@pytest.fixture
def fake_server() -> FakeMLSServer:
    return FakeMLSServer()


@pytest.fixture
def make_client(
    api_settings: APISettings,
    credential_store: CredentialStore,
    fake_server: FakeMLSServer,
) -> Callable[..., BMNAPIClient]:
    """Build API clients wired to the in-process fake server."""

    def _make(
        transport: Optional[httpx.AsyncBaseTransport] = None, **overrides: Any
    ) -> BMNAPIClient:
        settings = api_settings.model_copy(update=overrides) if overrides else api_settings
        http_client = httpx.AsyncClient(
            transport=transport or httpx.ASGITransport(app=fake_server.app)
        )
        return BMNAPIClient(settings, credential_store, http_client=http_client)

    return _make
