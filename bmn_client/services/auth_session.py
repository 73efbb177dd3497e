"""
Sign-in lifecycle built on top of the API client and the credential store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from bmn_client.clients import endpoints
from bmn_client.core.errors import APIError, UnauthorizedError
from bmn_client.schemas.auth import AuthTokenPayload, UserPayload
from bmn_client.services.credential_store import CredentialStore

if TYPE_CHECKING:
    from bmn_client.clients.api_client import BMNAPIClient

logger = logging.getLogger(__name__)


class AuthSessionService:
    """Logs users in and out and restores a persisted session on launch."""

    def __init__(self, api_client: BMNAPIClient, credential_store: CredentialStore) -> None:
        self._api = api_client
        self._credentials = credential_store
        self.current_user: Optional[UserPayload] = None
        api_client.add_user_refreshed_listener(self.handle_user_refreshed)

    def handle_user_refreshed(self, user: UserPayload) -> None:
        """Listener for the API client so a refresh keeps ``current_user`` in sync."""
        self.current_user = user

    async def login(self, email: str, password: str) -> UserPayload:
        payload: AuthTokenPayload = await self._api.request(
            endpoints.login(email, password), AuthTokenPayload
        )
        return self._start_session(payload)

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        *,
        phone: Optional[str] = None,
        referral_code: Optional[str] = None,
    ) -> UserPayload:
        payload: AuthTokenPayload = await self._api.request(
            endpoints.register(
                email,
                password,
                first_name,
                last_name,
                phone=phone,
                referral_code=referral_code,
            ),
            AuthTokenPayload,
        )
        return self._start_session(payload)

    async def restore_session(self) -> Optional[UserPayload]:
        """
        Resume a stored session, refreshing the access token when it has expired.

        Returns None when there is nothing to resume or the server no longer
        accepts the stored tokens.
        """
        if not self._credentials.is_authenticated():
            return None
        try:
            if self._credentials.get_access_token() is None:
                await self._api.refresh_tokens()
            user: UserPayload = await self._api.request(endpoints.me(), UserPayload)
        except UnauthorizedError:
            logger.info("Stored session is no longer valid")
            self._end_session()
            return None
        self.current_user = user
        return user

    async def logout(self) -> None:
        """Tell the server to revoke the session, then forget it locally regardless."""
        try:
            if self._credentials.get_access_token() is not None:
                await self._api.request_without_response(endpoints.logout())
        except APIError as exc:
            logger.warning("Server logout failed: %s", exc)
        finally:
            self._end_session()

    async def delete_account(self) -> None:
        await self._api.request_without_response(endpoints.delete_account())
        self._end_session()

    def _start_session(self, payload: AuthTokenPayload) -> UserPayload:
        self._credentials.save(
            payload.access_token,
            payload.refresh_token,
            payload.access_ttl_seconds,
            payload.refresh_ttl_seconds,
        )
        self.current_user = payload.user
        logger.info("Signed in", extra={"user_id": payload.user.id})
        return payload.user

    def _end_session(self) -> None:
        self._credentials.clear()
        self.current_user = None


__all__ = ["AuthSessionService"]
