"""
Authenticated client for the MLS REST API.

Builds requests from :class:`APIEndpoint` descriptors, maps HTTP statuses onto
the error taxonomy, unwraps the ``{success, data, error}`` envelope and renews
expired sessions with a single-flight refresh.

Refresh state (``_is_refreshing`` and the waiter list) is owned by the event
loop the client runs on and is only mutated between awaits, so no two
coroutines can interleave writes to it.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from bmn_client.clients import endpoints
from bmn_client.clients.endpoints import APIEndpoint, APINamespace, HTTPMethod
from bmn_client.core.config import APISettings
from bmn_client.core.errors import (
    DecodeError,
    ForbiddenError,
    HTTPStatusError,
    InvalidRequestError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    UnauthorizedError,
)
from bmn_client.schemas.auth import AuthTokenPayload, UserPayload
from bmn_client.schemas.envelope import APIResponse, WriteAcknowledgement
from bmn_client.services.credential_store import CredentialStore
from bmn_client.utils.http import encode_query_string

logger = logging.getLogger(__name__)

RAW_PREVIEW_LIMIT = 500


@lru_cache(maxsize=None)
def _envelope_adapter(response_model: Any) -> TypeAdapter:
    return TypeAdapter(APIResponse[response_model])


@lru_cache(maxsize=None)
def _raw_adapter(response_model: Any) -> TypeAdapter:
    return TypeAdapter(response_model)


@dataclass
class RefreshWaiter:
    """A caller suspended until the in-flight refresh settles."""

    future: "asyncio.Future[None]"
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class BMNAPIClient:
    """Async client that attaches bearer tokens and recovers from expired sessions."""

    def __init__(
        self,
        settings: APISettings,
        credential_store: CredentialStore,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        on_user_refreshed: Optional[Callable[[UserPayload], None]] = None,
    ) -> None:
        self._settings = settings
        self._credentials = credential_store
        # The client owns ``http_client`` from here on and closes it in ``aclose``.
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout_seconds)
        )
        self._user_listeners: List[Callable[[UserPayload], None]] = []
        if on_user_refreshed is not None:
            self._user_listeners.append(on_user_refreshed)
        self._max_refresh_retries = settings.max_token_refresh_retries

        self._is_refreshing = False
        self._waiters: List[RefreshWaiter] = []
        self._refresh_task: Optional["asyncio.Task[None]"] = None

    async def __aenter__(self) -> "BMNAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def add_user_refreshed_listener(
        self, listener: Callable[[UserPayload], None]
    ) -> None:
        """Register a callback receiving the user returned by each refresh."""
        self._user_listeners.append(listener)

    @property
    def credential_store(self) -> CredentialStore:
        return self._credentials

    @property
    def is_refreshing(self) -> bool:
        return self._is_refreshing

    @property
    def pending_refresh_waiters(self) -> int:
        return len(self._waiters)

    # ------------------------------------------------------------ public calls

    async def request(self, endpoint: APIEndpoint, response_model: Any = Any) -> Any:
        """Perform an enveloped request and return its validated ``data``."""
        response = await self._send(endpoint)
        try:
            envelope = _envelope_adapter(response_model).validate_json(response.content)
        except ValidationError as exc:
            raise self._decode_failure(endpoint, response, exc) from exc

        if envelope.success:
            if envelope.data is None:
                raise DecodeError(
                    f"{endpoint.path} reported success without data.",
                    raw_preview=response.text[:RAW_PREVIEW_LIMIT],
                )
            return envelope.data
        if envelope.error is not None:
            raise ServerError(
                envelope.error.code, envelope.error.message, envelope.error.status
            )
        raise ServerError(
            "unknown", "Request failed without an error description.", response.status_code
        )

    async def request_raw(self, endpoint: APIEndpoint, response_model: Any = Any) -> Any:
        """Perform a request whose body is the payload itself, without an envelope."""
        response = await self._send(endpoint)
        try:
            return _raw_adapter(response_model).validate_json(response.content)
        except ValidationError as exc:
            raise self._decode_failure(endpoint, response, exc) from exc

    async def request_without_response(self, endpoint: APIEndpoint) -> None:
        """Perform a write whose response data is ignored."""
        response = await self._send(endpoint)
        try:
            ack = WriteAcknowledgement.model_validate_json(response.content)
        except ValidationError as exc:
            if self._settings.strict_write_decoding:
                raise self._decode_failure(endpoint, response, exc) from exc
            logger.warning(
                "Response decoding failed for %s; accepting HTTP %s as success",
                endpoint.path,
                response.status_code,
            )
            logger.debug("Raw response: %s", response.text[:RAW_PREVIEW_LIMIT])
            return

        if not ack.success and ack.error is not None:
            logger.error("API returned error: [%s] %s", ack.error.code, ack.error.message)
            raise ServerError(ack.error.code, ack.error.message, ack.error.status)

    async def refresh_tokens(self) -> None:
        """
        Renew the token pair, sharing one refresh among all concurrent callers.

        Cancelling the caller never cancels the refresh itself; other waiters
        still receive its outcome.
        """
        if self._is_refreshing:
            await self._wait_for_refresh()
            return

        self._is_refreshing = True
        task = asyncio.get_running_loop().create_task(self._run_refresh())
        task.add_done_callback(_retrieve_task_result)
        self._refresh_task = task
        await asyncio.shield(task)

    # --------------------------------------------------------- request pipeline

    async def _send(self, endpoint: APIEndpoint) -> httpx.Response:
        retry_count = 0
        while True:
            if (
                endpoint.requires_auth
                and retry_count < self._max_refresh_retries
                and self._credentials.get_access_token() is None
                and self._credentials.has_refresh_token()
            ):
                logger.debug("Access token expired before %s; refreshing", endpoint.path)
                await self.refresh_tokens()
                retry_count += 1
                continue

            request = self._build_request(endpoint)
            sent_authorization = request.headers.get("Authorization")
            logger.debug("[%s] %s", endpoint.method.value, endpoint.path)
            response = await self._transmit(request, endpoint)
            logger.debug("Response status: %s", response.status_code)

            if response.status_code == 401:
                current_token = self._credentials.get_access_token()
                if (
                    retry_count < self._max_refresh_retries
                    and current_token is not None
                    and f"Bearer {current_token}" != sent_authorization
                ):
                    # Another caller refreshed while this request was in flight.
                    logger.debug("Credentials changed during %s; retrying", endpoint.path)
                    retry_count += 1
                    continue
                if (
                    retry_count < self._max_refresh_retries
                    and self._credentials.has_refresh_token()
                ):
                    logger.debug(
                        "Attempting token refresh (attempt %s/%s)",
                        retry_count + 1,
                        self._max_refresh_retries,
                    )
                    await self.refresh_tokens()
                    retry_count += 1
                    continue
                if retry_count >= self._max_refresh_retries:
                    logger.warning("Token refresh retry limit exceeded, clearing tokens")
                    self._credentials.clear()
                raise UnauthorizedError(f"{endpoint.path} rejected the credentials.")

            _raise_for_status(response)
            return response

    def _build_request(self, endpoint: APIEndpoint) -> httpx.Request:
        try:
            url = httpx.URL(self._base_url_for(endpoint.namespace) + endpoint.path)
        except httpx.InvalidURL as exc:
            raise InvalidRequestError(f"Invalid URL for {endpoint.path}: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidRequestError(f"Invalid URL for {endpoint.path}: {url}")

        if endpoint.method is HTTPMethod.GET and endpoint.parameters:
            extra_query = encode_query_string(endpoint.parameters)
            if extra_query:
                existing = url.query.decode("ascii")
                query = f"{existing}&{extra_query}" if existing else extra_query
                url = url.copy_with(query=query.encode("ascii"))

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self._settings.user_agent,
        }
        # Optional-auth endpoints still send the token when one is available.
        token = self._credentials.get_access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif endpoint.requires_auth:
            raise UnauthorizedError(f"{endpoint.path} requires a signed-in user.")

        content: Optional[bytes] = None
        if endpoint.method is not HTTPMethod.GET and endpoint.parameters is not None:
            try:
                content = json.dumps(dict(endpoint.parameters)).encode("utf-8")
            except (TypeError, ValueError) as exc:
                raise InvalidRequestError(
                    f"Parameters for {endpoint.path} are not JSON serializable."
                ) from exc

        return self._http.build_request(
            endpoint.method.value, url, headers=headers, content=content
        )

    def _base_url_for(self, namespace: APINamespace) -> str:
        if namespace is APINamespace.BASE:
            return self._settings.base_url
        if namespace is APINamespace.MLD_V1:
            return self._settings.mld_api_url
        return self._settings.full_api_url

    async def _transmit(self, request: httpx.Request, endpoint: APIEndpoint) -> httpx.Response:
        try:
            return await self._http.send(request)
        except httpx.RequestError as exc:
            logger.warning(
                "Network request failed for %s: %s",
                endpoint.path,
                exc.__class__.__name__,
            )
            raise NetworkError(
                f"{endpoint.method.value} {endpoint.path} failed: {exc!r}"
            ) from exc

    def _decode_failure(
        self, endpoint: APIEndpoint, response: httpx.Response, exc: ValidationError
    ) -> DecodeError:
        preview = response.text[:RAW_PREVIEW_LIMIT]
        logger.error("Raw API response: %s", preview)
        for error in exc.errors()[:5]:
            logger.error(
                "Decoding error at %s: %s",
                ".".join(str(part) for part in error.get("loc", ())) or "<root>",
                error.get("msg"),
            )
        return DecodeError(
            f"Response from {endpoint.path} did not match the expected shape "
            f"({exc.error_count()} validation errors).",
            raw_preview=preview,
        )

    # --------------------------------------------------------- refresh protocol

    async def _wait_for_refresh(self) -> None:
        waiter = RefreshWaiter(future=asyncio.get_running_loop().create_future())
        self._waiters.append(waiter)
        logger.debug(
            "Refresh already in flight; waiting", extra={"waiter_id": str(waiter.id)}
        )
        try:
            await waiter.future
        except asyncio.CancelledError:
            self._discard_waiter(waiter.id)
            raise

    def _discard_waiter(self, waiter_id: uuid.UUID) -> None:
        for index, waiter in enumerate(self._waiters):
            if waiter.id == waiter_id:
                del self._waiters[index]
                if not waiter.future.done():
                    waiter.future.cancel()
                logger.debug(
                    "Removed cancelled refresh waiter", extra={"waiter_id": str(waiter_id)}
                )
                return

    async def _run_refresh(self) -> None:
        error: Optional[BaseException] = None
        try:
            await self._perform_refresh()
        except asyncio.CancelledError:
            error = NetworkError("Token refresh was cancelled.")
            raise
        except Exception as exc:
            error = exc
            raise
        finally:
            self._settle_waiters(error)

    def _settle_waiters(self, error: Optional[BaseException]) -> None:
        waiters = self._waiters
        self._waiters = []
        self._is_refreshing = False
        self._refresh_task = None

        for waiter in waiters:
            if waiter.future.done():
                continue
            if error is None:
                waiter.future.set_result(None)
            else:
                waiter.future.set_exception(_error_for_waiter(error))

    async def _perform_refresh(self) -> None:
        refresh_token = self._credentials.get_refresh_token()
        if refresh_token is None:
            logger.info("No usable refresh token; session cannot be renewed")
            raise UnauthorizedError("No refresh token available.")

        endpoint = endpoints.refresh_token(refresh_token)
        logger.info("Starting token refresh")
        response = await self._transmit(self._build_request(endpoint), endpoint)

        if response.status_code != 200:
            logger.warning(
                "Token refresh rejected; clearing credentials",
                extra={"status_code": response.status_code},
            )
            self._credentials.clear()
            raise UnauthorizedError(
                f"Token refresh was rejected with HTTP {response.status_code}."
            )

        try:
            envelope = _envelope_adapter(AuthTokenPayload).validate_json(response.content)
        except ValidationError as exc:
            # The body may carry tokens, so no raw preview here.
            logger.error(
                "Token refresh response could not be decoded; clearing credentials",
                extra={"error_count": exc.error_count()},
            )
            self._credentials.clear()
            raise UnauthorizedError("Token refresh response was malformed.") from exc

        payload = envelope.data
        if not envelope.success or payload is None:
            logger.warning("Token refresh returned no tokens; clearing credentials")
            self._credentials.clear()
            raise UnauthorizedError("Token refresh returned no tokens.")

        self._credentials.save(
            payload.access_token,
            payload.refresh_token,
            payload.access_ttl_seconds,
            payload.refresh_ttl_seconds,
        )
        logger.info("Token refreshed", extra={"user_id": payload.user.id})

        for listener in self._user_listeners:
            try:
                listener(payload.user)
            except Exception:
                logger.exception("User refresh listener failed")


def _raise_for_status(response: httpx.Response) -> None:
    status_code = response.status_code
    if 200 <= status_code < 300:
        return
    if status_code == 403:
        raise ForbiddenError()
    if status_code == 404:
        raise NotFoundError()
    if status_code == 429:
        raise RateLimitedError()
    if 500 <= status_code < 600:
        raise ServerError("server_error", "Internal server error", status_code)
    raise HTTPStatusError(status_code)


def _error_for_waiter(error: BaseException) -> BaseException:
    """Copy ``error`` per waiter so tracebacks do not pile up on one instance."""
    try:
        fresh = copy.copy(error)
    except TypeError:
        return error
    fresh.__cause__ = error
    return fresh


def _retrieve_task_result(task: "asyncio.Task[None]") -> None:
    # The outcome reaches callers through shield/waiters; mark it as retrieved.
    if not task.cancelled():
        task.exception()


__all__ = ["BMNAPIClient", "RAW_PREVIEW_LIMIT", "RefreshWaiter"]
