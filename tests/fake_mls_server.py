"""In-process stand-in for the WordPress MLS REST API, served through ASGI."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Set

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

MOBILE_PREFIX = "/wp-json/mld-mobile/v1"

TEST_USER: Dict[str, Any] = {
    "id": 42,
    "email": "buyer@example.com",
    "name": "Casey Buyer",
    "first_name": "Casey",
    "last_name": "Buyer",
    "user_type": "client",
}

VALID_PASSWORD = "correct-horse"


class ArrivalBarrier:
    """Holds requests until ``parties`` of them have arrived."""

    def __init__(self, parties: int) -> None:
        self.parties = parties
        self.arrived = 0
        self._event = asyncio.Event()

    async def wait(self) -> None:
        self.arrived += 1
        if self.arrived >= self.parties:
            self._event.set()
        await self._event.wait()


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "data": None, "error": {"code": code, "message": message}},
    )


def _ok(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data, "error": None}


class FakeMLSServer:
    """Issues tokens, validates bearer headers and records what it saw."""

    def __init__(self) -> None:
        self.valid_access_tokens: Set[str] = set()
        self.valid_refresh_tokens: Set[str] = set()
        self.refresh_calls: List[str] = []
        self.requests: List[str] = []
        self.issued = 0

        self.expires_in: Optional[int] = 900
        self.refresh_expires_in: Optional[int] = 2_592_000
        self.refresh_status = 200
        self.refresh_body: Optional[str] = None
        self.refresh_gate: Optional[asyncio.Event] = None
        self.reject_all_tokens = False
        self.favorites_barrier: Optional[ArrivalBarrier] = None
        self.favorites_delays: List[float] = []

        self.app = FastAPI()
        self.app.include_router(self._mobile_routes(), prefix=MOBILE_PREFIX)
        self.app.include_router(self._other_namespaces())

    # -------------------------------------------------------------- helpers

    def seed_session(self, refresh_token: str, access_token: Optional[str] = None) -> None:
        self.valid_refresh_tokens.add(refresh_token)
        if access_token:
            self.valid_access_tokens.add(access_token)

    def issue_tokens(self) -> Dict[str, Any]:
        self.issued += 1
        access_token = f"access-{self.issued}"
        refresh_token = f"refresh-{self.issued}"
        self.valid_access_tokens = {access_token}
        self.valid_refresh_tokens = {refresh_token}
        payload: Dict[str, Any] = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "user": TEST_USER,
        }
        if self.expires_in is not None:
            payload["expires_in"] = self.expires_in
        if self.refresh_expires_in is not None:
            payload["refresh_expires_in"] = self.refresh_expires_in
        return payload

    def _authorized(self, request: Request) -> bool:
        header = request.headers.get("authorization", "")
        if not header.startswith("Bearer ") or self.reject_all_tokens:
            return False
        return header[len("Bearer "):] in self.valid_access_tokens

    def _record(self, request: Request) -> None:
        self.requests.append(f"{request.method} {request.url.path}")

    # --------------------------------------------------------------- routes

    def _mobile_routes(self) -> APIRouter:
        router = APIRouter()

        @router.post("/auth/login")
        async def login(request: Request) -> Any:
            self._record(request)
            body = await request.json()
            if body.get("password") != VALID_PASSWORD:
                return _error(200, "invalid_credentials", "Invalid email or password")
            return _ok(self.issue_tokens())

        @router.post("/auth/register")
        async def register(request: Request) -> Any:
            self._record(request)
            body = await request.json()
            if body.get("email") == TEST_USER["email"]:
                return _error(200, "email_exists", "An account with this email already exists")
            return _ok(self.issue_tokens())

        @router.post("/auth/refresh")
        async def refresh(request: Request) -> Any:
            self._record(request)
            body = await request.json()
            self.refresh_calls.append(body.get("refresh_token", ""))
            if self.refresh_gate is not None:
                await self.refresh_gate.wait()
            if self.refresh_status != 200:
                return _error(self.refresh_status, "invalid_token", "Refresh failed")
            if self.refresh_body is not None:
                return PlainTextResponse(self.refresh_body)
            if body.get("refresh_token") not in self.valid_refresh_tokens:
                return _error(401, "invalid_token", "Invalid refresh token")
            return _ok(self.issue_tokens())

        @router.get("/auth/me")
        async def me(request: Request) -> Any:
            self._record(request)
            if not self._authorized(request):
                return _error(401, "token_expired", "Token expired")
            return _ok(TEST_USER)

        @router.post("/auth/logout")
        async def logout(request: Request) -> Any:
            self._record(request)
            if not self._authorized(request):
                return _error(401, "token_expired", "Token expired")
            self.valid_access_tokens.clear()
            self.valid_refresh_tokens.clear()
            return _ok({"message": "Logged out"})

        @router.get("/favorites")
        async def favorites(request: Request) -> Any:
            self._record(request)
            if self.favorites_barrier is not None:
                await self.favorites_barrier.wait()
            if self.favorites_delays:
                await asyncio.sleep(self.favorites_delays.pop(0))
            if not self._authorized(request):
                return _error(401, "token_expired", "Token expired")
            return _ok([{"listing_id": "73012345", "price": 899000}])

        @router.post("/favorites/{listing_id}")
        async def add_favorite(listing_id: str, request: Request) -> Any:
            self._record(request)
            if not self._authorized(request):
                return _error(401, "token_expired", "Token expired")
            if listing_id == "legacy-plugin":
                return PlainTextResponse("OK")
            if listing_id == "sold":
                return _error(200, "listing_unavailable", "This listing is no longer available.")
            return _ok({"listing_id": listing_id, "is_favorite": True})

        @router.api_route("/echo", methods=["GET", "POST", "PUT", "DELETE"])
        async def echo(request: Request) -> Any:
            self._record(request)
            raw_body = await request.body()
            return _ok(
                {
                    "method": request.method,
                    "query": request.url.query,
                    "authorization": request.headers.get("authorization"),
                    "content_type": request.headers.get("content-type"),
                    "body": raw_body.decode("utf-8"),
                }
            )

        @router.get("/status/{status_code}")
        async def status(status_code: int, request: Request) -> Any:
            self._record(request)
            return _error(status_code, "status", f"Forced status {status_code}")

        @router.get("/malformed")
        async def malformed(request: Request) -> Any:
            self._record(request)
            return PlainTextResponse("<html><body>Fatal error in /var/www/plugin.php</body></html>")

        @router.get("/envelope-error")
        async def envelope_error(request: Request) -> Any:
            self._record(request)
            return _error(200, "invalid_credentials", "Invalid email or password")

        @router.get("/no-data")
        async def no_data(request: Request) -> Any:
            self._record(request)
            return {"success": True, "data": None, "error": None}

        @router.get("/empty")
        async def empty(request: Request) -> Any:
            self._record(request)
            return Response(status_code=204)

        return router

    def _other_namespaces(self) -> APIRouter:
        router = APIRouter()

        @router.get("/wp-json/mld/v1/property-analytics/{city}")
        async def analytics(city: str, request: Request) -> Any:
            self._record(request)
            return {"city": city, "median_price": 815000, "tab": request.query_params.get("tab")}

        @router.get("/wp-json/bmn-schools/v1/property/schools")
        async def schools(request: Request) -> Any:
            self._record(request)
            return _ok({"query": request.url.query, "schools": [{"name": "Lincoln Elementary"}]})

        return router


__all__ = ["ArrivalBarrier", "FakeMLSServer", "MOBILE_PREFIX", "TEST_USER", "VALID_PASSWORD"]
