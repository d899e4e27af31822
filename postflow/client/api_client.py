"""
Name: Auth API Client (asyncio)

Responsibilities:
  - Login / password bootstrap / logout / profile calls against /auth
  - Attach the bearer token to protected requests
  - Transparent refresh-and-retry (once) on TOKEN_EXPIRED
  - Single-flight refresh: concurrent callers share one in-flight rotation
  - Adopt X-New-Access-Token headers into the session
  - Rehydrate a persisted session on startup

Collaborators:
  - httpx.AsyncClient: transport
  - session.py: ClientSession + SessionStore
  - errors.py: ApiError / SessionExpiredError

Constraints:
  - Every 401 (after the single TOKEN_EXPIRED retry) and a rejected refresh
    end the local session; any other 403 leaves it intact
  - Logout always clears local state, even when the network call fails
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from ..crosscutting.logger import logger
from .errors import ApiError, SessionExpiredError
from .session import ClientSession, MemorySessionStore, SessionStore

NEW_ACCESS_TOKEN_HEADER = "X-New-Access-Token"
PASSWORD_RESET_REQUIRED = "PASSWORD_RESET_REQUIRED"

TOKEN_EXPIRED = "TOKEN_EXPIRED"

SessionExpiredCallback = Callable[[str], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class PasswordSetupRequired:
    """R: Login outcome for users that must call create_password first."""

    user_id: str
    user: dict[str, Any]


class AuthApiClient:
    """
    R: Session-aware client for the Postflow API.

    Args:
        base_url: API root (ignored when http_client is given)
        store: Session persistence (default: memory)
        http_client: Pre-built httpx.AsyncClient (tests use ASGITransport)
        on_session_expired: Called with the reason when the session ends
        clock: Wall clock in epoch seconds
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        store: Optional[SessionStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        on_session_expired: Optional[SessionExpiredCallback] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store or MemorySessionStore()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._on_session_expired = on_session_expired
        self._clock = clock
        self._session: Optional[ClientSession] = None
        self._refresh_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "AuthApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._cancel_refresh()
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------
    @property
    def session(self) -> Optional[ClientSession]:
        return self._session

    @property
    def user(self) -> Optional[dict[str, Any]]:
        return self._session.user if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def seconds_until_expiry(self) -> Optional[float]:
        if self._session is None:
            return None
        return self._session.seconds_until_expiry(self._clock())

    def _set_session(self, session: ClientSession) -> None:
        self._session = session
        self._store.save(session)

    def _clear_local(self) -> None:
        self._session = None
        self._store.clear()

    def _cancel_refresh(self) -> None:
        task = self._refresh_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._refresh_task = None

    async def _expire_session(self, reason: str) -> None:
        logger.warning("Session ended by server", extra={"reason": reason})
        self._clear_local()
        if self._on_session_expired is not None:
            result = self._on_session_expired(reason)
            if inspect.isawaitable(result):
                await result

    def _session_from_body(self, body: dict[str, Any]) -> ClientSession:
        return ClientSession.from_tokens(
            body["accessToken"], body["refreshToken"], body.get("user")
        )

    # ------------------------------------------------------------------
    # Auth endpoints
    # ------------------------------------------------------------------
    async def login(
        self, email: str, password: str
    ) -> Union[ClientSession, PasswordSetupRequired]:
        response = await self._http.post(
            "/auth/login", json={"email": email, "password": password}
        )
        if response.status_code != 200:
            raise ApiError.from_response(response)

        body = response.json()
        if body.get("code") == PASSWORD_RESET_REQUIRED:
            logger.info("Login requires password setup")
            return PasswordSetupRequired(user_id=body["userId"], user=body.get("user", {}))

        session = self._session_from_body(body)
        self._set_session(session)
        logger.info("Logged in", extra={"user_id": session.user.get("id")})
        return session

    async def create_password(self, user_id: str, password: str) -> ClientSession:
        response = await self._http.post(
            "/auth/create-password",
            json={"userId": str(user_id), "password": password},
        )
        if response.status_code != 200:
            raise ApiError.from_response(response)
        session = self._session_from_body(response.json())
        self._set_session(session)
        return session

    async def refresh(self) -> ClientSession:
        """R: Rotate the token pair; concurrent callers share one request."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._do_refresh())
        return await asyncio.shield(self._refresh_task)

    async def _do_refresh(self) -> ClientSession:
        session = self._session
        if session is None:
            raise SessionExpiredError(401, "NO_SESSION", "No active session")

        response = await self._http.post(
            "/auth/refresh-token", json={"refreshToken": session.refresh_token}
        )
        if response.status_code == 200:
            body = response.json()
            renewed = ClientSession.from_tokens(
                body["accessToken"], body["refreshToken"], session.user
            )
            self._set_session(renewed)
            logger.info("Access token refreshed")
            return renewed

        error = ApiError.from_response(response)
        if response.status_code in (401, 403):
            await self._expire_session(error.code or "REFRESH_REJECTED")
            raise SessionExpiredError(
                error.status_code, error.code, error.message, error.body
            )
        raise error

    async def logout(self) -> None:
        """R: Best-effort server logout; local state is always cleared."""
        session = self._session
        self._cancel_refresh()
        try:
            if session is not None:
                response = await self._http.post(
                    "/auth/logout", json={"refreshToken": session.refresh_token}
                )
                if response.status_code != 200:
                    logger.warning(
                        "Logout request failed",
                        extra={"status_code": response.status_code},
                    )
        except httpx.HTTPError as exc:
            logger.warning("Logout request failed", extra={"error": str(exc)})
        finally:
            self._clear_local()

    async def logout_all(self) -> None:
        try:
            await self.request("POST", "/auth/logout-all")
        finally:
            self._cancel_refresh()
            self._clear_local()

    async def get_profile(self) -> dict[str, Any]:
        response = await self.request("GET", "/auth/profile")
        return response.json()["user"]

    async def update_profile(
        self, *, name: Optional[str] = None, password: Optional[str] = None
    ) -> dict[str, Any]:
        payload = {
            key: value
            for key, value in {"name": name, "password": password}.items()
            if value is not None
        }
        response = await self.request("PUT", "/auth/profile", json=payload)
        user = response.json()["user"]
        if self._session is not None:
            self._set_session(replace(self._session, user=user))
        return user

    async def validate(self) -> dict[str, Any]:
        response = await self.request("GET", "/auth/validate")
        return response.json()["user"]

    async def restore(self) -> Optional[ClientSession]:
        """
        R: Rehydrate from the store.

        An expired access token is refreshed once; any failure clears the store.
        """
        stored = self._store.load()
        if stored is None:
            return None

        self._session = stored
        if stored.seconds_until_expiry(self._clock()) > 0:
            return stored

        try:
            return await self.refresh()
        except (ApiError, httpx.HTTPError) as exc:
            logger.warning("Could not restore session", extra={"error": str(exc)})
            self._clear_local()
            return None

    # ------------------------------------------------------------------
    # Protected requests
    # ------------------------------------------------------------------
    def _adopt_renewed_token(self, response: httpx.Response) -> None:
        renewed = response.headers.get(NEW_ACCESS_TOKEN_HEADER)
        if renewed and self._session is not None:
            self._set_session(self._session.with_access_token(renewed))
            logger.info("Adopted pre-emptively renewed access token")

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        retry_on_expiry: bool = True,
    ) -> httpx.Response:
        """
        R: Send an authenticated request.

        Raises:
            SessionExpiredError: The session cannot continue (state cleared)
            ApiError: Any other non-2xx response
        """
        sent_token = self._session.access_token if self._session else None
        headers = {"Authorization": f"Bearer {sent_token}"} if sent_token else {}
        response = await self._http.request(
            method, path, json=json, params=params, headers=headers
        )
        self._adopt_renewed_token(response)

        if response.status_code < 400:
            return response

        error = ApiError.from_response(response)
        if response.status_code == 401:
            if error.code == TOKEN_EXPIRED and retry_on_expiry and self._session:
                # R: Another caller may already have rotated the pair
                if self._session.access_token == sent_token:
                    await self.refresh()
                return await self.request(
                    method, path, json=json, params=params, retry_on_expiry=False
                )
            await self._expire_session(error.code or "UNAUTHORIZED")
            raise SessionExpiredError(
                error.status_code, error.code, error.message, error.body
            )
        raise error
