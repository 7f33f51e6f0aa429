"""
Async client for the Auxbar authentication endpoints.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from auxbar_sync import __version__
from auxbar_sync.exceptions import (
    AuthenticationError,
    RefreshFailedError,
    SessionConflictError,
)
from auxbar_sync.models.settings import DEFAULT_BASE_URL

log = logging.getLogger(__name__)

ACTIVE_SESSION_EXISTS = "ACTIVE_SESSION_EXISTS"


class AuxbarAPIClient:
    """
    Thin async wrapper around the Auxbar JSON API.

    Owns a single pooled aiohttp session which is created on first use and
    closed by ``close()``.
    """

    LOGIN_ENDPOINT = "/api/auth/login"
    REFRESH_ENDPOINT = "/api/auth/refresh"

    def __init__(self, base_url: str = DEFAULT_BASE_URL):
        """
        Initializes the API client.

        Args:
            base_url: Root of the Auxbar service, e.g. ``https://auxbar.me``.
        """
        self.base_url: str = base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def http_session(self) -> aiohttp.ClientSession:
        """The shared aiohttp session, also used by the real-time link."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": f"auxbar-sync/{__version__}"},
                timeout=aiohttp.ClientTimeout(total=30, connect=10),
            )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def websocket_url(self, access_token: str) -> str:
        """Builds the real-time endpoint URL for ``access_token``."""
        ws_base = self.base_url.replace("https://", "wss://", 1).replace(
            "http://", "ws://", 1
        )
        return f"{ws_base}/ws?type=client&token={quote(access_token, safe='')}"

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> tuple[int, Dict[str, Any]]:
        """
        Posts ``payload`` as JSON and returns the status and decoded body.

        Non-JSON bodies are returned as an empty dict so callers can rely on the
        status code alone.
        """
        start_time = time.monotonic()
        async with self.http_session.post(self.base_url + endpoint, json=payload) as r:
            duration_ms = (time.monotonic() - start_time) * 1000
            log.debug(f"POST {endpoint} -> {r.status} ({duration_ms:.0f} ms)")
            try:
                body = await r.json(content_type=None)
            except ValueError:
                body = None
            return r.status, body if isinstance(body, dict) else {}

    async def login(
        self, email: str, password: str, force_login: bool = False
    ) -> Dict[str, Any]:
        """
        Submits credentials.

        Args:
            email: The account email.
            password: The plain-text password (sent over TLS).
            force_login: Invalidate any other active session for this account.

        Returns:
            The response body, containing ``accessToken``, ``refreshToken`` and
            ``user``.

        Raises:
            SessionConflictError: The account is signed in on another client.
            AuthenticationError: Any other login failure.
        """
        payload: Dict[str, Any] = {"email": email, "password": password}
        if force_login:
            payload["forceLogin"] = True

        try:
            status, body = await self._post(self.LOGIN_ENDPOINT, payload)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthenticationError(f"Could not reach the server: {e}") from e

        error = body.get("error")
        if error == ACTIVE_SESSION_EXISTS or status == 409:
            raise SessionConflictError(
                "You are already logged in on another device or instance."
            )
        if error:
            raise AuthenticationError(str(error))
        if status >= 400:
            raise AuthenticationError(f"Login failed with HTTP {status}.")
        if not body.get("accessToken") or not body.get("refreshToken"):
            raise AuthenticationError("The server did not return a session.")

        return body

    async def refresh(self, refresh_token: str) -> Dict[str, Any]:
        """
        Exchanges a refresh token for a new token pair.

        Raises:
            RefreshFailedError: The server rejected the token or could not be reached.
        """
        try:
            status, body = await self._post(
                self.REFRESH_ENDPOINT, {"refreshToken": refresh_token}
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RefreshFailedError(f"Token refresh request failed: {e}") from e

        if not 200 <= status < 300:
            raise RefreshFailedError(f"Token refresh rejected with HTTP {status}.")
        if not body.get("accessToken"):
            raise RefreshFailedError("Token refresh response did not contain a token.")

        return body
