"""
Owns the authenticated session: login, single-flight token refresh, scheduled
renewal and persistence of the token pair.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Optional

from rich.markup import escape

from auxbar_sync.events import EventSink, RefreshFailed, TokenRefreshed, discard
from auxbar_sync.exceptions import RefreshFailedError
from auxbar_sync.models.session import Session
from auxbar_sync.models.settings import SyncSettings
from auxbar_sync.storage.config_manager import ConfigManager

from .client import AuxbarAPIClient

log = logging.getLogger(__name__)


class SessionManager:
    """
    Manages the token lifecycle for the Auxbar API.

    Tokens are renewed every ``token_lifetime * refresh_ratio`` seconds so a
    failing refresh is noticed while the current access token still works.
    A refresh failure is terminal: the session is cleared and a
    ``RefreshFailed`` event is emitted.
    """

    def __init__(
        self,
        api_client: AuxbarAPIClient,
        store: ConfigManager,
        settings: Optional[SyncSettings] = None,
        emit: EventSink = discard,
    ):
        """
        Initializes the session manager.

        Args:
            api_client: Client used for the login and refresh requests.
            store: Persistent configuration holding the token pair.
            settings: Engine settings (token lifetime and refresh ratio).
            emit: Sink for ``TokenRefreshed`` and ``RefreshFailed`` events.
        """
        self._api_client = api_client
        self._store = store
        self._settings = settings or SyncSettings()
        self._emit = emit

        self._session: Optional[Session] = None
        self._inflight: Optional[asyncio.Future] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._next_refresh_at = 0.0

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def refresh_interval(self) -> float:
        """Seconds between scheduled renewals."""
        return self._settings.refresh_interval_s

    @property
    def is_refresh_scheduled(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def login(
        self, email: str, password: str, force_login: bool = False
    ) -> Session:
        """
        Logs in with email and password and starts automatic renewal.

        Args:
            email: The account email.
            password: The account password.
            force_login: Take over a session that is active on another client.

        Returns:
            The new session.

        Raises:
            SessionConflictError: Another client holds the session; retry with
                ``force_login=True`` after asking the user.
            AuthenticationError: The credentials were rejected.
        """
        log.info(f"Logging in as: {escape(email)}" + (" (forced)" if force_login else ""))
        body = await self._api_client.login(email, password, force_login=force_login)

        self._store_tokens(body["accessToken"], body["refreshToken"])

        widget_slug = (body.get("user") or {}).get("widgetSlug")
        if widget_slug:
            self._store.update_widget_slug(widget_slug)

        self.start_auto_refresh()
        log.info("[green]✓ Logged in.[/green]")
        return self._session

    async def refresh(self) -> bool:
        """
        Renews the token pair.

        Concurrent callers share a single in-flight request and all observe its
        result. If the task running the request is cancelled, the callers that
        were waiting on it start a new one instead of being cancelled too.

        Returns:
            True if the session was renewed. False if there was nothing to
            refresh or the refresh failed (in which case the session is gone).
        """
        inflight = self._inflight
        if inflight is not None:
            log.debug("Token refresh already in flight, waiting for its result.")
            await asyncio.wait({inflight})
            if not inflight.cancelled():
                return inflight.result()
            return await self.refresh()

        if self._session is None:
            return False

        inflight = asyncio.get_running_loop().create_future()
        self._inflight = inflight
        try:
            result = await self._refresh_once(self._session.refresh_token)
        except BaseException:
            inflight.cancel()
            raise
        else:
            inflight.set_result(result)
        finally:
            self._inflight = None
        return result

    async def _refresh_once(self, refresh_token: str) -> bool:
        try:
            body = await self._api_client.refresh(refresh_token)
        except RefreshFailedError as e:
            log.warning(f"[yellow]Session expired: {escape(str(e))}[/yellow]")
            self.clear()
            self._emit(RefreshFailed(reason=str(e)))
            return False

        self._store_tokens(body["accessToken"], body.get("refreshToken") or refresh_token)
        self.start_auto_refresh()
        log.debug("Access token renewed.")
        self._emit(TokenRefreshed())
        return True

    def start_auto_refresh(self) -> None:
        """
        Schedules the next renewal a full interval from now.

        A running timer is kept and only has its deadline moved, so a refresh
        started by the timer itself never cancels it.
        """
        self._next_refresh_at = asyncio.get_running_loop().time() + self.refresh_interval
        if self.is_refresh_scheduled:
            return

        self._refresh_task = asyncio.create_task(self._auto_refresh_loop())
        log.debug(f"Auto-refresh scheduled every {self.refresh_interval:.0f}s.")

    def stop_auto_refresh(self) -> None:
        if self._refresh_task and not self._refresh_task.done():
            if self._refresh_task is not asyncio.current_task():
                self._refresh_task.cancel()
        self._refresh_task = None

    async def _auto_refresh_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            delay = self._next_refresh_at - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
                continue

            try:
                if not await self.refresh():
                    break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error(f"Unexpected error during scheduled token refresh: {escape(str(e))}")

            if self._next_refresh_at <= loop.time():
                self._next_refresh_at = loop.time() + self.refresh_interval

    def load_persisted(self) -> Optional[Session]:
        """
        Restores the token pair from the config store.

        Returns:
            The restored session, or None if nothing usable was stored.
        """
        config = self._store.load()
        if not config.has_tokens:
            return None

        # The stored access token may already be stale; callers verify it with refresh().
        self._session = Session.issue(
            config.access_token, config.refresh_token, self._settings.token_lifetime_s
        )
        log.debug("Restored persisted session.")
        return self._session

    def clear(self) -> None:
        """Stops renewal and forgets the session, in memory and on disk."""
        self.stop_auto_refresh()
        self._session = None
        self._store.clear_tokens()

    async def close(self) -> None:
        """Stops the renewal timer and waits for it to finish."""
        task = self._refresh_task
        self.stop_auto_refresh()
        if task is not None and task is not asyncio.current_task():
            with suppress(asyncio.CancelledError):
                await task

    def _store_tokens(self, access_token: str, refresh_token: str) -> None:
        self._session = Session.issue(
            access_token, refresh_token, self._settings.token_lifetime_s
        )
        self._store.update_tokens(access_token, refresh_token)
