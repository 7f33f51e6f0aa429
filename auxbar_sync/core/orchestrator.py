"""
The coordination policy between the session, the real-time link, the media
poller and the presence projector.
"""

import asyncio
import logging
import time
from contextlib import suppress
from enum import Enum
from typing import Any, Callable, Optional

from rich.markup import escape

from auxbar_sync.api.client import AuxbarAPIClient
from auxbar_sync.api.session import SessionManager
from auxbar_sync.events import (
    ControlValueReceived,
    LinkConnected,
    LinkDisconnected,
    RefreshFailed,
    SyncEvent,
    TokenRefreshed,
    TrackChanged,
)
from auxbar_sync.exceptions import AuthenticationError, AuxbarError, SessionConflictError
from auxbar_sync.media.poller import MediaPoller
from auxbar_sync.media.sources import MediaSource
from auxbar_sync.models.config import DisplayConfig
from auxbar_sync.models.settings import SyncSettings
from auxbar_sync.models.track import TrackState
from auxbar_sync.presence.client import PresenceClient
from auxbar_sync.presence.projector import PresenceProjector
from auxbar_sync.realtime.link import RealtimeLink
from auxbar_sync.storage.config_manager import ConfigManager
from auxbar_sync.utils.structured_logger import SyncEventLogger

log = logging.getLogger(__name__)


class SyncState(Enum):
    """States of the sync engine as seen by the user."""

    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    AWAITING_CONFLICT_DECISION = "awaiting_conflict_decision"
    CONNECTED = "connected"


class Orchestrator:
    """
    Wires the components together and owns the login/logout policy.

    Background components report through a single event queue which is
    consumed here in order; no component calls another directly.

    States:
    - LOGGED_OUT: nothing runs
    - AUTHENTICATING: a login or session restore is in progress
    - AWAITING_CONFLICT_DECISION: the account is active elsewhere; waiting for
      ``resolve_conflict()``
    - CONNECTED: poller, real-time link and (if enabled) presence are live
    """

    def __init__(
        self,
        api_client: AuxbarAPIClient,
        store: ConfigManager,
        media_source: MediaSource,
        presence_client: PresenceClient,
        settings: Optional[SyncSettings] = None,
        on_status: Optional[Callable[[str], None]] = None,
        on_track: Optional[Callable[[Optional[TrackState]], None]] = None,
        event_log: Optional[SyncEventLogger] = None,
    ):
        """
        Initializes the orchestrator and the components it coordinates.

        Args:
            api_client: HTTP client for the Auxbar service.
            store: Persistent configuration.
            media_source: Where the poller reads the playing track from.
            presence_client: The rich presence client to project onto.
            settings: Engine settings shared by all components.
            on_status: Called with a short human-readable status line.
            on_track: Called with every track transition (None = idle).
            event_log: Optional structured event log.
        """
        self.settings = settings or SyncSettings()
        self._api_client = api_client
        self._store = store
        self._on_status = on_status
        self._on_track = on_track
        self._event_log = event_log

        self._events: asyncio.Queue[SyncEvent] = asyncio.Queue()
        emit = self._events.put_nowait

        config = store.load()
        self.session = SessionManager(api_client, store, self.settings, emit)
        self.link = RealtimeLink(
            api_client, lambda: self.session.access_token, self.settings, emit
        )
        self.poller = MediaPoller(media_source, self.settings, emit)
        self.projector = PresenceProjector(
            presence_client,
            display=config.discord,
            base_url=self.settings.base_url,
            widget_slug=config.widget_slug,
            reconnect_interval_s=self.settings.presence_reconnect_interval_s,
        )

        self._state = SyncState.LOGGED_OUT
        self._pending_credentials: Optional[tuple[str, str]] = None
        self._connected_at = 0.0
        # What the server was last told about, and whether the current socket got it.
        self._published: Optional[TrackState] = None
        self._has_published = False
        self._delivered = False
        self._consumer: Optional[asyncio.Task] = None
        self._presence_sync: Optional[asyncio.Task] = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def current_track(self) -> Optional[TrackState]:
        return self.poller.current_track

    async def start(self) -> SyncState:
        """
        Starts consuming events and restores a persisted session, if any.

        A restored session is verified with a refresh before connecting; if
        that fails the stored tokens are discarded.
        """
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._consume())

        config = self._store.load()
        self.projector.configure(config.discord)
        self.projector.set_widget_slug(config.widget_slug)

        if self.session.load_persisted() is None:
            self._status("Not signed in.")
            return self._state

        self._set_state(SyncState.AUTHENTICATING)
        ok = await self.session.refresh()
        if self._event_log:
            self._event_log.session_restored(ok)

        if ok:
            await self._enter_connected()
        else:
            self.session.clear()
            self._set_state(SyncState.LOGGED_OUT)
        return self._state

    async def login(self, email: str, password: str) -> None:
        """
        Logs in and starts syncing.

        Raises:
            SessionConflictError: The account is active on another client. The
                orchestrator waits in AWAITING_CONFLICT_DECISION until
                ``resolve_conflict()`` is called.
            AuthenticationError: The login was rejected; back to LOGGED_OUT.
        """
        if self._state is SyncState.CONNECTED:
            await self.logout()

        self._pending_credentials = (email, password)
        await self._attempt_login(force=False)

    async def resolve_conflict(self, force: bool) -> None:
        """
        Answers a pending session conflict.

        Args:
            force: True to take the session over from the other client, False
                to give up and return to LOGGED_OUT.
        """
        if (
            self._state is not SyncState.AWAITING_CONFLICT_DECISION
            or self._pending_credentials is None
        ):
            raise AuxbarError("There is no session conflict to resolve.")

        if not force:
            self._pending_credentials = None
            self._set_state(SyncState.LOGGED_OUT)
            self._status("Login cancelled.")
            return

        await self._attempt_login(force=True)

    async def _attempt_login(self, force: bool) -> None:
        email, password = self._pending_credentials
        self._set_state(SyncState.AUTHENTICATING)
        try:
            await self.session.login(email, password, force_login=force)
        except SessionConflictError:
            self._set_state(SyncState.AWAITING_CONFLICT_DECISION)
            self._status("Active session detected on another device.")
            raise
        except AuthenticationError as e:
            self._pending_credentials = None
            self._set_state(SyncState.LOGGED_OUT)
            self._status(f"Login failed: {e}")
            raise
        except Exception:
            self._pending_credentials = None
            self._set_state(SyncState.LOGGED_OUT)
            raise

        self._pending_credentials = None
        if self._event_log:
            self._event_log.logged_in(email, forced=force)
        self.projector.set_widget_slug(self._store.load().widget_slug)
        await self._enter_connected()

    async def logout(self) -> None:
        """Stops syncing and forgets the session."""
        await self._teardown("user")
        self._status("Logged out.")

    async def _enter_connected(self) -> None:
        self._connected_at = time.time()
        self._set_state(SyncState.CONNECTED)
        self.poller.start()
        await self.link.connect()

        if self.projector.enabled:
            await self.projector.initialize()
            self._presence_sync = asyncio.create_task(self._sync_presence_after_grace())

        self._status("Connected.")

    async def _sync_presence_after_grace(self) -> None:
        """Pushes the known track once the presence client finished its handshake."""
        await asyncio.sleep(self.settings.presence_grace_delay_s)
        if self._state is not SyncState.CONNECTED or not self.projector.enabled:
            return

        track = self.poller.current_track
        if track is not None:
            await self.projector.update(track)
        else:
            await self.projector.set_idle_presence()

    async def _teardown(self, reason: str) -> None:
        await self._cancel_presence_sync()
        await self.link.disconnect()
        await self.poller.stop()
        self.poller.reset()
        self._published = None
        self._has_published = False
        self._delivered = False
        self.session.clear()
        await self.projector.clear()
        self.projector.set_widget_slug(None)
        self._store.update_widget_slug(None)
        self._pending_credentials = None
        self._set_state(SyncState.LOGGED_OUT)
        if self._event_log:
            self._event_log.logged_out(reason)

    async def set_presence_enabled(self, enabled: bool) -> None:
        """Persists and applies the rich presence on/off switch."""
        await self.update_display_config(enabled=enabled)

    async def update_display_config(self, **changes: Any) -> DisplayConfig:
        """
        Persists and applies display toggles.

        Args:
            **changes: Any of ``enabled``, ``show_album_name``,
                ``show_progress``, ``show_button``.

        Raises:
            ConfigurationError: If a value does not validate.
        """
        display = self._store.update_display_config(changes)
        if self._state is SyncState.CONNECTED:
            await self.projector.apply_display_config(display)
        else:
            self.projector.configure(display)
        return display

    async def drain_events(self) -> None:
        """Waits until every queued event has been handled."""
        await self._events.join()

    async def shutdown(self) -> None:
        """
        Stops every background task and releases the clients.

        The persisted session is kept for the next start.
        """
        await self._cancel_presence_sync()
        await self.link.disconnect()
        await self.poller.stop()
        await self.session.close()
        await self.projector.close()

        consumer, self._consumer = self._consumer, None
        if consumer is not None and not consumer.done():
            consumer.cancel()
            with suppress(asyncio.CancelledError):
                await consumer

        await self._api_client.close()
        log.debug("Sync engine shut down.")

    async def _cancel_presence_sync(self) -> None:
        task, self._presence_sync = self._presence_sync, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    async def _consume(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._dispatch(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error(f"Error handling {type(event).__name__}: {escape(str(e))}")
            finally:
                self._events.task_done()

    async def _dispatch(self, event: SyncEvent) -> None:
        if isinstance(event, TrackChanged):
            await self._on_track_changed(event.track)
        elif isinstance(event, ControlValueReceived):
            self._on_widget_slug(event.value)
        elif isinstance(event, TokenRefreshed):
            await self._on_token_refreshed(event)
        elif isinstance(event, RefreshFailed):
            await self._on_refresh_failed(event)
        elif isinstance(event, LinkConnected):
            await self._on_link_connected()
        elif isinstance(event, LinkDisconnected):
            self._delivered = False
            if self._event_log:
                self._event_log.link_state(connected=False)
            if self._state is SyncState.CONNECTED:
                self._status("Server: reconnecting...")

    async def _on_track_changed(self, track: Optional[TrackState]) -> None:
        if self._state is not SyncState.CONNECTED:
            return

        if self._event_log:
            self._event_log.track_changed(track)

        self._published = track
        self._has_published = True
        self._delivered = await self._send_to_server(track)

        # The projector remembers the track while disabled and renders nothing.
        if track is not None:
            await self.projector.update(track)
        else:
            await self.projector.set_idle_presence()

        if self._on_track:
            self._on_track(track)

    async def _send_to_server(self, track: Optional[TrackState]) -> bool:
        if track is not None:
            return await self.link.send_track(track)
        return await self.link.send_idle()

    async def _on_link_connected(self) -> None:
        if self._event_log:
            self._event_log.link_state(connected=True)
        if self._state is not SyncState.CONNECTED:
            return
        self._status("Server: connected.")

        # A fresh socket starts without state; replay the last transition it missed.
        if self._has_published and not self._delivered:
            self._delivered = await self._send_to_server(self._published)

    def _on_widget_slug(self, widget_slug: str) -> None:
        if self._state is not SyncState.CONNECTED:
            return
        if self._event_log:
            self._event_log.widget_slug_received(widget_slug)
        self.projector.set_widget_slug(widget_slug)
        self._store.update_widget_slug(widget_slug)

    async def _on_token_refreshed(self, event: TokenRefreshed) -> None:
        if self._event_log:
            self._event_log.token_refreshed()
        # A refresh that verified a restored session precedes the first dial.
        if self._state is SyncState.CONNECTED and event.at > self._connected_at:
            await self.link.reconnect()

    async def _on_refresh_failed(self, event: RefreshFailed) -> None:
        if self._event_log:
            self._event_log.refresh_failed(event.reason)
        if self._state is not SyncState.LOGGED_OUT:
            await self._teardown("session expired")
        self._status("Your session has expired. Please sign in again.")

    def _set_state(self, state: SyncState) -> None:
        if state is not self._state:
            log.debug(f"Sync state: {self._state.value} -> {state.value}")
            self._state = state

    def _status(self, text: str) -> None:
        log.info(text)
        if self._on_status:
            self._on_status(text)
