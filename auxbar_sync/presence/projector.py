"""
Projects the current track onto the user's rich presence.
"""

import logging
import time
from typing import Optional

from rich.markup import escape

from auxbar_sync.exceptions import PresenceClientError
from auxbar_sync.models.config import DisplayConfig
from auxbar_sync.models.settings import DEFAULT_BASE_URL
from auxbar_sync.models.track import TrackState

from .client import PresenceClient
from .render import PresencePayload, render_idle, render_track

log = logging.getLogger(__name__)


class PresenceProjector:
    """
    Keeps the presence client showing the latest track, idle, or nothing.

    Disabled means nothing is shown; idle means the presence is shown and says
    nothing is playing. The latest track is remembered even while disabled so
    that enabling shows it straight away. Client errors are logged and the
    update is skipped; nothing here raises. While the client is unreachable,
    renders retry the connection at most once per ``reconnect_interval_s``.
    """

    def __init__(
        self,
        client: PresenceClient,
        display: Optional[DisplayConfig] = None,
        base_url: str = DEFAULT_BASE_URL,
        widget_slug: Optional[str] = None,
        reconnect_interval_s: float = 15.0,
    ):
        self._client = client
        self._display = display or DisplayConfig()
        self._base_url = base_url
        self._widget_slug = widget_slug
        self._reconnect_interval_s = reconnect_interval_s
        self._next_connect_at = 0.0

        self._current_track: Optional[TrackState] = None
        self._last_payload: Optional[PresencePayload] = None

    @property
    def enabled(self) -> bool:
        return self._display.enabled

    @property
    def is_ready(self) -> bool:
        return self._client.is_ready

    @property
    def display(self) -> DisplayConfig:
        return self._display

    @property
    def widget_slug(self) -> Optional[str]:
        return self._widget_slug

    @property
    def current_track(self) -> Optional[TrackState]:
        return self._current_track

    @property
    def last_payload(self) -> Optional[PresencePayload]:
        """The payload most recently accepted by the client (None after a clear)."""
        return self._last_payload

    async def initialize(self) -> None:
        """Connects the client if enabled and shows the idle presence."""
        if not self.enabled:
            return

        if not self._client.is_ready and not await self._connect():
            return

        await self.set_idle_presence()

    async def update(self, track: TrackState) -> None:
        self._current_track = track
        if not await self._can_render():
            return
        await self._push(render_track(track, self._display, self._widget_slug, self._base_url))

    async def set_idle_presence(self) -> None:
        self._current_track = None
        if not await self._can_render():
            return
        await self._push(render_idle(self._base_url))

    async def clear(self) -> None:
        """Removes the presence and forgets the current track."""
        self._current_track = None
        await self._clear_client()

    async def enable(self) -> None:
        if self.enabled:
            return

        log.info("Discord Rich Presence enabled.")
        self._display = self._display.model_copy(update={"enabled": True})
        track = self._current_track
        await self.initialize()
        if track is not None:
            await self.update(track)

    async def disable(self) -> None:
        if not self.enabled:
            return

        log.info("Discord Rich Presence disabled.")
        self._display = self._display.model_copy(update={"enabled": False})
        await self._clear_client()

    async def apply_display_config(self, display: DisplayConfig) -> None:
        """Applies new toggles and re-renders whatever is currently shown."""
        track = self._current_track
        self._display = display.model_copy(update={"enabled": self.enabled})

        if display.enabled and not self.enabled:
            await self.enable()
        elif not display.enabled and self.enabled:
            await self.disable()
        elif track is not None:
            await self.update(track)

    def configure(self, display: DisplayConfig) -> None:
        """Replaces the toggles without touching the client (used while logged out)."""
        self._display = display

    def set_widget_slug(self, widget_slug: Optional[str]) -> None:
        self._widget_slug = widget_slug or None

    async def close(self) -> None:
        await self._clear_client()
        await self._client.close()

    async def _can_render(self) -> bool:
        if not self.enabled:
            return False
        if self._client.is_ready:
            return True
        if time.monotonic() < self._next_connect_at:
            log.debug("Presence update skipped: client not ready.")
            return False
        return await self._connect()

    async def _connect(self) -> bool:
        try:
            await self._client.connect()
        except PresenceClientError as e:
            self._next_connect_at = time.monotonic() + self._reconnect_interval_s
            log.warning(f"[yellow]{escape(str(e))}[/yellow]")
            return False
        self._next_connect_at = 0.0
        return True

    async def _push(self, payload: PresencePayload) -> None:
        try:
            await self._client.set_presence(payload)
        except PresenceClientError as e:
            log.warning(f"[yellow]Failed to update Discord presence: {escape(str(e))}[/yellow]")
            return
        self._last_payload = payload

    async def _clear_client(self) -> None:
        self._last_payload = None
        if not self._client.is_ready:
            return
        try:
            await self._client.clear()
        except PresenceClientError as e:
            log.warning(f"[yellow]{escape(str(e))}[/yellow]")
