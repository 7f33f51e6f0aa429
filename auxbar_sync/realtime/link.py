"""
A self-healing websocket connection to the Auxbar real-time endpoint.
"""

import asyncio
import logging
import time
from contextlib import suppress
from enum import Enum
from typing import Callable, Optional

import aiohttp
from rich.markup import escape

from auxbar_sync.api.client import AuxbarAPIClient
from auxbar_sync.events import (
    ControlValueReceived,
    EventSink,
    LinkConnected,
    LinkDisconnected,
    discard,
)
from auxbar_sync.exceptions import StaleConnectionError, TransportError
from auxbar_sync.models.settings import SyncSettings
from auxbar_sync.models.track import TrackState

from .messages import encode_idle, encode_track, parse_control

log = logging.getLogger(__name__)

_CLOSED = (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED)


class ConnectionState(Enum):
    """States of the real-time link."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class RealtimeLink:
    """
    Maintains one websocket per authenticated session.

    Reconnection is internal: a failed dial or a dropped connection is retried
    after ``error_reconnect_timeout_s``, and a connection that receives nothing
    for ``reconnect_timeout_s`` is considered stale and re-dialed at once. The URL
    is rebuilt from the token provider on every dial so a rotated token is
    always used.
    """

    def __init__(
        self,
        api_client: AuxbarAPIClient,
        token_provider: Callable[[], Optional[str]],
        settings: Optional[SyncSettings] = None,
        emit: EventSink = discard,
    ):
        """
        Initializes the link.

        Args:
            api_client: Provides the HTTP session and the websocket URL.
            token_provider: Returns the current access token, or None when logged out.
            settings: Engine settings (reconnect timeouts).
            emit: Sink for connection and control events.
        """
        self._api_client = api_client
        self._token_provider = token_provider
        self._settings = settings or SyncSettings()
        self._emit = emit

        self._state = ConnectionState.DISCONNECTED
        self._state_changed_at = time.time()
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def state_changed_at(self) -> float:
        return self._state_changed_at

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def is_active(self) -> bool:
        """True while the connection loop is running, connected or not."""
        return self._task is not None and not self._task.done()

    async def connect(self) -> None:
        """Starts the connection loop, tearing down any existing connection first."""
        await self.disconnect()

        if not self._token_provider():
            log.warning("[yellow]Not authenticated, real-time link not started.[/yellow]")
            return

        self._task = asyncio.create_task(self._run())

    async def reconnect(self) -> None:
        """Re-dials with the current token, e.g. after the token was rotated."""
        log.info("Reconnecting real-time link with the current token...")
        await self.connect()

    async def disconnect(self) -> None:
        """Stops the connection loop and closes the socket."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        self._set_state(ConnectionState.DISCONNECTED)

    async def send_track(self, track: TrackState) -> bool:
        return await self._send(encode_track(track))

    async def send_idle(self) -> bool:
        return await self._send(encode_idle())

    async def _send(self, frame: str) -> bool:
        """
        Sends a frame if connected.

        Returns:
            True if the frame was handed to the socket. Nothing is queued while
            disconnected; the next detected change is sent instead.
        """
        ws = self._ws
        if ws is None or ws.closed or not self.is_connected:
            return False

        try:
            await ws.send_str(frame)
            return True
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            log.debug(f"Dropped outbound frame: {e}")
            return False

    async def _run(self) -> None:
        """Dials, reads until the connection ends, waits, and dials again."""
        while True:
            token = self._token_provider()
            if not token:
                log.warning("[yellow]Access token is gone, stopping real-time link.[/yellow]")
                self._set_state(ConnectionState.DISCONNECTED)
                return

            delay = self._settings.error_reconnect_timeout_s
            try:
                await self._connect_once(self._api_client.websocket_url(token))
            except asyncio.CancelledError:
                raise
            except StaleConnectionError as e:
                log.warning(f"[yellow]Real-time connection is stale: {escape(str(e))}[/yellow]")
                delay = 0
            except TransportError as e:
                log.warning(f"[yellow]Real-time connection lost: {escape(str(e))}[/yellow]")
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                log.warning(f"[yellow]Real-time connection failed: {escape(str(e))}[/yellow]")
            except Exception as e:
                log.error(f"Unexpected error in real-time link: {escape(str(e))}")
            finally:
                self._ws = None
                self._set_state(ConnectionState.DISCONNECTED)

            if delay:
                log.debug(f"Reconnecting in {delay:.0f}s...")
                await asyncio.sleep(delay)

    async def _connect_once(self, url: str) -> None:
        self._set_state(ConnectionState.CONNECTING)
        timeout = self._settings.reconnect_timeout_s
        async with self._api_client.http_session.ws_connect(url) as ws:
            self._ws = ws
            self._set_state(ConnectionState.CONNECTED)

            while True:
                try:
                    msg = await ws.receive(timeout=timeout)
                except asyncio.TimeoutError:
                    raise StaleConnectionError(f"nothing received for {timeout:g}s") from None

                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise TransportError(str(ws.exception()))
                elif msg.type in _CLOSED:
                    raise TransportError(f"closed by server (code {ws.close_code})")
                else:
                    log.debug(f"Ignoring websocket message of type {msg.type.name}")

    def _handle_text(self, data: str) -> None:
        try:
            message = parse_control(data)
        except Exception as e:
            log.debug(f"Failed to handle inbound frame: {e}")
            return

        if message is not None:
            log.debug(f"Received widget slug from server: {message.value}")
            self._emit(ControlValueReceived(message.value))

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return

        previous, self._state = self._state, state
        self._state_changed_at = time.time()
        log.debug(f"Real-time link: {previous.value} -> {state.value}")

        if state is ConnectionState.CONNECTED:
            log.info("[green]✓ Connected to Auxbar.[/green]")
            self._emit(LinkConnected())
        elif previous is ConnectionState.CONNECTED:
            self._emit(LinkDisconnected())
