"""
Discord Rich Presence client built on pypresence.
"""

import asyncio
import inspect
import logging
from typing import Optional, Protocol

from pypresence import AioPresence
from pypresence.exceptions import PyPresenceException

from auxbar_sync.exceptions import PresenceClientError
from auxbar_sync.models.settings import DISCORD_CLIENT_ID

from .render import PresencePayload

log = logging.getLogger(__name__)


class PresenceClient(Protocol):
    @property
    def is_ready(self) -> bool: ...

    async def connect(self) -> None: ...

    async def set_presence(self, payload: PresencePayload) -> None: ...

    async def clear(self) -> None: ...

    async def close(self) -> None: ...


class DiscordPresenceClient:
    """
    Wraps ``pypresence.AioPresence``.

    Every failure (Discord not running, pipe closed, payload rejected) is
    raised as ``PresenceClientError``; after a failure the client reports not
    ready until ``connect()`` succeeds again.
    """

    def __init__(self, client_id: str = DISCORD_CLIENT_ID, connect_timeout: float = 10.0):
        self.client_id = client_id
        self.connect_timeout = connect_timeout
        self._rpc: Optional[AioPresence] = None
        self._connected = False

    @property
    def is_ready(self) -> bool:
        return self._connected and self._rpc is not None

    async def connect(self) -> None:
        if self.is_ready:
            return

        try:
            self._rpc = AioPresence(self.client_id)
            await asyncio.wait_for(self._rpc.connect(), timeout=self.connect_timeout)
        except (PyPresenceException, OSError, asyncio.TimeoutError) as e:
            self._rpc = None
            self._connected = False
            raise PresenceClientError(f"Could not connect to Discord: {e}") from e

        self._connected = True
        log.info("[green]✓ Connected to Discord Rich Presence.[/green]")

    async def set_presence(self, payload: PresencePayload) -> None:
        rpc = self._require_ready()
        try:
            await rpc.update(**payload.to_kwargs())
        except (PyPresenceException, OSError) as e:
            self._connected = False
            raise PresenceClientError(f"Discord rejected the presence update: {e}") from e

    async def clear(self) -> None:
        rpc = self._require_ready()
        try:
            await rpc.clear()
        except (PyPresenceException, OSError) as e:
            self._connected = False
            raise PresenceClientError(f"Failed to clear Discord presence: {e}") from e

    async def close(self) -> None:
        rpc, self._rpc = self._rpc, None
        self._connected = False
        if rpc is None:
            return

        try:
            result = rpc.close()
            if inspect.isawaitable(result):
                await result
        except (PyPresenceException, OSError, RuntimeError) as e:
            # Some pypresence releases also try to close the running event loop.
            log.debug(f"Error closing Discord RPC client: {e}")

    def _require_ready(self) -> AioPresence:
        if not self.is_ready:
            raise PresenceClientError("Discord Rich Presence is not connected.")
        return self._rpc
