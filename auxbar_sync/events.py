"""
Events passed from the background components to the Orchestrator.

Components never call each other directly; they hand one of these objects to
an ``EventSink`` (normally ``asyncio.Queue.put_nowait``) and the Orchestrator
consumes them in order.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from auxbar_sync.models.track import TrackState


@dataclass(frozen=True)
class TokenRefreshed:
    """The session renewed its tokens; the real-time link must re-dial."""

    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class RefreshFailed:
    """The refresh token was rejected. The session has already been cleared."""

    reason: str = ""
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class LinkConnected:
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class LinkDisconnected:
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ControlValueReceived:
    """The server acknowledged the connection with the user's widget slug."""

    value: str
    at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class TrackChanged:
    """The poller observed a transition. ``track`` is ``None`` for idle."""

    track: Optional[TrackState]
    at: float = field(default_factory=time.time)


SyncEvent = Union[
    TokenRefreshed,
    RefreshFailed,
    LinkConnected,
    LinkDisconnected,
    ControlValueReceived,
    TrackChanged,
]

EventSink = Callable[[SyncEvent], None]


def discard(event: SyncEvent) -> None:
    """An EventSink that drops everything, for components used standalone."""
