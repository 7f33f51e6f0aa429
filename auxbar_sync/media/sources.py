"""
Sources of "what is playing right now".

The Windows source reads the Global System Media Transport Controls through
``winsdk``. On other platforms, or without ``winsdk``, there is no system
source and the poller reports idle.
"""

import base64
import logging
import sys
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

try:
    from winsdk.windows.media.control import (
        GlobalSystemMediaTransportControlsSessionManager as MediaManager,
        GlobalSystemMediaTransportControlsSessionPlaybackStatus as PlaybackStatus,
    )
    from winsdk.windows.security.cryptography import CryptographicBuffer
    from winsdk.windows.storage.streams import DataReader
except ImportError:  # winsdk not installed or not on Windows
    MediaManager = None
    PlaybackStatus = None
    CryptographicBuffer = None
    DataReader = None

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaSample:
    """One reading of the active media session, without artwork."""

    title: str
    artist: str
    album: Optional[str] = None
    playing: bool = False
    position_ms: Optional[int] = None
    duration_ms: Optional[int] = None


class MediaSource(Protocol):
    async def sample(self) -> Optional[MediaSample]:
        """Returns the current sample, or None if no media session is active."""

    async def read_artwork(self) -> Optional[str]:
        """Returns the current artwork as a data URI, or None."""


def _timespan_ms(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.total_seconds() * 1000)
    except (AttributeError, TypeError):
        pass
    try:
        # Some WinRT bindings expose a "duration" in 100ns ticks.
        return int(value.duration) // 10_000
    except (AttributeError, TypeError, ValueError):
        return None


class WindowsMediaSource:
    """Reads the current session from the Windows media transport controls."""

    def __init__(self):
        self._manager = None

    @property
    def available(self) -> bool:
        return MediaManager is not None

    async def _current_session(self):
        if MediaManager is None:
            return None
        if self._manager is None:
            self._manager = await MediaManager.request_async()
        return self._manager.get_current_session()

    async def sample(self) -> Optional[MediaSample]:
        session = await self._current_session()
        if session is None:
            return None

        info = await session.try_get_media_properties_async()
        if info is None:
            return None

        try:
            status = session.get_playback_info().playback_status
        except OSError:
            status = None

        try:
            timeline = session.get_timeline_properties()
            position_ms = _timespan_ms(timeline.position)
            duration_ms = _timespan_ms(timeline.end_time)
        except OSError:
            position_ms = duration_ms = None

        return MediaSample(
            title=getattr(info, "title", "") or "Unknown",
            artist=getattr(info, "artist", "") or "Unknown",
            album=getattr(info, "album_title", "") or None,
            playing=status == PlaybackStatus.PLAYING,
            position_ms=position_ms,
            duration_ms=duration_ms,
        )

    async def read_artwork(self) -> Optional[str]:
        session = await self._current_session()
        if session is None:
            return None

        info = await session.try_get_media_properties_async()
        thumbnail = getattr(info, "thumbnail", None)
        if thumbnail is None:
            return None

        stream = await thumbnail.open_read_async()
        reader = DataReader(stream)
        await reader.load_async(stream.size)
        data = bytes(CryptographicBuffer.copy_to_byte_array(reader.read_buffer(stream.size)))
        if not data:
            return None
        return f"data:image/png;base64,{base64.b64encode(data).decode('ascii')}"


class StaticMediaSource:
    """
    A scripted source that replays a fixed sequence of samples.

    Each call to ``sample()`` consumes the next entry; the last entry repeats
    once the script is exhausted. ``None`` entries mean "no media session".
    """

    def __init__(
        self,
        samples: Iterable[Optional[MediaSample]] = (),
        artwork: Optional[str] = None,
    ):
        self._samples = deque(samples)
        self._last: Optional[MediaSample] = None
        self.artwork = artwork
        self.artwork_error: Optional[Exception] = None
        self.artwork_reads = 0

    def push(self, sample: Optional[MediaSample]) -> None:
        self._samples.append(sample)

    async def sample(self) -> Optional[MediaSample]:
        if self._samples:
            self._last = self._samples.popleft()
        return self._last

    async def read_artwork(self) -> Optional[str]:
        self.artwork_reads += 1
        if self.artwork_error is not None:
            raise self.artwork_error
        return self.artwork


class NullMediaSource:
    """Used where no system source exists: always idle."""

    async def sample(self) -> Optional[MediaSample]:
        return None

    async def read_artwork(self) -> Optional[str]:
        return None


def default_media_source() -> MediaSource:
    """Returns the system media source for this platform."""
    if sys.platform == "win32" and MediaManager is not None:
        return WindowsMediaSource()

    log.warning(
        "[yellow]No system media source on this platform; reporting idle.[/yellow]"
    )
    return NullMediaSource()
