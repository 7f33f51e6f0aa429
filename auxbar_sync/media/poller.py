"""
Periodic sampling of the media source with change detection.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Optional

from rich.markup import escape

from auxbar_sync.events import EventSink, TrackChanged, discard
from auxbar_sync.models.settings import SyncSettings
from auxbar_sync.models.track import TrackState

from .sources import MediaSample, MediaSource

log = logging.getLogger(__name__)


class ChangeDetector:
    """
    Decides whether a new sample is a meaningful transition.

    A sample is a change when the track identity or the playing flag differs
    from the last emitted state, or when playback position drifted away from
    where steady playback would have put it (the user seeked).
    """

    def __init__(
        self,
        interval_ms: float = 1000,
        slack_factor: float = 1.5,
        threshold_ms: float = 2500,
    ):
        self.interval_ms = interval_ms
        self.slack_factor = slack_factor
        self.threshold_ms = threshold_ms

    def has_drifted(
        self, last_position: Optional[int], position: Optional[int], playing: bool
    ) -> bool:
        if not playing:
            return False
        if last_position is None and position is None:
            return False
        if last_position is None or position is None:
            return True

        expected = last_position + self.interval_ms * self.slack_factor
        return abs(position - expected) > self.threshold_ms

    def is_change(
        self,
        last: Optional[TrackState],
        last_position: Optional[int],
        sample: MediaSample,
    ) -> bool:
        if last is None:
            return True
        if last.identity != (sample.title, sample.artist):
            return True
        if last.playing != sample.playing:
            return True
        return self.has_drifted(last_position, sample.position_ms, sample.playing)


class MediaPoller:
    """
    Samples a MediaSource on a fixed interval and emits ``TrackChanged``.

    The poller is the only writer of the current track. Ticks never overlap:
    the next sleep starts only after the previous tick finished.
    """

    def __init__(
        self,
        source: MediaSource,
        settings: Optional[SyncSettings] = None,
        emit: EventSink = discard,
    ):
        settings = settings or SyncSettings()
        self._source = source
        self._interval = settings.poll_interval_s
        self._detector = ChangeDetector(
            interval_ms=settings.poll_interval_s * 1000,
            slack_factor=settings.drift_slack_factor,
            threshold_ms=settings.drift_threshold_ms,
        )
        self._emit = emit

        self._current: Optional[TrackState] = None
        self._last_position: Optional[int] = None
        self._artwork_identity: Optional[tuple[str, str]] = None
        self._artwork: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def current_track(self) -> Optional[TrackState]:
        """The last emitted track, or None when idle."""
        return self._current

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._poll_loop())
        log.debug(f"Media poller started ({self._interval:.1f}s interval).")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            log.debug("Media poller stopped.")

    def reset(self) -> None:
        """Forgets the last state so the next sample is always reported."""
        self._current = None
        self._last_position = None
        self._artwork_identity = None
        self._artwork = None

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning(f"Error polling media session: {escape(str(e))}")
            await asyncio.sleep(self._interval)

    async def poll_once(self) -> Optional[TrackChanged]:
        """
        Runs a single sampling tick.

        Returns:
            The emitted event, or None if nothing changed.
        """
        sample = await self._source.sample()

        if sample is None:
            self._last_position = None
            if self._current is None:
                return None
            self._current = None
            return self._publish(None)

        changed = self._detector.is_change(self._current, self._last_position, sample)
        self._last_position = sample.position_ms
        if not changed:
            return None

        track = TrackState(
            title=sample.title,
            artist=sample.artist,
            album=sample.album,
            album_art=await self._artwork_for(sample),
            playing=sample.playing,
            position_ms=sample.position_ms,
            duration_ms=sample.duration_ms,
        )
        self._current = track
        return self._publish(track)

    async def _artwork_for(self, sample: MediaSample) -> Optional[str]:
        identity = (sample.title, sample.artist)
        if identity == self._artwork_identity:
            return self._artwork

        try:
            artwork = await self._source.read_artwork()
        except Exception as e:
            log.debug(f"Album art not available: {e}")
            artwork = None

        self._artwork_identity = identity
        self._artwork = artwork
        return artwork

    def _publish(self, track: Optional[TrackState]) -> TrackChanged:
        if track is None:
            log.info("Nothing playing.")
        else:
            state = "Playing" if track.playing else "Paused"
            log.info(f"{state}: {escape(track.describe())}")

        event = TrackChanged(track)
        self._emit(event)
        return event
