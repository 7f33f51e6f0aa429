"""
Pure rendering of a track (or idle) into a rich presence payload.

Discord rejects ``details``/``state`` shorter than 2 or longer than 128
characters, so every text field goes through ``fit_text``.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from auxbar_sync.models.config import DisplayConfig
from auxbar_sync.models.settings import DEFAULT_BASE_URL
from auxbar_sync.models.track import TrackState
from auxbar_sync.utils.formatting import format_clock, slugify

MIN_TEXT_LENGTH = 2
MAX_TEXT_LENGTH = 128
ELLIPSIS = "..."

UNKNOWN_TRACK = "Unknown Track"
UNKNOWN_ARTIST = "Unknown Artist"
BRAND_NAME = "Auxbar"

DEFAULT_LARGE_IMAGE = "auxbar_logo"
PLAYING_IMAGE = "playing"
PAUSED_IMAGE = "paused"

IDLE_DETAILS = "Not playing anything"
IDLE_STATE = "Idle"
IDLE_LARGE_TEXT = "Auxbar - Music Widget for Streamers"


@dataclass(frozen=True)
class PresencePayload:
    """What the presence client is asked to show."""

    details: str
    state: str
    large_image_key: str
    large_image_text: str
    small_image_key: Optional[str] = None
    small_image_text: Optional[str] = None
    buttons: tuple[dict[str, str], ...] = field(default_factory=tuple)

    def to_kwargs(self) -> dict[str, Any]:
        """Maps the payload onto pypresence ``update()`` keyword arguments."""
        kwargs: dict[str, Any] = {
            "details": self.details,
            "state": self.state,
            "large_image": self.large_image_key,
            "large_text": self.large_image_text,
        }
        if self.small_image_key:
            kwargs["small_image"] = self.small_image_key
            kwargs["small_text"] = self.small_image_text
        if self.buttons:
            kwargs["buttons"] = [dict(b) for b in self.buttons]
        return kwargs


def fit_text(text: Optional[str], fallback: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    """
    Fits ``text`` into the presence length limits.

    Blank or too-short text is replaced by ``fallback``; text over
    ``max_length`` is cut and ends in an ellipsis.
    """
    if text is None or not text.strip() or len(text) < MIN_TEXT_LENGTH:
        return fallback
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def site_button(base_url: str = DEFAULT_BASE_URL) -> dict[str, str]:
    return {"label": "Get Auxbar", "url": base_url}


def album_art_url(base_url: str, widget_slug: str, track: TrackState) -> str:
    """
    The externally hosted album art for ``track``.

    The last path segment is derived from the track identity only, so the
    same track always maps to the same URL and Discord's image cache hits.
    Discord may reject image URLs with a query string, hence a path segment.
    """
    track_key = slugify(f"{track.title}-{track.artist}")
    return f"{base_url}/api/widget/album-art/{widget_slug}/{track_key}"


def render_track(
    track: TrackState,
    display: DisplayConfig,
    widget_slug: Optional[str] = None,
    base_url: str = DEFAULT_BASE_URL,
) -> PresencePayload:
    details = fit_text(track.title, UNKNOWN_TRACK)

    artist = track.artist.strip() if track.artist else ""
    state = f"by {artist}" if len(artist) >= MIN_TEXT_LENGTH else UNKNOWN_ARTIST

    if (
        display.show_progress
        and track.position_ms is not None
        and track.duration_ms is not None
        and track.duration_ms > 0
    ):
        # Discord's own timestamps keep counting while paused.
        elapsed = format_clock(track.position_ms)
        total = format_clock(track.duration_ms)
        state = f"{state} • {elapsed} / {total}"

    state = fit_text(state, UNKNOWN_ARTIST)

    large_image_text = BRAND_NAME
    if display.show_album_name and track.album:
        large_image_text = fit_text(track.album, BRAND_NAME)

    if widget_slug and track.album_art:
        large_image_key = album_art_url(base_url, widget_slug, track)
    else:
        large_image_key = DEFAULT_LARGE_IMAGE

    return PresencePayload(
        details=details,
        state=state,
        large_image_key=large_image_key,
        large_image_text=large_image_text,
        small_image_key=PLAYING_IMAGE if track.playing else PAUSED_IMAGE,
        small_image_text="Playing" if track.playing else "Paused",
        buttons=(site_button(base_url),) if display.show_button else (),
    )


def render_idle(base_url: str = DEFAULT_BASE_URL) -> PresencePayload:
    return PresencePayload(
        details=IDLE_DETAILS,
        state=IDLE_STATE,
        large_image_key=DEFAULT_LARGE_IMAGE,
        large_image_text=IDLE_LARGE_TEXT,
        buttons=(site_button(base_url),),
    )
