"""
Media Sampling Layer.

This package reads the operating system's current media session and turns it
into a stream of track changes.
"""

from .poller import ChangeDetector, MediaPoller
from .sources import (
    MediaSample,
    MediaSource,
    NullMediaSource,
    StaticMediaSource,
    WindowsMediaSource,
    default_media_source,
)

__all__ = [
    "ChangeDetector",
    "MediaPoller",
    "MediaSample",
    "MediaSource",
    "NullMediaSource",
    "StaticMediaSource",
    "WindowsMediaSource",
    "default_media_source",
]
