"""
Encoding of outbound frames and parsing of the inbound control vocabulary.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from auxbar_sync.models.track import TrackState

log = logging.getLogger(__name__)

CONNECTED = "connected"
SLUG_FIELD = "widgetSlug"


@dataclass(frozen=True)
class ControlMessage:
    """A recognised inbound frame."""

    type: str
    value: str


def encode_track(track: TrackState) -> str:
    return json.dumps({"type": "track", "data": track.to_wire()})


def encode_idle() -> str:
    return json.dumps({"type": "idle"})


def parse_control(raw: Any) -> Optional[ControlMessage]:
    """
    Parses an inbound text frame.

    Only the ``connected`` acknowledgement is understood. Anything else,
    including invalid JSON, is logged at debug level and returns None.
    """
    if not isinstance(raw, str):
        log.debug(f"Ignoring non-text frame: {type(raw).__name__}")
        return None

    try:
        frame = json.loads(raw)
    except ValueError:
        log.debug(f"Ignoring malformed frame: {raw[:120]!r}")
        return None

    if not isinstance(frame, dict):
        log.debug(f"Ignoring frame that is not an object: {raw[:120]!r}")
        return None

    frame_type = frame.get("type")
    if frame_type != CONNECTED:
        log.debug(f"Ignoring frame of type {frame_type!r}")
        return None

    value = frame.get(SLUG_FIELD)
    if not isinstance(value, str) or not value.strip():
        log.debug("Ignoring 'connected' frame without a widget slug.")
        return None

    return ControlMessage(type=CONNECTED, value=value.strip())
