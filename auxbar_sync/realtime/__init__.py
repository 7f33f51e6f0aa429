"""
Real-time Layer.

This package keeps the websocket to the Auxbar service alive and encodes the
frames exchanged over it.
"""

from .link import ConnectionState, RealtimeLink
from .messages import ControlMessage, encode_idle, encode_track, parse_control

__all__ = [
    "ConnectionState",
    "ControlMessage",
    "RealtimeLink",
    "encode_idle",
    "encode_track",
    "parse_control",
]
