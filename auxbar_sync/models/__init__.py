"""
Data Models Layer.

This package contains the models shared by the sync engine: the persisted
configuration, engine settings, the session and the current track state.
"""

from .config import AppConfig, DisplayConfig
from .session import Session
from .settings import SyncSettings
from .track import TrackState

__all__ = ["AppConfig", "DisplayConfig", "Session", "SyncSettings", "TrackState"]
