"""
Rich Presence Layer.

This package renders the current track into a Discord Rich Presence payload
and keeps the Discord client up to date.
"""

from .client import DiscordPresenceClient, PresenceClient
from .projector import PresenceProjector
from .render import PresencePayload, fit_text, render_idle, render_track

__all__ = [
    "DiscordPresenceClient",
    "PresenceClient",
    "PresencePayload",
    "PresenceProjector",
    "fit_text",
    "render_idle",
    "render_track",
]
