"""
auxbar-sync: keeps the Auxbar service and Discord Rich Presence in sync with
the media playing on this desktop.
"""

__version__ = "1.2.0"
