"""
Storage Layer.

This package handles local persistence of the session tokens, widget slug and
display settings.
"""

from .config_manager import ConfigManager, get_config_dir

__all__ = ["ConfigManager", "get_config_dir"]
