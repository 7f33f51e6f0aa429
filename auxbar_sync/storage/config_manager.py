"""
Manages loading, saving and migration of the JSON configuration file.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from rich.markup import escape

from auxbar_sync.exceptions import ConfigurationError
from auxbar_sync.models.config import AppConfig, DisplayConfig

log = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """Returns the per-user directory that holds ``config.json``."""
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
        return base_dir.expanduser() / "Auxbar"
    base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "auxbar"


class ConfigManager:
    """
    Handles all operations related to the application's JSON config file.

    Loading never fails: a missing or unreadable file yields the default
    configuration. The loaded document is cached until ``reset()``.
    """

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """
        Loads the configuration, upgrading the legacy token-only format in place.

        Returns:
            The cached AppConfig, or defaults if the file is missing or corrupt.
        """
        if self._config is not None:
            return self._config

        self._config = self._read() or AppConfig()
        return self._config

    def save(self) -> bool:
        """
        Writes the cached configuration to disk.

        Returns:
            True on success. Write failures are logged, not raised.
        """
        config = self.load()
        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as f:
                json.dump(config.to_document(), f, indent=2)
            return True
        except OSError as e:
            log.error(f"Failed to save configuration file: {escape(str(e))}")
            return False

    def update_tokens(self, access_token: str | None, refresh_token: str | None) -> None:
        config = self.load()
        config.access_token = access_token
        config.refresh_token = refresh_token
        self.save()

    def clear_tokens(self) -> None:
        """Forgets the stored tokens but keeps the display settings."""
        self.update_tokens(None, None)

    def update_widget_slug(self, widget_slug: str | None) -> None:
        config = self.load()
        if config.widget_slug == (widget_slug or None):
            return
        config.widget_slug = widget_slug
        self.save()

    def update_display_config(self, settings: DisplayConfig | dict[str, Any]) -> DisplayConfig:
        """
        Replaces the display settings.

        Raises:
            ConfigurationError: If ``settings`` does not validate.
        """
        config = self.load()
        try:
            config.discord = (
                settings
                if isinstance(settings, DisplayConfig)
                else DisplayConfig.model_validate({**config.discord.model_dump(), **settings})
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid display settings:\n{e}") from e
        self.save()
        return config.discord

    def reset(self) -> None:
        """Drops the cached configuration and deletes the file."""
        self._config = None
        try:
            self.config_file_path.unlink(missing_ok=True)
        except OSError as e:
            log.error(f"Could not delete configuration file: {escape(str(e))}")

    def _read(self) -> AppConfig | None:
        if not self.config_file_path.is_file():
            return None

        try:
            with open(self.config_file_path, encoding="utf-8") as f:
                document = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            log.warning(f"[yellow]Ignoring unreadable configuration file: {escape(str(e))}[/yellow]")
            return None

        if not isinstance(document, dict):
            log.warning("[yellow]Ignoring configuration file with unexpected layout.[/yellow]")
            return None

        try:
            config = AppConfig.model_validate(document)
        except ValidationError as e:
            log.warning(f"[yellow]Ignoring invalid configuration file:[/yellow] {escape(str(e))}")
            return None

        if self._is_legacy(document):
            self._config = config
            if self.save():
                log.info("Configuration file was upgraded to the current format.")

        return config

    @staticmethod
    def _is_legacy(document: dict[str, Any]) -> bool:
        """The first releases stored a flat ``{accessToken, refreshToken}`` map."""
        keys = {str(k).lower() for k in document}
        return "discord" not in keys
