"""
Structured logging system for better log analysis and debugging.
Provides JSON-formatted logs of sync events with context and metadata.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from auxbar_sync.models.track import TrackState


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("auxbar_sync", log_dir=Path("logs"))
        logger.info("track_changed", title="Song", artist="Band", playing=True)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"auxbar_sync_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Process context (added to all log entries)
        self._session_context: dict[str, Any] = {
            "run_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set process-level context that appears in all logs."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        """Format message for console output."""
        parts = [f"[{event}]"]
        for key, value in context.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        """Write structured log entry to JSON file."""
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class SyncEventLogger:
    """Specialized logger for sync engine events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def logged_in(self, email: str, forced: bool):
        self.logger.info("session_logged_in", email=email, forced=forced)

    def session_restored(self, ok: bool):
        self.logger.info("session_restored", ok=ok)

    def token_refreshed(self):
        self.logger.debug("session_token_refreshed")

    def refresh_failed(self, reason: str):
        self.logger.warning("session_refresh_failed", reason=reason)

    def logged_out(self, reason: str):
        self.logger.info("session_logged_out", reason=reason)

    def link_state(self, connected: bool):
        self.logger.info("link_connected" if connected else "link_disconnected")

    def track_changed(self, track: Optional[TrackState]):
        """Log a track transition (artwork is omitted)."""
        if track is None:
            self.logger.info("track_idle")
            return
        self.logger.info(
            "track_changed",
            title=track.title,
            artist=track.artist,
            album=track.album,
            playing=track.playing,
            position_ms=track.position_ms,
            duration_ms=track.duration_ms,
            has_art=track.album_art is not None,
        )

    def widget_slug_received(self, widget_slug: str):
        self.logger.debug("widget_slug_received", widget_slug=widget_slug)


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, SyncEventLogger]:
    """
    Create the structured loggers.

    Returns:
        Tuple of (base_logger, sync_logger)
    """
    base = StructuredLogger("auxbar_sync.events", log_dir=log_dir, enable_json=enable_json)
    return base, SyncEventLogger(base)
