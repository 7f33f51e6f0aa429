import json

import pytest
from rich.text import Text
from typer.testing import CliRunner

from auxbar_sync import __main__ as entry_point
from auxbar_sync.cli import app as cli_app
from auxbar_sync.cli.formatters import format_track_line
from auxbar_sync.exceptions import AuthenticationError, ConfigurationError
from auxbar_sync.models.track import TrackState
from auxbar_sync.storage.config_manager import ConfigManager
from auxbar_sync.utils.structured_logger import create_structured_logger

runner = CliRunner()


@pytest.fixture
def cli_config(monkeypatch, config_path):
    monkeypatch.setattr(cli_app, "CONFIG_FILE", config_path)
    return config_path


def test_display_toggles_are_persisted(cli_config):
    result = runner.invoke(cli_app.app, ["display", "--disable", "--no-button"])

    assert result.exit_code == 0
    display = ConfigManager(cli_config).load().discord
    assert display.enabled is False
    assert display.show_button is False
    assert display.show_album_name is True


def test_logout_keeps_display_settings(cli_config):
    store = ConfigManager(cli_config)
    store.update_tokens("a1", "r1")
    store.update_widget_slug("dj")
    store.update_display_config({"show_progress": False})

    result = runner.invoke(cli_app.app, ["logout"])

    assert result.exit_code == 0
    reloaded = ConfigManager(cli_config).load()
    assert not reloaded.has_tokens
    assert reloaded.widget_slug is None
    assert reloaded.discord.show_progress is False


def test_status_runs_without_config(cli_config):
    result = runner.invoke(cli_app.app, ["status"])

    assert result.exit_code == 0


def test_format_track_line():
    track = TrackState(
        title="Song", artist="Band", playing=False, position_ms=61_000, duration_ms=120_000
    )

    line = format_track_line(track)

    assert "Song" in line
    assert "1:01 / 2:00" in line
    assert "Nothing playing" in format_track_line(None)


def test_structured_logger_writes_json_lines(tmp_path):
    base, events = create_structured_logger(tmp_path, enable_json=True)
    events.track_changed(TrackState(title="Song", artist="Band", playing=True))
    events.track_changed(None)
    base.close()

    (log_file,) = tmp_path.glob("auxbar_sync_*.jsonl")
    entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]

    assert [e["event"] for e in entries] == ["track_changed", "track_idle"]
    assert entries[0]["title"] == "Song"
    assert entries[0]["has_art"] is False


@pytest.mark.parametrize("title", ["Song [live]", "Broken [/x] Title"])
def test_format_track_line_keeps_brackets_in_titles(title):
    track = TrackState(title=title, artist="Band [feat. X]", playing=True)

    plain = Text.from_markup(format_track_line(track)).plain

    assert title in plain
    assert "Band [feat. X]" in plain


@pytest.mark.parametrize(
    "error, code",
    [
        (ConfigurationError("bad server URL"), 2),
        (AuthenticationError("Invalid email or password"), 1),
        (RuntimeError("boom"), 1),
    ],
)
def test_main_maps_errors_to_exit_codes(monkeypatch, error, code):
    def failing_app():
        raise error

    monkeypatch.setattr(entry_point, "app", failing_app)

    with pytest.raises(SystemExit) as exc_info:
        entry_point.main()

    assert exc_info.value.code == code


def test_main_exits_cleanly_on_ctrl_c(monkeypatch):
    def interrupted_app():
        raise KeyboardInterrupt

    monkeypatch.setattr(entry_point, "app", interrupted_app)

    with pytest.raises(SystemExit) as exc_info:
        entry_point.main()

    assert exc_info.value.code == 0
