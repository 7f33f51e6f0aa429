import json

import pytest

from auxbar_sync.exceptions import ConfigurationError
from auxbar_sync.models.config import AppConfig, DisplayConfig
from auxbar_sync.storage.config_manager import ConfigManager


def _write(path, document):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document), encoding="utf-8")


def test_missing_file_yields_defaults(store):
    config = store.load()

    assert config.access_token is None
    assert config.widget_slug is None
    assert config.discord == DisplayConfig()
    assert not config.has_tokens


def test_legacy_flat_document_is_upgraded_in_place(config_path):
    _write(config_path, {"AccessToken": "a1", "RefreshToken": "r1"})

    config = ConfigManager(config_path).load()

    assert config.access_token == "a1"
    assert config.refresh_token == "r1"
    assert config.discord.enabled is True

    on_disk = json.loads(config_path.read_text(encoding="utf-8"))
    assert on_disk["accessToken"] == "a1"
    assert on_disk["discord"] == {
        "enabled": True,
        "showAlbumName": True,
        "showPlaybackProgress": True,
        "showButton": True,
    }


def test_current_document_keys_are_case_insensitive(config_path):
    _write(
        config_path,
        {
            "accesstoken": "a1",
            "refreshToken": "r1",
            "WidgetSlug": "dj",
            "Discord": {"Enabled": False, "showbutton": False},
        },
    )

    config = ConfigManager(config_path).load()

    assert config.widget_slug == "dj"
    assert config.discord.enabled is False
    assert config.discord.show_button is False
    assert config.discord.show_album_name is True


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", '{"discord": 5}'])
def test_unreadable_document_falls_back_to_defaults(config_path, content):
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(content, encoding="utf-8")

    config = ConfigManager(config_path).load()

    assert config == AppConfig()


def test_clear_tokens_keeps_display_settings(store, config_path):
    store.update_tokens("a1", "r1")
    store.update_display_config({"show_progress": False})

    store.clear_tokens()

    reloaded = ConfigManager(config_path).load()
    assert not reloaded.has_tokens
    assert reloaded.discord.show_progress is False


def test_update_widget_slug_persists(store, config_path):
    store.update_widget_slug("dj-example")
    assert ConfigManager(config_path).load().widget_slug == "dj-example"

    store.update_widget_slug(None)
    assert ConfigManager(config_path).load().widget_slug is None


def test_update_display_config_merges_partial_changes(store):
    display = store.update_display_config({"enabled": False})

    assert display.enabled is False
    assert display.show_button is True
    assert store.load().discord.enabled is False


def test_update_display_config_rejects_invalid_values(store):
    with pytest.raises(ConfigurationError):
        store.update_display_config({"enabled": "sometimes"})

    assert store.load().discord.enabled is True


def test_reset_deletes_file(store, config_path):
    store.update_tokens("a1", "r1")
    assert config_path.is_file()

    store.reset()

    assert not config_path.exists()
    assert store.load() == AppConfig()


def test_assignment_keeps_every_field_readable():
    config = AppConfig(accessToken="a1", refreshToken="r1", widgetSlug="dj")

    config.access_token = "a2"

    assert config.access_token == "a2"
    assert config.refresh_token == "r1"
    assert config.widget_slug == "dj"
    assert config.discord.enabled is True
    assert config.to_document()["accessToken"] == "a2"

    config.discord.show_progress = False
    assert config.discord.show_album_name is True
    assert config.discord.show_progress is False


def test_tokens_then_slug_round_trip_through_store(store):
    store.update_tokens("a1", "r1")
    store.update_widget_slug("dj")
    store.update_tokens("a2", "r2")

    config = store.load()
    assert (config.access_token, config.refresh_token, config.widget_slug) == ("a2", "r2", "dj")
