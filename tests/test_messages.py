import json

import pytest

from auxbar_sync.models.track import TrackState
from auxbar_sync.realtime.messages import encode_idle, encode_track, parse_control


def test_encode_track_uses_wire_names():
    track = TrackState(
        title="Song",
        artist="Band",
        album="Record",
        album_art="data:image/png;base64,AAAA",
        playing=True,
        position_ms=1000,
        duration_ms=180000,
    )

    frame = json.loads(encode_track(track))

    assert frame == {
        "type": "track",
        "data": {
            "title": "Song",
            "artist": "Band",
            "album": "Record",
            "albumArt": "data:image/png;base64,AAAA",
            "playing": True,
            "progress": 1000,
            "duration": 180000,
        },
    }


def test_encode_idle():
    assert json.loads(encode_idle()) == {"type": "idle"}


def test_connected_frame_yields_widget_slug():
    message = parse_control('{"type": "connected", "widgetSlug": "dj-example"}')

    assert message is not None
    assert message.value == "dj-example"


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "[1, 2]",
        '"connected"',
        '{"type": "pong"}',
        '{"type": "connected"}',
        '{"type": "connected", "widgetSlug": ""}',
        '{"type": "connected", "widgetSlug": 42}',
        b'{"type": "connected", "widgetSlug": "dj"}',
    ],
)
def test_unrecognised_frames_are_dropped(raw):
    assert parse_control(raw) is None
