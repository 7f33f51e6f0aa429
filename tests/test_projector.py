import pytest

from auxbar_sync.models.config import DisplayConfig
from auxbar_sync.models.track import TrackState
from auxbar_sync.presence.projector import PresenceProjector
from auxbar_sync.presence.render import IDLE_DETAILS

TRACK = TrackState(title="Song", artist="Band", playing=True, position_ms=0, duration_ms=60_000)


@pytest.fixture
async def projector(presence_client):
    projector = PresenceProjector(presence_client, widget_slug="dj")
    await projector.initialize()
    return projector


@pytest.mark.asyncio
async def test_initialize_connects_and_shows_idle(projector, presence_client):
    assert presence_client.connects == 1
    assert presence_client.last.details == IDLE_DETAILS


@pytest.mark.asyncio
async def test_update_shows_track(projector, presence_client):
    await projector.update(TRACK)

    assert presence_client.last.details == "Song"
    assert projector.last_payload == presence_client.last


@pytest.mark.asyncio
async def test_idle_is_idempotent(projector, presence_client):
    await projector.set_idle_presence()
    await projector.set_idle_presence()

    assert all(p.details == IDLE_DETAILS for p in presence_client.payloads)
    assert projector.current_track is None


@pytest.mark.asyncio
async def test_disable_clears_and_suppresses_updates(projector, presence_client):
    await projector.update(TRACK)
    await projector.disable()
    shown = len(presence_client.payloads)

    await projector.update(TRACK.model_copy(update={"title": "Next"}))

    assert presence_client.clears == 1
    assert len(presence_client.payloads) == shown
    assert projector.last_payload is None
    assert projector.current_track.title == "Next"


@pytest.mark.asyncio
async def test_enable_shows_latest_track(presence_client):
    projector = PresenceProjector(presence_client, display=DisplayConfig(enabled=False))

    await projector.initialize()
    await projector.update(TRACK)
    assert presence_client.connects == 0
    assert presence_client.payloads == []

    await projector.enable()

    assert presence_client.connects == 1
    assert presence_client.last.details == "Song"


@pytest.mark.asyncio
async def test_enable_twice_is_noop(projector, presence_client):
    await projector.enable()

    assert presence_client.connects == 1


@pytest.mark.asyncio
async def test_unavailable_client_is_tolerated(presence_client):
    presence_client.available = False
    projector = PresenceProjector(presence_client)

    await projector.initialize()
    await projector.update(TRACK)

    assert presence_client.payloads == []
    assert projector.current_track == TRACK


@pytest.mark.asyncio
async def test_rejected_update_is_logged_not_raised(projector, presence_client):
    presence_client.fail_updates = True

    await projector.update(TRACK)

    assert projector.last_payload.details == IDLE_DETAILS


@pytest.mark.asyncio
async def test_apply_display_config_rerenders_current_track(projector, presence_client):
    await projector.update(TRACK)

    await projector.apply_display_config(DisplayConfig(show_progress=False))

    assert presence_client.last.state == "by Band"


@pytest.mark.asyncio
async def test_apply_display_config_can_disable(projector, presence_client):
    await projector.apply_display_config(DisplayConfig(enabled=False))

    assert not projector.enabled
    assert presence_client.clears == 1


@pytest.mark.asyncio
async def test_close_clears_and_closes_client(projector, presence_client):
    await projector.close()

    assert presence_client.clears == 1
    assert presence_client.closed


@pytest.mark.asyncio
async def test_client_that_comes_up_later_is_connected_on_next_render(presence_client):
    presence_client.available = False
    projector = PresenceProjector(presence_client, reconnect_interval_s=0)
    await projector.initialize()

    presence_client.available = True
    await projector.update(TRACK)

    assert presence_client.connects == 2
    assert presence_client.last.details == "Song"


@pytest.mark.asyncio
async def test_reconnect_attempts_are_spaced_out(presence_client):
    presence_client.available = False
    projector = PresenceProjector(presence_client, reconnect_interval_s=60)
    await projector.initialize()

    presence_client.available = True
    await projector.update(TRACK)
    await projector.set_idle_presence()

    assert presence_client.connects == 1
    assert presence_client.payloads == []


@pytest.mark.asyncio
async def test_dropped_client_is_reconnected(projector, presence_client):
    presence_client.is_ready = False

    await projector.update(TRACK)

    assert presence_client.connects == 2
    assert presence_client.last.details == "Song"
