import pytest

from auxbar_sync.events import TrackChanged
from auxbar_sync.media.poller import ChangeDetector, MediaPoller
from auxbar_sync.media.sources import MediaSample, StaticMediaSource
from auxbar_sync.models.settings import SyncSettings


def _sample(title="Song", artist="Band", playing=True, position_ms=0, duration_ms=200_000):
    return MediaSample(
        title=title,
        artist=artist,
        album="Record",
        playing=playing,
        position_ms=position_ms,
        duration_ms=duration_ms,
    )


@pytest.fixture
def poller_setup():
    events = []
    source = StaticMediaSource(artwork="data:image/png;base64,AAAA")
    poller = MediaPoller(source, SyncSettings(), events.append)
    return poller, source, events


@pytest.mark.parametrize(
    "last, current, playing, drifted",
    [
        (10_000, 11_000, True, False),
        (10_000, 10_000, True, False),
        (10_000, 14_001, True, True),
        (10_000, 9_500, True, False),
        (10_000, 30_000, True, True),
        (10_000, 1_000, True, True),
        (10_000, 60_000, False, False),
        (None, None, True, False),
        (None, 5_000, True, True),
        (5_000, None, True, True),
        (None, 5_000, False, False),
    ],
)
def test_drift_rule(last, current, playing, drifted):
    assert ChangeDetector().has_drifted(last, current, playing) is drifted


@pytest.mark.asyncio
async def test_first_sample_is_emitted_with_artwork(poller_setup):
    poller, source, events = poller_setup
    source.push(_sample())

    event = await poller.poll_once()

    assert isinstance(event, TrackChanged)
    assert events == [event]
    assert event.track.title == "Song"
    assert event.track.album_art == "data:image/png;base64,AAAA"
    assert poller.current_track == event.track


@pytest.mark.asyncio
async def test_steady_playback_emits_once(poller_setup):
    poller, source, events = poller_setup
    for second in range(6):
        source.push(_sample(position_ms=second * 1000))

    for _ in range(6):
        await poller.poll_once()

    assert len(events) == 1


@pytest.mark.asyncio
async def test_seek_is_a_change(poller_setup):
    poller, source, events = poller_setup
    source.push(_sample(position_ms=10_000))
    source.push(_sample(position_ms=11_000))
    source.push(_sample(position_ms=90_000))

    for _ in range(3):
        await poller.poll_once()

    assert len(events) == 2
    assert events[-1].track.position_ms == 90_000


@pytest.mark.asyncio
async def test_pause_and_resume_are_changes(poller_setup):
    poller, source, events = poller_setup
    source.push(_sample(position_ms=10_000))
    source.push(_sample(playing=False, position_ms=10_500))
    source.push(_sample(playing=False, position_ms=10_500))
    source.push(_sample(playing=True, position_ms=10_500))

    for _ in range(4):
        await poller.poll_once()

    assert [e.track.playing for e in events] == [True, False, True]


@pytest.mark.asyncio
async def test_paused_position_jump_is_ignored(poller_setup):
    poller, source, events = poller_setup
    source.push(_sample(playing=False, position_ms=10_000))
    source.push(_sample(playing=False, position_ms=95_000))

    await poller.poll_once()
    await poller.poll_once()

    assert len(events) == 1


@pytest.mark.asyncio
async def test_new_track_is_a_change_and_rereads_artwork(poller_setup):
    poller, source, events = poller_setup
    source.push(_sample(position_ms=0))
    source.push(_sample(position_ms=1000))
    source.push(_sample(title="Other", position_ms=0))

    for _ in range(3):
        await poller.poll_once()

    assert [e.track.title for e in events] == ["Song", "Other"]
    assert source.artwork_reads == 2


@pytest.mark.asyncio
async def test_idle_edge_is_emitted_once(poller_setup):
    poller, source, events = poller_setup
    source.push(_sample())
    source.push(None)
    source.push(None)

    for _ in range(3):
        await poller.poll_once()

    assert len(events) == 2
    assert events[-1].track is None
    assert poller.current_track is None


@pytest.mark.asyncio
async def test_no_media_from_the_start_emits_nothing(poller_setup):
    poller, source, events = poller_setup
    source.push(None)

    assert await poller.poll_once() is None
    assert events == []


@pytest.mark.asyncio
async def test_artwork_failure_still_emits_track(poller_setup):
    poller, source, events = poller_setup
    source.artwork_error = OSError("thumbnail stream closed")
    source.push(_sample())

    await poller.poll_once()

    assert len(events) == 1
    assert events[0].track.album_art is None


@pytest.mark.asyncio
async def test_reset_reports_the_same_track_again(poller_setup):
    poller, source, events = poller_setup
    source.push(_sample(position_ms=0))
    await poller.poll_once()

    poller.reset()
    source.push(_sample(position_ms=1000))
    await poller.poll_once()

    assert len(events) == 2


@pytest.mark.asyncio
async def test_background_loop_samples_until_stopped(wait_until):
    events = []
    source = StaticMediaSource([_sample()])
    poller = MediaPoller(source, SyncSettings(poll_interval_s=0.01), events.append)

    poller.start()
    await wait_until(lambda: len(events) == 1)
    assert poller.is_running

    await poller.stop()
    assert not poller.is_running
