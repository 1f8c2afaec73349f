"""End-to-end playback tests against the simulated viewer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest
from pydantic import ValidationError

from panodrive import (
    GeoPoint,
    NavigableLink,
    PlaybackConfig,
    PlaybackEvent,
    PlaybackEventType,
    PlaybackOrchestrator,
    PlaybackSettings,
    PlaybackState,
    SimulatedViewer,
    SpeedProfile,
)

START = GeoPoint(lat=0.0, lng=0.0)
# About 111 m north: 7 waypoints at the default spacing.
END = GeoPoint(lat=0.001, lng=0.0)
# asyncio may run a timer up to one clock resolution early.
_CLOCK_SLACK_S = 0.005


@pytest.fixture
def config() -> PlaybackConfig:
    return PlaybackConfig(
        overlay_settle_ms=0,
        render_settle_ms=0,
        transition_duration_ms=0,
        load_timeout_ms=50,
        default_speed="flying",
        speed_intervals_ms={"walking": 200, "cycling": 20, "driving": 5, "flying": 2},
    )


@pytest.fixture
def viewer() -> SimulatedViewer:
    return SimulatedViewer(position=START)


@pytest.fixture
def events() -> list[PlaybackEvent]:
    return []


@pytest.fixture
def player(viewer: SimulatedViewer, config: PlaybackConfig, events: list[PlaybackEvent]) -> PlaybackOrchestrator:
    orchestrator = PlaybackOrchestrator(viewer, config=config)
    orchestrator.events.subscribe(events.append)
    return orchestrator


async def _until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


def _types(events: list[PlaybackEvent]) -> list[PlaybackEventType]:
    return [event.type for event in events]


# ------------------------------------------------------------------
# Route setup
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_play_without_route_is_noop(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    assert not player.play()
    assert player.state is PlaybackState.STOPPED
    await player.wait_idle()
    assert viewer.calls == []


@pytest.mark.asyncio
async def test_single_point_route_not_playable(player: PlaybackOrchestrator) -> None:
    assert not player.set_route([START])
    assert not player.play()
    assert not player.get_status().has_route


@pytest.mark.asyncio
async def test_set_route_publishes_status(player: PlaybackOrchestrator, events: list[PlaybackEvent]) -> None:
    assert player.build_from_endpoints(START, END)
    assert _types(events) == [PlaybackEventType.STATUS]
    assert events[0].status.has_route
    assert events[0].status.route_summary.waypoint_count == 7


@pytest.mark.asyncio
async def test_polyline_route(player: PlaybackOrchestrator) -> None:
    assert player.set_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")
    assert not player.set_polyline("_p~iF~ps|U_")
    assert not player.get_status().has_route


@pytest.mark.asyncio
async def test_route_from_viewer_positions(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    assert await player.set_point_from_viewer("start")
    assert not player.route.has_route()

    viewer.position = END
    assert await player.set_point_from_viewer("end")
    assert player.route.has_route()
    assert player.route.start_point == START
    assert player.route.end_point == END


@pytest.mark.asyncio
async def test_route_from_viewer_without_position(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    viewer.position = None
    assert not await player.set_point_from_viewer("start")


# ------------------------------------------------------------------
# Playback
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_plays_route_to_completion(
    player: PlaybackOrchestrator, viewer: SimulatedViewer, events: list[PlaybackEvent]
) -> None:
    player.build_from_endpoints(START, END)
    waypoints = player.route.waypoints

    assert player.play()
    await _until(lambda: player.state is PlaybackState.STOPPED)
    await player.wait_idle()

    # Finishing stops playback like stop() does: the cursor is rewound.
    assert player.route.index == 0
    assert player.get_status().progress_percent == 0.0
    assert viewer.position == END
    visited = [arg for op, arg in viewer.calls if op == "set_position"]
    assert visited == list(waypoints[1:])

    types = _types(events)
    assert types.count(PlaybackEventType.PROGRESS) == len(waypoints) - 1
    assert types.count(PlaybackEventType.COMPLETE) == 1
    assert types[-2:] == [PlaybackEventType.COMPLETE, PlaybackEventType.STATUS]
    complete, final = events[-2:]
    assert complete.status.progress_percent == 100.0
    assert not complete.status.playing
    assert final.status.progress_percent == 0.0
    assert player.cache.stats().cached_count > 0


@pytest.mark.asyncio
async def test_progress_events_are_monotonic(player: PlaybackOrchestrator, events: list[PlaybackEvent]) -> None:
    player.build_from_endpoints(START, END)
    player.play()
    await _until(lambda: player.state is PlaybackState.STOPPED)
    await player.wait_idle()

    progress = [e.status.progress_percent for e in events if e.type is PlaybackEventType.PROGRESS]
    assert progress == sorted(progress)


@pytest.mark.asyncio
async def test_play_twice_rejected(player: PlaybackOrchestrator) -> None:
    player.build_from_endpoints(START, END)
    assert player.play()
    assert not player.play()
    player.stop()
    await player.wait_idle()


@pytest.mark.asyncio
async def test_play_after_completion_starts_over(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    player.build_from_endpoints(START, END)
    player.play()
    await _until(lambda: player.state is PlaybackState.STOPPED)
    await player.wait_idle()
    assert player.route.index == 0

    viewer.calls.clear()
    assert player.play()
    await _until(lambda: player.state is PlaybackState.STOPPED)
    await player.wait_idle()

    visited = [arg for op, arg in viewer.calls if op == "set_position"]
    assert visited == list(player.route.waypoints[1:])


@pytest.mark.asyncio
async def test_play_from_last_waypoint_starts_over(player: PlaybackOrchestrator) -> None:
    player.build_from_endpoints(START, END)
    player.route.jump_to(len(player.route) - 1)

    assert player.play()
    assert player.route.index == 0
    player.stop()
    await player.wait_idle()


@pytest.mark.asyncio
async def test_pause_before_first_cycle_moves_nothing(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    player.build_from_endpoints(START, END)
    player.play()
    assert player.pause()
    await player.wait_idle()

    assert player.state is PlaybackState.PAUSED
    assert player.route.index == 0
    assert not any(op == "set_position" for op, _ in viewer.calls)


@pytest.mark.asyncio
async def test_pause_lets_running_transition_finish(
    player: PlaybackOrchestrator, viewer: SimulatedViewer
) -> None:
    viewer.load_latency_s = 0.02
    player.build_from_endpoints(START, END)
    player.play()
    await _until(lambda: any(op == "set_position" for op, _ in viewer.calls))

    assert player.pause()
    await player.wait_idle()

    # The jump completed and the overlay is gone, but the cursor stays put.
    assert viewer.position == player.route.waypoint(1)
    assert not player.transitions.overlay.visible  # type: ignore[attr-defined]
    assert not player.transitions.is_busy()
    assert player.route.index == 0

    moves = len([op for op, _ in viewer.calls if op == "set_position"])
    await asyncio.sleep(0.02)
    assert len([op for op, _ in viewer.calls if op == "set_position"]) == moves


@pytest.mark.asyncio
async def test_resume_after_pause(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    player.set_speed("walking")
    player.build_from_endpoints(START, END)
    player.play()
    await _until(lambda: player.route.index == 1)
    player.pause()
    await player.wait_idle()

    assert not player.pause()
    player.set_speed("flying")
    assert player.play()
    await _until(lambda: player.state is PlaybackState.STOPPED)
    await player.wait_idle()
    assert viewer.position == END
    assert player.route.index == 0


@pytest.mark.asyncio
async def test_stop_rewinds(player: PlaybackOrchestrator) -> None:
    player.set_speed("walking")
    player.build_from_endpoints(START, END)
    player.play()
    await _until(lambda: player.route.index >= 1)

    player.stop()
    await player.wait_idle()

    assert player.state is PlaybackState.STOPPED
    assert player.route.index == 0
    assert player.get_status().progress_percent == 0.0


@pytest.mark.asyncio
async def test_failed_transition_does_not_advance(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    viewer.set_position_fails = True
    player.set_speed("cycling")
    player.build_from_endpoints(START, END)
    player.play()
    await _until(lambda: len([op for op, _ in viewer.calls if op == "set_position"]) >= 2)

    # Still playing, still retrying the same waypoint.
    assert player.state is PlaybackState.PLAYING
    assert player.route.index == 0

    viewer.set_position_fails = False
    await _until(lambda: player.route.index >= 1)
    player.stop()
    await player.wait_idle()


@pytest.mark.asyncio
async def test_set_route_while_playing_stops_and_clears_cache(player: PlaybackOrchestrator) -> None:
    player.set_speed("walking")
    player.build_from_endpoints(START, END)
    player.play()
    await _until(lambda: player.route.index == 1)

    player.set_route([END, START])
    assert player.state is PlaybackState.STOPPED
    assert player.route.index == 0
    assert player.cache.stats().cached_count == 0
    await player.wait_idle()


# ------------------------------------------------------------------
# Skip
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_skip_while_stopped(
    player: PlaybackOrchestrator, viewer: SimulatedViewer, events: list[PlaybackEvent]
) -> None:
    player.build_from_endpoints(START, END)

    assert player.skip(1)
    await player.wait_idle()

    assert player.route.index == 1
    assert player.state is PlaybackState.STOPPED
    assert viewer.position == player.route.waypoint(1)
    assert events[-1].type is PlaybackEventType.PROGRESS


@pytest.mark.asyncio
async def test_skip_clamps(player: PlaybackOrchestrator) -> None:
    player.build_from_endpoints(START, END)
    player.skip(100)
    assert player.route.index == 6
    player.skip(-100)
    assert player.route.index == 0
    await player.wait_idle()


@pytest.mark.asyncio
async def test_skip_without_route(player: PlaybackOrchestrator) -> None:
    assert not player.skip(1)


# ------------------------------------------------------------------
# Speed and settings
# ------------------------------------------------------------------


def _record_progress(player: PlaybackOrchestrator) -> list[float]:
    loop = asyncio.get_running_loop()
    ticks: list[float] = []

    def _on_event(event: PlaybackEvent) -> None:
        if event.type is PlaybackEventType.PROGRESS:
            ticks.append(loop.time())

    player.events.subscribe(_on_event)
    return ticks


@pytest.mark.asyncio
async def test_ticks_spaced_by_speed_interval(player: PlaybackOrchestrator, config: PlaybackConfig) -> None:
    ticks = _record_progress(player)
    player.set_speed("cycling")
    player.build_from_endpoints(START, END)

    player.play()
    await _until(lambda: player.state is PlaybackState.STOPPED)
    await player.wait_idle()

    interval = config.interval_ms("cycling") / 1000.0
    assert len(ticks) == len(player.route) - 1
    gaps = [later - earlier for earlier, later in zip(ticks, ticks[1:])]
    assert all(gap >= interval - _CLOCK_SLACK_S for gap in gaps)
    assert ticks[-1] - ticks[0] >= (len(ticks) - 1) * interval - _CLOCK_SLACK_S


@pytest.mark.asyncio
async def test_speed_change_applies_from_next_tick(player: PlaybackOrchestrator, config: PlaybackConfig) -> None:
    ticks = _record_progress(player)
    player.set_speed("walking")
    player.build_from_endpoints(START, END)

    player.play()
    await _until(lambda: len(ticks) == 1)
    # The walking tick is already pending; flying only applies after it.
    player.speed_up()
    player.set_speed("flying")
    await _until(lambda: player.state is PlaybackState.STOPPED)
    await player.wait_idle()

    walking = config.interval_ms("walking") / 1000.0
    assert ticks[1] - ticks[0] >= walking - _CLOCK_SLACK_S
    following = [later - earlier for earlier, later in zip(ticks[1:], ticks[2:])]
    assert following
    assert max(following) < walking / 2


@pytest.mark.asyncio
async def test_speed_bounds(player: PlaybackOrchestrator) -> None:
    assert player.speed is SpeedProfile.FLYING
    assert not player.speed_up()

    assert player.slow_down()
    assert player.slow_down()
    assert player.slow_down()
    assert player.speed is SpeedProfile.WALKING
    assert not player.slow_down()

    assert player.speed_up()
    assert player.speed is SpeedProfile.CYCLING


@pytest.mark.asyncio
async def test_unknown_speed_rejected(player: PlaybackOrchestrator) -> None:
    with pytest.raises(ValueError):
        player.set_speed("warp")
    assert player.speed is SpeedProfile.FLYING


@pytest.mark.asyncio
async def test_update_settings(player: PlaybackOrchestrator, events: list[PlaybackEvent]) -> None:
    current = player.update_settings(enabled=False, transition_duration_ms=450, speed="walking")

    assert current.enabled is False
    assert current.transition_duration_ms == 450
    assert current.auto_heading is True
    assert current.speed is SpeedProfile.WALKING
    assert player.transitions.duration_ms == 450
    assert not player.transitions.enabled

    assert events[-1].type is PlaybackEventType.SETTINGS
    assert events[-1].settings == current


@pytest.mark.asyncio
async def test_update_settings_rejects_unknown_fields(player: PlaybackOrchestrator) -> None:
    with pytest.raises(ValidationError):
        player.update_settings(volume=11)


@pytest.mark.asyncio
async def test_initial_settings(viewer: SimulatedViewer, config: PlaybackConfig) -> None:
    player = PlaybackOrchestrator(
        viewer,
        config=config,
        settings=PlaybackSettings(auto_heading=False, speed=SpeedProfile.DRIVING),
    )
    assert player.speed is SpeedProfile.DRIVING
    assert player.settings().auto_heading is False

    player.build_from_endpoints(START, END)
    player.skip(1)
    await player.wait_idle()
    assert not any(op == "set_point_of_view" for op, _ in viewer.calls)


@pytest.mark.asyncio
async def test_auto_heading_faces_next_waypoint(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    player.build_from_endpoints(START, END)
    player.skip(1)
    await player.wait_idle()
    assert viewer.pov.heading == pytest.approx(0.0, abs=1e-6)


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_stop_playback(
    player: PlaybackOrchestrator, viewer: SimulatedViewer
) -> None:
    def broken(_event: PlaybackEvent) -> None:
        raise RuntimeError("boom")

    player.events.subscribe(broken)
    player.build_from_endpoints(START, END)
    player.play()
    await _until(lambda: player.state is PlaybackState.STOPPED)
    await player.wait_idle()
    assert viewer.position == END


# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_context_manager_closes(viewer: SimulatedViewer, config: PlaybackConfig) -> None:
    viewer.tile_latency_s = 5.0
    async with PlaybackOrchestrator(viewer, config=config) as player:
        player.set_speed("walking")
        player.build_from_endpoints(START, END)
        player.play()
        await _until(lambda: player.route.index == 1)

    assert player.state is PlaybackState.STOPPED
    assert player.cache.stats().loading_count == 0


# ------------------------------------------------------------------
# Navigable links
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_link_toward_next_waypoint(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    viewer.links = [NavigableLink(heading=90, identifier="east"), NavigableLink(heading=350, identifier="north")]
    assert await player.link_toward_next() is None

    player.build_from_endpoints(START, END)
    link = await player.link_toward_next()
    assert link is not None
    assert link.identifier == "north"

    viewer.links = []
    assert await player.link_toward_next() is None


@pytest.mark.asyncio
async def test_link_toward_next_at_route_end(player: PlaybackOrchestrator, viewer: SimulatedViewer) -> None:
    viewer.links = [NavigableLink(heading=0, identifier="north")]
    player.build_from_endpoints(START, END)
    player.route.jump_to(len(player.route) - 1)
    assert await player.link_toward_next() is None
