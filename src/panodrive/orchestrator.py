"""Playback scheduler tying route, pre-cache and transitions together."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Iterable, Mapping
from typing import Any, Literal

from panodrive import geo
from panodrive._constants import SPEED_ORDER
from panodrive.cache import PrecacheManager
from panodrive.config import PlaybackConfig
from panodrive.events import EventBus, PlaybackEvent, PlaybackEventType
from panodrive.models.point import GeoPoint
from panodrive.models.state import PlaybackState, SpeedProfile
from panodrive.models.status import PlaybackSettings, PlaybackStatus
from panodrive.models.viewer import NavigableLink
from panodrive.route import RouteManager
from panodrive.transition import TransitionEngine
from panodrive.viewer import Overlay, PanoramaViewer

_logger = logging.getLogger(__name__)


class PlaybackOrchestrator:
    """Timed, pausable, skippable playback of a route in a panorama viewer.

    One advance cycle runs per tick: warm the cache ahead, transition to
    the next waypoint, move the cursor only if the transition succeeded,
    then schedule the next tick after the current speed's interval.

    Pausing or stopping cancels only the pending tick; a transition that
    is already running always finishes.

    Usage::

        async with PlaybackOrchestrator(viewer, config=config) as player:
            player.set_route(points)
            player.play()
            await player.wait_idle()
    """

    def __init__(
        self,
        viewer: PanoramaViewer,
        *,
        config: PlaybackConfig | None = None,
        overlay: Overlay | None = None,
        settings: PlaybackSettings | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._viewer = viewer
        self._config = config or PlaybackConfig()
        self._route = RouteManager(self._config)
        self._cache = PrecacheManager(viewer, self._config)
        self._transitions = TransitionEngine(viewer, overlay, config=self._config)
        self._events = events or EventBus()

        self._state = PlaybackState.STOPPED
        self._speed = SpeedProfile(self._config.default_speed)
        self._auto_heading = self._config.auto_heading
        self._tick_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        # Bumped on every play/stop so cycles from an earlier run go quiet.
        self._generation = 0

        if settings is not None:
            self._apply_settings(settings)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PlaybackOrchestrator:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop scheduling, let running transitions finish, drop pending fetches."""
        self._generation += 1
        self._state = PlaybackState.STOPPED
        self._cancel_tick()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._cache.close()

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def speed(self) -> SpeedProfile:
        return self._speed

    @property
    def route(self) -> RouteManager:
        return self._route

    @property
    def cache(self) -> PrecacheManager:
        return self._cache

    @property
    def transitions(self) -> TransitionEngine:
        return self._transitions

    @property
    def events(self) -> EventBus:
        return self._events

    def get_status(self) -> PlaybackStatus:
        return PlaybackStatus(
            playing=self._state is PlaybackState.PLAYING,
            paused=self._state is PlaybackState.PAUSED,
            progress_percent=self._route.progress_percent(),
            has_route=self._route.has_route(),
            speed=self._speed,
            route_summary=self._route.summary(),
        )

    def settings(self) -> PlaybackSettings:
        """Current values of every persisted setting."""
        return PlaybackSettings(
            enabled=self._transitions.enabled,
            transition_duration_ms=self._transitions.duration_ms,
            auto_heading=self._auto_heading,
            speed=self._speed,
        )

    # ------------------------------------------------------------------
    # Route setup
    # ------------------------------------------------------------------

    def set_route(self, points: Iterable[GeoPoint | Mapping[str, Any] | tuple[float, float]]) -> bool:
        """Replace the route; playback stops and the cache starts over."""
        self._halt()
        self._route.set_route(points)
        self._cache.clear()
        self._publish(PlaybackEventType.STATUS)
        return self._route.has_route()

    def build_from_endpoints(self, start: GeoPoint, end: GeoPoint) -> bool:
        return self.set_route([start, end])

    def set_polyline(self, encoded: str) -> bool:
        self._halt()
        ok = self._route.set_polyline(encoded)
        self._cache.clear()
        self._publish(PlaybackEventType.STATUS)
        return ok

    async def set_point_from_viewer(self, kind: Literal["start", "end"]) -> bool:
        """Use the viewer's current position as the start or end marker.

        Rebuilds the straight route once both markers exist.
        """
        position = await self._viewer.get_position()
        if position is None:
            _logger.warning("Could not read viewer position for %s point", kind)
            return False
        if kind == "start":
            self._route.set_start_point(position)
        else:
            self._route.set_end_point(position)
        if self._route.start_point is None or self._route.end_point is None:
            return True
        self._halt()
        built = self._route.build_route()
        self._cache.clear()
        self._publish(PlaybackEventType.STATUS)
        return built

    # ------------------------------------------------------------------
    # Transport controls
    # ------------------------------------------------------------------

    def play(self) -> bool:
        """Start or resume playback and run the first cycle right away.

        Returns ``False`` when already playing or when the route is not
        playable. A cursor parked on the last waypoint starts over from
        the beginning.
        """
        if self._state is PlaybackState.PLAYING:
            return False
        if not self._route.has_route():
            _logger.warning("No playable route set")
            return False
        if self._route.is_complete():
            self._route.reset()

        _logger.info("Starting playback at %.0f%%", self._route.progress_percent())
        self._state = PlaybackState.PLAYING
        self._generation += 1
        self._publish(PlaybackEventType.STATUS)
        self._spawn(self._advance(self._generation))
        return True

    def pause(self) -> bool:
        if self._state is not PlaybackState.PLAYING:
            return False
        _logger.info("Paused")
        self._state = PlaybackState.PAUSED
        self._cancel_tick()
        self._publish(PlaybackEventType.STATUS)
        return True

    def stop(self) -> None:
        _logger.info("Stopped")
        self._halt()
        self._route.reset()
        self._publish(PlaybackEventType.STATUS)

    def skip(self, frames: int) -> bool:
        """Move the cursor by *frames* (clamped) and show the new position.

        Playback state is left alone. The visual move is best effort: if a
        transition is already running it is rejected and the next regular
        tick brings the view back in line with the cursor.
        """
        if not self._route.has_route():
            return False
        self._route.jump_to(self._route.index + frames)
        waypoint = self._route.current_waypoint()
        if waypoint is None:
            return False
        heading = self._route.heading_to_next() if self._auto_heading else None
        self._spawn(self._show_waypoint(waypoint, heading))
        self._publish(PlaybackEventType.PROGRESS)
        return True

    def set_speed(self, name: str) -> None:
        """Select a speed profile; it applies from the next scheduled tick."""
        self._speed = SpeedProfile(name)
        self._publish(PlaybackEventType.SETTINGS)

    def speed_up(self) -> bool:
        index = SPEED_ORDER.index(self._speed)
        if index >= len(SPEED_ORDER) - 1:
            return False
        self.set_speed(SPEED_ORDER[index + 1])
        return True

    def slow_down(self) -> bool:
        index = SPEED_ORDER.index(self._speed)
        if index <= 0:
            return False
        self.set_speed(SPEED_ORDER[index - 1])
        return True

    def update_settings(self, settings: PlaybackSettings | None = None, **changes: Any) -> PlaybackSettings:
        """Apply a partial settings update and publish the result.

        Accepts a :class:`PlaybackSettings` or its fields as keywords.
        """
        update = settings if settings is not None else PlaybackSettings.model_validate(changes)
        self._apply_settings(update)
        self._publish(PlaybackEventType.SETTINGS)
        return self.settings()

    async def link_toward_next(self) -> NavigableLink | None:
        """Navigable link of the current view that points closest to the next waypoint.

        Viewers that can only move by following links use this to step
        along the route. Returns ``None`` without a route, without links,
        or when the viewer cannot list its links.
        """
        if self._route.next_waypoint() is None:
            return None
        try:
            links = await self._viewer.get_navigable_links()
        except Exception:
            _logger.debug("Could not read navigable links", exc_info=True)
            return None
        return geo.closest_link(links, self._route.heading_to_next())

    async def wait_idle(self) -> None:
        """Wait until no tick is pending and no cycle, skip or fetch is running."""
        await self._idle.wait()
        await self._cache.wait_idle()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _advance(self, generation: int) -> None:
        if self._state is not PlaybackState.PLAYING or generation != self._generation:
            return

        target = self._route.next_waypoint()
        if target is None:
            self._finish()
            return

        from_index = self._route.index
        self._cache.warm(self._route.waypoints, from_index)
        heading = self._route.heading_to_next() if self._auto_heading else None

        success = await self._transitions.transition_to(target, heading)

        still_current = self._state is PlaybackState.PLAYING and generation == self._generation
        if success and still_current and self._route.index == from_index:
            self._route.advance()
            _logger.debug("Advanced to waypoint %d/%d", self._route.index, len(self._route) - 1)
            self._publish(PlaybackEventType.PROGRESS)

        if still_current:
            self._schedule_next(generation)

    def _finish(self) -> None:
        """Stop at the end of the route.

        ``COMPLETE`` still reports the final progress; the cursor is then
        rewound like :meth:`stop` does.
        """
        _logger.info("Route complete")
        self._halt()
        self._publish(PlaybackEventType.COMPLETE)
        self._route.reset()
        self._publish(PlaybackEventType.STATUS)

    async def _show_waypoint(self, waypoint: GeoPoint, heading: float | None) -> None:
        if not await self._transitions.transition_to(waypoint, heading):
            _logger.debug("Skip to %s not shown; waiting for the next tick", waypoint.cache_key)

    def _schedule_next(self, generation: int) -> None:
        self._cancel_tick()
        interval_ms = self._config.interval_ms(self._speed)
        loop = asyncio.get_running_loop()
        self._tick_handle = loop.call_later(interval_ms / 1000.0, self._on_tick, generation)
        self._refresh_idle()

    def _on_tick(self, generation: int) -> None:
        self._tick_handle = None
        self._spawn(self._advance(generation))

    def _cancel_tick(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        self._refresh_idle()

    def _halt(self) -> None:
        self._generation += 1
        self._state = PlaybackState.STOPPED
        self._cancel_tick()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        self._refresh_idle()

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            _logger.warning("Playback task failed", exc_info=task.exception())
        self._refresh_idle()

    def _refresh_idle(self) -> None:
        if self._tasks or self._tick_handle is not None:
            self._idle.clear()
        else:
            self._idle.set()

    def _apply_settings(self, settings: PlaybackSettings) -> None:
        self._transitions.update_settings(
            enabled=settings.enabled,
            duration_ms=settings.transition_duration_ms,
        )
        if settings.auto_heading is not None:
            self._auto_heading = settings.auto_heading
        if settings.speed is not None:
            self._speed = settings.speed

    def _publish(self, event_type: PlaybackEventType) -> None:
        event = PlaybackEvent(
            type=event_type,
            status=self.get_status(),
            settings=self.settings() if event_type is PlaybackEventType.SETTINGS else None,
        )
        self._events.publish(event)
