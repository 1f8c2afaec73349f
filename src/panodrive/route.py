"""Waypoint sequence and playback cursor."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any

from panodrive import geo
from panodrive.config import PlaybackConfig
from panodrive.models.point import GeoPoint
from panodrive.models.status import RouteSummary

_logger = logging.getLogger(__name__)


def densify(points: list[GeoPoint], spacing_m: float) -> list[GeoPoint]:
    """Insert interpolated points so no segment is longer than *spacing_m*.

    The first and last input points are kept as-is; a segment of length
    ``d > spacing_m`` is split into ``ceil(d / spacing_m)`` equal parts.
    """
    if len(points) < 2:
        return list(points)

    result: list[GeoPoint] = []
    for start, end in zip(points, points[1:]):
        result.append(start)
        d = geo.distance(start, end)
        if d > spacing_m:
            steps = math.ceil(d / spacing_m)
            result.extend(geo.interpolate(start, end, j / steps) for j in range(1, steps))
    result.append(points[-1])
    return result


class RouteManager:
    """Owns the densified waypoint list and a cursor into it.

    A route with fewer than two waypoints is "empty" and not playable.
    The cursor only moves through :meth:`advance`, :meth:`go_back`,
    :meth:`jump_to`, :meth:`jump_to_percent` and :meth:`reset`.

    Usage::

        route = RouteManager()
        route.set_route([GeoPoint(lat=0, lng=0), GeoPoint(lat=0, lng=0.001)])
        while route.advance():
            ...
    """

    def __init__(self, config: PlaybackConfig | None = None) -> None:
        self._config = config or PlaybackConfig()
        self._waypoints: list[GeoPoint] = []
        self._index: int = 0
        self._total_distance: float = 0.0
        self._start: GeoPoint | None = None
        self._end: GeoPoint | None = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def set_route(self, points: Iterable[GeoPoint | Mapping[str, Any] | tuple[float, float]]) -> None:
        """Replace the waypoints, densify them and rewind the cursor."""
        raw = [GeoPoint.coerce(p) for p in points]
        if raw:
            self._start = raw[0]
            self._end = raw[-1]
        self._waypoints = densify(raw, self._config.waypoint_spacing_m)
        self._index = 0
        self._total_distance = geo.route_distance(self._waypoints)
        if self.has_route():
            _logger.info(
                "Route set with %d waypoints, %dm total",
                len(self._waypoints),
                round(self._total_distance),
            )
        else:
            _logger.info("Route set with %d point(s); not playable", len(self._waypoints))

    def build_from_endpoints(self, start: GeoPoint, end: GeoPoint) -> None:
        """Straight densified line from *start* to *end*."""
        self.set_route([start, end])

    def set_polyline(self, encoded: str) -> bool:
        """Decode an encoded polyline and use it as the route.

        Returns ``False`` (and leaves an unplayable route) when the text
        does not decode to at least two points.
        """
        self.set_route(geo.decode_polyline(encoded))
        return self.has_route()

    def set_start_point(self, point: GeoPoint) -> None:
        self._start = point
        _logger.debug("Start point set: %s", point.label())

    def set_end_point(self, point: GeoPoint) -> None:
        self._end = point
        _logger.debug("End point set: %s", point.label())

    def build_route(self) -> bool:
        """Rebuild a two-point route from the start/end markers."""
        if self._start is None or self._end is None:
            _logger.warning("Cannot build route: missing start or end point")
            return False
        self.build_from_endpoints(self._start, self._end)
        return True

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def waypoints(self) -> tuple[GeoPoint, ...]:
        return tuple(self._waypoints)

    @property
    def index(self) -> int:
        return self._index

    @property
    def total_distance(self) -> float:
        return self._total_distance

    @property
    def start_point(self) -> GeoPoint | None:
        return self._start

    @property
    def end_point(self) -> GeoPoint | None:
        return self._end

    def __len__(self) -> int:
        return len(self._waypoints)

    def has_route(self) -> bool:
        return len(self._waypoints) > 1

    def waypoint(self, index: int) -> GeoPoint | None:
        if 0 <= index < len(self._waypoints):
            return self._waypoints[index]
        return None

    def current_waypoint(self) -> GeoPoint | None:
        return self.waypoint(self._index)

    def next_waypoint(self) -> GeoPoint | None:
        return self.waypoint(self._index + 1)

    def heading_to_next(self) -> float:
        current = self.current_waypoint()
        nxt = self.next_waypoint()
        if current is None or nxt is None:
            return 0.0
        return geo.heading(current, nxt)

    def progress_percent(self) -> float:
        if len(self._waypoints) <= 1:
            return 0.0
        return self._index / (len(self._waypoints) - 1) * 100.0

    def distance_traveled(self) -> float:
        upto = min(self._index, len(self._waypoints) - 1)
        return sum(geo.distance(self._waypoints[i], self._waypoints[i + 1]) for i in range(upto))

    def distance_remaining(self) -> float:
        return sum(
            geo.distance(self._waypoints[i], self._waypoints[i + 1])
            for i in range(self._index, len(self._waypoints) - 1)
        )

    def is_complete(self) -> bool:
        return self._index >= len(self._waypoints) - 1

    def closest_index(self, point: GeoPoint) -> int:
        """Index of the waypoint nearest to *point*."""
        return geo.closest_index(point, self._waypoints)

    # ------------------------------------------------------------------
    # Cursor movement
    # ------------------------------------------------------------------

    def advance(self) -> bool:
        if self._index < len(self._waypoints) - 1:
            self._index += 1
            return True
        return False

    def go_back(self) -> bool:
        if self._index > 0:
            self._index -= 1
            return True
        return False

    def jump_to(self, index: float) -> bool:
        """Move the cursor to *index*, clamped into the route.

        Infinities clamp to the ends; NaN leaves the cursor alone.
        Returns whether the cursor moved.
        """
        if not self._waypoints or math.isnan(index):
            return False
        last = len(self._waypoints) - 1
        clamped = 0 if index <= 0 else last if index >= last else int(index)
        moved = clamped != self._index
        self._index = clamped
        return moved

    def jump_to_percent(self, percent: float) -> bool:
        if not self._waypoints or math.isnan(percent):
            return False
        percent = min(100.0, max(0.0, percent))
        return self.jump_to(math.floor(percent / 100.0 * (len(self._waypoints) - 1)))

    def reset(self) -> None:
        self._index = 0

    def clear(self) -> None:
        self._waypoints = []
        self._index = 0
        self._total_distance = 0.0
        self._start = None
        self._end = None

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def summary(self) -> RouteSummary:
        return RouteSummary(
            start_label=self._start.label() if self._start is not None else RouteSummary().start_label,
            end_label=self._end.label() if self._end is not None else RouteSummary().end_label,
            waypoint_count=len(self._waypoints),
            total_distance_meters=round(self._total_distance),
            progress_percent=round(self.progress_percent()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "waypoints": [p.model_dump() for p in self._waypoints],
            "start_point": self._start.model_dump() if self._start is not None else None,
            "end_point": self._end.model_dump() if self._end is not None else None,
            "total_distance": self._total_distance,
        }

    def from_dict(self, data: Mapping[str, Any]) -> bool:
        """Load a route exported with :meth:`to_dict`."""
        waypoints = data.get("waypoints")
        if not waypoints:
            return False
        self.set_route(waypoints)
        return self.has_route()
