"""Pure geographic helpers.

No state and no I/O: distances, bearings, interpolation, heading
arithmetic and polyline decoding. Interpolation is linear in lat/lng
space, which is accurate enough at the short segment lengths used for
playback.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import polyline

from panodrive._constants import EARTH_RADIUS_M, POLYLINE_PRECISION
from panodrive.models.point import GeoPoint
from panodrive.models.viewer import NavigableLink

_logger = logging.getLogger(__name__)

# Polyline characters are the 6-bit chunks offset by 63, so anything
# outside '?'..'~' cannot come from a valid encoder.
_POLYLINE_MIN_CHAR = 63
_POLYLINE_MAX_CHAR = 126


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between *a* and *b* in metres (haversine)."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def heading(a: GeoPoint, b: GeoPoint) -> float:
    """Initial bearing from *a* to *b* in degrees within ``[0, 360)``."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lng = math.radians(b.lng - a.lng)
    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    bearing = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # (-tiny + 360) % 360 can round to exactly 360.0
    return 0.0 if bearing >= 360.0 else bearing


def interpolate(a: GeoPoint, b: GeoPoint, t: float) -> GeoPoint:
    """Linear interpolation between *a* and *b* for ``t`` in ``[0, 1]``."""
    return GeoPoint(
        lat=a.lat + (b.lat - a.lat) * t,
        lng=a.lng + (b.lng - a.lng) * t,
    )


def normalize_heading_diff(start: float, end: float) -> float:
    """Shortest signed turn from *start* to *end* in degrees, ``[-180, 180]``.

    ``normalize_heading_diff(350, 10) == 20`` and
    ``normalize_heading_diff(10, 350) == -20``.
    """
    diff = (end - start) % 360.0
    if diff > 180.0:
        diff -= 360.0
    return diff


def interpolate_heading(start: float, end: float, t: float) -> float:
    """Heading a fraction *t* of the way along the shortest turn."""
    return (start + normalize_heading_diff(start, end) * t) % 360.0


def ease_out_cubic(t: float) -> float:
    t = min(max(t, 0.0), 1.0)
    return 1.0 - (1.0 - t) ** 3


def route_distance(points: Sequence[GeoPoint]) -> float:
    """Sum of segment distances along *points*."""
    return sum(distance(points[i], points[i + 1]) for i in range(len(points) - 1))


def closest_index(point: GeoPoint, points: Sequence[GeoPoint]) -> int:
    """Index of the element of *points* nearest to *point* (0 when empty)."""
    best_index = 0
    best_distance = math.inf
    for index, candidate in enumerate(points):
        d = distance(point, candidate)
        if d < best_distance:
            best_distance = d
            best_index = index
    return best_index


def closest_link(links: Sequence[NavigableLink], target_heading: float) -> NavigableLink | None:
    """Pick the navigable link pointing closest to *target_heading*.

    Ties resolve to the earliest link; ``None`` when there are no links.
    """
    best: NavigableLink | None = None
    best_diff = math.inf
    for link in links:
        diff = abs(normalize_heading_diff(link.heading, target_heading))
        if diff < best_diff:
            best_diff = diff
            best = link
    return best


def decode_polyline(text: str) -> list[GeoPoint]:
    """Decode an encoded polyline (precision 1e5) into points.

    Malformed input yields an empty list instead of raising; callers treat
    an empty result as "no route available".
    """
    if not text:
        return []
    if any(not _POLYLINE_MIN_CHAR <= ord(ch) <= _POLYLINE_MAX_CHAR for ch in text):
        _logger.debug("Polyline contains characters outside the encoding alphabet")
        return []
    try:
        pairs = polyline.decode(text, POLYLINE_PRECISION)
        return [GeoPoint(lat=lat, lng=lng) for lat, lng in pairs]
    except (IndexError, ValueError, TypeError):
        _logger.debug("Malformed polyline of length %d", len(text), exc_info=True)
        return []
