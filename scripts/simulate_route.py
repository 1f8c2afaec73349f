#!/usr/bin/env python3
"""Play a route through the in-memory simulated viewer.

Useful for watching the playback pipeline (densification, pre-cache,
transitions, speed changes) without a real panorama viewer.

Usage
-----
::

    python scripts/simulate_route.py --start 52.3676,4.9041 --end 52.3700,4.9100
    python scripts/simulate_route.py --polyline '_p~iF~ps|U_ulLnnqC_mqNvxq`@' --speed flying

Options::

    --start LAT,LNG      Start of a straight route
    --end LAT,LNG        End of a straight route
    --polyline TEXT      Encoded polyline instead of --start/--end
    --speed NAME         walking, cycling, driving or flying
    --scale FACTOR       Divide every delay by FACTOR (default: 10)
    --max-waypoints N    Stop after N waypoints (default: whole route)
    --verbose / -v       Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from panodrive import (  # noqa: E402
    GeoPoint,
    PlaybackConfig,
    PlaybackEvent,
    PlaybackEventType,
    PlaybackOrchestrator,
    PlaybackState,
    SimulatedViewer,
)
from panodrive._constants import DEFAULT_SPEED_INTERVALS_MS  # noqa: E402

LOG = logging.getLogger("simulate_route")


def _parse_point(text: str) -> GeoPoint:
    try:
        lat, lng = (float(part) for part in text.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected LAT,LNG, got {text!r}") from exc
    return GeoPoint(lat=lat, lng=lng)


def _scaled_config(scale: float, speed: str) -> PlaybackConfig:
    def shrink(ms: int) -> int:
        return max(1, round(ms / scale))

    return PlaybackConfig.from_env(
        default_speed=speed,
        speed_intervals_ms={name: shrink(ms) for name, ms in DEFAULT_SPEED_INTERVALS_MS.items()},
        transition_duration_ms=shrink(300),
        overlay_settle_ms=shrink(50),
        render_settle_ms=shrink(100),
        load_timeout_ms=shrink(2000),
    )


def _print_event(event: PlaybackEvent) -> None:
    summary = event.status.route_summary
    if event.type is PlaybackEventType.PROGRESS:
        print(f"  {event.status.progress_percent:5.1f}%  ({summary.waypoint_count} waypoints)")
    elif event.type is PlaybackEventType.COMPLETE:
        print(f"Route complete: {summary.start_label} -> {summary.end_label}, {summary.total_distance_meters} m")
    elif event.type is PlaybackEventType.SETTINGS and event.settings is not None:
        print(f"Settings: {event.settings.model_dump(exclude_none=True)}")


async def run(args: argparse.Namespace) -> int:
    config = _scaled_config(args.scale, args.speed)
    viewer = SimulatedViewer(position=args.start, load_latency_s=0.01, config=config)

    async with PlaybackOrchestrator(viewer, config=config) as player:
        player.events.subscribe(_print_event)

        if args.polyline:
            ok = player.set_polyline(args.polyline)
        else:
            ok = player.build_from_endpoints(args.start, args.end)
        if not ok:
            LOG.error("Route is not playable")
            return 1

        summary = player.route.summary()
        print(f"Route: {summary.waypoint_count} waypoints, {summary.total_distance_meters} m at {player.speed}")

        player.play()
        if args.max_waypoints:
            while player.state is PlaybackState.PLAYING and player.route.index < args.max_waypoints:
                await asyncio.sleep(0.05)
            player.pause()
        await player.wait_idle()

        stats = player.cache.stats()
        print(f"Cache: {stats.cached_count} cached, {stats.tile_count} tiles, {len(viewer.calls)} viewer calls")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Play a route through the simulated panorama viewer.")
    parser.add_argument("--start", type=_parse_point, default=GeoPoint(lat=52.3676, lng=4.9041))
    parser.add_argument("--end", type=_parse_point, default=GeoPoint(lat=52.3700, lng=4.9100))
    parser.add_argument("--polyline", help="Encoded polyline instead of --start/--end")
    parser.add_argument("--speed", default="driving", choices=["walking", "cycling", "driving", "flying"])
    parser.add_argument("--scale", type=float, default=10.0, help="Divide every delay by this factor")
    parser.add_argument("--max-waypoints", type=int, default=0, help="Pause after this many waypoints")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.scale <= 0:
        parser.error("--scale must be positive")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
