"""Lookahead pre-cache for upcoming panoramas.

Only this module mutates the *loading* and *cached* sets. A key is
checked and marked as loading in one step with no suspension point in
between, so two warm calls can never start two fetches for the same key.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass

from panodrive import geo
from panodrive._constants import MAX_LOOKAHEAD, MIN_LOOKAHEAD
from panodrive.config import PlaybackConfig
from panodrive.models.point import GeoPoint
from panodrive.models.status import CacheStats
from panodrive.viewer import PanoramaViewer

_logger = logging.getLogger(__name__)


def _clamp_lookahead(count: int) -> int:
    return max(MIN_LOOKAHEAD, min(MAX_LOOKAHEAD, int(count)))


@dataclass(frozen=True)
class CacheEntry:
    """A point whose imagery fetch was attempted.

    ``assets`` holds the tiles that actually loaded; it may be empty.
    """

    key: str
    identifier: str
    assets: frozenset[str] = frozenset()


class PrecacheManager:
    """Warm imagery for the next few waypoints without blocking playback.

    Usage::

        cache = PrecacheManager(viewer, config)
        cache.warm(route.waypoints, route.index)
        ...
        await cache.wait_idle()
    """

    def __init__(self, viewer: PanoramaViewer, config: PlaybackConfig | None = None) -> None:
        self._viewer = viewer
        self._config = config or PlaybackConfig()
        self._lookahead = _clamp_lookahead(self._config.cache_lookahead)
        self._max_size = self._config.max_cache_size
        self._cached: OrderedDict[str, CacheEntry] = OrderedDict()
        self._loading: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        # Bumped by clear(); fetches started before it are discarded.
        self._generation = 0

    @property
    def lookahead(self) -> int:
        return self._lookahead

    def set_lookahead(self, count: int) -> None:
        self._lookahead = _clamp_lookahead(count)

    def warm(self, waypoints: Sequence[GeoPoint], from_index: int, lookahead: int | None = None) -> int:
        """Start fetches for the window ``waypoints[from_index:from_index + lookahead]``.

        Must be called from a running event loop. Returns immediately with
        the number of fetches started; keys already cached or loading are
        skipped.
        """
        count = self._lookahead if lookahead is None else _clamp_lookahead(lookahead)
        start = max(0, from_index)
        loop = asyncio.get_running_loop()
        started = 0
        for point in waypoints[start : start + count]:
            key = point.cache_key
            if key in self._cached or key in self._loading:
                continue
            self._loading.add(key)
            task = loop.create_task(self._precache_point(point, key, self._generation))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            started += 1
        if started:
            _logger.debug("Warming %d point(s) from index %d", started, start)
        return started

    def is_cached(self, point: GeoPoint) -> bool:
        return point.cache_key in self._cached

    def is_loading(self, point: GeoPoint) -> bool:
        return point.cache_key in self._loading

    def entry(self, point: GeoPoint) -> CacheEntry | None:
        return self._cached.get(point.cache_key)

    def cached_keys(self) -> list[str]:
        """Cached keys, oldest first."""
        return list(self._cached)

    def stats(self) -> CacheStats:
        return CacheStats(
            cached_count=len(self._cached),
            loading_count=len(self._loading),
            tile_count=sum(len(entry.assets) for entry in self._cached.values()),
        )

    def clear(self) -> None:
        self._generation += 1
        self._cached.clear()
        self._loading.clear()

    async def wait_idle(self) -> None:
        """Wait until every fetch started so far has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding fetches and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _precache_point(self, point: GeoPoint, key: str, generation: int) -> None:
        try:
            identifier = await self._resolve_identifier(point)
            if identifier is None:
                _logger.debug("No imagery found for %s; leaving it uncached", key)
                return
            assets = await self._fetch_tiles(identifier)
            if generation != self._generation:
                return
            self._loading.discard(key)
            self._insert(CacheEntry(key=key, identifier=identifier, assets=assets))
            _logger.debug("Precached %s (%s, %d tile(s))", key, identifier[:8], len(assets))
        except Exception:
            _logger.debug("Precache failed for %s", key, exc_info=True)
        finally:
            if generation == self._generation:
                self._loading.discard(key)

    async def _resolve_identifier(self, point: GeoPoint) -> str | None:
        try:
            identifier = await self._viewer.resolve_imagery_identifier(point)
        except Exception:
            _logger.debug("Imagery lookup failed for %s", point.cache_key, exc_info=True)
            identifier = None
        if identifier:
            return identifier

        # Fall back to the viewer's own imagery when the target is where it already is.
        current = await self._viewer.get_position()
        if current is None or geo.distance(current, point) > self._config.same_point_tolerance_m:
            return None
        return await self._viewer.current_imagery_identifier() or None

    async def _fetch_tiles(self, identifier: str) -> frozenset[str]:
        try:
            handles: Sequence[Awaitable[str | None]] = self._viewer.fetch_imagery_tiles(identifier)
        except Exception:
            _logger.debug("Tile request for %s failed to start", identifier, exc_info=True)
            return frozenset()
        results = await asyncio.gather(*handles, return_exceptions=True)
        return frozenset(result for result in results if isinstance(result, str) and result)

    def _insert(self, entry: CacheEntry) -> None:
        self._cached[entry.key] = entry
        while len(self._cached) > self._max_size:
            evicted, _ = self._cached.popitem(last=False)
            _logger.debug("Evicted %s from cache", evicted)
