"""In-memory panorama viewer for tests and offline demos."""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Awaitable
from dataclasses import dataclass, field

from panodrive.config import PlaybackConfig
from panodrive.exceptions import ViewerError
from panodrive.models.point import GeoPoint
from panodrive.models.viewer import NavigableLink, PointOfView
from panodrive.tiles import TileFetcher


def imagery_id_for(point: GeoPoint) -> str:
    """Stable fake imagery identifier derived from the rounded position."""
    return hashlib.sha1(point.cache_key.encode("ascii"), usedforsecurity=False).hexdigest()[:22]


@dataclass
class SimulatedViewer:
    """A :class:`panodrive.viewer.PanoramaViewer` without a real viewer behind it.

    Every call is recorded in ``calls`` (operation name, argument) so tests
    can assert on ordering. The ``*_fails``/``*_latency`` switches inject
    the failure modes the playback pipeline has to absorb. Without a
    ``tile_fetcher`` it serves ``config.tile_count`` tiles per panorama.
    """

    position: GeoPoint | None = None
    pov: PointOfView = field(default_factory=PointOfView)
    load_latency_s: float = 0.0
    loads: bool = True
    capture_fails: bool = False
    set_position_fails: bool = False
    reject_position: bool = False
    resolve_fails: bool = False
    no_imagery: bool = False
    failing_tiles: int = 0
    tile_latency_s: float = 0.0
    config: PlaybackConfig = field(default_factory=PlaybackConfig)
    tile_fetcher: TileFetcher | None = None
    links: list[NavigableLink] = field(default_factory=list)
    calls: list[tuple[str, object]] = field(default_factory=list)
    tile_requests: dict[str, int] = field(default_factory=dict)

    async def get_position(self) -> GeoPoint | None:
        return self.position

    async def get_point_of_view(self) -> PointOfView:
        return self.pov

    async def set_position(self, position: GeoPoint) -> bool:
        self.calls.append(("set_position", position))
        if self.set_position_fails:
            raise ViewerError("simulated position failure", operation="set_position")
        if self.reject_position:
            return False
        self.position = position
        return True

    async def set_point_of_view(self, heading: float, pitch: float = 0.0) -> bool:
        self.calls.append(("set_point_of_view", heading))
        self.pov = PointOfView(heading=heading, pitch=pitch, zoom=self.pov.zoom)
        return True

    async def wait_for_load(self, timeout_ms: int) -> bool:
        self.calls.append(("wait_for_load", timeout_ms))
        if not self.loads:
            await asyncio.sleep(timeout_ms / 1000.0)
            return False
        if self.load_latency_s * 1000.0 > timeout_ms:
            await asyncio.sleep(timeout_ms / 1000.0)
            return False
        await asyncio.sleep(self.load_latency_s)
        return True

    async def get_navigable_links(self) -> list[NavigableLink]:
        return list(self.links)

    async def capture_current_frame(self, quality: float) -> bytes | None:
        self.calls.append(("capture_current_frame", quality))
        if self.capture_fails or self.position is None:
            return None
        return f"frame:{self.position.cache_key}:{quality:.2f}".encode("ascii")

    async def current_imagery_identifier(self) -> str | None:
        if self.position is None or self.no_imagery:
            return None
        return imagery_id_for(self.position)

    async def resolve_imagery_identifier(self, position: GeoPoint) -> str | None:
        self.calls.append(("resolve_imagery_identifier", position))
        if self.resolve_fails:
            raise ViewerError("simulated lookup failure", operation="resolve_imagery_identifier")
        if self.no_imagery:
            return None
        return imagery_id_for(position)

    def fetch_imagery_tiles(self, identifier: str) -> list[Awaitable[str | None]]:
        self.tile_requests[identifier] = self.tile_requests.get(identifier, 0) + 1
        if self.tile_fetcher is not None:
            return self.tile_fetcher.fetch_imagery_tiles(identifier)
        return [self._load_tile(identifier, index) for index in range(self.config.tile_count)]

    async def _load_tile(self, identifier: str, index: int) -> str | None:
        await asyncio.sleep(self.tile_latency_s)
        if index < self.failing_tiles:
            raise ViewerError(f"simulated tile failure {index}", operation="fetch_imagery_tiles")
        return f"{identifier}/{index}"
