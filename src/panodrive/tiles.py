"""HTTP tile fetching for panorama imagery.

Viewer implementations that talk to a real tile server can delegate their
``fetch_imagery_tiles`` to :class:`TileFetcher`.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from urllib.parse import quote

import aiohttp

from panodrive._constants import USER_AGENT
from panodrive.config import PlaybackConfig
from panodrive.exceptions import TileFetchError

_logger = logging.getLogger(__name__)


def central_tiles(zoom: int, count: int) -> list[tuple[int, int]]:
    """Tile coordinates around the centre of a panorama at *zoom*.

    The centre tile comes first, then alternating right/left neighbours on
    the same row, which is what a level camera sees first.
    """
    per_side = 2**zoom
    center = per_side // 2
    tiles: list[tuple[int, int]] = [(center, center)]
    offset = 1
    while len(tiles) < min(count, per_side):
        for x in (center + offset, center - offset):
            if 0 <= x < per_side and len(tiles) < count:
                tiles.append((x, center))
        offset += 1
    return tiles[:count]


def tile_urls(template: str, identifier: str, zoom: int, count: int) -> list[str]:
    return [
        template.format(identifier=quote(identifier, safe=""), x=x, y=y, zoom=zoom)
        for x, y in central_tiles(zoom, count)
    ]


class TileFetcher:
    """Fetch the central tiles of a panorama over HTTP.

    Each returned handle resolves to the tile URL when the tile loaded and
    to ``None`` otherwise, so a caller can gather them without caring about
    individual failures.
    """

    def __init__(self, http_session: aiohttp.ClientSession, config: PlaybackConfig | None = None) -> None:
        self._http = http_session
        self._config = config or PlaybackConfig()

    def fetch_imagery_tiles(self, identifier: str) -> list[Awaitable[str | None]]:
        urls = tile_urls(
            self._config.tile_url_template,
            identifier,
            self._config.tile_zoom,
            self._config.tile_count,
        )
        return [self._fetch_quietly(url) for url in urls]

    async def _fetch_quietly(self, url: str) -> str | None:
        try:
            await self.fetch_tile(url)
        except TileFetchError as exc:
            _logger.debug("Tile fetch failed: %s", exc)
            return None
        return url

    async def fetch_tile(self, url: str) -> bytes:
        """GET a single tile and return its body."""
        headers = {"user-agent": USER_AGENT}
        _logger.debug("GET %s", url)
        try:
            async with self._http.get(url, headers=headers) as resp:
                if resp.status != 200:
                    raise TileFetchError(
                        f"HTTP {resp.status} for tile",
                        status_code=resp.status,
                        url=url,
                    )
                body = await resp.read()
        except TileFetchError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TileFetchError(f"Tile request failed: {exc}", url=url) from exc

        if not body:
            raise TileFetchError("Empty tile body", status_code=200, url=url)
        return body
