"""Interfaces of the external collaborators: the panorama viewer and the overlay.

The playback core depends only on these structural protocols. How a
viewer is actually driven (direct API, URL navigation, a remote page) is
the implementation's concern.
"""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from typing import Protocol

from panodrive.models.point import GeoPoint
from panodrive.models.viewer import NavigableLink, PointOfView


class PanoramaViewer(Protocol):
    """Structural interface of the panorama viewer.

    Implementations may raise :class:`panodrive.exceptions.ViewerError`
    (or anything else); callers in this package absorb failures.
    """

    async def get_position(self) -> GeoPoint | None: ...

    async def get_point_of_view(self) -> PointOfView: ...

    async def set_position(self, position: GeoPoint) -> bool: ...

    async def set_point_of_view(self, heading: float, pitch: float = 0.0) -> bool: ...

    async def wait_for_load(self, timeout_ms: int) -> bool:
        """Return ``True`` if the view confirmed loaded before *timeout_ms*."""
        ...

    async def get_navigable_links(self) -> Sequence[NavigableLink]: ...

    async def capture_current_frame(self, quality: float) -> bytes | None:
        """Encoded still of the current view, ``None`` if it cannot be read."""
        ...

    async def current_imagery_identifier(self) -> str | None: ...

    async def resolve_imagery_identifier(self, position: GeoPoint) -> str | None: ...

    def fetch_imagery_tiles(self, identifier: str) -> Sequence[Awaitable[str | None]]:
        """Start fetching the central tiles of *identifier*.

        Each handle resolves to an asset key once loaded, or ``None``.
        """
        ...


class Overlay(Protocol):
    """Full-view cover used to hide a viewpoint jump."""

    def show_frame(self, frame: bytes) -> None: ...

    def show_fade(self, opacity: float) -> None: ...

    def hide(self) -> None: ...

    def retune(self, duration_ms: int, easing: str) -> None: ...


@dataclass
class OverlayState:
    """In-memory :class:`Overlay` recording what would be on screen."""

    visible: bool = False
    mode: str | None = None
    opacity: float = 0.0
    frame: bytes | None = None
    duration_ms: int = 300
    easing: str = "ease-out"
    shown_count: int = 0

    def show_frame(self, frame: bytes) -> None:
        self.visible = True
        self.mode = "frame"
        self.frame = frame
        self.opacity = 1.0
        self.shown_count += 1

    def show_fade(self, opacity: float) -> None:
        self.visible = True
        self.mode = "fade"
        self.frame = None
        self.opacity = opacity
        self.shown_count += 1

    def hide(self) -> None:
        self.visible = False
        self.opacity = 0.0

    def retune(self, duration_ms: int, easing: str) -> None:
        self.duration_ms = duration_ms
        self.easing = easing
