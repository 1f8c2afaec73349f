"""Hide-move-reveal transitions between panoramas.

At most one transition runs at a time. A request arriving while one is in
progress is rejected, not queued, and the in-progress flag is released on
every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import time

from panodrive import geo
from panodrive.config import PlaybackConfig
from panodrive.exceptions import ViewerError
from panodrive.models.point import GeoPoint
from panodrive.models.state import TransitionState
from panodrive.viewer import Overlay, OverlayState, PanoramaViewer

_logger = logging.getLogger(__name__)


async def _sleep_ms(ms: float) -> None:
    await asyncio.sleep(max(ms, 0) / 1000.0)


class TransitionEngine:
    """Mask viewpoint jumps of a :class:`PanoramaViewer` behind an overlay.

    Usage::

        engine = TransitionEngine(viewer, config=config)
        ok = await engine.transition_to(point, heading)
    """

    def __init__(
        self,
        viewer: PanoramaViewer,
        overlay: Overlay | None = None,
        *,
        config: PlaybackConfig | None = None,
    ) -> None:
        self._viewer = viewer
        self._config = config or PlaybackConfig()
        self._enabled = self._config.transitions_enabled
        self._duration_ms = self._config.transition_duration_ms
        self._easing = self._config.easing
        self._fallback_opacity = self._config.fallback_opacity
        self._overlay: Overlay = overlay if overlay is not None else OverlayState()
        self._overlay.retune(self._duration_ms, self._easing)
        self._state = TransitionState.IDLE
        self._animating = False

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> TransitionState:
        return self._state

    @property
    def overlay(self) -> Overlay:
        return self._overlay

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    def is_busy(self) -> bool:
        return self._state is TransitionState.IN_PROGRESS

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(
        self,
        *,
        enabled: bool | None = None,
        duration_ms: int | None = None,
        easing: str | None = None,
        fallback_opacity: float | None = None,
    ) -> None:
        """Hot-swap settings; the overlay is retuned immediately."""
        if enabled is not None:
            self._enabled = enabled
        if duration_ms is not None:
            self._duration_ms = max(0, int(duration_ms))
        if easing is not None:
            self._easing = easing
        if fallback_opacity is not None:
            self._fallback_opacity = min(1.0, max(0.0, fallback_opacity))
        self._overlay.retune(self._duration_ms, self._easing)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition_to(self, target: GeoPoint, target_heading: float | None = None) -> bool:
        """Move the viewer to *target*, hiding the jump behind the overlay.

        Returns ``False`` when another transition is in progress or when
        any step failed; the overlay is hidden again in that case.
        """
        if self._state is TransitionState.IN_PROGRESS:
            _logger.debug("Transition already in progress; rejecting %s", target.cache_key)
            return False

        if not self._enabled:
            try:
                await self._move(target, target_heading)
            except Exception:
                _logger.debug("Direct move to %s failed", target.cache_key, exc_info=True)
                return False
            return True

        self._state = TransitionState.IN_PROGRESS
        try:
            frame = await self._capture_frame()
            if frame:
                self._overlay.show_frame(frame)
            else:
                self._overlay.show_fade(self._fallback_opacity)
            await _sleep_ms(self._config.overlay_settle_ms)

            await self._move(target, target_heading)

            loaded = await self._wait_for_load()
            if not loaded:
                _logger.debug("View at %s not confirmed within %dms", target.cache_key, self._config.load_timeout_ms)
            await _sleep_ms(self._config.render_settle_ms)

            self._overlay.hide()
            await _sleep_ms(self._duration_ms)
            return True
        except Exception:
            _logger.warning("Transition to %s failed", target.cache_key, exc_info=True)
            self._overlay.hide()
            return False
        finally:
            self._state = TransitionState.IDLE

    async def animate_heading(self, start: float, end: float, duration_ms: float = 300) -> bool:
        """Turn the view from *start* to *end* with a cubic ease-out.

        Independent of the transition lock. Returns ``False`` if another
        heading animation of this engine is running or the viewer failed.
        """
        if self._animating:
            return False
        self._animating = True
        try:
            diff = geo.normalize_heading_diff(start, end)
            duration_s = max(duration_ms, 0) / 1000.0
            began = time.monotonic()
            while True:
                progress = 1.0 if duration_s <= 0 else min((time.monotonic() - began) / duration_s, 1.0)
                current = (start + diff * geo.ease_out_cubic(progress)) % 360.0
                await self._viewer.set_point_of_view(current, 0.0)
                if progress >= 1.0:
                    return True
                await _sleep_ms(self._config.heading_frame_ms)
        except Exception:
            _logger.debug("Heading animation failed", exc_info=True)
            return False
        finally:
            self._animating = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _capture_frame(self) -> bytes | None:
        try:
            return await self._viewer.capture_current_frame(self._config.capture_quality)
        except Exception:
            _logger.debug("Frame capture failed; using plain overlay", exc_info=True)
            return None

    async def _move(self, target: GeoPoint, target_heading: float | None) -> None:
        acked = await self._viewer.set_position(target)
        if not acked:
            raise ViewerError(f"Viewer did not accept position {target.cache_key}", operation="set_position")
        if target_heading is not None and not await self._viewer.set_point_of_view(target_heading, 0.0):
            _logger.debug("Viewer ignored heading %.1f", target_heading)

    async def _wait_for_load(self) -> bool:
        timeout_ms = self._config.load_timeout_ms
        try:
            return await asyncio.wait_for(self._viewer.wait_for_load(timeout_ms), timeout_ms / 1000.0)
        except TimeoutError:
            return False
