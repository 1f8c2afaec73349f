"""Playback configuration for panodrive."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from panodrive._constants import DEFAULT_SPEED_INTERVALS_MS, SPEED_ORDER, TILE_URL_TEMPLATE
from panodrive.exceptions import PanoDriveConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class PlaybackConfig:
    """Tuning values for route playback.

    All durations are in milliseconds.

    Parameters
    ----------
    waypoint_spacing_m : float
        Target distance between consecutive waypoints after densification.
    cache_lookahead : int
        Number of upcoming waypoints the pre-cache manager warms.
    max_cache_size : int
        Upper bound of the cached set; oldest entries are evicted first.
    tile_zoom : int
        Zoom level of the central tiles requested per panorama.
    tile_count : int
        Number of central tiles requested per panorama.
    capture_quality : float
        Quality passed to the viewer when capturing the current frame.
    same_point_tolerance_m : float
        Distance under which a target counts as the viewer's current
        location, so its currently-known imagery identifier can be reused.
    transitions_enabled : bool
        When ``False`` the transition engine moves the viewer directly.
    transition_duration_ms : int
        Overlay fade-out duration.
    easing : str
        Opaque easing identifier handed to the overlay.
    fallback_opacity : float
        Opacity of the plain overlay used when frame capture fails.
    overlay_settle_ms : int
        Delay after revealing the overlay, before the jump.
    render_settle_ms : int
        Delay after the new view reported loaded, before the reveal.
    load_timeout_ms : int
        Upper bound on waiting for the viewer to confirm the new view.
    heading_frame_ms : int
        Frame interval of heading animations.
    auto_heading : bool
        Turn the view towards the next waypoint on every advance.
    default_speed : str
        Speed profile selected at startup.
    speed_intervals_ms : Mapping[str, int]
        Tick interval for each speed profile.
    tile_url_template : str
        URL template used by :class:`panodrive.tiles.TileFetcher`.
    """

    waypoint_spacing_m: float = 20.0
    cache_lookahead: int = 5
    max_cache_size: int = 50
    tile_zoom: int = 3
    tile_count: int = 3
    capture_quality: float = 0.85
    same_point_tolerance_m: float = 5.0
    transitions_enabled: bool = True
    transition_duration_ms: int = 300
    easing: str = "ease-out"
    fallback_opacity: float = 0.8
    overlay_settle_ms: int = 50
    render_settle_ms: int = 100
    load_timeout_ms: int = 2000
    heading_frame_ms: int = 16
    auto_heading: bool = True
    default_speed: str = "cycling"
    speed_intervals_ms: Mapping[str, int] = dataclasses.field(
        default_factory=lambda: dict(DEFAULT_SPEED_INTERVALS_MS)
    )
    tile_url_template: str = TILE_URL_TEMPLATE

    def __post_init__(self) -> None:
        missing = [name for name in SPEED_ORDER if name not in self.speed_intervals_ms]
        if missing:
            raise PanoDriveConfigError(f"speed_intervals_ms is missing profiles: {', '.join(missing)}")
        for name, interval in self.speed_intervals_ms.items():
            if interval <= 0:
                raise PanoDriveConfigError(f"interval for {name!r} must be positive, got {interval}")
        if self.default_speed not in SPEED_ORDER:
            raise PanoDriveConfigError(f"unknown default_speed {self.default_speed!r}")
        if self.max_cache_size < 1:
            raise PanoDriveConfigError("max_cache_size must be at least 1")
        if self.waypoint_spacing_m <= 0:
            raise PanoDriveConfigError("waypoint_spacing_m must be positive")
        if not 0.0 <= self.fallback_opacity <= 1.0:
            raise PanoDriveConfigError("fallback_opacity must be within [0, 1]")

    def interval_ms(self, speed: str) -> int:
        """Tick interval for *speed*, falling back to the default profile."""
        interval = self.speed_intervals_ms.get(speed)
        if interval is None:
            return self.speed_intervals_ms[self.default_speed]
        return interval

    @classmethod
    def from_env(cls, **overrides: Any) -> PlaybackConfig:
        """Create configuration from environment variables.

        Reads optional ``PANODRIVE_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        PlaybackConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_FLOAT_MAP = {
            "PANODRIVE_WAYPOINT_SPACING_M": "waypoint_spacing_m",
            "PANODRIVE_CAPTURE_QUALITY": "capture_quality",
            "PANODRIVE_FALLBACK_OPACITY": "fallback_opacity",
        }
        _ENV_INT_MAP = {
            "PANODRIVE_CACHE_LOOKAHEAD": "cache_lookahead",
            "PANODRIVE_MAX_CACHE_SIZE": "max_cache_size",
            "PANODRIVE_TRANSITION_DURATION_MS": "transition_duration_ms",
            "PANODRIVE_LOAD_TIMEOUT_MS": "load_timeout_ms",
        }
        _ENV_BOOL_MAP = {
            "PANODRIVE_TRANSITIONS_ENABLED": ("transitions_enabled", True),
            "PANODRIVE_AUTO_HEADING": ("auto_heading", True),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = int(val)
        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        speed = env.get("PANODRIVE_DEFAULT_SPEED")
        if speed is not None and "default_speed" not in overrides:
            config_kwargs["default_speed"] = speed.strip().lower()

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
