"""Status snapshots reported to the control surface."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from panodrive._constants import NOT_SET_LABEL
from panodrive.models.state import SpeedProfile


class RouteSummary(BaseModel):
    """Compact description of the active route."""

    model_config = ConfigDict(frozen=True)

    start_label: str = NOT_SET_LABEL
    end_label: str = NOT_SET_LABEL
    waypoint_count: int = 0
    total_distance_meters: int = 0
    progress_percent: int = 0


class PlaybackStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    playing: bool = False
    paused: bool = False
    progress_percent: float = 0.0
    has_route: bool = False
    speed: SpeedProfile = SpeedProfile.CYCLING
    route_summary: RouteSummary = Field(default_factory=RouteSummary)


class CacheStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    cached_count: int = 0
    loading_count: int = 0
    tile_count: int = 0


class PlaybackSettings(BaseModel):
    """User-facing settings an external store persists between sessions.

    Fields left as ``None`` in an update mean "keep the current value".
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool | None = None
    transition_duration_ms: int | None = Field(default=None, ge=0)
    auto_heading: bool | None = None
    speed: SpeedProfile | None = None
