"""Data models for the playback pipeline."""

from panodrive.models.point import GeoPoint
from panodrive.models.state import PlaybackState, SpeedProfile, TransitionState
from panodrive.models.status import CacheStats, PlaybackSettings, PlaybackStatus, RouteSummary
from panodrive.models.viewer import NavigableLink, PointOfView

__all__ = [
    "CacheStats",
    "GeoPoint",
    "NavigableLink",
    "PlaybackSettings",
    "PlaybackState",
    "PlaybackStatus",
    "PointOfView",
    "RouteSummary",
    "SpeedProfile",
    "TransitionState",
]
