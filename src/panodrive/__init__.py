"""panodrive - Automated route playback for panoramic street-level viewers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("panodrive")
except PackageNotFoundError:
    __version__ = "0+local"
from panodrive.cache import CacheEntry, PrecacheManager
from panodrive.config import PlaybackConfig
from panodrive.events import EventBus, PlaybackEvent, PlaybackEventType
from panodrive.exceptions import PanoDriveConfigError, PanoDriveError, TileFetchError, ViewerError
from panodrive.models import (
    CacheStats,
    GeoPoint,
    NavigableLink,
    PlaybackSettings,
    PlaybackState,
    PlaybackStatus,
    PointOfView,
    RouteSummary,
    SpeedProfile,
    TransitionState,
)
from panodrive.orchestrator import PlaybackOrchestrator
from panodrive.route import RouteManager
from panodrive.simulator import SimulatedViewer
from panodrive.tiles import TileFetcher
from panodrive.transition import TransitionEngine
from panodrive.viewer import Overlay, OverlayState, PanoramaViewer

__all__ = [
    "__version__",
    "CacheEntry",
    "CacheStats",
    "EventBus",
    "GeoPoint",
    "NavigableLink",
    "Overlay",
    "OverlayState",
    "PanoDriveConfigError",
    "PanoDriveError",
    "PanoramaViewer",
    "PlaybackConfig",
    "PlaybackEvent",
    "PlaybackEventType",
    "PlaybackOrchestrator",
    "PlaybackSettings",
    "PlaybackState",
    "PlaybackStatus",
    "PointOfView",
    "PrecacheManager",
    "RouteManager",
    "RouteSummary",
    "SimulatedViewer",
    "SpeedProfile",
    "TileFetchError",
    "TileFetcher",
    "TransitionEngine",
    "TransitionState",
    "ViewerError",
]
