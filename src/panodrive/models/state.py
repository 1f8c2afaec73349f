"""State enums for the playback pipeline."""

from __future__ import annotations

from enum import StrEnum


class TransitionState(StrEnum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"


class PlaybackState(StrEnum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


class SpeedProfile(StrEnum):
    """Playback speeds, slowest first."""

    WALKING = "walking"
    CYCLING = "cycling"
    DRIVING = "driving"
    FLYING = "flying"
