"""Playback notifications.

The orchestrator publishes a :class:`PlaybackEvent` for every state change;
a control surface or a settings store subscribes to the bus.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from panodrive.models.status import PlaybackSettings, PlaybackStatus

_logger = logging.getLogger(__name__)


class PlaybackEventType(StrEnum):
    STATUS = "status"
    PROGRESS = "progress"
    SETTINGS = "settings"
    COMPLETE = "complete"


class PlaybackEvent(BaseModel):
    """A state-change notification."""

    model_config = ConfigDict(frozen=True)

    type: PlaybackEventType
    status: PlaybackStatus
    settings: PlaybackSettings | None = Field(
        default=None,
        description="Full current settings, only set on SETTINGS events.",
    )
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


Subscriber = Callable[[PlaybackEvent], None]


class EventBus:
    """Synchronous publish/subscribe registry.

    A failing subscriber is logged and skipped; it never breaks playback
    or the other subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; the returned function unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, event: PlaybackEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                _logger.debug("%s subscriber failed", event.type, exc_info=True)

    def clear(self) -> None:
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)
