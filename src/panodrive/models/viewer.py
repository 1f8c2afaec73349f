"""Models exchanged with the external panorama viewer."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PointOfView(BaseModel):
    """Camera orientation of the panorama viewer."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    heading: float = 0.0
    pitch: float = 0.0
    zoom: float = 1.0


class NavigableLink(BaseModel):
    """A neighbouring panorama reachable from the current view."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    heading: float
    identifier: str | None = None
    description: str | None = Field(default=None, description="Street name or similar caption")
