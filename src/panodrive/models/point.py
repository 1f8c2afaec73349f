"""Geographic point model."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from panodrive._constants import CACHE_KEY_DECIMALS


class GeoPoint(BaseModel):
    """Immutable latitude/longitude pair in decimal degrees.

    Equality is exact on both fields; cache lookups use :attr:`cache_key`,
    which rounds to about one metre.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    lat: float = Field(..., validation_alias=AliasChoices("lat", "latitude"))
    lng: float = Field(..., validation_alias=AliasChoices("lng", "lon", "longitude"))

    @field_validator("lat")
    @classmethod
    def _check_lat(cls, value: float) -> float:
        if not math.isfinite(value) or not -90.0 <= value <= 90.0:
            raise ValueError(f"latitude must be a finite value within [-90, 90], got {value}")
        return value

    @field_validator("lng")
    @classmethod
    def _check_lng(cls, value: float) -> float:
        if not math.isfinite(value) or not -180.0 <= value <= 180.0:
            raise ValueError(f"longitude must be a finite value within [-180, 180], got {value}")
        return value

    @property
    def cache_key(self) -> str:
        return f"{self.lat:.{CACHE_KEY_DECIMALS}f},{self.lng:.{CACHE_KEY_DECIMALS}f}"

    def label(self) -> str:
        """Short human-readable form used in route summaries."""
        return f"{self.lat:.4f}, {self.lng:.4f}"

    @classmethod
    def coerce(cls, value: Any) -> GeoPoint:
        """Build a point from a model, a mapping, or a ``(lat, lng)`` pair."""
        if isinstance(value, GeoPoint):
            return value
        if isinstance(value, Mapping):
            return cls.model_validate(value)
        if isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 2:
            return cls(lat=float(value[0]), lng=float(value[1]))
        raise TypeError(f"cannot interpret {value!r} as a GeoPoint")
