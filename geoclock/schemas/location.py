from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..config import settings
from ..services.time_rules import ensure_utc, utc_now


class Position(BaseModel):
    """One normalized reading from a device location sensor."""
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)  # meters
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class LocationQuery(BaseModel):
    """Options for a single current-position request."""
    enable_high_accuracy: bool = Field(default_factory=lambda: settings.location_high_accuracy)
    timeout_ms: int = Field(default_factory=lambda: settings.location_timeout_ms, gt=0)
    max_cached_age_ms: int = Field(default_factory=lambda: settings.location_max_age_ms, ge=0)
