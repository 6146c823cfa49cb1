from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..config import settings
from ..services.time_rules import ensure_utc, utc_now


DEFAULT_COUNTRY = "United States"


def format_full_address(
    address1: str = "",
    address2: str = "",
    city: str = "",
    state: str = "",
    zip_code: str = "",
    country: str = DEFAULT_COUNTRY,
) -> str:
    """Join the non-empty address parts; the default country is left implicit."""
    parts = [p for p in [address1, address2, city, state, zip_code] if p]
    if country and country != DEFAULT_COUNTRY:
        parts.append(country)
    return ", ".join(parts)


class _AddressFields(BaseModel):
    address1: str = Field(default="", max_length=100)
    address2: str = Field(default="", max_length=100)
    city: str = Field(default="", max_length=50)
    state: str = Field(default="", max_length=50)
    zip_code: str = Field(default="", max_length=20)
    country: str = Field(default=DEFAULT_COUNTRY, max_length=50)

    @field_validator("address1", "address2", "city", "state", "zip_code", "country", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class JobSiteCreate(_AddressFields):
    name: str = Field(min_length=1, max_length=100)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius: int = Field(
        default=settings.geo_radius_m_default,
        ge=settings.geo_radius_m_min,
        le=settings.geo_radius_m_max,
    )

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class JobSiteUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    address1: Optional[str] = Field(default=None, max_length=100)
    address2: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=50)
    state: Optional[str] = Field(default=None, max_length=50)
    zip_code: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=50)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    radius: Optional[int] = Field(default=None, ge=settings.geo_radius_m_min, le=settings.geo_radius_m_max)
    is_active: Optional[bool] = None


class JobSite(_AddressFields):
    id: str
    company_id: str
    name: str = Field(min_length=1, max_length=100)
    full_address: str = ""
    # Coordinates are None only for sites that were never geocoded
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    radius: int = Field(
        default=settings.geo_radius_m_default,
        ge=settings.geo_radius_m_min,
        le=settings.geo_radius_m_max,
    )
    created_by: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _times_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None
