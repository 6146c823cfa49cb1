"""
Geofence validation service.
Uses Haversine formula to calculate distance between points.
"""
import math
from typing import Optional
from pydantic import BaseModel

from ..config import settings
from ..schemas.job_sites import JobSite
from ..schemas.location import Position


EARTH_RADIUS_M = 6371000


class GeofenceDecision(BaseModel):
    """Outcome of a clock-in proximity check. Rejection is a normal result, not an error."""
    allowed: bool
    distance_m: int  # rounded for display
    radius_m: int
    site_name: str
    accuracy_risk: bool = False

    @property
    def message(self) -> Optional[str]:
        if self.allowed:
            return None
        return f'You are {self.distance_m}m away from "{self.site_name}"; get within {self.radius_m}m'


class AccuracyLevel(BaseModel):
    level: str
    description: str


class SiteStatus(BaseModel):
    status: str  # in_range|out_of_range
    distance_m: int
    radius_m: int
    message: str


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points on Earth.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2 +
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    # Rounding can push a past 1.0 for near-antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance_to_site(lat: float, lon: float, site: JobSite) -> float:
    return haversine_distance(lat, lon, site.latitude, site.longitude)


def is_within_radius(lat: float, lon: float, site: JobSite) -> bool:
    """True when the point lies inside the site's circle; the boundary counts as inside."""
    return distance_to_site(lat, lon, site) <= site.radius


def format_distance(distance_m: float) -> str:
    if distance_m < 1000:
        return f"{round(distance_m)}m"
    return f"{distance_m / 1000:.1f}km"


def accuracy_level(accuracy_m: float) -> AccuracyLevel:
    """Bucket a GPS accuracy radius for display."""
    if accuracy_m <= 10:
        return AccuracyLevel(level="excellent", description="GPS accuracy")
    if accuracy_m <= 50:
        return AccuracyLevel(level="good", description="Good accuracy")
    if accuracy_m <= 100:
        return AccuracyLevel(level="fair", description="Fair accuracy")
    return AccuracyLevel(level="poor", description="Poor accuracy")


def job_site_status(lat: float, lon: float, site: JobSite) -> SiteStatus:
    distance = distance_to_site(lat, lon, site)
    if distance <= site.radius:
        return SiteStatus(
            status="in_range",
            distance_m=round(distance),
            radius_m=site.radius,
            message=f"In range ({format_distance(distance)})",
        )
    return SiteStatus(
        status="out_of_range",
        distance_m=round(distance),
        radius_m=site.radius,
        message=f"Out of range ({format_distance(distance)})",
    )


def authorize_clock_in(position: Position, job_site: JobSite) -> GeofenceDecision:
    """
    Decide whether a clock-in at `job_site` may proceed from `position`.

    Pure: no state is read or written beyond the two arguments. The caller
    must already hold a position reading and a job site with coordinates.

    Args:
        position: Device position reading
        job_site: Target job site

    Returns:
        GeofenceDecision; `allowed` is False when the point is outside the radius.
        `accuracy_risk` flags readings whose accuracy exceeds GPS_ACCURACY_RISK_M.
    """
    distance = distance_to_site(position.latitude, position.longitude, job_site)
    is_risk = position.accuracy is not None and position.accuracy > settings.gps_accuracy_risk_m
    return GeofenceDecision(
        allowed=distance <= job_site.radius,
        distance_m=round(distance),
        radius_m=job_site.radius,
        site_name=job_site.name,
        accuracy_risk=is_risk,
    )
