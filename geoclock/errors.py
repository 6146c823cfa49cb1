"""
Failure outcomes of the time-tracking engine.
Each error carries the HTTP status the API layer reports it with.
"""
from typing import Any, Dict, Optional


class GeoClockError(Exception):
    status_code: int = 400
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "detail": self.detail}


# Location capability

class LocationError(GeoClockError):
    status_code = 503
    default_detail = "Unknown geolocation error"


class CapabilityUnavailable(LocationError):
    status_code = 503
    default_detail = "Location services are not available on this device"


class PermissionDenied(LocationError):
    status_code = 403
    default_detail = "Location access denied. Please allow location access and try again."


class PositionUnavailable(LocationError):
    status_code = 503
    default_detail = "Location information is unavailable. Please check your GPS settings."


class Timeout(LocationError):
    status_code = 504
    default_detail = "Location request timed out. Please try again."


# Geofence

class OutOfRange(GeoClockError):
    status_code = 422

    def __init__(self, distance_m: int, radius_m: int, site_name: str):
        self.distance_m = distance_m
        self.radius_m = radius_m
        self.site_name = site_name
        super().__init__(
            f'You are {distance_m}m away from "{site_name}"; get within {radius_m}m'
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "distance_m": self.distance_m,
            "radius_m": self.radius_m,
            "site_name": self.site_name,
        })
        return data


# Ledger state

class AlreadyClockedIn(GeoClockError):
    status_code = 409
    default_detail = "You are already clocked in. Clock out before starting a new entry."


class NotClockedIn(GeoClockError):
    status_code = 409
    default_detail = "Cannot clock out - not currently clocked in"


class InvalidClockOut(GeoClockError):
    status_code = 409
    default_detail = "Clock out time must be after clock in time"


class EntryNotFound(GeoClockError):
    status_code = 404
    default_detail = "Time entry not found"


class JobSiteNotFound(GeoClockError):
    status_code = 404
    default_detail = "Job site not found"


class JobSiteNotLocatable(GeoClockError):
    status_code = 422
    default_detail = "Job site has no coordinates and cannot be used for clock-in"


class UserNotFound(GeoClockError):
    status_code = 404
    default_detail = "User not found"


class CompanyMismatch(GeoClockError):
    status_code = 403
    default_detail = "Job site belongs to a different company"
