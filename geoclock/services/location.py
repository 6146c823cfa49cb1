"""
Current-position acquisition.

A LocationSensor wraps whatever device capability answers position
requests; LocationProvider bounds each request by a timeout and keeps the
last successful reading as the current known location.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from ..errors import CapabilityUnavailable, LocationError, Timeout
from ..schemas.location import LocationQuery, Position
from .time_rules import utc_now


logger = structlog.get_logger(__name__)


class LocationSensor:
    """Device capability that answers a single position request."""

    async def read_position(self, query: LocationQuery) -> Position:
        """
        Return one reading, or raise PermissionDenied / PositionUnavailable.
        May also run past the query timeout; the provider enforces it.
        """
        raise NotImplementedError


class ReportedPositionSensor(LocationSensor):
    """Answers with a reading the client device already took and sent along with its request."""

    def __init__(self, position: Position):
        self.position = position

    async def read_position(self, query: LocationQuery) -> Position:
        return self.position


class LocationProvider:
    """
    Obtains the current position from a sensor.

    No fallback location is ever substituted on failure: errors propagate
    to the caller, which decides whether to retry.
    """

    def __init__(self, sensor: Optional[LocationSensor], clock: Callable[[], datetime] = utc_now):
        self.sensor = sensor
        self._clock = clock
        self._current: Optional[Position] = None

    @property
    def current_location(self) -> Optional[Position]:
        """Last successful reading, for display between requests."""
        return self._current

    def _cached_within(self, max_age_ms: int) -> Optional[Position]:
        if self._current is None or max_age_ms <= 0:
            return None
        age = self._clock() - self._current.timestamp
        # A reading stamped ahead of the clock has no trustworthy age
        if timedelta(0) <= age <= timedelta(milliseconds=max_age_ms):
            return self._current
        return None

    async def get_current_location(self, query: Optional[LocationQuery] = None) -> Position:
        """
        Resolve one position reading.

        Args:
            query: Accuracy, timeout and cache-age options (defaults from settings)

        Returns:
            Position; also stored as `current_location`

        Raises:
            CapabilityUnavailable: no sensor on this host
            PermissionDenied, PositionUnavailable: raised by the sensor
            Timeout: the sensor did not answer within `timeout_ms`
        """
        query = query or LocationQuery()
        if self.sensor is None:
            logger.warning("location_failed", reason="capability_unavailable")
            raise CapabilityUnavailable()

        cached = self._cached_within(query.max_cached_age_ms)
        if cached is not None:
            logger.debug("location_cache_hit", timestamp=cached.timestamp.isoformat())
            return cached

        try:
            position = await asyncio.wait_for(
                self.sensor.read_position(query),
                timeout=query.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            logger.warning("location_failed", reason="timeout", timeout_ms=query.timeout_ms)
            raise Timeout()
        except LocationError as e:
            logger.warning("location_failed", reason=type(e).__name__, detail=e.detail)
            raise

        self._current = position
        logger.info(
            "location_acquired",
            latitude=position.latitude,
            longitude=position.longitude,
            accuracy=position.accuracy,
        )
        return position
