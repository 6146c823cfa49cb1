import math
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("TZ_DEFAULT", "America/New_York")
os.environ.setdefault("AUTO_CREATE_DB", "false")

from datetime import datetime, timedelta, timezone

import pytest

from geoclock.schemas.job_sites import JobSite
from geoclock.schemas.location import Position
from geoclock.schemas.users import Role, User
from geoclock.services.geofence import EARTH_RADIUS_M
from geoclock.services.ledger import CompanyScope, TimeEntryLedger


COMPANY_ID = "acme"
SITE_LAT = 40.0
SITE_LON = -74.0

# Wednesday 2024-03-13 10:00 in New York
WEDNESDAY = datetime(2024, 3, 13, 14, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def north_of(lat: float, lon: float, meters: float) -> tuple:
    """Point `meters` due north along the meridian."""
    return lat + math.degrees(meters / EARTH_RADIUS_M), lon


def position_at(lat: float, lon: float, accuracy: float = 5.0) -> Position:
    return Position(latitude=lat, longitude=lon, accuracy=accuracy, timestamp=WEDNESDAY)


@pytest.fixture
def clock():
    return FakeClock(WEDNESDAY)


@pytest.fixture
def main_site():
    return JobSite(id="site-main", company_id=COMPANY_ID, name="Main Yard",
                   latitude=SITE_LAT, longitude=SITE_LON, radius=100)


@pytest.fixture
def annex_site():
    # ~111m north of the main yard
    return JobSite(id="site-annex", company_id=COMPANY_ID, name="Annex",
                   latitude=SITE_LAT + 0.001, longitude=SITE_LON, radius=200)


@pytest.fixture
def employee():
    return User(id="u-emp", company_id=COMPANY_ID, role=Role.EMPLOYEE, username="emp",
                first_name="Erin", last_name="Employee")


@pytest.fixture
def manager():
    return User(id="u-mgr", company_id=COMPANY_ID, role=Role.MANAGER, username="mgr",
                first_name="Marco", last_name="Manager")


@pytest.fixture
def scope(clock, main_site, annex_site, employee, manager):
    return CompanyScope(
        company_id=COMPANY_ID,
        users=[employee, manager],
        job_sites=[main_site, annex_site],
        time_entries=[],
        clock=clock,
    )


@pytest.fixture
def ledger(scope):
    return TimeEntryLedger(scope)


@pytest.fixture
def on_site():
    return position_at(SITE_LAT, SITE_LON)
