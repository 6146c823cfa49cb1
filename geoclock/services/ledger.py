"""
Time entry ledger.

Owns the company's time entries and enforces the clock-in/clock-out state
machine: NoActiveEntry -> ClockedIn -> NoActiveEntry.

The single-open-entry rule is a check-then-act over the entries this
scope was loaded with (last writer wins). Two processes sharing a store
without coordination can both pass the check; nothing here prevents it.
"""
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

import structlog

from ..errors import (
    AlreadyClockedIn,
    CompanyMismatch,
    EntryNotFound,
    InvalidClockOut,
    JobSiteNotFound,
    JobSiteNotLocatable,
    NotClockedIn,
    OutOfRange,
    UserNotFound,
)
from ..schemas.job_sites import JobSite
from ..schemas.location import Position
from ..schemas.time_entries import TimeEntry, TimeEntryStatus
from ..schemas.users import User
from .geofence import authorize_clock_in
from .time_rules import calculate_hours, ensure_utc, utc_now


logger = structlog.get_logger(__name__)


class CompanyScope:
    """
    Collections of one company plus the clock every ledger operation reads.
    Callers load it from storage, hand it to the ledger and save it back.
    """

    def __init__(
        self,
        company_id: str,
        users: Optional[Iterable[User]] = None,
        job_sites: Optional[Iterable[JobSite]] = None,
        time_entries: Optional[Iterable[TimeEntry]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.company_id = company_id
        self.users: List[User] = list(users or [])
        self.job_sites: List[JobSite] = list(job_sites or [])
        self.time_entries: List[TimeEntry] = list(time_entries or [])
        self.clock = clock

    def now(self) -> datetime:
        return ensure_utc(self.clock())

    def find_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.users if u.id == user_id), None)

    def find_job_site(self, job_site_id: str) -> Optional[JobSite]:
        return next((s for s in self.job_sites if s.id == job_site_id), None)

    def site_lookup(self) -> Dict[str, JobSite]:
        return {s.id: s for s in self.job_sites}


class TimeEntryLedger:
    def __init__(self, scope: CompanyScope):
        self.scope = scope

    @property
    def entries(self) -> List[TimeEntry]:
        return list(self.scope.time_entries)

    def get_entry(self, entry_id: str) -> TimeEntry:
        for entry in self.scope.time_entries:
            if entry.id == entry_id:
                return entry
        raise EntryNotFound()

    def get_open_entry(self, user_id: str) -> Optional[TimeEntry]:
        return next(
            (e for e in self.scope.time_entries if e.user_id == user_id and e.is_open),
            None,
        )

    def get_entries_for_user(self, user_id: str) -> List[TimeEntry]:
        """All entries of a user in insertion order, any status."""
        return [e for e in self.scope.time_entries if e.user_id == user_id]

    def get_entries_for_job_site(self, job_site_id: str) -> List[TimeEntry]:
        return [e for e in self.scope.time_entries if e.job_site_id == job_site_id]

    def clock_in(self, user_id: str, job_site_id: str, position: Position, notes: str = "") -> TimeEntry:
        """
        Open a new entry for `user_id` at `job_site_id`.

        Checks run in order: site exists and has coordinates, user belongs to
        the site's company, position is inside the geofence, user has no
        open entry anywhere.

        Raises:
            JobSiteNotFound, JobSiteNotLocatable, UserNotFound, CompanyMismatch,
            OutOfRange, AlreadyClockedIn
        """
        job_site = self.scope.find_job_site(job_site_id)
        if job_site is None:
            raise JobSiteNotFound()
        if not job_site.has_coordinates:
            raise JobSiteNotLocatable()

        user = self.scope.find_user(user_id)
        if user is None:
            raise UserNotFound()
        if user.company_id != job_site.company_id:
            logger.warning(
                "clock_in_rejected",
                reason="company_mismatch",
                user_id=user_id,
                job_site_id=job_site_id,
            )
            raise CompanyMismatch()

        decision = authorize_clock_in(position, job_site)
        if not decision.allowed:
            logger.info(
                "clock_in_rejected",
                reason="out_of_range",
                user_id=user_id,
                job_site_id=job_site_id,
                distance_m=decision.distance_m,
                radius_m=decision.radius_m,
            )
            raise OutOfRange(decision.distance_m, decision.radius_m, decision.site_name)

        if self.get_open_entry(user_id) is not None:
            raise AlreadyClockedIn()

        now = self.scope.now()
        entry = TimeEntry(
            id=str(uuid.uuid4()),
            user_id=user_id,
            job_site_id=job_site_id,
            company_id=user.company_id,
            clock_in_time=now,
            clock_out_time=None,
            total_hours=0,
            status=TimeEntryStatus.CLOCKED_IN,
            notes=notes or "",
            created_at=now,
            updated_at=now,
        )
        self.scope.time_entries = self.scope.time_entries + [entry]
        logger.info(
            "clock_in",
            entry_id=entry.id,
            user_id=user_id,
            job_site_id=job_site_id,
            distance_m=decision.distance_m,
            accuracy_risk=decision.accuracy_risk,
        )
        return entry

    def clock_out(self, entry_id: str) -> TimeEntry:
        """
        Close an open entry and compute its hours.

        Raises:
            EntryNotFound: unknown id
            NotClockedIn: entry is already closed
            InvalidClockOut: clock reads a time not after clock-in
        """
        entry = self.get_entry(entry_id)
        if not entry.is_open:
            raise NotClockedIn()

        now = self.scope.now()
        if now <= entry.clock_in_time:
            raise InvalidClockOut()

        closed = entry.model_copy(update={
            "clock_out_time": now,
            "total_hours": calculate_hours(entry.clock_in_time, now),
            "status": TimeEntryStatus.COMPLETED,
            "updated_at": now,
        })
        self.scope.time_entries = [closed if e.id == entry_id else e for e in self.scope.time_entries]
        logger.info(
            "clock_out",
            entry_id=entry_id,
            user_id=entry.user_id,
            total_hours=closed.total_hours,
        )
        return closed
