"""
Hour totals and dashboard statistics derived from time entries.
Every function here is pure: it reads a snapshot and never mutates it.
Open entries count with their stored total_hours (0), they are not
estimated against the current time.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from ..schemas.job_sites import JobSite
from ..schemas.time_entries import TimeEntry, TimeEntryStatus
from ..schemas.users import User
from .time_rules import ensure_utc, month_window, utc_to_local, week_window


UNKNOWN_SITE = "Unknown Site"
UNKNOWN_USER = "Unknown"
EXPORT_COLUMNS = ["Employee Name", "Job Site", "Clock In", "Clock Out", "Total Hours", "Status", "Date", "Notes"]


class CompanyStats(BaseModel):
    total_users: int
    total_job_sites: int
    total_entries: int
    total_hours: float
    active_entries: int


class EntryStats(BaseModel):
    total_entries: int
    total_hours: float
    active_entries: int
    completed_entries: int
    this_week_entries: int
    this_week_hours: float
    this_month_entries: int
    this_month_hours: float


def _sum_hours(entries: Iterable[TimeEntry]) -> float:
    return round(sum(e.total_hours or 0 for e in entries), 2)


def total_hours(entries: Iterable[TimeEntry]) -> float:
    return _sum_hours(entries)


def entries_in_window(entries: Iterable[TimeEntry], window_start: datetime, window_end: datetime) -> List[TimeEntry]:
    """Entries whose created_at falls inside [window_start, window_end], both ends inclusive."""
    start = ensure_utc(window_start)
    end = ensure_utc(window_end)
    return [e for e in entries if start <= e.created_at <= end]


def hours_in_window(entries: Iterable[TimeEntry], window_start: datetime, window_end: datetime) -> float:
    return _sum_hours(entries_in_window(entries, window_start, window_end))


def hours_by_job_site(entries: Iterable[TimeEntry], site_lookup: Mapping[str, JobSite]) -> Dict[str, float]:
    """
    Group hours by job site name.
    Entries pointing at a site that no longer exists are reported under UNKNOWN_SITE.
    """
    totals: Dict[str, float] = {}
    for entry in entries:
        site = site_lookup.get(entry.job_site_id)
        name = site.name if site else UNKNOWN_SITE
        totals[name] = totals.get(name, 0) + (entry.total_hours or 0)
    return {name: round(hours, 2) for name, hours in totals.items()}


def company_stats(users: List[User], job_sites: List[JobSite], entries: List[TimeEntry]) -> CompanyStats:
    return CompanyStats(
        total_users=len(users),
        total_job_sites=len(job_sites),
        total_entries=len(entries),
        total_hours=_sum_hours(entries),
        active_entries=sum(1 for e in entries if e.status == TimeEntryStatus.CLOCKED_IN),
    )


def entry_stats(
    entries: Iterable[TimeEntry],
    now: datetime,
    user_id: Optional[str] = None,
    job_site_id: Optional[str] = None,
    timezone_str: Optional[str] = None,
) -> EntryStats:
    """
    Totals for one user and/or one job site, including this week and this month.

    Args:
        entries: Entries to aggregate
        now: Reference instant for the week/month windows
        user_id: Restrict to this user (optional)
        job_site_id: Restrict to this job site (optional)
        timezone_str: Local timezone for calendar windows (defaults to settings)
    """
    filtered = list(entries)
    if user_id:
        filtered = [e for e in filtered if e.user_id == user_id]
    if job_site_id:
        filtered = [e for e in filtered if e.job_site_id == job_site_id]

    week = week_window(now, timezone_str)
    month = month_window(now, timezone_str)
    week_entries = entries_in_window(filtered, week.start, week.end)
    month_entries = entries_in_window(filtered, month.start, month.end)

    return EntryStats(
        total_entries=len(filtered),
        total_hours=_sum_hours(filtered),
        active_entries=sum(1 for e in filtered if e.status == TimeEntryStatus.CLOCKED_IN),
        completed_entries=sum(1 for e in filtered if e.status == TimeEntryStatus.COMPLETED),
        this_week_entries=len(week_entries),
        this_week_hours=_sum_hours(week_entries),
        this_month_entries=len(month_entries),
        this_month_hours=_sum_hours(month_entries),
    )


def job_site_stats(site: JobSite, entries: Iterable[TimeEntry], now: datetime, timezone_str: Optional[str] = None) -> EntryStats:
    return entry_stats(entries, now, job_site_id=site.id, timezone_str=timezone_str)


def _fmt_datetime(dt: datetime, timezone_str: Optional[str]) -> str:
    return utc_to_local(dt, timezone_str).strftime("%b %d, %Y %I:%M %p")


def export_rows(
    entries: Iterable[TimeEntry],
    users: Iterable[User],
    job_sites: Iterable[JobSite],
    timezone_str: Optional[str] = None,
) -> List[Dict[str, object]]:
    """Flatten entries into timesheet rows keyed by column header."""
    users_by_id = {u.id: u for u in users}
    sites_by_id = {s.id: s for s in job_sites}
    rows = []
    for entry in entries:
        user = users_by_id.get(entry.user_id)
        site = sites_by_id.get(entry.job_site_id)
        rows.append({
            "Employee Name": user.full_name if user else UNKNOWN_USER,
            "Job Site": site.name if site else UNKNOWN_SITE,
            "Clock In": _fmt_datetime(entry.clock_in_time, timezone_str),
            "Clock Out": _fmt_datetime(entry.clock_out_time, timezone_str) if entry.clock_out_time else "In Progress",
            "Total Hours": entry.total_hours,
            "Status": entry.status.value,
            "Date": utc_to_local(entry.created_at, timezone_str).strftime("%b %d, %Y"),
            "Notes": entry.notes,
        })
    return rows

