"""
Clock-in/clock-out API routes.
"""
import csv
import io
from datetime import datetime
from typing import Callable, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..auth.security import get_current_user, require_manager
from ..errors import GeoClockError
from ..schemas.location import LocationQuery
from ..schemas.time_entries import ClockInRequest, TimeEntry
from ..schemas.users import User
from ..services.ledger import TimeEntryLedger
from ..services.location import LocationProvider, ReportedPositionSensor
from ..services.stats import EXPORT_COLUMNS, export_rows
from ..services.time_rules import duration_label
from ..storage.provider import TIME_ENTRIES, CompanyStore, get_store
from .deps import get_clock, load_scope, to_http


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/time-entries", tags=["time-entries"])


@router.post("/clock-in", response_model=TimeEntry)
async def clock_in(
    payload: ClockInRequest,
    user: User = Depends(get_current_user),
    store: CompanyStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Clock the caller in at a job site.
    The device sends its own position reading; it must lie inside the site's radius.
    """
    # Resolve the position before touching the ledger
    provider = LocationProvider(ReportedPositionSensor(payload.position), clock=clock)
    try:
        position = await provider.get_current_location(LocationQuery(max_cached_age_ms=0))
        scope = load_scope(store, user.company_id, clock)
        entry = TimeEntryLedger(scope).clock_in(user.id, payload.job_site_id, position, notes=payload.notes or "")
    except GeoClockError as e:
        raise to_http(e)

    store.save(user.company_id, TIME_ENTRIES, scope.time_entries)
    return entry


@router.post("/{entry_id}/clock-out", response_model=TimeEntry)
def clock_out(
    entry_id: str,
    user: User = Depends(get_current_user),
    store: CompanyStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    scope = load_scope(store, user.company_id, clock)
    ledger = TimeEntryLedger(scope)
    try:
        entry = ledger.get_entry(entry_id)
        if entry.user_id != user.id and not user.can_manage:
            raise HTTPException(status_code=403, detail="You can only clock out your own entries")
        closed = ledger.clock_out(entry_id)
    except GeoClockError as e:
        raise to_http(e)

    store.save(user.company_id, TIME_ENTRIES, scope.time_entries)
    return closed


@router.get("/current")
def current_entry(
    user: User = Depends(get_current_user),
    store: CompanyStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    scope = load_scope(store, user.company_id, clock)
    entry = TimeEntryLedger(scope).get_open_entry(user.id)
    if entry is None:
        return {"entry": None, "elapsed": None}
    return {
        "entry": entry.model_dump(mode="json"),
        "elapsed": duration_label(entry.clock_in_time, now=scope.now()),
    }


@router.get("", response_model=List[TimeEntry])
def list_entries(
    user_id: Optional[str] = None,
    job_site_id: Optional[str] = None,
    user: User = Depends(get_current_user),
    store: CompanyStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Entries newest first. Employees only see their own."""
    target_user_id = user_id or user.id
    if target_user_id != user.id and not user.can_manage:
        raise HTTPException(status_code=403, detail="Forbidden")

    ledger = TimeEntryLedger(load_scope(store, user.company_id, clock))
    entries = ledger.get_entries_for_user(target_user_id)
    if job_site_id:
        entries = [e for e in entries if e.job_site_id == job_site_id]
    return sorted(entries, key=lambda e: e.clock_in_time, reverse=True)


@router.get("/export.csv")
def export_entries(
    user: User = Depends(require_manager),
    store: CompanyStore = Depends(get_store),
):
    snapshot = store.load(user.company_id)
    rows = export_rows(snapshot.time_entries, snapshot.users, snapshot.job_sites)

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
    logger.info("timesheet_exported", company_id=user.company_id, rows=len(rows))
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="timesheet.csv"'},
    )
