from datetime import datetime
from typing import Callable, Dict

from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import get_current_user, require_manager
from ..schemas.users import User
from ..services import stats
from ..services.time_rules import month_window, week_window
from ..storage.provider import CompanyStore, get_store
from .deps import get_clock


router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/company", response_model=stats.CompanyStats)
def company_stats(
    user: User = Depends(require_manager),
    store: CompanyStore = Depends(get_store),
):
    snapshot = store.load(user.company_id)
    return stats.company_stats(snapshot.users, snapshot.job_sites, snapshot.time_entries)


@router.get("/me")
def my_stats(
    user: User = Depends(get_current_user),
    store: CompanyStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    now = clock()
    snapshot = store.load(user.company_id)
    return {
        "stats": stats.entry_stats(snapshot.time_entries, now, user_id=user.id).model_dump(),
        "week": week_window(now).model_dump(mode="json"),
        "month": month_window(now).model_dump(mode="json"),
    }


@router.get("/users/{user_id}", response_model=stats.EntryStats)
def user_stats(
    user_id: str,
    user: User = Depends(require_manager),
    store: CompanyStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    snapshot = store.load(user.company_id)
    if not any(u.id == user_id for u in snapshot.users):
        raise HTTPException(status_code=404, detail="User not found")
    return stats.entry_stats(snapshot.time_entries, clock(), user_id=user_id)


@router.get("/job-sites", response_model=Dict[str, float])
def hours_by_job_site(
    user: User = Depends(require_manager),
    store: CompanyStore = Depends(get_store),
):
    snapshot = store.load(user.company_id)
    lookup = {s.id: s for s in snapshot.job_sites}
    return stats.hours_by_job_site(snapshot.time_entries, lookup)


@router.get("/job-sites/{job_site_id}", response_model=stats.EntryStats)
def job_site_stats(
    job_site_id: str,
    user: User = Depends(require_manager),
    store: CompanyStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    snapshot = store.load(user.company_id)
    site = next((s for s in snapshot.job_sites if s.id == job_site_id), None)
    if site is None:
        raise HTTPException(status_code=404, detail="Job site not found")
    return stats.job_site_stats(site, snapshot.time_entries, clock())
