import uuid
from datetime import datetime
from typing import Callable, List

import structlog
from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import get_current_user, require_manager
from ..errors import JobSiteNotLocatable
from ..schemas.job_sites import JobSite, JobSiteCreate, JobSiteUpdate, format_full_address
from ..schemas.location import Position
from ..schemas.users import User
from ..services.geofence import accuracy_level, job_site_status
from ..storage.provider import JOB_SITES, CompanyStore, get_store
from .deps import get_clock, to_http


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/job-sites", tags=["job-sites"])


def _get_site_or_404(sites: List[JobSite], job_site_id: str) -> JobSite:
    site = next((s for s in sites if s.id == job_site_id), None)
    if site is None:
        raise HTTPException(status_code=404, detail="Job site not found")
    return site


@router.get("", response_model=List[JobSite])
def list_job_sites(
    user: User = Depends(get_current_user),
    store: CompanyStore = Depends(get_store),
):
    return store.load(user.company_id).job_sites


@router.post("", response_model=JobSite)
def create_job_site(
    payload: JobSiteCreate,
    user: User = Depends(require_manager),
    store: CompanyStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    sites = store.load(user.company_id).job_sites
    now = clock()
    site = JobSite(
        id=str(uuid.uuid4()),
        company_id=user.company_id,
        full_address=format_full_address(
            payload.address1, payload.address2, payload.city,
            payload.state, payload.zip_code, payload.country,
        ),
        created_by=user.id,
        created_at=now,
        updated_at=now,
        **payload.model_dump(),
    )
    store.save(user.company_id, JOB_SITES, sites + [site])
    logger.info("job_site_created", job_site_id=site.id, company_id=user.company_id, radius_m=site.radius)
    return site


@router.patch("/{job_site_id}", response_model=JobSite)
def update_job_site(
    job_site_id: str,
    payload: JobSiteUpdate,
    user: User = Depends(require_manager),
    store: CompanyStore = Depends(get_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    sites = store.load(user.company_id).job_sites
    site = _get_site_or_404(sites, job_site_id)

    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    merged = site.model_dump()
    merged.update(updates)
    merged["full_address"] = format_full_address(
        merged["address1"], merged["address2"], merged["city"],
        merged["state"], merged["zip_code"], merged["country"],
    )
    merged["updated_at"] = clock()
    # Re-validate so coordinates and radius stay in range
    updated = JobSite.model_validate(merged)

    store.save(user.company_id, JOB_SITES, [updated if s.id == job_site_id else s for s in sites])
    logger.info("job_site_updated", job_site_id=job_site_id, fields=sorted(updates))
    return updated


@router.delete("/{job_site_id}")
def delete_job_site(
    job_site_id: str,
    user: User = Depends(require_manager),
    store: CompanyStore = Depends(get_store),
):
    """Remove a job site. Time entries that reference it are kept."""
    sites = store.load(user.company_id).job_sites
    _get_site_or_404(sites, job_site_id)
    store.save(user.company_id, JOB_SITES, [s for s in sites if s.id != job_site_id])
    logger.info("job_site_deleted", job_site_id=job_site_id, company_id=user.company_id)
    return {"status": "ok"}


@router.post("/{job_site_id}/check")
def check_distance(
    job_site_id: str,
    position: Position,
    user: User = Depends(get_current_user),
    store: CompanyStore = Depends(get_store),
):
    """Preview whether a position is inside the site's geofence."""
    site = _get_site_or_404(store.load(user.company_id).job_sites, job_site_id)
    if not site.has_coordinates:
        raise to_http(JobSiteNotLocatable())
    result = job_site_status(position.latitude, position.longitude, site).model_dump()
    if position.accuracy is not None:
        result["accuracy"] = accuracy_level(position.accuracy).model_dump()
    return result
