"""
SQLAlchemy-backed company store.
"""
from typing import Optional, Sequence

import structlog
from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from ..db import SessionLocal
from ..models import models
from ..schemas.job_sites import JobSite
from ..schemas.time_entries import TimeEntry
from ..schemas.users import User
from .provider import (
    JOB_SITES,
    TIME_ENTRIES,
    USERS,
    CompanySnapshot,
    CompanyStore,
    check_collection,
)


logger = structlog.get_logger(__name__)


def _user_to_record(row: models.User) -> User:
    return User(
        id=row.id,
        company_id=row.company_id,
        role=row.role,
        username=row.username,
        first_name=row.first_name or "",
        last_name=row.last_name or "",
        email=row.email,
        is_active=row.is_active,
        created_at=row.created_at,
    )


def _user_to_row(company_id: str, user: User) -> models.User:
    return models.User(
        id=user.id,
        company_id=company_id,
        role=user.role.value,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        is_active=user.is_active,
        created_at=user.created_at,
    )


def _site_to_record(row: models.JobSite) -> JobSite:
    return JobSite(
        id=row.id,
        company_id=row.company_id,
        name=row.name,
        address1=row.address1 or "",
        address2=row.address2 or "",
        city=row.city or "",
        state=row.state or "",
        zip_code=row.zip_code or "",
        country=row.country or "",
        full_address=row.full_address or "",
        latitude=float(row.lat) if row.lat is not None else None,
        longitude=float(row.lng) if row.lng is not None else None,
        radius=row.radius_m,
        created_by=row.created_by,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _site_to_row(company_id: str, site: JobSite) -> models.JobSite:
    return models.JobSite(
        id=site.id,
        company_id=company_id,
        name=site.name,
        address1=site.address1,
        address2=site.address2,
        city=site.city,
        state=site.state,
        zip_code=site.zip_code,
        country=site.country,
        full_address=site.full_address,
        lat=site.latitude,
        lng=site.longitude,
        radius_m=site.radius,
        created_by=site.created_by,
        is_active=site.is_active,
        created_at=site.created_at,
        updated_at=site.updated_at,
    )


def _entry_to_record(row: models.TimeEntry) -> TimeEntry:
    return TimeEntry(
        id=row.id,
        user_id=row.user_id,
        job_site_id=row.job_site_id,
        company_id=row.company_id,
        clock_in_time=row.clock_in_time,
        clock_out_time=row.clock_out_time,
        total_hours=row.total_hours or 0,
        status=row.status,
        notes=row.notes or "",
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _entry_to_row(company_id: str, entry: TimeEntry) -> models.TimeEntry:
    return models.TimeEntry(
        id=entry.id,
        user_id=entry.user_id,
        job_site_id=entry.job_site_id,
        company_id=company_id,
        clock_in_time=entry.clock_in_time,
        clock_out_time=entry.clock_out_time,
        total_hours=entry.total_hours,
        status=entry.status.value,
        notes=entry.notes,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


_TABLES = {
    USERS: (models.User, _user_to_row),
    JOB_SITES: (models.JobSite, _site_to_row),
    TIME_ENTRIES: (models.TimeEntry, _entry_to_row),
}


class SqlCompanyStore(CompanyStore):
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def load(self, company_id: str) -> CompanySnapshot:
        db: Session = self.session_factory()
        try:
            users = db.query(models.User).filter(models.User.company_id == company_id).all()
            sites = db.query(models.JobSite).filter(models.JobSite.company_id == company_id).all()
            entries = (
                db.query(models.TimeEntry)
                .filter(models.TimeEntry.company_id == company_id)
                .order_by(models.TimeEntry.created_at.asc(), models.TimeEntry.id.asc())
                .all()
            )
            return CompanySnapshot(
                users=[_user_to_record(u) for u in users],
                job_sites=[_site_to_record(s) for s in sites],
                time_entries=[_entry_to_record(e) for e in entries],
            )
        finally:
            db.close()

    def save(self, company_id: str, collection_name: str, items: Sequence[BaseModel]) -> None:
        check_collection(collection_name)
        model, to_row = _TABLES[collection_name]
        keep_ids = {item.id for item in items}
        db: Session = self.session_factory()
        try:
            existing = db.query(model).filter(model.company_id == company_id).all()
            for row in existing:
                if row.id not in keep_ids:
                    db.delete(row)
            for item in items:
                db.merge(to_row(company_id, item))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.debug("collection_saved", company_id=company_id, collection=collection_name, count=len(items))

    def find_user(self, user_id: str) -> Optional[User]:
        db: Session = self.session_factory()
        try:
            row = db.query(models.User).filter(models.User.id == user_id).first()
            return _user_to_record(row) if row else None
        finally:
            db.close()
