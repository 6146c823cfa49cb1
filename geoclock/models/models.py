import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    Numeric,
    Text,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base


def str_pk() -> Mapped[str]:
    return mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[str] = str_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    industry: Mapped[Optional[str]] = mapped_column(String(100))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = str_pk()
    company_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # owner|manager|employee
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    email: Mapped[Optional[str]] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class JobSite(Base):
    """Geofenced work location"""
    __tablename__ = "job_sites"

    id: Mapped[str] = str_pk()
    company_id: Mapped[str] = mapped_column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    address1: Mapped[str] = mapped_column(String(100), default="")
    address2: Mapped[str] = mapped_column(String(100), default="")
    city: Mapped[str] = mapped_column(String(50), default="")
    state: Mapped[str] = mapped_column(String(50), default="")
    zip_code: Mapped[str] = mapped_column(String(20), default="")
    country: Mapped[str] = mapped_column(String(50), default="United States")
    full_address: Mapped[str] = mapped_column(String(500), default="")
    lat: Mapped[Optional[float]] = mapped_column(Numeric(10, 7, asdecimal=False))  # Latitude for geofence
    lng: Mapped[Optional[float]] = mapped_column(Numeric(10, 7, asdecimal=False))  # Longitude for geofence
    radius_m: Mapped[int] = mapped_column(Integer, default=100)
    created_by: Mapped[Optional[str]] = mapped_column(String(36))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class TimeEntry(Base):
    """Clock-in/clock-out work session"""
    __tablename__ = "time_entries"

    id: Mapped[str] = str_pk()
    # No FK on job_site_id: deleting a site leaves its entries in place
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    job_site_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    company_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    clock_in_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    clock_out_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    total_hours: Mapped[float] = mapped_column(Float, default=0)
    status: Mapped[str] = mapped_column(String(20), default="clocked_in")  # clocked_in|completed|cancelled
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index('idx_time_entries_company_user', 'company_id', 'user_id'),
        Index('idx_time_entries_user_status', 'user_id', 'status'),
    )
