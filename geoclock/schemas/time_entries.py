from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..services.time_rules import ensure_utc
from .location import Position


class TimeEntryStatus(str, Enum):
    CLOCKED_IN = "clocked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"  # reserved, never produced by clock-in/clock-out


class TimeEntry(BaseModel):
    id: str
    user_id: str
    job_site_id: str
    company_id: Optional[str] = None  # copied from the user at clock-in
    clock_in_time: datetime
    clock_out_time: Optional[datetime] = None
    total_hours: float = Field(default=0, ge=0)
    status: TimeEntryStatus = TimeEntryStatus.CLOCKED_IN
    notes: str = Field(default="", max_length=500)
    created_at: datetime
    updated_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status == TimeEntryStatus.CLOCKED_IN

    @field_validator("clock_in_time", "clock_out_time", "created_at", "updated_at")
    @classmethod
    def _times_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator("notes", mode="before")
    @classmethod
    def _strip_notes(cls, v):
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v


class ClockInRequest(BaseModel):
    job_site_id: str
    position: Position
    notes: Optional[str] = Field(default=None, max_length=500)
