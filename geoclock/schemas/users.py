from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..services.time_rules import ensure_utc, utc_now


class Role(str, Enum):
    OWNER = "owner"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class User(BaseModel):
    id: str
    company_id: Optional[str] = None  # None until the account is onboarded
    role: Role
    username: str = Field(min_length=1, max_length=100)
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def full_name(self) -> str:
        return " ".join(x for x in [self.first_name.strip(), self.last_name.strip()] if x) or self.username

    @property
    def can_manage(self) -> bool:
        return self.role in (Role.OWNER, Role.MANAGER)

    @field_validator("created_at")
    @classmethod
    def _created_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
