from typing import List, Optional, Sequence

from pydantic import BaseModel

from ..config import settings
from ..schemas.job_sites import JobSite
from ..schemas.time_entries import TimeEntry
from ..schemas.users import User


USERS = "users"
JOB_SITES = "job_sites"
TIME_ENTRIES = "time_entries"
COLLECTIONS = (USERS, JOB_SITES, TIME_ENTRIES)


class CompanySnapshot(BaseModel):
    users: List[User] = []
    job_sites: List[JobSite] = []
    time_entries: List[TimeEntry] = []


class CompanyStore:
    def load(self, company_id: str) -> CompanySnapshot:
        raise NotImplementedError

    def save(self, company_id: str, collection_name: str, items: Sequence[BaseModel]) -> None:
        """Replace the stored collection of `company_id` with `items`."""
        raise NotImplementedError

    def find_user(self, user_id: str) -> Optional[User]:
        """Look a user up across companies (used to resolve the caller's scope)."""
        raise NotImplementedError


def check_collection(collection_name: str) -> None:
    if collection_name not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection_name}")


def get_store() -> CompanyStore:
    if settings.storage_provider == "local":
        from .local_provider import LocalCompanyStore
        return LocalCompanyStore(settings.local_storage_dir)
    from .sql_provider import SqlCompanyStore
    return SqlCompanyStore()

