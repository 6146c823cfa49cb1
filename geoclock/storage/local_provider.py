"""
Local filesystem store for development.
Keeps one JSON document per company and collection instead of a database.
"""
import json
import os
from pathlib import Path
from typing import Optional, Sequence

import structlog
from pydantic import BaseModel

from ..schemas.job_sites import JobSite
from ..schemas.time_entries import TimeEntry
from ..schemas.users import User
from .provider import (
    COLLECTIONS,
    JOB_SITES,
    TIME_ENTRIES,
    USERS,
    CompanySnapshot,
    CompanyStore,
    check_collection,
)


logger = structlog.get_logger(__name__)

_RECORD_TYPES = {USERS: User, JOB_SITES: JobSite, TIME_ENTRIES: TimeEntry}


class LocalCompanyStore(CompanyStore):
    """JSON-file store rooted at `base_dir`."""

    def __init__(self, base_dir: str = "var/storage"):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _company_dir(self, company_id: str) -> Path:
        # Company ids are opaque; keep them from escaping the base directory
        clean_id = str(company_id).replace("..", "").replace("/", "_").replace("\\", "_")
        return self.base_dir / clean_id

    def _path(self, company_id: str, collection_name: str) -> Path:
        return self._company_dir(company_id) / f"{collection_name}.json"

    def _read(self, path: Path, record_type) -> list:
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return [record_type.model_validate(item) for item in raw]

    def load(self, company_id: str) -> CompanySnapshot:
        data = {
            name: self._read(self._path(company_id, name), _RECORD_TYPES[name])
            for name in COLLECTIONS
        }
        return CompanySnapshot(**data)

    def save(self, company_id: str, collection_name: str, items: Sequence[BaseModel]) -> None:
        check_collection(collection_name)
        path = self._path(company_id, collection_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = [item.model_dump(mode="json") for item in items]
        # Write to a temp file and rename so readers never see a partial document
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, path)
        logger.debug("collection_saved", company_id=company_id, collection=collection_name, count=len(payload))

    def find_user(self, user_id: str) -> Optional[User]:
        for users_file in self.base_dir.glob(f"*/{USERS}.json"):
            for user in self._read(users_file, User):
                if user.id == user_id:
                    return user
        return None
