from datetime import datetime
from typing import Callable

from fastapi import HTTPException

from ..errors import GeoClockError
from ..services.ledger import CompanyScope
from ..services.time_rules import utc_now
from ..storage.provider import CompanyStore


def get_clock() -> Callable[[], datetime]:
    """Time source for ledger operations; tests override this dependency."""
    return utc_now


def load_scope(store: CompanyStore, company_id: str, clock: Callable[[], datetime]) -> CompanyScope:
    snapshot = store.load(company_id)
    return CompanyScope(
        company_id=company_id,
        users=snapshot.users,
        job_sites=snapshot.job_sites,
        time_entries=snapshot.time_entries,
        clock=clock,
    )


def to_http(e: GeoClockError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_dict())
