"""
Seed the configured store with a demo company, its staff and two job sites.

Usage:
  python scripts/seed_demo_data.py

This script is idempotent: records are keyed by fixed ids, so running it
again overwrites the same users and job sites and leaves time entries alone.
"""

from datetime import datetime, timezone

from geoclock.auth.security import create_access_token
from geoclock.config import settings
from geoclock.db import Base, SessionLocal, engine
from geoclock.schemas.job_sites import JobSite, format_full_address
from geoclock.schemas.users import Role, User
from geoclock.storage.provider import JOB_SITES, USERS, get_store


COMPANY_ID = "demo-company"
COMPANY_NAME = "Demo Construction Co."


def ensure_company() -> None:
    """SQL storage needs the company row the users reference."""
    from geoclock.models.models import Company

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        if session.get(Company, COMPANY_ID) is None:
            session.add(Company(id=COMPANY_ID, name=COMPANY_NAME, industry="Construction"))
            session.commit()
    finally:
        session.close()


def demo_users(now: datetime) -> list[User]:
    return [
        User(id="demo-owner", company_id=COMPANY_ID, role=Role.OWNER, username="owner",
             first_name="Olivia", last_name="Owner", email="owner@example.com", created_at=now),
        User(id="demo-manager", company_id=COMPANY_ID, role=Role.MANAGER, username="manager",
             first_name="Marco", last_name="Manager", email="manager@example.com", created_at=now),
        User(id="demo-employee", company_id=COMPANY_ID, role=Role.EMPLOYEE, username="employee",
             first_name="Erin", last_name="Employee", email="employee@example.com", created_at=now),
    ]


def demo_job_sites(now: datetime) -> list[JobSite]:
    sites = [
        dict(id="demo-site-downtown", name="Downtown Tower", address1="350 5th Ave",
             city="New York", state="NY", zip_code="10118",
             latitude=40.748817, longitude=-73.985428, radius=150),
        dict(id="demo-site-brooklyn", name="Brooklyn Warehouse", address1="1 Water St",
             city="Brooklyn", state="NY", zip_code="11201",
             latitude=40.703830, longitude=-73.992750, radius=100),
    ]
    result = []
    for data in sites:
        full_address = format_full_address(data["address1"], "", data["city"], data["state"], data["zip_code"])
        result.append(JobSite(company_id=COMPANY_ID, full_address=full_address,
                              created_by="demo-owner", created_at=now, **data))
    return result


def main() -> None:
    now = datetime.now(timezone.utc)
    if settings.storage_provider == "sql":
        ensure_company()
    store = get_store()
    snapshot = store.load(COMPANY_ID)

    users = {u.id: u for u in snapshot.users}
    users.update({u.id: u for u in demo_users(now)})
    store.save(COMPANY_ID, USERS, list(users.values()))

    sites = {s.id: s for s in snapshot.job_sites}
    sites.update({s.id: s for s in demo_job_sites(now)})
    store.save(COMPANY_ID, JOB_SITES, list(sites.values()))

    print(f"Seeded company {COMPANY_ID} ({settings.storage_provider} storage)")
    for user in demo_users(now):
        print(f"  {user.role.value:<9} {user.username:<10} token: {create_access_token(user.id, user.role.value)}")


if __name__ == "__main__":
    main()
