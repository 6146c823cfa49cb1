from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from geoclock.db import Base, make_engine
from geoclock.models import models
from geoclock.schemas.time_entries import TimeEntryStatus
from geoclock.services.ledger import CompanyScope, TimeEntryLedger
from geoclock.storage.local_provider import LocalCompanyStore
from geoclock.storage.provider import JOB_SITES, TIME_ENTRIES, USERS, check_collection
from geoclock.storage.sql_provider import SqlCompanyStore

from conftest import COMPANY_ID, WEDNESDAY


@pytest.fixture
def sql_store():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = factory()
    session.add(models.Company(id=COMPANY_ID, name="Acme"))
    session.commit()
    session.close()
    yield SqlCompanyStore(factory)
    engine.dispose()


@pytest.fixture
def local_store(tmp_path):
    return LocalCompanyStore(str(tmp_path))


@pytest.fixture(params=["local", "sql"])
def store(request):
    return request.getfixturevalue(f"{request.param}_store")


def test_empty_company_loads_empty(store):
    snapshot = store.load(COMPANY_ID)
    assert snapshot.users == []
    assert snapshot.job_sites == []
    assert snapshot.time_entries == []


def test_ledger_state_survives_save_and_load(store, clock, employee, manager, main_site, annex_site, on_site):
    store.save(COMPANY_ID, USERS, [employee, manager])
    store.save(COMPANY_ID, JOB_SITES, [main_site, annex_site])

    snapshot = store.load(COMPANY_ID)
    scope = CompanyScope(COMPANY_ID, snapshot.users, snapshot.job_sites, snapshot.time_entries, clock=clock)
    ledger = TimeEntryLedger(scope)
    entry = ledger.clock_in(employee.id, main_site.id, on_site, notes="rebar")
    store.save(COMPANY_ID, TIME_ENTRIES, scope.time_entries)

    clock.advance(hours=3, minutes=30)
    reloaded = store.load(COMPANY_ID)
    scope = CompanyScope(COMPANY_ID, reloaded.users, reloaded.job_sites, reloaded.time_entries, clock=clock)
    stored = TimeEntryLedger(scope).get_open_entry(employee.id)
    assert stored.id == entry.id
    assert stored.clock_in_time == WEDNESDAY
    assert stored.notes == "rebar"

    closed = TimeEntryLedger(scope).clock_out(entry.id)
    store.save(COMPANY_ID, TIME_ENTRIES, scope.time_entries)

    final = store.load(COMPANY_ID).time_entries
    assert len(final) == 1
    assert final[0].status == TimeEntryStatus.COMPLETED
    assert final[0].total_hours == 3.5
    assert final[0].clock_out_time == closed.clock_out_time


def test_site_coordinates_round_trip(store, main_site):
    store.save(COMPANY_ID, JOB_SITES, [main_site])
    site = store.load(COMPANY_ID).job_sites[0]
    assert site.latitude == pytest.approx(main_site.latitude)
    assert site.longitude == pytest.approx(main_site.longitude)
    assert site.radius == 100


def test_save_replaces_collection(store, main_site, annex_site):
    store.save(COMPANY_ID, JOB_SITES, [main_site, annex_site])
    store.save(COMPANY_ID, JOB_SITES, [annex_site])
    assert [s.id for s in store.load(COMPANY_ID).job_sites] == [annex_site.id]


def test_entries_load_in_creation_order(store, clock, employee, manager, main_site, on_site):
    store.save(COMPANY_ID, USERS, [employee, manager])
    store.save(COMPANY_ID, JOB_SITES, [main_site])
    scope = CompanyScope(COMPANY_ID, [employee, manager], [main_site], [], clock=clock)
    ledger = TimeEntryLedger(scope)
    first = ledger.clock_in(employee.id, main_site.id, on_site)
    clock.advance(minutes=5)
    second = ledger.clock_in(manager.id, main_site.id, on_site)
    store.save(COMPANY_ID, TIME_ENTRIES, scope.time_entries)

    assert [e.id for e in store.load(COMPANY_ID).time_entries] == [first.id, second.id]


def test_find_user_across_companies(store, employee):
    store.save(COMPANY_ID, USERS, [employee])
    assert store.find_user(employee.id) == employee
    assert store.find_user("nobody") is None


def test_unknown_collection_rejected(store):
    with pytest.raises(ValueError):
        store.save(COMPANY_ID, "invoices", [])
    check_collection(TIME_ENTRIES)


def test_local_store_layout(local_store, tmp_path, employee):
    local_store.save(COMPANY_ID, USERS, [employee])
    assert (tmp_path / COMPANY_ID / "users.json").exists()
    assert not (tmp_path / COMPANY_ID / "users.json.tmp").exists()


def test_sql_timestamps_come_back_utc(sql_store, employee):
    aware = employee.model_copy(update={"created_at": WEDNESDAY + timedelta(seconds=1)})
    sql_store.save(COMPANY_ID, USERS, [aware])
    loaded = sql_store.load(COMPANY_ID).users[0]
    assert loaded.created_at == WEDNESDAY + timedelta(seconds=1)
    assert loaded.created_at.utcoffset() == timedelta(0)
