import pytest
from fastapi.testclient import TestClient

from geoclock.auth.security import create_access_token
from geoclock.main import app
from geoclock.routes.deps import get_clock
from geoclock.storage.local_provider import LocalCompanyStore
from geoclock.storage.provider import JOB_SITES, USERS, get_store

from conftest import COMPANY_ID, SITE_LAT, SITE_LON, north_of


@pytest.fixture
def store(tmp_path, employee, manager, main_site, annex_site):
    store = LocalCompanyStore(str(tmp_path))
    store.save(COMPANY_ID, USERS, [employee, manager])
    store.save(COMPANY_ID, JOB_SITES, [main_site, annex_site])
    return store


@pytest.fixture
def client(store, clock):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role.value)}"}


def position_body(lat=SITE_LAT, lon=SITE_LON, accuracy=8.0):
    return {"latitude": lat, "longitude": lon, "accuracy": accuracy}


def clock_in(client, user, job_site_id="site-main", **position):
    return client.post(
        "/time-entries/clock-in",
        json={"job_site_id": job_site_id, "position": position_body(**position), "notes": "morning"},
        headers=auth(user),
    )


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_request_id_echoed(client):
    assert client.get("/health", headers={"X-Request-ID": "abc-123"}).headers["X-Request-ID"] == "abc-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_requires_token(client):
    assert client.get("/time-entries/current").status_code == 401
    assert client.get("/time-entries/current", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_clock_in_and_out(client, clock, employee):
    r = clock_in(client, employee)
    assert r.status_code == 200, r.text
    entry = r.json()
    assert entry["status"] == "clocked_in"
    assert entry["notes"] == "morning"

    clock.advance(hours=1, minutes=30)
    current = client.get("/time-entries/current", headers=auth(employee)).json()
    assert current["entry"]["id"] == entry["id"]
    assert current["elapsed"] == "1h 30m"

    r = client.post(f"/time-entries/{entry['id']}/clock-out", headers=auth(employee))
    assert r.status_code == 200, r.text
    assert r.json()["total_hours"] == 1.5
    assert r.json()["status"] == "completed"

    assert client.get("/time-entries/current", headers=auth(employee)).json() == {"entry": None, "elapsed": None}


def test_clock_in_out_of_range(client, employee):
    lat, lon = north_of(SITE_LAT, SITE_LON, 500)
    r = clock_in(client, employee, lat=lat, lon=lon)
    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["error"] == "OutOfRange"
    assert detail["radius_m"] == 100
    assert detail["site_name"] == "Main Yard"
    assert client.get("/time-entries", headers=auth(employee)).json() == []


def test_clock_in_twice_conflicts(client, employee):
    assert clock_in(client, employee).status_code == 200
    r = clock_in(client, employee)
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "AlreadyClockedIn"


def test_clock_in_unknown_site(client, employee):
    r = clock_in(client, employee, job_site_id="nope")
    assert r.status_code == 404


def test_clock_in_rejects_invalid_coordinates(client, employee):
    assert clock_in(client, employee, lat=123.0).status_code == 422


def test_double_clock_out_conflicts(client, clock, employee):
    entry_id = clock_in(client, employee).json()["id"]
    clock.advance(hours=1)
    assert client.post(f"/time-entries/{entry_id}/clock-out", headers=auth(employee)).status_code == 200
    r = client.post(f"/time-entries/{entry_id}/clock-out", headers=auth(employee))
    assert r.status_code == 409
    assert r.json()["detail"]["error"] == "NotClockedIn"


def test_employee_cannot_close_someone_elses_entry(client, clock, employee, manager):
    entry_id = clock_in(client, manager).json()["id"]
    clock.advance(minutes=10)
    assert client.post(f"/time-entries/{entry_id}/clock-out", headers=auth(employee)).status_code == 403


def test_manager_can_close_employee_entry(client, clock, employee, manager):
    entry_id = clock_in(client, employee).json()["id"]
    clock.advance(minutes=30)
    r = client.post(f"/time-entries/{entry_id}/clock-out", headers=auth(manager))
    assert r.status_code == 200
    assert r.json()["total_hours"] == 0.5


def test_list_entries_permissions(client, employee, manager):
    clock_in(client, employee)
    assert client.get("/time-entries", params={"user_id": manager.id}, headers=auth(employee)).status_code == 403
    r = client.get("/time-entries", params={"user_id": employee.id}, headers=auth(manager))
    assert r.status_code == 200
    assert len(r.json()) == 1


def test_export_csv(client, clock, employee, manager):
    entry_id = clock_in(client, employee).json()["id"]
    clock.advance(hours=2)
    client.post(f"/time-entries/{entry_id}/clock-out", headers=auth(employee))

    assert client.get("/time-entries/export.csv", headers=auth(employee)).status_code == 403
    r = client.get("/time-entries/export.csv", headers=auth(manager))
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    lines = r.text.strip().splitlines()
    assert lines[0].startswith("Employee Name,Job Site,Clock In")
    assert "Erin Employee,Main Yard" in lines[1]


def test_job_site_lifecycle(client, manager, employee):
    payload = {"name": " Pier 17 ", "address1": "89 South St", "city": "New York", "state": "NY",
               "latitude": 40.7057, "longitude": -74.0019, "radius": 250}
    assert client.post("/job-sites", json=payload, headers=auth(employee)).status_code == 403

    r = client.post("/job-sites", json=payload, headers=auth(manager))
    assert r.status_code == 200, r.text
    site = r.json()
    assert site["name"] == "Pier 17"
    assert site["full_address"] == "89 South St, New York, NY"
    assert site["created_by"] == manager.id

    r = client.patch(f"/job-sites/{site['id']}", json={"radius": 400}, headers=auth(manager))
    assert r.status_code == 200
    assert r.json()["radius"] == 400
    assert r.json()["name"] == "Pier 17"

    assert client.patch(f"/job-sites/{site['id']}", json={"radius": 5000}, headers=auth(manager)).status_code == 422

    assert len(client.get("/job-sites", headers=auth(employee)).json()) == 3
    assert client.delete(f"/job-sites/{site['id']}", headers=auth(manager)).status_code == 200
    assert client.delete(f"/job-sites/{site['id']}", headers=auth(manager)).status_code == 404


def test_job_site_rejects_radius_out_of_bounds(client, manager):
    payload = {"name": "Tiny", "latitude": 40.0, "longitude": -74.0, "radius": 5}
    assert client.post("/job-sites", json=payload, headers=auth(manager)).status_code == 422


def test_check_distance(client, employee):
    lat, lon = north_of(SITE_LAT, SITE_LON, 45)
    r = client.post("/job-sites/site-main/check", json=position_body(lat, lon, accuracy=30), headers=auth(employee))
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "in_range"
    assert body["accuracy"]["level"] == "good"


def test_stats_endpoints(client, clock, employee, manager):
    entry_id = clock_in(client, employee).json()["id"]
    clock.advance(hours=3)
    client.post(f"/time-entries/{entry_id}/clock-out", headers=auth(employee))

    me = client.get("/stats/me", headers=auth(employee)).json()
    assert me["stats"]["total_hours"] == 3.0
    assert me["stats"]["this_week_entries"] == 1

    assert client.get("/stats/company", headers=auth(employee)).status_code == 403
    company = client.get("/stats/company", headers=auth(manager)).json()
    assert company["total_users"] == 2
    assert company["total_hours"] == 3.0

    assert client.get("/stats/job-sites", headers=auth(manager)).json() == {"Main Yard": 3.0}
    assert client.get(f"/stats/users/{employee.id}", headers=auth(manager)).json()["completed_entries"] == 1
    assert client.get("/stats/users/ghost", headers=auth(manager)).status_code == 404
    assert client.get("/stats/job-sites/site-main", headers=auth(manager)).json()["total_hours"] == 3.0
