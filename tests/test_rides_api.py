"""
Rides endpoints through the FastAPI app, with auth and Supabase swapped for
the in-memory store. The lifespan is not run, so no network client is built.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from groupride.core.dependencies import get_current_user_id, get_roster, get_user_store
from groupride.main import app
from groupride.modules.rides.routes import get_ride_service
from groupride.modules.rides.service import RideService
from groupride.modules.users.schemas import UserResponse
from groupride.roster import RosterSyncEngine

from .conftest import ALICE, BOB, CAROL, FakeStore

NAMES = {ALICE: "Alice Smith", BOB: "Bob Jones", CAROL: "Carol White"}

QUICK_RIDE = {
    "time_of_day": "morning",
    "distance": "80km",
    "pace": "Chill",
    "bike_type": "road",
    "start_location": "  Harbour steps ",
}


@pytest.fixture
def api(db):
    acting = {"id": ALICE}
    shared = RosterSyncEngine(None)
    users = MagicMock()
    users.get_user_by_id.side_effect = lambda user_id: UserResponse(
        id=user_id, full_name=NAMES[user_id], notification_radius_km=25
    )

    def act_as(user_id):
        acting["id"] = user_id

    app.dependency_overrides[get_current_user_id] = lambda: {"id": acting["id"]}
    app.dependency_overrides[get_user_store] = lambda: FakeStore(db, acting["id"])
    app.dependency_overrides[get_roster] = lambda: shared
    app.dependency_overrides[get_ride_service] = lambda: RideService(users)
    try:
        yield SimpleNamespace(client=TestClient(app), act_as=act_as, roster=shared, db=db)
    finally:
        app.dependency_overrides.clear()
        if hasattr(app.state, "roster"):
            del app.state.roster


def _create(api, **overrides):
    resp = api.client.post("/api/v1/rides", json={**QUICK_RIDE, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_ride_joins_creator(api):
    ride = _create(api)

    assert ride["title"] == "Alice Smith wants to ride"
    assert ride["start_location"] == "Harbour steps"
    assert ride["distance"] == 80.0
    assert ride["pace"] == "chill"
    assert ride["bike_type"] == "Road"
    assert '" - ' in ride["description"]
    assert ride["is_participant"] is True
    assert ride["going_count"] == 1
    assert ride["participants"][0]["user_id"] == ALICE
    assert ride["participants"][0]["status"] == "accepted"
    assert [r["id"] for r in api.db.rows("rides")] == [ride["id"]]


def test_invalid_ride_is_422(api):
    resp = api.client.post("/api/v1/rides", json={**QUICK_RIDE, "distance": "far"})
    assert resp.status_code == 422
    assert api.db.rows("rides") == []


def test_list_rides_in_start_order(api):
    api.db.add_ride("later", BOB, hours=30)
    api.db.add_ride("sooner", CAROL, hours=3)

    resp = api.client.get("/api/v1/rides")

    assert resp.status_code == 200
    body = resp.json()
    assert [r["id"] for r in body["rides"]] == ["sooner", "later"]
    assert body["version"] > 0
    assert body["last_error"] is None


def test_join_accept_and_leave(api):
    ride_id = _create(api)["id"]
    api.act_as(BOB)

    assert api.client.post(f"/api/v1/rides/{ride_id}/join").status_code == 204
    ride = api.client.get("/api/v1/rides").json()["rides"][0]
    assert ride["is_participant"] is True
    assert ride["participant_count"] == 2
    assert ride["going_count"] == 1

    resp = api.client.put(f"/api/v1/rides/{ride_id}/status", json={"status": "accepted"})
    assert resp.status_code == 204
    assert api.client.get("/api/v1/rides").json()["rides"][0]["going_count"] == 2

    assert api.client.delete(f"/api/v1/rides/{ride_id}/join").status_code == 204
    assert api.client.delete(f"/api/v1/rides/{ride_id}/join").status_code == 204
    ride = api.client.get("/api/v1/rides").json()["rides"][0]
    assert ride["is_participant"] is False
    assert ride["participant_count"] == 1


def test_pending_status_cannot_be_set(api):
    ride_id = _create(api)["id"]
    resp = api.client.put(f"/api/v1/rides/{ride_id}/status", json={"status": "pending"})
    assert resp.status_code == 422


def test_status_for_someone_else_is_403(api):
    ride_id = _create(api)["id"]
    resp = api.client.put(f"/api/v1/rides/{ride_id}/status", json={"status": "declined", "user_id": BOB})
    assert resp.status_code == 403


def test_only_the_creator_can_delete(api):
    ride_id = _create(api)["id"]

    api.act_as(BOB)
    resp = api.client.delete(f"/api/v1/rides/{ride_id}")
    assert resp.status_code == 403
    assert resp.json() == {"detail": "Only the ride creator can delete this ride"}

    api.act_as(ALICE)
    assert api.client.delete(f"/api/v1/rides/{ride_id}").status_code == 204
    assert api.client.get("/api/v1/rides").json()["rides"] == []
    assert api.db.rows("ride_participants") == []


def test_ride_detail(api):
    api.db.add_group("g1", "Saturday Crew")
    api.db.add_ride("r1", ALICE, group_id="g1")
    api.db.add_participant("r1", ALICE)
    api.db.add_participant("r1", BOB, status="pending")
    api.act_as(BOB)

    resp = api.client.get("/api/v1/rides/r1")

    assert resp.status_code == 200
    body = resp.json()
    assert body["creator_name"] == "Alice Smith"
    assert body["group_name"] == "Saturday Crew"
    assert body["display_title"] == "Saturday Crew Ride"
    assert body["is_participant"] is True
    assert {p["name"] for p in body["participants"]} == {"Alice Smith", "Bob Jones"}


def test_missing_ride_is_404(api):
    assert api.client.get("/api/v1/rides/nope").status_code == 404
    assert api.client.post("/api/v1/rides/nope/join").status_code == 404


def test_nearby_rides(api):
    api.db.add_ride("near", BOB, hours=5, latitude=51.52, longitude=-0.10, bike_type="Road")
    api.db.add_ride("far", BOB, hours=5, latitude=48.8566, longitude=2.3522, bike_type="Road")

    resp = api.client.get("/api/v1/rides/nearby", params={"latitude": 51.5074, "longitude": -0.1278})

    assert resp.status_code == 200
    assert [n["ride_id"] for n in resp.json()] == ["near"]
    assert resp.json()[0]["url"] == "/rides/near"


def test_ready_waits_for_first_load(api):
    app.state.roster = api.roster
    assert api.client.get("/ready").status_code == 503

    api.client.get("/api/v1/rides")
    resp = api.client.get("/ready")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ready"


def test_health_sets_security_headers(api):
    resp = api.client.get("/health")
    assert resp.status_code == 200
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
