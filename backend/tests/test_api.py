"""
End-to-end checks through the FastAPI app.

Requests share the in-memory database with the `db` fixture, so tests set
up state through the API (or commit before calling it) and read results
back from responses.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from bikewear.main import app
from bikewear.services.auth_service import create_access_token


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def other_headers(other_user):
    return {"Authorization": f"Bearer {create_access_token(other_user.id)}"}


def _create_bike(client, headers, **overrides):
    body = {"manufacturer": "Santa Cruz", "model": "Hightower", "travel_fork_mm": 160, "travel_shock_mm": 150}
    body.update(overrides)
    response = client.post("/api/bikes", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _component(bike, component_type, location="NONE"):
    return next(c for c in bike["components"] if c["type"] == component_type and c["location"] == location)


def test_health_and_root(client):
    assert client.get("/").json()["status"] == "running"
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["database"] == "ok"


def test_requests_need_a_valid_token(client, user):
    assert client.get("/api/bikes").status_code == 401
    assert client.get("/api/bikes", headers={"Authorization": "Bearer not-a-token"}).status_code == 401

    expired = create_access_token(user.id, expires_delta=timedelta(minutes=-5))
    assert client.get("/api/bikes", headers={"Authorization": f"Bearer {expired}"}).status_code == 401


def test_create_and_list_bikes(client, headers):
    bike = _create_bike(
        client,
        headers,
        year=1975,
        catalog_components={"seatpost": {"description": "OneUp V2", "kind": "dropper"}},
        component_overrides={"FORK": {"brand": "Fox", "model": "36"}},
        paired_component_configs=[{
            "type": "TIRES",
            "use_same_spec": False,
            "front_spec": {"brand": "Maxxis", "model": "Assegai"},
            "rear_spec": {"brand": "Maxxis", "model": "DHR II"},
        }],
    )

    assert bike["year"] == 1980
    assert len(bike["components"]) == 24
    assert _component(bike, "FORK")["brand"] == "Fox"
    assert _component(bike, "TIRES", "REAR")["model"] == "DHR II"

    listed = client.get("/api/bikes", headers=headers).json()
    assert [b["id"] for b in listed] == [bike["id"]]

    installs = client.get(f"/api/bikes/{bike['id']}/installs", headers=headers).json()
    assert len(installs) == 24


def test_foreign_bike_is_not_found(client, headers, other_headers):
    bike = _create_bike(client, headers)

    response = client.get(f"/api/bikes/{bike['id']}", headers=other_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"
    missing = client.get("/api/bikes/99999", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == response.json()["detail"]
    assert client.delete(f"/api/bikes/{bike['id']}", headers=other_headers).status_code == 404


def test_install_pair_through_api(client, headers):
    bike = _create_bike(client, headers)

    response = client.post("/api/components/install", headers=headers, json={
        "bike_id": bike["id"],
        "slot_key": "TIRES:FRONT",
        "new_component": {"brand": "Maxxis", "model": "Assegai"},
        "also_replace_pair": True,
    })

    assert response.status_code == 200, response.text
    result = response.json()
    assert result["installed"]["location"] == "FRONT"
    assert result["paired_installed"]["location"] == "REAR"
    assert result["installed"]["pair_group_id"] == result["paired_installed"]["pair_group_id"]
    assert result["displaced"]["status"] == "RETIRED"

    pair = client.get(f"/api/components/{result['installed']['id']}/pair", headers=headers).json()
    assert pair["id"] == result["paired_installed"]["id"]


def test_bad_input_and_conflicts(client, headers):
    bike = _create_bike(client, headers)

    bad = client.post("/api/components/install", headers=headers, json={"bike_id": bike["id"], "slot_key": "TIRES"})
    assert bad.status_code == 400
    assert bad.json()["error_code"] == "BAD_USER_INPUT"

    duplicate = client.post("/api/components", headers=headers, json={"type": "FORK", "bike_id": bike["id"]})
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "CONFLICT"

    swap = client.post("/api/components/swap", headers=headers, json={
        "bike_id_a": bike["id"], "slot_key_a": "FORK", "bike_id_b": bike["id"], "slot_key_b": "SHOCK",
    })
    assert swap.status_code == 400


def test_component_crud(client, headers):
    created = client.post("/api/components", headers=headers, json={
        "type": "TIRES", "location": "REAR", "brand": "Maxxis", "model": "DHR II",
    })
    assert created.status_code == 201
    spare = created.json()
    assert spare["status"] == "INVENTORY"

    updated = client.patch(f"/api/components/{spare['id']}", headers=headers, json={"model": None, "notes": "Spare"})
    assert updated.json()["model"] == "Stock"
    assert updated.json()["brand"] == "Maxxis"

    spares = client.get("/api/components", headers=headers, params={"only_spare": True}).json()
    assert [c["id"] for c in spares] == [spare["id"]]

    assert client.delete(f"/api/components/{spare['id']}", headers=headers).json() == {"ok": True, "id": spare["id"]}
    assert client.get("/api/components", headers=headers).json() == []


def test_rides_drive_component_hours(client, headers):
    bike = _create_bike(client, headers)
    chain = _component(bike, "CHAIN")

    ride = client.post("/api/rides", headers=headers, json={
        "start_time": "2024-05-01T08:30:00Z", "duration_seconds": 5400,
    })
    assert ride.status_code == 201
    assert ride.json()["bike_id"] == bike["id"]

    components = client.get("/api/components", headers=headers, params={"bike_id": bike["id"], "types": ["CHAIN"]}).json()
    assert [(c["id"], c["hours_used"]) for c in components] == [(chain["id"], 1.5)]

    patched = client.patch(f"/api/rides/{ride.json()['id']}", headers=headers, json={"bike_id": None})
    assert patched.json()["bike_id"] is None

    components = client.get("/api/components", headers=headers, params={"bike_id": bike["id"], "types": ["CHAIN"]}).json()
    assert components[0]["hours_used"] == 0

    assigned = client.post("/api/rides/assign-bike", headers=headers, json={
        "ride_ids": [ride.json()["id"]], "bike_id": bike["id"],
    })
    assert assigned.json() == {"success": True, "updated_count": 1}


def test_service_and_baselines(client, headers):
    bike = _create_bike(client, headers)
    fork = _component(bike, "FORK")
    shock = _component(bike, "SHOCK")

    logged = client.post(f"/api/components/{fork['id']}/service", headers=headers, json={"notes": "Lowers"})
    assert logged.status_code == 201
    assert logged.json()["hours_at_service"] == 0

    bulk = client.post("/api/components/service/bulk", headers=headers, json={
        "component_ids": [fork["id"], shock["id"]], "performed_at": "2024-01-15T12:00:00Z",
    })
    assert bulk.json()["updated_count"] == 2

    baselines = client.post("/api/components/baselines", headers=headers, json={
        "updates": [{"component_id": shock["id"], "wear_percent": 30, "method": "SLIDER"}],
    })
    assert baselines.status_code == 200
    assert baselines.json()[0]["baseline_confidence"] == "MEDIUM"

    out_of_range = client.post("/api/components/baselines", headers=headers, json={
        "updates": [{"component_id": shock["id"], "wear_percent": 130, "method": "SLIDER"}],
    })
    assert out_of_range.status_code == 400


def test_replace_and_history(client, headers):
    bike = _create_bike(client, headers)
    chain = _component(bike, "CHAIN")

    replaced = client.post(f"/api/components/{chain['id']}/replace", headers=headers, json={
        "new_brand": "SRAM", "new_model": "GX",
    })
    assert replaced.status_code == 200
    successor = replaced.json()["created"][0]

    history = client.get(f"/api/components/{chain['id']}/installs", headers=headers).json()
    assert len(history) == 1 and history[0]["removed_at"] is not None

    bike_after = client.get(f"/api/bikes/{bike['id']}", headers=headers).json()
    assert _component(bike_after, "CHAIN")["id"] == successor["id"]


def test_pairing_migration_endpoints(client, headers):
    _create_bike(client, headers)

    migrated = client.post("/api/components/migrate-paired", headers=headers)
    assert migrated.json() == {"migrated_count": 0, "components": []}

    seen = client.post("/api/components/migrate-paired/seen", headers=headers)
    assert seen.json()["ok"] is True
    assert seen.json()["seen_at"] is not None
