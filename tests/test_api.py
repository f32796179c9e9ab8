"""API tests against the in-memory store. No Neo4j required."""

import pytest
from fastapi.testclient import TestClient

from agenda.infrastructure import InMemoryDocumentStore
from api.main import USER_ID_HEADER, app

OWNER = {USER_ID_HEADER: "owner-1"}
OTHER = {USER_ID_HEADER: "owner-2"}
SAO_PAULO = {"latitude": -23.5505, "longitude": -46.6333}
RIO = {"latitude": -22.9068, "longitude": -43.1729}


@pytest.fixture
def client():
    app.state.store = InMemoryDocumentStore()
    app.state.service = None
    yield TestClient(app)
    app.state.store = None
    app.state.service = None


def _create(client, **body) -> dict:
    r = client.post("/contacts", json=body, headers=OWNER)
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_create_and_list_own_contacts(client):
    created = _create(client, name="Ana", email="Ana@Example.com", phone="+55 11 98765-4321")
    assert created["email"] == "ana@example.com"
    assert created["phone"] == "+5511987654321"
    assert created["slug"] is None

    r = client.get("/contacts", headers=OWNER)
    assert r.status_code == 200
    body = r.json()
    assert [c["id"] for c in body["items"]] == [created["id"]]
    assert body["next_cursor"] is None

    assert client.get("/contacts", headers=OTHER).json()["items"] == []


def test_missing_user_header_is_401(client):
    assert client.get("/contacts").status_code == 401
    assert client.post("/contacts", json={"name": "Ana", "email": "ana@example.com"}).status_code == 401


def test_create_invalid_and_duplicate(client):
    r = client.post("/contacts", json={"name": "Ana", "email": "nope"}, headers=OWNER)
    assert r.status_code == 400

    _create(client, name="Ana", email="ana@example.com")
    r = client.post("/contacts", json={"name": "Ana B", "email": "ana@example.com"}, headers=OWNER)
    assert r.status_code == 409


def test_get_update_delete_contact(client):
    created = _create(client, name="Bruno", email="bruno@example.com")
    url = f"/contacts/{created['id']}"

    assert client.get(url, headers=OTHER).status_code == 403

    r = client.patch(url, json={"is_public": True, "is_favorite": True}, headers=OWNER)
    assert r.status_code == 200
    updated = r.json()
    assert updated["is_public"] is True
    assert updated["slug"].startswith("bruno-")

    favorites = client.get("/contacts/favorites", headers=OWNER).json()
    assert [c["id"] for c in favorites] == [created["id"]]

    assert client.patch(url, json={"email": "broken"}, headers=OWNER).status_code == 400
    assert client.delete(url, headers=OTHER).status_code == 403
    assert client.delete(url, headers=OWNER).status_code == 204
    assert client.get(url, headers=OWNER).status_code == 404


def test_public_search_with_radius_and_cursor(client):
    near_old = _create(client, name="Near Old", email="old@example.com", is_public=True, location=SAO_PAULO)
    _create(client, name="Far", email="far@example.com", is_public=True, location=RIO)
    near_new = _create(client, name="Near New", email="new@example.com", is_public=True, location=SAO_PAULO)
    _create(client, name="Hidden", email="hidden@example.com", location=SAO_PAULO)
    params = {"lat": SAO_PAULO["latitude"], "lon": SAO_PAULO["longitude"], "radius_km": 5}

    r = client.get("/public/contacts", params={**params, "limit": 1})
    assert r.status_code == 200
    first = r.json()
    assert len(first["items"]) == 1
    assert first["next_cursor"] == first["items"][0]["id"]

    second = client.get(
        "/public/contacts", params={**params, "limit": 1, "cursor": first["next_cursor"]}
    ).json()
    found = {first["items"][0]["id"], second["items"][0]["id"]}
    assert found == {near_old["id"], near_new["id"]}

    third = client.get(
        "/public/contacts", params={**params, "limit": 1, "cursor": second["next_cursor"]}
    ).json()
    assert third == {"items": [], "next_cursor": None}

    everything = client.get("/public/contacts").json()
    assert {c["name"] for c in everything["items"]} == {"Near Old", "Far", "Near New"}


@pytest.mark.parametrize(
    "params",
    [
        {"lat": 10.0},
        {"lat": 10.0, "lon": 10.0},
        {"radius_km": 5},
        {"lat": 10.0, "lon": 10.0, "radius_km": 0},
        {"lat": 100.0, "lon": 10.0, "radius_km": 5},
    ],
)
def test_public_search_rejects_bad_geo_arguments(client, params):
    assert client.get("/public/contacts", params=params).status_code == 400


def test_public_search_unknown_cursor_is_404(client):
    assert client.get("/public/contacts", params={"cursor": "gone"}).status_code == 404


def test_public_search_limit_validated(client):
    assert client.get("/public/contacts", params={"limit": 0}).status_code == 422


def test_nearby_reports_distance(client):
    near = _create(client, name="Near", email="near@example.com", is_public=True, location=SAO_PAULO)
    _create(client, name="Far", email="far@example.com", is_public=True, location=RIO)

    r = client.get(
        "/public/contacts/nearby",
        params={"lat": SAO_PAULO["latitude"], "lon": SAO_PAULO["longitude"], "radius_km": 10},
    )
    assert r.status_code == 200
    items = r.json()
    assert [c["id"] for c in items] == [near["id"]]
    assert items[0]["distance_km"] == 0.0


def test_public_contact_by_slug(client):
    created = _create(client, name="Carla", email="carla@example.com", is_public=True, slug="Carla Doces")
    assert created["slug"] == "carla-doces"

    r = client.get("/public/contacts/carla-doces")
    assert r.status_code == 200
    assert r.json()["id"] == created["id"]

    assert client.get("/public/contacts/unknown-slug").status_code == 404


def test_public_directory_hides_owner_fields(client):
    created = _create(
        client,
        name="Dora",
        email="dora@example.com",
        is_public=True,
        location=SAO_PAULO,
        notes="owes me 500",
        is_favorite=True,
    )
    private_fields = {"email", "notes", "is_favorite", "is_public", "created_at", "updated_at"}
    params = {"lat": SAO_PAULO["latitude"], "lon": SAO_PAULO["longitude"], "radius_km": 5}

    listed = client.get("/public/contacts").json()["items"][0]
    nearby = client.get("/public/contacts/nearby", params=params).json()[0]
    by_slug = client.get(f"/public/contacts/{created['slug']}").json()

    for item in (listed, nearby, by_slug):
        assert item["id"] == created["id"]
        assert item["name"] == "Dora"
        assert private_fields.isdisjoint(item)

    # The owner still sees everything.
    own = client.get(f"/contacts/{created['id']}", headers=OWNER).json()
    assert own["notes"] == "owes me 500"
    assert own["is_favorite"] is True


def test_default_page_size_comes_from_application_layer():
    from agenda.application import dto
    from api import main as api_main

    assert api_main.DEFAULT_PAGE_SIZE == dto.DEFAULT_PAGE_SIZE
