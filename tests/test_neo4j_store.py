"""Tests for Neo4jDocumentStore.

Cypher compilation and document flattening run without a database. Tests
marked neo4j need Docker (testcontainers) and are skipped when it is missing.
"""

from datetime import datetime, timedelta, timezone

import pytest

from agenda.application import ContactSearch, ContactService, CreateContactInput
from agenda.application.ports import DESCENDING, DocumentSnapshot
from agenda.infrastructure import Neo4jDocumentStore
from agenda.infrastructure.persistence.neo4j_store import (
    Neo4jCollection,
    flatten_document,
    unflatten_properties,
)

T0 = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class FakeResult:
    def __init__(self, records: list) -> None:
        self._records = records

    def __iter__(self):
        return iter(self._records)

    def single(self):
        return self._records[0] if self._records else None


class FakeSession:
    def __init__(self, driver: "FakeDriver") -> None:
        self._driver = driver

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def run(self, cypher, **params):
        self._driver.runs.append((cypher, params))
        return FakeResult(self._driver.records)


class FakeDriver:
    def __init__(self, records: list | None = None) -> None:
        self.records = records or []
        self.runs: list = []
        self.closed = False

    def session(self):
        return FakeSession(self)

    def close(self):
        self.closed = True


def _collection(records: list | None = None) -> Neo4jCollection:
    return Neo4jDocumentStore(FakeDriver(records)).collection("contacts")


# --- flattening ---


def test_flatten_and_unflatten_nested_document() -> None:
    data = {
        "name": "Ana",
        "location": {"latitude": -23.5, "longitude": -46.6},
        "address": None,
        "searchKeywords": ("ana",),
        "createdAt": T0,
    }
    flat = flatten_document(data)
    assert flat == {
        "name": "Ana",
        "location.latitude": -23.5,
        "location.longitude": -46.6,
        "searchKeywords": ["ana"],
        "createdAt": T0,
    }

    props = dict(flat, _collection="contacts", _id="c1")
    assert unflatten_properties(props) == {
        "name": "Ana",
        "location": {"latitude": -23.5, "longitude": -46.6},
        "searchKeywords": ["ana"],
        "createdAt": T0,
    }


# --- Cypher compilation ---


def test_to_cypher_filters_order_and_limit() -> None:
    query = (
        _collection()
        .query()
        .where_equals("isPublic", True)
        .where_array_contains("searchKeywords", "ana")
        .where_between("location.latitude", 1.0, 2.0)
        .order_by("createdAt", DESCENDING)
        .limit(6)
    )

    cypher, params = query.to_cypher()

    assert cypher == (
        "MATCH (d:Document {_collection: $collection})\n"
        "WHERE d.`isPublic` = $p0\n"
        "  AND $p1 IN d.`searchKeywords`\n"
        "  AND d.`location.latitude` >= $p2 AND d.`location.latitude` <= $p3\n"
        "  AND d.`createdAt` IS NOT NULL\n"
        "RETURN d\n"
        "ORDER BY d.`createdAt` DESC, d._id DESC\n"
        "LIMIT $limit"
    )
    assert params == {
        "collection": "contacts",
        "p0": True,
        "p1": "ana",
        "p2": 1.0,
        "p3": 2.0,
        "limit": 6,
    }


def test_to_cypher_start_after_uses_keyset_on_order_fields_and_id() -> None:
    cursor = DocumentSnapshot(id="abc", data={"createdAt": T0}, cursor="abc")
    query = _collection().query().order_by("createdAt", DESCENDING).start_after(cursor)

    cypher, params = query.to_cypher()

    assert "((d.`createdAt` < $p0) OR (d.`createdAt` = $p0 AND d._id < $p1))" in cypher
    assert params["p0"] == T0
    assert params["p1"] == "abc"
    assert "LIMIT" not in cypher


def test_start_after_without_order_is_rejected() -> None:
    cursor = DocumentSnapshot(id="abc", data={}, cursor="abc")
    with pytest.raises(ValueError):
        _collection().query().start_after(cursor).to_cypher()


@pytest.mark.parametrize("field_path", ["", "a b", "x`) DETACH DELETE d //", "1abc", "a..b"])
def test_unsafe_field_paths_rejected(field_path) -> None:
    with pytest.raises(ValueError):
        _collection().query().where_equals(field_path, 1)


def test_stream_and_get_decode_nodes() -> None:
    node = {"_collection": "contacts", "_id": "c1", "name": "Ana", "location.latitude": 1.5}
    collection = _collection([{"d": node}])

    snapshots = list(collection.query().stream())
    assert snapshots == [DocumentSnapshot(id="c1", data={"name": "Ana", "location": {"latitude": 1.5}}, cursor="c1")]
    assert collection.get("c1").data["location"] == {"latitude": 1.5}
    assert _collection().get("missing") is None


def test_set_flattens_and_tags_document() -> None:
    driver = FakeDriver()
    Neo4jDocumentStore(driver).collection("contacts").set("c1", {"location": {"latitude": 1.0}, "phone": None})

    _, params = driver.runs[-1]
    assert params["props"] == {"location.latitude": 1.0, "_collection": "contacts", "_id": "c1"}


def test_close_closes_driver() -> None:
    driver = FakeDriver()
    Neo4jDocumentStore(driver).close()
    assert driver.closed


# --- integration (Docker) ---


@pytest.fixture(scope="session")
def neo4j_driver():
    try:
        from testcontainers.neo4j import Neo4jContainer

        container = Neo4jContainer()
        container.start()
    except Exception as exc:  # Docker not available
        pytest.skip(f"Neo4j container unavailable: {exc}")
    driver = container.get_driver()
    try:
        yield driver
    finally:
        driver.close()
        container.stop()


@pytest.fixture
def clean_store(neo4j_driver):
    """Clear the graph before each test so tests are independent."""
    with neo4j_driver.session() as session:
        session.run("MATCH (n) DETACH DELETE n")
    store = Neo4jDocumentStore(neo4j_driver)
    store.ensure_constraints()
    return store


@pytest.mark.neo4j
def test_set_get_delete_roundtrip(clean_store) -> None:
    things = clean_store.collection("things")
    things.set("t1", {"name": "Ana", "location": {"latitude": -23.5, "longitude": -46.6}, "at": T0})

    snapshot = things.get("t1")
    assert snapshot.data["location"] == {"latitude": -23.5, "longitude": -46.6}
    assert snapshot.data["at"] == T0
    assert clean_store.collection("other").get("t1") is None

    things.set("t1", {"name": "Ana Maria"})
    assert things.get("t1").data == {"name": "Ana Maria"}

    things.delete("t1")
    assert things.get("t1") is None


@pytest.mark.neo4j
def test_ordering_and_paging(clean_store) -> None:
    things = clean_store.collection("things")
    things.set("a", {"at": T0})
    things.set("b", {"at": T0 + timedelta(hours=1)})
    things.set("c", {"at": T0 + timedelta(hours=1)})
    things.set("d", {"kind": "no timestamp"})

    base = things.query().order_by("at", DESCENDING)
    first = list(base.limit(2).stream())
    assert [s.id for s in first] == ["c", "b"]
    assert [s.id for s in base.start_after(first[-1]).stream()] == ["a"]


@pytest.mark.neo4j
def test_geo_search_over_neo4j(clean_store) -> None:
    service = ContactService(clean_store)
    for name, lat, lon in [
        ("Paulista", -23.5614, -46.6559),
        ("Rio", -22.9068, -43.1729),
        ("Se", -23.5503, -46.6340),
    ]:
        service.create_contact(
            CreateContactInput(
                owner_id="owner-1",
                name=name,
                email=f"{name.lower()}@example.com",
                is_public=True,
                location={"latitude": lat, "longitude": lon},
            )
        )

    search = ContactSearch(clean_store)
    found = search.search_public_contacts(
        limit=1, center_lat=-23.5505, center_lon=-46.6333, radius_km=5
    )
    rest = search.search_public_contacts(
        limit=5, cursor=found[0].id, center_lat=-23.5505, center_lon=-46.6333, radius_km=5
    )

    assert {c.name for c in found + rest} == {"Paulista", "Se"}
    assert len(found) == 1
    assert len(rest) == 1
