"""Neo4j implementation of DocumentStore.

Each document is one (:Document {_collection, _id, ...}) node. Nested
mappings are flattened into dotted property names (location.latitude) and
rebuilt on read; None values are not stored. Timestamps are stored as native
Neo4j datetimes. Queries are compiled to Cypher: equality, list membership
and inclusive ranges in WHERE, keyset pagination for start_after, and
ORDER BY with the document id as the final tie-break.
"""

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, replace
from typing import Any

from agenda.application.ports import ASCENDING, DESCENDING, Direction, DocumentSnapshot

_FIELD_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)*$")

_COLLECTION_PROP = "_collection"
_ID_PROP = "_id"

_CONSTRAINT_QUERY = """
CREATE CONSTRAINT document_key_unique IF NOT EXISTS
FOR (d:Document) REQUIRE (d._collection, d._id) IS NODE UNIQUE
"""

_GET_QUERY = """
MATCH (d:Document {_collection: $collection, _id: $id})
RETURN d
"""

_SET_QUERY = """
MERGE (d:Document {_collection: $collection, _id: $id})
SET d = $props
"""

_DELETE_QUERY = """
MATCH (d:Document {_collection: $collection, _id: $id})
DELETE d
"""


def _property(field_path: str) -> str:
    """Cypher property access for a (possibly dotted) field path."""
    if not _FIELD_PATTERN.match(field_path):
        raise ValueError(f"Unsupported field path: {field_path!r}")
    return f"d.`{field_path}`"


def flatten_document(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten_document(value, prefix=f"{name}."))
        elif value is not None:
            flat[name] = list(value) if isinstance(value, tuple) else value
    return flat


def _to_native(value: Any) -> Any:
    # neo4j.time.DateTime and friends expose to_native().
    to_native = getattr(value, "to_native", None)
    return to_native() if callable(to_native) else value


def unflatten_properties(props: Mapping[str, Any]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for name, value in props.items():
        if name in (_COLLECTION_PROP, _ID_PROP):
            continue
        parts = name.split(".")
        target = data
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = _to_native(value)
    return data


def _node_to_snapshot(node: Mapping[str, Any]) -> DocumentSnapshot:
    document_id = node[_ID_PROP]
    return DocumentSnapshot(
        id=document_id,
        data=unflatten_properties(dict(node)),
        cursor=document_id,
    )


def _lookup(data: Mapping[str, Any], field_path: str) -> Any:
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


@dataclass(frozen=True)
class Neo4jQuery:
    """Immutable query over one collection, compiled to Cypher on stream()."""

    collection: "Neo4jCollection"
    filters: tuple[tuple[str, str, Any, Any], ...] = ()
    orders: tuple[tuple[str, str], ...] = ()
    max_results: int | None = None
    after: DocumentSnapshot | None = None

    def where_equals(self, field_path: str, value: Any) -> "Neo4jQuery":
        _property(field_path)
        return replace(self, filters=self.filters + (("==", field_path, value, None),))

    def where_array_contains(self, field_path: str, value: Any) -> "Neo4jQuery":
        _property(field_path)
        return replace(self, filters=self.filters + (("array-contains", field_path, value, None),))

    def where_between(self, field_path: str, low: float, high: float) -> "Neo4jQuery":
        _property(field_path)
        return replace(self, filters=self.filters + (("between", field_path, low, high),))

    def order_by(self, field_path: str, direction: Direction = ASCENDING) -> "Neo4jQuery":
        _property(field_path)
        if direction not in (ASCENDING, DESCENDING):
            raise ValueError(f"Unknown sort direction: {direction}")
        return replace(self, orders=self.orders + ((field_path, direction),))

    def limit(self, count: int) -> "Neo4jQuery":
        if count < 0:
            raise ValueError("limit must not be negative")
        return replace(self, max_results=count)

    def start_after(self, snapshot: DocumentSnapshot) -> "Neo4jQuery":
        return replace(self, after=snapshot)

    def to_cypher(self) -> tuple[str, dict[str, Any]]:
        """Return (cypher, parameters) for this query."""
        params: dict[str, Any] = {"collection": self.collection.name}
        conditions: list[str] = []

        def param(value: Any) -> str:
            name = f"p{len(params) - 1}"
            params[name] = value
            return f"${name}"

        for op, field_path, value, high in self.filters:
            prop = _property(field_path)
            if op == "==":
                conditions.append(f"{prop} = {param(value)}")
            elif op == "array-contains":
                conditions.append(f"{param(value)} IN {prop}")
            else:
                conditions.append(f"{prop} >= {param(value)} AND {prop} <= {param(high)}")

        keys: list[tuple[str, str]] = []
        if self.orders:
            for field_path, _ in self.orders:
                conditions.append(f"{_property(field_path)} IS NOT NULL")
            keys = [(_property(f), d) for f, d in self.orders]
            keys.append((f"d.{_ID_PROP}", self.orders[-1][1]))

        if self.after is not None:
            if not keys:
                raise ValueError("start_after requires order_by")
            cursor_values = [_lookup(self.after.data, f) for f, _ in self.orders]
            cursor_values.append(self.after.id)
            cursor_params = [param(v) for v in cursor_values]
            alternatives = []
            for i, (prop, direction) in enumerate(keys):
                op = "<" if direction == DESCENDING else ">"
                terms = [f"{keys[j][0]} = {cursor_params[j]}" for j in range(i)]
                terms.append(f"{prop} {op} {cursor_params[i]}")
                alternatives.append("(" + " AND ".join(terms) + ")")
            conditions.append("(" + " OR ".join(alternatives) + ")")

        lines = ["MATCH (d:Document {_collection: $collection})"]
        if conditions:
            lines.append("WHERE " + "\n  AND ".join(conditions))
        lines.append("RETURN d")
        if keys:
            lines.append(
                "ORDER BY "
                + ", ".join(f"{prop} {'DESC' if d == DESCENDING else 'ASC'}" for prop, d in keys)
            )
        if self.max_results is not None:
            params["limit"] = self.max_results
            lines.append("LIMIT $limit")
        return "\n".join(lines), params

    def stream(self) -> Iterator[DocumentSnapshot]:
        cypher, params = self.to_cypher()
        with self.collection.driver.session() as session:
            records = list(session.run(cypher, **params))
        for record in records:
            yield _node_to_snapshot(record["d"])


class Neo4jCollection:
    """One collection of :Document nodes."""

    def __init__(self, driver: object, name: str) -> None:
        self.driver = driver
        self.name = name

    def query(self) -> Neo4jQuery:
        return Neo4jQuery(collection=self)

    def get(self, document_id: str) -> DocumentSnapshot | None:
        with self.driver.session() as session:
            record = session.run(_GET_QUERY, collection=self.name, id=document_id).single()
        if not record:
            return None
        return _node_to_snapshot(record["d"])

    def set(self, document_id: str, data: Mapping[str, Any]) -> None:
        props = flatten_document(data)
        props[_COLLECTION_PROP] = self.name
        props[_ID_PROP] = document_id
        with self.driver.session() as session:
            session.run(_SET_QUERY, collection=self.name, id=document_id, props=props)

    def delete(self, document_id: str) -> None:
        with self.driver.session() as session:
            session.run(_DELETE_QUERY, collection=self.name, id=document_id)


class Neo4jDocumentStore:
    """DocumentStore backed by a neo4j driver. The driver is injected and shared."""

    def __init__(self, driver: object) -> None:
        self._driver = driver

    def ensure_constraints(self) -> None:
        """Create the (collection, id) uniqueness constraint if missing."""
        with self._driver.session() as session:
            session.run(_CONSTRAINT_QUERY)

    def collection(self, name: str) -> Neo4jCollection:
        return Neo4jCollection(self._driver, name)

    def close(self) -> None:
        self._driver.close()
