"""In-memory implementation of DocumentStore (no DB).

Queries follow document-database semantics: dotted paths reach into nested
mappings, documents missing an ordering field are left out of ordered
queries, and ties are broken by document id in the direction of the last
order_by. Unordered queries return documents in insertion order.
"""

import copy
import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, replace
from typing import Any

from agenda.application.ports import ASCENDING, DESCENDING, Direction, DocumentSnapshot

_MISSING = object()
_ID_KEY = "__id__"


def _lookup(data: Mapping[str, Any], field_path: str) -> Any:
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _sort_value(snapshot: DocumentSnapshot, field_path: str) -> Any:
    if field_path == _ID_KEY:
        return snapshot.id
    return _lookup(snapshot.data, field_path)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _comes_after(key: list[Any], cursor_key: list[Any], directions: list[str]) -> bool:
    for value, cursor_value, direction in zip(key, cursor_key, directions):
        if value == cursor_value:
            continue
        if direction == DESCENDING:
            return value < cursor_value
        return value > cursor_value
    return False


@dataclass(frozen=True)
class InMemoryQuery:
    """Immutable query over one InMemoryCollection."""

    collection: "InMemoryCollection"
    filters: tuple[tuple[str, str, Any, Any], ...] = ()
    orders: tuple[tuple[str, str], ...] = ()
    max_results: int | None = None
    after: DocumentSnapshot | None = None

    def where_equals(self, field_path: str, value: Any) -> "InMemoryQuery":
        return replace(self, filters=self.filters + (("==", field_path, value, None),))

    def where_array_contains(self, field_path: str, value: Any) -> "InMemoryQuery":
        return replace(self, filters=self.filters + (("array-contains", field_path, value, None),))

    def where_between(self, field_path: str, low: float, high: float) -> "InMemoryQuery":
        return replace(self, filters=self.filters + (("between", field_path, low, high),))

    def order_by(self, field_path: str, direction: Direction = ASCENDING) -> "InMemoryQuery":
        if direction not in (ASCENDING, DESCENDING):
            raise ValueError(f"Unknown sort direction: {direction}")
        return replace(self, orders=self.orders + ((field_path, direction),))

    def limit(self, count: int) -> "InMemoryQuery":
        if count < 0:
            raise ValueError("limit must not be negative")
        return replace(self, max_results=count)

    def start_after(self, snapshot: DocumentSnapshot) -> "InMemoryQuery":
        return replace(self, after=snapshot)

    def _matches(self, data: Mapping[str, Any]) -> bool:
        for op, field_path, value, high in self.filters:
            actual = _lookup(data, field_path)
            if op == "==":
                if actual is _MISSING or actual != value:
                    return False
            elif op == "array-contains":
                if not isinstance(actual, list | tuple) or value not in actual:
                    return False
            elif op == "between":
                if not _is_number(actual) or not value <= actual <= high:
                    return False
        return True

    def stream(self) -> Iterator[DocumentSnapshot]:
        rows = [s for s in self.collection._all() if self._matches(s.data)]
        if self.orders:
            rows = [
                s
                for s in rows
                if all(_lookup(s.data, f) not in (_MISSING, None) for f, _ in self.orders)
            ]
            keys = list(self.orders) + [(_ID_KEY, self.orders[-1][1])]
            for field_path, direction in reversed(keys):
                rows.sort(
                    key=lambda s, f=field_path: _sort_value(s, f),
                    reverse=direction == DESCENDING,
                )
            if self.after is not None:
                cursor_key = [_sort_value(self.after, f) for f, _ in keys]
                directions = [d for _, d in keys]
                rows = [
                    s
                    for s in rows
                    if _comes_after([_sort_value(s, f) for f, _ in keys], cursor_key, directions)
                ]
        elif self.after is not None:
            ids = [s.id for s in rows]
            rows = rows[ids.index(self.after.id) + 1 :] if self.after.id in ids else []
        if self.max_results is not None:
            rows = rows[: self.max_results]
        yield from rows


class InMemoryCollection:
    """Documents of one collection, keyed by id. Insertion order is preserved."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _all(self) -> list[DocumentSnapshot]:
        with self._lock:
            return [
                DocumentSnapshot(id=doc_id, data=copy.deepcopy(data), cursor=doc_id)
                for doc_id, data in self._documents.items()
            ]

    def query(self) -> InMemoryQuery:
        return InMemoryQuery(collection=self)

    def get(self, document_id: str) -> DocumentSnapshot | None:
        with self._lock:
            data = self._documents.get(document_id)
            if data is None:
                return None
            return DocumentSnapshot(id=document_id, data=copy.deepcopy(data), cursor=document_id)

    def set(self, document_id: str, data: Mapping[str, Any]) -> None:
        with self._lock:
            self._documents[document_id] = copy.deepcopy(dict(data))

    def delete(self, document_id: str) -> None:
        with self._lock:
            self._documents.pop(document_id, None)

    def __len__(self) -> int:
        return len(self._documents)


class InMemoryDocumentStore:
    """Process-local DocumentStore. Collections are created on first use."""

    def __init__(self) -> None:
        self._collections: dict[str, InMemoryCollection] = {}
        self._lock = threading.Lock()

    def collection(self, name: str) -> InMemoryCollection:
        with self._lock:
            if name not in self._collections:
                self._collections[name] = InMemoryCollection(name)
            return self._collections[name]

    def close(self) -> None:
        """Nothing to release; present so callers can close any store uniformly."""
