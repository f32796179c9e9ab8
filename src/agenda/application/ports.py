"""Application ports (interfaces). Implemented by infrastructure adapters."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

ASCENDING = "asc"
DESCENDING = "desc"

Direction = Literal["asc", "desc"]


@dataclass(frozen=True)
class DocumentSnapshot:
    """One stored document as returned by a query or point lookup.

    cursor is the adapter's own resume handle; pass the snapshot to
    DocumentQuery.start_after to continue after this document.
    """

    id: str
    data: Mapping[str, Any]
    cursor: Any = field(default=None, compare=False)


class DocumentQuery(Protocol):
    """Immutable query builder over one collection. Every method returns a new query."""

    def where_equals(self, field_path: str, value: Any) -> "DocumentQuery":
        ...

    def where_array_contains(self, field_path: str, value: Any) -> "DocumentQuery":
        ...

    def where_between(self, field_path: str, low: float, high: float) -> "DocumentQuery":
        """Inclusive range filter; documents without the field never match."""
        ...

    def order_by(self, field_path: str, direction: Direction = ASCENDING) -> "DocumentQuery":
        """Documents missing an ordering field are excluded.
        Ties are broken by document id in the direction of the last order_by.
        """
        ...

    def limit(self, count: int) -> "DocumentQuery":
        ...

    def start_after(self, snapshot: DocumentSnapshot) -> "DocumentQuery":
        ...

    def stream(self) -> Iterator[DocumentSnapshot]:
        """Execute the query. Each call is a fresh read; the iterator is single-use."""
        ...


class DocumentCollection(Protocol):
    """Named set of documents keyed by id."""

    def query(self) -> DocumentQuery:
        ...

    def get(self, document_id: str) -> DocumentSnapshot | None:
        """Point lookup; None when the document does not exist."""
        ...

    def set(self, document_id: str, data: Mapping[str, Any]) -> None:
        """Insert or fully replace a document."""
        ...

    def delete(self, document_id: str) -> None:
        ...


class DocumentStore(Protocol):
    """Document database client. Shared by requests; adapters own their connections."""

    def collection(self, name: str) -> DocumentCollection:
        ...


class PhotoStorage(Protocol):
    """Blob store for contact photos."""

    def upload_contact_photo(self, contact_id: str, local_path: str) -> str:
        """Upload the file and return its public (or signed) URL."""
        ...

    def delete_contact_photo(self, photo_url: str) -> None:
        ...
