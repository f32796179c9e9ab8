"""Application layer: use cases, search engine, ports, and DTOs. Depends only on domain."""

from agenda.application.contact_search import (
    DEFAULT_OVERFETCH_FACTOR,
    ContactSearch,
    GeoFilter,
    resolve_geo_filter,
)
from agenda.application.contact_service import ContactService
from agenda.application.dto import (
    ContactCreated,
    ContactListFilter,
    ContactPage,
    CreateContactInput,
    Duplicate,
    Invalid,
    NearbyContact,
    SimilarContact,
    UpdateContactInput,
)
from agenda.application.ports import (
    ASCENDING,
    DESCENDING,
    DocumentCollection,
    DocumentQuery,
    DocumentSnapshot,
    DocumentStore,
    PhotoStorage,
)

__all__ = [
    "ASCENDING",
    "DEFAULT_OVERFETCH_FACTOR",
    "DESCENDING",
    "ContactCreated",
    "ContactListFilter",
    "ContactPage",
    "ContactSearch",
    "ContactService",
    "CreateContactInput",
    "DocumentCollection",
    "DocumentQuery",
    "DocumentSnapshot",
    "DocumentStore",
    "Duplicate",
    "GeoFilter",
    "Invalid",
    "NearbyContact",
    "PhotoStorage",
    "SimilarContact",
    "UpdateContactInput",
    "resolve_geo_filter",
]
