"""
Agenda core: clean-architecture layout.

- domain: entities and value objects (Contact, GeoLocation, Address). No outer dependencies.
- application: use cases (ContactService), the contact search engine, ports, DTOs.
- infrastructure: adapters (InMemoryDocumentStore, Neo4jDocumentStore, phone normalization).
"""

from agenda.application import (
    ContactCreated,
    ContactListFilter,
    ContactPage,
    ContactSearch,
    ContactService,
    CreateContactInput,
    DocumentStore,
    Duplicate,
    Invalid,
    UpdateContactInput,
)
from agenda.domain import Contact, GeoLocation, bounding_box
from agenda.infrastructure import InMemoryDocumentStore, Neo4jDocumentStore

__all__ = [
    "Contact",
    "ContactCreated",
    "ContactListFilter",
    "ContactPage",
    "ContactSearch",
    "ContactService",
    "CreateContactInput",
    "DocumentStore",
    "Duplicate",
    "GeoLocation",
    "InMemoryDocumentStore",
    "Invalid",
    "Neo4jDocumentStore",
    "UpdateContactInput",
    "bounding_box",
]
