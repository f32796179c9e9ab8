"""Infrastructure layer: concrete implementations of application ports."""

from agenda.infrastructure.memory_store import InMemoryDocumentStore
from agenda.infrastructure.persistence.neo4j_store import Neo4jDocumentStore
from agenda.infrastructure.phone import normalize_phone, phone_normalizer

__all__ = [
    "InMemoryDocumentStore",
    "Neo4jDocumentStore",
    "normalize_phone",
    "phone_normalizer",
]
