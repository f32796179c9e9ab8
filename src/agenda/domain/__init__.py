"""Domain layer: entities, value objects and errors. No dependencies on outer layers."""

from agenda.domain.entities import Contact
from agenda.domain.errors import (
    ContactNotFound,
    CursorNotFound,
    DomainError,
    InvalidArgument,
    NotFound,
    Unauthorized,
)
from agenda.domain.geo import BoundingBox, GeoLocation, bounding_box
from agenda.domain.values import Address, Email, Slug

__all__ = [
    "Address",
    "BoundingBox",
    "Contact",
    "ContactNotFound",
    "CursorNotFound",
    "DomainError",
    "Email",
    "GeoLocation",
    "InvalidArgument",
    "NotFound",
    "Slug",
    "Unauthorized",
    "bounding_box",
]
