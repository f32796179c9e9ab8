"""Input DTOs and result types for contact use cases."""

from dataclasses import dataclass, field
from typing import Any

from agenda.domain import Contact

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class ContactListFilter:
    """Filters for listing contacts (public directory or one owner's agenda).

    cursor is the id of the last contact of the previous page.
    latitude/longitude/radius_km only apply to the public directory.
    """

    category_id: str | None = None
    search: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    radius_km: float | None = None
    limit: int = DEFAULT_PAGE_SIZE
    cursor: str | None = None


@dataclass(frozen=True)
class CreateContactInput:
    owner_id: str
    name: str
    email: str
    phone: str | None = None
    is_public: bool = False
    category_id: str | None = None
    address: dict[str, Any] | None = None
    location: dict[str, Any] | None = None
    notes: str = ""
    photo_path: str | None = None
    slug: str | None = None
    is_favorite: bool = False


@dataclass(frozen=True)
class UpdateContactInput:
    """Partial update. None leaves a field unchanged; category_id="" clears the category."""

    contact_id: str
    owner_id: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    category_id: str | None = None
    address: dict[str, Any] | None = None
    location: dict[str, Any] | None = None
    notes: str | None = None
    is_public: bool | None = None
    slug: str | None = None
    is_favorite: bool | None = None
    photo_path: str | None = None
    remove_photo: bool = False


# --- create_contact results ---


@dataclass(frozen=True)
class ContactCreated:
    """Contact was validated and stored."""

    contact: Contact


@dataclass(frozen=True)
class Duplicate:
    """The owner already has a contact with this email."""

    contact_id: str
    name: str


@dataclass(frozen=True)
class Invalid:
    """Input is invalid (e.g. missing name, malformed email or phone)."""

    reason: str


# --- query results ---


@dataclass(frozen=True)
class SimilarContact:
    contact: Contact
    similarity: float


@dataclass(frozen=True)
class NearbyContact:
    contact: Contact
    distance_km: float


@dataclass(frozen=True)
class ContactPage:
    """One page of contacts, newest first. next_cursor is None when the page is not full."""

    items: list[Contact] = field(default_factory=list)
    next_cursor: str | None = None
