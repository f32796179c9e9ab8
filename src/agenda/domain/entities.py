"""Domain entities: Contact."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from agenda.domain.errors import InvalidArgument
from agenda.domain.geo import GeoLocation
from agenda.domain.values import Address, Email, Slug

NAME_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 5000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Contact:
    """
    A personal or business contact owned by exactly one user.
    Public contacts may carry a slug; a private contact never does.
    Instances are immutable: the with_*/made_* methods return updated copies
    and bump updated_at.
    """

    owner_id: str
    name: str
    email: Email
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phone: str | None = None
    address: Address | None = None
    category_id: str | None = None
    slug: Slug | None = None
    location: GeoLocation | None = None
    notes: str = ""
    is_favorite: bool = False
    is_public: bool = False
    photo_url: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if not self.owner_id or not str(self.owner_id).strip():
            raise InvalidArgument("Contact owner must be non-empty.")
        name = (self.name or "").strip()
        if not name:
            raise InvalidArgument("Contact name must be non-empty.")
        if len(name) > NAME_MAX_LENGTH:
            raise InvalidArgument(f"Contact name must be at most {NAME_MAX_LENGTH} chars.")
        object.__setattr__(self, "name", name)
        if isinstance(self.email, str):
            object.__setattr__(self, "email", Email(self.email))
        if isinstance(self.slug, str):
            object.__setattr__(self, "slug", Slug(self.slug))
        if len(self.notes or "") > NOTES_MAX_LENGTH:
            raise InvalidArgument(f"Contact notes must be at most {NOTES_MAX_LENGTH} chars.")
        object.__setattr__(self, "notes", self.notes or "")
        object.__setattr__(self, "phone", (self.phone or "").strip() or None)
        object.__setattr__(self, "category_id", (self.category_id or "").strip() or None)
        if self.slug is not None and not self.is_public:
            raise InvalidArgument("Only public contacts can have a slug.")

    def _touch(self, **changes) -> "Contact":
        return replace(self, updated_at=_utcnow(), **changes)

    def with_basic_info(self, name: str, email: Email, phone: str | None) -> "Contact":
        if name.strip() == self.name and email == self.email and phone == self.phone:
            return self
        return self._touch(name=name, email=email, phone=phone)

    def with_address(self, address: Address) -> "Contact":
        """Set the address; its coordinates, when present, become the location."""
        if address.location is not None:
            return self._touch(address=address, location=address.location)
        return self._touch(address=address)

    def with_location(self, location: GeoLocation) -> "Contact":
        return self._touch(location=location)

    def assigned_to_category(self, category_id: str | None) -> "Contact":
        category_id = (category_id or "").strip() or None
        if category_id == self.category_id:
            return self
        return self._touch(category_id=category_id)

    def with_slug(self, slug: Slug) -> "Contact":
        return self._touch(slug=slug)

    def with_notes(self, notes: str) -> "Contact":
        return self._touch(notes=notes)

    def marked_favorite(self, favorite: bool = True) -> "Contact":
        if self.is_favorite == favorite:
            return self
        return self._touch(is_favorite=favorite)

    def made_public(self) -> "Contact":
        if self.is_public:
            return self
        return self._touch(is_public=True)

    def made_private(self) -> "Contact":
        """Hide the contact from the directory; the slug goes with it."""
        if not self.is_public:
            return self
        return self._touch(is_public=False, slug=None)

    def with_photo(self, photo_url: str | None) -> "Contact":
        return self._touch(photo_url=photo_url)
