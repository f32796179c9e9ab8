"""Contact use cases: create, update, delete, lookups and listings."""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from agenda.application.contact_search import ContactSearch
from agenda.application.documents import (
    CONTACTS_COLLECTION,
    FIELD_CREATED_AT,
    FIELD_EMAIL,
    FIELD_IS_FAVORITE,
    FIELD_IS_PUBLIC,
    FIELD_OWNER,
    FIELD_SLUG,
    contact_to_document,
    document_to_contact,
)
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
from agenda.application.ports import DESCENDING, DocumentStore, PhotoStorage
from agenda.domain import (
    Address,
    Contact,
    ContactNotFound,
    Email,
    GeoLocation,
    InvalidArgument,
    Slug,
    Unauthorized,
)

logger = logging.getLogger(__name__)

SLUG_ID_SUFFIX_LENGTH = 6
# Numbered suffixes tried for a taken slug before falling back to part of the id.
SLUG_MAX_COUNTER = 99
EMAIL_SIMILARITY_WEIGHT = 0.4
NAME_SIMILARITY_WEIGHT = 0.6


def _levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    """1.0 for identical names (case-insensitive), 0.0 for completely different ones."""
    a = a.lower()
    b = b.lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - _levenshtein(a, b) / longest


class ContactService:
    """Contact lifecycle for an owner plus the public directory views."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        search: ContactSearch | None = None,
        photo_storage: PhotoStorage | None = None,
        normalize_phone: Callable[[str], str | None] | None = None,
    ) -> None:
        self._contacts = store.collection(CONTACTS_COLLECTION)
        self._search = search or ContactSearch(store)
        self._photos = photo_storage
        self._normalize_phone = normalize_phone

    def _clean_phone(self, raw: str | None) -> str | None:
        raw = (raw or "").strip()
        if not raw:
            return None
        if self._normalize_phone is None:
            return raw
        phone = self._normalize_phone(raw)
        if phone is None:
            raise InvalidArgument(f"Invalid phone number: {raw}")
        return phone

    def _save(self, contact: Contact) -> None:
        self._contacts.set(contact.id, contact_to_document(contact))

    def _load_owned(self, contact_id: str, owner_id: str, action: str) -> Contact:
        snapshot = self._contacts.get(contact_id)
        if snapshot is None:
            raise ContactNotFound(contact_id)
        contact = document_to_contact(snapshot)
        if contact.owner_id != owner_id:
            raise Unauthorized(action)
        return contact

    def _find_by_email(self, owner_id: str, email: Email) -> Contact | None:
        query = (
            self._contacts.query()
            .where_equals(FIELD_OWNER, owner_id)
            .where_equals(FIELD_EMAIL, email.value)
            .limit(1)
        )
        for snapshot in query.stream():
            return document_to_contact(snapshot)
        return None

    def _slug_taken(self, slug: Slug, contact_id: str) -> bool:
        query = self._contacts.query().where_equals(FIELD_SLUG, slug.value).limit(2)
        return any(snapshot.id != contact_id for snapshot in query.stream())

    def _unique_slug(self, slug: Slug, contact_id: str) -> Slug:
        """slug, or slug-1, slug-2, ... when another contact already holds it."""
        candidate = slug
        counter = 1
        while self._slug_taken(candidate, contact_id):
            if counter > SLUG_MAX_COUNTER:
                return Slug.with_suffix(slug.value, contact_id[-SLUG_ID_SUFFIX_LENGTH:])
            candidate = Slug.with_suffix(slug.value, str(counter))
            counter += 1
        return candidate

    def create_contact(self, data: CreateContactInput) -> ContactCreated | Duplicate | Invalid:
        """Validate and store a new contact. Public contacts get a slug when none is given."""
        name = (data.name or "").strip()
        if not name:
            return Invalid(reason="Name is required.")

        try:
            contact = Contact(
                owner_id=data.owner_id,
                name=name,
                email=Email(data.email),
                phone=self._clean_phone(data.phone),
                is_public=data.is_public,
                category_id=data.category_id,
            )
            if data.slug:
                contact = contact.with_slug(self._unique_slug(Slug.from_text(data.slug), contact.id))
            elif data.is_public:
                contact = contact.with_slug(
                    self._unique_slug(
                        Slug.with_suffix(name, contact.id[-SLUG_ID_SUFFIX_LENGTH:]), contact.id
                    )
                )
            if data.address:
                contact = contact.with_address(Address.from_dict(data.address))
            if data.location:
                contact = contact.with_location(GeoLocation.from_dict(data.location))
            if data.notes:
                contact = contact.with_notes(data.notes)
            if data.is_favorite:
                contact = contact.marked_favorite()
        except InvalidArgument as exc:
            return Invalid(reason=str(exc))

        existing = self._find_by_email(contact.owner_id, contact.email)
        if existing is not None:
            return Duplicate(contact_id=existing.id, name=existing.name)

        if data.photo_path and self._photos is not None:
            contact = contact.with_photo(
                self._photos.upload_contact_photo(contact.id, data.photo_path)
            )

        self._save(contact)
        logger.info("Created contact %s for owner %s (public=%s)", contact.id, contact.owner_id, contact.is_public)
        return ContactCreated(contact=contact)

    def update_contact(self, data: UpdateContactInput) -> Contact:
        """Apply a partial update. Raises ContactNotFound, Unauthorized or InvalidArgument."""
        contact = self._load_owned(data.contact_id, data.owner_id, "update")

        if data.name is not None or data.email is not None or data.phone is not None:
            contact = contact.with_basic_info(
                data.name if data.name is not None else contact.name,
                Email(data.email) if data.email is not None else contact.email,
                self._clean_phone(data.phone) if data.phone is not None else contact.phone,
            )
        if data.category_id is not None:
            contact = contact.assigned_to_category(data.category_id)
        if data.address:
            contact = contact.with_address(Address.from_dict(data.address))
        if data.location:
            contact = contact.with_location(GeoLocation.from_dict(data.location))
        if data.notes is not None:
            contact = contact.with_notes(data.notes)
        if data.is_public is not None:
            contact = contact.made_public() if data.is_public else contact.made_private()
        if data.slug:
            contact = contact.with_slug(self._unique_slug(Slug.from_text(data.slug), contact.id))
        elif contact.is_public and contact.slug is None:
            contact = contact.with_slug(
                self._unique_slug(
                    Slug.with_suffix(contact.name, contact.id[-SLUG_ID_SUFFIX_LENGTH:]), contact.id
                )
            )
        if data.is_favorite is not None:
            contact = contact.marked_favorite(data.is_favorite)
        if data.photo_path and self._photos is not None:
            contact = contact.with_photo(
                self._photos.upload_contact_photo(contact.id, data.photo_path)
            )
        if data.remove_photo:
            contact = contact.with_photo(None)

        self._save(contact)
        return contact

    def delete_contact(self, contact_id: str, owner_id: str) -> None:
        """Delete the contact and its photo. Raises ContactNotFound or Unauthorized."""
        contact = self._load_owned(contact_id, owner_id, "delete")
        if contact.photo_url and self._photos is not None:
            self._photos.delete_contact_photo(contact.photo_url)
        self._contacts.delete(contact.id)
        logger.info("Deleted contact %s for owner %s", contact.id, owner_id)

    def get_contact(self, contact_id: str, owner_id: str) -> Contact:
        return self._load_owned(contact_id, owner_id, "view")

    def find_by_slug(self, slug: str) -> Contact | None:
        """Return the public contact with this slug, or None."""
        try:
            normalized = Slug.from_text(slug or "")
        except InvalidArgument:
            return None
        query = (
            self._contacts.query()
            .where_equals(FIELD_SLUG, normalized.value)
            .where_equals(FIELD_IS_PUBLIC, True)
            .limit(1)
        )
        for snapshot in query.stream():
            return document_to_contact(snapshot)
        return None

    def list_favorites(self, owner_id: str) -> list[Contact]:
        query = (
            self._contacts.query()
            .where_equals(FIELD_OWNER, owner_id)
            .where_equals(FIELD_IS_FAVORITE, True)
            .order_by(FIELD_CREATED_AT, DESCENDING)
        )
        return [document_to_contact(s) for s in query.stream()]

    def list_contacts(self, owner_id: str, filters: ContactListFilter) -> ContactPage:
        """One page of the owner's contacts, newest first."""
        items = self._search.search_user_contacts(
            owner_id,
            filters.limit,
            cursor=filters.cursor,
            category_id=filters.category_id,
            search=filters.search,
        )
        return _page(items, filters.limit)

    def list_public_contacts(self, filters: ContactListFilter) -> ContactPage:
        """One page of the public directory, newest first, optionally within a radius."""
        items = self._search.search_public_contacts(
            filters.limit,
            cursor=filters.cursor,
            category_id=filters.category_id,
            search=filters.search,
            center_lat=filters.latitude,
            center_lon=filters.longitude,
            radius_km=filters.radius_km,
        )
        return _page(items, filters.limit)

    def find_nearby(
        self, latitude: float, longitude: float, radius_km: float, limit: int
    ) -> list[NearbyContact]:
        """Public contacts within the radius with their distance, newest first."""
        contacts = self._search.find_nearby_contacts(latitude, longitude, radius_km, limit)
        center = GeoLocation.from_coordinates(latitude, longitude)
        return [
            NearbyContact(contact=c, distance_km=c.location.distance_to(center))
            for c in contacts
        ]

    def find_similar(
        self, owner_id: str, name: str, email: str, threshold: float = 0.7
    ) -> list[SimilarContact]:
        """Owner's contacts resembling name/email, most similar first."""
        target_email = (email or "").strip().lower()
        query = self._contacts.query().where_equals(FIELD_OWNER, owner_id)
        similar = []
        for snapshot in query.stream():
            contact = document_to_contact(snapshot)
            score = NAME_SIMILARITY_WEIGHT * name_similarity(contact.name, name or "")
            if contact.email.value == target_email:
                score += EMAIL_SIMILARITY_WEIGHT
            if score >= threshold:
                similar.append(SimilarContact(contact=contact, similarity=score))
        similar.sort(key=lambda s: s.similarity, reverse=True)
        return similar

    def reindex_contacts(self) -> int:
        """Rewrite every contact document through the current mapping.

        Recomputes derived fields (search keywords, location taken from the
        address). Returns the number of documents that changed.
        """
        changed = 0
        for snapshot in list(self._contacts.query().stream()):
            try:
                document = contact_to_document(document_to_contact(snapshot))
            except (InvalidArgument, KeyError) as exc:
                logger.warning("Skipping unreadable contact document %s: %s", snapshot.id, exc)
                continue
            if _without_none(document) != _without_none(snapshot.data):
                self._contacts.set(snapshot.id, document)
                changed += 1
        logger.info("Reindexed contacts: %d document(s) changed", changed)
        return changed


def _without_none(data: Mapping[str, Any]) -> dict[str, Any]:
    # Stores may drop None-valued fields; they are equivalent to missing ones.
    return {
        key: _without_none(value) if isinstance(value, Mapping) else value
        for key, value in data.items()
        if value is not None
    }


def _page(items: list[Contact], limit: int) -> ContactPage:
    next_cursor = items[-1].id if len(items) >= limit and items else None
    return ContactPage(items=items, next_cursor=next_cursor)
