"""Mapping between Contact entities and stored contact documents.

Document shape (camelCase keys, shared by every store adapter):
userId, name, email, phone, address, categoryId, slug, location {latitude,
longitude}, notes, isFavorite, isPublic, photoUrl, searchKeywords, createdAt,
updatedAt. Timestamps are timezone-aware datetimes.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from agenda.application.ports import DocumentSnapshot
from agenda.domain import Address, Contact, GeoLocation

CONTACTS_COLLECTION = "contacts"

FIELD_OWNER = "userId"
FIELD_CATEGORY = "categoryId"
FIELD_SLUG = "slug"
FIELD_EMAIL = "email"
FIELD_IS_PUBLIC = "isPublic"
FIELD_IS_FAVORITE = "isFavorite"
FIELD_KEYWORDS = "searchKeywords"
FIELD_CREATED_AT = "createdAt"
FIELD_LATITUDE = "location.latitude"
FIELD_LONGITUDE = "location.longitude"


def normalize_search(text: str) -> str:
    return (text or "").strip().lower()


def build_search_keywords(contact: Contact) -> list[str]:
    """Keywords matched by the directory search: full name, each name token, slug, email, phone, category."""
    candidates = [
        normalize_search(contact.name),
        contact.slug.value if contact.slug else None,
        contact.email.value,
        contact.phone,
        contact.category_id,
    ]
    candidates.extend(normalize_search(token) for token in contact.name.split())
    keywords: list[str] = []
    for keyword in candidates:
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords


def contact_to_document(contact: Contact) -> dict[str, Any]:
    location = contact.location
    if location is None and contact.address is not None:
        location = contact.address.location
    return {
        FIELD_OWNER: contact.owner_id,
        "name": contact.name,
        FIELD_EMAIL: contact.email.value,
        "phone": contact.phone,
        "address": contact.address.to_dict() if contact.address else None,
        FIELD_CATEGORY: contact.category_id,
        FIELD_SLUG: contact.slug.value if contact.slug else None,
        "location": location.to_dict() if location else None,
        "notes": contact.notes,
        FIELD_IS_FAVORITE: contact.is_favorite,
        FIELD_IS_PUBLIC: contact.is_public,
        "photoUrl": contact.photo_url,
        FIELD_KEYWORDS: build_search_keywords(contact),
        FIELD_CREATED_AT: contact.created_at,
        "updatedAt": contact.updated_at,
    }


def document_location(data: Mapping[str, Any]) -> GeoLocation | None:
    """Decode the stored location, or None when absent or incomplete."""
    raw = data.get("location")
    if not isinstance(raw, Mapping):
        return None
    if raw.get("latitude") is None or raw.get("longitude") is None:
        return None
    return GeoLocation.from_dict(raw)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def document_to_contact(snapshot: DocumentSnapshot) -> Contact:
    data = snapshot.data
    address = data.get("address")
    is_public = bool(data.get(FIELD_IS_PUBLIC, False))
    return Contact(
        id=snapshot.id,
        owner_id=data[FIELD_OWNER],
        name=data["name"],
        email=data[FIELD_EMAIL],
        phone=data.get("phone"),
        address=Address.from_dict(address) if isinstance(address, Mapping) else None,
        category_id=data.get(FIELD_CATEGORY),
        slug=(data.get(FIELD_SLUG) or None) if is_public else None,
        location=document_location(data),
        notes=data.get("notes") or "",
        is_favorite=bool(data.get(FIELD_IS_FAVORITE, False)),
        is_public=is_public,
        photo_url=data.get("photoUrl"),
        created_at=_to_datetime(data.get(FIELD_CREATED_AT)),
        updated_at=_to_datetime(data.get("updatedAt")),
    )
