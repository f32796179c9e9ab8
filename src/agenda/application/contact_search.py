"""Paginated, filtered contact search over a document store without native radius queries.

Without a geo constraint a search is one round trip: equality/keyword filters,
newest first, resumed with start_after(cursor).

With a geo constraint the store can only narrow candidates to a bounding box,
so the search over-fetches batches of limit * overfetch_factor, drops records
outside the exact Haversine radius and keeps advancing the store cursor until
the page is full or a batch comes back empty. The caller's cursor is always
the id of the last contact returned; records skipped before it are behind it
and records after it were never consumed, so resuming from it neither
duplicates nor loses results.
"""

import logging
import math
from dataclasses import dataclass

from agenda.application.documents import (
    CONTACTS_COLLECTION,
    FIELD_CATEGORY,
    FIELD_CREATED_AT,
    FIELD_IS_PUBLIC,
    FIELD_KEYWORDS,
    FIELD_LATITUDE,
    FIELD_LONGITUDE,
    FIELD_OWNER,
    document_location,
    document_to_contact,
    normalize_search,
)
from agenda.application.dto import DEFAULT_PAGE_SIZE
from agenda.application.ports import DESCENDING, DocumentQuery, DocumentSnapshot, DocumentStore
from agenda.domain import Contact, CursorNotFound, GeoLocation, InvalidArgument, bounding_box

logger = logging.getLogger(__name__)

DEFAULT_OVERFETCH_FACTOR = 3
MIN_OVERFETCH_FACTOR = 2


@dataclass(frozen=True)
class GeoFilter:
    """Exact radius constraint applied client-side."""

    center: GeoLocation
    radius_km: float


def validate_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidArgument(f"limit must be an integer, got: {limit!r}")
    if limit <= 0:
        raise InvalidArgument(f"limit must be greater than zero, got: {limit}")
    return limit


def resolve_geo_filter(
    latitude: float | None,
    longitude: float | None,
    radius_km: float | None,
) -> GeoFilter | None:
    """Validate the center/radius combination. None when no geo constraint is requested.

    Latitude and longitude come together; a center requires a radius and a
    radius requires a center; the radius must be a positive finite number.
    """
    if (latitude is None) != (longitude is None):
        raise InvalidArgument("Both latitude and longitude are required for a center point.")
    has_center = latitude is not None
    if not has_center and radius_km is None:
        return None
    if not has_center:
        raise InvalidArgument("radius_km requires a center point.")
    if radius_km is None:
        raise InvalidArgument("A center point requires radius_km.")
    radius = float(radius_km)
    if not math.isfinite(radius) or radius <= 0:
        raise InvalidArgument(f"radius_km must be greater than zero, got: {radius_km}")
    return GeoFilter(center=GeoLocation.from_coordinates(latitude, longitude), radius_km=radius)


class ContactSearch:
    """Public directory and owner-scoped contact search. Stateless across calls."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        overfetch_factor: int = DEFAULT_OVERFETCH_FACTOR,
    ) -> None:
        if overfetch_factor < MIN_OVERFETCH_FACTOR:
            raise ValueError(
                f"overfetch_factor must be at least {MIN_OVERFETCH_FACTOR}, got: {overfetch_factor}"
            )
        self._contacts = store.collection(CONTACTS_COLLECTION)
        self._overfetch_factor = overfetch_factor

    @property
    def overfetch_factor(self) -> int:
        return self._overfetch_factor

    def search_public_contacts(
        self,
        limit: int,
        cursor: str | None = None,
        category_id: str | None = None,
        search: str | None = None,
        center_lat: float | None = None,
        center_lon: float | None = None,
        radius_km: float | None = None,
    ) -> list[Contact]:
        """Return up to limit public contacts, newest first."""
        validate_limit(limit)
        geo = resolve_geo_filter(center_lat, center_lon, radius_km)
        query = self._base_query(FIELD_IS_PUBLIC, True, category_id, search)
        return self._run(query, limit, cursor, geo, scope=(FIELD_IS_PUBLIC, True))

    def find_nearby_contacts(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[Contact]:
        """Public contacts within radius_km of the point, newest first."""
        if latitude is None or longitude is None or radius_km is None:
            raise InvalidArgument("latitude, longitude and radius_km are required.")
        return self.search_public_contacts(
            limit,
            center_lat=latitude,
            center_lon=longitude,
            radius_km=radius_km,
        )

    def search_user_contacts(
        self,
        owner_id: str,
        limit: int,
        cursor: str | None = None,
        category_id: str | None = None,
        search: str | None = None,
    ) -> list[Contact]:
        """Return up to limit contacts of one owner, newest first."""
        validate_limit(limit)
        if not owner_id or not owner_id.strip():
            raise InvalidArgument("owner_id must be non-empty.")
        query = self._base_query(FIELD_OWNER, owner_id, category_id, search)
        return self._run(query, limit, cursor, None, scope=(FIELD_OWNER, owner_id))

    def _base_query(
        self,
        scope_field: str,
        scope_value: object,
        category_id: str | None,
        search: str | None,
    ) -> DocumentQuery:
        query = self._contacts.query().where_equals(scope_field, scope_value)
        category_id = (category_id or "").strip()
        if category_id:
            query = query.where_equals(FIELD_CATEGORY, category_id)
        keyword = normalize_search(search or "")
        if keyword:
            query = query.where_array_contains(FIELD_KEYWORDS, keyword)
        return query.order_by(FIELD_CREATED_AT, DESCENDING)

    def _resolve_cursor(
        self, cursor: str | None, scope: tuple[str, object]
    ) -> DocumentSnapshot | None:
        """Snapshot of the cursor document. Documents outside the query scope count as missing."""
        if not cursor:
            return None
        snapshot = self._contacts.get(cursor)
        scope_field, scope_value = scope
        if snapshot is None or snapshot.data.get(scope_field) != scope_value:
            raise CursorNotFound(cursor)
        return snapshot

    def _run(
        self,
        query: DocumentQuery,
        limit: int,
        cursor: str | None,
        geo: GeoFilter | None,
        *,
        scope: tuple[str, object],
    ) -> list[Contact]:
        start = self._resolve_cursor(cursor, scope)
        if geo is not None:
            return self._collect_within_radius(query, limit, start, geo)

        page_query = query.limit(limit)
        if start is not None:
            page_query = page_query.start_after(start)
        contacts = [document_to_contact(snapshot) for snapshot in page_query.stream()]
        logger.info("contact search: returned=%d limit=%d geo=no", len(contacts), limit)
        return contacts

    def _collect_within_radius(
        self,
        query: DocumentQuery,
        limit: int,
        last_seen: DocumentSnapshot | None,
        geo: GeoFilter,
    ) -> list[Contact]:
        box = bounding_box(geo.center, geo.radius_km)
        query = query.where_between(FIELD_LATITUDE, box.lat_min, box.lat_max)
        if not box.spans_all_longitudes:
            query = query.where_between(FIELD_LONGITUDE, box.lon_min, box.lon_max)

        batch_size = limit * self._overfetch_factor
        accepted: list[Contact] = []
        batches = 0
        scanned = 0
        while len(accepted) < limit:
            batch_query = query.limit(batch_size)
            if last_seen is not None:
                batch_query = batch_query.start_after(last_seen)
            batches += 1
            received = 0
            for snapshot in batch_query.stream():
                received += 1
                last_seen = snapshot
                location = document_location(snapshot.data)
                if location is None or not location.is_within_radius(geo.center, geo.radius_km):
                    continue
                accepted.append(document_to_contact(snapshot))
                if len(accepted) >= limit:
                    break
            scanned += received
            logger.debug(
                "contact search batch %d: received=%d accepted=%d batch_size=%d",
                batches,
                received,
                len(accepted),
                batch_size,
            )
            if received == 0:
                break

        logger.info(
            "contact search: returned=%d limit=%d geo=yes center=(%s) radius_km=%s batches=%d scanned=%d",
            len(accepted),
            limit,
            geo.center,
            geo.radius_km,
            batches,
            scanned,
        )
        return accepted
