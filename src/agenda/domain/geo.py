"""Geographic value objects: GeoLocation, BoundingBox, and proximity helpers."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from agenda.domain.errors import InvalidArgument

if TYPE_CHECKING:
    from agenda.domain.entities import Contact

EARTH_RADIUS_KM = 6371.0

# Tolerance for coordinates that went through a float round trip in storage.
COORDINATE_TOLERANCE = 1e-6

# Upper bounds (km, exclusive) of the proximity buckets; anything further is "far".
PROXIMITY_BUCKETS = (
    ("nearby", 5.0),
    ("close", 20.0),
    ("moderate", 50.0),
)


@dataclass(frozen=True)
class GeoLocation:
    """
    Immutable latitude/longitude pair in decimal degrees.
    Construction fails with InvalidArgument when a coordinate is out of range.
    """

    latitude: float
    longitude: float

    def __post_init__(self):
        try:
            lat = float(self.latitude)
            lon = float(self.longitude)
        except (TypeError, ValueError) as exc:
            raise InvalidArgument("Latitude and longitude must be numbers.") from exc
        if math.isnan(lat) or not -90.0 <= lat <= 90.0:
            raise InvalidArgument(f"Latitude must be between -90 and 90, got: {lat}")
        if math.isnan(lon) or not -180.0 <= lon <= 180.0:
            raise InvalidArgument(f"Longitude must be between -180 and 180, got: {lon}")
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lon)

    @classmethod
    def from_coordinates(cls, latitude: float, longitude: float) -> GeoLocation:
        return cls(latitude=latitude, longitude=longitude)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> GeoLocation:
        """Build from a {latitude, longitude} mapping as stored in documents."""
        if data.get("latitude") is None or data.get("longitude") is None:
            raise InvalidArgument("Missing latitude or longitude.")
        return cls(latitude=data["latitude"], longitude=data["longitude"])

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    def distance_to(self, other: GeoLocation) -> float:
        """Great-circle distance in kilometres (Haversine).

        The intermediate value is clamped to [0, 1] so float drift never
        produces a domain error in asin.
        """
        phi1 = math.radians(self.latitude)
        phi2 = math.radians(other.latitude)
        dphi = phi2 - phi1
        dlambda = math.radians(other.longitude - self.longitude)

        a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
        a = min(1.0, max(0.0, a))
        return EARTH_RADIUS_KM * 2.0 * math.asin(math.sqrt(a))

    def is_within_radius(self, center: GeoLocation, radius_km: float) -> bool:
        return self.distance_to(center) <= radius_km

    def equals(self, other: GeoLocation) -> bool:
        return (
            abs(self.latitude - other.latitude) < COORDINATE_TOLERANCE
            and abs(self.longitude - other.longitude) < COORDINATE_TOLERANCE
        )

    def __str__(self) -> str:
        return f"{self.latitude:.6f}, {self.longitude:.6f}"


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned lat/lon rectangle around a search circle.
    Only narrows candidates; the exact distance filter always runs afterwards.
    When spans_all_longitudes is set the longitude bounds carry no information
    (polar cap or antimeridian crossing) and must not be used as a filter.
    """

    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float
    spans_all_longitudes: bool = False

    @property
    def lat_range(self) -> tuple[float, float]:
        return (self.lat_min, self.lat_max)

    @property
    def lon_range(self) -> tuple[float, float]:
        return (self.lon_min, self.lon_max)

    def contains(self, location: GeoLocation) -> bool:
        if not self.lat_min <= location.latitude <= self.lat_max:
            return False
        if self.spans_all_longitudes:
            return True
        return self.lon_min <= location.longitude <= self.lon_max


def bounding_box(center: GeoLocation, radius_km: float) -> BoundingBox:
    """Rectangle enclosing every point within radius_km of center.

    Does not validate radius_km; callers reject non-positive radii first.
    """
    lat_delta = math.degrees(radius_km / EARTH_RADIUS_KM)
    lat_min = center.latitude - lat_delta
    lat_max = center.latitude + lat_delta

    cos_lat = math.cos(math.radians(center.latitude))
    if lat_min <= -90.0 or lat_max >= 90.0 or cos_lat < 1e-12:
        return BoundingBox(
            lat_min=max(-90.0, lat_min),
            lat_max=min(90.0, lat_max),
            lon_min=-180.0,
            lon_max=180.0,
            spans_all_longitudes=True,
        )

    # The linear estimate is slightly narrower than the circle's true
    # longitude extent away from the equator; keep whichever is wider.
    angular_radius = radius_km / EARTH_RADIUS_KM
    lon_delta = max(
        math.degrees(angular_radius / cos_lat),
        math.degrees(math.asin(min(1.0, math.sin(angular_radius) / cos_lat))),
    )
    lon_min = center.longitude - lon_delta
    lon_max = center.longitude + lon_delta
    if lon_min < -180.0 or lon_max > 180.0:
        return BoundingBox(
            lat_min=lat_min,
            lat_max=lat_max,
            lon_min=-180.0,
            lon_max=180.0,
            spans_all_longitudes=True,
        )
    return BoundingBox(lat_min=lat_min, lat_max=lat_max, lon_min=lon_min, lon_max=lon_max)


def find_nearby(
    contacts: Iterable[Contact], center: GeoLocation, radius_km: float
) -> list[tuple[Contact, float]]:
    """Return (contact, distance_km) pairs within the radius, closest first."""
    nearby = []
    for contact in contacts:
        if contact.location is None:
            continue
        distance = contact.location.distance_to(center)
        if distance <= radius_km:
            nearby.append((contact, distance))
    nearby.sort(key=lambda pair: pair[1])
    return nearby


def calculate_center(contacts: Iterable[Contact]) -> GeoLocation | None:
    """Arithmetic mean of the known locations, or None when no contact has one."""
    locations = [c.location for c in contacts if c.location is not None]
    if not locations:
        return None
    return GeoLocation(
        latitude=sum(loc.latitude for loc in locations) / len(locations),
        longitude=sum(loc.longitude for loc in locations) / len(locations),
    )


def group_by_proximity(
    contacts: Iterable[Contact], center: GeoLocation
) -> dict[str, list[Contact]]:
    groups: dict[str, list[Contact]] = {name: [] for name, _ in PROXIMITY_BUCKETS}
    groups["far"] = []
    groups["no_location"] = []
    for contact in contacts:
        if contact.location is None:
            groups["no_location"].append(contact)
            continue
        distance = contact.location.distance_to(center)
        for name, upper in PROXIMITY_BUCKETS:
            if distance < upper:
                groups[name].append(contact)
                break
        else:
            groups["far"].append(contact)
    return groups
