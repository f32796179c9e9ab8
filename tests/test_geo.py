"""Tests for GeoLocation, bounding boxes and proximity helpers."""

import math

import pytest

from agenda.domain import Contact, GeoLocation, InvalidArgument, bounding_box
from agenda.domain.geo import EARTH_RADIUS_KM, calculate_center, find_nearby, group_by_proximity

SAO_PAULO = GeoLocation(-23.5505, -46.6333)
RIO = GeoLocation(-22.9068, -43.1729)


def _point_north_of(origin: GeoLocation, distance_km: float) -> GeoLocation:
    """Point distance_km due north of origin along its meridian."""
    return GeoLocation(origin.latitude + math.degrees(distance_km / EARTH_RADIUS_KM), origin.longitude)


def _contact(name: str, location: GeoLocation | None) -> Contact:
    return Contact(owner_id="owner", name=name, email=f"{name.lower()}@example.com", location=location)


def test_distance_to_self_is_zero() -> None:
    assert SAO_PAULO.distance_to(SAO_PAULO) == pytest.approx(0.0, abs=1e-9)
    assert GeoLocation(90, 180).distance_to(GeoLocation(90, 180)) == pytest.approx(0.0, abs=1e-9)


def test_distance_is_symmetric() -> None:
    assert SAO_PAULO.distance_to(RIO) == RIO.distance_to(SAO_PAULO)


def test_distance_known_value() -> None:
    # Sao Paulo to Rio de Janeiro is roughly 360 km in a straight line.
    assert SAO_PAULO.distance_to(RIO) == pytest.approx(361, abs=5)


def test_radius_boundary_is_inclusive() -> None:
    at_ten_km = _point_north_of(SAO_PAULO, 10.0)
    distance = at_ten_km.distance_to(SAO_PAULO)
    assert distance == pytest.approx(10.0, rel=1e-9)
    assert at_ten_km.is_within_radius(SAO_PAULO, distance)

    beyond = _point_north_of(SAO_PAULO, 10.001)
    assert not beyond.is_within_radius(SAO_PAULO, 10.0)


@pytest.mark.parametrize(
    "lat, lon",
    [(90.0001, 0), (-91, 0), (0, 180.5), (0, -181), (float("nan"), 0)],
)
def test_out_of_range_coordinates_rejected(lat, lon) -> None:
    with pytest.raises(InvalidArgument):
        GeoLocation.from_coordinates(lat, lon)


def test_bounds_are_accepted() -> None:
    corner = GeoLocation.from_coordinates(-90, 180)
    assert corner.latitude == -90.0
    assert corner.longitude == 180.0


def test_equals_uses_tolerance() -> None:
    a = GeoLocation(10.0, 20.0)
    assert a.equals(GeoLocation(10.0000005, 19.9999995))
    assert not a.equals(GeoLocation(10.00001, 20.0))


def test_from_dict_requires_both_coordinates() -> None:
    assert GeoLocation.from_dict({"latitude": 1, "longitude": 2}) == GeoLocation(1.0, 2.0)
    with pytest.raises(InvalidArgument):
        GeoLocation.from_dict({"latitude": 1})


def test_bounding_box_equator_one_degree() -> None:
    box = bounding_box(GeoLocation(0, 0), 111)
    lat_delta = (box.lat_max - box.lat_min) / 2
    lon_delta = (box.lon_max - box.lon_min) / 2
    assert lat_delta == pytest.approx(1.0, rel=0.05)
    assert lon_delta == pytest.approx(1.0, rel=0.05)
    assert not box.spans_all_longitudes


def test_bounding_box_widens_longitude_away_from_equator() -> None:
    box = bounding_box(GeoLocation(60, 10), 50)
    lat_delta = (box.lat_max - box.lat_min) / 2
    lon_delta = (box.lon_max - box.lon_min) / 2
    # cos(60 deg) = 0.5, so a degree of longitude is half as long.
    assert lon_delta == pytest.approx(2 * lat_delta, rel=1e-3)
    assert lon_delta >= 2 * lat_delta


def test_bounding_box_contains_every_point_in_radius() -> None:
    center = GeoLocation(-23.5, -46.6)
    box = bounding_box(center, 25)
    for bearing in range(0, 360, 15):
        theta = math.radians(bearing)
        d = 24.9 / EARTH_RADIUS_KM
        lat1 = math.radians(center.latitude)
        lon1 = math.radians(center.longitude)
        lat2 = math.asin(math.sin(lat1) * math.cos(d) + math.cos(lat1) * math.sin(d) * math.cos(theta))
        lon2 = lon1 + math.atan2(
            math.sin(theta) * math.sin(d) * math.cos(lat1),
            math.cos(d) - math.sin(lat1) * math.sin(lat2),
        )
        point = GeoLocation(math.degrees(lat2), math.degrees(lon2))
        assert point.is_within_radius(center, 25)
        assert box.contains(point)


def test_bounding_box_high_latitude_keeps_points_at_widest_longitude() -> None:
    center = GeoLocation(70, 0)
    radius_km = 1000
    box = bounding_box(center, radius_km)
    d = radius_km / EARTH_RADIUS_KM
    # Easternmost point of the circle (bearing where the longitude offset peaks).
    widest = math.degrees(math.asin(math.sin(d) / math.cos(math.radians(center.latitude))))
    edge_lat = math.degrees(math.asin(math.sin(math.radians(center.latitude)) / math.cos(d)))
    point = GeoLocation(edge_lat, widest * 0.999)
    assert point.is_within_radius(center, radius_km)
    assert box.contains(point)


def test_bounding_box_near_pole_spans_all_longitudes() -> None:
    box = bounding_box(GeoLocation(89.95, 0), 20)
    assert box.spans_all_longitudes
    assert box.lat_max == 90.0
    assert box.lon_range == (-180.0, 180.0)


def test_bounding_box_across_antimeridian_spans_all_longitudes() -> None:
    box = bounding_box(GeoLocation(-17.7, 179.9), 50)
    assert box.spans_all_longitudes
    assert box.contains(GeoLocation(-17.7, -179.9))


def test_find_nearby_sorted_by_distance() -> None:
    near = _contact("Near", _point_north_of(SAO_PAULO, 1))
    mid = _contact("Mid", _point_north_of(SAO_PAULO, 3))
    far = _contact("Far", RIO)
    nowhere = _contact("Nowhere", None)

    result = find_nearby([mid, far, nowhere, near], SAO_PAULO, 5)
    assert [c.name for c, _ in result] == ["Near", "Mid"]
    assert result[0][1] == pytest.approx(1.0, rel=1e-6)


def test_calculate_center() -> None:
    contacts = [
        _contact("A", GeoLocation(10, 20)),
        _contact("B", GeoLocation(20, 40)),
        _contact("C", None),
    ]
    assert calculate_center(contacts) == GeoLocation(15, 30)
    assert calculate_center([_contact("D", None)]) is None


def test_group_by_proximity() -> None:
    contacts = [
        _contact("Nearby", _point_north_of(SAO_PAULO, 2)),
        _contact("Close", _point_north_of(SAO_PAULO, 10)),
        _contact("Moderate", _point_north_of(SAO_PAULO, 30)),
        _contact("Far", RIO),
        _contact("Unknown", None),
    ]
    groups = group_by_proximity(contacts, SAO_PAULO)
    assert {k: [c.name for c in v] for k, v in groups.items()} == {
        "nearby": ["Nearby"],
        "close": ["Close"],
        "moderate": ["Moderate"],
        "far": ["Far"],
        "no_location": ["Unknown"],
    }
