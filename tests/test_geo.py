from __future__ import annotations

import math

import pytest

from conftest import BUSAN, SEOUL_STATION, interpolate_route, offset_point
from rest_areas.services.geo import (
    RouteGeometry,
    angle_between,
    bounding_box,
    bearing_degrees,
    clamp,
    closest_point_on_polyline,
    cumulative_distances_km,
    haversine_km,
    is_valid_coordinate,
    min_distance_to_polyline_km,
    nearest_vertex_index,
    point_to_segment_km,
)
from rest_areas.services.types import RoutePoint


def test_haversine_seoul_to_busan_is_about_325_km() -> None:
    assert haversine_km(SEOUL_STATION, BUSAN) == pytest.approx(325, abs=10)
    assert haversine_km(SEOUL_STATION, SEOUL_STATION) == 0.0


def test_bearing_points_south_east_for_southbound_trip() -> None:
    bearing = bearing_degrees(SEOUL_STATION, BUSAN)

    assert 120 < bearing < 150
    assert bearing_degrees(BUSAN, SEOUL_STATION) == pytest.approx((bearing + 180) % 360, abs=2)


def test_angle_between_wraps_around_north() -> None:
    assert angle_between(350, 10) == pytest.approx(20)
    assert angle_between(90, 270) == pytest.approx(180)
    assert angle_between(45, 45) == 0


def test_point_to_segment_is_order_independent() -> None:
    p = RoutePoint(36.2, 127.9)
    a = RoutePoint(36.0, 127.5)
    b = RoutePoint(36.5, 128.3)

    assert point_to_segment_km(p, a, b) == pytest.approx(point_to_segment_km(p, b, a), rel=1e-9)


def test_point_to_segment_clamps_beyond_endpoints() -> None:
    a = RoutePoint(36.0, 127.0)
    b = RoutePoint(36.1, 127.0)
    beyond = RoutePoint(36.3, 127.0)

    assert point_to_segment_km(beyond, a, b) == pytest.approx(haversine_km(beyond, b), rel=1e-6)


def test_point_to_degenerate_segment_is_plain_distance() -> None:
    a = RoutePoint(36.0, 127.0)
    p = RoutePoint(36.05, 127.05)

    assert point_to_segment_km(p, a, a) == haversine_km(p, a)


def test_perpendicular_offset_is_measured_in_km() -> None:
    route = [SEOUL_STATION, BUSAN]
    middle = RoutePoint((SEOUL_STATION.lat + BUSAN.lat) / 2, (SEOUL_STATION.lng + BUSAN.lng) / 2)
    heading = bearing_degrees(SEOUL_STATION, BUSAN)
    beside = offset_point(middle, heading + 90, 0.3)

    assert min_distance_to_polyline_km(beside, route) == pytest.approx(0.3, abs=0.02)


def test_polyline_distance_is_zero_on_vertex() -> None:
    route = interpolate_route(SEOUL_STATION, BUSAN, 5)

    assert min_distance_to_polyline_km(route[2], route) == 0.0


def test_polyline_distance_degenerate_inputs() -> None:
    p = RoutePoint(36.0, 127.0)
    q = RoutePoint(36.1, 127.1)

    assert min_distance_to_polyline_km(p, []) == math.inf
    assert min_distance_to_polyline_km(p, [q]) == haversine_km(p, q)


def test_nearest_vertex_and_cumulative_distances() -> None:
    route = interpolate_route(SEOUL_STATION, BUSAN, 11)
    cumulative = cumulative_distances_km(route)

    assert nearest_vertex_index(route[7], route) == 7
    assert nearest_vertex_index(RoutePoint(0, 0), []) == -1
    assert cumulative[0] == 0.0
    assert cumulative == sorted(cumulative)
    assert cumulative[-1] == pytest.approx(haversine_km(SEOUL_STATION, BUSAN), rel=1e-3)


def test_closest_point_reports_segment_index() -> None:
    route = interpolate_route(SEOUL_STATION, BUSAN, 11)
    target = offset_point(route[3], 45, 0.2)

    closest = closest_point_on_polyline(target, route)

    assert closest is not None
    assert closest[1] in {2, 3}
    assert closest[2] < 0.25
    assert closest_point_on_polyline(target, []) is None


def test_route_geometry_headings() -> None:
    geometry = RouteGeometry.from_points(interpolate_route(SEOUL_STATION, BUSAN, 21))

    assert geometry.total_km == pytest.approx(haversine_km(SEOUL_STATION, BUSAN), rel=1e-3)
    assert geometry.coarse_heading == pytest.approx(bearing_degrees(SEOUL_STATION, BUSAN))
    assert angle_between(geometry.local_heading(10), geometry.coarse_heading) < 2
    assert RouteGeometry.from_points([SEOUL_STATION]).coarse_heading is None
    assert RouteGeometry.from_points([SEOUL_STATION, SEOUL_STATION]).local_heading(0) is None


@pytest.mark.parametrize(
    ("lat", "lng", "expected"),
    [
        (37.5, 127.0, True),
        (0.0, 0.0, False),
        (91.0, 127.0, False),
        (math.nan, 127.0, False),
        (None, 127.0, False),
    ],
)
def test_is_valid_coordinate(lat, lng, expected) -> None:
    assert is_valid_coordinate(lat, lng) is expected


def test_clamp_maps_nan_to_lower_bound() -> None:
    assert clamp(math.nan, 0.0, 1.0) == 0.0
    assert clamp(1.7, 0.0, 1.0) == 1.0


def test_bounding_box_margin_holds_at_the_high_latitude_end() -> None:
    route = interpolate_route(RoutePoint(35.0, 127.0), RoutePoint(37.5, 127.0), 26)
    east_of_north_end = offset_point(route[-1], 90, 1.98)
    min_lat, max_lat, min_lng, max_lng = bounding_box(route, margin_km=2.0)

    assert min_distance_to_polyline_km(east_of_north_end, route) < 2.0
    assert min_lat <= east_of_north_end.lat <= max_lat
    assert min_lng <= east_of_north_end.lng <= max_lng


def test_local_heading_window_spans_two_km() -> None:
    route = [RoutePoint(36.0, 127.0)]
    for bearing in (0, 0, 0, 0, 90, 90, 90):
        route.append(offset_point(route[-1], bearing, 0.5))
    geometry = RouteGeometry.from_points(route)

    assert geometry.local_heading(3) == pytest.approx(bearing_degrees(route[1], route[6]))
    assert geometry.local_heading(3, span_km=1.0) == pytest.approx(bearing_degrees(route[2], route[5]))
