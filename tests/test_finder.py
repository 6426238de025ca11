from __future__ import annotations

import math

import pytest

from conftest import BUSAN, SEOUL_STATION, interpolate_route, offset_point
from rest_areas.exceptions import InvalidRouteError
from rest_areas.models import RestArea
from rest_areas.schemas import RestAreaSearchRequest
from rest_areas.services.candidates import load_rest_area_candidates
from rest_areas.services.facilities import FacilityClient
from rest_areas.services.finder import RestAreaFinderService
from rest_areas.services.interchanges import InterchangeCatalog
from rest_areas.services.osrm import OsrmClient
from rest_areas.services.types import RouteData, RoutePoint


@pytest.fixture
def finder(mocker, seoul_busan_route, make_candidate):
    loaded = []

    def candidate_loader(route, margin_km):
        loaded.append((len(route), margin_km))
        return [
            make_candidate("000001", "X(부산)", seoul_busan_route[30]),
            make_candidate("000002", "Y", seoul_busan_route[70], direction_label="양방향"),
        ]

    service = RestAreaFinderService(
        catalog=InterchangeCatalog(source=lambda: []),
        osrm_client=mocker.Mock(spec=OsrmClient),
        facility_client=mocker.Mock(spec=FacilityClient),
        candidate_loader=candidate_loader,
    )
    service.loaded = loaded
    return service


def _route_payload(route):
    return [{"lat": point.lat, "lng": point.lng} for point in route]


def test_search_with_route_polyline(finder, seoul_busan_route) -> None:
    request = RestAreaSearchRequest.model_validate(
        {"route": _route_payload(seoul_busan_route), "options": {"max_distance_from_route_m": 500}}
    )

    response = finder.search(request)

    assert [item.id for item in response.rest_areas] == ["000001", "000002"]
    assert response.rest_areas[1].direction == "BOTH"
    assert response.diagnostics.degraded is True
    assert response.diagnostics.filter_stages.final == 2
    assert response.route.points == 101
    assert response.route.distance_km == pytest.approx(325, abs=10)
    assert response.options["max_distance_from_route_m"] == 500
    assert response.options["min_interval_km"] == 8
    assert finder.loaded == [(101, 0.5)]
    finder.osrm_client.route.assert_not_called()


def test_search_resolves_route_from_endpoints(finder, seoul_busan_route) -> None:
    finder.osrm_client.route.return_value = RouteData(
        points=seoul_busan_route,
        distance_km=325.0,
        duration_seconds=14400.0,
        highway_hints=("경부고속도로",),
    )
    request = RestAreaSearchRequest.model_validate(
        {
            "origin": {"lat": SEOUL_STATION.lat, "lng": SEOUL_STATION.lng},
            "destination": {"lat": BUSAN.lat, "lng": BUSAN.lng},
            "highway_hints": [" 경부고속도로 ", "중부내륙선", ""],
        }
    )

    response = finder.search(request)

    assert response.route.highway_hints == ["경부고속도로", "중부내륙선"]
    assert len(response.rest_areas) == 2


def test_search_rejects_invalid_route_points(finder) -> None:
    request = RestAreaSearchRequest.model_validate(
        {"route": [{"lat": 37.5, "lng": 127.0}, {"lat": 0.0, "lng": 0.0}]}
    )

    with pytest.raises(InvalidRouteError, match="Route point 1"):
        finder.search(request)


def test_search_enriches_facilities_on_request(finder, seoul_busan_route) -> None:
    finder.facility_client.facilities_for.return_value = ["주유소", "편의점"]
    request = RestAreaSearchRequest.model_validate(
        {"route": _route_payload(seoul_busan_route), "include_facility_details": True}
    )

    response = finder.search(request)

    assert [item.facilities for item in response.rest_areas] == [["주유소", "편의점"], ["주유소", "편의점"]]
    assert finder.facility_client.facilities_for.call_count == 2


@pytest.mark.django_db
def test_candidate_loader_prefilters_by_route_bounding_box(seoul_busan_route) -> None:
    RestArea.objects.create(
        external_id="000001",
        name="망향휴게소",
        latitude=36.9,
        longitude=127.6,
        highway_name="경부고속도로",
        highway_code="0010",
        direction_label="부산방향",
        facilities=["주유소"],
    )
    RestArea.objects.create(external_id="000002", name="제주휴게소", latitude=33.4, longitude=126.5)
    RestArea.objects.create(external_id="000003", name="좌표없음휴게소")

    nearby = load_rest_area_candidates(seoul_busan_route, margin_km=1.0)
    everything = load_rest_area_candidates()

    assert [candidate.id for candidate in nearby] == ["000001"]
    assert nearby[0].facilities == ("주유소",)
    assert nearby[0].direction_label == "부산방향"
    missing = next(candidate for candidate in everything if candidate.id == "000003")
    assert math.isnan(missing.lat)
    assert missing.highway_code is None


@pytest.mark.django_db
def test_candidate_loader_keeps_rest_area_just_inside_threshold() -> None:
    route = interpolate_route(RoutePoint(35.0, 127.0), RoutePoint(37.5, 127.0), 26)
    point = offset_point(route[-1], 90, 0.99)
    RestArea.objects.create(external_id="000010", name="북단휴게소", latitude=point.lat, longitude=point.lng)

    candidates = load_rest_area_candidates(route, margin_km=1.0)

    assert [candidate.id for candidate in candidates] == ["000010"]
