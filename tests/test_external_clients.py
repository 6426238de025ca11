from __future__ import annotations

import httpx
import pytest
from django.core.cache import cache

from rest_areas.exceptions import ExternalServiceError, NoRouteFoundError
from rest_areas.services.facilities import FacilityClient, enrich_facilities
from rest_areas.services.osrm import OsrmClient, extract_highway_hints
from rest_areas.services.types import Direction, FilterResult, RestAreaCandidate, RoutePoint


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


def _json_response(payload, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload, request=httpx.Request("GET", "http://test"))


def _osrm_payload() -> dict:
    return {
        "code": "Ok",
        "routes": [
            {
                "distance": 325000.0,
                "duration": 14400.0,
                "geometry": {"coordinates": [[126.9706, 37.5547], [127.5, 36.5], [129.0756, 35.1796]]},
                "legs": [
                    {
                        "steps": [
                            {"name": "세종대로"},
                            {"name": "경부고속도로"},
                            {"name": "경부고속도로;중부내륙선"},
                            {"name": ""},
                        ]
                    }
                ],
            }
        ],
    }


def _result(candidate_id: str) -> FilterResult:
    return FilterResult(
        candidate=RestAreaCandidate(candidate_id, candidate_id, 36.0, 127.0, facilities=("화장실",)),
        distance_from_route_start_km=0.0,
        distance_from_route_m=0.0,
        estimated_travel_time_minutes=0.0,
        route_position_ratio=0.0,
        confidence=0.6,
        direction=Direction.UNKNOWN,
    )


def test_osrm_route_parses_geometry_and_hints(mocker) -> None:
    get = mocker.patch("rest_areas.services.osrm.httpx.get", return_value=_json_response(_osrm_payload()))

    route = OsrmClient().route(RoutePoint(37.5547, 126.9706), RoutePoint(35.1796, 129.0756))

    assert route.points[0] == RoutePoint(37.5547, 126.9706)
    assert len(route.points) == 3
    assert route.distance_km == pytest.approx(325.0)
    assert route.highway_hints == ("경부고속도로", "중부내륙선")
    assert get.call_args.kwargs["params"]["steps"] == "true"


def test_osrm_route_is_cached(mocker) -> None:
    get = mocker.patch("rest_areas.services.osrm.httpx.get", return_value=_json_response(_osrm_payload()))
    client = OsrmClient()

    first = client.route(RoutePoint(37.5547, 126.9706), RoutePoint(35.1796, 129.0756))
    second = client.route(RoutePoint(37.5547, 126.9706), RoutePoint(35.1796, 129.0756))

    assert get.call_count == 1
    assert second == first


def test_osrm_no_route_is_not_retried(mocker) -> None:
    get = mocker.patch(
        "rest_areas.services.osrm.httpx.get", return_value=_json_response({"code": "NoRoute", "routes": []})
    )

    with pytest.raises(NoRouteFoundError):
        OsrmClient().route(RoutePoint(37.5, 127.0), RoutePoint(33.4, 126.5))

    assert get.call_count == 1


def test_osrm_raises_after_retries(mocker, settings) -> None:
    settings.OSRM_RETRY_COUNT = 2
    mocker.patch("rest_areas.services.osrm.time.sleep")
    get = mocker.patch("rest_areas.services.osrm.httpx.get", side_effect=httpx.ConnectError("refused"))

    with pytest.raises(ExternalServiceError):
        OsrmClient().route(RoutePoint(37.5, 127.0), RoutePoint(35.1, 129.0))

    assert get.call_count == 3


def test_extract_highway_hints_ignores_local_roads() -> None:
    assert extract_highway_hints({"legs": [{"steps": [{"name": "올림픽대로"}, {"name": "서해안선"}]}]}) == (
        "서해안선",
    )
    assert extract_highway_hints({}) == ()


def test_facility_lookup_skips_closed_services(mocker) -> None:
    payload = {
        "list": [
            {"facilityName": "주유소", "operationStatus": "운영"},
            {"facilityName": "식당", "operationStatus": "운영중단"},
            {"convenienceName": "편의점"},
            {"facilityName": "주유소"},
            "garbage",
        ]
    }
    mocker.patch("rest_areas.services.facilities.httpx.get", return_value=_json_response(payload))

    assert FacilityClient().facilities_for("000001") == ["주유소", "편의점"]


def test_facility_lookup_retries_then_fails(mocker, settings) -> None:
    settings.FACILITY_API_RETRY_COUNT = 1
    mocker.patch("rest_areas.services.facilities.time.sleep")
    get = mocker.patch(
        "rest_areas.services.facilities.httpx.get", return_value=_json_response({}, status_code=503)
    )

    with pytest.raises(ExternalServiceError):
        FacilityClient().facilities_for("000001")

    assert get.call_count == 2


def test_enrich_facilities_keeps_catalog_data_on_failure(mocker) -> None:
    def facilities_for(rest_area_id: str) -> list[str]:
        if rest_area_id == "c":
            raise ExternalServiceError("Facility lookup failed for c")
        return {"a": ["주유소", "전기차충전소"], "b": []}[rest_area_id]

    client = mocker.Mock(spec=FacilityClient)
    client.facilities_for.side_effect = facilities_for

    enriched = enrich_facilities([_result("a"), _result("b"), _result("c")], client, max_concurrent=2)

    assert [item.candidate.id for item in enriched] == ["a", "b", "c"]
    assert enriched[0].candidate.facilities == ("주유소", "전기차충전소")
    assert enriched[1].candidate.facilities == ("화장실",)
    assert enriched[2].candidate.facilities == ("화장실",)


def test_maintenance_page_keeps_catalog_facilities(mocker) -> None:
    mocker.patch("rest_areas.services.facilities.time.sleep")
    mocker.patch(
        "rest_areas.services.facilities.httpx.get",
        return_value=httpx.Response(
            200, text="<html>maintenance</html>", request=httpx.Request("GET", "http://test")
        ),
    )
    client = FacilityClient()

    with pytest.raises(ExternalServiceError):
        client.facilities_for("000001")
    enriched = enrich_facilities([_result("000001")], client)

    assert enriched[0].candidate.facilities == ("화장실",)


def test_osrm_non_json_body_is_an_upstream_error(mocker) -> None:
    mocker.patch("rest_areas.services.osrm.time.sleep")
    mocker.patch(
        "rest_areas.services.osrm.httpx.get",
        return_value=httpx.Response(
            200, text="<html>bad gateway</html>", request=httpx.Request("GET", "http://test")
        ),
    )

    with pytest.raises(ExternalServiceError):
        OsrmClient().route(RoutePoint(37.5, 127.0), RoutePoint(35.1, 129.0))
