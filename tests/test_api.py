from __future__ import annotations

import json

import pytest

from rest_areas.exceptions import DataUnavailableError, ExternalServiceError, InvalidRouteError
from rest_areas.models import HighwayInterchange, RestArea
from rest_areas.schemas import (
    DiagnosticsResponse,
    FilterStagesResponse,
    RestAreaResponse,
    RestAreaSearchRequest,
    RestAreaSearchResponse,
    RouteSummaryResponse,
)

SEARCH_URL = "/api/v1/rest-areas/search"


def _post(api_client, payload):
    return api_client.post(SEARCH_URL, data=json.dumps(payload), content_type="application/json")


@pytest.mark.django_db
def test_health_endpoint_returns_catalog_counts(api_client, mocker) -> None:
    RestArea.objects.create(external_id="000001", name="망향휴게소", latitude=36.9, longitude=127.2)
    RestArea.objects.create(external_id="000002", name="좌표없음휴게소")
    HighwayInterchange.objects.create(
        entry_id="101_DOWN",
        unit_code="101",
        name="서울IC",
        highway_name="경부선",
        highway_code="001",
        direction=HighwayInterchange.Direction.DOWN,
        weight=1,
        distance_from_start_km=0.0,
        latitude=37.46,
        longitude=127.04,
    )
    finder = mocker.patch("rest_areas.views.get_rest_area_finder")
    finder.return_value.catalog.status.return_value = {"loaded": False, "entries": 0, "age_seconds": None}

    response = api_client.get("/api/v1/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["rest_areas"] == {"total": 2, "located": 1}
    assert payload["interchanges"]["entries"] == 1
    assert payload["interchanges"]["cache"]["loaded"] is False


def test_search_validation_error_returns_400(api_client) -> None:
    response = _post(api_client, {"origin": {"lat": 37.5, "lng": 127.0}})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation_error"


def test_search_rejects_unknown_option(api_client) -> None:
    response = _post(api_client, {"route": [{"lat": 37.5, "lng": 127.0}], "options": {"turbo": True}})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation_error"


def test_search_invalid_json_returns_400(api_client) -> None:
    response = api_client.post(SEARCH_URL, data="{nope", content_type="application/json")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_json"


def test_search_requires_post(api_client) -> None:
    assert api_client.get(SEARCH_URL).status_code == 405


def test_search_success_uses_finder_response(api_client, mocker) -> None:
    fake_response = RestAreaSearchResponse(
        rest_areas=[
            RestAreaResponse(
                id="000001",
                name="망향휴게소(부산)",
                lat=36.9,
                lng=127.2,
                highway_name="경부고속도로",
                highway_code="0010",
                direction_label="부산방향",
                direction="DOWN",
                facilities=["주유소"],
                distance_from_route_start_km=72.5,
                distance_from_route_m=120.0,
                estimated_travel_time_minutes=54.4,
                route_position_ratio=0.22,
                confidence=1.0,
                reasons=["direction label matches route direction"],
            )
        ],
        diagnostics=DiagnosticsResponse(
            filter_stages=FilterStagesResponse(
                initial=3,
                after_highway_match=2,
                after_distance_filter=2,
                after_direction_filter=1,
                after_interval_filter=1,
                final=1,
            ),
            detected_highways=[],
            matching_quality="low",
            degraded=True,
            excluded={"000002": "not reachable from the route's carriageway"},
        ),
        route=RouteSummaryResponse(points=2, distance_km=325.0, highway_hints=[]),
        options={"max_results": 20},
    )
    finder = mocker.patch("rest_areas.views.get_rest_area_finder")
    finder.return_value.search.return_value = fake_response

    response = _post(
        api_client,
        {
            "route": [{"lat": 37.5547, "lng": 126.9706}, {"lat": 35.1796, "lng": 129.0756}],
            "options": {"strict_mode": True},
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["rest_areas"][0]["name"] == "망향휴게소(부산)"
    assert payload["diagnostics"]["filter_stages"]["final"] == 1
    assert payload["diagnostics"]["degraded"] is True
    search_request = finder.return_value.search.call_args.args[0]
    assert isinstance(search_request, RestAreaSearchRequest)
    assert search_request.options.strict_mode is True


@pytest.mark.parametrize(
    ("error", "status", "code"),
    [
        (InvalidRouteError("Route point 0 has invalid coordinates"), 400, "invalid_route"),
        (ExternalServiceError("OSRM request failed"), 502, "upstream_error"),
        (DataUnavailableError("Rest-area catalog query failed"), 503, "data_unavailable"),
    ],
)
def test_search_maps_service_errors(api_client, mocker, error, status, code) -> None:
    finder = mocker.patch("rest_areas.views.get_rest_area_finder")
    finder.return_value.search.side_effect = error

    response = _post(api_client, {"route": [{"lat": 37.5, "lng": 127.0}]})

    assert response.status_code == status
    assert response.json()["error"] == {"code": code, "message": str(error)}
