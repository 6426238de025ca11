from __future__ import annotations

import math

import pytest
from django.test import Client

from rest_areas.services.geo import KM_PER_DEGREE_LAT
from rest_areas.services.types import RawInterchange, RestAreaCandidate, RoutePoint

SEOUL_STATION = RoutePoint(37.5547, 126.9706)
BUSAN = RoutePoint(35.1796, 129.0756)


def offset_point(origin: RoutePoint, bearing_deg: float, distance_km: float) -> RoutePoint:
    bearing = math.radians(bearing_deg)
    dlat = distance_km * math.cos(bearing) / KM_PER_DEGREE_LAT
    dlng = distance_km * math.sin(bearing) / (KM_PER_DEGREE_LAT * math.cos(math.radians(origin.lat)))
    return RoutePoint(origin.lat + dlat, origin.lng + dlng)


def interpolate_route(start: RoutePoint, end: RoutePoint, points: int) -> list[RoutePoint]:
    return [
        RoutePoint(
            start.lat + (end.lat - start.lat) * index / (points - 1),
            start.lng + (end.lng - start.lng) * index / (points - 1),
        )
        for index in range(points)
    ]


@pytest.fixture
def api_client() -> Client:
    return Client()


@pytest.fixture
def seoul_busan_route() -> list[RoutePoint]:
    return interpolate_route(SEOUL_STATION, BUSAN, 101)


@pytest.fixture
def gyeongbu_interchanges() -> list[RawInterchange]:
    names = ["서울IC", "수원IC", "천안IC", "대전IC", "대구IC", "부산IC"]
    raw = []
    for index, name in enumerate(names):
        fraction = index / (len(names) - 1)
        raw.append(
            RawInterchange(
                unit_code=f"{101 + index}",
                name=name,
                highway_code="0010",
                highway_name="경부고속도로",
                lat=SEOUL_STATION.lat + (BUSAN.lat - SEOUL_STATION.lat) * fraction,
                lng=SEOUL_STATION.lng + (BUSAN.lng - SEOUL_STATION.lng) * fraction,
                distance_from_start_km=round(fraction * 320.0, 1),
            )
        )
    return raw


@pytest.fixture
def make_candidate():
    def _make(
        candidate_id: str,
        name: str,
        point: RoutePoint,
        highway_name: str | None = "경부고속도로",
        highway_code: str | None = "0010",
        direction_label: str | None = None,
    ) -> RestAreaCandidate:
        return RestAreaCandidate(
            id=candidate_id,
            name=name,
            lat=point.lat,
            lng=point.lng,
            highway_name=highway_name,
            highway_code=highway_code,
            direction_label=direction_label,
        )

    return _make
