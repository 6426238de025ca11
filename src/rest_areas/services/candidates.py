from __future__ import annotations

import math
from collections.abc import Sequence

from django.db import DatabaseError

from rest_areas.exceptions import DataUnavailableError
from rest_areas.models import RestArea
from rest_areas.services.geo import bounding_box
from rest_areas.services.types import RestAreaCandidate, RoutePoint


def load_rest_area_candidates(
    route: Sequence[RoutePoint] = (), margin_km: float = 0.0
) -> list[RestAreaCandidate]:
    rest_areas = RestArea.objects.all()
    if route:
        min_lat, max_lat, min_lng, max_lng = bounding_box(route, margin_km=margin_km)
        rest_areas = rest_areas.filter(
            latitude__gte=min_lat,
            latitude__lte=max_lat,
            longitude__gte=min_lng,
            longitude__lte=max_lng,
        )

    try:
        rows = list(
            rest_areas.only(
                "external_id",
                "name",
                "latitude",
                "longitude",
                "highway_name",
                "highway_code",
                "direction_label",
                "facilities",
            )
        )
    except DatabaseError as exc:
        raise DataUnavailableError("Rest-area catalog query failed") from exc

    return [
        RestAreaCandidate(
            id=row.external_id,
            name=row.name,
            lat=row.latitude if row.latitude is not None else math.nan,
            lng=row.longitude if row.longitude is not None else math.nan,
            highway_name=row.highway_name or None,
            highway_code=row.highway_code or None,
            direction_label=row.direction_label or None,
            facilities=tuple(str(item) for item in row.facilities or ()),
        )
        for row in rows
    ]
