from __future__ import annotations

import hashlib
import logging
import re
import time
from typing import Any

import httpx
from django.conf import settings
from django.core.cache import cache

from rest_areas.exceptions import ExternalServiceError, NoRouteFoundError
from rest_areas.services.types import RouteData, RoutePoint

logger = logging.getLogger(__name__)

_HIGHWAY_NAME = re.compile(r"(고속도로|고속국도|자동차도|선)$")


class OsrmClient:
    def __init__(self) -> None:
        self.base_url = settings.OSRM_BASE_URL.rstrip("/")
        self.timeout = settings.OSRM_TIMEOUT_SECONDS
        self.retry_count = settings.OSRM_RETRY_COUNT

    def route(self, origin: RoutePoint, destination: RoutePoint) -> RouteData:
        cache_key = self._cache_key([origin, destination])
        cached = cache.get(cache_key)
        if cached:
            return RouteData(
                points=[RoutePoint(lat, lng) for lat, lng in cached["points"]],
                distance_km=cached["distance_km"],
                duration_seconds=cached["duration_seconds"],
                highway_hints=tuple(cached["highway_hints"]),
            )

        coordinates = ";".join(f"{point.lng:.6f},{point.lat:.6f}" for point in (origin, destination))
        endpoint = f"{self.base_url}/route/v1/driving/{coordinates}"
        params = {
            "overview": "full",
            "geometries": "geojson",
            "steps": "true",
            "annotations": "false",
        }

        for attempt in range(self.retry_count + 1):
            try:
                response = httpx.get(endpoint, params=params, timeout=self.timeout)
                response.raise_for_status()
                route_data = self._parse_response(response.json())
                cache.set(
                    cache_key,
                    {
                        "points": [(point.lat, point.lng) for point in route_data.points],
                        "distance_km": route_data.distance_km,
                        "duration_seconds": route_data.duration_seconds,
                        "highway_hints": list(route_data.highway_hints),
                    },
                    timeout=settings.ROUTE_CACHE_TTL_SECONDS,
                )
                return route_data
            except NoRouteFoundError:
                raise
            except (httpx.HTTPError, ValueError) as exc:
                if attempt >= self.retry_count:
                    raise ExternalServiceError("OSRM request failed") from exc
                logger.info("OSRM request failed (attempt %d), retrying: %s", attempt + 1, exc)
                time.sleep(0.3 * (attempt + 1))

        raise ExternalServiceError("OSRM request failed")

    @staticmethod
    def _cache_key(waypoints: list[RoutePoint]) -> str:
        encoded = "|".join(f"{point.lat:.5f}:{point.lng:.5f}" for point in waypoints).encode()
        digest = hashlib.sha256(encoded).hexdigest()
        return f"route:{digest}"

    @staticmethod
    def _parse_response(payload: Any) -> RouteData:
        if payload.get("code") != "Ok":
            raise NoRouteFoundError("Could not compute route")

        routes = payload.get("routes") or []
        if not routes:
            raise NoRouteFoundError("Could not compute route")

        first = routes[0]
        coordinates = first.get("geometry", {}).get("coordinates", [])
        if len(coordinates) < 2:
            raise NoRouteFoundError("Route geometry unavailable")

        return RouteData(
            points=[RoutePoint(lat=float(lat), lng=float(lng)) for lng, lat, *_ in coordinates],
            distance_km=float(first.get("distance", 0.0)) / 1000.0,
            duration_seconds=float(first.get("duration", 0.0)),
            highway_hints=extract_highway_hints(first),
        )


def extract_highway_hints(route: dict[str, Any]) -> tuple[str, ...]:
    hints: list[str] = []
    for leg in route.get("legs") or []:
        for step in leg.get("steps") or []:
            for name in (step.get("name") or "").split(";"):
                name = name.strip()
                if name and _HIGHWAY_NAME.search(name) and name not in hints:
                    hints.append(name)
    return tuple(hints)
