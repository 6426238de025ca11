from __future__ import annotations

from collections.abc import Callable, Sequence

from django.conf import settings

from rest_areas.exceptions import InvalidRouteError
from rest_areas.schemas import (
    DetectedHighwayResponse,
    DiagnosticsResponse,
    FilterOptions,
    FilterStagesResponse,
    RestAreaResponse,
    RestAreaSearchRequest,
    RestAreaSearchResponse,
    RouteSummaryResponse,
)
from rest_areas.services.candidates import load_rest_area_candidates
from rest_areas.services.facilities import FacilityClient, enrich_facilities
from rest_areas.services.filtering import CandidateFilterPipeline
from rest_areas.services.geo import cumulative_distances_km, is_valid_coordinate
from rest_areas.services.interchanges import InterchangeCatalog
from rest_areas.services.osrm import OsrmClient
from rest_areas.services.types import FilterResult, RestAreaCandidate, RoutePoint

CandidateLoader = Callable[[Sequence[RoutePoint], float], list[RestAreaCandidate]]


class RestAreaFinderService:
    def __init__(
        self,
        catalog: InterchangeCatalog | None = None,
        pipeline: CandidateFilterPipeline | None = None,
        osrm_client: OsrmClient | None = None,
        facility_client: FacilityClient | None = None,
        candidate_loader: CandidateLoader | None = None,
    ) -> None:
        self.catalog = catalog or InterchangeCatalog(
            ttl_seconds=settings.INTERCHANGE_CACHE_TTL_SECONDS,
            fetch_timeout_seconds=settings.INTERCHANGE_FETCH_TIMEOUT_SECONDS,
        )
        self.pipeline = pipeline or CandidateFilterPipeline(self.catalog)
        self.osrm_client = osrm_client or OsrmClient()
        self.facility_client = facility_client or FacilityClient()
        self.candidate_loader = candidate_loader or load_rest_area_candidates

    def search(self, request: RestAreaSearchRequest) -> RestAreaSearchResponse:
        route, hints = self._resolve_route(request)
        overrides = request.options.model_dump(exclude_unset=True) if request.options else {}
        options = FilterOptions.from_settings(**overrides)

        candidates = self.candidate_loader(route, options.max_distance_from_route_m / 1000.0)
        outcome = self.pipeline.run(route, candidates, options, highway_hints=hints)

        results = outcome.results
        if request.include_facility_details:
            results = enrich_facilities(
                results, self.facility_client, max_concurrent=settings.FACILITY_API_MAX_CONCURRENT
            )

        diagnostics = outcome.diagnostics
        stages = diagnostics.filter_stages
        return RestAreaSearchResponse(
            rest_areas=[self._to_response(result) for result in results],
            diagnostics=DiagnosticsResponse(
                filter_stages=FilterStagesResponse(
                    initial=stages.initial,
                    after_highway_match=stages.after_highway_match,
                    after_distance_filter=stages.after_distance_filter,
                    after_direction_filter=stages.after_direction_filter,
                    after_interval_filter=stages.after_interval_filter,
                    final=stages.final,
                ),
                detected_highways=[
                    DetectedHighwayResponse(
                        name=highway.highway_name,
                        code=highway.highway_code,
                        confidence=round(highway.confidence, 3),
                        coverage=round(highway.coverage_percentage, 1),
                    )
                    for highway in diagnostics.detected_highways
                ],
                matching_quality=diagnostics.matching_quality,
                degraded=diagnostics.degraded,
                excluded=diagnostics.excluded,
            ),
            route=RouteSummaryResponse(
                points=len(route),
                distance_km=round(cumulative_distances_km(route)[-1], 3),
                highway_hints=hints,
            ),
            options=options.model_dump(),
        )

    def _resolve_route(self, request: RestAreaSearchRequest) -> tuple[list[RoutePoint], list[str]]:
        hints = [hint.strip() for hint in request.highway_hints if hint.strip()]

        if request.route is not None:
            route = [RoutePoint(lat=point.lat, lng=point.lng) for point in request.route]
        else:
            if request.origin is None or request.destination is None:
                raise InvalidRouteError("Origin and destination are required without a route")
            route_data = self.osrm_client.route(
                RoutePoint(lat=request.origin.lat, lng=request.origin.lng),
                RoutePoint(lat=request.destination.lat, lng=request.destination.lng),
            )
            route = list(route_data.points)
            hints.extend(hint for hint in route_data.highway_hints if hint not in hints)

        if not route:
            raise InvalidRouteError("Route must contain at least one point")
        for index, point in enumerate(route):
            if not is_valid_coordinate(point.lat, point.lng):
                raise InvalidRouteError(f"Route point {index} has invalid coordinates")
        return route, hints

    @staticmethod
    def _to_response(result: FilterResult) -> RestAreaResponse:
        candidate = result.candidate
        return RestAreaResponse(
            id=candidate.id,
            name=candidate.name,
            lat=round(candidate.lat, 6),
            lng=round(candidate.lng, 6),
            highway_name=candidate.highway_name,
            highway_code=candidate.highway_code,
            direction_label=candidate.direction_label,
            direction=result.direction.value,
            facilities=list(candidate.facilities),
            distance_from_route_start_km=round(result.distance_from_route_start_km, 3),
            distance_from_route_m=round(result.distance_from_route_m, 1),
            estimated_travel_time_minutes=round(result.estimated_travel_time_minutes, 1),
            route_position_ratio=round(result.route_position_ratio, 3),
            confidence=round(result.confidence, 3),
            reasons=list(result.reasons),
        )
