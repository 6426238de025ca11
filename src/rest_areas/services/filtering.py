from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence

from rest_areas.schemas import FilterOptions
from rest_areas.services.direction import DirectionResolver
from rest_areas.services.geo import (
    RouteGeometry,
    clamp,
    is_valid_coordinate,
    min_distance_to_polyline_km,
    nearest_vertex_index,
)
from rest_areas.services.highway_matching import HighwayRouteMatcher
from rest_areas.services.highway_names import build_allowed_highways, matches_allowed_highway
from rest_areas.services.interchanges import InterchangeCatalog
from rest_areas.services.types import (
    DetectedHighway,
    Direction,
    FilterDiagnostics,
    FilterResult,
    FilterStages,
    PipelineResult,
    RestAreaCandidate,
    RoutePoint,
)

logger = logging.getLogger(__name__)

NEUTRAL_CONFIDENCE = 0.5


class CandidateFilterPipeline:
    """Narrow a rest-area catalog down to the stops reachable along a route.

    Stages run in a fixed order (highway match, distance, direction, spacing,
    truncation) and never reintroduce a dropped candidate.
    """

    def __init__(
        self,
        catalog: InterchangeCatalog,
        matcher: HighwayRouteMatcher | None = None,
        resolver: DirectionResolver | None = None,
    ) -> None:
        self.catalog = catalog
        self.matcher = matcher or HighwayRouteMatcher(catalog)
        self.resolver = resolver or DirectionResolver(catalog)

    def run(
        self,
        route: Sequence[RoutePoint],
        candidates: Sequence[RestAreaCandidate],
        options: FilterOptions | None = None,
        highway_hints: Iterable[str] = (),
    ) -> PipelineResult:
        options = options or FilterOptions()
        geometry = RouteGeometry.from_points(route)
        stages = FilterStages(initial=len(candidates))
        excluded: dict[str, str] = {}

        snapshot = self.catalog.load()
        match = self.matcher.match(
            geometry.points,
            max_distance_from_ic_m=options.max_distance_from_ic_m,
            min_coverage=options.min_highway_coverage,
            confidence_threshold=options.highway_confidence_threshold,
            snapshot=snapshot,
        )

        degraded = not match.detected_highways
        if degraded:
            logger.warning(
                "No highway detected along route (%d interchange entries loaded), filtering by distance only",
                len(snapshot.interchanges),
            )
            on_highway = list(candidates)
        else:
            allowed = build_allowed_highways(
                match.detected_highways, [hint for hint in highway_hints if hint and hint.strip()]
            )
            on_highway = []
            for candidate in candidates:
                if matches_allowed_highway(candidate, allowed):
                    on_highway.append(candidate)
                else:
                    _exclude(excluded, candidate, "not on a highway the route follows")
        stages.after_highway_match = len(on_highway)

        within_reach: list[tuple[RestAreaCandidate, float]] = []
        for candidate in on_highway:
            distance_m = _distance_from_route_m(candidate, geometry)
            if distance_m <= options.max_distance_from_route_m:
                within_reach.append((candidate, distance_m))
            elif math.isinf(distance_m):
                _exclude(excluded, candidate, "invalid coordinates or empty route")
            else:
                _exclude(excluded, candidate, f"{distance_m:.0f}m from route")
        stages.after_distance_filter = len(within_reach)

        scored: list[FilterResult] = []
        if options.enable_direction_filter:
            assessments = self.resolver.resolve(
                geometry, [candidate for candidate, _ in within_reach], options, snapshot=snapshot
            )
            for candidate, distance_m in within_reach:
                assessment = assessments[candidate.id]
                if not assessment.is_accessible:
                    _exclude(excluded, candidate, "not reachable from the route's carriageway")
                    continue
                if assessment.direction == Direction.BOTH and not options.include_both:
                    _exclude(excluded, candidate, "bidirectional facilities excluded")
                    continue
                scored.append(
                    _annotate(
                        candidate,
                        distance_m,
                        geometry,
                        options,
                        confidence=assessment.confidence,
                        direction=assessment.direction,
                        reasons=assessment.reasons,
                    )
                )
        else:
            for candidate, distance_m in within_reach:
                scored.append(
                    _annotate(
                        candidate,
                        distance_m,
                        geometry,
                        options,
                        confidence=highway_confidence_for(candidate, match.detected_highways),
                        direction=Direction.UNKNOWN,
                        reasons=(),
                    )
                )
        stages.after_direction_filter = len(scored)

        spaced = apply_minimum_interval(scored, options.min_interval_km)
        kept_ids = {result.candidate.id for result in spaced}
        for result in scored:
            if result.candidate.id not in kept_ids:
                _exclude(excluded, result.candidate, f"within {options.min_interval_km:g}km of a kept stop")
        stages.after_interval_filter = len(spaced)

        results = spaced[: options.max_results]
        for result in spaced[options.max_results :]:
            _exclude(excluded, result.candidate, "beyond result limit")
        stages.final = len(results)

        logger.info(
            "Rest-area filter stages: initial=%d highway=%d distance=%d direction=%d interval=%d final=%d",
            stages.initial,
            stages.after_highway_match,
            stages.after_distance_filter,
            stages.after_direction_filter,
            stages.after_interval_filter,
            stages.final,
        )

        return PipelineResult(
            results=results,
            diagnostics=FilterDiagnostics(
                filter_stages=stages,
                detected_highways=list(match.detected_highways),
                matching_quality=match.matching_quality,
                degraded=degraded,
                excluded=excluded,
            ),
        )


def apply_minimum_interval(results: Sequence[FilterResult], min_interval_km: float) -> list[FilterResult]:
    ordered = sorted(results, key=lambda result: result.distance_from_route_start_km)
    kept: list[FilterResult] = []
    for result in ordered:
        if not kept or result.distance_from_route_start_km - kept[-1].distance_from_route_start_km >= min_interval_km:
            kept.append(result)
        elif result.confidence > kept[-1].confidence:
            kept[-1] = result
    return kept


def highway_confidence_for(candidate: RestAreaCandidate, detected: Sequence[DetectedHighway]) -> float:
    for highway in detected:
        if matches_allowed_highway(candidate, build_allowed_highways([highway])):
            return highway.confidence
    return NEUTRAL_CONFIDENCE


def _distance_from_route_m(candidate: RestAreaCandidate, geometry: RouteGeometry) -> float:
    if not is_valid_coordinate(candidate.lat, candidate.lng):
        return math.inf
    return min_distance_to_polyline_km(candidate.point, geometry.points) * 1000.0


def _annotate(
    candidate: RestAreaCandidate,
    distance_m: float,
    geometry: RouteGeometry,
    options: FilterOptions,
    *,
    confidence: float,
    direction: Direction,
    reasons: Sequence[str],
) -> FilterResult:
    vertex = nearest_vertex_index(candidate.point, geometry.points)
    distance_from_start_km = geometry.cumulative_km[vertex]
    total_km = geometry.total_km
    return FilterResult(
        candidate=candidate,
        distance_from_route_start_km=distance_from_start_km,
        distance_from_route_m=distance_m,
        estimated_travel_time_minutes=distance_from_start_km / options.assumed_speed_kmh * 60.0,
        route_position_ratio=clamp(distance_from_start_km / total_km, 0.0, 1.0) if total_km > 0 else 0.0,
        confidence=clamp(confidence, 0.0, 1.0),
        direction=direction,
        reasons=tuple(reasons),
    )


def _exclude(excluded: dict[str, str], candidate: RestAreaCandidate, reason: str) -> None:
    excluded[candidate.id] = reason
    logger.debug("Dropped rest area %s (%s): %s", candidate.id, candidate.name, reason)
