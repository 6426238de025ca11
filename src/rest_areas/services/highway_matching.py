from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence

from rest_areas.services.geo import clamp, haversine_km
from rest_areas.services.highway_names import normalize_highway_code
from rest_areas.services.interchanges import CatalogSnapshot, InterchangeCatalog
from rest_areas.services.types import (
    DetectedHighway,
    HighwayMatchResult,
    HighwaySegment,
    MatchingQuality,
    NearbyInterchange,
    RoutePoint,
)

logger = logging.getLogger(__name__)

MAX_ROUTE_INDEX_GAP = 50


class HighwayRouteMatcher:
    """Decide which highways a route follows from the interchanges it passes."""

    def __init__(self, catalog: InterchangeCatalog) -> None:
        self.catalog = catalog

    def match(
        self,
        route: Sequence[RoutePoint],
        *,
        max_distance_from_ic_m: float = 2000.0,
        min_coverage: float = 0.2,
        confidence_threshold: float = 0.5,
        snapshot: CatalogSnapshot | None = None,
    ) -> HighwayMatchResult:
        if not route:
            return HighwayMatchResult([], None, 0.0, "low")

        snapshot = snapshot or self.catalog.load()
        nearby = deduplicate_physical(snapshot.find_nearby(route, max_distance_from_ic_m))
        if not nearby:
            logger.info("No interchanges within %.0fm of the route", max_distance_from_ic_m)
            return HighwayMatchResult([], None, 0.0, "low")

        total_points = len(route)
        detected: list[DetectedHighway] = []
        for (highway_code, highway_name), matches in group_by_highway(nearby).items():
            highway = evaluate_highway(highway_code, highway_name, matches, total_points)
            if highway.confidence >= confidence_threshold and highway.coverage_percentage >= min_coverage * 100:
                detected.append(highway)
            else:
                logger.debug(
                    "Rejected highway %s: confidence=%.2f coverage=%.1f%%",
                    highway_name,
                    highway.confidence,
                    highway.coverage_percentage,
                )

        # Stable sort keeps the first-seen highway on equal scores.
        detected.sort(key=lambda item: item.confidence * item.coverage_percentage, reverse=True)
        primary = detected[0] if detected else None
        route_coverage = overall_route_coverage(nearby, total_points)

        return HighwayMatchResult(
            detected_highways=detected,
            primary_highway=primary,
            route_coverage=route_coverage,
            matching_quality=matching_quality(primary, route_coverage),
        )


def deduplicate_physical(nearby: Sequence[NearbyInterchange]) -> list[NearbyInterchange]:
    by_unit: dict[tuple[str, str], NearbyInterchange] = {}
    for item in nearby:
        key = (normalize_highway_code(item.interchange.highway_code), item.interchange.unit_code)
        current = by_unit.get(key)
        if current is None or item.distance_m < current.distance_m:
            by_unit[key] = item
    return sorted(by_unit.values(), key=lambda item: (item.route_index, item.distance_m))


def group_by_highway(
    nearby: Sequence[NearbyInterchange],
) -> dict[tuple[str, str], list[NearbyInterchange]]:
    by_code: dict[str, list[NearbyInterchange]] = defaultdict(list)
    for item in nearby:
        by_code[normalize_highway_code(item.interchange.highway_code)].append(item)

    groups: dict[tuple[str, str], list[NearbyInterchange]] = {}
    for code, matches in by_code.items():
        matches.sort(key=lambda item: item.route_index)
        name = next((item.interchange.highway_name for item in matches if item.interchange.highway_name), "")
        groups[(code, name)] = matches
    return groups


def split_contiguous_runs(
    matches: Sequence[NearbyInterchange], max_gap: int = MAX_ROUTE_INDEX_GAP
) -> list[list[NearbyInterchange]]:
    runs: list[list[NearbyInterchange]] = []
    for item in sorted(matches, key=lambda match: match.route_index):
        if runs and item.route_index - runs[-1][-1].route_index <= max_gap:
            runs[-1].append(item)
        else:
            runs.append([item])
    return runs


def coverage_percentage(route_indices: Sequence[int], total_points: int) -> float:
    if not route_indices or total_points <= 0:
        return 0.0
    span = max(route_indices) - min(route_indices) + 1
    return clamp(span / total_points * 100.0, 0.0, 100.0)


def highway_confidence(
    matched_ic_count: int,
    average_distance_m: float,
    coverage: float,
    run_count: int,
) -> float:
    confidence = 0.5

    if matched_ic_count >= 5:
        confidence += 0.3
    elif matched_ic_count >= 3:
        confidence += 0.2
    elif matched_ic_count >= 2:
        confidence += 0.1

    if average_distance_m < 1000:
        confidence += 0.2
    elif average_distance_m < 1500:
        confidence += 0.1

    if coverage > 60:
        confidence += 0.2
    elif coverage > 40:
        confidence += 0.1

    if run_count == 1 and matched_ic_count >= 3:
        confidence += 0.1

    return clamp(confidence, 0.0, 1.0)


def evaluate_highway(
    highway_code: str,
    highway_name: str,
    matches: Sequence[NearbyInterchange],
    total_points: int,
) -> DetectedHighway:
    runs = split_contiguous_runs(matches)
    segments = tuple(
        HighwaySegment(
            start_interchange=run[0].interchange.name,
            end_interchange=run[-1].interchange.name,
            start_index=run[0].route_index,
            end_index=run[-1].route_index,
            length_km=haversine_km(run[0].interchange.point, run[-1].interchange.point),
        )
        for run in runs
        if len(run) >= 2
    )
    average_distance_m = sum(item.distance_m for item in matches) / len(matches)
    coverage = coverage_percentage([item.route_index for item in matches], total_points)

    return DetectedHighway(
        highway_name=highway_name,
        highway_code=highway_code,
        confidence=highway_confidence(len(matches), average_distance_m, coverage, len(runs)),
        coverage_percentage=coverage,
        matched_ic_count=len(matches),
        average_distance_m=average_distance_m,
        segments=segments,
    )


def overall_route_coverage(nearby: Sequence[NearbyInterchange], total_points: int) -> float:
    if total_points <= 0:
        return 0.0
    distinct_indices = {item.route_index for item in nearby}
    return clamp(len(distinct_indices) / total_points * 100.0, 0.0, 100.0)


def matching_quality(primary: DetectedHighway | None, route_coverage: float) -> MatchingQuality:
    if primary is None:
        return "low"
    if primary.confidence > 0.8 and primary.coverage_percentage > 60 and route_coverage > 50:
        return "high"
    if primary.confidence > 0.6 and primary.coverage_percentage > 40:
        return "medium"
    return "low"
