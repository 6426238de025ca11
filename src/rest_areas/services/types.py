from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

MatchingQuality = Literal["high", "medium", "low"]


class Direction(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    BOTH = "BOTH"
    UNKNOWN = "UNKNOWN"


@dataclass(slots=True, frozen=True)
class RoutePoint:
    lat: float
    lng: float


@dataclass(slots=True, frozen=True)
class RestAreaCandidate:
    id: str
    name: str
    lat: float
    lng: float
    highway_name: str | None = None
    highway_code: str | None = None
    direction_label: str | None = None
    facilities: tuple[str, ...] = ()

    @property
    def point(self) -> RoutePoint:
        return RoutePoint(self.lat, self.lng)


@dataclass(slots=True, frozen=True)
class RawInterchange:
    """One physical interchange as published by the road operator."""

    unit_code: str
    name: str
    highway_code: str
    highway_name: str
    lat: float
    lng: float
    distance_from_start_km: float


@dataclass(slots=True, frozen=True)
class Interchange:
    """One carriageway-specific (logical) interchange entry."""

    id: str
    unit_code: str
    name: str
    highway_name: str
    highway_code: str
    direction: Direction
    weight: int
    distance_from_start_km: float
    lat: float
    lng: float
    prev_unit_code: str | None = None
    next_unit_code: str | None = None

    @property
    def point(self) -> RoutePoint:
        return RoutePoint(self.lat, self.lng)


@dataclass(slots=True, frozen=True)
class NearbyInterchange:
    interchange: Interchange
    distance_m: float
    route_index: int


@dataclass(slots=True, frozen=True)
class HighwaySegment:
    start_interchange: str
    end_interchange: str
    start_index: int
    end_index: int
    length_km: float


@dataclass(slots=True, frozen=True)
class DetectedHighway:
    highway_name: str
    highway_code: str
    confidence: float
    coverage_percentage: float
    matched_ic_count: int
    average_distance_m: float
    segments: tuple[HighwaySegment, ...] = ()


@dataclass(slots=True, frozen=True)
class HighwayMatchResult:
    detected_highways: list[DetectedHighway]
    primary_highway: DetectedHighway | None
    route_coverage: float
    matching_quality: MatchingQuality


@dataclass(slots=True, frozen=True)
class DirectionAssessment:
    direction: Direction
    route_direction: Direction
    is_accessible: bool
    confidence: float
    reasons: tuple[str, ...]
    strategy: Literal["interchange", "heuristic"]


@dataclass(slots=True, frozen=True)
class FilterResult:
    candidate: RestAreaCandidate
    distance_from_route_start_km: float
    distance_from_route_m: float
    estimated_travel_time_minutes: float
    route_position_ratio: float
    confidence: float
    direction: Direction
    reasons: tuple[str, ...] = ()


@dataclass(slots=True)
class FilterStages:
    initial: int = 0
    after_highway_match: int = 0
    after_distance_filter: int = 0
    after_direction_filter: int = 0
    after_interval_filter: int = 0
    final: int = 0


@dataclass(slots=True)
class FilterDiagnostics:
    filter_stages: FilterStages
    detected_highways: list[DetectedHighway]
    matching_quality: MatchingQuality
    degraded: bool = False
    excluded: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class PipelineResult:
    results: list[FilterResult]
    diagnostics: FilterDiagnostics


@dataclass(slots=True, frozen=True)
class RouteData:
    points: list[RoutePoint]
    distance_km: float
    duration_seconds: float
    highway_hints: tuple[str, ...] = ()
