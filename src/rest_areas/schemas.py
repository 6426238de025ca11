from __future__ import annotations

from typing import Any, Literal

from django.conf import settings
from pydantic import BaseModel, ConfigDict, Field, model_validator


class FilterOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_distance_from_route_m: float = Field(default=1000.0, gt=0.0, le=50000.0)
    max_distance_from_ic_m: float = Field(default=2000.0, gt=0.0, le=20000.0)
    min_highway_coverage: float = Field(default=0.2, ge=0.0, le=1.0)
    highway_confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    enable_direction_filter: bool = True
    strict_mode: bool = False
    confidence_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    include_unknown: bool = True
    include_both: bool = True
    min_interval_km: float = Field(default=8.0, ge=0.0, le=500.0)
    max_results: int = Field(default=20, ge=1, le=200)
    assumed_speed_kmh: float = Field(default=80.0, gt=0.0, le=200.0)
    direction_baseline: float = Field(default=0.6, ge=0.0, le=1.0)
    direction_ic_radius_m: float = Field(default=1000.0, gt=0.0, le=20000.0)

    @classmethod
    def from_settings(cls, **overrides: Any) -> FilterOptions:
        return cls.model_validate({**settings.REST_AREA_FILTER_DEFAULTS, **overrides})


class Coordinate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class RestAreaSearchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    route: list[Coordinate] | None = Field(default=None, min_length=1, max_length=20000)
    origin: Coordinate | None = None
    destination: Coordinate | None = None
    highway_hints: list[str] = Field(default_factory=list, max_length=50)
    options: FilterOptions | None = None
    include_facility_details: bool = False

    @model_validator(mode="after")
    def _check_route_source(self) -> RestAreaSearchRequest:
        if self.route is None and (self.origin is None or self.destination is None):
            raise ValueError("Provide either a route polyline or both origin and destination")
        return self


class RestAreaResponse(BaseModel):
    id: str
    name: str
    lat: float
    lng: float
    highway_name: str | None
    highway_code: str | None
    direction_label: str | None
    direction: Literal["UP", "DOWN", "BOTH", "UNKNOWN"]
    facilities: list[str]
    distance_from_route_start_km: float
    distance_from_route_m: float
    estimated_travel_time_minutes: float
    route_position_ratio: float
    confidence: float
    reasons: list[str]


class FilterStagesResponse(BaseModel):
    initial: int
    after_highway_match: int
    after_distance_filter: int
    after_direction_filter: int
    after_interval_filter: int
    final: int


class DetectedHighwayResponse(BaseModel):
    name: str
    code: str
    confidence: float
    coverage: float


class DiagnosticsResponse(BaseModel):
    filter_stages: FilterStagesResponse
    detected_highways: list[DetectedHighwayResponse]
    matching_quality: Literal["high", "medium", "low"]
    degraded: bool
    excluded: dict[str, str]


class RouteSummaryResponse(BaseModel):
    points: int
    distance_km: float
    highway_hints: list[str]


class RestAreaSearchResponse(BaseModel):
    rest_areas: list[RestAreaResponse]
    diagnostics: DiagnosticsResponse
    route: RouteSummaryResponse
    options: dict[str, Any]
