from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from rest_areas.services.types import RoutePoint

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = EARTH_RADIUS_KM * math.pi / 180.0
MIN_HEADING_SPAN_KM = 0.01
BOUNDING_BOX_SLACK = 1.01
LOCAL_HEADING_SPAN_KM = 2.0

# Bounding box used for operator-published interchange coordinates.
KOREA_LAT_RANGE = (33.0, 39.0)
KOREA_LNG_RANGE = (125.0, 132.0)


def clamp(value: float, lower: float, upper: float) -> float:
    if math.isnan(value):
        return lower
    return max(lower, min(upper, value))


def is_valid_coordinate(lat: float | None, lng: float | None) -> bool:
    if lat is None or lng is None:
        return False
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    if lat == 0.0 and lng == 0.0:
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def is_within_korea(lat: float, lng: float) -> bool:
    return (
        KOREA_LAT_RANGE[0] <= lat <= KOREA_LAT_RANGE[1]
        and KOREA_LNG_RANGE[0] <= lng <= KOREA_LNG_RANGE[1]
    )


def haversine_km(a: RoutePoint, b: RoutePoint) -> float:
    lat1_rad = math.radians(a.lat)
    lat2_rad = math.radians(b.lat)
    dlat = lat2_rad - lat1_rad
    dlng = math.radians(b.lng - a.lng)

    h = math.sin(dlat / 2.0) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2.0) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def bearing_degrees(a: RoutePoint, b: RoutePoint) -> float:
    lat1_rad = math.radians(a.lat)
    lat2_rad = math.radians(b.lat)
    dlng = math.radians(b.lng - a.lng)

    y = math.sin(dlng) * math.cos(lat2_rad)
    x = math.cos(lat1_rad) * math.sin(lat2_rad) - math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(dlng)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def angle_between(first_deg: float, second_deg: float) -> float:
    """Smallest angle between two headings, in [0, 180]."""
    diff = abs(first_deg - second_deg) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


def to_local_xy(point: RoutePoint, ref_lat: float) -> tuple[float, float]:
    km_per_degree_lng = KM_PER_DEGREE_LAT * math.cos(math.radians(ref_lat))
    return point.lng * km_per_degree_lng, point.lat * KM_PER_DEGREE_LAT


def project_onto_segment(p: RoutePoint, s: RoutePoint, e: RoutePoint) -> tuple[float, float]:
    """Return (distance_km, t) where t in [0, 1] locates the closest point on s-e."""
    if s.lat == e.lat and s.lng == e.lng:
        return haversine_km(p, s), 0.0

    ref_lat = (s.lat + e.lat) / 2.0
    px, py = to_local_xy(p, ref_lat)
    sx, sy = to_local_xy(s, ref_lat)
    ex, ey = to_local_xy(e, ref_lat)

    dx = ex - sx
    dy = ey - sy
    length_sq = dx * dx + dy * dy
    if length_sq <= 0.0:
        return haversine_km(p, s), 0.0

    t = clamp(((px - sx) * dx + (py - sy) * dy) / length_sq, 0.0, 1.0)
    closest = RoutePoint(s.lat + t * (e.lat - s.lat), s.lng + t * (e.lng - s.lng))
    return haversine_km(p, closest), t


def point_to_segment_km(p: RoutePoint, s: RoutePoint, e: RoutePoint) -> float:
    return project_onto_segment(p, s, e)[0]


def min_distance_to_polyline_km(p: RoutePoint, polyline: Sequence[RoutePoint]) -> float:
    if not polyline:
        return math.inf
    if len(polyline) == 1:
        return haversine_km(p, polyline[0])

    best = math.inf
    for index in range(len(polyline) - 1):
        distance = point_to_segment_km(p, polyline[index], polyline[index + 1])
        if distance < best:
            best = distance
    return best


def nearest_vertex_index(p: RoutePoint, polyline: Sequence[RoutePoint]) -> int:
    if not polyline:
        return -1

    best_index = 0
    best_distance = math.inf
    for index, vertex in enumerate(polyline):
        distance = haversine_km(p, vertex)
        if distance < best_distance:
            best_distance = distance
            best_index = index
    return best_index


def cumulative_distances_km(polyline: Sequence[RoutePoint]) -> list[float]:
    if not polyline:
        return []

    cumulative = [0.0]
    for index in range(1, len(polyline)):
        cumulative.append(cumulative[-1] + haversine_km(polyline[index - 1], polyline[index]))
    return cumulative


def bounding_box(
    polyline: Sequence[RoutePoint], margin_km: float = 0.0
) -> tuple[float, float, float, float]:
    """Return (min_lat, max_lat, min_lng, max_lng) padded by ``margin_km``."""
    lats = [point.lat for point in polyline]
    lngs = [point.lng for point in polyline]
    lat_margin = margin_km / KM_PER_DEGREE_LAT
    # A degree of longitude is shortest at the box edge farthest from the equator.
    widest_lat = min(90.0, max(abs(min(lats)), abs(max(lats))) + lat_margin)
    lng_margin = margin_km / max(KM_PER_DEGREE_LAT * math.cos(math.radians(widest_lat)), 1e-6)
    lat_margin *= BOUNDING_BOX_SLACK
    lng_margin *= BOUNDING_BOX_SLACK
    return min(lats) - lat_margin, max(lats) + lat_margin, min(lngs) - lng_margin, max(lngs) + lng_margin


def closest_point_on_polyline(
    p: RoutePoint, polyline: Sequence[RoutePoint]
) -> tuple[RoutePoint, int, float] | None:
    """Return (closest point, segment index, distance_km) or None for an empty polyline."""
    if not polyline:
        return None
    if len(polyline) == 1:
        return polyline[0], 0, haversine_km(p, polyline[0])

    best: tuple[RoutePoint, int, float] | None = None
    for index in range(len(polyline) - 1):
        s, e = polyline[index], polyline[index + 1]
        distance, t = project_onto_segment(p, s, e)
        if best is None or distance < best[2]:
            closest = RoutePoint(s.lat + t * (e.lat - s.lat), s.lng + t * (e.lng - s.lng))
            best = (closest, index, distance)
    return best


@dataclass(slots=True, frozen=True)
class RouteGeometry:
    points: tuple[RoutePoint, ...]
    cumulative_km: tuple[float, ...]

    @classmethod
    def from_points(cls, points: Sequence[RoutePoint]) -> RouteGeometry:
        return cls(points=tuple(points), cumulative_km=tuple(cumulative_distances_km(points)))

    @property
    def total_km(self) -> float:
        return self.cumulative_km[-1] if self.cumulative_km else 0.0

    @property
    def coarse_heading(self) -> float | None:
        if len(self.points) < 2:
            return None
        start, end = self.points[0], self.points[-1]
        if haversine_km(start, end) < MIN_HEADING_SPAN_KM:
            return None
        return bearing_degrees(start, end)

    def local_heading(self, segment_index: int, span_km: float = LOCAL_HEADING_SPAN_KM) -> float | None:
        if len(self.points) < 2:
            return None

        lo = max(0, min(segment_index, len(self.points) - 2))
        hi = lo + 1
        while self.cumulative_km[hi] - self.cumulative_km[lo] < span_km:
            if lo == 0 and hi == len(self.points) - 1:
                break
            if lo > 0:
                lo -= 1
            if hi < len(self.points) - 1:
                hi += 1

        if haversine_km(self.points[lo], self.points[hi]) < MIN_HEADING_SPAN_KM:
            return None
        return bearing_degrees(self.points[lo], self.points[hi])
