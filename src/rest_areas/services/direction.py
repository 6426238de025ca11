from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from rest_areas.schemas import FilterOptions
from rest_areas.services.geo import (
    RouteGeometry,
    angle_between,
    bearing_degrees,
    clamp,
    closest_point_on_polyline,
    haversine_km,
)
from rest_areas.services.heuristic_tables import (
    DESTINATION_CITIES,
    DIRECTION_KEYWORDS,
    WEAK_BOTH_KEYWORDS,
)
from rest_areas.services.highway_names import highway_axis
from rest_areas.services.interchanges import EMPTY_SNAPSHOT, CatalogSnapshot, InterchangeCatalog
from rest_areas.services.types import (
    Direction,
    DirectionAssessment,
    Interchange,
    RestAreaCandidate,
    RoutePoint,
)

logger = logging.getLogger(__name__)

STRICT_MODE_CONFIDENCE = 0.8
MIN_DESTINATION_DISTANCE_KM = 5.0
MAX_DESTINATION_IC_DISTANCE_KM = 30.0
MIN_SIDE_OFFSET_KM = 0.05

CONFIDENCE_MATCH = 1.0
CONFIDENCE_BOTH = 0.9
CONFIDENCE_MISMATCH = 0.1

_PARENTHESIZED = re.compile(r"\(([^()]+)\)")
_WHITESPACE = re.compile(r"\s+")
_BOTH_TOKEN = re.compile(r"(?<!양)양방향")


@dataclass(slots=True, frozen=True)
class SignalOutcome:
    delta: float = 0.0
    reason: str | None = None


NO_SIGNAL = SignalOutcome()


@dataclass(slots=True, frozen=True)
class SignalContext:
    candidate: RestAreaCandidate
    route_direction: Direction
    candidate_direction: Direction
    destination_hint: str | None
    travel_heading: float | None
    local_heading: float | None
    anchor: RoutePoint | None


Signal = Callable[[SignalContext], SignalOutcome]


def normalize_direction_label(label: str | None) -> Direction:
    # "양양방향" names a destination, so match on the text before "방향".
    text = _WHITESPACE.sub("", label or "").removesuffix("방향")
    if not text:
        return Direction.UNKNOWN
    for direction, keywords in DIRECTION_KEYWORDS:
        if text in keywords:
            return direction
    if text in DESTINATION_CITIES:
        return Direction.UNKNOWN  # a destination such as "남원", read as a hint instead
    for direction, keywords in DIRECTION_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return direction
    if text in WEAK_BOTH_KEYWORDS:
        return Direction.BOTH
    return Direction.UNKNOWN


def direction_from_name(name: str) -> Direction:
    text = _WHITESPACE.sub("", name)
    if _BOTH_TOKEN.search(text) or "상하행" in text:
        return Direction.BOTH
    if "상행" in text:
        return Direction.UP
    if "하행" in text:
        return Direction.DOWN
    return Direction.UNKNOWN


def destination_hint(candidate: RestAreaCandidate) -> str | None:
    for text in reversed(_PARENTHESIZED.findall(candidate.name)):
        hint = _WHITESPACE.sub("", text).removesuffix("방향")
        if hint and direction_from_name(hint) == Direction.UNKNOWN:
            return hint

    label = _WHITESPACE.sub("", candidate.direction_label or "")
    if label.endswith("방향") and normalize_direction_label(label) == Direction.UNKNOWN:
        return label.removesuffix("방향") or None
    return None


def lookup_destination(hint: str) -> tuple[str, RoutePoint] | None:
    if hint in DESTINATION_CITIES:
        return hint, RoutePoint(*DESTINATION_CITIES[hint])
    for city in sorted(DESTINATION_CITIES, key=len, reverse=True):
        if city in hint:
            return city, RoutePoint(*DESTINATION_CITIES[city])
    return None


def weight_direction(start_weight: int, end_weight: int) -> Direction:
    if start_weight > end_weight:
        return Direction.DOWN
    if start_weight < end_weight:
        return Direction.UP
    return Direction.UNKNOWN


def is_accessible(
    candidate_direction: Direction,
    route_direction: Direction,
    *,
    strict_mode: bool,
    include_unknown: bool,
) -> bool:
    return (
        candidate_direction == Direction.BOTH
        or candidate_direction == route_direction
        or (route_direction == Direction.UNKNOWN and include_unknown)
        or (not strict_mode and candidate_direction == Direction.UNKNOWN)
    )


def route_direction_on_highway(
    route: Sequence[RoutePoint],
    snapshot: CatalogSnapshot,
    highway_code: str,
    radius_m: float,
) -> Direction:
    nearby = snapshot.find_nearby(route, radius_m, highway_code=highway_code, direction=Direction.UP)
    if len({item.interchange.unit_code for item in nearby}) < 2:
        return Direction.UNKNOWN

    start, end = nearby[0], nearby[-1]
    if start.route_index == end.route_index:
        return Direction.UNKNOWN
    return weight_direction(start.interchange.weight, end.interchange.weight)


def destination_interchange(entries: Sequence[Interchange], hint: str) -> Interchange | None:
    for interchange in entries:
        if hint in interchange.name:
            return interchange

    destination = lookup_destination(hint)
    if destination is None:
        return None
    _, target = destination
    nearest = min(entries, key=lambda item: haversine_km(item.point, target))
    if haversine_km(nearest.point, target) > MAX_DESTINATION_IC_DISTANCE_KM:
        return None
    return nearest


def direction_from_interchanges(
    candidate: RestAreaCandidate,
    snapshot: CatalogSnapshot,
    highway_code: str,
    hint: str | None,
) -> Direction:
    entries = snapshot.select(highway_code, Direction.UP)
    if len(entries) < 2 or not hint:
        return Direction.UNKNOWN

    nearest = min(entries, key=lambda item: haversine_km(item.point, candidate.point))
    destination = destination_interchange(entries, hint)
    if destination is None or destination.unit_code == nearest.unit_code:
        return Direction.UNKNOWN
    return weight_direction(nearest.weight, destination.weight)


def name_hint_signal(context: SignalContext) -> SignalOutcome:
    if not context.destination_hint or context.travel_heading is None:
        return NO_SIGNAL

    destination = lookup_destination(context.destination_hint)
    if destination is None:
        return NO_SIGNAL
    city, target = destination
    origin = context.candidate.point
    if haversine_km(origin, target) < MIN_DESTINATION_DISTANCE_KM:
        return NO_SIGNAL

    diff = angle_between(bearing_degrees(origin, target), context.travel_heading)
    if diff <= 60:
        return SignalOutcome(0.2, f"destination {city} lies ahead of travel")
    if diff >= 120:
        return SignalOutcome(-0.2, f"destination {city} opposes travel")
    return NO_SIGNAL


def explicit_field_signal(context: SignalContext) -> SignalOutcome:
    direction = context.candidate_direction
    if direction not in (Direction.UP, Direction.DOWN):
        return NO_SIGNAL

    # The route direction is unknown here. 상행 (UP) conventionally runs toward Seoul.
    if context.travel_heading is None:
        return NO_SIGNAL
    seoul = RoutePoint(*DESTINATION_CITIES["서울"])
    origin = context.candidate.point
    if haversine_km(origin, seoul) < MIN_DESTINATION_DISTANCE_KM:
        return NO_SIGNAL

    heading_to_seoul = angle_between(bearing_degrees(origin, seoul), context.travel_heading) <= 90
    if heading_to_seoul == (direction == Direction.UP):
        return SignalOutcome(0.15, f"explicit {direction.value} agrees with travel relative to 서울")
    return SignalOutcome(-0.2, f"explicit {direction.value} disagrees with travel relative to 서울")


def highway_family_signal(context: SignalContext) -> SignalOutcome:
    axis = highway_axis(context.candidate.highway_name)
    if axis is None or context.local_heading is None:
        return NO_SIGNAL

    deviation = angle_between(context.local_heading, 0.0 if axis == "NS" else 90.0)
    deviation = min(deviation, 180.0 - deviation)
    if deviation <= 30:
        return SignalOutcome(0.05, f"route follows the {axis} axis of {context.candidate.highway_name}")
    if deviation >= 60:
        return SignalOutcome(-0.05, f"route crosses the {axis} axis of {context.candidate.highway_name}")
    return NO_SIGNAL


def geometric_bearing_signal(context: SignalContext) -> SignalOutcome:
    if context.anchor is None or context.local_heading is None:
        return NO_SIGNAL

    origin = context.candidate.point
    if haversine_km(context.anchor, origin) < MIN_SIDE_OFFSET_KM:
        return NO_SIGNAL

    # Traffic keeps right, so facilities serving this carriageway sit on the right.
    relative = (bearing_degrees(context.anchor, origin) - context.local_heading) % 360.0
    if 20.0 <= relative <= 160.0:
        return SignalOutcome(0.05, "sits on the right-hand side of travel")
    if 200.0 <= relative <= 340.0:
        return SignalOutcome(-0.05, "sits on the left-hand side of travel")
    return NO_SIGNAL


DEFAULT_SIGNALS: tuple[tuple[str, Signal], ...] = (
    ("name_hint", name_hint_signal),
    ("explicit_field", explicit_field_signal),
    ("highway_family", highway_family_signal),
    ("geometric_bearing", geometric_bearing_signal),
)

DEFAULT_SIGNAL_WEIGHTS: dict[str, float] = {name: 1.0 for name, _ in DEFAULT_SIGNALS}


class DirectionResolver:
    """Decide per candidate whether it can be reached from the route's carriageway.

    Interchange weights are authoritative when both the route direction and the
    candidate direction can be resolved from them. Otherwise the weighted
    heuristic signals adjust a baseline confidence.
    """

    def __init__(
        self,
        catalog: InterchangeCatalog | None = None,
        signals: Sequence[tuple[str, Signal]] = DEFAULT_SIGNALS,
        signal_weights: Mapping[str, float] | None = None,
    ) -> None:
        self.catalog = catalog
        self.signals = tuple(signals)
        self.signal_weights = {**DEFAULT_SIGNAL_WEIGHTS, **(signal_weights or {})}

    def resolve(
        self,
        route: RouteGeometry,
        candidates: Sequence[RestAreaCandidate],
        options: FilterOptions,
        snapshot: CatalogSnapshot | None = None,
    ) -> dict[str, DirectionAssessment]:
        if snapshot is None:
            snapshot = self.catalog.load() if self.catalog is not None else EMPTY_SNAPSHOT

        route_directions: dict[str, Direction] = {}
        return {
            candidate.id: self.assess(route, candidate, options, snapshot, route_directions)
            for candidate in candidates
        }

    def assess(
        self,
        route: RouteGeometry,
        candidate: RestAreaCandidate,
        options: FilterOptions,
        snapshot: CatalogSnapshot,
        route_directions: dict[str, Direction] | None = None,
    ) -> DirectionAssessment:
        reasons: list[str] = []
        highway_code = snapshot.highway_code_for(candidate.highway_code, candidate.highway_name)

        route_direction = Direction.UNKNOWN
        if highway_code is not None:
            if route_directions is not None and highway_code in route_directions:
                route_direction = route_directions[highway_code]
            else:
                route_direction = route_direction_on_highway(
                    route.points, snapshot, highway_code, options.direction_ic_radius_m
                )
                if route_directions is not None:
                    route_directions[highway_code] = route_direction
        if route_direction != Direction.UNKNOWN:
            reasons.append(f"route travels {route_direction.value} on highway {highway_code}")

        hint = destination_hint(candidate)
        candidate_direction = self._candidate_direction(candidate, snapshot, highway_code, hint, reasons)

        if candidate_direction == Direction.BOTH:
            reasons.append("serves both directions")
            return DirectionAssessment(
                direction=Direction.BOTH,
                route_direction=route_direction,
                is_accessible=True,
                confidence=CONFIDENCE_BOTH,
                reasons=tuple(reasons),
                strategy="interchange",
            )

        if route_direction != Direction.UNKNOWN and candidate_direction != Direction.UNKNOWN:
            accessible = is_accessible(
                candidate_direction,
                route_direction,
                strict_mode=options.strict_mode,
                include_unknown=options.include_unknown,
            )
            reasons.append("same carriageway as route" if accessible else "opposite carriageway")
            return DirectionAssessment(
                direction=candidate_direction,
                route_direction=route_direction,
                is_accessible=accessible,
                confidence=CONFIDENCE_MATCH if accessible else CONFIDENCE_MISMATCH,
                reasons=tuple(reasons),
                strategy="interchange",
            )

        return self._assess_heuristically(
            route, candidate, candidate_direction, route_direction, hint, options, reasons
        )

    @staticmethod
    def _candidate_direction(
        candidate: RestAreaCandidate,
        snapshot: CatalogSnapshot,
        highway_code: str | None,
        hint: str | None,
        reasons: list[str],
    ) -> Direction:
        if candidate.direction_label:
            direction = normalize_direction_label(candidate.direction_label)
            if direction != Direction.UNKNOWN:
                reasons.append(f"direction label '{candidate.direction_label}' reads as {direction.value}")
                return direction

        direction = direction_from_name(candidate.name)
        if direction != Direction.UNKNOWN:
            reasons.append(f"name marks {direction.value}")
            return direction

        if highway_code is not None:
            direction = direction_from_interchanges(candidate, snapshot, highway_code, hint)
            if direction != Direction.UNKNOWN:
                reasons.append(f"interchange weights toward {hint} read as {direction.value}")
        return direction

    def _assess_heuristically(
        self,
        route: RouteGeometry,
        candidate: RestAreaCandidate,
        candidate_direction: Direction,
        route_direction: Direction,
        hint: str | None,
        options: FilterOptions,
        reasons: list[str],
    ) -> DirectionAssessment:
        closest = closest_point_on_polyline(candidate.point, route.points)
        local_heading = route.local_heading(closest[1]) if closest is not None else None
        coarse_heading = route.coarse_heading
        context = SignalContext(
            candidate=candidate,
            route_direction=route_direction,
            candidate_direction=candidate_direction,
            destination_hint=hint,
            travel_heading=coarse_heading if coarse_heading is not None else local_heading,
            local_heading=local_heading if local_heading is not None else coarse_heading,
            anchor=closest[0] if closest is not None else None,
        )

        confidence = options.direction_baseline
        fired = False
        for name, signal in self.signals:
            outcome = signal(context)
            if outcome.delta == 0.0:
                continue
            fired = True
            confidence += self.signal_weights.get(name, 1.0) * outcome.delta
            if outcome.reason:
                reasons.append(outcome.reason)

        confidence = clamp(confidence, 0.0, 1.0)
        required = STRICT_MODE_CONFIDENCE if options.strict_mode else options.confidence_threshold
        accessible = confidence >= required
        if not fired:
            reasons.append("no directional evidence")
            if route_direction == Direction.UNKNOWN and not options.include_unknown:
                accessible = False

        logger.debug(
            "Heuristic direction for %s: confidence=%.2f accessible=%s",
            candidate.id,
            confidence,
            accessible,
        )
        return DirectionAssessment(
            direction=candidate_direction,
            route_direction=route_direction,
            is_accessible=accessible,
            confidence=confidence,
            reasons=tuple(reasons),
            strategy="heuristic",
        )
