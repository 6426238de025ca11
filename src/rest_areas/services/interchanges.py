from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any

from django.db import DatabaseError, close_old_connections

from rest_areas.exceptions import DataUnavailableError
from rest_areas.models import HighwayInterchange
from rest_areas.services.geo import (
    bounding_box,
    is_within_korea,
    min_distance_to_polyline_km,
    nearest_vertex_index,
)
from rest_areas.services.highway_names import normalize_highway_code, normalize_highway_name
from rest_areas.services.types import (
    Direction,
    Interchange,
    NearbyInterchange,
    RawInterchange,
    RoutePoint,
)

logger = logging.getLogger(__name__)

InterchangeSource = Callable[[], Sequence[Interchange]]


@dataclass(slots=True, frozen=True)
class CatalogSnapshot:
    interchanges: tuple[Interchange, ...]
    partitions: dict[tuple[str, Direction], tuple[Interchange, ...]]
    codes_by_name: dict[str, str]
    loaded_at: float

    @classmethod
    def build(cls, interchanges: Iterable[Interchange], loaded_at: float) -> CatalogSnapshot:
        entries = tuple(interchanges)
        grouped: dict[tuple[str, Direction], list[Interchange]] = defaultdict(list)
        codes_by_name: dict[str, str] = {}
        for interchange in entries:
            code = normalize_highway_code(interchange.highway_code)
            grouped[(code, interchange.direction)].append(interchange)
            codes_by_name.setdefault(normalize_highway_name(interchange.highway_name), code)
        partitions = {
            key: tuple(sorted(items, key=lambda item: item.weight)) for key, items in grouped.items()
        }
        return cls(
            interchanges=entries,
            partitions=partitions,
            codes_by_name=codes_by_name,
            loaded_at=loaded_at,
        )

    def highway_code_for(self, highway_code: str | None, highway_name: str | None) -> str | None:
        code = normalize_highway_code(highway_code)
        if code and any(key[0] == code for key in self.partitions):
            return code
        return self.codes_by_name.get(normalize_highway_name(highway_name))

    @property
    def is_empty(self) -> bool:
        return not self.interchanges

    def select(
        self, highway_code: str | None = None, direction: Direction | None = None
    ) -> tuple[Interchange, ...]:
        if highway_code is None and direction is None:
            return self.interchanges

        code = normalize_highway_code(highway_code) if highway_code is not None else None
        if code is not None and direction is not None:
            return self.partitions.get((code, direction), ())

        return tuple(
            interchange
            for (partition_code, partition_direction), items in self.partitions.items()
            if (code is None or partition_code == code)
            and (direction is None or partition_direction == direction)
            for interchange in items
        )

    def find_nearby(
        self,
        route: Sequence[RoutePoint],
        max_distance_m: float,
        *,
        highway_code: str | None = None,
        direction: Direction | None = None,
    ) -> list[NearbyInterchange]:
        if not route or self.is_empty:
            return []

        max_distance_km = max_distance_m / 1000.0
        min_lat, max_lat, min_lng, max_lng = bounding_box(route, margin_km=max_distance_km)

        # UP and DOWN entries share coordinates, measure each location once.
        measured: dict[tuple[float, float], tuple[float, int] | None] = {}
        nearby: list[NearbyInterchange] = []
        for interchange in self.select(highway_code, direction):
            if not (min_lat <= interchange.lat <= max_lat and min_lng <= interchange.lng <= max_lng):
                continue

            key = (interchange.lat, interchange.lng)
            if key not in measured:
                distance_km = min_distance_to_polyline_km(interchange.point, route)
                measured[key] = (
                    (distance_km, nearest_vertex_index(interchange.point, route))
                    if distance_km <= max_distance_km
                    else None
                )

            hit = measured[key]
            if hit is None:
                continue
            nearby.append(
                NearbyInterchange(interchange=interchange, distance_m=hit[0] * 1000.0, route_index=hit[1])
            )

        nearby.sort(key=lambda item: (item.route_index, item.distance_m))
        return nearby


EMPTY_SNAPSHOT = CatalogSnapshot.build((), loaded_at=0.0)


class InterchangeCatalog:
    """TTL-cached, copy-on-refresh view over the interchange source.

    Readers always receive an immutable snapshot. When the cached snapshot has
    expired, the stale one keeps being served while a single refresh runs. A
    failing source is logged and never propagates out of ``load``.

    With ``fetch_timeout_seconds`` set, fetches run on a background worker and
    callers wait at most that long for the first snapshot.
    """

    def __init__(
        self,
        source: InterchangeSource | None = None,
        ttl_seconds: float = 1800.0,
        fetch_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source or database_interchange_source
        self.ttl_seconds = ttl_seconds
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self._clock = clock
        self._state: tuple[CatalogSnapshot, float] | None = None
        self._lock = threading.Lock()
        self._pending: Future[CatalogSnapshot] | None = None
        self._executor: ThreadPoolExecutor | None = None

    def load(self) -> CatalogSnapshot:
        state = self._state
        if state is not None and self._clock() < state[1]:
            return state[0]

        stale = state[0] if state is not None else None
        if self.fetch_timeout_seconds:
            return self._load_in_background(stale)
        return self._load_inline(stale)

    def refresh(self) -> CatalogSnapshot:
        with self._lock:
            return self._fetch_and_publish()

    def invalidate(self) -> None:
        self._state = None

    def wait_for_refresh(self, timeout: float | None = None) -> CatalogSnapshot | None:
        pending = self._pending
        if pending is None:
            return None
        return pending.result(timeout=timeout)

    def find_nearby(
        self,
        route: Sequence[RoutePoint],
        max_distance_m: float,
        *,
        highway_code: str | None = None,
        direction: Direction | None = None,
    ) -> list[NearbyInterchange]:
        return self.load().find_nearby(
            route, max_distance_m, highway_code=highway_code, direction=direction
        )

    def status(self) -> dict[str, Any]:
        state = self._state
        if state is None:
            return {"loaded": False, "entries": 0, "age_seconds": None}
        snapshot, _ = state
        return {
            "loaded": True,
            "entries": len(snapshot.interchanges),
            "age_seconds": round(self._clock() - snapshot.loaded_at, 1),
        }

    def _load_inline(self, stale: CatalogSnapshot | None) -> CatalogSnapshot:
        if not self._lock.acquire(blocking=stale is None):
            return stale  # another reader is refreshing

        try:
            state = self._state
            if state is not None and self._clock() < state[1]:
                return state[0]
            try:
                return self._fetch_and_publish()
            except DataUnavailableError as exc:
                logger.warning("Interchange catalog unavailable: %s", exc)
                return stale or EMPTY_SNAPSHOT
        finally:
            self._lock.release()

    def _load_in_background(self, stale: CatalogSnapshot | None) -> CatalogSnapshot:
        pending = self._schedule_refresh()
        if stale is not None:
            return stale

        try:
            return pending.result(timeout=self.fetch_timeout_seconds)
        except FutureTimeoutError:
            logger.warning(
                "Interchange catalog fetch exceeded %.1fs, continuing without it",
                self.fetch_timeout_seconds,
            )
        except DataUnavailableError:
            pass  # logged by the worker
        return EMPTY_SNAPSHOT

    def _schedule_refresh(self) -> Future[CatalogSnapshot]:
        with self._lock:
            if self._pending is None or self._pending.done():
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=1, thread_name_prefix="interchange-catalog"
                    )
                self._pending = self._executor.submit(self._refresh_in_worker)
            return self._pending

    def _refresh_in_worker(self) -> CatalogSnapshot:
        try:
            return self._fetch_and_publish()
        except DataUnavailableError as exc:
            logger.warning("Interchange catalog unavailable: %s", exc)
            raise
        finally:
            close_old_connections()

    def _fetch_and_publish(self) -> CatalogSnapshot:
        try:
            interchanges = self.source()
        except DatabaseError as exc:
            raise DataUnavailableError("Interchange catalog query failed") from exc

        if not interchanges:
            raise DataUnavailableError("Interchange catalog is empty")

        snapshot = CatalogSnapshot.build(interchanges, loaded_at=self._clock())
        self._state = (snapshot, snapshot.loaded_at + self.ttl_seconds)
        logger.info("Loaded %d interchange entries", len(snapshot.interchanges))
        return snapshot


def build_directional_interchanges(records: Iterable[RawInterchange]) -> list[Interchange]:
    """Expand physical interchanges into UP/DOWN entries with carriageway weights.

    Per highway, interchanges are ordered by distance from the highway start.
    DOWN weights grow along that order (1..n) and UP weights shrink (n..1), so
    travelling in either direction always moves toward a lower weight.
    """
    by_highway: dict[str, dict[str, RawInterchange]] = defaultdict(dict)
    for record in records:
        if not is_within_korea(record.lat, record.lng):
            logger.debug("Skipping interchange %s with invalid coordinates", record.unit_code)
            continue
        # "001" and "0010" name the same highway.
        by_highway[normalize_highway_code(record.highway_code)].setdefault(record.unit_code, record)

    interchanges: list[Interchange] = []
    for highway_code, items in by_highway.items():
        ordered = sorted(items.values(), key=lambda item: (item.distance_from_start_km, item.unit_code))
        count = len(ordered)
        for index, record in enumerate(ordered):
            prev_code = ordered[index - 1].unit_code if index > 0 else None
            next_code = ordered[index + 1].unit_code if index < count - 1 else None
            for direction, weight in ((Direction.DOWN, index + 1), (Direction.UP, count - index)):
                interchanges.append(
                    Interchange(
                        id=f"{record.unit_code}_{direction.value}",
                        unit_code=record.unit_code,
                        name=record.name,
                        highway_name=normalize_highway_name(record.highway_name),
                        highway_code=highway_code,
                        direction=direction,
                        weight=weight,
                        distance_from_start_km=record.distance_from_start_km,
                        lat=record.lat,
                        lng=record.lng,
                        prev_unit_code=prev_code,
                        next_unit_code=next_code,
                    )
                )
    return interchanges


def database_interchange_source() -> list[Interchange]:
    rows = HighwayInterchange.objects.only(
        "entry_id",
        "unit_code",
        "name",
        "highway_name",
        "highway_code",
        "direction",
        "weight",
        "distance_from_start_km",
        "latitude",
        "longitude",
        "prev_unit_code",
        "next_unit_code",
    )
    return [
        Interchange(
            id=row.entry_id,
            unit_code=row.unit_code,
            name=row.name,
            highway_name=row.highway_name,
            highway_code=row.highway_code,
            direction=Direction(row.direction),
            weight=row.weight,
            distance_from_start_km=row.distance_from_start_km,
            lat=row.latitude,
            lng=row.longitude,
            prev_unit_code=row.prev_unit_code or None,
            next_unit_code=row.next_unit_code or None,
        )
        for row in rows.iterator(chunk_size=1000)
    ]
