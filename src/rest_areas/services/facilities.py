from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import httpx
from django.conf import settings
from django.core.cache import cache

from rest_areas.exceptions import ExternalServiceError
from rest_areas.services.types import FilterResult

logger = logging.getLogger(__name__)

CLOSED_STATUS_MARKERS = ("중단", "휴업", "폐쇄", "closed")


class FacilityClient:
    """Looks up the current facility list of a single rest area."""

    def __init__(self) -> None:
        self.base_url = settings.FACILITY_API_BASE_URL.rstrip("/")
        self.api_key = settings.FACILITY_API_KEY
        self.timeout = settings.FACILITY_API_TIMEOUT_SECONDS
        self.retry_count = settings.FACILITY_API_RETRY_COUNT

    def facilities_for(self, rest_area_id: str) -> list[str]:
        cache_key = f"facilities:{rest_area_id}"
        cached = cache.get(cache_key)
        if cached is not None:
            return list(cached)

        endpoint = f"{self.base_url}/business/conveniServiceArea"
        params = {"key": self.api_key, "type": "json", "stdRestCd": rest_area_id}

        for attempt in range(self.retry_count + 1):
            try:
                response = httpx.get(endpoint, params=params, timeout=self.timeout)
                response.raise_for_status()
                facilities = self._parse_response(response.json())
                cache.set(cache_key, facilities, timeout=settings.FACILITY_CACHE_TTL_SECONDS)
                return facilities
            except (httpx.HTTPError, ValueError) as exc:
                if attempt >= self.retry_count:
                    raise ExternalServiceError(f"Facility lookup failed for {rest_area_id}") from exc
                time.sleep(0.3 * (attempt + 1))

        raise ExternalServiceError(f"Facility lookup failed for {rest_area_id}")

    @staticmethod
    def _parse_response(payload: Any) -> list[str]:
        items = payload.get("list") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            return []

        facilities: list[str] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            status = str(item.get("operationStatus") or item.get("status") or "")
            if any(marker in status.lower() for marker in CLOSED_STATUS_MARKERS):
                continue
            name = (
                item.get("facilityName")
                or item.get("convenienceName")
                or item.get("psName")
                or item.get("facilityType")
                or item.get("convenienceType")
            )
            if name and str(name).strip() not in facilities:
                facilities.append(str(name).strip())
        return facilities


def enrich_facilities(
    results: Sequence[FilterResult],
    client: FacilityClient,
    max_concurrent: int = 3,
) -> list[FilterResult]:
    if not results:
        return []

    with ThreadPoolExecutor(max_workers=max_concurrent, thread_name_prefix="facility-lookup") as executor:
        futures = [executor.submit(client.facilities_for, result.candidate.id) for result in results]

        enriched: list[FilterResult] = []
        for result, future in zip(results, futures):
            try:
                facilities = future.result()
            except ExternalServiceError as exc:
                logger.warning("Keeping catalog facilities for %s: %s", result.candidate.id, exc)
                enriched.append(result)
                continue

            if not facilities:
                enriched.append(result)
                continue
            candidate = dataclasses.replace(result.candidate, facilities=tuple(facilities))
            enriched.append(dataclasses.replace(result, candidate=candidate))
    return enriched
