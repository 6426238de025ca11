from __future__ import annotations

import json
from typing import Any

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST
from pydantic import ValidationError

from rest_areas.exceptions import (
    DataUnavailableError,
    ExternalServiceError,
    InvalidRouteError,
    NoRouteFoundError,
)
from rest_areas.models import HighwayInterchange, RestArea
from rest_areas.schemas import RestAreaSearchRequest
from rest_areas.services.finder import RestAreaFinderService

_finder_service: RestAreaFinderService | None = None


def get_rest_area_finder() -> RestAreaFinderService:
    global _finder_service
    if _finder_service is None:
        _finder_service = RestAreaFinderService()
    return _finder_service


@require_GET
def health_view(_: HttpRequest) -> HttpResponse:
    total_rest_areas = RestArea.objects.count()
    located_rest_areas = (
        RestArea.objects.exclude(latitude__isnull=True).exclude(longitude__isnull=True).count()
    )
    return JsonResponse(
        {
            "status": "ok",
            "rest_areas": {
                "total": total_rest_areas,
                "located": located_rest_areas,
            },
            "interchanges": {
                "entries": HighwayInterchange.objects.count(),
                "cache": get_rest_area_finder().catalog.status(),
            },
        }
    )


@csrf_exempt
@require_POST
def rest_area_search_view(request: HttpRequest) -> HttpResponse:
    payload = _parse_json_payload(request)
    if isinstance(payload, JsonResponse):
        return payload

    try:
        search_request = RestAreaSearchRequest.model_validate(payload)
    except ValidationError as exc:
        return JsonResponse(
            {
                "error": {
                    "code": "validation_error",
                    "message": "Invalid request payload",
                    "details": exc.errors(include_url=False, include_context=False),
                }
            },
            status=400,
        )

    finder = get_rest_area_finder()
    try:
        response = finder.search(search_request)
    except InvalidRouteError as exc:
        return _error_response("invalid_route", str(exc), status=400)
    except NoRouteFoundError as exc:
        return _error_response("no_route", str(exc), status=502)
    except ExternalServiceError as exc:
        return _error_response("upstream_error", str(exc), status=502)
    except DataUnavailableError as exc:
        return _error_response("data_unavailable", str(exc), status=503)

    return JsonResponse(response.model_dump(mode="json"), status=200)


def _parse_json_payload(request: HttpRequest) -> dict[str, Any] | JsonResponse:
    if not request.body:
        return {}

    try:
        payload = json.loads(request.body)
    except json.JSONDecodeError:
        return _error_response("invalid_json", "Request body must be valid JSON", status=400)

    if not isinstance(payload, dict):
        return _error_response("invalid_json", "JSON body must be an object", status=400)

    return payload


def _error_response(code: str, message: str, status: int) -> JsonResponse:
    return JsonResponse({"error": {"code": code, "message": message}}, status=status)
