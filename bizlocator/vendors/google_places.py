"""Client utilities for the Google Places API."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import requests

from bizlocator.etl.transform import to_candidate, to_place_detail
from bizlocator.models import BusinessCandidate, Coordinate, PlaceDetail

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
_DETAIL_FIELDS = (
    "place_id,name,vicinity,formatted_address,geometry,types,business_status,"
    "rating,user_ratings_total,price_level,opening_hours"
)
_EMPTY_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


class PlaceNotFoundError(GooglePlacesError):
    """Raised when a place id no longer resolves to a place."""


def _get(endpoint: str, params: Dict[str, Any], timeout: float) -> Dict[str, Any]:
    response = _SESSION.get(f"{_BASE_URL}/{endpoint}/json", params=params, timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        if status == "NOT_FOUND":
            raise PlaceNotFoundError(payload.get("error_message") or status)
        logger.error("%s failed: status=%s, error_message=%s", endpoint, status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    return payload


def nearby_search(
    lat: float,
    lng: float,
    radius_m: int,
    api_key: str,
    place_type: Optional[str] = None,
    timeout: float = 10,
) -> Dict[str, Any]:
    params = {"location": f"{lat},{lng}", "radius": radius_m, "key": api_key}
    if place_type:
        params["type"] = place_type
    return _get("nearbysearch", params, timeout)


def text_search(
    query: str,
    api_key: str,
    location: Optional[str] = None,
    pagetoken: Optional[str] = None,
    timeout: float = 10,
) -> Dict[str, Any]:
    params = {"query": query, "key": api_key}
    if location:
        params["location"] = location
    if pagetoken:
        params["pagetoken"] = pagetoken
    return _get("textsearch", params, timeout)


def place_details(place_id: str, api_key: str, timeout: float = 10) -> Dict[str, Any]:
    params = {"place_id": place_id, "key": api_key, "fields": _DETAIL_FIELDS}
    payload = _get("details", params, timeout)
    result = payload.get("result") or {}
    if payload.get("status") in _EMPTY_STATUSES or not result:
        raise PlaceNotFoundError(f"no place found for {place_id}")
    return result


class PlacesDirectory(Protocol):
    def search_nearby(
        self, origin: Coordinate, radius_m: int, category: Optional[str] = None
    ) -> List[BusinessCandidate]:
        ...

    def get_details(self, place_id: str) -> PlaceDetail:
        ...

    def text_search(self, query: str, origin: Optional[Coordinate] = None) -> List[BusinessCandidate]:
        ...


class GooglePlacesDirectory:
    """Places directory backed by the Google Places web service.

    Transport failures (connection errors, HTTP errors) are re-raised as
    GooglePlacesError so callers see one error type for an unreachable
    directory. "ZERO_RESULTS" is an empty list, never an error.
    """

    def __init__(self, api_key: str, timeout: float = 10) -> None:
        if not api_key:
            raise ValueError("api_key is required for Google Places requests")
        self._api_key = api_key
        self._timeout = timeout

    def search_nearby(
        self, origin: Coordinate, radius_m: int, category: Optional[str] = None
    ) -> List[BusinessCandidate]:
        try:
            payload = nearby_search(
                origin.lat, origin.lng, radius_m, self._api_key, place_type=category, timeout=self._timeout
            )
        except requests.RequestException as exc:
            raise GooglePlacesError(f"nearby search failed: {exc}") from exc
        candidates = _to_candidates(payload.get("results", []), origin)
        logger.debug("Found %d %s businesses", len(candidates), category or "general")
        return candidates

    def get_details(self, place_id: str) -> PlaceDetail:
        try:
            result = place_details(place_id, self._api_key, timeout=self._timeout)
        except requests.RequestException as exc:
            raise GooglePlacesError(f"place details failed for {place_id}: {exc}") from exc
        try:
            return to_place_detail(result, place_id, cached_at=datetime.now(timezone.utc))
        except ValueError as exc:
            raise GooglePlacesError(str(exc)) from exc

    def text_search(self, query: str, origin: Optional[Coordinate] = None) -> List[BusinessCandidate]:
        location = f"{origin.lat},{origin.lng}" if origin is not None else None
        try:
            payload = text_search(query, self._api_key, location=location, timeout=self._timeout)
        except requests.RequestException as exc:
            raise GooglePlacesError(f"text search failed: {exc}") from exc
        return _to_candidates(payload.get("results", []), origin)


def _to_candidates(results: List[Dict[str, Any]], origin: Optional[Coordinate]) -> List[BusinessCandidate]:
    candidates = []
    for result in results:
        candidate = to_candidate(result, origin)
        if candidate is not None:
            candidates.append(candidate)
    return candidates
