"""Utilities for transforming Google Places responses into engine models."""

import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from bizlocator.location.classifier import classify_tags
from bizlocator.models import BusinessCandidate, Coordinate, PlaceDetail

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0

_IGNORE_TYPES = {"point_of_interest", "establishment", "political", "premise"}


def haversine_m(origin: Coordinate, lat: float, lng: float) -> float:
    """Great-circle distance in meters."""
    d_lat = math.radians(lat - origin.lat)
    d_lng = math.radians(lng - origin.lng)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(origin.lat)) * math.cos(math.radians(lat)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def extract_coordinates(result: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    location = (result.get("geometry") or {}).get("location") or {}
    lat = _safe_float(location.get("lat"))
    lng = _safe_float(location.get("lng"))
    if lat is None or lng is None:
        return None
    return lat, lng


def primary_tags(types: Iterable[str]) -> Tuple[str, ...]:
    return tuple(type_name for type_name in types or [] if type_name not in _IGNORE_TYPES)


def to_candidate(result: Dict[str, Any], origin: Optional[Coordinate]) -> Optional[BusinessCandidate]:
    """Build a candidate from a search result, or None when it cannot be located."""
    place_id = result.get("place_id")
    name = (result.get("name") or "").strip()
    coords = extract_coordinates(result)
    if not place_id or not name or coords is None:
        logger.debug("Skipping unusable result: place_id=%s name=%r", place_id, name)
        return None

    lat, lng = coords
    distance = haversine_m(origin, lat, lng) if origin is not None else 0.0
    opening_hours = result.get("opening_hours") or {}

    return BusinessCandidate(
        place_id=place_id,
        name=name,
        lat=lat,
        lng=lng,
        address=result.get("formatted_address") or result.get("vicinity"),
        distance_m=distance,
        business_type=classify_tags(result.get("types", [])),
        rating=_safe_float(result.get("rating")),
        price_level=_safe_int(result.get("price_level")),
        is_open=opening_hours.get("open_now"),
    )


def to_place_detail(result: Dict[str, Any], place_id: str, cached_at: datetime) -> PlaceDetail:
    coords = extract_coordinates(result)
    if coords is None:
        raise ValueError(f"place {place_id} has no coordinates")
    name = (result.get("name") or "").strip()
    if not name:
        raise ValueError(f"place {place_id} has no name")

    lat, lng = coords
    return PlaceDetail(
        place_id=result.get("place_id") or place_id,
        name=name,
        lat=lat,
        lng=lng,
        address=result.get("formatted_address") or result.get("vicinity") or "",
        cached_at=cached_at,
        types=primary_tags(result.get("types", [])),
    )


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        return int(value)
    except (TypeError, ValueError):
        return None
