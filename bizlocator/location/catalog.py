"""Build the location catalog from historical records and summarise each location."""

import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from bizlocator.etl.transform import haversine_m
from bizlocator.location.classifier import classify_name, classify_tags
from bizlocator.location.matcher import is_place_id, records_for_location
from bizlocator.location.place_cache import PlaceDetailCache, PlaceDetailResolver
from bizlocator.models import (
    BusinessType,
    Coordinate,
    LocationEntry,
    LocationStats,
    MaintenanceRecord,
    PlaceDetail,
    RecordStatus,
)

logger = logging.getLogger(__name__)

LEGACY_LOCATION_ID = "legacy_location"
LEGACY_LOCATION_NAME = "Legacy Location"

_UUID_RE = re.compile(r"^[0-9A-F]{8}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{12}$", re.IGNORECASE)

BusinessNameLookup = Callable[[List[str]], Dict[str, str]]


def is_uuid(value: Optional[str]) -> bool:
    return bool(value) and _UUID_RE.match(value) is not None


def build_catalog(
    records: Iterable[MaintenanceRecord],
    resolver: PlaceDetailResolver,
    business_names: Optional[BusinessNameLookup] = None,
) -> List[LocationEntry]:
    """One catalog entry per distinct business name found on the records.

    All directory ids are resolved in a single batch up front. UUID-shaped
    business ids are named through ``business_names`` (the record store), and any
    other identifier is used as the name itself.
    """
    records = list(records)
    place_ids = set()
    uuid_ids = set()
    for record in records:
        for identifier in (record.business_id, record.location_id):
            if is_place_id(identifier):
                place_ids.add(identifier)
        if is_uuid(record.business_id):
            uuid_ids.add(record.business_id)

    logger.info("Found %d directory ids and %d business ids across %d records", len(place_ids), len(uuid_ids), len(records))
    places = resolver.resolve_batch(sorted(place_ids))
    names = _lookup_business_names(business_names, sorted(uuid_ids))

    locations: Dict[str, LocationEntry] = {}
    for record in records:
        entry = _entry_for_record(record, places, names)
        if entry.name in locations:
            continue
        locations[entry.name] = entry

    catalog = sorted(locations.values(), key=lambda entry: entry.name.casefold())
    logger.info("Extracted %d unique locations", len(catalog))
    return catalog


def _lookup_business_names(lookup: Optional[BusinessNameLookup], ids: List[str]) -> Dict[str, str]:
    if lookup is None or not ids:
        return {}
    try:
        return dict(lookup(ids))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to batch load business names: %s", exc)
        return {}


def _entry_for_record(
    record: MaintenanceRecord,
    places: Dict[str, PlaceDetail],
    names: Dict[str, str],
) -> LocationEntry:
    name: Optional[str] = None
    location_id: Optional[str] = None
    place: Optional[PlaceDetail] = None

    if record.business_id:
        location_id = record.business_id
        if is_place_id(record.business_id):
            place = places.get(record.business_id)
            name = place.name if place else None
        elif is_uuid(record.business_id):
            name = names.get(record.business_id)
        else:
            name = record.business_id

    if name is None and record.location_id:
        location_id = record.location_id
        if is_place_id(record.location_id):
            place = places.get(record.location_id)
            name = place.name if place else None
        else:
            name = record.location_id

    if name is None:
        return LocationEntry(id=LEGACY_LOCATION_ID, name=LEGACY_LOCATION_NAME, business_type=BusinessType.OTHER)

    if place is None:
        place = next((p for p in places.values() if p.name.lower() == name.lower()), None)

    business_type = classify_tags(place.types) if place else BusinessType.OTHER
    if business_type is BusinessType.OTHER:
        business_type = classify_name(name)

    return LocationEntry(
        id=location_id,
        name=name,
        address=place.address if place else "",
        lat=place.lat if place else None,
        lng=place.lng if place else None,
        business_type=business_type,
    )


def find_location_by_name(catalog: Sequence[LocationEntry], name: Optional[str]) -> Optional[LocationEntry]:
    wanted = (name or "").strip().lower()
    if not wanted:
        return None
    return next((entry for entry in catalog if entry.name.lower() == wanted), None)


def locations_near(
    catalog: Sequence[LocationEntry], origin: Coordinate, radius_km: float = 50.0
) -> List[LocationEntry]:
    """Catalog entries within radius_km of origin; entries without coordinates are skipped."""
    radius_m = radius_km * 1000.0
    return [
        entry
        for entry in catalog
        if entry.lat is not None
        and entry.lng is not None
        and haversine_m(origin, entry.lat, entry.lng) <= radius_m
    ]


def compute_location_stats(
    location: LocationEntry,
    records: Iterable[MaintenanceRecord],
    place_cache: Optional[PlaceDetailCache] = None,
) -> LocationStats:
    matched = records_for_location(location, records, place_cache)
    reported = sum(1 for record in matched if record.status is RecordStatus.REPORTED)
    in_progress = sum(1 for record in matched if record.status is RecordStatus.IN_PROGRESS)
    completed = [record for record in matched if record.status is RecordStatus.COMPLETED]

    return LocationStats(
        location_id=location.id,
        open_count=reported,
        in_progress_count=in_progress,
        completed_count=len(completed),
        average_response=_average_response(completed),
        health_score=health_score(len(matched), len(completed), in_progress, reported),
    )


def health_score(total: int, completed: int, in_progress: int, reported: int) -> int:
    if total == 0:
        return 95
    score = 85
    score += min(int(completed / total * 15), 15)
    score -= min(reported * 5, 25)
    if in_progress:
        score += min(in_progress * 2, 5)
    return max(min(score, 100), 30)


def _average_response(completed: List[MaintenanceRecord]) -> str:
    durations = [
        (record.updated_at - record.created_at).total_seconds()
        for record in completed
        if record.created_at is not None and record.updated_at is not None
    ]
    if not durations:
        return "N/A"
    seconds = sum(durations) / len(durations)
    hours = seconds / 3600
    if hours < 1:
        return f"{int(seconds / 60)}m"
    if hours < 24:
        return f"{hours:.1f}h"
    return f"{int(hours / 24)}d"
