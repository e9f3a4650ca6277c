"""Associate a historical maintenance record with one known location.

Strategies are tried in the order of MATCH_STRATEGIES and the first one that
finds a location wins; results are never combined across strategies.
"""

import logging
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence

from bizlocator.location.place_cache import PlaceDetailCache
from bizlocator.models import LocationEntry, MaintenanceRecord

logger = logging.getLogger(__name__)

PLACE_ID_PREFIX = "ChIJ"


def is_place_id(value: Optional[str]) -> bool:
    return bool(value) and value.startswith(PLACE_ID_PREFIX)


def names_overlap(first: Optional[str], second: Optional[str]) -> bool:
    """Case-insensitive substring match in either direction."""
    a = (first or "").strip().lower()
    b = (second or "").strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def extract_business_name(location_id: Optional[str]) -> Optional[str]:
    """Pull a readable business name out of ids like 'maple_123_main_st'."""
    if not location_id or "_" not in location_id or is_place_id(location_id):
        return None
    for token in location_id.split("_"):
        if len(token) > 3 and any(ch.isalpha() for ch in token):
            return token.capitalize()
    return None


def _by_business_id(record, catalog, place_cache):
    if not record.business_id:
        return None
    return next((entry for entry in catalog if entry.id == record.business_id), None)


def _by_location_id(record, catalog, place_cache):
    if not record.location_id:
        return None
    return next((entry for entry in catalog if entry.id == record.location_id), None)


def _by_place_name(record, catalog, place_cache):
    if not is_place_id(record.business_id) or place_cache is None:
        return None
    detail = place_cache.get(record.business_id)
    if detail is None:
        return None
    return next((entry for entry in catalog if names_overlap(entry.name, detail.name)), None)


def _by_extracted_name(record, catalog, place_cache):
    business_name = extract_business_name(record.location_id)
    if business_name is None:
        return None
    return next((entry for entry in catalog if names_overlap(entry.name, business_name)), None)


class MatchStrategy(NamedTuple):
    name: str
    find: Callable[
        [MaintenanceRecord, Sequence[LocationEntry], Optional[PlaceDetailCache]], Optional[LocationEntry]
    ]


MATCH_STRATEGIES = (
    MatchStrategy("business_id", _by_business_id),
    MatchStrategy("location_id", _by_location_id),
    MatchStrategy("place_name", _by_place_name),
    MatchStrategy("extracted_name", _by_extracted_name),
)


def match_record_to_location(
    record: MaintenanceRecord,
    catalog: Sequence[LocationEntry],
    place_cache: Optional[PlaceDetailCache] = None,
) -> Optional[LocationEntry]:
    """Return the catalog entry this record belongs to, or None for unmatched (e.g. legacy) records.

    The place-name strategy only consults the cache; it never triggers a
    directory request.
    """
    for strategy in MATCH_STRATEGIES:
        location = strategy.find(record, catalog, place_cache)
        if location is not None:
            logger.debug("Record %s matched %s by %s", record.id, location.name, strategy.name)
            return location
    logger.debug("Record %s matched no location", record.id)
    return None


def records_for_location(
    location: LocationEntry,
    records: Iterable[MaintenanceRecord],
    place_cache: Optional[PlaceDetailCache] = None,
) -> List[MaintenanceRecord]:
    matched = [record for record in records if match_record_to_location(record, [location], place_cache)]
    if not matched:
        logger.info("No records matched %s (id: %s)", location.name, location.id)
    return matched
