"""Fan a single nearby query out across the business category taxonomy."""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Iterable, List, Optional, Tuple

from bizlocator.core.errors import AggregationError
from bizlocator.etl.transform import haversine_m
from bizlocator.models import BusinessCandidate, Coordinate
from bizlocator.vendors.google_places import PlacesDirectory

logger = logging.getLogger(__name__)

# (group, category). A category of None is the unfiltered catch-all search.
CATEGORY_TAXONOMY: Tuple[Tuple[str, Optional[str]], ...] = (
    ("food", "restaurant"),
    ("food", "food"),
    ("food", "meal_takeaway"),
    ("food", "meal_delivery"),
    ("food", "cafe"),
    ("food", "bar"),
    ("food", "bakery"),
    ("retail", "grocery_or_supermarket"),
    ("retail", "convenience_store"),
    ("retail", "shopping_mall"),
    ("retail", "clothing_store"),
    ("retail", "shoe_store"),
    ("retail", "jewelry_store"),
    ("retail", "book_store"),
    ("retail", "electronics_store"),
    ("retail", "furniture_store"),
    ("retail", "hardware_store"),
    ("retail", "home_goods_store"),
    ("retail", "pet_store"),
    ("retail", "florist"),
    ("retail", "liquor_store"),
    ("health", "pharmacy"),
    ("health", "hospital"),
    ("health", "dentist"),
    ("health", "doctor"),
    ("health", "hair_care"),
    ("health", "beauty_salon"),
    ("health", "spa"),
    ("services", "laundry"),
    ("automotive", "car_wash"),
    ("automotive", "car_repair"),
    ("automotive", "car_dealer"),
    ("automotive", "gas_station"),
    ("services", "veterinary_care"),
    ("services", "locksmith"),
    ("services", "plumber"),
    ("services", "electrician"),
    ("services", "roofing_contractor"),
    ("recreation", "gym"),
    ("recreation", "bowling_alley"),
    ("recreation", "movie_theater"),
    ("hospitality", "lodging"),
    ("financial", "bank"),
    ("financial", "atm"),
    ("professional", "real_estate_agency"),
    ("professional", "insurance_agency"),
    ("professional", "lawyer"),
    ("professional", "accounting"),
    ("general", None),
    ("general", "store"),
)


def dedupe_and_sort(candidates: Iterable[BusinessCandidate], origin: Coordinate) -> List[BusinessCandidate]:
    """Drop repeated place ids (first occurrence wins) and sort by distance from origin."""
    seen = set()
    unique: List[BusinessCandidate] = []
    for candidate in candidates:
        if candidate.place_id in seen:
            continue
        seen.add(candidate.place_id)
        distance = haversine_m(origin, candidate.lat, candidate.lng)
        unique.append(replace(candidate, distance_m=distance))
    unique.sort(key=lambda item: item.distance_m)
    return unique


class CategoryAggregator:
    def __init__(
        self,
        directory: PlacesDirectory,
        categories: Tuple[Tuple[str, Optional[str]], ...] = CATEGORY_TAXONOMY,
        max_workers: int = 16,
    ) -> None:
        if not categories:
            raise ValueError("at least one category is required")
        self._directory = directory
        self._categories = categories
        self._max_workers = max_workers

    @property
    def categories(self) -> Tuple[Tuple[str, Optional[str]], ...]:
        return self._categories

    def find_nearby(self, origin: Coordinate, radius_m: int) -> List[BusinessCandidate]:
        """Query every category concurrently and merge the results.

        A failed category contributes nothing. AggregationError is raised only
        when every category query failed.
        """
        logger.info(
            "Searching %d categories within %dm of (%.6f, %.6f)",
            len(self._categories),
            radius_m,
            origin.lat,
            origin.lng,
        )

        workers = max(1, min(self._max_workers, len(self._categories)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="category") as executor:
            futures = [
                (category, executor.submit(self._directory.search_nearby, origin, radius_m, category))
                for _, category in self._categories
            ]

            merged: List[BusinessCandidate] = []
            failures = 0
            last_error: Optional[BaseException] = None
            for category, future in futures:
                try:
                    merged.extend(future.result())
                except Exception as exc:  # noqa: BLE001
                    failures += 1
                    last_error = exc
                    logger.warning("Category search failed for %s: %s", category or "general", exc)

        if failures == len(futures):
            raise AggregationError(f"all {failures} category searches failed") from last_error

        results = dedupe_and_sort(merged, origin)
        logger.info(
            "Found %d unique businesses (%d raw, %d failed categories)", len(results), len(merged), failures
        )
        if results:
            breakdown = Counter(candidate.business_type.value for candidate in results)
            logger.debug("Business breakdown: %s", dict(breakdown.most_common()))
        return results

    def text_search(self, query: str, origin: Optional[Coordinate] = None) -> List[BusinessCandidate]:
        """Nationwide text search; sorted by distance only when an origin is known."""
        if not query or not query.strip():
            return []
        candidates = self._directory.text_search(query.strip(), origin)
        if origin is None:
            return candidates
        return dedupe_and_sort(candidates, origin)
