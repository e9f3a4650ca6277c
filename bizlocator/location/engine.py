"""Wires the caches, directory and detector together from Settings."""

import logging
import threading
import weakref
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from bizlocator.core.config import Settings, get_settings
from bizlocator.core.db import PostgresKeyValueStore
from bizlocator.core.storage import KeyValueStore, MemoryKeyValueStore
from bizlocator.location.aggregator import CategoryAggregator
from bizlocator.location.catalog import build_catalog, find_location_by_name, locations_near
from bizlocator.location.detector import DetectionOutcome, LocationDetector
from bizlocator.location.fingerprint_cache import FingerprintCache
from bizlocator.location.matcher import match_record_to_location
from bizlocator.location.place_cache import PlaceDetailCache, PlaceDetailResolver
from bizlocator.location.sensor import FingerprintSource, SensorGateway
from bizlocator.models import BusinessCandidate, Coordinate, LocationEntry, MaintenanceRecord, PlaceDetail
from bizlocator.vendors.google_places import GooglePlacesDirectory, PlacesDirectory

logger = logging.getLogger(__name__)


class LocationEngine:
    """Entry point for callers: place lookups, nearby search, detection and record matching."""

    def __init__(self, settings: Settings, store: KeyValueStore, directory: PlacesDirectory) -> None:
        self.settings = settings
        self.place_cache = PlaceDetailCache(store, ttl=timedelta(hours=settings.place_cache_ttl_hours))
        self.fingerprints = FingerprintCache(store, ttl=timedelta(days=settings.fingerprint_ttl_days))
        self.resolver = PlaceDetailResolver(self.place_cache, directory)
        self.aggregator = CategoryAggregator(directory, max_workers=settings.aggregator_max_workers)
        self._detectors: "weakref.WeakKeyDictionary[SensorGateway, LocationDetector]" = weakref.WeakKeyDictionary()
        self._detectors_lock = threading.Lock()

    def resolve_place_details(self, place_id: str) -> PlaceDetail:
        return self.resolver.resolve(place_id)

    def resolve_place_details_batch(self, place_ids: Iterable[str]) -> Dict[str, PlaceDetail]:
        return self.resolver.resolve_batch(place_ids)

    def find_nearby(self, origin: Coordinate, radius_m: Optional[int] = None) -> List[BusinessCandidate]:
        return self.aggregator.find_nearby(origin, radius_m or self.settings.search_radius_m)

    def match_record_to_location(
        self, record: MaintenanceRecord, catalog: Sequence[LocationEntry]
    ) -> Optional[LocationEntry]:
        return match_record_to_location(record, catalog, self.place_cache)

    def build_catalog(self, records: Iterable[MaintenanceRecord]) -> List[LocationEntry]:
        return build_catalog(records, self.resolver)

    def find_location_by_name(self, catalog: Sequence[LocationEntry], name: str) -> Optional[LocationEntry]:
        return find_location_by_name(catalog, name)

    def locations_near(
        self, catalog: Sequence[LocationEntry], origin: Coordinate, radius_km: float = 50.0
    ) -> List[LocationEntry]:
        return locations_near(catalog, origin, radius_km)

    def preload_places(self, place_ids: Optional[Iterable[str]] = None) -> int:
        """Warm the place cache, by default with the configured common places."""
        place_ids = list(self.settings.preload_place_ids if place_ids is None else place_ids)
        if not place_ids:
            return 0
        fetched = self.resolver.preload(place_ids)
        logger.info("Preloaded %d/%d places", fetched, len(place_ids))
        return fetched

    def detector(
        self, sensor: SensorGateway, fingerprint_source: Optional[FingerprintSource] = None
    ) -> LocationDetector:
        """The detector bound to this sensor, created on first use.

        Reusing it keeps single-flight and the echo window in force across calls.
        The detector only holds a proxy to the sensor so the entry goes away
        with the caller's sensor.
        """
        with self._detectors_lock:
            detector = self._detectors.get(sensor)
            if detector is None:
                detector = self._new_detector(sensor, fingerprint_source)
                self._detectors[sensor] = detector
            return detector

    def _new_detector(
        self, sensor: SensorGateway, fingerprint_source: Optional[FingerprintSource]
    ) -> LocationDetector:
        return LocationDetector(
            self.aggregator,
            self.fingerprints,
            weakref.proxy(sensor),
            fingerprint_source=fingerprint_source,
            radius_m=self.settings.search_radius_m,
            high_confidence_m=self.settings.high_confidence_m,
            medium_confidence_m=self.settings.medium_confidence_m,
            echo_seconds=self.settings.detection_echo_seconds,
            permission_timeout=self.settings.permission_timeout_seconds,
        )

    def detect_current_business(
        self, sensor: SensorGateway, fingerprint_source: Optional[FingerprintSource] = None
    ) -> DetectionOutcome:
        return self.detector(sensor, fingerprint_source).detect_current_business()


def build_engine(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    directory: Optional[PlacesDirectory] = None,
) -> LocationEngine:
    settings = settings or get_settings()
    if store is None:
        if settings.database_url:
            store = PostgresKeyValueStore()
        else:
            logger.info("Using in-memory key-value store")
            store = MemoryKeyValueStore()
    if directory is None:
        directory = GooglePlacesDirectory(settings.google_api_key, timeout=settings.request_timeout_seconds)
    return LocationEngine(settings, store, directory)
