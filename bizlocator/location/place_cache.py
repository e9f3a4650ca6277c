"""Two-tier TTL cache for place details, plus the resolver that fills it."""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from bizlocator.core.storage import KeyValueStore
from bizlocator.models import PlaceDetail
from bizlocator.vendors.google_places import PlacesDirectory

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "google_places_cache"
DEFAULT_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlaceDetailCache:
    """In-process map in front of a durable key-value store.

    Expiry is lazy: an entry older than the TTL reads as absent. Durable hits
    are promoted into the in-process map.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.RLock()
        self._memory: Dict[str, PlaceDetail] = {}

    def now(self) -> datetime:
        return self._clock()

    def get(self, place_id: str) -> Optional[PlaceDetail]:
        with self._lock:
            cached = self._memory.get(place_id)
            if cached is not None:
                if not self._is_expired(cached):
                    return cached
                del self._memory[place_id]

            cached = self._read_durable(place_id)
            if cached is None or self._is_expired(cached):
                return None
            self._memory[place_id] = cached
            return cached

    def set(self, place_id: str, detail: PlaceDetail) -> None:
        with self._lock:
            self._memory[place_id] = detail
            self._store.set(self._key(place_id), _encode(detail))
        logger.debug("Cached place details for %s (%s)", place_id, detail.name)

    def _is_expired(self, detail: PlaceDetail) -> bool:
        return self._clock() - detail.cached_at > self._ttl

    def _read_durable(self, place_id: str) -> Optional[PlaceDetail]:
        raw = self._store.get(self._key(place_id))
        if raw is None:
            return None
        try:
            return _decode(place_id, raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring corrupt cache entry for %s: %s", place_id, exc)
            return None

    @staticmethod
    def _key(place_id: str) -> str:
        return f"{CACHE_KEY_PREFIX}:{place_id}"


class PlaceDetailResolver:
    """Serves place details from the cache, fetching misses from the directory."""

    def __init__(self, cache: PlaceDetailCache, directory: PlacesDirectory, max_workers: int = 8) -> None:
        self._cache = cache
        self._directory = directory
        self._max_workers = max_workers

    @property
    def cache(self) -> PlaceDetailCache:
        return self._cache

    def resolve(self, place_id: str) -> PlaceDetail:
        """Return details for one place; directory errors propagate."""
        cached = self._cache.get(place_id)
        if cached is not None:
            logger.debug("Using cached data for %s", cached.name)
            return cached
        return self._fetch(place_id)

    def resolve_batch(self, place_ids: Iterable[str]) -> Dict[str, PlaceDetail]:
        """Resolve many places; ids whose fetch fails are left out of the result."""
        unique_ids = list(dict.fromkeys(pid for pid in place_ids if pid))
        results: Dict[str, PlaceDetail] = {}
        misses: List[str] = []
        for place_id in unique_ids:
            cached = self._cache.get(place_id)
            if cached is not None:
                results[place_id] = cached
            else:
                misses.append(place_id)

        if misses:
            logger.info("Fetching %d uncached places in parallel", len(misses))
            workers = max(1, min(self._max_workers, len(misses)))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="place-details") as executor:
                futures = {executor.submit(self._fetch, place_id): place_id for place_id in misses}
                for future in as_completed(futures):
                    place_id = futures[future]
                    try:
                        results[place_id] = future.result()
                    except Exception as exc:  # noqa: BLE001
                        logger.warning("Failed to fetch details for %s: %s", place_id, exc)

        logger.info("Batch fetch complete: %d/%d places", len(results), len(unique_ids))
        return results

    def preload(self, place_ids: Iterable[str]) -> int:
        """Warm the cache for frequently used places; returns how many were fetched."""
        fetched = 0
        for place_id in place_ids:
            if self._cache.get(place_id) is not None:
                continue
            try:
                self._fetch(place_id)
                fetched += 1
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to preload %s: %s", place_id, exc)
        return fetched

    def _fetch(self, place_id: str) -> PlaceDetail:
        logger.debug("Fetching place details for %s", place_id)
        detail = replace(self._directory.get_details(place_id), cached_at=self._cache.now())
        self._cache.set(place_id, detail)
        return detail


def _encode(detail: PlaceDetail) -> bytes:
    return json.dumps(
        {
            "name": detail.name,
            "latitude": detail.lat,
            "longitude": detail.lng,
            "address": detail.address,
            "cached_at": detail.cached_at.isoformat(),
            "types": list(detail.types),
        }
    ).encode("utf-8")


def _decode(place_id: str, raw: bytes) -> PlaceDetail:
    data = json.loads(raw.decode("utf-8"))
    cached_at = datetime.fromisoformat(data["cached_at"])
    if cached_at.tzinfo is None:
        cached_at = cached_at.replace(tzinfo=timezone.utc)
    return PlaceDetail(
        place_id=place_id,
        name=data["name"],
        lat=float(data["latitude"]),
        lng=float(data["longitude"]),
        address=data.get("address") or "",
        cached_at=cached_at,
        types=tuple(data.get("types") or ()),
    )
