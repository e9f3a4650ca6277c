import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from bizlocator.core.storage import MemoryKeyValueStore
from bizlocator.location.place_cache import PlaceDetailCache, PlaceDetailResolver
from bizlocator.models import PlaceDetail
from bizlocator.vendors.google_places import GooglePlacesError, PlaceNotFoundError

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeDirectory:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.requested = []
        self._lock = threading.Lock()

    def get_details(self, place_id):
        with self._lock:
            self.requested.append(place_id)
        if place_id in self.failing:
            raise GooglePlacesError(f"cannot fetch {place_id}")
        return PlaceDetail(
            place_id=place_id,
            name=f"Business {place_id}",
            lat=1.0,
            lng=2.0,
            address="Main St",
            cached_at=datetime(2000, 1, 1, tzinfo=timezone.utc),
            types=("restaurant",),
        )


def _detail(place_id="ChIJa", cached_at=T0):
    return PlaceDetail(place_id, "Cafe Uno", 1.0, 2.0, "Main St", cached_at, ("cafe",))


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = PlaceDetailCache(MemoryKeyValueStore(), clock=clock)
    cache.set("ChIJa", _detail())

    clock.advance(hours=24, seconds=-1)
    assert cache.get("ChIJa") == _detail()

    clock.advance(seconds=2)
    assert cache.get("ChIJa") is None


def test_durable_hit_survives_new_process_and_is_promoted():
    store = MemoryKeyValueStore()
    clock = FakeClock()
    PlaceDetailCache(store, clock=clock).set("ChIJa", _detail())

    fresh = PlaceDetailCache(store, clock=clock)
    hit = fresh.get("ChIJa")

    assert hit is not None
    assert hit.name == "Cafe Uno"
    assert hit.types == ("cafe",)
    assert hit.cached_at == T0
    store.set("google_places_cache:ChIJa", b"overwritten")
    assert fresh.get("ChIJa") == hit


def test_durable_payload_format():
    store = MemoryKeyValueStore()
    PlaceDetailCache(store, clock=FakeClock()).set("ChIJa", _detail())

    payload = json.loads(store.get("google_places_cache:ChIJa"))

    assert payload["name"] == "Cafe Uno"
    assert payload["latitude"] == 1.0
    assert payload["longitude"] == 2.0
    assert payload["cached_at"] == T0.isoformat()


def test_corrupt_durable_entry_is_a_miss(caplog):
    store = MemoryKeyValueStore({"google_places_cache:ChIJbad": b"{not json"})
    cache = PlaceDetailCache(store, clock=FakeClock())

    with caplog.at_level("WARNING"):
        assert cache.get("ChIJbad") is None
    assert "corrupt" in " ".join(caplog.messages)


def test_resolve_fetches_once_then_serves_from_cache():
    clock = FakeClock()
    directory = FakeDirectory()
    resolver = PlaceDetailResolver(PlaceDetailCache(MemoryKeyValueStore(), clock=clock), directory)

    first = resolver.resolve("ChIJx")
    second = resolver.resolve("ChIJx")

    assert first == second
    assert first.cached_at == T0
    assert directory.requested == ["ChIJx"]


def test_resolve_propagates_not_found():
    class MissingDirectory:
        def get_details(self, place_id):
            raise PlaceNotFoundError(place_id)

    resolver = PlaceDetailResolver(PlaceDetailCache(MemoryKeyValueStore()), MissingDirectory())

    with pytest.raises(PlaceNotFoundError):
        resolver.resolve("ChIJgone")


def test_resolve_batch_fetches_only_misses():
    clock = FakeClock()
    cache = PlaceDetailCache(MemoryKeyValueStore(), clock=clock)
    cache.set("p1", _detail("p1"))
    cache.set("p2", _detail("p2"))
    directory = FakeDirectory()
    resolver = PlaceDetailResolver(cache, directory, max_workers=3)

    results = resolver.resolve_batch(["p1", "p2", "p3", "p4", "p5", "p3", ""])

    assert sorted(results) == ["p1", "p2", "p3", "p4", "p5"]
    assert sorted(directory.requested) == ["p3", "p4", "p5"]


def test_resolve_batch_omits_failed_ids():
    directory = FakeDirectory(failing={"p2"})
    resolver = PlaceDetailResolver(PlaceDetailCache(MemoryKeyValueStore(), clock=FakeClock()), directory)

    results = resolver.resolve_batch(["p1", "p2", "p3"])

    assert sorted(results) == ["p1", "p3"]
    assert resolver.cache.get("p2") is None


def test_preload_counts_fetches():
    cache = PlaceDetailCache(MemoryKeyValueStore(), clock=FakeClock())
    cache.set("p1", _detail("p1"))
    directory = FakeDirectory(failing={"p3"})
    resolver = PlaceDetailResolver(cache, directory)

    assert resolver.preload(["p1", "p2", "p3"]) == 1
    assert directory.requested == ["p2", "p3"]
