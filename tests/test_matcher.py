from datetime import datetime, timezone

import pytest

from bizlocator.core.storage import MemoryKeyValueStore
from bizlocator.location import matcher
from bizlocator.location.place_cache import PlaceDetailCache
from bizlocator.models import LocationEntry, MaintenanceRecord, PlaceDetail

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


@pytest.fixture
def place_cache():
    cache = PlaceDetailCache(MemoryKeyValueStore(), clock=lambda: NOW)
    cache.set("ChIJsunrise", PlaceDetail("ChIJsunrise", "Sunrise Cafe", 1.0, 2.0, "1 Main", NOW))
    return cache


CATALOG = [
    LocationEntry(id="loc-1", name="Sunrise Cafe & Bakery"),
    LocationEntry(id="ChIJother", name="Harbor Grill"),
    LocationEntry(id="loc-3", name="Maple Diner"),
]


def test_extract_business_name():
    assert matcher.extract_business_name("maple_123_main_st") == "Maple"
    assert matcher.extract_business_name("a_12_harbor_grill") == "Harbor"
    assert matcher.extract_business_name("ChIJabc_def_ghi") is None
    assert matcher.extract_business_name("nounderscore") is None
    assert matcher.extract_business_name("ab_1234_cd") is None
    assert matcher.extract_business_name("") is None


def test_names_overlap_either_direction():
    assert matcher.names_overlap("Sunrise Cafe", "sunrise cafe & bakery")
    assert matcher.names_overlap("SUNRISE CAFE & BAKERY", "Sunrise Cafe")
    assert not matcher.names_overlap("Sunrise Cafe", "Harbor Grill")
    assert not matcher.names_overlap("", "Harbor Grill")


def test_match_by_business_id():
    record = MaintenanceRecord(id="r1", business_id="ChIJother")
    assert matcher.match_record_to_location(record, CATALOG).name == "Harbor Grill"


def test_match_by_location_id():
    record = MaintenanceRecord(id="r1", business_id="unknown", location_id="loc-3")
    assert matcher.match_record_to_location(record, CATALOG).id == "loc-3"


def test_match_by_cached_place_name(place_cache):
    record = MaintenanceRecord(id="r1", business_id="ChIJsunrise")
    assert matcher.match_record_to_location(record, CATALOG, place_cache).id == "loc-1"


def test_place_name_strategy_needs_cache_hit(place_cache):
    record = MaintenanceRecord(id="r1", business_id="ChIJuncached")
    assert matcher.match_record_to_location(record, CATALOG, place_cache) is None
    assert matcher.match_record_to_location(MaintenanceRecord(id="r2", business_id="ChIJsunrise"), CATALOG) is None


def test_exact_id_beats_place_name(place_cache):
    catalog = [
        LocationEntry(id="loc-1", name="Sunrise Cafe"),
        LocationEntry(id="ChIJsunrise", name="Renamed Location"),
    ]
    record = MaintenanceRecord(id="r1", business_id="ChIJsunrise")

    assert matcher.match_record_to_location(record, catalog, place_cache).id == "ChIJsunrise"


def test_match_by_extracted_name():
    record = MaintenanceRecord(id="r1", location_id="maple_123_main_st")
    assert matcher.match_record_to_location(record, CATALOG).id == "loc-3"


def test_unmatched_record_returns_none():
    assert matcher.match_record_to_location(MaintenanceRecord(id="r1"), CATALOG) is None
    assert matcher.match_record_to_location(MaintenanceRecord(id="r2", business_id="x"), []) is None


def test_strategy_table_order():
    assert [s.name for s in matcher.MATCH_STRATEGIES] == [
        "business_id",
        "location_id",
        "place_name",
        "extracted_name",
    ]


def test_records_for_location(place_cache):
    records = [
        MaintenanceRecord(id="a", business_id="loc-1"),
        MaintenanceRecord(id="b", business_id="ChIJsunrise"),
        MaintenanceRecord(id="c", location_id="maple_9_oak"),
        MaintenanceRecord(id="d", location_id="sunrise_77"),
    ]

    matched = matcher.records_for_location(CATALOG[0], records, place_cache)

    assert [record.id for record in matched] == ["a", "b", "d"]
