from datetime import datetime, timedelta, timezone

import pytest

from bizlocator.location import catalog
from bizlocator.models import BusinessType, Coordinate, LocationEntry, MaintenanceRecord, PlaceDetail, RecordStatus

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)
UUID = "3F2504E0-4F89-11D3-9A0C-0305E82C3301"


class FakeResolver:
    def __init__(self, details):
        self.details = details
        self.batches = []

    def resolve_batch(self, place_ids):
        place_ids = list(place_ids)
        self.batches.append(place_ids)
        return {pid: self.details[pid] for pid in place_ids if pid in self.details}


def _detail(place_id, name, types=()):
    return PlaceDetail(place_id, name, 37.0, -122.0, "1 Main St", NOW, tuple(types))


def test_is_uuid():
    assert catalog.is_uuid(UUID)
    assert catalog.is_uuid(UUID.lower())
    assert not catalog.is_uuid("ChIJabc")
    assert not catalog.is_uuid("")


def test_build_catalog_resolves_each_identifier_kind():
    resolver = FakeResolver(
        {
            "ChIJcafe": _detail("ChIJcafe", "blue door cafe", ["cafe"]),
            "ChIJpharm": _detail("ChIJpharm", "Corner Drugs", ["pharmacy", "store"]),
        }
    )
    records = [
        MaintenanceRecord(id="1", business_id="ChIJcafe"),
        MaintenanceRecord(id="2", business_id=UUID),
        MaintenanceRecord(id="3", business_id="", location_id="ChIJpharm"),
        MaintenanceRecord(id="4", business_id="Joe's Pizza"),
        MaintenanceRecord(id="5", business_id="ChIJmissing", location_id="Harbor Inn"),
        MaintenanceRecord(id="6"),
        MaintenanceRecord(id="7", business_id="ChIJcafe"),
    ]
    lookups = []

    def business_names(ids):
        lookups.append(ids)
        return {UUID: "Acme Bank"}

    entries = catalog.build_catalog(records, resolver, business_names)

    assert len(resolver.batches) == 1
    assert sorted(resolver.batches[0]) == ["ChIJcafe", "ChIJmissing", "ChIJpharm"]
    assert lookups == [[UUID]]
    assert [entry.name for entry in entries] == [
        "Acme Bank",
        "blue door cafe",
        "Corner Drugs",
        "Harbor Inn",
        "Joe's Pizza",
        "Legacy Location",
    ]
    by_name = {entry.name: entry for entry in entries}
    assert by_name["blue door cafe"].business_type is BusinessType.CAFE
    assert by_name["blue door cafe"].lat == 37.0
    assert by_name["Corner Drugs"].id == "ChIJpharm"
    assert by_name["Corner Drugs"].business_type is BusinessType.PHARMACY
    assert by_name["Acme Bank"].business_type is BusinessType.FINANCIAL
    assert by_name["Joe's Pizza"].business_type is BusinessType.RESTAURANT
    assert by_name["Joe's Pizza"].lat is None
    assert by_name["Harbor Inn"].id == "Harbor Inn"
    assert by_name["Harbor Inn"].business_type is BusinessType.HOTEL
    assert by_name["Legacy Location"].id == "legacy_location"


def test_build_catalog_survives_business_name_lookup_failure(caplog):
    def broken(ids):
        raise ConnectionError("record store down")

    records = [MaintenanceRecord(id="1", business_id=UUID)]

    with caplog.at_level("WARNING"):
        entries = catalog.build_catalog(records, FakeResolver({}), broken)

    assert [entry.id for entry in entries] == ["legacy_location"]
    assert "Failed to batch load business names" in " ".join(caplog.messages)


def _record(record_id, status, hours=None):
    created = NOW
    updated = NOW + timedelta(hours=hours) if hours is not None else None
    return MaintenanceRecord(id=record_id, business_id="loc-1", status=status, created_at=created, updated_at=updated)


@pytest.mark.parametrize(
    "total, completed, in_progress, reported, expected",
    [
        (0, 0, 0, 0, 95),
        (4, 4, 0, 0, 100),
        (4, 2, 0, 2, 82),
        (3, 0, 3, 0, 90),
        (10, 0, 0, 10, 60),
        (1, 0, 0, 1, 80),
    ],
)
def test_health_score(total, completed, in_progress, reported, expected):
    assert catalog.health_score(total, completed, in_progress, reported) == expected


def test_compute_location_stats():
    location = LocationEntry(id="loc-1", name="Maple Diner")
    records = [
        _record("a", RecordStatus.COMPLETED, hours=2),
        _record("b", RecordStatus.COMPLETED, hours=4),
        _record("c", RecordStatus.IN_PROGRESS),
        _record("d", RecordStatus.REPORTED),
        MaintenanceRecord(id="other", business_id="loc-2", status=RecordStatus.REPORTED),
    ]

    stats = catalog.compute_location_stats(location, records)

    assert stats.location_id == "loc-1"
    assert (stats.open_count, stats.in_progress_count, stats.completed_count) == (1, 1, 2)
    assert stats.average_response == "3.0h"
    # 85 + int(2/4 * 15) - 5 + 2
    assert stats.health_score == 89


@pytest.mark.parametrize(
    "hours, expected",
    [(0.5, "30m"), (1.5, "1.5h"), (50, "2d")],
)
def test_average_response_formatting(hours, expected):
    location = LocationEntry(id="loc-1", name="Maple Diner")
    stats = catalog.compute_location_stats(location, [_record("a", RecordStatus.COMPLETED, hours=hours)])
    assert stats.average_response == expected


def test_stats_without_records():
    stats = catalog.compute_location_stats(LocationEntry(id="loc-9", name="Empty"), [])
    assert stats.average_response == "N/A"
    assert stats.health_score == 95


SAN_FRANCISCO = Coordinate(37.7749, -122.4194)
NEARBY_CATALOG = [
    LocationEntry(id="oak", name="Oakland Grill", lat=37.8044, lng=-122.2712),
    LocationEntry(id="sj", name="San Jose Deli", lat=37.3382, lng=-121.8863),
    LocationEntry(id="legacy", name="Legacy Location"),
    LocationEntry(id="sf", name="Mission Tacos", lat=37.7599, lng=-122.4148),
]


def test_locations_near_keeps_entries_inside_radius_in_order():
    near = catalog.locations_near(NEARBY_CATALOG, SAN_FRANCISCO)
    assert [entry.id for entry in near] == ["oak", "sf"]


def test_locations_near_custom_radius_and_missing_coordinates():
    assert [entry.id for entry in catalog.locations_near(NEARBY_CATALOG, SAN_FRANCISCO, radius_km=5)] == ["sf"]
    assert [entry.id for entry in catalog.locations_near(NEARBY_CATALOG, SAN_FRANCISCO, radius_km=100)] == [
        "oak",
        "sj",
        "sf",
    ]


def test_find_location_by_name_is_case_insensitive_exact():
    assert catalog.find_location_by_name(NEARBY_CATALOG, "mission TACOS").id == "sf"
    assert catalog.find_location_by_name(NEARBY_CATALOG, "Mission") is None
    assert catalog.find_location_by_name(NEARBY_CATALOG, "") is None
    assert catalog.find_location_by_name([], "Mission Tacos") is None
