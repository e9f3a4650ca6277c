from datetime import datetime, timezone

import pytest

from bizlocator.etl import transform
from bizlocator.models import BusinessType, Coordinate


def test_haversine_known_distance():
    origin = Coordinate(0.0, 0.0)
    # One degree of latitude is about 111.2 km.
    assert transform.haversine_m(origin, 1.0, 0.0) == pytest.approx(111_195, rel=1e-3)
    assert transform.haversine_m(origin, 0.0, 0.0) == 0.0


def test_extract_coordinates():
    assert transform.extract_coordinates({"geometry": {"location": {"lat": "1.5", "lng": 2}}}) == (1.5, 2.0)
    assert transform.extract_coordinates({"geometry": {"location": {"lat": None, "lng": 2}}}) is None
    assert transform.extract_coordinates({}) is None


def test_primary_tags_drops_generic_types():
    assert transform.primary_tags(["point_of_interest", "restaurant", "establishment"]) == ("restaurant",)
    assert transform.primary_tags([]) == ()


def test_to_candidate_skips_unusable_results():
    assert transform.to_candidate({"name": "No id", "geometry": {"location": {"lat": 1, "lng": 1}}}, None) is None
    assert transform.to_candidate({"place_id": "x", "name": " "}, None) is None


def test_to_candidate_without_origin_has_zero_distance():
    result = {
        "place_id": "p",
        "name": "Shell",
        "types": ["gas_station"],
        "formatted_address": "Main St",
        "geometry": {"location": {"lat": 10, "lng": 20}},
        "price_level": "2",
    }

    candidate = transform.to_candidate(result, None)

    assert candidate.distance_m == 0.0
    assert candidate.business_type is BusinessType.GAS_STATION
    assert candidate.address == "Main St"
    assert candidate.price_level == 2
    assert candidate.rating is None


def test_to_place_detail_requires_name_and_coordinates():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        transform.to_place_detail({"name": "Acme"}, "pid", now)
    with pytest.raises(ValueError):
        transform.to_place_detail({"geometry": {"location": {"lat": 1, "lng": 1}}}, "pid", now)

    detail = transform.to_place_detail(
        {"name": "Acme", "vicinity": "Main", "geometry": {"location": {"lat": 1, "lng": 2}}}, "pid", now
    )
    assert detail.place_id == "pid"
    assert detail.address == "Main"
    assert detail.cached_at == now
