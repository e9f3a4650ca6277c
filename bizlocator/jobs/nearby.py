"""CLI job listing the businesses around a coordinate, nearest first."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from bizlocator.core.config import get_settings
from bizlocator.location.aggregator import CategoryAggregator
from bizlocator.location.detector import choose_suggestion
from bizlocator.models import BusinessCandidate, Coordinate
from bizlocator.vendors.google_places import GooglePlacesDirectory

logger = logging.getLogger(__name__)


def run_nearby_job(*, lat: float, lng: float, radius_m: Optional[int], limit: Optional[int]) -> dict:
    settings = get_settings()
    api_key = settings.google_api_key
    if not api_key:
        raise RuntimeError("GOOGLE_API_KEY is required")
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        raise ValueError("Coordinates are out of range")

    radius_m = radius_m or settings.search_radius_m
    directory = GooglePlacesDirectory(api_key, timeout=settings.request_timeout_seconds)
    aggregator = CategoryAggregator(directory, max_workers=settings.aggregator_max_workers)

    candidates: List[BusinessCandidate] = aggregator.find_nearby(Coordinate(lat, lng), radius_m)
    suggested, tier = choose_suggestion(
        candidates, radius_m, settings.high_confidence_m, settings.medium_confidence_m
    )
    if limit is not None:
        candidates = candidates[:limit]

    logger.info("Completed run: businesses=%d", len(candidates))
    return {
        "origin": {"lat": lat, "lng": lng, "radius_m": radius_m},
        "suggested": suggested.to_dict() if suggested else None,
        "confidence_tier": tier.value if tier else None,
        "businesses": [candidate.to_dict() for candidate in candidates],
    }


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be positive")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="List nearby businesses across all categories")
    parser.add_argument("--lat", dest="lat", type=float, required=True, help="Latitude of the origin")
    parser.add_argument("--lng", dest="lng", type=float, required=True, help="Longitude of the origin")
    parser.add_argument(
        "--radius",
        dest="radius_m",
        type=_positive_int,
        default=get_settings().search_radius_m,
        help="Search radius in meters",
    )
    parser.add_argument("--limit", dest="limit", type=_positive_int, help="Maximum number of businesses to print")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    result = run_nearby_job(lat=args.lat, lng=args.lng, radius_m=args.radius_m, limit=args.limit)
    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")


if __name__ == "__main__":
    main()
