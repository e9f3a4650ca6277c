"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

from dotenv import load_dotenv

from bizlocator.core.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    database_url: str
    worker_port: int = 9000
    search_radius_m: int = 1609
    high_confidence_m: float = 150.0
    medium_confidence_m: float = 500.0
    fingerprint_ttl_days: int = 30
    place_cache_ttl_hours: int = 24
    detection_echo_seconds: float = 5.0
    permission_timeout_seconds: float = 10.0
    aggregator_max_workers: int = 16
    request_timeout_seconds: float = 10.0
    preload_place_ids: Tuple[str, ...] = ()


def _env_number(name: str, default: str, cast=int):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from exc


def _env_list(name: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in os.getenv(name, "").split(",") if item.strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_api_key = os.getenv("GOOGLE_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")

    if not database_url:
        logger.warning("DATABASE_URL is not set; caches will not survive a restart.")
    if not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; Google Places requests will fail.")

    return Settings(
        google_api_key=google_api_key,
        database_url=database_url,
        worker_port=_env_number("WORKER_PORT", "9000"),
        search_radius_m=_env_number("SEARCH_RADIUS_METERS", "1609"),
        high_confidence_m=_env_number("HIGH_CONFIDENCE_METERS", "150", float),
        medium_confidence_m=_env_number("MEDIUM_CONFIDENCE_METERS", "500", float),
        fingerprint_ttl_days=_env_number("FINGERPRINT_TTL_DAYS", "30"),
        place_cache_ttl_hours=_env_number("PLACE_CACHE_TTL_HOURS", "24"),
        detection_echo_seconds=_env_number("DETECTION_ECHO_SECONDS", "5", float),
        permission_timeout_seconds=_env_number("PERMISSION_TIMEOUT_SECONDS", "10", float),
        aggregator_max_workers=_env_number("AGGREGATOR_MAX_WORKERS", "16"),
        request_timeout_seconds=_env_number("REQUEST_TIMEOUT_SECONDS", "10", float),
        preload_place_ids=_env_list("PRELOAD_PLACE_IDS"),
    )
