"""Error taxonomy for the location engine."""

from __future__ import annotations

import enum


class LocationError(RuntimeError):
    """Base class for engine errors."""


class ConfigError(LocationError):
    """Raised when configuration values are malformed."""


class StorageError(LocationError):
    """Raised when the durable key-value store cannot be read or written."""


class AggregationError(LocationError):
    """Raised when every category query of an aggregation failed."""


class SensorError(LocationError):
    """Raised when the sensor could not produce a position fix."""


class FailureReason(str, enum.Enum):
    """Terminal outcomes of a detection that did not produce a context."""

    PERMISSION_DENIED = "permission_denied"
    SENSOR_UNAVAILABLE = "sensor_unavailable"
    AGGREGATION_FAILED = "aggregation_failed"

    @property
    def user_message(self) -> str:
        return _MESSAGES[self][0]

    @property
    def recovery_suggestion(self) -> str:
        return _MESSAGES[self][1]

    @property
    def user_fixable(self) -> bool:
        return self is not FailureReason.AGGREGATION_FAILED


_MESSAGES = {
    FailureReason.PERMISSION_DENIED: (
        "Location permission is required for automatic business detection",
        "Please enable location access in Settings",
    ),
    FailureReason.SENSOR_UNAVAILABLE: (
        "Unable to determine your current location",
        "Make sure you're outdoors or near a window, then try again",
    ),
    FailureReason.AGGREGATION_FAILED: (
        "Nearby businesses could not be loaded right now",
        "The places service is unavailable; select the business manually",
    ),
}
