"""Location detection: which business is the user at right now?"""

from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from bizlocator.core.errors import AggregationError, FailureReason, SensorError, StorageError
from bizlocator.location.aggregator import CategoryAggregator
from bizlocator.location.fingerprint_cache import FingerprintCache
from bizlocator.location.sensor import FingerprintSource, SensorGateway, acquire_fix, await_permission
from bizlocator.models import BusinessCandidate, BusinessType, ConfidenceTier, Coordinate, DetectionContext

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_M = 150.0
MEDIUM_CONFIDENCE_M = 500.0
SEARCH_RADIUS_M = 1609


class DetectorState(str, enum.Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class DetectionOutcome:
    context: Optional[DetectionContext] = None
    failure: Optional[FailureReason] = None

    @property
    def ok(self) -> bool:
        return self.context is not None

    @property
    def message(self) -> Optional[str]:
        return self.failure.user_message if self.failure else None


def choose_suggestion(
    candidates: Sequence[BusinessCandidate],
    radius_m: float = SEARCH_RADIUS_M,
    high_m: float = HIGH_CONFIDENCE_M,
    medium_m: float = MEDIUM_CONFIDENCE_M,
) -> Tuple[Optional[BusinessCandidate], Optional[ConfidenceTier]]:
    """Nearest in-radius restaurant if there is one, otherwise the nearest business."""
    in_radius = sorted((c for c in candidates if c.distance_m <= radius_m), key=lambda c: c.distance_m)
    restaurants = [c for c in in_radius if c.business_type is BusinessType.RESTAURANT]
    considered = restaurants or in_radius
    if not considered:
        return None, None

    closest = considered[0]
    if closest.distance_m <= high_m:
        tier = ConfidenceTier.HIGH
    elif closest.distance_m <= medium_m:
        tier = ConfidenceTier.MEDIUM
    else:
        tier = ConfidenceTier.LOW
    return closest, tier


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocationDetector:
    """Single-flight detector: Idle -> Detecting -> Resolved | Failed.

    Only one detection runs at a time. Callers arriving while one is in flight
    wait for its outcome; callers arriving within the echo window of a resolved
    detection get that context back without new sensor or network work.
    """

    def __init__(
        self,
        aggregator: CategoryAggregator,
        fingerprint_cache: FingerprintCache,
        sensor: SensorGateway,
        fingerprint_source: Optional[FingerprintSource] = None,
        radius_m: int = SEARCH_RADIUS_M,
        high_confidence_m: float = HIGH_CONFIDENCE_M,
        medium_confidence_m: float = MEDIUM_CONFIDENCE_M,
        echo_seconds: float = 5.0,
        permission_timeout: float = 10.0,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._aggregator = aggregator
        self._fingerprints = fingerprint_cache
        self._sensor = sensor
        self._fingerprint_source = fingerprint_source
        self._radius_m = radius_m
        self._high_m = high_confidence_m
        self._medium_m = medium_confidence_m
        self._echo_seconds = echo_seconds
        self._permission_timeout = permission_timeout
        self._clock = clock
        self._monotonic = monotonic

        self._lock = threading.Lock()
        self._state = DetectorState.IDLE
        self._in_flight: Optional[Future] = None
        self._echo: Optional[Tuple[DetectionContext, float]] = None

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def last_context(self) -> Optional[DetectionContext]:
        with self._lock:
            return self._echo[0] if self._echo else None

    def clear_echo(self) -> None:
        with self._lock:
            self._echo = None

    def detect_current_business(self) -> DetectionOutcome:
        with self._lock:
            echo = self._fresh_echo()
            if echo is not None:
                logger.info("Returning cached detection result")
                return DetectionOutcome(context=echo)
            if self._in_flight is not None:
                future = self._in_flight
                leader = False
            else:
                future = Future()
                self._in_flight = future
                self._state = DetectorState.DETECTING
                leader = True

        if not leader:
            logger.info("Detection already in progress; waiting for its result")
            return future.result()

        try:
            outcome = self._detect()
        except Exception as exc:
            with self._lock:
                self._state = DetectorState.FAILED
                self._in_flight = None
            future.set_exception(exc)
            raise

        with self._lock:
            if outcome.context is not None:
                self._echo = (outcome.context, self._monotonic())
                self._state = DetectorState.RESOLVED
            else:
                self._state = DetectorState.FAILED
            self._in_flight = None
        future.set_result(outcome)
        return outcome

    def _fresh_echo(self) -> Optional[DetectionContext]:
        if self._echo is None:
            return None
        context, stamped = self._echo
        if self._monotonic() - stamped < self._echo_seconds:
            return context
        return None

    def _detect(self) -> DetectionOutcome:
        logger.info("Starting location detection")
        fingerprint = self._read_fingerprint()
        if fingerprint:
            cached = self._fingerprints.lookup(fingerprint)
            if cached is not None:
                # Informational only: live results always win.
                logger.info("Found cached location for fingerprint: %s; refreshing with live data", cached.business_name)
                try:
                    self._fingerprints.touch(fingerprint)
                except StorageError as exc:
                    logger.warning("Could not update fingerprint usage: %s", exc)

        if not await_permission(self._sensor, self._permission_timeout):
            logger.warning("Location permission denied")
            return DetectionOutcome(failure=FailureReason.PERMISSION_DENIED)

        try:
            position = acquire_fix(self._sensor)
        except SensorError as exc:
            logger.warning("Unable to determine current location: %s", exc)
            return DetectionOutcome(failure=FailureReason.SENSOR_UNAVAILABLE)

        origin = Coordinate(position.lat, position.lng)
        try:
            candidates = self._aggregator.find_nearby(origin, self._radius_m)
        except AggregationError as exc:
            logger.error("Nearby business search failed: %s", exc)
            return DetectionOutcome(failure=FailureReason.AGGREGATION_FAILED)

        suggested, tier = choose_suggestion(candidates, self._radius_m, self._high_m, self._medium_m)
        self._log_suggestion(candidates, suggested, tier)

        if suggested is not None and fingerprint:
            confidence = 1.0 if tier is ConfidenceTier.HIGH else 0.8
            try:
                self._fingerprints.store(fingerprint, suggested, confidence)
            except StorageError as exc:
                logger.warning("Could not cache fingerprint mapping: %s", exc)

        context = DetectionContext(
            lat=position.lat,
            lng=position.lng,
            accuracy_m=position.accuracy_m,
            timestamp=self._clock(),
            fingerprint=fingerprint,
            candidates=tuple(candidates),
            suggested=suggested,
            confidence_tier=tier,
        )
        logger.info("Location context created with %d nearby businesses", len(candidates))
        return DetectionOutcome(context=context)

    def _read_fingerprint(self) -> Optional[str]:
        if self._fingerprint_source is None:
            return None
        try:
            return self._fingerprint_source.read_fingerprint() or None
        except Exception as exc:  # noqa: BLE001
            logger.info("Network fingerprint unavailable: %s", exc)
            return None

    @staticmethod
    def _log_suggestion(
        candidates: List[BusinessCandidate],
        suggested: Optional[BusinessCandidate],
        tier: Optional[ConfidenceTier],
    ) -> None:
        for index, candidate in enumerate(candidates[:3], start=1):
            logger.debug(
                "%d. %s (%s) - %.0fm",
                index,
                candidate.name,
                candidate.business_type.display_name,
                candidate.distance_m,
            )
        if suggested is None:
            logger.info("No suitable business suggestion found")
        else:
            logger.info(
                "%s confidence suggestion: %s (%s) at %.0fm",
                tier.value.capitalize(),
                suggested.name,
                suggested.business_type.display_name,
                suggested.distance_m,
            )
