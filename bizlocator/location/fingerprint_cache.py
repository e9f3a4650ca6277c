"""Persistent mapping from a local-network fingerprint to the last resolved business."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from bizlocator.core.storage import KeyValueStore
from bizlocator.models import BusinessCandidate, BusinessType, FingerprintEntry

logger = logging.getLogger(__name__)

STORE_KEY = "cached_locations"
DEFAULT_TTL = timedelta(days=30)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FingerprintCache:
    """One entry per fingerprint. Advisory only; callers re-verify with live data."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, FingerprintEntry] = {}
        self.load()

    def load(self) -> None:
        """Read persisted entries, drop expired ones and persist the pruned set."""
        raw = self._store.get(STORE_KEY)
        if raw is None:
            return
        try:
            entries = [_decode(item) for item in json.loads(raw.decode("utf-8"))]
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable fingerprint cache: %s", exc)
            return

        cutoff = self._clock() - self._ttl
        with self._lock:
            self._entries = {entry.fingerprint: entry for entry in entries if entry.last_used >= cutoff}
            dropped = len(entries) - len(self._entries)
            self._persist()
        if dropped:
            logger.info("Pruned %d expired fingerprint entries", dropped)

    def lookup(self, fingerprint: str) -> Optional[FingerprintEntry]:
        with self._lock:
            entry = self._entries.get(fingerprint)
        if entry is None or self._clock() - entry.last_used > self._ttl:
            return None
        return entry

    def store(self, fingerprint: str, business: BusinessCandidate, confidence: float) -> FingerprintEntry:
        """Replace whatever was cached for this fingerprint with a fresh entry."""
        if not fingerprint:
            raise ValueError("fingerprint is required")
        if not 0.0 <= confidence <= 1.0:
            raise ValueError("confidence must be between 0.0 and 1.0")

        entry = FingerprintEntry(
            fingerprint=fingerprint,
            business_id=business.place_id,
            business_name=business.name,
            business_type=business.business_type,
            confidence=confidence,
            last_used=self._clock(),
            use_count=1,
        )
        with self._lock:
            self._entries[fingerprint] = entry
            self._persist()
        logger.info("Cached location mapping: %s (%s) -> %s", business.name, business.business_type.value, fingerprint)
        return entry

    def touch(self, fingerprint: str) -> Optional[FingerprintEntry]:
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            entry = replace(entry, last_used=self._clock(), use_count=entry.use_count + 1)
            self._entries[fingerprint] = entry
            self._persist()
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._persist()
        logger.info("Fingerprint cache cleared")

    def stats(self) -> Tuple[int, Optional[datetime]]:
        with self._lock:
            oldest = min((entry.last_used for entry in self._entries.values()), default=None)
            return len(self._entries), oldest

    def _persist(self) -> None:
        payload: List[dict] = [_encode(entry) for entry in self._entries.values()]
        self._store.set(STORE_KEY, json.dumps(payload).encode("utf-8"))


def _encode(entry: FingerprintEntry) -> dict:
    return {
        "wifi_fingerprint": entry.fingerprint,
        "business_id": entry.business_id,
        "business_name": entry.business_name,
        "business_type": entry.business_type.value,
        "confidence": entry.confidence,
        "last_used": entry.last_used.isoformat(),
        "use_count": entry.use_count,
    }


def _decode(data: dict) -> FingerprintEntry:
    last_used = datetime.fromisoformat(data["last_used"])
    if last_used.tzinfo is None:
        last_used = last_used.replace(tzinfo=timezone.utc)
    return FingerprintEntry(
        fingerprint=data["wifi_fingerprint"],
        business_id=data["business_id"],
        business_name=data["business_name"],
        business_type=BusinessType.parse(data.get("business_type")),
        confidence=float(data.get("confidence", 0.0)),
        last_used=last_used,
        use_count=int(data.get("use_count", 1)),
    )
