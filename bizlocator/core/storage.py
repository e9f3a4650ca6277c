"""Durable key-value store interface and the in-process implementation."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Protocol


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class MemoryKeyValueStore:
    """Thread-safe dict-backed store, used in tests and local runs."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)
