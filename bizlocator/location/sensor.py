"""Bridges one-shot sensor callbacks into blocking, single-resolution results."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol

from bizlocator.core.errors import SensorError
from bizlocator.models import Position

logger = logging.getLogger(__name__)


class SensorGateway(Protocol):
    def request_permission(self, on_result: Callable[[bool], None]) -> None:
        ...

    def request_fix(self, on_fix: Callable[[Position], None], on_error: Callable[[Exception], None]) -> None:
        ...

    def stop(self) -> None:
        ...


class FingerprintSource(Protocol):
    def read_fingerprint(self) -> Optional[str]:
        ...


def derive_fingerprint(ssid: Optional[str], bssid: Optional[str]) -> Optional[str]:
    """Opaque key for the current network; None when the network name is unknown."""
    if not ssid:
        return None
    return f"{ssid}_{bssid or 'unknown'}".replace(" ", "_").lower()


class OneShot:
    """A result that can be resolved exactly once.

    The first call to resolve() or fail() wins; later calls are ignored and
    report False, so racing callbacks can never resolve it twice.
    """

    def __init__(self, name: str = "one-shot") -> None:
        self._name = name
        self._lock = threading.Lock()
        self._future: Future = Future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, value: Any) -> bool:
        with self._lock:
            if self._future.done():
                logger.debug("%s already resolved; ignoring value", self._name)
                return False
            self._future.set_result(value)
            return True

    def fail(self, error: BaseException) -> bool:
        with self._lock:
            if self._future.done():
                logger.debug("%s already resolved; ignoring error %s", self._name, error)
                return False
            self._future.set_exception(error)
            return True

    def wait(self, timeout: Optional[float] = None) -> Any:
        """Block for the result; raises TimeoutError when nothing arrived in time."""
        try:
            return self._future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise TimeoutError(f"{self._name} not resolved within {timeout}s") from exc


def await_permission(sensor: SensorGateway, timeout: float = 10.0) -> bool:
    """Ask for sensor permission; an answer that does not arrive in time counts as denied."""
    result = OneShot("permission")
    sensor.request_permission(result.resolve)
    try:
        return bool(result.wait(timeout))
    except TimeoutError:
        if result.resolve(False):
            logger.warning("Permission request timed out after %.0f seconds", timeout)
        return bool(result.wait(0))


def acquire_fix(sensor: SensorGateway, timeout: Optional[float] = None) -> Position:
    """Request a single position fix and stop the sensor as soon as it resolves."""
    result = OneShot("position fix")
    try:
        sensor.request_fix(result.resolve, result.fail)
        return result.wait(timeout)
    except SensorError:
        raise
    except TimeoutError as exc:
        raise SensorError("timed out waiting for a position fix") from exc
    except Exception as exc:  # noqa: BLE001
        raise SensorError(str(exc) or exc.__class__.__name__) from exc
    finally:
        sensor.stop()


class RequestSensor:
    """Sensor whose single fix was supplied by the caller, e.g. in an HTTP request.

    A request without coordinates means the client had no location access.
    """

    def __init__(self, position: Optional[Position]) -> None:
        self._position = position
        self.stopped = False

    @classmethod
    def from_payload(cls, payload: dict) -> "RequestSensor":
        lat = payload.get("lat")
        lng = payload.get("lng")
        if lat is None or lng is None:
            return cls(None)
        position = Position(
            lat=float(lat),
            lng=float(lng),
            accuracy_m=float(payload.get("accuracy") or 0.0),
            timestamp=datetime.now(timezone.utc),
        )
        return cls(position)

    def request_permission(self, on_result: Callable[[bool], None]) -> None:
        on_result(self._position is not None)

    def request_fix(self, on_fix: Callable[[Position], None], on_error: Callable[[Exception], None]) -> None:
        if self._position is None:
            on_error(SensorError("no position supplied"))
        else:
            on_fix(self._position)

    def stop(self) -> None:
        self.stopped = True


class StaticFingerprintSource:
    def __init__(self, fingerprint: Optional[str]) -> None:
        self._fingerprint = fingerprint or None

    def read_fingerprint(self) -> Optional[str]:
        return self._fingerprint
