"""HTTP entrypoint exposing place lookups, detection and record matching."""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from bizlocator.core.config import get_settings
from bizlocator.core.errors import FailureReason, LocationError
from bizlocator.location.engine import LocationEngine, build_engine
from bizlocator.location.sensor import RequestSensor, StaticFingerprintSource
from bizlocator.models import LocationEntry, MaintenanceRecord
from bizlocator.vendors.google_places import GooglePlacesError, PlaceNotFoundError

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & engine ----------
app = Flask(__name__)
_engine: Optional[LocationEngine] = None
_engine_lock = threading.Lock()

_FAILURE_STATUS = {
    FailureReason.PERMISSION_DENIED: 403,
    FailureReason.SENSOR_UNAVAILABLE: 422,
    FailureReason.AGGREGATION_FAILED: 502,
}


def get_engine() -> LocationEngine:
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = build_engine()
        return _engine


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never touches the database."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "durable_cache": bool(settings.database_url),
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/places/<place_id>")
def place_details(place_id: str) -> Any:
    try:
        detail = get_engine().resolve_place_details(place_id)
    except PlaceNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except GooglePlacesError as exc:
        logger.warning("Place lookup failed for %s: %s", place_id, exc)
        return jsonify({"error": "places service unavailable"}), 502
    return jsonify({"data": detail.to_dict()}), 200


@app.post("/places/batch")
def place_details_batch() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    place_ids = payload.get("place_ids")
    if not isinstance(place_ids, list) or not all(isinstance(pid, str) for pid in place_ids):
        return jsonify({"error": "place_ids must be a list of strings"}), 400

    details = get_engine().resolve_place_details_batch(place_ids)
    missing = [pid for pid in dict.fromkeys(place_ids) if pid and pid not in details]
    return (
        jsonify({"data": {pid: detail.to_dict() for pid, detail in details.items()}, "missing": missing}),
        200,
    )


@app.post("/detect")
def detect() -> Any:
    """
    Detect the business at the supplied position.
    Optional JSON fields: lat, lng, accuracy, fingerprint. A request without
    coordinates is treated as a client without location permission.
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    try:
        sensor = RequestSensor.from_payload(payload)
    except (TypeError, ValueError):
        return jsonify({"error": "lat, lng and accuracy must be numeric"}), 400

    fingerprint_source = StaticFingerprintSource(payload.get("fingerprint"))
    try:
        outcome = get_engine().detect_current_business(sensor, fingerprint_source)
    except LocationError as exc:
        logger.exception("Detection failed: %s", exc)
        return jsonify({"error": "detection failed"}), 500

    if not outcome.ok:
        failure = outcome.failure
        return (
            jsonify(
                {
                    "error": failure.value,
                    "message": failure.user_message,
                    "recovery_suggestion": failure.recovery_suggestion,
                    "user_fixable": failure.user_fixable,
                }
            ),
            _FAILURE_STATUS[failure],
        )
    return jsonify({"data": outcome.context.to_dict()}), 200


@app.post("/locations/match")
def match_location() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    record_raw = payload.get("record")
    catalog_raw = payload.get("catalog")
    if not isinstance(record_raw, dict) or not isinstance(catalog_raw, list):
        return jsonify({"error": "record (object) and catalog (list) are required"}), 400

    try:
        catalog = [LocationEntry.from_dict(item) for item in catalog_raw]
    except (KeyError, TypeError, AttributeError):
        return jsonify({"error": "catalog entries require id and name"}), 400

    record = MaintenanceRecord.from_dict(record_raw)
    location = get_engine().match_record_to_location(record, catalog)
    return jsonify({"data": location.to_dict() if location else None}), 200


def main() -> None:
    """Binds on PORT when the platform injects one, otherwise on WORKER_PORT."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    get_engine().preload_places()

    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
