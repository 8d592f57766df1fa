from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request

from granthalaya.extensions import scanner_registry
from granthalaya.scanner import KeyEvent, ScanEvent, classify_scan
from granthalaya.utils.request_body import json_object

bp = Blueprint("scanning", __name__, url_prefix="/scan")

MAX_EVENTS_PER_REQUEST = 2048


def serialize_scan(event: ScanEvent) -> dict[str, str]:
    return {"kind": event.kind, "identifier": event.identifier}


def parse_key_events(payload: Any) -> list[KeyEvent]:
    """Turn ``{"events": [{"key": "G", "at": 12.5}, ...]}`` into key events."""

    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object.")
    raw_events = payload.get("events")
    if not isinstance(raw_events, list):
        raise ValueError("events must be a list.")
    if len(raw_events) > MAX_EVENTS_PER_REQUEST:
        raise ValueError(f"At most {MAX_EVENTS_PER_REQUEST} events per request.")

    events: list[KeyEvent] = []
    for index, raw in enumerate(raw_events):
        if isinstance(raw, str):
            events.append(KeyEvent(raw))
            continue
        if not isinstance(raw, dict) or not isinstance(raw.get("key"), str):
            raise ValueError(f"Event {index} must have a string key.")
        at = raw.get("at")
        if at is not None and (isinstance(at, bool) or not isinstance(at, (int, float))):
            raise ValueError(f"Event {index} has a non-numeric timestamp.")
        events.append(KeyEvent(raw["key"], at))
    return events


@bp.post("/api/classify")
def classify():
    payload = json_object()
    raw = payload.get("value")
    if not isinstance(raw, str):
        return jsonify({"error": "value must be a string."}), 400
    event = classify_scan(raw)
    if event is None:
        return jsonify({"scan": None})
    return jsonify({"scan": serialize_scan(event)})


@bp.post("/api/stations/<station>/keys")
def feed_station(station: str):
    try:
        events = parse_key_events(request.get_json(silent=True))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    registry = scanner_registry()
    scans = registry.feed(station, events)
    if scans:
        current_app.logger.info("Station %s produced %d scan(s)", station, len(scans))
    return jsonify(
        {
            "station": station,
            "scans": [serialize_scan(scan) for scan in scans],
            "buffer_length": len(registry.get(station).buffer),
        }
    )


@bp.delete("/api/stations/<station>")
def release_station(station: str):
    released = scanner_registry().release(station)
    return jsonify({"station": station, "released": released})
