from __future__ import annotations

from flask import Blueprint, jsonify, request

from granthalaya.extensions import packing_registry, scanner_registry
from granthalaya.qr_payload import ScanKind
from granthalaya.routes.scanning import parse_key_events, serialize_scan
from granthalaya.scanner import ScanEvent, classify_scan
from granthalaya.services.packing import PackingError
from granthalaya.utils.request_body import json_object, optional_string

bp = Blueprint("packing", __name__, url_prefix="/packing")


@bp.get("/api/stations/<station>")
def station_state(station: str):
    return jsonify(packing_registry().get(station).snapshot())


@bp.post("/api/stations/<station>/scan")
def scan(station: str):
    """Handle one already-captured scan, typed or decoded by a client."""

    payload = json_object()
    kind = payload.get("kind")
    identifier = payload.get("identifier")
    if isinstance(kind, str) and isinstance(identifier, str) and identifier.strip():
        if kind.upper() not in ScanKind.ALL_KINDS:
            return jsonify({"error": f"Unknown scan kind: {kind}"}), 400
        event = ScanEvent(kind.upper(), identifier.strip())
    else:
        raw = payload.get("value")
        if not isinstance(raw, str):
            return jsonify({"error": "Provide value, or kind and identifier."}), 400
        event = classify_scan(raw)
        if event is None:
            return jsonify({"error": "Scan could not be classified."}), 400

    packing_station = packing_registry().get(station)
    outcome = packing_station.handle_scan(event)
    return jsonify({"outcome": outcome.as_dict(), "station": packing_station.snapshot()})


@bp.post("/api/stations/<station>/keys")
def keys(station: str):
    try:
        events = parse_key_events(request.get_json(silent=True))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    scans = scanner_registry().feed(station, events)
    packing_station = packing_registry().get(station)
    outcomes = [
        {"scan": serialize_scan(scan), "outcome": packing_station.handle_scan(scan).as_dict()}
        for scan in scans
    ]
    return jsonify({"results": outcomes, "station": packing_station.snapshot()})


@bp.post("/api/stations/<station>/complete")
def complete(station: str):
    payload = json_object()
    packing_station = packing_registry().get(station)
    try:
        outcome = packing_station.complete(optional_string(payload, "packed_by"))
    except PackingError as exc:
        return jsonify({"error": str(exc), "station": packing_station.snapshot()}), 400
    return jsonify({"outcome": outcome.as_dict(), "station": packing_station.snapshot()})


@bp.delete("/api/stations/<station>")
def release(station: str):
    scanner_registry().release(station)
    return jsonify({"station": station, "released": packing_registry().release(station)})
