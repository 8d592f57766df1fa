from __future__ import annotations

from flask import Blueprint, jsonify, request

from granthalaya.printing.labels import render_rack_label
from granthalaya.printing.zebra import print_rack_labels
from granthalaya.services.products import serialize_product
from granthalaya.services.racks import (
    DuplicateRackError,
    RackError,
    assign_product_to_rack,
    create_rack,
    delete_rack,
    get_rack,
    search_racks,
    serialize_rack,
)
from granthalaya.utils.request_body import json_object, optional_string

bp = Blueprint("racks", __name__, url_prefix="/racks")


@bp.get("/api/racks")
def list_racks():
    racks = search_racks(request.args.get("q"))
    return jsonify({"racks": [serialize_rack(rack) for rack in racks]})


@bp.post("/api/racks")
def create_rack_api():
    payload = json_object()
    try:
        rack = create_rack(
            payload.get("rack_id"),
            payload.get("name"),
            section=payload.get("section"),
            shelf=payload.get("shelf"),
        )
    except DuplicateRackError as exc:
        return jsonify({"error": str(exc)}), 409
    except RackError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(serialize_rack(rack)), 201


@bp.post("/api/racks/<rack_id>/products")
def assign_product(rack_id: str):
    rack = get_rack(rack_id)
    if rack is None:
        return jsonify({"error": f"Rack {rack_id} not found."}), 404
    payload = json_object()
    product_code = (optional_string(payload, "product_code") or "").strip()
    if not product_code:
        return jsonify({"error": "product_code is required."}), 400
    try:
        product = assign_product_to_rack(product_code, rack.rack_id)
    except RackError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"rack": serialize_rack(rack), "product": serialize_product(product)})


@bp.post("/api/racks/<rack_id>/label")
def print_rack_label(rack_id: str):
    rack = get_rack(rack_id)
    if rack is None:
        return jsonify({"error": f"Rack {rack_id} not found."}), 404

    payload = json_object()
    if payload.get("preview"):
        return jsonify({"zpl": render_rack_label(rack), "printed": False})

    try:
        copies = int(payload.get("copies", 1))
        printed = print_rack_labels(rack, copies)
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc) or "copies must be a whole number."}), 400
    if not printed:
        return jsonify({"error": "Failed to send label to printer.", "printed": False}), 502
    return jsonify({"printed": True, "copies": copies})


@bp.delete("/api/racks/<rack_id>")
def delete_rack_api(rack_id: str):
    rack = get_rack(rack_id)
    if rack is None:
        return jsonify({"error": f"Rack {rack_id} not found."}), 404
    admin_user = optional_string(json_object(), "admin_user")
    normalized = rack.rack_id
    delete_rack(rack, admin_user=admin_user)
    return jsonify({"rack_id": normalized, "deleted": True})
