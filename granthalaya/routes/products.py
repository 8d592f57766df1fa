from __future__ import annotations

from flask import Blueprint, jsonify, request

from granthalaya.printing.labels import render_product_label
from granthalaya.printing.zebra import print_product_batch, print_product_labels
from granthalaya.product_codes import ProductCodeError
from granthalaya.services.products import (
    DuplicateProductError,
    ProductError,
    create_product,
    find_product,
    search_products,
    serialize_product,
    update_product,
)
from granthalaya.utils.request_body import json_object, optional_string

bp = Blueprint("products", __name__, url_prefix="/products")

MAX_BATCH_LABELS = 200


def _product_or_404(code: str):
    product = find_product(code)
    if product is None:
        return None, (jsonify({"error": f"Product {code} not found."}), 404)
    return product, None


@bp.get("/api/products")
def list_products():
    try:
        limit = int(request.args.get("limit", 100))
    except (TypeError, ValueError):
        return jsonify({"error": "limit must be a whole number."}), 400
    try:
        products = search_products(
            request.args.get("q"),
            product_type=request.args.get("type"),
            category=request.args.get("category"),
            limit=max(1, min(limit, 500)),
        )
    except ProductCodeError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"products": [serialize_product(product) for product in products]})


@bp.post("/api/products")
def create_product_api():
    payload = json_object()
    try:
        product = create_product(
            name=payload.get("name"),
            product_type=payload.get("type") or "",
            price=payload.get("price"),
            stock_quantity=payload.get("stock_quantity"),
            category=payload.get("category"),
            description=payload.get("description"),
            variant_info=payload.get("variant_info"),
            rack_id=payload.get("rack_id"),
            created_by=optional_string(payload, "created_by"),
        )
    except DuplicateProductError as exc:
        return jsonify({"error": str(exc)}), 409
    except (ProductError, ProductCodeError) as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(serialize_product(product)), 201


@bp.get("/api/products/<code>")
def get_product(code: str):
    product, error_response = _product_or_404(code)
    if error_response:
        return error_response
    return jsonify(serialize_product(product))


@bp.patch("/api/products/<code>")
def patch_product(code: str):
    product, error_response = _product_or_404(code)
    if error_response:
        return error_response
    payload = json_object()
    admin_user = optional_string(payload, "admin_user")
    payload.pop("admin_user", None)
    try:
        product = update_product(product, payload, admin_user=admin_user)
    except (ProductError, ProductCodeError) as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(serialize_product(product))


@bp.post("/api/products/<code>/label")
def print_product_label(code: str):
    product, error_response = _product_or_404(code)
    if error_response:
        return error_response
    payload = json_object()
    if payload.get("preview"):
        return jsonify({"zpl": render_product_label(product), "printed": False})

    try:
        copies = int(payload.get("copies", 1))
        printed = print_product_labels(product, copies)
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc) or "copies must be a whole number."}), 400
    if not printed:
        return jsonify({"error": "Failed to send label to printer.", "printed": False}), 502
    return jsonify({"printed": True, "copies": copies})


@bp.post("/api/labels/batch")
def print_label_batch():
    """Print one label for each listed product code in a single job."""

    payload = json_object()
    codes = payload.get("codes")
    if (
        not isinstance(codes, list)
        or not codes
        or not all(isinstance(code, str) and code.strip() for code in codes)
    ):
        return jsonify({"error": "codes must be a non-empty list of product codes."}), 400
    if len(codes) > MAX_BATCH_LABELS:
        return jsonify({"error": f"At most {MAX_BATCH_LABELS} labels per batch."}), 400

    products = []
    missing = []
    for code in codes:
        product = find_product(code)
        if product is None:
            missing.append(code)
        else:
            products.append(product)
    if missing:
        return jsonify({"error": "Unknown product codes.", "missing": missing}), 404

    if payload.get("preview"):
        return jsonify(
            {"zpl": "\n".join(render_product_label(product) for product in products), "printed": False}
        )
    if not print_product_batch(products):
        return jsonify({"error": "Failed to send labels to printer.", "printed": False}), 502
    return jsonify({"printed": True, "count": len(products)})
