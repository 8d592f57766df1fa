from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from granthalaya.audit import recent_admin_actions
from granthalaya.models import AdminLog
from granthalaya.services.product_code_migration import MigrationError, run_once

bp = Blueprint("admin", __name__, url_prefix="/admin")


def _serialize_log(entry: AdminLog) -> dict:
    return {
        "id": entry.id,
        "admin_user": entry.admin_user,
        "action": entry.action,
        "collection": entry.collection,
        "document_id": entry.document_id,
        "details": entry.details,
        "previous_data": entry.previous_data,
        "new_data": entry.new_data,
        "platform": entry.platform,
        "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
    }


@bp.post("/api/migrations/product-codes")
def migrate_product_codes():
    migration_key = current_app.config["PRODUCT_CODE_MIGRATION_KEY"]
    try:
        result = run_once(migration_key)
    except MigrationError as exc:
        current_app.logger.error("Product code migration failed: %s", exc)
        return jsonify({"error": str(exc), "completed": False}), 500

    body = {
        "migration": migration_key,
        "processed_count": result.processed_count,
        "already_completed": result.already_completed,
        "completed": True,
    }
    if result.already_completed:
        return jsonify(body), 409
    return jsonify(body)


@bp.get("/api/logs")
def list_logs():
    try:
        limit = int(request.args.get("limit", 50))
    except (TypeError, ValueError):
        return jsonify({"error": "limit must be a whole number."}), 400
    entries = recent_admin_actions(
        limit=max(0, min(limit, 500)),
        collection=request.args.get("collection") or None,
    )
    return jsonify({"logs": [_serialize_log(entry) for entry in entries]})
