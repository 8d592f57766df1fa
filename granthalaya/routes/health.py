from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from granthalaya.extensions import db

bp = Blueprint("health", __name__, url_prefix="/health")


@bp.get("/")
def health_status():
    checked_at = datetime.utcnow().isoformat()
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Health check could not reach the database: %s", exc)
        return (
            jsonify(
                {
                    "status": "DEGRADED",
                    "database": False,
                    "checked_at": checked_at,
                    "error": current_app.config.get("DATABASE_ERROR")
                    or "Database is unreachable",
                }
            ),
            503,
        )

    return jsonify({"status": "OK", "database": True, "checked_at": checked_at})
