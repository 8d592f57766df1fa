"""Admin action trail for catalogue writes."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from granthalaya.extensions import db
from granthalaya.models import AdminLog

logger = logging.getLogger(__name__)


def _trimmed(value: str | None, *, limit: int) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    return value[:limit]


def _json_safe(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(item) for item in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _default_admin_user() -> str | None:
    if not has_app_context():
        return None
    return current_app.config.get("ADMIN_USER")


def record_admin_action(
    action: str,
    collection: str,
    document_id: str | int,
    *,
    details: str | None = None,
    previous_data: Mapping[str, Any] | None = None,
    new_data: Mapping[str, Any] | None = None,
    admin_user: str | None = None,
    platform: str = "api",
) -> AdminLog | None:
    """Persist an admin log entry.

    Auditing never blocks the write it describes: failures are logged, the
    session is rolled back and ``None`` is returned.
    """

    normalized_action = (action or "").strip().upper()
    if normalized_action not in AdminLog.ACTIONS:
        logger.warning("Ignoring unknown admin action %r on %s", action, collection)
        return None

    entry = AdminLog(
        admin_user=_trimmed(admin_user or _default_admin_user(), limit=120),
        action=normalized_action,
        collection=collection,
        document_id=str(document_id),
        details=_trimmed(details, limit=512)
        or f"{normalized_action} operation on {collection}",
        previous_data=_json_safe(previous_data) if previous_data else None,
        new_data=_json_safe(new_data) if new_data else None,
        platform=platform,
    )

    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to log admin action %s on %s", normalized_action, collection)
        db.session.rollback()
        return None
    return entry


def recent_admin_actions(limit: int = 50, collection: str | None = None) -> list[AdminLog]:
    if limit <= 0:
        return []
    query = AdminLog.query
    if collection:
        query = query.filter(AdminLog.collection == collection)
    return query.order_by(AdminLog.timestamp.desc(), AdminLog.id.desc()).limit(limit).all()
