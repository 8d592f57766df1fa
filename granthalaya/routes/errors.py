from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from granthalaya.extensions import db

bp = Blueprint("errors", __name__)


@bp.app_errorhandler(HTTPException)
def handle_http_exception(error: HTTPException):
    return jsonify({"error": error.description or error.name}), error.code or 500


@bp.app_errorhandler(IntegrityError)
def handle_integrity_error(error: IntegrityError):
    db.session.rollback()
    current_app.logger.warning("Integrity error on %s: %s", request.path, error.orig)
    return jsonify({"error": "The record conflicts with existing data."}), 409


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    current_app.logger.exception(
        "Unhandled exception on %s %s", request.method, request.path, exc_info=error
    )
    db.session.rollback()

    error_message = "Internal Server Error"
    if current_app.debug or current_app.testing:
        error_message = str(error) or error_message
    return jsonify({"error": error_message, "endpoint": request.endpoint}), 500
