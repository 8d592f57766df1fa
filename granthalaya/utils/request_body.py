from __future__ import annotations

from typing import Any

from flask import request
from werkzeug.exceptions import BadRequest


def json_object() -> dict[str, Any]:
    """Return the request's JSON object; a missing or unparsable body is ``{}``.

    Raises :class:`BadRequest` when the body is valid JSON but not an object.
    """

    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object.")
    return payload


def optional_string(payload: dict[str, Any], key: str) -> str | None:
    """Return ``payload[key]`` when it is a string or missing, else answer 400."""

    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise BadRequest(f"{key} must be a string.")
    return value
