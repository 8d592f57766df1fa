"""QR payload framing for product, rack and order labels.

A payload is a JSON object carrying exactly one recognized key. The key names
the kind of identifier, so decoding checks them in a fixed priority order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


class ScanKind:
    PRODUCT = "PRODUCT"
    RACK = "RACK"
    ORDER = "ORDER"

    ALL_KINDS = (PRODUCT, RACK, ORDER)


# Decoding priority follows this ordering.
PAYLOAD_KEYS: tuple[tuple[str, str], ...] = (
    ("productCode", ScanKind.PRODUCT),
    ("rackId", ScanKind.RACK),
    ("orderId", ScanKind.ORDER),
)

_KEY_FOR_KIND = {kind: key for key, kind in PAYLOAD_KEYS}


@dataclass(frozen=True)
class DecodedPayload:
    kind: str
    identifier: str


def encode_payload(kind: str, identifier: str) -> str:
    try:
        key = _KEY_FOR_KIND[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown scan kind '{kind}'.") from exc
    return json.dumps({key: identifier}, separators=(",", ":"))


def format_product_qr(product_code: str) -> str:
    return encode_payload(ScanKind.PRODUCT, product_code)


def format_rack_qr(rack_id: str) -> str:
    return encode_payload(ScanKind.RACK, rack_id)


def format_order_qr(order_id: str) -> str:
    return encode_payload(ScanKind.ORDER, order_id)


def _coerce_identifier(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str) or not value:
        return None
    return value


def decode_payload(text: str | None) -> DecodedPayload | None:
    """Decode a QR payload; ``None`` means "not one of our payloads".

    Malformed JSON is an expected input (a scanner may read any QR code), so
    it is reported as ``None`` and never raised.
    """

    if not text:
        return None
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    for key, kind in PAYLOAD_KEYS:
        identifier = _coerce_identifier(data.get(key))
        if identifier is not None:
            return DecodedPayload(kind=kind, identifier=identifier)
    return None
