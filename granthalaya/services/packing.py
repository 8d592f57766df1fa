"""Packing mode: verify an order's items by scanning before it ships.

An operator scans the order label, optionally the rack labels the items sit
on, and then every product label. Product scans are persisted as item-level
progress so another station (or the mobile app) can pick up where this one
left off. The order can be marked packed once every unit is verified.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func

from granthalaya.audit import record_admin_action
from granthalaya.extensions import db
from granthalaya.models import AdminLog, CustomerOrder, CustomerOrderItem, DeliveryStatus
from granthalaya.qr_payload import ScanKind
from granthalaya.scanner import ScanEvent
from granthalaya.services.racks import normalize_rack_id

_ORDER_PREFIX_PATTERN = re.compile(r"^(?:ORD-|#)+", re.IGNORECASE)

LEVEL_SUCCESS = "success"
LEVEL_INFO = "info"
LEVEL_ERROR = "error"


class PackingError(ValueError):
    """Raised when a packing action is not allowed in the current state."""


@dataclass(frozen=True)
class PackingOutcome:
    level: str
    message: str
    kind: str | None = None
    identifier: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "message": self.message,
            "kind": self.kind,
            "identifier": self.identifier,
        }


def _short_reference(order: CustomerOrder) -> str:
    return order.order_number[-8:]


def find_order(reference: str | None) -> CustomerOrder | None:
    """Resolve a scanned or typed order reference.

    Tries the reference as given and without its ``ORD-``/``#`` prefix, first
    exactly and then case-insensitively, and finally as a customer name.
    """

    raw = (reference or "").strip()
    if not raw:
        return None
    stripped = _ORDER_PREFIX_PATTERN.sub("", raw).strip()
    candidates = [raw]
    if stripped and stripped != raw:
        candidates.append(stripped)

    for candidate in candidates:
        order = CustomerOrder.query.filter_by(order_number=candidate).first()
        if order is not None:
            return order

    for candidate in candidates:
        order = CustomerOrder.query.filter(
            func.lower(CustomerOrder.order_number) == candidate.lower()
        ).first()
        if order is not None:
            return order

    if len(stripped) > 3:
        return (
            CustomerOrder.query.filter(
                func.lower(CustomerOrder.customer_name) == stripped.lower()
            )
            .order_by(CustomerOrder.created_at.desc())
            .first()
        )
    return None


def order_progress(order: CustomerOrder | None) -> int:
    if order is None:
        return 0
    total = order.total_units
    if total <= 0:
        return 0
    return round(order.verified_units * 100 / total)


def serialize_order(order: CustomerOrder) -> dict[str, Any]:
    return {
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "status": order.status,
        "delivery_status": order.delivery_status,
        "packed_by": order.packed_by,
        "packed_at": order.packed_at.isoformat() if order.packed_at else None,
        "progress": order_progress(order),
        "items": [
            {
                "product_id": item.product_id,
                "product_code": item.product_code,
                "title": item.title,
                "quantity": item.quantity,
                "verified_quantity": item.verified_quantity,
                "rack_id": item.rack_id,
            }
            for item in order.items
        ],
    }


@dataclass
class PackingStation:
    station_id: str
    order_id: int | None = None
    scanned_rack: str | None = None
    verified_racks: set[str] = field(default_factory=set)

    @property
    def order(self) -> CustomerOrder | None:
        if self.order_id is None:
            return None
        return db.session.get(CustomerOrder, self.order_id)

    @property
    def progress(self) -> int:
        return order_progress(self.order)

    def reset(self) -> None:
        self.order_id = None
        self.scanned_rack = None
        self.verified_racks = set()

    def handle_scan(self, event: ScanEvent) -> PackingOutcome:
        if event.kind == ScanKind.ORDER:
            outcome = self.load_order(event.identifier)
        elif event.kind == ScanKind.RACK:
            outcome = self.verify_rack(event.identifier)
        else:
            outcome = self.verify_product(event.identifier)
        return PackingOutcome(
            level=outcome.level,
            message=outcome.message,
            kind=event.kind,
            identifier=event.identifier,
        )

    def load_order(self, reference: str) -> PackingOutcome:
        order = find_order(reference)
        if order is None:
            reference_display = _ORDER_PREFIX_PATTERN.sub("", reference or "").strip()
            return PackingOutcome(LEVEL_ERROR, f"Order not found: {reference_display}")

        self.order_id = order.id
        self.scanned_rack = None
        self.verified_racks = set()
        if order.delivery_status == DeliveryStatus.PACKED:
            return PackingOutcome(LEVEL_INFO, "Order is already packed.")
        return PackingOutcome(LEVEL_SUCCESS, f"Order loaded: #{_short_reference(order)}")

    def verify_rack(self, rack_id: str) -> PackingOutcome:
        clean_rack = normalize_rack_id(rack_id) or (rack_id or "").strip().upper()
        self.scanned_rack = clean_rack

        order = self.order
        if order is None:
            return PackingOutcome(LEVEL_INFO, f"Rack scanned: {clean_rack}")

        if any(item.rack_id == clean_rack for item in order.items):
            self.verified_racks.add(clean_rack)
            return PackingOutcome(LEVEL_SUCCESS, f"Rack verified: {clean_rack}")
        return PackingOutcome(LEVEL_INFO, f"Rack {clean_rack} not needed for this order")

    def _match_item(self, order: CustomerOrder, code: str) -> CustomerOrderItem | None:
        normalized = code.strip().upper()
        for item in order.items:
            if item.product_code and item.product_code.upper() == normalized:
                return item
        # Legacy labels carry the product id instead of a product code.
        for item in order.items:
            if item.product_id is not None and str(item.product_id) == normalized:
                return item
        return None

    def verify_product(self, code: str) -> PackingOutcome:
        order = self.order
        if order is None:
            return PackingOutcome(LEVEL_ERROR, "Scan an order first")

        item = self._match_item(order, code or "")
        if item is None:
            return PackingOutcome(LEVEL_ERROR, f"Item not in order: {code}")

        if (item.verified_quantity or 0) >= item.quantity:
            return PackingOutcome(LEVEL_INFO, f"Item already fully verified: {item.title}")

        item.verified_quantity = (item.verified_quantity or 0) + 1
        order.updated_at = datetime.utcnow()
        db.session.commit()
        return PackingOutcome(LEVEL_SUCCESS, f"Verified: {item.title}")

    def complete(self, packed_by: str | None = None) -> PackingOutcome:
        order = self.order
        if order is None:
            raise PackingError("Scan an order first.")
        if order.delivery_status == DeliveryStatus.PACKED:
            return PackingOutcome(LEVEL_INFO, "Order is already packed.")
        if order_progress(order) < 100:
            raise PackingError("Every item must be verified before packing is complete.")

        now = datetime.utcnow()
        order.status = DeliveryStatus.PACKED
        order.delivery_status = DeliveryStatus.PACKED
        order.packed_by = packed_by or "admin"
        order.packed_at = now
        order.updated_at = now
        db.session.commit()

        record_admin_action(
            AdminLog.ACTION_UPDATE,
            "orders",
            order.order_number,
            details="Verified via packing mode",
            new_data={"delivery_status": order.delivery_status, "packed_by": order.packed_by},
            admin_user=packed_by,
        )
        return PackingOutcome(LEVEL_SUCCESS, "Order marked as packed.")

    def snapshot(self) -> dict[str, Any]:
        order = self.order
        return {
            "station": self.station_id,
            "order": serialize_order(order) if order is not None else None,
            "scanned_rack": self.scanned_rack,
            "verified_racks": sorted(self.verified_racks),
            "progress": order_progress(order),
        }


class PackingStationRegistry:
    """Keeps one ``PackingStation`` per station id."""

    def __init__(self) -> None:
        self._stations: dict[str, PackingStation] = {}
        self._lock = threading.Lock()

    def get(self, station_id: str) -> PackingStation:
        with self._lock:
            station = self._stations.get(station_id)
            if station is None:
                station = PackingStation(station_id=station_id)
                self._stations[station_id] = station
            return station

    def release(self, station_id: str) -> bool:
        with self._lock:
            return self._stations.pop(station_id, None) is not None
