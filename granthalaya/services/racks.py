from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from granthalaya.audit import record_admin_action
from granthalaya.extensions import db
from granthalaya.models import AdminLog, Product, Rack

RACK_PREFIX = "RACK-"


class RackError(ValueError):
    """Raised when a rack operation cannot be completed."""


class DuplicateRackError(RackError):
    """Raised when a rack id is already taken."""


def _text(value: Any, label: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise RackError(f"{label} must be text.")
    return value.strip()


def normalize_rack_id(value: str | None) -> str | None:
    """Return the canonical ``RACK-XX`` form of a rack id, or ``None`` if blank."""

    if value is None:
        return None
    normalized = "-".join(str(value).split()).strip("-").upper()
    if not normalized:
        return None
    if normalized.startswith(RACK_PREFIX):
        suffix = normalized[len(RACK_PREFIX):].strip("-")
    elif normalized.startswith("RACK") and normalized != "RACK":
        suffix = normalized[len("RACK"):].strip("-")
    else:
        suffix = normalized
    if not suffix or suffix == "RACK":
        return None
    return f"{RACK_PREFIX}{suffix}"


def serialize_rack(rack: Rack) -> dict[str, Any]:
    return {
        "id": rack.id,
        "rack_id": rack.rack_id,
        "name": rack.name,
        "section": rack.section or "",
        "shelf": rack.shelf or "",
        "is_active": bool(rack.is_active),
        "product_codes": rack.product_codes,
    }


def get_rack(rack_id: str | None) -> Rack | None:
    normalized = normalize_rack_id(rack_id)
    if normalized is None:
        return None
    return Rack.query.filter_by(rack_id=normalized).first()


def search_racks(query: str | None = None) -> list[Rack]:
    racks = Rack.query
    term = (query or "").strip().lower()
    if term:
        like = f"%{term}%"
        racks = racks.filter(
            or_(
                func.lower(Rack.rack_id).like(like),
                func.lower(Rack.name).like(like),
                func.lower(func.coalesce(Rack.section, "")).like(like),
            )
        )
    return racks.order_by(Rack.rack_id.asc()).all()


def create_rack(
    rack_id: str | None,
    name: str | None,
    *,
    section: str | None = None,
    shelf: str | None = None,
) -> Rack:
    normalized = normalize_rack_id(rack_id)
    if normalized is None:
        raise RackError("Rack id is required.")
    clean_name = _text(name, "Rack name")
    if not clean_name:
        raise RackError("Rack name is required.")

    rack = Rack(
        rack_id=normalized,
        name=clean_name,
        section=_text(section, "Section") or None,
        shelf=_text(shelf, "Shelf") or None,
    )
    db.session.add(rack)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateRackError(f"Rack {normalized} already exists.") from exc
    return rack


def assign_product_to_rack(product: Product | str, rack_id: str | None) -> Product:
    """Place a product (or the product with this code) on a rack.

    A blank rack id removes the product's location.
    """

    if not isinstance(product, Product):
        code = _text(product, "Product code")
        if not code:
            raise RackError("Product code is required.")
        found = Product.query.filter(func.upper(Product.product_code) == code.upper()).first()
        if found is None:
            raise RackError(f"Product {code} does not exist.")
        product = found

    normalized = normalize_rack_id(rack_id)
    if normalized is not None:
        rack = Rack.query.filter_by(rack_id=normalized).first()
        if rack is None:
            raise RackError(f"Rack {normalized} does not exist.")
        if not rack.is_active:
            raise RackError(f"Rack {normalized} is inactive.")
    product.rack_id = normalized
    db.session.commit()
    return product


def delete_rack(rack: Rack, *, admin_user: str | None = None) -> None:
    """Delete a rack and clear the location of every product on it."""

    previous = serialize_rack(rack)
    for product in list(rack.products):
        product.rack_id = None
    db.session.delete(rack)
    db.session.commit()
    record_admin_action(
        AdminLog.ACTION_DELETE,
        "racks",
        previous["rack_id"],
        previous_data=previous,
        admin_user=admin_user,
    )
