from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from granthalaya.audit import record_admin_action
from granthalaya.extensions import db
from granthalaya.models import AdminLog, Product, Rack
from granthalaya.product_codes import (
    DEFAULT_SEQUENCE,
    ProductCodeError,
    generate_product_code,
    resolve_type_code,
)
from granthalaya.services.racks import normalize_rack_id


class ProductError(ValueError):
    """Raised when product data fails validation."""


class DuplicateProductError(ProductError):
    """Raised when a generated product code is already taken."""


UPDATABLE_FIELDS = (
    "name",
    "price",
    "stock_quantity",
    "category",
    "description",
    "variant_info",
    "rack_id",
    "is_active",
)


def serialize_product(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "product_code": product.product_code,
        "type": product.type,
        "name": product.name,
        "price": str(product.price) if product.price is not None else None,
        "stock_quantity": product.stock_quantity,
        "category": product.category or "",
        "description": product.description or "",
        "variant_info": product.variant_info or "",
        "rack_id": product.rack_id,
        "is_active": bool(product.is_active),
        "created_by": product.created_by,
        "created_at": product.created_at.isoformat() if product.created_at else None,
        "updated_at": product.updated_at.isoformat() if product.updated_at else None,
    }


def _parse_price(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ProductError("Price must be a number.") from exc
    if not price.is_finite() or price < 0:
        raise ProductError("Price must be a non-negative number.")
    return price.quantize(Decimal("0.01"))


def _parse_quantity(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        quantity = int(value)
    except (TypeError, ValueError) as exc:
        raise ProductError("Stock quantity must be a whole number.") from exc
    if quantity < 0:
        raise ProductError("Stock quantity cannot be negative.")
    return quantity


def _resolve_rack(value: Any) -> str | None:
    rack_id = normalize_rack_id(value)
    if rack_id is None:
        return None
    if Rack.query.filter_by(rack_id=rack_id).first() is None:
        raise ProductError(f"Rack {rack_id} does not exist.")
    return rack_id


def _parse_name(value: Any) -> str:
    if value is not None and not isinstance(value, str):
        raise ProductError("Product name must be text.")
    name = (value or "").strip()
    if not name:
        raise ProductError("Product name is required.")
    return name


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ProductError("is_active must be true or false.")


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def find_product(code: str | None) -> Product | None:
    normalized = (code or "").strip()
    if not normalized:
        return None
    product = Product.query.filter_by(product_code=normalized).first()
    if product is not None:
        return product
    return Product.query.filter(func.upper(Product.product_code) == normalized.upper()).first()


def search_products(
    query: str | None = None,
    *,
    product_type: str | None = None,
    category: str | None = None,
    limit: int = 100,
) -> list[Product]:
    products = Product.query
    if product_type:
        products = products.filter(Product.type == resolve_type_code(product_type))
    if category:
        products = products.filter(func.lower(Product.category) == category.strip().lower())
    term = (query or "").strip().lower()
    if term:
        like = f"%{term}%"
        products = products.filter(
            or_(
                func.lower(Product.name).like(like),
                func.lower(Product.product_code).like(like),
            )
        )
    return products.order_by(Product.name.asc(), Product.id.asc()).limit(limit).all()


def create_product(
    *,
    name: str,
    product_type: str,
    price: Any = None,
    stock_quantity: Any = None,
    category: str | None = None,
    description: str | None = None,
    variant_info: str | None = None,
    rack_id: str | None = None,
    created_by: str | None = None,
) -> Product:
    """Create a product and assign its code.

    The code's sequence is derived from the new row id, so the first product
    gets ``00101`` just like the first backfilled product.
    """

    clean_name = _parse_name(name)
    type_code = resolve_type_code(product_type)

    product = Product(
        name=clean_name,
        type=type_code,
        price=_parse_price(price),
        stock_quantity=_parse_quantity(stock_quantity),
        category=_optional_text(category),
        description=_optional_text(description),
        variant_info=_optional_text(variant_info),
        rack_id=_resolve_rack(rack_id),
        created_by=_optional_text(created_by),
    )
    db.session.add(product)
    try:
        db.session.flush()
        product.product_code = generate_product_code(
            type_code, clean_name, product.id + DEFAULT_SEQUENCE - 1
        )
        db.session.commit()
    except ProductCodeError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        raise DuplicateProductError("A product with this code already exists.") from exc

    record_admin_action(
        AdminLog.ACTION_CREATE,
        "products",
        product.product_code,
        new_data=serialize_product(product),
        admin_user=created_by,
    )
    return product


def update_product(
    product: Product,
    changes: Mapping[str, Any],
    *,
    admin_user: str | None = None,
) -> Product:
    if "product_code" in changes and changes["product_code"] != product.product_code:
        raise ProductCodeError(
            f"Product code {product.product_code} is immutable and cannot be changed."
        )
    unknown = sorted(set(changes) - set(UPDATABLE_FIELDS) - {"product_code"})
    if unknown:
        raise ProductError(f"Fields cannot be updated: {', '.join(unknown)}.")

    # Validate everything before touching the row.
    updates: dict[str, Any] = {}
    if "name" in changes:
        updates["name"] = _parse_name(changes["name"])
    if "price" in changes:
        updates["price"] = _parse_price(changes["price"])
    if "stock_quantity" in changes:
        updates["stock_quantity"] = _parse_quantity(changes["stock_quantity"])
    for field in ("category", "description", "variant_info"):
        if field in changes:
            updates[field] = _optional_text(changes[field])
    if "rack_id" in changes:
        updates["rack_id"] = _resolve_rack(changes["rack_id"])
    if "is_active" in changes:
        updates["is_active"] = _parse_flag(changes["is_active"])

    previous = serialize_product(product)
    for field, value in updates.items():
        setattr(product, field, value)
    db.session.commit()
    record_admin_action(
        AdminLog.ACTION_UPDATE,
        "products",
        product.product_code or product.id,
        previous_data=previous,
        new_data=serialize_product(product),
        admin_user=admin_user,
    )
    return product
