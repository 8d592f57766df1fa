"""One-time backfill of product codes for products created before codes existed.

The run is guarded by a lock row in ``system_metadata``. Once the lock says
``completed`` the migration refuses to run again. The lock is read and then
written in separate steps, so two runners started at the same moment could
both pass the check; the migration is triggered manually by one administrator,
which keeps that window closed in practice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from granthalaya.extensions import db
from granthalaya.models import Product, SystemMetadata
from granthalaya.product_codes import (
    DEFAULT_SEQUENCE,
    PRODUCT_TYPES,
    ProductCodeError,
    generate_product_code,
    resolve_type_code,
)

logger = logging.getLogger(__name__)

DEFAULT_MIGRATION_KEY = "granthalaya_migration_v1"
SYSTEM_MIGRATION_USER = "system_migration"


class MigrationError(RuntimeError):
    """Raised when the backfill could not be committed; the lock stays unwritten."""


@dataclass(frozen=True)
class MigrationResult:
    processed_count: int
    already_completed: bool = False


def get_migration_lock(migration_key: str = DEFAULT_MIGRATION_KEY) -> SystemMetadata | None:
    return db.session.get(SystemMetadata, migration_key)


def is_migration_completed(migration_key: str = DEFAULT_MIGRATION_KEY) -> bool:
    lock = get_migration_lock(migration_key)
    return bool(lock is not None and lock.completed)


def _assign_missing_codes(products: list[Product], created_by: str, now: datetime) -> int:
    processed = 0
    failures: list[str] = []
    for index, product in enumerate(products):
        if product.product_code:
            continue
        try:
            type_code = resolve_type_code(product.type or PRODUCT_TYPES["BOOK"])
            # Sequence follows the product's position among all products.
            code = generate_product_code(type_code, product.name, index + DEFAULT_SEQUENCE)
        except ProductCodeError as exc:
            failures.append(f"product {product.id}: {exc}")
            continue

        product.type = type_code
        product.product_code = code
        product.updated_at = now
        if product.created_at is None:
            product.created_at = now
        if not product.created_by:
            product.created_by = created_by
        processed += 1

    if failures:
        raise MigrationError(
            "Cannot assign product codes: " + "; ".join(failures)
        )
    return processed


def run_once(
    migration_key: str = DEFAULT_MIGRATION_KEY,
    *,
    created_by: str = SYSTEM_MIGRATION_USER,
) -> MigrationResult:
    """Assign product codes to every product lacking one, at most once.

    Raises:
        MigrationError: if any product cannot receive a code or the batched
        update fails. The session is rolled back and the lock is not written,
        so a retry only reprocesses products still missing a code.
    """

    if is_migration_completed(migration_key):
        logger.info("Product code migration %s already completed; skipping", migration_key)
        return MigrationResult(processed_count=0, already_completed=True)

    now = datetime.utcnow()
    products = Product.query.order_by(Product.id.asc()).all()
    logger.info("Product code migration %s scanning %d products", migration_key, len(products))

    try:
        processed = _assign_missing_codes(products, created_by, now)
        if processed:
            db.session.commit()
    except MigrationError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Product code migration %s failed to commit", migration_key)
        raise MigrationError(f"Failed to apply product codes: {exc}") from exc

    lock = get_migration_lock(migration_key)
    if lock is None:
        lock = SystemMetadata(key=migration_key)
        db.session.add(lock)
    lock.completed = True
    lock.processed_count = processed
    lock.completed_at = now
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Product code migration %s could not write its lock", migration_key)
        raise MigrationError(f"Failed to record migration completion: {exc}") from exc

    logger.info("Product code migration %s assigned %d codes", migration_key, processed)
    return MigrationResult(processed_count=processed)
