"""Generation and parsing of Granthalaya product codes.

A product code identifies one sellable product for its whole life. The format
is ``GG-{TYPE}-{SLUG}-{SEQUENCE}`` where ``TYPE`` is a two letter product type
code, ``SLUG`` is an upper-cased label-safe derivation of the product name (at
most 15 characters) and ``SEQUENCE`` is a zero-padded, at least five digit
number. Codes are printed on 2x1 inch stickers, so their length stays bounded.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict


class ProductCodeError(ValueError):
    """Raised when a product code cannot be generated or is misused."""


CODE_PREFIX = "GG"
DEFAULT_SEQUENCE = 101
SLUG_MAX_LENGTH = 15
SEQUENCE_WIDTH = 5

PRODUCT_TYPES: Dict[str, str] = {
    "BOOK": "BK",
    "SAMAGRI": "SM",
    "GOBAR": "GB",
    "VASTRA": "VS",
    "INCENSE": "IN",
    "OTHER": "OT",
}

_TYPE_NAMES: Dict[str, str] = {code: name for name, code in PRODUCT_TYPES.items()}

_NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9]+")
_PRODUCT_CODE_PATTERN = re.compile(
    rf"^{CODE_PREFIX}-([A-Z]{{2}})-([A-Z0-9]+(?:-[A-Z0-9]+)*)-(\d{{{SEQUENCE_WIDTH},}})$"
)


@dataclass(frozen=True)
class ParsedProductCode:
    type_code: str
    type_name: str | None
    slug: str
    sequence: int


def resolve_type_code(product_type: str | None) -> str:
    """Return the two letter code for a type name (``BOOK``) or code (``BK``)."""

    normalized = str(product_type or "").strip().upper()
    if normalized in PRODUCT_TYPES:
        return PRODUCT_TYPES[normalized]
    if normalized in _TYPE_NAMES:
        return normalized
    raise ProductCodeError(f"Unknown product type '{product_type}'.")


def type_name_for_code(type_code: str | None) -> str | None:
    if not type_code:
        return None
    return _TYPE_NAMES.get(type_code.strip().upper())


def slugify_name(name: str | None) -> str:
    """Lower-case ``name`` and collapse every non-alphanumeric run to one hyphen."""

    slug = _NON_ALNUM_PATTERN.sub("-", (name or "").lower()).strip("-")
    # Truncation can expose a hyphen at the cut point.
    return slug[:SLUG_MAX_LENGTH].rstrip("-")


def _normalize_sequence(sequence: int | str) -> int:
    if isinstance(sequence, bool):
        raise ProductCodeError("Sequence must be a number.")
    if isinstance(sequence, int):
        value = sequence
    else:
        raw = str(sequence).strip()
        if not (raw.isascii() and raw.isdigit()):
            raise ProductCodeError(f"Sequence '{sequence}' must be numeric.")
        value = int(raw)
    if value < 0:
        raise ProductCodeError("Sequence cannot be negative.")
    return value


def generate_product_code(
    product_type: str,
    name: str,
    sequence: int | str = DEFAULT_SEQUENCE,
) -> str:
    """Build the immutable product code for a product.

    The function is pure: identical inputs always produce the identical code.
    It does not check uniqueness; the ``product.product_code`` unique
    constraint does.

    Raises:
        ProductCodeError: for unknown types, names without any ASCII letter or
        digit, and negative or non-numeric sequences.
    """

    type_code = resolve_type_code(product_type)
    slug = slugify_name(name)
    if not slug:
        raise ProductCodeError(
            f"Name '{name}' does not contain any letters or digits for a product code."
        )
    padded_sequence = f"{_normalize_sequence(sequence):0{SEQUENCE_WIDTH}d}"
    return f"{CODE_PREFIX}-{type_code}-{slug.upper()}-{padded_sequence}"


def parse_product_code(code: str | None) -> ParsedProductCode | None:
    if not code:
        return None
    match = _PRODUCT_CODE_PATTERN.match(code.strip().upper())
    if not match:
        return None
    type_code, slug, sequence_raw = match.groups()
    return ParsedProductCode(
        type_code=type_code,
        type_name=type_name_for_code(type_code),
        slug=slug,
        sequence=int(sequence_raw),
    )


def is_product_code(value: str | None) -> bool:
    return parse_product_code(value) is not None
