"""
prodrag - Text Utilities
=========================
Turns heterogeneous product records into the canonical text block that
gets embedded, and into the compact metadata stored next to the vector.

These helpers are consumed by the ``ETLPipeline`` and must remain
stateless and side-effect-free: the same record always yields the same
text, so re-embedding a product is reproducible.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

ProductRecord = Mapping[str, Any]
ProductMetadata = dict[str, str | float | None]


# ── Helpers ────────────────────────────────────────────────────────────

def _is_present(value: Any) -> bool:
    """``None``, ``""`` and empty collections count as absent; ``0`` does not."""
    if value is None:
        return False
    if isinstance(value, (str, Sequence, Mapping)) and not isinstance(value, (bytes, bytearray)):
        return len(value) > 0
    return True


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _join_list(value: Any) -> str | None:
    """Comma-join a list-like field; non-sequences (and plain strings) are ignored."""
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        return None
    return ", ".join(_format_scalar(item) for item in value)


def _format_specifications(value: Any) -> str | None:
    if not isinstance(value, Mapping):
        return None
    return ", ".join(f"{key}: {_format_scalar(val)}" for key, val in value.items())


def _coerce_price(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> str | None:
    return str(value) if _is_present(value) else None


# ── Public API ─────────────────────────────────────────────────────────

def flatten_product(record: ProductRecord) -> str:
    """
    Build the embeddable text block for one product.

    Fields are rendered as ``"Label: value"`` lines in a fixed order
    (name, description, category, brand, price, features,
    specifications, tags), independent of the record's key order.
    Absent fields are skipped silently; the function never raises.

    Example::

        {"name": "X", "price": 10}  →  "Product: X\\nPrice: $10"

    Args:
        record: A product document (e.g. straight from MongoDB).

    Returns:
        The newline-joined text, or ``""`` if no field is present.
    """
    parts: list[str] = []

    if _is_present(record.get("name")):
        parts.append(f"Product: {_format_scalar(record['name'])}")
    if _is_present(record.get("description")):
        parts.append(f"Description: {_format_scalar(record['description'])}")
    if _is_present(record.get("category")):
        parts.append(f"Category: {_format_scalar(record['category'])}")
    if _is_present(record.get("brand")):
        parts.append(f"Brand: {_format_scalar(record['brand'])}")
    if _is_present(record.get("price")):
        parts.append(f"Price: ${_format_scalar(record['price'])}")

    features = _join_list(record.get("features")) if _is_present(record.get("features")) else None
    if features is not None:
        parts.append(f"Features: {features}")

    specs = _format_specifications(record.get("specifications")) if _is_present(record.get("specifications")) else None
    if specs is not None:
        parts.append(f"Specifications: {specs}")

    tags = _join_list(record.get("tags")) if _is_present(record.get("tags")) else None
    if tags is not None:
        parts.append(f"Tags: {tags}")

    return "\n".join(parts)


def resolve_product_id(record: ProductRecord) -> str | None:
    """Return the database id (``_id``) or the alternate ``id`` as a string, else ``None``."""
    for key in ("_id", "id"):
        value = record.get(key)
        if _is_present(value):
            return str(value)
    return None


def build_product_metadata(record: ProductRecord, text: str | None = None) -> ProductMetadata:
    """
    Derive the metadata stored alongside a product vector.

    The id is **not** synthesised here: when the record has neither
    ``_id`` nor ``id`` the result carries ``id=None`` and the caller
    decides on a fallback.

    Args:
        record: The source product document.
        text:   Pre-computed ``flatten_product(record)``; recomputed if omitted.

    Returns:
        dict with exactly ``id``, ``name``, ``category``, ``brand``,
        ``price`` and ``text``.
    """
    return {
        "id": resolve_product_id(record),
        "name": _optional_str(record.get("name")),
        "category": _optional_str(record.get("category")),
        "brand": _optional_str(record.get("brand")),
        "price": _coerce_price(record.get("price")),
        "text": flatten_product(record) if text is None else text,
    }
