from __future__ import annotations

from typing import Any

from .errors import ValidationError
from .locations import Location, LOCATION_KINDS


# Maximum money amount: 9,999,999,999.99 (999,999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999_999

PAYMENT_METHOD_CREDIT = "credit"
PAYMENT_METHOD_PAID = "paid"
PAYMENT_METHOD_MIXED = "mixed"
PAYMENT_METHODS = (PAYMENT_METHOD_CREDIT, PAYMENT_METHOD_PAID, PAYMENT_METHOD_MIXED)


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Accepts ints (not bools) and plain digit strings with an optional sign.
    Floats, decimals and scientific notation are rejected rather than
    truncated, so "12.5" never silently becomes 12.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def require_non_negative_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number < 0:
        raise ValidationError(f"{field} must be >= 0")
    return number


def require_positive_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be > 0")
    return number


def coerce_amount_cents(value: Any, field: str) -> int:
    amount = require_non_negative_int(value, field)
    if amount > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return amount


def clean_text(value: Any, field: str, *, max_length: int | None = None, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if not text:
        if required:
            raise ValidationError(f"{field} cannot be blank")
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def parse_location(value: Any, field: str = "location") -> Location:
    """
    Normalize a location payload.

    Accepts a Location, or a mapping with either {"type", "id"} or
    {"location_type", "location_id"} keys.
    """
    if isinstance(value, Location):
        return value
    if not isinstance(value, dict):
        raise ValidationError(f"{field} must be an object with type and id")

    kind = value.get("type", value.get("location_type"))
    raw_id = value.get("id", value.get("location_id"))
    if kind not in LOCATION_KINDS:
        raise ValidationError(f"{field}.type must be one of {', '.join(LOCATION_KINDS)}")
    return Location(kind, require_positive_int(raw_id, f"{field}.id"))


def validate_payment_method(method: Any) -> str:
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
    return method


def parse_invoice_items(items: Any, *, require_location: bool, require_price: bool) -> list[dict]:
    """
    Validate invoice line input before any transaction opens.

    Returns normalized dicts with product_id, quantity, price_cents (None when
    the product's list price should apply) and location (None when the engine
    may choose).
    """
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for index, item in enumerate(items):
        label = f"items[{index}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{label} must be an object")

        price = item.get("price_cents")
        if price is None and require_price:
            raise ValidationError(f"{label}.price_cents is required")

        location = item.get("location")
        if location is None and "location_type" in item:
            location = {"type": item.get("location_type"), "id": item.get("location_id")}
        if location is None and require_location:
            raise ValidationError(f"{label}.location is required")

        lines.append({
            "product_id": require_positive_int(item.get("product_id"), f"{label}.product_id"),
            "quantity": require_positive_int(item.get("quantity"), f"{label}.quantity"),
            "price_cents": coerce_amount_cents(price, f"{label}.price_cents") if price is not None else None,
            "location": parse_location(location, f"{label}.location") if location is not None else None,
        })
    return lines


def parse_counted_items(items: Any) -> list[dict]:
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("counted_items must be a non-empty list")

    counted = []
    seen = set()
    for index, item in enumerate(items):
        label = f"counted_items[{index}]"
        if not isinstance(item, dict):
            raise ValidationError(f"{label} must be an object")
        product_id = require_positive_int(item.get("product_id"), f"{label}.product_id")
        if product_id in seen:
            raise ValidationError(f"product {product_id} counted more than once")
        seen.add(product_id)
        counted.append({
            "product_id": product_id,
            "counted_quantity": require_non_negative_int(item.get("counted_quantity"), f"{label}.counted_quantity"),
            "notes": clean_text(item.get("notes"), f"{label}.notes", max_length=255),
        })
    return counted
