from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from canteen.errors import InvalidInput
from canteen.time_utils import parse_iso_date


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(InvalidInput):
    """400-level input problem."""


@dataclass(frozen=True)
class SaleLine:
    item_id: int
    quantity: int
    unit_price_cents: int

    @property
    def total_price_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class SupplyLine:
    item_id: int
    quantity: int
    unit_price_cents: int


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings (with optional leading minus).
    Rejects bools, floats, decimals and scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", {"field": field})
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", {"field": field})
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)", {"field": field}
            )
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", {"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", {"field": field})
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", {"field": field})
    raise ValidationError(f"{field} must be an integer", {"field": field})


def coerce_cents(value: Any, field: str, *, allow_negative: bool = False, default: int | None = 0) -> int:
    if value is None:
        if default is None:
            raise ValidationError(f"{field} is required", {"field": field})
        return default
    cents = coerce_int(value, field)
    if not allow_negative and cents < 0:
        raise ValidationError(f"{field} must be >= 0", {"field": field})
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} is too large", {"field": field})
    return cents


def coerce_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", {"field": field})
    try:
        parsed = parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", {"field": field})
    if parsed is None:
        raise ValidationError(f"{field} is required", {"field": field})
    return parsed


def _line_dicts(items: Any, field: str = "items") -> list[dict]:
    if not isinstance(items, list):
        raise ValidationError(f"{field} must be a list", {"field": field})
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"{field}[{index}] must be an object", {"field": field, "index": index})
    return items


def parse_sale_lines(items: Any) -> list[SaleLine]:
    """
    Validate sale line input.

    item_id int, quantity int >= 0, unit_price_cents int >= 0, and each item
    at most once per submission.
    """
    lines: list[SaleLine] = []
    seen: set[int] = set()
    for index, raw in enumerate(_line_dicts(items)):
        item_id = coerce_int(raw.get("item_id"), f"items[{index}].item_id")
        quantity = coerce_int(raw.get("quantity"), f"items[{index}].quantity")
        if quantity < 0:
            raise ValidationError(f"items[{index}].quantity must be >= 0", {"index": index})
        unit_price = coerce_cents(raw.get("unit_price_cents"), f"items[{index}].unit_price_cents", default=None)
        if item_id in seen:
            raise ValidationError(f"Duplicate item {item_id} in sale", {"item_id": item_id})
        seen.add(item_id)
        lines.append(SaleLine(item_id=item_id, quantity=quantity, unit_price_cents=unit_price))
    return lines


def parse_supply_lines(items: Any) -> list[SupplyLine]:
    """Supply lines: quantity is a non-zero signed int; negative means correction."""
    lines: list[SupplyLine] = []
    raw_lines = _line_dicts(items)
    if not raw_lines:
        raise ValidationError("items must not be empty", {"field": "items"})
    for index, raw in enumerate(raw_lines):
        item_id = coerce_int(raw.get("item_id"), f"items[{index}].item_id")
        quantity = coerce_int(raw.get("quantity"), f"items[{index}].quantity")
        if quantity == 0:
            raise ValidationError(f"items[{index}].quantity must not be zero", {"index": index})
        unit_price = coerce_cents(raw.get("unit_price_cents"), f"items[{index}].unit_price_cents", default=None)
        lines.append(SupplyLine(item_id=item_id, quantity=quantity, unit_price_cents=unit_price))
    return lines


def require_reason(value: Any, field: str = "reason") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", {"field": field})
    return value.strip()
