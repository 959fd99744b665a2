# Overview: Input validation, error types and business-rule checks for API payloads.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models.inventory import CYLINDER_SIZES, CYLINDER_TYPES, RECEIPT_STATUSES


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(ValueError):
    """404-level unknown entity (product, employee, assignment, receipt)."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., illegal lifecycle transition)."""


class InsufficientStockError(ConflictError):
    """409-level: the requested quantity is not available."""

    def __init__(self, message: str, *, product_id: int, requested: int, available: int):
        super().__init__(message)
        self.product_id = product_id
        self.requested = requested
        self.available = available

    @property
    def shortfall(self) -> int:
        return max(0, self.requested - self.available)

    @property
    def details(self) -> dict:
        return {
            "product_id": self.product_id,
            "requested": self.requested,
            "available": self.available,
            "shortfall": self.shortfall,
        }


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def require_positive_int(key: str, value: Any) -> int:
    if value is None:
        raise ValidationError(f"{key} is required")
    number = _coerce_int(key, value)
    if number <= 0:
        raise ValidationError(f"{key} must be > 0")
    return number


def require_non_negative_int(key: str, value: Any) -> int:
    if value is None:
        raise ValidationError(f"{key} is required")
    number = _coerce_int(key, value)
    if number < 0:
        raise ValidationError(f"{key} must be >= 0")
    return number


def parse_sale_items(items: Any) -> list[dict]:
    """
    Normalize a list of sale line items: [{"product_id", "quantity", "price_cents"?}].
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    cleaned = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        unknown = set(item) - {"product_id", "quantity", "price_cents"}
        if unknown:
            raise ValidationError(f"items[{index}] has unknown fields: {', '.join(sorted(unknown))}")
        line = {
            "product_id": require_positive_int(f"items[{index}].product_id", item.get("product_id")),
            "quantity": require_positive_int(f"items[{index}].quantity", item.get("quantity")),
        }
        if item.get("price_cents") is not None:
            price = _coerce_int(f"items[{index}].price_cents", item["price_cents"])
            if price < 0 or price > MAX_PRICE_CENTS:
                raise ValidationError(f"items[{index}].price_cents out of range")
            line["price_cents"] = price
        cleaned.append(line)
    return cleaned


def enforce_rules_purchase_receipt(patch: dict) -> None:
    if patch.get("quantity") is None or patch["quantity"] <= 0:
        raise ValidationError("quantity must be > 0")
    if patch.get("unit_cost_cents") is not None and patch["unit_cost_cents"] < 0:
        raise ValidationError("unit_cost_cents must be >= 0")
    if "status" in patch and patch["status"] not in RECEIPT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(RECEIPT_STATUSES)}")


def enforce_rules_cylinder_transaction(patch: dict) -> None:
    if patch.get("type") not in CYLINDER_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(CYLINDER_TYPES)}")
    if patch.get("cylinder_size") not in CYLINDER_SIZES:
        raise ValidationError(f"cylinder_size must be one of: {', '.join(CYLINDER_SIZES)}")
    if patch.get("quantity") is None or patch["quantity"] < 1:
        raise ValidationError("quantity must be >= 1")
    if patch.get("amount_cents") is not None and patch["amount_cents"] < 0:
        raise ValidationError("amount_cents must be >= 0")


def enforce_rules_assignment(patch: dict) -> None:
    if patch.get("quantity") is None or patch["quantity"] <= 0:
        raise ValidationError("quantity must be > 0")
