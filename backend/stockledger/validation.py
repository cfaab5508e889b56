from __future__ import annotations
from datetime import date
from .time_utils import parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models.inventory import TRANSACTION_REASONS
from .models.invoices import DISCOUNT_TYPES, BPS_DENOMINATOR


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest quantity accepted in a single request
MAX_QUANTITY = 1_000_000

# 100% in basis points is the most a tax rate may be
MAX_TAX_RATE_BPS = BPS_DENOMINATOR

ADJUSTMENT_TYPES = ("sold_to_customer", "sold_to_partner", "received_new_stock")

PRODUCT_PRICE_FIELDS = ("purchase_price_cents", "sale_price_cents", "partner_price_cents")
PRODUCT_OPENING_FIELDS = ("my_stock", "partner_stock", "amount_received_from_partner_cents")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate product name)."""


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


def coerce_int(key: str, value: Any) -> int:
    """Strict integer parsing: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", ""):
        return False
    raise ValidationError(f"{key} must be a boolean")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        return coerce_bool(col.key, value)

    # Dates ("YYYY-MM-DD")
    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    # JSON documents (addresses) must be objects with scalar values
    if isinstance(coltype, JSON):
        if not isinstance(value, dict):
            raise ValidationError(f"{col.key} must be an object")
        return {str(k): ("" if v is None else str(v).strip()) for k, v in value.items()}

    # Strings / Text
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

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
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

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_price(field: str, value: int | None) -> None:
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in PRODUCT_PRICE_FIELDS:
        if field in patch:
            _check_price(field, patch[field])

    for field in PRODUCT_OPENING_FIELDS:
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")


def parse_stock_adjustment(payload: dict) -> dict:
    """
    Shape check for POST /api/inventory/adjust.

    Positivity of quantity is a ledger rule (InvalidQuantity) and is enforced
    by inventory_service.adjust_stock, not here.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    allowed = {"product_id", "adjustment_type", "quantity", "sale_price_cents", "is_paid"}
    for k in payload.keys():
        if k not in allowed:
            raise ValidationError(f"Field not allowed: {k}")

    missing = sorted(f for f in ("product_id", "adjustment_type", "quantity") if payload.get(f) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    adjustment_type = str(payload["adjustment_type"]).strip()
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError(f"adjustment_type must be one of: {', '.join(ADJUSTMENT_TYPES)}")

    quantity = coerce_int("quantity", payload["quantity"])
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY}")

    sale_price_cents = None
    if payload.get("sale_price_cents") is not None:
        if adjustment_type == "received_new_stock":
            raise ValidationError("sale_price_cents must be omitted for received_new_stock")
        sale_price_cents = coerce_int("sale_price_cents", payload["sale_price_cents"])
        _check_price("sale_price_cents", sale_price_cents)

    is_paid = None
    if payload.get("is_paid") is not None:
        if adjustment_type != "sold_to_partner":
            raise ValidationError("is_paid is only valid for sold_to_partner")
        is_paid = coerce_bool("is_paid", payload["is_paid"])

    return {
        "product_id": coerce_int("product_id", payload["product_id"]),
        "adjustment_type": adjustment_type,
        "quantity": quantity,
        "sale_price_cents": sale_price_cents,
        "is_paid": is_paid,
    }


def parse_partner_payment(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    allowed = {"product_id", "amount_cents", "note"}
    for k in payload.keys():
        if k not in allowed:
            raise ValidationError(f"Field not allowed: {k}")

    missing = sorted(f for f in ("product_id", "amount_cents") if payload.get(f) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    amount_cents = coerce_int("amount_cents", payload["amount_cents"])
    if amount_cents > MAX_PRICE_CENTS:
        raise ValidationError(f"amount_cents cannot exceed {MAX_PRICE_CENTS}")

    note = payload.get("note")
    if note is not None:
        note = str(note).strip()[:255] or None

    return {
        "product_id": coerce_int("product_id", payload["product_id"]),
        "amount_cents": amount_cents,
        "note": note,
    }


def enforce_rules_invoice(patch: dict) -> None:
    if "discount_type" in patch and patch["discount_type"] not in DISCOUNT_TYPES:
        raise ValidationError(f"discount_type must be one of: {', '.join(DISCOUNT_TYPES)}")

    if "tax_rate_bps" in patch:
        rate = patch["tax_rate_bps"]
        if rate < 0 or rate > MAX_TAX_RATE_BPS:
            raise ValidationError(f"tax_rate_bps must be between 0 and {MAX_TAX_RATE_BPS}")

    if "discount_value" in patch:
        value = patch["discount_value"]
        if value < 0:
            raise ValidationError("discount_value must be >= 0")
        if patch.get("discount_type") == "percentage" and value > BPS_DENOMINATOR:
            raise ValidationError(f"discount_value cannot exceed {BPS_DENOMINATOR} bps for percentage discounts")


def enforce_rules_line_item(patch: dict) -> None:
    if "quantity" in patch:
        if patch["quantity"] <= 0:
            raise ValidationError("line item quantity must be > 0")
        if patch["quantity"] > MAX_QUANTITY:
            raise ValidationError(f"line item quantity cannot exceed {MAX_QUANTITY}")

    if "price_cents" in patch:
        _check_price("price_cents", patch["price_cents"])

    if "discount_bps" in patch:
        if patch["discount_bps"] < 0 or patch["discount_bps"] > BPS_DENOMINATOR:
            raise ValidationError(f"discount_bps must be between 0 and {BPS_DENOMINATOR}")


def enforce_transaction_reason(reason: str) -> None:
    if reason not in TRANSACTION_REASONS:
        raise ValidationError(f"reason must be one of: {', '.join(TRANSACTION_REASONS)}")
