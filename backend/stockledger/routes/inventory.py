# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/stockledger/routes/inventory.py
"""
Inventory routes: the stock adjustment protocol, partner payments and the
transaction log.

Every mutating call runs inside run_with_retry: a StockConflict (stale read)
re-runs the whole adjustment against fresh state. Ledger rule violations are
returned straight away.

Time semantics: timestamps are serialized as ISO-8601 UTC with a trailing Z.
"""
from flask import Blueprint, current_app, request, g

from ..responses import error_response
from ..services.concurrency import run_with_retry
from ..services.inventory_service import (
    InventoryError,
    adjust_stock,
    get_product_for_owner,
    list_partner_payments,
    record_partner_payment,
)
from ..services.reporting_service import ReportError, transaction_history
from ..validation import (
    MAX_QUANTITY,
    ValidationError,
    coerce_int,
    enforce_transaction_reason,
    parse_partner_payment,
    parse_stock_adjustment,
)
from ..decorators import require_owner


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _limit_arg(default: int) -> int:
    raw = request.args.get("limit")
    if raw is None:
        return default
    limit = coerce_int("limit", raw)
    if limit <= 0 or limit > MAX_QUANTITY:
        raise ValidationError("limit must be a positive integer")
    return limit


@inventory_bp.post("/adjust")
@require_owner
def adjust_inventory_route():
    """
    Apply one stock adjustment.

    Body:
    - product_id: int
    - adjustment_type: sold_to_customer | sold_to_partner | received_new_stock
    - quantity: positive int
    - sale_price_cents: int (optional, sold_* only)
    - is_paid: bool (optional, sold_to_partner only)

    Returns 201 with the log entry and the updated product, 400 for a bad
    quantity, 404 for an unknown product, 409 for insufficient stock.
    """
    payload = request.get_json(silent=True) or {}

    try:
        adjustment = parse_stock_adjustment(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        tx = run_with_retry(lambda: adjust_stock(owner_id=g.owner_id, **adjustment))
    except InventoryError as e:
        return error_response(e)

    product = get_product_for_owner(g.owner_id, adjustment["product_id"])
    return {"transaction": tx.to_dict(), "product": product.to_dict()}, 201


@inventory_bp.post("/partner-payments")
@require_owner
def record_partner_payment_route():
    """Credit a payment received from the partner against one product."""
    payload = request.get_json(silent=True) or {}

    try:
        parsed = parse_partner_payment(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        payment = run_with_retry(lambda: record_partner_payment(owner_id=g.owner_id, **parsed))
    except InventoryError as e:
        return error_response(e)

    product = get_product_for_owner(g.owner_id, parsed["product_id"])
    return {"payment": payment.to_dict(), "product": product.to_dict()}, 201


@inventory_bp.get("/partner-payments")
@require_owner
def list_partner_payments_route():
    """
    Payment history, most recent first.

    Query params:
    - product_id: int (optional)
    - limit: int (optional, default 100)
    """
    try:
        product_id = request.args.get("product_id")
        product_id = coerce_int("product_id", product_id) if product_id is not None else None
        limit = _limit_arg(100)
    except ValidationError as e:
        return {"error": str(e)}, 400

    payments = list_partner_payments(owner_id=g.owner_id, product_id=product_id, limit=limit)
    return {"items": [p.to_dict() for p in payments], "count": len(payments)}


@inventory_bp.get("/transactions")
@require_owner
def list_transactions_route():
    """
    Inventory log, most recent first.

    Query params:
    - product_id: int (optional)
    - reason: str (optional)
    - limit: int (optional, default TRANSACTION_FEED_LIMIT)

    Rows of hard-deleted products are included with product_exists=false.
    """
    try:
        product_id = request.args.get("product_id")
        product_id = coerce_int("product_id", product_id) if product_id is not None else None
        reason = request.args.get("reason")
        if reason is not None:
            enforce_transaction_reason(reason)
        limit = _limit_arg(current_app.config.get("TRANSACTION_FEED_LIMIT", 100))
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        items = transaction_history(g.owner_id, product_id=product_id, reason=reason, limit=limit)
    except ReportError as e:
        return {"error": str(e)}, 400

    return {"items": items, "count": len(items)}
