# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

# backend/stockledger/routes/invoices.py
"""
Invoice routes.

Marking an invoice paid (on create, or by an update that flips is_paid)
deducts its product-linked lines from stock in the same DB transaction as the
invoice write. A shortfall returns 409 and nothing is saved.

Body shape (POST / PUT):
- invoice fields (name, invoice_number, issue_date, due_date, company, client,
  notes, currency, tax_rate_bps, is_tax_enabled, discount_type,
  discount_value, is_paid)
- line_items: list of {description, quantity, unit, price_cents,
  discount_bps, product_id}. On PUT, when present, it replaces all lines.
"""
from flask import Blueprint, request, g

from ..models import Invoice, InvoiceLineItem
from ..responses import error_response
from ..services import invoice_service, products_service
from ..services.concurrency import run_with_retry
from ..services.inventory_service import InventoryError
from ..services.invoice_service import InvoiceError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_invoice,
    enforce_rules_line_item,
    coerce_bool,
    ValidationError,
    ConflictError,
)
from ..decorators import require_owner

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields=set(invoice_service.INVOICE_MUTABLE_FIELDS),
    required_on_create={"name", "invoice_number"},
)

LINE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields=set(invoice_service.LINE_ITEM_FIELDS),
    required_on_create={"description", "quantity"},
)

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _parse_invoice_body(payload: dict, *, partial: bool) -> tuple[dict, list[dict] | None]:
    """Split and validate the invoice fields and the line_items list."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    body = dict(payload)
    raw_lines = body.pop("line_items", None)

    patch = validate_payload(model=Invoice, payload=body, policy=INVOICE_POLICY, partial=partial)
    enforce_rules_invoice(patch)

    if raw_lines is None:
        return patch, None if partial else []

    if not isinstance(raw_lines, list):
        raise ValidationError("line_items must be a list")

    lines = []
    for index, raw in enumerate(raw_lines):
        try:
            line = validate_payload(model=InvoiceLineItem, payload=raw, policy=LINE_ITEM_POLICY, partial=False)
            enforce_rules_line_item(line)
        except ValidationError as e:
            raise ValidationError(f"line_items[{index}]: {e}")
        lines.append(line)
    return patch, lines


@invoices_bp.get("")
@require_owner
def list_invoices_route():
    """
    Invoices, newest first.

    Query params:
    - is_paid: true/false (optional)
    """
    is_paid = request.args.get("is_paid")
    try:
        is_paid = coerce_bool("is_paid", is_paid) if is_paid is not None else None
    except ValidationError as e:
        return {"error": str(e)}, 400

    invoices = invoice_service.list_invoices(g.owner_id, is_paid=is_paid)
    return {"items": [i.to_dict() for i in invoices], "count": len(invoices)}


@invoices_bp.post("")
@require_owner
def create_invoice_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch, lines = _parse_invoice_body(payload, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        invoice = run_with_retry(
            lambda: invoice_service.add_invoice(owner_id=g.owner_id, patch=patch, lines=lines)
        )
    except (ValidationError, InventoryError, InvoiceError) as e:
        return error_response(e)

    return invoice.to_dict(), 201


@invoices_bp.get("/<int:invoice_id>")
@require_owner
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(g.owner_id, invoice_id)
    except InvoiceError as e:
        return error_response(e)
    return invoice.to_dict()


@invoices_bp.put("/<int:invoice_id>")
@require_owner
def update_invoice_route(invoice_id: int):
    """
    Merge the body onto the stored invoice.

    If the stored invoice was unpaid and the merged one is paid, its linked
    lines are deducted from stock (once per invoice, ever).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch, lines = _parse_invoice_body(payload, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        invoice = run_with_retry(
            lambda: invoice_service.update_invoice(
                owner_id=g.owner_id, invoice_id=invoice_id, patch=patch, lines=lines
            )
        )
    except (ValidationError, InventoryError, InvoiceError) as e:
        return error_response(e)

    return invoice.to_dict(), 200


@invoices_bp.delete("/<int:invoice_id>")
@require_owner
def delete_invoice_route(invoice_id: int):
    """Delete an invoice. Stock and the inventory log are left as they are."""
    try:
        invoice_service.delete_invoice(owner_id=g.owner_id, invoice_id=invoice_id)
    except InvoiceError as e:
        return error_response(e)
    return {"ok": True}, 200


@invoices_bp.post("/<int:invoice_id>/lines/<int:line_item_id>/product")
@require_owner
def create_product_from_line_route(invoice_id: int, line_item_id: int):
    """Save an unlinked line item as a new zero-stock product and link it."""
    try:
        product = products_service.create_product_from_line_item(
            owner_id=g.owner_id, invoice_id=invoice_id, line_item_id=line_item_id
        )
    except (ValidationError, ConflictError, InvoiceError) as e:
        return error_response(e)

    invoice = invoice_service.get_invoice(g.owner_id, invoice_id)
    return {"product": product.to_dict(), "invoice": invoice.to_dict()}, 201
