"""
Invoice Service - invoice documents and their coupling to stock settlement

WHY: An invoice marked paid deducts its linked line items from stock. The
invoice write and the deductions share one DB transaction (settle_invoice
commits both), so a stock shortfall leaves the invoice unsaved.

Paid transition:
- add_invoice with is_paid=True settles immediately.
- update_invoice settles only when the stored invoice was unpaid and the merged
  result is paid. A later unpaid -> paid flip settles the current lines again.
- Un-marking a paid invoice does not give stock back.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import BusinessOwner, Invoice, InvoiceLineItem
from ..models.invoices import BPS_DENOMINATOR
from ..time_utils import utcnow
from ..validation import ValidationError
from .settlement_service import settle_invoice

INVOICE_MUTABLE_FIELDS = {
    "name",
    "invoice_number",
    "issue_date",
    "due_date",
    "company",
    "client",
    "notes",
    "currency",
    "tax_rate_bps",
    "is_tax_enabled",
    "discount_type",
    "discount_value",
    "is_paid",
}

LINE_ITEM_FIELDS = {"description", "quantity", "unit", "price_cents", "discount_bps", "product_id"}


class InvoiceError(Exception):
    """Raised for invoice operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InvoiceNotFound(InvoiceError):
    """Invoice (or one of its lines) does not exist for this owner."""


def _check_discount(invoice: Invoice) -> None:
    if invoice.discount_type == "percentage" and (invoice.discount_value or 0) > BPS_DENOMINATOR:
        raise ValidationError(f"discount_value cannot exceed {BPS_DENOMINATOR} bps for percentage discounts")


def _replace_line_items(invoice: Invoice, lines: list[dict]) -> None:
    invoice.line_items.clear()
    for position, patch in enumerate(lines):
        line = InvoiceLineItem(position=position)
        for k, v in patch.items():
            if k in LINE_ITEM_FIELDS:
                setattr(line, k, v)
        invoice.line_items.append(line)


def _apply_invoice_patch(invoice: Invoice, patch: dict) -> None:
    for k, v in patch.items():
        if k not in INVOICE_MUTABLE_FIELDS:
            continue
        setattr(invoice, k, v)


def get_invoice(owner_id: int, invoice_id: int) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id, owner_id=owner_id).first()
    if invoice is None:
        raise InvoiceNotFound("Invoice not found", details={"invoice_id": invoice_id})
    return invoice


def list_invoices(owner_id: int, *, is_paid: bool | None = None) -> list[Invoice]:
    q = db.session.query(Invoice).filter(Invoice.owner_id == owner_id)
    if is_paid is not None:
        q = q.filter(Invoice.is_paid.is_(is_paid))
    return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def add_invoice(*, owner_id: int, patch: dict, lines: list[dict]) -> Invoice:
    """
    Create an invoice with its line items; settles stock in the same
    transaction when it is created as paid.
    """
    owner = db.session.get(BusinessOwner, owner_id)

    invoice = Invoice(
        owner_id=owner_id,
        currency=(owner.currency if owner else None) or current_app.config.get("DEFAULT_CURRENCY", "Rs"),
        tax_rate_bps=0,
        is_tax_enabled=False,
        discount_type="percentage",
        discount_value=0,
        is_paid=False,
    )
    _apply_invoice_patch(invoice, patch)
    _check_discount(invoice)
    _replace_line_items(invoice, lines)

    if invoice.is_paid:
        invoice.paid_at = utcnow()

    db.session.add(invoice)
    settle_invoice(owner_id=owner_id, invoice=invoice)

    current_app.logger.info(
        "Invoice created: owner=%s invoice=%s paid=%s", owner_id, invoice.id, invoice.is_paid
    )
    return invoice


def update_invoice(
    *,
    owner_id: int,
    invoice_id: int,
    patch: dict,
    lines: list[dict] | None = None,
) -> Invoice:
    """
    Merge `patch` (and, when given, a full replacement of the line items) onto
    the stored invoice. If it becomes paid, the merged line items are settled in
    the same transaction as the update.
    """
    invoice = get_invoice(owner_id, invoice_id)
    was_paid = bool(invoice.is_paid)

    try:
        _apply_invoice_patch(invoice, patch)
        _check_discount(invoice)
        if lines is not None:
            _replace_line_items(invoice, lines)
    except ValidationError:
        db.session.rollback()
        raise

    became_paid = not was_paid and bool(invoice.is_paid)
    if became_paid:
        invoice.paid_at = utcnow()
    elif not invoice.is_paid:
        invoice.paid_at = None

    settle_invoice(owner_id=owner_id, invoice=invoice, was_paid=was_paid)
    return invoice


def delete_invoice(*, owner_id: int, invoice_id: int) -> None:
    """Deleting an invoice never touches stock or the inventory log."""
    invoice = get_invoice(owner_id, invoice_id)
    db.session.delete(invoice)
    db.session.commit()
    current_app.logger.info("Invoice deleted: owner=%s invoice=%s", owner_id, invoice_id)
