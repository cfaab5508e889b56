"""
Invoice Settlement Hook

WHY: Marking an invoice paid is the moment its goods leave stock. The deduction
and the invoice write are one DB transaction, so a stock failure also prevents
the invoice from being saved as paid.

Rules:
- Stock is deducted on the unpaid -> paid transition only: creating a paid
  invoice, or an edit that flips is_paid from false to true. Re-saving an
  already-paid invoice is a no-op.
- Un-marking paid never restores stock. Marking the invoice paid again is a
  new transition and deducts the current line items again.
- stock_settled_at records the most recent settlement.
- Lines without product_id are freeform and ignored.
- For each linked line: available = my_stock + partner_stock; if it is smaller
  than the line quantity the whole settlement fails with InsufficientStock.
- my_stock is consumed first, the remainder comes out of partner_stock.
- One invoice_paid InventoryTransaction per linked line, referencing the
  invoice number.
- Lines are applied in position order against the running product quantities,
  so two lines for the same product see each other's deductions.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Invoice, InventoryTransaction
from ..time_utils import utcnow
from .inventory_service import (
    InventoryError,
    InsufficientStock,
    StockConflict,
    append_inventory_transaction,
    get_product_for_owner,
)


def plan_deduction(my_stock: int, partner_stock: int, quantity: int) -> tuple[int, int]:
    """Split `quantity` into (from_my_stock, from_partner_stock), own stock first."""
    from_my = min(my_stock, quantity)
    from_partner = quantity - from_my
    if from_partner > partner_stock:
        raise ValueError("quantity exceeds my_stock + partner_stock")
    return from_my, from_partner


def needs_settlement(invoice: Invoice, *, was_paid: bool = False) -> bool:
    return bool(invoice.is_paid) and not was_paid


def process_invoice_stock_update(
    *,
    owner_id: int,
    invoice: Invoice,
    was_paid: bool = False,
) -> list[InventoryTransaction]:
    """
    Deduct stock for every linked line of an invoice that just became paid.
    Does NOT commit.

    was_paid is the stored is_paid value before the current edit (False for a
    new invoice). The caller owns the DB transaction: it commits the invoice
    together with the deductions, or rolls everything back when this raises.
    """
    if not needs_settlement(invoice, was_paid=was_paid):
        return []

    transactions: list[InventoryTransaction] = []
    for line in sorted(invoice.line_items, key=lambda l: (l.position or 0, l.id or 0)):
        if line.product_id is None:
            continue

        product = get_product_for_owner(owner_id, line.product_id, lock=True)
        available = product.total_stock
        if available < line.quantity:
            raise InsufficientStock(
                f"Not enough stock for '{product.display_name}'. "
                f"Available: {available}, Needed: {line.quantity}.",
                product=product,
                available=available,
                requested=line.quantity,
            )

        from_my, from_partner = plan_deduction(product.my_stock, product.partner_stock, line.quantity)
        product.my_stock -= from_my
        product.partner_stock -= from_partner

        transactions.append(
            append_inventory_transaction(
                owner_id=owner_id,
                product=product,
                change_my_stock=-from_my,
                change_partner_stock=-from_partner,
                reason="invoice_paid",
                reference_id=invoice.invoice_number,
            )
        )

    invoice.stock_settled_at = utcnow()
    return transactions


def settle_invoice(
    *,
    owner_id: int,
    invoice: Invoice,
    was_paid: bool = False,
) -> list[InventoryTransaction]:
    """
    Atomically settle stock for `invoice` and commit it.

    `invoice` may carry uncommitted changes (a new invoice, or an update that
    just set is_paid); they are committed together with the deductions or
    discarded together with them.
    """
    invoice_number = invoice.invoice_number
    try:
        transactions = process_invoice_stock_update(owner_id=owner_id, invoice=invoice, was_paid=was_paid)
        db.session.commit()
    except InventoryError as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Invoice settlement rejected: owner=%s invoice=%s: %s",
            owner_id, invoice_number, exc,
        )
        raise
    except StaleDataError:
        db.session.rollback()
        raise StockConflict(
            "Stock changed while settling the invoice; no changes were applied.",
            details={"invoice_number": invoice_number},
        )

    if transactions:
        current_app.logger.info(
            "Invoice settled: owner=%s invoice=%s lines=%s",
            owner_id, invoice_number, len(transactions),
        )
    return transactions
