# Overview: Service-layer operations for inventory; the stock adjustment protocol and partner payments.

# backend/stockledger/services/inventory_service.py
"""
Stock Ledger Invariants (authoritative)

Product store:
- Product.my_stock and Product.partner_stock are the current quantities.
- Neither may ever be negative. Operations that would make one negative are
  rejected before anything is written.
- amount_received_from_partner_cents only ever grows.

Transaction log:
- Every quantity change appends exactly one InventoryTransaction in the SAME
  DB transaction as the Product update. Either both are committed or neither.
- InventoryTransaction rows are never updated or deleted.
- For each product: SUM(change_my_stock) == my_stock and
  SUM(change_partner_stock) == partner_stock (opening stock is logged as
  initial_stock when the product is created).

Atomicity / concurrency:
- Read (locked), validate, write, commit happen inside one call.
- Product.version_id is checked on UPDATE; a stale read raises StockConflict and
  the session is rolled back. Retrying is the caller's decision
  (routes use concurrency.run_with_retry).
- Ledger rule violations are never retried.

Partner balance:
- partner due = max(0, partner_price * partner_stock - amount_received);
  derived on every read, never stored.
- Payments append a PartnerPayment row; they do not touch the stock log.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Product, InventoryTransaction, PartnerPayment
from .concurrency import lock_for_update


ADJUSTMENT_TYPES = ("sold_to_customer", "sold_to_partner", "received_new_stock")

DEFAULT_TRANSACTION_LIMIT = 100


class InventoryError(Exception):
    """Base class for ledger rule violations."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InvalidQuantity(InventoryError):
    """Quantity is not a positive integer."""


class InvalidAmount(InventoryError):
    """Payment amount is not a positive integer number of cents."""


class ProductNotFound(InventoryError):
    """Product does not exist for this owner."""
    def __init__(self, product_id):
        super().__init__("Product not found.", details={"product_id": product_id})
        self.product_id = product_id


class InsufficientStock(InventoryError):
    """Requested quantity exceeds what is available."""
    def __init__(self, message: str, *, product: Product, available: int, requested: int):
        super().__init__(
            message,
            details={
                "product_id": product.id,
                "product_name": product.display_name,
                "available": available,
                "requested": requested,
            },
        )
        self.available = available
        self.requested = requested


class StockConflict(InventoryError):
    """The product changed between read and write; nothing was applied."""


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def get_product_for_owner(owner_id: int, product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id, owner_id=owner_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFound(product_id)
    return product


def append_inventory_transaction(
    *,
    owner_id: int,
    product: Product,
    change_my_stock: int,
    change_partner_stock: int,
    reason: str,
    reference_id: str | None = None,
    sale_price_cents: int | None = None,
    is_paid: bool | None = None,
) -> InventoryTransaction:
    """
    Append-only log write. No domain logic here; callers have already
    validated and applied the quantity change to `product`.
    """
    tx = InventoryTransaction(
        owner_id=owner_id,
        product_id=product.id,
        product_name=product.display_name,
        change_my_stock=change_my_stock,
        change_partner_stock=change_partner_stock,
        reason=reason,
        reference_id=reference_id,
        sale_price_cents=sale_price_cents,
        is_paid=is_paid,
    )
    db.session.add(tx)
    db.session.flush()  # assigns tx.id and issues the versioned product UPDATE
    return tx


def apply_adjustment(
    product: Product,
    adjustment_type: str,
    quantity: int,
    sale_price_cents: int | None = None,
    is_paid: bool | None = None,
) -> tuple[int, int, int]:
    """
    Transition function for one adjustment, applied to the locked snapshot.

    Mutates `product` in place and returns
    (change_my_stock, change_partner_stock, amount_received_cents).
    Raises InsufficientStock without touching `product`.
    """
    name = product.display_name

    if adjustment_type == "sold_to_customer":
        if product.my_stock < quantity:
            raise InsufficientStock(
                f"Not enough 'My Stock' of '{name}' to sell to customer. "
                f"Available: {product.my_stock}, Needed: {quantity}.",
                product=product,
                available=product.my_stock,
                requested=quantity,
            )
        product.my_stock -= quantity
        return -quantity, 0, 0

    if adjustment_type == "sold_to_partner":
        if product.my_stock < quantity:
            raise InsufficientStock(
                f"Not enough 'My Stock' of '{name}' to sell to partner. "
                f"Available: {product.my_stock}, Needed: {quantity}.",
                product=product,
                available=product.my_stock,
                requested=quantity,
            )
        received = 0
        if is_paid and sale_price_cents is not None:
            received = quantity * sale_price_cents
        product.my_stock -= quantity
        product.partner_stock += quantity
        product.amount_received_from_partner_cents = (product.amount_received_from_partner_cents or 0) + received
        return -quantity, quantity, received

    if adjustment_type == "received_new_stock":
        product.my_stock += quantity
        return quantity, 0, 0

    raise InventoryError(
        f"Unknown adjustment type: {adjustment_type}",
        details={"allowed": list(ADJUSTMENT_TYPES)},
    )


def adjust_stock(
    *,
    owner_id: int,
    product_id: int,
    adjustment_type: str,
    quantity: int,
    sale_price_cents: int | None = None,
    is_paid: bool | None = None,
) -> InventoryTransaction:
    """
    Stock Adjustment Protocol: one atomic product update + one log entry.

    - sold_to_customer:   my_stock -= q                    log (-q, 0)
    - sold_to_partner:    my_stock -= q, partner_stock += q log (-q, +q)
                          paid with a price also credits q * price to the partner balance
    - received_new_stock: my_stock += q                    log (+q, 0)

    Raises InvalidQuantity, ProductNotFound, InsufficientStock or StockConflict;
    on any of them the session is rolled back and nothing is persisted.
    """
    if not _is_positive_int(quantity):
        raise InvalidQuantity("Quantity must be positive.", details={"quantity": quantity})
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise InventoryError(
            f"Unknown adjustment type: {adjustment_type}",
            details={"allowed": list(ADJUSTMENT_TYPES)},
        )

    try:
        product = get_product_for_owner(owner_id, product_id, lock=True)

        change_my, change_partner, received = apply_adjustment(
            product, adjustment_type, quantity, sale_price_cents, is_paid
        )

        log_sale_price = None
        if adjustment_type in ("sold_to_customer", "sold_to_partner"):
            log_sale_price = sale_price_cents

        tx = append_inventory_transaction(
            owner_id=owner_id,
            product=product,
            change_my_stock=change_my,
            change_partner_stock=change_partner,
            reason=adjustment_type,
            sale_price_cents=log_sale_price,
            is_paid=bool(is_paid) if adjustment_type == "sold_to_partner" else None,
        )

        if received > 0:
            db.session.add(PartnerPayment(
                owner_id=owner_id,
                product_id=product.id,
                product_name=product.display_name,
                amount_cents=received,
                source="paid_partner_sale",
                inventory_transaction_id=tx.id,
            ))

        db.session.commit()
    except InventoryError as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Stock adjustment rejected: owner=%s product=%s type=%s qty=%s: %s",
            owner_id, product_id, adjustment_type, quantity, exc,
        )
        raise
    except StaleDataError:
        db.session.rollback()
        raise StockConflict(
            "Product was modified concurrently; no changes were applied.",
            details={"product_id": product_id},
        )

    current_app.logger.info(
        "Stock adjusted: owner=%s product=%s type=%s my=%+d partner=%+d tx=%s",
        owner_id, product_id, adjustment_type, change_my, change_partner, tx.id,
    )
    return tx


def record_partner_payment(
    *,
    owner_id: int,
    product_id: int,
    amount_cents: int,
    note: str | None = None,
) -> PartnerPayment:
    """
    Credit a payment received from the partner against one product.

    Atomic read-modify-write of amount_received_from_partner_cents plus one
    PartnerPayment row. Stock quantities and the inventory log are untouched.
    """
    if not _is_positive_int(amount_cents):
        raise InvalidAmount("Payment amount must be positive.", details={"amount_cents": amount_cents})

    try:
        product = get_product_for_owner(owner_id, product_id, lock=True)
        product.amount_received_from_partner_cents = (product.amount_received_from_partner_cents or 0) + amount_cents

        payment = PartnerPayment(
            owner_id=owner_id,
            product_id=product.id,
            product_name=product.display_name,
            amount_cents=amount_cents,
            source="payment",
            note=note,
        )
        db.session.add(payment)
        db.session.commit()
    except InventoryError:
        db.session.rollback()
        raise
    except StaleDataError:
        db.session.rollback()
        raise StockConflict(
            "Product was modified concurrently; payment was not recorded.",
            details={"product_id": product_id},
        )

    current_app.logger.info(
        "Partner payment recorded: owner=%s product=%s amount_cents=%s payment=%s",
        owner_id, product_id, amount_cents, payment.id,
    )
    return payment


def partner_due_cents(product: Product) -> int:
    return product.partner_due_cents


def list_inventory_transactions(
    *,
    owner_id: int,
    product_id: int | None = None,
    reason: str | None = None,
    limit: int = DEFAULT_TRANSACTION_LIMIT,
) -> list[InventoryTransaction]:
    """Most recent first. Transactions of deleted products are included."""
    q = InventoryTransaction.query.filter_by(owner_id=owner_id)
    if product_id is not None:
        q = q.filter_by(product_id=product_id)
    if reason is not None:
        q = q.filter_by(reason=reason)

    q = q.order_by(
        InventoryTransaction.created_at.desc(),
        InventoryTransaction.id.desc(),
    )
    return q.limit(limit).all()


def list_partner_payments(
    *,
    owner_id: int,
    product_id: int | None = None,
    limit: int = DEFAULT_TRANSACTION_LIMIT,
) -> list[PartnerPayment]:
    q = PartnerPayment.query.filter_by(owner_id=owner_id)
    if product_id is not None:
        q = q.filter_by(product_id=product_id)
    q = q.order_by(PartnerPayment.created_at.desc(), PartnerPayment.id.desc())
    return q.limit(limit).all()


def get_ledger_balance(owner_id: int, product_id: int) -> dict:
    """
    Sum of logged deltas for one product, compared with its stored quantities.

    Works for hard-deleted products too (product_exists=False).
    """
    row = db.session.query(
        func.coalesce(func.sum(InventoryTransaction.change_my_stock), 0).label("my"),
        func.coalesce(func.sum(InventoryTransaction.change_partner_stock), 0).label("partner"),
        func.count(InventoryTransaction.id).label("entries"),
    ).filter(
        InventoryTransaction.owner_id == owner_id,
        InventoryTransaction.product_id == product_id,
    ).one()

    product = db.session.query(Product).filter_by(id=product_id, owner_id=owner_id).first()
    ledger_my = int(row.my or 0)
    ledger_partner = int(row.partner or 0)

    result = {
        "product_id": product_id,
        "product_exists": product is not None,
        "entries": int(row.entries or 0),
        "ledger_my_stock": ledger_my,
        "ledger_partner_stock": ledger_partner,
        "my_stock": product.my_stock if product else None,
        "partner_stock": product.partner_stock if product else None,
    }
    result["consistent"] = (
        product is not None
        and product.my_stock == ledger_my
        and product.partner_stock == ledger_partner
    )
    return result
