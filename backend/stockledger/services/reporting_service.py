# Overview: Service-layer operations for reporting; derived stock analytics.

"""
Derived analytics over the Product store and the inventory log.

Nothing here is stored or cached: every figure is recomputed from the current
rows on each call, so it can never drift from its sources.

- total stock value:      sum(my_stock * sale_price + partner_stock * partner_price)
- my-stock purchase value: sum(my_stock * purchase_price)
- total partner dues:     sum(max(0, partner_price * partner_stock - received))
  (the three totals cover non-archived products only)
- sold quantity:          sum(abs(change_my_stock)) over invoice_paid and
                          sold_to_customer rows with a negative change_my_stock.
                          sold_to_partner is an internal transfer, not a sale.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryTransaction, Product
from .inventory_service import DEFAULT_TRANSACTION_LIMIT, list_inventory_transactions

SOLD_REASONS = ("invoice_paid", "sold_to_customer")

DELETED_PRODUCT_LABEL = "deleted product"


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _active_products(owner_id: int) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.owner_id == owner_id, Product.archived.is_(False))
        .order_by(Product.name_en.asc(), Product.id.asc())
        .all()
    )


def total_stock_value_cents(products: list[Product]) -> int:
    return sum(
        (p.my_stock or 0) * (p.sale_price_cents or 0)
        + (p.partner_stock or 0) * (p.partner_price_cents or 0)
        for p in products
        if not p.archived
    )


def my_stock_purchase_value_cents(products: list[Product]) -> int:
    return sum((p.my_stock or 0) * (p.purchase_price_cents or 0) for p in products if not p.archived)


def total_partner_dues_cents(products: list[Product]) -> int:
    return sum(p.partner_due_cents for p in products if not p.archived)


def sold_quantities(owner_id: int) -> dict[int, int]:
    """product_id -> units sold to customers (including hard-deleted products)."""
    rows = (
        db.session.query(
            InventoryTransaction.product_id,
            func.coalesce(func.sum(-InventoryTransaction.change_my_stock), 0),
        )
        .filter(
            InventoryTransaction.owner_id == owner_id,
            InventoryTransaction.reason.in_(SOLD_REASONS),
            InventoryTransaction.change_my_stock < 0,
        )
        .group_by(InventoryTransaction.product_id)
        .all()
    )
    return {product_id: int(qty or 0) for product_id, qty in rows}


def stock_summary(owner_id: int) -> dict:
    products = _active_products(owner_id)
    return {
        "product_count": len(products),
        "total_stock_value_cents": total_stock_value_cents(products),
        "my_stock_purchase_value_cents": my_stock_purchase_value_cents(products),
        "total_partner_dues_cents": total_partner_dues_cents(products),
    }


def product_stock_report(owner_id: int, *, include_archived: bool = False) -> list[dict]:
    """
    One row per product: quantities, values, sold quantity and partner due.

    Values are None when the corresponding price is unset (zero), matching how
    the stock screen shows "--" instead of a misleading 0.
    """
    q = db.session.query(Product).filter(Product.owner_id == owner_id)
    if not include_archived:
        q = q.filter(Product.archived.is_(False))
    products = q.order_by(Product.name_en.asc(), Product.id.asc()).all()

    sold = sold_quantities(owner_id)

    report = []
    for p in products:
        sold_qty = sold.get(p.id, 0)
        report.append({
            "product_id": p.id,
            "name": p.display_name,
            "unit": p.unit,
            "archived": p.archived,
            "my_stock": p.my_stock,
            "partner_stock": p.partner_stock,
            "sold_quantity": sold_qty,
            "my_stock_value_cents": p.my_stock * p.purchase_price_cents if p.purchase_price_cents else None,
            "partner_stock_value_cents": p.partner_stock * p.partner_price_cents if p.partner_price_cents else None,
            "sold_value_cents": sold_qty * p.sale_price_cents if p.sale_price_cents else None,
            "amount_received_from_partner_cents": p.amount_received_from_partner_cents,
            "partner_due_cents": p.partner_due_cents,
        })
    return report


def transaction_history(
    owner_id: int,
    *,
    product_id: int | None = None,
    reason: str | None = None,
    limit: int = DEFAULT_TRANSACTION_LIMIT,
) -> list[dict]:
    """
    Inventory log, most recent first, annotated with whether the product still exists.

    A hard-deleted product keeps its snapshot name and is flagged
    product_exists=False instead of failing the whole view.
    """
    if limit <= 0:
        raise ReportError("limit must be positive")

    rows = list_inventory_transactions(owner_id=owner_id, product_id=product_id, reason=reason, limit=limit)
    product_ids = {r.product_id for r in rows}
    existing = set()
    if product_ids:
        existing = {
            pid for (pid,) in db.session.query(Product.id).filter(
                Product.owner_id == owner_id,
                Product.id.in_(product_ids),
            )
        }

    history = []
    for r in rows:
        item = r.to_dict()
        item["product_exists"] = r.product_id in existing
        if not item["product_exists"]:
            item["product_label"] = f"{r.product_name} ({DELETED_PRODUCT_LABEL})"
        else:
            item["product_label"] = r.product_name
        history.append(item)
    return history
