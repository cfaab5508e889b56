# backend/stockledger/services/products_service.py
"""
Products Service

OWNER-SCOPED: every operation takes owner_id and never touches another owner's rows.

QUANTITY RULE:
Product edits change names, unit and prices only. Quantities and the partner
balance are set once at creation (logged as initial_stock) and afterwards only
move through inventory_service.adjust_stock or the invoice settlement hook.

DELETION:
- archive_product: soft delete, the default for DELETE requests
- delete_product: hard delete; InventoryTransaction / PartnerPayment rows and
  invoice lines keep pointing at the missing id and render from their snapshots
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Invoice, InvoiceLineItem
from ..validation import ConflictError, ValidationError
from .inventory_service import append_inventory_transaction, get_product_for_owner
from .invoice_service import InvoiceNotFound

PRODUCT_MUTABLE_FIELDS = {
    "name_en",
    "name_ur",
    "unit",
    "purchase_price_cents",
    "sale_price_cents",
    "partner_price_cents",
}

PRODUCT_CREATE_FIELDS = PRODUCT_MUTABLE_FIELDS | {
    "my_stock",
    "partner_stock",
    "amount_received_from_partner_cents",
}


def _has_name(p: Product) -> bool:
    return any(n and n.strip() for n in (p.name_en, p.name_ur, p.name))


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        if k in ("name_en", "name_ur") and v == "":
            v = None
        setattr(p, k, v)
    # Language names supersede the legacy single name once either is edited
    if patch.get("name_en") or patch.get("name_ur"):
        p.name = None


def list_products(owner_id: int, archived: bool | None = None) -> list[Product]:
    """
    Products ordered by English name, then id.

    archived=None returns everything; True/False filters on the archive flag.
    """
    q = db.session.query(Product).filter(Product.owner_id == owner_id)
    if archived is not None:
        q = q.filter(Product.archived.is_(archived))
    return q.order_by(Product.name_en.asc(), Product.id.asc()).all()


def get_product(owner_id: int, product_id: int) -> Product:
    return get_product_for_owner(owner_id, product_id)


def create_product(*, owner_id: int, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    Opening quantities are logged as one initial_stock transaction so that the
    log reconciles to the stored quantities from zero.
    """
    unknown = set(patch) - PRODUCT_CREATE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    if not (patch.get("name_en") or patch.get("name_ur")):
        raise ValidationError("A product needs name_en or name_ur")

    product = Product(
        owner_id=owner_id,
        name_en=patch.get("name_en") or None,
        name_ur=patch.get("name_ur") or None,
        unit=patch.get("unit") or "pcs",
        purchase_price_cents=patch.get("purchase_price_cents") or 0,
        sale_price_cents=patch.get("sale_price_cents") or 0,
        partner_price_cents=patch.get("partner_price_cents") or 0,
        my_stock=patch.get("my_stock") or 0,
        partner_stock=patch.get("partner_stock") or 0,
        amount_received_from_partner_cents=patch.get("amount_received_from_partner_cents") or 0,
        archived=False,
    )
    db.session.add(product)
    db.session.flush()

    if product.my_stock or product.partner_stock:
        append_inventory_transaction(
            owner_id=owner_id,
            product=product,
            change_my_stock=product.my_stock,
            change_partner_stock=product.partner_stock,
            reason="initial_stock",
        )

    db.session.commit()
    current_app.logger.info("Product created: owner=%s product=%s", owner_id, product.id)
    return product


def update_product(*, owner_id: int, product_id: int, patch: dict) -> Product:
    product = get_product_for_owner(owner_id, product_id)

    locked = set(patch) - PRODUCT_MUTABLE_FIELDS
    if locked:
        raise ValidationError(
            f"{sorted(locked)[0]} cannot be edited directly; use a stock adjustment or partner payment"
        )

    apply_product_patch(product, patch)
    if not _has_name(product):
        db.session.rollback()
        raise ValidationError("A product needs name_en or name_ur")

    db.session.commit()
    return product


def set_archived(*, owner_id: int, product_id: int, archived: bool) -> Product:
    product = get_product_for_owner(owner_id, product_id)
    if product.archived != archived:
        product.archived = archived
        db.session.commit()
        current_app.logger.info(
            "Product %s: owner=%s product=%s", "archived" if archived else "restored", owner_id, product_id
        )
    return product


def archive_product(*, owner_id: int, product_id: int) -> Product:
    return set_archived(owner_id=owner_id, product_id=product_id, archived=True)


def restore_product(*, owner_id: int, product_id: int) -> Product:
    return set_archived(owner_id=owner_id, product_id=product_id, archived=False)


def delete_product(*, owner_id: int, product_id: int) -> bool:
    """
    Hard delete. Transactions, partner payments and invoice lines that reference
    the product are left as they are.
    """
    product = db.session.query(Product).filter_by(id=product_id, owner_id=owner_id).first()
    if product is None:
        return False

    db.session.delete(product)
    db.session.commit()
    current_app.logger.info("Product deleted: owner=%s product=%s", owner_id, product_id)
    return True


def find_product_by_name(owner_id: int, name: str) -> Product | None:
    """Case-insensitive match against English, Urdu, legacy and display names."""
    needle = name.strip().lower()
    if not needle:
        return None

    for product in db.session.query(Product).filter(Product.owner_id == owner_id).all():
        names = (product.name_en, product.name_ur, product.name, product.display_name)
        if any(n and n.strip().lower() == needle for n in names):
            return product
    return None


def create_product_from_line_item(*, owner_id: int, invoice_id: int, line_item_id: int) -> Product:
    """
    Save an unlinked invoice line as a new zero-stock product and link the line to it.
    """
    line = (
        db.session.query(InvoiceLineItem)
        .join(Invoice, Invoice.id == InvoiceLineItem.invoice_id)
        .filter(
            Invoice.owner_id == owner_id,
            Invoice.id == invoice_id,
            InvoiceLineItem.id == line_item_id,
        )
        .first()
    )
    if line is None:
        raise InvoiceNotFound("Invoice line item not found")

    description = (line.description or "").strip()
    if not description:
        raise ValidationError("Product description cannot be empty.")

    if line.product_id is not None:
        raise ConflictError("This item is already linked to a product.")

    if find_product_by_name(owner_id, description) is not None:
        raise ConflictError(f'Product "{description}" already exists.')

    product = Product(
        owner_id=owner_id,
        name_en=description,
        unit=line.unit or "pcs",
        sale_price_cents=line.price_cents or 0,
        purchase_price_cents=0,
        partner_price_cents=0,
        my_stock=0,
        partner_stock=0,
        amount_received_from_partner_cents=0,
        archived=False,
    )
    db.session.add(product)
    db.session.flush()

    line.product_id = product.id
    db.session.commit()
    current_app.logger.info(
        "Product created from invoice line: owner=%s invoice=%s line=%s product=%s",
        owner_id, invoice_id, line_item_id, product.id,
    )
    return product
