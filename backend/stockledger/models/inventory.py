from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z


UNNAMED_PRODUCT = "Unnamed Product"

# Every reason an InventoryTransaction may carry.
TRANSACTION_REASONS = (
    "initial_stock",
    "invoice_paid",
    "manual_update",
    "stock_added",
    "order_fulfilled",
    "return",
    "sold_to_partner",
    "sold_to_customer",
    "received_new_stock",
)

PARTNER_PAYMENT_SOURCES = ("payment", "paid_partner_sale")


def unified_display_name(name_ur: str | None, name_en: str | None, legacy_name: str | None) -> str:
    """Urdu and English names joined with ' / ', else the legacy name, else a placeholder."""
    parts = [n.strip() for n in (name_ur, name_en) if n and n.strip()]
    if parts:
        return " / ".join(parts)
    if legacy_name and legacy_name.strip():
        return legacy_name.strip()
    return UNNAMED_PRODUCT


class Product(db.Model):
    """
    Current-state record of one stocked item.

    TWO-PARTY STOCK:
    - my_stock: units owned directly by the business owner
    - partner_stock: units held/sold on behalf of the business partner
    Both are never negative (service checks + CHECK constraints).

    NAMES:
    name_en / name_ur are the authoritative names. `name` is a legacy single-name
    column kept so old rows still display; it is cleared as soon as either
    language name is edited. The display name is derived (see display_name) and
    never stored.

    QUANTITIES:
    Only inventory_service.adjust_stock, settlement_service and the opening stock
    written by create_product change my_stock / partner_stock. Every such change
    appends an InventoryTransaction in the same DB transaction.

    version_id is the optimistic-lock counter: an UPDATE issued from a stale read
    matches zero rows and SQLAlchemy raises StaleDataError.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("my_stock >= 0", name="ck_products_my_stock_nonneg"),
        db.CheckConstraint("partner_stock >= 0", name="ck_products_partner_stock_nonneg"),
        db.CheckConstraint(
            "amount_received_from_partner_cents >= 0",
            name="ck_products_partner_received_nonneg",
        ),
        db.Index("ix_products_owner_name_en", "owner_id", "name_en"),
        db.Index("ix_products_owner_archived", "owner_id", "archived"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("business_owners.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=True)  # legacy
    name_en = db.Column(db.String(255), nullable=True)
    name_ur = db.Column(db.String(255), nullable=True)
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    # Authoritative storage in cents (frontend may only format for display)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)
    partner_price_cents = db.Column(db.Integer, nullable=False, default=0)

    my_stock = db.Column(db.Integer, nullable=False, default=0)
    partner_stock = db.Column(db.Integer, nullable=False, default=0)
    amount_received_from_partner_cents = db.Column(db.BigInteger, nullable=False, default=0)

    archived = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    owner = db.relationship("BusinessOwner", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.display_name!r} owner_id={self.owner_id}>"

    @property
    def display_name(self) -> str:
        return unified_display_name(self.name_ur, self.name_en, self.name)

    @property
    def total_stock(self) -> int:
        return (self.my_stock or 0) + (self.partner_stock or 0)

    @property
    def partner_due_cents(self) -> int:
        """Outstanding partner balance; derived on every read, clamped at zero."""
        owed = (self.partner_price_cents or 0) * (self.partner_stock or 0)
        return max(0, owed - (self.amount_received_from_partner_cents or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.display_name,
            "name_en": self.name_en,
            "name_ur": self.name_ur,
            "unit": self.unit,
            "purchase_price_cents": self.purchase_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "partner_price_cents": self.partner_price_cents,
            "my_stock": self.my_stock,
            "partner_stock": self.partner_stock,
            "amount_received_from_partner_cents": self.amount_received_from_partner_cents,
            "partner_due_cents": self.partner_due_cents,
            "archived": self.archived,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Immutable audit record of one stock movement.

    - Written only in the same DB transaction as the Product change it records.
    - Never updated or deleted (enforced by the mapper listeners below).
    - product_id has no foreign key: hard-deleting a product leaves its history.
    - product_name is the display name snapshot at write time.
    - Ordering is created_at DESC, id DESC; the autoincrement id breaks ties.
    """
    __tablename__ = "inventory_transactions"

    id = db.Column(db.Integer, primary_key=True)

    owner_id = db.Column(db.Integer, db.ForeignKey("business_owners.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    change_my_stock = db.Column(db.Integer, nullable=False, default=0)
    change_partner_stock = db.Column(db.Integer, nullable=False, default=0)

    reason = db.Column(db.String(32), nullable=False, index=True)
    reference_id = db.Column(db.String(64), nullable=True, index=True)

    sale_price_cents = db.Column(db.Integer, nullable=True)
    is_paid = db.Column(db.Boolean, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    __table_args__ = (
        db.Index("ix_invtx_owner_created", "owner_id", "created_at"),
        db.Index("ix_invtx_owner_product_reason", "owner_id", "product_id", "reason"),
        {"sqlite_autoincrement": True},
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "change_my_stock": self.change_my_stock,
            "change_partner_stock": self.change_partner_stock,
            "reason": self.reason,
            "reference_id": self.reference_id,
            "sale_price_cents": self.sale_price_cents,
            "is_paid": self.is_paid,
            "created_at": to_utc_z(self.created_at),
        }


class PartnerPayment(db.Model):
    """
    Append-only record of money received from the business partner.

    Written in the same DB transaction that increments
    Product.amount_received_from_partner_cents, so the running balance can be
    rebuilt from this table. Stock quantities are untouched, hence no
    InventoryTransaction row.

    source:
    - "payment": recorded through record_partner_payment
    - "paid_partner_sale": a sold_to_partner adjustment flagged as paid
      (inventory_transaction_id points at that adjustment)
    """
    __tablename__ = "partner_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_partner_payments_amount_pos"),
        db.Index("ix_partner_payments_owner_created", "owner_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("business_owners.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    amount_cents = db.Column(db.BigInteger, nullable=False)
    source = db.Column(db.String(32), nullable=False, default="payment")
    inventory_transaction_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "amount_cents": self.amount_cents,
            "source": self.source,
            "inventory_transaction_id": self.inventory_transaction_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(InventoryTransaction, "before_update")
@event.listens_for(PartnerPayment, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise ValueError(f"{type(target).__name__} rows are append-only and cannot be updated")


@event.listens_for(InventoryTransaction, "before_delete")
@event.listens_for(PartnerPayment, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise ValueError(f"{type(target).__name__} rows are append-only and cannot be deleted")
