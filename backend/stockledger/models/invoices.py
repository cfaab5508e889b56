from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


DISCOUNT_TYPES = ("percentage", "fixed")

BPS_DENOMINATOR = 10_000


def _div_round(numerator: int, denominator: int) -> int:
    """Integer division rounded to nearest, halves away from zero."""
    sign = -1 if numerator < 0 else 1
    return sign * ((abs(numerator) + denominator // 2) // denominator)


class Invoice(db.Model):
    """
    Billing document.

    is_paid drives the stock settlement hook: linked line items are deducted
    whenever is_paid goes from false to true. stock_settled_at is the time of
    the latest deduction and is never cleared.

    Money:
    - tax_rate_bps: basis points (1700 = 17%)
    - discount_value: basis points when discount_type="percentage", cents when "fixed"
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_owner_created", "owner_id", "created_at"),
        db.Index("ix_invoices_owner_number", "owner_id", "invoice_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("business_owners.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    invoice_number = db.Column(db.String(64), nullable=False)
    issue_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)

    company = db.Column(db.JSON, nullable=True)
    client = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    currency = db.Column(db.String(8), nullable=False, default="Rs")
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    is_tax_enabled = db.Column(db.Boolean, nullable=False, default=False)
    discount_type = db.Column(db.String(16), nullable=False, default="percentage")
    discount_value = db.Column(db.Integer, nullable=False, default=0)

    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    stock_settled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    line_items = db.relationship(
        "InvoiceLineItem",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.position",
    )

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} paid={self.is_paid}>"

    def totals(self) -> dict:
        subtotal = sum(line.line_total_cents for line in self.line_items)
        if self.discount_type == "fixed":
            discount = self.discount_value or 0
        else:
            discount = _div_round(subtotal * (self.discount_value or 0), BPS_DENOMINATOR)
        after_discount = subtotal - discount
        tax = _div_round(after_discount * (self.tax_rate_bps or 0), BPS_DENOMINATOR)
        total = after_discount + (tax if self.is_tax_enabled else 0)
        return {
            "subtotal_cents": subtotal,
            "discount_cents": discount,
            "tax_cents": tax,
            "total_cents": total,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "invoice_number": self.invoice_number,
            "issue_date": to_iso_date(self.issue_date),
            "due_date": to_iso_date(self.due_date),
            "company": self.company,
            "client": self.client,
            "notes": self.notes,
            "currency": self.currency,
            "tax_rate_bps": self.tax_rate_bps,
            "is_tax_enabled": self.is_tax_enabled,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "is_paid": self.is_paid,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "stock_settled_at": to_utc_z(self.stock_settled_at) if self.stock_settled_at else None,
            "line_items": [line.to_dict() for line in self.line_items],
            "totals": self.totals(),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceLineItem(db.Model):
    """
    One billed line. product_id optionally links to a Product (no foreign key:
    a hard-deleted product leaves historical lines intact). Unlinked lines are
    freeform and carry no stock effect.
    """
    __tablename__ = "invoice_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_invoice_lines_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    description = db.Column(db.String(255), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit = db.Column(db.String(32), nullable=True)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, nullable=True, index=True)

    @property
    def line_total_cents(self) -> int:
        gross = (self.quantity or 0) * (self.price_cents or 0)
        return _div_round(gross * (BPS_DENOMINATOR - (self.discount_bps or 0)), BPS_DENOMINATOR)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "position": self.position,
            "description": self.description,
            "quantity": self.quantity,
            "unit": self.unit,
            "price_cents": self.price_cents,
            "discount_bps": self.discount_bps,
            "product_id": self.product_id,
            "line_total_cents": self.line_total_cents,
        }
