from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class BusinessOwner(db.Model):
    """
    The business account that owns products, invoices and the stock ledger.

    SINGLE-WRITER: every product, transaction and invoice row carries owner_id.
    Nothing is shared between owners.

    API TOKEN:
    Only the SHA-256 of the bearer token is stored. The plaintext is returned
    once by owner_service.create_owner / rotate_token.
    """
    __tablename__ = "business_owners"
    __table_args__ = (
        db.UniqueConstraint("api_token_hash", name="uq_business_owners_token_hash"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    currency = db.Column(db.String(8), nullable=False, default="Rs")

    api_token_hash = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<BusinessOwner id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "currency": self.currency,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
