# Overview: Service-layer operations for business owners; API token issue and lookup.

"""
Owner accounts and API tokens.

Tokens are 32 random bytes (64 hex chars). Only the SHA-256 of a token is
stored; the plaintext is returned exactly once, when it is issued.
"""

import hashlib
import secrets

from flask import current_app

from ..extensions import db
from ..models import BusinessOwner


class OwnerError(Exception):
    """Raised for owner account errors."""
    pass


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is enough here: tokens are high-entropy, unlike passwords."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_owner(name: str, email: str | None = None, currency: str | None = None) -> tuple[BusinessOwner, str]:
    """Create an owner and return it with its plaintext API token."""
    name = (name or "").strip()
    if not name:
        raise OwnerError("Owner name is required")

    token = generate_token()
    owner = BusinessOwner(
        name=name,
        email=(email or "").strip() or None,
        currency=currency or current_app.config.get("DEFAULT_CURRENCY", "Rs"),
        api_token_hash=hash_token(token),
        is_active=True,
    )
    db.session.add(owner)
    db.session.commit()
    current_app.logger.info("Owner created: owner=%s", owner.id)
    return owner, token


def rotate_token(owner_id: int) -> str:
    """Replace the owner's token; the old one stops working immediately."""
    owner = db.session.get(BusinessOwner, owner_id)
    if owner is None:
        raise OwnerError(f"Owner {owner_id} not found")

    token = generate_token()
    owner.api_token_hash = hash_token(token)
    db.session.commit()
    current_app.logger.info("Owner token rotated: owner=%s", owner_id)
    return token


def get_owner_by_token(token: str) -> BusinessOwner | None:
    """Active owner for a plaintext token, or None."""
    if not token:
        return None
    owner = db.session.query(BusinessOwner).filter_by(api_token_hash=hash_token(token)).first()
    if owner is None or not owner.is_active:
        return None
    return owner


def list_owners() -> list[BusinessOwner]:
    return db.session.query(BusinessOwner).order_by(BusinessOwner.id.asc()).all()
