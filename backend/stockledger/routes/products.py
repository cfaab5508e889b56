# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockledger/routes/products.py
"""
Product management routes.

OWNER-SCOPED: every route works on g.owner_id (set by @require_owner).

Quantities and the partner balance are only writable on create (opening
stock). Afterwards they change through /api/inventory.
"""
from flask import Blueprint, request, g

from ..models import Product
from ..responses import error_response
from ..services import products_service
from ..services.inventory_service import InventoryError, get_ledger_balance
from ..services.concurrency import run_with_retry
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    coerce_bool,
    ValidationError,
    ConflictError,
)
from ..decorators import require_owner

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_CREATE_FIELDS),
    required_on_create=set(),
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_MUTABLE_FIELDS),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_owner
def list_products():
    """
    List products ordered by English name.

    Query params:
    - archived: true/false (optional) - filter on the archive flag; all products if omitted
    """
    archived = request.args.get("archived")
    try:
        archived = coerce_bool("archived", archived) if archived is not None else None
    except ValidationError as e:
        return {"error": str(e)}, 400

    products = products_service.list_products(g.owner_id, archived=archived)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.post("")
@require_owner
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(owner_id=g.owner_id, patch=patch)
    except (ValidationError, ConflictError, InventoryError) as e:
        return error_response(e)

    return created.to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_owner
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(g.owner_id, product_id)
    except InventoryError as e:
        return error_response(e)
    return product.to_dict()


@products_bp.get("/<int:product_id>/ledger")
@require_owner
def product_ledger_route(product_id: int):
    """Logged deltas summed for one product, compared with its stored quantities."""
    return get_ledger_balance(g.owner_id, product_id)


@products_bp.put("/<int:product_id>")
@require_owner
def update_product_route(product_id: int):
    """
    Edit names, unit and prices.

    my_stock, partner_stock and amount_received_from_partner_cents are rejected
    with 400; use a stock adjustment or a partner payment instead.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = run_with_retry(
            lambda: products_service.update_product(owner_id=g.owner_id, product_id=product_id, patch=patch)
        )
    except (ValidationError, ConflictError, InventoryError) as e:
        return error_response(e)

    return updated.to_dict(), 200


@products_bp.post("/<int:product_id>/archive")
@require_owner
def archive_product_route(product_id: int):
    try:
        product = run_with_retry(
            lambda: products_service.archive_product(owner_id=g.owner_id, product_id=product_id)
        )
    except InventoryError as e:
        return error_response(e)
    return product.to_dict(), 200


@products_bp.post("/<int:product_id>/restore")
@require_owner
def restore_product_route(product_id: int):
    try:
        product = run_with_retry(
            lambda: products_service.restore_product(owner_id=g.owner_id, product_id=product_id)
        )
    except InventoryError as e:
        return error_response(e)
    return product.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_owner
def delete_product_route(product_id: int):
    """
    Archive a product, or remove it for good with ?hard=true.

    A hard delete leaves the product's transactions and invoice lines in place;
    they render from their snapshot names afterwards.
    """
    try:
        hard = coerce_bool("hard", request.args.get("hard", "false"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    if not hard:
        try:
            product = products_service.archive_product(owner_id=g.owner_id, product_id=product_id)
        except InventoryError as e:
            return error_response(e)
        return {"ok": True, "archived": True, "product": product.to_dict()}, 200

    deleted = products_service.delete_product(owner_id=g.owner_id, product_id=product_id)
    if not deleted:
        return {"error": "Product not found."}, 404

    return {"ok": True, "deleted": True}, 200
