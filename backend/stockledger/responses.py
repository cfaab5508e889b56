# Overview: Maps service exceptions to JSON error responses for API routes.

from flask import current_app

from .services.inventory_service import (
    InventoryError,
    InvalidAmount,
    InvalidQuantity,
    InsufficientStock,
    ProductNotFound,
    StockConflict,
)
from .services.invoice_service import InvoiceError, InvoiceNotFound
from .validation import ConflictError, ValidationError


def error_response(exc: Exception):
    """
    (body, status) for an exception raised by a service call.

    Ledger errors carry their `details`; anything unrecognised is logged and
    reported as a generic 500.
    """
    if isinstance(exc, (ValidationError, InvalidQuantity, InvalidAmount)):
        body = {"error": str(exc)}
        if getattr(exc, "details", None):
            body["details"] = exc.details
        return body, 400

    if isinstance(exc, (ProductNotFound, InvoiceNotFound)):
        return {"error": str(exc), "details": exc.details}, 404

    if isinstance(exc, (InsufficientStock, StockConflict)):
        return {"error": str(exc), "details": exc.details}, 409

    if isinstance(exc, ConflictError):
        return {"error": str(exc), "details": {}}, 409

    if isinstance(exc, (InventoryError, InvoiceError)):
        return {"error": str(exc), "details": exc.details}, 400

    current_app.logger.exception("Unhandled error: %s", exc)
    return {"error": "Internal server error"}, 500
