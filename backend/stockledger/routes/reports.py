# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

# backend/stockledger/routes/reports.py
"""
Reporting routes.

All figures are derived from current products and the inventory log on every
request; nothing is cached.
"""
from flask import Blueprint, request, g

from ..services.reporting_service import product_stock_report, stock_summary
from ..validation import ValidationError, coerce_bool
from ..decorators import require_owner

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/stock-summary")
@require_owner
def stock_summary_route():
    """
    Totals over non-archived products.

    Returns:
    - total_stock_value_cents: my_stock * sale_price + partner_stock * partner_price
    - my_stock_purchase_value_cents: my_stock * purchase_price
    - total_partner_dues_cents: sum of per-product partner dues
    """
    summary = stock_summary(g.owner_id)
    summary["currency"] = g.owner.currency
    return summary


@reports_bp.get("/products")
@require_owner
def product_report_route():
    """
    Per-product stock report.

    Query params:
    - include_archived: true/false (default false)
    """
    try:
        include_archived = coerce_bool("include_archived", request.args.get("include_archived", "false"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    rows = product_stock_report(g.owner_id, include_archived=include_archived)
    return {"items": rows, "count": len(rows)}
