# Overview: Flask API routes for live feeds; streams snapshots as server-sent events.

# backend/stockledger/routes/feeds.py
"""
Live feed routes.

Each route streams `text/event-stream`. The first event is the current
snapshot; another full snapshot follows whenever the data changes.

Query params (both routes):
- max_events: int (optional) - close the stream after this many snapshots
"""
from flask import Blueprint, Response, current_app, request, g, stream_with_context

from ..services.feed_service import format_sse, subscribe_to_products, subscribe_to_transactions
from ..validation import MAX_QUANTITY, ValidationError, coerce_int
from ..decorators import require_owner

feeds_bp = Blueprint("feeds", __name__, url_prefix="/api/feeds")


def _positive_int_arg(key: str) -> int | None:
    raw = request.args.get(key)
    if raw is None:
        return None
    value = coerce_int(key, raw)
    if value <= 0 or value > MAX_QUANTITY:
        raise ValidationError(f"{key} must be a positive integer")
    return value


def _stream(events, event_name: str) -> Response:
    def generate():
        for snapshot in events:
            yield format_sse(snapshot, event=event_name)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@feeds_bp.get("/products")
@require_owner
def products_feed():
    try:
        max_events = _positive_int_arg("max_events")
    except ValidationError as e:
        return {"error": str(e)}, 400

    owner_id = g.owner_id
    current_app.logger.info("Products feed opened: owner=%s", owner_id)
    return _stream(subscribe_to_products(owner_id, max_events=max_events), "products")


@feeds_bp.get("/transactions")
@require_owner
def transactions_feed():
    """
    Query params:
    - limit: int (optional, default TRANSACTION_FEED_LIMIT) - newest N transactions
    """
    try:
        limit = _positive_int_arg("limit")
        max_events = _positive_int_arg("max_events")
    except ValidationError as e:
        return {"error": str(e)}, 400

    owner_id = g.owner_id
    current_app.logger.info("Transactions feed opened: owner=%s", owner_id)
    return _stream(subscribe_to_transactions(owner_id, limit, max_events=max_events), "transactions")
