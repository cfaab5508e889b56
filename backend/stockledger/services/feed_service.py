# Overview: Service-layer operations for live feeds; polling snapshot subscriptions.

"""
Live Feeds

Subscriptions are generators. Each one yields a full snapshot immediately and
then again every time the snapshot differs from the last one it yielded.
Changes are detected by polling the database every FEED_POLL_INTERVAL_SECONDS.

- subscribe_to_products: every product of the owner (archived included),
  ordered like list_products.
- subscribe_to_transactions: the newest `limit` inventory transactions,
  most recent first.

The read transaction is ended before each poll so that rows committed by other
requests are visible.
"""

from __future__ import annotations

import json
import time
from typing import Callable, Iterator

from flask import current_app

from ..extensions import db
from .inventory_service import list_inventory_transactions
from .products_service import list_products


def products_snapshot(owner_id: int) -> list[dict]:
    return [p.to_dict() for p in list_products(owner_id)]


def transactions_snapshot(owner_id: int, limit: int) -> list[dict]:
    return [t.to_dict() for t in list_inventory_transactions(owner_id=owner_id, limit=limit)]


def _poll(
    snapshot: Callable[[], list[dict]],
    *,
    poll_interval: float | None,
    max_events: int | None,
) -> Iterator[list[dict]]:
    if poll_interval is None:
        poll_interval = current_app.config.get("FEED_POLL_INTERVAL_SECONDS", 2.0)

    last = None
    sent = 0
    while max_events is None or sent < max_events:
        db.session.rollback()
        current = snapshot()
        if current != last:
            last = current
            sent += 1
            yield current
            continue
        time.sleep(poll_interval)


def subscribe_to_products(
    owner_id: int,
    *,
    poll_interval: float | None = None,
    max_events: int | None = None,
) -> Iterator[list[dict]]:
    return _poll(lambda: products_snapshot(owner_id), poll_interval=poll_interval, max_events=max_events)


def subscribe_to_transactions(
    owner_id: int,
    limit: int | None = None,
    *,
    poll_interval: float | None = None,
    max_events: int | None = None,
) -> Iterator[list[dict]]:
    if limit is None:
        limit = current_app.config.get("TRANSACTION_FEED_LIMIT", 100)
    return _poll(
        lambda: transactions_snapshot(owner_id, limit),
        poll_interval=poll_interval,
        max_events=max_events,
    )


def format_sse(data, event: str | None = None) -> str:
    """Encode one server-sent event."""
    msg = f"data: {json.dumps(data)}\n\n"
    if event is not None:
        msg = f"event: {event}\n{msg}"
    return msg
