# Overview: Pytest coverage for live feed subscriptions.

import json

from stockledger.services.feed_service import (
    format_sse,
    subscribe_to_products,
    subscribe_to_transactions,
)
from stockledger.services.inventory_service import adjust_stock


class TestProductFeed:

    def test_first_event_is_current_snapshot(self, owner, make_product):
        make_product(name_en="Rice", my_stock=2)
        make_product(name_en="Flour")

        (snapshot,) = list(subscribe_to_products(owner.id, poll_interval=0, max_events=1))
        assert [p["name"] for p in snapshot] == ["Flour", "Rice"]

    def test_new_snapshot_after_change(self, owner, make_product):
        product = make_product(name_en="Rice", my_stock=2)
        feed = subscribe_to_products(owner.id, poll_interval=0, max_events=2)

        first = next(feed)
        adjust_stock(owner_id=owner.id, product_id=product.id, adjustment_type="received_new_stock", quantity=3)
        second = next(feed)

        assert first[0]["my_stock"] == 2
        assert second[0]["my_stock"] == 5

    def test_other_owners_products_are_not_included(self, owner, make_product, other_owner_and_token):
        make_product(name_en="Rice")

        (snapshot,) = list(subscribe_to_products(other_owner_and_token[0].id, poll_interval=0, max_events=1))
        assert snapshot == []


class TestTransactionFeed:

    def test_newest_first_and_limited(self, owner, make_product):
        product = make_product(my_stock=10)
        for qty in (1, 2, 3):
            adjust_stock(owner_id=owner.id, product_id=product.id, adjustment_type="sold_to_customer", quantity=qty)

        (snapshot,) = list(subscribe_to_transactions(owner.id, 2, poll_interval=0, max_events=1))
        assert [t["change_my_stock"] for t in snapshot] == [-3, -2]

    def test_default_limit_comes_from_config(self, app, owner, make_product):
        app.config["TRANSACTION_FEED_LIMIT"] = 1
        try:
            product = make_product(my_stock=10)
            adjust_stock(owner_id=owner.id, product_id=product.id, adjustment_type="sold_to_customer", quantity=1)

            (snapshot,) = list(subscribe_to_transactions(owner.id, poll_interval=0, max_events=1))
            assert len(snapshot) == 1
        finally:
            app.config["TRANSACTION_FEED_LIMIT"] = 100


def test_format_sse():
    msg = format_sse([{"id": 1}], event="products")
    assert msg.startswith("event: products\n")
    assert msg.endswith("\n\n")
    assert json.loads(msg.split("data: ", 1)[1]) == [{"id": 1}]
