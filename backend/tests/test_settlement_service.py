# Overview: Pytest coverage for invoice stock settlement.

"""
Invoice Settlement Tests

- own stock is consumed before partner stock
- all linked lines are deducted or none are (and the invoice is not saved)
- stock is deducted on each unpaid -> paid transition, never on a re-save
- a concurrent version bump aborts the settlement and the invoice write
- unlinked lines are ignored
"""

import pytest
from sqlalchemy import text

from stockledger.extensions import db
from stockledger.models import Invoice, InventoryTransaction, Product
from stockledger.services import settlement_service
from stockledger.services.inventory_service import InsufficientStock, ProductNotFound, StockConflict
from stockledger.services.invoice_service import add_invoice, update_invoice
from stockledger.services.settlement_service import (
    needs_settlement,
    plan_deduction,
    process_invoice_stock_update,
)


def _invoice_txs(invoice_number):
    return (
        db.session.query(InventoryTransaction)
        .filter_by(reason="invoice_paid", reference_id=invoice_number)
        .order_by(InventoryTransaction.id.asc())
        .all()
    )


class TestPlanDeduction:

    @pytest.mark.parametrize("my,partner,qty,expected", [
        (3, 5, 7, (3, 4)),
        (10, 5, 7, (7, 0)),
        (0, 5, 5, (0, 5)),
        (3, 5, 8, (3, 5)),
    ])
    def test_own_stock_first(self, my, partner, qty, expected):
        assert plan_deduction(my, partner, qty) == expected

    def test_more_than_available(self):
        with pytest.raises(ValueError):
            plan_deduction(3, 5, 9)


class TestSettlement:

    def test_deduction_order_example(self, owner, make_product):
        """my=3, partner=5, settle 7 -> my=0, partner=1."""
        product = make_product(name_en="Rice", my_stock=3, partner_stock=5)

        add_invoice(
            owner_id=owner.id,
            patch={"name": "Walk-in", "invoice_number": "INV-7", "is_paid": True},
            lines=[{"description": "Rice", "quantity": 7, "price_cents": 100, "product_id": product.id}],
        )

        product = db.session.get(Product, product.id)
        assert (product.my_stock, product.partner_stock) == (0, 1)

        txs = _invoice_txs("INV-7")
        assert len(txs) == 1
        assert (txs[0].change_my_stock, txs[0].change_partner_stock) == (-3, -4)
        assert txs[0].product_name == "Rice"

    def test_unlinked_lines_are_ignored(self, owner, make_product):
        product = make_product(my_stock=5)

        invoice = add_invoice(
            owner_id=owner.id,
            patch={"name": "Mixed", "invoice_number": "INV-8", "is_paid": True},
            lines=[
                {"description": "Delivery", "quantity": 1, "price_cents": 500},
                {"description": "Rice", "quantity": 2, "price_cents": 100, "product_id": product.id},
            ],
        )

        assert db.session.get(Product, product.id).my_stock == 3
        assert len(_invoice_txs("INV-8")) == 1
        assert invoice.stock_settled_at is not None

    def test_unpaid_invoice_does_not_deduct(self, owner, make_product):
        product = make_product(my_stock=5)

        invoice = add_invoice(
            owner_id=owner.id,
            patch={"name": "Quote", "invoice_number": "INV-9"},
            lines=[{"description": "Rice", "quantity": 2, "product_id": product.id}],
        )

        assert db.session.get(Product, product.id).my_stock == 5
        assert invoice.stock_settled_at is None
        assert needs_settlement(invoice) is False

    def test_multi_item_atomicity(self, owner, make_product):
        """Second line short: both products unchanged, invoice not written."""
        rice = make_product(name_en="Rice", my_stock=10)
        oil = make_product(name_en="Oil", my_stock=1, partner_stock=1)

        with pytest.raises(InsufficientStock) as exc_info:
            add_invoice(
                owner_id=owner.id,
                patch={"name": "Big order", "invoice_number": "INV-10", "is_paid": True},
                lines=[
                    {"description": "Rice", "quantity": 4, "product_id": rice.id},
                    {"description": "Oil", "quantity": 3, "product_id": oil.id},
                ],
            )

        assert str(exc_info.value) == "Not enough stock for 'Oil'. Available: 2, Needed: 3."
        assert db.session.get(Product, rice.id).my_stock == 10
        oil = db.session.get(Product, oil.id)
        assert (oil.my_stock, oil.partner_stock) == (1, 1)
        assert db.session.query(Invoice).count() == 0
        assert _invoice_txs("INV-10") == []

    def test_two_lines_for_same_product_see_each_other(self, owner, make_product):
        product = make_product(my_stock=3, partner_stock=2)

        with pytest.raises(InsufficientStock):
            add_invoice(
                owner_id=owner.id,
                patch={"name": "Split", "invoice_number": "INV-11", "is_paid": True},
                lines=[
                    {"description": "Rice", "quantity": 4, "product_id": product.id},
                    {"description": "Rice", "quantity": 2, "product_id": product.id},
                ],
            )
        product = db.session.get(Product, product.id)
        assert (product.my_stock, product.partner_stock) == (3, 2)

    def test_missing_linked_product_rejects_settlement(self, owner):
        with pytest.raises(ProductNotFound):
            add_invoice(
                owner_id=owner.id,
                patch={"name": "Ghost", "invoice_number": "INV-12", "is_paid": True},
                lines=[{"description": "Gone", "quantity": 1, "product_id": 31337}],
            )
        assert db.session.query(Invoice).count() == 0


class TestPaidTransition:

    def test_only_the_unpaid_to_paid_flip_settles(self, owner, make_invoice):
        invoice = make_invoice([], invoice_number="INV-19")
        invoice.is_paid = True
        assert needs_settlement(invoice) is True
        assert needs_settlement(invoice, was_paid=True) is False
        db.session.rollback()

    def test_resaving_paid_invoice_is_a_no_op(self, owner, make_product):
        product = make_product(my_stock=10)
        invoice = add_invoice(
            owner_id=owner.id,
            patch={"name": "A", "invoice_number": "INV-20", "is_paid": True},
            lines=[{"description": "Rice", "quantity": 4, "product_id": product.id}],
        )

        update_invoice(owner_id=owner.id, invoice_id=invoice.id, patch={"notes": "thanks", "is_paid": True})
        update_invoice(owner_id=owner.id, invoice_id=invoice.id, patch={"name": "A (copy)"})

        assert db.session.get(Product, product.id).my_stock == 6
        assert len(_invoice_txs("INV-20")) == 1

    def test_unpaid_to_paid_transition_settles_merged_invoice(self, owner, make_product, make_invoice):
        product = make_product(my_stock=10)
        invoice = make_invoice(
            [{"description": "Rice", "quantity": 2, "product_id": product.id}],
            invoice_number="INV-21",
        )

        update_invoice(
            owner_id=owner.id,
            invoice_id=invoice.id,
            patch={"is_paid": True},
            lines=[{"description": "Rice", "quantity": 5, "product_id": product.id}],
        )

        assert db.session.get(Product, product.id).my_stock == 5
        txs = _invoice_txs("INV-21")
        assert len(txs) == 1
        assert txs[0].change_my_stock == -5

    def test_unmark_keeps_stock_and_remark_deducts_again(self, owner, make_product):
        product = make_product(my_stock=10)
        invoice = add_invoice(
            owner_id=owner.id,
            patch={"name": "B", "invoice_number": "INV-22", "is_paid": True},
            lines=[{"description": "Rice", "quantity": 3, "product_id": product.id}],
        )

        invoice = update_invoice(owner_id=owner.id, invoice_id=invoice.id, patch={"is_paid": False})
        assert invoice.paid_at is None
        assert db.session.get(Product, product.id).my_stock == 7

        invoice = update_invoice(owner_id=owner.id, invoice_id=invoice.id, patch={"is_paid": True})
        assert invoice.paid_at is not None
        assert db.session.get(Product, product.id).my_stock == 4
        assert len(_invoice_txs("INV-22")) == 2

    def test_lines_replaced_while_unpaid_are_deducted_when_paid_again(self, owner, make_product):
        rice = make_product(name_en="Rice", my_stock=10)
        oil = make_product(name_en="Oil", my_stock=10)
        invoice = add_invoice(
            owner_id=owner.id,
            patch={"name": "C", "invoice_number": "INV-25", "is_paid": True},
            lines=[{"description": "Rice", "quantity": 1, "product_id": rice.id}],
        )

        update_invoice(
            owner_id=owner.id,
            invoice_id=invoice.id,
            patch={"is_paid": False},
            lines=[{"description": "Oil", "quantity": 5, "product_id": oil.id}],
        )
        assert db.session.get(Product, oil.id).my_stock == 10

        update_invoice(owner_id=owner.id, invoice_id=invoice.id, patch={"is_paid": True})

        assert db.session.get(Product, rice.id).my_stock == 9
        assert db.session.get(Product, oil.id).my_stock == 5
        txs = _invoice_txs("INV-25")
        assert [(tx.product_id, tx.change_my_stock) for tx in txs] == [(rice.id, -1), (oil.id, -5)]

    def test_failed_paid_transition_keeps_invoice_unpaid(self, owner, make_product, make_invoice):
        product = make_product(my_stock=1)
        invoice = make_invoice(
            [{"description": "Rice", "quantity": 5, "product_id": product.id}],
            invoice_number="INV-23",
        )

        with pytest.raises(InsufficientStock):
            update_invoice(owner_id=owner.id, invoice_id=invoice.id, patch={"is_paid": True, "notes": "x"})

        invoice = db.session.get(Invoice, invoice.id)
        assert invoice.is_paid is False
        assert invoice.notes is None
        assert invoice.stock_settled_at is None
        assert db.session.get(Product, product.id).my_stock == 1

    def test_process_does_not_commit(self, owner, make_product, make_invoice):
        product = make_product(my_stock=4)
        invoice = make_invoice(
            [{"description": "Rice", "quantity": 4, "product_id": product.id}],
            invoice_number="INV-24",
        )
        invoice.is_paid = True

        txs = process_invoice_stock_update(owner_id=owner.id, invoice=invoice)
        assert len(txs) == 1
        db.session.rollback()

        assert db.session.get(Product, product.id).my_stock == 4
        assert db.session.get(Invoice, invoice.id).stock_settled_at is None


class TestSettlementConflict:
    """A version bump on any linked product aborts the whole settlement."""

    def test_concurrent_bump_on_second_product_rolls_back_everything(self, owner, make_product, monkeypatch):
        rice = make_product(name_en="Rice", my_stock=10)
        oil = make_product(name_en="Oil", my_stock=2, partner_stock=5)
        rice_id, oil_id = rice.id, oil.id
        log_before = db.session.query(InventoryTransaction).count()

        real_get = settlement_service.get_product_for_owner

        def get_then_bump(owner_id, pid, *, lock=False):
            loaded = real_get(owner_id, pid, lock=lock)
            if pid == oil_id:
                # Another writer commits between our read and our write
                db.session.execute(
                    text("UPDATE products SET version_id = version_id + 1 WHERE id = :id"),
                    {"id": pid},
                )
            return loaded

        monkeypatch.setattr(settlement_service, "get_product_for_owner", get_then_bump)

        with pytest.raises(StockConflict):
            add_invoice(
                owner_id=owner.id,
                patch={"name": "Race", "invoice_number": "INV-30", "is_paid": True},
                lines=[
                    {"description": "Rice", "quantity": 4, "product_id": rice_id},
                    {"description": "Oil", "quantity": 3, "product_id": oil_id},
                ],
            )

        monkeypatch.undo()
        assert db.session.get(Product, rice_id).my_stock == 10
        oil = db.session.get(Product, oil_id)
        assert (oil.my_stock, oil.partner_stock) == (2, 5)
        assert db.session.query(Invoice).count() == 0
        assert db.session.query(InventoryTransaction).count() == log_before

    def test_conflict_on_paid_transition_keeps_invoice_unpaid(self, owner, make_product, make_invoice, monkeypatch):
        product = make_product(my_stock=6)
        product_id = product.id
        invoice = make_invoice(
            [{"description": "Rice", "quantity": 2, "product_id": product_id}],
            invoice_number="INV-31",
        )
        invoice_id = invoice.id

        real_get = settlement_service.get_product_for_owner

        def get_then_bump(owner_id, pid, *, lock=False):
            loaded = real_get(owner_id, pid, lock=lock)
            db.session.execute(
                text("UPDATE products SET version_id = version_id + 1 WHERE id = :id"),
                {"id": pid},
            )
            return loaded

        monkeypatch.setattr(settlement_service, "get_product_for_owner", get_then_bump)

        with pytest.raises(StockConflict):
            update_invoice(owner_id=owner.id, invoice_id=invoice_id, patch={"is_paid": True})

        monkeypatch.undo()
        invoice = db.session.get(Invoice, invoice_id)
        assert invoice.is_paid is False
        assert invoice.paid_at is None
        assert invoice.stock_settled_at is None
        assert db.session.get(Product, product_id).my_stock == 6
        assert _invoice_txs("INV-31") == []
