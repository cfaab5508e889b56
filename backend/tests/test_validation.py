# Overview: Pytest coverage for request payload validation.

from datetime import date

import pytest

from stockledger.models import Invoice, Product
from stockledger.routes.invoices import INVOICE_POLICY
from stockledger.routes.products import PRODUCT_CREATE_POLICY
from stockledger.validation import (
    MAX_PRICE_CENTS,
    ModelValidationPolicy,
    ValidationError,
    coerce_bool,
    coerce_int,
    enforce_rules_invoice,
    enforce_rules_line_item,
    enforce_rules_product,
    parse_partner_payment,
    parse_stock_adjustment,
    validate_payload,
)


class TestCoercion:

    @pytest.mark.parametrize("raw,expected", [(5, 5), ("12", 12), (" -3 ", -3)])
    def test_coerce_int(self, raw, expected):
        assert coerce_int("q", raw) == expected

    @pytest.mark.parametrize("raw", ["1e3", "12.5", 12.5, True, "", "abc", None])
    def test_coerce_int_rejects(self, raw):
        with pytest.raises(ValidationError):
            coerce_int("q", raw)

    @pytest.mark.parametrize("raw,expected", [(True, True), ("yes", True), ("0", False), ("false", False)])
    def test_coerce_bool(self, raw, expected):
        assert coerce_bool("b", raw) is expected

    def test_coerce_bool_rejects(self):
        with pytest.raises(ValidationError):
            coerce_bool("b", "maybe")


class TestValidatePayload:

    POLICY = ModelValidationPolicy(
        writable_fields={"name_en", "sale_price_cents"},
        required_on_create={"name_en"},
    )

    def test_unknown_and_disallowed_fields(self, app):
        with pytest.raises(ValidationError, match="Field not allowed: my_stock"):
            validate_payload(model=Product, payload={"my_stock": 3}, policy=self.POLICY, partial=True)

    def test_required_on_create(self, app):
        with pytest.raises(ValidationError, match="Missing required fields: name_en"):
            validate_payload(model=Product, payload={"sale_price_cents": 1}, policy=self.POLICY, partial=False)

    def test_strings_are_stripped_and_ints_coerced(self, app):
        patch = validate_payload(
            model=Product, payload={"name_en": "  Rice ", "sale_price_cents": "150"}, policy=self.POLICY, partial=False
        )
        assert patch == {"name_en": "Rice", "sale_price_cents": 150}

    def test_non_nullable_column_rejects_null(self, app):
        with pytest.raises(ValidationError, match="cannot be null"):
            validate_payload(model=Product, payload={"sale_price_cents": None}, policy=self.POLICY, partial=True)

    def test_invoice_dates_and_json(self, app):
        policy = ModelValidationPolicy(writable_fields={"issue_date", "client"})
        patch = validate_payload(
            model=Invoice,
            payload={"issue_date": "2026-10-19", "client": {"name": "Hamza", "phone": None}},
            policy=policy,
            partial=True,
        )
        assert patch["issue_date"] == date(2026, 10, 19)
        assert patch["client"] == {"name": "Hamza", "phone": ""}

    def test_invoice_client_must_be_object(self, app):
        policy = ModelValidationPolicy(writable_fields={"client"})
        with pytest.raises(ValidationError, match="must be an object"):
            validate_payload(model=Invoice, payload={"client": "Hamza"}, policy=policy, partial=True)


class TestBusinessRules:

    def test_negative_price(self):
        with pytest.raises(ValidationError):
            enforce_rules_product({"sale_price_cents": -1})

    def test_price_cap(self):
        with pytest.raises(ValidationError):
            enforce_rules_product({"purchase_price_cents": MAX_PRICE_CENTS + 1})

    def test_negative_opening_stock(self):
        with pytest.raises(ValidationError):
            enforce_rules_product({"partner_stock": -2})

    def test_line_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            enforce_rules_line_item({"quantity": 0})

    def test_line_discount_range(self):
        with pytest.raises(ValidationError):
            enforce_rules_line_item({"discount_bps": 10001})

    def test_invoice_discount_type(self):
        with pytest.raises(ValidationError):
            enforce_rules_invoice({"discount_type": "bogo"})

    def test_invoice_tax_range(self):
        with pytest.raises(ValidationError):
            enforce_rules_invoice({"tax_rate_bps": -1})


class TestParseStockAdjustment:

    def test_valid(self):
        parsed = parse_stock_adjustment({
            "product_id": "4",
            "adjustment_type": "sold_to_partner",
            "quantity": 3,
            "sale_price_cents": 120,
            "is_paid": "true",
        })
        assert parsed == {
            "product_id": 4,
            "adjustment_type": "sold_to_partner",
            "quantity": 3,
            "sale_price_cents": 120,
            "is_paid": True,
        }

    def test_zero_quantity_is_left_to_the_ledger(self):
        assert parse_stock_adjustment(
            {"product_id": 1, "adjustment_type": "received_new_stock", "quantity": 0}
        )["quantity"] == 0

    @pytest.mark.parametrize("payload,message", [
        ({"adjustment_type": "sold_to_customer", "quantity": 1}, "Missing required fields: product_id"),
        ({"product_id": 1, "adjustment_type": "stolen", "quantity": 1}, "adjustment_type must be one of"),
        ({"product_id": 1, "adjustment_type": "received_new_stock", "quantity": 1, "sale_price_cents": 5},
         "sale_price_cents must be omitted"),
        ({"product_id": 1, "adjustment_type": "sold_to_customer", "quantity": 1, "is_paid": True},
         "is_paid is only valid"),
        ({"product_id": 1, "adjustment_type": "sold_to_customer", "quantity": 1, "note": "x"},
         "Field not allowed: note"),
    ])
    def test_rejects(self, payload, message):
        with pytest.raises(ValidationError, match=message):
            parse_stock_adjustment(payload)


class TestParsePartnerPayment:

    def test_note_is_trimmed(self):
        parsed = parse_partner_payment({"product_id": 1, "amount_cents": "500", "note": "  cash  "})
        assert parsed == {"product_id": 1, "amount_cents": 500, "note": "cash"}

    def test_missing_amount(self):
        with pytest.raises(ValidationError, match="Missing required fields: amount_cents"):
            parse_partner_payment({"product_id": 1})


class TestTimestampsAreServerOwned:

    @pytest.mark.parametrize("field", ["paid_at", "stock_settled_at", "created_at"])
    def test_invoice_timestamps_are_not_writable(self, app, field):
        with pytest.raises(ValidationError, match=f"Field not allowed: {field}"):
            validate_payload(
                model=Invoice, payload={field: "2026-10-19T08:00:00Z"}, policy=INVOICE_POLICY, partial=True
            )

    def test_product_timestamps_are_not_writable(self, app):
        with pytest.raises(ValidationError, match="Field not allowed: created_at"):
            validate_payload(
                model=Product, payload={"created_at": "2026-10-19T08:00:00Z"}, policy=PRODUCT_CREATE_POLICY, partial=True
            )
