# Overview: Pytest coverage for Flask CLI commands.

from stockledger.extensions import db
from stockledger.models import BusinessOwner, Product
from stockledger.services import owner_service


def _token_from(output):
    for line in output.splitlines():
        if line.startswith("TOKEN "):
            return line.split(" ", 1)[1].strip()
    return None


class TestOwnerCommands:

    def test_create_prints_working_token(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["owners", "create", "--name", "Kiran Mart", "--currency", "PKR"])

        assert result.exit_code == 0
        assert "PASS Created owner: Kiran Mart" in result.output
        token = _token_from(result.output)
        owner = owner_service.get_owner_by_token(token)
        assert owner is not None
        assert owner.currency == "PKR"
        assert owner.api_token_hash != token

    def test_create_requires_a_name(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["owners", "create", "--name", "  "])
        assert "FAIL" in result.output
        assert db.session.query(BusinessOwner).count() == 0

    def test_rotate_token_invalidates_old_one(self, app, owner_and_token):
        owner, old_token = owner_and_token

        result = app.test_cli_runner().invoke(args=["owners", "rotate-token", str(owner.id)])

        new_token = _token_from(result.output)
        assert new_token and new_token != old_token
        assert owner_service.get_owner_by_token(old_token) is None
        assert owner_service.get_owner_by_token(new_token).id == owner.id

    def test_list(self, app, owner):
        result = app.test_cli_runner().invoke(args=["owners", "list"])
        assert "Owner A - Ali Traders" in result.output


class TestStockCommands:

    def test_adjust(self, app, owner, make_product):
        product = make_product(my_stock=5)

        result = app.test_cli_runner().invoke(args=[
            "stock", "adjust",
            "--owner-id", str(owner.id),
            "--product-id", str(product.id),
            "--type", "sold_to_customer",
            "--quantity", "2",
        ])

        assert "PASS sold_to_customer" in result.output
        assert db.session.get(Product, product.id).my_stock == 3

    def test_adjust_reports_ledger_error(self, app, owner, make_product):
        product = make_product(my_stock=1)

        result = app.test_cli_runner().invoke(args=[
            "stock", "adjust",
            "--owner-id", str(owner.id),
            "--product-id", str(product.id),
            "--type", "sold_to_customer",
            "--quantity", "9",
        ])

        assert "FAIL Not enough 'My Stock'" in result.output
        assert db.session.get(Product, product.id).my_stock == 1

    def test_summary(self, app, owner, make_product):
        make_product(name_en="Rice", my_stock=4, sale_price_cents=150, purchase_price_cents=100)

        result = app.test_cli_runner().invoke(args=["stock", "summary", "--owner-id", str(owner.id)])

        assert result.exit_code == 0
        assert "Total stock value:     6.00" in result.output
        assert "My stock (purchase):   4.00" in result.output
        assert "Rice" in result.output


class TestSystemCommands:

    def test_init_db_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        assert "PASS" in runner.invoke(args=["system", "init-db"]).output
        assert "PASS" in runner.invoke(args=["system", "init-db"]).output

    def test_reset_db_requires_confirmation(self, app, owner):
        result = app.test_cli_runner().invoke(args=["system", "reset-db"], input="n\n")
        assert result.exit_code != 0
        assert db.session.query(BusinessOwner).count() == 1
