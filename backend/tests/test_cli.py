# Overview: Pytest coverage for the flask CLI command groups.

from stockroom.models import Store, User
from stockroom.services.credit_service import accrue_credit
from stockroom.services.inventory_service import adjust_quantity


def test_init_db_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init-db", "--superadmin-email", "root@shop.test"])
    second = runner.invoke(args=["system", "init-db", "--superadmin-email", "root@shop.test"])

    assert first.exit_code == 0
    assert "created superadmin root@shop.test" in first.output
    assert "already exists" in second.output
    assert db_session.query(User).filter_by(role="superadmin").count() == 1


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create", "--name", "Ada", "--email", "ada@shop.test", "--role", "admin"])
    assert result.exit_code == 0
    assert "PASS Created admin ada@shop.test" in result.output

    duplicate = runner.invoke(args=["users", "create", "--name", "Ada", "--email", "ada@shop.test", "--role", "admin"])
    assert duplicate.exit_code != 0

    listing = runner.invoke(args=["users", "list"])
    assert "ada@shop.test" in listing.output


def test_stores_need_superadmin(app, db_session, admin):
    result = app.test_cli_runner().invoke(args=["stores", "list"])
    assert result.exit_code != 0
    assert "No active superadmin" in result.output


def test_stores_create(app, db_session, superadmin, admin, manager):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "stores", "create", "--admin-id", str(admin.id), "--name", "Depot",
        "--manager-id", str(manager.id), "--credit-limit-cents", "5000",
    ])
    assert result.exit_code == 0, result.output
    store = db_session.query(Store).filter_by(name="Depot").one()
    assert store.admin_id == admin.id
    assert len(store.outlets) == 1

    wrong = runner.invoke(args=["stores", "create", "--admin-id", str(manager.id), "--name", "Nope"])
    assert wrong.exit_code != 0

    listing = runner.invoke(args=["stores", "list"])
    assert "Depot" in listing.output


def test_low_stock_and_credit_report(app, db_session, superadmin, store, entry, admin_actor):
    adjust_quantity(entry.id, "add", 3, None, admin_actor)
    accrue_credit(store_id=store.id, amount_cents=150_000)
    db_session.commit()
    runner = app.test_cli_runner()

    low = runner.invoke(args=["inventory", "low-stock"])
    assert "BEV-001" in low.output
    assert "qty=3" in low.output

    report = runner.invoke(args=["credit", "report"])
    assert "OVER LIMIT" in report.output
    assert "Total store credit: 150000" in report.output
