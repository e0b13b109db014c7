# Overview: Pytest coverage for read-only report projections.

import pytest

from stockroom.errors import AccessDeniedError
from stockroom.services import audit_service, inventory_service, reporting_service
from stockroom.services.credit_service import accrue_credit
from stockroom.services.inventory_service import adjust_quantity
from stockroom.services.invoice_service import create_outlet_sale_invoice


@pytest.fixture
def stocked(store, entry, second_product, rack_location, admin_actor):
    """Cola 12 in the main room, lemonade 5 on the rack."""
    adjust_quantity(entry.id, "add", 12, "opening stock", admin_actor)
    lemonade = inventory_service.create_stock_entry(store.id, second_product.id, rack_location, admin_actor)
    adjust_quantity(lemonade.id, "add", 5, "opening stock", admin_actor)
    return store


def test_inventory_summary(db_session, stocked, admin_actor):
    summary = reporting_service.inventory_summary(admin_actor)

    assert summary == {
        "stock_entries": 2,
        "distinct_products": 2,
        "total_units": 17,
        "stock_value_cents": 4500,
        "low_stock": 1,
        "out_of_stock": 0,
        "health_percent": 50.0,
    }


def test_inventory_summary_empty_scope(db_session, store, other_admin_actor, admin_actor):
    assert reporting_service.inventory_summary(other_admin_actor)["health_percent"] == 100.0
    with pytest.raises(AccessDeniedError):
        reporting_service.inventory_summary(other_admin_actor, store_id=store.id)


def test_category_and_store_breakdown(db_session, stocked, other_store, admin_actor, superadmin_actor):
    categories = reporting_service.category_breakdown(admin_actor)
    assert len(categories) == 1
    assert categories[0]["category"] == "Beverages"
    assert categories[0]["products"] == 2
    assert categories[0]["total_units"] == 17

    stores = reporting_service.store_breakdown(superadmin_actor)
    assert [(s["store"], s["total_units"], s["stock_value_cents"]) for s in stores] == [
        ("Central", 17, 4500),
        ("Harbour", 0, 0),
    ]


def test_credit_utilization_report(db_session, store, admin_actor):
    accrue_credit(store_id=store.id, amount_cents=25_000)
    db_session.commit()

    report = reporting_service.credit_utilization_report(admin_actor)
    assert report["stores"][0]["utilization_percent"] == 25.0
    assert report["stores"][0]["over_limit"] is False
    assert report["outlets"][0]["utilization_percent"] is None
    assert report["total_store_credit_cents"] == 25_000
    assert report["total_outlet_credit_cents"] == 0


def test_outlet_sales_summary(db_session, stocked, dummy_outlet, product, admin_actor):
    create_outlet_sale_invoice(stocked.id, dummy_outlet.id, [{"product_id": product.id, "quantity": 5}], "credit",
                               admin_actor)

    summary = reporting_service.outlet_sales_summary(admin_actor, start="2000-01-01")
    assert summary["start"] == "2000-01-01T00:00:00Z"
    assert summary["rows"] == [{
        "outlet_id": dummy_outlet.id,
        "outlet": "Central - Dummy Outlet",
        "invoices": 1,
        "units_sold": 5,
        "sales_cents": 1250,
    }]
    assert summary["total_sales_cents"] == 1250

    future = reporting_service.outlet_sales_summary(admin_actor, start="2999-01-01T00:00:00Z")
    assert future["rows"] == []
    assert future["total_sales_cents"] == 0


def test_audit_history(db_session, stocked, product, second_product, admin_actor, other_admin_actor):
    audit_service.perform_audit(
        stocked.id, None,
        [
            {"product_id": product.id, "counted_quantity": 12},
            {"product_id": second_product.id, "counted_quantity": 4},
        ],
        admin_actor,
    )

    history = reporting_service.audit_history(admin_actor, store_id=stocked.id)
    assert len(history["audits"]) == 1
    assert history["overall_accuracy_rate"] == 50.0

    assert reporting_service.audit_history(other_admin_actor) == {"audits": [], "overall_accuracy_rate": 100.0}
