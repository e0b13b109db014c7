# Overview: Pytest coverage for distribution and outlet-sale invoices, settlement and payments.

"""
Invoice Engine Tests

Proves:
1. Distribution invoices credit stock, number per store and accrue credit
2. Any failing line rolls back the whole invoice (number included)
3. Outlet sales are all-or-nothing against available stock
4. Status machine and credit round-trip (accrue on create, settle on paid)
5. Partial payments move credit to paid until the invoice completes
"""

import pytest

from stockroom.errors import (
    AccessDeniedError,
    CreditLimitExceededError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    NotFoundError,
    OverSettlementError,
    ValidationError,
)
from stockroom.models import (
    DocumentSequence,
    InventoryTransaction,
    Invoice,
    InvoiceItem,
    Outlet,
    Payment,
    StockEntry,
    Store,
)
from stockroom.services import invoice_service
from stockroom.services.invoice_service import (
    create_distribution_invoice,
    create_outlet_sale_invoice,
    record_payment,
    update_invoice_status,
)


def _line(product, quantity, room, **extra):
    return {"product_id": product.id, "quantity": quantity, "location": {"type": "room", "id": room.id}, **extra}


def _store_credit(session, store_id):
    return session.get(Store, store_id).current_credit_cents


class TestDistributionInvoice:

    def test_paid_distribution_completes_and_credits_stock(self, db_session, store, room, product, admin_actor):
        invoice = create_distribution_invoice(store.id, [_line(product, 12, room)], "paid", actor=admin_actor)

        assert invoice.invoice_number == f"DIST-{store.id:03d}-000001"
        assert invoice.status == "completed"
        assert invoice.completed_at is not None
        assert invoice.total_amount_cents == 3000
        assert invoice.paid_amount_cents == 3000
        assert invoice.credit_amount_cents == 0
        assert _store_credit(db_session, store.id) == 0

        entry = db_session.query(StockEntry).filter_by(product_id=product.id, store_id=store.id).one()
        assert entry.quantity == 12
        assert entry.reorder_level == 10

        tx = db_session.query(InventoryTransaction).filter_by(stock_entry_id=entry.id).one()
        assert tx.action == "add"
        assert tx.invoice_id == invoice.id

        item = db_session.query(InvoiceItem).filter_by(invoice_id=invoice.id).one()
        assert (item.quantity, item.price_cents, item.total_price_cents) == (12, 250, 3000)
        assert item.stock_entry_id == entry.id

    def test_numbers_increase_per_store(self, db_session, store, room, product, admin_actor):
        first = create_distribution_invoice(store.id, [_line(product, 1, room)], "paid", actor=admin_actor)
        second = create_distribution_invoice(store.id, [_line(product, 1, room)], "paid", actor=admin_actor)

        assert first.invoice_number.endswith("-000001")
        assert second.invoice_number.endswith("-000002")

    def test_quoted_price_overrides_list_price(self, db_session, store, room, product, admin_actor):
        invoice = create_distribution_invoice(
            store.id, [_line(product, 4, room, price_cents=199)], "paid", actor=admin_actor
        )
        assert invoice.total_amount_cents == 796

    def test_credit_distribution_accrues_store_credit(self, db_session, store, room, product, admin_actor):
        invoice = create_distribution_invoice(store.id, [_line(product, 12, room)], "credit", actor=admin_actor)

        assert invoice.status == "pending"
        assert invoice.credit_amount_cents == 3000
        assert invoice.paid_amount_cents == 0
        assert _store_credit(db_session, store.id) == 3000

    def test_mixed_distribution_splits_amounts(self, db_session, store, room, product, admin_actor):
        invoice = create_distribution_invoice(
            store.id, [_line(product, 12, room)], "mixed", credit_amount=1000, actor=admin_actor
        )

        assert invoice.credit_amount_cents == 1000
        assert invoice.paid_amount_cents == 2000
        assert invoice.status == "pending"
        assert _store_credit(db_session, store.id) == 1000

    def test_mixed_amounts_must_reconcile(self, db_session, store, room, product, admin_actor):
        with pytest.raises(ValidationError):
            create_distribution_invoice(
                store.id, [_line(product, 12, room)], "mixed",
                credit_amount=1000, paid_amount=1000, actor=admin_actor,
            )

        assert db_session.query(Invoice).count() == 0
        assert db_session.query(StockEntry).count() == 0
        assert db_session.query(InventoryTransaction).count() == 0
        assert _store_credit(db_session, store.id) == 0

    def test_unknown_product_rolls_back_everything(self, db_session, store, room, product, admin_actor):
        items = [_line(product, 5, room), {"product_id": 999999, "quantity": 1, "location": {"type": "room", "id": room.id}}]

        with pytest.raises(NotFoundError):
            create_distribution_invoice(store.id, items, "credit", actor=admin_actor)

        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0
        assert db_session.query(StockEntry).count() == 0
        assert db_session.query(InventoryTransaction).count() == 0
        assert db_session.query(DocumentSequence).count() == 0
        assert _store_credit(db_session, store.id) == 0

        # the number released by the rollback is reused
        invoice = create_distribution_invoice(store.id, [_line(product, 1, room)], "paid", actor=admin_actor)
        assert invoice.invoice_number.endswith("-000001")

    def test_other_tenant_product_is_not_found(self, db_session, store, room, other_product, admin_actor):
        with pytest.raises(NotFoundError):
            create_distribution_invoice(store.id, [_line(other_product, 1, room)], "paid", actor=admin_actor)

    def test_location_required(self, db_session, store, product, admin_actor):
        with pytest.raises(ValidationError):
            create_distribution_invoice(
                store.id, [{"product_id": product.id, "quantity": 1}], "paid", actor=admin_actor
            )

    def test_actor_is_keyword_only(self, db_session, store, room, product, admin_actor):
        with pytest.raises(TypeError):
            create_distribution_invoice(store.id, [_line(product, 1, room)], "paid")
        with pytest.raises(TypeError):
            create_distribution_invoice(store.id, [_line(product, 1, room)], "paid", None, None, admin_actor)

    def test_only_owner_can_distribute(self, db_session, store, room, product, manager_actor, other_admin_actor):
        with pytest.raises(AccessDeniedError):
            create_distribution_invoice(store.id, [_line(product, 1, room)], "paid", actor=manager_actor)
        with pytest.raises(AccessDeniedError):
            create_distribution_invoice(store.id, [_line(product, 1, room)], "paid", actor=other_admin_actor)
        assert db_session.query(Invoice).count() == 0

    def test_superadmin_can_distribute(self, db_session, store, room, product, superadmin_actor, admin):
        invoice = create_distribution_invoice(store.id, [_line(product, 2, room)], "paid", actor=superadmin_actor)
        assert invoice.admin_id == admin.id
        assert invoice.created_by_user_id == superadmin_actor.id

    def test_credit_limit_enforced_when_enabled(self, app, db_session, store, room, product, admin_actor, monkeypatch):
        monkeypatch.setitem(app.config, "STOCKROOM_ENFORCE_CREDIT_LIMIT", True)

        # 500 x 250 = 125000 > limit of 100000
        with pytest.raises(CreditLimitExceededError):
            create_distribution_invoice(store.id, [_line(product, 500, room)], "credit", actor=admin_actor)

        assert db_session.query(Invoice).count() == 0
        assert db_session.query(StockEntry).count() == 0
        assert _store_credit(db_session, store.id) == 0

    def test_credit_limit_advisory_by_default(self, db_session, store, room, product, admin_actor, caplog):
        with caplog.at_level("WARNING", logger="stockroom"):
            create_distribution_invoice(store.id, [_line(product, 500, room)], "credit", actor=admin_actor)

        assert _store_credit(db_session, store.id) == 125_000
        assert any("exceeds limit" in record.getMessage() for record in caplog.records)


class TestOutletSaleInvoice:

    @pytest.fixture
    def stocked(self, store, room, product, admin_actor):
        create_distribution_invoice(store.id, [_line(product, 12, room)], "paid", actor=admin_actor)
        return store

    def test_sale_debits_stock(self, db_session, stocked, dummy_outlet, product, manager_actor):
        result = create_outlet_sale_invoice(
            stocked.id, dummy_outlet.id,
            [{"product_id": product.id, "quantity": 5}],
            "credit", manager_actor,
        )
        invoice = result["invoice"]

        assert invoice.invoice_number == f"SALE-{stocked.id:03d}-000001"
        assert invoice.invoice_type == "outlet_sale"
        assert invoice.status == "completed"
        assert invoice.total_amount_cents == 1250
        assert invoice.credit_amount_cents == 1250
        assert invoice.paid_amount_cents == 0
        assert len(result["invoice_items"]) == 1

        entry = db_session.query(StockEntry).filter_by(product_id=product.id).one()
        assert entry.quantity == 7

        sale_tx = db_session.query(InventoryTransaction).filter_by(invoice_id=invoice.id).one()
        assert sale_tx.action == "subtract"
        assert sale_tx.quantity_changed == -5

        assert db_session.get(Outlet, dummy_outlet.id).current_credit_cents == 1250
        assert db_session.get(Store, stocked.id).current_credit_cents == 0

    def test_paid_sale(self, db_session, stocked, dummy_outlet, product, admin_actor):
        result = create_outlet_sale_invoice(
            stocked.id, dummy_outlet.id, [{"product_id": product.id, "quantity": 2}], "paid", admin_actor,
        )
        assert result["invoice"].paid_amount_cents == 500
        assert result["invoice"].credit_amount_cents == 0
        assert db_session.get(Outlet, dummy_outlet.id).current_credit_cents == 0

    def test_insufficient_stock_leaves_no_rows(self, db_session, stocked, dummy_outlet, product, second_product, manager_actor):
        with pytest.raises(InsufficientStockError) as excinfo:
            create_outlet_sale_invoice(
                stocked.id, dummy_outlet.id,
                [{"product_id": product.id, "quantity": 5}, {"product_id": product.id, "quantity": 20}],
                "credit", manager_actor,
            )

        assert excinfo.value.product_id == product.id
        assert db_session.query(Invoice).filter_by(invoice_type="outlet_sale").count() == 0
        assert db_session.query(DocumentSequence).filter_by(document_type="OUTLET_SALE").count() == 0
        assert db_session.query(StockEntry).filter_by(product_id=product.id).one().quantity == 12
        assert db_session.query(InventoryTransaction).filter_by(action="subtract").count() == 0
        assert db_session.get(Outlet, dummy_outlet.id).current_credit_cents == 0

        with pytest.raises(InsufficientStockError):
            create_outlet_sale_invoice(
                stocked.id, dummy_outlet.id, [{"product_id": second_product.id, "quantity": 1}],
                "paid", manager_actor,
            )

    def test_outlet_must_belong_to_store(self, db_session, stocked, other_store, product, superadmin_actor):
        foreign_outlet = other_store.outlets[0]
        with pytest.raises(NotFoundError):
            create_outlet_sale_invoice(
                stocked.id, foreign_outlet.id, [{"product_id": product.id, "quantity": 1}],
                "paid", superadmin_actor,
            )

    def test_sale_from_named_location(self, db_session, stocked, room, rack, dummy_outlet, product, admin_actor):
        with pytest.raises(InsufficientStockError):
            create_outlet_sale_invoice(
                stocked.id, dummy_outlet.id,
                [{"product_id": product.id, "quantity": 1, "location": {"type": "rack", "id": rack.id}}],
                "paid", admin_actor,
            )

        result = create_outlet_sale_invoice(
            stocked.id, dummy_outlet.id,
            [{"product_id": product.id, "quantity": 1, "location": {"type": "room", "id": room.id}}],
            "paid", admin_actor,
        )
        assert result["invoice_items"][0].location_type == "room"

    def test_credit_sale_can_be_paid(self, db_session, stocked, dummy_outlet, product, manager_actor):
        sale = create_outlet_sale_invoice(
            stocked.id, dummy_outlet.id, [{"product_id": product.id, "quantity": 2}], "credit", manager_actor,
        )["invoice"]
        assert db_session.get(Outlet, dummy_outlet.id).current_credit_cents == 500

        paid = update_invoice_status(sale.id, "paid", manager_actor, payment_details={"payment_method": "cash"})

        assert paid.status == "completed"
        assert paid.credit_amount_cents == 0
        assert paid.paid_amount_cents == 500
        assert db_session.get(Outlet, dummy_outlet.id).current_credit_cents == 0
        assert db_session.query(Payment).filter_by(invoice_id=sale.id).one().amount_cents == 500

        with pytest.raises(InvalidStatusTransitionError):
            update_invoice_status(sale.id, "paid", manager_actor)
        with pytest.raises(InvalidStatusTransitionError):
            update_invoice_status(sale.id, "cancelled", manager_actor)

    def test_credit_sale_partial_payments(self, db_session, stocked, dummy_outlet, product, admin_actor):
        sale = create_outlet_sale_invoice(
            stocked.id, dummy_outlet.id, [{"product_id": product.id, "quantity": 4}], "credit", admin_actor,
        )["invoice"]

        first = record_payment(sale.id, 400, admin_actor)
        assert first["invoice"].status == "completed"
        assert first["invoice"].credit_amount_cents == 600
        assert db_session.get(Outlet, dummy_outlet.id).current_credit_cents == 600

        record_payment(sale.id, 600, admin_actor)
        assert db_session.get(Outlet, dummy_outlet.id).current_credit_cents == 0
        with pytest.raises(InvalidStatusTransitionError):
            record_payment(sale.id, 1, admin_actor)


class TestStatusAndPayments:

    @pytest.fixture
    def credit_invoice(self, store, room, product, admin_actor):
        return create_distribution_invoice(store.id, [_line(product, 12, room)], "credit", actor=admin_actor)

    def test_paid_settles_credit_round_trip(self, db_session, store, credit_invoice, admin_actor):
        assert _store_credit(db_session, store.id) == 3000

        invoice = update_invoice_status(
            credit_invoice.id, "paid", admin_actor,
            payment_details={"payment_method": "bank_transfer", "transaction_ref": "TX-1"},
        )

        assert invoice.status == "completed"
        assert invoice.credit_amount_cents == 0
        assert invoice.paid_amount_cents == invoice.total_amount_cents == 3000
        assert _store_credit(db_session, store.id) == 0

        payment = db_session.query(Payment).filter_by(invoice_id=invoice.id).one()
        assert payment.amount_cents == 3000
        assert payment.payment_method == "bank_transfer"
        assert payment.transaction_ref == "TX-1"

    def test_paid_without_details_records_no_payment(self, db_session, credit_invoice, admin_actor):
        update_invoice_status(credit_invoice.id, "paid", admin_actor)
        assert db_session.query(Payment).count() == 0

    def test_terminal_states(self, db_session, credit_invoice, admin_actor):
        update_invoice_status(credit_invoice.id, "completed", admin_actor)

        with pytest.raises(InvalidStatusTransitionError):
            update_invoice_status(credit_invoice.id, "cancelled", admin_actor)
        with pytest.raises(InvalidStatusTransitionError):
            update_invoice_status(credit_invoice.id, "paid", admin_actor)

    def test_cancel_releases_credit_and_keeps_stock(self, db_session, store, product, credit_invoice, admin_actor):
        invoice = update_invoice_status(credit_invoice.id, "cancelled", admin_actor)

        assert invoice.status == "cancelled"
        assert invoice.cancelled_at is not None
        assert _store_credit(db_session, store.id) == 0
        assert db_session.query(StockEntry).filter_by(product_id=product.id).one().quantity == 12

        with pytest.raises(InvalidStatusTransitionError):
            update_invoice_status(credit_invoice.id, "pending", admin_actor)

    def test_unknown_status(self, db_session, credit_invoice, admin_actor):
        with pytest.raises(ValidationError):
            update_invoice_status(credit_invoice.id, "refunded", admin_actor)

    def test_manager_cannot_settle_distribution(self, db_session, credit_invoice, manager_actor):
        with pytest.raises(AccessDeniedError):
            update_invoice_status(credit_invoice.id, "paid", manager_actor)

    def test_over_settlement_rejected(self, db_session, store, credit_invoice, admin_actor):
        # Someone zeroed the store balance behind the ledger's back
        db_session.get(Store, store.id).current_credit_cents = 0
        db_session.commit()

        with pytest.raises(OverSettlementError):
            update_invoice_status(credit_invoice.id, "paid", admin_actor)
        assert db_session.get(Invoice, credit_invoice.id).status == "pending"

    def test_partial_payments_complete_invoice(self, db_session, store, credit_invoice, admin_actor):
        first = record_payment(credit_invoice.id, 1000, admin_actor, payment_method="cash")
        assert first["invoice"].status == "pending"
        assert first["invoice"].credit_amount_cents == 2000
        assert first["invoice"].paid_amount_cents == 1000
        assert _store_credit(db_session, store.id) == 2000

        with pytest.raises(ValidationError):
            record_payment(credit_invoice.id, 2001, admin_actor)

        second = record_payment(credit_invoice.id, 2000, admin_actor, payment_method="cheque", transaction_ref="CHQ-9")
        assert second["invoice"].status == "completed"
        assert second["invoice"].credit_amount_cents == 0
        assert _store_credit(db_session, store.id) == 0
        assert db_session.query(Payment).filter_by(invoice_id=credit_invoice.id).count() == 2

        with pytest.raises(InvalidStatusTransitionError):
            record_payment(credit_invoice.id, 1, admin_actor)

    def test_unknown_tender_rejected(self, db_session, credit_invoice, admin_actor):
        with pytest.raises(ValidationError):
            record_payment(credit_invoice.id, 100, admin_actor, payment_method="bitcoin")
        assert db_session.get(Invoice, credit_invoice.id).credit_amount_cents == 3000


class TestInvoiceReads:

    def test_list_scoped_by_tenant(self, db_session, store, room, product, other_store, other_room, other_product,
                                   admin_actor, other_admin_actor, superadmin_actor):
        create_distribution_invoice(store.id, [_line(product, 1, room)], "paid", actor=admin_actor)
        create_distribution_invoice(other_store.id, [_line(other_product, 1, other_room)], "paid", actor=other_admin_actor)

        mine = invoice_service.list_invoices(admin_actor)
        theirs = invoice_service.list_invoices(other_admin_actor)
        everyone = invoice_service.list_invoices(superadmin_actor)

        assert mine["total"] == 1
        assert mine["invoices"][0].store_id == store.id
        assert theirs["total"] == 1
        assert everyone["total"] == 2

    def test_list_filters(self, db_session, store, room, product, dummy_outlet, admin_actor):
        create_distribution_invoice(store.id, [_line(product, 10, room)], "credit", actor=admin_actor)
        create_outlet_sale_invoice(store.id, dummy_outlet.id, [{"product_id": product.id, "quantity": 1}], "paid", admin_actor)

        assert invoice_service.list_invoices(admin_actor, distribution=True)["total"] == 1
        assert invoice_service.list_invoices(admin_actor, distribution=False)["total"] == 1
        assert invoice_service.list_invoices(admin_actor, status="pending")["total"] == 1
        assert invoice_service.list_invoices(admin_actor, start_date="2000-01-01")["total"] == 2
        assert invoice_service.list_invoices(admin_actor, end_date="2000-01-01")["total"] == 0

        paged = invoice_service.list_invoices(admin_actor, per_page=1)
        assert paged["total_pages"] == 2
        assert len(paged["invoices"]) == 1

        with pytest.raises(ValidationError):
            invoice_service.list_invoices(admin_actor, invoice_type="barter")

    def test_get_invoice_with_items(self, db_session, store, room, product, admin_actor, other_admin_actor):
        invoice = create_distribution_invoice(store.id, [_line(product, 3, room)], "credit", actor=admin_actor)
        record_payment(invoice.id, 250, admin_actor)

        data = invoice_service.get_invoice(invoice.id, admin_actor).to_dict(include_items=True)
        assert len(data["items"]) == 1
        assert data["items"][0]["location"] == {"type": "room", "id": room.id}
        assert [p["amount_cents"] for p in data["payments"]] == [250]

        with pytest.raises(AccessDeniedError):
            invoice_service.get_invoice(invoice.id, other_admin_actor)
