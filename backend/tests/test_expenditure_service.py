# Overview: Pytest coverage for admin expenditures and superadmin verification.

from datetime import date

import pytest

from stockroom.errors import AccessDeniedError, NotFoundError, ValidationError
from stockroom.services import expenditure_service


@pytest.fixture
def expenses(admin_actor, store):
    rent = expenditure_service.record_expenditure(
        admin_actor, category="Rent", amount_cents=120_000, spent_on=date(2026, 3, 1), store_id=store.id,
    )
    fuel = expenditure_service.record_expenditure(
        admin_actor, category="Fuel", amount_cents=8_000, spent_on="2026-03-05", description="Van refill",
    )
    fuel_again = expenditure_service.record_expenditure(
        admin_actor, category="Fuel", amount_cents=6_500, spent_on="2026-03-19T10:00:00Z",
    )
    return rent, fuel, fuel_again


def test_record(db_session, expenses, admin_actor, store):
    rent, fuel, _ = expenses
    assert rent.admin_id == admin_actor.id
    assert rent.store_id == store.id
    assert rent.is_verified is False
    assert fuel.spent_on == date(2026, 3, 5)


def test_only_admins_record(db_session, manager_actor, superadmin_actor):
    for actor in (manager_actor, superadmin_actor):
        with pytest.raises(AccessDeniedError):
            expenditure_service.record_expenditure(actor, category="Misc", amount_cents=1, spent_on="2026-01-01")


def test_record_validation(db_session, admin_actor, other_store):
    with pytest.raises(ValidationError):
        expenditure_service.record_expenditure(admin_actor, category="Misc", amount_cents=0, spent_on="2026-01-01")
    with pytest.raises(ValidationError):
        expenditure_service.record_expenditure(admin_actor, category="Misc", amount_cents=1, spent_on="last week")
    with pytest.raises(NotFoundError):
        expenditure_service.record_expenditure(
            admin_actor, category="Misc", amount_cents=1, spent_on="2026-01-01", store_id=other_store.id,
        )


def test_list_and_summary(db_session, expenses, admin_actor, other_admin_actor):
    listing = expenditure_service.list_expenditures(admin_actor)
    assert [e.category for e in listing["expenditures"]] == ["Fuel", "Fuel", "Rent"]
    assert listing["summary"]["total_amount_cents"] == 134_500
    assert listing["summary"]["pending_amount_cents"] == 134_500

    fuel_only = expenditure_service.list_expenditures(admin_actor, category="fuel", end_date="2026-03-10")
    assert len(fuel_only["expenditures"]) == 1

    assert expenditure_service.list_expenditures(other_admin_actor)["expenditures"] == []
    assert expenditure_service.summarize_by_category(admin_actor) == [
        {"category": "Rent", "count": 1, "total_amount_cents": 120_000},
        {"category": "Fuel", "count": 2, "total_amount_cents": 14_500},
    ]


def test_managers_cannot_read(db_session, manager_actor):
    with pytest.raises(AccessDeniedError):
        expenditure_service.list_expenditures(manager_actor)


def test_verify(db_session, expenses, admin_actor, superadmin_actor):
    rent = expenses[0]
    with pytest.raises(AccessDeniedError):
        expenditure_service.verify_expenditure(rent.id, admin_actor)

    verified = expenditure_service.verify_expenditure(rent.id, superadmin_actor)
    assert verified.is_verified is True
    assert verified.verified_by_user_id == superadmin_actor.id
    assert verified.verified_at is not None

    listing = expenditure_service.list_expenditures(superadmin_actor, verified=True)
    assert [e.id for e in listing["expenditures"]] == [rent.id]
    assert listing["summary"]["verified_amount_cents"] == 120_000

    withdrawn = expenditure_service.verify_expenditure(rent.id, superadmin_actor, verified=False)
    assert withdrawn.verified_by_user_id is None

    with pytest.raises(NotFoundError):
        expenditure_service.verify_expenditure(999999, superadmin_actor)
