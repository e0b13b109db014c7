# Overview: Running credit balances of stores and outlets.

"""
Credit Ledger

WHY: Distribution invoices taken on credit leave the store owing the admin;
outlet sales on credit leave the outlet owing the store. Each account keeps
one running balance (current_credit_cents) that is accrued when a credit
invoice is created and settled when it is paid or cancelled.

DESIGN PRINCIPLES:
- Only the invoice engine calls accrue_credit / settle_credit; both run
  inside its transaction and never commit on their own
- Balance never goes below zero: over-settlement is rejected by default,
  or floored at zero when STOCKROOM_CREDIT_OVERSETTLEMENT = "clamp"
- Credit limit is advisory (logged) unless STOCKROOM_ENFORCE_CREDIT_LIMIT
"""
from __future__ import annotations

from flask import current_app

from ..errors import CreditLimitExceededError, NotFoundError, OverSettlementError, ValidationError
from ..extensions import db
from ..models import Outlet, Store
from .access_service import Actor, get_store_for
from .concurrency import lock_for_update


OVERSETTLEMENT_REJECT = "reject"
OVERSETTLEMENT_CLAMP = "clamp"


def _lock_account(store_id: int | None, outlet_id: int | None):
    if (store_id is None) == (outlet_id is None):
        raise ValidationError("exactly one of store_id or outlet_id is required")
    if store_id is not None:
        account = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        label = f"store {store_id}"
    else:
        account = lock_for_update(db.session.query(Outlet).filter_by(id=outlet_id)).first()
        label = f"outlet {outlet_id}"
    if account is None:
        raise NotFoundError(f"Credit account {label} not found")
    return account, label


def accrue_credit(*, amount_cents: int, store_id: int | None = None, outlet_id: int | None = None) -> int:
    """Increase an account's balance. Returns the new balance."""
    if amount_cents < 0:
        raise ValidationError("credit amount must be >= 0")
    account, label = _lock_account(store_id, outlet_id)
    new_balance = account.current_credit_cents + amount_cents

    if new_balance > account.credit_limit_cents:
        if current_app.config.get("STOCKROOM_ENFORCE_CREDIT_LIMIT"):
            raise CreditLimitExceededError(
                f"Credit for {label} would reach {new_balance}, limit is {account.credit_limit_cents}"
            )
        current_app.logger.warning(
            "%s credit %s exceeds limit %s", label, new_balance, account.credit_limit_cents
        )

    account.current_credit_cents = new_balance
    return new_balance


def settle_credit(*, amount_cents: int, store_id: int | None = None, outlet_id: int | None = None) -> int:
    """Decrease an account's balance. Returns the new balance."""
    if amount_cents < 0:
        raise ValidationError("settlement amount must be >= 0")
    account, label = _lock_account(store_id, outlet_id)
    new_balance = account.current_credit_cents - amount_cents

    if new_balance < 0:
        policy = current_app.config.get("STOCKROOM_CREDIT_OVERSETTLEMENT", OVERSETTLEMENT_REJECT)
        if policy != OVERSETTLEMENT_CLAMP:
            raise OverSettlementError(
                f"Settling {amount_cents} would take {label} credit below zero "
                f"(current {account.current_credit_cents})"
            )
        current_app.logger.warning(
            "%s over-settled by %s, balance floored at zero", label, -new_balance
        )
        new_balance = 0

    account.current_credit_cents = new_balance
    return new_balance


def utilization(current_cents: int, limit_cents: int) -> float | None:
    """Percent of the limit in use, None when there is no limit."""
    if not limit_cents:
        return None
    return round(current_cents / limit_cents * 100, 2)


def get_credit_status(store_id: int, actor: Actor) -> dict:
    store = get_store_for(actor, store_id)
    return {
        "store_id": store.id,
        "credit_limit_cents": store.credit_limit_cents,
        "current_credit_cents": store.current_credit_cents,
        "available_credit_cents": max(0, store.credit_limit_cents - store.current_credit_cents),
        "utilization_percent": utilization(store.current_credit_cents, store.credit_limit_cents),
        "outlets": [
            {
                "outlet_id": outlet.id,
                "name": outlet.name,
                "credit_limit_cents": outlet.credit_limit_cents,
                "current_credit_cents": outlet.current_credit_cents,
                "utilization_percent": utilization(outlet.current_credit_cents, outlet.credit_limit_cents),
            }
            for outlet in sorted(store.outlets, key=lambda o: o.id)
        ],
    }
