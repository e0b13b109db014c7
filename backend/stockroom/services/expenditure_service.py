from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from ..errors import AccessDeniedError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Expenditure, Store
from stockroom.time_utils import parse_iso_datetime, utcnow
from stockroom.validation import clean_text, require_positive_int
from .access_service import Actor
from .concurrency import lock_for_update, run_with_retry


def _parse_spent_on(value) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed.date()
    raise ValidationError("spent_on must be an ISO date")


def record_expenditure(
    actor: Actor,
    *,
    category: str,
    amount_cents: int,
    spent_on,
    description: str | None = None,
    receipt_path: str | None = None,
    store_id: int | None = None,
) -> Expenditure:
    if not actor.is_admin:
        raise AccessDeniedError("Only admins can record expenditures")
    category = clean_text(category, "category", max_length=64, required=True)
    amount_cents = require_positive_int(amount_cents, "amount_cents")
    spent_on = _parse_spent_on(spent_on)

    def _op():
        if store_id is not None:
            store = db.session.query(Store).filter_by(id=store_id, admin_id=actor.id).first()
            if not store:
                raise NotFoundError(f"Store {store_id} not found")

        expenditure = Expenditure(
            admin_id=actor.id,
            store_id=store_id,
            category=category,
            description=clean_text(description, "description"),
            amount_cents=amount_cents,
            spent_on=spent_on,
            receipt_path=clean_text(receipt_path, "receipt_path", max_length=512),
            is_verified=False,
        )
        db.session.add(expenditure)
        db.session.commit()
        return expenditure

    return run_with_retry(_op)


def _scoped_query(actor: Actor):
    query = db.session.query(Expenditure)
    if actor.is_superadmin:
        return query
    if actor.is_admin:
        return query.filter(Expenditure.admin_id == actor.id)
    raise AccessDeniedError("Expenditures are visible to admins only")


def list_expenditures(
    actor: Actor,
    *,
    category: str | None = None,
    verified: bool | None = None,
    start_date=None,
    end_date=None,
) -> dict:
    query = _scoped_query(actor)
    if category:
        query = query.filter(Expenditure.category.ilike(f"%{category.strip()}%"))
    if verified is not None:
        query = query.filter(Expenditure.is_verified.is_(bool(verified)))
    if start_date is not None:
        query = query.filter(Expenditure.spent_on >= _parse_spent_on(start_date))
    if end_date is not None:
        query = query.filter(Expenditure.spent_on <= _parse_spent_on(end_date))

    rows = query.order_by(Expenditure.spent_on.desc(), Expenditure.id.desc()).all()
    verified_total = sum(row.amount_cents for row in rows if row.is_verified)
    total = sum(row.amount_cents for row in rows)
    return {
        "expenditures": rows,
        "summary": {
            "total_amount_cents": total,
            "verified_amount_cents": verified_total,
            "pending_amount_cents": total - verified_total,
        },
    }


def verify_expenditure(expenditure_id: int, actor: Actor, verified: bool = True) -> Expenditure:
    """Superadmin sign-off. Passing verified=False withdraws it."""
    if not actor.is_superadmin:
        raise AccessDeniedError("Only superadmins can verify expenditures")

    def _op():
        expenditure = lock_for_update(db.session.query(Expenditure).filter_by(id=expenditure_id)).first()
        if not expenditure:
            raise NotFoundError(f"Expenditure {expenditure_id} not found")
        expenditure.is_verified = bool(verified)
        expenditure.verified_by_user_id = actor.id if verified else None
        expenditure.verified_at = utcnow() if verified else None
        db.session.commit()
        return expenditure

    expenditure = run_with_retry(_op)
    current_app.logger.info(
        "expenditure %s %s by user %s", expenditure.id, "verified" if verified else "unverified", actor.id
    )
    return expenditure


def summarize_by_category(actor: Actor) -> list[dict]:
    rows = (
        _scoped_query(actor)
        .with_entities(
            Expenditure.category,
            func.count(Expenditure.id),
            func.coalesce(func.sum(Expenditure.amount_cents), 0),
        )
        .group_by(Expenditure.category)
        .order_by(func.sum(Expenditure.amount_cents).desc())
        .all()
    )
    return [
        {"category": category, "count": int(count), "total_amount_cents": int(total)}
        for category, count, total in rows
    ]
