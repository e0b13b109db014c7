# Overview: Low-stock / out-of-stock alert evaluation and alert reads.

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError
from ..extensions import db
from ..models import StockAlert, StockEntry
from stockroom.time_utils import utcnow
from .access_service import Actor, accessible_store_ids_query, ensure_store_access
from .concurrency import run_in_transaction


ALERT_LOW_STOCK = "low_stock"
ALERT_OUT_OF_STOCK = "out_of_stock"

ALERT_STATUS_ACTIVE = "active"
ALERT_STATUS_RESOLVED = "resolved"


def evaluate_alert(entry: StockEntry) -> StockAlert | None:
    """
    Raise an alert if the entry sits at or below its reorder level.

    Called after every quantity write, inside the same transaction, so the
    alert and the write commit or roll back together.

    DEDUPLICATION: off by default, every qualifying write inserts a new alert
    row (12 -> 9 -> 5 with reorder level 10 yields two alerts). With
    STOCKROOM_ALERT_DEDUPLICATE on, an existing active alert for the entry is
    refreshed in place instead.
    """
    if entry.quantity > entry.reorder_level:
        return None

    alert_type = ALERT_OUT_OF_STOCK if entry.quantity == 0 else ALERT_LOW_STOCK

    if current_app.config.get("STOCKROOM_ALERT_DEDUPLICATE"):
        existing = (
            db.session.query(StockAlert)
            .filter_by(stock_entry_id=entry.id, status=ALERT_STATUS_ACTIVE)
            .order_by(StockAlert.id.desc())
            .first()
        )
        if existing:
            existing.alert_type = alert_type
            existing.current_quantity = entry.quantity
            existing.threshold = entry.reorder_level
            existing.updated_at = utcnow()
            return existing

    alert = StockAlert(
        stock_entry_id=entry.id,
        store_id=entry.store_id,
        product_id=entry.product_id,
        alert_type=alert_type,
        current_quantity=entry.quantity,
        threshold=entry.reorder_level,
        status=ALERT_STATUS_ACTIVE,
    )
    db.session.add(alert)
    return alert


def list_active_alerts(actor: Actor, *, store_id: int | None = None, alert_type: str | None = None) -> list[StockAlert]:
    query = db.session.query(StockAlert).filter(
        StockAlert.status == ALERT_STATUS_ACTIVE,
        StockAlert.store_id.in_(accessible_store_ids_query(actor)),
    )
    if store_id is not None:
        query = query.filter(StockAlert.store_id == store_id)
    if alert_type:
        query = query.filter(StockAlert.alert_type == alert_type)
    return query.order_by(StockAlert.created_at.desc(), StockAlert.id.desc()).all()


def resolve_alert(alert_id: int, actor: Actor) -> StockAlert:
    def _op():
        alert = db.session.query(StockAlert).filter_by(id=alert_id).first()
        if not alert:
            raise NotFoundError(f"Alert {alert_id} not found")
        ensure_store_access(actor, alert.stock_entry.store, action="resolve alerts for")
        if alert.status == ALERT_STATUS_RESOLVED:
            return alert
        alert.status = ALERT_STATUS_RESOLVED
        alert.resolved_at = utcnow()
        alert.resolved_by_user_id = actor.id
        return alert

    alert = run_in_transaction(_op)
    current_app.logger.info("alert %s resolved by user %s", alert.id, actor.id)
    return alert
