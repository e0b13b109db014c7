# Overview: Append-only transaction log for stock mutations.

from __future__ import annotations

from ..extensions import db
from ..models import InventoryTransaction, StockEntry
from stockroom.locations import Location
from stockroom.time_utils import utcnow

"""
Transaction Log Invariants (authoritative)

- One row per quantity mutation, written in the same DB transaction as the
  stock write it describes.
- No updates or deletes of existing rows; nothing in the codebase issues one.
- quantity_changed = new_quantity - old_quantity of the logged stock entry.
- Moves log once, on the source entry, with destination_entry_id and both
  locations set.
"""

ACTION_ADD = "add"
ACTION_SUBTRACT = "subtract"
ACTION_ADJUST = "adjust"
ACTION_MOVE = "move"
ACTION_AUDIT_ADJUST = "audit_adjust"

LOG_ACTIONS = (ACTION_ADD, ACTION_SUBTRACT, ACTION_ADJUST, ACTION_MOVE, ACTION_AUDIT_ADJUST)


def append_transaction(
    *,
    entry: StockEntry,
    action: str,
    old_quantity: int,
    new_quantity: int,
    performed_by_user_id: int,
    reason: str | None = None,
    destination_entry: StockEntry | None = None,
    from_location: Location | None = None,
    to_location: Location | None = None,
    invoice_id: int | None = None,
    audit_id: int | None = None,
) -> InventoryTransaction:
    if action not in LOG_ACTIONS:
        raise ValueError(f"unknown log action: {action}")

    tx = InventoryTransaction(
        stock_entry_id=entry.id,
        destination_entry_id=destination_entry.id if destination_entry is not None else None,
        product_id=entry.product_id,
        store_id=entry.store_id,
        action=action,
        old_quantity=old_quantity,
        new_quantity=new_quantity,
        quantity_changed=new_quantity - old_quantity,
        reason=reason,
        from_location_type=from_location.kind if from_location else None,
        from_location_id=from_location.id if from_location else None,
        to_location_type=to_location.kind if to_location else None,
        to_location_id=to_location.id if to_location else None,
        invoice_id=invoice_id,
        audit_id=audit_id,
        performed_by_user_id=performed_by_user_id,
        occurred_at=utcnow(),
    )
    db.session.add(tx)
    return tx


def list_transactions(
    *,
    stock_entry_id: int | None = None,
    store_id: int | None = None,
    product_id: int | None = None,
    action: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[InventoryTransaction], int]:
    """Newest first. Moves are also returned for their destination entry."""
    query = db.session.query(InventoryTransaction)
    if stock_entry_id is not None:
        query = query.filter(
            db.or_(
                InventoryTransaction.stock_entry_id == stock_entry_id,
                InventoryTransaction.destination_entry_id == stock_entry_id,
            )
        )
    if store_id is not None:
        query = query.filter(InventoryTransaction.store_id == store_id)
    if product_id is not None:
        query = query.filter(InventoryTransaction.product_id == product_id)
    if action:
        query = query.filter(InventoryTransaction.action == action)

    if page < 1:
        page = 1
    if per_page < 1:
        per_page = 1
    if per_page > 200:
        per_page = 200

    total = query.count()
    rows = (
        query.order_by(InventoryTransaction.occurred_at.desc(), InventoryTransaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return rows, total
