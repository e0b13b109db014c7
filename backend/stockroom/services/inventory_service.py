# Overview: Inventory engine: locked quantity writes, moves, bulk adjustments and inventory reads.

# backend/stockroom/services/inventory_service.py

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import (
    InsufficientStockError,
    InvalidActionError,
    NotFoundError,
    StockroomError,
    ValidationError,
)
from ..extensions import db
from ..models import Product, StockEntry
from stockroom.locations import Location
from stockroom.time_utils import utcnow
from stockroom.validation import clean_text, parse_location, require_non_negative_int, require_positive_int
from .access_service import Actor, accessible_store_ids_query, ensure_store_access, get_store_for
from .alert_service import evaluate_alert
from .concurrency import RetryableConflict, lock_for_update, run_in_transaction
from .ledger_service import (
    ACTION_ADD,
    ACTION_ADJUST,
    ACTION_MOVE,
    ACTION_SUBTRACT,
    append_transaction,
    list_transactions,
)
from .store_service import adjust_occupancy, ensure_location_in_store

"""
Stockroom Inventory Invariants (authoritative)

Inventory model:
- Quantity lives on StockEntry rows, one per (product, store, location).
- Every quantity write goes through write_quantity(), which in the same
  transaction: persists quantity + last_updated, moves the location's
  occupancy counter, appends one InventoryTransaction, evaluates the alert.
- quantity >= 0 at every committed state.

Actions:
- add: old + amount
- subtract: max(0, old - amount). Silent clamp; strict debits (moves,
  outlet sales) check availability before calling in.
- adjust: amount (absolute set)
- move: source debit + destination credit, one log row on the source entry
- audit_adjust: counted value from a physical audit

Concurrency:
- Public operations run as one unit of work (run_in_transaction): rows are
  locked with SELECT ... FOR UPDATE, version_id catches lost updates where
  the backend ignores row locks, conflicts replay the whole operation.
- *_inner helpers never commit so invoice and audit flows can compose them.
"""

ADJUST_ACTIONS = (ACTION_ADD, ACTION_SUBTRACT, ACTION_ADJUST)


def _lock_entry(stock_entry_id: int) -> StockEntry:
    entry = lock_for_update(db.session.query(StockEntry).filter_by(id=stock_entry_id)).first()
    if entry is None:
        raise NotFoundError(f"Stock entry {stock_entry_id} not found")
    return entry


def write_quantity(
    entry: StockEntry,
    new_quantity: int,
    *,
    action: str,
    actor: Actor,
    reason: str | None = None,
    invoice_id: int | None = None,
    audit_id: int | None = None,
) -> tuple[int, int]:
    """Single write path for stock quantity. Caller holds the row lock."""
    if new_quantity < 0:
        raise InsufficientStockError(
            f"Quantity of stock entry {entry.id} cannot go below zero",
            product_id=entry.product_id,
        )
    old_quantity = entry.quantity
    entry.quantity = new_quantity
    entry.last_updated = utcnow()
    adjust_occupancy(entry.location, new_quantity - old_quantity)

    append_transaction(
        entry=entry,
        action=action,
        old_quantity=old_quantity,
        new_quantity=new_quantity,
        performed_by_user_id=actor.id,
        reason=reason,
        invoice_id=invoice_id,
        audit_id=audit_id,
    )
    evaluate_alert(entry)
    return old_quantity, new_quantity


def find_or_create_stock_entry(
    *,
    product: Product,
    store_id: int,
    location: Location,
    reorder_level: int | None = None,
) -> StockEntry:
    """
    Locked lookup of the entry for (product, store, location), created at zero if missing.

    New entries take the product's threshold as reorder level. Two writers
    racing to create the same key collide on the unique constraint; the
    loser raises RetryableConflict and its unit of work is replayed, finding
    the winner's row.
    """
    entry = lock_for_update(
        db.session.query(StockEntry).filter_by(
            product_id=product.id,
            store_id=store_id,
            location_type=location.kind,
            location_id=location.id,
        )
    ).first()
    if entry is not None:
        return entry

    if reorder_level is None:
        reorder_level = product.threshold_quantity
    if reorder_level is None:
        reorder_level = current_app.config.get("STOCKROOM_DEFAULT_REORDER_LEVEL", 10)

    entry = StockEntry(
        product_id=product.id,
        store_id=store_id,
        location_type=location.kind,
        location_id=location.id,
        quantity=0,
        reorder_level=reorder_level,
    )
    db.session.add(entry)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise RetryableConflict(f"stock entry race for product {product.id} at {location}") from exc
    return entry


def _apply_action(entry: StockEntry, action: str, amount: int) -> int:
    if action == ACTION_ADD:
        return entry.quantity + amount
    if action == ACTION_SUBTRACT:
        return max(0, entry.quantity - amount)
    if action == ACTION_ADJUST:
        return amount
    raise InvalidActionError(f"Invalid action: {action}")


def credit_stock_inner(
    entry: StockEntry,
    amount: int,
    *,
    actor: Actor,
    reason: str | None = None,
    invoice_id: int | None = None,
) -> tuple[int, int]:
    """Add path without locking or commit (distribution, move credit)."""
    return write_quantity(
        entry, entry.quantity + amount,
        action=ACTION_ADD, actor=actor, reason=reason, invoice_id=invoice_id,
    )


def debit_stock_inner(
    entry: StockEntry,
    amount: int,
    *,
    actor: Actor,
    reason: str | None = None,
    invoice_id: int | None = None,
) -> tuple[int, int]:
    """Strict subtract path: refuses to debit more than is on hand."""
    if amount > entry.quantity:
        raise InsufficientStockError(
            f"Insufficient stock for product {entry.product_id}: "
            f"requested {amount}, available {entry.quantity}",
            product_id=entry.product_id,
        )
    return write_quantity(
        entry, entry.quantity - amount,
        action=ACTION_SUBTRACT, actor=actor, reason=reason, invoice_id=invoice_id,
    )


def _validate_adjustment(action, amount) -> int:
    if action not in ADJUST_ACTIONS:
        raise InvalidActionError(f"Invalid action: {action}")
    return require_non_negative_int(amount, "amount")


def adjust_quantity(
    stock_entry_id: int,
    action: str,
    amount: int,
    reason: str | None,
    actor: Actor,
) -> dict:
    """
    Apply add / subtract / adjust to one stock entry.

    Returns {"old_quantity", "new_quantity", "stock_entry"}. Subtracting more
    than is on hand clamps at zero rather than failing.
    """
    amount = _validate_adjustment(action, amount)
    reason = clean_text(reason, "reason", max_length=255)

    def _op():
        entry = _lock_entry(stock_entry_id)
        ensure_store_access(actor, entry.store, action="adjust stock in")
        old_quantity, new_quantity = write_quantity(
            entry, _apply_action(entry, action, amount),
            action=action, actor=actor, reason=reason,
        )
        return {"old_quantity": old_quantity, "new_quantity": new_quantity, "stock_entry": entry}

    result = run_in_transaction(_op)
    current_app.logger.info(
        "stock entry %s %s %s: %s -> %s by user %s",
        stock_entry_id, action, amount, result["old_quantity"], result["new_quantity"], actor.id,
    )
    return result


def move_quantity(
    source_entry_id: int,
    destination_location,
    quantity: int,
    reason: str | None,
    actor: Actor,
) -> dict:
    """
    Move stock between two locations of the same store.

    The destination entry is found or created. Both legs and the single
    `move` log row commit together, so the product's total quantity across
    the system is unchanged.
    """
    quantity = require_positive_int(quantity, "quantity")
    destination = parse_location(destination_location, "destination_location")
    reason = clean_text(reason, "reason", max_length=255)

    def _op():
        source = _lock_entry(source_entry_id)
        ensure_store_access(actor, source.store, action="move stock in")
        ensure_location_in_store(destination, source.store_id)
        if destination == source.location:
            raise ValidationError("Destination location is the same as the source location")
        if quantity > source.quantity:
            raise InsufficientStockError(
                f"Insufficient stock to move: requested {quantity}, available {source.quantity}",
                product_id=source.product_id,
            )

        target = find_or_create_stock_entry(
            product=source.product,
            store_id=source.store_id,
            location=destination,
            reorder_level=source.reorder_level,
        )

        now = utcnow()
        old_source = source.quantity
        source.quantity = old_source - quantity
        source.last_updated = now
        target.quantity = target.quantity + quantity
        target.last_updated = now
        adjust_occupancy(source.location, -quantity)
        adjust_occupancy(destination, quantity)

        tx = append_transaction(
            entry=source,
            action=ACTION_MOVE,
            old_quantity=old_source,
            new_quantity=source.quantity,
            performed_by_user_id=actor.id,
            reason=reason,
            destination_entry=target,
            from_location=source.location,
            to_location=destination,
        )
        evaluate_alert(source)
        evaluate_alert(target)
        return {"from": source, "to": target, "quantity": quantity, "transaction": tx}

    result = run_in_transaction(_op)
    current_app.logger.info(
        "moved %s of product %s from %s to %s by user %s",
        quantity, result["from"].product_id, result["from"].location, destination, actor.id,
    )
    return result


def bulk_adjust(updates, reason: str | None, actor: Actor) -> dict:
    """
    Apply many adjustments in one transaction.

    Items that are malformed, missing, or outside the actor's stores are
    reported in "errors" and skipped; every other item is applied exactly
    as adjust_quantity would and all of them commit together.
    """
    if not isinstance(updates, (list, tuple)) or not updates:
        raise ValidationError("updates must be a non-empty list")
    reason = clean_text(reason, "reason", max_length=255)

    def _op():
        results = []
        errors = []
        for index, item in enumerate(updates):
            entry_id = item.get("stock_entry_id") if isinstance(item, dict) else None
            try:
                if not isinstance(item, dict):
                    raise ValidationError("update must be an object")
                entry_id = require_positive_int(entry_id, "stock_entry_id")
                action = item.get("action")
                amount = _validate_adjustment(action, item.get("amount"))
                item_reason = clean_text(item.get("reason"), "reason", max_length=255) or reason

                entry = _lock_entry(entry_id)
                ensure_store_access(actor, entry.store, action="adjust stock in")
            except StockroomError as exc:
                errors.append({"index": index, "stock_entry_id": entry_id, "error": exc.message})
                continue

            old_quantity, new_quantity = write_quantity(
                entry, _apply_action(entry, action, amount),
                action=action, actor=actor, reason=item_reason,
            )
            results.append({
                "index": index,
                "stock_entry_id": entry.id,
                "action": action,
                "old_quantity": old_quantity,
                "new_quantity": new_quantity,
            })
        return {"results": results, "errors": errors}

    outcome = run_in_transaction(_op)
    current_app.logger.info(
        "bulk adjust by user %s: %d applied, %d rejected",
        actor.id, len(outcome["results"]), len(outcome["errors"]),
    )
    return outcome


def create_stock_entry(
    store_id: int,
    product_id: int,
    location,
    actor: Actor,
    *,
    reorder_level: int | None = None,
) -> StockEntry:
    """Register a product at a location with zero quantity (idempotent)."""
    location = parse_location(location)
    if reorder_level is not None:
        reorder_level = require_non_negative_int(reorder_level, "reorder_level")

    def _op():
        store = get_store_for(actor, store_id, action="stock")
        ensure_location_in_store(location, store.id)
        product = db.session.query(Product).filter_by(id=product_id).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        if not product.is_active:
            raise ValidationError(f"Product {product_id} is inactive")
        return find_or_create_stock_entry(
            product=product, store_id=store.id, location=location, reorder_level=reorder_level,
        )

    return run_in_transaction(_op)


def set_reorder_level(stock_entry_id: int, reorder_level: int, actor: Actor) -> StockEntry:
    reorder_level = require_non_negative_int(reorder_level, "reorder_level")

    def _op():
        entry = _lock_entry(stock_entry_id)
        ensure_store_access(actor, entry.store, action="configure stock in")
        entry.reorder_level = reorder_level
        return entry

    return run_in_transaction(_op)


# =============================================================================
# Reads
# =============================================================================

def get_stock_entry(stock_entry_id: int, actor: Actor) -> StockEntry:
    entry = db.session.query(StockEntry).filter_by(id=stock_entry_id).first()
    if entry is None:
        raise NotFoundError(f"Stock entry {stock_entry_id} not found")
    ensure_store_access(actor, entry.store)
    return entry


def list_store_inventory(
    store_id: int,
    actor: Actor,
    *,
    low_stock_only: bool = False,
    category_id: int | None = None,
    location=None,
) -> list[StockEntry]:
    store = get_store_for(actor, store_id)
    query = db.session.query(StockEntry).join(Product, Product.id == StockEntry.product_id).filter(
        StockEntry.store_id == store.id
    )
    if low_stock_only:
        query = query.filter(StockEntry.quantity <= StockEntry.reorder_level)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if location is not None:
        location = parse_location(location)
        query = query.filter(
            StockEntry.location_type == location.kind,
            StockEntry.location_id == location.id,
        )
    return query.order_by(Product.name.asc(), StockEntry.id.asc()).all()


def get_entry_history(stock_entry_id: int, actor: Actor, *, page: int = 1, per_page: int = 20) -> dict:
    entry = get_stock_entry(stock_entry_id, actor)
    rows, total = list_transactions(stock_entry_id=entry.id, page=page, per_page=per_page)
    return {
        "stock_entry": entry.to_dict(),
        "transactions": [row.to_dict() for row in rows],
        "page": page,
        "per_page": per_page,
        "total": total,
    }


def search_inventory(actor: Actor, term: str, *, store_id: int | None = None) -> list[StockEntry]:
    term = clean_text(term, "term", max_length=120, required=True)
    pattern = f"%{term}%"
    query = (
        db.session.query(StockEntry)
        .join(Product, Product.id == StockEntry.product_id)
        .filter(
            StockEntry.store_id.in_(accessible_store_ids_query(actor)),
            db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)),
        )
    )
    if store_id is not None:
        query = query.filter(StockEntry.store_id == store_id)
    return query.order_by(Product.name.asc(), StockEntry.id.asc()).all()


def get_product_quantity(product_id: int, *, store_id: int | None = None) -> int:
    """Total on hand for a product across locations (optionally one store)."""
    query = db.session.query(func.coalesce(func.sum(StockEntry.quantity), 0)).filter(
        StockEntry.product_id == product_id
    )
    if store_id is not None:
        query = query.filter(StockEntry.store_id == store_id)
    return int(query.scalar() or 0)
