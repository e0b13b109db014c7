# backend/stockroom/services/audit_service.py
"""
Physical stock audit.

WHY: Counting what is really on the shelf and correcting the system to
match. Unlike a staged count, an audit is applied immediately: the header,
one discrepancy row per mismatch and every corrective stock write commit in
one transaction.

RULES:
- expected = quantity of the product's entry at the audited location, or 0
  when the product has no entry there
- discrepancy = counted - expected; zero discrepancies are reported but not
  stored
- a non-zero discrepancy overwrites the entry with the counted value and
  appends an audit_adjust log row
- accuracy_rate = (audited - discrepancies) / audited * 100, reported only
"""
from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Audit, AuditDiscrepancy, Product, StockEntry
from stockroom.validation import clean_text, parse_counted_items, parse_location
from .access_service import Actor, accessible_store_ids_query, ensure_store_access, get_store_for
from .catalog_service import product_visible_to_store
from .concurrency import lock_for_update, run_in_transaction
from .inventory_service import find_or_create_stock_entry, write_quantity
from .ledger_service import ACTION_AUDIT_ADJUST
from .store_service import ensure_location_in_store


def _lock_entries_at(store_id: int, product_id: int, location) -> list[StockEntry]:
    query = db.session.query(StockEntry).filter_by(store_id=store_id, product_id=product_id)
    if location is not None:
        query = query.filter_by(location_type=location.kind, location_id=location.id)
    return lock_for_update(query.order_by(StockEntry.id.asc())).all()


def perform_audit(store_id: int, location, counted_items, actor: Actor, *, notes: str | None = None) -> dict:
    """
    Audit a store, or one location of it, against counted quantities.

    Returns {"audit", "discrepancies", "results", "summary"}.

    Without a location the expected quantity is the product's total across
    the store. A store-wide correction is only applied when the product sits
    in exactly one location. A product with no stock entry in the store is
    still recorded as a discrepancy against expected 0, with
    stock_adjusted=False; a product spread over several locations must be
    audited per location.
    """
    location = parse_location(location) if location is not None else None
    counted = parse_counted_items(counted_items)
    notes = clean_text(notes, "notes")

    def _op():
        store = get_store_for(actor, store_id, action="audit")
        if location is not None:
            ensure_location_in_store(location, store.id)

        audit = Audit(
            store_id=store.id,
            location_type=location.kind if location else None,
            location_id=location.id if location else None,
            performed_by_user_id=actor.id,
            items_audited=len(counted),
            discrepancies_found=0,
            notes=notes,
        )
        db.session.add(audit)
        db.session.flush()

        results = []
        discrepancies = []
        for item in counted:
            product = db.session.query(Product).filter_by(id=item["product_id"]).first()
            if product is None or not product_visible_to_store(product, store):
                raise NotFoundError(f"Product {item['product_id']} not found")

            entries = _lock_entries_at(store.id, product.id, location)
            expected = sum(entry.quantity for entry in entries)
            difference = item["counted_quantity"] - expected
            result = {
                "product_id": product.id,
                "product_name": product.name,
                "expected_quantity": expected,
                "counted_quantity": item["counted_quantity"],
                "discrepancy": difference,
                "stock_adjusted": False,
            }
            results.append(result)
            if difference == 0:
                continue

            if location is not None:
                entry = entries[0] if entries else find_or_create_stock_entry(
                    product=product, store_id=store.id, location=location,
                )
            elif len(entries) == 1:
                entry = entries[0]
            elif not entries:
                # Found stock with no entry anywhere in the store: recorded,
                # but placing it needs a per-location audit.
                entry = None
            else:
                raise ValidationError(
                    f"Product {product.id} is stocked in {len(entries)} locations of store "
                    f"{store.id}; audit it per location"
                )

            if entry is not None:
                write_quantity(
                    entry, item["counted_quantity"],
                    action=ACTION_AUDIT_ADJUST,
                    actor=actor,
                    reason=item["notes"] or f"Audit #{audit.id}",
                    audit_id=audit.id,
                )
                result["stock_adjusted"] = True
            discrepancy = AuditDiscrepancy(
                audit_id=audit.id,
                product_id=product.id,
                stock_entry_id=entry.id if entry is not None else None,
                expected_quantity=expected,
                counted_quantity=item["counted_quantity"],
                discrepancy=difference,
                notes=item["notes"],
            )
            db.session.add(discrepancy)
            discrepancies.append(discrepancy)

        audit.discrepancies_found = len(discrepancies)
        return {
            "audit": audit,
            "discrepancies": discrepancies,
            "results": results,
            "summary": {
                "items_audited": audit.items_audited,
                "discrepancies_found": audit.discrepancies_found,
                "accuracy_rate": audit.accuracy_rate,
            },
        }

    outcome = run_in_transaction(_op)
    current_app.logger.info(
        "audit %s of store %s: %s items, %s discrepancies, by user %s",
        outcome["audit"].id, store_id, outcome["summary"]["items_audited"],
        outcome["summary"]["discrepancies_found"], actor.id,
    )
    return outcome


def get_audit(audit_id: int, actor: Actor) -> Audit:
    audit = db.session.query(Audit).filter_by(id=audit_id).first()
    if audit is None:
        raise NotFoundError(f"Audit {audit_id} not found")
    ensure_store_access(actor, audit.store)
    return audit


def list_audits(actor: Actor, *, store_id: int | None = None, limit: int = 50) -> list[Audit]:
    query = db.session.query(Audit).filter(Audit.store_id.in_(accessible_store_ids_query(actor)))
    if store_id is not None:
        query = query.filter(Audit.store_id == store_id)
    return query.order_by(Audit.audit_date.desc(), Audit.id.desc()).limit(max(1, min(limit, 500))).all()
