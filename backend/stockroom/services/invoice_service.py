# Overview: Invoice engine: distribution and outlet-sale invoices, settlement and payments.

"""
Invoice Engine

WHY: Stock leaves the admin's warehouse through distribution invoices and
leaves a store through outlet-sale invoices. Each invoice moves stock and
money together: line items, stock writes, transaction log rows, alerts and
credit balance changes commit in one transaction or not at all.

LIFECYCLE:
- paid invoices are completed at creation
- credit / mixed distribution invoices start pending and accrue store credit
- pending -> completed: outstanding credit settled ("paid" or "completed")
- pending -> cancelled: outstanding credit released, stock untouched
- completed and cancelled are terminal; the only later change is settling
  credit still outstanding on a completed outlet sale ("paid" or a payment)

NUMBERING: DIST-<store>-<n> and SALE-<store>-<n> from the per-store
document sequence, allocated inside the invoice's own transaction.
"""
from __future__ import annotations

from flask import current_app

from ..errors import (
    InsufficientStockError,
    InvalidStatusTransitionError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Invoice, InvoiceItem, Outlet, Payment, Product, StockEntry
from stockroom.time_utils import parse_iso_datetime, utcnow
from stockroom.validation import (
    PAYMENT_METHOD_CREDIT,
    PAYMENT_METHOD_PAID,
    clean_text,
    coerce_amount_cents,
    parse_invoice_items,
    require_positive_int,
    validate_payment_method,
)
from .access_service import Actor, accessible_store_ids_query, ensure_store_access, ensure_store_owner, get_store_for
from .catalog_service import product_visible_to_store
from .concurrency import lock_for_update, run_in_transaction
from .credit_service import accrue_credit, settle_credit
from .document_service import DOC_DISTRIBUTION, DOC_OUTLET_SALE, next_document_number
from .inventory_service import credit_stock_inner, debit_stock_inner, find_or_create_stock_entry
from .store_service import ensure_location_in_store


# =============================================================================
# CONSTANTS
# =============================================================================

INVOICE_TYPE_DISTRIBUTION = "distribution"
INVOICE_TYPE_OUTLET_SALE = "outlet_sale"
INVOICE_TYPE_CREDIT = "credit"
INVOICE_TYPE_PAID = "paid"
INVOICE_TYPES = (INVOICE_TYPE_DISTRIBUTION, INVOICE_TYPE_OUTLET_SALE, INVOICE_TYPE_CREDIT, INVOICE_TYPE_PAID)

INVOICE_STATUS_PENDING = "pending"
INVOICE_STATUS_COMPLETED = "completed"
INVOICE_STATUS_CANCELLED = "cancelled"
INVOICE_STATUSES = (INVOICE_STATUS_PENDING, INVOICE_STATUS_COMPLETED, INVOICE_STATUS_CANCELLED)

# "paid" is accepted as an alias of completed that also requires something to settle
STATUS_PAID = "paid"

ALLOWED_TRANSITIONS = {
    INVOICE_STATUS_PENDING: {INVOICE_STATUS_COMPLETED, INVOICE_STATUS_CANCELLED},
    INVOICE_STATUS_COMPLETED: set(),
    INVOICE_STATUS_CANCELLED: set(),
}

TENDER_CASH = "cash"
TENDER_BANK_TRANSFER = "bank_transfer"
TENDER_CHEQUE = "cheque"
TENDER_OTHER = "other"
VALID_TENDERS = (TENDER_CASH, TENDER_BANK_TRANSFER, TENDER_CHEQUE, TENDER_OTHER)


# =============================================================================
# HELPERS
# =============================================================================

def _split_amounts(payment_method: str, total: int, credit_amount, paid_amount) -> tuple[int, int]:
    """
    Resolve (credit, paid) for an invoice total.

    credit: everything on credit; paid: everything settled; mixed: both
    amounts required and must add up to the total. Amounts supplied for
    credit/paid invoices must agree with the total.
    """
    credit = None if credit_amount is None else coerce_amount_cents(credit_amount, "credit_amount")
    paid = None if paid_amount is None else coerce_amount_cents(paid_amount, "paid_amount")

    if payment_method == PAYMENT_METHOD_CREDIT:
        expected = (total, 0)
    elif payment_method == PAYMENT_METHOD_PAID:
        expected = (0, total)
    else:
        if credit is None and paid is None:
            raise ValidationError("mixed payment requires credit_amount or paid_amount")
        if credit is None:
            credit = total - paid
        if paid is None:
            paid = total - credit
        if credit < 0 or paid < 0 or credit + paid != total:
            raise ValidationError(
                f"credit_amount ({credit}) + paid_amount ({paid}) must equal invoice total ({total})"
            )
        return credit, paid

    if credit is not None and credit != expected[0]:
        raise ValidationError(f"credit_amount must be {expected[0]} for a {payment_method} invoice")
    if paid is not None and paid != expected[1]:
        raise ValidationError(f"paid_amount must be {expected[1]} for a {payment_method} invoice")
    return expected


def _load_product(product_id: int, store) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None or not product_visible_to_store(product, store):
        raise NotFoundError(f"Product {product_id} not found")
    if not product.is_active:
        raise ValidationError(f"Product {product_id} is inactive")
    return product


def _credit_account(invoice: Invoice) -> dict:
    if invoice.invoice_type == INVOICE_TYPE_OUTLET_SALE and invoice.outlet_id is not None:
        return {"outlet_id": invoice.outlet_id}
    return {"store_id": invoice.store_id}


# =============================================================================
# CREATION
# =============================================================================

def create_distribution_invoice(
    store_id: int,
    items,
    payment_method: str,
    credit_amount=None,
    paid_amount=None,
    *,
    actor: Actor,
    notes: str | None = None,
) -> Invoice:
    """
    Distribute products from the admin into a store.

    Each line is credited to the stock entry at its location (created if
    missing, reorder level from the product threshold) through the add
    path. Any failing line rolls back the whole invoice, its number
    included.
    """
    payment_method = validate_payment_method(payment_method)
    lines = parse_invoice_items(items, require_location=True, require_price=False)
    notes = clean_text(notes, "notes")

    def _op():
        store = get_store_for(actor, store_id, action="distribute to")
        ensure_store_owner(actor, store, action="distribute to")
        if not store.is_active:
            raise ValidationError(f"Store {store.id} is inactive")

        invoice = Invoice(
            invoice_number=next_document_number(store_id=store.id, document_type=DOC_DISTRIBUTION),
            store_id=store.id,
            admin_id=store.admin_id,
            store_manager_id=store.manager_id,
            created_by_user_id=actor.id,
            invoice_type=INVOICE_TYPE_DISTRIBUTION,
            payment_method=payment_method,
            status=INVOICE_STATUS_PENDING,
            notes=notes,
            invoice_date=utcnow(),
        )
        db.session.add(invoice)
        db.session.flush()

        total = 0
        for line in lines:
            product = _load_product(line["product_id"], store)
            ensure_location_in_store(line["location"], store.id)
            price = line["price_cents"] if line["price_cents"] is not None else product.price_cents
            line_total = line["quantity"] * price
            total += line_total

            entry = find_or_create_stock_entry(product=product, store_id=store.id, location=line["location"])
            credit_stock_inner(
                entry, line["quantity"],
                actor=actor, reason=f"Distribution {invoice.invoice_number}", invoice_id=invoice.id,
            )
            db.session.add(InvoiceItem(
                invoice_id=invoice.id,
                product_id=product.id,
                stock_entry_id=entry.id,
                quantity=line["quantity"],
                price_cents=price,
                total_price_cents=line_total,
                location_type=line["location"].kind,
                location_id=line["location"].id,
            ))

        credit, paid = _split_amounts(payment_method, total, credit_amount, paid_amount)
        invoice.total_amount_cents = total
        invoice.credit_amount_cents = credit
        invoice.paid_amount_cents = paid

        if credit > 0:
            accrue_credit(store_id=store.id, amount_cents=credit)
        else:
            invoice.status = INVOICE_STATUS_COMPLETED
            invoice.completed_at = utcnow()
        return invoice

    invoice = run_in_transaction(_op)
    current_app.logger.info(
        "distribution invoice %s for store %s: total=%s credit=%s by user %s",
        invoice.invoice_number, invoice.store_id, invoice.total_amount_cents,
        invoice.credit_amount_cents, actor.id,
    )
    return invoice


def _pick_sale_entry(store_id: int, product_id: int, quantity: int, location) -> StockEntry:
    query = db.session.query(StockEntry).filter_by(store_id=store_id, product_id=product_id)
    if location is not None:
        query = query.filter_by(location_type=location.kind, location_id=location.id)
    else:
        query = query.filter(StockEntry.quantity >= quantity)
    entry = lock_for_update(query.order_by(StockEntry.id.asc())).first()
    if entry is None or entry.quantity < quantity:
        raise InsufficientStockError(f"Insufficient stock for product {product_id}", product_id=product_id)
    return entry


def create_outlet_sale_invoice(
    store_id: int,
    outlet_id: int,
    items,
    payment_method: str,
    actor: Actor,
    *,
    paid_amount=None,
    notes: str | None = None,
) -> dict:
    """
    Sell stock from a store to one of its outlets.

    Every line needs a single stock entry holding at least the requested
    quantity (at the line's location when one is given); otherwise the sale
    fails with InsufficientStockError and nothing is written. The credit
    portion is added to the outlet's credit balance.
    """
    payment_method = validate_payment_method(payment_method)
    lines = parse_invoice_items(items, require_location=False, require_price=False)
    notes = clean_text(notes, "notes")

    def _op():
        store = get_store_for(actor, store_id, action="sell from")
        outlet = db.session.query(Outlet).filter_by(id=outlet_id, store_id=store.id).first()
        if outlet is None:
            raise NotFoundError(f"Outlet {outlet_id} not found in store {store.id}")
        if not outlet.is_active:
            raise ValidationError(f"Outlet {outlet.id} is inactive")

        invoice = Invoice(
            invoice_number=next_document_number(store_id=store.id, document_type=DOC_OUTLET_SALE),
            store_id=store.id,
            outlet_id=outlet.id,
            admin_id=store.admin_id,
            store_manager_id=store.manager_id,
            created_by_user_id=actor.id,
            invoice_type=INVOICE_TYPE_OUTLET_SALE,
            payment_method=payment_method,
            status=INVOICE_STATUS_PENDING,
            notes=notes,
            invoice_date=utcnow(),
        )
        db.session.add(invoice)
        db.session.flush()

        total = 0
        invoice_items = []
        for line in lines:
            product = _load_product(line["product_id"], store)
            entry = _pick_sale_entry(store.id, product.id, line["quantity"], line["location"])
            price = line["price_cents"] if line["price_cents"] is not None else product.price_cents
            line_total = line["quantity"] * price
            total += line_total

            debit_stock_inner(
                entry, line["quantity"],
                actor=actor, reason=f"Outlet sale {invoice.invoice_number}", invoice_id=invoice.id,
            )
            item = InvoiceItem(
                invoice_id=invoice.id,
                product_id=product.id,
                stock_entry_id=entry.id,
                quantity=line["quantity"],
                price_cents=price,
                total_price_cents=line_total,
                location_type=entry.location_type,
                location_id=entry.location_id,
            )
            db.session.add(item)
            invoice_items.append(item)

        credit, paid = _split_amounts(payment_method, total, None, paid_amount)
        invoice.total_amount_cents = total
        invoice.credit_amount_cents = credit
        invoice.paid_amount_cents = paid
        invoice.status = INVOICE_STATUS_COMPLETED
        invoice.completed_at = utcnow()

        if credit > 0:
            accrue_credit(outlet_id=outlet.id, amount_cents=credit)
        return {"invoice": invoice, "invoice_items": invoice_items}

    result = run_in_transaction(_op)
    invoice = result["invoice"]
    current_app.logger.info(
        "outlet sale %s store=%s outlet=%s total=%s by user %s",
        invoice.invoice_number, invoice.store_id, invoice.outlet_id, invoice.total_amount_cents, actor.id,
    )
    return result


# =============================================================================
# STATUS AND PAYMENTS
# =============================================================================

def _lock_invoice_for(actor: Actor, invoice_id: int) -> Invoice:
    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    if invoice.invoice_type == INVOICE_TYPE_DISTRIBUTION:
        ensure_store_owner(actor, invoice.store, action="settle invoices of")
    else:
        ensure_store_access(actor, invoice.store, action="settle invoices of")
    return invoice


def _ensure_settleable(invoice: Invoice) -> None:
    """Payments need a non-cancelled invoice with credit still outstanding."""
    if invoice.status == INVOICE_STATUS_CANCELLED:
        raise InvalidStatusTransitionError(f"Invoice {invoice.invoice_number} is cancelled")
    if invoice.credit_amount_cents <= 0:
        raise InvalidStatusTransitionError(
            f"Invoice {invoice.invoice_number} has no outstanding credit to pay"
        )


def _record_payment_row(invoice: Invoice, amount: int, actor: Actor, details: dict | None) -> Payment:
    details = details or {}
    tender = details.get("payment_method") or TENDER_CASH
    if tender not in VALID_TENDERS:
        raise ValidationError(f"payment_method must be one of {', '.join(VALID_TENDERS)}")
    payment = Payment(
        invoice_id=invoice.id,
        amount_cents=amount,
        payment_method=tender,
        transaction_ref=clean_text(details.get("transaction_ref"), "transaction_ref", max_length=128),
        notes=clean_text(details.get("notes"), "notes"),
        paid_by_user_id=actor.id,
    )
    db.session.add(payment)
    return payment


def update_invoice_status(invoice_id: int, new_status: str, actor: Actor, payment_details: dict | None = None) -> Invoice:
    """
    Move an invoice along its lifecycle.

    "paid" settles the outstanding credit of any non-cancelled invoice that
    still has some (completed outlet sales included); "completed" does the
    same for a pending invoice. Settling sets credit -> 0 and paid -> total
    and decrements the owning account's balance by the same amount. With
    payment_details a Payment row records the settlement. "cancelled"
    releases the outstanding credit.
    """
    if new_status not in INVOICE_STATUSES and new_status != STATUS_PAID:
        raise ValidationError(f"status must be one of {', '.join(INVOICE_STATUSES + (STATUS_PAID,))}")
    target = INVOICE_STATUS_COMPLETED if new_status == STATUS_PAID else new_status

    def _op():
        invoice = _lock_invoice_for(actor, invoice_id)
        outstanding = invoice.credit_amount_cents
        now = utcnow()

        if new_status == STATUS_PAID:
            # Settlement is allowed on completed outlet sales still carrying credit
            _ensure_settleable(invoice)
            settle_credit(amount_cents=outstanding, **_credit_account(invoice))
            if payment_details is not None:
                _record_payment_row(invoice, outstanding, actor, payment_details)
            invoice.credit_amount_cents = 0
            invoice.paid_amount_cents = invoice.total_amount_cents
            if invoice.status == INVOICE_STATUS_PENDING:
                invoice.status = INVOICE_STATUS_COMPLETED
                invoice.completed_at = now
            return invoice

        if target not in ALLOWED_TRANSITIONS.get(invoice.status, set()):
            raise InvalidStatusTransitionError(
                f"Invoice {invoice.invoice_number} cannot go from {invoice.status} to {new_status}"
            )

        if target == INVOICE_STATUS_COMPLETED:
            if outstanding > 0:
                settle_credit(amount_cents=outstanding, **_credit_account(invoice))
                if payment_details is not None:
                    _record_payment_row(invoice, outstanding, actor, payment_details)
            invoice.credit_amount_cents = 0
            invoice.paid_amount_cents = invoice.total_amount_cents
            invoice.completed_at = now
        else:
            if outstanding > 0:
                settle_credit(amount_cents=outstanding, **_credit_account(invoice))
            invoice.cancelled_at = now

        invoice.status = target
        return invoice

    invoice = run_in_transaction(_op)
    current_app.logger.info(
        "invoice %s -> %s by user %s", invoice.invoice_number, invoice.status, actor.id
    )
    return invoice


def record_payment(
    invoice_id: int,
    amount_cents,
    actor: Actor,
    *,
    payment_method: str = TENDER_CASH,
    transaction_ref: str | None = None,
    notes: str | None = None,
) -> dict:
    """
    Record a partial or full payment against outstanding credit.

    The amount moves from credit to paid on the invoice and is settled on
    the owning account. A pending invoice whose credit reaches zero is completed.
    """
    amount = require_positive_int(amount_cents, "amount_cents")
    details = {"payment_method": payment_method, "transaction_ref": transaction_ref, "notes": notes}

    def _op():
        invoice = _lock_invoice_for(actor, invoice_id)
        _ensure_settleable(invoice)
        if amount > invoice.credit_amount_cents:
            raise ValidationError(
                f"Payment {amount} exceeds outstanding credit {invoice.credit_amount_cents}"
            )

        settle_credit(amount_cents=amount, **_credit_account(invoice))
        payment = _record_payment_row(invoice, amount, actor, details)
        invoice.credit_amount_cents -= amount
        invoice.paid_amount_cents += amount
        if invoice.credit_amount_cents == 0 and invoice.status == INVOICE_STATUS_PENDING:
            invoice.status = INVOICE_STATUS_COMPLETED
            invoice.completed_at = utcnow()
        return {"invoice": invoice, "payment": payment}

    result = run_in_transaction(_op)
    current_app.logger.info(
        "payment of %s on invoice %s by user %s", amount, result["invoice"].invoice_number, actor.id
    )
    return result


# =============================================================================
# READS
# =============================================================================

def get_invoice(invoice_id: int, actor: Actor) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id).first()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    ensure_store_access(actor, invoice.store)
    return invoice


def list_invoices(
    actor: Actor,
    *,
    store_id: int | None = None,
    invoice_type: str | None = None,
    status: str | None = None,
    start_date=None,
    end_date=None,
    distribution: bool | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    """
    Invoices in the actor's stores, newest first.

    distribution=True keeps only distribution invoices, False excludes them.
    start_date/end_date accept ISO strings or datetimes and are inclusive.
    """
    query = db.session.query(Invoice).filter(Invoice.store_id.in_(accessible_store_ids_query(actor)))
    if actor.is_admin:
        query = query.filter(Invoice.admin_id == actor.id)
    if store_id is not None:
        query = query.filter(Invoice.store_id == store_id)
    if invoice_type:
        if invoice_type not in INVOICE_TYPES:
            raise ValidationError(f"invoice_type must be one of {', '.join(INVOICE_TYPES)}")
        query = query.filter(Invoice.invoice_type == invoice_type)
    if distribution is True:
        query = query.filter(Invoice.invoice_type == INVOICE_TYPE_DISTRIBUTION)
    elif distribution is False:
        query = query.filter(Invoice.invoice_type != INVOICE_TYPE_DISTRIBUTION)
    if status:
        query = query.filter(Invoice.status == status)

    if isinstance(start_date, str):
        start_date = parse_iso_datetime(start_date)
    if isinstance(end_date, str):
        end_date = parse_iso_datetime(end_date)
    if start_date is not None:
        query = query.filter(Invoice.invoice_date >= start_date)
    if end_date is not None:
        query = query.filter(Invoice.invoice_date <= end_date)

    if page < 1:
        page = 1
    if per_page < 1:
        per_page = 1
    if per_page > 100:
        per_page = 100

    total = query.count()
    invoices = (
        query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "invoices": invoices,
        "total": total,
        "page": page,
        "total_pages": (total + per_page - 1) // per_page,
    }
