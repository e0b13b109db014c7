# backend/stockroom/services/ticket_service.py
"""
Dishonour tickets.

WHY: A store that receives less (or worse) than was invoiced raises a ticket
against the store; the store manager acknowledges it and the admin closes it
with the action taken. Comments give both sides an attributed trail.

LIFECYCLE:
1. open: raised by anyone with access to the store
2. in_progress: acknowledged by the store's manager
3. closed: resolved by the store's admin (or a superadmin), action_taken required
closed -> open again on reopen.

Every transition appends a system comment; comments are never edited.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import AccessDeniedError, InvalidStatusTransitionError, NotFoundError, StockroomError, ValidationError
from ..extensions import db
from ..models import Product, Ticket, TicketComment
from stockroom.time_utils import utcnow
from stockroom.validation import clean_text, require_non_negative_int
from .access_service import Actor, accessible_store_ids_query, can_access_store, ensure_store_access, get_store_for
from .concurrency import lock_for_update, run_in_transaction
from .document_service import DOC_TICKET, next_document_number


TICKET_STATUS_OPEN = "open"
TICKET_STATUS_IN_PROGRESS = "in_progress"
TICKET_STATUS_CLOSED = "closed"
TICKET_STATUSES = (TICKET_STATUS_OPEN, TICKET_STATUS_IN_PROGRESS, TICKET_STATUS_CLOSED)

PRIORITIES = ("low", "medium", "high", "critical")

TRANSITIONS = {
    TICKET_STATUS_OPEN: {TICKET_STATUS_IN_PROGRESS, TICKET_STATUS_CLOSED},
    TICKET_STATUS_IN_PROGRESS: {TICKET_STATUS_CLOSED},
    TICKET_STATUS_CLOSED: {TICKET_STATUS_OPEN},
}


def _validate_priority(priority: str) -> str:
    if priority not in PRIORITIES:
        raise ValidationError(f"priority must be one of {', '.join(PRIORITIES)}")
    return priority


def _lock_ticket_for(actor: Actor, ticket_id: int) -> Ticket:
    ticket = lock_for_update(db.session.query(Ticket).filter_by(id=ticket_id)).first()
    if ticket is None:
        raise NotFoundError(f"Ticket {ticket_id} not found")
    ensure_store_access(actor, ticket.store, action="work on tickets of")
    return ticket


def _system_comment(ticket: Ticket, actor: Actor, text: str) -> TicketComment:
    comment = TicketComment(ticket_id=ticket.id, user_id=actor.id, comment=text, is_system=True)
    db.session.add(comment)
    return comment


def _transition(ticket: Ticket, new_status: str, actor: Actor, *, action_taken: str | None = None) -> Ticket:
    """Apply one state change with its role rule. Caller holds the lock."""
    if new_status not in TRANSITIONS.get(ticket.status, set()):
        raise InvalidStatusTransitionError(
            f"Ticket {ticket.ticket_number} cannot go from {ticket.status} to {new_status}"
        )

    if new_status == TICKET_STATUS_IN_PROGRESS:
        if not actor.is_store_manager:
            raise AccessDeniedError("Only store managers can acknowledge tickets")
        _system_comment(ticket, actor, "Ticket acknowledged")

    elif new_status == TICKET_STATUS_CLOSED:
        if not (actor.is_superadmin or actor.is_admin):
            raise AccessDeniedError("Only admins can resolve tickets")
        action_taken = clean_text(action_taken, "action_taken", required=True)
        ticket.action_taken = action_taken
        ticket.resolved_by_user_id = actor.id
        ticket.resolved_at = utcnow()
        _system_comment(ticket, actor, f"Ticket resolved: {action_taken}")

    else:
        ticket.resolved_by_user_id = None
        ticket.resolved_at = None
        _system_comment(ticket, actor, "Ticket reopened")

    ticket.status = new_status
    return ticket


def create_ticket(
    store_id: int,
    actor: Actor,
    *,
    description: str,
    product_id: int | None = None,
    quantity_missing: int = 0,
    priority: str = "medium",
) -> Ticket:
    description = clean_text(description, "description", required=True)
    quantity_missing = require_non_negative_int(quantity_missing, "quantity_missing")
    priority = _validate_priority(priority)

    def _op():
        store = get_store_for(actor, store_id, action="raise tickets for")
        if product_id is not None and db.session.query(Product.id).filter_by(id=product_id).first() is None:
            raise NotFoundError(f"Product {product_id} not found")

        ticket = Ticket(
            ticket_number=next_document_number(store_id=store.id, document_type=DOC_TICKET),
            store_id=store.id,
            product_id=product_id,
            quantity_missing=quantity_missing,
            description=description,
            priority=priority,
            status=TICKET_STATUS_OPEN,
            raised_by_user_id=actor.id,
        )
        db.session.add(ticket)
        return ticket

    ticket = run_in_transaction(_op)
    current_app.logger.info("ticket %s raised on store %s by user %s", ticket.ticket_number, ticket.store_id, actor.id)
    return ticket


def get_ticket(ticket_id: int, actor: Actor) -> Ticket:
    ticket = db.session.query(Ticket).filter_by(id=ticket_id).first()
    if ticket is None:
        raise NotFoundError(f"Ticket {ticket_id} not found")
    ensure_store_access(actor, ticket.store)
    return ticket


def list_tickets(
    actor: Actor,
    *,
    store_id: int | None = None,
    status: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    query = db.session.query(Ticket).filter(Ticket.store_id.in_(accessible_store_ids_query(actor)))
    if store_id is not None:
        query = query.filter(Ticket.store_id == store_id)
    if status:
        query = query.filter(Ticket.status == status)
    if priority:
        query = query.filter(Ticket.priority == priority)
    if search:
        term = search.strip()
        if len(term) < 2:
            raise ValidationError("search must be at least 2 characters")
        pattern = f"%{term}%"
        query = query.filter(db.or_(Ticket.ticket_number.ilike(pattern), Ticket.description.ilike(pattern)))

    page = max(page, 1)
    per_page = min(max(per_page, 1), 100)
    total = query.count()
    tickets = (
        query.order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {"tickets": tickets, "total": total, "page": page, "total_pages": (total + per_page - 1) // per_page}


def update_ticket(
    ticket_id: int,
    actor: Actor,
    *,
    description: str | None = None,
    priority: str | None = None,
    quantity_missing: int | None = None,
) -> Ticket:
    """Creator or an admin may edit an open/in-progress ticket."""
    def _op():
        ticket = _lock_ticket_for(actor, ticket_id)
        if ticket.status == TICKET_STATUS_CLOSED:
            raise InvalidStatusTransitionError("Cannot update a closed ticket")
        if ticket.raised_by_user_id != actor.id and not (actor.is_admin or actor.is_superadmin):
            raise AccessDeniedError("Only ticket creator or admin can update")

        if description is not None:
            ticket.description = clean_text(description, "description", required=True)
        if priority is not None:
            ticket.priority = _validate_priority(priority)
        if quantity_missing is not None:
            ticket.quantity_missing = require_non_negative_int(quantity_missing, "quantity_missing")
        return ticket

    return run_in_transaction(_op)


def acknowledge_ticket(ticket_id: int, actor: Actor) -> Ticket:
    def _op():
        return _transition(_lock_ticket_for(actor, ticket_id), TICKET_STATUS_IN_PROGRESS, actor)

    ticket = run_in_transaction(_op)
    current_app.logger.info("ticket %s acknowledged by user %s", ticket.ticket_number, actor.id)
    return ticket


def resolve_ticket(ticket_id: int, actor: Actor, action_taken: str) -> Ticket:
    def _op():
        ticket = _lock_ticket_for(actor, ticket_id)
        return _transition(ticket, TICKET_STATUS_CLOSED, actor, action_taken=action_taken)

    ticket = run_in_transaction(_op)
    current_app.logger.info("ticket %s resolved by user %s", ticket.ticket_number, actor.id)
    return ticket


def reopen_ticket(ticket_id: int, actor: Actor) -> Ticket:
    def _op():
        return _transition(_lock_ticket_for(actor, ticket_id), TICKET_STATUS_OPEN, actor)

    ticket = run_in_transaction(_op)
    current_app.logger.info("ticket %s reopened by user %s", ticket.ticket_number, actor.id)
    return ticket


def add_comment(ticket_id: int, actor: Actor, comment: str) -> TicketComment:
    comment = clean_text(comment, "comment", required=True)

    def _op():
        ticket = _lock_ticket_for(actor, ticket_id)
        row = TicketComment(ticket_id=ticket.id, user_id=actor.id, comment=comment, is_system=False)
        db.session.add(row)
        return row

    return run_in_transaction(_op)


def list_comments(ticket_id: int, actor: Actor) -> list[TicketComment]:
    ticket = get_ticket(ticket_id, actor)
    return (
        db.session.query(TicketComment)
        .filter_by(ticket_id=ticket.id)
        .order_by(TicketComment.created_at.asc(), TicketComment.id.asc())
        .all()
    )


def bulk_update_status(ticket_ids, new_status: str, actor: Actor, *, action_taken: str | None = None) -> dict:
    """
    Apply one status to many tickets.

    Tickets in stores the actor cannot access, and tickets for which the
    transition is not allowed, are skipped and reported. Fails with
    AccessDeniedError when none of the tickets is accessible.
    """
    if not isinstance(ticket_ids, (list, tuple)) or not ticket_ids:
        raise ValidationError("ticket_ids must be a non-empty list")
    if new_status not in TICKET_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(TICKET_STATUSES)}")

    def _op():
        tickets = (
            lock_for_update(db.session.query(Ticket).filter(Ticket.id.in_(ticket_ids)))
            .order_by(Ticket.id.asc())
            .all()
        )
        accessible = [t for t in tickets if can_access_store(actor, t.store)]
        if not accessible:
            raise AccessDeniedError("No accessible tickets found")

        updated = []
        skipped = [
            {"ticket_id": t.id, "error": "access denied"}
            for t in tickets if t not in accessible
        ]
        found = {t.id for t in tickets}
        skipped.extend({"ticket_id": tid, "error": "not found"} for tid in ticket_ids if tid not in found)

        for ticket in accessible:
            try:
                _transition(ticket, new_status, actor, action_taken=action_taken)
            except StockroomError as exc:
                skipped.append({"ticket_id": ticket.id, "error": exc.message})
                continue
            updated.append(ticket.id)
        return {"updated_count": len(updated), "updated": updated, "skipped": skipped}

    outcome = run_in_transaction(_op)
    current_app.logger.info(
        "bulk ticket status %s by user %s: %d updated", new_status, actor.id, outcome["updated_count"]
    )
    return outcome


def get_ticket_stats(actor: Actor, *, store_id: int | None = None) -> dict:
    base = db.session.query(Ticket).filter(Ticket.store_id.in_(accessible_store_ids_query(actor)))
    if store_id is not None:
        base = base.filter(Ticket.store_id == store_id)

    by_status = dict(
        base.with_entities(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status).all()
    )
    by_priority = dict(
        base.with_entities(Ticket.priority, func.count(Ticket.id)).group_by(Ticket.priority).all()
    )
    return {
        "total": sum(by_status.values()),
        "open": by_status.get(TICKET_STATUS_OPEN, 0),
        "in_progress": by_status.get(TICKET_STATUS_IN_PROGRESS, 0),
        "closed": by_status.get(TICKET_STATUS_CLOSED, 0),
        "by_priority": {priority: by_priority.get(priority, 0) for priority in PRIORITIES},
    }
