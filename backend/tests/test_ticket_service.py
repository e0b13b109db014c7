# Overview: Pytest coverage for dishonour tickets, their state machine and comments.

import pytest

from stockroom.errors import AccessDeniedError, InvalidStatusTransitionError, NotFoundError, ValidationError
from stockroom.models import Ticket, TicketComment
from stockroom.services import ticket_service


@pytest.fixture
def ticket(store, product, manager_actor):
    return ticket_service.create_ticket(
        store.id, manager_actor,
        description="Two cases of cola missing from delivery",
        product_id=product.id,
        quantity_missing=24,
        priority="high",
    )


def _system_comments(session, ticket_id):
    return [
        c.comment
        for c in session.query(TicketComment).filter_by(ticket_id=ticket_id, is_system=True).order_by(TicketComment.id)
    ]


class TestTicketLifecycle:

    def test_create(self, db_session, store, ticket, manager_actor):
        assert ticket.ticket_number == f"TKT-{store.id:03d}-000001"
        assert ticket.status == "open"
        assert ticket.raised_by_user_id == manager_actor.id
        assert ticket.priority == "high"

    def test_create_validation(self, db_session, store, manager_actor):
        with pytest.raises(ValidationError):
            ticket_service.create_ticket(store.id, manager_actor, description="   ")
        with pytest.raises(ValidationError):
            ticket_service.create_ticket(store.id, manager_actor, description="x", priority="urgent")
        with pytest.raises(NotFoundError):
            ticket_service.create_ticket(store.id, manager_actor, description="x", product_id=999999)

    def test_other_tenant_cannot_raise(self, db_session, store, other_manager_actor):
        with pytest.raises(AccessDeniedError):
            ticket_service.create_ticket(store.id, other_manager_actor, description="not my store")

    def test_full_cycle(self, db_session, ticket, admin_actor, manager_actor):
        with pytest.raises(AccessDeniedError):
            ticket_service.acknowledge_ticket(ticket.id, admin_actor)

        acknowledged = ticket_service.acknowledge_ticket(ticket.id, manager_actor)
        assert acknowledged.status == "in_progress"

        with pytest.raises(AccessDeniedError):
            ticket_service.resolve_ticket(ticket.id, manager_actor, "recounted")
        with pytest.raises(ValidationError):
            ticket_service.resolve_ticket(ticket.id, admin_actor, "  ")

        closed = ticket_service.resolve_ticket(ticket.id, admin_actor, "Replacement shipped")
        assert closed.status == "closed"
        assert closed.action_taken == "Replacement shipped"
        assert closed.resolved_by_user_id == admin_actor.id
        assert closed.resolved_at is not None

        reopened = ticket_service.reopen_ticket(ticket.id, manager_actor)
        assert reopened.status == "open"
        assert reopened.resolved_at is None

        assert _system_comments(db_session, ticket.id) == [
            "Ticket acknowledged",
            "Ticket resolved: Replacement shipped",
            "Ticket reopened",
        ]

    def test_invalid_transitions(self, db_session, ticket, admin_actor, manager_actor):
        with pytest.raises(InvalidStatusTransitionError):
            ticket_service.reopen_ticket(ticket.id, manager_actor)

        ticket_service.resolve_ticket(ticket.id, admin_actor, "Written off")
        with pytest.raises(InvalidStatusTransitionError):
            ticket_service.acknowledge_ticket(ticket.id, manager_actor)
        assert db_session.get(Ticket, ticket.id).status == "closed"

    def test_update_rules(self, db_session, store, ticket, admin_actor, manager_actor):
        updated = ticket_service.update_ticket(ticket.id, manager_actor, priority="critical", quantity_missing=12)
        assert updated.priority == "critical"
        assert updated.quantity_missing == 12

        by_admin = ticket_service.create_ticket(store.id, admin_actor, description="Damaged pallet")
        with pytest.raises(AccessDeniedError):
            ticket_service.update_ticket(by_admin.id, manager_actor, description="edited")

        ticket_service.resolve_ticket(ticket.id, admin_actor, "Credited")
        with pytest.raises(InvalidStatusTransitionError):
            ticket_service.update_ticket(ticket.id, admin_actor, priority="low")


class TestComments:

    def test_comments_are_attributed(self, db_session, ticket, admin_actor, manager_actor, other_admin_actor):
        ticket_service.add_comment(ticket.id, manager_actor, "Photos attached")
        ticket_service.add_comment(ticket.id, admin_actor, "Checking with the carrier")

        comments = ticket_service.list_comments(ticket.id, admin_actor)
        assert [(c.user_id, c.comment) for c in comments] == [
            (manager_actor.id, "Photos attached"),
            (admin_actor.id, "Checking with the carrier"),
        ]
        assert not any(c.is_system for c in comments)

        with pytest.raises(AccessDeniedError):
            ticket_service.add_comment(ticket.id, other_admin_actor, "hello")
        with pytest.raises(ValidationError):
            ticket_service.add_comment(ticket.id, admin_actor, "")


class TestListingAndBulk:

    def test_list_scope_and_search(self, db_session, ticket, other_store, other_manager_actor, admin_actor):
        ticket_service.create_ticket(other_store.id, other_manager_actor, description="Crisps crushed")

        mine = ticket_service.list_tickets(admin_actor)
        assert mine["total"] == 1
        assert mine["tickets"][0].id == ticket.id

        assert ticket_service.list_tickets(admin_actor, search="cola")["total"] == 1
        assert ticket_service.list_tickets(admin_actor, search="crisps")["total"] == 0
        assert ticket_service.list_tickets(admin_actor, status="closed")["total"] == 0
        with pytest.raises(ValidationError):
            ticket_service.list_tickets(admin_actor, search="c")

    def test_bulk_close_skips_inaccessible(self, db_session, store, ticket, other_store, other_manager_actor,
                                           admin_actor, manager_actor):
        second = ticket_service.create_ticket(store.id, manager_actor, description="Short by one crate")
        foreign = ticket_service.create_ticket(other_store.id, other_manager_actor, description="Not yours")

        outcome = ticket_service.bulk_update_status(
            [ticket.id, second.id, foreign.id, 999999], "closed", admin_actor, action_taken="Credited",
        )

        assert outcome["updated_count"] == 2
        assert sorted(outcome["updated"]) == sorted([ticket.id, second.id])
        assert {s["ticket_id"]: s["error"] for s in outcome["skipped"]} == {
            foreign.id: "access denied",
            999999: "not found",
        }
        assert db_session.get(Ticket, foreign.id).status == "open"

    def test_bulk_enforces_state_machine(self, db_session, store, ticket, admin_actor, manager_actor):
        second = ticket_service.create_ticket(store.id, manager_actor, description="Wrong flavour")
        ticket_service.acknowledge_ticket(ticket.id, manager_actor)

        outcome = ticket_service.bulk_update_status([ticket.id, second.id], "in_progress", manager_actor)

        assert outcome["updated"] == [second.id]
        assert outcome["skipped"][0]["ticket_id"] == ticket.id

    def test_bulk_nothing_accessible(self, db_session, ticket, other_admin_actor):
        with pytest.raises(AccessDeniedError):
            ticket_service.bulk_update_status([ticket.id], "closed", other_admin_actor, action_taken="x")

    def test_stats(self, db_session, store, ticket, admin_actor, manager_actor):
        ticket_service.create_ticket(store.id, manager_actor, description="Leaking bottles", priority="low")
        ticket_service.resolve_ticket(ticket.id, admin_actor, "Refunded")

        stats = ticket_service.get_ticket_stats(admin_actor, store_id=store.id)
        assert stats["total"] == 2
        assert stats["open"] == 1
        assert stats["closed"] == 1
        assert stats["by_priority"] == {"low": 1, "medium": 0, "high": 1, "critical": 0}
