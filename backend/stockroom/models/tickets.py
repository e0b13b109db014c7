from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Ticket(db.Model):
    """
    Dishonour ticket raised against a store (missing or damaged stock).

    LIFECYCLE:
    open -> in_progress (store manager acknowledges)
    in_progress/open -> closed (admin resolves, action_taken required)
    closed -> open (reopened)
    """
    __tablename__ = "tickets"
    __table_args__ = (
        db.Index("ix_tickets_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ticket_number = db.Column(db.String(64), nullable=False, unique=True)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    quantity_missing = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.Text, nullable=False)
    # low, medium, high, critical
    priority = db.Column(db.String(16), nullable=False, default="medium")

    # open, in_progress, closed
    status = db.Column(db.String(16), nullable=False, default="open", index=True)

    raised_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    action_taken = db.Column(db.Text, nullable=True)
    resolved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store")
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_comments: bool = False) -> dict:
        data = {
            "id": self.id,
            "ticket_number": self.ticket_number,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "quantity_missing": self.quantity_missing,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "raised_by_user_id": self.raised_by_user_id,
            "action_taken": self.action_taken,
            "resolved_by_user_id": self.resolved_by_user_id,
            "resolved_at": to_utc_z(self.resolved_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_comments:
            data["comments"] = [c.to_dict() for c in self.comments]
        return data


class TicketComment(db.Model):
    __tablename__ = "ticket_comments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(db.Integer, db.ForeignKey("tickets.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    comment = db.Column(db.Text, nullable=False)
    is_system = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    ticket = db.relationship(
        "Ticket",
        backref=db.backref("comments", lazy=True, order_by="TicketComment.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "user_id": self.user_id,
            "comment": self.comment,
            "is_system": self.is_system,
            "created_at": to_utc_z(self.created_at),
        }
