from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Expenditure(db.Model):
    __tablename__ = "expenditures"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_expenditures_amount_pos"),
        db.Index("ix_expenditures_admin_spent_on", "admin_id", "spent_on"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    category = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    spent_on = db.Column(db.Date, nullable=False)

    # Reference to a stored file; upload handling lives outside this service
    receipt_path = db.Column(db.String(512), nullable=True)

    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    verified_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "store_id": self.store_id,
            "category": self.category,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "spent_on": self.spent_on.isoformat() if self.spent_on else None,
            "receipt_path": self.receipt_path,
            "is_verified": self.is_verified,
            "verified_by_user_id": self.verified_by_user_id,
            "verified_at": to_utc_z(self.verified_at),
            "created_at": to_utc_z(self.created_at),
        }
