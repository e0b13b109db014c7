from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Audit(db.Model):
    """
    Physical stock audit header.

    An audit is performed and applied in one transaction: there is no draft
    state. Each non-zero discrepancy gets an AuditDiscrepancy row and the
    matching stock entry is overwritten with the counted value.

    Accuracy is not stored; it is derived from items_audited and
    discrepancies_found when reported.
    """
    __tablename__ = "inventory_audits"
    __table_args__ = (
        db.Index("ix_inventory_audits_store_date", "store_id", "audit_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Null when the audit covered the whole store
    location_type = db.Column(db.String(16), nullable=True)
    location_id = db.Column(db.Integer, nullable=True)

    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    items_audited = db.Column(db.Integer, nullable=False, default=0)
    discrepancies_found = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    audit_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store")
    performed_by = db.relationship("User", foreign_keys=[performed_by_user_id])

    @property
    def accuracy_rate(self) -> float:
        if not self.items_audited:
            return 100.0
        return round((self.items_audited - self.discrepancies_found) / self.items_audited * 100, 2)

    def to_dict(self, include_discrepancies: bool = False) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "location": (
                {"type": self.location_type, "id": self.location_id}
                if self.location_type else None
            ),
            "performed_by_user_id": self.performed_by_user_id,
            "items_audited": self.items_audited,
            "discrepancies_found": self.discrepancies_found,
            "accuracy_rate": self.accuracy_rate,
            "notes": self.notes,
            "audit_date": to_utc_z(self.audit_date),
        }
        if include_discrepancies:
            data["discrepancies"] = [d.to_dict() for d in self.discrepancies]
        return data


class AuditDiscrepancy(db.Model):
    __tablename__ = "audit_discrepancies"
    __table_args__ = (
        db.UniqueConstraint("audit_id", "product_id", name="uq_audit_discrepancies_audit_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    audit_id = db.Column(db.Integer, db.ForeignKey("inventory_audits.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    stock_entry_id = db.Column(db.Integer, db.ForeignKey("stock_entries.id"), nullable=True)

    expected_quantity = db.Column(db.Integer, nullable=False)
    counted_quantity = db.Column(db.Integer, nullable=False)
    # counted - expected
    discrepancy = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    audit = db.relationship(
        "Audit",
        backref=db.backref("discrepancies", lazy=True, order_by="AuditDiscrepancy.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "audit_id": self.audit_id,
            "product_id": self.product_id,
            "stock_entry_id": self.stock_entry_id,
            "expected_quantity": self.expected_quantity,
            "counted_quantity": self.counted_quantity,
            "discrepancy": self.discrepancy,
            "notes": self.notes,
        }


class DocumentSequence(db.Model):
    """
    Per-store document number counter.

    One row per (store_id, document_type). next_number is incremented with a
    single UPDATE inside the caller's transaction, so two invoices can never
    share a number and a rolled back invoice also rolls back its number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "document_type", name="uq_document_sequences_store_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    # DISTRIBUTION, OUTLET_SALE, TICKET
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
