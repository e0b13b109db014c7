from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Invoice(db.Model):
    """
    Distribution or outlet-sale invoice.

    AMOUNTS (integer cents):
    - total_amount_cents = sum of line totals, fixed at creation
    - credit_amount_cents = portion still owed on the store/outlet credit ledger
    - paid_amount_cents = portion settled

    LIFECYCLE:
    - pending: distribution taken on credit or mixed payment
    - completed: fully paid (terminal)
    - cancelled: voided, outstanding credit released (terminal)

    The credit portion is settled by update_invoice_status(..., "paid"), which
    also decrements the owning account's current credit in the same
    transaction.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.CheckConstraint("total_amount_cents >= 0", name="ck_invoices_total_nonneg"),
        db.CheckConstraint("credit_amount_cents >= 0", name="ck_invoices_credit_nonneg"),
        db.CheckConstraint("paid_amount_cents >= 0", name="ck_invoices_paid_nonneg"),
        db.Index("ix_invoices_store_status", "store_id", "status"),
        db.Index("ix_invoices_store_date", "store_id", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    store_manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # distribution, outlet_sale, credit, paid
    invoice_type = db.Column(db.String(16), nullable=False, index=True)
    # credit, paid, mixed
    payment_method = db.Column(db.String(16), nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # pending, completed, cancelled
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    notes = db.Column(db.Text, nullable=True)
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store")
    outlet = db.relationship("Outlet")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} type={self.invoice_type} status={self.status}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "store_id": self.store_id,
            "outlet_id": self.outlet_id,
            "admin_id": self.admin_id,
            "store_manager_id": self.store_manager_id,
            "created_by_user_id": self.created_by_user_id,
            "invoice_type": self.invoice_type,
            "payment_method": self.payment_method,
            "total_amount_cents": self.total_amount_cents,
            "credit_amount_cents": self.credit_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "status": self.status,
            "notes": self.notes,
            "invoice_date": to_utc_z(self.invoice_date),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class InvoiceItem(db.Model):
    """Invoice line. Written once when the invoice is created."""
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    stock_entry_id = db.Column(db.Integer, db.ForeignKey("stock_entries.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    location_type = db.Column(db.String(16), nullable=True)
    location_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship(
        "Invoice",
        backref=db.backref("items", lazy=True, order_by="InvoiceItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "stock_entry_id": self.stock_entry_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "total_price_cents": self.total_price_cents,
            "location": (
                {"type": self.location_type, "id": self.location_id}
                if self.location_type else None
            ),
        }


class Payment(db.Model):
    """
    Settlement recorded against an invoice.

    Append-only. A payment never edits an earlier payment; corrections are
    handled by cancelling the invoice.
    """
    __tablename__ = "invoice_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_invoice_payments_amount_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    # cash, bank_transfer, cheque, other
    payment_method = db.Column(db.String(32), nullable=False)
    transaction_ref = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    paid_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship(
        "Invoice",
        backref=db.backref("payments", lazy=True, order_by="Payment.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "transaction_ref": self.transaction_ref,
            "notes": self.notes,
            "paid_by_user_id": self.paid_by_user_id,
            "paid_at": to_utc_z(self.paid_at),
        }
