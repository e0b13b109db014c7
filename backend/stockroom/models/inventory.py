from __future__ import annotations

from ..extensions import db
from stockroom.locations import Location
from stockroom.time_utils import to_utc_z


class StockEntry(db.Model):
    """
    Quantity of one product at one location of one store.

    LOCATION KEY: (product_id, store_id, location_type, location_id) is unique.
    location_type is one of room/rack/freezer and location_id points at that
    table, so every row has exactly one effective location.

    INVARIANTS:
    - quantity >= 0 at every committed state (also a CHECK constraint)
    - rows are created lazily (find-or-create) and never deleted, only zeroed
    - quantity is only written by inventory_service, under lock + version check
    """
    __tablename__ = "stock_entries"
    __table_args__ = (
        db.UniqueConstraint(
            "product_id", "store_id", "location_type", "location_id",
            name="uq_stock_entries_location_key",
        ),
        db.CheckConstraint("quantity >= 0", name="ck_stock_entries_quantity_nonneg"),
        db.CheckConstraint(
            "location_type IN ('room', 'rack', 'freezer')",
            name="ck_stock_entries_location_type",
        ),
        db.Index("ix_stock_entries_store_product", "store_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    location_type = db.Column(db.String(16), nullable=False)
    location_id = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=10)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("stock_entries", lazy=True))
    store = db.relationship("Store", backref=db.backref("stock_entries", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def location(self) -> Location:
        return Location(self.location_type, self.location_id)

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.reorder_level

    def __repr__(self) -> str:
        return (
            f"<StockEntry id={self.id} product_id={self.product_id} store_id={self.store_id} "
            f"location={self.location_type}:{self.location_id} qty={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "location": {"type": self.location_type, "id": self.location_id},
            "quantity": self.quantity,
            "reorder_level": self.reorder_level,
            "is_low_stock": self.is_low_stock,
            "last_updated": to_utc_z(self.last_updated),
            "version_id": self.version_id,
        }


class InventoryTransaction(db.Model):
    """
    Transaction log: one immutable row per quantity mutation.

    Append-only. Rows are inserted in the same DB transaction as the stock
    write they describe and are never updated or deleted afterwards.

    For moves, stock_entry_id is the debited source, destination_entry_id the
    credited successor, and old/new_quantity describe the source side.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_entry_occurred", "stock_entry_id", "occurred_at"),
        db.Index("ix_invtx_store_product_occurred", "store_id", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    stock_entry_id = db.Column(db.Integer, db.ForeignKey("stock_entries.id"), nullable=False, index=True)
    destination_entry_id = db.Column(db.Integer, db.ForeignKey("stock_entries.id"), nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # add, subtract, adjust, move, audit_adjust
    action = db.Column(db.String(16), nullable=False, index=True)

    old_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    quantity_changed = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)

    from_location_type = db.Column(db.String(16), nullable=True)
    from_location_id = db.Column(db.Integer, nullable=True)
    to_location_type = db.Column(db.String(16), nullable=True)
    to_location_id = db.Column(db.Integer, nullable=True)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    audit_id = db.Column(db.Integer, db.ForeignKey("inventory_audits.id"), nullable=True, index=True)

    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    stock_entry = db.relationship("StockEntry", foreign_keys=[stock_entry_id])
    destination_entry = db.relationship("StockEntry", foreign_keys=[destination_entry_id])
    performed_by = db.relationship("User", foreign_keys=[performed_by_user_id])

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "stock_entry_id": self.stock_entry_id,
            "destination_entry_id": self.destination_entry_id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "action": self.action,
            "old_quantity": self.old_quantity,
            "new_quantity": self.new_quantity,
            "quantity_changed": self.quantity_changed,
            "reason": self.reason,
            "invoice_id": self.invoice_id,
            "audit_id": self.audit_id,
            "performed_by_user_id": self.performed_by_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
        if self.action == "move":
            data["from_location"] = {"type": self.from_location_type, "id": self.from_location_id}
            data["to_location"] = {"type": self.to_location_type, "id": self.to_location_id}
        return data


class StockAlert(db.Model):
    """
    Derived low-stock / out-of-stock signal for a stock entry.

    threshold records the reorder level at the moment of triggering, so a
    later change to the entry's reorder level does not rewrite history.
    """
    __tablename__ = "stock_alerts"
    __table_args__ = (
        db.Index("ix_stock_alerts_entry_status", "stock_entry_id", "status"),
        db.Index("ix_stock_alerts_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_entry_id = db.Column(db.Integer, db.ForeignKey("stock_entries.id"), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # low_stock, out_of_stock
    alert_type = db.Column(db.String(16), nullable=False)
    current_quantity = db.Column(db.Integer, nullable=False)
    threshold = db.Column(db.Integer, nullable=False)

    # active, resolved
    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    stock_entry = db.relationship("StockEntry", backref=db.backref("alerts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_entry_id": self.stock_entry_id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "alert_type": self.alert_type,
            "current_quantity": self.current_quantity,
            "threshold": self.threshold,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "resolved_at": to_utc_z(self.resolved_at),
            "resolved_by_user_id": self.resolved_by_user_id,
        }
