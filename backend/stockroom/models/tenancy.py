from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Store(db.Model):
    """
    A store owned by an admin tenant, optionally run by a store manager.

    CREDIT LEDGER: current_credit_cents is the running balance of unpaid
    distribution invoices. It is only ever changed by the invoice engine via
    credit_service, under a row lock plus version check. It can never go
    below zero; credit_limit_cents is advisory unless enforcement is enabled.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.CheckConstraint("current_credit_cents >= 0", name="ck_stores_credit_nonneg"),
        db.Index("ix_stores_admin_active", "admin_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.Text, nullable=True)
    phone_number = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    current_credit_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    admin = db.relationship("User", foreign_keys=[admin_id])
    manager = db.relationship("User", foreign_keys=[manager_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} admin_id={self.admin_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "manager_id": self.manager_id,
            "name": self.name,
            "address": self.address,
            "phone_number": self.phone_number,
            "email": self.email,
            "credit_limit_cents": self.credit_limit_cents,
            "current_credit_cents": self.current_credit_cents,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Outlet(db.Model):
    """
    A customer outlet supplied by a store.

    Every store gets one "dummy" outlet at creation for walk-in sales; the
    rest are "custom". Outlets carry their own credit ledger for outlet-sale
    invoices taken on credit.
    """
    __tablename__ = "outlets"
    __table_args__ = (
        db.CheckConstraint("current_credit_cents >= 0", name="ck_outlets_credit_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    name = db.Column(db.String(120), nullable=False)
    outlet_type = db.Column(db.String(16), nullable=False, default="custom")
    address = db.Column(db.Text, nullable=True)
    contact_person = db.Column(db.String(120), nullable=True)
    phone_number = db.Column(db.String(32), nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    current_credit_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("outlets", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "manager_id": self.manager_id,
            "name": self.name,
            "outlet_type": self.outlet_type,
            "address": self.address,
            "contact_person": self.contact_person,
            "phone_number": self.phone_number,
            "credit_limit_cents": self.credit_limit_cents,
            "current_credit_cents": self.current_credit_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Room(db.Model):
    __tablename__ = "rooms"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    room_number = db.Column(db.String(32), nullable=False)

    # Advisory: occupancy follows stock quantity but never blocks a mutation
    capacity = db.Column(db.Integer, nullable=False, default=0)
    current_occupancy = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("rooms", lazy=True))

    @property
    def owning_store_id(self) -> int:
        return self.store_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "room_number": self.room_number,
            "capacity": self.capacity,
            "current_occupancy": self.current_occupancy,
        }


class Rack(db.Model):
    __tablename__ = "racks"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    rack_number = db.Column(db.String(32), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=0)
    current_occupancy = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    room = db.relationship("Room", backref=db.backref("racks", lazy=True))

    @property
    def owning_store_id(self) -> int:
        return self.room.store_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "name": self.name,
            "rack_number": self.rack_number,
            "capacity": self.capacity,
            "current_occupancy": self.current_occupancy,
        }


class Freezer(db.Model):
    __tablename__ = "freezers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey("rooms.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    freezer_number = db.Column(db.String(32), nullable=False)
    temperature = db.Column(db.Float, nullable=True)
    capacity = db.Column(db.Integer, nullable=False, default=0)
    current_occupancy = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    room = db.relationship("Room", backref=db.backref("freezers", lazy=True))

    @property
    def owning_store_id(self) -> int:
        return self.room.store_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "name": self.name,
            "freezer_number": self.freezer_number,
            "temperature": self.temperature,
            "capacity": self.capacity,
            "current_occupancy": self.current_occupancy,
        }
