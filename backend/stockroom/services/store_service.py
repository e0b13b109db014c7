from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import AccessDeniedError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Freezer, Outlet, Rack, Room, Store, User
from stockroom.locations import Location, LOCATION_FREEZER, LOCATION_RACK, LOCATION_ROOM
from stockroom.validation import clean_text, coerce_amount_cents, require_non_negative_int
from .access_service import (
    Actor,
    ROLE_ADMIN,
    ROLE_STORE_MANAGER,
    accessible_store_ids_query,
    ensure_store_access,
    ensure_store_owner,
    get_store_for,
)
from .concurrency import lock_for_update, run_in_transaction


OUTLET_TYPE_DUMMY = "dummy"
OUTLET_TYPE_CUSTOM = "custom"

LOCATION_MODELS = {
    LOCATION_ROOM: Room,
    LOCATION_RACK: Rack,
    LOCATION_FREEZER: Freezer,
}


def _require_user_with_role(user_id: int, role: str, field: str) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError(f"{field} user {user_id} not found")
    if user.role != role:
        raise ValidationError(f"{field} must be a user with role {role}")
    if not user.is_active:
        raise ValidationError(f"{field} user {user_id} is inactive")
    return user


# =============================================================================
# Stores
# =============================================================================

def create_store(
    actor: Actor,
    *,
    name: str,
    address: str | None = None,
    phone_number: str | None = None,
    email: str | None = None,
    credit_limit_cents: int = 0,
    admin_id: int | None = None,
    manager_id: int | None = None,
) -> Store:
    """
    Create a store together with its dummy outlet.

    Admins always create stores for themselves; a superadmin must name the
    owning admin.
    """
    if actor.is_admin:
        admin_id = actor.id
    elif actor.is_superadmin:
        if admin_id is None:
            raise ValidationError("admin_id is required when a superadmin creates a store")
    else:
        raise AccessDeniedError("Only admins can create stores")

    name = clean_text(name, "name", max_length=120, required=True)
    address = clean_text(address, "address")
    credit_limit_cents = coerce_amount_cents(credit_limit_cents, "credit_limit_cents")

    def _op():
        if actor.is_superadmin:
            _require_user_with_role(admin_id, ROLE_ADMIN, "admin_id")
        if manager_id is not None:
            _require_user_with_role(manager_id, ROLE_STORE_MANAGER, "manager_id")

        store = Store(
            name=name,
            address=address,
            phone_number=clean_text(phone_number, "phone_number", max_length=32),
            email=clean_text(email, "email", max_length=255),
            credit_limit_cents=credit_limit_cents,
            current_credit_cents=0,
            admin_id=admin_id,
            manager_id=manager_id,
        )
        db.session.add(store)
        db.session.flush()

        db.session.add(Outlet(
            store_id=store.id,
            name=f"{name} - Dummy Outlet",
            outlet_type=OUTLET_TYPE_DUMMY,
            address=address,
        ))
        return store

    store = run_in_transaction(_op)
    current_app.logger.info("store %s created for admin %s by user %s", store.id, store.admin_id, actor.id)
    return store


def update_store(
    store_id: int,
    actor: Actor,
    *,
    name: str | None = None,
    address: str | None = None,
    phone_number: str | None = None,
    email: str | None = None,
    credit_limit_cents: int | None = None,
    manager_id: int | None = None,
) -> Store:
    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise NotFoundError(f"Store {store_id} not found")
        ensure_store_owner(actor, store, action="update")

        if name is not None:
            store.name = clean_text(name, "name", max_length=120, required=True)
        if address is not None:
            store.address = clean_text(address, "address")
        if phone_number is not None:
            store.phone_number = clean_text(phone_number, "phone_number", max_length=32)
        if email is not None:
            store.email = clean_text(email, "email", max_length=255)
        if credit_limit_cents is not None:
            store.credit_limit_cents = coerce_amount_cents(credit_limit_cents, "credit_limit_cents")
        if manager_id is not None:
            _require_user_with_role(manager_id, ROLE_STORE_MANAGER, "manager_id")
            store.manager_id = manager_id
        return store

    return run_in_transaction(_op)


def deactivate_store(store_id: int, actor: Actor) -> Store:
    """Soft delete. Stock, invoices and history stay in place."""
    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise NotFoundError(f"Store {store_id} not found")
        ensure_store_owner(actor, store, action="deactivate")
        store.is_active = False
        return store

    store = run_in_transaction(_op)
    current_app.logger.info("store %s deactivated by user %s", store.id, actor.id)
    return store


def get_store(store_id: int, actor: Actor) -> Store:
    return get_store_for(actor, store_id)


def list_stores(actor: Actor, *, include_inactive: bool = False) -> list[Store]:
    query = db.session.query(Store).filter(Store.id.in_(accessible_store_ids_query(actor)))
    if not include_inactive:
        query = query.filter(Store.is_active.is_(True))
    return query.order_by(Store.name.asc()).all()


# =============================================================================
# Storage hierarchy
# =============================================================================

def create_room(store_id: int, actor: Actor, *, name: str, room_number: str, capacity: int = 0) -> Room:
    def _op():
        store = get_store_for(actor, store_id, action="add rooms to")
        room = Room(
            store_id=store.id,
            name=clean_text(name, "name", max_length=120, required=True),
            room_number=clean_text(room_number, "room_number", max_length=32, required=True),
            capacity=require_non_negative_int(capacity, "capacity"),
        )
        db.session.add(room)
        return room

    return run_in_transaction(_op)


def _get_room_for(actor: Actor, room_id: int) -> Room:
    room = db.session.query(Room).filter_by(id=room_id).first()
    if not room:
        raise NotFoundError(f"Room {room_id} not found")
    ensure_store_access(actor, room.store, action="change storage of")
    return room


def create_rack(room_id: int, actor: Actor, *, name: str, rack_number: str, capacity: int = 0) -> Rack:
    def _op():
        room = _get_room_for(actor, room_id)
        rack = Rack(
            room_id=room.id,
            name=clean_text(name, "name", max_length=120, required=True),
            rack_number=clean_text(rack_number, "rack_number", max_length=32, required=True),
            capacity=require_non_negative_int(capacity, "capacity"),
        )
        db.session.add(rack)
        return rack

    return run_in_transaction(_op)


def create_freezer(
    room_id: int,
    actor: Actor,
    *,
    name: str,
    freezer_number: str,
    temperature: float | None = None,
    capacity: int = 0,
) -> Freezer:
    def _op():
        room = _get_room_for(actor, room_id)
        freezer = Freezer(
            room_id=room.id,
            name=clean_text(name, "name", max_length=120, required=True),
            freezer_number=clean_text(freezer_number, "freezer_number", max_length=32, required=True),
            temperature=temperature,
            capacity=require_non_negative_int(capacity, "capacity"),
        )
        db.session.add(freezer)
        return freezer

    return run_in_transaction(_op)


def resolve_location(location: Location):
    """Load the room/rack/freezer row a location points at."""
    model = LOCATION_MODELS[location.kind]
    row = db.session.query(model).filter_by(id=location.id).first()
    if not row:
        raise NotFoundError(f"Location {location} not found")
    return row


def ensure_location_in_store(location: Location, store_id: int):
    row = resolve_location(location)
    if row.owning_store_id != store_id:
        raise ValidationError(f"Location {location} does not belong to store {store_id}")
    return row


def adjust_occupancy(location: Location, delta: int) -> None:
    """
    Keep a location's occupancy counter in step with a stock write.

    Capacity is advisory: exceeding it is allowed and only reported. The
    counter is floored at zero so a location created after stock was placed
    there cannot go negative.
    """
    if not delta:
        return
    row = resolve_location(location)
    row.current_occupancy = max(0, (row.current_occupancy or 0) + delta)
    if row.capacity and row.current_occupancy > row.capacity:
        current_app.logger.info(
            "location %s over capacity: %s/%s", location, row.current_occupancy, row.capacity
        )


def get_store_hierarchy(store_id: int, actor: Actor) -> dict:
    store = get_store_for(actor, store_id)
    rooms = db.session.query(Room).filter_by(store_id=store.id).order_by(Room.id.asc()).all()
    outlets = db.session.query(Outlet).filter_by(store_id=store.id).order_by(Outlet.id.asc()).all()

    data = store.to_dict()
    data["rooms"] = []
    for room in rooms:
        room_data = room.to_dict()
        room_data["racks"] = [rack.to_dict() for rack in sorted(room.racks, key=lambda r: r.id)]
        room_data["freezers"] = [freezer.to_dict() for freezer in sorted(room.freezers, key=lambda f: f.id)]
        data["rooms"].append(room_data)
    data["outlets"] = [outlet.to_dict() for outlet in outlets]
    return data


# =============================================================================
# Outlets
# =============================================================================

def create_outlet(
    store_id: int,
    actor: Actor,
    *,
    name: str,
    address: str | None = None,
    contact_person: str | None = None,
    phone_number: str | None = None,
    credit_limit_cents: int = 0,
    manager_id: int | None = None,
) -> Outlet:
    name = clean_text(name, "name", max_length=120, required=True)
    credit_limit_cents = coerce_amount_cents(credit_limit_cents, "credit_limit_cents")

    def _op():
        store = get_store_for(actor, store_id, action="add outlets to")
        duplicate = (
            db.session.query(Outlet.id)
            .filter(Outlet.store_id == store.id, func.lower(Outlet.name) == name.lower())
            .first()
        )
        if duplicate:
            raise ValidationError("Outlet with this name already exists in this store")

        outlet = Outlet(
            store_id=store.id,
            name=name,
            outlet_type=OUTLET_TYPE_CUSTOM,
            address=clean_text(address, "address"),
            contact_person=clean_text(contact_person, "contact_person", max_length=120),
            phone_number=clean_text(phone_number, "phone_number", max_length=32),
            credit_limit_cents=credit_limit_cents,
            manager_id=manager_id,
        )
        db.session.add(outlet)
        return outlet

    return run_in_transaction(_op)


def list_outlets(store_id: int, actor: Actor, *, outlet_type: str | None = None) -> list[Outlet]:
    store = get_store_for(actor, store_id)
    query = db.session.query(Outlet).filter_by(store_id=store.id)
    if outlet_type:
        query = query.filter(Outlet.outlet_type == outlet_type)
    return query.order_by(Outlet.id.asc()).all()
