# Overview: Actor identity and the store ownership rule shared by every core operation.

"""
Store access control.

WHY: Stores belong to exactly one admin tenant and may be run by one store
manager. Every core call receives an Actor and checks it against the store it
touches before any write happens.

ACCESS RULE:
- superadmin: every store
- admin: stores where store.admin_id == actor.id
- store_manager: stores where store.manager_id == actor.id

Denials are logged at WARNING and surface as AccessDeniedError.
Permission flags are carried on the Actor for the caller's middleware; this
module does not interpret them.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import false

from ..errors import AccessDeniedError, NotFoundError
from ..extensions import db
from ..models import Store, User


ROLE_SUPERADMIN = "superadmin"
ROLE_ADMIN = "admin"
ROLE_STORE_MANAGER = "store_manager"
ROLES = (ROLE_SUPERADMIN, ROLE_ADMIN, ROLE_STORE_MANAGER)


@dataclass(frozen=True)
class Actor:
    id: int
    role: str
    permissions: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user: User, permissions=None) -> "Actor":
        return cls(id=user.id, role=user.role, permissions=frozenset(permissions or ()))

    @property
    def is_superadmin(self) -> bool:
        return self.role == ROLE_SUPERADMIN

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_store_manager(self) -> bool:
        return self.role == ROLE_STORE_MANAGER


def can_access_store(actor: Actor, store: Store) -> bool:
    if actor.is_superadmin:
        return True
    if actor.is_admin:
        return store.admin_id == actor.id
    if actor.is_store_manager:
        return store.manager_id == actor.id
    return False


def ensure_store_access(actor: Actor, store: Store, *, action: str = "access") -> Store:
    if not can_access_store(actor, store):
        current_app.logger.warning(
            "access denied: user=%s role=%s action=%s store=%s",
            actor.id, actor.role, action, store.id,
        )
        raise AccessDeniedError(f"Not allowed to {action} store {store.id}")
    return store


def ensure_store_owner(actor: Actor, store: Store, *, action: str) -> Store:
    """Admin-level operations: superadmin or the store's own admin only."""
    if actor.is_superadmin or (actor.is_admin and store.admin_id == actor.id):
        return store
    current_app.logger.warning(
        "access denied: user=%s role=%s action=%s store=%s",
        actor.id, actor.role, action, store.id,
    )
    raise AccessDeniedError(f"Not allowed to {action} store {store.id}")


def get_store_for(actor: Actor, store_id: int, *, action: str = "access") -> Store:
    store = db.session.query(Store).filter_by(id=store_id).first()
    if not store:
        raise NotFoundError(f"Store {store_id} not found")
    return ensure_store_access(actor, store, action=action)


def accessible_store_ids_query(actor: Actor):
    """Subquery-able select of store ids the actor may see."""
    query = db.session.query(Store.id)
    if actor.is_superadmin:
        return query
    if actor.is_admin:
        return query.filter(Store.admin_id == actor.id)
    if actor.is_store_manager:
        return query.filter(Store.manager_id == actor.id)
    return query.filter(false())


def tenant_admin_id(actor: Actor, store: Store | None = None) -> int | None:
    """Admin that owns records created by this actor (catalogue, expenditures)."""
    if actor.is_admin:
        return actor.id
    if store is not None:
        return store.admin_id
    return None
