# Overview: Categories and products owned by an admin tenant.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import AccessDeniedError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Product, StockEntry, Store
from stockroom.validation import clean_text, coerce_amount_cents, require_non_negative_int
from .access_service import Actor, accessible_store_ids_query
from .concurrency import lock_for_update, run_in_transaction


# Fields that stay editable after a product has stock entries
MUTABLE_WHEN_STOCKED = {"name", "description", "price_cents", "cost_price_cents", "threshold_quantity", "is_active"}
PRODUCT_FIELDS = MUTABLE_WHEN_STOCKED | {"sku", "category_id"}


def _owner_admin_id(actor: Actor, admin_id: int | None) -> int | None:
    if actor.is_admin:
        return actor.id
    if actor.is_superadmin:
        return admin_id
    raise AccessDeniedError("Only admins can manage the catalogue")


def _visible_admin_ids(actor: Actor):
    """Admin ids whose catalogue the actor can read. None means all."""
    if actor.is_superadmin:
        return None
    if actor.is_admin:
        return [actor.id]
    rows = (
        db.session.query(Store.admin_id)
        .filter(Store.id.in_(accessible_store_ids_query(actor)))
        .distinct()
        .all()
    )
    return [row[0] for row in rows]


def product_visible_to_store(product: Product, store: Store) -> bool:
    return product.admin_id is None or product.admin_id == store.admin_id


def create_category(actor: Actor, *, name: str, description: str | None = None, admin_id: int | None = None) -> Category:
    owner_id = _owner_admin_id(actor, admin_id)
    name = clean_text(name, "name", max_length=120, required=True)

    def _op():
        duplicate = (
            db.session.query(Category.id)
            .filter(Category.admin_id == owner_id, func.lower(Category.name) == name.lower())
            .first()
        )
        if duplicate:
            raise ValidationError(f"Category {name!r} already exists")
        category = Category(admin_id=owner_id, name=name, description=clean_text(description, "description"))
        db.session.add(category)
        return category

    return run_in_transaction(_op)


def list_categories(actor: Actor) -> list[Category]:
    query = db.session.query(Category)
    admin_ids = _visible_admin_ids(actor)
    if admin_ids is not None:
        query = query.filter(Category.admin_id.in_(admin_ids))
    return query.order_by(Category.name.asc()).all()


def create_product(
    actor: Actor,
    *,
    category_id: int,
    sku: str,
    name: str,
    price_cents: int,
    cost_price_cents: int | None = None,
    threshold_quantity: int | None = None,
    description: str | None = None,
    admin_id: int | None = None,
) -> Product:
    owner_id = _owner_admin_id(actor, admin_id)
    sku = clean_text(sku, "sku", max_length=64, required=True)
    name = clean_text(name, "name", max_length=255, required=True)
    price_cents = coerce_amount_cents(price_cents, "price_cents")
    if cost_price_cents is not None:
        cost_price_cents = coerce_amount_cents(cost_price_cents, "cost_price_cents")
    if threshold_quantity is None:
        threshold_quantity = current_app.config.get("STOCKROOM_DEFAULT_REORDER_LEVEL", 10)
    threshold_quantity = require_non_negative_int(threshold_quantity, "threshold_quantity")

    def _op():
        category = db.session.query(Category).filter_by(id=category_id).first()
        if not category or (owner_id is not None and category.admin_id not in (None, owner_id)):
            raise NotFoundError(f"Category {category_id} not found")

        if db.session.query(Product.id).filter_by(admin_id=owner_id, sku=sku).first():
            raise ValidationError(f"SKU {sku!r} already exists")

        product = Product(
            admin_id=owner_id,
            category_id=category.id,
            sku=sku,
            name=name,
            description=clean_text(description, "description"),
            price_cents=price_cents,
            cost_price_cents=cost_price_cents,
            threshold_quantity=threshold_quantity,
            is_active=True,
        )
        db.session.add(product)
        return product

    product = run_in_transaction(_op)
    current_app.logger.info("product %s (%s) created by user %s", product.id, product.sku, actor.id)
    return product


def get_product(product_id: int, actor: Actor) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    admin_ids = _visible_admin_ids(actor)
    if not product or (admin_ids is not None and product.admin_id is not None and product.admin_id not in admin_ids):
        raise NotFoundError(f"Product {product_id} not found")
    return product


def update_product(product_id: int, actor: Actor, **changes) -> Product:
    """
    Patch product fields.

    Once any stock entry references the product its identity is frozen:
    only fields in MUTABLE_WHEN_STOCKED may change, so history and stock
    rows keep pointing at the same sku/category.
    """
    unknown = set(changes) - PRODUCT_FIELDS
    if unknown:
        raise ValidationError(f"Unknown product fields: {', '.join(sorted(unknown))}")

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        if not actor.is_superadmin and product.admin_id != actor.id:
            raise AccessDeniedError(f"Not allowed to update product {product_id}")

        stocked = db.session.query(StockEntry.id).filter_by(product_id=product.id).first() is not None
        if stocked:
            frozen = sorted(set(changes) - MUTABLE_WHEN_STOCKED)
            if frozen:
                raise ValidationError(f"Cannot change {', '.join(frozen)} of a product that has stock")

        if "name" in changes:
            product.name = clean_text(changes["name"], "name", max_length=255, required=True)
        if "description" in changes:
            product.description = clean_text(changes["description"], "description")
        if "price_cents" in changes:
            product.price_cents = coerce_amount_cents(changes["price_cents"], "price_cents")
        if "cost_price_cents" in changes:
            value = changes["cost_price_cents"]
            product.cost_price_cents = None if value is None else coerce_amount_cents(value, "cost_price_cents")
        if "threshold_quantity" in changes:
            product.threshold_quantity = require_non_negative_int(changes["threshold_quantity"], "threshold_quantity")
        if "is_active" in changes:
            product.is_active = bool(changes["is_active"])
        if "sku" in changes:
            sku = clean_text(changes["sku"], "sku", max_length=64, required=True)
            clash = (
                db.session.query(Product.id)
                .filter(Product.admin_id == product.admin_id, Product.sku == sku, Product.id != product.id)
                .first()
            )
            if clash:
                raise ValidationError(f"SKU {sku!r} already exists")
            product.sku = sku
        if "category_id" in changes:
            category = db.session.query(Category).filter_by(id=changes["category_id"]).first()
            if not category:
                raise NotFoundError(f"Category {changes['category_id']} not found")
            product.category_id = category.id
        return product

    return run_in_transaction(_op)


def deactivate_product(product_id: int, actor: Actor) -> Product:
    return update_product(product_id, actor, is_active=False)


def list_products(
    actor: Actor,
    *,
    category_id: int | None = None,
    search: str | None = None,
    include_inactive: bool = False,
) -> list[Product]:
    query = db.session.query(Product)
    admin_ids = _visible_admin_ids(actor)
    if admin_ids is not None:
        query = query.filter(Product.admin_id.in_(admin_ids))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    return query.order_by(Product.name.asc()).all()


def list_low_threshold_products(actor: Actor) -> list[dict]:
    """Active products whose total stock across visible stores is at or below their threshold."""
    on_hand = func.coalesce(func.sum(StockEntry.quantity), 0)
    query = (
        db.session.query(Product, on_hand.label("on_hand"))
        .outerjoin(
            StockEntry,
            db.and_(
                StockEntry.product_id == Product.id,
                StockEntry.store_id.in_(accessible_store_ids_query(actor)),
            ),
        )
        .filter(Product.is_active.is_(True))
    )
    admin_ids = _visible_admin_ids(actor)
    if admin_ids is not None:
        query = query.filter(Product.admin_id.in_(admin_ids))

    rows = (
        query.group_by(Product.id)
        .having(on_hand <= Product.threshold_quantity)
        .order_by(Product.name.asc())
        .all()
    )
    return [{**product.to_dict(), "on_hand": int(total)} for product, total in rows]
