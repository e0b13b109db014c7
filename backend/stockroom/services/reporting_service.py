# Overview: Read-only report projections over stock, credit, sales and audits.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func

from stockroom.extensions import db
from stockroom.models import (
    Audit,
    Category,
    Invoice,
    InvoiceItem,
    Outlet,
    Product,
    StockEntry,
    Store,
)
from stockroom.services.access_service import Actor, accessible_store_ids_query, get_store_for
from stockroom.services.credit_service import utilization
from stockroom.time_utils import parse_iso_datetime, to_utc_z


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    start_dt = parse_iso_datetime(start) if start else None
    end_dt = parse_iso_datetime(end) if end else None
    return start_dt, end_dt


def _store_scope(actor: Actor, store_id: int | None):
    if store_id is not None:
        return [get_store_for(actor, store_id).id]
    return accessible_store_ids_query(actor)


def inventory_summary(actor: Actor, *, store_id: int | None = None) -> dict:
    """
    Totals over stock entries in scope.

    health_percent is the share of entries above their reorder level.
    Value uses the product list price.
    """
    scope = _store_scope(actor, store_id)
    row = (
        db.session.query(
            func.count(StockEntry.id).label("entries"),
            func.count(func.distinct(StockEntry.product_id)).label("products"),
            func.coalesce(func.sum(StockEntry.quantity), 0).label("units"),
            func.coalesce(func.sum(StockEntry.quantity * Product.price_cents), 0).label("value"),
            func.coalesce(
                func.sum(case((StockEntry.quantity == 0, 1), else_=0)), 0
            ).label("out_of_stock"),
            func.coalesce(
                func.sum(case(
                    (db.and_(StockEntry.quantity > 0, StockEntry.quantity <= StockEntry.reorder_level), 1),
                    else_=0,
                )), 0
            ).label("low_stock"),
        )
        .join(Product, Product.id == StockEntry.product_id)
        .filter(StockEntry.store_id.in_(scope))
        .one()
    )
    entries = int(row.entries or 0)
    unhealthy = int(row.out_of_stock) + int(row.low_stock)
    return {
        "stock_entries": entries,
        "distinct_products": int(row.products or 0),
        "total_units": int(row.units),
        "stock_value_cents": int(row.value),
        "low_stock": int(row.low_stock),
        "out_of_stock": int(row.out_of_stock),
        "health_percent": round((entries - unhealthy) / entries * 100, 2) if entries else 100.0,
    }


def category_breakdown(actor: Actor, *, store_id: int | None = None) -> list[dict]:
    scope = _store_scope(actor, store_id)
    rows = (
        db.session.query(
            Category.id,
            Category.name,
            func.count(func.distinct(Product.id)).label("products"),
            func.coalesce(func.sum(StockEntry.quantity), 0).label("units"),
            func.coalesce(func.sum(StockEntry.quantity * Product.price_cents), 0).label("value"),
        )
        .join(Product, Product.category_id == Category.id)
        .join(StockEntry, StockEntry.product_id == Product.id)
        .filter(StockEntry.store_id.in_(scope))
        .group_by(Category.id, Category.name)
        .order_by(Category.name.asc())
        .all()
    )
    return [
        {
            "category_id": row.id,
            "category": row.name,
            "products": int(row.products),
            "total_units": int(row.units),
            "stock_value_cents": int(row.value),
        }
        for row in rows
    ]


def store_breakdown(actor: Actor) -> list[dict]:
    rows = (
        db.session.query(
            Store.id,
            Store.name,
            func.coalesce(func.sum(StockEntry.quantity), 0).label("units"),
            func.coalesce(func.sum(StockEntry.quantity * Product.price_cents), 0).label("value"),
        )
        .outerjoin(StockEntry, StockEntry.store_id == Store.id)
        .outerjoin(Product, Product.id == StockEntry.product_id)
        .filter(Store.id.in_(accessible_store_ids_query(actor)))
        .group_by(Store.id, Store.name)
        .order_by(Store.name.asc())
        .all()
    )
    return [
        {
            "store_id": row.id,
            "store": row.name,
            "total_units": int(row.units),
            "stock_value_cents": int(row.value),
        }
        for row in rows
    ]


def credit_utilization_report(actor: Actor) -> dict:
    stores = (
        db.session.query(Store)
        .filter(Store.id.in_(accessible_store_ids_query(actor)))
        .order_by(Store.name.asc())
        .all()
    )
    outlets = (
        db.session.query(Outlet)
        .filter(Outlet.store_id.in_(accessible_store_ids_query(actor)))
        .order_by(Outlet.store_id.asc(), Outlet.name.asc())
        .all()
    )
    return {
        "stores": [
            {
                "store_id": store.id,
                "name": store.name,
                "credit_limit_cents": store.credit_limit_cents,
                "current_credit_cents": store.current_credit_cents,
                "utilization_percent": utilization(store.current_credit_cents, store.credit_limit_cents),
                "over_limit": store.current_credit_cents > store.credit_limit_cents,
            }
            for store in stores
        ],
        "outlets": [
            {
                "outlet_id": outlet.id,
                "store_id": outlet.store_id,
                "name": outlet.name,
                "credit_limit_cents": outlet.credit_limit_cents,
                "current_credit_cents": outlet.current_credit_cents,
                "utilization_percent": utilization(outlet.current_credit_cents, outlet.credit_limit_cents),
            }
            for outlet in outlets
        ],
        "total_store_credit_cents": sum(store.current_credit_cents for store in stores),
        "total_outlet_credit_cents": sum(outlet.current_credit_cents for outlet in outlets),
    }


def outlet_sales_summary(
    actor: Actor,
    *,
    store_id: int | None = None,
    start: str | None = None,
    end: str | None = None,
) -> dict:
    start_dt, end_dt = _parse_range(start, end)
    scope = _store_scope(actor, store_id)

    query = (
        db.session.query(
            Outlet.id.label("outlet_id"),
            Outlet.name.label("outlet"),
            func.count(func.distinct(Invoice.id)).label("invoices"),
            func.coalesce(func.sum(InvoiceItem.quantity), 0).label("units"),
            func.coalesce(func.sum(InvoiceItem.total_price_cents), 0).label("sales"),
        )
        .join(Invoice, Invoice.outlet_id == Outlet.id)
        .join(InvoiceItem, InvoiceItem.invoice_id == Invoice.id)
        .filter(
            Invoice.invoice_type == "outlet_sale",
            Invoice.status != "cancelled",
            Invoice.store_id.in_(scope),
        )
    )
    if start_dt:
        query = query.filter(Invoice.invoice_date >= start_dt)
    if end_dt:
        query = query.filter(Invoice.invoice_date <= end_dt)

    rows = query.group_by(Outlet.id, Outlet.name).order_by(Outlet.name.asc()).all()
    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "rows": [
            {
                "outlet_id": row.outlet_id,
                "outlet": row.outlet,
                "invoices": int(row.invoices),
                "units_sold": int(row.units),
                "sales_cents": int(row.sales),
            }
            for row in rows
        ],
        "total_sales_cents": sum(int(row.sales) for row in rows),
    }


def audit_history(actor: Actor, *, store_id: int | None = None, limit: int = 50) -> dict:
    scope = _store_scope(actor, store_id)
    audits = (
        db.session.query(Audit)
        .filter(Audit.store_id.in_(scope))
        .order_by(Audit.audit_date.desc(), Audit.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
    audited = sum(a.items_audited for a in audits)
    found = sum(a.discrepancies_found for a in audits)
    return {
        "audits": [a.to_dict() for a in audits],
        "overall_accuracy_rate": round((audited - found) / audited * 100, 2) if audited else 100.0,
    }
