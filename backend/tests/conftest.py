"""
Pytest fixtures for Stockroom backend tests.

Provides the test database, users for every role, two tenant stores with a
storage hierarchy, and a small catalogue.
"""

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.locations import Location
from stockroom.models import User
from stockroom.services import catalog_service, inventory_service, store_service
from stockroom.services.access_service import Actor


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STOCKROOM_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(session, name, email, role):
    user = User(name=name, email=email, role=role, is_active=True)
    session.add(user)
    session.commit()
    return user


# =============================================================================
# Users and actors
# =============================================================================

@pytest.fixture(scope='function')
def superadmin(db_session):
    return _make_user(db_session, "Root", "root@stockroom.test", "superadmin")


@pytest.fixture(scope='function')
def admin(db_session):
    """Admin tenant A."""
    return _make_user(db_session, "Alice Admin", "alice@acme.test", "admin")


@pytest.fixture(scope='function')
def other_admin(db_session):
    """Admin tenant B."""
    return _make_user(db_session, "Bob Admin", "bob@beta.test", "admin")


@pytest.fixture(scope='function')
def manager(db_session):
    return _make_user(db_session, "Mia Manager", "mia@acme.test", "store_manager")


@pytest.fixture(scope='function')
def other_manager(db_session):
    return _make_user(db_session, "Max Manager", "max@beta.test", "store_manager")


@pytest.fixture(scope='function')
def superadmin_actor(superadmin):
    return Actor.from_user(superadmin)


@pytest.fixture(scope='function')
def admin_actor(admin):
    return Actor.from_user(admin)


@pytest.fixture(scope='function')
def other_admin_actor(other_admin):
    return Actor.from_user(other_admin)


@pytest.fixture(scope='function')
def manager_actor(manager):
    return Actor.from_user(manager)


@pytest.fixture(scope='function')
def other_manager_actor(other_manager):
    return Actor.from_user(other_manager)


# =============================================================================
# Stores and storage
# =============================================================================

@pytest.fixture(scope='function')
def store(admin_actor, manager):
    """Store owned by admin A and run by manager A."""
    return store_service.create_store(
        admin_actor,
        name="Central",
        address="1 Main Street",
        manager_id=manager.id,
        credit_limit_cents=100_000,
    )


@pytest.fixture(scope='function')
def other_store(other_admin_actor, other_manager):
    """Store owned by admin B."""
    return store_service.create_store(other_admin_actor, name="Harbour", manager_id=other_manager.id)


@pytest.fixture(scope='function')
def dummy_outlet(store):
    return store.outlets[0]


@pytest.fixture(scope='function')
def room(store, admin_actor):
    return store_service.create_room(store.id, admin_actor, name="Main Room", room_number="R1", capacity=100)


@pytest.fixture(scope='function')
def rack(room, admin_actor):
    return store_service.create_rack(room.id, admin_actor, name="Rack A", rack_number="A1", capacity=50)


@pytest.fixture(scope='function')
def freezer(room, admin_actor):
    return store_service.create_freezer(
        room.id, admin_actor, name="Freezer 1", freezer_number="F1", temperature=-18.0
    )


@pytest.fixture(scope='function')
def other_room(other_store, other_admin_actor):
    return store_service.create_room(other_store.id, other_admin_actor, name="Dock", room_number="D1")


@pytest.fixture(scope='function')
def room_location(room):
    return Location("room", room.id)


@pytest.fixture(scope='function')
def rack_location(rack):
    return Location("rack", rack.id)


# =============================================================================
# Catalogue and stock
# =============================================================================

@pytest.fixture(scope='function')
def category(admin_actor):
    return catalog_service.create_category(admin_actor, name="Beverages")


@pytest.fixture(scope='function')
def product(admin_actor, category):
    return catalog_service.create_product(
        admin_actor,
        category_id=category.id,
        sku="BEV-001",
        name="Cola 330ml",
        price_cents=250,
        cost_price_cents=120,
        threshold_quantity=10,
    )


@pytest.fixture(scope='function')
def second_product(admin_actor, category):
    return catalog_service.create_product(
        admin_actor,
        category_id=category.id,
        sku="BEV-002",
        name="Lemonade 330ml",
        price_cents=300,
        threshold_quantity=10,
    )


@pytest.fixture(scope='function')
def other_product(other_admin_actor):
    category = catalog_service.create_category(other_admin_actor, name="Snacks")
    return catalog_service.create_product(
        other_admin_actor, category_id=category.id, sku="SNK-001", name="Crisps", price_cents=150,
    )


@pytest.fixture(scope='function')
def entry(store, product, room_location, admin_actor):
    """Empty stock entry for the product in the main room."""
    return inventory_service.create_stock_entry(store.id, product.id, room_location, admin_actor)


@pytest.fixture(scope='function')
def other_entry(other_store, other_product, other_room, other_admin_actor):
    return inventory_service.create_stock_entry(
        other_store.id, other_product.id, Location("room", other_room.id), other_admin_actor
    )
