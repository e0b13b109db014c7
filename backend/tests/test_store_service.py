# Overview: Pytest coverage for stores, storage hierarchy and outlets.

import pytest

from stockroom.errors import AccessDeniedError, NotFoundError, ValidationError
from stockroom.locations import Location
from stockroom.models import Outlet
from stockroom.services import store_service


class TestStores:

    def test_create_store_adds_dummy_outlet(self, db_session, store, admin, manager):
        outlets = db_session.query(Outlet).filter_by(store_id=store.id).all()

        assert store.admin_id == admin.id
        assert store.manager_id == manager.id
        assert store.current_credit_cents == 0
        assert len(outlets) == 1
        assert outlets[0].outlet_type == "dummy"
        assert outlets[0].name == "Central - Dummy Outlet"

    def test_admin_always_owns_own_store(self, db_session, admin_actor, other_admin):
        store = store_service.create_store(admin_actor, name="Annex", admin_id=other_admin.id)
        assert store.admin_id == admin_actor.id

    def test_superadmin_must_name_admin(self, db_session, superadmin_actor, admin, manager):
        with pytest.raises(ValidationError):
            store_service.create_store(superadmin_actor, name="Nowhere")
        with pytest.raises(ValidationError):
            store_service.create_store(superadmin_actor, name="Wrong role", admin_id=manager.id)

        store = store_service.create_store(superadmin_actor, name="Depot", admin_id=admin.id)
        assert store.admin_id == admin.id

    def test_manager_cannot_create(self, db_session, manager_actor):
        with pytest.raises(AccessDeniedError):
            store_service.create_store(manager_actor, name="Mine")

    def test_manager_id_must_be_store_manager(self, db_session, admin_actor, other_admin):
        with pytest.raises(ValidationError):
            store_service.create_store(admin_actor, name="Odd", manager_id=other_admin.id)

    def test_list_stores_by_role(self, db_session, store, other_store, admin_actor, manager_actor,
                                 other_manager_actor, superadmin_actor):
        assert [s.id for s in store_service.list_stores(admin_actor)] == [store.id]
        assert [s.id for s in store_service.list_stores(manager_actor)] == [store.id]
        assert [s.id for s in store_service.list_stores(other_manager_actor)] == [other_store.id]
        assert {s.id for s in store_service.list_stores(superadmin_actor)} == {store.id, other_store.id}

    def test_update_and_deactivate(self, db_session, store, admin_actor, manager_actor):
        with pytest.raises(AccessDeniedError):
            store_service.update_store(store.id, manager_actor, name="Renamed")

        updated = store_service.update_store(store.id, admin_actor, name="Central West", credit_limit_cents=5_000)
        assert updated.name == "Central West"
        assert updated.credit_limit_cents == 5_000

        store_service.deactivate_store(store.id, admin_actor)
        assert store_service.list_stores(admin_actor) == []
        assert len(store_service.list_stores(admin_actor, include_inactive=True)) == 1

    def test_get_store_not_found(self, db_session, admin_actor):
        with pytest.raises(NotFoundError):
            store_service.get_store(999999, admin_actor)


class TestStorageHierarchy:

    def test_hierarchy(self, db_session, store, room, rack, freezer, admin_actor):
        data = store_service.get_store_hierarchy(store.id, admin_actor)

        assert [r["id"] for r in data["rooms"]] == [room.id]
        assert [r["id"] for r in data["rooms"][0]["racks"]] == [rack.id]
        assert data["rooms"][0]["freezers"][0]["temperature"] == -18.0
        assert len(data["outlets"]) == 1

    def test_storage_needs_store_access(self, db_session, store, room, other_admin_actor):
        with pytest.raises(AccessDeniedError):
            store_service.create_room(store.id, other_admin_actor, name="Sneaky", room_number="X")
        with pytest.raises(AccessDeniedError):
            store_service.create_rack(room.id, other_admin_actor, name="Sneaky", rack_number="X")

    def test_location_ownership(self, db_session, store, other_store, rack, freezer):
        assert store_service.ensure_location_in_store(Location("rack", rack.id), store.id).id == rack.id
        assert store_service.ensure_location_in_store(Location("freezer", freezer.id), store.id).id == freezer.id

        with pytest.raises(ValidationError):
            store_service.ensure_location_in_store(Location("rack", rack.id), other_store.id)
        with pytest.raises(NotFoundError):
            store_service.resolve_location(Location("room", 999999))

    def test_occupancy_never_negative(self, db_session, room):
        location = Location("room", room.id)
        store_service.adjust_occupancy(location, 5)
        store_service.adjust_occupancy(location, -8)
        assert store_service.resolve_location(location).current_occupancy == 0


class TestOutlets:

    def test_create_outlet(self, db_session, store, manager_actor):
        outlet = store_service.create_outlet(
            store.id, manager_actor, name="Corner Shop", contact_person="Sam", credit_limit_cents=20_000
        )
        assert outlet.outlet_type == "custom"
        assert outlet.credit_limit_cents == 20_000

        with pytest.raises(ValidationError):
            store_service.create_outlet(store.id, manager_actor, name="corner shop")

        names = [o.name for o in store_service.list_outlets(store.id, manager_actor)]
        assert names == ["Central - Dummy Outlet", "Corner Shop"]
        assert len(store_service.list_outlets(store.id, manager_actor, outlet_type="custom")) == 1
