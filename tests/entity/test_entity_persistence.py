"""Tests for creating, saving, updating, deleting and finding entities."""

from unittest import mock

import pytest

from recordmap import Entity, EntityState, PersistenceError, SqliteExecutor, UsageError, ValidationError
from tests.models import Country, DataHandling, GuardedUser, Role, User


def _row(db, sql, *parameters):
    return db.execute(sql, parameters)[0]


class TestCreate:

    def test_create_inserts_and_reloads(self, setup_db):
        user = User.create({"name": "Ann", "email": "ann@example.com"})
        assert user.id is not None
        assert user.state is EntityState.PERSISTED
        assert user.loaded
        assert not user.is_changed()
        assert user.name == "Ann"
        row = _row(setup_db, "SELECT name, login_count FROM users WHERE id = ?", user.id)
        assert row == {"name": "Ann", "login_count": 0}

    def test_create_with_empty_data_raises(self, setup_db):
        with pytest.raises(ValidationError):
            User.create({})

    def test_vetoed_create_raises(self, setup_db):
        with pytest.raises(PersistenceError, match="Could not create GuardedUser"):
            GuardedUser.create({"name": "x", "locked": True})
        assert _row(setup_db, "SELECT COUNT(*) AS n FROM users")["n"] == 0

    def test_create_assigns_relations_after_insert(self, setup_db):
        admin = Role.create({"name": "admin"})
        france = Country.create({"name": "France"})
        user = User.create({"name": "Ann", "roles": [admin], "country": france})
        assert user.get_related_ids("roles") == [admin.id]
        assert user.country_id == france.id

    def test_token_identifier_is_generated(self, setup_db):
        entity = DataHandling.create({"name": "a"})
        assert isinstance(entity.uid, str)
        assert len(entity.uid) == 32
        assert entity.id == entity.uid
        assert entity.counter == 0
        assert DataHandling.find(entity.uid).name == "a"

    def test_multi_owned_key_is_refused_before_insert(self, setup_db):
        with pytest.raises(UsageError, match="Relation `addresses` of User cannot be assigned"):
            User.create({"name": "Ann", "addresses": []})
        assert _row(setup_db, "SELECT COUNT(*) AS n FROM users")["n"] == 0


class TestSave:

    def test_save_transient_entity(self, setup_db):
        user = User({"name": "Ann"})
        assert user.state is EntityState.TRANSIENT
        assert user.save()
        assert user.id == 1
        assert user.state is EntityState.PERSISTED
        assert User.find(1).name == "Ann"

    def test_save_writes_only_changes(self, setup_db):
        user = User.create({"name": "Ann", "email": "a@x.org"})
        setup_db.execute("UPDATE users SET email = 'changed@x.org' WHERE id = ?", [user.id])
        user.name = "Bob"
        assert user.save()
        assert not user.is_changed()
        row = _row(setup_db, "SELECT name, email FROM users WHERE id = ?", user.id)
        assert row == {"name": "Bob", "email": "changed@x.org"}

    def test_save_without_changes_issues_no_update(self, setup_db):
        user = User.create({"name": "Ann"})
        with mock.patch.object(SqliteExecutor, "update", autospec=True,
                               side_effect=SqliteExecutor.update) as update:
            assert user.save()
        update.assert_not_called()

    def test_extra_fields_are_never_persisted(self, setup_db):
        user = User.create({"name": "Ann"})
        user.extra_data = {"a": 1}
        assert user.save()
        assert user.extra_data == {"a": 1}
        assert User.find(user.id).extra_data is None

    def test_insert_failure_raises_persistence_error(self, setup_db):
        Country.create({"name": "France"})
        with pytest.raises(PersistenceError, match="UNIQUE constraint failed"):
            Country.create({"name": "France"})
        assert setup_db.conditions == ()

    def test_failed_insert_leaves_token_identifier_unset(self, setup_db):
        entity = DataHandling({"name": "a", "bogus": 1})
        with pytest.raises(PersistenceError, match="no column named bogus"):
            entity.save()
        assert entity.id is None
        assert entity.state is EntityState.TRANSIENT
        entity.set_data(DataHandling.fill_data({"name": "c"}))
        assert entity.save()
        assert entity.id is not None
        assert DataHandling.find(entity.id).name == "c"

    def test_update_failure_keeps_changes(self, setup_db):
        Country.create({"name": "France"})
        spain = Country.create({"name": "Spain"})
        spain.name = "France"
        with pytest.raises(PersistenceError, match="UNIQUE constraint failed"):
            spain.save()
        assert spain.is_changed("name")
        assert setup_db.conditions == ()

    def test_ignored_duplicate_insert_succeeds_without_identifier(self, setup_db):
        Country.create({"name": "France"})
        country = Country({"name": "France"})
        assert country.save(ignore=True)
        assert country.id is None
        assert setup_db.last_insert_suppressed

    def test_saving_deleted_entity_raises(self, setup_db):
        user = User.create({"name": "Ann"})
        assert user.delete()
        with pytest.raises(UsageError, match="Cannot save deleted User"):
            user.save()


class TestUpdate:

    def test_update_saves_changed_fields(self, setup_db):
        user = User.create({"name": "Ann"})
        assert user.update({"name": "Bob", "extra_data": 1})
        assert User.find(user.id).name == "Bob"
        assert user.extra_data == 1
        assert not user.is_changed()

    def test_update_without_changes_does_not_write(self, setup_db):
        user = User.create({"name": "Ann"})
        with mock.patch.object(SqliteExecutor, "update", autospec=True,
                               side_effect=SqliteExecutor.update) as update:
            assert user.update({"name": "Ann", "extra_data": 2})
        update.assert_not_called()

    def test_update_assigns_relations(self, setup_db):
        user = User.create({"name": "Ann"})
        france = Country.create({"name": "France"})
        assert user.update({"country": france})
        assert User.find(user.id).country_id == france.id


class TestDelete:

    def test_delete(self, setup_db):
        user = User.create({"name": "Ann"})
        assert user.delete()
        assert user.state is EntityState.DELETED
        assert not user.loaded
        assert User.find(user.id) is None
        assert not user.delete()

    def test_delete_transient_entity_returns_false(self, setup_db):
        assert not User({"name": "Ann"}).delete()


class TestFinders:

    def test_find(self, setup_db):
        ann = User.create({"name": "Ann"})
        bob = User.create({"name": "Bob"})
        assert User.find(ann.id) == ann
        assert User.find("Bob", "name") == bob
        assert User.find(None) is None
        assert User.find(999) is None

    def test_find_all(self, setup_db):
        ann, bob, carl = (User.create({"name": name}) for name in ("Ann", "Bob", "Carl"))
        assert sorted(user.id for user in User.find_all([ann.id, carl.id])) == [ann.id, carl.id]
        assert [user.name for user in User.find_all(["Bob"], "name")] == ["Bob"]
        assert User.find_all([]) == []

    def test_find_all_applies_sorting(self, setup_db):
        zulu = Role.create({"name": "zulu"})
        alpha = Role.create({"name": "alpha"})
        assert [role.name for role in Role.find_all([zulu.id, alpha.id])] == ["alpha", "zulu"]

    def test_construct_from_identifier(self, setup_db):
        ann = User.create({"name": "Ann"})
        user = User(ann.id)
        assert user.loaded
        assert user.name == "Ann"
        missing = User(999)
        assert not missing.loaded
        assert missing.id is None

    def test_assure_unique(self, setup_db):
        assert User.assure_unique("email", "x@example.com") is None
        user = User.create({"name": "X", "email": "x@example.com"})
        assert User.assure_unique("email", "x@example.com") == user.id
        assert User.assure_unique("email", "x@example.com", user.id) is None

    def test_listing(self, setup_db):
        b = Role.create({"name": "b"})
        a = Role.create({"name": "a"})
        assert Role.listing("name") == {a.id: "a", b.id: "b"}
        assert list(Role.listing("name").values()) == ["a", "b"]
        assert Role.listing("id", "name") == {"a": a.id, "b": b.id}
        assert Role.listing()[a.id] == {"id": a.id, "name": "a"}

    def test_listing_orders_by_field_without_sorting(self, setup_db):
        User.create({"name": "Zoe"})
        User.create({"name": "Adam"})
        assert list(User.listing("name").values()) == ["Adam", "Zoe"]

    def test_load_by_class_name(self, setup_db):
        role = Role.create({"name": "admin"})
        assert Entity.load("Role", role.id) == role
        assert Entity.load("tests.models.Role", role.id) == role
        with pytest.raises(UsageError, match="Unknown entity class `Nope`"):
            Entity.load("Nope", 1)

    def test_query_resets_leftover_conditions(self, setup_db):
        ann = User.create({"name": "Ann"})
        setup_db.where("name", "somebody else")
        assert User.find(ann.id) == ann
