"""Tests for to_dict, only, with_ and the JSON string form."""

from tests.models import Address, Country, Role, User


class TestToDict:

    def test_empty_entity(self):
        assert User().to_dict() == {}

    def test_extra_fields_are_optional(self):
        user = User({"id": 1, "name": "Ann", "extra_data": 2})
        assert user.to_dict() == {"id": 1, "name": "Ann"}
        assert user.to_dict(extra=True) == {"id": 1, "name": "Ann", "extra_data": 2}

    def test_structured_fields_are_decoded(self):
        user = User({"id": 1, "settings": '{"a": 1}'})
        assert user.to_dict() == {"id": 1, "settings": {"a": 1}}

    def test_only(self):
        user = User({"id": 1, "name": "Ann", "email": "a@x.org", "extra_data": 2})
        assert user.only("name, email") == {"name": "Ann", "email": "a@x.org"}
        assert user.only(["id", "extra_data", "missing"]) == {"id": 1}

    def test_str_is_json(self):
        assert str(User({"id": 1, "name": "Zoë"})) == '{"id": 1, "name": "Zoë"}'


class TestWithRelations:

    def test_with_includes_resolved_collection(self, setup_db):
        user = User.create({"name": "Ann"})
        address = Address.create({"user_id": user.id, "street": "Main", "city": "Paris"})
        data = User.find(user.id).with_("addresses").to_dict()
        assert data["addresses"] == [{"id": address.id, "user_id": user.id,
                                      "street": "Main", "city": "Paris"}]

    def test_with_limits_columns(self, setup_db):
        user = User.create({"name": "Ann"})
        address = Address.create({"user_id": user.id, "street": "Main", "city": "Paris"})
        data = User.find(user.id).with_("addresses:street").to_dict()
        assert data["addresses"] == [{"id": address.id, "street": "Main"}]

    def test_with_single_relation(self, setup_db):
        france = Country.create({"name": "France"})
        user = User.create({"name": "Ann", "country": france})
        other = User.create({"name": "Bob"})
        assert user.with_("country").to_dict()["country"] == {"id": france.id, "name": "France"}
        assert other.with_("country").to_dict()["country"] is None

    def test_with_fetches_rows_when_not_cached(self, setup_db):
        user = User.create({"name": "Ann"})
        admin = Role.create({"name": "admin"})
        user.with_("roles:name")
        user.roles = [admin]
        assert user.to_dict()["roles"] == [{"id": admin.id, "name": "admin"}]

    def test_with_ignores_unknown_relations(self, setup_db):
        user = User.create({"name": "Ann"})
        assert "nope" not in user.with_("nope").to_dict()

    def test_with_is_resolved_eagerly(self, setup_db):
        user = User.create({"name": "Ann"})
        user.with_("addresses", "roles")
        assert user._related_cache == {"addresses": [], "roles": []}
