"""Entity base class: construction, attribute resolution, finders and persistence."""

import logging
import uuid
from collections.abc import Mapping
from typing import Any, Iterable, Optional

from ..errors import PersistenceError, RecordMapError, UsageError, ValidationError
from ..executor import QueryExecutor
from ..relations import DirectReference, MultiOwned
from ..search import build_search_terms
from ..utils.get_entity_by_name import get_entity_by_name
from .hooks import LifecycleHooks
from .meta import EntityMeta
from .relatable import Relatable
from .serializer import Serializable
from .state import ChangeTracker, EntityState, classify, fill_zero_fields


logger = logging.getLogger("recordmap")


class Entity(LifecycleHooks, Relatable, Serializable, metaclass=EntityMeta):
    """Base class for record-mapped entities.

    Subclasses are configured with class keywords::

        class User(Entity, table="users", extra_fields=("extra_data",)):
            addresses = MultiOwned("Address", "user_id")

    An instance is built empty, from a row mapping (considered loaded), or
    from an identifier (fetched from the store). Reading ``entity.name``
    goes through class attributes, persisted fields, relations,
    ``<relation>_count``, ``from_<relation>`` finders, then extra fields;
    unknown names read as None.
    """

    def __init__(self, data: Mapping[str, Any] | Any = None):
        self._data: dict[str, Any] = {}
        self._extra: dict[str, Any] = {}
        self._fields: list[str] = []
        self._changes = ChangeTracker()
        self._related_cache: dict[str, Any] = {}
        self._decrypted: set[str] = set()
        self._with: dict[str, tuple[str, ...]] = {}
        self._loaded = False
        self._deleted = False
        if not data:
            return
        if isinstance(data, Mapping):
            self.set_data(self.fill_data(data))
        else:
            row = self.query().where(self.get_id_field(), data).fetch_one(
                self.get_table(), self.get_select())
            if row is None:
                return
            self.set_data(row)
        self._loaded = True
        self.trigger("loaded")

    # connection

    @classmethod
    def db(cls) -> QueryExecutor:
        """The executor handle this entity type is bound to."""
        return cls._registry.resolve(cls.entity_type.connection_name)

    @classmethod
    def query(cls) -> QueryExecutor:
        """The executor handle, with any leftover query state dropped."""
        db = cls.db()
        db.reset()
        return db

    @classmethod
    def set_connection(cls, source, name: Optional[str] = None) -> None:
        cls._registry.register(source, name=name or cls.entity_type.connection_name)

    @classmethod
    def get_connection(cls, name: Optional[str] = None) -> Optional[QueryExecutor]:
        return cls._registry.get(name or cls.entity_type.connection_name)

    @classmethod
    def reset_connections(cls) -> None:
        cls._registry.reset()

    # configuration

    @classmethod
    def get_table(cls) -> str:
        return cls.entity_type.table

    @classmethod
    def get_id_field(cls) -> str:
        return cls.entity_type.id_field

    @classmethod
    def get_select(cls) -> str:
        """Default selection, with a decrypt projection for each encrypted field."""
        return cls.pipeline.select(cls.db())

    @classmethod
    def has_relation(cls, name: str) -> bool:
        return cls.entity_type.has_relation(name)

    @classmethod
    def fill_data(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        """Copy of `data` where absent or null zero-fields are set to 0."""
        return fill_zero_fields(cls.entity_type, dict(data))

    @classmethod
    def decode_row(cls, row: Mapping[str, Any]) -> dict[str, Any]:
        """Decode the structured fields of a raw row."""
        return {name: cls.pipeline.decode_value(name, value) for name, value in row.items()}

    # finders

    @classmethod
    def find(cls, id: Any, field: Optional[str] = None) -> Optional["Entity"]:
        """Return the entity whose `field` (default: identifier) equals `id`, or None."""
        if not id:
            return None
        row = cls.query().where(field or cls.get_id_field(), id).fetch_one(
            cls.get_table(), cls.get_select())
        if row is None:
            return None
        return cls(row)

    @classmethod
    def find_all(cls, ids: Iterable[Any], field: Optional[str] = None) -> list["Entity"]:
        """Return the entities whose `field` (default: identifier) is in `ids`, in one query."""
        ids = list(ids)
        if not ids:
            return []
        db = cls.query().where(field or cls.get_id_field(), ids, "IN")
        if cls.entity_type.sorting:
            db.order_by(*cls.entity_type.sorting)
        return [cls(row) for row in db.fetch_many(cls.get_table(), columns=cls.get_select())]

    @classmethod
    def create(cls, data: Mapping[str, Any]) -> "Entity":
        """Insert a new entity and return it reloaded from the store.

        Keys naming relations are assigned once the entity has an identifier;
        a direct reference is written along with the insert. Multi-owned
        relations are refused before anything is written.
        """
        if not data:
            raise ValidationError(f"Cannot create {cls.__name__} from empty data")
        fields = {}
        related = {}
        for name, value in data.items():
            relation = cls.entity_type.get_relation(name)
            if isinstance(relation, DirectReference):
                fields[relation.local_key] = cls._identifier_of(value)
            elif isinstance(relation, MultiOwned):
                raise UsageError(
                    f"Relation `{name}` of {cls.__name__} cannot be assigned; "
                    f"create the {relation.target_type.__name__} entities with `{relation.foreign_key}` instead")
            elif relation is not None:
                related[name] = value
            else:
                fields[name] = value
        entity = cls()
        entity.set_data(cls.fill_data(fields))
        if not entity.save():
            raise PersistenceError(f"Could not create {cls.__name__}")
        if entity.id is None:
            return entity
        created = cls.find(entity.id) or entity
        for name, value in related.items():
            created.set_related(name, value)
        return created

    @classmethod
    def assure_unique(cls, field: str, value: Any, exclude_id: Any = None) -> Any:
        """Identifier of a row where `field` equals `value` (other than `exclude_id`), or None."""
        db = cls.query()
        if exclude_id:
            db.where(cls.get_id_field(), exclude_id, "!=")
        return db.where(field, value).scalar(cls.get_table(), db.quote(cls.get_id_field()))

    @classmethod
    def listing(cls, field: Optional[str] = None, key: Optional[str] = None) -> dict[Any, Any]:
        """Rows keyed by `key` (default: identifier); only the `field` value if given."""
        db = cls.query()
        if cls.entity_type.sorting:
            db.order_by(*cls.entity_type.sorting)
        elif field:
            db.order_by(field, "ASC")
        key = key or cls.get_id_field()
        if field:
            columns = cls.pipeline.select(db, f"{key}, {field}")
        else:
            columns = cls.get_select()
        rows = db.fetch_many(cls.get_table(), columns=columns)
        return {row[key]: cls.pipeline.decode_value(field, row[field]) if field else cls.decode_row(row)
                for row in rows}

    @classmethod
    def of(cls, owner: "Entity") -> list["Entity"]:
        """Entities whose direct reference to the owner's type points at `owner`."""
        for relation in cls.entity_type.relations.values():
            if isinstance(relation, DirectReference) and isinstance(owner, relation.target_type):
                return cls.find_all([owner.id], relation.local_key)
        return []

    @staticmethod
    def load(class_name: str, id: Any) -> Optional["Entity"]:
        """Find the entity class named `class_name` and load `id` from it."""
        cls = get_entity_by_name(class_name)
        if cls is None:
            raise UsageError(f"Unknown entity class `{class_name}`")
        return cls.find(id)

    # data

    def set_data(self, data: Mapping[str, Any]) -> None:
        """Replace all data: re-classify fields and forget pending changes and cached relations."""
        classification = classify(self.entity_type, dict(data))
        self._data = classification.data
        self._extra = classification.extra
        self._fields = classification.fields
        self._changes.reset()
        self._related_cache = {}
        self._decrypted = set()

    def get_data(self) -> dict[str, Any]:
        return dict(self._data)

    @property
    def id(self) -> Any:
        return self._data.get(self.get_id_field())

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def state(self) -> EntityState:
        if self._deleted:
            return EntityState.DELETED
        if self.id is None:
            return EntityState.TRANSIENT
        return EntityState.PERSISTED

    # change tracking

    def is_changed(self, name: Optional[str] = None) -> bool:
        return self._changes.is_changed(name)

    def get_changes(self) -> dict[str, Any]:
        return self._changes.diff()

    diff = get_changes

    def reset_changes(self) -> None:
        self._changes.reset()

    # attribute resolution

    def has_field(self, name: str) -> bool:
        return name in self._fields

    @classmethod
    def has_accessor(cls, name: str) -> bool:
        """True if `name` is an attribute, method or property defined on the class."""
        return hasattr(cls, name)

    def _is_counter(self, name: str) -> bool:
        if not name.endswith("_count"):
            return False
        relation = self.entity_type.get_relation(name[:-len("_count")])
        return relation is not None and relation.is_collection

    def _read_field(self, name: str) -> Any:
        value = self._data.get(name)
        if (name not in self._decrypted and self.pipeline.needs_decryption(name, value)
                and self.id is not None):
            logger.debug("Decrypting %s.%s for id=%s", type(self).__name__, name, self.id)
            db = self.query()
            row = db.where(self.get_id_field(), self.id).fetch_one(
                self.get_table(), self.pipeline.projection(db, name))
            value = None if row is None else row[name]
            self._data[name] = value
            self._decrypted.add(name)
        decoded = self.pipeline.decode_value(name, value)
        if decoded is not value:
            self._data[name] = decoded
        return decoded

    def _write_field(self, name: str, value: Any) -> None:
        current = self.pipeline.decode_value(name, self._data.get(name))
        if self._changes.record(name, current, value):
            self._data[name] = value
            if self.entity_type.is_encrypted(name):
                self._decrypted.add(name)
            for relation_name, relation in self.entity_type.relations.items():
                if isinstance(relation, DirectReference) and relation.local_key == name:
                    self._related_cache.pop(relation_name, None)

    def _finder(self, name: str):
        relation_name = self._finders[name]

        def finder(*args):
            if len(args) != 1:
                raise UsageError(f"Method {name} accepts 1 parameter")
            return self.find_related(relation_name, args[0])

        finder.__name__ = name
        return finder

    def __getattr__(self, name: str) -> Any:
        # only reached when regular attribute lookup failed
        if name.startswith("_"):
            raise AttributeError(name)
        if self.has_field(name):
            return self._read_field(name)
        if self.id is not None:
            if self.entity_type.has_relation(name):
                return self.get_related(name)
            if self._is_counter(name):
                return self.count_related(name[:-len("_count")])
        if name in self._finders:
            return self._finder(name)
        if name.startswith("from_"):
            raise UsageError(f"Method {name} not defined in {type(self).__name__}")
        return self._extra.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or self.has_accessor(name):
            object.__setattr__(self, name, value)
        elif self.has_field(name):
            self._write_field(name, value)
        elif self.id is not None and self.entity_type.has_relation(name):
            self.set_related(name, value)
        else:
            self._extra[name] = value

    def __contains__(self, name: str) -> bool:
        if self.has_field(name) or name in self._extra:
            return True
        if self.id is None:
            return False
        return self.entity_type.has_relation(name) or self._is_counter(name)

    # persistence

    def save(self, ignore: bool = False) -> bool:
        """Insert or update; return False if a hook vetoed the write.

        With `ignore`, an insert colliding with an existing row is suppressed
        and reported as a success without identifier.
        """
        if self._deleted:
            raise UsageError(f"Cannot save deleted {type(self).__name__} with id={self.id}")
        if self.id is None:
            return self._insert(ignore)
        return self._update()

    def _insert(self, ignore: bool) -> bool:
        if not self.trigger("before_create"):
            return False
        id_field = self.get_id_field()
        data = dict(self._data)
        if self.entity_type.uses_token_id and not data.get(id_field):
            # adopted only once the row exists
            data[id_field] = uuid.uuid4().hex
        db = self.query()
        if ignore:
            db.ignore()
        try:
            new_id = db.insert(self.get_table(), self.pipeline.encode(data))
        except RecordMapError:
            raise
        except Exception as error:
            logger.error("Insert into %s failed: %s", self.get_table(), error)
            raise PersistenceError(str(error)) from error
        finally:
            db.reset()
        if new_id is None:
            if db.last_insert_suppressed:
                return True
            raise PersistenceError(db.last_error or f"Could not insert {type(self).__name__}")
        if data.get(id_field) is None:
            data[id_field] = new_id
        if self._data.get(id_field) != data[id_field]:
            self._data[id_field] = data[id_field]
            if id_field not in self._fields:
                self._fields.append(id_field)
        self._loaded = True
        self.trigger("after_create")
        self.update_search_index()
        self._changes.reset()
        return True

    def _update(self) -> bool:
        if not self.trigger("before_update"):
            return False
        changes = self._changes.diff()
        if changes:
            db = self.query()
            try:
                updated = db.where(self.get_id_field(), self.id).update(
                    self.get_table(), self.pipeline.encode(changes))
            except RecordMapError:
                raise
            except Exception as error:
                logger.error("Update of %s failed: %s", self.get_table(), error)
                raise PersistenceError(str(error)) from error
            finally:
                db.reset()
            if not updated:
                raise PersistenceError(db.last_error or f"Could not update {type(self).__name__}")
        self.trigger("after_update")
        if changes:
            self.update_search_index()
        self._changes.reset()
        return True

    def update(self, data: Mapping[str, Any], as_fields: bool = False) -> bool:
        """Assign several values, then save if any persisted field changed.

        Unknown keys go to relations or extra fields, unless `as_fields`
        makes them persisted fields.
        """
        for name, value in data.items():
            if as_fields and not self.has_field(name):
                self._fields.append(name)
            if self.has_field(name):
                self._write_field(name, value)
            elif self.id is not None and self.entity_type.has_relation(name):
                self.set_related(name, value)
            else:
                self._extra[name] = value
        if not self._changes:
            return True
        return self.save()

    def delete(self) -> bool:
        """Delete the backing row; return False if vetoed or nothing was deleted."""
        if self.id is None or self._deleted:
            return False
        if not self.trigger("before_delete"):
            return False
        db = self.query()
        try:
            deleted = db.where(self.get_id_field(), self.id).delete(self.get_table())
        finally:
            db.reset()
        if not deleted:
            if db.last_error:
                raise PersistenceError(db.last_error)
            return False
        self._loaded = False
        self._deleted = True
        self.trigger("after_delete")
        return True

    def update_search_index(self) -> bool:
        """Write the search terms of the indexed fields to the search field."""
        search_index = self.entity_type.search_index
        if not search_index or self.id is None:
            return False
        terms = build_search_terms(search_index, {name: self._data.get(name) for name in self._fields})
        db = self.query()
        try:
            return db.where(self.get_id_field(), self.id).update(
                self.get_table(), {self.entity_type.search_field: terms})
        finally:
            db.reset()

    # identity

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        if self.id is None or other.id is None:
            return self is other
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        if self.id is None:
            return id(self)
        return hash((type(self), self.id))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"
