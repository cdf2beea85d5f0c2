"""Relation resolution: fetch, count, cache and assign associated entities."""

import logging
from typing import Any, Iterable

from ..errors import PersistenceError, UsageError
from ..relations import DirectReference, IndirectThrough, MultiOwned, SingleOwned

logger = logging.getLogger("recordmap")


class Relatable:
    """Mixin resolving the relations declared on the entity type.

    Resolved values are memoized per instance in `_related_cache` until the
    relation is assigned through `set_related`. Unknown relation names
    resolve to None (or 0, or an empty list) instead of raising.
    """

    def get_related(self, name: str) -> Any:
        """Resolved relation value: an entity, None, or a list of entities."""
        if not self.entity_type.has_relation(name):
            return None
        if name not in self._related_cache:
            self._related_cache[name] = self.fetch_related(name)
        return self._related_cache[name]

    def fetch_related(self, name: str) -> Any:
        """Resolve a relation without using the cache."""
        relation = self.entity_type.get_relation(name)
        if relation is None:
            return None
        target = relation.target_type
        if isinstance(relation, DirectReference):
            return target.find(self._data.get(relation.local_key))
        if isinstance(relation, SingleOwned):
            if self.id is None:
                return None
            return target.find(self.id, relation.foreign_key)
        if isinstance(relation, MultiOwned):
            if self.id is None:
                return []
            return target.find_all([self.id], relation.foreign_key)
        if isinstance(relation, IndirectThrough):
            return target.find_all(self.get_related_ids(name))
        raise TypeError(f"Unsupported relation {relation!r}")

    def get_related_ids(self, name: str) -> list[Any]:
        """Identifiers of the related entities, without loading them."""
        relation = self.entity_type.get_relation(name)
        if relation is None:
            return []
        if isinstance(relation, DirectReference):
            value = self._data.get(relation.local_key)
            return [] if value is None else [value]
        if self.id is None:
            return []
        if isinstance(relation, (SingleOwned, MultiOwned)):
            target = relation.target_type
            db = target.query()
            rows = db.where(relation.foreign_key, self.id).fetch_many(
                target.get_table(), columns=db.quote(target.get_id_field()))
            return [row[target.get_id_field()] for row in rows]
        if isinstance(relation, IndirectThrough):
            db = self.query()
            rows = db.where(relation.owner_key, self.id).fetch_many(
                relation.join_table, columns=db.quote(relation.target_key))
            return [row[relation.target_key] for row in rows]
        raise TypeError(f"Unsupported relation {relation!r}")

    def count_related(self, name: str) -> int:
        """Number of related entities; counted by the database for collections."""
        relation = self.entity_type.get_relation(name)
        if relation is None:
            return 0
        if isinstance(relation, DirectReference):
            return 0 if self._data.get(relation.local_key) is None else 1
        if self.id is None:
            return 0
        if isinstance(relation, (SingleOwned, MultiOwned)):
            target = relation.target_type
            db = target.query()
            count = db.where(relation.foreign_key, self.id).scalar(
                target.get_table(), f"COUNT({db.quote(target.get_id_field())})")
            return int(count or 0)
        if isinstance(relation, IndirectThrough):
            db = self.query()
            count = db.where(relation.owner_key, self.id).scalar(
                relation.join_table, f"COUNT({db.quote(relation.target_key)})")
            return int(count or 0)
        raise TypeError(f"Unsupported relation {relation!r}")

    def related_rows(self, name: str, columns: Iterable[str] = ()) -> list[dict[str, Any]]:
        """Raw rows of the related entities limited to `columns` plus their identifier."""
        relation = self.entity_type.get_relation(name)
        if relation is None:
            return []
        target = relation.target_type
        id_field = target.get_id_field()
        selected = [id_field] + [column for column in columns if column != id_field]
        db = target.query()
        select = target.pipeline.select(db, ", ".join(selected))
        if isinstance(relation, DirectReference):
            value = self._data.get(relation.local_key)
            if value is None:
                return []
            db.where(id_field, value)
        elif isinstance(relation, (SingleOwned, MultiOwned)):
            if self.id is None:
                return []
            db.where(relation.foreign_key, self.id)
        elif isinstance(relation, IndirectThrough):
            ids = self.get_related_ids(name)
            if not ids:
                return []
            db = target.query()
            db.where(id_field, ids, "IN")
        else:
            raise TypeError(f"Unsupported relation {relation!r}")
        return [target.decode_row(row) for row in db.fetch_many(target.get_table(), columns=select)]

    def find_related(self, name: str, id: Any) -> "Entity | None":
        """Find one member of a multi-owned relation by its identifier."""
        relation = self.entity_type.get_relation(name)
        if not isinstance(relation, MultiOwned) or self.id is None:
            return None
        target = relation.target_type
        db = target.query()
        row = db.where(relation.foreign_key, self.id).where(target.get_id_field(), id).fetch_one(
            target.get_table(), target.get_select())
        if row is None:
            return None
        return target(row)

    def set_related(self, name: str, value: Any) -> bool:
        """Assign a relation through the write path; return True on success."""
        relation = self.entity_type.get_relation(name)
        if relation is None:
            return False
        if isinstance(relation, DirectReference):
            result = self._assign_direct_reference(relation, value)
        elif isinstance(relation, SingleOwned):
            result = self._assign_single_owned(relation, name, value)
        elif isinstance(relation, MultiOwned):
            raise UsageError(
                f"Relation `{name}` of {type(self).__name__} cannot be assigned; "
                f"set `{relation.foreign_key}` on the {relation.target_type.__name__} entities instead")
        elif isinstance(relation, IndirectThrough):
            result = self._assign_indirect_through(relation, value)
        else:
            raise TypeError(f"Unsupported relation {relation!r}")
        if result:
            self._related_cache.pop(name, None)
        return result

    # assignment per relation kind

    @staticmethod
    def _identifier_of(value: Any) -> Any:
        from .base import Entity
        if isinstance(value, Entity):
            return value.id
        return value

    def _assign_direct_reference(self, relation: DirectReference, value: Any) -> bool:
        target = relation.target_type
        if value is not None and isinstance(value, Relatable) and not isinstance(value, target):
            raise UsageError(f"Expected {target.__name__}, got {type(value).__name__}")
        return self.update({relation.local_key: self._identifier_of(value)}, as_fields=True)

    def _assign_single_owned(self, relation: SingleOwned, name: str, value: Any) -> bool:
        target = relation.target_type
        if value is None:
            current = self.get_related(name)
            if current is None:
                return True
            return current.update({relation.foreign_key: None}, as_fields=True)
        if not isinstance(value, target):
            value = target.find(value)
            if value is None:
                return False
        return value.update({relation.foreign_key: self.id}, as_fields=True)

    def _assign_indirect_through(self, relation: IndirectThrough, value: Any) -> bool:
        if value is None or (isinstance(value, (list, tuple, set)) and not value):
            self.query().where(relation.owner_key, self.id).delete(relation.join_table)
            return True
        if isinstance(value, (list, tuple, set)):
            ids = [self._identifier_of(item) for item in value]
            self.query().where(relation.owner_key, self.id).where(
                relation.target_key, ids, "NOT IN").delete(relation.join_table)
        else:
            ids = [self._identifier_of(value)]
        for target_id in ids:
            self._insert_join_row(relation, target_id)
        return True

    def _insert_join_row(self, relation: IndirectThrough, target_id: Any) -> None:
        db = self.query()
        result = db.ignore().insert(relation.join_table, {relation.target_key: target_id,
                                                           relation.owner_key: self.id})
        if result is None and not db.last_insert_suppressed:
            raise PersistenceError(db.last_error or f"Could not insert into {relation.join_table}")
