"""Plain-mapping views of entities."""

import json
from typing import Any, Iterable

from ..utils.serialize import serialize


def _split_names(fields: str | Iterable[str]) -> list[str]:
    if isinstance(fields, str):
        return [name.strip() for name in fields.split(",") if name.strip()]
    return list(fields)


class Serializable:
    """Mixin producing dicts (and JSON) from the persisted and extra fields."""

    def to_dict(self, extra: bool = False) -> dict[str, Any]:
        """Persisted fields, optionally merged with extra fields, plus the relations requested with `with_`."""
        if not self._data:
            return {}
        result = {name: self.pipeline.decode_value(name, value) for name, value in self._data.items()}
        if extra:
            result.update(self._extra)
        for name, columns in self._with.items():
            result[name] = self._serialize_relation(name, columns)
        return result

    def only(self, fields: str | Iterable[str]) -> dict[str, Any]:
        """Persisted fields restricted to `fields` (a list or a comma-separated string)."""
        names = _split_names(fields)
        return {name: self.pipeline.decode_value(name, value)
                for name, value in self._data.items()
                if name in names}

    def with_(self, *relations: str) -> "Serializable":
        """Include relations in the next `to_dict`.

        Each argument is a relation name, optionally followed by the columns to
        keep: ``"addresses:street,city"``. Relations are resolved right away.
        """
        for relation in relations:
            name, _, columns = relation.partition(":")
            name = name.strip()
            if not self.entity_type.has_relation(name):
                continue
            self._with[name] = tuple(_split_names(columns))
            self.get_related(name)
        return self

    def _serialize_relation(self, name: str, columns: tuple[str, ...]) -> Any:
        if name in self._related_cache:
            value = self._related_cache[name]
            if isinstance(value, list):
                return [self._serialize_member(item, columns) for item in value]
            if value is None:
                return None
            return self._serialize_member(value, columns)
        rows = self.related_rows(name, columns)
        if self.entity_type.get_relation(name).is_collection:
            return rows
        return rows[0] if rows else None

    @staticmethod
    def _serialize_member(entity: "Serializable", columns: tuple[str, ...]) -> dict[str, Any]:
        if not columns:
            return entity.to_dict()
        return entity.only((entity.get_id_field(),) + columns)

    def __str__(self) -> str:
        return json.dumps(serialize(self.to_dict()), ensure_ascii=False)
