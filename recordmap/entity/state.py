"""Field classification and change tracking for entity instances."""

import enum
from typing import Any, NamedTuple

from ..entity_type import EntityType


class EntityState(enum.Enum):
    """Persistence state of an entity instance."""

    TRANSIENT = "transient"
    PERSISTED = "persisted"
    DELETED = "deleted"


class Classification(NamedTuple):
    """Result of splitting a raw mapping for one entity type."""

    data: dict[str, Any]
    extra: dict[str, Any]
    fields: list[str]
    id: Any


def fill_zero_fields(entity_type: EntityType, data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of data where absent or null zero-fields are set to 0."""
    data = dict(data)
    for name in entity_type.zero_fields:
        if data.get(name) is None:
            data[name] = 0
    return data


def classify(entity_type: EntityType, raw: dict[str, Any]) -> Classification:
    """Split raw into persisted fields and extra fields."""
    data = {}
    extra = {}
    fields = []
    for name, value in raw.items():
        if entity_type.is_extra(name):
            extra[name] = value
        else:
            data[name] = value
            fields.append(name)
    return Classification(data=data, extra=extra, fields=fields,
                          id=data.get(entity_type.id_field))


class ChangeTracker:
    """Persisted-field mutations not yet written to the store.

    Values are compared with `==`; an assignment equal to the current value
    leaves the tracker untouched.
    """

    def __init__(self):
        self._changes: dict[str, Any] = {}

    def record(self, name: str, current: Any, value: Any) -> bool:
        """Record `value` for `name` if it differs from `current`; return True if recorded."""
        if current == value:
            return False
        self._changes[name] = value
        return True

    def mark(self, name: str, value: Any) -> None:
        """Record `value` for `name` unconditionally."""
        self._changes[name] = value

    def diff(self) -> dict[str, Any]:
        return dict(self._changes)

    def reset(self) -> None:
        self._changes = {}

    def is_changed(self, name: str | None = None) -> bool:
        if name is None:
            return bool(self._changes)
        return name in self._changes

    def __bool__(self) -> bool:
        return bool(self._changes)

    def __contains__(self, name: str) -> bool:
        return name in self._changes

    def __repr__(self) -> str:
        return f"ChangeTracker({self._changes!r})"
