"""Resolve entity classes by name (forward references in relation descriptors)."""

from typing import Iterable

from .find_subclass import _get_subclasses, find_subclass


def get_all_entities() -> Iterable[type["Entity"]]:
    """Yield all Entity subclasses in the application."""
    from ..entity import Entity
    yield from _get_subclasses(Entity)


def get_entity_by_name(name: str) -> type["Entity"] | None:
    """Return the Entity subclass whose __name__ or dotted path equals name."""
    from ..entity import Entity
    if "." in name:
        module, _, class_name = name.rpartition(".")
        for cls in get_all_entities():
            if cls.__module__ == module and cls.__name__ == class_name:
                return cls
        return None
    return find_subclass(Entity, name)


def resolve_entity(target: "type[Entity] | str") -> type["Entity"]:
    """Resolve a relation target given as a class or a class name."""
    if not isinstance(target, str):
        return target
    cls = get_entity_by_name(target)
    if cls is None:
        raise ValueError(f"Could not resolve entity `{target}`")
    return cls
