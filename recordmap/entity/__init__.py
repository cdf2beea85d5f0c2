from .base import Entity
from .meta import EntityMeta
from .state import ChangeTracker, EntityState

__all__ = ["ChangeTracker", "Entity", "EntityMeta", "EntityState"]
