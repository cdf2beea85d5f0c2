"""recordmap: a record-mapping engine with change tracking, relations and field transforms."""

from .entity import Entity, EntityState
from .entity_type import EntityType
from .relations import DirectReference, SingleOwned, MultiOwned, IndirectThrough, ManyToMany
from .connection import ConnectionRegistry, connect, default_registry
from .executor import Encrypted, QueryExecutor, SqliteExecutor
from .errors import RecordMapError, ValidationError, PersistenceError, UsageError
