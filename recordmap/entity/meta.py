"""Metaclass for Entity: turns class keyword arguments into an EntityType."""

from ..connection import ConnectionRegistry, default_registry
from ..entity_type import EntityType
from ..relations import MultiOwned, _Relation
from ..transforms import TransformPipeline


_CONFIGURATION_KEYS = (
    "table",
    "id_field",
    "select",
    "zero_fields",
    "extra_fields",
    "encrypted_fields",
    "json_fields",
    "search_index",
    "search_field",
    "sorting",
    "connection_name",
)


class EntityMeta(type):
    """Metaclass for Entity subclasses.

    Configuration keywords given in the class statement are merged over
    those of the closest configured base; relation descriptors declared as
    class attributes are moved out of the namespace into the entity type.
    The result is stored as `cls.entity_type`, together with the transform
    pipeline, the connection registry and the `from_<relation>` finders.
    """

    def __new__(mcs, name, bases, namespace,
                relations: dict = None,
                registry: ConnectionRegistry = None,
                **kwargs):
        configuration = {key: kwargs.pop(key) for key in _CONFIGURATION_KEYS if key in kwargs}
        # relation descriptors declared as class attributes
        declared = {key: value for key, value in namespace.items() if isinstance(value, _Relation)}
        namespace = {key: value for key, value in namespace.items() if key not in declared}
        result = super().__new__(mcs, name, bases, namespace, **kwargs)
        # the root class carries no configuration
        parent = next((base for base in bases if isinstance(base, EntityMeta)), None)
        if parent is None:
            return result
        inherited = dict(getattr(parent, "_configuration", {}))
        inherited_relations = dict(inherited.pop("relations", {}))
        inherited_relations.update(relations or {})
        inherited_relations.update(declared)
        configuration = inherited | configuration
        result._configuration = configuration | {"relations": inherited_relations}
        # resolved entity type
        entity_type = EntityType(
            name=name,
            table=configuration.get("table") or EntityType.default_table_name(name),
            relations=inherited_relations,
            **{key: value for key, value in configuration.items() if key != "table"},
        )
        result.entity_type = entity_type
        result.pipeline = TransformPipeline(entity_type)
        result._registry = registry or getattr(parent, "_registry", None) or default_registry
        result._finders = {
            f"from_{relation_name}": relation_name
            for relation_name, relation in entity_type.relations.items()
            if isinstance(relation, MultiOwned)
        }
        return result
