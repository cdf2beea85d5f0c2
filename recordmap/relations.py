"""Relation descriptors: how one entity type associates with another.

Descriptors form a tagged union discriminated by ``kind``; they can be
declared as class attributes of an entity type or given as plain dicts in
the ``relations=`` class keyword::

    class User(Entity, table="users"):
        addresses = MultiOwned("Address", "user_id")
        roles = IndirectThrough("Role", "role_id", "user_roles", "user_id")

Targets may be classes or class names (resolved on first use).
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .utils.get_entity_by_name import resolve_entity


class _Relation(BaseModel):
    """Fields shared by every relation descriptor."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    target: Any  # type["Entity"] or its class name

    @property
    def target_type(self) -> type["Entity"]:
        """The target entity class, resolving forward references by name."""
        return resolve_entity(self.target)

    @property
    def is_collection(self) -> bool:
        return False


class DirectReference(_Relation):
    """This entity holds the foreign key; resolves to zero or one target."""

    kind: Literal["direct_reference"] = "direct_reference"
    local_key: str

    def __init__(self, target=None, local_key=None, /, **data):
        if target is not None:
            data["target"] = target
        if local_key is not None:
            data["local_key"] = local_key
        super().__init__(**data)


class SingleOwned(_Relation):
    """The target holds a foreign key to this entity; resolves to zero or one target."""

    kind: Literal["single_owned"] = "single_owned"
    foreign_key: str

    def __init__(self, target=None, foreign_key=None, /, **data):
        if target is not None:
            data["target"] = target
        if foreign_key is not None:
            data["foreign_key"] = foreign_key
        super().__init__(**data)


class MultiOwned(_Relation):
    """The target holds a foreign key to this entity; resolves to zero or many targets."""

    kind: Literal["multi_owned"] = "multi_owned"
    foreign_key: str

    def __init__(self, target=None, foreign_key=None, /, **data):
        if target is not None:
            data["target"] = target
        if foreign_key is not None:
            data["foreign_key"] = foreign_key
        super().__init__(**data)

    @property
    def is_collection(self) -> bool:
        return True


class IndirectThrough(_Relation):
    """Association through a join table holding both foreign keys.

    `target_key` is the join-table column referencing the target, `owner_key`
    the one referencing this entity.
    """

    kind: Literal["indirect_through", "many_to_many"] = "indirect_through"
    target_key: str
    join_table: str
    owner_key: str

    def __init__(self, target=None, target_key=None, join_table=None, owner_key=None, /, **data):
        for name, value in (("target", target), ("target_key", target_key),
                            ("join_table", join_table), ("owner_key", owner_key)):
            if value is not None:
                data[name] = value
        super().__init__(**data)

    @property
    def is_collection(self) -> bool:
        return True


class ManyToMany(IndirectThrough):
    """Historical name for IndirectThrough; behaves identically."""

    kind: Literal["many_to_many"] = "many_to_many"


Relation = Annotated[
    Union[DirectReference, SingleOwned, MultiOwned, IndirectThrough],
    Field(discriminator="kind"),
]
