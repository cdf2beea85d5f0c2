"""EntityType: the immutable configuration bound to one entity class."""

import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .relations import Relation


TOKEN_ID_FIELDS = ("uid", "guid")


class EntityType(BaseModel):
    """Configuration of one modeled table.

    Built by the entity metaclass from class keyword arguments; available as
    `MyEntity.entity_type`.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    table: str
    id_field: str = "id"
    select: str = "*"
    zero_fields: tuple[str, ...] = ()
    extra_fields: tuple[str, ...] = ()
    encrypted_fields: tuple[str, ...] = ()
    json_fields: tuple[str, ...] = ()
    relations: dict[str, Relation] = {}
    search_index: dict[str, Optional[tuple[str, ...]]] = {}
    search_field: str = "search"
    sorting: Optional[tuple[str, Literal["ASC", "DESC"]]] = None
    connection_name: str = "default"

    @field_validator("zero_fields", "extra_fields", "encrypted_fields", "json_fields",
                     mode="before")
    @classmethod
    def _split_names(cls, value):
        """Accept a comma-separated string as well as a sequence of names."""
        if isinstance(value, str):
            return tuple(name.strip() for name in value.split(",") if name.strip())
        return value

    @field_validator("search_index", mode="before")
    @classmethod
    def _normalize_search_index(cls, value):
        """Accept a plain list of field names as a search index."""
        if isinstance(value, (list, tuple, set)):
            return {name: None for name in value}
        return value

    @field_validator("sorting", mode="before")
    @classmethod
    def _normalize_sorting(cls, value):
        if isinstance(value, str):
            return (value, "ASC")
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return (value[0], value[1].upper())
        return value

    @staticmethod
    def default_table_name(class_name: str) -> str:
        """Split a class name on capitals: `UserProfile` -> `user_profile`."""
        return re.sub(r"(?<!^)([A-Z])", r"_\1", class_name).lower()

    @property
    def uses_token_id(self) -> bool:
        """True when identifiers are generated tokens instead of database keys."""
        return self.id_field in TOKEN_ID_FIELDS

    def is_extra(self, name: str) -> bool:
        return name in self.extra_fields

    def is_encrypted(self, name: str) -> bool:
        return name in self.encrypted_fields

    def is_json(self, name: str) -> bool:
        return name in self.json_fields

    def has_relation(self, name: str) -> bool:
        return name in self.relations

    def get_relation(self, name: str) -> Relation | None:
        return self.relations.get(name)
