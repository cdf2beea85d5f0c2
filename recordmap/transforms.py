"""Field transforms applied at the persistence boundary.

Write side: structured fields are encoded to JSON strings, then encrypted
fields are wrapped in an `Encrypted` marker for the executor.
Read side: structured fields are decoded from their JSON strings.
Select side: encrypted columns are projected through the executor's
decryption expression.
"""

import json
import re
from typing import Any

from .entity_type import EntityType
from .executor import Encrypted, QueryExecutor
from .utils.serialize import serialize


_DECRYPT_PATTERN = re.compile(r"decrypt\s*\(", re.IGNORECASE)
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def encode_json(value: Any) -> str:
    """Encode a structured value to its stored JSON string."""
    return json.dumps(serialize(value), ensure_ascii=False)


def decode_json(value: str) -> Any:
    """Decode a stored JSON string; values that are not JSON are returned as-is."""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class TransformPipeline:
    """Per-entity-type encoding, encryption and decryption rules."""

    def __init__(self, entity_type: EntityType):
        self.entity_type = entity_type

    # write side

    def encode_value(self, name: str, value: Any) -> Any:
        """Return the value as it must be handed to the executor for `name`."""
        if self.entity_type.is_json(name) and value is not None and not isinstance(value, (str, Encrypted)):
            value = encode_json(value)
        if self.entity_type.is_encrypted(name) and not isinstance(value, Encrypted):
            value = Encrypted(value=value)
        return value

    def encode(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of `data` ready to be written."""
        return {name: self.encode_value(name, value) for name, value in data.items()}

    # read side

    def decode_value(self, name: str, value: Any) -> Any:
        """Decode a stored value for `name` (structured fields only)."""
        if self.entity_type.is_json(name) and isinstance(value, str):
            return decode_json(value)
        if self.entity_type.is_json(name) and isinstance(value, bytes):
            return decode_json(value.decode("utf-8"))
        return value

    def needs_decryption(self, name: str, value: Any) -> bool:
        """True if `name` is encrypted and not yet resident in decrypted form."""
        return self.entity_type.is_encrypted(name) and (value is None or value == "" or isinstance(value, bytes))

    # select side

    def select(self, executor: QueryExecutor, columns: str | None = None) -> str:
        """Column selection with decryption projections for encrypted fields.

        Encrypted columns named in the selection are replaced by their
        projection, expressions already decrypting are kept, plain column
        names are quoted, and other expressions pass through. A `*` pulls in
        a projection for every encrypted field not decrypted explicitly.
        """
        columns = self.entity_type.select if columns is None else columns
        encrypted = self.entity_type.encrypted_fields
        parts = []
        projected = set()
        with_star = False
        for part in (p.strip() for p in columns.split(",")):
            if not part:
                continue
            if part == "*":
                with_star = True
                parts.append(part)
            elif _DECRYPT_PATTERN.search(part):
                parts.append(part)
                projected.update(name for name in encrypted if re.search(rf"\b{name}\b", part))
            elif part in encrypted:
                parts.append(self.projection(executor, part))
                projected.add(part)
            elif _IDENTIFIER_PATTERN.match(part):
                parts.append(executor.quote(part))
            else:
                parts.append(part)
        if with_star:
            parts += [self.projection(executor, name) for name in encrypted if name not in projected]
        return ", ".join(parts)

    @staticmethod
    def projection(executor: QueryExecutor, name: str) -> str:
        """Decrypt projection of column `name`, aliased to `name`."""
        return f"{executor.decrypt_expression(name)} AS {executor.quote(name)}"
