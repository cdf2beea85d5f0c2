"""Base QueryExecutor: the narrow query contract consumed by entities."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, PrivateAttr


Operator = Literal["=", "!=", "<>", "<", "<=", ">", ">=",
                   "IN", "NOT IN", "LIKE", "NOT LIKE", "IS", "IS NOT"]


class Encrypted(BaseModel):
    """Marks a value that must be encrypted by the database on write.

    Executors translate the marker into their encryption primitive, keyed by
    the session secret they hold.
    """

    model_config = ConfigDict(frozen=True)

    value: Any


class Condition(BaseModel):
    """One accumulated filter condition."""

    model_config = ConfigDict(frozen=True)

    field: str
    value: Any
    operator: Operator = "="
    conjunction: Literal["AND", "OR"] = "AND"


class QueryExecutor(BaseModel, ABC):
    """Stateful query handle: conditions accumulate until the next statement runs.

    Every statement consumes the accumulated state (conditions, ordering,
    ignore flag). Callers starting a new logical query call `reset()` first
    so nothing left over from an interrupted call leaks into it.
    """

    model_config = {"arbitrary_types_allowed": True}

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ()
    """URL schemes this executor handles (e.g. ('sqlite',))."""

    _conditions: list[Condition] = PrivateAttr(default_factory=list)
    _order: list[tuple[str, str]] = PrivateAttr(default_factory=list)
    _ignore: bool = PrivateAttr(default=False)
    _last_error: str = PrivateAttr(default="")
    _last_query: str = PrivateAttr(default="")
    _last_insert_suppressed: bool = PrivateAttr(default=False)

    # query state

    def where(self, field: str, value: Any, operator: Operator = "=",
              conjunction: Literal["AND", "OR"] = "AND") -> "QueryExecutor":
        """Add a filter condition; chainable."""
        self._conditions.append(Condition(field=field, value=value,
                                          operator=operator.upper(),
                                          conjunction=conjunction))
        return self

    def or_where(self, field: str, value: Any, operator: Operator = "=") -> "QueryExecutor":
        return self.where(field, value, operator, conjunction="OR")

    def order_by(self, field: str, direction: str = "ASC") -> "QueryExecutor":
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError(f"Invalid sort direction: {direction}")
        self._order.append((field, direction))
        return self

    def ignore(self) -> "QueryExecutor":
        """Turn the next insert into an insert-or-ignore."""
        self._ignore = True
        return self

    def reset(self) -> None:
        """Drop accumulated conditions, ordering and the ignore flag."""
        self._conditions = []
        self._order = []
        self._ignore = False

    # diagnostics

    @property
    def conditions(self) -> tuple[Condition, ...]:
        return tuple(self._conditions)

    @property
    def last_error(self) -> str:
        return self._last_error

    @property
    def last_query(self) -> str:
        return self._last_query

    @property
    def last_insert_suppressed(self) -> bool:
        """True when the last insert was an ignored duplicate."""
        return self._last_insert_suppressed

    # statements

    @classmethod
    @abstractmethod
    def from_url(cls, url: str) -> "QueryExecutor":
        """Build an executor from a database URL."""

    @abstractmethod
    def quote(self, identifier: str) -> str:
        """Quote a column or table identifier."""

    @abstractmethod
    def decrypt_expression(self, column: str) -> str:
        """SQL expression decrypting the given (unquoted) column."""

    @abstractmethod
    def fetch_one(self, table: str, columns: str = "*") -> Optional[dict[str, Any]]:
        """Return the first matching row, or None."""

    @abstractmethod
    def fetch_many(self, table: str, order_by: Optional[str] = None,
                   columns: str = "*") -> list[dict[str, Any]]:
        """Return all matching rows."""

    @abstractmethod
    def insert(self, table: str, data: dict[str, Any]) -> Any:
        """Insert a row; return the generated key, or None on failure or suppression."""

    @abstractmethod
    def update(self, table: str, data: dict[str, Any]) -> bool:
        """Update matching rows; return False on failure."""

    @abstractmethod
    def delete(self, table: str) -> bool:
        """Delete matching rows; return True if any row was removed."""

    @abstractmethod
    def scalar(self, table: str, column: str) -> Any:
        """Return a single value (e.g. an aggregate) from the first matching row."""
