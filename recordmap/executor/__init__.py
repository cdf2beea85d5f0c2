"""Query executors: the contract consumed by entities and the bundled SQLite implementation."""

import urllib.parse

from .base import Condition, Encrypted, QueryExecutor
from .sqlite import SqliteExecutor

_EXECUTOR_CLASSES: tuple[type[QueryExecutor], ...] = (
    SqliteExecutor,
)


def get_executor_for_url(url: str) -> QueryExecutor:
    """Return a new executor for the given database URL (e.g. 'sqlite:///app.db')."""
    scheme = urllib.parse.urlparse(url).scheme
    normalized = (scheme or "").split("+")[0].lower()
    for executor_cls in _EXECUTOR_CLASSES:
        if normalized in executor_cls.SUPPORTED_SCHEMA:
            return executor_cls.from_url(url)
    raise ValueError(f"Unsupported database scheme: {scheme}")


__all__ = [
    "Condition",
    "Encrypted",
    "QueryExecutor",
    "SqliteExecutor",
    "get_executor_for_url",
]
