"""Connection registry: maps connection names to query executors."""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Union

from .errors import UsageError
from .executor import QueryExecutor, get_executor_for_url

logger = logging.getLogger("recordmap")

ConnectionSource = Union[QueryExecutor, str, Callable[[], str]]


class ConnectionRegistry:
    """Named executor handles, built lazily from URLs and cached.

    Entity types receive a registry at declaration time (``registry=...``)
    and fall back to `default_registry`.
    """

    def __init__(self):
        self._sources: dict[str, ConnectionSource] = {}
        self._executors: dict[str, QueryExecutor] = {}

    def register(self, source: ConnectionSource, name: str = "default") -> None:
        """Register an executor, a database URL, or a callable returning a URL."""
        if not isinstance(source, (QueryExecutor, str)) and not callable(source):
            raise ValueError("`source` should be a QueryExecutor, a database URL `str`, or a method returning one")
        self._executors.pop(name, None)
        if isinstance(source, QueryExecutor):
            self._executors[name] = source
        self._sources[name] = source

    def unregister(self, name: str = "default") -> None:
        self._sources.pop(name, None)
        self._executors.pop(name, None)

    def get(self, name: str = "default") -> QueryExecutor | None:
        """Return the executor registered under `name`, or None."""
        if name not in self._sources:
            return None
        return self.resolve(name)

    def resolve(self, name: str = "default") -> QueryExecutor:
        """Return the executor for `name`, building it from its URL on first use."""
        if name in self._executors:
            return self._executors[name]
        try:
            source = self._sources[name]
        except KeyError as error:
            raise UsageError(f"No connection configured with name=`{name}`") from error
        url = source() if callable(source) else source
        logger.info("Opening connection `%s`", name)
        executor = get_executor_for_url(url)
        self._executors[name] = executor
        return executor

    def names(self) -> list[str]:
        return list(self._sources)

    def reset(self) -> None:
        """Forget every registered connection."""
        self._sources.clear()
        self._executors.clear()

    @contextmanager
    def scoped(self, source: ConnectionSource, name: str = "default") -> Iterator[QueryExecutor]:
        """Install a connection for the duration of the block, then restore the previous one."""
        previous_source = self._sources.get(name)
        previous_executor = self._executors.get(name)
        self.register(source, name=name)
        try:
            yield self.resolve(name)
        finally:
            self.unregister(name)
            if previous_source is not None:
                self._sources[name] = previous_source
            if previous_executor is not None:
                self._executors[name] = previous_executor


default_registry = ConnectionRegistry()


def connect(source: ConnectionSource, name: str = "default") -> None:
    """Register a connection on the default registry."""
    default_registry.register(source, name=name)
