"""Exceptions raised by recordmap."""


class RecordMapError(Exception):
    """Base class for recordmap errors."""


class ValidationError(RecordMapError):
    """Raised when an entity is created from an empty payload."""


class PersistenceError(RecordMapError):
    """Raised when an insert, update or delete fails in the executor.

    The message is the executor's error text (or the message of the
    unexpected exception that interrupted the write).
    """


class UsageError(RecordMapError):
    """Raised for undeclared dynamic methods, wrong finder arity, and similar misuse."""
