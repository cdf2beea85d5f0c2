"""SQLite executor."""

import base64
import hashlib
import logging
import sqlite3
import urllib.parse
from typing import Any, ClassVar, Optional

from cryptography.fernet import Fernet, InvalidToken
from pydantic import PrivateAttr, SecretStr

from .base import Encrypted, QueryExecutor

logger = logging.getLogger("recordmap")


def _fernet_for(secret: str) -> Fernet:
    """Derive a Fernet cipher from an arbitrary session secret."""
    key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())
    return Fernet(key)


class SqliteExecutor(QueryExecutor):
    """QueryExecutor backed by the sqlite3 module (scheme sqlite).

    Encryption is performed inside SQLite by the `aes_encrypt` and
    `aes_decrypt` functions registered on the connection; both are keyed by
    the session secret held by this executor.
    """

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("sqlite",)

    path: str
    secret: Optional[SecretStr] = None

    _connection: Optional[sqlite3.Connection] = PrivateAttr(default=None)

    @classmethod
    def from_url(cls, url: str) -> "SqliteExecutor":
        parsed = urllib.parse.urlparse(url)
        path = (parsed.path or "")[1:] or parsed.hostname or ":memory:"
        secret = urllib.parse.parse_qs(parsed.query).get("secret", [None])[0]
        return cls(path=path, secret=secret)

    # connection

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            logger.info("Connecting to SQLite database %s", self.path)
            connection = sqlite3.connect(self.path)
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA foreign_keys = ON")
            connection.create_function("aes_encrypt", 1, self._encrypt)
            connection.create_function("aes_decrypt", 1, self._decrypt)
            self._connection = connection
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def set_session_secret(self, secret: str) -> None:
        """Set the secret keying the database-side encryption functions."""
        self.secret = SecretStr(secret)

    def _cipher(self) -> Fernet:
        if self.secret is None:
            raise ValueError("No session secret configured for encryption")
        return _fernet_for(self.secret.get_secret_value())

    def _encrypt(self, value):
        if value is None:
            return None
        if not isinstance(value, (bytes, str)):
            value = str(value)
        if isinstance(value, str):
            value = value.encode("utf-8")
        return self._cipher().encrypt(value)

    def _decrypt(self, value):
        if value is None:
            return None
        if isinstance(value, str):
            value = value.encode("utf-8")
        try:
            return self._cipher().decrypt(bytes(value)).decode("utf-8")
        except InvalidToken:
            # undecryptable input reads as NULL
            logger.debug("aes_decrypt: invalid token")
            return None

    # SQL building

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def decrypt_expression(self, column: str) -> str:
        return f"aes_decrypt({self.quote(column)})"

    def _placeholder(self, value: Any) -> str:
        if isinstance(value, Encrypted):
            return "aes_encrypt(?)"
        return "?"

    @staticmethod
    def _parameter(value: Any) -> Any:
        if isinstance(value, Encrypted):
            return value.value
        return value

    def _sql_where(self) -> tuple[str, list[Any]]:
        if not self._conditions:
            return "", []
        sql = ""
        parameters = []
        for index, condition in enumerate(self._conditions):
            column = self.quote(condition.field)
            operator = condition.operator
            value = condition.value
            if operator in ("IN", "NOT IN"):
                values = list(value)
                if values:
                    placeholders = ", ".join("?" for _ in values)
                    clause = f"{column} {operator} ({placeholders})"
                    parameters += values
                else:
                    clause = "1 = 0" if operator == "IN" else "1 = 1"
            elif value is None and operator in ("=", "IS"):
                clause = f"{column} IS NULL"
            elif value is None and operator in ("!=", "<>", "IS NOT"):
                clause = f"{column} IS NOT NULL"
            else:
                clause = f"{column} {operator} ?"
                parameters.append(value)
            if index:
                sql += f" {condition.conjunction} "
            sql += clause
        return "\nWHERE " + sql, parameters

    def _sql_order(self, order_by: Optional[str] = None) -> str:
        orders = [f"{self.quote(field)} {direction}" for field, direction in self._order]
        if order_by:
            orders.append(order_by)
        if not orders:
            return ""
        return "\nORDER BY " + ", ".join(orders)

    # execution

    def execute(self, sql: str, parameters=()) -> list[dict[str, Any]]:
        """Run raw SQL and return rows as dicts; commits afterwards."""
        self._last_query = sql
        logger.debug("%s %s", sql, list(parameters))
        cursor = self.connection.execute(sql, tuple(parameters))
        try:
            # by position: a later column (e.g. a decrypt projection) wins over a same-named one
            rows = [dict(zip(row.keys(), row)) for row in cursor.fetchall()]
        finally:
            cursor.close()
        self.connection.commit()
        return rows

    def _run_write(self, sql: str, parameters: list[Any]) -> Optional[sqlite3.Cursor]:
        self._last_query = sql
        self._last_error = ""
        logger.debug("%s %s", sql, parameters)
        try:
            cursor = self.connection.execute(sql, tuple(parameters))
            self.connection.commit()
        except sqlite3.Error as error:
            self.connection.rollback()
            self._last_error = str(error)
            logger.error("Write failed: %s (%s)", error, sql)
            return None
        return cursor

    def fetch_one(self, table: str, columns: str = "*") -> Optional[dict[str, Any]]:
        try:
            where, parameters = self._sql_where()
            sql = f"SELECT {columns} FROM {self.quote(table)}{where}{self._sql_order()}\nLIMIT 1"
            rows = self.execute(sql, parameters)
        finally:
            self.reset()
        return rows[0] if rows else None

    def fetch_many(self, table: str, order_by: Optional[str] = None,
                   columns: str = "*") -> list[dict[str, Any]]:
        try:
            where, parameters = self._sql_where()
            sql = f"SELECT {columns} FROM {self.quote(table)}{where}{self._sql_order(order_by)}"
            return self.execute(sql, parameters)
        finally:
            self.reset()

    def scalar(self, table: str, column: str) -> Any:
        row = self.fetch_one(table, columns=f"{column} AS value")
        if row is None:
            return None
        return row["value"]

    def insert(self, table: str, data: dict[str, Any]) -> Any:
        ignore = self._ignore
        self._last_insert_suppressed = False
        try:
            verb = "INSERT OR IGNORE" if ignore else "INSERT"
            if data:
                columns = ", ".join(self.quote(name) for name in data)
                placeholders = ", ".join(self._placeholder(value) for value in data.values())
                sql = f"{verb} INTO {self.quote(table)} ({columns})\nVALUES ({placeholders})"
            else:
                sql = f"{verb} INTO {self.quote(table)} DEFAULT VALUES"
            cursor = self._run_write(sql, [self._parameter(value) for value in data.values()])
        finally:
            self.reset()
        if cursor is None:
            return None
        if ignore and cursor.rowcount == 0:
            self._last_insert_suppressed = True
            logger.warning("Insert into %s ignored as duplicate", table)
            return None
        return cursor.lastrowid

    def update(self, table: str, data: dict[str, Any]) -> bool:
        try:
            where, where_parameters = self._sql_where()
            assignments = ", ".join(f"{self.quote(name)} = {self._placeholder(value)}"
                                    for name, value in data.items())
            sql = f"UPDATE {self.quote(table)}\nSET {assignments}{where}"
            parameters = [self._parameter(value) for value in data.values()] + where_parameters
            cursor = self._run_write(sql, parameters)
        finally:
            self.reset()
        return cursor is not None

    def delete(self, table: str) -> bool:
        try:
            where, parameters = self._sql_where()
            cursor = self._run_write(f"DELETE FROM {self.quote(table)}{where}", parameters)
        finally:
            self.reset()
        return cursor is not None and cursor.rowcount > 0
