import os
import pytest
from recordmap import SqliteExecutor, default_registry


SCHEMA = """
CREATE TABLE countries (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE
);
CREATE TABLE users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT,
  email TEXT,
  aes_pwd BLOB,
  settings TEXT,
  login_count INTEGER NOT NULL DEFAULT 0,
  country_id INTEGER,
  search TEXT
);
CREATE TABLE addresses (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id INTEGER,
  street TEXT,
  city TEXT
);
CREATE TABLE roles (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT
);
CREATE TABLE user_roles (
  user_id INTEGER NOT NULL,
  role_id INTEGER NOT NULL,
  PRIMARY KEY (user_id, role_id)
);
CREATE TABLE user_profile (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id INTEGER,
  bio TEXT
);
CREATE TABLE json_aes_model (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  data TEXT,
  secret BLOB,
  token BLOB
);
CREATE TABLE data_handling (
  uid TEXT PRIMARY KEY,
  name TEXT,
  counter INTEGER,
  flags INTEGER
);
CREATE TABLE posts (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  title TEXT,
  meta TEXT,
  search TEXT
);
"""


@pytest.fixture(scope="function")
def setup_db(request):
    """Setup a temporary file SQLite database with the sample schema for each test."""
    os.makedirs("/tmp/recordmap-tests", exist_ok=True)
    path = f"/tmp/recordmap-tests/test-{request.function.__module__}-{request.function.__name__}.sqlite3"
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    executor = SqliteExecutor(path=path, secret="test-secret")
    executor.connection.executescript(SCHEMA)
    with default_registry.scoped(executor) as db:
        yield db
    executor.close()
