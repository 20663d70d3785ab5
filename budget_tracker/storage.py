"""Persistence gateway: a small key/value store of JSON-serialized lists.

Five logical keys are used, one per record collection (see ``STORAGE_KEYS``).
A missing key means an empty collection.  Three backends are provided:

* ``SqliteStore`` - a single ``kv_store`` table; ``set_many`` writes every
  key inside one transaction, so multi-collection updates land together.
* ``JsonFileStore`` - one ``<key>.json`` file per key, each replaced
  atomically via a temporary file.
* ``MemoryStore`` - a dict, for tests and throwaway sessions.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from . import config
from .errors import PersistenceError

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    'EXPENSES': 'expenses',
    'INCOME': 'income',
    'MONTHLY_ARCHIVES': 'monthlyArchives',
    'GOALS': 'goals',
    'SAVINGS': 'savings',
}

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT
);
"""


class KeyValueStore:
    """Base class: raw ``get``/``set`` plus JSON list helpers."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def set_many(self, values: Mapping[str, str]) -> None:
        """Write several keys.  Backends that can do so write them atomically."""
        for key, value in values.items():
            self.set(key, value)

    def load_list(self, key: str) -> List[Dict[str, Any]]:
        """Read a collection, treating absence or corruption as empty."""
        raw = self.get(key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Stored value for %r is not valid JSON, ignoring it: %s", key, e)
            return []
        if not isinstance(data, list):
            logger.warning("Stored value for %r is not a list, ignoring it", key)
            return []
        return [row for row in data if isinstance(row, dict)]

    def save_lists(self, collections: Mapping[str, List[Dict[str, Any]]]) -> None:
        self.set_many({key: json.dumps(rows) for key, rows in collections.items()})

    def save_list(self, key: str, rows: List[Dict[str, Any]]) -> None:
        self.save_lists({key: rows})


class MemoryStore(KeyValueStore):
    """Dict-backed store.  ``set_many`` is all-or-nothing."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def set_many(self, values: Mapping[str, str]) -> None:
        with self._lock:
            self._data.update(values)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


class JsonFileStore(KeyValueStore):
    """One JSON file per key inside ``directory``."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory or config.STORE_DIR)

    def get_path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        target = self.get_path(key)
        if not target.exists():
            return None
        try:
            with target.open('r', encoding='utf-8') as handle:
                return handle.read()
        except OSError as e:
            logger.error("Failed to read %s: %s", target, e)
            raise PersistenceError(f"Could not load {key}: {e}", key=key) from e

    def set(self, key: str, value: str) -> None:
        target = self.get_path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self.directory), prefix=f".{key}.", suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                    handle.write(value)
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.error("Failed to write %s: %s", target, e)
            raise PersistenceError(f"Could not save {key}: {e}", key=key) from e


class SqliteStore(KeyValueStore):
    """Key/value table in a SQLite database file."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path or config.DB_PATH)
        self._initialized = False

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        if not self._initialized:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
            self._initialized = True

    def get(self, key: str) -> Optional[str]:
        try:
            with self.connect() as conn:
                self._ensure_schema(conn)
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to read %r from %s: %s", key, self.db_path, e)
            raise PersistenceError(f"Could not load {key}: {e}", key=key) from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        updated_at = datetime.utcnow().isoformat()
        try:
            with self.connect() as conn:
                self._ensure_schema(conn)
                with conn:
                    conn.executemany(
                        "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                        "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                        [(key, value, updated_at) for key, value in values.items()],
                    )
        except (sqlite3.Error, OSError) as e:
            keys = ', '.join(values)
            logger.error("Failed to write %s to %s: %s", keys, self.db_path, e)
            raise PersistenceError(f"Could not save {keys}: {e}", key=keys) from e

    def clear(self) -> None:
        try:
            with self.connect() as conn:
                self._ensure_schema(conn)
                with conn:
                    conn.execute("DELETE FROM kv_store")
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"Could not clear store: {e}") from e


def open_store(backend: Optional[str] = None) -> KeyValueStore:
    """Build the store selected by ``BUDGET_TRACKER_STORAGE`` (or ``backend``)."""
    name = (backend or config.STORAGE_BACKEND).lower()
    if name == 'memory':
        return MemoryStore()
    config.ensure_data_directories()
    if name == 'json':
        return JsonFileStore(config.STORE_DIR)
    if name == 'sqlite':
        return SqliteStore(config.DB_PATH)
    raise ValueError(f"Unknown storage backend: {name!r}")
