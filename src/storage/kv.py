"""
Key-value media backing the portal's persisted state.

Every backend is synchronous and string-valued, scoped to one origin
(one process / one database file). ``write_batch`` applies several writes
atomically so a record and its indices never diverge.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Mapping, Optional

from ..utils.errors import StorageUnavailableError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Base class for key-value media."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value under ``key`` or None when absent."""

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with ``prefix``."""

    @abstractmethod
    def write_batch(self, sets: Mapping[str, str], removes: Iterable[str] = ()) -> None:
        """Apply all ``sets`` and ``removes`` atomically."""

    def set(self, key: str, value: str) -> None:
        self.write_batch({key: value})

    def remove(self, key: str) -> None:
        self.write_batch({}, removes=[key])


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store, mostly for tests and demos."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._data if key.startswith(prefix)]

    def write_batch(self, sets: Mapping[str, str], removes: Iterable[str] = ()) -> None:
        with self._lock:
            for key in removes:
                self._data.pop(key, None)
            self._data.update(sets)


class SQLiteKeyValueStore(KeyValueStore):
    """
    SQLite-based key-value store.

    A single ``kv`` table in a local database file. No external database
    setup required.

    Usage:
        kv = SQLiteKeyValueStore(Path("data/portal.db"))
        kv.set("detachd_claims", "[]")
        kv.get("detachd_claims")
    """

    def __init__(self, db_path: Path):
        """Initialize the store and create the table if needed."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get a database connection, translating driver errors."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageUnavailableError(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageUnavailableError(f"SQLite error on {self.db_path}: {e}") from e
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

    def keys(self, prefix: str = "") -> list[str]:
        # substr comparison is case-sensitive, unlike LIKE
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
            return [row[0] for row in rows]

    def write_batch(self, sets: Mapping[str, str], removes: Iterable[str] = ()) -> None:
        with self._get_connection() as conn:
            conn.executemany("DELETE FROM kv WHERE key = ?", [(key,) for key in removes])
            conn.executemany(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                list(sets.items()),
            )
            conn.commit()
        logger.debug(f"Committed batch of {len(sets)} write(s) to {self.db_path}")


def create_kv_store(backend: str, path: Optional[Path] = None) -> KeyValueStore:
    """Factory function to create the configured key-value medium."""
    if backend == "memory":
        return MemoryKeyValueStore()
    if backend == "sqlite":
        if path is None:
            raise ValueError("SQLite backend requires a storage path")
        return SQLiteKeyValueStore(path)
    raise ValueError(f"Unsupported storage backend: {backend}")
