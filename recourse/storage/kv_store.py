"""
KV Store - Keyed Storage for Persisted Snapshot Stacks

StateManager writes each stack as one JSON payload under a namespaced
key. Two stores ship with the package:

- SQLiteKVStore: durable, one connection per operation
- InMemoryKVStore: ephemeral, for tests and single-process hosts

Any object with the same ``get``/``put``/``delete``/``keys`` methods can
be passed to ``StateManager`` instead.

Usage:
    kv = SQLiteKVStore("./data/recourse.db")
    kv.put("stack:run_42", '{"snapshots": []}')
    payload = kv.get("stack:run_42")
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol, runtime_checkable

import structlog

from recourse.exceptions import StorageError

logger = structlog.get_logger(__name__)


@runtime_checkable
class KVStore(Protocol):
    """Keyed store contract used by StateManager."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str = "") -> list[str]: ...


class SQLiteKVStore:
    """
    SQLite-backed key-value store.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Path | str):
        """
        Args:
            db_path: Path to the SQLite database file.
                     Created, with parent directories, if missing.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

        logger.info("kv_store_initialized", db_path=str(self.db_path))

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection; sqlite errors surface as StorageError."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def put(self, key: str, value: str) -> None:
        """Store a value under a key, replacing any previous value."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO entries (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
            conn.commit()

        logger.debug("kv_put", key=key, char_count=len(value))

    def get(self, key: str) -> str | None:
        """Retrieve the value for a key, or None if not found."""
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM entries WHERE key = ?", (key,)).fetchone()

        logger.debug("kv_get", key=key, hit=row is not None)
        return None if row is None else row[0]

    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if deleted, False if not found.
        """
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM entries WHERE key = ?", (key,))
            conn.commit()
            deleted = cursor.rowcount > 0

        logger.debug("kv_delete", key=key, deleted=deleted)
        return deleted

    def keys(self, prefix: str = "") -> list[str]:
        """Stored keys starting with ``prefix``, sorted."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM entries WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row[0] for row in rows]


class InMemoryKVStore:
    """In-memory store with the same interface as SQLiteKVStore."""

    def __init__(self):
        self._store: dict[str, str] = {}

    def put(self, key: str, value: str) -> None:
        self._store[key] = value

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._store if k.startswith(prefix))
