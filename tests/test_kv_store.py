"""Tests for Key-Value Store."""

import sqlite3
import tempfile
from pathlib import Path

import pytest

from recourse.exceptions import StorageError
from recourse.storage.kv_store import InMemoryKVStore, KVStore, SQLiteKVStore


class TestInMemoryKVStore:
    """Tests for in-memory KV store."""

    def test_put_and_get(self):
        store = InMemoryKVStore()
        store.put("key1", "value1")

        assert store.get("key1") == "value1"

    def test_get_nonexistent(self):
        store = InMemoryKVStore()
        assert store.get("nonexistent") is None

    def test_overwrite(self):
        store = InMemoryKVStore()
        store.put("key", "original")
        store.put("key", "updated")

        assert store.get("key") == "updated"

    def test_delete_reports_existence(self):
        store = InMemoryKVStore()
        store.put("key", "value")

        assert store.delete("key") is True
        assert store.delete("key") is False
        assert store.get("key") is None

    def test_keys_with_prefix(self):
        store = InMemoryKVStore()
        store.put("stack:b", "1")
        store.put("stack:a", "2")
        store.put("other", "3")

        assert store.keys("stack:") == ["stack:a", "stack:b"]
        assert store.keys() == ["other", "stack:a", "stack:b"]

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryKVStore(), KVStore)


class TestSQLiteKVStore:
    """Tests for SQLite-backed KV store."""

    @pytest.fixture
    def temp_db(self):
        """Create a temporary database file."""
        with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
            db_path = f.name
        yield db_path
        Path(db_path).unlink(missing_ok=True)

    def test_put_and_get(self, temp_db):
        store = SQLiteKVStore(temp_db)
        store.put("key1", "value1")

        assert store.get("key1") == "value1"

    def test_persistence(self, temp_db):
        store1 = SQLiteKVStore(temp_db)
        store1.put("persistent", "data")

        store2 = SQLiteKVStore(temp_db)
        assert store2.get("persistent") == "data"

    def test_overwrite_keeps_single_row(self, temp_db):
        store = SQLiteKVStore(temp_db)
        store.put("key", "original")
        store.put("key", "updated")

        assert store.get("key") == "updated"
        assert store.keys() == ["key"]

    def test_delete(self, temp_db):
        store = SQLiteKVStore(temp_db)
        store.put("key", "value")

        assert store.delete("key") is True
        assert store.delete("key") is False
        assert store.get("key") is None

    def test_keys_with_prefix(self, temp_db):
        store = SQLiteKVStore(temp_db)
        store.put("stack:run", "payload")
        store.put("stacks_other", "x")

        assert store.keys("stack:") == ["stack:run"]

    def test_creates_parent_directories(self, temp_dir):
        db_path = temp_dir / "nested" / "dir" / "store.db"
        store = SQLiteKVStore(db_path)
        store.put("k", "v")

        assert db_path.exists()

    def test_backend_errors_become_storage_errors(self, temp_db):
        store = SQLiteKVStore(temp_db)
        with sqlite3.connect(temp_db) as conn:
            conn.execute("DROP TABLE entries")

        with pytest.raises(StorageError):
            store.get("key")

    def test_satisfies_protocol(self, temp_db):
        assert isinstance(SQLiteKVStore(temp_db), KVStore)
