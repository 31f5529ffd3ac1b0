"""
Unit tests for key-value storage backends.

Tests cover:
- Memory and SQLite get/set/remove/keys
- SQLite durability across instances
- Write failure injection
- Backend factory
"""

import os
import tempfile

import pytest

from localbase.config import Settings
from localbase.errors import StorageError
from localbase.storage import KeyValueStorage, MemoryStorage, SqliteStorage, create_storage


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    @pytest.fixture
    def storage(self):
        """Create empty storage."""
        return MemoryStorage()

    def test_get_missing_returns_none(self, storage):
        """Absent keys read as None."""
        assert storage.get_item("missing") is None

    def test_set_then_get(self, storage):
        """Written values are readable."""
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"

    def test_set_replaces(self, storage):
        """A second write replaces the first."""
        storage.set_item("k", "one")
        storage.set_item("k", "two")
        assert storage.get_item("k") == "two"

    def test_remove(self, storage):
        """Removed keys disappear; removing twice is harmless."""
        storage.set_item("k", "v")
        storage.remove_item("k")
        storage.remove_item("k")
        assert storage.get_item("k") is None
        assert storage.keys() == []

    def test_initial_entries(self):
        """Initial entries are copied in."""
        initial = {"a": "1"}
        storage = MemoryStorage(initial)
        initial["b"] = "2"
        assert storage.keys() == ["a"]

    def test_inject_write_failure(self, storage):
        """Injected failures make writes raise StorageError."""
        storage.inject_write_failure(RuntimeError("disk full"))
        with pytest.raises(StorageError) as exc_info:
            storage.set_item("k", "v")
        assert exc_info.value.key == "k"
        assert storage.get_item("k") is None

        storage.inject_write_failure(None)
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"

    def test_satisfies_protocol(self, storage):
        """MemoryStorage implements KeyValueStorage."""
        assert isinstance(storage, KeyValueStorage)


class TestSqliteStorage:
    """Tests for SqliteStorage."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def storage(self, data_dir):
        """Create storage on a fresh file."""
        return SqliteStorage(os.path.join(data_dir, "kv.db"))

    def test_set_then_get(self, storage):
        """Written values are readable."""
        storage.set_item("localbase_table_orders", "[]")
        assert storage.get_item("localbase_table_orders") == "[]"

    def test_upsert(self, storage):
        """Writing an existing key replaces its value."""
        storage.set_item("k", "one")
        storage.set_item("k", "two")
        assert storage.get_item("k") == "two"
        assert storage.keys() == ["k"]

    def test_keys_sorted(self, storage):
        """keys() lists every key in sorted order."""
        storage.set_item("b", "2")
        storage.set_item("a", "1")
        assert storage.keys() == ["a", "b"]

    def test_remove(self, storage):
        """Removed keys disappear."""
        storage.set_item("k", "v")
        storage.remove_item("k")
        assert storage.get_item("k") is None

    def test_durable_across_instances(self, data_dir):
        """A new instance on the same file sees earlier writes."""
        path = os.path.join(data_dir, "kv.db")
        SqliteStorage(path).set_item("localbase_session", '{"user": {}}')

        reopened = SqliteStorage(path)
        assert reopened.get_item("localbase_session") == '{"user": {}}'

    def test_creates_parent_directory(self, data_dir):
        """Missing parent directories are created."""
        path = os.path.join(data_dir, "nested", "dir", "kv.db")
        storage = SqliteStorage(path)
        storage.set_item("k", "v")
        assert os.path.exists(path)

    def test_satisfies_protocol(self, storage):
        """SqliteStorage implements KeyValueStorage."""
        assert isinstance(storage, KeyValueStorage)


class TestCreateStorage:
    """Tests for the backend factory."""

    def test_memory_backend(self):
        """memory backend yields MemoryStorage."""
        storage = create_storage(Settings(storage_backend="memory"))
        assert isinstance(storage, MemoryStorage)

    def test_sqlite_backend(self):
        """sqlite backend yields SqliteStorage on the configured path."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "engine.db")
            storage = create_storage(Settings(storage_backend="sqlite", sqlite_path=path))
            assert isinstance(storage, SqliteStorage)
            assert str(storage.path) == path

    def test_unknown_backend(self):
        """Unknown backends are rejected."""
        with pytest.raises(ValueError):
            create_storage(Settings(storage_backend="redis"))
