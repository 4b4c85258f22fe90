"""Tests for the blob store backends and the repository commit cycle."""
import json
import os
from unittest.mock import MagicMock, call, patch

import psycopg
import pytest

from mob_pos.config import PosConfig
from mob_pos.errors import StorageError
from mob_pos.repository import BILLS_KEY, INVENTORY_KEY, PosRepository
from mob_pos.store import FileBlobStore, MemoryBlobStore, open_store
from mob_pos.store.postgres import PostgresBlobStore


class TestFileBlobStore:
    """One JSON document on disk."""

    def test_missing_file_reads_empty(self, tmp_path):
        assert FileBlobStore(tmp_path / "store.json").get("inventory") is None

    def test_set_many_persists_all_keys(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        store = FileBlobStore(path)
        store.set_many({"inventory": "[]", "bills": "[1]"})
        store.set("categories", '["Bath"]')

        reopened = FileBlobStore(path)
        assert reopened.get("bills") == "[1]"
        assert reopened.get("categories") == '["Bath"]'
        assert json.loads(path.read_text())["inventory"] == "[]"

    def test_no_temp_files_left(self, tmp_path):
        store = FileBlobStore(tmp_path / "store.json")
        store.set_many({"inventory": "[]"})
        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")
        with pytest.raises(StorageError):
            FileBlobStore(path).get("inventory")

    def test_non_object_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[]")
        with pytest.raises(StorageError, match="not a JSON object"):
            FileBlobStore(path).get("inventory")


class TestPostgresBlobStore:
    """Postgres backend with a mocked connection."""

    @pytest.fixture
    def conn(self):
        conn = MagicMock()
        conn.closed = False
        with patch("mob_pos.store.postgres.psycopg.connect", return_value=conn):
            yield conn

    @pytest.fixture
    def cursor(self, conn):
        return conn.cursor.return_value.__enter__.return_value

    @pytest.fixture
    def pg_store(self, conn):
        return PostgresBlobStore(PosConfig(db_url="postgresql://test", db_table="pos_blob"))

    def test_get_selects_key(self, pg_store, cursor):
        cursor.fetchone.return_value = {"value": "[]"}
        assert pg_store.get("bills") == "[]"
        assert cursor.execute.call_args == call(
            "SELECT value FROM pos_blob WHERE key = %s", ("bills",)
        )

    def test_get_missing_key(self, pg_store, cursor):
        cursor.fetchone.return_value = None
        assert pg_store.get("bills") is None

    def test_table_created_once(self, pg_store, cursor):
        cursor.fetchone.return_value = None
        pg_store.get("bills")
        pg_store.get("inventory")
        creates = [c for c in cursor.execute.call_args_list if "CREATE TABLE" in c.args[0]]
        assert len(creates) == 1

    def test_set_many_in_one_transaction(self, pg_store, conn, cursor):
        pg_store.set_many({"inventory": "[]", "bills": "[]"})
        conn.transaction.assert_called_once()
        upserts = [c for c in cursor.execute.call_args_list if "INSERT INTO" in c.args[0]]
        assert [c.args[1] for c in upserts] == [("inventory", "[]"), ("bills", "[]")]

    def test_operational_error_retried_then_wrapped(self, pg_store, cursor):
        """Test connection failures are retried and surface as StorageError."""
        cursor.execute.side_effect = psycopg.OperationalError("server closed the connection")
        with pytest.raises(StorageError):
            pg_store.get("bills")
        assert cursor.execute.call_count == 3

    def test_programming_error_not_retried(self, pg_store, cursor):
        cursor.execute.side_effect = psycopg.ProgrammingError("syntax error")
        with pytest.raises(StorageError):
            pg_store.set_many({"bills": "[]"})
        assert cursor.execute.call_count == 1

    def test_close(self, pg_store, conn):
        pg_store.conn
        pg_store.close()
        conn.close.assert_called_once()


class TestOpenStore:
    def test_memory(self):
        assert isinstance(open_store(PosConfig(store_backend="memory")), MemoryBlobStore)

    def test_file(self, tmp_path):
        store = open_store(PosConfig(store_backend="file", data_dir=tmp_path))
        assert isinstance(store, FileBlobStore)
        assert store.path == tmp_path / "store.json"

    def test_postgres_is_lazy(self):
        with patch("mob_pos.store.postgres.psycopg.connect") as connect:
            store = open_store(PosConfig(store_backend="postgres"))
        assert isinstance(store, PostgresBlobStore)
        connect.assert_not_called()

    def test_unknown(self):
        with pytest.raises(ValueError):
            open_store(PosConfig(store_backend="sqlite"))


class TestRepositoryMutation:
    """The load/modify/persist cycle."""

    def test_untouched_mutation_writes_nothing(self):
        store = MemoryBlobStore()
        repo = PosRepository(store)
        with repo.mutation() as work:
            work.inventory
        assert store.keys() == []

    def test_error_inside_block_writes_nothing(self):
        store = MemoryBlobStore()
        repo = PosRepository(store)
        with pytest.raises(RuntimeError):
            with repo.mutation() as work:
                work.bills.append("not persisted")
                work.touch(BILLS_KEY)
                raise RuntimeError("boom")
        assert store.get(BILLS_KEY) is None

    def test_nested_mutation_commits_with_outer(self):
        """Test an inner mutation joins the outer one and commits once."""
        store = MagicMock(wraps=MemoryBlobStore())
        repo = PosRepository(store)
        with repo.mutation() as outer:
            outer.categories.append("Bath")
            outer.touch("categories")
            with repo.mutation() as inner:
                assert inner is outer
                inner.categories.append("Drinks")
        store.set_many.assert_called_once_with({"categories": '["Bath", "Drinks"]'})

    def test_touch_requires_loaded_collection(self):
        repo = PosRepository(MemoryBlobStore())
        with pytest.raises(KeyError):
            with repo.mutation() as work:
                work.touch(INVENTORY_KEY)

    def test_corrupt_collection(self):
        repo = PosRepository(MemoryBlobStore({INVENTORY_KEY: '[{"barcode": "1"}]'}))
        with pytest.raises(StorageError, match="corrupt"):
            repo.load_inventory()

    def test_duplicate_barcodes_last_wins(self):
        raw = json.dumps(
            [
                {"barcode": "1", "name": "Old", "quantity": 1, "price": 1},
                {"barcode": "1", "name": "New", "quantity": 2, "price": 1},
            ]
        )
        repo = PosRepository(MemoryBlobStore({INVENTORY_KEY: raw}))
        assert repo.load_inventory()["1"].name == "New"


class TestPostgresLive:
    """Integration tests against a real database (set MOB_POS_TEST_DB_URL)."""

    @pytest.fixture
    def live_store(self):
        url = os.getenv("MOB_POS_TEST_DB_URL")
        if not url:
            pytest.skip("MOB_POS_TEST_DB_URL not set")
        store = PostgresBlobStore(PosConfig(db_url=url, db_table="pos_blob_test"))
        yield store
        with store.conn.cursor() as cur:
            cur.execute("DROP TABLE IF EXISTS pos_blob_test")
        store.close()

    @pytest.mark.integration
    def test_round_trip(self, live_store):
        """Test keys written together read back and overwrite in place."""
        live_store.set_many({"inventory": "[]", "bills": "[]"})
        live_store.set("bills", '[{"id": "BILL-1"}]')
        assert live_store.get("inventory") == "[]"
        assert live_store.get("bills") == '[{"id": "BILL-1"}]'
        assert live_store.get("categories") is None


# Run tests directly
if __name__ == "__main__":
    pytest.main([__file__, "-v", "-m", "not integration"])
