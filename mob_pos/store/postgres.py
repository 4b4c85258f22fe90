"""
PostgreSQL backed blob store.

Keeps every key in one two-column table. Multi-key writes run in a single
transaction; transient connection failures are retried with backoff.
"""
from __future__ import annotations
from typing import Mapping, Optional
import psycopg
from psycopg.rows import dict_row
from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type
from loguru import logger

from ..config import PosConfig
from ..errors import StorageError


def get_connection(config: Optional[PosConfig] = None):
    """Create an autocommit connection returning dict rows."""
    config = config or PosConfig.from_env()
    return psycopg.connect(config.db_url, autocommit=True, row_factory=dict_row)


def _log_retry(retry_state) -> None:
    logger.warning(f"Retrying database call (attempt {retry_state.attempt_number})...")


_db_retry = retry(
    wait=wait_exponential(multiplier=0.2, min=0.2, max=5),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(psycopg.OperationalError),
    before_sleep=_log_retry,
    reraise=True,
)


class PostgresBlobStore:
    """
    Blob store in a PostgreSQL table.

    Table layout:
        key        text primary key
        value      text not null
        updated_at timestamptz default now()
    """

    def __init__(self, config: Optional[PosConfig] = None):
        self.config = config or PosConfig.from_env()
        self.table = self.config.db_table
        self._conn = None
        self._schema_ready = False

    @property
    def conn(self):
        """Get or create database connection."""
        if self._conn is None or self._conn.closed:
            self._conn = get_connection(self.config)
            self._schema_ready = False
        return self._conn

    def close(self):
        """Close database connection."""
        if self._conn and not self._conn.closed:
            self._conn.close()
        self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def ensure_table(self):
        """Create the blob table if it doesn't exist."""
        if self._schema_ready:
            return
        with self.conn.cursor() as cur:
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    key text PRIMARY KEY,
                    value text NOT NULL,
                    updated_at timestamptz NOT NULL DEFAULT now()
                )
                """
            )
        self._schema_ready = True

    @_db_retry
    def _fetch(self, key: str) -> Optional[str]:
        self.ensure_table()
        with self.conn.cursor() as cur:
            cur.execute(f"SELECT value FROM {self.table} WHERE key = %s", (key,))
            row = cur.fetchone()
            return row["value"] if row else None

    @_db_retry
    def _store(self, values: Mapping[str, str]) -> None:
        self.ensure_table()
        with self.conn.transaction():
            with self.conn.cursor() as cur:
                for key, value in values.items():
                    cur.execute(
                        f"""
                        INSERT INTO {self.table} (key, value, updated_at)
                        VALUES (%s, %s, now())
                        ON CONFLICT (key) DO UPDATE SET
                            value = EXCLUDED.value,
                            updated_at = EXCLUDED.updated_at
                        """,
                        (key, value),
                    )

    def get(self, key: str) -> Optional[str]:
        try:
            return self._fetch(key)
        except psycopg.Error as e:
            logger.error(f"Failed to read {key!r} from {self.table}: {e}")
            raise StorageError(f"Cannot read {key} from the database") from e

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        try:
            self._store(values)
        except psycopg.Error as e:
            logger.error(f"Failed to write {sorted(values)} to {self.table}: {e}")
            raise StorageError("Cannot write to the database") from e
        logger.debug(f"Wrote keys {sorted(values)} to {self.table}")
