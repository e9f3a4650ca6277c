"""PostgreSQL-backed key-value store for the cache tiers."""

import logging
from contextlib import contextmanager
from typing import Optional

import psycopg2
from psycopg2 import pool

from bizlocator.core.config import get_settings
from bizlocator.core.errors import StorageError

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection(pg_pool=None):
    """Context manager yielding a pooled connection."""
    pg_pool = pg_pool or init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value BYTEA NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_SELECT_VALUE = "SELECT value FROM kv_store WHERE key = %(key)s;"

_UPSERT_VALUE = """
INSERT INTO kv_store (
    key,
    value,
    updated_at
) VALUES (
    %(key)s,
    %(value)s,
    NOW()
)
ON CONFLICT (key) DO UPDATE SET
    value = EXCLUDED.value,
    updated_at = NOW();
"""


class PostgresKeyValueStore:
    """Durable store shared by the place-detail and fingerprint caches."""

    def __init__(self, pg_pool=None, create_table: bool = True) -> None:
        self._pool = pg_pool
        if create_table:
            self._execute(_CREATE_TABLE, {}, commit=True)

    def get(self, key: str) -> Optional[bytes]:
        if not key:
            raise ValueError("key is required")
        row = self._execute(_SELECT_VALUE, {"key": key}, fetch=True)
        if row is None:
            return None
        return bytes(row[0])

    def set(self, key: str, value: bytes) -> None:
        if not key:
            raise ValueError("key is required")
        self._execute(_UPSERT_VALUE, {"key": key, "value": psycopg2.Binary(value)}, commit=True)
        logger.debug("Stored %d bytes under %s", len(value), key)

    def _execute(self, sql: str, params, fetch: bool = False, commit: bool = False):
        try:
            with get_connection(self._pool) as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    row = cur.fetchone() if fetch else None
                if commit:
                    conn.commit()
                return row
        except psycopg2.Error as exc:
            logger.error("Key-value store query failed: %s", exc)
            raise StorageError(str(exc)) from exc
