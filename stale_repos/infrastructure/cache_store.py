"""Key-value stores backing the request cache."""

import hashlib
import json
import logging
import os
import time
from typing import Any, Callable, Dict, Optional, Tuple

import psycopg2
from psycopg2.extras import Json
from psycopg2.pool import ThreadedConnectionPool

logger = logging.getLogger(__name__)


class InMemoryCacheStore:
    """
    Process-local store; entries expire after their retention.

    Values are kept serialized, so every read returns a fresh copy the same
    way the PostgreSQL store decodes its JSONB column.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        expires_at, payload = entry
        if expires_at <= self.clock():
            del self._entries[key]
            return None
        return json.loads(payload)

    def set(self, key: str, value: Any, retention_seconds: int) -> None:
        self._entries[key] = (self.clock() + retention_seconds, json.dumps(value))

    def __len__(self) -> int:
        return len(self._entries)


class PostgresCacheStore:
    """Store for cached API responses in PostgreSQL."""

    def __init__(self, connection_string: Optional[str] = None, namespace: str = "stale-repos"):
        """
        Initialize PostgreSQL cache store.

        Args:
            connection_string: PostgreSQL connection string. If None, uses env vars.
            namespace: Partition of the cache table used by this store
        """
        if connection_string is None:
            db_host = os.getenv("POSTGRES_HOST", "localhost")
            db_port = os.getenv("POSTGRES_PORT", "5432")
            db_name = os.getenv("POSTGRES_DB", "stale_repos")
            db_user = os.getenv("POSTGRES_USER", "postgres")
            db_password = os.getenv("POSTGRES_PASSWORD", "postgres")

            connection_string = (
                f"host={db_host} port={db_port} dbname={db_name} "
                f"user={db_user} password={db_password}"
            )

        self.connection_string = connection_string
        self.namespace = namespace
        self.pool: Optional[ThreadedConnectionPool] = None

    def connect(self):
        """Initialize connection pool."""
        try:
            self.pool = ThreadedConnectionPool(1, 5, self.connection_string)
            logger.info("Cache connection pool created")
        except psycopg2.Error as e:
            logger.error(f"Error creating connection pool: {e}")
            raise

    def close(self):
        """Close connection pool."""
        if self.pool:
            self.pool.closeall()
            logger.info("Cache connection pool closed")

    def _get_connection(self):
        if not self.pool:
            self.connect()
        return self.pool.getconn()

    def _return_connection(self, conn):
        if self.pool:
            self.pool.putconn(conn)

    @staticmethod
    def _hash_key(key: str) -> str:
        # GraphQL keys are too long for a btree index, so rows are keyed by digest
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def initialize_schema(self):
        """Create the cache table if it doesn't exist."""
        conn = self._get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    CREATE TABLE IF NOT EXISTS request_cache (
                        namespace VARCHAR(255) NOT NULL,
                        key_hash CHAR(64) NOT NULL,
                        cache_key TEXT NOT NULL,
                        value JSONB NOT NULL,
                        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
                        expires_at TIMESTAMPTZ NOT NULL,
                        PRIMARY KEY (namespace, key_hash)
                    );

                    CREATE INDEX IF NOT EXISTS idx_request_cache_expires_at ON request_cache(expires_at);
                """)
                conn.commit()
                logger.info("Cache schema initialized")
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Error initializing cache schema: {e}")
            raise
        finally:
            self._return_connection(conn)

    def get(self, key: str) -> Optional[Any]:
        """Return the unexpired value stored under ``key``, or None."""
        conn = self._get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT value FROM request_cache
                    WHERE namespace = %s AND key_hash = %s AND expires_at > CURRENT_TIMESTAMP
                    """,
                    (self.namespace, self._hash_key(key))
                )
                row = cur.fetchone()
                conn.commit()
                return row[0] if row else None
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Error reading cache entry: {e}")
            raise
        finally:
            self._return_connection(conn)

    def set(self, key: str, value: Any, retention_seconds: int) -> None:
        """
        Insert or replace the value stored under ``key``.

        Args:
            key: Serialized call signature
            value: JSON-compatible response payload
            retention_seconds: Seconds until the entry expires
        """
        conn = self._get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO request_cache (namespace, key_hash, cache_key, value, expires_at)
                    VALUES (%s, %s, %s, %s, CURRENT_TIMESTAMP + %s * INTERVAL '1 second')
                    ON CONFLICT (namespace, key_hash)
                    DO UPDATE SET
                        value = EXCLUDED.value,
                        created_at = CURRENT_TIMESTAMP,
                        expires_at = EXCLUDED.expires_at
                    """,
                    (self.namespace, self._hash_key(key), key, Json(value), retention_seconds)
                )
                conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Error writing cache entry: {e}")
            raise
        finally:
            self._return_connection(conn)

    def purge_expired(self) -> int:
        """Delete expired entries and return how many were removed."""
        conn = self._get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM request_cache WHERE namespace = %s AND expires_at <= CURRENT_TIMESTAMP",
                    (self.namespace,)
                )
                deleted = cur.rowcount
                conn.commit()
                logger.info(f"Purged {deleted} expired cache entries")
                return deleted
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Error purging cache entries: {e}")
            raise
        finally:
            self._return_connection(conn)
