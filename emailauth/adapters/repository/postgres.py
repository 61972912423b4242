"""
PostgreSQL stash adapter - Implements the Stash protocol.

This module provides the PostgreSQL implementation of the domain's
key/value stash port using psycopg3 with raw SQL. Pending account
recovery requests live in the recovery_stash table until they are
confirmed or their TTL runs out.

TTL semantics:
-------------
Expiry is evaluated against database time (NOW()), so every application
instance agrees on whether a key is still live. Expired rows are invisible
to get() immediately and are physically removed by purge_expired().
"""

import logging
from importlib import resources
from typing import Any

from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

logger = logging.getLogger(__name__)

MIGRATIONS_PACKAGE = "emailauth.migrations"


class PostgresStash:
    """
    Implements Stash protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize stash with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def get(self, key: str) -> dict[str, Any] | None:
        """
        Fetch a live value.

        Returns:
            The stored JSON object, or None if absent or expired
        """
        sql = """
            SELECT value FROM recovery_stash
            WHERE key = %s AND expires_at > NOW()
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (key,))
            row = cursor.fetchone()
            return row[0] if row is not None else None

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """
        Store a value, replacing any previous one and resetting its TTL.

        Uses INSERT ... ON CONFLICT DO UPDATE for an atomic upsert, so a
        repeated write never leaves two rows for one key.
        """
        sql = """
            INSERT INTO recovery_stash (key, value, expires_at)
            VALUES (%s, %s, NOW() + make_interval(secs => %s))
            ON CONFLICT (key) DO UPDATE
            SET value = EXCLUDED.value,
                expires_at = EXCLUDED.expires_at
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (key, Jsonb(value), ttl_seconds))
            conn.commit()

    def delete(self, key: str) -> None:
        """Remove a key. Deleting an absent key is a no-op."""
        with self._pool.connection() as conn:
            conn.execute("DELETE FROM recovery_stash WHERE key = %s", (key,))
            conn.commit()

    def purge_expired(self) -> int:
        """
        Physically remove expired rows.

        Returns:
            Number of rows removed
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM recovery_stash WHERE expires_at <= NOW()")
            conn.commit()
            purged = cursor.rowcount

        if purged:
            logger.info("Purged %d expired stash entries", purged)
        return purged


def run_migrations(pool: ConnectionPool, package: str = MIGRATIONS_PACKAGE) -> None:
    """
    Execute all SQL migration files shipped in the emailauth.migrations package.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
        package: Package holding the *.sql files
    """
    sql_files = sorted(
        (f for f in resources.files(package).iterdir() if f.name.endswith(".sql")),
        key=lambda f: f.name,
    )

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
