"""
Shared fixtures for integration tests.

Tests here run against a real PostgreSQL database (see DATABASE_URL).
They are skipped when the database cannot be reached.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from emailauth.adapters.repository.postgres import run_migrations
from emailauth.config.settings import get_settings


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests, with migrations applied."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
    )
    try:
        pool.wait(timeout=5.0)
    except PoolTimeout:
        pool.close()
        pytest.skip(f"PostgreSQL not reachable at {settings.database_url}")

    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_stash(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean recovery_stash table before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM recovery_stash")
        conn.commit()
    yield
