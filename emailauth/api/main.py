"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routers and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from emailauth.adapters.repository.postgres import PostgresStash, run_migrations
from emailauth.adapters.ticketing.zendesk import build_http_client
from emailauth.api.v1 import router as v1_router
from emailauth.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Account recovery API v1 - Request help with an account you cannot log in to",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool, runs migrations and purges expired stash rows on startup
    - Creates the Zendesk HTTP client on startup
    - Closes both on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")
    logger.info("Connecting to database...")

    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)
    PostgresStash(pool).purge_expired()

    app.state.pool = pool
    app.state.zendesk_client = build_http_client(settings)

    if settings.account_recovery_enabled:
        logger.info("Account recovery enabled, tickets go to %s", settings.zendesk_url)
    else:
        logger.info("Account recovery disabled")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    app.state.zendesk_client.close()
    pool.close()
    logger.info("Database connection pool closed")


app = FastAPI(
    title="emailauth",
    description="Login verification codes and account recovery requests",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    with pool.connection() as conn:
        conn.execute("SELECT 1")

    return {"status": "healthy"}
