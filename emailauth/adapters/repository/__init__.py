"""Repository adapters - Database implementations."""

from .postgres import PostgresStash, run_migrations

__all__ = ["PostgresStash", "run_migrations"]
