"""
Database utilities for the article scorer.

This package provides shared database connection pooling for PostgreSQL.
"""

from scorer.db.postgres_pool import close_pool, get_pool, safe_dsn

__all__ = ["get_pool", "close_pool", "safe_dsn"]
