"""Database module re-exports.

Usage:
    from tmagent.db import create_pool, PostgresStore
"""

from .core import create_pool, run_migrations
from .store import PostgresStore

__all__ = ["create_pool", "run_migrations", "PostgresStore"]
