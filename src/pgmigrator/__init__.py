"""
PgMigrator - Copy remote PostgreSQL databases into a local Docker container
"""

__version__ = "0.3.0"

from .core import MigratorError, PgMigrator

__all__ = ["PgMigrator", "MigratorError"]
