"""Plugins de framework."""

from .alembic import AlembicFramework
from .postgres import PostgresBackupMixin, database_url
from .prisma import PrismaFramework

__all__ = ["AlembicFramework", "PostgresBackupMixin", "PrismaFramework", "database_url"]
