"""
Persistence package for the Catalog Service.

PostgreSQL (asyncpg) is the record store and owns the authoritative copy of
every course.
"""

from .base import RecordStore
from .postgres import PostgreSQLStore

__all__ = ["RecordStore", "PostgreSQLStore"]
