"""
sqlkg_db - Database layer for sqlkg.

Provides the schema/row capability interfaces consumed by the extraction
core and the backends implementing them.

License: MIT
"""

from sqlkg_db.exceptions import (
    ConnectionError,
    DatabaseError,
    IntrospectionError,
    QueryError,
)
from sqlkg_db.interfaces import RowSource, SchemaModel
from sqlkg_db.memory import InMemoryDatabase
from sqlkg_db.models import Column, ForeignKey, Table
from sqlkg_db.sqlite_database import SQLiteDatabase

__all__ = [
    "SchemaModel",
    "RowSource",
    "Table",
    "Column",
    "ForeignKey",
    "InMemoryDatabase",
    "SQLiteDatabase",
    "DatabaseError",
    "ConnectionError",
    "IntrospectionError",
    "QueryError",
]
