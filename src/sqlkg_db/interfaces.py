"""
Capability interfaces implemented by database backends.

The extraction core depends only on these two abstractions. A backend
(SQLite, PostgreSQL, an in-memory fixture, ...) implements both, usually in
one class, without subclassing anything from the core.

Author: sqlkg contributors
License: MIT
"""

from abc import ABC, abstractmethod
from typing import Any, Iterator, Optional, Sequence, Tuple

from sqlkg_db.models import ForeignKey, Table


class SchemaModel(ABC):
    """
    Read-only view of a database schema.

    Subclasses provide ``tables()``; the lookup helpers are derived from it.
    The order of ``tables()`` is the schema enumeration order and drives
    class and identifier assignment, so it must be stable between calls.

    Example:
        class StaticSchema(SchemaModel):
            def __init__(self, tables):
                self._tables = tuple(tables)

            def tables(self):
                return self._tables
    """

    @abstractmethod
    def tables(self) -> Sequence[Table]:
        """
        Get every table in schema enumeration order.

        Returns:
            Ordered sequence of Table descriptions.
        """
        ...

    def table(self, name: str) -> Optional[Table]:
        """Get a table by name, or None if the schema has no such table."""
        for table in self.tables():
            if table.name == name:
                return table
        return None

    def primary_key(self, table: str) -> Sequence[str]:
        """Get the primary key column names of ``table`` in key order."""
        found = self.table(table)
        if found is None:
            raise KeyError(table)
        return found.primary_key

    def foreign_keys(self, table: str) -> Sequence[ForeignKey]:
        """Get the foreign keys declared on ``table`` in declaration order."""
        found = self.table(table)
        if found is None:
            raise KeyError(table)
        return found.foreign_keys


class RowSource(ABC):
    """
    Ordered, restartable row iteration per table.

    Every call to ``rows`` must return a new iterator; the engine streams the
    same table several times and expects the identical order each time.
    """

    @abstractmethod
    def rows(
        self,
        table: Table,
        columns: Sequence[str],
        order_by: Sequence[str],
    ) -> Iterator[Tuple[Any, ...]]:
        """
        Lazily iterate the rows of ``table``.

        Args:
            table: Table to read
            columns: Columns to project, in output tuple order
            order_by: Columns giving a total, repeatable order (ascending)

        Returns:
            Iterator of tuples aligned with ``columns``.
        """
        ...
