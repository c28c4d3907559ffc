"""
In-memory backend over plain Python sequences.

Useful for embedding the exporter in pipelines that already hold their data
as records, and as the reference backend in tests.
"""

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import structlog

from sqlkg_db.exceptions import QueryError
from sqlkg_db.interfaces import RowSource, SchemaModel
from sqlkg_db.models import Table

logger = structlog.get_logger(__name__)


def _sort_key(values: Tuple[Any, ...]) -> Tuple[Tuple[bool, Any], ...]:
    # NULLs sort first, as in SQLite and PostgreSQL's NULLS FIRST for ASC
    return tuple((value is not None, value) for value in values)


class InMemoryDatabase(SchemaModel, RowSource):
    """
    Schema model and row source backed by dictionaries.

    Args:
        tables: Tables in schema enumeration order
        rows: Mapping of table name to row mappings (column name -> value)

    Example:
        >>> users = Table(name="users", columns=(Column("id"),), primary_key=("id",))
        >>> db = InMemoryDatabase([users], {"users": [{"id": 1}, {"id": 2}]})
        >>> list(db.rows(users, ["id"], ["id"]))
        [(1,), (2,)]
    """

    def __init__(
        self,
        tables: Iterable[Table],
        rows: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None,
    ) -> None:
        self._tables = tuple(tables)
        self._rows: Dict[str, List[Mapping[str, Any]]] = {
            table.name: [] for table in self._tables
        }
        for name, records in (rows or {}).items():
            self._rows.setdefault(name, []).extend(records)

        logger.debug(
            "in_memory_database_created",
            tables=len(self._tables),
            rows=sum(len(records) for records in self._rows.values()),
        )

    def tables(self) -> Sequence[Table]:
        return self._tables

    def add_rows(self, table: str, records: Iterable[Mapping[str, Any]]) -> None:
        """Append rows to ``table``."""
        self._rows.setdefault(table, []).extend(records)

    def rows(
        self,
        table: Table,
        columns: Sequence[str],
        order_by: Sequence[str],
    ) -> Iterator[Tuple[Any, ...]]:
        if table.name not in self._rows:
            raise QueryError(f"no such table: {table.name}")

        records = self._rows[table.name]
        try:
            ordered = sorted(
                records,
                key=lambda record: _sort_key(tuple(record.get(c) for c in order_by)),
            )
        except TypeError as e:
            raise QueryError(f"rows of {table.name} are not orderable: {e}") from e

        return self._project(ordered, tuple(columns))

    @staticmethod
    def _project(
        records: List[Mapping[str, Any]], columns: Tuple[str, ...]
    ) -> Iterator[Tuple[Any, ...]]:
        for record in records:
            yield tuple(record.get(column) for column in columns)
