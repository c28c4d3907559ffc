"""
SQLite backend implementing SchemaModel and RowSource.

Reads the catalog through ``sqlite_master`` and the ``table_info`` /
``foreign_key_list`` pragmas and streams rows with server-side ordering
and ``fetchmany`` batching, so tables are never loaded whole.

License: MIT
"""

import sqlite3
import string
from collections import defaultdict
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

import structlog

from sqlkg_db.exceptions import ConnectionError, IntrospectionError, QueryError
from sqlkg_db.interfaces import RowSource, SchemaModel
from sqlkg_db.models import Column, ForeignKey, Table

logger = structlog.get_logger(__name__)

DEFAULT_FETCH_SIZE = 1000

_ASCII_FOLD = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def quote_identifier(name: str) -> str:
    """Quote an SQL identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def _fold(name: str) -> str:
    # SQLite identifiers compare case-insensitively for ASCII letters only
    return name.translate(_ASCII_FOLD)


def _spell(names: Tuple[str, ...], table: Table) -> Tuple[str, ...]:
    catalog = {_fold(column.name): column.name for column in table.columns}
    return tuple(catalog.get(_fold(name), name) for name in names)


class SQLiteDatabase(SchemaModel, RowSource):
    """
    Read-only SQLite database exposed to the extraction core.

    The catalog is read once, on first use, and cached for the lifetime of
    the instance so every pass sees the same schema. Tables are enumerated
    by name, which fixes the schema enumeration order.

    Attributes:
        path: Database file path
        fetch_size: Rows fetched per round trip while streaming

    Example:
        >>> with SQLiteDatabase("shop.db") as db:
        ...     for table in db.tables():
        ...         print(table.name, table.primary_key)
    """

    def __init__(
        self,
        path: Union[str, Path],
        fetch_size: int = DEFAULT_FETCH_SIZE,
        read_only: bool = True,
    ) -> None:
        """
        Initialize SQLiteDatabase.

        Args:
            path: Path to an existing SQLite database file
            fetch_size: Rows fetched per ``fetchmany`` call
            read_only: Open the file with ``mode=ro``

        Raises:
            ValueError: If fetch_size is not positive
        """
        if fetch_size < 1:
            raise ValueError(f"fetch_size must be positive, got {fetch_size}")

        self.path = Path(path)
        self.fetch_size = fetch_size
        self.read_only = read_only
        self._conn: Optional[sqlite3.Connection] = None
        self._tables: Optional[Tuple[Table, ...]] = None
        self._log = logger.bind(component="sqlite_database", path=str(self.path))

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """
        Open the connection if needed and return it.

        Raises:
            ConnectionError: If the file does not exist or cannot be opened
        """
        if self._conn is not None:
            return self._conn

        if not self.path.is_file():
            raise ConnectionError(f"SQLite database not found: {self.path}")

        uri = self.path.resolve().as_uri()
        if self.read_only:
            uri += "?mode=ro"
        try:
            self._conn = sqlite3.connect(uri, uri=True)
        except sqlite3.Error as e:
            raise ConnectionError(f"Cannot open SQLite database {self.path}: {e}") from e

        self._log.debug("sqlite_connected", read_only=self.read_only)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.debug("sqlite_closed")

    def __enter__(self) -> "SQLiteDatabase":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # SchemaModel
    # ------------------------------------------------------------------

    def tables(self) -> Sequence[Table]:
        if self._tables is None:
            self._tables = self._introspect()
        return self._tables

    def _introspect(self) -> Tuple[Table, ...]:
        conn = self.connect()
        try:
            names = self._table_names(conn)
            tables = self._canonicalize(tuple(self._read_table(conn, name) for name in names))
        except sqlite3.Error as e:
            raise IntrospectionError(f"Cannot read SQLite catalog: {e}") from e

        self._log.info(
            "sqlite_schema_loaded",
            tables=len(tables),
            foreign_keys=sum(len(t.foreign_keys) for t in tables),
        )
        return tables

    def _table_names(self, conn: sqlite3.Connection) -> List[str]:
        """
        Names of the exportable tables, sorted.

        Internal ``sqlite_*`` tables, virtual tables and the shadow tables
        backing them hold no rows of their own and are left out.
        """
        rows = conn.execute(
            "SELECT name, sql LIKE 'CREATE VIRTUAL TABLE%' FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\' "
            "ORDER BY name"
        ).fetchall()
        virtual = [name for name, is_virtual in rows if is_virtual]
        shadow = self._shadow_tables(conn, virtual)
        return [name for name, is_virtual in rows if not is_virtual and name not in shadow]

    def _shadow_tables(self, conn: sqlite3.Connection, virtual: List[str]) -> Set[str]:
        if not virtual:
            return set()

        shadow: Set[str] = set()
        unresolved = list(virtual)
        if sqlite3.sqlite_version_info >= (3, 37, 0):
            unresolved = []
            for name in virtual:
                # Connecting the module marks its shadow tables
                try:
                    conn.execute(f"PRAGMA table_info({quote_identifier(name)})").fetchall()
                except sqlite3.OperationalError as e:
                    self._log.warning("sqlite_virtual_table_unavailable", table=name, error=str(e))
                    unresolved.append(name)
            # schema, name, type, ncol, wr, strict
            shadow = {
                row[1] for row in conn.execute("PRAGMA main.table_list") if row[2] == "shadow"
            }
        else:
            self._log.debug("sqlite_table_list_unavailable", version=sqlite3.sqlite_version)

        if unresolved:
            # Shadow tables are named <virtual table>_<suffix>
            prefixes = tuple(_fold(name) + "_" for name in unresolved)
            shadow.update(
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
                if _fold(row[0]).startswith(prefixes)
            )
        return shadow

    @staticmethod
    def _canonicalize(tables: Tuple[Table, ...]) -> Tuple[Table, ...]:
        """
        Rewrite foreign key targets to the catalog spelling.

        SQLite matches identifiers case-insensitively, and ``foreign_key_list``
        reports the referenced table and columns exactly as the REFERENCES
        clause spelled them. A target that matches no table is kept as
        written so schema validation can reject it.
        """
        by_name = {_fold(table.name): table for table in tables}
        result = []
        for table in tables:
            foreign_keys = []
            for fk in table.foreign_keys:
                referenced = by_name.get(_fold(fk.referenced_table))
                if referenced is not None:
                    fk = ForeignKey(
                        columns=_spell(fk.columns, table),
                        referenced_table=referenced.name,
                        referenced_columns=_spell(fk.referenced_columns, referenced),
                    )
                foreign_keys.append(fk)
            result.append(replace(table, foreign_keys=tuple(foreign_keys)))
        return tuple(result)

    def _read_table(self, conn: sqlite3.Connection, name: str) -> Table:
        quoted = quote_identifier(name)

        columns: List[Column] = []
        pk_positions: List[Tuple[int, str]] = []
        # cid, name, type, notnull, dflt_value, pk
        for _cid, col_name, col_type, notnull, _default, pk in conn.execute(
            f"PRAGMA table_info({quoted})"
        ):
            columns.append(
                Column(name=col_name, data_type=col_type or None, nullable=not notnull)
            )
            if pk:
                pk_positions.append((pk, col_name))

        primary_key = tuple(col for _, col in sorted(pk_positions))

        # id, seq, table, from, to, on_update, on_delete, match
        grouped: Dict[int, List[Tuple[int, str, str, Optional[str]]]] = defaultdict(list)
        for fk_id, seq, ref_table, from_col, to_col, *_rest in conn.execute(
            f"PRAGMA foreign_key_list({quoted})"
        ):
            grouped[fk_id].append((seq, ref_table, from_col, to_col))

        foreign_keys = []
        # SQLite numbers foreign keys from the last declared one
        for fk_id in sorted(grouped, reverse=True):
            parts = sorted(grouped[fk_id])
            ref_columns = tuple(to_col for *_, to_col in parts)
            foreign_keys.append(
                ForeignKey(
                    columns=tuple(from_col for _, _, from_col, _ in parts),
                    referenced_table=parts[0][1],
                    # to is NULL when the key implicitly targets the primary key
                    referenced_columns=() if any(c is None for c in ref_columns) else ref_columns,
                )
            )

        return Table(
            name=name,
            columns=tuple(columns),
            primary_key=primary_key,
            foreign_keys=tuple(foreign_keys),
        )

    # ------------------------------------------------------------------
    # RowSource
    # ------------------------------------------------------------------

    def rows(
        self,
        table: Table,
        columns: Sequence[str],
        order_by: Sequence[str],
    ) -> Iterator[Tuple[Any, ...]]:
        select = ", ".join(quote_identifier(c) for c in columns)
        sql = f"SELECT {select} FROM {quote_identifier(table.name)}"
        if order_by:
            sql += " ORDER BY " + ", ".join(quote_identifier(c) for c in order_by)
        return self._iterate(sql, table.name)

    def _iterate(self, sql: str, table_name: str) -> Iterator[Tuple[Any, ...]]:
        conn = self.connect()
        try:
            cursor = conn.execute(sql)
        except sqlite3.Error as e:
            raise QueryError(f"Query on {table_name} failed: {e}") from e

        self._log.debug("sqlite_stream_opened", table=table_name)
        try:
            while True:
                batch = cursor.fetchmany(self.fetch_size)
                if not batch:
                    break
                for row in batch:
                    yield tuple(row)
        except sqlite3.Error as e:
            raise QueryError(f"Iteration over {table_name} failed: {e}") from e
        finally:
            cursor.close()
