"""
Data models for sqlkg_db module.

Defines the read-only schema description shared by every backend:
Column, ForeignKey and Table. Instances are immutable so a schema can be
handed to the core without defensive copies.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class Column:
    """Single table column as reported by the catalog."""

    name: str
    data_type: Optional[str] = None
    nullable: bool = True


@dataclass(frozen=True)
class ForeignKey:
    """
    Foreign key declared on a host table.

    Attributes:
        columns: Host column names, in declaration order
        referenced_table: Name of the referenced table
        referenced_columns: Referenced column names aligned with ``columns``.
            Empty means "the referenced table's primary key".
    """

    columns: Tuple[str, ...]
    referenced_table: str
    referenced_columns: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept lists from callers building schemas by hand
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "referenced_columns", tuple(self.referenced_columns))


@dataclass(frozen=True)
class Table:
    """
    Table with its columns, primary key and foreign keys.

    Attributes:
        name: Table name, unique within the schema model
        columns: Ordered columns
        primary_key: Primary key column names in key order
        foreign_keys: Foreign keys in declaration order
        schema: Optional namespace (e.g. PostgreSQL schema)
    """

    name: str
    columns: Tuple[Column, ...] = ()
    primary_key: Tuple[str, ...] = ()
    foreign_keys: Tuple[ForeignKey, ...] = field(default_factory=tuple)
    schema: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "primary_key", tuple(self.primary_key))
        object.__setattr__(self, "foreign_keys", tuple(self.foreign_keys))

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def has_column(self, name: str) -> bool:
        return any(column.name == name for column in self.columns)

    @property
    def qualified_name(self) -> str:
        """Table name prefixed with its schema, if any."""
        if self.schema:
            return f"{self.schema}.{self.name}"
        return self.name
