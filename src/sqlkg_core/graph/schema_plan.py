"""
Schema validation and export planning.

Turns a SchemaModel into an ExportPlan: the validated tables in schema
order and the foreign keys that become edge classes, each with the
permutation mapping its values onto the referenced primary key. Every
SchemaError is raised here, before any output file exists.

License: MIT
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from sqlkg_core.exceptions import SchemaError
from sqlkg_db.exceptions import DatabaseError
from sqlkg_db.interfaces import SchemaModel
from sqlkg_db.models import ForeignKey, Table

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResolvedForeignKey:
    """
    Foreign key usable for edge resolution.

    Attributes:
        table: Host table
        columns: Host columns in declaration order
        referenced: Referenced table
        key_order: For each referenced primary key column, the index of the
            host column holding its value
    """

    table: Table
    columns: Tuple[str, ...]
    referenced: Table
    key_order: Tuple[int, ...]

    @property
    def name(self) -> str:
        return f"{self.table.qualified_name}({', '.join(self.columns)})"


@dataclass(frozen=True)
class ExportPlan:
    """Validated tables and usable foreign keys, both in export order."""

    tables: Tuple[Table, ...]
    foreign_keys: Tuple[ResolvedForeignKey, ...]

    def foreign_keys_of(self, table: Table) -> List[ResolvedForeignKey]:
        return [fk for fk in self.foreign_keys if fk.table.name == table.name]


def build_export_plan(schema_model: SchemaModel, max_key_columns: int = 3) -> ExportPlan:
    """
    Validate ``schema_model`` and resolve its foreign keys.

    Args:
        schema_model: Schema to export
        max_key_columns: Widest composite primary key accepted

    Returns:
        ExportPlan with tables in schema order and foreign keys ordered by
        host table, then declaration order.

    Raises:
        SchemaError: On any missing, ambiguous or malformed key
    """
    try:
        tables = tuple(schema_model.tables())
    except DatabaseError as e:
        raise SchemaError(
            message=f"Schema introspection failed: {e}",
            error_code="SCHEMA_006",
            original_exception=e,
        ) from e

    by_name: Dict[str, Table] = {}
    for table in tables:
        if table.name in by_name:
            raise SchemaError(
                message=f"Duplicate table name {table.name!r}",
                error_code="SCHEMA_004",
                details={"table": table.name},
            )
        by_name[table.name] = table
        _check_primary_key(table, max_key_columns)

    resolved: List[ResolvedForeignKey] = []
    for table in tables:
        seen: Dict[Tuple[str, ...], str] = {}
        for fk in table.foreign_keys:
            entry = _resolve_foreign_key(table, fk, by_name)
            if entry is None:
                continue
            previous = seen.get(entry.columns)
            if previous == entry.referenced.name:
                logger.debug("duplicate_foreign_key_ignored", table=table.name, fk=entry.name)
                continue
            if previous is not None:
                raise SchemaError(
                    message=(
                        f"Foreign key columns {entry.columns} of {table.name!r} reference "
                        f"both {previous!r} and {entry.referenced.name!r}"
                    ),
                    error_code="SCHEMA_005",
                    details={"table": table.name, "columns": list(entry.columns)},
                )
            seen[entry.columns] = entry.referenced.name
            resolved.append(entry)

    logger.info(
        "export_plan_built",
        tables=len(tables),
        foreign_keys=len(resolved),
    )
    return ExportPlan(tables=tables, foreign_keys=tuple(resolved))


def _check_primary_key(table: Table, max_key_columns: int) -> None:
    pk = table.primary_key
    if not pk:
        raise SchemaError(
            message=f"Table {table.name!r} has no primary key",
            error_code="SCHEMA_001",
            details={"table": table.name},
        )
    if len(pk) > max_key_columns:
        raise SchemaError(
            message=(
                f"Primary key of {table.name!r} has {len(pk)} columns; "
                f"at most {max_key_columns} are supported"
            ),
            error_code="SCHEMA_002",
            details={"table": table.name, "primary_key": list(pk)},
        )
    if len(set(pk)) != len(pk):
        raise SchemaError(
            message=f"Primary key of {table.name!r} repeats a column",
            error_code="SCHEMA_003",
            details={"table": table.name, "primary_key": list(pk)},
        )
    missing = _missing_columns(table, pk)
    if missing:
        raise SchemaError(
            message=f"Primary key columns {missing} not found in {table.name!r}",
            error_code="SCHEMA_003",
            details={"table": table.name, "missing": missing},
        )


def _resolve_foreign_key(
    table: Table, fk: ForeignKey, by_name: Dict[str, Table]
) -> Optional[ResolvedForeignKey]:
    details = {
        "table": table.name,
        "columns": list(fk.columns),
        "referenced_table": fk.referenced_table,
    }

    if not fk.columns:
        raise SchemaError(
            message=f"Foreign key on {table.name!r} declares no columns",
            error_code="SCHEMA_005",
            details=details,
        )

    referenced = by_name.get(fk.referenced_table)
    if referenced is None:
        raise SchemaError(
            message=f"Foreign key on {table.name!r} references unknown table {fk.referenced_table!r}",
            error_code="SCHEMA_005",
            details=details,
        )

    missing = _missing_columns(table, fk.columns)
    if missing:
        raise SchemaError(
            message=f"Foreign key columns {missing} not found in {table.name!r}",
            error_code="SCHEMA_005",
            details=details,
        )

    target_columns = fk.referenced_columns or referenced.primary_key
    if len(target_columns) != len(fk.columns):
        raise SchemaError(
            message=(
                f"Foreign key {fk.columns} on {table.name!r} has {len(fk.columns)} columns "
                f"but references {len(target_columns)}"
            ),
            error_code="SCHEMA_005",
            details=details,
        )

    if set(target_columns) != set(referenced.primary_key) or len(set(target_columns)) != len(
        target_columns
    ):
        # Edges are only defined between primary keys
        logger.warning(
            "foreign_key_skipped",
            reason="references_non_primary_key",
            **details,
            referenced_columns=list(target_columns),
        )
        return None

    position = {column: index for index, column in enumerate(target_columns)}
    key_order = tuple(position[column] for column in referenced.primary_key)

    return ResolvedForeignKey(
        table=table,
        columns=tuple(fk.columns),
        referenced=referenced,
        key_order=key_order,
    )


def _missing_columns(table: Table, names: Sequence[str]) -> List[str]:
    # Hand-built schemas may omit column lists; nothing to check then
    if not table.columns:
        return []
    return [name for name in names if not table.has_column(name)]
