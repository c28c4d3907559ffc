"""
NodeEmitter - first pass: one node record per row, in ID order.

License: MIT
"""

from typing import Dict, Iterable, Protocol, Sequence

import structlog

from sqlkg_core.exceptions import SourceError
from sqlkg_core.graph.class_registry import ClassRegistry
from sqlkg_core.graph.id_allocator import IdentifierAllocator
from sqlkg_core.graph.row_streamer import RowStreamer
from sqlkg_db.models import Table

logger = structlog.get_logger(__name__)

NODE_HEADER = ("node_id", "node_class_ids")
NODE_CLASS_HEADER = ("class_id", "class_name")
CLASS_ID_SEPARATOR = "|"


class RowWriter(Protocol):
    def write_row(self, fields: Sequence[object]) -> None: ...


def format_class_ids(class_ids: Iterable[int]) -> str:
    """Render node class ids as the pipe-separated multi-label field."""
    return CLASS_ID_SEPARATOR.join(str(class_id) for class_id in class_ids)


class NodeEmitter:
    """
    Allocates IDs for every row of every table and writes node records.

    Tables are processed in the given order; each one is opened in the
    allocator before its first row and sealed after its last, so node
    records come out in strictly increasing ID order.
    """

    def __init__(
        self,
        streamer: RowStreamer,
        allocator: IdentifierAllocator,
        registry: ClassRegistry,
    ) -> None:
        self.streamer = streamer
        self.allocator = allocator
        self.registry = registry
        self._log = logger.bind(component="node_emitter")

    def emit(self, tables: Sequence[Table], writer: RowWriter) -> Dict[str, int]:
        """
        Run the node pass over ``tables``.

        Returns:
            Node count per table name
        """
        counts: Dict[str, int] = {}
        for table in tables:
            counts[table.name] = self.emit_table(table, writer)
        return counts

    def emit_table(self, table: Table, writer: RowWriter) -> int:
        """
        Write the node records of one table.

        Raises:
            SourceError: On a duplicate primary key (SRC_004) or any row
                source failure
        """
        class_field = format_class_ids((self.registry.node_class_id(table.name),))
        self.allocator.open_table(table.name)

        count = 0
        for key, _ in self.streamer.stream_keyed(table):
            if self.allocator.lookup(table.name, key) is not None:
                raise SourceError(
                    message=f"Duplicate primary key {key!r} in {table.name!r}",
                    error_code="SRC_004",
                    details={"table": table.name, "key": repr(key)},
                )
            node_id = self.allocator.allocate(table.name, key)
            writer.write_row((node_id, class_field))
            count += 1

        self.allocator.seal(table.name)
        id_range = self.allocator.table_range(table.name)
        self._log.info(
            "table_nodes_emitted",
            table=table.name,
            nodes=count,
            first_id=id_range.start if count else None,
            ordinal=self.allocator.is_ordinal(table.name),
        )
        return count
