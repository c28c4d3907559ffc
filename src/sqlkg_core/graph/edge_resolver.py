"""
EdgeResolver - second pass: foreign key values become typed edges.

Edges always point from the row holding the foreign key to the referenced
row. A foreign key value with a NULL component yields no edge and no
error; a non-null value without a node is a dangling reference, counted
and dropped.

License: MIT
"""

from dataclasses import dataclass, field
from typing import Dict, List

import structlog

from sqlkg_core.graph.class_registry import ClassRegistry
from sqlkg_core.graph.id_allocator import IdentifierAllocator
from sqlkg_core.graph.node_emitter import RowWriter
from sqlkg_core.graph.row_streamer import RowStreamer, make_key
from sqlkg_core.graph.schema_plan import ExportPlan, ResolvedForeignKey
from sqlkg_core.models import DanglingReference

logger = structlog.get_logger(__name__)

EDGE_HEADER = ("src_id", "dst_id", "edge_class_id")
EDGE_CLASS_HEADER = ("edge_class_id", "source_class_id", "dest_class_id", "name")


@dataclass
class EdgeStats:
    """Counters of the edge pass."""

    edges: int = 0
    dangling: int = 0
    null_references: int = 0
    scanned: int = 0
    per_class: Dict[str, int] = field(default_factory=dict)
    dangling_samples: List[DanglingReference] = field(default_factory=list)


class EdgeResolver:
    """
    Resolves foreign keys against the allocator and writes edge records.

    Attributes:
        dangling_sample_limit: Dangling references kept for diagnostics
    """

    def __init__(
        self,
        streamer: RowStreamer,
        allocator: IdentifierAllocator,
        registry: ClassRegistry,
        dangling_sample_limit: int = 10,
    ) -> None:
        self.streamer = streamer
        self.allocator = allocator
        self.registry = registry
        self.dangling_sample_limit = dangling_sample_limit
        self._log = logger.bind(component="edge_resolver")

    def resolve(self, plan: ExportPlan, writer: RowWriter) -> EdgeStats:
        """
        Run the edge pass: tables in plan order, foreign keys in
        declaration order, one stream per foreign key.

        Raises:
            SourceError: If a row source fails or a row appeared after the
                node pass
        """
        stats = EdgeStats()
        for table in plan.tables:
            for fk in plan.foreign_keys_of(table):
                self.resolve_foreign_key(fk, writer, stats)
        return stats

    def resolve_foreign_key(
        self, fk: ResolvedForeignKey, writer: RowWriter, stats: EdgeStats
    ) -> int:
        """Write the edges of one foreign key; returns the edges written."""
        edge_class_id = self.registry.edge_class_id(fk.table.name, fk.columns)
        host = fk.table.name
        referenced = fk.referenced.name

        written = dangling = nulls = 0
        for key, values in self.streamer.stream_keyed(fk.table, fk.columns):
            # Idempotent: returns the node pass ID, raises if the row is new
            src_id = self.allocator.allocate(host, key)

            if any(value is None for value in values):
                nulls += 1
                continue

            target = make_key([values[index] for index in fk.key_order])
            try:
                dst_id = self.allocator.lookup(referenced, target)
            except TypeError:
                # Unhashable value: malformed, never matches a node
                dst_id = None

            if dst_id is None:
                dangling += 1
                if len(stats.dangling_samples) < self.dangling_sample_limit:
                    stats.dangling_samples.append(
                        DanglingReference(
                            table=host,
                            columns=fk.columns,
                            value=target,
                            referenced_table=referenced,
                        )
                    )
                continue

            writer.write_row((src_id, dst_id, edge_class_id))
            written += 1

        stats.edges += written
        stats.dangling += dangling
        stats.null_references += nulls
        stats.scanned += written + dangling
        stats.per_class[fk.name] = written

        log = self._log.warning if dangling else self._log.info
        log(
            "edge_class_resolved",
            edge_class=fk.name,
            edge_class_id=edge_class_id,
            edges=written,
            dangling=dangling,
            null_references=nulls,
        )
        return written
