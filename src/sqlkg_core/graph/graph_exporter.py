"""
GraphExporter - Export a relational database as a typed property graph.

Writes four artifacts into the output directory:
- nodes.csv: one record per row, ``node_id,node_class_ids``
- edges.csv: one record per resolved foreign key value, ``src_id,dst_id,edge_class_id``
- node_classes.csv: one record per table
- edge_classes.csv: one record per foreign key

The run makes two passes: every table is streamed once for nodes, then
every foreign key is streamed once for edges. Node IDs are dense, start
at 0 and form one contiguous range per table, in schema order.

License: MIT
"""

from __future__ import annotations

import time
import uuid
from pathlib import Path
from typing import Dict, Optional, Union

import structlog

from sqlkg_core.config import SqlKgSettings
from sqlkg_core.exceptions import ExportError, SqlKgError
from sqlkg_core.graph.class_registry import ClassRegistry
from sqlkg_core.graph.edge_resolver import EDGE_CLASS_HEADER, EDGE_HEADER, EdgeResolver
from sqlkg_core.graph.id_allocator import IdentifierAllocator
from sqlkg_core.graph.node_emitter import NODE_CLASS_HEADER, NODE_HEADER, NodeEmitter
from sqlkg_core.graph.row_streamer import RowStreamer
from sqlkg_core.graph.schema_plan import build_export_plan
from sqlkg_core.models import ExportSummary
from sqlkg_core.sink import ExportStaging, artifact_filename, open_sink
from sqlkg_db.interfaces import RowSource, SchemaModel

logger = structlog.get_logger(__name__)

NODES_FILE = "nodes.csv"
EDGES_FILE = "edges.csv"
NODE_CLASSES_FILE = "node_classes.csv"
EDGE_CLASSES_FILE = "edge_classes.csv"
ARTIFACTS = (NODES_FILE, EDGES_FILE, NODE_CLASSES_FILE, EDGE_CLASSES_FILE)


class GraphExporter:
    """
    Export one relational database into the four graph artifacts.

    Attributes:
        schema_model: Tables, primary keys and foreign keys
        row_source: Rows of each table, ordered by primary key
        settings: Export settings
        logger: Structured logger for operations

    Example:
        >>> from sqlkg_db import SQLiteDatabase
        >>> from sqlkg_core.graph import GraphExporter
        >>>
        >>> with SQLiteDatabase("shop.db") as db:
        ...     summary = GraphExporter(db, db).export("/tmp/shop_graph")
        >>> print(f"Exported {summary.node_count} nodes, {summary.edge_count} edges")
    """

    def __init__(
        self,
        schema_model: SchemaModel,
        row_source: RowSource,
        settings: Optional[SqlKgSettings] = None,
    ) -> None:
        """
        Initialize GraphExporter.

        Args:
            schema_model: Schema to export
            row_source: Row provider for the same database
            settings: Export settings (defaults from environment)

        Raises:
            ValueError: If schema_model or row_source is None
            TypeError: If either does not implement its interface
        """
        if schema_model is None:
            raise ValueError("schema_model cannot be None")
        if row_source is None:
            raise ValueError("row_source cannot be None")

        if not isinstance(schema_model, SchemaModel):
            raise TypeError(f"schema_model must be SchemaModel, got {type(schema_model).__name__}")
        if not isinstance(row_source, RowSource):
            raise TypeError(f"row_source must be RowSource, got {type(row_source).__name__}")

        self.schema_model = schema_model
        self.row_source = row_source
        self.settings = settings or SqlKgSettings()
        self.logger = logger.bind(component="graph_exporter")

    def export(
        self,
        output_dir: Optional[Union[str, Path]] = None,
        compressed: Optional[bool] = None,
    ) -> ExportSummary:
        """
        Run a full export.

        Args:
            output_dir: Output directory (default: settings.output_dir)
            compressed: Gzip every artifact (default: settings.compressed)

        Returns:
            ExportSummary with counts and published file paths

        Raises:
            SchemaError: If the schema cannot be exported; nothing is written
            SourceError: If rows cannot be read consistently
            SinkError: If an artifact cannot be written or published
            ValidationError: If the output directory is unusable
            ExportError: On any other failure (EXPORT_001)
        """
        start_time = time.perf_counter()
        run_id = str(uuid.uuid4())
        output_dir = Path(output_dir) if output_dir is not None else self.settings.output_dir
        compressed = self.settings.compressed if compressed is None else compressed
        log = self.logger.bind(run_id=run_id, output_dir=str(output_dir))

        log.info("export_started", compressed=compressed)

        try:
            plan = build_export_plan(self.schema_model, self.settings.max_key_columns)
            registry = ClassRegistry.from_plan(plan)
            allocator = IdentifierAllocator()
            streamer = RowStreamer(self.row_source)

            with ExportStaging(output_dir, run_id, ARTIFACTS) as staging:

                def sink(name: str, header):
                    return open_sink(
                        staging.path(artifact_filename(name, compressed)),
                        header,
                        compressed=compressed,
                        delimiter=self.settings.csv_delimiter,
                        buffer_size=self.settings.write_buffer_size,
                        compression_level=self.settings.compression_level,
                    )

                with sink(NODE_CLASSES_FILE, NODE_CLASS_HEADER) as out:
                    for node_class in registry.node_classes():
                        out.write_row((node_class.class_id, node_class.name))

                with sink(EDGE_CLASSES_FILE, EDGE_CLASS_HEADER) as out:
                    for edge_class in registry.edge_classes():
                        out.write_row(
                            (
                                edge_class.class_id,
                                edge_class.source_class_id,
                                edge_class.dest_class_id,
                                edge_class.name,
                            )
                        )

                log.debug("node_pass_started", tables=len(plan.tables))
                with sink(NODES_FILE, NODE_HEADER) as out:
                    nodes_per_table = NodeEmitter(streamer, allocator, registry).emit(
                        plan.tables, out
                    )

                log.debug("edge_pass_started", foreign_keys=len(plan.foreign_keys))
                with sink(EDGES_FILE, EDGE_HEADER) as out:
                    stats = EdgeResolver(
                        streamer,
                        allocator,
                        registry,
                        dangling_sample_limit=self.settings.dangling_sample_limit,
                    ).resolve(plan, out)

                summary = ExportSummary(
                    node_count=sum(nodes_per_table.values()),
                    edge_count=stats.edges,
                    dangling_count=stats.dangling,
                    null_reference_count=stats.null_references,
                    node_class_count=len(registry.node_classes()),
                    edge_class_count=len(registry.edge_classes()),
                    nodes_per_table=nodes_per_table,
                    edges_per_class=stats.per_class,
                    dangling_samples=stats.dangling_samples,
                    output_dir=str(output_dir.resolve()),
                    compressed=compressed,
                    run_id=run_id,
                )
                published = staging.publish(manifest=self._manifest(summary))

            summary.files = self._published_files(published, compressed)
            summary.export_time_ms = (time.perf_counter() - start_time) * 1000

            log.info(
                "export_completed",
                nodes=summary.node_count,
                edges=summary.edge_count,
                dangling=summary.dangling_count,
                null_references=summary.null_reference_count,
                export_time_ms=round(summary.export_time_ms, 2),
            )
            return summary

        except SqlKgError as e:
            e.correlation_id = run_id
            log.error("export_failed", **e.to_dict())
            raise
        except Exception as e:
            error = ExportError(
                message=f"Export failed: {e}",
                error_code="EXPORT_001",
                details={"output_dir": str(output_dir)},
                correlation_id=run_id,
                original_exception=e,
            )
            log.error("export_failed", **error.to_dict())
            raise error from e

    def _manifest(self, summary: ExportSummary) -> Dict[str, object]:
        counts = summary.to_dict()
        for transient in ("files", "output_dir", "export_time_ms", "run_id"):
            counts.pop(transient)
        return {
            "compressed": summary.compressed,
            "delimiter": self.settings.csv_delimiter,
            "summary": counts,
        }

    @staticmethod
    def _published_files(published: Dict[str, Path], compressed: bool) -> Dict[str, str]:
        return {
            name: str(published[artifact_filename(name, compressed)])
            for name in ARTIFACTS
            if artifact_filename(name, compressed) in published
        }


def export(
    schema_model: SchemaModel,
    row_source: RowSource,
    output_directory: Union[str, Path],
    compressed: bool = False,
    settings: Optional[SqlKgSettings] = None,
) -> ExportSummary:
    """
    Export ``schema_model`` and the rows of ``row_source`` into
    ``output_directory``.

    Example:
        >>> summary = export(db, db, "out/", compressed=True)
        >>> summary.files["nodes.csv"]
        '/abs/out/nodes.csv.gz'
    """
    exporter = GraphExporter(schema_model, row_source, settings=settings)
    return exporter.export(output_dir=output_directory, compressed=compressed)
