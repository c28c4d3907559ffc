"""
Graph extraction module.

Provides:
- GraphExporter / export: Two-pass export of a database into graph artifacts
- IdentifierAllocator: Dense, per-table contiguous node IDs
- ClassRegistry: Node and edge class identifiers
- build_export_plan: Schema validation before any output is written
"""

from sqlkg_core.graph.class_registry import ClassRegistry
from sqlkg_core.graph.edge_resolver import EdgeResolver, EdgeStats
from sqlkg_core.graph.graph_exporter import ARTIFACTS, GraphExporter, export
from sqlkg_core.graph.id_allocator import IdentifierAllocator
from sqlkg_core.graph.node_emitter import NodeEmitter
from sqlkg_core.graph.row_streamer import RowStreamer, make_key
from sqlkg_core.graph.schema_plan import ExportPlan, ResolvedForeignKey, build_export_plan

__all__ = [
    "GraphExporter",
    "export",
    "ARTIFACTS",
    "IdentifierAllocator",
    "ClassRegistry",
    "RowStreamer",
    "make_key",
    "NodeEmitter",
    "EdgeResolver",
    "EdgeStats",
    "ExportPlan",
    "ResolvedForeignKey",
    "build_export_plan",
]
