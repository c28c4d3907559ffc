"""
Core data models for the extraction engine.

Class records, dangling-reference samples and the export summary.

License: MIT
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class NodeClass:
    """Graph-level type of every row of one table."""

    class_id: int
    name: str


@dataclass(frozen=True)
class EdgeClass:
    """
    Graph-level type of every edge produced by one foreign key.

    Attributes:
        class_id: Edge class identifier
        source_class_id: Node class of the table holding the foreign key
        dest_class_id: Node class of the referenced table
        name: Display name, ``schema.table(col_a, col_b)``
        table: Host table name
        columns: Host foreign key columns
    """

    class_id: int
    source_class_id: int
    dest_class_id: int
    name: str
    table: str
    columns: Tuple[str, ...]


@dataclass(frozen=True)
class DanglingReference:
    """A non-null foreign key value without a matching node."""

    table: str
    columns: Tuple[str, ...]
    value: Any
    referenced_table: str


@dataclass
class ExportSummary:
    """
    Result of an export run.

    Attributes:
        node_count: Node records written
        edge_count: Edge records written
        dangling_count: Non-null foreign key values without a target
        null_reference_count: Foreign key values skipped because NULL
        node_class_count: Node classes written
        edge_class_count: Edge classes written
        nodes_per_table: Node count keyed by table name
        edges_per_class: Edge count keyed by edge class name
        dangling_samples: First dangling references, for diagnostics
        output_dir: Directory holding the published files
        files: Artifact name -> published file path
        compressed: Whether files are gzip-compressed
        export_time_ms: Run duration in milliseconds
        run_id: Correlation id of the run
    """

    node_count: int = 0
    edge_count: int = 0
    dangling_count: int = 0
    null_reference_count: int = 0
    node_class_count: int = 0
    edge_class_count: int = 0
    nodes_per_table: Dict[str, int] = field(default_factory=dict)
    edges_per_class: Dict[str, int] = field(default_factory=dict)
    dangling_samples: List[DanglingReference] = field(default_factory=list)
    output_dir: str = ""
    files: Dict[str, str] = field(default_factory=dict)
    compressed: bool = False
    export_time_ms: float = 0.0
    run_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["dangling_samples"] = [
            {**sample, "value": repr(sample["value"]), "columns": list(sample["columns"])}
            for sample in data["dangling_samples"]
        ]
        return data
