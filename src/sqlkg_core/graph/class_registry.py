"""
ClassRegistry - node and edge class identifiers of one export run.

Node classes follow schema enumeration order; edge classes follow host
table order, then foreign key declaration order. Self-referencing and
cyclic foreign keys need no special casing: they are registered like any
other foreign key once all node classes exist.

License: MIT
"""

from typing import Dict, List, Sequence, Tuple

from sqlkg_core.graph.schema_plan import ExportPlan
from sqlkg_core.models import EdgeClass, NodeClass


class ClassRegistry:
    """
    Deduplicating registry of node and edge classes.

    Example:
        >>> registry = ClassRegistry()
        >>> registry.register_node_class("users")
        0
        >>> registry.register_node_class("orders")
        1
        >>> registry.register_edge_class("orders", ("user_id",), "users", "orders(user_id)")
        0
    """

    def __init__(self) -> None:
        self._node_ids: Dict[str, int] = {}
        self._node_classes: List[NodeClass] = []
        self._edge_ids: Dict[Tuple[str, Tuple[str, ...]], int] = {}
        self._edge_classes: List[EdgeClass] = []

    @classmethod
    def from_plan(cls, plan: ExportPlan) -> "ClassRegistry":
        """Register every table, then every usable foreign key of ``plan``."""
        registry = cls()
        for table in plan.tables:
            registry.register_node_class(table.name, table.qualified_name)
        for fk in plan.foreign_keys:
            registry.register_edge_class(fk.table.name, fk.columns, fk.referenced.name, fk.name)
        return registry

    def register_node_class(self, table: str, name: str = "") -> int:
        existing = self._node_ids.get(table)
        if existing is not None:
            return existing
        class_id = len(self._node_classes)
        self._node_ids[table] = class_id
        self._node_classes.append(NodeClass(class_id=class_id, name=name or table))
        return class_id

    def register_edge_class(
        self,
        table: str,
        columns: Sequence[str],
        referenced_table: str,
        name: str,
    ) -> int:
        """
        Register the edge class of a foreign key.

        Both tables must already have node classes.

        Raises:
            KeyError: If either table has no node class
        """
        key = (table, tuple(columns))
        existing = self._edge_ids.get(key)
        if existing is not None:
            return existing
        source_class_id = self._node_ids[table]
        dest_class_id = self._node_ids[referenced_table]
        class_id = len(self._edge_classes)
        self._edge_ids[key] = class_id
        self._edge_classes.append(
            EdgeClass(
                class_id=class_id,
                source_class_id=source_class_id,
                dest_class_id=dest_class_id,
                name=name,
                table=table,
                columns=tuple(columns),
            )
        )
        return class_id

    def node_class_id(self, table: str) -> int:
        return self._node_ids[table]

    def edge_class_id(self, table: str, columns: Sequence[str]) -> int:
        return self._edge_ids[(table, tuple(columns))]

    def node_classes(self) -> List[NodeClass]:
        return list(self._node_classes)

    def edge_classes(self) -> List[EdgeClass]:
        return list(self._edge_classes)
