"""
IdentifierAllocator - global node identifiers for every row of every table.

Each table owns one contiguous range of the global ID space
(``offset + ordinal``), minted while that table is open for allocation.
Tables whose primary keys are consecutive integers keep only the range
bounds; any other key sequence falls back to an explicit ``key -> id`` map
for that table. One range stays alive per table for the whole run because
foreign keys may point forward, backward or to the same table.

License: MIT
"""

from decimal import Decimal
from typing import Any, Dict, Hashable, Optional

import structlog

from sqlkg_core.exceptions import SourceError

logger = structlog.get_logger(__name__)


def _mintable_ordinal(key: Any) -> bool:
    return type(key) is int


def _probe_ordinal(key: Any) -> Optional[int]:
    """Integer a key compares equal to, mirroring dict key equality."""
    if isinstance(key, int):
        return int(key)
    if isinstance(key, (float, Decimal)):
        try:
            probe = int(key)
        except (ValueError, OverflowError):
            return None
        return probe if probe == key else None
    return None


class _TableRange:
    """ID range of one table: ordinal run or explicit mapping."""

    __slots__ = ("offset", "count", "first_key", "mapping")

    def __init__(self, offset: int) -> None:
        self.offset = offset
        self.count = 0
        self.first_key: Optional[int] = None
        self.mapping: Optional[Dict[Hashable, int]] = None

    @property
    def is_ordinal(self) -> bool:
        return self.mapping is None

    def get(self, key: Hashable) -> Optional[int]:
        if self.mapping is not None:
            return self.mapping.get(key)
        if self.count == 0:
            return None
        probe = _probe_ordinal(key)
        if probe is None:
            return None
        ordinal = probe - self.first_key
        if 0 <= ordinal < self.count:
            return self.offset + ordinal
        return None

    def add(self, key: Hashable) -> int:
        new_id = self.offset + self.count
        if self.mapping is None:
            if self.count == 0 and _mintable_ordinal(key):
                self.first_key = key
            elif not (_mintable_ordinal(key) and key == self.first_key + self.count):
                self._materialize()
        if self.mapping is not None:
            self.mapping[key] = new_id
        self.count += 1
        return new_id

    def _materialize(self) -> None:
        mapping: Dict[Hashable, int] = {}
        if self.count:
            for ordinal in range(self.count):
                mapping[self.first_key + ordinal] = self.offset + ordinal
        self.mapping = mapping


class IdentifierAllocator:
    """
    Owner of the global ID space of one export run.

    Only the table currently open may mint new IDs; opening another table
    seals the previous one. IDs are therefore dense, start at 0 and each
    table's IDs are one contiguous block in allocation order.

    Example:
        >>> allocator = IdentifierAllocator()
        >>> allocator.open_table("users")
        >>> allocator.allocate("users", 10)
        0
        >>> allocator.allocate("users", 10)
        0
        >>> allocator.lookup("users", 11) is None
        True
    """

    def __init__(self) -> None:
        self._ranges: Dict[str, _TableRange] = {}
        self._open: Optional[str] = None
        self._next_id = 0

    def open_table(self, table: str) -> None:
        """
        Start the ID range of ``table``; seals the currently open table.

        Raises:
            ValueError: If ``table`` already has a range
        """
        if table in self._ranges:
            raise ValueError(f"Table {table!r} was already allocated")
        self.seal()
        self._ranges[table] = _TableRange(self._next_id)
        self._open = table

    def seal(self, table: Optional[str] = None) -> None:
        """Close the open table (or ``table``, if it is the open one)."""
        if self._open is None or (table is not None and table != self._open):
            return
        sealed = self._ranges[self._open]
        logger.debug(
            "table_range_sealed",
            table=self._open,
            offset=sealed.offset,
            count=sealed.count,
            ordinal=sealed.is_ordinal,
        )
        self._open = None

    def allocate(self, table: str, key: Hashable) -> int:
        """
        Get the ID of ``(table, key)``, minting one if unseen.

        A table never seen before is opened implicitly.

        Raises:
            SourceError: If ``key`` is new for a sealed table (SRC_003)
        """
        table_range = self._ranges.get(table)
        if table_range is None:
            self.open_table(table)
            table_range = self._ranges[table]
        else:
            existing = table_range.get(key)
            if existing is not None:
                return existing

        if table != self._open:
            raise SourceError(
                message=f"Row {key!r} of {table!r} appeared after its node pass",
                error_code="SRC_003",
                details={"table": table, "key": repr(key)},
            )

        new_id = table_range.add(key)
        self._next_id += 1
        return new_id

    def lookup(self, table: str, key: Hashable) -> Optional[int]:
        """Get the ID of ``(table, key)`` without allocating."""
        table_range = self._ranges.get(table)
        if table_range is None:
            return None
        return table_range.get(key)

    def count(self, table: str) -> int:
        table_range = self._ranges.get(table)
        return table_range.count if table_range else 0

    def table_range(self, table: str) -> range:
        """IDs allocated to ``table`` as a range."""
        table_range = self._ranges.get(table)
        if table_range is None:
            return range(0)
        return range(table_range.offset, table_range.offset + table_range.count)

    def is_ordinal(self, table: str) -> bool:
        table_range = self._ranges.get(table)
        return table_range is not None and table_range.is_ordinal

    def is_sealed(self, table: str) -> bool:
        return table in self._ranges and table != self._open

    @property
    def total(self) -> int:
        """Number of IDs minted so far."""
        return self._next_id
