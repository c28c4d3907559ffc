"""
RowStreamer - restartable, primary-key ordered row iteration.

Wraps a RowSource so every pass over a table gets a fresh lazy iterator
in the same order, with the primary key split from the other projected
columns and source failures surfaced as SourceError.

License: MIT
"""

from typing import Any, Hashable, Iterator, Sequence, Tuple

import structlog

from sqlkg_core.exceptions import SourceError
from sqlkg_db.interfaces import RowSource
from sqlkg_db.models import Table

logger = structlog.get_logger(__name__)


def make_key(values: Sequence[Any]) -> Hashable:
    """Scalar for single-column keys, tuple for composite keys."""
    if len(values) == 1:
        return values[0]
    return tuple(values)


class RowStreamer:
    """
    Streams rows of one table at a time through a RowSource.

    Attributes:
        row_source: Backend providing ordered row iteration

    Example:
        >>> streamer = RowStreamer(db)
        >>> for key, (user_id,) in streamer.stream_keyed(orders, ["user_id"]):
        ...     print(key, user_id)
    """

    def __init__(self, row_source: RowSource) -> None:
        self.row_source = row_source
        self._log = logger.bind(component="row_streamer")

    def stream(self, table: Table, columns: Sequence[str]) -> Iterator[Tuple[Any, ...]]:
        """
        Iterate ``columns`` of ``table`` ordered by primary key ascending.

        Each call starts a new iteration.

        Raises:
            SourceError: If the row source fails to start or to iterate (SRC_001)
        """
        columns = tuple(columns)
        try:
            rows = iter(self.row_source.rows(table, columns, table.primary_key))
        except SourceError:
            raise
        except Exception as e:
            raise self._source_error(table, e) from e

        self._log.debug("table_stream_started", table=table.name, columns=list(columns))
        while True:
            try:
                row = next(rows)
            except StopIteration:
                return
            except SourceError:
                raise
            except Exception as e:
                raise self._source_error(table, e) from e
            if len(row) != len(columns):
                raise SourceError(
                    message=(
                        f"Row source returned {len(row)} values for {len(columns)} "
                        f"columns of {table.name!r}"
                    ),
                    error_code="SRC_001",
                    details={"table": table.name, "columns": list(columns)},
                )
            yield tuple(row)

    def stream_keyed(
        self, table: Table, columns: Sequence[str] = ()
    ) -> Iterator[Tuple[Hashable, Tuple[Any, ...]]]:
        """
        Iterate ``(primary_key, values)`` pairs for ``table``.

        ``values`` holds ``columns`` in order, after the primary key columns.

        Raises:
            SourceError: On source failure (SRC_001) or a NULL or
                unhashable primary key component (SRC_002)
        """
        width = len(table.primary_key)
        for row in self.stream(table, tuple(table.primary_key) + tuple(columns)):
            key_values = row[:width]
            if any(value is None for value in key_values):
                raise SourceError(
                    message=f"NULL primary key value in {table.name!r}",
                    error_code="SRC_002",
                    details={"table": table.name, "key": repr(key_values)},
                )
            key = make_key(key_values)
            try:
                hash(key)
            except TypeError as e:
                raise SourceError(
                    message=f"Unhashable primary key value in {table.name!r}: {key!r}",
                    error_code="SRC_002",
                    details={"table": table.name, "key": repr(key)},
                    original_exception=e,
                ) from e
            yield key, row[width:]

    @staticmethod
    def _source_error(table: Table, error: Exception) -> SourceError:
        return SourceError(
            message=f"Reading rows of {table.name!r} failed: {error}",
            error_code="SRC_001",
            details={"table": table.name},
            original_exception=error,
        )
