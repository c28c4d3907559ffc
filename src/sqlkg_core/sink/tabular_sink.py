"""
Tabular sink - buffered CSV writers for the export artifacts.

The byte stream (plain file or gzip) is chosen once, when the writer is
opened; the CSV layer above it is identical in both cases, so decoded
compressed output equals the plain output byte for byte. Gzip members are
written with ``mtime=0`` and no embedded file name to keep compressed
output reproducible.

License: MIT
"""

import csv
import gzip
import io
from contextlib import contextmanager
from pathlib import Path
from typing import Any, BinaryIO, Iterator, Sequence, Union

import structlog

from sqlkg_core.exceptions import SinkError, ValidationError

logger = structlog.get_logger(__name__)

DEFAULT_BUFFER_SIZE = 1024 * 1024
GZIP_SUFFIX = ".gz"


def artifact_filename(name: str, compressed: bool) -> str:
    """File name of an artifact, e.g. ``nodes.csv`` or ``nodes.csv.gz``."""
    return name + GZIP_SUFFIX if compressed else name


class PlainByteStream:
    """Buffered binary file."""

    def __init__(self, path: Path, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        self.path = path
        self._file = open(path, "wb", buffering=buffer_size)

    @property
    def binary(self) -> BinaryIO:
        return self._file

    def close(self) -> None:
        self._file.close()


class GzipByteStream:
    """Buffered binary file behind a reproducible gzip member."""

    def __init__(
        self,
        path: Path,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        compression_level: int = 6,
    ) -> None:
        self.path = path
        self._raw = open(path, "wb", buffering=buffer_size)
        try:
            self._gzip = gzip.GzipFile(
                filename="",
                mode="wb",
                fileobj=self._raw,
                compresslevel=compression_level,
                mtime=0,
            )
        except BaseException:
            self._raw.close()
            raise

    @property
    def binary(self) -> BinaryIO:
        return self._gzip

    def close(self) -> None:
        # GzipFile never closes a fileobj it was given
        try:
            self._gzip.close()
        finally:
            self._raw.close()


ByteStream = Union[PlainByteStream, GzipByteStream]


def open_byte_stream(
    path: Path,
    compressed: bool,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    compression_level: int = 6,
) -> ByteStream:
    """Pick the byte stream implementation for ``compressed``."""
    if compressed:
        return GzipByteStream(path, buffer_size, compression_level)
    return PlainByteStream(path, buffer_size)


class TabularWriter:
    """
    CSV writer over a byte stream.

    Quotes fields containing the delimiter, the quote character or line
    breaks and doubles embedded quotes (``csv.QUOTE_MINIMAL``); rows end
    with ``\\n``.

    Attributes:
        path: File being written
        rows_written: Data rows written, header excluded
    """

    def __init__(self, stream: ByteStream, delimiter: str = ",") -> None:
        self.path = stream.path
        self.rows_written = 0
        self._stream = stream
        self._text = io.TextIOWrapper(stream.binary, encoding="utf-8", newline="")
        self._writer = csv.writer(
            self._text,
            delimiter=delimiter,
            quotechar='"',
            quoting=csv.QUOTE_MINIMAL,
            lineterminator="\n",
        )
        self._closed = False

    def write_header(self, fields: Sequence[str]) -> None:
        self._write(fields)

    def write_row(self, fields: Sequence[Any]) -> None:
        """
        Write one data row.

        Raises:
            SinkError: If the underlying write fails (SINK_002)
        """
        self._write(fields)
        self.rows_written += 1

    def _write(self, fields: Sequence[Any]) -> None:
        try:
            self._writer.writerow(fields)
        except OSError as e:
            raise SinkError(
                message=f"Writing {self.path} failed: {e}",
                error_code="SINK_002",
                details={"path": str(self.path)},
                original_exception=e,
            ) from e

    def close(self) -> None:
        """
        Flush and close the text layer and the byte stream.

        Raises:
            SinkError: If flushing or closing fails (SINK_003)
        """
        if self._closed:
            return
        self._closed = True
        try:
            try:
                self._text.flush()
                self._text.detach()
            finally:
                self._stream.close()
        except OSError as e:
            raise SinkError(
                message=f"Closing {self.path} failed: {e}",
                error_code="SINK_003",
                details={"path": str(self.path)},
                original_exception=e,
            ) from e


@contextmanager
def open_sink(
    path: Union[str, Path],
    header: Sequence[str],
    compressed: bool = False,
    delimiter: str = ",",
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    compression_level: int = 6,
) -> Iterator[TabularWriter]:
    """
    Open a TabularWriter, write ``header`` and close it on every exit path.

    On the error path a failing close is logged and the original error
    keeps propagating.

    Raises:
        ValidationError: If delimiter or buffer size is unusable (VAL_002)
        SinkError: If the file cannot be opened (SINK_001), written or closed

    Example:
        >>> with open_sink(tmp / "edges.csv", ["src_id", "dst_id", "edge_class_id"]) as out:
        ...     out.write_row([0, 5, 0])
    """
    if len(delimiter) != 1 or delimiter in ('"', "\r", "\n"):
        raise ValidationError(
            message=f"Invalid CSV delimiter {delimiter!r}", error_code="VAL_002"
        )
    if buffer_size < 1:
        raise ValidationError(
            message=f"buffer_size must be positive, got {buffer_size}", error_code="VAL_002"
        )

    path = Path(path)
    try:
        stream = open_byte_stream(path, compressed, buffer_size, compression_level)
    except OSError as e:
        raise SinkError(
            message=f"Cannot open {path} for writing: {e}",
            error_code="SINK_001",
            details={"path": str(path)},
            original_exception=e,
        ) from e

    writer = TabularWriter(stream, delimiter=delimiter)
    try:
        writer.write_header(header)
        yield writer
    except BaseException:
        try:
            writer.close()
        except SinkError as close_error:
            logger.warning("sink_close_failed_after_error", path=str(path), error=str(close_error))
        raise
    writer.close()
    logger.debug("sink_closed", path=str(path), rows=writer.rows_written, compressed=compressed)
