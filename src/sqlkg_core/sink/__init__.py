"""
Output layer: CSV writers and the staged, atomically published export
directory.
"""

from sqlkg_core.sink.staging import MANIFEST_NAME, ExportStaging
from sqlkg_core.sink.tabular_sink import (
    GzipByteStream,
    PlainByteStream,
    TabularWriter,
    artifact_filename,
    open_byte_stream,
    open_sink,
)

__all__ = [
    "ExportStaging",
    "MANIFEST_NAME",
    "TabularWriter",
    "PlainByteStream",
    "GzipByteStream",
    "artifact_filename",
    "open_byte_stream",
    "open_sink",
]
