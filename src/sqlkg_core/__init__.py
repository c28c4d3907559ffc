"""
sqlkg Core Layer.

Contains:
- Exception hierarchy
- Configuration management
- Logging service
- Graph extraction (ID allocation, node and edge passes)
- Output sinks

License: MIT
"""

from .config import SqlKgSettings, get_config_summary
from .exceptions import (
    ExportError,
    SchemaError,
    SinkError,
    SourceError,
    SqlKgError,
    ValidationError,
)
from .graph import GraphExporter, export
from .logging_service import LoggingConfig, LoggingService
from .models import DanglingReference, EdgeClass, ExportSummary, NodeClass

__version__ = "0.1.0"

__all__ = [
    "export",
    "GraphExporter",
    "ExportSummary",
    "NodeClass",
    "EdgeClass",
    "DanglingReference",
    "SqlKgSettings",
    "get_config_summary",
    "LoggingConfig",
    "LoggingService",
    "SqlKgError",
    "ValidationError",
    "ExportError",
    "SchemaError",
    "SourceError",
    "SinkError",
]
