"""
Exception hierarchy for sqlkg.

Defines all exception types with error codes, transient flags, and
correlation IDs. Per-row problems (dangling references) are never raised;
anything that threatens the consistency of the four output files is.

License: MIT
"""

import uuid
from typing import Any, Dict, Optional


class SqlKgError(Exception):
    """
    Base exception for all sqlkg errors.

    Provides standard error attributes: message, error_code, details,
    correlation_id.

    Attributes:
        message: Human-readable error message
        error_code: Programmatic error code (e.g., "SCHEMA_001")
        details: Additional context (dict)
        correlation_id: UUID for tracing one export run across layers
        original_exception: Wrapped exception (if any)
        is_transient: Whether error is transient (retryable)

    Example:
        raise SqlKgError(
            message="Operation failed",
            error_code="ERR_UNKNOWN",
            details={"table": "users"},
        )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "ERR_UNKNOWN",
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        original_exception: Optional[BaseException] = None,
    ):
        """
        Initialize SqlKgError.

        Args:
            message: Error message
            error_code: Error code for programmatic handling
            details: Additional context dict
            correlation_id: UUID for run tracing
            original_exception: Original wrapped exception
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.original_exception = original_exception
        self.is_transient = False

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary with all error information
        """
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "correlation_id": self.correlation_id,
            "original_error": str(self.original_exception) if self.original_exception else None,
        }


class ValidationError(SqlKgError):
    """
    Raised when caller input is invalid.

    Error Codes:
        VAL_001: Invalid output directory
        VAL_002: Invalid writer option (delimiter, buffer size, level)
        VAL_003: Invalid argument type

    Not transient.
    """

    def __init__(self, message: str, error_code: str = "VAL_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = False


# === Export Exceptions ===


class ExportError(SqlKgError):
    """
    Base exception for a failed export run.

    Error Codes:
        EXPORT_001: Unexpected failure during export

    Any ExportError means the output directory holds no new manifest and
    must not be treated as a complete export.
    """

    def __init__(self, message: str, error_code: str = "EXPORT_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = False


class SchemaError(ExportError):
    """
    Raised when the schema cannot be exported.

    Error Codes:
        SCHEMA_001: Table has no primary key
        SCHEMA_002: Composite primary key wider than supported
        SCHEMA_003: Primary key column missing from table
        SCHEMA_004: Duplicate (ambiguous) table name
        SCHEMA_005: Malformed foreign key declaration
        SCHEMA_006: Schema introspection failed

    Raised before any output is produced.
    """

    def __init__(self, message: str, error_code: str = "SCHEMA_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = False


class SourceError(ExportError):
    """
    Raised when rows cannot be read consistently.

    Error Codes:
        SRC_001: Row iteration failed in the row source
        SRC_002: NULL primary key value
        SRC_003: Row appeared between node and edge passes
        SRC_004: Duplicate primary key value

    Not retried by the core; retry policy belongs to the row source.
    """

    def __init__(self, message: str, error_code: str = "SRC_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = error_code == "SRC_001"


class SinkError(ExportError):
    """
    Raised when output files cannot be written.

    Error Codes:
        SINK_001: Cannot open output file
        SINK_002: Write failed
        SINK_003: Flush/close failed
        SINK_004: Publishing staged files failed

    Not transient.
    """

    def __init__(self, message: str, error_code: str = "SINK_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = False
