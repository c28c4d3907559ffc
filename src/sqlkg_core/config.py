"""
Configuration Management for sqlkg.

Provides centralized, type-safe configuration loading using Pydantic Settings.
Supports environment variables (prefix ``SQLKG_``), .env files, and defaults
that work without any configuration.

License: MIT
"""

from pathlib import Path
from typing import Any, Dict

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from sqlkg_core.logging_service import LOG_FORMATS, LOG_LEVELS


class SqlKgSettings(BaseSettings):
    """
    Centralized configuration for export runs.

    Configuration is loaded with the following priority (highest to lowest):
    1. System environment variables (``SQLKG_OUTPUT_DIR``, ``SQLKG_COMPRESSED``, ...)
    2. .env file in the working directory
    3. Hardcoded default values

    Example:
        ```python
        from sqlkg_core.config import SqlKgSettings

        settings = SqlKgSettings(compressed=True)
        print(settings.output_dir)  # PosixPath('kg_export')
        ```
    """

    # ========================================
    # OUTPUT CONFIGURATION
    # ========================================

    output_dir: Path = Field(
        default=Path("./kg_export"), description="Directory receiving the four CSV artifacts"
    )

    compressed: bool = Field(
        default=False, description="Gzip every output file (run-wide toggle)"
    )

    csv_delimiter: str = Field(default=",", description="Single-character field delimiter")

    compression_level: int = Field(
        default=6, ge=1, le=9, description="Gzip compression level when compressed=True"
    )

    write_buffer_size: int = Field(
        default=1024 * 1024,
        ge=4096,
        le=64 * 1024 * 1024,
        description="Write buffer size per output file in bytes",
    )

    # ========================================
    # EXTRACTION CONFIGURATION
    # ========================================

    max_key_columns: int = Field(
        default=3,
        ge=1,
        le=16,
        description="Widest composite primary key accepted before raising SchemaError",
    )

    dangling_sample_limit: int = Field(
        default=10,
        ge=0,
        le=10_000,
        description="Dangling references kept in the summary for diagnostics",
    )

    fetch_size: int = Field(
        default=1000, ge=1, le=1_000_000, description="Rows fetched per database round trip"
    )

    # ========================================
    # LOGGING CONFIGURATION
    # ========================================

    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_format: str = Field(default="json", description="Log format (json, console)")

    # ========================================
    # VALIDATORS
    # ========================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate log level is one of allowed values.

        Raises:
            ValueError: If log level not in allowed values
        """
        v_upper = v.upper()
        if v_upper not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got '{v}'")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got '{v}'")
        return v_lower

    @field_validator("csv_delimiter")
    @classmethod
    def validate_csv_delimiter(cls, v: str) -> str:
        """
        Validate the delimiter is one character and does not collide with
        quoting, line breaks or the multi-label separator.

        Raises:
            ValueError: If the delimiter is unusable
        """
        if len(v) != 1:
            raise ValueError(f"csv_delimiter must be a single character, got {v!r}")
        if v in ('"', "|", "\r", "\n"):
            raise ValueError(f"csv_delimiter cannot be {v!r}")
        return v

    # ========================================
    # PYDANTIC CONFIGURATION
    # ========================================

    model_config = {
        "env_prefix": "SQLKG_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "validate_assignment": True,
        "extra": "forbid",
    }


# ============================================================
# HELPER FUNCTIONS
# ============================================================


def get_config_summary(settings: SqlKgSettings) -> Dict[str, Any]:
    """
    Get configuration summary for logging/debugging.

    Args:
        settings: SqlKgSettings instance

    Returns:
        Configuration summary grouped by category
    """
    return {
        "output": {
            "output_dir": str(settings.output_dir),
            "compressed": settings.compressed,
            "csv_delimiter": settings.csv_delimiter,
            "compression_level": settings.compression_level,
            "write_buffer_size": settings.write_buffer_size,
        },
        "extraction": {
            "max_key_columns": settings.max_key_columns,
            "dangling_sample_limit": settings.dangling_sample_limit,
            "fetch_size": settings.fetch_size,
        },
        "logging": {
            "level": settings.log_level,
            "format": settings.log_format,
        },
    }
