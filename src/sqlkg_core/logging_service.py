"""
LoggingService - Centralized structured logging for sqlkg.

Provides consistent, context-enriched, machine-readable logging across
the extraction core, the database backends and the CLI using structlog.

License: MIT
"""

import logging
import sys
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog
from structlog.types import Processor

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_FORMATS = ["json", "console"]


@dataclass
class LoggingConfig:
    """
    Configuration for LoggingService.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format ("json", or "console" for interactive use)
        output_stream: Output destination (default: sys.stderr)
        sensitive_keys: Keys whose values are redacted in logged metadata

    Example:
        config = LoggingConfig(level="INFO", format="console")
    """

    level: str = "INFO"
    format: str = "json"
    output_stream: Any = sys.stderr
    sensitive_keys: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not self.sensitive_keys:
            self.sensitive_keys = {
                "password",
                "passwd",
                "pwd",
                "dsn",
                "connection_string",
                "secret",
                "token",
                "auth",
            }


class LoggingService:
    """
    Centralized structured logging service using structlog.

    Logs go to stderr so the CLI can keep stdout for the export summary.

    Example:
        LoggingService.configure_logging(level="INFO", format="json")
        logger = LoggingService.get_logger("sqlkg.cli")
        logger.info("export_started", output_dir="/tmp/kg")
    """

    # Class-level state
    _configured: bool = False
    _log_level: str = "INFO"
    _config: Optional[LoggingConfig] = None
    _loggers: dict[str, structlog.BoundLogger] = {}
    _sensitive_keys: set[str] = set()

    @classmethod
    def configure_logging(
        cls, level: str = "INFO", format: str = "json", config: Optional[LoggingConfig] = None
    ) -> None:
        """
        Configure global structured logging.

        Must be called once at startup, before any logging.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            format: Output format ("json" or "console")
            config: Optional LoggingConfig for advanced configuration

        Raises:
            ValueError: If level or format is invalid
            RuntimeError: If called after logging already configured
        """
        if cls._configured:
            raise RuntimeError("Logging already configured")

        if config is not None:
            cfg = config
        else:
            level_upper = level.upper()
            if level_upper not in LOG_LEVELS:
                raise ValueError(
                    f"Invalid log level: {level}. Must be one of: {', '.join(LOG_LEVELS)}"
                )

            format_lower = format.lower()
            if format_lower not in LOG_FORMATS:
                raise ValueError(f"Invalid format: {format}. Must be 'json' or 'console'")

            cfg = LoggingConfig(level=level_upper, format=format_lower)

        cls._config = cfg
        cls._log_level = cfg.level
        cls._sensitive_keys = cfg.sensitive_keys

        structlog.configure(
            processors=cls._setup_processors(),
            wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, cfg.level)),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=cfg.output_stream),
            cache_logger_on_first_use=True,
        )

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> structlog.BoundLogger:
        """
        Get a module/component-specific logger.

        Args:
            name: Logger name (typically module path)

        Returns:
            Cached BoundLogger for ``name``

        Raises:
            RuntimeError: If logging not configured yet
            ValueError: If name is empty or too long
        """
        if not cls._configured:
            raise RuntimeError("Logging not configured. Call configure_logging() first.")

        if not name:
            raise ValueError("Logger name cannot be empty")

        if len(name) > 200:
            raise ValueError("Logger name exceeds maximum length (200)")

        if name in cls._loggers:
            return cls._loggers[name]

        logger = structlog.get_logger(name)
        cls._loggers[name] = logger
        return logger

    @classmethod
    def log_operation(
        cls,
        operation: str,
        correlation_id: str,
        metadata: Optional[dict[str, Any]] = None,
        logger_name: str = "sqlkg",
        level: str = "info",
    ) -> None:
        """
        Log an operation with full context.

        Args:
            operation: Operation name (e.g., "export", "node_pass")
            correlation_id: Run identifier
            metadata: Additional context, sanitized before logging
            logger_name: Which logger to use
            level: Log level

        Raises:
            ValueError: If operation or correlation_id is empty
        """
        if not operation:
            raise ValueError("operation cannot be empty")

        if not correlation_id:
            raise ValueError("correlation_id cannot be empty")

        logger = cls.get_logger(logger_name)

        context: Dict[str, Any] = {
            "operation": operation,
            "correlation_id": correlation_id,
        }
        if metadata:
            context.update(cls._sanitize_metadata(metadata))

        getattr(logger, level.lower())(operation, **context)

    @classmethod
    def log_error(
        cls,
        error: BaseException,
        correlation_id: str,
        context: Optional[dict[str, Any]] = None,
        logger_name: str = "sqlkg",
        include_stack_trace: bool = True,
    ) -> None:
        """
        Log an error with its code, context and (optionally) stack trace.

        Args:
            error: Exception instance
            correlation_id: Run identifier
            context: Where/why the error occurred
            logger_name: Which logger to use
            include_stack_trace: Whether to include the current traceback

        Raises:
            ValueError: If correlation_id is empty

        Example:
            try:
                exporter.export(...)
            except SinkError as e:
                LoggingService.log_error(e, correlation_id=run_id)
                raise
        """
        if not correlation_id:
            raise ValueError("correlation_id cannot be empty")

        logger = cls.get_logger(logger_name)

        log_context: Dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "correlation_id": correlation_id,
        }

        error_code = getattr(error, "error_code", None)
        if error_code:
            log_context["error_code"] = error_code

        if context:
            log_context.update(cls._sanitize_metadata(context))

        if include_stack_trace:
            log_context["stack_trace"] = traceback.format_exc()

        logger.error("error_occurred", **log_context)

    @classmethod
    def log_performance(
        cls,
        operation: str,
        duration_ms: float,
        correlation_id: str,
        metadata: Optional[dict[str, Any]] = None,
        logger_name: str = "sqlkg",
    ) -> None:
        """
        Log the duration of an operation.

        Raises:
            ValueError: If operation/correlation_id empty or duration_ms < 0
        """
        if not operation:
            raise ValueError("operation cannot be empty")

        if not correlation_id:
            raise ValueError("correlation_id cannot be empty")

        if duration_ms < 0:
            raise ValueError("duration_ms cannot be negative")

        logger = cls.get_logger(logger_name)

        context: Dict[str, Any] = {
            "operation": operation,
            "duration_ms": duration_ms,
            "correlation_id": correlation_id,
        }
        if metadata:
            context.update(cls._sanitize_metadata(metadata))

        logger.info("performance_metric", **context)

    @classmethod
    def _sanitize_metadata(cls, data: dict[str, Any]) -> dict[str, Any]:
        """
        Replace values of sensitive keys with "[REDACTED]".

        Recurses into nested dicts and dicts inside lists.
        """
        if not isinstance(data, dict):
            return data

        sanitized: Dict[str, Any] = {}
        for key, value in data.items():
            if key.lower() in cls._sensitive_keys:
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = cls._sanitize_metadata(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    cls._sanitize_metadata(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                sanitized[key] = value

        return sanitized

    @classmethod
    def _setup_processors(cls) -> list[Processor]:
        """
        Build the structlog processor chain.

        Processors (in order): log level, ISO timestamp, stack info,
        exception formatting, then the JSON or console renderer.
        """
        processors: list[Processor] = [
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]

        if cls._config and cls._config.format == "console":
            processors.append(structlog.dev.ConsoleRenderer(colors=False))
        else:
            processors.append(structlog.processors.JSONRenderer())

        return processors
