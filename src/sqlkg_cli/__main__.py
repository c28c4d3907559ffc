"""
sqlkg CLI entry point.

Usage:
    sqlkg export --database PATH --output DIR [--compress] [--delimiter C]
    sqlkg --help
    sqlkg --version

The export summary is printed as JSON on stdout; logs go to stderr.
"""

import argparse
import json
import sys
import uuid
from pathlib import Path
from typing import List, Optional

import pydantic

from sqlkg_core import __version__
from sqlkg_core.config import SqlKgSettings, get_config_summary
from sqlkg_core.exceptions import SqlKgError
from sqlkg_core.graph import GraphExporter
from sqlkg_core.logging_service import LOG_FORMATS, LOG_LEVELS, LoggingService
from sqlkg_db import ConnectionError, SQLiteDatabase

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sqlkg", description="Export a relational database as a property graph"
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # export command
    export_parser = subparsers.add_parser(
        "export", help="Write nodes, edges and class tables as CSV"
    )
    export_parser.add_argument(
        "--database", type=Path, required=True, help="Path to the SQLite database file"
    )
    export_parser.add_argument(
        "--output", type=Path, required=True, help="Output directory for the four artifacts"
    )
    export_parser.add_argument(
        "--compress", action="store_true", help="Gzip every output file"
    )
    export_parser.add_argument(
        "--delimiter", default=None, help="CSV field delimiter (default: ',')"
    )
    export_parser.add_argument(
        "--log-level", default=None, choices=LOG_LEVELS, type=str.upper, help="Log level"
    )
    export_parser.add_argument(
        "--log-format", default=None, choices=LOG_FORMATS, type=str.lower, help="Log format"
    )

    return parser


def export_command(args: argparse.Namespace) -> int:
    """
    Run the export subcommand.

    Returns:
        Process exit code
    """
    overrides = {"output_dir": args.output, "compressed": args.compress}
    if args.delimiter is not None:
        overrides["csv_delimiter"] = args.delimiter
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.log_format is not None:
        overrides["log_format"] = args.log_format

    try:
        settings = SqlKgSettings(**overrides)
    except pydantic.ValidationError as e:
        print(f"sqlkg: invalid configuration: {e}", file=sys.stderr)
        return EXIT_FAILED

    LoggingService.configure_logging(level=settings.log_level, format=settings.log_format)
    correlation_id = str(uuid.uuid4())
    LoggingService.log_operation(
        "cli_export_started",
        correlation_id=correlation_id,
        metadata={"database": str(args.database), **get_config_summary(settings)},
    )

    try:
        with SQLiteDatabase(args.database, fetch_size=settings.fetch_size) as db:
            summary = GraphExporter(db, db, settings=settings).export()
    except KeyboardInterrupt:
        LoggingService.log_operation(
            "cli_export_interrupted", correlation_id=correlation_id, level="WARNING"
        )
        return EXIT_INTERRUPTED
    except (SqlKgError, ConnectionError) as e:
        LoggingService.log_error(
            e,
            correlation_id=correlation_id,
            context={"database": str(args.database)},
            include_stack_trace=False,
        )
        error = e.to_dict() if isinstance(e, SqlKgError) else {
            "error": type(e).__name__,
            "message": str(e),
        }
        print(json.dumps(error, default=str), file=sys.stderr)
        return EXIT_FAILED

    LoggingService.log_performance(
        "export",
        duration_ms=summary.export_time_ms,
        correlation_id=correlation_id,
        metadata={"nodes": summary.node_count, "edges": summary.edge_count},
    )
    json.dump(summary.to_dict(), sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "export":
        sys.exit(export_command(args))
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
