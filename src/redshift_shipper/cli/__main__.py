"""
Unified CLI entry point for Redshift Shipper.

Usage:
    python -m redshift_shipper.cli <command> [options]

Available commands:
    ship   - Flush a file of JSON-lines records to Redshift as one chunk
    check  - Show the target table's columns as the encoder will see them

Examples:
    # Ship a file of records
    python -m redshift_shipper.cli ship --config config/redshift.yml --input events.jsonl

    # Read records from stdin with a custom tag
    cat events.jsonl | python -m redshift_shipper.cli ship --config config/redshift.yml --tag app.access

    # Inspect the target table
    python -m redshift_shipper.cli check --config config/redshift.yml
"""

import argparse
import sys
from typing import List, Optional

from redshift_shipper.cli.ship import EXIT_CONFIG_ERROR, run_check, run_ship
from redshift_shipper.config import ConfigurationError, load_settings
from redshift_shipper.utils.logging import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redshift_shipper.cli",
        description="Redshift Shipper CLI - ship buffered log records to Redshift",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (overrides log_level from the configuration)",
    )
    parser.add_argument(
        "--log-to-file",
        action="store_true",
        default=False,
        help="Also write logs to a daily rotated file",
    )
    parser.add_argument(
        "--log-file-dir",
        default="logs",
        help="Directory for log files when --log-to-file is set",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
        help="Command to execute",
    )

    ship_parser = subparsers.add_parser(
        "ship",
        help="Flush JSON-lines records to Redshift",
        description="Buffer every record of the input as one chunk and flush it",
    )
    ship_parser.add_argument("--config", required=True, help="YAML settings file")
    ship_parser.add_argument(
        "--input",
        default="-",
        help="JSON-lines file with one record per line ('-' for stdin)",
    )
    ship_parser.add_argument(
        "--tag", default="redshift_shipper.cli", help="Tag passed to format()"
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Show the target table's columns",
        description="Fetch the column list of the configured Redshift table",
    )
    check_parser.add_argument("--config", required=True, help="YAML settings file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point with subcommand routing.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for flush failures, 2 for configuration
        or unreadable input)
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(
        args.log_level or settings.log_level,
        log_to_file=args.log_to_file,
        log_file_dir=args.log_file_dir,
    )

    if args.command == "ship":
        return run_ship(settings, args.input, args.tag)
    return run_check(settings)


if __name__ == "__main__":
    sys.exit(main())
