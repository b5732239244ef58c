"""
Command-line tool for bitemporal SQLite tables.

Commands:
- check: Run the consistency checker over every version chain
- history: Print the version chain of one row
- get: Print the version of one row valid at a given time

Usage:
    datatable check --database prices.db --table prices
    datatable history --database prices.db --table prices --id 7
    datatable get --database prices.db --table prices --id 7 --time 2015-06-01

Invariants:
    - Output on stdout is JSON with sorted keys
    - Exit code 1 means issues were found or the row does not exist
    - Nothing is ever written to the database

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for scripts parsing it
"""

from __future__ import annotations

import argparse
import json
import logging
import sqlite3
import sys
from typing import Any, Dict, List, Optional, Sequence

import json_log_formatter

from .. import timestring
from ..config import DataTableSettings
from ..errors import DataTableError
from ..store.sqlite import connect_sqlite
from ..temporal.engine import BitemporalTable

logger = logging.getLogger(__name__)


def setup_logging(settings: DataTableSettings) -> None:
    """Configure root logging from settings.

    Logs go to stderr so they never mix with the JSON on stdout.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


class DataTableCLI:
    """Read-only inspection of a bitemporal table.

    Example:
        >>> cli = DataTableCLI(connect_sqlite("prices.db"), DataTableSettings())
        >>> issues = cli.check("prices")
    """

    def __init__(self, connection: sqlite3.Connection, settings: DataTableSettings) -> None:
        self._conn = connection
        self._settings = settings

    def _open(self, table: str) -> BitemporalTable:
        return BitemporalTable.from_sqlite(self._conn, table, self._settings)

    def check(self, table: str) -> List[Dict[str, Any]]:
        """Return every consistency issue as a dict."""
        return [issue.to_dict() for issue in self._open(table).check_consistency()]

    def history(self, table: str, row_id: int) -> List[Dict[str, Any]]:
        """Return all versions of a row, oldest first.

        Raises:
            RowDoesNotExist: If the row never existed
        """
        return self._open(table).get_row_history(row_id)

    def get(self, table: str, row_id: int, time: Optional[str] = None) -> Dict[str, Any]:
        """Return the version of a row valid at ``time`` (now if None).

        Raises:
            RowDoesNotExist: If no version is valid at that time
            InvalidTime: If ``time`` cannot be parsed
        """
        return self._open(table).get_row_with_time(row_id, time or timestring.now())


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect bitemporal datatable tables")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_table_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--database", "-d", required=True, help="SQLite database file")
        sub.add_argument("--table", "-t", required=True, help="Table name")

    # check command
    check_parser = subparsers.add_parser("check", help="Check version chains for consistency")
    add_table_args(check_parser)

    # history command
    history_parser = subparsers.add_parser("history", help="Show all versions of a row")
    add_table_args(history_parser)
    history_parser.add_argument("--id", type=int, required=True, help="Logical row id")

    # get command
    get_parser = subparsers.add_parser("get", help="Show a row as of a point in time")
    add_table_args(get_parser)
    get_parser.add_argument("--id", type=int, required=True, help="Logical row id")
    get_parser.add_argument("--time", help="Point in time (default: now)")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    settings = DataTableSettings()
    settings.validate_settings()
    setup_logging(settings)

    conn = connect_sqlite(args.database, settings)
    cli = DataTableCLI(conn, settings)
    try:
        if args.command == "check":
            issues = cli.check(args.table)
            _print_json(issues)
            sys.exit(1 if issues else 0)

        elif args.command == "history":
            _print_json(cli.history(args.table, args.id))

        elif args.command == "get":
            _print_json(cli.get(args.table, args.id, args.time))

    except DataTableError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
