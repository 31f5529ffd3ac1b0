"""
Operator CLI for Localbase.

Inspects and maintains a persisted engine:
- tables: List tables with their row counts
- dump: Print the rows of a table as JSON
- seed: Fill empty tables from the built-in seeds or a YAML file
- reset: Empty one table, or all of them
- schema: Print the declared table schemas with their fingerprint
- refund: Run the refund_order procedure for one order

Usage:
    localbase --backend sqlite --db shop.db tables
    localbase --db shop.db dump orders --limit 5
    localbase --db shop.db seed --file seeds.yaml
    localbase --db shop.db refund 1003

Configuration comes from LOCALBASE_* environment variables; command line
flags override them.

Invariants:
    - Exit code 0 on success, 1 when the engine reports an error
    - seed and reset never trigger start-up seeding themselves
    - JSON output is deterministic (sorted keys)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

import json_log_formatter

from .config import Settings
from .engine import Engine, create_engine
from .errors import LocalbaseError
from .response import APIResponse
from .store.seed import load_seed_file

logger = logging.getLogger(__name__)

# Commands that must see storage exactly as persisted
_NO_AUTOSEED_COMMANDS = {"seed", "reset"}


def setup_logging(settings: Settings) -> None:
    """Configure root logging from settings.

    Args:
        settings: Engine settings (log_level, log_format)
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True, default=str)


def _parse_id(value: str) -> Any:
    """Numeric ids are passed as numbers, anything else as a string."""
    try:
        return int(value)
    except ValueError:
        return value


class LocalbaseCLI:
    """Command implementations; each returns a process exit code.

    Example:
        >>> cli = LocalbaseCLI(engine)
        >>> cli.tables()
        categories  3
        ...
        0
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _report_error(self, result: APIResponse) -> int:
        error = result.error
        message = error.message if error else "unknown error"
        print(f"Error ({result.status}): {message}", file=sys.stderr)
        if error and error.details:
            print(f"  details: {error.details}", file=sys.stderr)
        return 1

    def tables(self) -> int:
        names = self.engine.table_names()
        width = max((len(n) for n in names), default=0)
        for name in names:
            print(f"{name.ljust(width)}  {len(self.engine.store.rows(name))}")
        return 0

    def dump(self, table: str, limit: int | None = None) -> int:
        query = self.engine.table(table).select("*")
        if limit is not None:
            query = query.limit(limit)
        result = query.execute()
        if result.error is not None:
            return self._report_error(result)
        print(_dumps(result.data))
        return 0

    def seed(self, seed_file: str | None = None) -> int:
        try:
            seed_data = load_seed_file(seed_file) if seed_file else None
        except (OSError, ValueError) as e:
            print(f"Error: cannot load seed file: {e}", file=sys.stderr)
            return 1
        seeded = self.engine.seed(seed_data)
        if seeded:
            print(f"Seeded {len(seeded)} table(s): {', '.join(seeded)}")
        else:
            print("Nothing to seed; all seed tables already have rows")
        return 0

    def reset(self, table: str | None = None) -> int:
        cleared = self.engine.store.clear(table)
        print(f"Cleared {len(cleared)} table(s): {', '.join(cleared)}")
        return 0

    def schema(self) -> int:
        registry = self.engine.registry
        output = {
            "fingerprint": registry.fingerprint or "unfrozen",
            "schema": registry.to_dict(),
        }
        print(_dumps(output))
        return 0

    def refund(self, order_id: str) -> int:
        result = self.engine.rpc("refund_order", {"order_id": _parse_id(order_id)}).execute()
        if result.error is not None:
            return self._report_error(result)
        print(f"Order {order_id} refunded and cancelled")
        return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(prog="localbase", description="Localbase data engine tool")
    parser.add_argument("--backend", choices=["memory", "sqlite"], help="Storage backend")
    parser.add_argument("--db", dest="sqlite_path", help="SQLite file (implies --backend sqlite)")
    parser.add_argument("--log-level", help="Log level (default: from LOCALBASE_LOG_LEVEL)")
    parser.add_argument("--log-format", choices=["text", "json"], help="Log output format")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("tables", help="List tables and row counts")

    dump_parser = subparsers.add_parser("dump", help="Print the rows of a table as JSON")
    dump_parser.add_argument("table", help="Table name")
    dump_parser.add_argument("--limit", type=int, help="Maximum rows to print")

    seed_parser = subparsers.add_parser("seed", help="Fill empty tables with seed rows")
    seed_parser.add_argument("--file", help="YAML seed file (default: built-in seeds)")

    reset_parser = subparsers.add_parser("reset", help="Empty a table, or every table")
    reset_parser.add_argument("table", nargs="?", help="Table name (default: all)")

    subparsers.add_parser("schema", help="Print declared table schemas")

    refund_parser = subparsers.add_parser("refund", help="Refund and cancel an order")
    refund_parser.add_argument("order_id", help="Order id")

    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.sqlite_path:
        overrides["sqlite_path"] = args.sqlite_path
        overrides["storage_backend"] = args.backend or "sqlite"
    elif args.backend:
        overrides["storage_backend"] = args.backend
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format
    if args.command in _NO_AUTOSEED_COMMANDS:
        overrides["seed_on_start"] = False
    return Settings(**overrides)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = _settings_from_args(args)
    setup_logging(settings)

    try:
        engine = create_engine(settings)
    except (ValueError, OSError, LocalbaseError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    cli = LocalbaseCLI(engine)
    if args.command == "tables":
        return cli.tables()
    elif args.command == "dump":
        return cli.dump(args.table, args.limit)
    elif args.command == "seed":
        return cli.seed(args.file)
    elif args.command == "reset":
        return cli.reset(args.table)
    elif args.command == "schema":
        return cli.schema()
    elif args.command == "refund":
        return cli.refund(args.order_id)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
