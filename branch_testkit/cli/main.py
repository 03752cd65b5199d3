#!/usr/bin/env python3
"""test-cli - Database Branching Test Helper.

Usage:
    test-cli <database> <command> [arguments]
    test-cli version
    test-cli help
"""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn, Optional, Sequence

from pydantic import ValidationError

from ..config import CliConfig, LogConfig
from ..control.polling import Deadline
from ..dto import PROFILES, Dialect, ScenarioExpectation
from ..errors import BranchTestkitError, ConfigurationError
from ..logger import LogManager
from .commands import BranchTestRunner

__version__ = "0.2.0"

EXAMPLES = """\
MySQL Commands:
  test-cli mysql verify-scenario <namespace> <scenario> <users> <orders> <mode> <password>
  test-cli mysql query-source <namespace> <query> <password>
  test-cli mysql query-branch <namespace> <scenario> <query> <password>
  test-cli mysql wait-source <namespace> <password>
  test-cli mysql wait-namespace-deletion <namespace>
  test-cli mysql test-race-condition <namespace> <scenario> <password>

PostgreSQL Commands:
  test-cli postgres verify-scenario <namespace> <scenario> <users> <orders> <products> <mode>
  test-cli postgres query-source <namespace> <query>
  test-cli postgres query-branch <namespace> <scenario> <query>
  test-cli postgres wait-source <namespace>
  test-cli postgres wait-namespace-deletion <namespace>
  test-cli postgres test-race-condition <namespace> <scenario>

Global Commands:
  version     Print version information
  help        Show this help message

Examples:
  test-cli mysql verify-scenario test-mirrord env-val 2 4 "full copy" password123
  test-cli postgres verify-scenario test-mirrord env-val 5 5 4 "full copy"
"""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}\n")


def _add_database_parser(
    subparsers: "argparse._SubParsersAction[_ArgumentParser]", dialect: Dialect
) -> None:
    profile = PROFILES[dialect]
    parser = subparsers.add_parser(
        dialect.value, help=f"{dialect.value} database operations"
    )
    commands = parser.add_subparsers(dest="command", metavar="<command>")
    commands.required = True

    def with_password(sub: argparse.ArgumentParser) -> argparse.ArgumentParser:
        if profile.requires_password:
            sub.add_argument("password", help="root password of the database")
        return sub

    verify = commands.add_parser(
        "verify-scenario", help="Compare branch row counts with expected values"
    )
    verify.add_argument("namespace")
    verify.add_argument("scenario")
    for table in profile.count_tables:
        verify.add_argument(table, help=f"expected {table} row count")
    verify.add_argument("mode", help='mode label, e.g. "full copy"')
    with_password(verify)

    source = commands.add_parser("query-source", help="Run a query on the source")
    source.add_argument("namespace")
    source.add_argument("query")
    with_password(source)

    branch = commands.add_parser("query-branch", help="Run a query on a branch")
    branch.add_argument("namespace")
    branch.add_argument("scenario")
    branch.add_argument("query")
    with_password(branch)

    wait_source = commands.add_parser(
        "wait-source", help="Wait for the source database to accept queries"
    )
    wait_source.add_argument("namespace")
    with_password(wait_source)

    wait_ns = commands.add_parser(
        "wait-namespace-deletion", help="Wait for a namespace to disappear"
    )
    wait_ns.add_argument("namespace")

    race = commands.add_parser(
        "test-race-condition",
        help="Check the branch accepts connections as soon as it is Ready",
    )
    race.add_argument("namespace")
    race.add_argument("scenario")
    with_password(race)


def build_parser() -> _ArgumentParser:
    parser = _ArgumentParser(
        prog="test-cli",
        description="test-cli - Database Branching Test Helper",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="database", metavar="<database>")
    _add_database_parser(subparsers, Dialect.MYSQL)
    _add_database_parser(subparsers, Dialect.POSTGRES)
    subparsers.add_parser("version", help="Print version information")
    subparsers.add_parser("help", help="Show this help message")
    return parser


def run_command(args: argparse.Namespace, cli_config: CliConfig) -> None:
    dialect = Dialect(args.database)
    profile = PROFILES[dialect]
    runner = BranchTestRunner(
        profile,
        args.namespace,
        password=getattr(args, "password", None),
        cli_config=cli_config,
        deadline=Deadline(cli_config.global_timeout_sec),
    )

    command = args.command
    if command == "verify-scenario":
        expectation = ScenarioExpectation(
            scenario=args.scenario,
            mode=args.mode,
            counts={table: getattr(args, table) for table in profile.count_tables},
        )
        runner.verify_scenario(expectation)
    elif command == "query-source":
        runner.query_source(args.query)
    elif command == "query-branch":
        runner.query_branch(args.scenario, args.query)
    elif command == "wait-source":
        runner.wait_source()
    elif command == "wait-namespace-deletion":
        runner.wait_namespace_deletion()
    elif command == "test-race-condition":
        runner.race_condition(args.scenario)
    else:
        raise BranchTestkitError(f"unknown {dialect.value} command: {command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)

    if not argv:
        parser.print_help(sys.stderr)
        return 1

    args = parser.parse_args(argv)

    if args.database == "version":
        print(f"test-cli version {__version__}")
        return 0
    if args.database == "help":
        parser.print_help()
        return 0
    try:
        LogManager.configure(LogConfig())
        cli_config = CliConfig()
    except ValidationError as exc:
        error = ConfigurationError("invalid configuration", cause=exc)
        print(f"Error: {error}", file=sys.stderr)
        return 1

    try:
        run_command(args, cli_config)
    except BranchTestkitError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
