"""CLI entry for SoraQL.

Modes:
  soraql --sql "QUERY"       Execute one query and exit
  soraql --schema            Print the raw schema document
  echo "QUERY" | soraql      Run each piped line as a statement
  soraql                     Start the interactive shell
"""
from __future__ import annotations
import argparse
import json
import logging
import sys
from typing import List, Optional, TextIO

from soraql import __version__
from soraql.cli.repl import SessionState, run_piped, start_repl
from soraql.core.api_client import ApiClient
from soraql.core.errors import QueryCancelled, SoraQLException, TimeWindowError
from soraql.core.executor import PollSettings, QueryExecutor
from soraql.core.models import Query
from soraql.core.timewindow import TimeWindow, parse_time_window
from soraql.utils.config import config, load_profile
from soraql.utils.constants import DEFAULT_OUTPUT_FORMAT, SUPPORTED_OUTPUT_FORMATS
from soraql.utils.logging_setup import DEFAULT_LEVEL, configure_logging

logger = logging.getLogger(__name__)

EPILOG = """Time window examples:
  soraql --from '-24h' --to now --sql "select * from SIM_SESSION_EVENTS"
  soraql --from 1640995200 --to 1641081600 --sql "select * from SIM_SNAPSHOTS"
  soraql --from '2024-01-01 00:00:00' --to '2024-01-02 00:00:00' --sql "select * from CELL_TOWERS"

Profiles are read from ~/.soracom/PROFILE.json (email/password or
authKeyId/authKey, coverageType 'jp' or 'g', optional endpoint and headers).

Exit commands in the shell: exit, quit, \\q, .exit, .quit"""


def _is_piped(stream: TextIO) -> bool:
    try:
        return not stream.isatty()
    except (AttributeError, ValueError):
        return False


def authenticate(profile_name: str) -> ApiClient:
    profile = load_profile(profile_name)
    client = ApiClient.from_profile(profile, timeout=config.get('request_timeout'))
    client.authenticate(profile)
    return client


def cmd_schema(client: ApiClient, out: TextIO) -> int:
    try:
        body = client.get_schemas_raw()
    except SoraQLException as e:
        print(f"Failed to get schemas: {e}", file=sys.stderr)
        return 1
    try:
        print(json.dumps(json.loads(body), indent=2, ensure_ascii=False), file=out)
    except ValueError:
        print(body.decode('utf-8', errors='replace'), file=out)
    return 0


def cmd_sql(executor: QueryExecutor, sql: str, window: TimeWindow, args: argparse.Namespace,
            out: TextIO) -> int:
    query = Query(sql, from_time=window.from_time, to_time=window.to_time)
    try:
        executor.run(query, output_format=args.output_format, out=out,
                     show_progress=False, open_file=args.open)
    except QueryCancelled:
        return 0
    except SoraQLException as e:
        print(f"Failed to execute query: {e}", file=sys.stderr)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='soraql', description='SQL client for the Soracom Query analysis API',
                                epilog=EPILOG, formatter_class=argparse.RawDescriptionHelpFormatter)
    p.add_argument('--profile', default='default', help="Soracom CLI profile to use (default: 'default')")
    p.add_argument('--sql', help='SQL query to execute')
    p.add_argument('--schema', action='store_true', help='Retrieve schema information only')
    p.add_argument('--debug', action='store_true', help='Show debug messages (auth, HTTP requests, poll states)')
    p.add_argument('--open', action='store_true', help='Open result file in text editor')
    p.add_argument('--from', dest='from_time', default='',
                   help="Start time (Unix timestamp, relative like '-24h', or datetime)")
    p.add_argument('--to', dest='to_time', default='',
                   help="End time (Unix timestamp, relative, 'now', or datetime)")
    p.add_argument('--format', dest='output_format', default=None,
                   help='Output format: table, csv, json (default: table)')
    p.add_argument('-s', '--silent', action='store_true',
                   help='Suppress animations (default for piped input and --sql)')
    p.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return p


def run(args: argparse.Namespace, stdin: Optional[TextIO] = None, out: Optional[TextIO] = None) -> int:
    """Execute the selected mode and return the process exit code."""
    stdin = stdin or sys.stdin
    out = out or sys.stdout

    try:
        window = parse_time_window(args.from_time, args.to_time)
    except TimeWindowError as e:
        print(f"Time parsing error: {e}", file=sys.stderr)
        return 1

    fmt = (args.output_format or config.get('output_format') or DEFAULT_OUTPUT_FORMAT).lower()
    if fmt not in SUPPORTED_OUTPUT_FORMATS:
        print(f"Invalid format '{fmt}'. Supported formats: {', '.join(SUPPORTED_OUTPUT_FORMATS)}", file=sys.stderr)
        return 1
    args.output_format = fmt

    piped = _is_piped(stdin)
    silent = args.silent or piped or bool(args.sql)

    try:
        client = authenticate(args.profile)
    except SoraQLException as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        return 1

    if args.schema:
        return cmd_schema(client, out)

    executor = QueryExecutor(client, PollSettings.from_config(config), scratch_dir=config.ensure_scratch_dir())
    if args.sql:
        return cmd_sql(executor, args.sql, window, args, out)

    state = SessionState(
        profile_name=args.profile,
        output_format=fmt,
        debug=args.debug,
        silent=silent,
        open_file=args.open,
        window=window,
    )
    if piped:
        run_piped(client, executor, state, stdin)
    else:
        state.history_file = config.history_path()
        start_repl(client, executor, state)
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging('DEBUG' if args.debug else (config.get('log_level') or DEFAULT_LEVEL),
                      log_file=config.get('log_file'))
    try:
        code = run(args)
    except KeyboardInterrupt:
        print(file=sys.stderr)
        logger.warning("Operation interrupted by user")
        sys.exit(130)
    sys.exit(code)


if __name__ == '__main__':
    main()
