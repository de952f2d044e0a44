r"""Interactive shell and piped-input driver.

Meta-commands (prefix with a dot, case-insensitive):
  .tables                          List tables
  .schema [TABLE]                  Show columns of all tables or one table
  .window [show|clear|<from> <to>] Show / clear / set the query time window
  .debug [on|off|show]             Toggle debug logging
  .format [table|csv|json|show]    Show / set output format
  .ask <question>                  Ask the SQL assistant and run its suggestion
  .history [n]                     Show the last n statements (default 20)
  .export <path> [fmt]             Export last result (csv|json|jsonl|excel|parquet)
  .timing [on|off]                 Show / toggle per-query timing
  .help                            Show this help
  exit, quit, \q, .exit, .quit     Leave the shell
SQL statements end with ';' in the interactive shell; piped input runs one
statement per line.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TextIO
import json
import logging
import os
import sys
import time

from soraql.core.api_client import ApiClient
from soraql.core.errors import QueryCancelled, SoraQLException, TimeWindowError
from soraql.core.executor import QueryExecutor
from soraql.core.models import Query, ResultTable, TableColumn
from soraql.core.output_writer import export_result
from soraql.core.progress import spinner
from soraql.core.schema import describe_schema, list_tables
from soraql.core.timewindow import TimeWindow, parse_time_window
from soraql.utils.constants import (
    DEFAULT_OUTPUT_FORMAT, EXIT_COMMANDS, KNOWN_TABLES, SQL_KEYWORDS, SUPPORTED_OUTPUT_FORMATS
)
from soraql.utils.logging_setup import set_debug
from soraql.utils.string_utils import display_width, pad_right, truncate_string

try:
    import readline  # type: ignore
except ImportError:  # pragma: no cover
    readline = None

logger = logging.getLogger(__name__)
MORE_PROMPT = "   ...> "

META_COMMANDS = [
    '.tables', '.schema', '.window', '.debug', '.format', '.ask', '.history',
    '.export', '.timing', '.help', '.exit', '.quit'
]
TABLES_BOX_WIDTH = 42
ALL_SCHEMAS_DESC_WIDTH = 40
TABLE_SCHEMA_DESC_WIDTH = 50
DEFAULT_HISTORY_SHOWN = 20

WINDOW_USAGE = """Usage: .window [show|clear|<from> <to>]
Examples:
  .window show          # Show current time window
  .window clear         # Clear time window
  .window -24h now      # Set window from 24 hours ago to now
  .window 1640995200 1641081600  # Set specific timestamps"""

DEBUG_USAGE = """Usage: .debug [on|off|show]
Examples:
  .debug        # Toggle debug mode
  .debug on     # Enable debug mode
  .debug off    # Disable debug mode
  .debug show   # Show current debug status"""

FORMAT_USAGE = """Usage: .format [table|csv|json|show]
Examples:
  .format           # Show current format
  .format table     # Set format to table
  .format csv       # Set format to CSV
  .format json      # Set format to JSON
  .format show      # Show current format"""

# Global session for tab completion
_GLOBAL_SESS: Optional["Session"] = None


def is_exit_command(text: str) -> bool:
    return text.strip().lower() in EXIT_COMMANDS


def is_meta_command(text: str) -> bool:
    return text.strip().startswith('.')


@dataclass
class SessionState:
    """Mutable per-session settings, owned by the control thread."""
    profile_name: str = 'default'
    output_format: str = DEFAULT_OUTPUT_FORMAT
    debug: bool = False
    silent: bool = False
    timing: bool = False
    open_file: bool = False
    window: TimeWindow = field(default_factory=TimeWindow)
    history: List[str] = field(default_factory=list)
    history_file: Optional[str] = None
    last_result: Optional[ResultTable] = None

    def load_history(self) -> None:
        if not self.history_file:
            return
        try:
            with open(self.history_file, 'r', encoding='utf-8') as f:
                self.history = [line.strip() for line in f if line.strip()]
        except FileNotFoundError:
            self.history = []
        except OSError as e:
            logger.warning("Could not read history file %s: %s", self.history_file, e)

    def save_history(self) -> None:
        if not self.history_file:
            return
        try:
            with open(self.history_file, 'w', encoding='utf-8') as f:
                f.write("\n".join(self.history))
        except OSError as e:
            logger.warning("Could not write history file %s: %s", self.history_file, e)

    def add_history(self, statement: str) -> None:
        statement = statement.strip()
        if statement:
            self.history.append(statement)

    def last_sql(self) -> str:
        """Most recent history entry that is a SQL statement."""
        for entry in reversed(self.history):
            entry = entry.strip()
            if not is_meta_command(entry) and not is_exit_command(entry):
                return entry
        return ''


def complete(text: str, tables: List[str]) -> List[str]:
    """Case-insensitive prefix matches over meta-commands, SQL keywords and tables."""
    if not text:
        return []
    low = text.lower()
    candidates = META_COMMANDS + SQL_KEYWORDS + tables
    seen = set()
    matches = []
    for cand in candidates:
        if cand.lower().startswith(low) and cand not in seen:
            seen.add(cand)
            matches.append(cand)
    return matches


def _completer(text: str, state: int) -> Optional[str]:
    """readline completion hook."""
    tables = _GLOBAL_SESS.table_names if _GLOBAL_SESS else list(KNOWN_TABLES)
    matches = complete(text, tables)
    return matches[state] if state < len(matches) else None


def _configure_readline(history: List[str]) -> None:
    if not readline:
        return
    readline.set_completer(_completer)
    readline.set_completer_delims(' \t\n;,()')
    # libedit (macOS default) needs a different binding than GNU readline
    docstr = getattr(readline, '__doc__', '') or ''
    if 'libedit' in docstr.lower():
        readline.parse_and_bind('bind ^I rl_complete')
    else:
        readline.parse_and_bind('tab: complete')
    readline.parse_and_bind('set completion-ignore-case on')
    readline.parse_and_bind('set show-all-if-ambiguous on')
    readline.clear_history()
    for entry in history:
        readline.add_history(entry)


def _box_border(left: str, mid: str, right: str, widths: List[int]) -> str:
    return left + mid.join('─' * (w + 2) for w in widths) + right


def _box_row(values: List[str], widths: List[int]) -> str:
    return '│ ' + ' │ '.join(pad_right(v, w) for v, w in zip(values, widths)) + ' │'


def format_schema_box(columns: List[TableColumn], desc_width: int) -> List[str]:
    """Column/Type grid, with a Description column when any column has one."""
    name_w = max([len('Column')] + [display_width(c.name) for c in columns])
    type_w = max([len('Type')] + [display_width(c.type) for c in columns])
    with_desc = any(c.description for c in columns)
    widths = [name_w, type_w, desc_width] if with_desc else [name_w, type_w]
    header = ['Column', 'Type', 'Description'] if with_desc else ['Column', 'Type']
    lines = [_box_border('┌', '┬', '┐', widths), _box_row(header, widths), _box_border('├', '┼', '┤', widths)]
    for col in columns:
        values = [col.name, col.type]
        if with_desc:
            values.append(truncate_string(col.description or '-', desc_width))
        lines.append(_box_row(values, widths))
    lines.append(_box_border('└', '┴', '┘', widths))
    return lines


def format_tables_box(names: List[str]) -> List[str]:
    lines = ["Tables:", _box_border('┌', '', '┐', [TABLES_BOX_WIDTH])]
    lines.extend(_box_row([name], [TABLES_BOX_WIDTH]) for name in names)
    lines.append(_box_border('└', '', '┘', [TABLES_BOX_WIDTH]))
    lines.append("")
    lines.append(f"({len(names)} tables)")
    return lines


class Session:
    """Runs statements and meta-commands against one authenticated client."""

    def __init__(self, client: ApiClient, executor: QueryExecutor, state: SessionState,
                 out: Optional[TextIO] = None, err: Optional[TextIO] = None):
        self.client = client
        self.executor = executor
        self.state = state
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.table_names: List[str] = list(KNOWN_TABLES)
        self.commands: Dict[str, Callable[[List[str], str], None]] = {
            'tables': self.cmd_tables,
            'schema': self.cmd_schema,
            'window': self.cmd_window,
            'debug': self.cmd_debug,
            'format': self.cmd_format,
            'ask': self.cmd_ask,
            'history': self.cmd_history,
            'export': self.cmd_export,
            'timing': self.cmd_timing,
            'help': self.cmd_help,
        }

    def echo(self, text: str = '') -> None:
        print(text, file=self.out)

    def error(self, text: str) -> None:
        print(f"Error: {text}", file=self.err)

    @property
    def show_progress(self) -> bool:
        return not self.state.silent and not self.state.debug

    # --- statements ---

    def run_query(self, sql: str) -> Optional[ResultTable]:
        """Execute one SQL statement and print its result. Errors are reported, not raised."""
        sql = sql.strip()
        if sql.endswith(';'):
            sql = sql[:-1].rstrip()
        if not sql:
            return None
        window = self.state.window
        query = Query(sql, from_time=window.from_time or None, to_time=window.to_time or None)
        start_t = time.time()
        try:
            table = self.executor.run(query, output_format=self.state.output_format, out=self.out,
                                      show_progress=self.show_progress, open_file=self.state.open_file)
        except QueryCancelled:
            logger.debug("Query cancelled by user")
            return None
        except SoraQLException as e:
            self.error(str(e))
            return None
        self.state.last_result = table
        if self.state.timing:
            self.echo(f"Time: {time.time() - start_t:.3f}s")
        return table

    def handle_meta(self, line: str) -> bool:
        """Dispatch a dot-command. Returns False if line is not one."""
        parts = line.strip().split()
        if not parts or not parts[0].startswith('.'):
            return False
        name = parts[0][1:].lower()
        handler = self.commands.get(name)
        if handler is None:
            self.echo(f"Unknown command: {parts[0]} (type .help for the list of commands)")
            return True
        try:
            handler(parts[1:], line.strip())
        except SoraQLException as e:
            self.error(str(e))
        return True

    # --- meta-commands ---

    def cmd_tables(self, args: List[str], line: str) -> None:
        names = list_tables(self.client.get_schemas())
        if not names:
            self.echo("No tables found.")
            return
        self.table_names = sorted(set(names) | set(KNOWN_TABLES))
        for text in format_tables_box(names):
            self.echo(text)

    def cmd_schema(self, args: List[str], line: str) -> None:
        doc = self.client.get_schemas()
        table_name = args[0].rstrip(';') if args else ''
        if table_name:
            found = describe_schema(doc, table_name)
            if not found:
                raise SoraQLException(f"table '{table_name}' not found")
            name, columns = next(iter(found.items()))
            self.echo(f"Schema for table: {name}")
            for text in format_schema_box(columns, TABLE_SCHEMA_DESC_WIDTH):
                self.echo(text)
            self.echo(f"({len(columns)} columns)")
            return
        schemas = describe_schema(doc)
        if not schemas:
            self.echo("No table schemas found in expected format.")
            self.echo("Raw schema structure:")
            self.echo(json.dumps(doc, indent=2, ensure_ascii=False))
            return
        self.echo("Table Schemas:")
        self.echo()
        for name in sorted(schemas):
            columns = schemas[name]
            self.echo(f"Table: {name}")
            for text in format_schema_box(columns, ALL_SCHEMAS_DESC_WIDTH):
                self.echo(text)
            self.echo(f"({len(columns)} columns)")
            self.echo()

    def cmd_window(self, args: List[str], line: str) -> None:
        if not args or (len(args) == 1 and args[0].lower() == 'show'):
            self.echo(self.state.window.describe())
        elif len(args) == 1 and args[0].lower() == 'clear':
            self.state.window = TimeWindow()
            self.echo("Time window cleared.")
        elif len(args) == 2:
            try:
                self.state.window = parse_time_window(args[0], args[1])
            except TimeWindowError as e:
                print(f"Error setting window: {e}", file=self.err)
                return
            self.echo(f"Time window set: from {args[0]} to {args[1]}")
            self.echo(self.state.window.describe())
        else:
            self.echo(WINDOW_USAGE)

    def cmd_debug(self, args: List[str], line: str) -> None:
        if len(args) > 1:
            self.echo(DEBUG_USAGE)
            return
        action = args[0].lower() if args else 'toggle'
        if action in ('show', 'status'):
            state = 'enabled' if self.state.debug else 'disabled'
            self.echo(f"Debug mode is currently {state}.")
            return
        if action == 'toggle':
            enabled = not self.state.debug
        elif action in ('on', 'true', '1'):
            enabled = True
        elif action in ('off', 'false', '0'):
            enabled = False
        else:
            self.echo(DEBUG_USAGE)
            return
        self.state.debug = enabled
        set_debug(enabled)
        self.echo("Debug mode enabled." if enabled else "Debug mode disabled.")

    def cmd_format(self, args: List[str], line: str) -> None:
        if not args:
            self.echo(f"Current output format: {self.state.output_format}")
            return
        choice = args[0].lower()
        if len(args) == 1 and choice in SUPPORTED_OUTPUT_FORMATS:
            self.state.output_format = choice
            self.echo(f"Output format set to: {choice}")
        elif len(args) == 1 and choice in ('show', 'status'):
            self.echo(f"Current output format: {self.state.output_format}")
        else:
            self.echo(FORMAT_USAGE)

    def cmd_ask(self, args: List[str], line: str) -> None:
        question = line.strip()[len('.ask'):].strip()
        if not question:
            self.echo("Usage: .ask <your question about SQL or data>")
            return
        existing = self.state.last_sql()
        with spinner("Asking SQL assistant", enabled=self.show_progress):
            response = self.client.ask(question, existing)
        if response.context:
            self.echo()
            self.echo(response.context)
        if response.sql_query:
            self.echo()
            self.echo("Suggested SQL:")
            self.echo(response.sql_query)
            self.echo()
            self.echo("Executing query automatically...")
            # suggestions are not user-typed, so they stay out of history
            self.run_query(response.sql_query)
        self.echo()

    def cmd_history(self, args: List[str], line: str) -> None:
        try:
            n = int(args[0]) if args else DEFAULT_HISTORY_SHOWN
        except ValueError:
            n = DEFAULT_HISTORY_SHOWN
        entries = self.state.history[-n:] if n > 0 else []
        start = len(self.state.history) - len(entries) + 1
        for idx, entry in enumerate(entries, start=start):
            self.echo(f"{idx}: {entry}")

    def cmd_export(self, args: List[str], line: str) -> None:
        if not args:
            self.echo("Usage: .export <path> [csv|json|jsonl|excel|parquet]")
            return
        if self.state.last_result is None:
            self.echo("No result to export.")
            return
        path = os.path.expanduser(args[0])
        try:
            fmt = export_result(self.state.last_result, path, args[1] if len(args) > 1 else None)
        except (ValueError, RuntimeError, OSError) as e:
            self.error(f"export failed: {e}")
            return
        self.echo(f"Exported {len(self.state.last_result)} rows to {path} ({fmt})")

    def cmd_timing(self, args: List[str], line: str) -> None:
        if args:
            self.state.timing = args[0].lower() in ('on', 'true', '1')
        else:
            self.state.timing = not self.state.timing
        self.echo(f"Timing is {'on' if self.state.timing else 'off'}.")

    def cmd_help(self, args: List[str], line: str) -> None:
        self.echo(__doc__.strip())

    # --- drivers ---

    def run_piped(self, stream: Optional[TextIO] = None) -> None:
        """One statement or meta-command per line until EOF or an exit command."""
        for raw in stream or sys.stdin:
            line = raw.strip()
            if not line:
                continue
            if is_exit_command(line):
                break
            if self.handle_meta(line):
                continue
            sql = line[:-1].strip() if line.endswith(';') else line
            if sql:
                self.state.add_history(sql)
                self.run_query(sql)

    def run_interactive(self) -> None:
        """Prompt loop with multi-line statements, history and tab completion."""
        global _GLOBAL_SESS
        _GLOBAL_SESS = self
        self.state.load_history()
        _configure_readline(self.state.history)
        prompt = f"{self.state.profile_name}> "
        buffer: List[str] = []
        while True:
            try:
                line = input(MORE_PROMPT if buffer else prompt).strip()
                if not line:
                    continue
                if is_exit_command(line):
                    break
                if buffer:
                    buffer.append(line)
                    if line.endswith(';'):
                        self._run_statement(' '.join(buffer))
                        buffer.clear()
                    continue
                if self.handle_meta(line):
                    continue
                if line.endswith(';'):
                    self._run_statement(line)
                else:
                    buffer.append(line)
            except KeyboardInterrupt:
                buffer.clear()
                self.echo('^C')
            except EOFError:
                self.echo()
                break
        self.state.save_history()

    def _run_statement(self, statement: str) -> None:
        self.state.add_history(statement)
        self.state.save_history()
        self.run_query(statement)


def start_repl(client: ApiClient, executor: QueryExecutor, state: SessionState) -> None:
    """Start the interactive shell."""
    Session(client, executor, state).run_interactive()


def run_piped(client: ApiClient, executor: QueryExecutor, state: SessionState,
              stream: Optional[TextIO] = None) -> None:
    Session(client, executor, state).run_piped(stream)
