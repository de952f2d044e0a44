"""Query execution: submit, wait, poll, download, decompress, decode, render.

States:
  SUBMITTING -> WAITING_INITIAL_DELAY -> POLLING -> DOWNLOADING
    -> DECOMPRESSING -> RENDERING -> DONE
FAILED is reachable from every state; CANCELLED only while waiting or
polling. The spinner and the ESC watcher live only inside the wait phase, so
a download cannot be cancelled.
"""
from __future__ import annotations
import gzip
import logging
import os
import shutil
import subprocess
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, TextIO
from urllib.parse import urlsplit

from soraql.core.decoder import decode_file
from soraql.core.errors import QueryCancelled, QueryFailedError, QueryTimeoutError, SoraQLException
from soraql.core.models import Query, QueryHandle, QueryStatus, ResultTable, StatusResponse
from soraql.core.output_writer import render
from soraql.core.progress import WaitPhase
from soraql.utils.config import Config
from soraql.utils.constants import (
    INITIAL_DELAY, MAX_POLLS, POLL_INTERVAL, RETRY_INTERVAL, SPINNER_INTERVAL
)
from soraql.utils.string_utils import format_bytes

logger = logging.getLogger(__name__)

DEFAULT_RESULT_NAME = 'result.jsonl.gz'


class ExecutionState(Enum):
    SUBMITTING = 'SUBMITTING'
    WAITING_INITIAL_DELAY = 'WAITING_INITIAL_DELAY'
    POLLING = 'POLLING'
    DOWNLOADING = 'DOWNLOADING'
    DECOMPRESSING = 'DECOMPRESSING'
    RENDERING = 'RENDERING'
    DONE = 'DONE'
    FAILED = 'FAILED'
    CANCELLED = 'CANCELLED'


class QueryTransport(Protocol):
    def submit_query(self, query: Query) -> str: ...
    def get_query_status(self, query_id: str) -> StatusResponse: ...
    def download(self, url: str, dest_path: str) -> int: ...


@dataclass(frozen=True)
class PollSettings:
    initial_delay: float = INITIAL_DELAY
    poll_interval: float = POLL_INTERVAL
    retry_interval: float = RETRY_INTERVAL
    max_polls: int = MAX_POLLS
    spinner_interval: float = SPINNER_INTERVAL

    @classmethod
    def from_config(cls, cfg: Config) -> "PollSettings":
        return cls(
            initial_delay=float(cfg.get('initial_delay', INITIAL_DELAY)),
            poll_interval=float(cfg.get('poll_interval', POLL_INTERVAL)),
            retry_interval=float(cfg.get('retry_interval', RETRY_INTERVAL)),
            max_polls=int(cfg.get('max_polls', MAX_POLLS)),
            spinner_interval=float(cfg.get('spinner_interval', SPINNER_INTERVAL)),
        )


def result_paths(url: str, scratch_dir: str) -> tuple[str, str]:
    """Download path and decompressed sibling path for a result URL."""
    name = os.path.basename(urlsplit(url).path) or DEFAULT_RESULT_NAME
    download_path = os.path.join(scratch_dir, name)
    if name.endswith('.gz'):
        return download_path, download_path[:-3]
    return download_path, download_path + '.jsonl'


def decompress_file(src: str, dst: str) -> None:
    with gzip.open(src, 'rb') as f_in, open(dst, 'wb') as f_out:
        shutil.copyfileobj(f_in, f_out)


def open_in_editor(path: str) -> None:
    editor = os.environ.get('VISUAL') or os.environ.get('EDITOR')
    if editor:
        cmd = [*editor.split(), path]
    elif sys.platform == 'darwin':
        cmd = ['open', '-e', path]
    else:
        cmd = ['xdg-open', path]
    subprocess.run(cmd, check=True)


class QueryExecutor:
    """Runs one query at a time against a QueryTransport."""

    def __init__(self, client: QueryTransport, settings: Optional[PollSettings] = None,
                 scratch_dir: Optional[str] = None,
                 phase_factory: Callable[..., WaitPhase] = WaitPhase):
        self.client = client
        self.settings = settings or PollSettings()
        self.scratch_dir = scratch_dir
        self.phase_factory = phase_factory
        self.state = ExecutionState.DONE
        self.last_file: Optional[str] = None

    def _enter(self, state: ExecutionState) -> None:
        logger.debug("Query state: %s -> %s", self.state.value, state.value)
        self.state = state

    def execute(self, query: Query, show_progress: bool = False,
                passthrough: Optional[Callable[[str], None]] = None) -> ResultTable:
        """Run a query to completion and return the decoded result.

        Raises QueryCancelled if the user aborts while waiting, and a
        SoraQLException subclass for every other failure.
        """
        try:
            handle = self._submit(query)
            self._wait_for_completion(handle, show_progress)
            data_path = self._fetch_result(handle)
            table = decode_file(data_path, handle.column_info, passthrough)
        except QueryCancelled:
            self._enter(ExecutionState.CANCELLED)
            raise
        except Exception:
            self._enter(ExecutionState.FAILED)
            raise
        self.last_file = data_path
        return table

    def run(self, query: Query, output_format: str = 'table', out: Optional[TextIO] = None,
            show_progress: bool = False, open_file: bool = False) -> ResultTable:
        """execute() and print the rendered result."""
        stream = out or sys.stdout

        def passthrough(line: str) -> None:
            print(line, file=stream)

        table = self.execute(query, show_progress=show_progress, passthrough=passthrough)
        if open_file and self.last_file:
            try:
                open_in_editor(self.last_file)
            except (OSError, subprocess.CalledProcessError) as e:
                print(f"Warning: failed to open file in editor: {e}", file=stream)
        self._enter(ExecutionState.RENDERING)
        try:
            print(render(table, output_format), file=stream)
        except Exception:
            self._enter(ExecutionState.FAILED)
            raise
        self._enter(ExecutionState.DONE)
        return table

    # --- steps ---

    def _submit(self, query: Query) -> QueryHandle:
        self._enter(ExecutionState.SUBMITTING)
        logger.debug("Executing SQL: %s", query.sql_text)
        if query.from_time:
            logger.debug("From time: %d", query.from_time)
        if query.to_time:
            logger.debug("To time: %d", query.to_time)
        query_id = self.client.submit_query(query)
        logger.debug("Query ID: %s", query_id)
        return QueryHandle(query_id=query_id)

    def _wait_for_completion(self, handle: QueryHandle, show_progress: bool) -> None:
        s = self.settings
        with self.phase_factory("Executing query", enabled=show_progress, interval=s.spinner_interval) as phase:
            self._enter(ExecutionState.WAITING_INITIAL_DELAY)
            if phase.wait(s.initial_delay):
                raise QueryCancelled()
            self._enter(ExecutionState.POLLING)
            for attempt in range(1, s.max_polls + 1):
                response = self.client.get_query_status(handle.query_id)
                logger.debug("Status check %d: %s", attempt, response.raw_body or response.status)
                reported = handle.update(response)
                if reported is QueryStatus.COMPLETED:
                    logger.debug("Query completed after %d status checks", attempt)
                    return
                if reported is QueryStatus.FAILED:
                    raise QueryFailedError(response.raw_body or response.status)
                if reported in (QueryStatus.RUNNING, QueryStatus.EXPORTING):
                    delay = s.poll_interval
                    logger.debug("Query status: %s, waiting %.0f seconds before retry...", response.status, delay)
                else:
                    delay = s.retry_interval
                    logger.debug("Unknown status: %s, waiting %.0f seconds before retry...", response.status, delay)
                if attempt == s.max_polls:
                    break
                if phase.wait(delay):
                    raise QueryCancelled()
        raise QueryTimeoutError(handle.raw_status)

    def _fetch_result(self, handle: QueryHandle) -> str:
        if not handle.result_url:
            raise SoraQLException("completed query did not include a result URL")
        scratch = self.scratch_dir or os.path.join(os.path.sep, 'tmp')
        download_path, data_path = result_paths(handle.result_url, scratch)
        self._enter(ExecutionState.DOWNLOADING)
        started = time.monotonic()
        size = self.client.download(handle.result_url, download_path)
        logger.debug("Downloaded %s to %s in %.2fs", format_bytes(size), download_path, time.monotonic() - started)
        self._enter(ExecutionState.DECOMPRESSING)
        try:
            decompress_file(download_path, data_path)
        except (OSError, EOFError) as e:
            raise SoraQLException(f"failed to decompress file: {e}") from e
        logger.debug("Decompressed file size: %s", format_bytes(os.path.getsize(data_path)))
        return data_path
