"""Terminal spinner, ESC cancellation watcher and the wait phase that owns both."""
from __future__ import annotations
import os
import select
import sys
import threading
import time
from contextlib import contextmanager
from typing import Optional, TextIO

try:
    import termios
    import tty
except ImportError:  # pragma: no cover - non-POSIX
    termios = None
    tty = None

from soraql.utils.constants import SPINNER_INTERVAL

ESCAPE = b'\x1b'
CLEAR_LINE = "\r\033[2K"
CYAN = "\033[36m"
RED = "\033[31m"
RESET = "\033[0m"


class Spinner:
    """Repaints one status line with elapsed seconds until stopped or cancelled."""

    FRAMES = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']

    def __init__(self, message: str = "Working", enabled: bool = True, interval: float = SPINNER_INTERVAL,
                 stream: Optional[TextIO] = None, stop: Optional[threading.Event] = None,
                 cancel: Optional[threading.Event] = None, hint: str = '',
                 cancel_message: str = "Query cancelled"):
        self.message = message
        self.stream = stream or sys.stderr
        self.enabled = enabled and self.stream.isatty()
        self.interval = interval
        self.hint = hint
        self.cancel_message = cancel_message
        self._stop = stop or threading.Event()
        self._cancel = cancel or threading.Event()
        self._thread: threading.Thread | None = None

    def _run(self):
        start = time.monotonic()
        i = 0
        while not self._stop.is_set() and not self._cancel.is_set():
            frame = self.FRAMES[i % len(self.FRAMES)]
            elapsed = int(time.monotonic() - start)
            self.stream.write(f"{CLEAR_LINE}{CYAN}{frame} {self.message}... {elapsed}s{self.hint}{RESET}")
            self.stream.flush()
            self._stop.wait(self.interval)
            i += 1
        if self._cancel.is_set():
            self.stream.write(f"{CLEAR_LINE}{RED}{self.cancel_message}{RESET}\n")
        else:
            self.stream.write(f"{CLEAR_LINE}{RESET}")
        self.stream.flush()

    def start(self) -> None:
        if self.enabled and self._thread is None:
            self._thread = threading.Thread(target=self._run, name="soraql-spinner", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self.join()

    def join(self) -> None:
        if self._thread:
            self._thread.join()
            self._thread = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()


class CancelWatcher:
    """Watches the terminal for an ESC keypress and sets the cancel event.

    The terminal is switched to cbreak/no-echo while watching and restored
    when the watcher exits.
    """

    def __init__(self, cancel: threading.Event, stop: threading.Event, enabled: bool = True,
                 stream: Optional[TextIO] = None, poll_interval: float = 0.05):
        self.cancel = cancel
        self.stop = stop
        self.stream = stream or sys.stdin
        self.poll_interval = poll_interval
        self.enabled = enabled and termios is not None and _isatty(self.stream)
        self._thread: threading.Thread | None = None

    def _run(self):
        fd = self.stream.fileno()
        try:
            saved = termios.tcgetattr(fd)
        except termios.error:
            return
        try:
            tty.setcbreak(fd)
            while not self.stop.is_set():
                ready, _, _ = select.select([fd], [], [], self.poll_interval)
                if not ready:
                    continue
                if os.read(fd, 1) == ESCAPE:
                    self.cancel.set()
                    return
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)

    def start(self) -> None:
        if self.enabled and self._thread is None:
            self._thread = threading.Thread(target=self._run, name="soraql-cancel-watcher", daemon=True)
            self._thread.start()

    def join(self) -> None:
        if self._thread:
            self._thread.join()
            self._thread = None


def _isatty(stream) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


class WaitPhase:
    """Scope in which the spinner and the cancel watcher run.

    Both are started on entry and joined on exit, whatever the exit path.
    wait() sleeps for the poll timer and returns True if the user cancelled.
    """

    def __init__(self, message: str = "Executing query", enabled: bool = True,
                 interval: float = SPINNER_INTERVAL, stream: Optional[TextIO] = None,
                 input_stream: Optional[TextIO] = None):
        self.cancel_event = threading.Event()
        self.stop_event = threading.Event()
        self.spinner = Spinner(message, enabled=enabled, interval=interval, stream=stream,
                               stop=self.stop_event, cancel=self.cancel_event,
                               hint=" (press ESC to cancel)")
        self.watcher = CancelWatcher(self.cancel_event, self.stop_event, enabled=enabled,
                                     stream=input_stream)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def request_cancel(self) -> None:
        self.cancel_event.set()

    def wait(self, seconds: float) -> bool:
        return self.cancel_event.wait(seconds)

    def __enter__(self):
        self.spinner.start()
        self.watcher.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop_event.set()
        self.watcher.join()
        self.spinner.join()


@contextmanager
def spinner(message: str = "Working", enabled: bool = True, interval: float = SPINNER_INTERVAL):
    sp = Spinner(message, enabled=enabled, interval=interval)
    try:
        sp.start()
        yield sp
    finally:
        sp.stop()
