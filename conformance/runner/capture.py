# Where: conformance/runner/capture.py
# What: Per-test capture of stdout/stderr into suite report files.
# Why: Concurrent tests share the process streams; each test's output must stay attributable.
from __future__ import annotations

import io
import sys
import threading
from contextvars import ContextVar
from pathlib import Path
from typing import TextIO

from conformance.runner.events import EVENT_TEST_END, EVENT_TEST_START, Event, Reporter

STDOUT_FILE = "testrunner.stdout"
STDERR_FILE = "testrunner.stderr"

_stdout_buffer: ContextVar[io.StringIO | None] = ContextVar("capture_stdout", default=None)
_stderr_buffer: ContextVar[io.StringIO | None] = ContextVar("capture_stderr", default=None)

_install_lock = threading.Lock()
_install_count = 0
_original_stdout: TextIO | None = None
_original_stderr: TextIO | None = None


class _DispatchingStream(io.TextIOBase):
    """Writes to the current test's buffer when one is set, otherwise to the real stream."""

    def __init__(self, original: TextIO, buffer_var: ContextVar[io.StringIO | None]) -> None:
        self._original = original
        self._buffer_var = buffer_var

    @property
    def original(self) -> TextIO:
        return self._original

    @property
    def encoding(self) -> str:  # type: ignore[override]
        return getattr(self._original, "encoding", "utf-8")

    def writable(self) -> bool:
        return True

    def write(self, text: str) -> int:
        buffer = self._buffer_var.get()
        if buffer is not None:
            return buffer.write(text)
        return self._original.write(text)

    def flush(self) -> None:
        if self._buffer_var.get() is None:
            self._original.flush()

    def isatty(self) -> bool:
        return self._original.isatty()

    def fileno(self) -> int:
        return self._original.fileno()


def install() -> None:
    global _install_count, _original_stdout, _original_stderr
    with _install_lock:
        if _install_count == 0:
            _original_stdout, _original_stderr = sys.stdout, sys.stderr
            sys.stdout = _DispatchingStream(sys.stdout, _stdout_buffer)
            sys.stderr = _DispatchingStream(sys.stderr, _stderr_buffer)
        _install_count += 1


def uninstall() -> None:
    global _install_count, _original_stdout, _original_stderr
    with _install_lock:
        if _install_count == 0:
            return
        _install_count -= 1
        if _install_count == 0:
            sys.stdout, sys.stderr = _original_stdout, _original_stderr
            _original_stdout = _original_stderr = None


def terminal_stream() -> TextIO:
    """The stream the terminal reporter writes to, bypassing any test capture."""
    with _install_lock:
        if _original_stdout is not None:
            return _original_stdout
    return sys.stdout


class OutputCapture(Reporter):
    """
    Routes output written by a running test into per-test buffers and appends
    each buffer, headed by the test id, to testrunner.stdout / testrunner.stderr.

    test_start must be emitted from inside the test's own context.
    """

    def __init__(self, report_dir: Path) -> None:
        self.report_dir = report_dir
        self._buffers: dict[str, tuple[io.StringIO, io.StringIO]] = {}
        self._files: dict[str, TextIO] = {}
        self._lock = threading.Lock()
        self._installed = False

    def start(self) -> None:
        self.report_dir.mkdir(parents=True, exist_ok=True)
        self._files = {
            "stdout": (self.report_dir / STDOUT_FILE).open("w", encoding="utf-8"),
            "stderr": (self.report_dir / STDERR_FILE).open("w", encoding="utf-8"),
        }
        install()
        self._installed = True

    def emit(self, event: Event) -> None:
        if event.event_type == EVENT_TEST_START and event.test is not None:
            out, err = io.StringIO(), io.StringIO()
            with self._lock:
                self._buffers[event.test.unique_id] = (out, err)
            _stdout_buffer.set(out)
            _stderr_buffer.set(err)
            return
        if event.event_type == EVENT_TEST_END and event.test is not None:
            unique_id = event.test.test_id.unique_id
            with self._lock:
                buffers = self._buffers.pop(unique_id, None)
                if buffers is None or not self._files:
                    return
                for key, buffer in zip(("stdout", "stderr"), buffers):
                    content = buffer.getvalue()
                    if not content:
                        continue
                    target = self._files[key]
                    target.write(f"==== {unique_id}\n")
                    target.write(content if content.endswith("\n") else f"{content}\n")
                    target.flush()

    def close(self) -> None:
        if self._installed:
            uninstall()
            self._installed = False
        with self._lock:
            for handle in self._files.values():
                handle.close()
            self._files = {}
