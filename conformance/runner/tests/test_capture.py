# Where: conformance/runner/tests/test_capture.py
# What: Unit tests for per-test stdout/stderr capture.
# Why: Output of concurrent tests must be attributed to the right test.
from __future__ import annotations

import contextvars
import sys

from conformance.runner import capture
from conformance.runner.capture import OutputCapture
from conformance.runner.discovery import TestId
from conformance.runner.events import EVENT_TEST_END, EVENT_TEST_START, Event
from conformance.runner.results import TestOutcome


def _run_test(listener: OutputCapture, method: str, out: str, err: str = "") -> None:
    test_id = TestId("Echo", method, method)

    def run():
        listener.emit(Event(EVENT_TEST_START, test=test_id))
        print(out)
        if err:
            sys.stderr.write(err)
        listener.emit(Event(EVENT_TEST_END, test=TestOutcome(test_id=test_id, status="passed")))

    contextvars.copy_context().run(run)


def test_output_is_written_per_test(tmp_path, capsys):
    listener = OutputCapture(tmp_path)
    listener.start()
    try:
        _run_test(listener, "first", "hello from first", err="warning\n")
        _run_test(listener, "second", "hello from second")
        print("outside any test")
    finally:
        listener.close()

    stdout = (tmp_path / capture.STDOUT_FILE).read_text(encoding="utf-8")
    stderr = (tmp_path / capture.STDERR_FILE).read_text(encoding="utf-8")
    assert stdout == "==== Echo#first\nhello from first\n==== Echo#second\nhello from second\n"
    assert stderr == "==== Echo#first\nwarning\n"
    assert capsys.readouterr().out == "outside any test\n"


def test_terminal_stream_bypasses_capture(tmp_path):
    original = sys.stdout
    listener = OutputCapture(tmp_path)
    listener.start()
    try:
        assert sys.stdout is not original
        assert capture.terminal_stream() is original
    finally:
        listener.close()
    assert sys.stdout is original


def test_nested_install_restores_once(tmp_path):
    original = sys.stdout
    first = OutputCapture(tmp_path / "a")
    second = OutputCapture(tmp_path / "b")
    first.start()
    second.start()
    first.close()
    assert sys.stdout is not original
    second.close()
    assert sys.stdout is original
