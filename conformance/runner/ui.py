# Where: conformance/runner/ui.py
# What: Plain terminal reporter for suite runs.
# Why: Keep output deterministic and readable while classes run concurrently.
from __future__ import annotations

import os
import sys
from typing import Callable

from conformance.runner.capture import terminal_stream
from conformance.runner.events import (
    EVENT_CLASS_END,
    EVENT_MESSAGE,
    EVENT_RUN_END,
    EVENT_SUITE_END,
    EVENT_SUITE_START,
    EVENT_TEST_END,
    STATUS_ABORTED,
    STATUS_FAILED,
    STATUS_PASSED,
    Event,
    Reporter,
)
from conformance.runner.logging import safe_print
from conformance.runner.results import ClassOutcome, ExecutionResult, TestOutcome

_COLOR_RESET = "\033[0m"
_COLOR_GREEN = "\033[32m"
_COLOR_RED = "\033[31m"
_COLOR_YELLOW = "\033[33m"
_COLOR_GRAY = "\033[90m"


def _resolve_feature(flag: bool | None, default: bool) -> bool:
    if flag is None:
        return default
    return bool(flag)


def _format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    total = int(seconds)
    mins = total // 60
    secs = total % 60
    return f"{mins}m{secs:02d}s"


class PlainReporter(Reporter):
    def __init__(
        self,
        *,
        color: bool | None = None,
        emoji: bool | None = None,
        printer: Callable[[str], None] | None = None,
    ) -> None:
        stream = terminal_stream()
        is_tty = stream.isatty() if hasattr(stream, "isatty") else sys.stdout.isatty()
        term = os.environ.get("TERM", "").lower()
        color_default = is_tty and term != "dumb" and not os.environ.get("NO_COLOR")
        emoji_default = is_tty and term != "dumb" and not os.environ.get("NO_EMOJI")
        self._color = _resolve_feature(color, color_default)
        self._emoji = _resolve_feature(emoji, emoji_default)
        self._printer = printer or safe_print

    def _emoji_prefix(self, emoji: str) -> str:
        if not self._emoji or not emoji:
            return ""
        return f"{emoji} "

    def _colorize(self, text: str, color: str) -> str:
        if not self._color:
            return text
        return f"{color}{text}{_COLOR_RESET}"

    def _status_icon(self, status: str) -> str:
        if status == STATUS_PASSED:
            return "✅"
        return "❌"

    def _status_word(self, status: str) -> str:
        if status == STATUS_PASSED:
            return self._colorize("ok", _COLOR_GREEN)
        if status == STATUS_FAILED:
            return self._colorize("failed", _COLOR_RED)
        if status == STATUS_ABORTED:
            return self._colorize("aborted", _COLOR_YELLOW)
        return status

    def _log_line(self, line: str) -> None:
        self._printer(line)

    def emit(self, event: Event) -> None:
        if event.event_type == EVENT_MESSAGE and event.message:
            self._log_line(event.message)
            return

        if event.event_type == EVENT_SUITE_START:
            report_dir = event.data.get("report_dir")
            suffix = f" (reports: {report_dir})" if report_dir else ""
            self._log_line(f"==== {event.suite}{suffix}")
            return

        if event.event_type == EVENT_TEST_END and isinstance(event.test, TestOutcome):
            outcome = event.test
            line = (
                f"{self._emoji_prefix(self._status_icon(outcome.status))}"
                f"{outcome.test_id.class_name} {outcome.test_id.display_name} ... "
                f"{self._status_word(outcome.status)}"
                f"{self._colorize(f' ({_format_duration(outcome.duration)})', _COLOR_GRAY)}"
            )
            self._log_line(line)
            if outcome.status != STATUS_PASSED and outcome.message:
                self._log_line(f"    {outcome.message}")
            return

        if event.event_type == EVENT_CLASS_END and isinstance(event.test, ClassOutcome):
            failure = event.test
            label = "init" if failure.phase == "setup" else failure.phase
            self._log_line(
                f"{self._emoji_prefix('❌')}{failure.class_name} {label} ... "
                f"{self._status_word(failure.status)}"
            )
            if failure.message:
                self._log_line(f"    {failure.message}")
            return

        if event.event_type == EVENT_SUITE_END:
            result = event.data.get("result")
            if isinstance(result, ExecutionResult):
                result.print_short_summary(self._log_line)
            return

        if event.event_type == EVENT_RUN_END:
            status = str(event.data.get("status", "")).strip()
            if status == STATUS_PASSED:
                self._log_line(
                    f"{self._emoji_prefix('✅')}{self._colorize('[PASSED] ALL SUITES PASSED!', _COLOR_GREEN)}"
                )
                return
            failed = event.data.get("failed_suites")
            if isinstance(failed, list) and failed:
                failed_text = ", ".join(str(item) for item in failed)
            else:
                failed_text = "unknown"
            self._log_line(
                f"{self._emoji_prefix('❌')}"
                f"{self._colorize('[FAILED] The following suites failed: ' + failed_text, _COLOR_RED)}"
            )
