# Where: conformance/runner/events.py
# What: Event and status definitions for suite execution reporting.
# Why: Provide a stable, decoupled contract between execution and listeners.
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

EVENT_SUITE_START = "suite_start"
EVENT_SUITE_END = "suite_end"
EVENT_CLASS_START = "class_start"
EVENT_CLASS_END = "class_end"
EVENT_TEST_START = "test_start"
EVENT_TEST_END = "test_end"
EVENT_RUN_END = "run_end"
EVENT_MESSAGE = "message"

STATUS_PASSED = "passed"
STATUS_FAILED = "failed"
STATUS_ABORTED = "aborted"

PHASE_SETUP = "setup"
PHASE_TEARDOWN = "teardown"
# Failures that escape the class lifecycle itself.
PHASE_EXECUTION = "execution"


@dataclass(frozen=True)
class Event:
    event_type: str
    suite: str | None = None
    test: Any = None
    message: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    ts: float = field(default_factory=time.monotonic)


class Reporter:
    """Listener receiving every execution event. Must be safe to call from worker threads."""

    def start(self) -> None:
        return None

    def emit(self, event: Event) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return None


class CompositeReporter(Reporter):
    def __init__(self, reporters: list[Reporter]) -> None:
        self._reporters = list(reporters)

    def start(self) -> None:
        for reporter in self._reporters:
            reporter.start()

    def emit(self, event: Event) -> None:
        for reporter in self._reporters:
            reporter.emit(event)

    def close(self) -> None:
        for reporter in reversed(self._reporters):
            reporter.close()
