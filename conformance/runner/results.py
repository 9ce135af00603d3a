# Where: conformance/runner/results.py
# What: Test and class outcomes aggregated into an immutable execution result.
# Why: One source of truth for summaries, exit codes and report files.
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable

from conformance.runner.discovery import TestId
from conformance.runner.events import (
    EVENT_CLASS_END,
    EVENT_TEST_END,
    STATUS_ABORTED,
    STATUS_FAILED,
    STATUS_PASSED,
    Event,
    Reporter,
)


@dataclass(frozen=True)
class TestOutcome:
    test_id: TestId
    status: str
    message: str = ""
    detail: str = ""
    duration: float = 0.0

    __test__ = False


@dataclass(frozen=True)
class ClassOutcome:
    class_name: str
    status: str
    phase: str
    message: str = ""
    detail: str = ""


@dataclass(frozen=True)
class ExecutionResult:
    suite: str
    tests: tuple[TestOutcome, ...] = ()
    class_failures: tuple[ClassOutcome, ...] = ()
    duration: float = 0.0

    def _count(self, status: str) -> int:
        return sum(1 for outcome in self.tests if outcome.status == status)

    @property
    def tests_succeeded(self) -> int:
        return self._count(STATUS_PASSED)

    @property
    def tests_failed(self) -> int:
        return self._count(STATUS_FAILED)

    @property
    def tests_aborted(self) -> int:
        return self._count(STATUS_ABORTED)

    @property
    def classes_failed(self) -> int:
        return len(self.class_failures)

    @property
    def succeeded(self) -> bool:
        return self.tests_failed == 0 and self.tests_aborted == 0 and not self.class_failures

    def failures(self) -> list[TestOutcome]:
        return [outcome for outcome in self.tests if outcome.status != STATUS_PASSED]

    def print_short_summary(self, printer: Callable[[str], None] = print) -> None:
        printer(
            f"{self.suite}: {len(self.tests)} tests, {self.tests_succeeded} succeeded, "
            f"{self.tests_failed} failed, {self.tests_aborted} aborted, "
            f"{self.classes_failed} class failures ({self.duration:.1f}s)"
        )
        for failure in self.class_failures:
            printer(f"  {failure.class_name} {failure.phase} {failure.status}: {failure.message}")
        for outcome in self.failures():
            printer(f"  {outcome.test_id.unique_id} {outcome.status}: {outcome.message}")


class ExecutionResultCollector(Reporter):
    """Accumulates outcome events; result() may be called once the suite ended."""

    def __init__(self, suite: str) -> None:
        self.suite = suite
        self._tests: list[TestOutcome] = []
        self._classes: list[ClassOutcome] = []
        self._started: float | None = None
        self._ended: float | None = None
        self._lock = threading.Lock()

    def emit(self, event: Event) -> None:
        with self._lock:
            if self._started is None:
                self._started = event.ts
            self._ended = event.ts
            if event.event_type == EVENT_TEST_END and isinstance(event.test, TestOutcome):
                self._tests.append(event.test)
            elif event.event_type == EVENT_CLASS_END and isinstance(event.test, ClassOutcome):
                self._classes.append(event.test)

    def result(self) -> ExecutionResult:
        with self._lock:
            duration = 0.0
            if self._started is not None and self._ended is not None:
                duration = self._ended - self._started
            return ExecutionResult(
                suite=self.suite,
                tests=tuple(self._tests),
                class_failures=tuple(self._classes),
                duration=duration,
            )
