# Where: conformance/runner/executor.py
# What: Runs planned test classes and cases, emitting outcome events.
# Why: Own concurrency, timeouts and class lifecycle in one place.
from __future__ import annotations

import contextvars
import logging
import threading
import time
import traceback
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional

from conformance.runner.config import GlobalConfig
from conformance.runner.discovery import ClassPlan, TestCase
from conformance.runner.events import (
    EVENT_CLASS_END,
    EVENT_CLASS_START,
    EVENT_TEST_END,
    EVENT_TEST_START,
    PHASE_EXECUTION,
    PHASE_SETUP,
    PHASE_TEARDOWN,
    STATUS_ABORTED,
    STATUS_FAILED,
    STATUS_PASSED,
    Event,
    Reporter,
)
from conformance.runner.exceptions import TestAborted
from conformance.runner.extension import (
    DeployerExtension,
    OrchestratorFactory,
    describe_deployment,
)
from conformance.runner.results import ClassOutcome, TestOutcome

logger = logging.getLogger(__name__)


class _Once:
    """Lets exactly one of the racing finishers of a test report its outcome."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False

    def claim(self) -> bool:
        with self._lock:
            if self._done:
                return False
            self._done = True
            return True


def _describe(exc: BaseException) -> str:
    text = str(exc)
    if isinstance(exc, AssertionError):
        return text or "AssertionError"
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


def _format_exception(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


class SuiteExecutor:
    def __init__(
        self,
        suite: str,
        config: GlobalConfig,
        reporter: Reporter,
        *,
        parallel: bool = True,
        parallelism: Optional[int] = None,
        report_dir: Optional[Path] = None,
        orchestrator_factory: Optional[OrchestratorFactory] = None,
    ) -> None:
        self.suite = suite
        self.config = config
        self.reporter = reporter
        self.parallel = parallel
        self.parallelism = parallelism
        self.report_dir = report_dir
        self.orchestrator_factory = orchestrator_factory
        self._deadline: Optional[float] = None

    def _emit(self, event_type: str, test=None, **data) -> None:
        self.reporter.emit(Event(event_type, suite=self.suite, test=test, data=data))

    def _remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def _expired(self) -> bool:
        remaining = self._remaining()
        return remaining is not None and remaining <= 0

    def class_workers(self, class_count: int) -> int:
        if not self.parallel:
            return 1
        if self.parallelism:
            return max(1, self.parallelism)
        return max(1, class_count)

    def run(self, plans: list[ClassPlan]) -> None:
        suite_timeout = self.config.suite_timeout()
        if suite_timeout is not None:
            self._deadline = time.monotonic() + suite_timeout
        if not plans:
            return

        with ThreadPoolExecutor(
            max_workers=self.class_workers(len(plans)), thread_name_prefix=f"{self.suite}-class"
        ) as pool:
            # Every class gets its own copy of the caller's context (suite name, log tags).
            future_to_plan = {
                pool.submit(contextvars.copy_context().run, self._run_class, plan): plan
                for plan in plans
            }
            for future in as_completed(future_to_plan):
                plan = future_to_plan[future]
                try:
                    future.result()
                except Exception as e:
                    logger.exception("Unexpected error while running %s", plan.name)
                    self._class_failure(plan.name, STATUS_FAILED, PHASE_EXECUTION, e)

    def _class_failure(self, class_name: str, status: str, phase: str, exc: BaseException) -> None:
        outcome = ClassOutcome(
            class_name=class_name,
            status=status,
            phase=phase,
            message=_describe(exc),
            detail=_format_exception(exc),
        )
        self._emit(EVENT_CLASS_END, outcome)

    def _abort_case(self, case: TestCase, message: str) -> None:
        self._emit(
            EVENT_TEST_END,
            TestOutcome(test_id=case.test_id, status=STATUS_ABORTED, message=message),
        )

    def _run_class(self, plan: ClassPlan) -> None:
        self._emit(EVENT_CLASS_START, plan.name)
        failed = False
        extension = DeployerExtension(
            plan.spec.configure,
            self.config,
            class_name=plan.name,
            report_dir=self.report_dir,
            orchestrator_factory=self.orchestrator_factory,
        )
        try:
            if self._expired():
                for case in plan.cases:
                    self._abort_case(case, "Suite timeout elapsed before the class started")
                return
            try:
                deployment = extension.before_all()
                logger.info("%s deployed: %s", plan.name, describe_deployment(deployment))
            except Exception as e:
                logger.error("Setup of %s failed: %s", plan.name, e)
                failed = True
                self._class_failure(plan.name, STATUS_ABORTED, PHASE_SETUP, e)
                for case in plan.cases:
                    self._abort_case(case, f"Class setup failed: {_describe(e)}")
                return
            self._run_cases(plan, extension)
        finally:
            try:
                extension.after_all()
            except Exception as e:
                logger.error("Teardown of %s failed: %s", plan.name, e)
                failed = True
                self._class_failure(plan.name, STATUS_FAILED, PHASE_TEARDOWN, e)
            if not failed:
                self._emit(EVENT_CLASS_END, plan.name)

    def _run_cases(self, plan: ClassPlan, extension: DeployerExtension) -> None:
        if not self.parallel:
            for case in plan.cases:
                self._run_case(case, extension)
            return

        concurrent = [case for case in plan.cases if case.concurrent]
        sequential = [case for case in plan.cases if not case.concurrent]
        if concurrent:
            with ThreadPoolExecutor(
                max_workers=len(concurrent), thread_name_prefix=f"{plan.name}-test"
            ) as pool:
                futures = [
                    pool.submit(contextvars.copy_context().run, self._run_case, case, extension)
                    for case in concurrent
                ]
                for future in futures:
                    future.result()
        for case in sequential:
            self._run_case(case, extension)

    def _case_timeout(self, case: TestCase) -> Optional[float]:
        remaining = self._remaining()
        if case.timeout is None:
            return remaining
        if remaining is None:
            return case.timeout
        return min(case.timeout, remaining)

    def _run_case(self, case: TestCase, extension: DeployerExtension) -> None:
        if self._expired():
            self._abort_case(case, "Suite timeout elapsed before the test started")
            return

        guard = _Once()
        started = time.monotonic()
        context = contextvars.copy_context()
        worker = threading.Thread(
            target=context.run,
            args=(self._execute_case, case, extension, guard, started),
            name=f"test-{case.test_id.method_name}",
            daemon=True,
        )
        worker.start()
        timeout = self._case_timeout(case)
        worker.join(timeout)
        if worker.is_alive() and guard.claim():
            # The worker keeps running; its late outcome is discarded.
            logger.error("%s timed out after %.1fs", case.test_id.unique_id, timeout)
            self._emit(
                EVENT_TEST_END,
                TestOutcome(
                    test_id=case.test_id,
                    status=STATUS_FAILED,
                    message=f"Test timed out after {timeout:.1f}s",
                    duration=time.monotonic() - started,
                ),
            )

    def _execute_case(
        self,
        case: TestCase,
        extension: DeployerExtension,
        guard: _Once,
        started: float,
    ) -> None:
        self._emit(EVENT_TEST_START, case.test_id)
        status, message, detail = STATUS_PASSED, "", ""
        ctx = None
        try:
            ctx = extension.context(case.test_id)
            case.run(ctx)
        except TestAborted as e:
            status, message, detail = STATUS_ABORTED, _describe(e), _format_exception(e)
        except Exception as e:
            status, message, detail = STATUS_FAILED, _describe(e), _format_exception(e)
        finally:
            if ctx is not None:
                ctx.close()
        if status != STATUS_PASSED:
            logger.info("%s %s: %s", case.test_id.unique_id, status, message)
        if guard.claim():
            self._emit(
                EVENT_TEST_END,
                TestOutcome(
                    test_id=case.test_id,
                    status=status,
                    message=message,
                    detail=detail,
                    duration=time.monotonic() - started,
                ),
            )
