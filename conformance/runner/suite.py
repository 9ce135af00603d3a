# Where: conformance/runner/suite.py
# What: Runs whole suites: config copy, logging, listeners, execution and summary.
# Why: A suite is the unit of reporting; several suites may run side by side.
from __future__ import annotations

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Sequence

from conformance.runner.capture import OutputCapture
from conformance.runner.config import GlobalConfig, TestSuite
from conformance.runner.constants import SCENARIOS_PACKAGE
from conformance.runner.discovery import TestClassSpec, build_plan, discover
from conformance.runner.events import (
    EVENT_MESSAGE,
    EVENT_RUN_END,
    EVENT_SUITE_END,
    EVENT_SUITE_START,
    STATUS_FAILED,
    STATUS_PASSED,
    CompositeReporter,
    Event,
    Reporter,
)
from conformance.runner.executor import SuiteExecutor
from conformance.runner.extension import OrchestratorFactory
from conformance.runner.logging import (
    TestContextListener,
    configure_suite_logging,
    set_current_suite,
)
from conformance.runner.report import XmlReportWriter
from conformance.runner.results import ExecutionResult, ExecutionResultCollector

logger = logging.getLogger(__name__)


def suite_config(base_config: GlobalConfig, suite: TestSuite) -> GlobalConfig:
    """Copy of the base config with the suite's runtime env layered on top."""
    envs = dict(base_config.ADDITIONAL_RUNTIME_ENVS)
    envs.update(suite.additional_envs)
    return base_config.copy_with(ADDITIONAL_RUNTIME_ENVS=envs)


def run_suite(
    suite: TestSuite,
    *,
    base_config: GlobalConfig,
    report_dir: Path,
    reporter: Reporter,
    classes: Optional[Sequence[TestClassSpec]] = None,
    print_to_stdout: bool = False,
    parallel: bool = True,
    parallelism: Optional[int] = None,
    name_filters: Optional[Sequence[str]] = None,
    tag_override: Optional[str] = None,
    orchestrator_factory: Optional[OrchestratorFactory] = None,
) -> ExecutionResult:
    suite_dir = report_dir / suite.name
    config = suite_config(base_config, suite)
    tags = tag_override if tag_override is not None else suite.include_tags
    if classes is None:
        classes = discover(SCENARIOS_PACKAGE)
    plans = build_plan(classes, tags, name_filters)

    set_current_suite(suite.name)
    suite_logging = configure_suite_logging(suite.name, suite_dir, print_to_stdout=print_to_stdout)
    collector = ExecutionResultCollector(suite.name)
    suite_listeners: list[Reporter] = [
        TestContextListener(),
        collector,
        XmlReportWriter(suite.name, suite_dir),
        OutputCapture(suite_dir),
    ]
    listeners = CompositeReporter([*suite_listeners, reporter])
    for listener in suite_listeners:
        listener.start()

    try:
        logger.info(
            "Running suite %s: %d classes, tags=%r, runtime env=%s",
            suite.name,
            len(plans),
            tags,
            config.ADDITIONAL_RUNTIME_ENVS,
        )
        listeners.emit(Event(EVENT_SUITE_START, suite=suite.name, data={"report_dir": str(suite_dir)}))
        if not plans:
            listeners.emit(
                Event(
                    EVENT_MESSAGE,
                    suite=suite.name,
                    message=f"No test classes selected in suite {suite.name} (tags={tags!r})",
                )
            )
        executor = SuiteExecutor(
            suite.name,
            config,
            listeners,
            parallel=parallel,
            parallelism=parallelism,
            report_dir=suite_dir,
            orchestrator_factory=orchestrator_factory,
        )
        executor.run(plans)
        result = collector.result()
        listeners.emit(Event(EVENT_SUITE_END, suite=suite.name, data={"result": result}))
        return result
    finally:
        for listener in reversed(suite_listeners):
            listener.close()
        suite_logging.close()


def run_suites(
    suites: Sequence[TestSuite],
    *,
    base_config: GlobalConfig,
    report_dir: Path,
    reporter: Reporter,
    parallel_suites: bool = False,
    **options,
) -> list[ExecutionResult]:
    """Run every suite and emit the final run status."""
    if "classes" not in options or options["classes"] is None:
        options["classes"] = discover(SCENARIOS_PACKAGE)

    def _run(suite: TestSuite) -> ExecutionResult:
        return run_suite(
            suite, base_config=base_config, report_dir=report_dir, reporter=reporter, **options
        )

    if parallel_suites and len(suites) > 1:
        with ThreadPoolExecutor(max_workers=len(suites), thread_name_prefix="suite") as pool:
            futures = [pool.submit(contextvars.copy_context().run, _run, suite) for suite in suites]
            results = [future.result() for future in futures]
    else:
        results = [contextvars.copy_context().run(_run, suite) for suite in suites]

    failed = [result.suite for result in results if not result.succeeded]
    reporter.emit(
        Event(
            EVENT_RUN_END,
            data={
                "status": STATUS_FAILED if failed else STATUS_PASSED,
                "failed_suites": failed,
            },
        )
    )
    return results
