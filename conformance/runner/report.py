# Where: conformance/runner/report.py
# What: JUnit-style XML report for one suite.
# Why: CI systems ingest TEST-*.xml files.
from __future__ import annotations

import socket
import threading
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from pathlib import Path

from conformance.runner.events import (
    EVENT_CLASS_END,
    EVENT_SUITE_END,
    EVENT_SUITE_START,
    EVENT_TEST_END,
    STATUS_ABORTED,
    STATUS_FAILED,
    Event,
    Reporter,
)
from conformance.runner.results import ClassOutcome, TestOutcome


def report_file_name(suite: str) -> str:
    return f"TEST-{suite}.xml"


class XmlReportWriter(Reporter):
    """Writes <report_dir>/TEST-<suite>.xml when the suite ends."""

    def __init__(self, suite: str, report_dir: Path) -> None:
        self.suite = suite
        self.report_dir = report_dir
        self._tests: list[TestOutcome] = []
        self._classes: list[ClassOutcome] = []
        self._started_at: datetime | None = None
        self._started_ts: float | None = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self.report_dir / report_file_name(self.suite)

    def emit(self, event: Event) -> None:
        with self._lock:
            if event.event_type == EVENT_SUITE_START:
                self._started_at = datetime.now(timezone.utc)
                self._started_ts = event.ts
            elif event.event_type == EVENT_TEST_END and isinstance(event.test, TestOutcome):
                self._tests.append(event.test)
            elif event.event_type == EVENT_CLASS_END and isinstance(event.test, ClassOutcome):
                self._classes.append(event.test)
            elif event.event_type == EVENT_SUITE_END:
                elapsed = event.ts - self._started_ts if self._started_ts is not None else 0.0
                self._write(elapsed)

    def _write(self, elapsed: float) -> None:
        failures = sum(1 for t in self._tests if t.status == STATUS_FAILED)
        errors = sum(1 for t in self._tests if t.status == STATUS_ABORTED) + len(self._classes)
        root = ET.Element(
            "testsuite",
            {
                "name": self.suite,
                "tests": str(len(self._tests) + len(self._classes)),
                "failures": str(failures),
                "errors": str(errors),
                "skipped": "0",
                "time": f"{elapsed:.3f}",
                "timestamp": (self._started_at or datetime.now(timezone.utc)).isoformat(
                    timespec="seconds"
                ),
                "hostname": socket.gethostname(),
            },
        )
        for outcome in self._tests:
            case = ET.SubElement(
                root,
                "testcase",
                {
                    "classname": outcome.test_id.class_name,
                    "name": outcome.test_id.display_name,
                    "time": f"{outcome.duration:.3f}",
                },
            )
            if outcome.status == STATUS_FAILED:
                element = ET.SubElement(case, "failure", {"message": outcome.message})
                element.text = outcome.detail
            elif outcome.status == STATUS_ABORTED:
                element = ET.SubElement(case, "error", {"message": outcome.message})
                element.text = outcome.detail
        for failure in self._classes:
            case = ET.SubElement(
                root,
                "testcase",
                {"classname": failure.class_name, "name": f"[{failure.phase}]", "time": "0.000"},
            )
            element = ET.SubElement(case, "error", {"message": failure.message})
            element.text = failure.detail

        self.report_dir.mkdir(parents=True, exist_ok=True)
        tree = ET.ElementTree(root)
        ET.indent(tree)
        tree.write(self.path, encoding="utf-8", xml_declaration=True)
