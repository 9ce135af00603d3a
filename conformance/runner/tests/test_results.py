# Where: conformance/runner/tests/test_results.py
# What: Unit tests for result aggregation and the XML report.
# Why: Summaries, exit codes and CI reports all read these outcomes.
from __future__ import annotations

import xml.etree.ElementTree as ET

from conformance.runner.discovery import TestId
from conformance.runner.events import (
    EVENT_CLASS_END,
    EVENT_SUITE_END,
    EVENT_SUITE_START,
    EVENT_TEST_END,
    Event,
)
from conformance.runner.report import XmlReportWriter
from conformance.runner.results import (
    ClassOutcome,
    ExecutionResult,
    ExecutionResultCollector,
    TestOutcome,
)


def _outcome(method: str, status: str, message: str = "") -> TestOutcome:
    return TestOutcome(
        test_id=TestId("State", method, method),
        status=status,
        message=message,
        detail=f"detail of {method}",
        duration=0.5,
    )


def _events():
    return [
        Event(EVENT_SUITE_START, suite="default", ts=10.0),
        Event(EVENT_TEST_END, suite="default", test=_outcome("add", "passed"), ts=11.0),
        Event(EVENT_TEST_END, suite="default", test=_outcome("clear", "failed", "expected 1"), ts=12.0),
        Event(EVENT_TEST_END, suite="default", test=_outcome("proxy", "aborted", "setup"), ts=13.0),
        Event(EVENT_CLASS_END, suite="default", test="State", ts=13.5),
        Event(
            EVENT_CLASS_END,
            suite="default",
            test=ClassOutcome("Upgrade", "aborted", "setup", "registration failed", "trace"),
            ts=14.0,
        ),
    ]


def test_collector_counts_outcomes():
    collector = ExecutionResultCollector("default")
    for event in _events():
        collector.emit(event)

    result = collector.result()

    assert (result.tests_succeeded, result.tests_failed, result.tests_aborted) == (1, 1, 1)
    assert result.classes_failed == 1
    assert result.succeeded is False
    assert result.duration == 4.0
    assert [o.test_id.method_name for o in result.failures()] == ["clear", "proxy"]


def test_empty_result_succeeds():
    assert ExecutionResult("default").succeeded is True


def test_short_summary_lists_failures():
    collector = ExecutionResultCollector("default")
    for event in _events():
        collector.emit(event)
    lines: list[str] = []

    collector.result().print_short_summary(lines.append)

    assert lines[0].startswith("default: 3 tests, 1 succeeded, 1 failed, 1 aborted, 1 class failures")
    assert "  Upgrade setup aborted: registration failed" in lines
    assert "  State#clear failed: expected 1" in lines


def test_xml_report_maps_statuses(tmp_path):
    writer = XmlReportWriter("default", tmp_path)
    for event in _events():
        writer.emit(event)
    writer.emit(Event(EVENT_SUITE_END, suite="default", ts=15.0))

    root = ET.parse(tmp_path / "TEST-default.xml").getroot()

    assert root.get("name") == "default"
    assert (root.get("tests"), root.get("failures"), root.get("errors")) == ("4", "1", "2")
    assert root.get("time") == "5.000"
    cases = {case.get("name"): case for case in root.findall("testcase")}
    assert cases["add"].find("failure") is None
    assert cases["clear"].find("failure").get("message") == "expected 1"
    assert cases["proxy"].find("error").text == "detail of proxy"
    assert cases["[setup]"].get("classname") == "Upgrade"
