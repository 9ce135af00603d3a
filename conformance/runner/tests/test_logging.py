# Where: conformance/runner/tests/test_logging.py
# What: Unit tests for logging setup, suite log files and the test tag.
# Why: Concurrent suites must not write into each other's logs.
from __future__ import annotations

import contextvars
import logging

import pytest

from conformance.runner import logging as runner_logging
from conformance.runner.discovery import TestId
from conformance.runner.events import (
    EVENT_CLASS_END,
    EVENT_CLASS_START,
    EVENT_TEST_END,
    EVENT_TEST_START,
    Event,
)
from conformance.runner.exceptions import HarnessError
from conformance.runner.results import TestOutcome


@pytest.fixture
def reset_logging():
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    root.setLevel(level)
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)


def test_setup_logging_substitutes_log_level(tmp_path, monkeypatch, reset_logging):
    config = tmp_path / "logging.yml"
    config.write_text(
        "version: 1\n"
        "disable_existing_loggers: false\n"
        "loggers:\n"
        "  conformance.sample:\n"
        "    level: ${LOG_LEVEL}\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    runner_logging.setup_logging(config)

    assert logging.getLogger("conformance.sample").level == logging.DEBUG


def test_setup_logging_rejects_invalid_config(tmp_path, reset_logging):
    config = tmp_path / "logging.yml"
    config.write_text("version: 1\nhandlers:\n  broken:\n    class: no.such.Handler\n", encoding="utf-8")

    with pytest.raises(HarnessError):
        runner_logging.setup_logging(config)


def test_bundled_config_loads(reset_logging, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    runner_logging.setup_logging()

    assert logging.getLogger("docker").level == logging.WARNING
    assert logging.getLogger("conformance").level == logging.INFO


def _log_in_suite(suite: str, message: str, test: str | None = None) -> None:
    def run():
        runner_logging.set_current_suite(suite)
        if test is not None:
            runner_logging._current_test.set(test)
        logging.getLogger("conformance.sample").warning(message)

    contextvars.copy_context().run(run)


def test_suite_log_files_are_isolated(tmp_path, reset_logging):
    first = runner_logging.configure_suite_logging("first", tmp_path / "first")
    second = runner_logging.configure_suite_logging("second", tmp_path / "second")
    try:
        _log_in_suite("first", "from first", test="State#add")
        _log_in_suite("second", "from second")
    finally:
        first.close()
        second.close()

    first_log = (tmp_path / "first" / "testrunner.log").read_text(encoding="utf-8")
    second_log = (tmp_path / "second" / "testrunner.log").read_text(encoding="utf-8")
    assert "from first" in first_log and "from second" not in first_log
    assert "[State#add] conformance.sample - from first" in first_log
    assert "from second" in second_log and "from first" not in second_log


def test_context_listener_sets_and_clears_current_test():
    listener = runner_logging.TestContextListener()
    test_id = TestId("State", "add", "add")

    def run():
        listener.emit(Event(EVENT_TEST_START, test=test_id))
        during = runner_logging.get_current_test()
        other = TestOutcome(test_id=TestId("State", "other", "other"), status="failed")
        listener.emit(Event(EVENT_TEST_END, test=other))
        still = runner_logging.get_current_test()
        listener.emit(Event(EVENT_TEST_END, test=TestOutcome(test_id=test_id, status="passed")))
        return during, still, runner_logging.get_current_test()

    assert contextvars.copy_context().run(run) == ("State#add", "State#add", None)


def test_context_listener_tags_class_setup_and_teardown():
    listener = runner_logging.TestContextListener()
    test_id = TestId("State", "add", "add")

    def in_test():
        listener.emit(Event(EVENT_TEST_START, test=test_id))
        current = runner_logging.get_current_test()
        listener.emit(Event(EVENT_TEST_END, test=TestOutcome(test_id=test_id, status="passed")))
        return current

    def run_class():
        listener.emit(Event(EVENT_CLASS_START, test="State"))
        setup = runner_logging.get_current_test()
        during_test = contextvars.copy_context().run(in_test)
        teardown = runner_logging.get_current_test()
        listener.emit(Event(EVENT_CLASS_END, test="State"))
        return setup, during_test, teardown, runner_logging.get_current_test()

    assert contextvars.copy_context().run(run_class) == ("State", "State#add", "State", None)


def test_safe_print_prefix(capsys):
    runner_logging.safe_print("ready", prefix="[INFO]")
    assert capsys.readouterr().out == "[INFO] ready\n"
