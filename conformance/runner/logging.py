# Where: conformance/runner/logging.py
# What: Logging setup, per-suite log files and the current-test log tag.
# Why: Suites and tests run concurrently; every log line must land in the right file.
from __future__ import annotations

import logging
import logging.config
import os
import string
import threading
from contextvars import ContextVar
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

import yaml

from conformance.runner.capture import terminal_stream
from conformance.runner.events import (
    EVENT_CLASS_END,
    EVENT_CLASS_START,
    EVENT_TEST_END,
    EVENT_TEST_START,
    Event,
    Reporter,
)
from conformance.runner.exceptions import HarnessError

LOGGING_CONFIG = Path(__file__).resolve().parent.parent / "logging.yml"
LOG_FILE = "testrunner.log"
LOG_PATTERN = "%(relativeCreated)6d %(levelname)-5s [%(threadName)s]%(test_tag)s %(name)s - %(message)s"

_OUTPUT_LOCK = threading.Lock()

_current_suite: ContextVar[str | None] = ContextVar("current_suite", default=None)
_current_test: ContextVar[str | None] = ContextVar("current_test", default=None)


def safe_print(message: str = "", *, prefix: str | None = None, stream: TextIO | None = None) -> None:
    target = stream or terminal_stream()
    with _OUTPUT_LOCK:
        if prefix:
            print(f"{prefix} {message}", file=target, flush=True)
        else:
            print(message, file=target, flush=True)


def setup_logging(config_path: Path = LOGGING_CONFIG) -> None:
    """
    Load the YAML config, substitute environment variables, and initialize logging.
    """
    if not config_path.exists():
        logging.basicConfig(level=logging.INFO)
        return

    with open(config_path, "r", encoding="utf-8") as f:
        # Supports ${LOG_LEVEL} format.
        template = string.Template(f.read())

    mapping = os.environ.copy()
    if "LOG_LEVEL" not in mapping:
        mapping["LOG_LEVEL"] = "INFO"

    try:
        config = yaml.safe_load(template.safe_substitute(mapping))
        logging.config.dictConfig(config)
    except (yaml.YAMLError, ValueError, TypeError) as e:
        raise HarnessError(f"Invalid logging configuration {config_path}: {e}") from e


def set_current_suite(suite: str | None):
    return _current_suite.set(suite)


def get_current_test() -> str | None:
    return _current_test.get()


class SuiteFilter(logging.Filter):
    """Keep only records emitted while `suite` is the current suite."""

    def __init__(self, suite: str) -> None:
        super().__init__()
        self.suite = suite

    def filter(self, record: logging.LogRecord) -> bool:
        return _current_suite.get() == self.suite


class TestNameFilter(logging.Filter):
    """Adds `test_tag` ("[Class#method]", "[Class]" or "") to every record."""

    __test__ = False

    def filter(self, record: logging.LogRecord) -> bool:
        test = _current_test.get()
        record.test_tag = f"[{test}]" if test else ""
        return True


class TestContextListener(Reporter):
    """Tracks the running class and test so log lines can be tagged with them."""

    __test__ = False

    def emit(self, event: Event) -> None:
        # Class events carry the class name; setup and teardown logs get "[Class]".
        if event.event_type == EVENT_CLASS_START and isinstance(event.test, str):
            _current_test.set(event.test)
            return
        if event.event_type == EVENT_CLASS_END and isinstance(event.test, str):
            if _current_test.get() == event.test:
                _current_test.set(None)
            return
        if event.event_type == EVENT_TEST_START and event.test is not None:
            _current_test.set(event.test.unique_id)
            return
        if event.event_type == EVENT_TEST_END and event.test is not None:
            # Only clear our own value; a timed-out test may end from another thread.
            if _current_test.get() == event.test.test_id.unique_id:
                _current_test.set(None)


@dataclass
class SuiteLogging:
    suite: str
    handlers: list[logging.Handler] = field(default_factory=list)

    def close(self) -> None:
        root = logging.getLogger()
        for handler in self.handlers:
            root.removeHandler(handler)
            handler.close()
        self.handlers = []


def configure_suite_logging(suite: str, report_dir: Path, *, print_to_stdout: bool = False) -> SuiteLogging:
    report_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_PATTERN)
    handle = SuiteLogging(suite=suite)

    file_handler = logging.FileHandler(report_dir / LOG_FILE, encoding="utf-8")
    handle.handlers.append(file_handler)
    if print_to_stdout:
        handle.handlers.append(logging.StreamHandler(terminal_stream()))

    root = logging.getLogger()
    for handler in handle.handlers:
        handler.setFormatter(formatter)
        handler.addFilter(SuiteFilter(suite))
        handler.addFilter(TestNameFilter())
        root.addHandler(handler)
    return handle
