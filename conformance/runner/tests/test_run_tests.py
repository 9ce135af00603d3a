# Where: conformance/runner/tests/test_run_tests.py
# What: Unit tests for the command line entry point.
# Why: Exit codes and fatal errors are the contract with CI.
from __future__ import annotations

import pytest

from conformance import run_tests
from conformance.runner.cli import parse_args
from conformance.runner.discovery import TestId
from conformance.runner.exceptions import HarnessError
from conformance.runner.results import ExecutionResult, TestOutcome


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch):
    monkeypatch.setattr(run_tests, "setup_logging", lambda: None)
    monkeypatch.delenv("SDK_TEST_SERVICE_CONTAINER_IMAGE", raising=False)


def test_build_config_applies_overrides():
    args = parse_args(
        ["--service-image", "svc:1", "--runtime-image", "rt:1", "--retain-after-end"]
    )

    config = run_tests.build_config(args)

    assert config.SERVICE_CONTAINER_IMAGE == "svc:1"
    assert config.RUNTIME_CONTAINER_IMAGE == "rt:1"
    assert config.RETAIN_AFTER_END is True


def test_build_config_requires_service_image():
    with pytest.raises(HarnessError, match="No service image"):
        run_tests.build_config(parse_args([]))


def test_missing_service_image_exits_with_error(capsys):
    assert run_tests.main([]) == 1
    assert "[ERROR] No service image configured" in capsys.readouterr().out


def test_unknown_suite_exits_with_error(capsys):
    assert run_tests.main(["--service-image", "svc", "--test-suite", "nope"]) == 1
    assert "Unknown test suite 'nope'" in capsys.readouterr().out


def _result(suite: str, status: str) -> ExecutionResult:
    outcome = TestOutcome(test_id=TestId("State", "add", "add"), status=status)
    return ExecutionResult(suite=suite, tests=(outcome,))


@pytest.mark.parametrize("status, code", [("passed", 0), ("failed", 1)])
def test_exit_code_follows_results(monkeypatch, tmp_path, status, code):
    captured = {}

    def fake_run_suites(suites, **options):
        captured["suites"] = [suite.name for suite in suites]
        captured["options"] = options
        return [_result(suite.name, status) for suite in suites]

    monkeypatch.setattr(run_tests, "run_suites", fake_run_suites)

    exit_code = run_tests.main(
        [
            "--service-image",
            "svc",
            "--test-suite",
            "lazyState",
            "--report-dir",
            str(tmp_path),
            "--tags",
            "any()",
            "--no-color",
        ]
    )

    assert exit_code == code
    assert captured["suites"] == ["lazyState"]
    assert captured["options"]["tag_override"] == "any()"
    assert captured["options"]["report_dir"] == tmp_path.resolve()
    assert captured["options"]["base_config"].SERVICE_CONTAINER_IMAGE == "svc"
