# Where: conformance/runner/tests/test_cli.py
# What: Unit tests for command line parsing.
# Why: Flags map directly onto config overrides and run options.
from __future__ import annotations

from pathlib import Path

import pytest

from conformance.runner.cli import parse_args


def test_defaults():
    args = parse_args([])

    assert args.test_suites == []
    assert args.test_names == []
    assert args.tags is None
    assert args.parallel is True
    assert args.parallelism is None
    assert args.parallel_suites is False
    assert args.report_dir == Path("test_report")
    assert args.retain_after_end is None
    assert (args.color, args.emoji) == (None, None)


def test_repeatable_options_and_switches():
    args = parse_args(
        [
            "--test-suite",
            "default,lazyState",
            "--test-suite",
            "alwaysSuspending",
            "--test-name",
            "State#add",
            "--sequential",
            "--parallelism",
            "3",
            "--retain-after-end",
            "--image-pull-policy",
            "never",
            "--no-color",
            "--emoji",
        ]
    )

    assert args.test_suites == ["default,lazyState", "alwaysSuspending"]
    assert args.test_names == ["State#add"]
    assert args.parallel is False
    assert args.parallelism == 3
    assert args.retain_after_end is True
    assert args.image_pull_policy == "never"
    assert (args.color, args.emoji) == (False, True)


@pytest.mark.parametrize("argv", [["--parallelism", "0"], ["--image-pull-policy", "sometimes"]])
def test_invalid_values_exit(argv):
    with pytest.raises(SystemExit):
        parse_args(argv)
