#!/usr/bin/env python3
# Where: conformance/run_tests.py
# What: Entry point of the SDK conformance test suite.
# Why: Resolve configuration once, run the selected suites and map results to an exit code.
import sys

from pydantic import ValidationError

from conformance.runner.cli import parse_args
from conformance.runner.config import (
    GlobalConfig,
    get_global_config,
    load_suites,
    register_global_config,
    select_suites,
)
from conformance.runner.exceptions import HarnessError
from conformance.runner.logging import setup_logging
from conformance.runner.suite import run_suites
from conformance.runner.ui import PlainReporter


def build_config(args) -> GlobalConfig:
    try:
        config = GlobalConfig()
    except ValidationError as e:
        raise HarnessError(f"Invalid configuration: {e}") from e

    overrides = {}
    if args.runtime_image:
        overrides["RUNTIME_CONTAINER_IMAGE"] = args.runtime_image
    if args.service_image:
        overrides["SERVICE_CONTAINER_IMAGE"] = args.service_image
    if args.image_pull_policy:
        overrides["IMAGE_PULL_POLICY"] = args.image_pull_policy
    if args.retain_after_end is not None:
        overrides["RETAIN_AFTER_END"] = args.retain_after_end
    if overrides:
        config = config.copy_with(**overrides)

    if not config.SERVICE_CONTAINER_IMAGE:
        raise HarnessError(
            "No service image configured. Use --service-image or SDK_TEST_SERVICE_CONTAINER_IMAGE."
        )
    return config


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        setup_logging()
        register_global_config(build_config(args))
        suites = select_suites(load_suites(), args.test_suites)
        reporter = PlainReporter(color=args.color, emoji=args.emoji)
        results = run_suites(
            suites,
            base_config=get_global_config(),
            report_dir=args.report_dir.resolve(),
            reporter=reporter,
            parallel_suites=args.parallel_suites,
            print_to_stdout=args.print_to_stdout,
            parallel=args.parallel,
            parallelism=args.parallelism,
            name_filters=args.test_names,
            tag_override=args.tags,
        )
    except HarnessError as e:
        print(f"[ERROR] {e}")
        return 1

    return 0 if all(result.succeeded for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
