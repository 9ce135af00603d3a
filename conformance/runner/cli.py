import argparse
from pathlib import Path

DEFAULT_REPORT_DIR = Path("test_report")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="sdk-test-suite", description="Conformance test suite for durable-execution SDKs"
    )
    parser.add_argument(
        "--test-suite",
        dest="test_suites",
        action="append",
        default=[],
        help="Suite(s) to run; repeatable or comma separated (default: all)",
    )
    parser.add_argument("--tags", type=str, help="Tag expression overriding the suite's tags")
    parser.add_argument(
        "--test-name",
        dest="test_names",
        action="append",
        default=[],
        help="Only run Class or Class#method; repeatable",
    )
    parser.add_argument(
        "--parallel",
        dest="parallel",
        action="store_true",
        help="Run test classes and concurrent tests in parallel (default)",
    )
    parser.add_argument(
        "--sequential",
        dest="parallel",
        action="store_false",
        help="Run one class and one test at a time",
    )
    parser.add_argument(
        "--parallelism",
        type=_positive_int,
        help="Maximum number of test classes running at once",
    )
    parser.add_argument(
        "--parallel-suites",
        action="store_true",
        help="Run the selected suites concurrently",
    )
    parser.add_argument(
        "--print-to-stdout",
        action="store_true",
        help="Also print harness logs to the terminal",
    )
    parser.add_argument(
        "--report-dir",
        type=Path,
        default=DEFAULT_REPORT_DIR,
        help=f"Directory for reports and logs (default: {DEFAULT_REPORT_DIR})",
    )
    parser.add_argument(
        "--retain-after-end",
        action="store_true",
        default=None,
        help="Keep containers running after each class for manual inspection",
    )
    parser.add_argument("--runtime-image", type=str, help="Runtime container image")
    parser.add_argument("--service-image", type=str, help="Test services container image")
    parser.add_argument(
        "--image-pull-policy",
        choices=["always", "missing", "never"],
        help="When to pull container images",
    )
    parser.add_argument(
        "--color",
        dest="color",
        action="store_const",
        const=True,
        help="Force color output",
    )
    parser.add_argument(
        "--no-color",
        dest="color",
        action="store_const",
        const=False,
        help="Disable color output",
    )
    parser.add_argument(
        "--emoji",
        dest="emoji",
        action="store_const",
        const=True,
        help="Force emoji output",
    )
    parser.add_argument(
        "--no-emoji",
        dest="emoji",
        action="store_const",
        const=False,
        help="Disable emoji output",
    )
    parser.set_defaults(color=None, emoji=None, parallel=True)
    return parser.parse_args(argv)
