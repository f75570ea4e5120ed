"""CLI entry point for the API test hub."""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import NoReturn

from pydantic import ValidationError

from api_test_hub.config import BASE_URLS, ENVIRONMENT_ALIASES, TestConfiguration
from api_test_hub.models.result import CATEGORY_ALIASES, parse_category
from api_test_hub.network import NetworkClient
from api_test_hub.registry import build_registry
from api_test_hub.reporting import log_results_summary, render_report
from api_test_hub.runner import RunProgress, TestRunner
from api_test_hub.services import TestServices

REPORT_DIR_ENV = "TEST_HUB_REPORT_DIR"

EPILOG = """\
examples:
  test-hub                              run every test against dev
  test-hub -e staging -c auth           authentication tests on staging
  test-hub -o junit > results.xml       JUnit XML for CI
"""


class ConfigurationError(Exception):
    """Raised for invalid command-line arguments."""


class ArgumentParser(argparse.ArgumentParser):
    """Argument parser that raises instead of exiting on bad input."""

    def error(self, message: str) -> NoReturn:
        raise ConfigurationError(message)


def build_parser() -> ArgumentParser:
    environments = ", ".join([*BASE_URLS, *ENVIRONMENT_ALIASES])
    categories = ", ".join(sorted(k for k in CATEGORY_ALIASES if " " not in k))
    parser = ArgumentParser(
        prog="test-hub",
        description="Run the V2 API integration tests and report the results",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-e",
        "--env",
        default="dev",
        help=f"Target environment ({environments}; default: dev)",
    )
    parser.add_argument(
        "-c",
        "--category",
        help=f"Only run one category ({categories})",
    )
    parser.add_argument(
        "-o",
        "--output",
        choices=["console", "json", "junit"],
        default="console",
        help="Report format (default: console)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log requests and responses in detail",
    )
    return parser


def parse_config(argv: Sequence[str] | None = None) -> TestConfiguration:
    """Build the run configuration from command-line arguments.

    Raises:
        ConfigurationError: On unknown flags, missing values, or invalid
            environment or category names

    """
    args = build_parser().parse_args(argv)

    try:
        category = parse_category(args.category) if args.category is not None else None
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    report_dir = os.environ.get(REPORT_DIR_ENV)
    try:
        return TestConfiguration(
            environment=args.env,
            category=category,
            output_format=args.output,
            verbose=args.verbose,
            report_dir=Path(report_dir) if report_dir else None,
        )
    except ValidationError as exc:
        known = ", ".join(BASE_URLS)
        raise ConfigurationError(
            f"Unknown environment '{args.env}'. Known environments: {known}"
        ) from exc


def log_progress(progress: RunProgress) -> None:
    log = logging.getLogger("api_test_hub")
    if progress.state != "running":
        return
    log.debug(
        "Progress %d/%d (%.0f%%), ETA %s",
        progress.completed,
        progress.total,
        progress.fraction * 100,
        f"{progress.eta:.1f}s" if progress.eta is not None else "unknown",
    )


async def run(config: TestConfiguration) -> int:
    """Run the selected tests, print the report and return the exit code."""
    log = logging.getLogger("api_test_hub")

    log.info(
        "Running %s tests against %s (%s)",
        config.category or "all",
        config.environment,
        config.base_url,
    )

    async with NetworkClient.from_config(config) as client:
        services = TestServices.from_client(client, config)
        runner = TestRunner(
            registry=build_registry(services, config),
            config=config,
            on_progress=log_progress,
        )
        if config.category is None:
            report = await runner.run_all()
        else:
            report = await runner.run_category(config.category)

    log_results_summary(log, report)
    print(render_report(report, config.output_format))

    return 0 if report.all_passed else 1


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    try:
        config = parse_config(argv)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        print("Run 'test-hub --help' for usage.", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(run(config))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
