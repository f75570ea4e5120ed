"""Aggregation of test results into a report."""

import logging
from collections.abc import Sequence

from api_test_hub.models.result import OutputFormat, TestReport, TestResult

STATUS_SYMBOLS = {
    True: "✅",
    False: "❌",
}


def build_report(
    results: Sequence[TestResult],
    *,
    environment: str,
    output_format: OutputFormat = "console",
    duration: float,
) -> TestReport:
    """Reduce ordered results to a report.

    Args:
        results: Results in execution order
        environment: Environment the run targeted
        output_format: Format the report will be rendered in
        duration: Wall-clock duration of the whole run in seconds

    Returns:
        The report; success rate is 0 for an empty run

    """
    total = len(results)
    passed = sum(1 for result in results if result.success)
    return TestReport(
        environment=environment,
        total_tests=total,
        passed=passed,
        failed=total - passed,
        success_rate=passed / total if total else 0.0,
        duration=duration,
        output_format=output_format,
        all_tests=tuple(results),
    )


def failure_reason(result: TestResult) -> str:
    """Text explaining why a result failed."""
    if result.error is None:
        return result.message
    return f"{result.error.code}: {result.error.message}"


def log_results_summary(log: logging.Logger, report: TestReport) -> None:
    """Log a formatted summary of test results."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for result in report.all_tests:
        log.info(
            "%s [%s] %s (%.2fs)",
            STATUS_SYMBOLS[result.success],
            result.category,
            result.name,
            result.execution_time,
        )
        if result.message:
            log.info("  Message: %s", result.message)
        if result.error:
            log.info("  Error: %s", failure_reason(result))

    log.info(
        "%d passed, %d failed (%.1f%%) in %.2fs",
        report.passed,
        report.failed,
        report.success_rate * 100,
        report.duration,
    )
