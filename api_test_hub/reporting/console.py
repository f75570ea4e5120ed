"""Human-readable console report."""

from api_test_hub.models.result import TestReport
from api_test_hub.reporting.generator import failure_reason


def render_console(report: TestReport) -> str:
    """Summary counts followed by the failed tests, if any."""
    lines = [
        "",
        "📊 Test Results",
        "================",
        f"Environment: {report.environment}",
        f"Total Tests: {report.total_tests}",
        f"Passed: ✅ {report.passed}",
        f"Failed: ❌ {report.failed}",
        f"Success Rate: {report.success_rate * 100:.1f}%",
        f"Duration: {report.duration:.2f}s",
    ]
    if report.failed_tests:
        lines += ["", "❌ Failed Tests:"]
        lines += [f"  - {test.name}: {failure_reason(test)}" for test in report.failed_tests]
    lines += ["", "✅ Test run completed!"]
    return "\n".join(lines)
