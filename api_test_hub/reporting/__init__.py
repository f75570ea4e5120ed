"""Report generation and rendering."""

from collections.abc import Callable, Mapping

from api_test_hub.models.result import OutputFormat, TestReport
from api_test_hub.reporting.console import render_console
from api_test_hub.reporting.generator import build_report, log_results_summary
from api_test_hub.reporting.json_report import parse_json, render_json
from api_test_hub.reporting.junit import render_junit

RENDERERS: Mapping[OutputFormat, Callable[[TestReport], str]] = {
    "console": render_console,
    "json": render_json,
    "junit": render_junit,
}


def render_report(report: TestReport, fmt: OutputFormat) -> str:
    """Render a report in the requested format."""
    return RENDERERS[fmt](report)


__all__ = [
    "RENDERERS",
    "build_report",
    "log_results_summary",
    "parse_json",
    "render_console",
    "render_json",
    "render_junit",
    "render_report",
]
