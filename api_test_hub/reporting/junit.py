"""JUnit XML report for CI systems."""

import re

from lxml import etree as ET

from api_test_hub.models.result import TestReport
from api_test_hub.reporting.generator import failure_reason

SUITES_NAME = "Interspace V2 API Tests"
SUITE_NAME = "V2 API"

# Characters XML 1.0 allows; anything else is replaced
INVALID_XML_CHARS = re.compile(
    "[^\x09\x0A\x0D\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]"
)


def xml_safe(value: str) -> str:
    """Replace characters lxml refuses in text and attribute values."""
    return INVALID_XML_CHARS.sub("\uFFFD", value)


def _seconds(value: float) -> str:
    return f"{value:.3f}"


def render_junit(report: TestReport) -> str:
    """Render ``<testsuites><testsuite><testcase/>...`` with one suite.

    Failing cases carry ``<failure message=... type="AssertionError"/>``.
    lxml escapes ``& < > "`` in attribute values. Apostrophes stay literal
    inside the double-quoted attributes, and characters XML cannot carry
    become U+FFFD.
    """
    counts = {
        "tests": str(report.total_tests),
        "failures": str(report.failed),
        "time": _seconds(report.duration),
    }
    root = ET.Element("testsuites", name=SUITES_NAME, **counts)
    suite = ET.SubElement(root, "testsuite", name=SUITE_NAME, **counts)

    for result in report.all_tests:
        case = ET.SubElement(
            suite,
            "testcase",
            name=xml_safe(result.name),
            classname=xml_safe(result.category),
            time=_seconds(result.execution_time),
        )
        if not result.success:
            ET.SubElement(
                case,
                "failure",
                message=xml_safe(failure_reason(result)),
                type="AssertionError",
            )

    return ET.tostring(
        root, xml_declaration=True, encoding="UTF-8", pretty_print=True
    ).decode("utf-8")
