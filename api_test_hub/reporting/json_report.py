"""JSON report with deterministic key order."""

import json

from api_test_hub.models.result import TestReport


def render_json(report: TestReport) -> str:
    """Pretty JSON with sorted camelCase keys; ``None`` fields are left out."""
    payload = report.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(payload, sort_keys=True, indent=2, ensure_ascii=False)


def parse_json(text: str) -> TestReport:
    """Read a rendered report back."""
    return TestReport.model_validate_json(text)
