"""Models for test execution results and aggregated reports."""

from collections.abc import Mapping, Sequence
from typing import Literal, TypeAlias

from pydantic import Field

from api_test_hub.models.base import Model

TestCategory: TypeAlias = Literal[
    "Authentication",
    "Profile Management",
    "Account Linking",
    "Token Management",
    "Edge Cases",
]

OutputFormat: TypeAlias = Literal["console", "json", "junit"]

CATEGORIES: Sequence[TestCategory] = (
    "Authentication",
    "Profile Management",
    "Account Linking",
    "Token Management",
    "Edge Cases",
)

CATEGORY_ALIASES: Mapping[str, TestCategory] = {
    "auth": "Authentication",
    "authentication": "Authentication",
    "profile": "Profile Management",
    "profiles": "Profile Management",
    "profile management": "Profile Management",
    "linking": "Account Linking",
    "account-linking": "Account Linking",
    "account linking": "Account Linking",
    "token": "Token Management",
    "tokens": "Token Management",
    "token management": "Token Management",
    "edge": "Edge Cases",
    "edge-cases": "Edge Cases",
    "edge cases": "Edge Cases",
}


def parse_category(value: str) -> TestCategory:
    """Resolve a user-supplied category name or alias (case-insensitive).

    Raises:
        ValueError: If the value names no known category

    """
    try:
        return CATEGORY_ALIASES[value.strip().lower()]
    except KeyError:
        known = ", ".join(sorted({k for k in CATEGORY_ALIASES if " " not in k}))
        raise ValueError(
            f"Unknown category '{value}'. Known categories: {known}"
        ) from None


class TestError(Model):
    """Machine-readable failure classification attached to a result."""

    __test__ = False

    code: str = Field(..., description="Short machine string, e.g. AUTH_FAILED")
    message: str = Field(..., description="Human-readable error text")
    underlying: str | None = Field(
        default=None, description="String form of the wrapped error, if any"
    )


class TestDetails(Model):
    """Correlation data extracted from a test's requests and responses.

    Later tests in the same run read these values (tokens, ids) from the
    results recorded in the run context.
    """

    __test__ = False

    access_token: str | None = None
    refresh_token: str | None = None
    account_id: str | None = None
    profile_id: str | None = None
    session_id: str | None = None
    status_code: int | None = None
    request_url: str | None = None
    request_method: str | None = None


class TestResult(Model):
    """Outcome of one executed test case."""

    __test__ = False

    name: str = Field(..., description="Test case name")
    category: TestCategory = Field(..., description="Test case category")
    success: bool = Field(..., description="Whether the test passed")
    message: str = Field(default="", description="Human-readable outcome")
    execution_time: float = Field(
        default=0.0, description="Wall-clock execution time in seconds"
    )
    error: TestError | None = None
    details: TestDetails | None = None


class TestReport(Model):
    """Aggregate over a completed run."""

    __test__ = False

    environment: str
    total_tests: int
    passed: int
    failed: int
    success_rate: float
    duration: float
    output_format: OutputFormat = "console"
    all_tests: Sequence[TestResult] = Field(default_factory=tuple)

    @property
    def all_passed(self) -> bool:
        """True when no test failed."""
        return self.failed == 0

    @property
    def failed_tests(self) -> Sequence[TestResult]:
        """Failed results in execution order."""
        return [result for result in self.all_tests if not result.success]
