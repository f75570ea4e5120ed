"""Test runner executing registry cases in order against one run context."""

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal, TypeAlias

from api_test_hub.config import TestConfiguration
from api_test_hub.context import RunContext
from api_test_hub.models.result import TestCategory, TestError, TestReport, TestResult
from api_test_hub.registry import TestCase, TestCaseError, TestRegistry, check_dependencies
from api_test_hub.reporting.generator import build_report
from api_test_hub.reporting.json_report import render_json

log = logging.getLogger(__name__)

RunState: TypeAlias = Literal["idle", "running", "completed"]


@dataclass(frozen=True, kw_only=True)
class RunProgress:
    """Snapshot of a run's progress."""

    state: RunState
    completed: int
    total: int
    current_test: str | None = None
    elapsed: float = 0.0
    eta: float | None = None

    @property
    def fraction(self) -> float:
        """Completed share of the run, 1.0 once completed."""
        if self.state == "completed":
            return 1.0
        return self.completed / self.total if self.total else 0.0


ProgressCallback: TypeAlias = Callable[[RunProgress], None]


def estimate_remaining(
    elapsed: float, completed: int, remaining: Sequence[TestCase]
) -> float | None:
    """Average time per finished case times cases left.

    Before any case has finished the declared expected durations are used.
    """
    if not remaining:
        return 0.0
    if completed == 0:
        return sum(case.expected_duration for case in remaining) or None
    return elapsed / completed * len(remaining)


@dataclass(kw_only=True)
class TestRunner:
    """Runs test cases one at a time, isolating every failure."""

    __test__ = False

    registry: TestRegistry
    config: TestConfiguration
    on_progress: ProgressCallback | None = None
    context: RunContext = field(default_factory=RunContext)

    _state: RunState = field(default="idle", init=False)
    _results: list[TestResult] = field(default_factory=list, init=False)
    _progress: RunProgress = field(
        default_factory=lambda: RunProgress(state="idle", completed=0, total=0),
        init=False,
    )

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def progress(self) -> RunProgress:
        return self._progress

    @property
    def results(self) -> Sequence[TestResult]:
        return tuple(self._results)

    async def run_all(self) -> TestReport:
        """Run every registered case."""
        return await self.run(self.registry.select())

    async def run_category(self, category: TestCategory) -> TestReport:
        """Run the cases of one category."""
        return await self.run(self.registry.select(category))

    async def run(self, cases: Sequence[TestCase]) -> TestReport:
        """Execute cases in order and build the report.

        Args:
            cases: Cases to execute, in execution order

        Returns:
            Report over all executed cases

        Raises:
            RuntimeError: If a run is already in progress

        """
        if self._state == "running":
            raise RuntimeError("A test run is already in progress")

        self._results.clear()
        self.context.reset()
        self._state = "running"

        for case_name, missing in check_dependencies(cases).items():
            log.warning(
                "'%s' requires %s, which no earlier selected test provides",
                case_name,
                ", ".join(sorted(missing)),
            )

        log.info("Running %d test(s) against %s", len(cases), self.config.base_url)
        started = time.perf_counter()

        for index, case in enumerate(cases):
            elapsed = time.perf_counter() - started
            self._publish(
                RunProgress(
                    state="running",
                    completed=index,
                    total=len(cases),
                    current_test=case.name,
                    elapsed=elapsed,
                    eta=estimate_remaining(elapsed, index, cases[index:]),
                )
            )
            log.info("Running test %d/%d: %s", index + 1, len(cases), case.name)

            result = await self._execute(case)
            self.context.record(result)
            self._results.append(result)
            log.info(
                "Test completed: name=%s status=%s duration=%.2fs",
                result.name,
                "passed" if result.success else "failed",
                result.execution_time,
            )

        duration = time.perf_counter() - started
        self._state = "completed"
        self._publish(
            RunProgress(
                state="completed",
                completed=len(cases),
                total=len(cases),
                elapsed=duration,
                eta=0.0,
            )
        )

        report = build_report(
            self._results,
            environment=self.config.environment,
            output_format=self.config.output_format,
            duration=duration,
        )
        if self.config.report_dir is not None:
            try:
                save_report(report, self.config.report_dir)
            except OSError as exc:
                log.error("Failed to save report to %s: %s", self.config.report_dir, exc)
        return report

    async def _execute(self, case: TestCase) -> TestResult:
        """Run one case body; whatever happens, return a result for it."""
        start = time.perf_counter()
        self.context.open(case.name)
        try:
            result = await case.run(self.context)
            if not isinstance(result, TestResult):
                raise TypeError(f"Test body returned {type(result).__name__}, not TestResult")
        except TestCaseError as exc:
            log.warning("Test '%s' precondition failed: %s", case.name, exc)
            result = failed_result(case, exc.error, exc.error.message)
        except Exception as exc:
            log.error("Test '%s' raised: %s", case.name, exc, exc_info=exc)
            result = failed_result(
                case,
                TestError(code="EXECUTION_ERROR", message=str(exc), underlying=repr(exc)),
                "Test execution failed",
            )
        finally:
            self.context.close()

        return result.model_copy(
            update={
                "name": case.name,
                "category": case.category,
                "execution_time": time.perf_counter() - start,
            }
        )

    def _publish(self, progress: RunProgress) -> None:
        self._progress = progress
        if self.on_progress is not None:
            self.on_progress(progress)


def failed_result(case: TestCase, error: TestError, message: str) -> TestResult:
    return TestResult(
        name=case.name,
        category=case.category,
        success=False,
        message=message,
        error=error,
    )


def save_report(report: TestReport, directory: Path) -> Path:
    """Write the JSON report as ``test-report-<UTC timestamp>.json``."""
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    path = directory / f"test-report-{stamp}.json"
    path.write_text(render_json(report), encoding="utf-8")
    log.info("Report saved to %s", path)
    return path
