"""Shared plumbing for the domain test services."""

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypeVar

from pydantic import BaseModel, ValidationError

from api_test_hub.config import TestConfiguration
from api_test_hub.models.result import TestCategory, TestDetails, TestError, TestResult
from api_test_hub.network import NetworkClient, NetworkError, NetworkResponse, truncate

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

MAX_ERROR_BODY = 200


class ParseError(Exception):
    """Raised when a response body cannot be read as the expected structure."""


def bearer(token: str) -> Mapping[str, str]:
    """Authorization header for a bearer token."""
    return {"Authorization": f"Bearer {token}"}


def parse_response(response: NetworkResponse, model: type[M]) -> M:
    """Validate a JSON response body against a response model.

    Raises:
        ParseError: If the body is empty, not JSON, or of the wrong shape

    """
    if not response.body:
        raise ParseError("Empty response body")
    try:
        return model.model_validate_json(response.body)
    except ValidationError as exc:
        raise ParseError(
            f"Unexpected {model.__name__} payload: {exc.error_count()} error(s)"
        ) from exc


@dataclass(kw_only=True)
class ResultBuilder:
    """Accumulates correlation data and timing for one scenario."""

    name: str
    category: TestCategory
    details: dict[str, Any] = field(default_factory=dict)
    started: float = field(default_factory=time.perf_counter)

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.started

    def note(self, **values: Any) -> None:
        """Record correlation data; ``None`` values are ignored."""
        self.details.update({k: v for k, v in values.items() if v is not None})

    def note_response(self, response: NetworkResponse) -> None:
        self.note(
            status_code=response.status,
            request_url=response.url,
            request_method=response.method,
        )

    def passed(self, message: str) -> TestResult:
        return self._build(success=True, message=message)

    def failed(
        self,
        message: str,
        *,
        code: str,
        error_message: str | None = None,
        cause: BaseException | None = None,
    ) -> TestResult:
        error = TestError(
            code=code,
            message=error_message or (str(cause) if cause else message),
            underlying=repr(cause) if cause else None,
        )
        return self._build(success=False, message=message, error=error)

    def http_failed(self, message: str, *, code: str, response: NetworkResponse) -> TestResult:
        """Failure caused by a non-2xx status."""
        return self.failed(
            message,
            code=code,
            error_message=f"HTTP {response.status}: {truncate(response.text(), MAX_ERROR_BODY)}",
        )

    def checked(
        self,
        checks: Mapping[str, bool],
        *,
        passed: str,
        failed: str,
    ) -> TestResult:
        """Pass iff every named check holds; list the ones that did not."""
        broken = [label for label, ok in checks.items() if not ok]
        if not broken:
            return self.passed(passed)
        return self.failed(
            failed,
            code="VALIDATION_ERROR",
            error_message="Failed checks: " + ", ".join(broken),
        )

    def _build(
        self, *, success: bool, message: str, error: TestError | None = None
    ) -> TestResult:
        return TestResult(
            name=self.name,
            category=self.category,
            success=success,
            message=message,
            execution_time=self.elapsed,
            error=error,
            details=TestDetails(**self.details) if self.details else None,
        )


@dataclass(frozen=True, kw_only=True)
class TestService:
    """Base for services that turn API calls into test results."""

    __test__ = False

    category: ClassVar[TestCategory]

    client: NetworkClient
    config: TestConfiguration

    def result(self, name: str) -> ResultBuilder:
        """Start timing a scenario."""
        return ResultBuilder(name=name, category=self.category)

    async def send(
        self,
        result: ResultBuilder,
        method: str,
        endpoint: str,
        *,
        code: str,
        failure: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> NetworkResponse | TestResult:
        """Issue a request; transport failures come back as a failed result."""
        result.note(request_method=method)
        try:
            response = await self.client.request(
                method, endpoint, headers=headers, params=params, body=body
            )
        except NetworkError as exc:
            log.debug("%s: transport failure (%s)", result.name, exc.kind)
            return result.failed(failure, code=code, cause=exc)
        result.note_response(response)
        return response

    async def fetch(
        self,
        result: ResultBuilder,
        method: str,
        endpoint: str,
        model: type[M],
        *,
        code: str,
        failure: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> M | TestResult:
        """Issue a request and parse a successful response.

        Returns the parsed model, or a failed result for transport errors
        (``code``), non-2xx statuses (``code``) and unreadable bodies
        (``PARSE_ERROR``).
        """
        response = await self.send(
            result,
            method,
            endpoint,
            code=code,
            failure=failure,
            headers=headers,
            params=params,
            body=body,
        )
        if isinstance(response, TestResult):
            return response
        if not response.ok:
            return result.http_failed(failure, code=code, response=response)
        try:
            return parse_response(response, model)
        except ParseError as exc:
            return result.failed(
                "Failed to parse response", code="PARSE_ERROR", cause=exc
            )
