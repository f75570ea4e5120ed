"""HTTP client used by the domain test services."""

import json
import logging
import time
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

import aiohttp
from yarl import URL

from api_test_hub.config import TestConfiguration

log = logging.getLogger(__name__)

NetworkErrorKind: TypeAlias = Literal[
    "invalid_url",
    "invalid_response",
    "no_data",
    "timeout",
    "no_connection",
    "request_failed",
]

ERROR_DESCRIPTIONS: Mapping[NetworkErrorKind, str] = {
    "invalid_url": "Invalid URL",
    "invalid_response": "Invalid response from server",
    "no_data": "No data received",
    "timeout": "Request timed out",
    "no_connection": "No connection to server",
    "request_failed": "Request failed",
}

MAX_LOGGED_PAYLOAD = 1000
REDACTED_HEADERS: frozenset[str] = frozenset(["authorization"])


class NetworkError(Exception):
    """Transport failure classified into a closed set of kinds."""

    def __init__(self, kind: NetworkErrorKind, cause: BaseException | None = None):
        self.kind = kind
        self.cause = cause
        description = ERROR_DESCRIPTIONS[kind]
        super().__init__(f"{description}: {cause}" if cause else description)


@dataclass(frozen=True, kw_only=True)
class NetworkResponse:
    """Status, headers and raw body of a completed HTTP exchange."""

    method: str
    url: str
    status: int
    headers: Mapping[str, str]
    body: bytes
    duration: float

    @property
    def ok(self) -> bool:
        """True for 2xx statuses."""
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            NetworkError: ``no_data`` for an empty body, ``invalid_response``
                when the body is not JSON

        """
        if not self.body:
            raise NetworkError("no_data")
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise NetworkError("invalid_response", exc) from exc

    def text(self) -> str:
        """Body decoded as UTF-8, undecodable bytes replaced."""
        return self.body.decode("utf-8", errors="replace")


def truncate(text: str, limit: int = MAX_LOGGED_PAYLOAD) -> str:
    """Shorten text for logging."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text) - limit} more chars)"


def redact_headers(headers: Mapping[str, str] | None) -> Mapping[str, str]:
    """Mask credential headers before they reach the log."""
    if not headers:
        return {}
    return {
        key: "***" if key.lower() in REDACTED_HEADERS else value
        for key, value in headers.items()
    }


@dataclass(frozen=True, kw_only=True)
class NetworkClient:
    """Issues requests against ``{base_url}/api/{api_version}{endpoint}``.

    Every HTTP status is returned as a response; only transport failures
    raise. No retries are performed here.
    """

    base_url: str
    api_version: str
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: TestConfiguration
    ) -> AsyncGenerator["NetworkClient", None]:
        """Create client with managed session lifecycle."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": config.user_agent,
        }
        timeout = aiohttp.ClientTimeout(
            total=config.resource_timeout,
            sock_read=config.request_timeout,
        )
        async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
            yield cls(
                base_url=config.base_url,
                api_version=config.api_version,
                session=session,
            )

    def build_url(self, endpoint: str) -> URL:
        """Build the absolute URL for an API endpoint path.

        Raises:
            NetworkError: ``invalid_url`` when the endpoint is not a path or
                already carries the API prefix

        """
        if not endpoint.startswith("/") or endpoint.startswith("/api/"):
            raise NetworkError(
                "invalid_url", ValueError(f"Invalid endpoint path '{endpoint}'")
            )
        try:
            url = URL(f"{self.base_url.rstrip('/')}/api/{self.api_version}{endpoint}")
        except (TypeError, ValueError) as exc:
            raise NetworkError("invalid_url", exc) from exc
        if not url.is_absolute():
            raise NetworkError(
                "invalid_url", ValueError(f"Base URL '{self.base_url}' is not absolute")
            )
        return url

    async def get(
        self,
        endpoint: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> NetworkResponse:
        """Issue a GET request."""
        return await self.request("GET", endpoint, headers=headers, params=params)

    async def post(
        self,
        endpoint: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> NetworkResponse:
        """Issue a POST request."""
        return await self.request("POST", endpoint, headers=headers, body=body)

    async def put(
        self,
        endpoint: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> NetworkResponse:
        """Issue a PUT request."""
        return await self.request("PUT", endpoint, headers=headers, body=body)

    async def delete(
        self,
        endpoint: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> NetworkResponse:
        """Issue a DELETE request."""
        return await self.request("DELETE", endpoint, headers=headers)

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> NetworkResponse:
        """Perform one HTTP request and return the raw response.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: Path below the API prefix, e.g. "/auth/refresh"
            headers: Extra request headers
            params: Query parameters
            body: JSON-serializable request body

        Returns:
            The response, whatever its status code

        Raises:
            NetworkError: On any transport failure

        """
        url = self.build_url(endpoint)
        log_request(method, url, headers, params, body)

        start = time.perf_counter()
        try:
            async with self.session.request(
                method,
                url,
                headers=dict(headers) if headers else None,
                params=dict(params) if params else None,
                json=dict(body) if body is not None else None,
            ) as response:
                payload = await response.read()
                result = NetworkResponse(
                    method=method,
                    url=str(url),
                    status=response.status,
                    headers=dict(response.headers),
                    body=payload,
                    duration=time.perf_counter() - start,
                )
        except TimeoutError as exc:
            raise self._failure("timeout", exc, method, url, start) from exc
        except aiohttp.InvalidURL as exc:
            raise self._failure("invalid_url", exc, method, url, start) from exc
        except aiohttp.ClientConnectorError as exc:
            raise self._failure("no_connection", exc, method, url, start) from exc
        except (
            aiohttp.ClientResponseError,
            aiohttp.ClientPayloadError,
            aiohttp.ServerDisconnectedError,
        ) as exc:
            raise self._failure("invalid_response", exc, method, url, start) from exc
        except aiohttp.ClientError as exc:
            raise self._failure("request_failed", exc, method, url, start) from exc

        log_response(result)
        return result

    @staticmethod
    def _failure(
        kind: NetworkErrorKind,
        exc: BaseException,
        method: str,
        url: URL,
        start: float,
    ) -> NetworkError:
        log.warning(
            "%s %s failed after %.2fs (%s): %s",
            method,
            url,
            time.perf_counter() - start,
            kind,
            exc,
        )
        return NetworkError(kind, exc)


def log_request(
    method: str,
    url: URL,
    headers: Mapping[str, str] | None,
    params: Mapping[str, str] | None,
    body: Mapping[str, Any] | None,
) -> None:
    """Log an outgoing request."""
    log.info("-> %s %s", method, url)
    log.debug("   Headers: %s", redact_headers(headers))
    if params:
        log.debug("   Params: %s", dict(params))
    if body is not None:
        log.debug("   Body: %s", truncate(json.dumps(body, default=str)))


def log_response(response: NetworkResponse) -> None:
    """Log a received response."""
    log.info(
        "<- %d %s %s (%.2fs)",
        response.status,
        response.method,
        response.url,
        response.duration,
    )
    log.debug("   Headers: %s", dict(response.headers))
    if response.body:
        log.debug("   Response: %s", truncate(response.text()))
