"""Token scenarios: refresh, validation, expiry, blacklisting."""

import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import ClassVar

from api_test_hub.models.api import RefreshResponse
from api_test_hub.models.result import TestCategory, TestResult
from api_test_hub.services.base import TestService, bearer

log = logging.getLogger(__name__)

# Signed with an unknown key and expired on 2021-01-01
EXPIRED_TOKEN = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.eyJleHAiOjE2MDk0NTkyMDB9.invalid"
)

PROTECTED_ENDPOINT = "/profiles"

STEP_SYMBOLS = {True: "✓", False: "✗"}


@dataclass(frozen=True, kw_only=True)
class TokenTestService(TestService):
    """Exercises /auth/refresh and token checks against a protected endpoint."""

    category: ClassVar[TestCategory] = "Token Management"

    async def refresh(self, refresh_token: str, *, name: str = "Token Refresh") -> TestResult:
        """Pass iff the server confirms with ``success`` and issues a new token pair."""
        result = self.result(name)
        response = await self.fetch(
            result,
            "POST",
            "/auth/refresh",
            RefreshResponse,
            code="REFRESH_FAILED",
            failure="Failed to refresh token",
            body={"refreshToken": refresh_token},
        )
        if isinstance(response, TestResult):
            return response
        tokens = response.tokens
        result.note(
            access_token=tokens.access_token if tokens else None,
            refresh_token=tokens.refresh_token if tokens else None,
        )
        return result.checked(
            {
                "success flag set": response.success is True,
                "new access token": bool(tokens and tokens.access_token),
                "new refresh token": bool(tokens and tokens.refresh_token),
            },
            passed="Successfully refreshed tokens",
            failed="Token refresh validation failed",
        )

    async def validate(self, access_token: str, *, name: str = "Token Validation") -> TestResult:
        """Pass iff a protected endpoint accepts the token."""
        result = self.result(name)
        result.note(access_token=access_token)
        response = await self.send(
            result,
            "GET",
            PROTECTED_ENDPOINT,
            code="VALIDATION_FAILED",
            failure="Token validation request failed",
            headers=bearer(access_token),
        )
        if isinstance(response, TestResult):
            return response
        if response.ok:
            return result.passed("Access token is valid")
        if response.status == HTTPStatus.UNAUTHORIZED:
            return result.failed(
                "Access token is invalid or expired",
                code="INVALID_TOKEN",
                error_message="Token validation failed",
            )
        return result.http_failed(
            "Token validation request failed", code="VALIDATION_FAILED", response=response
        )

    async def expect_rejected(
        self,
        token: str,
        label: str,
        *,
        code: str = "UNEXPECTED_ERROR",
        name: str,
    ) -> TestResult:
        """Pass iff a protected endpoint answers exactly 401 for ``token``.

        Any other status, success included, fails the scenario.
        """
        result = self.result(name)
        result.note(access_token=token)
        response = await self.send(
            result,
            "GET",
            PROTECTED_ENDPOINT,
            code=code,
            failure=f"Unexpected error when testing {label} token",
            headers=bearer(token),
        )
        if isinstance(response, TestResult):
            return response
        if response.status == HTTPStatus.UNAUTHORIZED:
            return result.passed(f"Correctly rejected {label} token")
        if response.ok:
            return result.failed(
                f"Expected token to be {label} but request succeeded",
                code="TOKEN_NOT_REJECTED",
                error_message=f"Expected HTTP 401, got {response.status}",
            )
        return result.failed(
            f"Unexpected error when testing {label} token",
            code=code,
            error_message=f"Expected HTTP 401, got {response.status}",
        )

    async def expiration(
        self, expired_token: str = EXPIRED_TOKEN, *, name: str = "Token Expiration"
    ) -> TestResult:
        return await self.expect_rejected(expired_token, "expired", name=name)

    async def blacklist(self, token: str, *, name: str = "Token Blacklist") -> TestResult:
        """Log out, then expect the same token to be rejected."""
        result = self.result(name)
        result.note(access_token=token)
        response = await self.send(
            result,
            "POST",
            "/auth/logout",
            code="BLACKLIST_TEST_FAILED",
            failure="Token blacklist test failed",
            headers=bearer(token),
        )
        if isinstance(response, TestResult):
            return response
        if not response.ok:
            return result.http_failed(
                "Logout before blacklist check failed",
                code="BLACKLIST_TEST_FAILED",
                response=response,
            )
        return await self.expect_rejected(
            token, "blacklisted", code="BLACKLIST_TEST_FAILED", name=name
        )

    async def lifecycle(
        self, access_token: str, refresh_token: str, *, name: str = "Token Lifecycle"
    ) -> TestResult:
        """Validate, refresh, validate the new token, then blacklist it."""
        result = self.result(name)
        steps: list[tuple[str, bool]] = []

        validation = await self.validate(access_token)
        steps.append(("Initial validation", validation.success))

        refreshed = await self.refresh(refresh_token)
        steps.append(("Token refresh", refreshed.success))

        new_token = refreshed.details.access_token if refreshed.details else None
        if refreshed.success and new_token:
            result.note(access_token=new_token)
            revalidation = await self.validate(new_token)
            steps.append(("New token validation", revalidation.success))
            blacklisted = await self.blacklist(new_token)
            steps.append(("Token blacklist", blacklisted.success))

        summary = "Lifecycle test: " + ", ".join(
            f"{label}: {STEP_SYMBOLS[ok]}" for label, ok in steps
        )
        broken = [label for label, ok in steps if not ok]
        if not broken and len(steps) == 4:
            return result.passed(summary)
        return result.failed(
            summary,
            code="LIFECYCLE_FAILED",
            error_message="Failed steps: " + (", ".join(broken) or "no new access token"),
        )
