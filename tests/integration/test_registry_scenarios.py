"""Registry test cases run end to end against a mocked API."""

import logging
from collections.abc import Sequence
from unittest.mock import patch

import pytest
from aioresponses import aioresponses as aioresponses_cls
from yarl import URL

from api_test_hub.config import TestConfiguration
from api_test_hub.registry import TestCase, build_registry
from api_test_hub.runner import TestRunner
from api_test_hub.services import TestServices
from api_test_hub.testing.payloads import (
    auth_response,
    profile,
    profile_response,
    profiles_response,
    success_response,
    switch_profile_response,
)

API = "http://localhost:3000/api/v2"
AUTHENTICATE = f"{API}/auth/authenticate"
SEND_CODE = f"{API}/auth/send-email-code"
PROFILES = f"{API}/profiles"


@pytest.fixture
def runner(services: TestServices, config: TestConfiguration) -> TestRunner:
    """Runner over the default registry."""
    return TestRunner(registry=build_registry(services, config), config=config)


def cases_named(runner: TestRunner, *names: str) -> Sequence[TestCase]:
    by_name = {case.name: case for case in runner.registry.select()}
    return [by_name[name] for name in names]


def test_default_registry_order(runner: TestRunner) -> None:
    """Categories run in a fixed order with unique names."""
    assert runner.registry.categories() == (
        "Authentication",
        "Profile Management",
        "Account Linking",
        "Token Management",
        "Edge Cases",
    )
    assert len(runner.registry) == 25
    assert runner.registry.select()[0].name == "Email Auth - New User"


class TestDependentCases:
    """Cases that build on an earlier case's outcome."""

    async def test_failed_registration_starves_profile_check(
        self, runner: TestRunner, aioresponses: aioresponses_cls
    ) -> None:
        """A failed new-user test leaves the profile check without a token."""
        aioresponses.post(SEND_CODE, status=500, body="mailer down")

        report = await runner.run(
            cases_named(runner, "Email Auth - New User", "Automatic Profile Creation")
        )

        registration, profile_check = report.all_tests
        assert registration.error is not None
        assert registration.error.code == "SEND_CODE_FAILED"
        assert profile_check.error is not None
        assert profile_check.error.code == "NO_TOKEN"
        assert ("GET", URL(PROFILES)) not in aioresponses.requests

    async def test_profile_management_flow(
        self, runner: TestRunner, aioresponses: aioresponses_cls
    ) -> None:
        """Create, switch, rename and delete a second profile of the new user."""
        aioresponses.post(SEND_CODE, status=200, payload=success_response())
        aioresponses.post(AUTHENTICATE, status=200, payload=auth_response())
        aioresponses.get(PROFILES, status=200, payload=profiles_response())
        aioresponses.get(PROFILES, status=200, payload=profiles_response())
        aioresponses.post(
            PROFILES,
            status=201,
            payload=profile_response(
                profile(profile_id="p2", name="Test Profile abc12345", is_active=False)
            ),
        )
        aioresponses.post(
            f"{API}/auth/switch-profile/p2",
            status=200,
            payload=switch_profile_response(profile_id="p2"),
        )
        aioresponses.put(
            f"{PROFILES}/p2",
            status=200,
            payload=profile_response(profile(profile_id="p2", name="Updated Profile abc12345")),
        )
        aioresponses.get(
            PROFILES,
            status=200,
            payload=profiles_response([profile(), profile(profile_id="p2", is_active=False)]),
        )
        aioresponses.delete(f"{PROFILES}/p2", status=200, payload=success_response())

        with patch("api_test_hub.registry.short_id", return_value="abc12345"):
            report = await runner.run(
                cases_named(
                    runner,
                    "Email Auth - New User",
                    "Automatic Profile Creation",
                    "Get Profiles",
                    "Create Additional Profile",
                    "Switch Profile",
                    "Update Profile",
                    "Delete Profile",
                )
            )

        assert report.all_passed, [(r.name, r.error) for r in report.failed_tests]
        assert report.total_tests == 7
        account = runner.context.account
        assert account is not None
        assert [p.id for p in account.profiles] == ["prof_1"]
        assert runner.context.additional_profile_id is None

    async def test_missing_wallet_is_reported(
        self,
        runner: TestRunner,
        aioresponses: aioresponses_cls,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Running a wallet follow-up alone fails with NO_WALLET and a warning."""
        with caplog.at_level(logging.WARNING):
            report = await runner.run(cases_named(runner, "Wallet Auth - Returning User"))

        (result,) = report.all_tests
        assert result.error is not None
        assert result.error.code == "NO_WALLET"
        assert "'Wallet Auth - Returning User' requires wallet" in caplog.text
        assert not aioresponses.requests

    async def test_blacklist_clears_current_account(
        self, runner: TestRunner, aioresponses: aioresponses_cls
    ) -> None:
        """Later cases never reuse a blacklisted token."""
        aioresponses.post(SEND_CODE, status=200, payload=success_response())
        aioresponses.post(AUTHENTICATE, status=200, payload=auth_response())
        aioresponses.post(f"{API}/auth/logout", status=200, payload=success_response())
        aioresponses.get(PROFILES, status=401, payload={})

        report = await runner.run(cases_named(runner, "Email Auth - New User", "Token Blacklist"))

        assert report.all_passed
        assert runner.context.account is None


class TestGuestFallbacks:
    """Cases that fall back to a guest session without a current account."""

    async def test_refresh_without_refresh_token(
        self, runner: TestRunner, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.post(
            AUTHENTICATE,
            status=200,
            payload=auth_response(account_type="guest", refresh_token=None),
        )

        report = await runner.run(cases_named(runner, "Token Refresh"))

        (result,) = report.all_tests
        assert result.error is not None
        assert result.error.code == "NO_REFRESH_TOKEN"

    async def test_validation_uses_guest_token(
        self, runner: TestRunner, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.post(
            AUTHENTICATE,
            status=200,
            payload=auth_response(account_type="guest", access_token="guest-token"),
        )
        aioresponses.get(PROFILES, status=200, payload=profiles_response())

        report = await runner.run(cases_named(runner, "Token Validation"))

        assert report.all_passed
        call = aioresponses.requests[("GET", URL(PROFILES))][0]
        assert call.kwargs["headers"]["Authorization"] == "Bearer guest-token"


class TestEdgeCases:
    """Edge-case scenarios."""

    async def test_delete_last_profile_refused(
        self, runner: TestRunner, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.post(SEND_CODE, status=200, payload=success_response())
        aioresponses.post(AUTHENTICATE, status=200, payload=auth_response())
        aioresponses.get(PROFILES, status=200, payload=profiles_response())
        aioresponses.delete(f"{PROFILES}/prof_1", status=400, payload={"error": "last profile"})

        report = await runner.run(cases_named(runner, "Delete Last Profile"))

        (result,) = report.all_tests
        assert result.success, result.error
        assert result.category == "Edge Cases"
        assert result.message == "Correctly prevented deletion of last profile"

    async def test_concurrent_sessions(
        self, runner: TestRunner, aioresponses: aioresponses_cls
    ) -> None:
        """Two guest sessions validate at the same time."""
        aioresponses.post(
            AUTHENTICATE, status=200, payload=auth_response(account_type="guest"), repeat=True
        )
        aioresponses.get(PROFILES, status=200, payload=profiles_response(), repeat=True)

        report = await runner.run(cases_named(runner, "Concurrent Sessions"))

        (result,) = report.all_tests
        assert result.success, result.error
        assert result.message == "Both sessions are valid at the same time"
        assert len(aioresponses.requests[("GET", URL(PROFILES))]) == 2
