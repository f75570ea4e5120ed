"""Declaration of every test case, grouped by category.

Each category has one factory function returning its cases in execution
order. Cases declare the run artifacts they need (``requires``) and leave
behind (``provides``) so ordering constraints are visible without reading
the bodies.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Literal, TypeAlias

from api_test_hub.config import TestConfiguration
from api_test_hub.context import (
    LinkedAccount,
    RunContext,
    TestAccount,
    TestProfile,
    TestWallet,
)
from api_test_hub.models.result import TestCategory, TestError, TestResult
from api_test_hub.services.auth import random_wallet_address, unique_email
from api_test_hub.services.suite import TestServices

log = logging.getLogger(__name__)

Artifact: TypeAlias = Literal[
    "access_token", "refresh_token", "second_profile", "linked_account", "wallet"
]

TestBody: TypeAlias = Callable[[RunContext], Awaitable[TestResult]]

NEW_USER_TEST = "Email Auth - New User"


class TestCaseError(Exception):
    """Raised by a test body whose preconditions are not met."""

    __test__ = False

    def __init__(self, code: str, message: str):
        self.error = TestError(code=code, message=message)
        super().__init__(f"{code}: {message}")


@dataclass(frozen=True, kw_only=True)
class TestCase:
    """A named, categorized check against the live API."""

    __test__ = False

    name: str
    category: TestCategory
    description: str
    body: TestBody = field(repr=False)
    requires_auth: bool = False
    expected_duration: float = 1.0
    requires: frozenset[Artifact] = frozenset()
    provides: frozenset[Artifact] = frozenset()

    async def run(self, ctx: RunContext) -> TestResult:
        return await self.body(ctx)


@dataclass(frozen=True)
class TestRegistry:
    """Ordered, name-unique collection of test cases."""

    __test__ = False

    cases: Sequence[TestCase]

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for case in self.cases:
            if case.name in seen:
                raise ValueError(f"Duplicate test case name '{case.name}'")
            seen.add(case.name)

    def __len__(self) -> int:
        return len(self.cases)

    def select(self, category: TestCategory | None = None) -> Sequence[TestCase]:
        """All cases, or those of one category, in declaration order."""
        if category is None:
            return tuple(self.cases)
        return tuple(case for case in self.cases if case.category == category)

    def categories(self) -> Sequence[TestCategory]:
        """Categories present, in order of first appearance."""
        return tuple(dict.fromkeys(case.category for case in self.cases))


def check_dependencies(cases: Sequence[TestCase]) -> Mapping[str, frozenset[Artifact]]:
    """Find declared requirements no earlier case in the selection provides.

    Returns:
        Missing artifacts keyed by case name; empty when every requirement is met

    """
    provided: set[Artifact] = set()
    unmet: dict[str, frozenset[Artifact]] = {}
    for case in cases:
        missing = case.requires - provided
        if missing:
            unmet[case.name] = frozenset(missing)
        provided |= case.provides
    return unmet


def build_registry(services: TestServices, config: TestConfiguration) -> TestRegistry:
    """The default registry: every category in run order."""
    return TestRegistry(
        [
            *authentication_cases(services, config),
            *profile_cases(services, config),
            *linking_cases(services, config),
            *token_cases(services, config),
            *edge_cases(services, config),
        ]
    )


# Shared preconditions


def require_account(ctx: RunContext) -> TestAccount:
    if ctx.account is None:
        raise TestCaseError("NO_ACCOUNT", "No authenticated test account available")
    return ctx.account


def access_token_of(result: TestResult) -> str | None:
    return result.details.access_token if result.details else None


async def session_token(services: TestServices, ctx: RunContext, name: str) -> str | TestResult:
    """Access token of the current account, or of a fresh guest session."""
    if ctx.account is not None:
        return ctx.account.access_token
    log.info("%s: no current account, authenticating a guest", name)
    guest = await services.auth.guest_authentication(name=name)
    if not guest.success:
        return guest
    token = access_token_of(guest)
    if token is None:
        raise TestCaseError("NO_TOKEN", "Guest authentication returned no access token")
    return token


async def new_email_user(
    services: TestServices,
    config: TestConfiguration,
    name: str,
    ctx: RunContext | None = None,
) -> TestResult:
    """Register a never-seen email address."""
    email = unique_email()
    sent = await services.auth.send_email_code(email, name=name)
    if not sent.success:
        return sent
    return await services.auth.email_authentication(
        email, config.verification_code, is_new_user=True, ctx=ctx, name=name
    )


def short_id() -> str:
    return uuid.uuid4().hex[:8]


# Authentication


async def email_auth_new_user(
    services: TestServices, config: TestConfiguration, ctx: RunContext
) -> TestResult:
    return await new_email_user(services, config, NEW_USER_TEST, ctx)


async def email_auth_returning_user(
    services: TestServices, config: TestConfiguration, ctx: RunContext
) -> TestResult:
    name = "Email Auth - Returning User"
    sent = await services.auth.send_email_code(config.test_email, name=name)
    if not sent.success:
        return sent
    return await services.auth.email_authentication(
        config.test_email, config.verification_code, is_new_user=False, name=name
    )


async def wallet_auth_new_user(services: TestServices, ctx: RunContext) -> TestResult:
    wallet = TestWallet(address=random_wallet_address())
    result = await services.auth.wallet_authentication(
        wallet.address, is_new_user=True, name="Wallet Auth - New User"
    )
    if result.success:
        ctx.set_wallet(wallet)
    return result


async def wallet_auth_returning_user(services: TestServices, ctx: RunContext) -> TestResult:
    if ctx.wallet is None:
        raise TestCaseError("NO_WALLET", "No wallet from a previous wallet authentication")
    return await services.auth.wallet_authentication(
        ctx.wallet.address, is_new_user=False, name="Wallet Auth - Returning User"
    )


async def guest_auth(services: TestServices, ctx: RunContext) -> TestResult:
    return await services.auth.guest_authentication()


async def logout(services: TestServices, ctx: RunContext) -> TestResult:
    guest = await services.auth.guest_authentication(name="Logout")
    if not guest.success:
        return guest
    token = access_token_of(guest)
    if token is None:
        raise TestCaseError("NO_TOKEN", "Guest authentication returned no access token")
    return await services.auth.logout(token)


def authentication_cases(services: TestServices, config: TestConfiguration) -> Sequence[TestCase]:
    category: TestCategory = "Authentication"
    return [
        TestCase(
            name=NEW_USER_TEST,
            category=category,
            description="Register a new email user and check the automatic profile",
            body=partial(email_auth_new_user, services, config),
            expected_duration=2.0,
            provides=frozenset(["access_token", "refresh_token"]),
        ),
        TestCase(
            name="Email Auth - Returning User",
            category=category,
            description="Sign in an existing email user",
            body=partial(email_auth_returning_user, services, config),
            expected_duration=2.0,
        ),
        TestCase(
            name="Wallet Auth - New User",
            category=category,
            description="Register a new wallet with a signed message",
            body=partial(wallet_auth_new_user, services),
            expected_duration=1.5,
            provides=frozenset(["wallet"]),
        ),
        TestCase(
            name="Wallet Auth - Returning User",
            category=category,
            description="Sign in again with the same wallet",
            body=partial(wallet_auth_returning_user, services),
            expected_duration=1.5,
            requires=frozenset(["wallet"]),
        ),
        TestCase(
            name="Guest Authentication",
            category=category,
            description="Create a guest session",
            body=partial(guest_auth, services),
        ),
        TestCase(
            name="Logout",
            category=category,
            description="Log out a fresh guest session",
            body=partial(logout, services),
            expected_duration=1.5,
        ),
    ]


# Profile management


async def automatic_profile_creation(
    services: TestServices, config: TestConfiguration, ctx: RunContext
) -> TestResult:
    name = "Automatic Profile Creation"
    earlier = ctx.result_for(NEW_USER_TEST)
    if earlier is None:
        fresh = await new_email_user(services, config, name)
        if not fresh.success:
            return fresh
        token = access_token_of(fresh)
    else:
        token = access_token_of(earlier)
    if not token:
        raise TestCaseError("NO_TOKEN", f"No access token from '{NEW_USER_TEST}'")
    return await services.profile.first_time_profile_creation(token, name=name)


async def get_profiles(services: TestServices, ctx: RunContext) -> TestResult:
    token = await session_token(services, ctx, "Get Profiles")
    if isinstance(token, TestResult):
        return token
    return await services.profile.get_profiles(token)


async def create_additional_profile(services: TestServices, ctx: RunContext) -> TestResult:
    account = require_account(ctx)
    profile_name = f"Test Profile {short_id()}"
    result = await services.profile.create_profile(account.access_token, profile_name)
    profile_id = result.details.profile_id if result.details else None
    if result.success and profile_id:
        ctx.set_additional_profile_id(profile_id)
        ctx.set_account(account.with_profile(TestProfile(id=profile_id, name=profile_name)))
    return result


async def switch_profile(services: TestServices, ctx: RunContext) -> TestResult:
    account = require_account(ctx)
    profile_id = ctx.additional_profile_id
    if profile_id is None and account.inactive_profiles:
        profile_id = account.inactive_profiles[0].id
    if profile_id is None:
        raise TestCaseError("NO_SECOND_PROFILE", "No inactive profile to switch to")
    result = await services.profile.switch_profile(account.access_token, profile_id)
    if result.success:
        ctx.set_account(account.with_active_profile(profile_id))
    return result


async def update_profile(services: TestServices, ctx: RunContext) -> TestResult:
    account = require_account(ctx)
    profile_id = ctx.additional_profile_id
    if profile_id is None and account.profiles:
        profile_id = account.profiles[0].id
    if profile_id is None:
        raise TestCaseError("NO_PROFILE_ID", "No profile to update")
    return await services.profile.update_profile(
        account.access_token, profile_id, f"Updated Profile {short_id()}"
    )


async def delete_profile(services: TestServices, ctx: RunContext) -> TestResult:
    account = require_account(ctx)
    profile_id = ctx.additional_profile_id
    if profile_id is None:
        raise TestCaseError("NO_SECOND_PROFILE", "No additional profile to delete")
    result = await services.profile.delete_profile(account.access_token, profile_id)
    if result.success:
        ctx.set_additional_profile_id(None)
        ctx.set_account(account.without_profile(profile_id))
    return result


def profile_cases(services: TestServices, config: TestConfiguration) -> Sequence[TestCase]:
    category: TestCategory = "Profile Management"
    return [
        TestCase(
            name="Automatic Profile Creation",
            category=category,
            description="A new account owns exactly one default profile",
            body=partial(automatic_profile_creation, services, config),
            requires_auth=True,
            requires=frozenset(["access_token"]),
        ),
        TestCase(
            name="Get Profiles",
            category=category,
            description="List profiles of the current account",
            body=partial(get_profiles, services),
            requires_auth=True,
        ),
        TestCase(
            name="Create Additional Profile",
            category=category,
            description="Create a second profile with a development wallet",
            body=partial(create_additional_profile, services),
            requires_auth=True,
            expected_duration=2.0,
            requires=frozenset(["access_token"]),
            provides=frozenset(["second_profile"]),
        ),
        TestCase(
            name="Switch Profile",
            category=category,
            description="Make the additional profile active",
            body=partial(switch_profile, services),
            requires_auth=True,
            requires=frozenset(["access_token", "second_profile"]),
        ),
        TestCase(
            name="Update Profile",
            category=category,
            description="Rename a profile",
            body=partial(update_profile, services),
            requires_auth=True,
            requires=frozenset(["access_token"]),
        ),
        TestCase(
            name="Delete Profile",
            category=category,
            description="Delete the additional profile",
            body=partial(delete_profile, services),
            requires_auth=True,
            expected_duration=1.5,
            requires=frozenset(["access_token", "second_profile"]),
        ),
    ]


# Account linking


async def link_email_to_wallet(services: TestServices, ctx: RunContext) -> TestResult:
    account = require_account(ctx)
    result = await services.linking.link_account(
        account.access_token,
        "wallet",
        random_wallet_address(),
        name="Link Email to Wallet",
    )
    linked_id = result.details.account_id if result.details else None
    if result.success and linked_id:
        ctx.set_linked_account(
            LinkedAccount(access_token=account.access_token, account_id=linked_id)
        )
    return result


async def link_wallet_to_email(services: TestServices, ctx: RunContext) -> TestResult:
    name = "Link Wallet to Email"
    wallet = await services.auth.wallet_authentication(
        random_wallet_address(), is_new_user=True, name=name
    )
    if not wallet.success:
        return wallet
    token = access_token_of(wallet)
    if token is None:
        raise TestCaseError("NO_TOKEN", "Wallet authentication returned no access token")
    return await services.linking.link_account(token, "email", unique_email("link"), name=name)


async def get_identity_graph(services: TestServices, ctx: RunContext) -> TestResult:
    account = require_account(ctx)
    return await services.linking.identity_graph(account.access_token)


async def update_privacy_mode(services: TestServices, ctx: RunContext) -> TestResult:
    linked = ctx.linked_account
    if linked is None:
        raise TestCaseError("NO_LINKED_ACCOUNT", "No linked account to update")
    return await services.linking.privacy_mode_scenarios(linked.access_token, linked.account_id)


def linking_cases(services: TestServices, config: TestConfiguration) -> Sequence[TestCase]:
    category: TestCategory = "Account Linking"
    return [
        TestCase(
            name="Link Email to Wallet",
            category=category,
            description="Link a wallet to the current email account",
            body=partial(link_email_to_wallet, services),
            requires_auth=True,
            expected_duration=2.0,
            requires=frozenset(["access_token"]),
            provides=frozenset(["linked_account"]),
        ),
        TestCase(
            name="Link Wallet to Email",
            category=category,
            description="Link an email address to a fresh wallet account",
            body=partial(link_wallet_to_email, services),
            expected_duration=2.5,
        ),
        TestCase(
            name="Get Identity Graph",
            category=category,
            description="Fetch the identity graph of the current account",
            body=partial(get_identity_graph, services),
            requires_auth=True,
            requires=frozenset(["access_token"]),
        ),
        TestCase(
            name="Update Privacy Mode",
            category=category,
            description="Cycle the link through every privacy mode",
            body=partial(update_privacy_mode, services),
            requires_auth=True,
            expected_duration=3.0,
            requires=frozenset(["linked_account"]),
        ),
    ]


# Token management


async def token_refresh(services: TestServices, ctx: RunContext) -> TestResult:
    name = "Token Refresh"
    account = ctx.account
    if account is not None:
        refresh_token = account.refresh_token
    else:
        guest = await services.auth.guest_authentication(name=name)
        if not guest.success:
            return guest
        refresh_token = guest.details.refresh_token if guest.details else None
    if not refresh_token:
        raise TestCaseError("NO_REFRESH_TOKEN", "No refresh token available")

    result = await services.token.refresh(refresh_token)
    details = result.details
    if result.success and account is not None and details and details.access_token:
        ctx.set_account(account.with_tokens(details.access_token, details.refresh_token))
    return result


async def token_validation(services: TestServices, ctx: RunContext) -> TestResult:
    token = await session_token(services, ctx, "Token Validation")
    if isinstance(token, TestResult):
        return token
    return await services.token.validate(token)


async def token_expiration(services: TestServices, ctx: RunContext) -> TestResult:
    return await services.token.expiration()


async def token_lifecycle(services: TestServices, ctx: RunContext) -> TestResult:
    name = "Token Lifecycle"
    guest = await services.auth.guest_authentication(name=name)
    if not guest.success:
        return guest
    details = guest.details
    if not details or not details.access_token:
        raise TestCaseError("NO_TOKEN", "Guest authentication returned no access token")
    if not details.refresh_token:
        raise TestCaseError("NO_REFRESH_TOKEN", "Guest authentication returned no refresh token")
    return await services.token.lifecycle(details.access_token, details.refresh_token)


async def token_blacklist(services: TestServices, ctx: RunContext) -> TestResult:
    token = await session_token(services, ctx, "Token Blacklist")
    if isinstance(token, TestResult):
        return token
    result = await services.token.blacklist(token)
    if result.success and ctx.account is not None:
        ctx.set_account(None)
    return result


def token_cases(services: TestServices, config: TestConfiguration) -> Sequence[TestCase]:
    category: TestCategory = "Token Management"
    return [
        TestCase(
            name="Token Refresh",
            category=category,
            description="Exchange the refresh token for a new pair",
            body=partial(token_refresh, services),
            requires_auth=True,
        ),
        TestCase(
            name="Token Validation",
            category=category,
            description="A protected endpoint accepts the access token",
            body=partial(token_validation, services),
            requires_auth=True,
        ),
        TestCase(
            name="Token Expiration",
            category=category,
            description="An expired token is rejected with 401",
            body=partial(token_expiration, services),
        ),
        TestCase(
            name="Token Lifecycle",
            category=category,
            description="Validate, refresh, revalidate and blacklist a guest token",
            body=partial(token_lifecycle, services),
            expected_duration=4.0,
        ),
        TestCase(
            name="Token Blacklist",
            category=category,
            description="A logged-out token is rejected with 401",
            body=partial(token_blacklist, services),
            requires_auth=True,
            expected_duration=2.0,
        ),
    ]


# Edge cases


async def invalid_email_code(
    services: TestServices, config: TestConfiguration, ctx: RunContext
) -> TestResult:
    return await services.auth.invalid_email_code(
        config.test_email, config.invalid_verification_code
    )


async def delete_last_profile(
    services: TestServices, config: TestConfiguration, ctx: RunContext
) -> TestResult:
    name = "Delete Last Profile"
    fresh = await new_email_user(services, config, name)
    if not fresh.success:
        return fresh
    details = fresh.details
    if not details or not details.access_token:
        raise TestCaseError("NO_TOKEN", "Email authentication returned no access token")
    if not details.profile_id:
        raise TestCaseError("NO_PROFILE_ID", "Email authentication returned no active profile")
    return await services.profile.delete_profile(
        details.access_token, details.profile_id, name=name
    )


async def concurrent_sessions(services: TestServices, ctx: RunContext) -> TestResult:
    name = "Concurrent Sessions"
    tokens: list[str] = []
    for _ in range(2):
        guest = await services.auth.guest_authentication(name=name)
        if not guest.success:
            return guest
        token = access_token_of(guest)
        if token is None:
            raise TestCaseError("NO_TOKEN", "Guest authentication returned no access token")
        tokens.append(token)

    first, second = await asyncio.gather(
        *(services.token.validate(token, name=name) for token in tokens)
    )
    for outcome in (first, second):
        if not outcome.success:
            return outcome
    return first.model_copy(update={"message": "Both sessions are valid at the same time"})


async def rate_limiting(
    services: TestServices, config: TestConfiguration, ctx: RunContext
) -> TestResult:
    return await services.auth.rate_limit_probe(
        rounds=config.rate_limit_rounds,
        attempts=config.rate_limit_attempts,
        pause=config.rate_limit_pause,
    )


def edge_cases(services: TestServices, config: TestConfiguration) -> Sequence[TestCase]:
    category: TestCategory = "Edge Cases"
    return [
        TestCase(
            name="Invalid Email Code",
            category=category,
            description="A wrong verification code is refused",
            body=partial(invalid_email_code, services, config),
        ),
        TestCase(
            name="Delete Last Profile",
            category=category,
            description="The only profile of an account cannot be deleted",
            body=partial(delete_last_profile, services, config),
            expected_duration=3.0,
        ),
        TestCase(
            name="Concurrent Sessions",
            category=category,
            description="Two sessions of different guests are valid together",
            body=partial(concurrent_sessions, services),
            expected_duration=2.5,
        ),
        TestCase(
            name="Rate Limiting",
            category=category,
            description="Rapid code requests are eventually throttled",
            body=partial(rate_limiting, services, config),
            expected_duration=10.0,
        ),
    ]
