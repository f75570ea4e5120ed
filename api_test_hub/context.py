"""Run-scoped state shared between test case bodies.

The runner opens the context for exactly one test case at a time; only that
case may write to it. Everything else reads.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from api_test_hub.models.result import TestDetails, TestResult


class ContextWriteError(RuntimeError):
    """Raised when the context is written outside the in-flight test case."""


@dataclass(frozen=True, kw_only=True)
class TestProfile:
    """A profile known to belong to the current test account."""

    __test__ = False

    id: str
    name: str
    is_active: bool = False


@dataclass(frozen=True, kw_only=True)
class TestAccount:
    """The account later test cases authenticate as."""

    __test__ = False

    account_id: str
    type: str
    identifier: str
    access_token: str
    refresh_token: str | None = None
    profiles: Sequence[TestProfile] = ()

    @property
    def inactive_profiles(self) -> Sequence[TestProfile]:
        """Profiles that are not the active one."""
        return [profile for profile in self.profiles if not profile.is_active]

    def with_tokens(self, access_token: str, refresh_token: str | None) -> "TestAccount":
        """Copy with a new token pair."""
        return replace(self, access_token=access_token, refresh_token=refresh_token)

    def with_profile(self, profile: TestProfile) -> "TestAccount":
        """Copy with one more profile."""
        return replace(self, profiles=(*self.profiles, profile))

    def without_profile(self, profile_id: str) -> "TestAccount":
        """Copy without the given profile."""
        return replace(
            self,
            profiles=tuple(profile for profile in self.profiles if profile.id != profile_id),
        )

    def with_active_profile(self, profile_id: str) -> "TestAccount":
        """Copy with ``profile_id`` marked active and every other profile inactive."""
        return replace(
            self,
            profiles=tuple(
                replace(profile, is_active=profile.id == profile_id)
                for profile in self.profiles
            ),
        )


@dataclass(frozen=True, kw_only=True)
class TestWallet:
    """Wallet created by wallet authentication."""

    __test__ = False

    address: str
    private_key: str = "mock_private_key"


@dataclass(frozen=True, kw_only=True)
class LinkedAccount:
    """Account link created by an account-linking test."""

    access_token: str
    account_id: str
    privacy_mode: str = "linked"


@dataclass(frozen=True, kw_only=True)
class ContextSnapshot:
    """Read-only view of the run context at one point in time."""

    account: TestAccount | None
    wallet: TestWallet | None
    linked_account: LinkedAccount | None
    additional_profile_id: str | None
    results: Mapping[str, TestResult]

    def details_for(self, test_name: str) -> TestDetails | None:
        """Correlation data recorded by an earlier test, if any."""
        result = self.results.get(test_name)
        return result.details if result else None


@dataclass(kw_only=True)
class RunContext:
    """Mutable state of one run, written by a single test case at a time."""

    _account: TestAccount | None = field(default=None, init=False)
    _wallet: TestWallet | None = field(default=None, init=False)
    _linked_account: LinkedAccount | None = field(default=None, init=False)
    _additional_profile_id: str | None = field(default=None, init=False)
    _results: dict[str, TestResult] = field(default_factory=dict, init=False)
    _writer: str | None = field(default=None, init=False)

    @property
    def writer(self) -> str | None:
        """Name of the test case currently allowed to write."""
        return self._writer

    @property
    def account(self) -> TestAccount | None:
        return self._account

    @property
    def wallet(self) -> TestWallet | None:
        return self._wallet

    @property
    def linked_account(self) -> LinkedAccount | None:
        return self._linked_account

    @property
    def additional_profile_id(self) -> str | None:
        return self._additional_profile_id

    def open(self, test_name: str) -> None:
        """Grant write access to ``test_name`` (runner only)."""
        if self._writer is not None:
            raise ContextWriteError(
                f"Context already open for '{self._writer}', cannot open for '{test_name}'"
            )
        self._writer = test_name

    def close(self) -> None:
        """Revoke write access (runner only)."""
        self._writer = None

    def record(self, result: TestResult) -> None:
        """Store a finished result for later lookup (runner only)."""
        if self._writer is not None:
            raise ContextWriteError("Results are recorded only between test cases")
        self._results[result.name] = result

    def reset(self) -> None:
        """Forget everything from a previous run."""
        self._writer = None
        self._account = None
        self._wallet = None
        self._linked_account = None
        self._additional_profile_id = None
        self._results.clear()

    def result_for(self, test_name: str) -> TestResult | None:
        """Result of an earlier test in this run, if it ran."""
        return self._results.get(test_name)

    def details_for(self, test_name: str) -> TestDetails | None:
        """Correlation data recorded by an earlier test, if any."""
        result = self._results.get(test_name)
        return result.details if result else None

    def set_account(self, account: TestAccount | None) -> None:
        self._check_writable()
        self._account = account

    def set_wallet(self, wallet: TestWallet | None) -> None:
        self._check_writable()
        self._wallet = wallet

    def set_linked_account(self, linked_account: LinkedAccount | None) -> None:
        self._check_writable()
        self._linked_account = linked_account

    def set_additional_profile_id(self, profile_id: str | None) -> None:
        self._check_writable()
        self._additional_profile_id = profile_id

    def snapshot(self) -> ContextSnapshot:
        """Freeze the current state."""
        return ContextSnapshot(
            account=self._account,
            wallet=self._wallet,
            linked_account=self._linked_account,
            additional_profile_id=self._additional_profile_id,
            results=MappingProxyType(dict(self._results)),
        )

    def _check_writable(self) -> None:
        if self._writer is None:
            raise ContextWriteError("Run context is read-only outside a running test case")
