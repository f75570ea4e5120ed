"""Authentication scenarios: email, wallet and guest sign-in, logout."""

import asyncio
import logging
import secrets
import time
import uuid
from dataclasses import dataclass
from http import HTTPStatus
from typing import ClassVar

from api_test_hub.context import RunContext, TestAccount, TestProfile
from api_test_hub.models.api import AuthResponse, SuccessResponse
from api_test_hub.models.result import TestCategory, TestResult
from api_test_hub.services.base import ResultBuilder, TestService, bearer

log = logging.getLogger(__name__)

SIGN_IN_MESSAGE = "Sign in to Interspace\n\nTimestamp: {timestamp}"
WALLET_TYPE = "metamask"
REJECTED_CODE_STATUSES = frozenset([HTTPStatus.BAD_REQUEST, HTTPStatus.UNAUTHORIZED])


def mock_signature(message: str) -> str:
    """Hex encoding of the message, accepted by the API's test signer."""
    return "0x" + message.encode("utf-8").hex()


def random_wallet_address() -> str:
    """Fresh 20-byte address for a new wallet user."""
    return "0x" + secrets.token_hex(20)


def unique_email(prefix: str = "test") -> str:
    """Address that has never been registered."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}@interspace.test"


def user_label(is_new_user: bool) -> str:
    return "New" if is_new_user else "Returning"


@dataclass(frozen=True, kw_only=True)
class AuthTestService(TestService):
    """Exercises POST /auth/* endpoints."""

    category: ClassVar[TestCategory] = "Authentication"

    async def send_email_code(
        self, email: str, *, name: str = "Send Email Verification Code"
    ) -> TestResult:
        """Pass iff the code request returns HTTP success."""
        result = self.result(name)
        response = await self.send(
            result,
            "POST",
            "/auth/send-email-code",
            code="SEND_CODE_FAILED",
            failure="Failed to send verification code",
            body={"email": email},
        )
        if isinstance(response, TestResult):
            return response
        if not response.ok:
            return result.http_failed(
                "Failed to send verification code",
                code="SEND_CODE_FAILED",
                response=response,
            )
        return result.passed(f"Successfully sent verification code to {email}")

    async def email_authentication(
        self,
        email: str,
        code: str,
        *,
        is_new_user: bool,
        ctx: RunContext | None = None,
        name: str | None = None,
    ) -> TestResult:
        """Authenticate with an email verification code.

        Passes when the response carries an access token, a non-empty
        profile list and an ``isNewUser`` flag equal to ``is_new_user``.
        On success the account becomes the run's current account.

        Args:
            email: Address to authenticate
            code: Verification code
            is_new_user: Expected value of the response's ``isNewUser``
            ctx: Run context to record the account in, when given
            name: Result name

        Returns:
            The scenario result

        """
        result = self.result(name or f"Email Auth - {user_label(is_new_user)} User")
        auth = await self.fetch(
            result,
            "POST",
            "/auth/authenticate",
            AuthResponse,
            code="AUTH_FAILED",
            failure="Authentication failed",
            body={"strategy": "email", "email": email, "verificationCode": code},
        )
        if isinstance(auth, TestResult):
            return auth
        note_auth(result, auth)

        profiles = auth.profiles or ()
        outcome = result.checked(
            {
                "access token present": has_access_token(auth),
                f"isNewUser is {is_new_user}": bool(auth.is_new_user) == is_new_user,
                "profiles returned": bool(profiles),
            },
            passed="Successfully authenticated with email",
            failed="Authentication succeeded but validation failed",
        )
        if outcome.success and ctx is not None:
            ctx.set_account(
                TestAccount(
                    account_id=auth.account.id if auth.account and auth.account.id else "",
                    type="email",
                    identifier=email,
                    access_token=auth.tokens.access_token,
                    refresh_token=auth.tokens.refresh_token,
                    profiles=tuple(
                        TestProfile(id=p.id, name=p.name, is_active=p.is_active)
                        for p in profiles
                        if p.id and p.name
                    ),
                )
            )
            log.debug("Current test account is now %s", email)
        return outcome

    async def wallet_authentication(
        self, address: str, *, is_new_user: bool, name: str | None = None
    ) -> TestResult:
        """Authenticate with a mock-signed wallet message."""
        result = self.result(name or f"Wallet Auth - {user_label(is_new_user)} User")
        message = SIGN_IN_MESSAGE.format(timestamp=time.time())
        auth = await self.fetch(
            result,
            "POST",
            "/auth/authenticate",
            AuthResponse,
            code="WALLET_AUTH_FAILED",
            failure="Authentication failed",
            body={
                "strategy": "wallet",
                "walletAddress": address,
                "message": message,
                "signature": mock_signature(message),
                "walletType": WALLET_TYPE,
            },
        )
        if isinstance(auth, TestResult):
            return auth
        note_auth(result, auth)
        return result.checked(
            {
                "access token present": has_access_token(auth),
                f"isNewUser is {is_new_user}": bool(auth.is_new_user) == is_new_user,
            },
            passed="Successfully authenticated with wallet",
            failed="Authentication succeeded but validation failed",
        )

    async def guest_authentication(self, *, name: str = "Guest Authentication") -> TestResult:
        """Authenticate a fresh guest device."""
        result = self.result(name)
        auth = await self.fetch(
            result,
            "POST",
            "/auth/authenticate",
            AuthResponse,
            code="GUEST_AUTH_FAILED",
            failure="Guest authentication failed",
            body={"strategy": "guest", "deviceId": str(uuid.uuid4()).upper()},
        )
        if isinstance(auth, TestResult):
            return auth
        note_auth(result, auth)
        return result.checked(
            {
                "access token present": has_access_token(auth),
                "isNewUser is True": auth.is_new_user is True,
                "account type is guest": bool(auth.account and auth.account.type == "guest"),
            },
            passed="Successfully authenticated as guest",
            failed="Guest authentication validation failed",
        )

    async def logout(self, token: str, *, name: str = "Logout") -> TestResult:
        """Pass iff the server confirms the logout with ``success``."""
        result = self.result(name)
        result.note(access_token=token)
        response = await self.fetch(
            result,
            "POST",
            "/auth/logout",
            SuccessResponse,
            code="LOGOUT_FAILED",
            failure="Logout request failed",
            headers=bearer(token),
        )
        if isinstance(response, TestResult):
            return response
        return result.checked(
            {"success flag set": response.success is True},
            passed="Successfully logged out",
            failed="Logout failed",
        )

    async def invalid_email_code(
        self, email: str, code: str, *, name: str = "Invalid Email Code"
    ) -> TestResult:
        """Pass iff the server refuses a wrong verification code with 400 or 401."""
        result = self.result(name)
        response = await self.send(
            result,
            "POST",
            "/auth/authenticate",
            code="AUTH_FAILED",
            failure="Invalid code request failed",
            body={"strategy": "email", "email": email, "verificationCode": code},
        )
        if isinstance(response, TestResult):
            return response
        if response.status in REJECTED_CODE_STATUSES:
            return result.passed(f"Correctly rejected invalid code (HTTP {response.status})")
        return result.failed(
            "Invalid verification code was not rejected",
            code="UNEXPECTED_STATUS",
            error_message=f"Expected HTTP 400 or 401, got {response.status}",
        )

    async def rate_limit_probe(
        self,
        *,
        rounds: int,
        attempts: int,
        pause: float,
        name: str = "Rate Limiting",
    ) -> TestResult:
        """Probe for rate limiting on the email-code endpoint.

        Sends up to ``rounds * attempts`` requests, sleeping ``pause``
        seconds between rounds. Passes on the first 429; a transport failure
        ends the probe early with ``SEND_CODE_FAILED``.
        """
        result = self.result(name)
        sent = 0
        for round_number in range(rounds):
            if round_number:
                await asyncio.sleep(pause)
            for _ in range(attempts):
                response = await self.send(
                    result,
                    "POST",
                    "/auth/send-email-code",
                    code="SEND_CODE_FAILED",
                    failure="Rate limit probe request failed",
                    body={"email": unique_email("ratelimit")},
                )
                if isinstance(response, TestResult):
                    return response
                sent += 1
                if response.status == HTTPStatus.TOO_MANY_REQUESTS:
                    return result.passed(f"Rate limit enforced after {sent} request(s)")
            log.debug("No rate limit after round %d (%d requests)", round_number + 1, sent)
        return result.failed(
            "Rate limiting not observed",
            code="RATE_LIMIT_NOT_OBSERVED",
            error_message=f"No HTTP 429 after {sent} requests in {rounds} round(s)",
        )


def has_access_token(auth: AuthResponse) -> bool:
    return bool(auth.tokens and auth.tokens.access_token)


def note_auth(result: ResultBuilder, auth: AuthResponse) -> None:
    """Copy the correlation data of an authentication response."""
    result.note(
        account_id=auth.account.id if auth.account else None,
        profile_id=auth.active_profile.id if auth.active_profile else None,
        access_token=auth.tokens.access_token if auth.tokens else None,
        refresh_token=auth.tokens.refresh_token if auth.tokens else None,
        session_id=auth.session_id,
    )
