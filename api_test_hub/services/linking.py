"""Account-linking scenarios: linking, identity graph, privacy modes."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from http import HTTPStatus
from typing import ClassVar, Literal, TypeAlias

from api_test_hub.models.api import IdentityGraph, LinkResponse
from api_test_hub.models.result import TestCategory, TestResult
from api_test_hub.services.base import ParseError, TestService, bearer, parse_response

log = logging.getLogger(__name__)

PrivacyMode: TypeAlias = Literal["linked", "partial", "isolated"]

PRIVACY_MODES: Sequence[PrivacyMode] = ("linked", "partial", "isolated")

SOCIAL_PROVIDER = "google"


@dataclass(frozen=True, kw_only=True)
class LinkingTestService(TestService):
    """Exercises /auth/link-accounts, /auth/identity-graph and /auth/link-privacy."""

    category: ClassVar[TestCategory] = "Account Linking"

    async def link_account(
        self,
        token: str,
        target_type: str,
        target_identifier: str,
        privacy_mode: PrivacyMode = "linked",
        *,
        name: str | None = None,
    ) -> TestResult:
        """Link another identity to the token's account.

        Passes when the server confirms with ``success`` and echoes the
        linked account type and privacy mode. A 409 fails with
        ``ALREADY_LINKED``.

        Args:
            token: Access token of the account to link from
            target_type: "email", "wallet" or "social"
            target_identifier: Address or identifier of the target
            privacy_mode: Requested privacy mode of the link
            name: Result name

        Returns:
            The scenario result

        """
        result = self.result(name or f"Link Account - {target_type}")
        result.note(access_token=token)
        body = {
            "targetType": target_type,
            "targetIdentifier": target_identifier,
            "privacyMode": privacy_mode,
        }
        if target_type == "social":
            body["targetProvider"] = SOCIAL_PROVIDER

        response = await self.send(
            result,
            "POST",
            "/auth/link-accounts",
            code="LINK_FAILED",
            failure="Failed to link account",
            headers=bearer(token),
            body=body,
        )
        if isinstance(response, TestResult):
            return response
        if response.status == HTTPStatus.CONFLICT:
            return result.failed(
                "Account already linked",
                code="ALREADY_LINKED",
                error_message="Account is already linked",
            )
        if not response.ok:
            return result.http_failed(
                "Failed to link account", code="LINK_FAILED", response=response
            )
        try:
            link = parse_response(response, LinkResponse)
        except ParseError as exc:
            return result.failed("Failed to parse response", code="PARSE_ERROR", cause=exc)

        linked = link.linked_account
        result.note(account_id=linked.id if linked else None)
        return result.checked(
            {
                "success flag set": link.success is True,
                "linked account returned": linked is not None,
                f"linked account type is {target_type}": bool(
                    linked and linked.type == target_type
                ),
                f"privacy mode is {privacy_mode}": bool(
                    link.link and link.link.privacy_mode == privacy_mode
                ),
            },
            passed=f"Successfully linked {target_type} account",
            failed="Account linking validation failed",
        )

    async def identity_graph(self, token: str, *, name: str = "Get Identity Graph") -> TestResult:
        """Pass iff the graph names the current account and every link endpoint is known."""
        result = self.result(name)
        result.note(access_token=token)
        graph = await self.fetch(
            result,
            "GET",
            "/auth/identity-graph",
            IdentityGraph,
            code="GRAPH_FAILED",
            failure="Failed to get identity graph",
            headers=bearer(token),
        )
        if isinstance(graph, TestResult):
            return graph
        result.note(account_id=graph.current_account_id)

        known = {account.id for account in graph.accounts if account.id}
        endpoints = {
            account_id
            for link in graph.links
            for account_id in (link.account_a_id, link.account_b_id)
            if account_id
        }
        message = (
            f"Retrieved identity graph with {len(graph.accounts)} accounts "
            f"and {len(graph.links)} links"
        )
        return result.checked(
            {
                "current account id present": bool(graph.current_account_id),
                "at least one account": bool(graph.accounts),
                "links reference known accounts": endpoints <= known,
            },
            passed=message,
            failed=message,
        )

    async def update_privacy_mode(
        self,
        token: str,
        target_account_id: str,
        mode: PrivacyMode,
        *,
        name: str = "Update Privacy Mode",
    ) -> TestResult:
        result = self.result(name)
        result.note(access_token=token, account_id=target_account_id)
        response = await self.fetch(
            result,
            "PUT",
            "/auth/link-privacy",
            LinkResponse,
            code="PRIVACY_UPDATE_FAILED",
            failure="Failed to update privacy mode",
            headers=bearer(token),
            body={"targetAccountId": target_account_id, "privacyMode": mode},
        )
        if isinstance(response, TestResult):
            return response
        return result.checked(
            {
                "success flag set": response.success is True,
                f"privacy mode is {mode}": bool(
                    response.link and response.link.privacy_mode == mode
                ),
            },
            passed=f"Successfully updated privacy mode to '{mode}'",
            failed="Privacy mode update validation failed",
        )

    async def privacy_mode_scenarios(
        self, token: str, target_account_id: str, *, name: str = "Update Privacy Mode"
    ) -> TestResult:
        """Cycle the link through every privacy mode."""
        result = self.result(name)
        result.note(access_token=token, account_id=target_account_id)
        outcomes: list[tuple[PrivacyMode, TestResult]] = []
        for mode in PRIVACY_MODES:
            outcomes.append(
                (mode, await self.update_privacy_mode(token, target_account_id, mode))
            )

        summary = "Privacy mode tests: " + ", ".join(
            f"{mode}: {'✓' if outcome.success else '✗'}" for mode, outcome in outcomes
        )
        failures = [
            f"{mode}: {outcome.error.message if outcome.error else outcome.message}"
            for mode, outcome in outcomes
            if not outcome.success
        ]
        if not failures:
            return result.passed(summary)
        log.debug("Privacy mode failures: %s", failures)
        return result.failed(
            summary, code="PRIVACY_UPDATE_FAILED", error_message="; ".join(failures)
        )
