"""Integration tests for the account-linking service."""

from aioresponses import aioresponses as aioresponses_cls
from yarl import URL

from api_test_hub.services import TestServices
from api_test_hub.testing.payloads import identity_graph, link_response

API = "http://localhost:3000/api/v2"
LINK = f"{API}/auth/link-accounts"
GRAPH = f"{API}/auth/identity-graph"
PRIVACY = f"{API}/auth/link-privacy"


class TestLinkAccount:
    """Tests for link_account."""

    async def test_links_wallet(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        """Passes and notes the linked account id."""
        aioresponses.post(LINK, status=200, payload=link_response(linked_account_id="acc_7"))

        result = await services.linking.link_account(
            "token-1", "wallet", "0xabc", name="Link Email to Wallet"
        )

        assert result.success, result.error
        assert result.category == "Account Linking"
        assert result.details is not None
        assert result.details.account_id == "acc_7"
        call = aioresponses.requests[("POST", URL(LINK))][0]
        assert call.kwargs["json"] == {
            "targetType": "wallet",
            "targetIdentifier": "0xabc",
            "privacyMode": "linked",
        }

    async def test_social_link_names_provider(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.post(
            LINK, status=200, payload=link_response(target_type="social", identifier="g-1")
        )

        result = await services.linking.link_account("token-1", "social", "g-1")

        assert result.success
        assert result.name == "Link Account - social"
        body = aioresponses.requests[("POST", URL(LINK))][0].kwargs["json"]
        assert body["targetProvider"] == "google"

    async def test_conflict_is_already_linked(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.post(LINK, status=409, payload={"error": "conflict"})

        result = await services.linking.link_account("token-1", "email", "a@b.test")

        assert result.error is not None
        assert result.error.code == "ALREADY_LINKED"

    async def test_other_errors_are_link_failed(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.post(LINK, status=500, body="boom")

        result = await services.linking.link_account("token-1", "email", "a@b.test")

        assert result.error is not None
        assert result.error.code == "LINK_FAILED"
        assert result.error.message == "HTTP 500: boom"

    async def test_privacy_mode_must_match(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.post(LINK, status=200, payload=link_response(privacy_mode="isolated"))

        result = await services.linking.link_account("token-1", "wallet", "0xabc")

        assert not result.success
        assert result.error is not None
        assert result.error.message == "Failed checks: privacy mode is linked"


class TestIdentityGraph:
    """Tests for identity_graph."""

    async def test_consistent_graph(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.get(GRAPH, status=200, payload=identity_graph())

        result = await services.linking.identity_graph("token-1")

        assert result.success
        assert result.message == "Retrieved identity graph with 2 accounts and 1 links"
        assert result.details is not None
        assert result.details.account_id == "acc_1"

    async def test_dangling_link_fails(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        """Links must only reference accounts in the graph."""
        aioresponses.get(
            GRAPH,
            status=200,
            payload=identity_graph(account_ids=["acc_1"], links=[("acc_1", "acc_x")]),
        )

        result = await services.linking.identity_graph("token-1")

        assert not result.success
        assert result.error is not None
        assert result.error.message == "Failed checks: links reference known accounts"

    async def test_missing_current_account(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.get(GRAPH, status=200, payload=identity_graph(current_account_id=None))

        result = await services.linking.identity_graph("token-1")

        assert not result.success


class TestPrivacyModes:
    """Tests for update_privacy_mode and privacy_mode_scenarios."""

    async def test_cycles_every_mode(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        """Sends linked, partial and isolated in order."""
        for mode in ("linked", "partial", "isolated"):
            aioresponses.put(PRIVACY, status=200, payload=link_response(privacy_mode=mode))

        result = await services.linking.privacy_mode_scenarios("token-1", "acc_2")

        assert result.success, result.error
        assert result.message == "Privacy mode tests: linked: ✓, partial: ✓, isolated: ✓"
        sent = [call.kwargs["json"] for call in aioresponses.requests[("PUT", URL(PRIVACY))]]
        assert sent == [
            {"targetAccountId": "acc_2", "privacyMode": "linked"},
            {"targetAccountId": "acc_2", "privacyMode": "partial"},
            {"targetAccountId": "acc_2", "privacyMode": "isolated"},
        ]

    async def test_one_failed_mode_fails_all(
        self, services: TestServices, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.put(PRIVACY, status=200, payload=link_response(privacy_mode="linked"))
        aioresponses.put(PRIVACY, status=500, body="boom")
        aioresponses.put(PRIVACY, status=200, payload=link_response(privacy_mode="isolated"))

        result = await services.linking.privacy_mode_scenarios("token-1", "acc_2")

        assert not result.success
        assert result.message == "Privacy mode tests: linked: ✓, partial: ✗, isolated: ✓"
        assert result.error is not None
        assert result.error.code == "PRIVACY_UPDATE_FAILED"
        assert result.error.message == "partial: HTTP 500: boom"
