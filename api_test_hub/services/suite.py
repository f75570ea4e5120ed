"""The set of domain services shared by one run."""

from dataclasses import dataclass
from typing import Self

from api_test_hub.config import TestConfiguration
from api_test_hub.network import NetworkClient
from api_test_hub.services.auth import AuthTestService
from api_test_hub.services.linking import LinkingTestService
from api_test_hub.services.profile import ProfileTestService
from api_test_hub.services.token import TokenTestService


@dataclass(frozen=True, kw_only=True)
class TestServices:
    """One service per API domain, all on the same client."""

    __test__ = False

    auth: AuthTestService
    profile: ProfileTestService
    token: TokenTestService
    linking: LinkingTestService

    @classmethod
    def from_client(cls, client: NetworkClient, config: TestConfiguration) -> Self:
        return cls(
            auth=AuthTestService(client=client, config=config),
            profile=ProfileTestService(client=client, config=config),
            token=TokenTestService(client=client, config=config),
            linking=LinkingTestService(client=client, config=config),
        )
