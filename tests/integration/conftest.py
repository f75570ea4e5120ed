"""Fixtures for integration tests."""

from collections.abc import AsyncGenerator

import pytest
from aioresponses import aioresponses as aioresponses_cls

from api_test_hub.config import TestConfiguration
from api_test_hub.network import NetworkClient
from api_test_hub.services import TestServices

API = "http://localhost:3000/api/v2"


@pytest.fixture
def config() -> TestConfiguration:
    """Create test configuration for the dev environment."""
    return TestConfiguration(rate_limit_attempts=3, rate_limit_rounds=2, rate_limit_pause=0.0)


@pytest.fixture
async def client(
    config: TestConfiguration, aioresponses: aioresponses_cls
) -> AsyncGenerator[NetworkClient, None]:
    """Create client with managed session."""
    async with NetworkClient.from_config(config) as impl:
        yield impl


@pytest.fixture
def services(client: NetworkClient, config: TestConfiguration) -> TestServices:
    """Create every domain service on the mocked client."""
    return TestServices.from_client(client, config)
