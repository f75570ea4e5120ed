"""Tests for run configuration."""

import pytest
from pydantic import ValidationError

from api_test_hub.config import TestConfiguration


@pytest.mark.parametrize(
    ("environment", "base_url"),
    [
        ("dev", "http://localhost:3000"),
        ("staging", "https://api-staging.interspace.fi"),
        ("prod", "https://api.interspace.fi"),
    ],
)
def test_base_url_follows_environment(environment: str, base_url: str) -> None:
    """Derives the base URL from the environment."""
    assert TestConfiguration(environment=environment).base_url == base_url


@pytest.mark.parametrize(
    ("alias", "environment"),
    [("production", "prod"), ("Development", "dev"), ("STAGING", "staging")],
)
def test_accepts_environment_aliases(alias: str, environment: str) -> None:
    """Normalizes aliases and case."""
    assert TestConfiguration(environment=alias).environment == environment


def test_rejects_unknown_environment() -> None:
    """Unknown environments fail validation."""
    with pytest.raises(ValidationError):
        TestConfiguration(environment="qa")


def test_defaults() -> None:
    """Defaults target dev with console output."""
    config = TestConfiguration()

    assert config.environment == "dev"
    assert config.api_version == "v2"
    assert config.category is None
    assert config.output_format == "console"
    assert config.verification_code == "123456"
    assert config.report_dir is None


def test_is_immutable() -> None:
    """Configuration cannot change during a run."""
    config = TestConfiguration()

    with pytest.raises(ValidationError):
        config.verbose = True  # type: ignore[misc]
