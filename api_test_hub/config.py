"""Configuration for a Test Hub run."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, field_validator

from api_test_hub.models.result import OutputFormat, TestCategory

Environment: TypeAlias = Literal["dev", "staging", "prod"]

BASE_URLS: Mapping[Environment, str] = {
    "dev": "http://localhost:3000",
    "staging": "https://api-staging.interspace.fi",
    "prod": "https://api.interspace.fi",
}

ENVIRONMENT_ALIASES: Mapping[str, Environment] = {
    "development": "dev",
    "production": "prod",
}


class TestConfiguration(BaseModel):
    """Configuration for a Test Hub run. Immutable once built."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    environment: Environment = "dev"
    api_version: str = "v2"
    category: TestCategory | None = None
    output_format: OutputFormat = "console"
    verbose: bool = False

    request_timeout: float = 30.0
    resource_timeout: float = 60.0
    user_agent: str = "Interspace-TestHub/1.0"
    report_dir: Path | None = None

    test_email: str = "existing@interspace.test"
    verification_code: str = "123456"
    invalid_verification_code: str = "000000"

    # Rate limiting is probed, not assumed: up to rounds * attempts requests
    rate_limit_attempts: int = 20
    rate_limit_rounds: int = 2
    rate_limit_pause: float = 1.0

    @field_validator("environment", mode="before")
    @classmethod
    def _resolve_environment_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return ENVIRONMENT_ALIASES.get(lowered, lowered)
        return value

    @property
    def base_url(self) -> str:
        """API host for the selected environment."""
        return BASE_URLS[self.environment]
