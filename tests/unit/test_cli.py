"""Tests for CLI module."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from api_test_hub.cli import ConfigurationError, main, parse_config, run
from api_test_hub.config import TestConfiguration
from api_test_hub.models.result import TestCategory, TestError
from api_test_hub.registry import TestRegistry
from api_test_hub.reporting.generator import build_report
from api_test_hub.testing.factories import TestResultFactory, make_case


def mixed_registry() -> TestRegistry:
    """Five authentication cases among ten others."""
    others: list[TestCategory] = ["Profile Management", "Token Management", "Edge Cases"]
    return TestRegistry(
        [make_case(f"auth {i}", "Authentication") for i in range(5)]
        + [make_case(f"other {i}", others[i % 3]) for i in range(10)]
    )


class TestParseConfig:
    """Tests for parse_config."""

    def test_defaults(self) -> None:
        """No arguments target dev with console output."""
        config = parse_config([])

        assert config.environment == "dev"
        assert config.category is None
        assert config.output_format == "console"
        assert not config.verbose

    def test_short_flags(self) -> None:
        """Accepts the short form of every flag."""
        config = parse_config(["-e", "production", "-c", "tokens", "-o", "junit", "-v"])

        assert config.environment == "prod"
        assert config.category == "Token Management"
        assert config.output_format == "junit"
        assert config.verbose

    def test_report_dir_from_environment(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Reads the report directory from TEST_HUB_REPORT_DIR."""
        monkeypatch.setenv("TEST_HUB_REPORT_DIR", str(tmp_path))

        assert parse_config([]).report_dir == tmp_path

    @pytest.mark.parametrize(
        ("argv", "message"),
        [
            (["--unknown"], "unrecognized arguments"),
            (["--env"], "expected one argument"),
            (["-o", "xml"], "invalid choice"),
            (["-e", "qa"], "Unknown environment 'qa'"),
            (["-c", "wallets"], "Unknown category 'wallets'"),
            (["-c", ""], "Unknown category ''"),
            (["--category", "  "], "Unknown category '  '"),
        ],
    )
    def test_rejects_bad_arguments(self, argv: list[str], message: str) -> None:
        """Bad arguments raise ConfigurationError instead of exiting."""
        with pytest.raises(ConfigurationError, match=message):
            parse_config(argv)


class TestMain:
    """Tests for main."""

    def test_configuration_error_exits_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Reports configuration errors on stderr without running tests."""
        with (
            patch("api_test_hub.cli.run", new_callable=AsyncMock) as mock_run,
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["--output"])

        assert exc_info.value.code == 1
        assert "Error: argument -o/--output: expected one argument" in capsys.readouterr().err
        mock_run.assert_not_called()

    def test_help_exits_zero(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Prints usage and exits 0 without running tests."""
        with (
            patch("api_test_hub.cli.run", new_callable=AsyncMock) as mock_run,
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["--help"])

        assert exc_info.value.code == 0
        assert "usage: test-hub" in capsys.readouterr().out
        mock_run.assert_not_called()

    def test_exits_with_run_result(self) -> None:
        """Exits with the code returned by run."""
        with (
            patch("api_test_hub.cli.run", new_callable=AsyncMock, return_value=1) as mock_run,
            patch("api_test_hub.cli.logging.basicConfig"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["-c", "edge"])

        assert exc_info.value.code == 1
        config = mock_run.call_args.args[0]
        assert config.category == "Edge Cases"


class TestRun:
    """Tests for run."""

    async def test_category_filter_with_json_output(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Runs only the requested category and prints its JSON report."""
        config = parse_config(["--category", "auth", "--output", "json"])

        with patch("api_test_hub.cli.build_registry", return_value=mixed_registry()):
            exit_code = await run(config)

        payload = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert len(payload["allTests"]) == 5
        assert {t["category"] for t in payload["allTests"]} == {"Authentication"}
        assert payload["totalTests"] == payload["passed"] == 5

    async def test_returns_one_when_a_test_fails(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Exit code is 1 when any test failed."""
        failing = TestResultFactory.build(
            success=False, error=TestError(code="AUTH_FAILED", message="HTTP 500")
        )
        registry = TestRegistry([make_case("a"), make_case("b", outcome=failing)])

        with patch("api_test_hub.cli.build_registry", return_value=registry):
            exit_code = await run(TestConfiguration())

        out = capsys.readouterr().out
        assert exit_code == 1
        assert "  - b: AUTH_FAILED: HTTP 500" in out

    async def test_prints_junit(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Prints the JUnit report when requested."""
        report = build_report([TestResultFactory.build()], environment="dev", duration=0.1)

        with (
            patch("api_test_hub.cli.build_registry"),
            patch("api_test_hub.cli.TestRunner") as mock_runner_cls,
        ):
            mock_runner_cls.return_value.run_all = AsyncMock(return_value=report)
            exit_code = await run(TestConfiguration(output_format="junit"))

        assert exit_code == 0
        assert capsys.readouterr().out.startswith("<?xml version='1.0' encoding='UTF-8'?>")
