"""Tests for the command line entry point."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mintie.__main__ import parse_args, run_bot

CONFIG_YAML = """
slack:
  bot_token: xoxb-test-123
  app_token: xapp-test-456
workspaces:
  T123:
    subdomain: acme
    api_key: mint_dsc_test
logging:
  level: INFO
  format: console
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a minimal valid configuration file."""
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


class TestParseArgs:
    """Test argument parsing."""

    def test_defaults(self) -> None:
        """Test default arguments."""
        args = parse_args([])

        assert args.config == Path("config/config.yaml")
        assert args.debug is False
        assert args.dry_run is False
        assert args.health_check is False
        assert args.health_file is None
        assert args.format == "console"

    def test_all_flags(self) -> None:
        """Test every flag is parsed."""
        args = parse_args(
            ["-c", "x.yaml", "-d", "--dry-run", "--format", "json", "--health-file", "h.json"]
        )

        assert args.config == Path("x.yaml")
        assert args.debug is True
        assert args.dry_run is True
        assert args.format == "json"
        assert args.health_file == Path("h.json")


class TestRunBot:
    """Test the run_bot coroutine."""

    async def test_dry_run(self, config_file: Path) -> None:
        """Test dry run validates the config and exits cleanly."""
        assert await run_bot(config_file, dry_run=True) == 0

    async def test_missing_config(self, tmp_path: Path) -> None:
        """Test a missing config file exits with an error."""
        assert await run_bot(tmp_path / "missing.yaml", dry_run=True) == 1

    async def test_invalid_config(self, tmp_path: Path) -> None:
        """Test an invalid config exits with an error."""
        path = tmp_path / "config.yaml"
        path.write_text("slack:\n  bot_token: bad\n  app_token: xapp-x\n")

        assert await run_bot(path, dry_run=True) == 1

    async def test_health_check_writes_report(self, config_file: Path, tmp_path: Path) -> None:
        """Test the health check exit code and report file."""
        report = MagicMock(healthy=True, details={})
        checker = MagicMock()
        checker.run_all_checks = AsyncMock(return_value=report)
        health_file = tmp_path / "health.json"

        with (
            patch("mintie.utils.health.HealthChecker", return_value=checker),
            patch("mintie.utils.health.write_health_file", new=AsyncMock()) as write,
        ):
            code = await run_bot(config_file, health_check=True, health_file=health_file)

        assert code == 0
        write.assert_awaited_once_with(report, health_file)

    async def test_health_check_unhealthy(self, config_file: Path) -> None:
        """Test an unhealthy report exits non-zero."""
        checker = MagicMock()
        checker.run_all_checks = AsyncMock(return_value=MagicMock(healthy=False, details={}))

        with patch("mintie.utils.health.HealthChecker", return_value=checker):
            assert await run_bot(config_file, health_check=True) == 1

    async def test_starts_bot(self, config_file: Path) -> None:
        """Test the bot is created and started."""
        bot = MagicMock()
        bot.start = AsyncMock()

        with patch("mintie.core.bot.create_bot", return_value=bot) as create:
            assert await run_bot(config_file) == 0

        create.assert_called_once()
        bot.start.assert_awaited_once()
