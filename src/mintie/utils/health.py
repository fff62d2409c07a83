"""Health check utilities for monitoring service health.

This module provides health check capabilities for Mintie:
- Check configuration (workspaces, answering rules)
- Check Slack bot token validity via auth.test
- Check each workspace has an assistant API key
- Generate health status reports
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from mintie.utils.async_helpers import create_retry
from mintie.utils.security import truncate_error

if TYPE_CHECKING:
    from mintie.config.schema import MintieConfig

log = structlog.get_logger()


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: HealthStatus
    message: str
    latency_ms: float | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthReport:
    """Overall health report."""

    healthy: bool
    status: HealthStatus
    timestamp: datetime
    checks: list[CheckResult]
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "healthy": self.healthy,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "checks": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                    "details": c.details,
                }
                for c in self.checks
            ],
            "details": self.details,
        }


class HealthChecker:
    """Performs health checks on the bot's dependencies.

    Example:
        checker = HealthChecker(config)
        result = await checker.run_all_checks()
        if not result.healthy:
            print(f"Issues detected: {result.details}")
    """

    def __init__(self, config: MintieConfig, slack_client: AsyncWebClient | None = None) -> None:
        """Initialize the health checker.

        Args:
            config: Application configuration
            slack_client: Slack Web API client. If None, creates one from the bot token.
        """
        self._config = config
        self._slack = slack_client or AsyncWebClient(token=config.slack.bot_token)

    async def run_all_checks(self) -> HealthReport:
        """Run all health checks and return a report."""
        log.info("health_check_start")
        start_time = datetime.now(UTC)

        checks: list[CheckResult] = []

        results = await asyncio.gather(
            self._check_config(),
            self._check_workspaces(),
            self._check_slack_auth(),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException):
                checks.append(
                    CheckResult(
                        name="unknown",
                        status=HealthStatus.UNHEALTHY,
                        message=f"Check failed with exception: {result}",
                    )
                )
            elif isinstance(result, CheckResult):
                checks.append(result)

        if all(c.status == HealthStatus.HEALTHY for c in checks):
            overall_status = HealthStatus.HEALTHY
            healthy = True
        elif any(c.status == HealthStatus.UNHEALTHY for c in checks):
            overall_status = HealthStatus.UNHEALTHY
            healthy = False
        else:
            overall_status = HealthStatus.DEGRADED
            healthy = True

        report = HealthReport(
            healthy=healthy,
            status=overall_status,
            timestamp=start_time,
            checks=checks,
            details={
                "total_checks": len(checks),
                "healthy_checks": sum(1 for c in checks if c.status == HealthStatus.HEALTHY),
                "unhealthy_checks": sum(1 for c in checks if c.status == HealthStatus.UNHEALTHY),
            },
        )

        log.info(
            "health_check_complete",
            healthy=healthy,
            status=overall_status.value,
            checks_run=len(checks),
        )
        return report

    async def _check_config(self) -> CheckResult:
        """Check the answering rules leave something to answer."""
        slack = self._config.slack
        if not (slack.ask_channel or slack.answer_mentions or slack.answer_direct_messages):
            return CheckResult(
                name="config",
                status=HealthStatus.UNHEALTHY,
                message="No ask channel, mentions or direct messages enabled",
            )

        return CheckResult(
            name="config",
            status=HealthStatus.HEALTHY,
            message="Configuration valid",
            details={
                "ask_channel": slack.ask_channel,
                "answer_mentions": slack.answer_mentions,
                "answer_direct_messages": slack.answer_direct_messages,
            },
        )

    async def _check_workspaces(self) -> CheckResult:
        """Check at least one workspace has usable assistant credentials."""
        workspaces = self._config.workspaces
        if not workspaces:
            return CheckResult(
                name="workspaces",
                status=HealthStatus.DEGRADED,
                message="No workspaces configured; every question gets the setup hint",
            )

        missing = sorted(
            team_id
            for team_id, settings in workspaces.items()
            if not settings.api_key or settings.api_key.startswith("${")
        )
        if missing:
            return CheckResult(
                name="workspaces",
                status=HealthStatus.UNHEALTHY,
                message="Assistant API key missing",
                details={"workspaces": missing},
            )

        return CheckResult(
            name="workspaces",
            status=HealthStatus.HEALTHY,
            message=f"{len(workspaces)} workspace(s) configured",
            details={"default_workspace": self._config.default_workspace},
        )

    async def _check_slack_auth(self) -> CheckResult:
        """Validate the bot token against Slack's auth.test."""
        start = time.monotonic()
        try:
            response = await self._auth_test()
        except SlackApiError as e:
            return CheckResult(
                name="slack_auth",
                status=HealthStatus.UNHEALTHY,
                message=f"Slack auth failed: {truncate_error(e)}",
                latency_ms=(time.monotonic() - start) * 1000,
            )

        return CheckResult(
            name="slack_auth",
            status=HealthStatus.HEALTHY,
            message="Slack bot token valid",
            latency_ms=(time.monotonic() - start) * 1000,
            details={"team": response.get("team"), "bot_user": response.get("user")},
        )

    @create_retry(max_attempts=2, min_wait=0.5, max_wait=2.0, retry_on=(OSError,))
    async def _auth_test(self) -> Any:
        return await self._slack.auth_test()


async def write_health_file(report: HealthReport, path: Path) -> None:
    """Write health report to a file for external monitoring.

    Args:
        report: Health report to write
        path: File path to write to
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report.to_dict(), indent=2))
        log.debug("health_file_written", path=str(path))
    except OSError as e:
        log.error("health_file_write_error", path=str(path), error=str(e))
