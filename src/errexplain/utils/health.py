"""Health check utilities.

Reports on the configuration, the document store and the completion
provider settings. Used by the ``errexplain health`` command.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from errexplain.utils.logging import LogEventNames
from errexplain.utils.security import mask_config_value

if TYPE_CHECKING:
    from errexplain.config.schema import AppConfig
    from errexplain.interfaces.store import DocumentStore

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
    """Runs the health checks concurrently and summarizes them.

    Example:
        checker = HealthChecker(config, store)
        report = await checker.run_all_checks()
        print(report.status)
    """

    def __init__(self, config: AppConfig, store: DocumentStore | None = None) -> None:
        self._config = config
        self._store = store

    async def run_all_checks(self) -> HealthReport:
        """Run all health checks and return a report."""
        log.info(LogEventNames.HEALTH_CHECK_START)
        start_time = datetime.now(UTC)

        checks: list[CheckResult] = []
        results = await asyncio.gather(
            self._check_config(),
            self._check_store(),
            self._check_llm_provider(),
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
                "degraded_checks": sum(1 for c in checks if c.status == HealthStatus.DEGRADED),
                "unhealthy_checks": sum(1 for c in checks if c.status == HealthStatus.UNHEALTHY),
            },
        )

        log.info(
            LogEventNames.HEALTH_CHECK_COMPLETE,
            healthy=healthy,
            status=overall_status.value,
            checks_run=len(checks),
        )
        return report

    async def _check_config(self) -> CheckResult:
        """Check the quota and sharing settings."""
        quota = self._config.quota
        details = {
            "llm_provider": self._config.llm.provider,
            "storage_provider": self._config.storage.provider,
            "daily_limit": quota.daily_limit,
            "timezone": quota.timezone,
            "strict_quota": quota.strict,
        }
        if not quota.strict:
            return CheckResult(
                name="config",
                status=HealthStatus.DEGRADED,
                message="Quota enforcement is soft; concurrent requests may exceed the limit",
                details=details,
            )
        return CheckResult(
            name="config",
            status=HealthStatus.HEALTHY,
            message="Configuration valid",
            details=details,
        )

    async def _check_store(self) -> CheckResult:
        """Ping the document store."""
        if self._store is None:
            return CheckResult(
                name="document_store",
                status=HealthStatus.UNKNOWN,
                message="No document store supplied, skipping",
            )

        start = time.monotonic()
        try:
            await self._store.ping()
        except Exception as e:
            return CheckResult(
                name="document_store",
                status=HealthStatus.UNHEALTHY,
                message=f"Document store unreachable: {e}",
                latency_ms=(time.monotonic() - start) * 1000,
            )

        return CheckResult(
            name="document_store",
            status=HealthStatus.HEALTHY,
            message="Document store reachable",
            latency_ms=(time.monotonic() - start) * 1000,
            details={"provider": self._config.storage.provider},
        )

    async def _check_llm_provider(self) -> CheckResult:
        """Check completion provider configuration."""
        provider = self._config.llm.provider

        if provider == "groq":
            provider_config: Any = self._config.llm.groq
        elif provider == "anthropic":
            provider_config = self._config.llm.anthropic
        else:
            return CheckResult(
                name="llm_provider",
                status=HealthStatus.UNHEALTHY,
                message=f"Unknown LLM provider: {provider}",
            )

        if provider_config is None:
            return CheckResult(
                name="llm_provider",
                status=HealthStatus.UNHEALTHY,
                message=f"{provider} configuration not found",
            )

        api_key = provider_config.api_key
        if not api_key or api_key.startswith("${"):
            return CheckResult(
                name="llm_provider",
                status=HealthStatus.UNHEALTHY,
                message=f"{provider} API key not configured",
            )

        return CheckResult(
            name="llm_provider",
            status=HealthStatus.HEALTHY,
            message=f"{provider} configured",
            details={
                "provider": provider,
                "model": provider_config.model,
                "api_key": mask_config_value("api_key", api_key),
            },
        )
