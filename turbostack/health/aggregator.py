"""Health aggregator: runs every stack probe and derives the overall status.

Each probe runs in a thread pool with its own client timeout plus an
aggregator-side deadline, so one hung service cannot stall the others.
The report is rebuilt on every call; nothing is cached between requests.
"""

from __future__ import annotations

import asyncio
import logging
import platform
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Any

from turbostack.config import DEFAULT_DB_HOST, Settings
from turbostack.health.engine import (
    DiskUsage,
    MemoryUsage,
    OverallStatus,
    ServiceCheckResult,
    ServiceStatus,
    measure_disk,
    measure_memory,
    probe_cache_proxy,
    probe_database,
    probe_memcached,
    probe_redis,
    run_probe,
)

logger = logging.getLogger(__name__)

DATABASE = "database"
CACHE_A = "cache_a"  # Redis
CACHE_B = "cache_b"  # Memcached
CACHE_PROXY = "cache_proxy"


@dataclass
class ProbeSpec:
    """One configured probe."""

    name: str
    run: Callable[[], dict[str, Any] | None]
    timeout: float
    critical: bool = False
    enabled: bool = True
    label: str = ""


@dataclass
class HealthReport:
    overall_status: OverallStatus
    timestamp: str
    runtime_version: str
    disk: DiskUsage
    memory: MemoryUsage
    services: list[ServiceCheckResult] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return self.overall_status == OverallStatus.HEALTHY

    def service(self, name: str) -> ServiceCheckResult | None:
        for result in self.services:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        """Public health-check body."""
        return {
            "status": self.overall_status.value,
            "timestamp": self.timestamp,
            "runtime_version": self.runtime_version,
            "services": {r.name: r.status.value for r in self.services},
            "disk": self.disk.to_dict(),
            "memory": self.memory.to_dict(),
        }


def derive_overall_status(
    services: list[ServiceCheckResult],
    disk: DiskUsage,
    disk_threshold: int = 90,
) -> OverallStatus:
    """Degraded iff a critical service failed or the disk is too full.

    Non-critical services (the caches) are reported but never flip the status.
    """
    if any(r.critical and r.failed for r in services):
        return OverallStatus.DEGRADED
    if disk.error or disk.used_percent > disk_threshold:
        return OverallStatus.DEGRADED
    return OverallStatus.HEALTHY


class HealthAggregator:
    """Probes the stack services configured in Settings."""

    def __init__(self, settings: Settings, max_workers: int = 8) -> None:
        self.settings = settings
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="probe",
        )

    def probes(self) -> list[ProbeSpec]:
        s = self.settings
        specs = [
            ProbeSpec(
                name=DATABASE,
                label="MySQL",
                run=partial(
                    probe_database, s.db_host or DEFAULT_DB_HOST, s.db_port, s.mysql_user,
                    s.mysql_password, s.mysql_database, s.db_timeout,
                ),
                timeout=s.db_timeout,
                critical=True,
            ),
            ProbeSpec(
                name=CACHE_A,
                label="Redis",
                run=partial(
                    probe_redis, s.redis_host, s.redis_port,
                    s.redis_password, s.cache_timeout,
                ),
                timeout=s.cache_timeout,
                enabled=bool(s.redis_host),
            ),
            ProbeSpec(
                name=CACHE_B,
                label="Memcached",
                run=partial(
                    probe_memcached, s.memcached_host, s.memcached_port, s.cache_timeout,
                ),
                timeout=s.cache_timeout,
                enabled=bool(s.memcached_host),
            ),
        ]
        if s.cache_proxy_url:
            specs.append(ProbeSpec(
                name=CACHE_PROXY,
                label="Cache proxy",
                run=partial(probe_cache_proxy, s.cache_proxy_url, s.cache_timeout),
                timeout=s.cache_timeout,
            ))
        return specs

    async def _in_pool(self, deadline: float, fn: Callable[..., Any], *args: Any) -> Any:
        """Run *fn* on the pool with a deadline counted from when it starts.

        Waiting for a free worker has its own budget of *deadline* seconds;
        a job still queued after that is dropped unstarted.
        """
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def job() -> Any:
            loop.call_soon_threadsafe(started.set)
            return fn(*args)

        future = loop.run_in_executor(self._executor, job)
        try:
            await asyncio.wait_for(started.wait(), timeout=deadline)
        except asyncio.TimeoutError:
            future.cancel()
            raise
        return await asyncio.wait_for(future, timeout=deadline)

    async def _run(self, spec: ProbeSpec) -> ServiceCheckResult:
        if not spec.enabled:
            return ServiceCheckResult(
                name=spec.name, status=ServiceStatus.DISCONNECTED,
                critical=spec.critical, message="probe disabled (no host configured)",
            )

        deadline = spec.timeout + self.settings.probe_grace_seconds
        try:
            return await self._in_pool(
                deadline, run_probe, spec.name, spec.run, spec.critical,
            )
        except asyncio.TimeoutError:
            logger.warning("%s probe exceeded its %.1fs deadline", spec.name, deadline)
            return ServiceCheckResult(
                name=spec.name, status=ServiceStatus.ERROR, critical=spec.critical,
                latency_ms=round(deadline * 1000, 1),
                message=f"ConnectionTimeout: no answer within {deadline:.1f}s",
            )

    async def _disk(self) -> DiskUsage:
        path = self.settings.web_root
        deadline = self.settings.cache_timeout + self.settings.probe_grace_seconds
        try:
            return await self._in_pool(deadline, measure_disk, path)
        except asyncio.TimeoutError:
            logger.warning("Disk usage for %s timed out", path)
            return DiskUsage(path=path, error="timed out")

    async def collect(self) -> HealthReport:
        """Run all probes concurrently and build a fresh report."""
        specs = self.probes()
        *services, disk = await asyncio.gather(
            *(self._run(spec) for spec in specs), self._disk(),
        )
        overall = derive_overall_status(
            services, disk, self.settings.disk_degraded_percent,
        )
        report = HealthReport(
            overall_status=overall,
            timestamp=datetime.now().astimezone().isoformat(timespec="seconds"),
            runtime_version=platform.python_version(),
            disk=disk,
            memory=measure_memory(),
            services=list(services),
        )
        logger.debug(
            "Health %s: %s", overall.value,
            ", ".join(f"{r.name}={r.status.value}" for r in services),
        )
        return report

    def collect_sync(self) -> HealthReport:
        """Blocking variant for the CLI."""
        return asyncio.run(self.collect())

    def close(self) -> None:
        self._executor.shutdown(wait=False)
