"""Health probe engine: one bounded-time probe per stack service.

Supports: MySQL/MariaDB, Redis, Memcached, an HTTP cache proxy, disk and
process memory. Probes raise the ProbeError taxonomy; run_probe() turns every
outcome into a ServiceCheckResult so nothing escapes to the caller.
"""

from __future__ import annotations

import importlib
import logging
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from types import ModuleType
from typing import Any

import httpx
import psutil

logger = logging.getLogger(__name__)

GIB = 1024**3
MIB = 1024**2

# MySQL client error codes
_MYSQL_AUTH_ERRORS = {1044, 1045, 1698}
_MYSQL_CONNECT_ERRORS = {2002, 2003, 2005, 2006, 2013}


# ── Models ───────────────────────────────────────────────────────────────────


class ServiceStatus(str, Enum):
    CONNECTED = "connected"
    ERROR = "error"
    EXTENSION_MISSING = "extension_missing"
    DISCONNECTED = "disconnected"


class OverallStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class ProbeError(Exception):
    """Base class for probe failures."""


class ConnectionTimeout(ProbeError):
    """The service did not answer within the probe timeout."""


class ConnectionRefused(ProbeError):
    """The service could not be reached."""


class AuthFailure(ProbeError):
    """The service rejected the configured credentials."""


class ClientUnavailable(ProbeError):
    """The client library for the service is not installed."""


@dataclass
class ServiceCheckResult:
    """Result of a single service probe."""

    name: str
    status: ServiceStatus
    critical: bool = False
    latency_ms: float = 0.0
    message: str = ""
    details: dict[str, Any] | None = None

    @property
    def failed(self) -> bool:
        return self.status in (ServiceStatus.ERROR, ServiceStatus.EXTENSION_MISSING)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "critical": self.critical,
            "latency_ms": self.latency_ms,
            "message": self.message,
            "details": self.details or {},
        }


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero."""
    quantum = Decimal(1).scaleb(-ndigits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass
class DiskUsage:
    path: str
    total_bytes: int = 0
    free_bytes: int = 0
    error: str = ""

    @property
    def used_percent(self) -> int:
        if self.total_bytes <= 0:
            return 0
        used = (self.total_bytes - self.free_bytes) / self.total_bytes * 100
        return int(round_half_up(used))

    def to_dict(self) -> dict[str, Any]:
        return {
            "free_gb": round_half_up(self.free_bytes / GIB, 2),
            "total_gb": round_half_up(self.total_bytes / GIB, 2),
            "used_percent": self.used_percent,
        }


@dataclass
class MemoryUsage:
    used_bytes: int
    peak_bytes: int

    def to_dict(self) -> dict[str, float]:
        return {
            "used_mb": round_half_up(self.used_bytes / MIB, 2),
            "peak_mb": round_half_up(self.peak_bytes / MIB, 2),
        }


# ── Drivers ──────────────────────────────────────────────────────────────────


def load_driver(module: str) -> ModuleType:
    """Import a service client library, or raise ClientUnavailable."""
    try:
        return importlib.import_module(module)
    except ImportError as e:
        raise ClientUnavailable(f"{module.split('.')[0]} is not installed") from e


def _mysql_error(e: Exception) -> ProbeError:
    code = e.args[0] if e.args and isinstance(e.args[0], int) else None
    text = str(e.args[1]) if len(e.args) > 1 else str(e)
    if code in _MYSQL_AUTH_ERRORS:
        return AuthFailure(text)
    if "timed out" in text.lower():
        return ConnectionTimeout(text)
    if code in _MYSQL_CONNECT_ERRORS:
        return ConnectionRefused(text)
    return ProbeError(text)


# ── Probes ───────────────────────────────────────────────────────────────────


def probe_database(
    host: str,
    port: int,
    user: str,
    password: str,
    database: str = "",
    timeout: float = 3.0,
) -> dict[str, Any]:
    """Open (and close) a MySQL connection; return the server version."""
    pymysql = load_driver("pymysql")
    try:
        conn = pymysql.connect(
            host=host,
            port=port,
            user=user,
            password=password,
            database=database or None,
            charset="utf8mb4",
            connect_timeout=timeout,
            read_timeout=timeout,
            write_timeout=timeout,
        )
    except pymysql.err.MySQLError as e:
        raise _mysql_error(e) from e
    try:
        return {"version": conn.get_server_info()}
    finally:
        conn.close()


def probe_redis(
    host: str,
    port: int,
    password: str = "",
    timeout: float = 2.0,
) -> dict[str, Any]:
    """Connect, authenticate when a password is set, and PING.

    INFO only adds details; a user or server that refuses it still counts
    as connected.
    """
    redis = load_driver("redis")
    client = redis.Redis(
        host=host,
        port=port,
        password=password or None,
        socket_connect_timeout=timeout,
        socket_timeout=timeout,
    )
    try:
        client.ping()
        try:
            info = client.info()
        except redis.exceptions.ResponseError as e:
            logger.info("Redis %s:%s refused INFO: %s", host, port, e)
            info = None
    except redis.exceptions.AuthenticationError as e:
        raise AuthFailure(str(e)) from e
    except redis.exceptions.TimeoutError as e:
        raise ConnectionTimeout(str(e)) from e
    except redis.exceptions.ConnectionError as e:
        raise ConnectionRefused(str(e)) from e
    except redis.exceptions.RedisError as e:
        raise ProbeError(str(e)) from e
    finally:
        client.close()

    if info is None:
        return {}
    keys = sum(
        v.get("keys", 0) for k, v in info.items()
        if k.startswith("db") and isinstance(v, dict)
    )
    return {
        "version": info.get("redis_version", ""),
        "memory": info.get("used_memory_human", ""),
        "uptime_seconds": info.get("uptime_in_seconds", 0),
        "keys": keys,
    }


def probe_memcached(host: str, port: int, timeout: float = 2.0) -> dict[str, Any]:
    """Ask Memcached for its version and stats."""
    base = load_driver("pymemcache.client.base")
    errors = load_driver("pymemcache.exceptions")
    client = base.Client((host, port), connect_timeout=timeout, timeout=timeout)
    try:
        version = client.version()
        stats = client.stats()
    except TimeoutError as e:
        raise ConnectionTimeout(str(e) or "timed out") from e
    except OSError as e:
        raise ConnectionRefused(str(e)) from e
    except errors.MemcacheError as e:
        raise ProbeError(str(e)) from e
    finally:
        client.close()

    # pymemcache only converts a few stats; counters arrive as raw bytes
    def _stat(name: str) -> int:
        value = stats.get(name.encode(), stats.get(name, 0))
        if isinstance(value, bytes):
            value = value.decode("ascii", "replace")
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    if isinstance(version, bytes):
        version = version.decode("ascii", "replace")
    return {
        "version": version,
        "memory": _stat("bytes"),
        "uptime_seconds": _stat("uptime"),
        "items": _stat("curr_items"),
    }


def probe_cache_proxy(url: str, timeout: float = 2.0) -> dict[str, Any]:
    """HTTP GET against the caching reverse proxy; any answer below 500 is up."""
    try:
        with httpx.Client(timeout=timeout, follow_redirects=False) as client:
            resp = client.get(url)
    except httpx.TimeoutException as e:
        raise ConnectionTimeout(f"{url}: {e}") from e
    except httpx.ConnectError as e:
        raise ConnectionRefused(f"{url}: {e}") from e
    except httpx.HTTPError as e:
        raise ProbeError(f"{url}: {e}") from e

    if resp.status_code >= 500:
        raise ProbeError(f"{url} answered {resp.status_code}")
    return {
        "status_code": resp.status_code,
        "server": resp.headers.get("server", ""),
        "via": resp.headers.get("via", ""),
    }


def measure_disk(path: str) -> DiskUsage:
    """Free/total space of the filesystem holding *path*."""
    try:
        usage = psutil.disk_usage(path)
    except OSError as e:
        logger.warning("Disk usage unavailable for %s: %s", path, e)
        return DiskUsage(path=path, error=str(e))
    return DiskUsage(path=path, total_bytes=usage.total, free_bytes=usage.free)


def measure_memory() -> MemoryUsage:
    """Current and peak resident memory of this process."""
    info = psutil.Process().memory_info()
    if sys.platform == "win32":
        peak = getattr(info, "peak_wset", info.rss)
    else:
        import resource

        peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        # ru_maxrss is KiB on Linux, bytes on macOS
        if sys.platform != "darwin":
            peak *= 1024
    return MemoryUsage(used_bytes=info.rss, peak_bytes=max(peak, info.rss))


# ── Boundary ─────────────────────────────────────────────────────────────────


def run_probe(
    name: str,
    probe: Callable[[], dict[str, Any] | None],
    critical: bool = False,
) -> ServiceCheckResult:
    """Run one probe and fold any failure into a typed result."""
    t0 = time.perf_counter()
    try:
        details = probe()
        status = ServiceStatus.CONNECTED
        message = "connected"
    except ClientUnavailable as e:
        details = None
        # Critical services only know connected/error
        status = ServiceStatus.ERROR if critical else ServiceStatus.EXTENSION_MISSING
        message = str(e)
        logger.info("%s probe skipped: %s", name, e)
    except ProbeError as e:
        details = None
        status = ServiceStatus.ERROR
        message = f"{type(e).__name__}: {e}"
        logger.warning("%s probe failed: %s", name, message)
    except Exception as e:
        details = None
        status = ServiceStatus.ERROR
        message = f"Error: {type(e).__name__}: {e}"
        logger.exception("%s probe raised unexpectedly", name)

    latency = (time.perf_counter() - t0) * 1000
    return ServiceCheckResult(
        name=name,
        status=status,
        critical=critical,
        latency_ms=round(latency, 1),
        message=message,
        details=details,
    )
