"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from turbostack.config import Settings
from turbostack.health.engine import GIB, ConnectionRefused, DiskUsage


def disk_at(used_percent: int, path: str = "/var/www/html") -> DiskUsage:
    """A 100 GiB disk filled to *used_percent*."""
    total = 100 * GIB
    return DiskUsage(path=path, total_bytes=total, free_bytes=total * (100 - used_percent) // 100)


@pytest.fixture
def stack_settings(tmp_path: Path) -> Settings:
    """Settings pointed at temp directories instead of the container paths."""
    web_root = tmp_path / "www"
    web_root.mkdir()
    vhosts = tmp_path / "sites-enabled"
    vhosts.mkdir()
    return Settings(
        _env_file=None,
        app_env="development",
        web_root=str(web_root),
        vhost_dir=str(vhosts),
        db_host="dbhost",
        db_port=3306,
        mysql_database="docker",
        mysql_user="docker",
        mysql_password="docker",
        db_timeout=3.0,
        redis_host="redis",
        redis_port=6379,
        redis_password="",
        memcached_host="memcached",
        memcached_port=11211,
        cache_timeout=2.0,
        disk_degraded_percent=90,
        cache_proxy_url="",
        probe_grace_seconds=1.0,
    )


@pytest.fixture
def probes() -> Iterator[SimpleNamespace]:
    """Patch every service probe; by default the whole stack is reachable at 40% disk."""
    target = "turbostack.health.aggregator"
    with patch(f"{target}.probe_database", return_value={"version": "10.11.6-MariaDB"}) as db, \
         patch(f"{target}.probe_redis", return_value={"version": "7.2.4", "keys": 3}) as redis, \
         patch(f"{target}.probe_memcached", return_value={"version": "1.6.22", "items": 0}) as memcached, \
         patch(f"{target}.probe_cache_proxy", return_value={"status_code": 200}) as proxy, \
         patch(f"{target}.measure_disk", return_value=disk_at(40)) as disk:
        yield SimpleNamespace(
            database=db, redis=redis, memcached=memcached, proxy=proxy, disk=disk,
        )


@pytest.fixture
def database_down(probes: SimpleNamespace) -> SimpleNamespace:
    probes.database.side_effect = ConnectionRefused("Can't connect to MySQL server on 'dbhost'")
    return probes


@pytest.fixture
def fake_store() -> MagicMock:
    """Stand-in for Page404Store."""
    store = MagicMock()
    store.record_hit.return_value = 1
    store.recent.return_value = []
    return store
