"""Tests for settings loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from turbostack.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("DB_HOST", "MYSQL_DATABASE", "REDIS_PASSWORD", "APP_ENV", "DB_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)
        s = Settings(_env_file=None)
        assert s.db_host == "dbhost"
        assert s.mysql_database == "docker"
        assert s.db_timeout == 3.0
        assert s.cache_timeout == 2.0
        assert s.redis_password == ""
        assert s.disk_degraded_percent == 90
        assert s.table_prefix == "mp_"
        assert not s.is_production

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_HOST", "database")
        monkeypatch.setenv("REDIS_PASSWORD", "s3cret")
        monkeypatch.setenv("APP_ENV", "Production")
        s = Settings(_env_file=None)
        assert s.db_host == "database"
        assert s.redis_password == "s3cret"
        assert s.is_production

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_db_host_falls_back(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv("DB_HOST", value)
        assert Settings(_env_file=None).db_host == "dbhost"

    def test_env_file(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MEMCACHED_PORT", raising=False)
        env = tmp_path / ".env"
        env.write_text("MEMCACHED_PORT=11311\nUNRELATED=1\n")
        assert Settings(_env_file=env).memcached_port == 11311

    @pytest.mark.parametrize(
        "overrides",
        [{"db_timeout": 0}, {"cache_timeout": 60}, {"redis_port": 0}, {"disk_degraded_percent": 101}],
    )
    def test_invalid_values(self, overrides) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)
