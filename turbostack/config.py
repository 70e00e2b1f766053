from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


DEFAULT_DB_HOST = "dbhost"


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Environment ("production" locks the diagnostic pages)
    app_env: str = "development"

    # Document root served by the web container
    web_root: str = "/var/www/html"

    # MySQL / MariaDB
    db_host: str = DEFAULT_DB_HOST
    db_port: int = Field(default=3306, ge=1, le=65535)
    mysql_database: str = "docker"
    mysql_user: str = "docker"
    mysql_password: str = "docker"
    db_timeout: float = Field(default=3.0, gt=0, le=30)

    # Redis (blank host disables the probe)
    redis_host: str = "redis"
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_password: str = ""

    # Memcached
    memcached_host: str = "memcached"
    memcached_port: int = Field(default=11211, ge=1, le=65535)

    cache_timeout: float = Field(default=2.0, gt=0, le=30)

    # Caching reverse proxy in front of the stack, e.g. http://varnish/
    cache_proxy_url: str = ""

    # Health policy
    disk_degraded_percent: int = Field(default=90, ge=0, le=100)
    probe_grace_seconds: float = Field(default=1.0, ge=0, le=30)

    # Dashboard
    vhost_dir: str = "/etc/apache2/sites-enabled"
    applications_dir_name: str = "applications"
    pma_port: int = 8080
    mailpit_port: int = 8025

    # 404 logger table prefix
    table_prefix: str = "mp_"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    @field_validator("db_host", mode="before")
    @classmethod
    def _default_db_host(cls, value: object) -> object:
        # DB_HOST= (set but empty) still means the stack's database container
        if value is None or not str(value).strip():
            return DEFAULT_DB_HOST
        return value

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"


settings = Settings()
