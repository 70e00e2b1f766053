"""Tests for stack introspection: vhosts, web-root folders, runtime details."""

from __future__ import annotations

from pathlib import Path

from turbostack.config import Settings
from turbostack.stack.runtime import (
    MASK,
    installed_distributions,
    loaded_modules,
    mask_value,
    runtime_info,
    server_software,
)
from turbostack.stack.sites import VirtualHost, discover_virtual_hosts, list_app_folders, parse_vhost

VHOST = """
<VirtualHost *:80>
    servername  blog.localhost
    DocumentRoot "/var/www/html/applications/blog/public"
</VirtualHost>
"""


# ── Virtual hosts ────────────────────────────────────────────────────────────


class TestVirtualHosts:
    def test_parse(self) -> None:
        host = parse_vhost(VHOST)
        assert host == VirtualHost(domain="blog.localhost", path="/var/www/html/applications/blog/public")

    def test_parse_requires_both_directives(self) -> None:
        assert parse_vhost("ServerName only.localhost") is None
        assert parse_vhost("DocumentRoot /var/www/html") is None

    def test_display_path(self) -> None:
        host = VirtualHost(domain="blog.localhost", path="/var/www/html/applications/blog/public")
        assert host.display_path("/var/www/html", "applications") == "blog/public"
        assert host.display_path("/var/www/html/", "applications") == "blog/public"

    def test_discover_skips_default_and_broken(self, tmp_path: Path) -> None:
        (tmp_path / "default.conf").write_text("ServerName localhost\nDocumentRoot /var/www/html\n")
        (tmp_path / "blog.conf").write_text(VHOST)
        (tmp_path / "broken.conf").write_text("# nothing here\n")
        (tmp_path / "notes.txt").write_text(VHOST)

        hosts = discover_virtual_hosts(tmp_path)
        assert [h.domain for h in hosts] == ["blog.localhost"]

    def test_discover_missing_dir(self, tmp_path: Path) -> None:
        assert discover_virtual_hosts(tmp_path / "nope") == []


# ── Web-root folders ─────────────────────────────────────────────────────────


class TestAppFolders:
    def test_lists_two_levels(self, tmp_path: Path) -> None:
        for d in ("projects/blog", "projects/shop", "demos", "assets/css", "applications/x"):
            (tmp_path / d).mkdir(parents=True)
        (tmp_path / "index.php").write_text("<?php")

        folders = list_app_folders(tmp_path, "applications")
        assert folders == {"demos": [], "projects": ["blog", "shop"]}

    def test_missing_root(self, tmp_path: Path) -> None:
        assert list_app_folders(tmp_path / "nope", "applications") == {}


# ── Runtime ──────────────────────────────────────────────────────────────────


class TestRuntime:
    def test_mask_value(self) -> None:
        assert mask_value("MYSQL_PASSWORD", "docker") == MASK
        assert mask_value("api_token", "abc") == MASK
        assert mask_value("REDIS_PASSWORD", "") == ""
        assert mask_value("DB_HOST", "dbhost") == "dbhost"

    def test_runtime_info_sections(self, stack_settings: Settings) -> None:
        info = runtime_info(stack_settings)
        assert set(info) == {"Runtime", "System", "Stack", "Environment"}
        assert info["Stack"]["Database host"] == "dbhost:3306"
        assert info["Stack"]["Cache proxy"] == "-"

    def test_loaded_modules(self) -> None:
        modules = loaded_modules()
        assert "sys" in modules
        assert "turbostack" in modules
        assert not any(m.startswith("_") for m in modules)

    def test_installed_distributions(self) -> None:
        names = {name.lower() for name, _ in installed_distributions()}
        assert "fastapi" in names
        assert "pydantic-settings" in names or "pydantic_settings" in names

    def test_server_software(self) -> None:
        assert server_software().startswith("uvicorn")
