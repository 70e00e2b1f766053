"""Apache virtual hosts and web-root application folders for the dashboard."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_SERVER_NAME = re.compile(r"ServerName\s+([^\s;]+)", re.IGNORECASE)
_DOCUMENT_ROOT = re.compile(r"DocumentRoot\s+([^\s;]+)", re.IGNORECASE)

DEFAULT_VHOST = "default.conf"
HIDDEN_DIRS = {"assets"}


@dataclass
class VirtualHost:
    domain: str
    path: str

    def display_path(self, web_root: str, applications_dir: str) -> str:
        """Path relative to the applications directory, when it lives there."""
        prefix = f"{web_root.rstrip('/')}/{applications_dir}/"
        return self.path.replace(prefix, "")


def parse_vhost(text: str) -> VirtualHost | None:
    """Extract ServerName + DocumentRoot; None unless both are present."""
    domain = _SERVER_NAME.search(text)
    root = _DOCUMENT_ROOT.search(text)
    if not domain or not root:
        return None
    path = root.group(1).strip("\"'")
    if not path:
        return None
    return VirtualHost(domain=domain.group(1), path=path)


def discover_virtual_hosts(vhost_dir: str | Path) -> list[VirtualHost]:
    """Every enabled *.conf except the default site."""
    directory = Path(vhost_dir)
    if not directory.is_dir():
        return []

    hosts = []
    for conf in sorted(directory.glob("*.conf")):
        if conf.name == DEFAULT_VHOST:
            continue
        try:
            text = conf.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Cannot read vhost %s: %s", conf, e)
            continue
        host = parse_vhost(text)
        if host:
            hosts.append(host)
    return hosts


def _subdirs(directory: Path, exclude: set[str]) -> list[str]:
    if not directory.is_dir():
        return []
    return sorted(
        p.name for p in directory.iterdir()
        if p.is_dir() and p.name not in exclude
    )


def list_app_folders(web_root: str | Path, applications_dir: str) -> dict[str, list[str]]:
    """Top-level web-root folders mapped to their own sub-folders."""
    root = Path(web_root)
    exclude = HIDDEN_DIRS | {applications_dir}
    return {
        name: _subdirs(root / name, exclude)
        for name in _subdirs(root, exclude)
    }
