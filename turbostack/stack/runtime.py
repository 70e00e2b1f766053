"""Runtime introspection for the diagnostic pages."""

from __future__ import annotations

import os
import platform
import socket
import sys
from importlib import metadata

from turbostack.config import Settings

MASK = "********"
_SECRET_MARKERS = ("PASSWORD", "SECRET", "TOKEN", "KEY", "AUTH")


def mask_value(name: str, value: str) -> str:
    """Hide values of variables whose name looks like a credential."""
    upper = name.upper()
    if value and any(marker in upper for marker in _SECRET_MARKERS):
        return MASK
    return value


def server_software() -> str:
    try:
        return f"uvicorn/{metadata.version('uvicorn')}"
    except metadata.PackageNotFoundError:
        return "uvicorn"


def runtime_info(settings: Settings) -> dict[str, dict[str, str]]:
    """Sections of name/value pairs, roughly what phpinfo() shows."""
    return {
        "Runtime": {
            "Python version": platform.python_version(),
            "Implementation": platform.python_implementation(),
            "Compiler": platform.python_compiler(),
            "Executable": sys.executable,
            "Server software": server_software(),
        },
        "System": {
            "Platform": platform.platform(),
            "Machine": platform.machine(),
            "Hostname": socket.gethostname(),
            "Process ID": str(os.getpid()),
            "Working directory": os.getcwd(),
        },
        "Stack": {
            "APP_ENV": settings.app_env,
            "Web root": settings.web_root,
            "Database host": f"{settings.db_host}:{settings.db_port}",
            "Redis host": f"{settings.redis_host}:{settings.redis_port}",
            "Memcached host": f"{settings.memcached_host}:{settings.memcached_port}",
            "Cache proxy": settings.cache_proxy_url or "-",
        },
        "Environment": {
            name: mask_value(name, value)
            for name, value in sorted(os.environ.items())
        },
    }


def loaded_modules() -> list[str]:
    """Top-level modules imported into this process."""
    return sorted({
        name.split(".")[0] for name in list(sys.modules)
        if not name.startswith("_")
    }, key=str.lower)


def installed_distributions() -> list[tuple[str, str]]:
    """(name, version) of every installed distribution."""
    seen: dict[str, tuple[str, str]] = {}
    for dist in metadata.distributions():
        name = dist.metadata["Name"]
        if name:
            seen.setdefault(name.lower(), (name, dist.version))
    return [seen[key] for key in sorted(seen)]
