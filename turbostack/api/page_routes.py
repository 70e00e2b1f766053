"""Stack HTML pages: welcome, dashboard, DB connectivity test, Not Found."""

from __future__ import annotations

import logging
import platform
from functools import partial

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool

from turbostack.api.templating import templates
from turbostack.health.aggregator import DATABASE, HealthReport
from turbostack.health.engine import ServiceStatus, probe_database, run_probe
from turbostack.notfound import Page404Hit, StoreUnavailable
from turbostack.stack.runtime import server_software
from turbostack.stack.sites import discover_virtual_hosts, list_app_folders

logger = logging.getLogger(__name__)

page_router = APIRouter(tags=["pages"])

DB_SUCCESS = "Success: A proper connection to MySQL was made! The docker database is great."
DB_FAILURE = "Error: Unable to connect to MySQL."


@page_router.get("/", response_class=HTMLResponse)
def welcome(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "welcome.html", {
        "server_software": server_software(),
        "python_version": platform.python_version(),
    })


# ── Dashboard ────────────────────────────────────────────────────────────────


def database_line(report: HealthReport) -> str:
    db = report.service(DATABASE)
    if db is not None and db.status == ServiceStatus.CONNECTED:
        return f"MySQL Server {(db.details or {}).get('version', '')}"
    return f"MySQL connection failed: {db.message if db else 'no result'}"


async def _recent_404s(request: Request) -> list[Page404Hit]:
    store = request.app.state.page404_store
    try:
        return await run_in_threadpool(store.recent, 10)
    except StoreUnavailable as exc:
        logger.warning("Recent 404 list unavailable: %s", exc)
        return []


@page_router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request) -> HTMLResponse:
    settings = request.app.state.settings
    report = await request.app.state.health_aggregator.collect()

    return templates.TemplateResponse(request, "dashboard.html", {
        "settings": settings,
        "server_software": server_software(),
        "python_version": platform.python_version(),
        "database_line": database_line(report),
        "report": report,
        "disk": report.disk.to_dict(),
        "memory": report.memory.to_dict(),
        "vhosts": discover_virtual_hosts(settings.vhost_dir),
        "folders": list_app_folders(settings.web_root, settings.applications_dir_name),
        "recent_404s": await _recent_404s(request),
    })


# ── DB connectivity test ─────────────────────────────────────────────────────


@page_router.get("/test-db", response_class=HTMLResponse)
async def test_db(request: Request) -> HTMLResponse:
    s = request.app.state.settings
    server = partial(
        probe_database, s.db_host, s.db_port, s.mysql_user, s.mysql_password, "", s.db_timeout,
    )
    schema = partial(
        probe_database, s.db_host, s.db_port, s.mysql_user, s.mysql_password,
        s.mysql_database, s.db_timeout,
    )
    server_result = await run_in_threadpool(run_probe, "mysql-server", server, True)
    schema_result = await run_in_threadpool(run_probe, "mysql-database", schema, True)

    return templates.TemplateResponse(request, "test_db.html", {
        "checks": [
            ("Server connection test", server_result),
            (f"Database '{s.mysql_database}' connection test", schema_result),
        ],
        "success_text": DB_SUCCESS,
        "failure_text": DB_FAILURE,
    })


# ── Not Found ────────────────────────────────────────────────────────────────


@page_router.get("/404", response_class=HTMLResponse)
def not_found_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "not_found.html", {}, status_code=404)
