"""Diagnostics pages: runtime info, loaded modules, installed distributions.

Endpoints:
  GET /runtime-info     runtime / system / environment tables
  GET /runtime-modules  modules imported into the server process
  GET /runtime-ext      installed distributions and versions

All three answer 403 when APP_ENV=production.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse

from turbostack.api.templating import templates
from turbostack.stack.runtime import installed_distributions, loaded_modules, runtime_info

logger = logging.getLogger(__name__)

diag_router = APIRouter(tags=["diagnostics"])

DENIED = "Access denied in production environment"


def require_development(request: Request) -> None:
    settings = request.app.state.settings
    if settings.is_production:
        logger.info("Blocked %s in production", request.url.path)
        raise HTTPException(status_code=403, detail=DENIED)


@diag_router.get("/runtime-info", response_class=HTMLResponse)
def runtime_info_page(request: Request) -> HTMLResponse:
    require_development(request)
    sections = runtime_info(request.app.state.settings)
    return templates.TemplateResponse(request, "runtime_info.html", {"sections": sections})


@diag_router.get("/runtime-modules", response_class=HTMLResponse)
def runtime_modules_page(request: Request) -> HTMLResponse:
    require_development(request)
    return templates.TemplateResponse(
        request, "runtime_modules.html", {"modules": loaded_modules()},
    )


@diag_router.get("/runtime-ext", response_class=HTMLResponse)
def runtime_extensions_page(request: Request) -> HTMLResponse:
    require_development(request)
    return templates.TemplateResponse(
        request, "runtime_ext.html", {"distributions": installed_distributions()},
    )
