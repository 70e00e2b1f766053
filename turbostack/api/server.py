"""FastAPI server for the Turbo stack pages."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from turbostack.api.diag_routes import diag_router
from turbostack.api.health_routes import health_router
from turbostack.api.page_routes import page_router
from turbostack.config import Settings, settings as default_settings
from turbostack.health.aggregator import HealthAggregator
from turbostack.notfound import Page404Store, StoreUnavailable, resolve_client_ip

logger = logging.getLogger(__name__)

NOT_FOUND_PATH = "/404"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "1; mode=block",
}


# ── Middleware ───────────────────────────────────────────────────────────────


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add the browser hardening headers to every response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


# ── 404 logger ───────────────────────────────────────────────────────────────


async def log_not_found(request: Request, exc: StarletteHTTPException) -> Response:
    """Record the missing page, then send the browser to the 404 page."""
    if exc.status_code != 404 or request.url.path == NOT_FOUND_PATH:
        return await http_exception_handler(request, exc)

    uri = request.url.path
    if request.url.query:
        uri = f"{uri}?{request.url.query}"
    peer = request.client.host if request.client else None
    ip = resolve_client_ip(request.headers, peer)

    store: Page404Store = request.app.state.page404_store
    try:
        count = await run_in_threadpool(
            store.record_hit, uri, request.headers.get("referer"), ip,
        )
        logger.info("404 %s from %s (seen %d times)", uri, ip, count)
    except StoreUnavailable as e:
        logger.warning("404 not recorded for %s: %s", uri, e)

    return RedirectResponse(NOT_FOUND_PATH, status_code=302)


# ── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "Turbo stack pages up: env=%s web_root=%s",
        app.state.settings.app_env, app.state.settings.web_root,
    )
    yield
    app.state.health_aggregator.close()


# ── App factory ──────────────────────────────────────────────────────────────


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(
        title="Turbo Stack - Dev Pages",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.health_aggregator = HealthAggregator(settings)
    app.state.page404_store = Page404Store(settings)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_exception_handler(StarletteHTTPException, log_not_found)

    app.include_router(health_router)
    app.include_router(page_router)
    app.include_router(diag_router)

    return app


app = create_app()
