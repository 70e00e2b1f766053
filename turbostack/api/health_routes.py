"""Health-check routes.

Endpoints:
  GET /health-check            "OK" for load-balancer / proxy probes
  GET /health-check?full=1     JSON report of every stack service
  GET /api/health/services     per-service results with details
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["health"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

_TRUTHY = {"1", "true", "yes", "on"}


def wants_full_report(full: str | None) -> bool:
    """Only an explicit truthy ?full= asks for the dependency checks."""
    return full is not None and full.strip().lower() in _TRUTHY


@health_router.get("/health-check", summary="Stack health probe")
@health_router.get("/health-check.php", include_in_schema=False)
async def health_check(request: Request, full: str | None = None) -> Response:
    """Basic probe by default; ?full=1 runs every service check.

    Always 200: a degraded stack must not make the front proxy mark the
    backend as down. The status travels in X-Health-Status and the body.
    """
    if not wants_full_report(full):
        return PlainTextResponse("OK", headers=NO_CACHE_HEADERS)

    report = await request.app.state.health_aggregator.collect()
    if not report.healthy:
        logger.warning(
            "Stack degraded: %s",
            ", ".join(f"{r.name}={r.status.value}" for r in report.services),
        )
    return JSONResponse(
        report.to_dict(),
        headers={**NO_CACHE_HEADERS, "X-Health-Status": report.overall_status.value},
    )


@health_router.get("/api/health/services")
async def service_details(request: Request) -> dict[str, Any]:
    """Full report including latency, failure messages and service details."""
    report = await request.app.state.health_aggregator.collect()
    body = report.to_dict()
    body["services"] = [r.to_dict() for r in report.services]
    return body
