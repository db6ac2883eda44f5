"""Health and metrics endpoints."""

import time

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

router = APIRouter()


@router.get("/health/live")
async def health_live() -> JSONResponse:
    """
    Liveness probe endpoint.
    Returns 200 if the application is running and responsive.
    """
    return JSONResponse(content={"status": "alive", "timestamp": time.time()})


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
