"""Prune, scan and invalidate endpoints backed by a long-lived BonsaiContext."""

import dataclasses
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from bonsaicss.core.engine import BonsaiContext
from bonsaicss.core.patterns import pattern_to_string
from bonsaicss.core.scanner import scan_content

logger = logging.getLogger(__name__)

router = APIRouter()


class PruneRequest(BaseModel):
    """Request model for pruning a stylesheet."""

    css: str = Field(..., description="Stylesheet text to prune")
    minify: Optional[bool] = Field(default=None, description="Override the configured minify flag")


class ScanContentRequest(BaseModel):
    """Request model for scanning an inline snippet."""

    content: str = Field(..., description="Template or script source")
    label: Optional[str] = Field(default=None, description="Source label used for class origins")


def _context(request: Request) -> BonsaiContext:
    return request.app.state.context


@router.post("/api/prune")
def prune(request: Request, body: PruneRequest) -> JSONResponse:
    """
    Prune a stylesheet against the current content scan.

    Response:
    - css: Pruned stylesheet
    - stats: Rule counts and sizes in bytes
    - removed_classes / kept_classes: Sorted class names declared by the input
    - report: Run statistics (files scanned, reduction ratio, duration)
    - warnings: Scanner warnings
    """
    with request.app.state.lock:
        result = _context(request).prune(body.css, minify=body.minify)

    report: Dict[str, Any] = result.report.stats if result.report else {}
    return JSONResponse(
        content={
            "css": result.css,
            "stats": dataclasses.asdict(result.stats),
            "removed_classes": result.removed_classes,
            "kept_classes": result.kept_classes,
            "report": report,
            "warnings": list(result.report.warnings) if result.report else [],
        }
    )


@router.get("/api/scan")
def get_scan(request: Request) -> JSONResponse:
    """Summary of the current content scan (scans lazily on first call)."""
    with request.app.state.lock:
        scan = _context(request).scan

    return JSONResponse(
        content={
            "files_scanned": scan.files_scanned,
            "class_count": len(scan.classes),
            "classes": sorted(scan.classes),
            "dynamic_patterns": [pattern_to_string(p) for p in scan.dynamic_patterns],
            "warnings": list(scan.warnings),
        }
    )


@router.post("/api/invalidate")
def invalidate(request: Request) -> JSONResponse:
    """Drop the scan summary so the next request re-scans changed files."""
    with request.app.state.lock:
        context = _context(request)
        context.invalidate()
        cache_stats = context.cache.get_stats()

    logger.info("Scan invalidated via API")
    return JSONResponse(content={"ok": True, "cache": cache_stats})


@router.post("/api/scan/content")
def scan_snippet(request: Request, body: ScanContentRequest) -> JSONResponse:
    """Scan an inline snippet with the service's scanner options."""
    options = _context(request).options
    scan = scan_content(body.content, options, source_label=body.label, cwd=options.cwd)
    return JSONResponse(
        content={
            "classes": sorted(scan.classes),
            "dynamic_patterns": [pattern_to_string(p) for p in scan.dynamic_patterns],
            "class_origins": {name: sorted(origins) for name, origins in sorted(scan.class_origins.items())},
            "warnings": scan.warnings,
        }
    )
