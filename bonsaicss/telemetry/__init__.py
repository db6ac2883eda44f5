"""Telemetry and monitoring module."""

from bonsaicss.telemetry.metrics import (
    files_scanned_total,
    scan_cache_hits_total,
    scan_cache_misses_total,
    rules_removed_total,
    prune_duration_seconds,
)

__all__ = [
    "files_scanned_total",
    "scan_cache_hits_total",
    "scan_cache_misses_total",
    "rules_removed_total",
    "prune_duration_seconds",
]
