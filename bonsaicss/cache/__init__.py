"""Scan cache module."""

from bonsaicss.cache.scan_cache import ScanCache

__all__ = ["ScanCache"]
