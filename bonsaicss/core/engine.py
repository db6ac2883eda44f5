"""High-level API tying together file resolution, scanning and pruning."""

import dataclasses
import logging
import os
import time
from typing import List, Optional, Union

from bonsaicss.cache.scan_cache import ScanCache, resolve_cache_path
from bonsaicss.core.glob_resolver import resolve_content_files
from bonsaicss.core.pruner import prune_css
from bonsaicss.core.reporting import build_report, emit_reports, write_analysis_report
from bonsaicss.core.scanner import scan_files
from bonsaicss.core.types import BonsaiOptions, BonsaiResult, PruneResult, ScanSummary

logger = logging.getLogger(__name__)


def read_css_source(css: Union[str, List[str]], cwd: str) -> str:
    """Return raw CSS, or the contents of the given files joined by newlines.

    Unreadable files contribute an empty string.
    """
    if isinstance(css, str):
        return css

    parts: List[str] = []
    for path in css:
        full_path = os.path.join(cwd, path)
        try:
            with open(full_path, "r", encoding="utf-8") as handle:
                parts.append(handle.read())
        except OSError as exc:
            logger.warning("Cannot read CSS file %s: %s", full_path, exc)
            parts.append("")
    return "\n".join(parts)


def _resolve_options(options: BonsaiOptions) -> BonsaiOptions:
    return dataclasses.replace(options, cwd=os.path.abspath(options.cwd or os.getcwd()))


def _default_cache(options: BonsaiOptions) -> ScanCache:
    if options.cache_dir:
        return ScanCache(resolve_cache_path(os.path.join(options.cwd, options.cache_dir)))
    return ScanCache()


def _scan_project(options: BonsaiOptions, cache: ScanCache) -> ScanSummary:
    files = resolve_content_files(options.content, options.cwd)
    summary = scan_files(files, options, options.cwd, cache)
    cache.save()
    write_analysis_report(summary, options)
    return summary


def _finish(scan: ScanSummary, result: PruneResult, options: BonsaiOptions, started: float) -> BonsaiResult:
    duration_ms = max(0.0, (time.perf_counter() - started) * 1000)
    report = build_report(scan, result, options, duration_ms)
    emit_reports(report, options)
    logger.info(
        "Removed %d of %d rules (%d -> %d bytes) in %.1f ms",
        result.stats.removed_rules,
        result.stats.total_rules,
        result.stats.original_size,
        result.stats.pruned_size,
        duration_ms,
    )
    return BonsaiResult(
        css=result.css,
        stats=result.stats,
        removed_classes=result.removed_classes,
        kept_classes=result.kept_classes,
        report=report,
    )


def bonsai(options: BonsaiOptions) -> BonsaiResult:
    """Resolve content files, scan them and prune the configured CSS.

    Example:
        >>> result = bonsai(BonsaiOptions(content=["src/**/*.{html,tsx}"], css=["styles.css"]))
        >>> result.stats.removed_rules
    """
    started = time.perf_counter()
    options = _resolve_options(options)
    scan = _scan_project(options, _default_cache(options))
    css = read_css_source(options.css, options.cwd)
    return _finish(scan, prune_css(css, scan, options), options, started)


class BonsaiContext:
    """Reusable scan-and-prune context for long-lived integrations.

    Content is scanned lazily on first use and the summary is reused until
    ``invalidate`` is called. The context owns its file-level scan cache, so
    a re-scan after ``invalidate`` only re-reads files whose signature changed.
    """

    def __init__(self, options: BonsaiOptions, cache: Optional[ScanCache] = None):
        self.options = _resolve_options(options)
        self.cache = cache if cache is not None else _default_cache(self.options)
        self._scan: Optional[ScanSummary] = None

    @property
    def scan(self) -> ScanSummary:
        if self._scan is None:
            self._scan = _scan_project(self.options, self.cache)
        return self._scan

    def prune(self, css: str, minify: Optional[bool] = None) -> BonsaiResult:
        """Prune ``css`` against the current scan; ``minify`` overrides the option."""
        started = time.perf_counter()
        scan = self.scan
        options = self.options
        if minify is not None and minify != options.minify:
            options = dataclasses.replace(options, minify=minify)
        return _finish(scan, prune_css(css, scan, options), options, started)

    def invalidate(self) -> None:
        """Drop the scan summary; the next access re-scans content."""
        self._scan = None
        logger.debug("Scan summary invalidated")


def create_bonsai_context(options: BonsaiOptions) -> BonsaiContext:
    return BonsaiContext(options)
