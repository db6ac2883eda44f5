"""Analysis, JSON/HTML/CI reports and CI budget checks."""

import html
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from bonsaicss.core.types import BonsaiOptions, BonsaiReport, PruneResult, ScanSummary

logger = logging.getLogger(__name__)

REPORT_VERSION = 1
ANALYSIS_FILE = "bonsai-analysis.json"
JSON_REPORT_FILE = "bonsai-report.json"
HTML_REPORT_FILE = "bonsai-report.html"
CI_REPORT_FILE = "bonsai-ci-stats.txt"

_HTML_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width,initial-scale=1" />
  <title>BonsaiCSS Report</title>
  <style>
    body {{ font-family: ui-sans-serif, system-ui, sans-serif; margin: 24px; color: #0f172a; }}
    table {{ border-collapse: collapse; width: 100%; margin-top: 12px; }}
    th, td {{ border: 1px solid #cbd5e1; text-align: left; padding: 8px; font-size: 14px; vertical-align: top; }}
    th {{ background: #f1f5f9; }}
    .grid {{ display: grid; grid-template-columns: repeat(2, minmax(0, 1fr)); gap: 8px 16px; max-width: 680px; }}
    .muted {{ color: #475569; }}
  </style>
</head>
<body>
  <h1>BonsaiCSS Report</h1>
  <p class="muted">Generated at {generated_at}</p>
  <h2>Stats</h2>
  <div class="grid">
    <div>Files scanned: <strong>{files_scanned}</strong></div>
    <div>Classes detected: <strong>{classes_detected}</strong></div>
    <div>Classes kept: <strong>{classes_kept}</strong></div>
    <div>Classes removed: <strong>{classes_removed}</strong></div>
    <div>Rules removed: <strong>{removed_rules}</strong></div>
    <div>Reduction: <strong>{reduction_pct}%</strong></div>
    <div>Size before: <strong>{size_before} bytes</strong></div>
    <div>Size after: <strong>{size_after} bytes</strong></div>
    <div>Total time: <strong>{duration_ms} ms</strong></div>
  </div>
  <h2>Warnings</h2>
  <ul>{warning_rows}</ul>
  <h2>Class Matrix</h2>
  <table>
    <thead><tr><th>Class</th><th>Status</th><th>Why</th></tr></thead>
    <tbody>
{class_rows}
    </tbody>
  </table>
</body>
</html>
"""


def _output_path(cwd: str, option: Union[bool, str], default_name: str) -> str:
    name = option if isinstance(option, str) else default_name
    return os.path.abspath(os.path.join(cwd, name))


def _write_text(path: str, text: str, kind: str) -> bool:
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(text)
    except OSError as exc:
        logger.warning("Failed to write %s to %s: %s", kind, path, exc)
        return False
    logger.info("Wrote %s to %s", kind, path)
    return True


def build_analysis(scan: ScanSummary) -> Dict[str, List[str]]:
    """Map each class with a known origin to its sorted origins."""
    return {name: sorted(scan.class_origins[name]) for name in sorted(scan.class_origins)}


def write_analysis_report(scan: ScanSummary, options: BonsaiOptions) -> Optional[str]:
    """Write the class -> origins analysis when ``options.analyze`` is set.

    Returns:
        The output path, or None when disabled or the write failed.
    """
    if not options.analyze:
        return None
    cwd = options.cwd or os.getcwd()
    path = _output_path(cwd, options.analyze, ANALYSIS_FILE)
    payload = json.dumps(build_analysis(scan), indent=2)
    return path if _write_text(path, payload, "analysis report") else None


def build_report(scan: ScanSummary, result: PruneResult, options: BonsaiOptions, duration_ms: float) -> BonsaiReport:
    """Assemble the full report for one prune run.

    Classes seen in content are ``kept``/``removed`` according to the prune
    result, or ``detected-only`` when the stylesheet never declares them.
    """
    kept = set(result.kept_classes)
    removed = set(result.removed_classes)
    entries: Dict[str, Dict[str, Any]] = {}

    for name, origins in scan.class_origins.items():
        status = "kept" if name in kept else "removed" if name in removed else "detected-only"
        entries[name] = {"className": name, "status": status, "origins": sorted(origins)}
    for name in result.kept_classes:
        entries.setdefault(name, {"className": name, "status": "kept", "origins": []})
    for name in result.removed_classes:
        entries.setdefault(name, {"className": name, "status": "removed", "origins": []})

    stats = result.stats
    reduction = 1 - stats.pruned_size / stats.original_size if stats.original_size > 0 else 0.0

    return BonsaiReport(
        report_version=REPORT_VERSION,
        generated_at=datetime.now(timezone.utc).isoformat(),
        cwd=options.cwd or os.getcwd(),
        content_globs=list(options.content),
        stats={
            "filesScanned": scan.files_scanned,
            "classesDetected": len(scan.classes),
            "classesKept": len(result.kept_classes),
            "classesRemoved": len(result.removed_classes),
            "totalRules": stats.total_rules,
            "removedRules": stats.removed_rules,
            "keptRules": stats.kept_rules,
            "sizeBefore": stats.original_size,
            "sizeAfter": stats.pruned_size,
            "reductionRatio": reduction,
            "durationMs": duration_ms,
        },
        classes=[entries[name] for name in sorted(entries)],
        warnings=list(scan.warnings),
    )


def render_html_report(report: BonsaiReport) -> str:
    rows = []
    for entry in report.classes:
        origins = "<br/>".join(html.escape(origin) for origin in entry["origins"]) or "-"
        rows.append(
            f"      <tr><td>{html.escape(entry['className'])}</td>"
            f"<td>{html.escape(entry['status'])}</td><td>{origins}</td></tr>"
        )
    warnings = "\n".join(f"<li>{html.escape(w)}</li>" for w in report.warnings) or "<li>None</li>"
    stats = report.stats
    return _HTML_TEMPLATE.format(
        generated_at=html.escape(report.generated_at),
        files_scanned=stats["filesScanned"],
        classes_detected=stats["classesDetected"],
        classes_kept=stats["classesKept"],
        classes_removed=stats["classesRemoved"],
        removed_rules=stats["removedRules"],
        reduction_pct=f"{stats['reductionRatio'] * 100:.2f}",
        size_before=stats["sizeBefore"],
        size_after=stats["sizeAfter"],
        duration_ms=f"{stats['durationMs']:.2f}",
        warning_rows=warnings,
        class_rows="\n".join(rows),
    )


def render_ci_report(report: BonsaiReport) -> str:
    stats = report.stats
    lines = [
        f"report_version={report.report_version}",
        f"files_scanned={stats['filesScanned']}",
        f"classes_detected={stats['classesDetected']}",
        f"classes_removed={stats['classesRemoved']}",
        f"rules_removed={stats['removedRules']}",
        f"size_before={stats['sizeBefore']}",
        f"size_after={stats['sizeAfter']}",
        f"size_after_kb={stats['sizeAfter'] / 1024:.2f}",
        f"reduction_ratio={stats['reductionRatio']:.6f}",
        f"unused_css_percent={stats['reductionRatio'] * 100:.2f}",
        f"duration_ms={stats['durationMs']:.3f}",
    ]
    return "\n".join(lines) + "\n"


def emit_reports(report: BonsaiReport, options: BonsaiOptions) -> List[str]:
    """Write the enabled JSON/HTML/CI reports.

    Write failures are logged and never raised.

    Returns:
        Paths that were written successfully.
    """
    targets = options.report
    if not targets.enabled:
        return []

    cwd = options.cwd or os.getcwd()
    written: List[str] = []
    outputs = (
        (targets.json, JSON_REPORT_FILE, "JSON report", lambda: json.dumps(report.to_dict(), indent=2)),
        (targets.html, HTML_REPORT_FILE, "HTML report", lambda: render_html_report(report)),
        (targets.ci, CI_REPORT_FILE, "CI report", lambda: render_ci_report(report)),
    )
    for option, default_name, kind, render in outputs:
        if not option:
            continue
        path = _output_path(cwd, option, default_name)
        if _write_text(path, render(), kind):
            written.append(path)
    return written


def evaluate_ci_budgets(
    result: PruneResult,
    max_unused_percent: Optional[float] = None,
    max_final_kb: Optional[float] = None,
) -> List[str]:
    """Check a prune result against CI budgets.

    Returns:
        One message per exceeded budget; empty when all budgets hold.
    """
    messages: List[str] = []
    stats = result.stats
    if max_unused_percent is not None:
        unused = stats.removed_rules / stats.total_rules * 100 if stats.total_rules > 0 else 0.0
        if unused > max_unused_percent:
            messages.append(f"Unused CSS percent ({unused:.2f}%) exceeds max ({max_unused_percent:.2f}%)")
    if max_final_kb is not None:
        final_kb = stats.pruned_size / 1024
        if final_kb > max_final_kb:
            messages.append(f"Final CSS size ({final_kb:.2f} KB) exceeds max ({max_final_kb:.2f} KB)")
    return messages
