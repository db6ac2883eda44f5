"""Command-line entry point for BonsaiCSS."""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn

from bonsaicss import __version__
from bonsaicss.api import create_app
from bonsaicss.config import BonsaiConfigError, Settings, load_config, merge_config_with_args
from bonsaicss.config.loader import ResolvedOptions, find_default_config_path, resolve_css_paths, validate_options
from bonsaicss.core.engine import bonsai
from bonsaicss.core.extractors import ExtractorConfigError
from bonsaicss.core.reporting import evaluate_ci_budgets
from bonsaicss.core.types import BonsaiResult

PREFIX = "[bonsaicss]"
_COMMANDS = ("prune", "serve")


def setup_logging(log_level: str):
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _write(message: str) -> None:
    sys.stderr.write(f"{PREFIX} {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bonsaicss", description="Prune unused CSS rules.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    prune = subparsers.add_parser("prune", help="Prune CSS files (default command)")
    prune.add_argument("--content", "-c", action="append", default=[], metavar="GLOB",
                       help="Content glob pattern (repeatable or comma-separated)")
    prune.add_argument("--css", "-i", action="append", default=[], metavar="FILE",
                       help="CSS file path (repeatable or comma-separated)")
    prune.add_argument("--config", metavar="PATH", help="Load a TOML or JSON config file")
    prune.add_argument("--out", "-o", metavar="FILE", help="Write pruned CSS to file (defaults to stdout)")
    prune.add_argument("--cwd", metavar="DIR", help="Base directory to resolve globs and files")
    prune.add_argument("--safelist", action="append", default=[], metavar="A,B",
                       help="Keep exact classes (repeatable or comma-separated)")
    prune.add_argument("--safelist-pattern", action="append", default=[], metavar="RE",
                       help="Keep classes matching a regex (repeatable)")
    prune.add_argument("--keep-dynamic-patterns", action="store_true", default=None,
                       help="Infer dynamic class prefixes from concatenations")
    prune.add_argument("--dynamic-pattern", action="append", default=[], metavar="RE",
                       help="Extra dynamic pattern (repeatable)")
    prune.add_argument("--minify", action="store_true", default=None, help="Emit minified CSS")
    prune.add_argument("--analyze", nargs="?", const=True, default=None, metavar="FILE",
                       help="Write the class-origin analysis report")
    prune.add_argument("--report-json", nargs="?", const=True, default=None, metavar="FILE",
                       help="Write the JSON report")
    prune.add_argument("--report-html", nargs="?", const=True, default=None, metavar="FILE",
                       help="Write the HTML report")
    prune.add_argument("--report-ci", nargs="?", const=True, default=None, metavar="FILE",
                       help="Write compact key=value CI stats")
    prune.add_argument("--no-cache", action="store_true", help="Do not use the persistent scan cache")
    prune.add_argument("--verbose", action="store_true", default=None, help="Print a run summary")
    prune.add_argument("--stats", action="store_true", default=None, help="Print machine-readable stats JSON")
    prune.add_argument("--max-unused-percent", type=float, default=None, metavar="N",
                       help="Fail when more than N%% of rules are removed")
    prune.add_argument("--max-final-kb", type=float, default=None, metavar="N",
                       help="Fail when the pruned CSS exceeds N KB")
    prune.add_argument("--log-level", default=None, help="Logging level (default from BONSAI_LOG_LEVEL)")

    serve = subparsers.add_parser("serve", help="Run the HTTP prune service")
    serve.add_argument("--host", default=None, help="Bind host (default from BONSAI_SERVER_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default from BONSAI_SERVER_PORT)")
    serve.add_argument("--log-level", default=None, help="Logging level (default from BONSAI_LOG_LEVEL)")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse arguments; ``prune`` is implied when no command is given."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in _COMMANDS + ("-h", "--help", "--version"):
        argv.insert(0, "prune")
    return build_parser().parse_args(argv)


def _reduction(result: BonsaiResult) -> float:
    if result.report:
        return result.report.stats["reductionRatio"]
    stats = result.stats
    return 1 - stats.pruned_size / stats.original_size if stats.original_size > 0 else 0.0


def _emit_output(resolved: ResolvedOptions, result: BonsaiResult) -> None:
    if resolved.out:
        output_path = Path(resolved.options.cwd or ".") / resolved.out
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(result.css, encoding="utf-8")
        _write(f"removed {result.stats.removed_rules} of {result.stats.total_rules} rules -> {output_path}")
    else:
        sys.stdout.write(result.css)
        if not result.css.endswith("\n"):
            sys.stdout.write("\n")

    report_stats = result.report.stats if result.report else {}
    if resolved.verbose:
        _write(
            f"files={report_stats.get('filesScanned', 0)} classes={report_stats.get('classesDetected', 0)} "
            f"removed={len(result.removed_classes)} rulesRemoved={result.stats.removed_rules} "
            f"reduction={_reduction(result) * 100:.2f}%"
        )
        for warning in result.report.warnings if result.report else []:
            sys.stderr.write(f"{PREFIX}[warning] {warning}\n")

    if resolved.stats:
        payload = {
            "filesScanned": report_stats.get("filesScanned", 0),
            "classesDetected": report_stats.get("classesDetected", 0),
            "classesRemoved": len(result.removed_classes),
            "totalRules": result.stats.total_rules,
            "removedRules": result.stats.removed_rules,
            "sizeBefore": result.stats.original_size,
            "sizeAfter": result.stats.pruned_size,
            "reductionRatio": _reduction(result),
            "durationMs": report_stats.get("durationMs", 0),
        }
        sys.stderr.write(json.dumps(payload) + "\n")


def run_prune(args: argparse.Namespace, settings: Settings) -> int:
    """Run one prune pass. Returns the process exit code."""
    try:
        config_path = args.config or find_default_config_path(args.cwd or settings.cwd)
        config = load_config(config_path) if config_path else {}
        resolved = merge_config_with_args(config, args, settings)
        resolved.config_path = config_path
        validate_options(resolved)
        result = bonsai(dataclasses.replace(resolved.options, css=resolve_css_paths(resolved)))
    except (BonsaiConfigError, ExtractorConfigError) as exc:
        _write(f"error: {exc}")
        return 1

    _emit_output(resolved, result)

    violations = evaluate_ci_budgets(result, resolved.max_unused_percent, resolved.max_final_kb)
    for message in violations:
        _write(f"budget exceeded: {message}")
    return 1 if violations else 0


def run_serve(args: argparse.Namespace, settings: Settings) -> int:
    """Run the HTTP prune service until interrupted."""
    logger = logging.getLogger(__name__)
    host = args.host or settings.server_host
    port = args.port or settings.server_port

    app = create_app(settings)
    logger.info("Starting server on %s:%s", host, port)
    try:
        uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    settings = Settings()
    setup_logging(args.log_level or settings.log_level)

    if args.command == "serve":
        return run_serve(args, settings)
    return run_prune(args, settings)


if __name__ == "__main__":
    sys.exit(main())
