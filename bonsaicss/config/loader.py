"""Config file discovery, loading and merging with command-line arguments."""

import json
import logging
import os
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from bonsaicss.config.settings import Settings
from bonsaicss.core.types import BonsaiOptions, ReportOptions

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ("bonsai.toml", "bonsaicss.toml", "bonsaicss.json")
PYPROJECT_TABLE = "bonsaicss"

_LIST_KEYS = ("content", "css", "safelist", "safelist_patterns")
_BOOL_KEYS = ("minify", "verbose", "stats")
_STR_KEYS = ("cwd", "out", "cache_dir")
_NUMBER_KEYS = ("max_unused_percent", "max_final_kb")
_KNOWN_KEYS = frozenset(
    _LIST_KEYS + _BOOL_KEYS + _STR_KEYS + _NUMBER_KEYS + ("keep_dynamic_patterns", "analyze", "report", "extractors")
)
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


class BonsaiConfigError(Exception):
    """Raised for unusable configuration or command-line input."""


@dataclass
class ResolvedOptions:
    """Engine options plus the CLI-only settings that surround a run."""

    options: BonsaiOptions
    out: Optional[str] = None
    verbose: bool = False
    stats: bool = False
    max_unused_percent: Optional[float] = None
    max_final_kb: Optional[float] = None
    config_path: Optional[str] = None


def split_csv(value: str) -> List[str]:
    """Split on commas outside brace groups, so ``*.{html,tsx}`` stays whole."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    for ch in value:
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(0, depth - 1)
        elif ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def _flatten_csv(values: Optional[Iterable[str]]) -> List[str]:
    out: List[str] = []
    for value in values or []:
        out.extend(split_csv(value))
    return out


def _has_pyproject_table(path: Path) -> bool:
    try:
        with path.open("rb") as fp:
            data = tomllib.load(fp)
    except (OSError, tomllib.TOMLDecodeError):
        return False
    return isinstance(data.get("tool", {}).get(PYPROJECT_TABLE), dict)


def find_default_config_path(cwd: str) -> Optional[str]:
    """Locate a config file in ``cwd``.

    Checks ``bonsai.toml``, ``bonsaicss.toml``, ``bonsaicss.json`` and finally
    ``pyproject.toml`` with a ``[tool.bonsaicss]`` table.
    """
    base = Path(cwd)
    for name in CONFIG_FILE_NAMES:
        candidate = base / name
        if candidate.is_file():
            return str(candidate)
    pyproject = base / "pyproject.toml"
    if pyproject.is_file() and _has_pyproject_table(pyproject):
        return str(pyproject)
    return None


def _normalize_keys(data: Dict[str, Any], path: str) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    for key, value in data.items():
        normalized = _CAMEL_RE.sub("_", key).replace("-", "_").lower()
        if normalized not in _KNOWN_KEYS:
            logger.warning("Ignoring unknown config key %r in %s", key, path)
            continue
        config[normalized] = value
    return config


def _check_types(config: Dict[str, Any], path: str) -> None:
    def fail(key: str, expected: str) -> None:
        raise BonsaiConfigError(f"Invalid config {path}: {key!r} must be {expected}")

    for key in _LIST_KEYS:
        value = config.get(key)
        if value is not None and not (isinstance(value, list) and all(isinstance(v, str) for v in value)):
            fail(key, "a list of strings")
    for key in _BOOL_KEYS:
        if key in config and not isinstance(config[key], bool):
            fail(key, "a boolean")
    for key in _STR_KEYS:
        if key in config and not isinstance(config[key], str):
            fail(key, "a string")
    for key in _NUMBER_KEYS:
        value = config.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            fail(key, "a number")

    dynamic = config.get("keep_dynamic_patterns")
    if dynamic is not None and not isinstance(dynamic, (bool, list)):
        fail("keep_dynamic_patterns", "a boolean or a list of patterns")
    analyze = config.get("analyze")
    if analyze is not None and not isinstance(analyze, (bool, str)):
        fail("analyze", "a boolean or a file path")
    report = config.get("report")
    if report is not None:
        if not isinstance(report, dict):
            fail("report", "a table with json/html/ci entries")
        for key, value in report.items():
            if key not in ("json", "html", "ci") or not isinstance(value, (bool, str)):
                fail(f"report.{key}", "a boolean or a file path")
    extractors = config.get("extractors")
    if extractors is not None and not (isinstance(extractors, list) and all(isinstance(e, dict) for e in extractors)):
        fail("extractors", "a list of tables")


def load_config(path: str) -> Dict[str, Any]:
    """Load a TOML or JSON config file.

    For ``pyproject.toml`` only the ``[tool.bonsaicss]`` table is read. Keys
    may be written in snake_case, kebab-case or camelCase.

    Raises:
        BonsaiConfigError: if the file is missing, has an unsupported suffix or
            does not contain a valid config object.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise BonsaiConfigError(f"Config file not found: {os.path.abspath(path)}")

    suffix = file_path.suffix.lower()
    try:
        if suffix == ".toml":
            with file_path.open("rb") as fp:
                data = tomllib.load(fp)
            if file_path.name == "pyproject.toml":
                data = data.get("tool", {}).get(PYPROJECT_TABLE, {})
        elif suffix == ".json":
            with file_path.open("r", encoding="utf-8") as fp:
                data = json.load(fp)
        else:
            raise BonsaiConfigError(f"Unsupported config file type: {path} (expected .toml or .json)")
    except (tomllib.TOMLDecodeError, ValueError) as exc:
        raise BonsaiConfigError(f"Invalid config {path}: {exc}") from exc
    except OSError as exc:
        raise BonsaiConfigError(f"Cannot read config {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise BonsaiConfigError(f"Invalid config {path}: expected an object at the top level")

    config = _normalize_keys(data, path)
    _check_types(config, path)
    logger.debug("Loaded config from %s", path)
    return config


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _non_empty(*values: Optional[List[str]]) -> List[str]:
    for value in values:
        if value:
            return list(value)
    return []


def _resolve_report(args: Any, config: Dict[str, Any]) -> ReportOptions:
    cli = [getattr(args, name, None) for name in ("report_json", "report_html", "report_ci")]
    if any(value is not None for value in cli):
        return ReportOptions(json=cli[0] or False, html=cli[1] or False, ci=cli[2] or False)
    report = config.get("report") or {}
    return ReportOptions(json=report.get("json", False), html=report.get("html", False), ci=report.get("ci", False))


def _resolve_dynamic(args: Any, config: Dict[str, Any], settings: Settings) -> Union[bool, List[str]]:
    dynamic_patterns = list(getattr(args, "dynamic_pattern", None) or [])
    if dynamic_patterns:
        return dynamic_patterns
    if getattr(args, "keep_dynamic_patterns", None):
        return True
    return _first(config.get("keep_dynamic_patterns"), settings.keep_dynamic_patterns)


def merge_config_with_args(
    config: Dict[str, Any], args: Any, settings: Optional[Settings] = None
) -> ResolvedOptions:
    """Merge CLI arguments over config-file values over environment settings.

    Args:
        config: Normalized config from :func:`load_config` (may be empty).
        args: Parsed command-line namespace.
        settings: Environment settings; read fresh when omitted.

    Returns:
        Resolved options ready for :func:`validate_options`.
    """
    settings = settings or Settings()
    cwd = os.path.abspath(_first(getattr(args, "cwd", None), config.get("cwd"), settings.cwd))

    if getattr(args, "no_cache", False):
        cache_dir = None
    else:
        cache_dir = _first(config.get("cache_dir"), settings.effective_cache_dir)

    options = BonsaiOptions(
        content=_non_empty(_flatten_csv(getattr(args, "content", None)), config.get("content"), settings.content),
        css=_non_empty(_flatten_csv(getattr(args, "css", None)), config.get("css"), settings.css),
        cwd=cwd,
        safelist=_non_empty(_flatten_csv(getattr(args, "safelist", None)), config.get("safelist"), settings.safelist),
        safelist_patterns=_non_empty(
            getattr(args, "safelist_pattern", None), config.get("safelist_patterns"), settings.safelist_patterns
        ),
        keep_dynamic_patterns=_resolve_dynamic(args, config, settings),
        minify=bool(_first(getattr(args, "minify", None), config.get("minify"), settings.minify)),
        extractors=list(config.get("extractors") or []),
        analyze=_first(getattr(args, "analyze", None), config.get("analyze"), False),
        report=_resolve_report(args, config),
        cache_dir=cache_dir,
    )

    return ResolvedOptions(
        options=options,
        out=_first(getattr(args, "out", None), config.get("out")),
        verbose=bool(_first(getattr(args, "verbose", None), config.get("verbose"), False)),
        stats=bool(_first(getattr(args, "stats", None), config.get("stats"), False)),
        max_unused_percent=_first(getattr(args, "max_unused_percent", None), config.get("max_unused_percent")),
        max_final_kb=_first(getattr(args, "max_final_kb", None), config.get("max_final_kb")),
        config_path=getattr(args, "config", None),
    )


def resolve_css_paths(resolved: ResolvedOptions) -> List[str]:
    cwd = resolved.options.cwd or os.getcwd()
    css = resolved.options.css
    return [os.path.join(cwd, path) for path in ([css] if isinstance(css, str) else css)]


def validate_options(resolved: ResolvedOptions) -> None:
    """Check that a run has content globs and existing CSS files.

    Raises:
        BonsaiConfigError: describing the first problem found.
    """
    if not resolved.options.content:
        raise BonsaiConfigError("At least one --content glob is required.")
    if not resolved.options.css:
        raise BonsaiConfigError("At least one --css file is required.")
    for path in resolve_css_paths(resolved):
        if not os.path.isfile(path):
            raise BonsaiConfigError(f"CSS file not found: {path}")
