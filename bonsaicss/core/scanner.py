"""Content scanner: find the class names a project's source files use.

Templates and scripts are scanned with shallow regex heuristics covering
HTML, JSX/TSX, Vue, Svelte, Angular, Astro, Solid, Blade, ERB/Rails and
plain JavaScript. Nothing is executed and no modules are resolved; a class
visible as a string literal in a recognized position is always picked up.
"""

import logging
import os
import re
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from bonsaicss.cache.scan_cache import ScanCache, file_signature
from bonsaicss.core.extractors import NormalizedExtractor, normalize_extractors, run_extractors
from bonsaicss.core.patterns import (
    PatternEntry,
    create_line_resolver,
    dedupe_regex,
    escape_regex,
    normalize_slashes,
    parse_pattern_entries,
    read_braced,
    split_arguments,
    tokenize_class_list,
)
from bonsaicss.core.types import FileScan, PrunerOptions, ScanSummary
from bonsaicss.telemetry.metrics import files_scanned_total

logger = logging.getLogger(__name__)

ConstMap = Dict[str, List[str]]

# Expression analysis
_QUOTED_STRING_RE = re.compile(r"""'([^'\\]*(?:\\.[^'\\]*)*)'|"([^"\\]*(?:\\.[^"\\]*)*)\"""")
_TEMPLATE_LITERAL_RE = re.compile(r"`([\s\S]*?)`")
_TEMPLATE_PLACEHOLDER_RE = re.compile(r"\$\{[^}]*\}")
_OBJECT_KEY_RE = re.compile(r"""(?:^|[{,]\s*)(['"]?)([a-zA-Z0-9_-][a-zA-Z0-9_:\-./]*)\1\s*:""")
_IDENTIFIER_RE = re.compile(r"[a-zA-Z_$][\w$]*")
_DECLARATION_RE = re.compile(r"\b(?:const|let|var)\s+([a-zA-Z_$][\w$]*)\s*=\s*([^;]+);?")
_DYNAMIC_EXPRESSION_RE = re.compile(r"[+]|`[\s\S]*\$\{")

# Literal class attributes: every token is used as-is.
_STATIC_CLASS_RES = (
    re.compile(r"""(?:^|[\s<])class\s*=\s*["'](?P<value>[^"']+)["']"""),
    re.compile(r"""\bclassName\s*=\s*["'](?P<value>[^"']+)["']"""),
    re.compile(r"""\bclass:\s*["'](?P<value>[^"']+)["']"""),
)

# Directives that name a single class, e.g. Svelte `class:active` or
# Angular `[class.active]="..."`. Astro's `class:list` is an expression.
_DIRECTIVE_CLASS_RES = (
    re.compile(r"\bclass:(?!list(?![a-zA-Z0-9_-]))(?P<name>[a-zA-Z0-9_-]+)"),
    re.compile(r"""\[class\.(?P<name>[a-zA-Z0-9_-]+)\]\s*=\s*["'][^"']*["']"""),
)

# Attributes and assignments whose value is an expression.
_EXPRESSION_RES = (
    re.compile(r""":class\s*=\s*(["'])(?P<expr>[\s\S]*?)\1"""),
    re.compile(r"""\bclass:list\s*=\s*(["'])(?P<expr>[\s\S]*?)\1"""),
    re.compile(r"""\[ngClass\]\s*=\s*(["'])(?P<expr>[\s\S]*?)\1"""),
    re.compile(r"""\.setAttribute\s*\(\s*['"]class['"]\s*,\s*(?P<expr>[^)]+)\)"""),
    re.compile(r"\.className\s*=\s*(?P<expr>[^\n;]+)"),
)

# Attributes whose value is a `{...}` expression; the body is read brace-balanced.
_BRACED_EXPRESSION_RES = (
    re.compile(r"\bclassName\s*=\s*\{"),
    re.compile(r"\bclassList\s*=\s*\{"),
    re.compile(r"\bclass:list\s*=\s*\{"),
    re.compile(r"\bclass\s*=\s*\{"),
)

# Helper calls; every argument (or only the one at the given index) is an expression.
_CALL_RES: Tuple[Tuple[Pattern[str], Optional[int]], ...] = (
    (re.compile(r"\bclassList\.(?:add|remove|toggle|contains|replace)\s*\((?P<args>[^)]*)\)"), None),
    (re.compile(r"\b(?:addClass|removeClass|toggleClass|hasClass)\s*\((?P<args>[^)]*)\)"), None),
    (re.compile(r"\brenderer\.(?:addClass|removeClass)\s*\((?P<args>[^)]*)\)"), 1),
    (re.compile(r"\b(?:clsx|classnames)\s*\((?P<args>[^)]*)\)"), None),
    (re.compile(r"@class\s*\((?P<args>[^)]*)\)"), None),
    (re.compile(r"\b(?:class_names|classNames)\s*\((?P<args>[^)]*)\)"), None),
)


def _quoted_strings(expression: str) -> List[str]:
    return [m.group(1) if m.group(1) is not None else (m.group(2) or "") for m in _QUOTED_STRING_RE.finditer(expression)]


def _template_statics(expression: str) -> List[str]:
    values: List[str] = []
    for match in _TEMPLATE_LITERAL_RE.finditer(expression):
        values.extend(part for part in _TEMPLATE_PLACEHOLDER_RE.split(match.group(1)) if part.strip())
    return values


def _object_keys(expression: str) -> List[str]:
    return [match.group(2) for match in _OBJECT_KEY_RE.finditer(expression)]


def collect_const_map(content: str) -> ConstMap:
    """Map ``const``/``let``/``var`` names to the class tokens of their value."""
    const_map: ConstMap = {}
    for match in _DECLARATION_RE.finditer(content):
        expression = match.group(2)
        tokens: Dict[str, None] = {}
        for value in _quoted_strings(expression) + _template_statics(expression):
            tokens.update(dict.fromkeys(tokenize_class_list(value)))
        if tokens:
            const_map[match.group(1)] = list(tokens)
    return const_map


def _resolve_identifiers(expression: str, const_map: ConstMap) -> List[str]:
    out: List[str] = []
    for identifier in _IDENTIFIER_RE.findall(expression):
        out.extend(const_map.get(identifier, ()))
    return out


def derive_dynamic_patterns(expression: str) -> List[Pattern[str]]:
    """Prefix patterns for class fragments completed at runtime.

    Only expressions that concatenate or interpolate qualify; each static
    fragment ending in ``-`` (``"btn-" + size``) yields ``^btn-``.
    """
    if not _DYNAMIC_EXPRESSION_RE.search(expression):
        return []

    patterns: List[Pattern[str]] = []
    for part in _quoted_strings(expression) + _template_statics(expression):
        for token in tokenize_class_list(part):
            if token.endswith("-"):
                patterns.append(re.compile(f"^{escape_regex(token)}"))
    return patterns


def analyze_expression(
    expression: str, const_map: ConstMap, collect_dynamic: bool
) -> Tuple[List[str], List[Pattern[str]]]:
    """Extract class tokens (and optionally dynamic patterns) from an expression."""
    tokens: Dict[str, None] = {}
    for value in _quoted_strings(expression) + _template_statics(expression) + _object_keys(expression):
        tokens.update(dict.fromkeys(tokenize_class_list(value)))
    tokens.update(dict.fromkeys(_resolve_identifiers(expression, const_map)))

    dynamic = derive_dynamic_patterns(expression) if collect_dynamic else []
    return list(tokens), dynamic


def scan_with_heuristics(
    content: str, options: Optional[PrunerOptions] = None, source_label: Optional[str] = None
) -> FileScan:
    """Run the built-in heuristics over one file's text."""
    scan = FileScan()
    const_map = collect_const_map(content)
    collect_dynamic = bool(options.keep_dynamic_patterns) if options else False
    resolve_line = create_line_resolver(content)

    def add(token: str, index: int) -> None:
        scan.add_class(token, f"{source_label}:{resolve_line(index)}" if source_label else None)

    def add_expression(expression: str, index: int) -> None:
        tokens, dynamic = analyze_expression(expression, const_map, collect_dynamic)
        for token in tokens:
            add(token, index)
        scan.dynamic_patterns.extend(dynamic)

    for regex in _STATIC_CLASS_RES:
        for match in regex.finditer(content):
            for token in tokenize_class_list(match.group("value")):
                add(token, match.start("value"))

    for regex in _DIRECTIVE_CLASS_RES:
        for match in regex.finditer(content):
            add(match.group("name"), match.start("name"))

    for regex in _EXPRESSION_RES:
        for match in regex.finditer(content):
            add_expression(match.group("expr"), match.start("expr"))

    for regex in _BRACED_EXPRESSION_RES:
        for match in regex.finditer(content):
            expression = read_braced(content, match.end())
            if expression is not None:
                add_expression(expression, match.end())

    for regex, arg_index in _CALL_RES:
        for match in regex.finditer(content):
            args = split_arguments(match.group("args"))
            if arg_index is not None:
                args = args[arg_index : arg_index + 1]
            for arg in args:
                add_expression(arg, match.start("args"))

    scan.dynamic_patterns = dedupe_regex(scan.dynamic_patterns)
    return scan


def _scan_text(
    content: str,
    options: PrunerOptions,
    source_label: Optional[str],
    cwd: str,
    extractors: Sequence[NormalizedExtractor],
) -> FileScan:
    if extractors:
        return run_extractors(content, list(extractors), source_label, cwd)
    return scan_with_heuristics(content, options, source_label)


def scan_content(
    content: str,
    options: Optional[PrunerOptions] = None,
    source_label: Optional[str] = None,
    cwd: Optional[str] = None,
) -> FileScan:
    """Scan a single string.

    Custom extractors in ``options`` replace the built-in heuristics. Origins
    are recorded only when ``source_label`` is given.

    Raises:
        ExtractorConfigError: for an unusable extractor definition.
    """
    options = options or PrunerOptions()
    extractors = normalize_extractors(options.extractors)
    return _scan_text(content, options, source_label, cwd or os.getcwd(), extractors)


def _source_label(path: str, cwd: str) -> str:
    try:
        label = normalize_slashes(os.path.relpath(path, cwd))
    except ValueError:
        label = ""
    return label or normalize_slashes(path)


def _scan_path(
    path: str,
    options: PrunerOptions,
    cwd: str,
    cache: Optional[ScanCache],
    extractors: Sequence[NormalizedExtractor],
) -> Optional[FileScan]:
    signature = None
    if cache is not None and not extractors:
        signature = file_signature(path, bool(options.keep_dynamic_patterns), cwd)
        if signature:
            cached = cache.get(path, signature)
            if cached is not None:
                return cached

    try:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            content = handle.read()
    except OSError as exc:
        logger.debug("Skipping unreadable content file %s: %s", path, exc)
        return None

    scan = _scan_text(content, options, _source_label(path, cwd), cwd, extractors)
    files_scanned_total.inc()
    if cache is not None and signature:
        cache.put(path, signature, scan)
    return scan


def scan_file(
    path: str,
    options: Optional[PrunerOptions] = None,
    cwd: Optional[str] = None,
    cache: Optional[ScanCache] = None,
) -> Optional[FileScan]:
    """Scan one file, consulting ``cache`` when given.

    Returns None when the file cannot be read.
    """
    options = options or PrunerOptions()
    extractors = normalize_extractors(options.extractors)
    return _scan_path(path, options, os.path.abspath(cwd or os.getcwd()), cache, extractors)


def scan_files(
    paths: Iterable[str],
    options: Optional[PrunerOptions] = None,
    cwd: Optional[str] = None,
    cache: Optional[ScanCache] = None,
) -> ScanSummary:
    """Scan every file and merge the results into one summary.

    The literal safelist and any explicit ``keep_dynamic_patterns`` entries
    are folded in after the files. Unreadable files are skipped and not
    counted in ``files_scanned``.

    Raises:
        ExtractorConfigError: for an unusable extractor definition.
    """
    options = options or PrunerOptions()
    cwd = os.path.abspath(cwd or os.getcwd())
    extractors = normalize_extractors(options.extractors)

    merged = FileScan()
    files_scanned = 0
    for path in paths:
        scan = _scan_path(path, options, cwd, cache, extractors)
        if scan is None:
            continue
        files_scanned += 1
        merged.merge(scan)

    for item in options.safelist:
        merged.classes.update(tokenize_class_list(item))

    if isinstance(options.keep_dynamic_patterns, (list, tuple)):
        merged.dynamic_patterns.extend(parse_pattern_entries(options.keep_dynamic_patterns))
    merged.dynamic_patterns = dedupe_regex(merged.dynamic_patterns)

    logger.info(
        "Scanned %d files: %d classes, %d dynamic patterns",
        files_scanned,
        len(merged.classes),
        len(merged.dynamic_patterns),
    )
    return ScanSummary.from_scan(merged, files_scanned)


def parse_safelist_patterns(entries: Optional[Iterable[PatternEntry]]) -> List[Pattern[str]]:
    """Compile safelist pattern entries (strings or regexes)."""
    return parse_pattern_entries(entries)
