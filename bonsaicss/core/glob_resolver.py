"""Glob expansion and file-system walking for content patterns."""

import logging
import os
import re
from typing import Iterable, List, Pattern, Set

from bonsaicss.core.patterns import normalize_slashes

logger = logging.getLogger(__name__)

_BRACE_RE = re.compile(r"\{([^{}]+)\}")
_GLOB_TOKEN_RE = re.compile(r"[*?{]")


def expand_braces(pattern: str) -> List[str]:
    """Expand brace groups, e.g. ``"*.{html,tsx}"`` -> ``["*.html", "*.tsx"]``.

    Nested groups are expanded innermost-first; the result is de-duplicated
    keeping first-seen order.
    """
    expanded: List[str] = []
    seen: Set[str] = set()
    for item in _expand(pattern):
        if item not in seen:
            seen.add(item)
            expanded.append(item)
    return expanded


def _expand(pattern: str) -> List[str]:
    match = _BRACE_RE.search(pattern)
    if not match:
        return [pattern]

    head, tail = pattern[: match.start()], pattern[match.end() :]
    out: List[str] = []
    for part in match.group(1).split(","):
        out.extend(_expand(f"{head}{part.strip()}{tail}"))
    return out


def glob_to_regex(glob: str) -> Pattern[str]:
    """Compile a glob into an anchored regex.

    ``**/`` matches zero or more path segments, ``**`` anything, ``*``
    anything except ``/`` and ``?`` exactly one non-``/`` character.
    """
    src = normalize_slashes(glob)
    out = ["^"]
    i = 0
    while i < len(src):
        ch = src[i]
        if ch == "*":
            if src[i + 1 : i + 2] == "*":
                i += 2
                if src[i : i + 1] == "/":
                    i += 1
                    out.append("(?:.*/)?")
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
            i += 1
            continue
        if ch == "?":
            out.append("[^/]")
            i += 1
            continue
        out.append(re.escape(ch))
        i += 1
    out.append("$")
    return re.compile("".join(out))


def has_glob_token(pattern: str) -> bool:
    """Check whether a pattern contains ``*``, ``?`` or ``{``."""
    return bool(_GLOB_TOKEN_RE.search(pattern))


def get_walk_root(abs_pattern: str) -> str:
    """Return the deepest static directory before the first wildcard."""
    normalized = normalize_slashes(abs_pattern)
    match = _GLOB_TOKEN_RE.search(normalized)
    if not match:
        return normalized

    slash_index = normalized.rfind("/", 0, match.start())
    if slash_index == -1:
        return "."
    if slash_index == 0:
        return "/"
    return normalized[:slash_index]


def _skip_unreadable(error: OSError) -> None:
    logger.debug("Skipping unreadable directory %s: %s", error.filename, error)


def walk_files(root_dir: str) -> List[str]:
    """Recursively list regular files under ``root_dir``.

    Unreadable directories are skipped.
    """
    result: List[str] = []
    for current, _dirs, files in os.walk(root_dir, onerror=_skip_unreadable):
        for name in files:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                result.append(path)
    return result


def _absolute(cwd: str, pattern: str) -> str:
    return normalize_slashes(os.path.normpath(os.path.join(cwd, pattern)))


def resolve_content_files(patterns: Iterable[str], cwd: str) -> List[str]:
    """Resolve include/exclude globs into a sorted list of absolute file paths.

    Args:
        patterns: Glob patterns; entries starting with ``!`` are exclusions.
        cwd: Base directory for relative patterns.

    Returns:
        Absolute, de-duplicated, code-point sorted file paths.
    """
    patterns = [p for p in patterns if p]
    includes = [p for p in patterns if not p.startswith("!")]
    excludes = [p[1:] for p in patterns if p.startswith("!")]
    cwd = os.path.abspath(cwd)

    matches: Set[str] = set()
    for raw in includes:
        for pattern in expand_braces(raw):
            abs_pattern = _absolute(cwd, pattern)
            if not has_glob_token(abs_pattern):
                if os.path.isfile(abs_pattern):
                    matches.add(os.path.abspath(abs_pattern))
                continue

            matcher = glob_to_regex(abs_pattern)
            root = get_walk_root(abs_pattern)
            for file in walk_files(root):
                absolute = os.path.abspath(file)
                if matcher.match(normalize_slashes(absolute)):
                    matches.add(absolute)

    if excludes:
        excluded: Set[str] = set()
        for raw in excludes:
            for pattern in expand_braces(raw):
                matcher = glob_to_regex(_absolute(cwd, pattern))
                excluded.update(f for f in matches if matcher.match(normalize_slashes(f)))
        matches -= excluded

    result = sorted(matches)
    logger.debug("Resolved %d content files from %d patterns", len(result), len(patterns))
    return result
