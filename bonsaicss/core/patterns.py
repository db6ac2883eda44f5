"""Low-level string and regex helpers shared by the scanner, glob resolver and pruner.

Everything here is pure: no I/O, no logging.
"""

import bisect
import re
from typing import Callable, Iterable, List, Optional, Pattern, Union

PatternEntry = Union[str, Pattern[str]]

_CLASS_SPLIT_RE = re.compile(r"[\s,]+")
_WRAPPING_QUOTES_RE = re.compile(r"^['\"`]+|['\"`]+$")
_CODE_ARTIFACT_RE = re.compile(r"[<>{}()\[\]=;]")
_VALID_CLASS_RE = re.compile(r"^[a-zA-Z0-9_-][a-zA-Z0-9_:\-./]*$")
_SLASH_PATTERN_RE = re.compile(r"^/(.+)/([gimsuy]*)$")

# JavaScript-style flags accepted in "/body/flags" entries. g, u and y have no
# Python counterpart and are accepted but ignored.
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "g": 0,
    "u": 0,
    "y": 0,
}
_FLAG_LETTERS = (("i", re.IGNORECASE), ("m", re.MULTILINE), ("s", re.DOTALL))


def escape_regex(value: str) -> str:
    """Escape regex metacharacters in ``value``."""
    return re.escape(value)


def normalize_slashes(value: str) -> str:
    """Normalize path separators to forward slashes."""
    return value.replace("\\", "/")


def tokenize_class_list(value: str) -> List[str]:
    """Split a class-list string into valid class tokens.

    The string is split on whitespace and commas. Wrapping quotes are stripped,
    then URLs, code artifacts and anything that does not look like a class
    identifier are dropped.

    Args:
        value: Raw class list, e.g. ``"btn btn-primary"``.

    Returns:
        Class tokens in source order (duplicates preserved).
    """
    tokens: List[str] = []
    for part in _CLASS_SPLIT_RE.split(value):
        part = _WRAPPING_QUOTES_RE.sub("", part.strip())
        if not part:
            continue
        if "://" in part:
            continue
        if _CODE_ARTIFACT_RE.search(part):
            continue
        if not _VALID_CLASS_RE.match(part):
            continue
        tokens.append(part)
    return tokens


def split_arguments(args: str) -> List[str]:
    """Split a comma-separated argument list, respecting nesting and quotes.

    Args:
        args: Text between the parentheses of a call, e.g. ``"'a', fn(b, c)"``.

    Returns:
        Trimmed, non-empty argument strings.
    """
    parts: List[str] = []
    current: List[str] = []
    quote: Optional[str] = None
    escaped = False
    depth_paren = depth_bracket = depth_brace = 0

    for ch in args:
        if quote:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue

        if ch in ("'", '"', "`"):
            quote = ch
            current.append(ch)
            continue

        if ch == "(":
            depth_paren += 1
        elif ch == ")":
            depth_paren = max(0, depth_paren - 1)
        elif ch == "[":
            depth_bracket += 1
        elif ch == "]":
            depth_bracket = max(0, depth_bracket - 1)
        elif ch == "{":
            depth_brace += 1
        elif ch == "}":
            depth_brace = max(0, depth_brace - 1)

        if ch == "," and depth_paren == 0 and depth_bracket == 0 and depth_brace == 0:
            text = "".join(current).strip()
            if text:
                parts.append(text)
            current = []
            continue

        current.append(ch)

    text = "".join(current).strip()
    if text:
        parts.append(text)
    return parts


def read_braced(text: str, start: int) -> Optional[str]:
    """Return the body of a ``{...}`` block whose opening brace precedes ``start``.

    Braces inside quoted strings and template literals (including their
    ``${...}`` placeholders) do not count. Returns None when the block is
    never closed.
    """
    quote: Optional[str] = None
    escaped = False
    depth = 1

    for index in range(start, len(text)):
        ch = text[index]
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue

        if ch in ("'", '"', "`"):
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:index]
    return None


def _compile_flags(letters: str) -> int:
    flags = 0
    for letter in letters:
        flags |= _FLAG_MAP.get(letter, 0)
    return flags


def parse_pattern_entries(entries: Optional[Iterable[PatternEntry]]) -> List[Pattern[str]]:
    """Compile a list of string/regex entries into patterns.

    Compiled patterns pass through untouched. Strings written as
    ``/body/flags`` compile with those flags; any other string compiles as a
    plain pattern body. Blank and invalid entries are dropped silently.
    """
    if not entries:
        return []

    parsed: List[Pattern[str]] = []
    for entry in entries:
        if isinstance(entry, re.Pattern):
            parsed.append(entry)
            continue
        if not isinstance(entry, str) or not entry.strip():
            continue

        value = entry.strip()
        slash = _SLASH_PATTERN_RE.match(value)
        try:
            if slash:
                parsed.append(re.compile(slash.group(1), _compile_flags(slash.group(2))))
            else:
                parsed.append(re.compile(value))
        except re.error:
            continue
    return parsed


def pattern_to_string(pattern: Pattern[str]) -> str:
    """Serialize a pattern as ``/source/flags`` (round-trips through parse_pattern_entries)."""
    letters = "".join(letter for letter, flag in _FLAG_LETTERS if pattern.flags & flag)
    return f"/{pattern.pattern}/{letters}"


def dedupe_regex(patterns: Iterable[Pattern[str]]) -> List[Pattern[str]]:
    """Remove duplicate patterns by source and flags; first occurrence wins."""
    seen = set()
    out: List[Pattern[str]] = []
    for pattern in patterns:
        key = pattern_to_string(pattern)
        if key in seen:
            continue
        seen.add(key)
        out.append(pattern)
    return out


def matches_any(value: str, patterns: Iterable[Pattern[str]]) -> bool:
    """Return True when any pattern matches somewhere in ``value``."""
    return any(pattern.search(value) for pattern in patterns)


def create_line_resolver(source: str) -> Callable[[int], int]:
    """Build an offset -> 1-based line number lookup for ``source``.

    Line starts are computed once; each lookup is a binary search.
    """
    starts = [0]
    start = source.find("\n")
    while start != -1:
        starts.append(start + 1)
        start = source.find("\n", start + 1)

    length = len(source)

    def resolve(index: int) -> int:
        if index <= 0:
            return 1
        if index >= length:
            return len(starts)
        return bisect.bisect_right(starts, index)

    return resolve
