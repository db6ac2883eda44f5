"""CSS pruning engine.

Walks the stylesheet tree and removes every rule whose selectors reference
only classes that are neither used, safelisted nor matched by a dynamic or
safelist pattern. Block at-rules emptied by that pass are removed afterwards.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional, Pattern, Set

from bonsaicss.core import css_ast
from bonsaicss.core.css_classes import collect_css_class_names
from bonsaicss.core.patterns import matches_any, parse_pattern_entries, tokenize_class_list
from bonsaicss.core.types import PruneResult, PruneStats, PrunerOptions, ScanSummary
from bonsaicss.telemetry.metrics import (
    css_parse_failures_total,
    prune_duration_seconds,
    rules_removed_total,
    rules_total,
)

logger = logging.getLogger(__name__)

# At-rules kept even when their block is empty.
PRESERVED_AT_RULES = frozenset(
    {
        "charset",
        "import",
        "font-face",
        "keyframes",
        "namespace",
        "page",
        "property",
        "counter-style",
        "font-feature-values",
        "font-palette-values",
        "layer",
    }
)


def _byte_length(value: str) -> int:
    return len(value.encode("utf-8"))


class _ClassMatcher:
    """Decides whether a class name counts as used."""

    def __init__(self, used: Set[str], dynamic: Iterable[Pattern[str]], safelist: Iterable[Pattern[str]]):
        self.used = used
        self.dynamic = list(dynamic)
        self.safelist = list(safelist)

    def __call__(self, name: str) -> bool:
        return name in self.used or matches_any(name, self.dynamic) or matches_any(name, self.safelist)


def is_selector_used(selector: List[Any], is_used: Callable[[str], bool]) -> bool:
    """A selector without class tokens is always used; otherwise any used class keeps it."""
    classes = css_ast.selector_class_names(selector)
    if not classes:
        return True
    return any(is_used(name) for name in classes)


def _keeps_custom_properties(rule: css_ast.Rule) -> bool:
    return ":root" in rule.selector_text and css_ast.has_custom_properties(rule.content)


def _prune_rules(tree: css_ast.Stylesheet, is_used: Callable[[str], bool]) -> PruneStats:
    stats = PruneStats()
    for visit in css_ast.walk(tree, css_ast.Rule):
        rule = visit.node
        stats.total_rules += 1
        if _keeps_custom_properties(rule):
            continue
        if any(is_selector_used(selector, is_used) for selector in rule.selectors()):
            continue
        visit.remove()
        stats.removed_rules += 1
    stats.kept_rules = stats.total_rules - stats.removed_rules
    return stats


def _remove_empty_at_rules(tree: css_ast.Stylesheet) -> int:
    removed = 0
    for visit in css_ast.walk(tree, css_ast.AtRule, post_order=True):
        at_rule = visit.node
        if at_rule.name in PRESERVED_AT_RULES or not at_rule.has_block:
            continue
        if at_rule.is_empty():
            visit.remove()
            removed += 1
    return removed


def prune_css(css: str, scan: ScanSummary, options: Optional[PrunerOptions] = None) -> PruneResult:
    """Remove CSS rules that reference no used class.

    Args:
        css: Stylesheet text.
        scan: Used classes and dynamic patterns from the content scan.
        options: Safelist, safelist patterns and minify flag.

    Returns:
        The pruned CSS with rule and class statistics. Unparseable CSS is
        returned unchanged with zeroed rule counts.
    """
    options = options or PrunerOptions()
    original_size = _byte_length(css)

    with prune_duration_seconds.time():
        used: Set[str] = set(scan.classes)
        for entry in options.safelist:
            used.update(tokenize_class_list(str(entry)))
        is_used = _ClassMatcher(used, scan.dynamic_patterns, parse_pattern_entries(options.safelist_patterns))

        try:
            tree = css_ast.parse(css)
        except css_ast.CssSyntaxError as exc:
            logger.warning("CSS could not be parsed, returning it unchanged: %s", exc)
            css_parse_failures_total.inc()
            return PruneResult(
                css=css,
                stats=PruneStats(original_size=original_size, pruned_size=original_size),
            )

        stats = _prune_rules(tree, is_used)
        emptied = _remove_empty_at_rules(tree)

        if options.minify:
            css_ast.strip_comments(tree)
        pruned = css_ast.generate(tree, minify=options.minify)

    stats.original_size = original_size
    stats.pruned_size = _byte_length(pruned)
    rules_total.inc(stats.total_rules)
    rules_removed_total.inc(stats.removed_rules)

    kept: List[str] = []
    removed: List[str] = []
    for name in collect_css_class_names(css):
        (kept if is_used(name) else removed).append(name)

    logger.debug(
        "Pruned %d of %d rules and %d empty at-rules (%d -> %d bytes)",
        stats.removed_rules,
        stats.total_rules,
        emptied,
        stats.original_size,
        stats.pruned_size,
    )
    return PruneResult(css=pruned, stats=stats, removed_classes=sorted(removed), kept_classes=sorted(kept))
