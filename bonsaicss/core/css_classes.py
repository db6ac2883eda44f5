"""Class names declared by a stylesheet."""

import logging
from typing import Set

from bonsaicss.core import css_ast

logger = logging.getLogger(__name__)


def collect_css_class_names(css: str) -> Set[str]:
    """Collect every class name referenced by a selector in ``css``.

    Escapes are decoded by the tokenizer (``.sm\\:grid`` yields ``sm:grid``).
    Unparseable CSS yields an empty set.
    """
    try:
        tree = css_ast.parse(css)
    except css_ast.CssSyntaxError as exc:
        logger.debug("Cannot collect class names from unparseable CSS: %s", exc)
        return set()

    classes: Set[str] = set()
    for visit in css_ast.walk(tree, css_ast.Rule):
        for selector in visit.node.selectors():
            classes.update(name for name in css_ast.selector_class_names(selector) if name)
    return classes
