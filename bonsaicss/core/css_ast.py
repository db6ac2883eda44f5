"""Mutable CSS tree built on top of tinycss2.

tinycss2 tokenizes and parses but produces a read-only, loosely nested
structure and never rejects broken input. This module wraps it into a small
tree the pruner can edit in place:

- ``parse`` turns CSS text into a :class:`Stylesheet`, raising
  :class:`CssSyntaxError` for structurally broken input;
- ``walk`` visits nodes of one type and lets the caller remove them;
- ``generate`` serializes the tree back, optionally compacted.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Set, Type, Union

import tinycss2
from tinycss2 import ast as tokens
from tinycss2.serializer import serialize_identifier

# Block at-rules whose body is a declaration list rather than a rule list.
DECLARATION_AT_RULES = frozenset(
    {
        "font-face",
        "page",
        "property",
        "counter-style",
        "font-feature-values",
        "font-palette-values",
        "viewport",
        "-ms-viewport",
        "color-profile",
    }
)

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}

_SELECTOR_TIGHT = frozenset({",", ">", "+", "~"})
_DECLARATION_TIGHT = frozenset({":", ","})
_ARGUMENT_TIGHT = frozenset({","})


class CssSyntaxError(ValueError):
    """Raised when CSS text cannot be turned into a trustworthy tree."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.line = line
        self.column = column
        location = f" (line {line}, column {column})" if line is not None else ""
        super().__init__(f"{message}{location}")


@dataclass(eq=False)
class Node:
    """Base class for tree nodes. Equality is identity."""


@dataclass(eq=False)
class Whitespace(Node):
    value: str


@dataclass(eq=False)
class Comment(Node):
    value: str


@dataclass(eq=False)
class Rule(Node):
    """A qualified rule: selector prelude plus declaration block tokens."""

    prelude: List[tokens.Node]
    content: List[tokens.Node]

    @property
    def selector_text(self) -> str:
        return tinycss2.serialize(self.prelude).strip()

    def selectors(self) -> List[List[tokens.Node]]:
        """Split the prelude into individual selectors on top-level commas."""
        selectors: List[List[tokens.Node]] = [[]]
        for token in self.prelude:
            if isinstance(token, tokens.LiteralToken) and token.value == ",":
                selectors.append([])
                continue
            selectors[-1].append(token)
        return [s for s in selectors if any(not _is_blank(t) for t in s)]


@dataclass(eq=False)
class AtRule(Node):
    """An at-rule.

    Block at-rules that contain rules (``@media``, ``@supports``, ...) keep
    them in ``children``; declaration at-rules (``@font-face``) keep the raw
    body tokens in ``content``. Statement at-rules have neither.
    """

    at_keyword: str
    prelude: List[tokens.Node]
    content: Optional[List[tokens.Node]] = None
    children: Optional[List[Node]] = None

    @property
    def name(self) -> str:
        return self.at_keyword.lower()

    @property
    def has_block(self) -> bool:
        return self.content is not None or self.children is not None

    def is_empty(self) -> bool:
        """True for a block whose body holds nothing but whitespace and comments."""
        if self.children is not None:
            return all(isinstance(child, (Whitespace, Comment)) for child in self.children)
        if self.content is not None:
            return all(_is_blank(token) for token in self.content)
        return False


@dataclass(eq=False)
class Stylesheet(Node):
    children: List[Node] = field(default_factory=list)


@dataclass
class Visit:
    """A node found by :func:`walk`, together with the list that holds it."""

    node: Node
    siblings: List[Node]

    def remove(self) -> None:
        """Detach the node; trailing whitespace after it goes too."""
        for index, sibling in enumerate(self.siblings):
            if sibling is self.node:
                del self.siblings[index]
                if index < len(self.siblings) and isinstance(self.siblings[index], Whitespace):
                    del self.siblings[index]
                return


def _is_blank(token: tokens.Node) -> bool:
    return isinstance(token, (tokens.WhitespaceToken, tokens.Comment))


def _check_balanced(css: str) -> None:
    """Reject unbalanced brackets, which tinycss2 would silently auto-close."""
    stack: List[tuple] = []
    line = 1
    i = 0
    length = len(css)
    while i < length:
        ch = css[i]
        if ch == "\n":
            line += 1
        elif ch == "\\":
            i += 2
            continue
        elif ch == "/" and css.startswith("/*", i):
            end = css.find("*/", i + 2)
            if end == -1:
                return
            line += css.count("\n", i, end)
            i = end + 2
            continue
        elif ch in ("'", '"'):
            i += 1
            while i < length and css[i] != ch and css[i] != "\n":
                i += 2 if css[i] == "\\" else 1
            if i < length and css[i] == "\n":
                continue
        elif ch in _OPENERS:
            stack.append((_OPENERS[ch], line))
        elif ch in _CLOSERS:
            if not stack or stack[-1][0] != ch:
                raise CssSyntaxError(f"Unexpected '{ch}'", line)
            stack.pop()
        i += 1

    if stack:
        closer, opened_at = stack[-1]
        raise CssSyntaxError(f"Unclosed block, expected '{closer}'", opened_at)


def _convert(nodes: Sequence[tokens.Node]) -> List[Node]:
    converted: List[Node] = []
    for node in nodes:
        if isinstance(node, tokens.WhitespaceToken):
            converted.append(Whitespace(node.value))
        elif isinstance(node, tokens.Comment):
            converted.append(Comment(node.value))
        elif isinstance(node, tokens.ParseError):
            raise CssSyntaxError(node.message, node.source_line, node.source_column)
        elif isinstance(node, tokens.QualifiedRule):
            if all(_is_blank(token) for token in node.prelude):
                raise CssSyntaxError("Rule without a selector", node.source_line, node.source_column)
            converted.append(Rule(prelude=list(node.prelude), content=list(node.content)))
        elif isinstance(node, tokens.AtRule):
            converted.append(_convert_at_rule(node))
    return converted


def _convert_at_rule(node: tokens.AtRule) -> AtRule:
    at_rule = AtRule(at_keyword=node.at_keyword, prelude=list(node.prelude))
    if node.content is None:
        return at_rule

    if node.lower_at_keyword in DECLARATION_AT_RULES:
        at_rule.content = list(node.content)
        return at_rule

    nested = tinycss2.parse_rule_list(node.content, skip_comments=False, skip_whitespace=False)
    try:
        at_rule.children = _convert(nested)
    except CssSyntaxError:
        # Unknown at-rule with a declaration body: keep it opaque.
        at_rule.content = list(node.content)
    return at_rule


def parse(css: str) -> Stylesheet:
    """Parse CSS text into a mutable tree.

    Raises:
        CssSyntaxError: for unbalanced brackets, parse errors reported by
            tinycss2, or rules without a selector.
    """
    _check_balanced(css)
    nodes = tinycss2.parse_stylesheet(css, skip_comments=False, skip_whitespace=False)
    return Stylesheet(children=_convert(nodes))


def _children_of(node: Node) -> Optional[List[Node]]:
    if isinstance(node, Stylesheet):
        return node.children
    if isinstance(node, AtRule):
        return node.children
    return None


def _collect(container: List[Node], node_type: Type[Node], post_order: bool, out: List[Visit]) -> None:
    for child in container:
        nested = _children_of(child)
        if not post_order and isinstance(child, node_type):
            out.append(Visit(child, container))
        if nested is not None:
            _collect(nested, node_type, post_order, out)
        if post_order and isinstance(child, node_type):
            out.append(Visit(child, container))


def walk(root: Node, node_type: Type[Node], post_order: bool = False) -> Iterator[Visit]:
    """Visit every node of ``node_type`` below ``root``.

    Visits are collected up front, so calling :meth:`Visit.remove` while
    iterating is safe. ``post_order`` yields children before their parent.
    """
    visits: List[Visit] = []
    container = _children_of(root)
    if container is not None:
        _collect(container, node_type, post_order, visits)
    return iter(visits)


def _strip_comment_tokens(token_list: List[tokens.Node]) -> List[tokens.Node]:
    kept: List[tokens.Node] = []
    for token in token_list:
        if isinstance(token, tokens.Comment):
            # A comment separates tokens (`1px/**/2px`); keep that separation.
            kept.append(tokens.WhitespaceToken(token.source_line, token.source_column, " "))
            continue
        if isinstance(token, tokens.FunctionBlock):
            token.arguments = _strip_comment_tokens(token.arguments)
        elif isinstance(token, (tokens.ParenthesesBlock, tokens.SquareBracketsBlock, tokens.CurlyBracketsBlock)):
            token.content = _strip_comment_tokens(token.content)
        kept.append(token)
    return kept


def strip_comments(root: Stylesheet) -> int:
    """Remove every comment node from the tree; comment tokens become a single space.

    String tokens are left untouched, so comment-like text inside a string
    value survives. Returns the number of comment nodes removed.
    """
    removed = 0
    for visit in walk(root, Comment):
        visit.remove()
        removed += 1

    for visit in walk(root, Rule):
        rule = visit.node
        rule.prelude = _strip_comment_tokens(rule.prelude)
        rule.content = _strip_comment_tokens(rule.content)
    for visit in walk(root, AtRule):
        at_rule = visit.node
        at_rule.prelude = _strip_comment_tokens(at_rule.prelude)
        if at_rule.content is not None:
            at_rule.content = _strip_comment_tokens(at_rule.content)
    return removed


def _compact_token(token: tokens.Node) -> str:
    if isinstance(token, tokens.FunctionBlock):
        return f"{serialize_identifier(token.name)}({_compact(token.arguments, _ARGUMENT_TIGHT)})"
    if isinstance(token, tokens.ParenthesesBlock):
        return f"({_compact(token.content, _ARGUMENT_TIGHT)})"
    if isinstance(token, tokens.SquareBracketsBlock):
        return f"[{_compact(token.content, _ARGUMENT_TIGHT)}]"
    if isinstance(token, tokens.CurlyBracketsBlock):
        return f"{{{_compact_block(token.content)}}}"
    return tinycss2.serialize([token])


def _compact(token_list: Sequence[tokens.Node], tight: Set[str]) -> str:
    pieces: List[str] = []
    pending_space = False
    for token in token_list:
        if _is_blank(token):
            pending_space = True
            continue
        text = _compact_token(token)
        if pending_space and pieces and pieces[-1] not in tight and text not in tight:
            pieces.append(" ")
        pending_space = False
        pieces.append(text)
    return "".join(pieces)


def _compact_block(token_list: Sequence[tokens.Node]) -> str:
    """Compact the body of a ``{}`` block statement by statement.

    ``:`` is tight only inside declarations; a statement ending in a block is
    a nested rule whose prelude keeps selector spacing (``& :hover``).
    """
    pieces: List[str] = []
    statement: List[tokens.Node] = []
    for token in token_list:
        if isinstance(token, tokens.LiteralToken) and token.value == ";":
            pieces.append(_compact(statement, _DECLARATION_TIGHT) + ";")
            statement = []
        elif isinstance(token, tokens.CurlyBracketsBlock):
            pieces.append(_compact(statement, _SELECTOR_TIGHT) + _compact_token(token))
            statement = []
        else:
            statement.append(token)
    pieces.append(_compact(statement, _DECLARATION_TIGHT))
    return "".join(pieces)


def _generate_node(node: Node, minify: bool) -> str:
    if isinstance(node, Whitespace):
        return "" if minify else node.value
    if isinstance(node, Comment):
        return f"/*{node.value}*/"
    if isinstance(node, Rule):
        if minify:
            return f"{_compact(node.prelude, _SELECTOR_TIGHT)}{{{_compact_block(node.content)}}}"
        return f"{tinycss2.serialize(node.prelude)}{{{tinycss2.serialize(node.content)}}}"
    if isinstance(node, AtRule):
        return _generate_at_rule(node, minify)
    return ""


def _generate_at_rule(node: AtRule, minify: bool) -> str:
    keyword = f"@{serialize_identifier(node.at_keyword)}"
    if minify:
        prelude = _compact(node.prelude, _ARGUMENT_TIGHT)
        head = f"{keyword} {prelude}" if prelude else keyword
    else:
        head = f"{keyword}{tinycss2.serialize(node.prelude)}"

    if node.children is not None:
        body = "".join(_generate_node(child, minify) for child in node.children)
    elif node.content is not None:
        body = _compact_block(node.content) if minify else tinycss2.serialize(node.content)
    else:
        return f"{head};"
    return f"{head}{{{body}}}"


def generate(root: Union[Stylesheet, Node], minify: bool = False) -> str:
    """Serialize a tree (or a single node) back to CSS text."""
    if isinstance(root, Stylesheet):
        return "".join(_generate_node(child, minify) for child in root.children)
    return _generate_node(root, minify)


def _collect_class_tokens(token_list: Sequence[tokens.Node], out: List[str]) -> None:
    previous: Optional[tokens.Node] = None
    for token in token_list:
        if (
            isinstance(token, tokens.IdentToken)
            and isinstance(previous, tokens.LiteralToken)
            and previous.value == "."
        ):
            out.append(token.value)
        elif isinstance(token, tokens.FunctionBlock):
            _collect_class_tokens(token.arguments, out)
        elif isinstance(token, tokens.ParenthesesBlock):
            _collect_class_tokens(token.content, out)
        previous = token


def selector_class_names(selector: Sequence[tokens.Node]) -> List[str]:
    """Class names referenced by one selector.

    A class is a ``.`` delimiter directly followed by an identifier; the
    tokenizer has already decoded escapes such as ``sm\\:grid``. Contents of
    attribute selectors are ignored, functional pseudo-classes are searched.
    """
    names: List[str] = []
    _collect_class_tokens(selector, names)
    return names


def has_custom_properties(content: Sequence[tokens.Node]) -> bool:
    """True when a declaration block declares at least one ``--*`` property."""
    at_start = True
    expect_colon = False
    for token in content:
        if _is_blank(token):
            continue
        if expect_colon:
            if isinstance(token, tokens.LiteralToken) and token.value == ":":
                return True
            expect_colon = False
        if isinstance(token, tokens.LiteralToken) and token.value == ";":
            at_start = True
            continue
        if at_start and isinstance(token, tokens.IdentToken) and token.value.startswith("--"):
            expect_colon = True
        at_start = False
    return False
