"""Shared tree-sitter parsers and node helpers."""

import logging
from functools import lru_cache
from typing import Iterator, Optional

from tree_sitter import Language, Node, Parser, Tree

log = logging.getLogger(__name__)

JAVASCRIPT = "javascript"
TYPESCRIPT = "typescript"
TSX = "tsx"
GO = "go"
RUST = "rust"


def _language(name: str) -> Language:
    match name:
        case "javascript":
            import tree_sitter_javascript as tsjs
            return Language(tsjs.language())
        case "typescript":
            import tree_sitter_typescript as tsts
            return Language(tsts.language_typescript())
        case "tsx":
            import tree_sitter_typescript as tsts
            return Language(tsts.language_tsx())
        case "go":
            import tree_sitter_go as tsgo
            return Language(tsgo.language())
        case "rust":
            import tree_sitter_rust as tsrust
            return Language(tsrust.language())
    raise ValueError(f"No tree-sitter grammar for {name!r}")


@lru_cache(maxsize=None)
def get_parser(name: str) -> Parser:
    return Parser(_language(name))


def grammar_for_suffix(suffix: str) -> str:
    """Grammar name for a JavaScript-family file suffix."""
    if suffix in (".ts", ".mts", ".cts") or suffix.endswith(".d.ts"):
        return TYPESCRIPT
    if suffix == ".tsx":
        return TSX
    return JAVASCRIPT


def parse(grammar: str, source: bytes) -> Optional[Tree]:
    try:
        return get_parser(grammar).parse(source)
    except Exception as e:
        log.debug("tree-sitter %s parse failed: %s", grammar, e)
        return None


def text(node: Optional[Node]) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def field_text(node: Node, field: str) -> str:
    return text(node.child_by_field_name(field))


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal of every node below ``node``."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def children_of_type(node: Node, *types: str) -> list[Node]:
    return [c for c in node.named_children if c.type in types]


def string_value(node: Optional[Node]) -> str:
    """Content of a string literal node, quotes stripped."""
    raw = text(node)
    if len(raw) >= 2 and raw[0] in "'\"`" and raw[-1] == raw[0]:
        return raw[1:-1]
    return raw
