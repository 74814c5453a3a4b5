"""Extract the root package identifier from one import statement.

Each ecosystem has an ordered list of surface patterns. The first pattern
that matches wins; a statement no pattern matches yields None, which
callers report as a parse failure rather than a resolution miss.
"""

import re
from typing import Callable, Optional

from .models import Ecosystem

Extractor = Callable[[str], Optional[str]]


def _first_match(patterns: list[re.Pattern], statement: str) -> Optional[str]:
    text = statement.strip()
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


# --- JavaScript / TypeScript ---

_JS_PATTERNS = [
    re.compile(r"^\s*import\s+(?:type\s+)?[\w*\s{},$]+?\s+from\s+['\"]([^'\"]+)['\"]", re.DOTALL),
    re.compile(r"^\s*import\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"^\s*export\s+(?:type\s+)?[\w*\s{},$]+?\s+from\s+['\"]([^'\"]+)['\"]", re.DOTALL),
    re.compile(r"\bimport\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"\brequire\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
]


def is_relative_specifier(specifier: str) -> bool:
    return specifier.startswith(("./", "../", "/")) or specifier in (".", "..")


def js_package_root(specifier: str) -> str:
    """Reduce a module specifier to its package name.

    Scoped packages keep both segments; relative specifiers are returned whole.
    """
    if is_relative_specifier(specifier):
        return specifier
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def extract_javascript(statement: str) -> Optional[str]:
    specifier = _first_match(_JS_PATTERNS, statement)
    if not specifier:
        return None
    if specifier.startswith("node:"):
        return specifier
    return js_package_root(specifier)


# --- Python ---

_PY_PATTERNS = [
    re.compile(r"^\s*from\s+(\.+[\w.]*)\s+import\b"),
    re.compile(r"^\s*from\s+([A-Za-z_][\w.]*)\s+import\b"),
    re.compile(r"^\s*import\s+([A-Za-z_][\w.]*)"),
]


def extract_python(statement: str) -> Optional[str]:
    module = _first_match(_PY_PATTERNS, statement)
    if not module:
        return None
    if module.startswith("."):
        return module
    return module.split(".")[0]


# --- Rust ---

_RUST_PATTERNS = [
    re.compile(r"^\s*(?:pub(?:\([^)]*\))?\s+)?use\s+(?:::)?([A-Za-z_]\w*)"),
    re.compile(r"^\s*extern\s+crate\s+([A-Za-z_]\w*)"),
]


def extract_rust(statement: str) -> Optional[str]:
    return _first_match(_RUST_PATTERNS, statement)


# --- Go ---

_GO_PATTERNS = [
    re.compile(r'^\s*import\s+(?:[\w.]+\s+)?"([^"]+)"'),
    re.compile(r'^\s*import\s*\(\s*(?:[\w.]+\s+)?"([^"]+)"'),
    re.compile(r'^\s*(?:[\w.]+\s+)?"([^"]+)"\s*$'),
]


def extract_go(statement: str) -> Optional[str]:
    return _first_match(_GO_PATTERNS, statement)


# --- Java ---

_JAVA_STATIC = re.compile(r"^\s*import\s+static\s+([\w.]+?)(\.\*)?\s*;?\s*$")
_JAVA_PLAIN = re.compile(r"^\s*import\s+([\w.]+?)(\.\*)?\s*;?\s*$")


def extract_java(statement: str) -> Optional[str]:
    """Package of the imported type.

    ``import a.b.C;`` and ``import a.b.*;`` give ``a.b``;
    ``import static a.b.C.m;`` and ``import static a.b.C.*;`` also give ``a.b``.
    """
    text = statement.strip()
    m = _JAVA_STATIC.match(text)
    if m:
        path, wildcard = m.group(1), m.group(2)
        drop = 1 if wildcard else 2
    else:
        m = _JAVA_PLAIN.match(text)
        if not m:
            return None
        path, wildcard = m.group(1), m.group(2)
        drop = 0 if wildcard else 1
    parts = path.split(".")
    if len(parts) <= drop:
        return None
    return ".".join(parts[: len(parts) - drop]) if drop else path


EXTRACTORS: dict[Ecosystem, Extractor] = {
    Ecosystem.JAVASCRIPT: extract_javascript,
    Ecosystem.PYTHON: extract_python,
    Ecosystem.RUST: extract_rust,
    Ecosystem.GO: extract_go,
    Ecosystem.JAVA: extract_java,
}


def extract_root_identifier(ecosystem: Ecosystem, statement: str) -> Optional[str]:
    return EXTRACTORS[ecosystem](statement)
