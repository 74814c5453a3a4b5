from pathlib import Path
from typing import Callable, Iterable, Optional

from ..models import ExportDescriptor, ExportKind

MAX_SUBMODULES = 10

SKIP_DIRS = {
    "node_modules", "__pycache__", ".git", "test", "tests", "__tests__",
    "testdata", "examples", "example", "benches", "target", ".venv",
}


def list_submodules(
    root: Path,
    suffixes: tuple[str, ...],
    exclude: Iterable[Path] = (),
    max_depth: int = 1,
    limit: int = MAX_SUBMODULES,
    entry_stems: tuple[str, ...] = ("index",),
) -> list[str]:
    """
    List source files next to a module's entry point.

    Args:
        root: Directory holding the module's entry point.
        suffixes: Source file suffixes to consider.
        exclude: Files to leave out (the entry point itself).
        max_depth: Directory levels to descend; 1 lists ``root`` only.
        limit: Maximum number of names returned.
        entry_stems: File stems that mark entry points, skipped everywhere.

    Returns:
        Relative module paths without suffix, in sorted walk order.
    """
    excluded = {p.resolve() for p in exclude}
    found: list[str] = []

    def visit(directory: Path, depth: int) -> None:
        try:
            children = sorted(directory.iterdir())
        except OSError:
            return
        for child in children:
            if len(found) >= limit:
                return
            if child.is_file():
                if not child.name.endswith(suffixes) or child.resolve() in excluded:
                    continue
                stem = _strip_suffix(child.name, suffixes)
                if stem in entry_stems or stem.endswith((".test", ".spec", "_test")):
                    continue
                rel = child.parent.relative_to(root) / stem
                found.append(rel.as_posix())
        if depth < max_depth:
            for child in children:
                if len(found) >= limit:
                    return
                if child.is_dir() and child.name not in SKIP_DIRS and not child.name.startswith("."):
                    visit(child, depth + 1)

    if root.is_dir():
        visit(root, 1)
    return found[:limit]


def _strip_suffix(name: str, suffixes: tuple[str, ...]) -> str:
    for suffix in sorted(suffixes, key=len, reverse=True):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def first_existing(*candidates: Optional[Path]) -> Optional[Path]:
    for candidate in candidates:
        if candidate is not None and candidate.is_file():
            return candidate
    return None


def dedupe_exports(exports: Iterable[ExportDescriptor]) -> list[ExportDescriptor]:
    """Keep the first descriptor per name."""
    seen: set[str] = set()
    result: list[ExportDescriptor] = []
    for export in exports:
        if export.name not in seen:
            seen.add(export.name)
            result.append(export)
    return result


def filter_private(
    exports: Iterable[ExportDescriptor],
    is_private: Callable[[str], bool],
    include_private: bool,
) -> list[ExportDescriptor]:
    if include_private:
        return list(exports)
    return [e for e in exports if not is_private(e.name)]


def underscore_private(name: str) -> bool:
    return name.startswith("_")


def stdlib_export(name: str, description: str) -> ExportDescriptor:
    return ExportDescriptor(
        name=name,
        kind=ExportKind.NAMESPACE,
        signature=name,
        description=description,
    )


def dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(i for i in items if i))
