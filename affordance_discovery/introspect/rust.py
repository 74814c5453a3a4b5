"""Rust crate introspection with tree-sitter-rust.

Only the crate root (``src/lib.rs``) is parsed; its ``pub`` items form the
public surface.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from tree_sitter import Node

from ..manifests import _load_toml
from ..models import ExportDescriptor, ExportKind, Parameter
from . import dedupe, dedupe_exports
from .treesitter import RUST, field_text, parse, text, walk

log = logging.getLogger(__name__)

_LOCAL_ROOTS = {"crate", "self", "super", "std", "core", "alloc"}


@dataclass
class CrateSurface:
    exports: list[ExportDescriptor] = field(default_factory=list)
    private_names: set[str] = field(default_factory=set)
    dependencies: list[str] = field(default_factory=list)


def crate_ident(name: str) -> str:
    """Cargo package names use '-', code uses '_'."""
    return name.replace("-", "_")


# --- Location ---


def cargo_home() -> Path:
    home = os.environ.get("CARGO_HOME")
    return Path(home) if home else Path.home() / ".cargo"


def read_lockfile(project_root: Path) -> dict[str, str]:
    """Package name -> locked version from Cargo.lock (best effort)."""
    lock = project_root / "Cargo.lock"
    if not lock.is_file():
        return {}
    try:
        data = _load_toml(lock)
    except Exception as e:
        log.debug("Cannot parse %s: %s", lock, e)
        return {}
    locked: dict[str, str] = {}
    for package in data.get("package", []):
        name, version = package.get("name"), package.get("version")
        if name and version:
            locked[name] = version
    return locked


def registry_crate_dir(name: str, version: Optional[str]) -> Optional[Path]:
    """Unpacked crate sources under ~/.cargo/registry/src."""
    src = cargo_home() / "registry" / "src"
    if not src.is_dir():
        return None
    candidates: list[Path] = []
    for index_dir in sorted(src.iterdir()):
        if version:
            exact = index_dir / f"{name}-{version}"
            if exact.is_dir():
                return exact
        candidates.extend(
            p for p in index_dir.glob(f"{name}-*")
            if p.is_dir() and p.name[len(name) + 1:][:1].isdigit()
        )
    return sorted(candidates)[-1] if candidates else None


def crate_root_file(crate_dir: Path) -> Optional[Path]:
    manifest = crate_dir / "Cargo.toml"
    if manifest.is_file():
        try:
            lib_path = _load_toml(manifest).get("lib", {}).get("path")
        except Exception:
            lib_path = None
        if lib_path and (crate_dir / lib_path).is_file():
            return crate_dir / lib_path
    for candidate in (crate_dir / "src" / "lib.rs", crate_dir / "lib.rs", crate_dir / "src" / "main.rs"):
        if candidate.is_file():
            return candidate
    return None


def crate_dependencies(crate_dir: Path) -> list[str]:
    manifest = crate_dir / "Cargo.toml"
    if not manifest.is_file():
        return []
    try:
        data = _load_toml(manifest)
    except Exception as e:
        log.debug("Cannot parse %s: %s", manifest, e)
        return []
    return list((data.get("dependencies") or {}).keys())


# --- Parsing ---


def _is_pub(node: Node) -> bool:
    return any(c.type == "visibility_modifier" for c in node.children)


def _parameters(node: Optional[Node]) -> list[Parameter]:
    if node is None:
        return []
    params: list[Parameter] = []
    for child in node.named_children:
        if child.type == "self_parameter":
            params.append(Parameter(name="self", type=text(child)))
        elif child.type == "parameter":
            params.append(Parameter(
                name=field_text(child, "pattern"),
                type=field_text(child, "type") or "any",
            ))
    return params


def _function(node: Node) -> ExportDescriptor:
    name = field_text(node, "name")
    params_node = node.child_by_field_name("parameters")
    return_type = field_text(node, "return_type") or None
    generics = field_text(node, "type_parameters")
    signature = f"fn {name}{generics}{text(params_node)}"
    if return_type:
        signature += f" -> {return_type}"
    return ExportDescriptor(
        name=name,
        kind=ExportKind.FUNCTION,
        signature=signature,
        parameters=_parameters(params_node),
        return_type=return_type,
    )


def _item(node: Node) -> Optional[ExportDescriptor]:
    name = field_text(node, "name")
    match node.type:
        case "function_item" | "function_signature_item":
            return _function(node)
        case "struct_item" | "union_item":
            return ExportDescriptor(name=name, kind=ExportKind.CLASS, signature=f"struct {name}")
        case "enum_item":
            return ExportDescriptor(name=name, kind=ExportKind.CLASS, signature=f"enum {name}")
        case "trait_item":
            return ExportDescriptor(name=name, kind=ExportKind.INTERFACE, signature=f"trait {name}")
        case "type_item":
            return ExportDescriptor(
                name=name,
                kind=ExportKind.TYPE,
                signature=f"type {name} = {field_text(node, 'type')}",
            )
        case "const_item" | "static_item":
            keyword = "const" if node.type == "const_item" else "static"
            return ExportDescriptor(
                name=name,
                kind=ExportKind.CONSTANT,
                signature=f"{keyword} {name}: {field_text(node, 'type')}",
            )
        case "mod_item":
            return ExportDescriptor(name=name, kind=ExportKind.NAMESPACE, signature=f"mod {name}")
    return None


def _use_roots(root: Node) -> list[str]:
    roots: list[str] = []
    for node in walk(root):
        if node.type == "use_declaration":
            argument = text(node.child_by_field_name("argument")).lstrip(":")
            first = argument.split("::", 1)[0].strip("{} ")
            if first and first not in _LOCAL_ROOTS:
                roots.append(first)
        elif node.type == "extern_crate_declaration":
            name = field_text(node, "name")
            if name:
                roots.append(name)
    return dedupe(roots)


def parse_source(source: bytes) -> CrateSurface:
    tree = parse(RUST, source)
    if tree is None:
        return CrateSurface()
    root = tree.root_node
    surface = CrateSurface(dependencies=_use_roots(root))
    for node in root.named_children:
        export = _item(node)
        if export is None or not export.name:
            continue
        surface.exports.append(export)
        if not _is_pub(node):
            surface.private_names.add(export.name)
    surface.exports = dedupe_exports(surface.exports)
    return surface


def parse_file(path: Path) -> CrateSurface:
    try:
        return parse_source(path.read_bytes())
    except OSError as e:
        log.debug("Cannot read %s: %s", path, e)
        return CrateSurface()
