"""Go package introspection with tree-sitter-go.

A Go package is a directory; every non-test ``.go`` file in it
contributes to its exported surface.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from tree_sitter import Node

from ..models import ExportDescriptor, ExportKind, Parameter
from . import SKIP_DIRS, dedupe, dedupe_exports
from .treesitter import GO, children_of_type, field_text, parse, string_value, text, walk

log = logging.getLogger(__name__)


@dataclass
class PackageSurface:
    exports: list[ExportDescriptor] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    package_name: Optional[str] = None


def is_exported(name: str) -> bool:
    last = name.rsplit(".", 1)[-1]
    return bool(last) and last[0].isupper()


def is_private(name: str) -> bool:
    return not is_exported(name)


# --- Location ---


def module_cache_dir() -> Path:
    cache = os.environ.get("GOMODCACHE")
    if cache:
        return Path(cache)
    gopath = os.environ.get("GOPATH")
    if gopath:
        return Path(gopath.split(os.pathsep)[0]) / "pkg" / "mod"
    return Path.home() / "go" / "pkg" / "mod"


def escape_module_path(path: str) -> str:
    """Module cache case-encoding: uppercase letters become '!' + lowercase."""
    return "".join(f"!{c.lower()}" if c.isupper() else c for c in path)


def owning_module(import_path: str, declared: dict[str, str]) -> Optional[str]:
    """Longest declared module path that is a prefix of ``import_path``."""
    best = None
    for module in declared:
        if import_path == module or import_path.startswith(module + "/"):
            if best is None or len(module) > len(best):
                best = module
    return best


def package_dir(
    import_path: str,
    project_root: Optional[Path],
    own_module: Optional[str],
    declared: dict[str, str],
) -> Optional[Path]:
    """Directory of a Go package: own module, vendor/, then the module cache."""
    if project_root is not None and own_module and (
        import_path == own_module or import_path.startswith(own_module + "/")
    ):
        candidate = project_root / import_path[len(own_module):].lstrip("/")
        if candidate.is_dir():
            return candidate
    if project_root is not None:
        vendored = project_root / "vendor" / import_path
        if vendored.is_dir():
            return vendored
    module = owning_module(import_path, declared)
    if module is None:
        return None
    version = declared[module]
    cached = module_cache_dir() / f"{escape_module_path(module)}@{version}"
    candidate = cached / import_path[len(module):].lstrip("/")
    return candidate if candidate.is_dir() else None


def go_files(directory: Path) -> list[Path]:
    try:
        return sorted(
            p for p in directory.iterdir()
            if p.suffix == ".go" and not p.name.endswith("_test.go") and p.is_file()
        )
    except OSError:
        return []


def list_subpackages(directory: Path, max_depth: int, limit: int = 10) -> list[str]:
    """Relative paths of nested directories that hold Go sources."""
    found: list[str] = []

    def visit(current: Path, depth: int) -> None:
        if depth > max_depth or len(found) >= limit:
            return
        try:
            children = sorted(c for c in current.iterdir() if c.is_dir())
        except OSError:
            return
        for child in children:
            if child.name in SKIP_DIRS or child.name.startswith((".", "_")) or child.name == "internal":
                continue
            if len(found) >= limit:
                return
            if go_files(child):
                found.append(child.relative_to(directory).as_posix())
            visit(child, depth + 1)

    visit(directory, 1)
    return found


# --- Parsing ---


def _parameter_list(node: Optional[Node]) -> list[Parameter]:
    if node is None:
        return []
    params: list[Parameter] = []
    for decl in node.named_children:
        if decl.type not in ("parameter_declaration", "variadic_parameter_declaration"):
            continue
        type_text = field_text(decl, "type") or "any"
        variadic = decl.type == "variadic_parameter_declaration"
        if variadic:
            type_text = f"...{type_text}"
        names = [n for n in decl.children_by_field_name("name") if n.type == "identifier"]
        if not names:
            params.append(Parameter(name="_", type=type_text, optional=variadic))
        for name in names:
            params.append(Parameter(name=text(name), type=type_text, optional=variadic))
    return params


def _result_type(node: Node) -> Optional[str]:
    result = node.child_by_field_name("result")
    if result is None:
        return None
    return text(result) or None


def _function(node: Node, name: str, receiver: str = "") -> ExportDescriptor:
    params_node = node.child_by_field_name("parameters")
    params = _parameter_list(params_node)
    result = _result_type(node)
    signature = f"func {receiver + ' ' if receiver else ''}{field_text(node, 'name')}{text(params_node)}"
    if result:
        signature += f" {result}"
    return ExportDescriptor(
        name=name,
        kind=ExportKind.FUNCTION,
        signature=signature,
        parameters=params,
        return_type=result,
    )


def _receiver_type(node: Node) -> str:
    receiver = node.child_by_field_name("receiver")
    for decl in children_of_type(receiver, "parameter_declaration") if receiver is not None else []:
        type_name = field_text(decl, "type").lstrip("*")
        return type_name.split("[", 1)[0]
    return ""


def _type_specs(node: Node) -> list[ExportDescriptor]:
    exports: list[ExportDescriptor] = []
    for spec in children_of_type(node, "type_spec", "type_alias"):
        name = field_text(spec, "name")
        type_node = spec.child_by_field_name("type")
        type_kind = type_node.type if type_node is not None else ""
        if type_kind == "interface_type":
            kind = ExportKind.INTERFACE
            signature = f"type {name} interface"
        elif type_kind == "struct_type":
            kind = ExportKind.CLASS
            signature = f"type {name} struct"
        else:
            kind = ExportKind.TYPE
            joiner = " = " if spec.type == "type_alias" else " "
            signature = f"type {name}{joiner}{text(type_node)}"
        exports.append(ExportDescriptor(name=name, kind=kind, signature=signature))
    return exports


def _value_specs(node: Node, keyword: str) -> list[ExportDescriptor]:
    exports: list[ExportDescriptor] = []
    spec_type = "const_spec" if keyword == "const" else "var_spec"
    for spec in walk(node):
        if spec.type != spec_type:
            continue
        type_text = field_text(spec, "type")
        for name_node in spec.children_by_field_name("name"):
            if name_node.type != "identifier":
                continue
            name = text(name_node)
            signature = f"{keyword} {name}" + (f" {type_text}" if type_text else "")
            exports.append(ExportDescriptor(name=name, kind=ExportKind.CONSTANT, signature=signature))
    return exports


def parse_source(source: bytes) -> PackageSurface:
    tree = parse(GO, source)
    if tree is None:
        return PackageSurface()
    root = tree.root_node
    surface = PackageSurface()
    for node in root.named_children:
        match node.type:
            case "package_clause":
                for child in node.named_children:
                    surface.package_name = text(child)
            case "function_declaration":
                surface.exports.append(_function(node, field_text(node, "name")))
            case "method_declaration":
                receiver = node.child_by_field_name("receiver")
                recv_type = _receiver_type(node)
                name = f"{recv_type}.{field_text(node, 'name')}" if recv_type else field_text(node, "name")
                surface.exports.append(_function(node, name, text(receiver)))
            case "type_declaration":
                surface.exports.extend(_type_specs(node))
            case "const_declaration":
                surface.exports.extend(_value_specs(node, "const"))
            case "var_declaration":
                surface.exports.extend(_value_specs(node, "var"))
            case "import_declaration":
                for spec in walk(node):
                    if spec.type == "import_spec":
                        surface.dependencies.append(string_value(spec.child_by_field_name("path")))
    return surface


def parse_package(directory: Path) -> PackageSurface:
    combined = PackageSurface()
    for path in go_files(directory):
        try:
            source = path.read_bytes()
        except OSError as e:
            log.debug("Cannot read %s: %s", path, e)
            continue
        surface = parse_source(source)
        if surface.package_name == "main":
            continue
        combined.package_name = combined.package_name or surface.package_name
        combined.exports.extend(surface.exports)
        combined.dependencies.extend(surface.dependencies)
    combined.exports = dedupe_exports(combined.exports)
    combined.dependencies = dedupe(combined.dependencies)
    return combined
