"""JavaScript / TypeScript export introspection.

Three tiers, first non-empty result wins:

1. tree-sitter parse of the package entry file (or its declaration file)
2. a ``node`` script that loads the module and reports each binding's shape
3. the keys of the package.json ``exports`` map
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from tree_sitter import Node

from ..models import ExportDescriptor, ExportKind, Parameter
from ..shell import run_command
from ..statements import js_package_root, is_relative_specifier
from . import dedupe, dedupe_exports, first_existing
from .runtime import classify_shape
from .treesitter import (
    children_of_type,
    field_text,
    grammar_for_suffix,
    parse,
    string_value,
    text,
    walk,
)

log = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".js", ".mjs", ".cjs", ".ts", ".mts", ".cts", ".jsx", ".tsx")
_RESOLVE_SUFFIXES = ("", ".js", ".mjs", ".cjs", ".ts", ".d.ts", "/index.js", "/index.ts", "/index.d.ts")


@dataclass
class SourceSurface:
    exports: list[ExportDescriptor] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


# --- Package layout ---


def read_package_json(package_dir: Path) -> dict:
    try:
        data = json.loads((package_dir / "package.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def find_installed_package(name: str, start: Path) -> Optional[Path]:
    """Nearest node_modules/<name> directory walking up from ``start``."""
    current = start.resolve()
    while True:
        candidate = current / "node_modules" / name
        if (candidate / "package.json").is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def _resolve_file(base: Path, relative: str) -> Optional[Path]:
    target = (base / relative).resolve() if relative else base
    for suffix in _RESOLVE_SUFFIXES:
        candidate = Path(str(target) + suffix)
        if candidate.is_file():
            return candidate
    return None


def _export_target(value) -> Optional[str]:
    """Pick a file from a conditional exports entry."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("import", "require", "node", "default"):
            if key in value:
                found = _export_target(value[key])
                if found:
                    return found
    if isinstance(value, list):
        for item in value:
            found = _export_target(item)
            if found:
                return found
    return None


def entry_point(package_dir: Path, manifest: Optional[dict] = None) -> Optional[Path]:
    manifest = manifest if manifest is not None else read_package_json(package_dir)
    candidates: list[str] = []
    exports = manifest.get("exports")
    if isinstance(exports, dict) and "." in exports:
        exports = exports["."]
    target = _export_target(exports)
    if target:
        candidates.append(target)
    for key in ("module", "main"):
        value = manifest.get(key)
        if isinstance(value, str):
            candidates.append(value)
    candidates.append("index")
    for candidate in candidates:
        found = _resolve_file(package_dir, candidate)
        if found:
            return found
    return None


def types_entry(package_dir: Path, manifest: Optional[dict] = None) -> Optional[Path]:
    manifest = manifest if manifest is not None else read_package_json(package_dir)
    for key in ("types", "typings"):
        value = manifest.get(key)
        if isinstance(value, str):
            found = _resolve_file(package_dir, value)
            if found:
                return found
    return first_existing(package_dir / "index.d.ts")


# --- Tier 1: structural ---


def _clean_type(annotation: str) -> str:
    return annotation.lstrip(":").strip() or "any"


def _parameters(params: Optional[Node]) -> list[Parameter]:
    if params is None:
        return []
    result: list[Parameter] = []
    for child in params.named_children:
        match child.type:
            case "identifier":
                result.append(Parameter(name=text(child)))
            case "assignment_pattern":
                result.append(Parameter(name=field_text(child, "left"), optional=True))
            case "rest_pattern":
                result.append(Parameter(name=text(child), type="any[]", optional=True))
            case "object_pattern" | "array_pattern":
                result.append(Parameter(name=text(child), type="object"))
            case "required_parameter" | "optional_parameter":
                pattern = child.child_by_field_name("pattern")
                name = text(pattern)
                type_node = child.child_by_field_name("type")
                optional = (
                    child.type == "optional_parameter"
                    or child.child_by_field_name("value") is not None
                    or (pattern is not None and pattern.type == "rest_pattern")
                )
                result.append(Parameter(
                    name=name,
                    type=_clean_type(text(type_node)) if type_node else "any",
                    optional=optional,
                ))
    return result


def _signature(name: str, params: list[Parameter], return_type: Optional[str], prefix: str = "function") -> str:
    rendered = ", ".join(
        f"{p.name}{'?' if p.optional and not p.name.startswith('...') else ''}"
        + (f": {p.type}" if p.type != "any" else "")
        for p in params
    )
    sig = f"{prefix} {name}({rendered})"
    return f"{sig}: {return_type}" if return_type else sig


def _function_export(name: str, node: Node) -> ExportDescriptor:
    params_node = node.child_by_field_name("parameters")
    if params_node is None:
        single = node.child_by_field_name("parameter")
        params = [Parameter(name=text(single))] if single is not None else []
    else:
        params = _parameters(params_node)
    return_node = node.child_by_field_name("return_type")
    return_type = _clean_type(text(return_node)) if return_node is not None else None
    is_async = any(c.type == "async" for c in node.children)
    return ExportDescriptor(
        name=name,
        kind=ExportKind.FUNCTION,
        signature=_signature(name, params, return_type, "async function" if is_async else "function"),
        parameters=params,
        return_type=return_type,
    )


def _declaration_exports(decl: Node, default: bool = False) -> list[ExportDescriptor]:
    if decl.type == "ambient_declaration":
        inner = decl.named_children
        return [e for d in inner for e in _declaration_exports(d, default)]

    declared_name = field_text(decl, "name")
    name = "default" if default else declared_name
    match decl.type:
        case (
            "function_declaration" | "generator_function_declaration" | "function_signature"
            | "function_expression" | "function" | "arrow_function" | "generator_function"
        ):
            return [_function_export(name or "default", decl)]
        case "class_declaration" | "abstract_class_declaration" | "class":
            return [ExportDescriptor(
                name=name or "default",
                kind=ExportKind.CLASS,
                signature=f"class {declared_name or name}".strip(),
            )]
        case "interface_declaration":
            return [ExportDescriptor(name=name, kind=ExportKind.INTERFACE, signature=f"interface {declared_name}")]
        case "type_alias_declaration":
            return [ExportDescriptor(
                name=name,
                kind=ExportKind.TYPE,
                signature=f"type {declared_name} = {field_text(decl, 'value')}".strip(),
            )]
        case "enum_declaration":
            return [ExportDescriptor(name=name, kind=ExportKind.TYPE, signature=f"enum {declared_name}")]
        case "internal_module" | "module":
            return [ExportDescriptor(name=name, kind=ExportKind.NAMESPACE, signature=f"namespace {declared_name}")]
        case "lexical_declaration" | "variable_declaration":
            keyword = decl.children[0].type if decl.children else "const"
            exports = []
            for declarator in children_of_type(decl, "variable_declarator"):
                exports.extend(_declarator_exports(declarator, keyword))
            return exports
    return []


def _declarator_exports(declarator: Node, keyword: str) -> list[ExportDescriptor]:
    name_node = declarator.child_by_field_name("name")
    if name_node is None or name_node.type != "identifier":
        return []
    name = text(name_node)
    value = declarator.child_by_field_name("value")
    if value is not None and value.type in ("arrow_function", "function_expression", "function", "generator_function"):
        return [_function_export(name, value)]
    if value is not None and value.type == "class":
        return [ExportDescriptor(name=name, kind=ExportKind.CLASS, signature=f"class {name}")]
    type_node = declarator.child_by_field_name("type")
    signature = f"{keyword} {name}"
    if type_node is not None:
        signature += f": {_clean_type(text(type_node))}"
    return [ExportDescriptor(name=name, kind=ExportKind.CONSTANT, signature=signature)]


def _local_declarations(root: Node) -> dict[str, list[ExportDescriptor]]:
    """Top-level declarations by name, for resolving ``export { a }`` clauses."""
    local: dict[str, list[ExportDescriptor]] = {}
    for child in root.named_children:
        for export in _declaration_exports(child):
            local.setdefault(export.name, []).append(export)
    return local


def _rename(export: ExportDescriptor, name: str) -> ExportDescriptor:
    return export.model_copy(update={"name": name})


def _export_statement(stmt: Node, local: dict[str, list[ExportDescriptor]]) -> list[ExportDescriptor]:
    is_default = any(c.type == "default" for c in stmt.children)
    decl = stmt.child_by_field_name("declaration")
    if decl is not None:
        return _declaration_exports(decl, default=is_default)

    value = stmt.child_by_field_name("value")
    if is_default:
        if value is not None:
            exports = _declaration_exports(value, default=True)
            if exports:
                return exports
            if value.type == "identifier" and text(value) in local:
                return [_rename(e, "default") for e in local[text(value)][:1]]
        return [ExportDescriptor(name="default", kind=ExportKind.CONSTANT, signature="export default")]

    source = stmt.child_by_field_name("source")
    results: list[ExportDescriptor] = []
    for clause in children_of_type(stmt, "export_clause"):
        for spec in children_of_type(clause, "export_specifier"):
            original = field_text(spec, "name")
            alias = field_text(spec, "alias") or original
            if source is None and original in local:
                results.extend(_rename(e, alias) for e in local[original][:1])
            else:
                results.append(ExportDescriptor(name=alias, kind=ExportKind.CONSTANT, signature=f"export {alias}"))
    for ns in children_of_type(stmt, "namespace_export"):
        alias = text(ns).replace("*", "").replace("as", "", 1).strip()
        if alias:
            results.append(ExportDescriptor(name=alias, kind=ExportKind.NAMESPACE, signature=f"export * as {alias}"))
    return results


def _is_member(node: Node, obj: str, prop: Optional[str] = None) -> bool:
    if node.type != "member_expression":
        return False
    if text(node.child_by_field_name("object")) != obj:
        return False
    return prop is None or text(node.child_by_field_name("property")) == prop


def _commonjs_exports(root: Node, local: dict[str, list[ExportDescriptor]]) -> list[ExportDescriptor]:
    results: list[ExportDescriptor] = []
    for stmt in children_of_type(root, "expression_statement"):
        expr = stmt.named_children[0] if stmt.named_children else None
        if expr is None or expr.type != "assignment_expression":
            continue
        left = expr.child_by_field_name("left")
        right = expr.child_by_field_name("right")
        if left is None or right is None:
            continue
        if _is_member(left, "module", "exports"):
            if right.type == "object":
                for prop in right.named_children:
                    if prop.type == "shorthand_property_identifier":
                        name = text(prop)
                        results.extend(local.get(name, [ExportDescriptor(name=name, kind=ExportKind.CONSTANT)])[:1])
                    elif prop.type == "pair":
                        name = field_text(prop, "key").strip("'\"")
                        value = prop.child_by_field_name("value")
                        found = _declaration_exports(value) if value is not None else []
                        results.append(_rename(found[0], name) if found else ExportDescriptor(name=name, kind=ExportKind.CONSTANT))
                    elif prop.type == "method_definition":
                        results.append(_function_export(field_text(prop, "name"), prop))
            else:
                found = _declaration_exports(right, default=True)
                if not found and right.type == "identifier" and text(right) in local:
                    found = [_rename(e, "default") for e in local[text(right)][:1]]
                results.extend(found or [ExportDescriptor(name="default", kind=ExportKind.CONSTANT)])
        elif _is_member(left, "exports") or (
            left.type == "member_expression" and _is_member(left.child_by_field_name("object"), "module", "exports")
        ):
            name = field_text(left, "property")
            found = _declaration_exports(right)
            results.append(_rename(found[0], name) if found else ExportDescriptor(name=name, kind=ExportKind.CONSTANT))
    return results


def _import_targets(root: Node) -> list[str]:
    targets: list[str] = []
    for node in walk(root):
        if node.type in ("import_statement", "export_statement"):
            source = node.child_by_field_name("source")
            if source is not None:
                targets.append(string_value(source))
        elif node.type == "call_expression":
            fn = node.child_by_field_name("function")
            args = node.child_by_field_name("arguments")
            if fn is None or args is None:
                continue
            if fn.type == "import" or (fn.type == "identifier" and text(fn) == "require"):
                strings = children_of_type(args, "string")
                if strings:
                    targets.append(string_value(strings[0]))
    return dedupe(
        js_package_root(t) for t in targets
        if t and not is_relative_specifier(t)
    )


def parse_source(source: bytes, suffix: str = ".js") -> SourceSurface:
    """Extract exports and import targets from one JS/TS source file."""
    tree = parse(grammar_for_suffix(suffix), source)
    if tree is None:
        return SourceSurface()
    root = tree.root_node
    local = _local_declarations(root)
    exports: list[ExportDescriptor] = []
    for stmt in children_of_type(root, "export_statement"):
        exports.extend(_export_statement(stmt, local))
    exports.extend(_commonjs_exports(root, local))
    return SourceSurface(exports=dedupe_exports(exports), dependencies=_import_targets(root))


def _suffix_of(path: Path) -> str:
    return ".d.ts" if path.name.endswith(".d.ts") else path.suffix


def structural_surface(entry: Optional[Path], types_file: Optional[Path] = None) -> SourceSurface:
    surface = SourceSurface()
    for path in (entry, types_file):
        if path is None or not path.is_file():
            continue
        try:
            source = path.read_bytes()
        except OSError as e:
            log.debug("Cannot read %s: %s", path, e)
            continue
        found = parse_source(source, _suffix_of(path))
        surface.dependencies = dedupe(surface.dependencies + found.dependencies)
        if found.exports and not surface.exports:
            surface.exports = found.exports
    return surface


# --- Tier 2: load in node ---

_NODE_SHAPES = r"""
const target = process.argv[1];
const { pathToFileURL } = require('url');
const shape = (v) => {
  if (typeof v === 'function') {
    return /^class[\s{]/.test(Function.prototype.toString.call(v)) ? 'class' : 'function';
  }
  if (v !== null && typeof v === 'object') {
    const proto = Object.getPrototypeOf(v);
    return proto === Object.prototype || proto === null ? 'object' : 'other';
  }
  return 'other';
};
const url = target.startsWith('/') || /^[A-Za-z]:\\/.test(target) ? pathToFileURL(target).href : target;
import(url).then((m) => {
  const out = {};
  for (const key of Object.keys(m)) out[key] = shape(m[key]);
  process.stdout.write(JSON.stringify(out));
}).catch((e) => { process.stderr.write(String(e)); process.exit(1); });
"""


async def runtime_exports(target: str, cwd: Optional[Path], timeout: float) -> list[ExportDescriptor]:
    output = await run_command(["node", "-e", _NODE_SHAPES, target], cwd=cwd, timeout=timeout)
    if not output:
        return []
    try:
        shapes = json.loads(output)
    except ValueError:
        log.debug("Unexpected node shape output for %s", target)
        return []
    if not isinstance(shapes, dict):
        return []
    return [
        ExportDescriptor(name=name, kind=classify_shape(tag), signature=name)
        for name, tag in shapes.items()
    ]


async def resolve_with_node(name: str, cwd: Path, timeout: float) -> Optional[Path]:
    output = await run_command(
        ["node", "-e", "process.stdout.write(require.resolve(process.argv[1]))", name],
        cwd=cwd,
        timeout=timeout,
    )
    if not output:
        return None
    path = Path(output.strip())
    return path if path.is_file() else None


# --- Tier 3: package.json exports map ---


def manifest_exports(manifest: dict) -> list[ExportDescriptor]:
    exports = manifest.get("exports")
    if not isinstance(exports, dict):
        return []
    keys = [k for k in exports if k.startswith(".")]
    return [
        ExportDescriptor(
            name="default" if key == "." else key.removeprefix("./"),
            kind=ExportKind.NAMESPACE,
            signature=key,
        )
        for key in keys
    ]
