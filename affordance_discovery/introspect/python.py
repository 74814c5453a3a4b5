"""Python export introspection.

Tier 1 parses the module source with ``ast``; tier 2 executes the resolved
file in the project's interpreter and reports the shape of its members.
"""

import ast
import importlib.metadata
import importlib.util
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from ..models import ExportDescriptor, ExportKind, Parameter
from ..shell import run_command
from . import dedupe, dedupe_exports
from .runtime import classify_shape

log = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".py",)
_INTERFACE_BASES = {"Protocol", "TypedDict", "ABC"}
_MAX_VALUE_LEN = 60


@dataclass
class SourceSurface:
    exports: list[ExportDescriptor] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


# --- Location ---


def site_packages_dirs(project_root: Path) -> list[Path]:
    """site-packages of a project-local virtualenv (.venv or venv)."""
    found: list[Path] = []
    for venv in (".venv", "venv"):
        base = project_root / venv
        if not base.is_dir():
            continue
        found.extend(sorted(base.glob("lib/python3*/site-packages")))
        windows = base / "Lib" / "site-packages"
        if windows.is_dir():
            found.append(windows)
    return found


def find_module_file(name: str, search_dirs: Iterable[Path]) -> Optional[Path]:
    """Locate ``name`` (dotted) as a package ``__init__.py`` or a ``.py`` file."""
    parts = name.split(".")
    for base in search_dirs:
        target = base.joinpath(*parts)
        init = target / "__init__.py"
        if init.is_file():
            return init
        module = target.with_suffix(".py")
        if module.is_file():
            return module
        stub = target.with_suffix(".pyi")
        if stub.is_file():
            return stub
    return None


def find_spec_file(name: str) -> Optional[Path]:
    """Resolve with the running interpreter's import system."""
    try:
        spec = importlib.util.find_spec(name)
    except (ImportError, ValueError):
        return None
    if spec is None or not spec.origin or spec.origin in ("built-in", "frozen"):
        return None
    origin = Path(spec.origin)
    return origin if origin.is_file() else None


def is_importable(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


# --- Distribution metadata ---


def normalize_name(name: str) -> str:
    """PEP 503 normalization, with '.' folded too."""
    return re.sub(r"[-_.]+", "-", name).lower()


def _distributions(paths: Optional[list[Path]]):
    if paths:
        return importlib.metadata.distributions(path=[str(p) for p in paths])
    return importlib.metadata.distributions()


def top_level_names(dist) -> list[str]:
    """Importable top-level names provided by one distribution."""
    declared = dist.read_text("top_level.txt")
    if declared:
        return [line.strip() for line in declared.splitlines() if line.strip()]
    names: list[str] = []
    for file in dist.files or []:
        parts = file.parts
        if not parts or parts[0].endswith((".dist-info", ".egg-info")) or parts[0] == "..":
            continue
        if len(parts) > 1:
            names.append(parts[0])
        elif parts[0].endswith(".py"):
            names.append(parts[0][:-3])
    return dedupe(n for n in names if n.isidentifier())


def import_names_by_distribution(paths: Optional[list[Path]] = None) -> dict[str, list[str]]:
    """Normalized distribution name -> importable top-level names."""
    mapping: dict[str, list[str]] = {}
    try:
        for dist in _distributions(paths):
            name = dist.metadata["Name"] if dist.metadata else None
            if name:
                mapping.setdefault(normalize_name(name), []).extend(top_level_names(dist))
    except Exception as e:
        log.debug("Cannot read distribution metadata: %s", e)
    return mapping


def find_distribution(import_name: str, paths: Optional[list[Path]] = None):
    """Installed distribution providing top-level module ``import_name``."""
    wanted = normalize_name(import_name)
    try:
        for dist in _distributions(paths):
            name = dist.metadata["Name"] if dist.metadata else None
            if not name:
                continue
            if normalize_name(name) == wanted or import_name in top_level_names(dist):
                return dist
    except Exception as e:
        log.debug("Cannot read distribution metadata: %s", e)
    return None


_REQ_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def distribution_requirements(dist) -> list[str]:
    """Unconditional requirements of a distribution (extras are skipped)."""
    names: list[str] = []
    for requirement in dist.requires or []:
        requirement_text, _, marker = requirement.partition(";")
        if "extra" in marker:
            continue
        m = _REQ_NAME.match(requirement_text)
        if m:
            names.append(m.group(1))
    return dedupe(names)


# --- Tier 1: ast ---


def _unparse(node: Optional[ast.AST]) -> Optional[str]:
    if node is None:
        return None
    try:
        return ast.unparse(node)
    except Exception:
        return None


def _parameters(args: ast.arguments) -> list[Parameter]:
    positional = list(args.posonlyargs) + list(args.args)
    first_default = len(positional) - len(args.defaults)
    params: list[Parameter] = []
    for i, arg in enumerate(positional):
        params.append(Parameter(
            name=arg.arg,
            type=_unparse(arg.annotation) or "any",
            optional=i >= first_default,
        ))
    if args.vararg:
        params.append(Parameter(
            name=f"*{args.vararg.arg}",
            type=_unparse(args.vararg.annotation) or "any",
            optional=True,
        ))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        params.append(Parameter(
            name=arg.arg,
            type=_unparse(arg.annotation) or "any",
            optional=default is not None,
        ))
    if args.kwarg:
        params.append(Parameter(
            name=f"**{args.kwarg.arg}",
            type=_unparse(args.kwarg.annotation) or "any",
            optional=True,
        ))
    return params


def _function(node: ast.FunctionDef | ast.AsyncFunctionDef) -> ExportDescriptor:
    params = _parameters(node.args)
    returns = _unparse(node.returns)
    prefix = "async def" if isinstance(node, ast.AsyncFunctionDef) else "def"
    signature = f"{prefix} {node.name}({ast.unparse(node.args)})"
    if returns:
        signature += f" -> {returns}"
    return ExportDescriptor(
        name=node.name,
        kind=ExportKind.FUNCTION,
        signature=signature,
        description=_first_line(ast.get_docstring(node)),
        parameters=params,
        return_type=returns,
    )


def _first_line(doc: Optional[str]) -> Optional[str]:
    if not doc:
        return None
    return doc.strip().splitlines()[0]


def _class(node: ast.ClassDef) -> ExportDescriptor:
    bases = [_unparse(b) or "" for b in node.bases]
    base_names = {b.rsplit(".", 1)[-1].split("[", 1)[0] for b in bases}
    kind = ExportKind.INTERFACE if base_names & _INTERFACE_BASES else ExportKind.CLASS
    signature = f"class {node.name}({', '.join(bases)})" if bases else f"class {node.name}"
    return ExportDescriptor(
        name=node.name,
        kind=kind,
        signature=signature,
        description=_first_line(ast.get_docstring(node)),
    )


def _constant(name: str, annotation: Optional[ast.AST], value: Optional[ast.AST]) -> ExportDescriptor:
    annotation_text = _unparse(annotation)
    if annotation_text and annotation_text.rsplit(".", 1)[-1] == "TypeAlias":
        return ExportDescriptor(
            name=name,
            kind=ExportKind.TYPE,
            signature=f"{name} = {_unparse(value) or ''}".strip(),
        )
    signature = f"{name}: {annotation_text}" if annotation_text else name
    value_text = _unparse(value)
    if value_text and len(value_text) <= _MAX_VALUE_LEN:
        signature += f" = {value_text}"
    return ExportDescriptor(name=name, kind=ExportKind.CONSTANT, signature=signature)


def _declared_all(tree: ast.Module) -> Optional[list[str]]:
    for node in tree.body:
        targets: list[ast.expr] = []
        value: Optional[ast.AST] = None
        if isinstance(node, ast.Assign):
            targets, value = node.targets, node.value
        elif isinstance(node, ast.AnnAssign) and node.value is not None:
            targets, value = [node.target], node.value
        if any(isinstance(t, ast.Name) and t.id == "__all__" for t in targets):
            if isinstance(value, (ast.List, ast.Tuple)):
                return [
                    e.value for e in value.elts
                    if isinstance(e, ast.Constant) and isinstance(e.value, str)
                ]
    return None


def _top_level(tree: ast.Module) -> tuple[dict[str, ExportDescriptor], dict[str, tuple[str, int, str]]]:
    """Definitions by name, and names imported from other modules."""
    defined: dict[str, ExportDescriptor] = {}
    imported: dict[str, tuple[str, int, str]] = {}
    type_alias = getattr(ast, "TypeAlias", None)
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            defined[node.name] = _function(node)
        elif isinstance(node, ast.ClassDef):
            defined[node.name] = _class(node)
        elif isinstance(node, ast.Assign):
            for target in node.targets:
                if isinstance(target, ast.Name) and target.id != "__all__":
                    defined[target.id] = _constant(target.id, None, node.value)
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            defined[node.target.id] = _constant(node.target.id, node.annotation, node.value)
        elif type_alias is not None and isinstance(node, type_alias):
            name = node.name.id
            defined[name] = ExportDescriptor(
                name=name,
                kind=ExportKind.TYPE,
                signature=f"type {name} = {_unparse(node.value)}",
            )
        elif isinstance(node, ast.ImportFrom):
            for alias in node.names:
                if alias.name != "*":
                    imported[alias.asname or alias.name] = (node.module or "", node.level, alias.name)
        elif isinstance(node, ast.Import):
            for alias in node.names:
                local = alias.asname or alias.name.split(".")[0]
                imported[local] = (alias.name, 0, "")
    return defined, imported


def _import_roots(tree: ast.Module, own: Optional[str]) -> list[str]:
    roots: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            roots.extend(alias.name.split(".")[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            roots.append(node.module.split(".")[0])
    return dedupe(r for r in roots if r != own and r != "__future__")


def _reexport(
    path: Path,
    module: str,
    level: int,
    original: str,
    alias: str,
    depth: int,
) -> ExportDescriptor:
    """Describe a name re-exported from a sibling module, when it can be found."""
    if level > 0 and depth > 0:
        base = path.parent
        for _ in range(level - 1):
            base = base.parent
        target = find_module_file(module, [base]) if module else None
        if target is None and not module:
            target = find_module_file(original, [base])
            if target is not None:
                return ExportDescriptor(name=alias, kind=ExportKind.NAMESPACE, signature=f"module {original}")
        if target is not None:
            nested = parse_file(target, depth=depth - 1)
            for export in nested.exports:
                if export.name == original:
                    return export.model_copy(update={"name": alias})
    origin = f"{'.' * level}{module}"
    if not original:
        return ExportDescriptor(name=alias, kind=ExportKind.NAMESPACE, signature=f"import {module}")
    return ExportDescriptor(
        name=alias,
        kind=ExportKind.CONSTANT,
        signature=f"from {origin} import {original}",
    )


def parse_source(source: str, path: Optional[Path] = None, own: Optional[str] = None, depth: int = 1) -> SourceSurface:
    """Exports and absolute import roots of one Python source file."""
    try:
        tree = ast.parse(source)
    except (SyntaxError, ValueError) as e:
        log.debug("Cannot parse %s: %s", path or "<source>", e)
        return SourceSurface()

    defined, imported = _top_level(tree)
    declared_all = _declared_all(tree)
    exports: list[ExportDescriptor] = []
    if declared_all is not None:
        for name in declared_all:
            if name in defined:
                exports.append(defined[name])
            elif name in imported and path is not None:
                module, level, original = imported[name]
                exports.append(_reexport(path, module, level, original, name, depth))
            else:
                exports.append(ExportDescriptor(name=name, kind=ExportKind.CONSTANT, signature=name))
    else:
        exports.extend(defined.values())
        for name, (module, level, original) in imported.items():
            # "from .x import y as y" is the explicit re-export form
            if original and original == name and level > 0 and path is not None and path.name == "__init__.py":
                exports.append(_reexport(path, module, level, original, name, depth))

    return SourceSurface(exports=dedupe_exports(exports), dependencies=_import_roots(tree, own))


def parse_file(path: Path, own: Optional[str] = None, depth: int = 1) -> SourceSurface:
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.debug("Cannot read %s: %s", path, e)
        return SourceSurface()
    return parse_source(source, path=path, own=own, depth=depth)


# --- Tier 2: load the resolved file in the project's interpreter ---

_PYTHON_SHAPES = r"""
import importlib.util, inspect, json, os, sys, types
name, path, root = sys.argv[1:4]
sys.path.insert(0, root)
out_stream, sys.stdout = sys.stdout, sys.stderr
package = os.path.basename(path).startswith("__init__.")
spec = importlib.util.spec_from_file_location(
    name, path, submodule_search_locations=[os.path.dirname(path)] if package else None)
module = importlib.util.module_from_spec(spec)
sys.modules[name] = module
spec.loader.exec_module(module)

def shape(v):
    if inspect.isclass(v):
        return "class"
    if callable(v):
        return "function"
    if isinstance(v, (types.ModuleType, types.SimpleNamespace, dict)):
        return "object"
    return "other"

def signature(key, v):
    try:
        return key + str(inspect.signature(v))
    except (TypeError, ValueError):
        return None

def summary(v):
    text = inspect.getdoc(v) if callable(v) else None
    return text.strip().splitlines()[0] if text and text.strip() else None

names = getattr(module, "__all__", None)
if not isinstance(names, (list, tuple)):
    names = [n for n in dir(module) if not n.startswith("__")]
result = {}
for key in names:
    if not isinstance(key, str):
        continue
    try:
        value = getattr(module, key)
    except Exception:
        continue
    tag = shape(value)
    result[key] = [tag, signature(key, value) if tag == "function" else None, summary(value)]
out_stream.write(json.dumps(result))
"""


def project_interpreter(project_root: Path) -> str:
    """Interpreter of the project's virtualenv, else ``python3`` from PATH."""
    for venv in (".venv", "venv"):
        for relative in ("bin/python", "Scripts/python.exe"):
            candidate = project_root / venv / relative
            if candidate.is_file():
                return str(candidate)
    return "python3"


def import_root(module_name: str, path: Path) -> Path:
    """Directory that must be on sys.path for ``module_name`` to import from ``path``."""
    depth = len(module_name.split("."))
    if path.stem == "__init__":
        depth += 1
    parents = path.parents
    return parents[min(depth - 1, len(parents) - 1)]


async def runtime_exports(
    module_name: str,
    path: Path,
    interpreter: str,
    timeout: float,
) -> list[ExportDescriptor]:
    """
    Execute the resolved module file in a child interpreter and classify its public members.

    The module runs out of process, so its side effects (including sys.exit)
    cannot reach the caller. Any failure yields an empty list.
    """
    root = import_root(module_name, path)
    output = await run_command(
        [interpreter, "-c", _PYTHON_SHAPES, module_name, str(path), str(root)],
        cwd=root,
        timeout=timeout,
    )
    if not output:
        return []
    try:
        members = json.loads(output)
    except ValueError:
        log.debug("Unexpected python shape output for %s", module_name)
        return []
    if not isinstance(members, dict):
        return []
    exports: list[ExportDescriptor] = []
    for name, entry in members.items():
        if not isinstance(entry, list) or len(entry) != 3:
            continue
        tag, signature, description = entry
        exports.append(ExportDescriptor(
            name=name,
            kind=classify_shape(tag),
            signature=signature or name,
            description=description,
        ))
    return exports
