"""Locate and parse dependency manifests.

Every parser is best-effort: a missing or malformed manifest yields empty
dependency maps instead of an exception, so an engine stays usable in a
half-broken project.
"""

import json
import logging
import re
# stdlib ElementTree is not vulnerable to XXE (no external entity support)
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from .models import LATEST_VERSION, Manifest

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManifestDependencies:
    path: Optional[Path] = None
    name: Optional[str] = None
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)

    def all_dependencies(self, include_dev: bool = True) -> dict[str, str]:
        """Merged view; a dev declaration of the same name wins."""
        if not include_dev:
            return dict(self.dependencies)
        return {**self.dependencies, **self.dev_dependencies}

    def names(self, include_dev: bool = True) -> list[str]:
        return list(self.all_dependencies(include_dev))

    @property
    def root(self) -> Optional[Path]:
        return self.path.parent if self.path else None


EMPTY = ManifestDependencies()


def locate_manifest(start: Path, names: Iterable[Manifest | str]) -> Optional[Path]:
    """
    Walk from ``start`` toward the filesystem root looking for a manifest.

    Args:
        start: Directory (or file) to start from.
        names: Manifest file names in priority order; within one directory
            the first present name wins.

    Returns:
        Path of the nearest manifest, or None. The filesystem root itself is
        never searched.
    """
    wanted = [n.value if isinstance(n, Manifest) else n for n in names]
    try:
        current = start.resolve()
    except OSError:
        return None
    if current.is_file():
        current = current.parent

    while current.parent != current:
        for name in wanted:
            candidate = current / name
            if candidate.is_file():
                return candidate
        current = current.parent
    return None


def parse_manifest(path: Path) -> ManifestDependencies:
    """Dispatch on the manifest file name."""
    try:
        manifest = Manifest(path.name)
    except ValueError:
        log.debug("Not a known manifest: %s", path)
        return ManifestDependencies(path=path)

    match manifest:
        case Manifest.PACKAGE_JSON:
            parser = parse_package_json
        case Manifest.PYPROJECT_TOML:
            parser = parse_pyproject_toml
        case Manifest.REQUIREMENTS_TXT:
            parser = parse_requirements_txt
        case Manifest.CARGO_TOML:
            parser = parse_cargo_toml
        case Manifest.GO_MOD:
            parser = parse_go_mod
        case Manifest.POM_XML:
            parser = parse_pom_xml
        case Manifest.BUILD_GRADLE | Manifest.BUILD_GRADLE_KTS:
            parser = parse_gradle
    return parser(path)


def _best_effort(fn: Callable[[Path], ManifestDependencies]) -> Callable[[Path], ManifestDependencies]:
    def wrapper(path: Path) -> ManifestDependencies:
        try:
            return fn(path)
        except Exception as e:
            log.debug("Failed to parse %s: %s", path, e)
            return ManifestDependencies(path=path)

    wrapper.__name__ = fn.__name__
    wrapper.__doc__ = fn.__doc__
    return wrapper


def _version_of(value) -> str:
    """Normalize a declared version; structured values use their 'version' key."""
    if isinstance(value, str):
        return value.strip() or LATEST_VERSION
    if isinstance(value, dict):
        version = value.get("version")
        if isinstance(version, str) and version.strip():
            return version.strip()
    return LATEST_VERSION


def _load_toml(path: Path) -> dict:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]
    return tomllib.loads(path.read_text(encoding="utf-8"))


# --- JavaScript ---


@_best_effort
def parse_package_json(path: Path) -> ManifestDependencies:
    """Read dependency maps from package.json.

    peer and optional dependencies count as regular dependencies.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        return ManifestDependencies(path=path)

    deps: dict[str, str] = {}
    for section in ("dependencies", "peerDependencies", "optionalDependencies"):
        for name, version in (data.get(section) or {}).items():
            deps[name] = _version_of(version)
    dev = {name: _version_of(v) for name, v in (data.get("devDependencies") or {}).items()}
    name = data.get("name")
    return ManifestDependencies(
        path=path,
        name=name if isinstance(name, str) and name else None,
        dependencies=deps,
        dev_dependencies=dev,
    )


# --- Python ---

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*(.*)$")
_DEV_REQUIREMENTS = ("requirements-dev.txt", "dev-requirements.txt", "requirements_dev.txt")


def _split_requirement(line: str) -> Optional[tuple[str, str]]:
    """Split one PEP 508 requirement into (name, version spec)."""
    line = line.split("#", 1)[0].split(";", 1)[0].strip()
    if not line or line.startswith("-"):
        return None
    if " @ " in line:
        name = line.split(" @ ", 1)[0].strip()
        return (name, LATEST_VERSION) if name else None
    m = _REQUIREMENT_NAME.match(line)
    if not m:
        return None
    spec = m.group(2).strip()
    return m.group(1), spec or LATEST_VERSION


def _read_requirements(path: Path) -> dict[str, str]:
    deps: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        parsed = _split_requirement(line)
        if parsed:
            deps[parsed[0]] = parsed[1]
    return deps


@_best_effort
def parse_requirements_txt(path: Path) -> ManifestDependencies:
    """Read a pip requirements file; options, URLs and comments are skipped."""
    deps = _read_requirements(path)
    dev: dict[str, str] = {}
    for name in _DEV_REQUIREMENTS:
        sibling = path.parent / name
        if sibling.is_file():
            dev.update(_read_requirements(sibling))
    return ManifestDependencies(path=path, dependencies=deps, dev_dependencies=dev)


def _requirement_list(items) -> dict[str, str]:
    deps: dict[str, str] = {}
    for item in items or []:
        if isinstance(item, str):
            parsed = _split_requirement(item)
            if parsed:
                deps[parsed[0]] = parsed[1]
    return deps


@_best_effort
def parse_pyproject_toml(path: Path) -> ManifestDependencies:
    """Read PEP 621, PEP 735 and Poetry dependency tables.

    Sibling requirements files are merged in, since many projects keep
    pyproject.toml for tooling only.
    """
    data = _load_toml(path)
    project = data.get("project", {})
    deps = _requirement_list(project.get("dependencies"))
    dev: dict[str, str] = {}
    for group in (project.get("optional-dependencies") or {}).values():
        dev.update(_requirement_list(group))
    for group in (data.get("dependency-groups") or {}).values():
        dev.update(_requirement_list(group))

    poetry = data.get("tool", {}).get("poetry", {})
    for name, value in (poetry.get("dependencies") or {}).items():
        if name.lower() != "python":
            deps[name] = _version_of(value)
    for name, value in (poetry.get("dev-dependencies") or {}).items():
        dev[name] = _version_of(value)
    for group in (poetry.get("group") or {}).values():
        for name, value in (group.get("dependencies") or {}).items():
            dev[name] = _version_of(value)

    requirements = path.parent / Manifest.REQUIREMENTS_TXT.value
    if requirements.is_file():
        deps.update(_read_requirements(requirements))
    for name in _DEV_REQUIREMENTS:
        sibling = path.parent / name
        if sibling.is_file():
            dev.update(_read_requirements(sibling))

    name = project.get("name") or poetry.get("name")
    return ManifestDependencies(path=path, name=name or None, dependencies=deps, dev_dependencies=dev)


# --- Rust ---


@_best_effort
def parse_cargo_toml(path: Path) -> ManifestDependencies:
    """Read Cargo.toml dependency tables, including workspace and target-specific ones."""
    data = _load_toml(path)
    deps: dict[str, str] = {}
    dev: dict[str, str] = {}

    def take(table, into: dict[str, str]) -> None:
        for name, value in (table or {}).items():
            into[name] = _version_of(value)

    take(data.get("dependencies"), deps)
    take(data.get("workspace", {}).get("dependencies"), deps)
    take(data.get("dev-dependencies"), dev)
    take(data.get("build-dependencies"), dev)
    for target in (data.get("target") or {}).values():
        take(target.get("dependencies"), deps)
        take(target.get("dev-dependencies"), dev)
        take(target.get("build-dependencies"), dev)

    name = data.get("package", {}).get("name")
    return ManifestDependencies(path=path, name=name or None, dependencies=deps, dev_dependencies=dev)


# --- Go ---

_GO_REQUIRE_LINE = re.compile(r"^(\S+)\s+(\S+)")


@_best_effort
def parse_go_mod(path: Path) -> ManifestDependencies:
    """Read module path and require directives from go.mod."""
    module: Optional[str] = None
    deps: dict[str, str] = {}
    tools: dict[str, str] = {}
    block: Optional[str] = None

    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.split("//", 1)[0].strip()
        if not line:
            continue
        if block:
            if line == ")":
                block = None
                continue
            if block == "skip":
                continue
            target = deps if block == "require" else tools
            m = _GO_REQUIRE_LINE.match(line)
            if m:
                target[m.group(1)] = m.group(2)
            elif block == "tool":
                tools[line] = LATEST_VERSION
            continue

        keyword, _, rest = line.partition(" ")
        rest = rest.strip()
        if keyword == "module":
            module = rest.strip('"')
        elif keyword in ("require", "tool"):
            if rest == "(":
                block = keyword
                continue
            target = deps if keyword == "require" else tools
            m = _GO_REQUIRE_LINE.match(rest)
            if m:
                target[m.group(1)] = m.group(2)
            elif rest:
                target[rest] = LATEST_VERSION
        elif keyword in ("exclude", "replace", "retract") and rest == "(":
            block = "skip"

    return ManifestDependencies(path=path, name=module, dependencies=deps, dev_dependencies=tools)


# --- Java ---

_PROPERTY_REF = re.compile(r"\$\{([^}]+)\}")


def _maven_ns(root: ET.Element) -> str:
    match = re.match(r"\{(.+)\}", root.tag)
    return f"{{{match.group(1)}}}" if match else ""


@_best_effort
def parse_pom_xml(path: Path) -> ManifestDependencies:
    """Read <dependencies> from pom.xml as groupId:artifactId entries."""
    root = ET.parse(path).getroot()
    ns = _maven_ns(root)

    properties: dict[str, str] = {}
    props_el = root.find(f"{ns}properties")
    if props_el is not None:
        for prop in props_el:
            key = prop.tag[len(ns):] if prop.tag.startswith(ns) else prop.tag
            properties[key] = (prop.text or "").strip()
    group_id = root.findtext(f"{ns}groupId") or root.findtext(f"{ns}parent/{ns}groupId")
    artifact_id = root.findtext(f"{ns}artifactId")
    project_version = root.findtext(f"{ns}version")
    if project_version:
        properties.setdefault("project.version", project_version)

    def substitute(text: Optional[str]) -> str:
        if not text or not text.strip():
            return LATEST_VERSION
        resolved = _PROPERTY_REF.sub(lambda m: properties.get(m.group(1), m.group(0)), text.strip())
        return LATEST_VERSION if _PROPERTY_REF.search(resolved) else resolved

    deps: dict[str, str] = {}
    dev: dict[str, str] = {}
    deps_el = root.find(f"{ns}dependencies")
    for dep in deps_el.findall(f"{ns}dependency") if deps_el is not None else []:
        g = (dep.findtext(f"{ns}groupId") or "").strip()
        a = (dep.findtext(f"{ns}artifactId") or "").strip()
        if not g or not a:
            continue
        version = substitute(dep.findtext(f"{ns}version"))
        scope = (dep.findtext(f"{ns}scope") or "").strip()
        (dev if scope == "test" else deps)[f"{g}:{a}"] = version

    name = None
    if artifact_id:
        name = f"{group_id}:{artifact_id}" if group_id else artifact_id
    return ManifestDependencies(path=path, name=name, dependencies=deps, dev_dependencies=dev)


_GRADLE_CONFIGS = (
    "implementation|api|compileOnly|runtimeOnly|compile|runtime|annotationProcessor|kapt"
    "|testImplementation|testCompileOnly|testRuntimeOnly|testCompile|testRuntime"
    "|androidTestImplementation|testAnnotationProcessor|kaptTest"
)
_GRADLE_STRING_DEP = re.compile(
    rf"\b({_GRADLE_CONFIGS})\s*\(?\s*[\"']([^\"':\s]+):([^\"':\s]+)(?::([^\"'\s]+))?[\"']"
)
_GRADLE_MAP_DEP = re.compile(
    rf"\b({_GRADLE_CONFIGS})\s*\(?\s*group\s*[:=]\s*[\"']([^\"']+)[\"']\s*,\s*"
    r"name\s*[:=]\s*[\"']([^\"']+)[\"'](?:\s*,\s*version\s*[:=]\s*[\"']([^\"']+)[\"'])?"
)
_GRADLE_ROOT_NAME = re.compile(r'rootProject\.name\s*=\s*["\'](.+?)["\']')
_GRADLE_GROUP = re.compile(r'^\s*group\s*=\s*["\'](.+?)["\']', re.MULTILINE)


def _is_test_config(config: str) -> bool:
    return config.startswith(("test", "androidTest", "kaptTest"))


@_best_effort
def parse_gradle(path: Path) -> ManifestDependencies:
    """Read dependency declarations from build.gradle(.kts)."""
    lines = path.read_text(encoding="utf-8").splitlines()
    text = "\n".join(line for line in lines if not line.strip().startswith("//"))

    deps: dict[str, str] = {}
    dev: dict[str, str] = {}
    for pattern in (_GRADLE_STRING_DEP, _GRADLE_MAP_DEP):
        for m in pattern.finditer(text):
            config, group, artifact, version = m.groups()
            target = dev if _is_test_config(config) else deps
            target[f"{group}:{artifact}"] = version or LATEST_VERSION

    name = None
    for settings_name in ("settings.gradle.kts", "settings.gradle"):
        settings = path.parent / settings_name
        if settings.is_file():
            m = _GRADLE_ROOT_NAME.search(settings.read_text(encoding="utf-8"))
            if m:
                name = m.group(1)
                break
    group = _GRADLE_GROUP.search(text)
    if group:
        name = f"{group.group(1)}:{name or path.parent.name}"
    return ManifestDependencies(path=path, name=name, dependencies=deps, dev_dependencies=dev)
