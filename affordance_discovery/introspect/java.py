"""Java package introspection.

Third-party packages are read from artifact jars in the local Maven
repository; the project's own packages from ``src/main/java``. Class kinds
come from the class-file access flags.
"""

import logging
import os
import re
import struct
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..manifests import parse_pom_xml
from ..models import ExportDescriptor, ExportKind

log = logging.getLogger(__name__)

ACC_PUBLIC = 0x0001
ACC_INTERFACE = 0x0200
ACC_ANNOTATION = 0x2000
ACC_ENUM = 0x4000

# constant pool tag -> payload size in bytes (Utf8 is variable)
_CP_SIZES = {3: 4, 4: 4, 5: 8, 6: 8, 7: 2, 8: 2, 9: 4, 10: 4, 11: 4, 12: 4, 15: 3, 16: 2, 17: 4, 18: 4, 19: 2, 20: 2}
_SOURCE_DECL = re.compile(
    r"^\s*(public\s+)?(?:(?:abstract|final|sealed|non-sealed|static|strictfp)\s+)*"
    r"(class|interface|enum|record|@interface)\s+([A-Za-z_$][\w$]*)",
    re.MULTILINE,
)


@dataclass
class PackageSurface:
    exports: list[ExportDescriptor] = field(default_factory=list)
    private_names: set[str] = field(default_factory=set)
    subpackages: list[str] = field(default_factory=list)


def maven_repository() -> Path:
    configured = os.environ.get("MAVEN_REPOSITORY")
    if configured:
        return Path(configured)
    return Path.home() / ".m2" / "repository"


def _version_key(version: str) -> tuple:
    return tuple(int(p) if p.isdigit() else -1 for p in re.split(r"[.\-]", version))


def artifact_dir(group: str, artifact: str, version: Optional[str]) -> Optional[Path]:
    """Version directory of an artifact in the local repository."""
    base = maven_repository().joinpath(*group.split("."), artifact)
    if not base.is_dir():
        return None
    if version:
        exact = base / version
        if exact.is_dir():
            return exact
    versions = sorted((p for p in base.iterdir() if p.is_dir()), key=lambda p: _version_key(p.name))
    return versions[-1] if versions else None


def artifact_jar(directory: Path, artifact: str) -> Optional[Path]:
    jar = directory / f"{artifact}-{directory.name}.jar"
    if jar.is_file():
        return jar
    jars = sorted(p for p in directory.glob("*.jar") if not p.name.endswith(("-sources.jar", "-javadoc.jar")))
    return jars[0] if jars else None


def artifact_dependencies(directory: Path, artifact: str) -> list[str]:
    pom = directory / f"{artifact}-{directory.name}.pom"
    if not pom.is_file():
        return []
    return list(parse_pom_xml(pom).dependencies)


# --- Class files ---


def class_access_flags(data: bytes) -> Optional[int]:
    """Access flags of a class file, or None when it is malformed."""
    try:
        if data[:4] != b"\xca\xfe\xba\xbe":
            return None
        count = struct.unpack_from(">H", data, 8)[0]
        offset = 10
        index = 1
        while index < count:
            tag = data[offset]
            offset += 1
            if tag == 1:
                length = struct.unpack_from(">H", data, offset)[0]
                offset += 2 + length
            elif tag in _CP_SIZES:
                offset += _CP_SIZES[tag]
                if tag in (5, 6):
                    index += 1
            else:
                return None
            index += 1
        return struct.unpack_from(">H", data, offset)[0]
    except (IndexError, struct.error):
        return None


def kind_from_flags(flags: Optional[int]) -> ExportKind:
    if flags is None:
        return ExportKind.CLASS
    if flags & ACC_ANNOTATION or flags & ACC_INTERFACE:
        return ExportKind.INTERFACE
    if flags & ACC_ENUM:
        return ExportKind.TYPE
    return ExportKind.CLASS


def _signature(kind: ExportKind, flags: Optional[int], name: str) -> str:
    if flags is not None and flags & ACC_ANNOTATION:
        keyword = "@interface"
    elif kind == ExportKind.INTERFACE:
        keyword = "interface"
    elif kind == ExportKind.TYPE:
        keyword = "enum"
    else:
        keyword = "class"
    return f"{keyword} {name}"


def _subpackages(names: list[str], prefix: str, max_depth: int, limit: int) -> list[str]:
    found: list[str] = []
    for name in names:
        if not name.startswith(prefix) or not name.endswith(".class"):
            continue
        rest = name[len(prefix):].split("/")[:-1]
        if not rest or len(rest) > max_depth:
            continue
        sub = ".".join(rest)
        if sub not in found:
            found.append(sub)
    return sorted(found)[:limit]


def inspect_jar(jar: Path, package: str, max_depth: int = 1, limit: int = 10) -> PackageSurface:
    """Classes directly inside ``package`` and its nested packages."""
    prefix = package.replace(".", "/") + "/" if package else ""
    surface = PackageSurface()
    try:
        with zipfile.ZipFile(jar) as archive:
            names = archive.namelist()
            for entry in names:
                if not entry.startswith(prefix) or not entry.endswith(".class"):
                    continue
                local = entry[len(prefix):]
                if "/" in local or local in ("package-info.class", "module-info.class"):
                    continue
                class_name = local[: -len(".class")]
                flags = class_access_flags(archive.read(entry))
                kind = kind_from_flags(flags)
                surface.exports.append(ExportDescriptor(
                    name=class_name,
                    kind=kind,
                    signature=_signature(kind, flags, f"{package}.{class_name}" if package else class_name),
                ))
                if "$" in class_name or (flags is not None and not flags & ACC_PUBLIC):
                    surface.private_names.add(class_name)
            surface.subpackages = _subpackages(names, prefix, max_depth, limit)
    except (OSError, zipfile.BadZipFile) as e:
        log.debug("Cannot read jar %s: %s", jar, e)
        return PackageSurface()
    return surface


def jar_packages(jar: Path) -> list[str]:
    """Every package holding at least one class in the jar."""
    try:
        with zipfile.ZipFile(jar) as archive:
            dirs = {
                name.rsplit("/", 1)[0].replace("/", ".")
                for name in archive.namelist()
                if name.endswith(".class") and "/" in name and not name.startswith("META-INF/")
            }
    except (OSError, zipfile.BadZipFile) as e:
        log.debug("Cannot read jar %s: %s", jar, e)
        return []
    return sorted(dirs)


# --- Project sources ---


def source_roots(project_root: Path) -> list[Path]:
    return [
        p for p in (project_root / "src" / "main" / "java", project_root / "src" / "main" / "kotlin")
        if p.is_dir()
    ]


def inspect_sources(directory: Path, package: str, max_depth: int = 1, limit: int = 10) -> PackageSurface:
    surface = PackageSurface()
    try:
        files = sorted(directory.iterdir())
    except OSError:
        return surface
    for path in files:
        if path.suffix != ".java" or path.name in ("package-info.java", "module-info.java"):
            continue
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        m = _SOURCE_DECL.search(source)
        if not m:
            continue
        public, keyword, name = m.groups()
        kind = {
            "interface": ExportKind.INTERFACE,
            "@interface": ExportKind.INTERFACE,
            "enum": ExportKind.TYPE,
        }.get(keyword, ExportKind.CLASS)
        surface.exports.append(ExportDescriptor(name=name, kind=kind, signature=f"{keyword} {package}.{name}"))
        if not public:
            surface.private_names.add(name)

    def visit(current: Path, depth: int) -> None:
        if depth > max_depth:
            return
        for child in sorted(p for p in current.iterdir() if p.is_dir()):
            if len(surface.subpackages) >= limit:
                return
            if any(child.glob("*.java")):
                surface.subpackages.append(child.relative_to(directory).as_posix().replace("/", "."))
            visit(child, depth + 1)

    visit(directory, 1)
    return surface
