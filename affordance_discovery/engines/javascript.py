import json
import logging
from pathlib import Path
from typing import Optional

from ..introspect import dedupe, filter_private, list_submodules, underscore_private
from ..introspect.javascript import (
    SOURCE_SUFFIXES,
    _resolve_file,
    entry_point,
    find_installed_package,
    manifest_exports,
    read_package_json,
    resolve_with_node,
    runtime_exports,
    structural_surface,
    types_entry,
)
from ..manifests import ManifestDependencies
from ..models import (
    LATEST_VERSION,
    Ecosystem,
    IntrospectRequest,
    ModuleDescriptor,
    PackageRecord,
    ValidationOutcome,
)
from ..shell import run_command
from ..statements import is_relative_specifier, js_package_root
from .base import DiscoveryEngine

log = logging.getLogger(__name__)


class JavaScriptEngine(DiscoveryEngine):
    """npm packages: package.json, node_modules and the node runtime."""

    ecosystem = Ecosystem.JAVASCRIPT

    def describe_dependency(self, name: str, version: str, manifest: ManifestDependencies) -> PackageRecord:
        installed = find_installed_package(name, self.base_dir(manifest))
        description = None
        if installed is not None:
            description = read_package_json(installed).get("description") or None
        return PackageRecord(
            name=name,
            version=version,
            description=description if isinstance(description, str) else None,
            installed=installed is not None,
            declared_path=str(manifest.path) if manifest.path else None,
        )

    async def extra_packages(self, search_term: Optional[str]) -> list[PackageRecord]:
        output = await run_command(
            ["npm", "list", "-g", "--depth=0", "--json"],
            timeout=self.tool_timeout,
        )
        if not output:
            return []
        try:
            data = json.loads(output)
        except ValueError:
            log.debug("Unexpected npm list output")
            return []
        records: list[PackageRecord] = []
        for name, info in (data.get("dependencies") or {}).items():
            version = info.get("version") if isinstance(info, dict) else None
            records.append(PackageRecord(name=name, version=version or LATEST_VERSION, installed=True))
        return records

    def check_local(
        self,
        identifier: str,
        statement: str,
        manifest: ManifestDependencies,
        start: Path,
    ) -> Optional[ValidationOutcome]:
        if not is_relative_specifier(identifier):
            return None
        base = start if start.is_dir() else start.parent
        found = _resolve_file(base, identifier)
        if found is None:
            return ValidationOutcome(
                valid=False,
                package_name=identifier,
                reason=f"Local file '{identifier}' not found",
            )
        return ValidationOutcome(valid=True, package_name=identifier, resolved_path=str(found))

    def match_declared(self, identifier: str, manifest: ManifestDependencies) -> Optional[str]:
        root = js_package_root(identifier)
        return root if root in manifest.all_dependencies() else None

    def installed_path(self, identifier: str, declared: str, manifest: ManifestDependencies) -> Optional[str]:
        found = find_installed_package(declared, self.base_dir(manifest))
        return str(found) if found else None

    def stdlib_export_name(self, identifier: str) -> str:
        return "default"

    async def introspect_resolved(
        self,
        request: IntrospectRequest,
        manifest: ManifestDependencies,
    ) -> Optional[ModuleDescriptor]:
        name = request.module_name
        base = self.base_dir(manifest)
        root = js_package_root(name)
        subpath = name[len(root):].lstrip("/")

        package_dir = find_installed_package(root, base)
        package = read_package_json(package_dir) if package_dir else {}
        if package_dir is not None:
            entry = _resolve_file(package_dir, subpath) if subpath else entry_point(package_dir, package)
        else:
            entry = await resolve_with_node(name, base, self.tool_timeout)
        if package_dir is None and entry is None:
            log.debug("Cannot resolve %s from %s", name, base)
            return None

        types_file = types_entry(package_dir, package) if package_dir and not subpath else None
        surface = structural_surface(entry, types_file)
        exports = surface.exports
        if not exports:
            exports = await runtime_exports(str(entry) if entry else name, base, self.tool_timeout)
        if not exports and not subpath:
            exports = manifest_exports(package)

        submodules: list[str] = []
        if entry is not None:
            submodules = list_submodules(
                entry.parent, SOURCE_SUFFIXES, exclude=[entry], max_depth=request.max_depth,
            )
        declared = package.get("dependencies") if isinstance(package.get("dependencies"), dict) else {}
        return ModuleDescriptor(
            name=name,
            resolved_path=str(entry or package_dir),
            exports=filter_private(exports, underscore_private, request.include_private),
            submodules=submodules,
            dependencies=dedupe(list(declared) + surface.dependencies),
        )
