import logging
from pathlib import Path
from typing import Optional

from ..introspect import dedupe, filter_private
from ..introspect.go import (
    escape_module_path,
    is_private,
    list_subpackages,
    module_cache_dir,
    owning_module,
    package_dir,
    parse_package,
)
from ..manifests import ManifestDependencies, parse_go_mod
from ..models import Ecosystem, IntrospectRequest, ModuleDescriptor, PackageRecord, ValidationOutcome
from .base import DiscoveryEngine

log = logging.getLogger(__name__)


class GoEngine(DiscoveryEngine):
    """Modules required by go.mod, read from vendor/ or the module cache."""

    ecosystem = Ecosystem.GO

    def describe_dependency(self, name: str, version: str, manifest: ManifestDependencies) -> PackageRecord:
        base = self.base_dir(manifest)
        installed = (base / "vendor" / name).is_dir() or (
            module_cache_dir() / f"{escape_module_path(name)}@{version}"
        ).is_dir()
        return PackageRecord(
            name=name,
            version=version,
            installed=installed,
            declared_path=str(manifest.path) if manifest.path else None,
        )

    def _in_own_module(self, identifier: str, manifest: ManifestDependencies) -> bool:
        own = manifest.name
        return bool(own) and (identifier == own or identifier.startswith(own + "/"))

    def check_local(
        self,
        identifier: str,
        statement: str,
        manifest: ManifestDependencies,
        start: Path,
    ) -> Optional[ValidationOutcome]:
        if not self._in_own_module(identifier, manifest):
            return None
        directory = package_dir(identifier, self.base_dir(manifest), manifest.name, {})
        if directory is None:
            return ValidationOutcome(
                valid=False,
                package_name=identifier,
                reason=f"Package '{identifier}' is not found in module {manifest.name}",
            )
        return ValidationOutcome(valid=True, package_name=identifier, resolved_path=str(directory))

    def match_declared(self, identifier: str, manifest: ManifestDependencies) -> Optional[str]:
        return owning_module(identifier, manifest.all_dependencies())

    def installed_path(self, identifier: str, declared: str, manifest: ManifestDependencies) -> Optional[str]:
        found = package_dir(identifier, self.base_dir(manifest), manifest.name, manifest.all_dependencies())
        return str(found) if found else None

    def invalid_reason(self, identifier: str) -> str:
        return f"Package '{identifier}' is not found in go.mod"

    async def introspect_resolved(
        self,
        request: IntrospectRequest,
        manifest: ManifestDependencies,
    ) -> Optional[ModuleDescriptor]:
        name = request.module_name
        directory = package_dir(name, self.base_dir(manifest), manifest.name, manifest.all_dependencies())
        if directory is None:
            log.debug("Go package %s not found", name)
            return None

        surface = parse_package(directory)
        requires: list[str] = []
        if (directory / "go.mod").is_file():
            requires = list(parse_go_mod(directory / "go.mod").dependencies)
        return ModuleDescriptor(
            name=name,
            resolved_path=str(directory),
            exports=filter_private(surface.exports, is_private, request.include_private),
            submodules=list_subpackages(directory, request.max_depth),
            dependencies=dedupe(requires + surface.dependencies),
        )
