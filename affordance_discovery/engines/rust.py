import logging
from pathlib import Path
from typing import Optional

from ..introspect import dedupe, filter_private, list_submodules
from ..introspect.rust import (
    crate_dependencies,
    crate_ident,
    crate_root_file,
    parse_file,
    read_lockfile,
    registry_crate_dir,
)
from ..manifests import ManifestDependencies
from ..models import Ecosystem, IntrospectRequest, ModuleDescriptor, PackageRecord, ValidationOutcome
from .base import DiscoveryEngine

log = logging.getLogger(__name__)

_SELF_PATHS = ("crate", "self", "super")


class RustEngine(DiscoveryEngine):
    """Crates declared in Cargo.toml, located through Cargo.lock and the registry cache."""

    ecosystem = Ecosystem.RUST

    def describe_dependency(self, name: str, version: str, manifest: ManifestDependencies) -> PackageRecord:
        locked = read_lockfile(self.base_dir(manifest))
        return PackageRecord(
            name=name,
            version=version,
            installed=name in locked,
            declared_path=str(manifest.path) if manifest.path else None,
        )

    def _own_crate(self, identifier: str, manifest: ManifestDependencies) -> bool:
        return bool(manifest.name) and crate_ident(manifest.name) == crate_ident(identifier)

    def check_local(
        self,
        identifier: str,
        statement: str,
        manifest: ManifestDependencies,
        start: Path,
    ) -> Optional[ValidationOutcome]:
        if identifier in _SELF_PATHS or self._own_crate(identifier, manifest):
            return ValidationOutcome(
                valid=True,
                package_name=identifier,
                resolved_path=str(self.base_dir(manifest) / "src"),
            )
        return None

    def match_declared(self, identifier: str, manifest: ManifestDependencies) -> Optional[str]:
        wanted = crate_ident(identifier)
        for name in manifest.all_dependencies():
            if crate_ident(name) == wanted:
                return name
        return None

    def _crate_dir(self, declared: str, manifest: ManifestDependencies) -> Optional[Path]:
        locked = read_lockfile(self.base_dir(manifest))
        version = locked.get(declared) or manifest.all_dependencies().get(declared)
        return registry_crate_dir(declared, version)

    def installed_path(self, identifier: str, declared: str, manifest: ManifestDependencies) -> Optional[str]:
        found = self._crate_dir(declared, manifest)
        return str(found) if found else None

    def invalid_reason(self, identifier: str) -> str:
        return f"Crate '{identifier}' is not found in Cargo.toml"

    async def introspect_resolved(
        self,
        request: IntrospectRequest,
        manifest: ManifestDependencies,
    ) -> Optional[ModuleDescriptor]:
        name = request.module_name
        root = name.split("::", 1)[0]
        if root in _SELF_PATHS or self._own_crate(root, manifest):
            crate_dir = self.base_dir(manifest)
        else:
            crate_dir = self._crate_dir(self.match_declared(root, manifest) or root, manifest)
        if crate_dir is None:
            log.debug("Crate %s not found in the registry cache", root)
            return None
        root_file = crate_root_file(crate_dir)
        if root_file is None:
            return None

        surface = parse_file(root_file)
        private = surface.private_names
        return ModuleDescriptor(
            name=name,
            resolved_path=str(root_file),
            exports=filter_private(surface.exports, lambda n: n in private, request.include_private),
            submodules=list_submodules(
                root_file.parent,
                (".rs",),
                exclude=[root_file],
                max_depth=request.max_depth,
                entry_stems=("lib", "main", "mod", "build"),
            ),
            dependencies=dedupe(crate_dependencies(crate_dir) + surface.dependencies),
        )
