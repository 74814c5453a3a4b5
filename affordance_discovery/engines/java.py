import logging
from pathlib import Path
from typing import Optional

from ..introspect import filter_private
from ..introspect.java import (
    artifact_dependencies,
    artifact_dir,
    artifact_jar,
    inspect_jar,
    inspect_sources,
    jar_packages,
    source_roots,
)
from ..manifests import ManifestDependencies
from ..models import Ecosystem, IntrospectRequest, ModuleDescriptor, PackageRecord, ValidationOutcome
from .base import DiscoveryEngine

log = logging.getLogger(__name__)


def _coordinates(declared: str) -> tuple[str, str]:
    group, _, artifact = declared.partition(":")
    return group, artifact


def _under(package: str, prefix: str) -> bool:
    return package == prefix or package.startswith(prefix + ".")


def provides_package(declared: str, package: str) -> bool:
    """Whether a groupId:artifactId coordinate plausibly ships ``package``."""
    group, artifact = _coordinates(declared)
    if _under(package, group):
        return True
    segments = package.split(".")
    return bool(artifact) and (artifact in segments or artifact.replace("-", ".") in package)


class JavaEngine(DiscoveryEngine):
    """Maven / Gradle dependencies, read from the local Maven repository."""

    ecosystem = Ecosystem.JAVA

    def _own_group(self, manifest: ManifestDependencies) -> Optional[str]:
        if manifest.name and ":" in manifest.name:
            return _coordinates(manifest.name)[0]
        return None

    def _artifact_dir(self, declared: str, manifest: ManifestDependencies) -> Optional[Path]:
        group, artifact = _coordinates(declared)
        return artifact_dir(group, artifact, manifest.all_dependencies().get(declared))

    def describe_dependency(self, name: str, version: str, manifest: ManifestDependencies) -> PackageRecord:
        group, artifact = _coordinates(name)
        return PackageRecord(
            name=name,
            version=version,
            installed=artifact_dir(group, artifact, version) is not None,
            declared_path=str(manifest.path) if manifest.path else None,
        )

    def _source_dir(self, package: str, manifest: ManifestDependencies) -> Optional[Path]:
        for root in source_roots(self.base_dir(manifest)):
            candidate = root.joinpath(*package.split("."))
            if candidate.is_dir():
                return candidate
        return None

    def check_local(
        self,
        identifier: str,
        statement: str,
        manifest: ManifestDependencies,
        start: Path,
    ) -> Optional[ValidationOutcome]:
        group = self._own_group(manifest)
        if not group or not _under(identifier, group):
            return None
        directory = self._source_dir(identifier, manifest)
        if directory is None:
            return ValidationOutcome(
                valid=False,
                package_name=identifier,
                reason=f"Package '{identifier}' is not found in project sources",
            )
        return ValidationOutcome(valid=True, package_name=identifier, resolved_path=str(directory))

    def match_declared(self, identifier: str, manifest: ManifestDependencies) -> Optional[str]:
        for declared in manifest.all_dependencies():
            if provides_package(declared, identifier):
                return declared
        return None

    def installed_path(self, identifier: str, declared: str, manifest: ManifestDependencies) -> Optional[str]:
        directory = self._artifact_dir(declared, manifest)
        jar = artifact_jar(directory, _coordinates(declared)[1]) if directory else None
        return str(jar) if jar else None

    def invalid_reason(self, identifier: str) -> str:
        return f"Package '{identifier}' is not found in build dependencies"

    async def introspect_resolved(
        self,
        request: IntrospectRequest,
        manifest: ManifestDependencies,
    ) -> Optional[ModuleDescriptor]:
        name = request.module_name
        group = self._own_group(manifest)
        if group and _under(name, group):
            directory = self._source_dir(name, manifest)
            if directory is None:
                return None
            surface = inspect_sources(directory, name, request.max_depth)
            private = surface.private_names
            return ModuleDescriptor(
                name=name,
                resolved_path=str(directory),
                exports=filter_private(surface.exports, lambda n: n in private, request.include_private),
                submodules=surface.subpackages,
                dependencies=manifest.names(include_dev=False),
            )

        declared = self.match_declared(name, manifest)
        directory = self._artifact_dir(declared, manifest) if declared else None
        artifact = _coordinates(declared)[1] if declared else ""
        jar = artifact_jar(directory, artifact) if directory else None
        if jar is None:
            log.debug("No jar in the local repository provides %s", name)
            return None
        if not any(_under(p, name) for p in jar_packages(jar)):
            log.debug("%s does not contain package %s", jar, name)
            return None

        surface = inspect_jar(jar, name, request.max_depth)
        private = surface.private_names
        return ModuleDescriptor(
            name=name,
            resolved_path=str(jar),
            exports=filter_private(surface.exports, lambda n: n in private, request.include_private),
            submodules=surface.subpackages,
            dependencies=artifact_dependencies(directory, artifact),
        )
