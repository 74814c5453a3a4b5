"""The discovery engine contract, implemented once for every ecosystem.

Subclasses supply ecosystem hooks (manifest names, installed-state checks,
local reference checks, module resolution and export collection); the
four public operations, their ordering rules and read-through caching
live here.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..cache import TTLCache, make_key
from ..introspect import stdlib_export
from ..manifests import EMPTY, ManifestDependencies, locate_manifest, parse_manifest
from ..models import (
    STDLIB_VERSION,
    UNKNOWN_PACKAGE,
    DiscoverRequest,
    DiscoveryBatch,
    Ecosystem,
    IntrospectRequest,
    Manifest,
    ModuleDescriptor,
    PackageRecord,
    SearchRequest,
    ValidateRequest,
    ValidationOutcome,
    manifests_for,
)
from ..scoring import annotate, rank
from ..shell import DEFAULT_TIMEOUT
from ..statements import extract_root_identifier
from ..stdlib import REGISTRIES, StdlibRegistry
from ..suggest import suggest

log = logging.getLogger(__name__)

PARSE_FAILURE_REASON = "Could not parse import statement"


class DiscoveryEngine(ABC):
    ecosystem: Ecosystem

    def __init__(
        self,
        cache: TTLCache,
        project_root: Optional[Path] = None,
        tool_timeout: float = DEFAULT_TIMEOUT,
    ):
        self.cache = cache
        self.project_root = (project_root or Path.cwd()).resolve()
        self.tool_timeout = tool_timeout

    # --- Ecosystem hooks ---

    @property
    def stdlib(self) -> StdlibRegistry:
        return REGISTRIES[self.ecosystem]

    @property
    def manifest_names(self) -> list[Manifest]:
        return manifests_for(self.ecosystem)

    def extract(self, statement: str) -> Optional[str]:
        return extract_root_identifier(self.ecosystem, statement)

    def load_manifest(self, start: Optional[Path] = None) -> ManifestDependencies:
        path = locate_manifest(start or self.project_root, self.manifest_names)
        if path is None:
            log.debug("No %s manifest above %s", self.ecosystem.value, start or self.project_root)
            return EMPTY
        return parse_manifest(path)

    def base_dir(self, manifest: ManifestDependencies) -> Path:
        return manifest.root or self.project_root

    def describe_dependency(self, name: str, version: str, manifest: ManifestDependencies) -> PackageRecord:
        """Record for one declared dependency; subclasses add installed state."""
        return PackageRecord(
            name=name,
            version=version,
            installed=False,
            declared_path=str(manifest.path) if manifest.path else None,
        )

    async def extra_packages(self, search_term: Optional[str]) -> list[PackageRecord]:
        """Packages from sources other than the manifest (e.g. global installs)."""
        return []

    def check_local(
        self,
        identifier: str,
        statement: str,
        manifest: ManifestDependencies,
        start: Path,
    ) -> Optional[ValidationOutcome]:
        """Outcome for references into the project itself, or None."""
        return None

    def match_declared(self, identifier: str, manifest: ManifestDependencies) -> Optional[str]:
        """Declared dependency name providing ``identifier``, or None."""
        return identifier if identifier in manifest.all_dependencies() else None

    def installed_path(self, identifier: str, declared: str, manifest: ManifestDependencies) -> Optional[str]:
        return None

    def invalid_reason(self, identifier: str) -> str:
        return f"Package '{identifier}' is not installed or available"

    def stdlib_export_name(self, identifier: str) -> str:
        return identifier

    @abstractmethod
    async def introspect_resolved(
        self,
        request: IntrospectRequest,
        manifest: ManifestDependencies,
    ) -> Optional[ModuleDescriptor]:
        """Locate and describe a non-standard module; None when unresolved."""

    # --- Operations ---

    def _key(self, operation: str, *parts) -> str:
        return make_key(operation, self.ecosystem.value, *parts, self.project_root)

    async def discover_packages(self, request: DiscoverRequest) -> DiscoveryBatch:
        key = self._key(
            "discover", request.search_term, request.include_dev_dependencies, request.max_results,
        )
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        packages = await self._collect(
            request.search_term, request.include_dev_dependencies, request.max_results,
        )
        batch = DiscoveryBatch(
            packages=packages[: request.max_results],
            total_found=len(packages),
            search_term=request.search_term,
            ecosystem=self.ecosystem,
        )
        self.cache.set(key, batch)
        return batch

    async def _collect(
        self,
        search_term: Optional[str],
        include_dev: bool,
        max_results: Optional[int],
    ) -> list[PackageRecord]:
        needle = search_term.lower() if search_term else None
        manifest = self.load_manifest()
        packages: list[PackageRecord] = []
        seen: set[str] = set()

        def add(record: PackageRecord) -> None:
            if record.name not in seen:
                seen.add(record.name)
                packages.append(record)

        for name, version in manifest.all_dependencies(include_dev).items():
            if needle and needle not in name.lower():
                continue
            add(self.describe_dependency(name, version, manifest))

        if max_results is None or len(packages) < max_results:
            try:
                extra = await self.extra_packages(search_term)
            except Exception:
                log.warning("Extra package source failed for %s", self.ecosystem.value, exc_info=True)
                extra = []
            for record in extra:
                if needle is None or needle in record.name.lower():
                    add(record)

        if search_term and (max_results is None or len(packages) < max_results):
            for name in self.stdlib.matches(search_term):
                add(self.stdlib_record(name))
        return packages

    def stdlib_record(self, name: str) -> PackageRecord:
        return PackageRecord(
            name=name,
            version=STDLIB_VERSION,
            description=self.stdlib.describe(name).description,
            installed=True,
        )

    async def validate_import(self, request: ValidateRequest) -> ValidationOutcome:
        key = self._key("validate", request.import_statement, request.project_path)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        outcome = self._validate(request)
        self.cache.set(key, outcome)
        return outcome

    def _validate(self, request: ValidateRequest) -> ValidationOutcome:
        identifier = self.extract(request.import_statement)
        if not identifier:
            return ValidationOutcome(
                valid=False,
                package_name=UNKNOWN_PACKAGE,
                reason=PARSE_FAILURE_REASON,
            )

        if self.stdlib.is_standard_library(identifier):
            return ValidationOutcome(
                valid=True,
                package_name=identifier,
                resolved_path=identifier,
                reason=self.stdlib.validity_reason(identifier),
            )

        start = Path(request.project_path).expanduser() if request.project_path else self.project_root
        manifest = self.load_manifest(start)

        local = self.check_local(identifier, request.import_statement, manifest, start)
        if local is not None:
            return local

        declared = self.match_declared(identifier, manifest)
        if declared is not None:
            return ValidationOutcome(
                valid=True,
                package_name=identifier,
                resolved_path=self.installed_path(identifier, declared, manifest),
            )

        return ValidationOutcome(
            valid=False,
            package_name=identifier,
            reason=self.invalid_reason(identifier),
            suggestions=suggest(identifier, manifest.names(), self.stdlib.all_names()),
        )

    async def introspect_module(self, request: IntrospectRequest) -> ModuleDescriptor:
        key = self._key("introspect", request.module_name, request.include_private, request.max_depth)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        descriptor = await self._introspect(request)
        self.cache.set(key, descriptor)
        return descriptor

    async def _introspect(self, request: IntrospectRequest) -> ModuleDescriptor:
        name = request.module_name
        if self.stdlib.is_standard_library(name):
            return ModuleDescriptor(
                name=name,
                resolved_path=name,
                exports=[stdlib_export(self.stdlib_export_name(name), self.stdlib.describe(name).description)],
            )
        try:
            descriptor = await self.introspect_resolved(request, self.load_manifest())
        except Exception:
            log.warning("Introspection of %s failed", name, exc_info=True)
            descriptor = None
        if descriptor is None or not descriptor.resolved_path:
            return ModuleDescriptor.unresolved(name)
        return descriptor

    async def search_affordances(self, request: SearchRequest) -> DiscoveryBatch:
        key = self._key("search", request.query, request.category.value, request.max_results)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        candidates = await self._collect(None, True, None)
        seen = {c.name for c in candidates}
        for name in self.stdlib.all_names():
            if name not in seen:
                seen.add(name)
                candidates.append(self.stdlib_record(name))

        ranked = rank(request.query, candidates, request.category, len(candidates))
        batch = DiscoveryBatch(
            packages=[annotate(r, request.query) for r in ranked[: request.max_results]],
            total_found=len(ranked),
            search_term=request.query,
            ecosystem=self.ecosystem,
        )
        self.cache.set(key, batch)
        return batch
