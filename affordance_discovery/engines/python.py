import json
import logging
from pathlib import Path
from typing import Optional

from ..introspect import dedupe, filter_private, list_submodules, underscore_private
from ..introspect.python import (
    SOURCE_SUFFIXES,
    distribution_requirements,
    find_distribution,
    find_module_file,
    find_spec_file,
    import_names_by_distribution,
    normalize_name,
    parse_file,
    project_interpreter,
    runtime_exports,
    site_packages_dirs,
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
from .base import DiscoveryEngine

log = logging.getLogger(__name__)


class PythonEngine(DiscoveryEngine):
    """Distributions declared in pyproject.toml / requirements.txt."""

    ecosystem = Ecosystem.PYTHON

    def _search_dirs(self, base: Path) -> list[Path]:
        return [base, base / "src"]

    def _distribution(self, name: str, base: Path):
        venv = site_packages_dirs(base)
        dist = find_distribution(name, venv) if venv else None
        return dist or find_distribution(name)

    def describe_dependency(self, name: str, version: str, manifest: ManifestDependencies) -> PackageRecord:
        dist = self._distribution(name, self.base_dir(manifest))
        summary = dist.metadata["Summary"] if dist is not None and dist.metadata else None
        return PackageRecord(
            name=name,
            version=version,
            description=summary or None,
            installed=dist is not None,
            declared_path=str(manifest.path) if manifest.path else None,
        )

    async def extra_packages(self, search_term: Optional[str]) -> list[PackageRecord]:
        """Everything installed in the project interpreter (pip), else the conda environment."""
        interpreter = project_interpreter(self.project_root)
        for argv in (
            [interpreter, "-m", "pip", "list", "--format=json", "--disable-pip-version-check"],
            ["conda", "list", "--json"],
        ):
            output = await run_command(argv, cwd=self.project_root, timeout=self.tool_timeout)
            if not output:
                continue
            try:
                listed = json.loads(output)
            except ValueError:
                log.debug("Unexpected %s output", argv[0])
                continue
            if isinstance(listed, list):
                return [
                    PackageRecord(name=item["name"], version=item.get("version") or LATEST_VERSION, installed=True)
                    for item in listed
                    if isinstance(item, dict) and item.get("name")
                ]
        return []

    def check_local(
        self,
        identifier: str,
        statement: str,
        manifest: ManifestDependencies,
        start: Path,
    ) -> Optional[ValidationOutcome]:
        base = start if start.is_dir() else start.parent
        if identifier.startswith("."):
            return self._relative(identifier, base)

        own = find_module_file(identifier, self._search_dirs(self.base_dir(manifest)))
        if own is not None:
            return ValidationOutcome(valid=True, package_name=identifier, resolved_path=str(own))
        return None

    def _relative(self, identifier: str, base: Path) -> ValidationOutcome:
        level = len(identifier) - len(identifier.lstrip("."))
        anchor = base
        for _ in range(level - 1):
            anchor = anchor.parent
        module = identifier[level:]
        found = find_module_file(module, [anchor]) if module else (anchor / "__init__.py")
        if found is None or not found.is_file():
            return ValidationOutcome(
                valid=False,
                package_name=identifier,
                reason=f"Relative module '{identifier}' not found",
            )
        return ValidationOutcome(valid=True, package_name=identifier, resolved_path=str(found))

    def match_declared(self, identifier: str, manifest: ManifestDependencies) -> Optional[str]:
        declared = {normalize_name(n): n for n in manifest.all_dependencies()}
        if not declared:
            return None
        direct = declared.get(normalize_name(identifier))
        if direct is not None:
            return direct

        mapping = import_names_by_distribution()
        venv = site_packages_dirs(self.base_dir(manifest))
        if venv:
            for dist_name, names in import_names_by_distribution(venv).items():
                mapping.setdefault(dist_name, []).extend(names)
        for dist_name, names in mapping.items():
            if dist_name in declared and identifier in names:
                return declared[dist_name]
        return None

    def installed_path(self, identifier: str, declared: str, manifest: ManifestDependencies) -> Optional[str]:
        found = find_module_file(identifier, site_packages_dirs(self.base_dir(manifest))) or find_spec_file(identifier)
        return str(found) if found else None

    def invalid_reason(self, identifier: str) -> str:
        return f"Module '{identifier}' is not installed or declared in project dependencies"

    async def introspect_resolved(
        self,
        request: IntrospectRequest,
        manifest: ManifestDependencies,
    ) -> Optional[ModuleDescriptor]:
        name = request.module_name
        base = self.base_dir(manifest)
        root = name.split(".")[0]
        venv = site_packages_dirs(base)

        path = find_module_file(name, self._search_dirs(base) + venv) or find_spec_file(name)
        if path is None:
            log.debug("Cannot resolve %s from %s", name, base)
            return None

        surface = parse_file(path, own=root)
        exports = surface.exports
        if not exports:
            exports = await runtime_exports(name, path, project_interpreter(base), self.tool_timeout)

        submodules: list[str] = []
        if path.name in ("__init__.py", "__init__.pyi"):
            submodules = [
                s.replace("/", ".")
                for s in list_submodules(
                    path.parent,
                    SOURCE_SUFFIXES,
                    exclude=[path],
                    max_depth=request.max_depth,
                    entry_stems=("__init__", "__main__", "conftest"),
                )
            ]

        dist = self._distribution(root, base)
        requirements = distribution_requirements(dist) if dist is not None else []
        return ModuleDescriptor(
            name=name,
            resolved_path=str(path),
            exports=filter_private(exports, underscore_private, request.include_private),
            submodules=submodules,
            dependencies=dedupe(requirements + surface.dependencies),
        )
