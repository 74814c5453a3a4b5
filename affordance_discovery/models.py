from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Ecosystem(str, Enum):
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    RUST = "rust"
    GO = "go"
    JAVA = "java"


class Manifest(str, Enum):
    # JavaScript
    PACKAGE_JSON = "package.json"
    # Python
    PYPROJECT_TOML = "pyproject.toml"
    REQUIREMENTS_TXT = "requirements.txt"
    # Rust
    CARGO_TOML = "Cargo.toml"
    # Go
    GO_MOD = "go.mod"
    # Java (Maven)
    POM_XML = "pom.xml"
    # Java (Gradle)
    BUILD_GRADLE_KTS = "build.gradle.kts"
    BUILD_GRADLE = "build.gradle"

    @property
    def ecosystem(self) -> Ecosystem:
        return _MANIFEST_ECOSYSTEMS[self]


_MANIFEST_ECOSYSTEMS: dict[Manifest, Ecosystem] = {
    Manifest.PACKAGE_JSON: Ecosystem.JAVASCRIPT,
    Manifest.PYPROJECT_TOML: Ecosystem.PYTHON,
    Manifest.REQUIREMENTS_TXT: Ecosystem.PYTHON,
    Manifest.CARGO_TOML: Ecosystem.RUST,
    Manifest.GO_MOD: Ecosystem.GO,
    Manifest.POM_XML: Ecosystem.JAVA,
    Manifest.BUILD_GRADLE_KTS: Ecosystem.JAVA,
    Manifest.BUILD_GRADLE: Ecosystem.JAVA,
}


def manifests_for(ecosystem: Ecosystem) -> list[Manifest]:
    """Manifests of one ecosystem, in upward-search priority order."""
    return [m for m in Manifest if m.ecosystem == ecosystem]


class Category(str, Enum):
    UI = "ui"
    DATA = "data"
    NETWORK = "network"
    TESTING = "testing"
    BUILD = "build"
    UTILITY = "utility"
    ALL = "all"


class ExportKind(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    CONSTANT = "constant"
    TYPE = "type"
    INTERFACE = "interface"
    NAMESPACE = "namespace"


STDLIB_VERSION = "stdlib"
LATEST_VERSION = "latest"
UNKNOWN_PACKAGE = "unknown"
MAX_SUGGESTIONS = 5


class _Record(BaseModel):
    """Immutable result entity, serialized with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PackageRecord(_Record):
    name: str = Field(min_length=1, description="Package, crate, module or artifact identifier")
    version: str = Field(description="Declared version, or 'stdlib' for standard-library units")
    description: Optional[str] = Field(default=None, description="Human readable summary when known")
    installed: bool = Field(default=False, description="Whether the package is present locally")
    declared_path: Optional[str] = Field(
        default=None,
        description="Manifest file declaring the package, or its install location",
    )
    category: Optional[str] = Field(default=None, description="Best category, set by affordance search")
    score: Optional[float] = Field(default=None, description="Relevance score, set by affordance search")


class ValidationOutcome(_Record):
    valid: bool
    package_name: str = Field(description="Root identifier, or 'unknown' when the statement did not parse")
    resolved_path: Optional[str] = None
    reason: Optional[str] = Field(
        default=None,
        description="Why the import is invalid, or informational text for valid imports",
    )
    suggestions: list[str] = Field(default_factory=list, max_length=MAX_SUGGESTIONS)


class Parameter(_Record):
    name: str
    type: str = "any"
    optional: bool = False


class ExportDescriptor(_Record):
    name: str
    kind: ExportKind
    signature: Optional[str] = None
    description: Optional[str] = None
    parameters: Optional[list[Parameter]] = None
    return_type: Optional[str] = None


class ModuleDescriptor(_Record):
    name: str
    resolved_path: str = Field(default="", description="Resolved location, empty when unresolved")
    exports: list[ExportDescriptor] = Field(default_factory=list)
    submodules: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)

    @classmethod
    def unresolved(cls, name: str) -> "ModuleDescriptor":
        return cls(name=name)


class DiscoveryBatch(_Record):
    packages: list[PackageRecord] = Field(default_factory=list)
    total_found: int = Field(ge=0)
    search_term: Optional[str] = None
    ecosystem: Ecosystem
    produced_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Operation inputs ---


class _Request(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class DiscoverRequest(_Request):
    search_term: Optional[str] = None
    include_dev_dependencies: bool = False
    max_results: int = Field(default=50, ge=1, le=100)


class ValidateRequest(_Request):
    import_statement: str
    project_path: Optional[str] = None


class IntrospectRequest(_Request):
    module_name: str = Field(min_length=1)
    include_private: bool = False
    max_depth: int = Field(default=2, ge=1, le=5)


class SearchRequest(_Request):
    query: str = Field(min_length=1)
    category: Category = Category.ALL
    max_results: int = Field(default=20, ge=1, le=50)
