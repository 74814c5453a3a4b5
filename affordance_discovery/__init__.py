from .cache import TTLCache
from .config import DiscoveryConfig
from .models import (
    Category,
    DiscoveryBatch,
    Ecosystem,
    ExportDescriptor,
    ModuleDescriptor,
    PackageRecord,
    ValidationOutcome,
)
from .registry import EngineRegistry, UnsupportedEcosystemError
from .server import create_server

__all__ = [
    "Category",
    "DiscoveryBatch",
    "DiscoveryConfig",
    "Ecosystem",
    "EngineRegistry",
    "ExportDescriptor",
    "ModuleDescriptor",
    "PackageRecord",
    "TTLCache",
    "UnsupportedEcosystemError",
    "ValidationOutcome",
    "create_server",
]
