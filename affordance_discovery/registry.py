"""One discovery engine per ecosystem, sharing a single cache."""

import logging
from pathlib import Path
from typing import Optional

from .cache import TTLCache
from .engines import (
    DiscoveryEngine,
    GoEngine,
    JavaEngine,
    JavaScriptEngine,
    PythonEngine,
    RustEngine,
)
from .models import Ecosystem
from .shell import DEFAULT_TIMEOUT

log = logging.getLogger(__name__)

ENGINE_TYPES: dict[Ecosystem, type[DiscoveryEngine]] = {
    Ecosystem.JAVASCRIPT: JavaScriptEngine,
    Ecosystem.PYTHON: PythonEngine,
    Ecosystem.RUST: RustEngine,
    Ecosystem.GO: GoEngine,
    Ecosystem.JAVA: JavaEngine,
}


class UnsupportedEcosystemError(ValueError):
    def __init__(self, name: str):
        self.name = name
        supported = ", ".join(e.value for e in ENGINE_TYPES)
        super().__init__(f"Unsupported ecosystem: {name}. Supported: {supported}")


class EngineRegistry:
    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        project_root: Optional[Path] = None,
        tool_timeout: float = DEFAULT_TIMEOUT,
    ):
        self.cache = cache if cache is not None else TTLCache()
        self.project_root = (project_root or Path.cwd()).resolve()
        self._engines: dict[Ecosystem, DiscoveryEngine] = {
            ecosystem: engine_type(self.cache, self.project_root, tool_timeout)
            for ecosystem, engine_type in ENGINE_TYPES.items()
        }
        log.debug("Engines ready for %s under %s", ", ".join(self.supported()), self.project_root)

    def get(self, name: str) -> DiscoveryEngine:
        """Engine for ``name`` (case-insensitive)."""
        try:
            ecosystem = Ecosystem(name.strip().lower())
        except (ValueError, AttributeError):
            raise UnsupportedEcosystemError(name) from None
        return self._engines[ecosystem]

    def supported(self) -> list[str]:
        return [e.value for e in self._engines]

    def is_supported(self, name: str) -> bool:
        try:
            self.get(name)
        except UnsupportedEcosystemError:
            return False
        return True

    def stats(self) -> dict:
        stats = self.cache.stats()
        return {
            "cache": {
                "size": stats.size,
                "maxSize": stats.max_size,
                "approxMemory": stats.approx_memory,
                "hits": stats.hits,
                "misses": stats.misses,
                "hitRate": stats.hit_rate,
            },
            "engines": self.supported(),
        }

    def close(self) -> None:
        self.cache.close()
