"""Discovery server settings from environment."""

import os
from dataclasses import dataclass
from pathlib import Path


def _positive_number(name: str, raw: str, cast, invalid: list[str]):
    try:
        value = cast(raw)
    except ValueError:
        invalid.append(f"{name}={raw!r}")
        return None
    if value <= 0:
        invalid.append(f"{name}={raw!r}")
        return None
    return value


@dataclass(frozen=True)
class DiscoveryConfig:
    project_root: Path
    cache_ttl: float = 300.0
    cache_max_size: int = 1000
    tool_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "DiscoveryConfig":
        """Load from environment variables.

        All optional:
          - AFFORDANCE_PROJECT_ROOT: where manifest searches start (default: cwd)
          - AFFORDANCE_CACHE_TTL: cache entry lifetime in seconds (default: 300)
          - AFFORDANCE_CACHE_MAX_SIZE: cache capacity (default: 1000)
          - AFFORDANCE_TOOL_TIMEOUT: seconds allowed per external tool call (default: 30)
        """
        root = os.getenv("AFFORDANCE_PROJECT_ROOT", "")
        invalid: list[str] = []

        project_root = Path(os.path.expanduser(root)).resolve() if root else Path.cwd()
        if root and not project_root.is_dir():
            invalid.append(f"AFFORDANCE_PROJECT_ROOT={root!r} (not a directory)")

        ttl = _positive_number(
            "AFFORDANCE_CACHE_TTL", os.getenv("AFFORDANCE_CACHE_TTL", "300"), float, invalid,
        )
        max_size = _positive_number(
            "AFFORDANCE_CACHE_MAX_SIZE", os.getenv("AFFORDANCE_CACHE_MAX_SIZE", "1000"), int, invalid,
        )
        timeout = _positive_number(
            "AFFORDANCE_TOOL_TIMEOUT", os.getenv("AFFORDANCE_TOOL_TIMEOUT", "30"), float, invalid,
        )
        if invalid:
            raise ValueError(f"Invalid env vars: {', '.join(invalid)}")

        return cls(
            project_root=project_root,
            cache_ttl=ttl,
            cache_max_size=max_size,
            tool_timeout=timeout,
        )

    def with_project_root(self, root: Path) -> "DiscoveryConfig":
        return DiscoveryConfig(
            project_root=root.resolve(),
            cache_ttl=self.cache_ttl,
            cache_max_size=self.cache_max_size,
            tool_timeout=self.tool_timeout,
        )
