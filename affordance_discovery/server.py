"""MCP transport: four discovery tools over one EngineRegistry.

The ``handle_*`` coroutines hold the tool logic and return JSON-ready dicts
with camelCase keys; ``create_server`` only wires them into FastMCP.
"""

import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import BaseModel, ValidationError

from .engines import DiscoveryEngine
from .models import (
    Ecosystem,
    DiscoverRequest,
    IntrospectRequest,
    SearchRequest,
    ValidateRequest,
)
from .registry import EngineRegistry, UnsupportedEcosystemError

log = logging.getLogger(__name__)

SERVER_NAME = "affordance-discovery"
DEFAULT_ECOSYSTEM = Ecosystem.JAVASCRIPT.value


def _engine(registry: EngineRegistry, ecosystem: str) -> DiscoveryEngine:
    try:
        return registry.get(ecosystem)
    except UnsupportedEcosystemError as e:
        raise ToolError(str(e)) from e


def _request(model: type[BaseModel], **fields) -> BaseModel:
    try:
        return model(**fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ToolError(f"Invalid arguments: {problems}") from e


async def handle_discover_packages(
    registry: EngineRegistry,
    ecosystem: str = DEFAULT_ECOSYSTEM,
    search_term: Optional[str] = None,
    include_dev_dependencies: bool = False,
    max_results: int = 50,
) -> dict:
    engine = _engine(registry, ecosystem)
    request = _request(
        DiscoverRequest,
        search_term=search_term,
        include_dev_dependencies=include_dev_dependencies,
        max_results=max_results,
    )
    batch = await engine.discover_packages(request)
    log.debug("discover %s %r: %d of %d", ecosystem, search_term, len(batch.packages), batch.total_found)
    return batch.to_json_dict()


async def handle_validate_import(
    registry: EngineRegistry,
    import_statement: str,
    ecosystem: str = DEFAULT_ECOSYSTEM,
    project_path: Optional[str] = None,
) -> dict:
    engine = _engine(registry, ecosystem)
    request = _request(ValidateRequest, import_statement=import_statement, project_path=project_path)
    outcome = await engine.validate_import(request)
    return outcome.to_json_dict()


async def handle_introspect_module(
    registry: EngineRegistry,
    module_name: str,
    ecosystem: str = DEFAULT_ECOSYSTEM,
    include_private: bool = False,
    max_depth: int = 2,
) -> dict:
    engine = _engine(registry, ecosystem)
    request = _request(
        IntrospectRequest,
        module_name=module_name,
        include_private=include_private,
        max_depth=max_depth,
    )
    descriptor = await engine.introspect_module(request)
    return descriptor.to_json_dict()


async def handle_search_affordances(
    registry: EngineRegistry,
    query: str,
    ecosystem: str = DEFAULT_ECOSYSTEM,
    category: str = "all",
    max_results: int = 20,
) -> dict:
    engine = _engine(registry, ecosystem)
    request = _request(SearchRequest, query=query, category=category, max_results=max_results)
    batch = await engine.search_affordances(request)
    return batch.to_json_dict()


def create_server(registry: EngineRegistry) -> FastMCP:
    server = FastMCP(SERVER_NAME)

    @server.tool()
    async def discover_packages(
        ecosystem: str = DEFAULT_ECOSYSTEM,
        search_term: Optional[str] = None,
        include_dev_dependencies: bool = False,
        max_results: int = 50,
    ) -> dict:
        """List packages available to the project: declared dependencies, global installs
        and standard-library modules whose names contain ``search_term``."""
        return await handle_discover_packages(
            registry, ecosystem, search_term, include_dev_dependencies, max_results,
        )

    @server.tool()
    async def validate_import(
        import_statement: str,
        ecosystem: str = DEFAULT_ECOSYSTEM,
        project_path: Optional[str] = None,
    ) -> dict:
        """Check whether an import statement refers to something that actually exists.
        Invalid outcomes carry a reason and up to five similar package names."""
        return await handle_validate_import(registry, import_statement, ecosystem, project_path)

    @server.tool()
    async def introspect_module(
        module_name: str,
        ecosystem: str = DEFAULT_ECOSYSTEM,
        include_private: bool = False,
        max_depth: int = 2,
    ) -> dict:
        """Describe a module's exports (name, kind, signature), submodules and dependencies."""
        return await handle_introspect_module(
            registry, module_name, ecosystem, include_private, max_depth,
        )

    @server.tool()
    async def search_affordances(
        query: str,
        ecosystem: str = DEFAULT_ECOSYSTEM,
        category: str = "all",
        max_results: int = 20,
    ) -> dict:
        """Rank available packages by relevance to a functionality query.
        category is one of ui, data, network, testing, build, utility or all."""
        return await handle_search_affordances(registry, query, ecosystem, category, max_results)

    return server
