"""CLI entry point: python -m affordance_discovery [--project-root DIR]"""

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from .cache import TTLCache
from .config import DiscoveryConfig
from .models import ValidateRequest
from .registry import EngineRegistry, UnsupportedEcosystemError
from .server import DEFAULT_ECOSYSTEM, create_server

log = logging.getLogger(__name__)


def _check(registry: EngineRegistry, statement: str, ecosystem: str) -> dict:
    engine = registry.get(ecosystem)
    outcome = asyncio.run(engine.validate_import(ValidateRequest(import_statement=statement)))
    return outcome.to_json_dict()


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Serve package discovery and import validation tools over MCP (stdio).",
    )
    parser.add_argument(
        "--project-root",
        help="Directory where manifest searches start (default: AFFORDANCE_PROJECT_ROOT or cwd)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--check",
        metavar="STATEMENT",
        help="Validate one import statement, print the outcome as JSON and exit",
    )
    parser.add_argument(
        "--ecosystem",
        default=DEFAULT_ECOSYSTEM,
        help=f"Ecosystem for --check (default: {DEFAULT_ECOSYSTEM})",
    )
    parser.add_argument(
        "-o", "--output",
        help="Also write the --check JSON to this file",
    )
    args = parser.parse_args()

    if args.output and not args.check:
        print("Error: --output requires --check", file=sys.stderr)
        sys.exit(1)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = DiscoveryConfig.from_env()
    except ValueError as e:
        print(f"Config error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.project_root:
        root = Path(args.project_root).expanduser()
        if not root.is_dir():
            print(f"Project root is not a directory: {args.project_root}", file=sys.stderr)
            sys.exit(1)
        config = config.with_project_root(root)

    cache = TTLCache(ttl=config.cache_ttl, max_size=config.cache_max_size, sweep=not args.check)
    registry = EngineRegistry(cache, config.project_root, config.tool_timeout)

    if args.check:
        t0 = time.time()
        try:
            output = _check(registry, args.check, args.ecosystem)
        except UnsupportedEcosystemError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        finally:
            registry.close()
        output["executionTimeMs"] = round((time.time() - t0) * 1000, 1)

        json_str = json.dumps(output, indent=2)
        print(json_str)
        if args.output:
            Path(args.output).write_text(json_str)
            print(f"Results written to {args.output}", file=sys.stderr)
        if not output["valid"]:
            sys.exit(1)
        return

    log.info("Serving %s on stdio for %s", ", ".join(registry.supported()), config.project_root)
    try:
        create_server(registry).run()
    finally:
        registry.close()


if __name__ == "__main__":
    main()
