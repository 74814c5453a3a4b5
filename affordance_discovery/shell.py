"""Bounded external tool invocation.

Engines shell out to package managers and language runtimes (npm, node,
go). Any failure - missing executable, non-zero exit, timeout - is logged
and reported as None so discovery carries on with its other sources.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def which(executable: str) -> Optional[str]:
    return shutil.which(executable)


async def run_command(
    argv: list[str],
    cwd: Optional[Path] = None,
    timeout: float = DEFAULT_TIMEOUT,
    env: Optional[dict[str, str]] = None,
) -> Optional[str]:
    """
    Run a command and return its stdout.

    Args:
        argv: Program and arguments, no shell interpolation.
        cwd: Working directory.
        timeout: Seconds before the process is killed.
        env: Extra environment variables layered over os.environ.

    Returns:
        Decoded stdout on exit status 0, otherwise None.
    """
    if not argv or which(argv[0]) is None:
        log.debug("Executable not found: %s", argv[0] if argv else "<empty>")
        return None

    merged_env = {**os.environ, **env} if env else None
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        log.warning("Cannot start %s: %s", argv[0], e)
        return None

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        log.warning("%s timed out after %.1fs", argv[0], timeout)
        proc.kill()
        await proc.wait()
        return None

    if proc.returncode != 0:
        log.warning(
            "%s exited with %s: %s",
            " ".join(argv[:3]), proc.returncode,
            stderr.decode("utf-8", errors="replace").strip()[:200],
        )
        return None
    return stdout.decode("utf-8", errors="replace")
