"""
epg.engine.process

Async subprocess runner for the PostgreSQL command-line tools.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path

from epg.errors import EngineError, describe
from epg.observability.logging import get_logger

log = get_logger(__name__)


async def run_command(
    program: Path,
    *args: str,
    error: type[EngineError] = EngineError,
    env: Mapping[str, str] | None = None,
) -> str:
    """
    Run `program` to completion and return its stdout.

    A missing binary or a non-zero exit status is raised as `error`, with the
    tail of stderr in the message.
    """

    log.debug("run_command", program=program.name, args=list(args))
    try:
        proc = await asyncio.create_subprocess_exec(
            str(program),
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
        )
        stdout, stderr = await proc.communicate()
    except OSError as exc:
        raise error(f"failed to run {program}: {describe(exc)}") from exc

    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip()[-2000:]
        raise error(f"{program.name} exited with status {proc.returncode}: {detail}")
    return stdout.decode(errors="replace")
