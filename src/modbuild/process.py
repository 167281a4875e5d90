"""Running external toolchain processes."""

from __future__ import annotations

import asyncio
import logging
import shlex
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path


logger = logging.getLogger(__name__)

# Shell convention for "command not found"; used when the process never started
LAUNCH_FAILURE_EXIT_CODE = 127


@dataclass
class ProcessResult:
    """Outcome of one external invocation."""

    argv: list[str]
    returncode: int
    duration_ms: float
    output: str | None = None
    error: OSError | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def launched(self) -> bool:
        return self.error is None


Launcher = Callable[[Sequence[str], Path, bool], Awaitable[ProcessResult]]


async def run_process(argv: Sequence[str], cwd: Path, capture: bool = False) -> ProcessResult:
    """Run ``argv`` in ``cwd`` and wait for it to exit.

    Args:
        argv: Program and arguments.
        cwd: Working directory for the process.
        capture: Collect stdout and stderr (merged) instead of inheriting the terminal.

    Returns:
        ProcessResult with the exit status. A process that cannot be started
        is reported with ``LAUNCH_FAILURE_EXIT_CODE`` and the OSError attached.
    """
    argv = list(argv)
    logger.debug("Launching %s (cwd=%s)", shlex.join(argv), cwd)
    start = time.perf_counter()

    stream = asyncio.subprocess.PIPE if capture else None
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            stdout=stream,
            stderr=asyncio.subprocess.STDOUT if capture else None,
        )
    except OSError as e:
        duration = (time.perf_counter() - start) * 1000
        logger.debug("Could not launch %s: %s", argv[0], e)
        return ProcessResult(
            argv=argv,
            returncode=LAUNCH_FAILURE_EXIT_CODE,
            duration_ms=duration,
            error=e,
        )

    stdout, _ = await proc.communicate()
    duration = (time.perf_counter() - start) * 1000
    returncode = proc.returncode if proc.returncode is not None else 1
    if returncode < 0:
        # Killed by a signal; report it the way a shell would
        returncode = 128 - returncode
    logger.debug("%s exited with %d after %.0fms", argv[0], returncode, duration)

    output = stdout.decode("utf-8", errors="replace") if stdout is not None else None
    return ProcessResult(argv=argv, returncode=returncode, duration_ms=duration, output=output)
