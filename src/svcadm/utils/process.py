"""Host subprocess helpers."""

import asyncio
import logging
import subprocess
from typing import List, Optional


logger = logging.getLogger(__name__)


async def run_command(cmd: List[str], timeout: Optional[float] = None) -> str:
    """Run a host command and return its stdout.

    Raises CalledProcessError on a non-zero exit and TimeoutExpired when
    ``timeout`` elapses; the process is killed in that case.
    """
    logger.debug(f"Running command: {' '.join(cmd)}")
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise subprocess.TimeoutExpired(cmd, timeout)

    out = stdout.decode(errors="replace")
    if process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode, cmd, output=out, stderr=stderr.decode(errors="replace")
        )
    return out
