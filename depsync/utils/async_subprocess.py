"""Async subprocess utilities.

Runs the native git client without blocking the event loop.

Example:
    >>> from depsync.utils.async_subprocess import run_command
    >>> stdout, stderr, code = await run_command("git", "status", "--porcelain", cwd="/repo")
"""

import asyncio
import os
import subprocess
from pathlib import Path


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = None,
    env: dict[str, str] | None = None,
) -> tuple[str, str, int]:
    """Run a command asynchronously without shell interpolation.

    Args:
        *args: Command and arguments as separate strings,
            e.g. ``"git", "push", "--force-with-lease", "origin", branch``.
        cwd: Working directory for command execution.
        check: Raise CalledProcessError when the command exits non-zero.
        timeout: Maximum seconds to wait; the process is killed on expiry.
        env: Extra environment variables layered over the current process
            environment.

    Returns:
        Tuple of (stdout, stderr, return_code), decoded as UTF-8 with
        replacement for invalid bytes.

    Raises:
        subprocess.CalledProcessError: If check=True and the command fails.
        TimeoutError: If the timeout is exceeded.
        FileNotFoundError: If the executable is not installed.
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env={**os.environ, **env} if env else None,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        raise

    stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
    stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")

    if check and process.returncode != 0:
        raise subprocess.CalledProcessError(process.returncode or 1, args, stdout, stderr)

    return stdout, stderr, process.returncode or 0
