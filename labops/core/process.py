"""Subprocess helpers shared by tool handlers and services.

Every external program is started with `asyncio.create_subprocess_exec` and
awaited to completion before the next one starts.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence


logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a finished external command."""

    args: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def build_env(extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Copy the current environment and overlay `extra`."""
    env = os.environ.copy()
    if extra:
        env.update(extra)
    return env


async def run_command(
    cmd: Sequence[str],
    *,
    env: Optional[Mapping[str, str]] = None,
    stdin_devnull: bool = False,
    timeout: Optional[float] = None,
    cwd: Optional[str] = None,
) -> CommandResult:
    """Run `cmd` to completion and capture its output.

    Raises OSError when the executable cannot be started and
    asyncio.TimeoutError when `timeout` elapses (the child is killed first).
    """
    args = [str(a) for a in cmd]
    logger.debug("command_start | cmd=%s", " ".join(args))
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL if stdin_devnull else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
            cwd=cwd,
        )
    except OSError as exc:
        logger.error("command_exec_error | cmd=%s error=%s", args[0], exc)
        raise

    try:
        if timeout is not None:
            stdout_data, stderr_data = await asyncio.wait_for(proc.communicate(), timeout)
        else:
            stdout_data, stderr_data = await proc.communicate()
    except asyncio.TimeoutError:
        logger.warning("command_timeout | cmd=%s timeout=%s", args[0], timeout)
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        raise

    result = CommandResult(
        args=args,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=(stdout_data or b"").decode(errors="ignore"),
        stderr=(stderr_data or b"").decode(errors="ignore"),
    )
    logger.debug("command_finished | cmd=%s returncode=%s", args[0], result.returncode)
    return result


async def spawn_detached(
    cmd: Sequence[str],
    *,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[str] = None,
) -> "asyncio.subprocess.Process":
    """Start `cmd` in its own session with output discarded and return the process."""
    args = [str(a) for a in cmd]
    logger.info("command_spawn | cmd=%s", " ".join(args))
    return await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
        env=dict(env) if env is not None else None,
        cwd=cwd,
        start_new_session=True,
    )


def get_executable(env_var: str, default: str) -> str:
    """Resolve an executable path from `env_var`, falling back to `default`."""
    value = os.getenv(env_var)
    if value and value.strip():
        return value.strip()
    return default
