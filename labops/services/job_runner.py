"""Start a long-running job-runner executable, locally or on a remote host."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from pathlib import Path
from typing import List, Optional, Sequence

from labops.core import process


logger = logging.getLogger(__name__)

EXECUTABLE_ENV = "LABOPS_JOB_RUNNER"
GRACE_SECONDS = 2.0


def resolve_executable(executable: Optional[str] = None) -> str:
    value = executable or os.getenv(EXECUTABLE_ENV)
    if not value or not value.strip():
        raise ValueError(f"no job runner executable given and {EXECUTABLE_ENV} is not set")
    return value.strip()


class JobRunnerService:
    def __init__(self, *, grace_seconds: float = GRACE_SECONDS) -> None:
        self.grace_seconds = grace_seconds

    async def start_local(self, executable: str, args: Sequence[str] = ()) -> bool:
        """Spawn detached; fails only if the runner dies with an error during the grace period."""
        path = Path(executable)
        if not path.is_file():
            raise FileNotFoundError(f"job runner not found: {executable}")

        proc = await process.spawn_detached([str(path), *args], cwd=str(path.parent))
        try:
            returncode = await asyncio.wait_for(proc.wait(), self.grace_seconds)
        except asyncio.TimeoutError:
            logger.info("job_runner_started | executable=%s pid=%s", path, proc.pid)
            return True

        if returncode != 0:
            logger.error("job_runner_exited | executable=%s returncode=%s", path, returncode)
            return False
        logger.info("job_runner_finished_early | executable=%s", path)
        return True

    def remote_args(
        self,
        host: str,
        user: str,
        executable: str,
        args: Sequence[str] = (),
        key_path: Optional[str] = None,
    ) -> List[str]:
        command = shlex.join([executable, *args])
        cmd = ["ssh", "-o", "StrictHostKeyChecking=no"]
        if key_path:
            cmd.extend(["-i", key_path])
        cmd.extend([f"{user}@{host}", f"nohup {command} >/dev/null 2>&1 &"])
        return cmd

    async def start_remote(
        self,
        host: str,
        user: str,
        executable: str,
        args: Sequence[str] = (),
        key_path: Optional[str] = None,
    ) -> bool:
        result = await process.run_command(self.remote_args(host, user, executable, args, key_path), stdin_devnull=True)
        if not result.ok:
            logger.error(
                "job_runner_remote_failed | host=%s returncode=%s stderr=%s", host, result.returncode, result.stderr.strip()
            )
            return False
        logger.info("job_runner_started | host=%s executable=%s", host, executable)
        return True
