"""Job-runner sub-command."""

from __future__ import annotations

from typing import Optional, Tuple

import click

from labops.cli.common import CONTEXT_SETTINGS, finish, run_async, user_errors
from labops.services.job_runner import JobRunnerService, resolve_executable


@click.command(name="start-job-runner", context_settings=CONTEXT_SETTINGS)
@click.option("-e", "--executable", help="Job runner executable. Defaults to $LABOPS_JOB_RUNNER.")
@click.option("--host", help="Start on this host over SSH instead of locally.")
@click.option("-u", "--user", help="SSH user for --host.")
@click.option("-k", "--key", "key_path", help="SSH private key for --host.")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def start_job_runner(
    executable: Optional[str],
    host: Optional[str],
    user: Optional[str],
    key_path: Optional[str],
    args: Tuple[str, ...],
) -> None:
    """Start the job runner detached; extra ARGS are passed through."""
    with user_errors():
        exe = resolve_executable(executable)

    service = JobRunnerService()
    if host:
        if not user:
            raise click.UsageError("--host requires --user")
        ok = run_async(service.start_remote(host, user, exe, args, key_path))
    else:
        ok = run_async(service.start_local(exe, args))
    finish(ok, "Job runner started.", "Job runner failed to start.")
