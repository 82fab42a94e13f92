"""Click group behind the `labops` script.

Global flags choose the log level and where the per-run log file goes; every
sub-command lives in a sibling module and is registered at the bottom.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from labops import __version__
from labops.cli.common import CONTEXT_SETTINGS
from labops.core.logging import default_log_path, setup_logging


@click.group(context_settings=CONTEXT_SETTINGS, help="Homelab administration: backups, mirrors, SSH and Hyper-V helpers.")
@click.version_option(__version__, prog_name="labops")
@click.option("-v", "--verbose", is_flag=True, help="INFO-level console output (default unless LOG_LEVEL says otherwise).")
@click.option("--debug", is_flag=True, help="DEBUG-level console output.")
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="LABOPS_LOG_DIR",
    help="Directory for the per-run log file (default: system temp directory).",
)
@click.option("--no-log-file", is_flag=True, help="Log to the console only.")
@click.pass_context
def main(ctx: click.Context, verbose: bool, debug: bool, log_dir: Optional[Path], no_log_file: bool) -> None:
    level = "DEBUG" if debug else ("INFO" if verbose else None)
    log_file = None
    if not no_log_file and ctx.invoked_subcommand:
        log_file = default_log_path(ctx.invoked_subcommand, str(log_dir) if log_dir else None)
    setup_logging(level, log_file)


from labops.cli.backup import backup, clone_repos, create_bundles, rotate, sync_mirrors  # noqa: E402
from labops.cli.handlers import list_tool_handlers  # noqa: E402
from labops.cli.jobs import start_job_runner  # noqa: E402
from labops.cli.network import refresh_hostkeys, set_static_ip  # noqa: E402
from labops.cli.vm import import_vm  # noqa: E402

for _command in (
    backup,
    rotate,
    sync_mirrors,
    create_bundles,
    clone_repos,
    refresh_hostkeys,
    set_static_ip,
    import_vm,
    start_job_runner,
    list_tool_handlers,
):
    main.add_command(_command)
