"""Backup, rotation and repository sub-commands."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import click

from labops.cli.common import CONTEXT_SETTINGS, finish, run_async, user_errors
from labops.core.config import CONFIG_ENV_VAR, load_backup_config
from labops.domain.enums import TargetRunStatus
from labops.schemas.config import BackupConfig, GitBundle, MirrorClone, Strategy
from labops.services.backups import BackupJobService
from labops.services.github import GitHubCloneService
from labops.services.mirrors import BundleService, MirrorService
from labops.services.rotation import RotationService


config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Backup configuration (TOML). Defaults to $LABOPS_BACKUP_CONFIG.",
)
dry_run_option = click.option("--dry-run", is_flag=True, help="Log what would happen without changing anything.")
today_option = click.option(
    "--today",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Pretend the run happens on this date (YYYY-MM-DD).",
)

_MARKERS = {TargetRunStatus.SUCCESS: "OK", TargetRunStatus.FAILED: "FAILED", TargetRunStatus.SKIPPED: "SKIPPED"}


def _load(config_path: Optional[Path]) -> BackupConfig:
    with user_errors():
        return load_backup_config(config_path)


def _strategy(config_path: Optional[Path]) -> Strategy:
    """Strategy of the configuration named by `--config` or the environment, else defaults."""
    if config_path or os.getenv(CONFIG_ENV_VAR):
        return _load(config_path).strategy
    return Strategy()


@click.command(name="backup", context_settings=CONTEXT_SETTINGS)
@config_option
@click.option("-t", "--target", "targets", multiple=True, metavar="<name>", help="Only back up these targets.")
@dry_run_option
@today_option
def backup(config_path: Optional[Path], targets: Tuple[str, ...], dry_run: bool, today: Optional[datetime]) -> None:
    """Run every backup job: copy, archive, parity, rotate, then mirrors and bundles."""
    config = _load(config_path)
    service = BackupJobService(config, dry_run=dry_run, today=today.date() if today else None)
    result = run_async(service.run_all(list(targets) or None))

    for outcome in result.outcomes:
        line = f"[{_MARKERS[outcome.status]}] {outcome.target} -> {outcome.destination}"
        click.echo(f"{line} ({outcome.detail})" if outcome.detail else line)
    finish(result.success, "All backup jobs completed.", f"{len(result.failed)} backup job(s) failed.")


@click.command(name="rotate", context_settings=CONTEXT_SETTINGS)
@click.argument("root", type=click.Path(file_okay=False, path_type=Path))
@config_option
@click.option("--daily", type=int, help="Daily dates to keep (overrides the configuration).")
@click.option("--weekly", type=int, help="Weekly dates to keep (overrides the configuration).")
@click.option("--monthly", type=int, help="Monthly dates to keep (overrides the configuration).")
@click.option("--day-of-week", help="Promotion weekday (overrides the configuration).")
@dry_run_option
@today_option
def rotate(
    root: Path,
    config_path: Optional[Path],
    daily: Optional[int],
    weekly: Optional[int],
    monthly: Optional[int],
    day_of_week: Optional[str],
    dry_run: bool,
    today: Optional[datetime],
) -> None:
    """Rotate ROOT: tag cache files, promote to weekly/monthly, enforce retention."""
    strategy = _strategy(config_path)
    overrides = {
        "number_of_daily_backups": daily,
        "number_of_weekly_backups": weekly,
        "number_of_monthly_backups": monthly,
        "day_of_week": day_of_week,
    }
    with user_errors():
        strategy = Strategy.model_validate(
            {**strategy.model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
        )

    result = RotationService(root, strategy, dry_run=dry_run).rotate(today.date() if today else None)
    click.echo(
        f"moved={len(result.moved)} promoted={len(result.promoted)} "
        f"deleted={len(result.deleted)} skipped={len(result.skipped)}"
    )
    finish(result.success, "Rotation completed.", "Rotation finished with errors.")


@click.command(name="sync-mirrors", context_settings=CONTEXT_SETTINGS)
@config_option
@click.option("--path", type=click.Path(file_okay=False, path_type=Path), help="Mirror root (instead of the configuration).")
@click.option("--owner", help="GitHub owner (default: authenticated account).")
@click.option("--limit", type=int, default=1000, help="Maximum repositories to list.")
@dry_run_option
def sync_mirrors(
    config_path: Optional[Path], path: Optional[Path], owner: Optional[str], limit: int, dry_run: bool
) -> None:
    """Create or update `git clone --mirror` copies of every non-archived repository."""
    if path is not None:
        destinations: List[MirrorClone] = [MirrorClone(path=str(path), owner=owner, limit=limit)]
    else:
        destinations = _load(config_path).destinations.mirror_clones
    if not destinations:
        raise click.UsageError("no mirror destination: pass --path or configure destinations.mirror_clones")

    async def _run() -> bool:
        service = MirrorService(dry_run=dry_run)
        ok = True
        for destination in destinations:
            ok = await service.sync_all(destination) and ok
        return ok

    finish(run_async(_run()), "Mirrors are up to date.", "Some mirrors could not be synchronized.")


@click.command(name="create-bundles", context_settings=CONTEXT_SETTINGS)
@config_option
@click.option("--source", type=click.Path(file_okay=False, path_type=Path), help="Mirror root to bundle.")
@click.option("--path", type=click.Path(file_okay=False, path_type=Path), help="Bundle destination root.")
@click.option("--pattern", default="*.git", help="Glob for repository directories.")
@dry_run_option
@today_option
def create_bundles(
    config_path: Optional[Path],
    source: Optional[Path],
    path: Optional[Path],
    pattern: str,
    dry_run: bool,
    today: Optional[datetime],
) -> None:
    """Write a `git bundle` per mirror into a rotated destination."""
    if (source is None) != (path is None):
        raise click.UsageError("--source and --path go together")
    if source is not None:
        strategy = _strategy(config_path)
        bundles = [GitBundle(source=str(source), path=str(path), pattern=pattern)]
    else:
        config = _load(config_path)
        strategy, bundles = config.strategy, config.destinations.git_bundles
    if not bundles:
        raise click.UsageError("no bundle destination: pass --source/--path or configure destinations.git_bundles")

    async def _run() -> bool:
        service = BundleService(strategy, dry_run=dry_run)
        ok = True
        for bundle in bundles:
            ok = await service.create_bundles(bundle, today.date() if today else None) and ok
        return ok

    finish(run_async(_run()), "Bundles created.", "Some bundles could not be created.")


@click.command(name="clone-repos", context_settings=CONTEXT_SETTINGS)
@click.argument("destination", type=click.Path(file_okay=False, path_type=Path))
@click.option("--owner", help="GitHub owner (default: authenticated account).")
@click.option("--include-archived", is_flag=True, help="Clone archived repositories too.")
@click.option("--limit", type=int, default=1000, help="Maximum repositories to list.")
@dry_run_option
def clone_repos(destination: Path, owner: Optional[str], include_archived: bool, limit: int, dry_run: bool) -> None:
    """Clone every repository that is not present under DESTINATION yet."""
    service = GitHubCloneService(dry_run=dry_run)
    ok = run_async(service.clone_all(destination, owner=owner, include_archived=include_archived, limit=limit))
    finish(ok, "Repositories cloned.", "Some repositories could not be cloned.")
