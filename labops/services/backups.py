"""Backup job orchestration: robocopy -> 7-Zip -> MultiPar -> rotation per target.

Per target and local drive the pipeline runs strictly in order and stops at the
first failing stage. SMB shares receive a copy of the rotated tiers of the
first local root that succeeded; without one the share is skipped. A failing
target never stops the remaining targets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence

from labops.core.handlers import get_handler
from labops.domain.artifacts import is_parity_file
from labops.domain.enums import TargetRunStatus, Tier
from labops.schemas.config import BackupConfig, LocalDrive, SmbShare, Target
from labops.services.mirrors import BundleService, MirrorService
from labops.services.rotation import TIER_DIRS, RotationService


logger = logging.getLogger(__name__)

MIRROR_DIR = "mirror"


@dataclass
class TargetOutcome:
    target: str
    destination: str
    status: TargetRunStatus
    detail: str = ""


@dataclass
class BackupRunResult:
    outcomes: List[TargetOutcome] = field(default_factory=list)
    mirrors_ok: bool = True
    bundles_ok: bool = True

    @property
    def success(self) -> bool:
        return (
            self.mirrors_ok
            and self.bundles_ok
            and all(o.status is not TargetRunStatus.FAILED for o in self.outcomes)
        )

    @property
    def failed(self) -> List[TargetOutcome]:
        return [o for o in self.outcomes if o.status is TargetRunStatus.FAILED]


def _applies(destination: LocalDrive | SmbShare, target: Target) -> bool:
    return destination.targets is None or target.name in destination.targets


def _cache_files(rotation: RotationService, prefix: str) -> List[Path]:
    if not rotation.cache_dir.is_dir():
        return []
    return sorted(p for p in rotation.cache_dir.glob(f"{prefix}*") if p.is_file())


class BackupJobService:
    """Run every configured backup job once."""

    def __init__(
        self,
        config: BackupConfig,
        *,
        dry_run: bool = False,
        today: Optional[date] = None,
    ) -> None:
        self.config = config
        self.dry_run = dry_run
        self.today = today or date.today()
        self.robocopy = get_handler("robocopy")
        self.sevenzip = get_handler("7zip")
        self.multipar = get_handler("multipar")

    async def run_all(self, only: Optional[Sequence[str]] = None) -> BackupRunResult:
        """Back up all targets (or just `only`), then mirrors and bundles.

        Raises ValueError when `only` names a target that is not configured.
        """
        if only:
            unknown = sorted({name for name in only if self.config.get_target(name) is None})
            if unknown:
                raise ValueError(f"unknown targets: {', '.join(unknown)}")
        targets = [t for t in self.config.targets if not only or t.name in only]

        result = BackupRunResult()
        for target in targets:
            logger.info("backup_target_start | target=%s source=%s", target.name, target.source)
            result.outcomes.extend(await self.run_target(target))

        if not only:
            mirrors = MirrorService(dry_run=self.dry_run)
            for mirror in self.config.destinations.mirror_clones:
                result.mirrors_ok = await mirrors.sync_all(mirror) and result.mirrors_ok
            bundles = BundleService(self.config.strategy, dry_run=self.dry_run)
            for bundle in self.config.destinations.git_bundles:
                result.bundles_ok = await bundles.create_bundles(bundle, self.today) and result.bundles_ok

        logger.info(
            "backup_run_finished | targets=%s failed=%s mirrors_ok=%s bundles_ok=%s dry_run=%s",
            len(targets),
            len(result.failed),
            result.mirrors_ok,
            result.bundles_ok,
            self.dry_run,
        )
        return result

    async def run_target(self, target: Target) -> List[TargetOutcome]:
        outcomes: List[TargetOutcome] = []
        local_root: Optional[Path] = None

        for drive in self.config.destinations.local_drives:
            if not _applies(drive, target):
                continue
            outcome = await self.backup_to_local(target, drive)
            outcomes.append(outcome)
            if outcome.status is TargetRunStatus.SUCCESS and local_root is None:
                local_root = Path(drive.path) / target.folder

        for share in self.config.destinations.smb_shares:
            if not _applies(share, target):
                continue
            if local_root is None:
                logger.warning("backup_smb_skipped | target=%s share=%s reason=no_local_backup", target.name, share.path)
                outcomes.append(TargetOutcome(target.name, share.path, TargetRunStatus.SKIPPED, "no local backup"))
                continue
            outcomes.append(await self.copy_to_share(target, local_root, share))

        return outcomes

    def _fail(self, target: Target, destination: str, detail: str) -> TargetOutcome:
        logger.error("backup_target_failed | target=%s destination=%s detail=%s", target.name, destination, detail)
        return TargetOutcome(target.name, destination, TargetRunStatus.FAILED, detail)

    async def backup_to_local(self, target: Target, drive: LocalDrive) -> TargetOutcome:
        root = Path(drive.path) / target.folder
        source = Path(target.source)
        if not source.exists():
            return self._fail(target, drive.path, f"source not found: {source}")

        rotation = RotationService(root, self.config.strategy, dry_run=self.dry_run)
        if not rotation.initialize_directories():
            return self._fail(target, drive.path, f"cannot create directories under {root}")
        mirror_dir = root / MIRROR_DIR
        if not rotation.ops.makedirs(mirror_dir):
            return self._fail(target, drive.path, f"cannot create {mirror_dir}")

        handlers = self.config.handlers

        copied = await self.robocopy.run(
            self.robocopy.build_args(str(source), str(mirror_dir), handlers.robocopy.options),
            dry_run=self.dry_run,
        )
        if not copied.succeeded:
            return self._fail(target, drive.path, f"robocopy: {copied.detail}")

        archive = rotation.cache_dir / f"{target.name}.{handlers.sevenzip.archive_type}"
        # `7z a` appends to an existing archive; leftovers of an aborted run go first
        for stale in _cache_files(rotation, archive.name):
            if not rotation.ops.remove(stale):
                return self._fail(target, drive.path, f"cannot remove stale archive {stale}")

        archived = await self.sevenzip.run(
            self.sevenzip.build_args(
                str(archive),
                [str(mirror_dir / "*")],
                handlers.sevenzip.options,
                volume_size=handlers.sevenzip.volume_size,
                archive_type=handlers.sevenzip.archive_type,
            ),
            dry_run=self.dry_run,
        )
        if not archived.succeeded:
            return self._fail(target, drive.path, f"7zip: {archived.detail}")

        if handlers.multipar.redundancy_rate > 0:
            volumes = [p for p in _cache_files(rotation, archive.name) if not is_parity_file(p.name)]
            for volume in volumes:
                parity = await self.multipar.run(
                    self.multipar.build_args(
                        f"{volume}.par2",
                        [str(volume)],
                        handlers.multipar.options,
                        redundancy_rate=handlers.multipar.redundancy_rate,
                    ),
                    dry_run=self.dry_run,
                )
                if not parity.succeeded:
                    return self._fail(target, drive.path, f"multipar: {parity.detail}")

        rotated = rotation.rotate(self.today)
        if not rotated.success:
            return self._fail(target, drive.path, "rotation finished with errors")

        logger.info(
            "backup_target_local_done | target=%s root=%s moved=%s promoted=%s deleted=%s",
            target.name,
            root,
            len(rotated.moved),
            len(rotated.promoted),
            len(rotated.deleted),
        )
        return TargetOutcome(target.name, drive.path, TargetRunStatus.SUCCESS, copied.detail)

    async def copy_to_share(self, target: Target, local_root: Path, share: SmbShare) -> TargetOutcome:
        remote_root = Path(share.path) / target.folder
        for tier in Tier:
            source = local_root / TIER_DIRS[tier]
            if not source.is_dir() and not self.dry_run:
                continue
            copied = await self.robocopy.run(
                self.robocopy.build_args(
                    str(source), str(remote_root / TIER_DIRS[tier]), self.config.handlers.robocopy.options
                ),
                dry_run=self.dry_run,
            )
            if not copied.succeeded:
                return self._fail(target, share.path, f"robocopy {tier.value}: {copied.detail}")

        logger.info("backup_target_smb_done | target=%s share=%s", target.name, remote_root)
        return TargetOutcome(target.name, share.path, TargetRunStatus.SUCCESS)
