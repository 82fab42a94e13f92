"""Rotation service: daily/weekly/monthly tiers driven by file names.

A rotation root holds `cache/` (fresh output of the compression stage) and one
folder per tier. Files are tagged `<base>-<tier>-<YYYYMMDD>-<Dayname><ext>`;
the name is the only state. Promotion copies daily backups into the weekly
tier and moves weekly backups into the monthly tier. Retention keeps the
newest N dates per base name in each tier.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

from labops.domain.artifacts import BackupArtifact, has_date_suffix, split_extension
from labops.domain.enums import DAY_NAMES, Tier
from labops.schemas.config import Strategy


logger = logging.getLogger(__name__)

CACHE_DIR = "cache"
TIER_DIRS = {Tier.DAILY: "daily", Tier.WEEKLY: "weekly", Tier.MONTHLY: "monthly"}

# A daily backup must be older than this to become a weekly one
WEEKLY_MIN_AGE_DAYS = 7
# A weekly backup must be older than this to become a monthly one
MONTHLY_MIN_AGE_DAYS = 30

# base name -> date -> files of that date
TierIndex = Dict[str, Dict[date, List[Tuple[Path, BackupArtifact]]]]


class FileOperations:
    """Mutating file-system calls with a shared dry-run switch.

    Every method returns True on success; failures are logged and reported as
    False so callers can keep looping. Under dry-run nothing touches disk, but
    the planned additions and removals are recorded so `list_files` shows the
    directory as a real run would have left it.
    """

    def __init__(self, dry_run: bool = False, logger_: Optional[logging.Logger] = None) -> None:
        self.dry_run = dry_run
        self._logger = logger_ or logger
        self._planned_added: Set[Path] = set()
        self._planned_removed: Set[Path] = set()

    def _apply(
        self,
        op: str,
        action: Callable[[], None],
        plan: Optional[Callable[[], None]] = None,
        **details: object,
    ) -> bool:
        rendered = " ".join(f"{k}={v}" for k, v in details.items())
        if self.dry_run:
            self._logger.info("dry_run | op=%s %s", op, rendered)
            if plan is not None:
                plan()
            return True
        try:
            action()
        except OSError as exc:
            self._logger.error("file_%s_failed | %s error=%s", op, rendered, exc)
            return False
        self._logger.debug("file_%s | %s", op, rendered)
        return True

    def _plan_add(self, path: Path) -> None:
        self._planned_removed.discard(path)
        self._planned_added.add(path)

    def _plan_remove(self, path: Path) -> None:
        self._planned_added.discard(path)
        self._planned_removed.add(path)

    def list_files(self, directory: Path) -> List[Path]:
        """Sorted files of `directory`, including dry-run changes planned so far."""
        files = set()
        if directory.is_dir():
            files.update(p for p in directory.iterdir() if p.is_file())
        files.difference_update(self._planned_removed)
        files.update(p for p in self._planned_added if p.parent == directory)
        return sorted(files)

    def makedirs(self, path: Path) -> bool:
        if path.is_dir():
            return True
        return self._apply("mkdir", lambda: path.mkdir(parents=True, exist_ok=True), path=path)

    def move(self, src: Path, dst: Path) -> bool:
        def _move() -> None:
            if dst.exists():
                dst.unlink()
            shutil.move(os.fspath(src), os.fspath(dst))

        def _plan() -> None:
            self._plan_remove(src)
            self._plan_add(dst)

        return self._apply("move", _move, _plan, src=src, dst=dst)

    def copy(self, src: Path, dst: Path) -> bool:
        return self._apply("copy", lambda: shutil.copy2(src, dst), lambda: self._plan_add(dst), src=src, dst=dst)

    def remove(self, path: Path) -> bool:
        def _remove() -> None:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()

        return self._apply("remove", _remove, lambda: self._plan_remove(path), path=path)


@dataclass
class RotationResult:
    """What a rotation step did (or would do under dry-run)."""

    success: bool = True
    moved: List[str] = field(default_factory=list)
    promoted: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def merge(self, other: "RotationResult") -> "RotationResult":
        self.success = self.success and other.success
        self.moved.extend(other.moved)
        self.promoted.extend(other.promoted)
        self.deleted.extend(other.deleted)
        self.skipped.extend(other.skipped)
        return self


class RotationService:
    """Rotate the backup files of one root directory."""

    def __init__(
        self,
        root: Union[str, Path],
        strategy: Optional[Strategy] = None,
        *,
        dry_run: bool = False,
    ) -> None:
        self.root = Path(root)
        self.strategy = strategy or Strategy()
        self.dry_run = dry_run
        self.ops = FileOperations(dry_run=dry_run)

    @property
    def cache_dir(self) -> Path:
        return self.root / CACHE_DIR

    def tier_dir(self, tier: Tier) -> Path:
        return self.root / TIER_DIRS[tier]

    @property
    def promotion_weekday(self) -> int:
        return DAY_NAMES.index(self.strategy.day_of_week)

    def initialize_directories(self) -> bool:
        ok = True
        for path in [self.cache_dir, *(self.tier_dir(t) for t in Tier)]:
            ok = self.ops.makedirs(path) and ok
        return ok

    def _scan(self, tier: Tier) -> TierIndex:
        index: TierIndex = defaultdict(lambda: defaultdict(list))
        for path in self.ops.list_files(self.tier_dir(tier)):
            artifact = BackupArtifact.parse(path.name)
            if artifact is None or artifact.tier is not tier:
                logger.debug("rotation_ignored_file | path=%s", path)
                continue
            index[artifact.base][artifact.date].append((path, artifact))
        return index

    def move_to_daily(self, today: date) -> RotationResult:
        """Tag every cache file with today's date and move it into the daily tier."""
        result = RotationResult()
        if not self.cache_dir.is_dir():
            logger.info("rotation_no_cache | root=%s", self.root)
            return result

        daily_dir = self.tier_dir(Tier.DAILY)
        result.success = self.ops.makedirs(daily_dir)

        # Group by stem so an archive and its parity files travel together
        groups: Dict[str, List[Path]] = defaultdict(list)
        for path in self.ops.list_files(self.cache_dir):
            if has_date_suffix(path.name):
                logger.warning("rotation_already_dated | path=%s", path)
                result.skipped.append(str(path))
                continue
            groups[split_extension(path.name)[0]].append(path)

        for stem in sorted(groups):
            for path in groups[stem]:
                artifact = BackupArtifact.for_file(path.name, Tier.DAILY, today)
                destination = daily_dir / artifact.filename
                if self.ops.move(path, destination):
                    result.moved.append(str(destination))
                else:
                    result.success = False

        logger.info(
            "rotation_moved_to_daily | root=%s moved=%s skipped=%s dry_run=%s",
            self.root,
            len(result.moved),
            len(result.skipped),
            self.dry_run,
        )
        return result

    def _promote(
        self,
        source: Tier,
        target: Tier,
        today: date,
        min_age_days: int,
        already_promoted: Callable[[date, Dict[date, list]], bool],
        transfer: Callable[[Path, Path], bool],
    ) -> RotationResult:
        result = RotationResult()
        source_index = self._scan(source)
        target_index = self._scan(target)
        target_dir = self.tier_dir(target)

        for base in sorted(source_index):
            by_date = source_index[base]
            eligible = [
                d for d in by_date
                if d.weekday() == self.promotion_weekday and (today - d).days > min_age_days
            ]
            if not eligible:
                continue
            chosen = max(eligible)
            if already_promoted(chosen, target_index.get(base, {})):
                logger.debug(
                    "rotation_promotion_exists | base=%s date=%s tier=%s", base, chosen, target.value
                )
                continue

            if not self.ops.makedirs(target_dir):
                result.success = False
                continue
            for path, artifact in by_date[chosen]:
                destination = target_dir / artifact.with_tier(target).filename
                if transfer(path, destination):
                    result.promoted.append(str(destination))
                else:
                    result.success = False
            logger.info(
                "rotation_promoted | base=%s date=%s from=%s to=%s files=%s dry_run=%s",
                base,
                chosen,
                source.value,
                target.value,
                len(by_date[chosen]),
                self.dry_run,
            )
        return result

    def promote_daily_to_weekly(self, today: date) -> RotationResult:
        """Copy the latest eligible daily date into the weekly tier (daily copy stays)."""
        return self._promote(
            Tier.DAILY,
            Tier.WEEKLY,
            today,
            WEEKLY_MIN_AGE_DAYS,
            lambda chosen, existing: chosen in existing,
            self.ops.copy,
        )

    def promote_weekly_to_monthly(self, today: date) -> RotationResult:
        """Move the latest eligible weekly date into the monthly tier, once per calendar month.

        Unlike daily -> weekly this removes the file from the weekly tier.
        """
        return self._promote(
            Tier.WEEKLY,
            Tier.MONTHLY,
            today,
            MONTHLY_MIN_AGE_DAYS,
            lambda chosen, existing: any(
                (d.year, d.month) == (chosen.year, chosen.month) for d in existing
            ),
            self.ops.move,
        )

    def apply_retention(self, tier: Tier, limit: int) -> RotationResult:
        """Keep the newest `limit` dates per base name; delete every file of older dates."""
        result = RotationResult()
        if limit <= 0:
            logger.info("rotation_retention_disabled | root=%s tier=%s", self.root, tier.value)
            return result

        for base, by_date in sorted(self._scan(tier).items()):
            dates = sorted(by_date, reverse=True)
            for expired in dates[limit:]:
                for path, _ in by_date[expired]:
                    if self.ops.remove(path):
                        result.deleted.append(str(path))
                    else:
                        result.success = False

        logger.info(
            "rotation_retention_applied | root=%s tier=%s limit=%s deleted=%s dry_run=%s",
            self.root,
            tier.value,
            limit,
            len(result.deleted),
            self.dry_run,
        )
        return result

    def rotate(self, today: Optional[date] = None) -> RotationResult:
        """Full cycle: init, tag cache, promote, then enforce retention per tier."""
        today = today or date.today()
        result = RotationResult(success=self.initialize_directories())
        result.merge(self.move_to_daily(today))
        result.merge(self.promote_daily_to_weekly(today))
        result.merge(self.promote_weekly_to_monthly(today))
        limits = {
            Tier.DAILY: self.strategy.number_of_daily_backups,
            Tier.WEEKLY: self.strategy.number_of_weekly_backups,
            Tier.MONTHLY: self.strategy.number_of_monthly_backups,
        }
        for tier, limit in limits.items():
            result.merge(self.apply_retention(tier, limit))

        log = logger.info if result.success else logger.warning
        log(
            "rotation_finished | root=%s success=%s moved=%s promoted=%s deleted=%s dry_run=%s",
            self.root,
            result.success,
            len(result.moved),
            len(result.promoted),
            len(result.deleted),
            self.dry_run,
        )
        return result
