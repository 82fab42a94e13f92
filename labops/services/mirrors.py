"""Mirror clones of GitHub repositories and point-in-time git bundles.

A directory counts as a mirror only when `remote.origin.mirror` is true and
its origin URL is the expected clone URL. Anything else, including a mirror
whose update fails, is deleted and cloned again.
"""

from __future__ import annotations

import fnmatch
import logging
import tempfile
from datetime import date
from pathlib import Path
from typing import Optional

from labops.core.handlers import get_handler
from labops.schemas.config import GitBundle, MirrorClone, Strategy
from labops.services.github import Repository, list_repositories
from labops.services.rotation import FileOperations, RotationService


logger = logging.getLogger(__name__)


def bundle_name(directory_name: str) -> str:
    """`my.repo.git` -> `my_repo`; dots would be read as extensions by the rotation."""
    name = directory_name[:-4] if directory_name.endswith(".git") else directory_name
    return name.replace(".", "_")


class MirrorService:
    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self.git = get_handler("git")
        self.ops = FileOperations(dry_run=dry_run)

    async def sync_repository(self, repo: Repository, root: Path) -> bool:
        path = root / f"{repo.name}.git"
        if path.exists():
            if await self.git.is_verified_mirror(path, repo.clone_url):
                result = await self.git.run(self.git.remote_update_args(str(path)), dry_run=self.dry_run)
                if result.succeeded:
                    logger.info("mirror_updated | repo=%s path=%s", repo.name, path)
                    return True
                logger.warning("mirror_update_failed | repo=%s path=%s action=reclone", repo.name, path)
            else:
                logger.warning("mirror_mismatch | repo=%s path=%s action=reclone", repo.name, path)
            if not self.ops.remove(path):
                return False

        result = await self.git.run(self.git.clone_mirror_args(repo.clone_url, str(path)), dry_run=self.dry_run)
        if result.succeeded:
            logger.info("mirror_cloned | repo=%s path=%s", repo.name, path)
        return result.succeeded

    async def sync_all(self, destination: MirrorClone) -> bool:
        """Keep a mirror of every non-archived repository under `destination.path`."""
        root = Path(destination.path)
        if not self.ops.makedirs(root):
            return False

        try:
            repositories = await list_repositories(destination.owner, destination.limit)
        except RuntimeError as exc:
            logger.error("mirror_list_failed | path=%s error=%s", root, exc)
            return False

        ok = True
        synced = 0
        for repo in repositories:
            if repo.is_archived:
                logger.debug("mirror_skip_archived | repo=%s", repo.name)
                continue
            if await self.sync_repository(repo, root):
                synced += 1
            else:
                ok = False

        logger.info(
            "mirror_sync_finished | path=%s synced=%s success=%s dry_run=%s", root, synced, ok, self.dry_run
        )
        return ok


class BundleService:
    def __init__(self, strategy: Optional[Strategy] = None, *, dry_run: bool = False) -> None:
        self.strategy = strategy or Strategy()
        self.dry_run = dry_run
        self.git = get_handler("git")
        self.ops = FileOperations(dry_run=dry_run)

    async def create_bundles(self, destination: GitBundle, today: Optional[date] = None) -> bool:
        """Bundle every verified mirror under `destination.source` and rotate the results.

        Bundles are written into a temporary directory first and moved into the
        rotation cache only once complete.
        """
        source = Path(destination.source)
        if not source.is_dir():
            logger.error("bundle_source_missing | path=%s", source)
            return False

        rotation = RotationService(destination.path, self.strategy, dry_run=self.dry_run)
        ok = rotation.initialize_directories()
        created = 0

        with tempfile.TemporaryDirectory(prefix="labops-bundles-") as tmp:
            for repo_dir in sorted(source.iterdir()):
                if not repo_dir.is_dir() or not fnmatch.fnmatch(repo_dir.name, destination.pattern):
                    continue
                if not await self.git.is_verified_mirror(repo_dir):
                    logger.warning("bundle_skip_not_mirror | path=%s", repo_dir)
                    continue

                bundle_file = Path(tmp) / f"{bundle_name(repo_dir.name)}.bundle"
                result = await self.git.run(
                    self.git.bundle_create_args(str(repo_dir), str(bundle_file)), dry_run=self.dry_run
                )
                if not result.succeeded:
                    ok = False
                    continue
                if self.ops.move(bundle_file, rotation.cache_dir / bundle_file.name):
                    created += 1
                else:
                    ok = False

        rotated = rotation.rotate(today)
        ok = ok and rotated.success
        logger.info(
            "bundle_run_finished | source=%s destination=%s created=%s success=%s dry_run=%s",
            source,
            destination.path,
            created,
            ok,
            self.dry_run,
        )
        return ok
