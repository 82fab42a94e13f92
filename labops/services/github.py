"""GitHub repository enumeration (via `gh`) and plain clones."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from labops.core.handlers import get_handler


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Repository:
    name: str
    url: str
    is_archived: bool = False

    @property
    def clone_url(self) -> str:
        return self.url if self.url.endswith(".git") else f"{self.url}.git"


async def list_repositories(owner: Optional[str] = None, limit: int = 1000) -> List[Repository]:
    """Repositories visible to the authenticated `gh` account.

    Raises RuntimeError when `gh` fails or prints something that is not the
    expected JSON list.
    """
    gh = get_handler("gh")
    result = await gh.run(gh.repo_list_args(owner, limit))
    if not result.succeeded:
        raise RuntimeError(f"gh repo list failed: {result.stderr.strip() or result.detail}")
    try:
        rows = json.loads(result.stdout or "[]")
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"unexpected gh output: {exc}") from exc
    if not isinstance(rows, list):
        raise RuntimeError("unexpected gh output: not a list")

    repositories = [
        Repository(name=row["name"], url=row["url"], is_archived=bool(row.get("isArchived", False)))
        for row in rows
        if isinstance(row, dict) and row.get("name") and row.get("url")
    ]
    logger.info("github_repositories_listed | owner=%s count=%s", owner or "@me", len(repositories))
    return repositories


class GitHubCloneService:
    """Clone every repository of an owner that is not present locally yet."""

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self.git = get_handler("git")

    async def clone_all(
        self,
        destination: Union[str, Path],
        *,
        owner: Optional[str] = None,
        include_archived: bool = False,
        limit: int = 1000,
    ) -> bool:
        dest = Path(destination)
        if not self.dry_run:
            dest.mkdir(parents=True, exist_ok=True)

        ok = True
        cloned = skipped = 0
        for repo in await list_repositories(owner, limit):
            if repo.is_archived and not include_archived:
                logger.debug("github_clone_skip_archived | repo=%s", repo.name)
                skipped += 1
                continue
            path = dest / repo.name
            if path.exists():
                logger.info("github_clone_exists | repo=%s path=%s", repo.name, path)
                skipped += 1
                continue
            result = await self.git.run(self.git.clone_args(repo.clone_url, str(path)), dry_run=self.dry_run)
            if result.succeeded:
                cloned += 1
            else:
                ok = False

        logger.info(
            "github_clone_finished | destination=%s cloned=%s skipped=%s success=%s dry_run=%s",
            dest,
            cloned,
            skipped,
            ok,
            self.dry_run,
        )
        return ok
