from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from labops.core import process
from labops.core.handlers.base import ToolHandler, ZeroIsSuccessMixin


class GitHandler(ZeroIsSuccessMixin, ToolHandler):
    """git client used for mirror clones and bundles."""

    env_var = "LABOPS_GIT"
    default_executable = "git"
    flag_prefix = "-"

    def __init__(self, name: str = "git", version: str = "1.0.0") -> None:
        super().__init__(name=name, version=version)

    def normalize_option(self, option: str) -> str:
        """Single letters become `-x`, longer names `--name`."""
        option = option.strip()
        if not option or option.startswith("-"):
            return option
        bare = option.lstrip("/")
        return f"-{bare}" if len(bare) == 1 else f"--{bare}"

    def clone_args(self, url: str, path: str, options: Optional[Iterable[str]] = None) -> List[str]:
        return ["clone", *self.normalize_options(options), url, str(path)]

    def clone_mirror_args(self, url: str, path: str) -> List[str]:
        return self.clone_args(url, path, ["mirror"])

    def remote_update_args(self, path: str) -> List[str]:
        return ["-C", str(path), "remote", "update", "--prune"]

    def config_get_args(self, path: str, key: str) -> List[str]:
        return ["-C", str(path), "config", "--get", key]

    def bundle_create_args(self, path: str, bundle_file: str) -> List[str]:
        return ["-C", str(path), "bundle", "create", str(bundle_file), "--all"]

    async def get_config(self, path: Path, key: str) -> Optional[str]:
        """Read one config value; None when unset or the repository is unreadable.

        Queried directly instead of through `run` since a missing key exits 1
        and is not a tool failure.
        """
        try:
            result = await process.run_command([self.executable, *self.config_get_args(str(path), key)])
        except OSError:
            return None
        if not result.ok:
            return None
        return result.stdout.strip() or None

    async def is_verified_mirror(self, path: Path, expected_url: Optional[str] = None) -> bool:
        """`remote.origin.mirror` is true and, when given, `remote.origin.url` matches."""
        if not Path(path).is_dir():
            return False
        mirror_flag = await self.get_config(path, "remote.origin.mirror")
        if (mirror_flag or "").lower() != "true":
            return False
        origin_url = await self.get_config(path, "remote.origin.url")
        if not origin_url:
            return False
        return expected_url is None or origin_url == expected_url
