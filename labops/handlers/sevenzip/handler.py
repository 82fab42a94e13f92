from __future__ import annotations

from typing import Iterable, List, Optional

from labops.core.handlers.base import ToolHandler, ZeroIsSuccessMixin


class SevenZipHandler(ZeroIsSuccessMixin, ToolHandler):
    """7-Zip archiver (`7z.exe` / `7z`). Only exit code 0 is a success."""

    env_var = "LABOPS_7ZIP"
    default_executable = "7z"
    config_key = "7zip"
    flag_prefix = "-"

    def __init__(self, name: str = "sevenzip", version: str = "1.0.0") -> None:
        super().__init__(name=name, version=version)

    def build_args(
        self,
        archive: str,
        sources: Iterable[str],
        options: Optional[Iterable[str]] = None,
        *,
        volume_size: Optional[str] = None,
        archive_type: str = "7z",
    ) -> List[str]:
        """`a -t<type> [-v<size>] <options> -y <archive> <sources...>`."""
        args = ["a", f"-t{archive_type}"]
        if volume_size:
            args.append(f"-v{volume_size}")
        args.extend(self.normalize_options(options))
        args.append("-y")
        args.append(str(archive))
        args.extend(str(s) for s in sources)
        return args
