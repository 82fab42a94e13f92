from __future__ import annotations

from typing import List, Optional

from labops.core.handlers.base import ToolHandler, ZeroIsSuccessMixin


REPO_FIELDS = "name,url,isArchived"


class GhHandler(ZeroIsSuccessMixin, ToolHandler):
    """GitHub CLI, used only to enumerate repositories of the authenticated account."""

    env_var = "LABOPS_GH"
    default_executable = "gh"
    flag_prefix = "--"

    def __init__(self, name: str = "gh", version: str = "1.0.0") -> None:
        super().__init__(name=name, version=version)

    def repo_list_args(self, owner: Optional[str] = None, limit: int = 1000) -> List[str]:
        args = ["repo", "list"]
        if owner:
            args.append(owner)
        args.extend(["--json", REPO_FIELDS, "--limit", str(limit)])
        return args
