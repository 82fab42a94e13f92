from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from labops.core.handlers.base import ToolHandler
from labops.domain.enums import RobocopyStatus, ToolOutcome


# Exit code is a bit field: 1 copied, 2 extra, 4 mismatched, 8 copy errors, 16 fatal.
_STATUS_DETAIL = {
    RobocopyStatus.NO_CHANGE: "no files copied, source and destination in sync",
    RobocopyStatus.COPIED: "files copied successfully",
    RobocopyStatus.COPIED_WITH_EXTRAS: "files copied, extra files or directories detected",
    RobocopyStatus.MISMATCH: "mismatched files or directories detected",
    RobocopyStatus.FAILED: "copy failures occurred",
}


def robocopy_status(returncode: int) -> RobocopyStatus:
    if returncode == 0:
        return RobocopyStatus.NO_CHANGE
    if returncode == 1:
        return RobocopyStatus.COPIED
    if returncode in (2, 3):
        return RobocopyStatus.COPIED_WITH_EXTRAS
    if 4 <= returncode <= 7:
        return RobocopyStatus.MISMATCH
    return RobocopyStatus.FAILED


class RobocopyHandler(ToolHandler):
    """Robust file copy (`robocopy.exe`).

    Codes 0-3 succeed, 4-7 succeed with warnings, 8 and above fail.
    """

    env_var = "LABOPS_ROBOCOPY"
    default_executable = "robocopy"
    flag_prefix = "/"

    def __init__(self, name: str = "robocopy", version: str = "1.0.0") -> None:
        super().__init__(name=name, version=version)

    def build_args(
        self,
        source: str,
        destination: str,
        options: Optional[Iterable[str]] = None,
        files: Optional[Iterable[str]] = None,
    ) -> List[str]:
        return [str(source), str(destination), *(files or []), *self.normalize_options(options)]

    def classify(self, returncode: int) -> Tuple[ToolOutcome, str]:
        status = robocopy_status(returncode)
        if status is RobocopyStatus.FAILED:
            outcome = ToolOutcome.FAILURE
        elif status is RobocopyStatus.MISMATCH:
            outcome = ToolOutcome.SUCCESS_WITH_WARNINGS
        else:
            outcome = ToolOutcome.SUCCESS
        return outcome, _STATUS_DETAIL[status]
