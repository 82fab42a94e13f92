"""Base classes for external tool handlers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from labops.core import process
from labops.domain.enums import ToolOutcome


@dataclass
class ToolResult:
    """Classified outcome of one tool invocation."""

    handler: str
    outcome: ToolOutcome
    returncode: int
    detail: str
    args: List[str] = field(default_factory=list)
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome.succeeded


class ToolHandler(ABC):
    """Base class for all tool handlers.

    Subclasses declare where their executable comes from, how option flags are
    prefixed, and how exit codes map to a `ToolOutcome`.
    """

    env_var: str = ""
    default_executable: str = ""
    config_key: Optional[str] = None
    flag_prefix: str = "-"

    def __init__(self, name: str, version: str = "1.0.0"):
        """Initialize handler with name and version."""
        self.name = name
        self.version = version
        self._logger = logging.getLogger(f"labops.handlers.{name}")

    @property
    def executable(self) -> str:
        return process.get_executable(self.env_var, self.default_executable)

    def normalize_option(self, option: str) -> str:
        """Ensure `option` carries this tool's flag prefix."""
        option = option.strip()
        if not option or option.startswith(self.flag_prefix):
            return option
        return self.flag_prefix + option.lstrip("-/")

    def normalize_options(self, options: Optional[Iterable[str]]) -> List[str]:
        return [opt for opt in (self.normalize_option(o) for o in (options or [])) if opt]

    @abstractmethod
    def classify(self, returncode: int) -> Tuple[ToolOutcome, str]:
        """Map an exit code to an outcome bucket and a human readable detail."""

    async def run(
        self,
        args: Sequence[str],
        *,
        dry_run: bool = False,
        cwd: Optional[str] = None,
    ) -> ToolResult:
        """Invoke the executable with `args` and classify its exit code."""
        cmd = [self.executable, *[str(a) for a in args]]
        if dry_run:
            self._logger.info("dry_run | handler=%s cmd=%s", self.name, " ".join(cmd))
            return ToolResult(self.name, ToolOutcome.SUCCESS, 0, "dry run", args=cmd)

        self._logger.info("tool_start | handler=%s cmd=%s", self.name, " ".join(cmd))
        try:
            result = await process.run_command(cmd, cwd=cwd)
        except OSError as exc:
            return ToolResult(self.name, ToolOutcome.FAILURE, -1, f"cannot execute {cmd[0]}: {exc}", args=cmd)

        outcome, detail = self.classify(result.returncode)
        tool_result = ToolResult(
            self.name,
            outcome,
            result.returncode,
            detail,
            args=cmd,
            stdout=result.stdout,
            stderr=result.stderr,
        )
        if outcome is ToolOutcome.FAILURE:
            self._logger.error(
                "tool_failed | handler=%s returncode=%s detail=%s stderr=%s",
                self.name,
                result.returncode,
                detail,
                result.stderr.strip(),
            )
        elif outcome is ToolOutcome.SUCCESS_WITH_WARNINGS:
            self._logger.warning(
                "tool_warning | handler=%s returncode=%s detail=%s", self.name, result.returncode, detail
            )
        else:
            self._logger.info("tool_success | handler=%s returncode=%s detail=%s", self.name, result.returncode, detail)
        return tool_result

    def get_info(self) -> Dict[str, str]:
        """Get handler information."""
        return {
            "name": self.name,
            "version": self.version,
            "type": self.__class__.__name__,
            "executable": self.executable,
        }


class ZeroIsSuccessMixin:
    """Classification for tools where only exit code 0 means success."""

    def classify(self, returncode: int) -> Tuple[ToolOutcome, str]:
        if returncode == 0:
            return ToolOutcome.SUCCESS, "completed"
        return ToolOutcome.FAILURE, f"exit code {returncode}"
