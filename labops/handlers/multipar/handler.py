from __future__ import annotations

from typing import Iterable, List, Optional

from labops.core.handlers.base import ToolHandler, ZeroIsSuccessMixin


class MultiParHandler(ZeroIsSuccessMixin, ToolHandler):
    """MultiPar command line client (`par2j64.exe`) creating PAR2 recovery files."""

    env_var = "LABOPS_MULTIPAR"
    default_executable = "par2j64"
    flag_prefix = "/"

    def __init__(self, name: str = "multipar", version: str = "1.0.0") -> None:
        super().__init__(name=name, version=version)

    def build_args(
        self,
        parity_file: str,
        inputs: Iterable[str],
        options: Optional[Iterable[str]] = None,
        *,
        redundancy_rate: int = 10,
    ) -> List[str]:
        """`c /rr<rate> <options> <parity_file> <inputs...>`."""
        args = ["c", f"/rr{redundancy_rate}"]
        args.extend(opt for opt in self.normalize_options(options) if not opt.lower().startswith("/rr"))
        args.append(str(parity_file))
        args.extend(str(i) for i in inputs)
        return args
