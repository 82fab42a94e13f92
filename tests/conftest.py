"""Root conftest for tests directory."""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Tuple

import pytest

from labops.schemas.config import BackupConfig


class DummyProcess:
    def __init__(self, returncode=0, stdout=b"", stderr=b"", pid=4242):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr
        self.pid = pid
        self.killed = False

    async def communicate(self):
        return self._stdout, self._stderr

    async def wait(self):
        return self.returncode

    def kill(self):
        self.killed = True


class ExecRecorder:
    """Stand-in for `asyncio.create_subprocess_exec` that records every call.

    Rules are checked in the order they were added; a rule matches when its
    needle is a substring of the space-joined command line.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[List[str], dict]] = []
        self._rules: List[Tuple[str, Callable[[List[str], dict], DummyProcess]]] = []

    def on(
        self,
        needle: str,
        returncode: int = 0,
        stdout: bytes = b"",
        stderr: bytes = b"",
        side_effect: Optional[Callable[[List[str], dict], Optional[DummyProcess]]] = None,
    ) -> "ExecRecorder":
        def _respond(args: List[str], kwargs: dict) -> DummyProcess:
            if side_effect is not None:
                proc = side_effect(args, kwargs)
                if proc is not None:
                    return proc
            return DummyProcess(returncode=returncode, stdout=stdout, stderr=stderr)

        self._rules.append((needle, _respond))
        return self

    async def __call__(self, *args, **kwargs):
        argv = [str(a) for a in args]
        self.calls.append((argv, kwargs))
        line = " ".join(argv)
        for needle, respond in self._rules:
            if needle in line:
                return respond(argv, kwargs)
        return DummyProcess()

    @property
    def commands(self) -> List[List[str]]:
        return [argv for argv, _ in self.calls]

    def find(self, needle: str) -> List[List[str]]:
        return [argv for argv in self.commands if needle in " ".join(argv)]


@pytest.fixture()
def fake_exec(monkeypatch) -> ExecRecorder:
    """Replace subprocess creation; tests declare responses with `fake_exec.on(...)`."""
    recorder = ExecRecorder()
    monkeypatch.setattr(asyncio, "create_subprocess_exec", recorder)
    return recorder


@pytest.fixture()
def backup_config(tmp_path) -> BackupConfig:
    """One target with one local drive and one SMB share, all under tmp_path."""
    source = tmp_path / "source"
    source.mkdir()
    (source / "file.txt").write_text("payload")
    return BackupConfig.model_validate(
        {
            "strategy": {"number_of_daily_backups": 3, "day_of_week": "sunday"},
            "handlers": {
                "robocopy": {"options": ["MIR", "R:2"]},
                "7zip": {"options": ["mx9"]},
                "multipar": {"redundancy_rate": 5},
            },
            "targets": [{"name": "docs", "source": str(source), "destination": "documents"}],
            "destinations": {
                "local_drives": [{"path": str(tmp_path / "local")}],
                "smb_shares": [{"path": str(tmp_path / "share")}],
            },
        }
    )
