from __future__ import annotations

import pytest

from labops.domain.enums import RobocopyStatus, ToolOutcome
from labops.handlers.robocopy import RobocopyHandler, robocopy_status


@pytest.mark.parametrize(
    "code,status,outcome",
    [
        (0, RobocopyStatus.NO_CHANGE, ToolOutcome.SUCCESS),
        (1, RobocopyStatus.COPIED, ToolOutcome.SUCCESS),
        (2, RobocopyStatus.COPIED_WITH_EXTRAS, ToolOutcome.SUCCESS),
        (3, RobocopyStatus.COPIED_WITH_EXTRAS, ToolOutcome.SUCCESS),
        (4, RobocopyStatus.MISMATCH, ToolOutcome.SUCCESS_WITH_WARNINGS),
        (7, RobocopyStatus.MISMATCH, ToolOutcome.SUCCESS_WITH_WARNINGS),
        (8, RobocopyStatus.FAILED, ToolOutcome.FAILURE),
        (16, RobocopyStatus.FAILED, ToolOutcome.FAILURE),
    ],
)
def test_exit_code_classification(code, status, outcome):
    handler = RobocopyHandler()
    assert robocopy_status(code) is status
    assert handler.classify(code)[0] is outcome


def test_build_args_normalizes_slash_flags():
    handler = RobocopyHandler()
    args = handler.build_args("C:/src", "D:/dst", ["MIR", "/R:2", "-W:5", " "])
    assert args == ["C:/src", "D:/dst", "/MIR", "/R:2", "/W:5"]


def test_build_args_with_file_filter():
    handler = RobocopyHandler()
    assert handler.build_args("a", "b", None, ["*.7z"]) == ["a", "b", "*.7z"]


@pytest.mark.asyncio
async def test_run_treats_mismatch_as_warning(fake_exec):
    fake_exec.on("robocopy", returncode=5)
    result = await RobocopyHandler().run(["a", "b"])
    assert result.outcome is ToolOutcome.SUCCESS_WITH_WARNINGS
    assert result.succeeded is True


@pytest.mark.asyncio
async def test_run_failure_keeps_stderr(fake_exec):
    fake_exec.on("robocopy", returncode=8, stderr=b"ERROR 5 (0x00000005) Access is denied.")
    result = await RobocopyHandler().run(["a", "b"])
    assert result.succeeded is False
    assert "Access is denied" in result.stderr


@pytest.mark.asyncio
async def test_executable_from_environment(fake_exec, monkeypatch):
    monkeypatch.setenv("LABOPS_ROBOCOPY", "C:/Windows/System32/Robocopy.exe")
    await RobocopyHandler().run(["a", "b"])
    assert fake_exec.commands[0][0] == "C:/Windows/System32/Robocopy.exe"
