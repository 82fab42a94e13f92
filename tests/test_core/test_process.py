from __future__ import annotations

import asyncio

import pytest

from labops.core import process
from conftest import DummyProcess


@pytest.mark.asyncio
async def test_run_command_captures_output(fake_exec):
    fake_exec.on("echo", returncode=0, stdout=b"hello\n", stderr=b"")
    result = await process.run_command(["echo", "hello"])
    assert result.ok is True
    assert result.stdout == "hello\n"
    assert fake_exec.commands == [["echo", "hello"]]


@pytest.mark.asyncio
async def test_run_command_passes_env_and_devnull(fake_exec):
    await process.run_command(["tool"], env={"A": "1"}, stdin_devnull=True)
    _, kwargs = fake_exec.calls[0]
    assert kwargs["env"] == {"A": "1"}
    assert kwargs["stdin"] == asyncio.subprocess.DEVNULL


@pytest.mark.asyncio
async def test_run_command_reraises_missing_executable(monkeypatch):
    async def fake_exec(*args, **kwargs):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    with pytest.raises(OSError):
        await process.run_command(["does-not-exist"])


@pytest.mark.asyncio
async def test_run_command_timeout_kills_child(monkeypatch):
    class SlowProcess(DummyProcess):
        async def communicate(self):
            await asyncio.sleep(10)
            return b"", b""

        async def wait(self):
            self.reaped = True
            return -9

    proc = SlowProcess()

    async def fake_exec(*args, **kwargs):
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    with pytest.raises(asyncio.TimeoutError):
        await process.run_command(["slow"], timeout=0.01)
    assert proc.killed is True
    assert proc.reaped is True


@pytest.mark.asyncio
async def test_spawn_detached_uses_new_session(fake_exec):
    proc = await process.spawn_detached(["runner", "--flag"])
    _, kwargs = fake_exec.calls[0]
    assert kwargs["start_new_session"] is True
    assert kwargs["stdout"] == asyncio.subprocess.DEVNULL
    assert proc.returncode == 0


def test_get_executable_prefers_env(monkeypatch):
    monkeypatch.setenv("LABOPS_TEST_TOOL", "  /opt/tool  ")
    assert process.get_executable("LABOPS_TEST_TOOL", "tool") == "/opt/tool"
    monkeypatch.setenv("LABOPS_TEST_TOOL", "")
    assert process.get_executable("LABOPS_TEST_TOOL", "tool") == "tool"


def test_build_env_overlays_extra(monkeypatch):
    monkeypatch.setenv("LABOPS_BASE", "base")
    env = process.build_env({"LABOPS_EXTRA": "x"})
    assert env["LABOPS_BASE"] == "base"
    assert env["LABOPS_EXTRA"] == "x"
