"""Tests for the backup job pipeline with all external tools faked."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from labops.domain.enums import TargetRunStatus
from labops.services.backups import BackupJobService
from labops.services.rotation import FileOperations


SUNDAY = date(2024, 1, 7)


def _count(recorder, needle):
    return len(recorder.find(needle))


def _create_archive(args, kwargs):
    """Pretend to be 7-Zip: write the archive named after `-y`."""
    archive = Path(args[args.index("-y") + 1])
    archive.write_text("archive")


def _create_parity(args, kwargs):
    parity = Path(next(a for a in args if a.endswith(".par2")))
    parity.write_text("parity")


@pytest.fixture()
def tools_ok(fake_exec):
    fake_exec.on("7z a", side_effect=_create_archive)
    fake_exec.on("par2j64", side_effect=_create_parity)
    return fake_exec


@pytest.mark.asyncio
async def test_pipeline_copies_archives_protects_and_rotates(tmp_path, backup_config, tools_ok):
    result = await BackupJobService(backup_config, today=SUNDAY).run_all()

    assert result.success is True
    assert [(o.destination, o.status) for o in result.outcomes] == [
        (str(tmp_path / "local"), TargetRunStatus.SUCCESS),
        (str(tmp_path / "share"), TargetRunStatus.SUCCESS),
    ]

    root = tmp_path / "local" / "documents"
    assert sorted(p.name for p in (root / "daily").iterdir()) == [
        "docs-daily-20240107-Sunday.7z",
        "docs-daily-20240107-Sunday.7z.par2",
    ]
    assert list((root / "cache").iterdir()) == []

    mirror_copy = tools_ok.find("robocopy")[0]
    assert mirror_copy[1:] == [str(tmp_path / "source"), str(root / "mirror"), "/MIR", "/R:2"]

    archive_cmd = tools_ok.find("7z a")[0]
    assert archive_cmd[:4] == ["7z", "a", "-t7z", "-mx9"]

    parity_cmd = tools_ok.find("par2j64")[0]
    assert parity_cmd[1:3] == ["c", "/rr5"]

    share_copies = tools_ok.find("robocopy")[1:]
    assert [cmd[2] for cmd in share_copies] == [
        str(tmp_path / "share" / "documents" / tier) for tier in ("daily", "weekly", "monthly")
    ]


@pytest.mark.asyncio
async def test_copy_failure_skips_archive_and_share(tmp_path, backup_config, fake_exec):
    fake_exec.on("robocopy", returncode=8, stderr=b"ERROR 5 Access is denied.")

    result = await BackupJobService(backup_config, today=SUNDAY).run_all()

    assert result.success is False
    assert [o.status for o in result.outcomes] == [TargetRunStatus.FAILED, TargetRunStatus.SKIPPED]
    assert "robocopy" in result.outcomes[0].detail
    assert _count(fake_exec, "7z a") == 0


@pytest.mark.asyncio
async def test_copy_mismatch_still_counts_as_success(backup_config, tools_ok):
    tools_ok.on("robocopy", returncode=5)

    result = await BackupJobService(backup_config, today=SUNDAY).run_all()

    assert result.success is True


@pytest.mark.asyncio
async def test_archive_failure_stops_before_parity(backup_config, fake_exec):
    fake_exec.on("7z a", returncode=2)

    result = await BackupJobService(backup_config, today=SUNDAY).run_all()

    assert result.outcomes[0].status is TargetRunStatus.FAILED
    assert "7zip" in result.outcomes[0].detail
    assert _count(fake_exec, "par2j64") == 0


@pytest.mark.asyncio
async def test_zero_redundancy_skips_parity(backup_config, tools_ok):
    backup_config.handlers.multipar.redundancy_rate = 0

    result = await BackupJobService(backup_config, today=SUNDAY).run_all()

    assert result.success is True
    assert _count(tools_ok, "par2j64") == 0


@pytest.mark.asyncio
async def test_missing_source_fails_without_running_tools(tmp_path, backup_config, fake_exec):
    backup_config.targets[0].source = str(tmp_path / "gone")

    result = await BackupJobService(backup_config, today=SUNDAY).run_all()

    assert result.outcomes[0].status is TargetRunStatus.FAILED
    assert "source not found" in result.outcomes[0].detail
    assert fake_exec.calls == []


@pytest.mark.asyncio
async def test_dry_run_touches_nothing(tmp_path, backup_config, fake_exec):
    result = await BackupJobService(backup_config, dry_run=True, today=SUNDAY).run_all()

    assert result.success is True
    assert fake_exec.calls == []
    assert not (tmp_path / "local").exists()
    assert not (tmp_path / "share").exists()


@pytest.mark.asyncio
async def test_unknown_target_selection(backup_config):
    with pytest.raises(ValueError, match="unknown targets: nope"):
        await BackupJobService(backup_config).run_all(["nope"])


@pytest.mark.asyncio
async def test_drive_restricted_to_other_targets(tmp_path, backup_config, fake_exec):
    backup_config.destinations.local_drives[0].targets = []

    result = await BackupJobService(backup_config, today=SUNDAY).run_all(["docs"])

    assert [o.status for o in result.outcomes] == [TargetRunStatus.SKIPPED]
    assert fake_exec.calls == []

@pytest.mark.asyncio
async def test_leftover_volume_is_removed_before_archiving(tmp_path, backup_config, tools_ok):
    cache = tmp_path / "local" / "documents" / "cache"
    cache.mkdir(parents=True)
    (cache / "docs.7z.002").write_text("aborted run")

    result = await BackupJobService(backup_config, today=SUNDAY).run_all()

    assert result.success is True
    daily = tmp_path / "local" / "documents" / "daily"
    assert not any(".7z.002" in p.name for p in daily.iterdir())


@pytest.mark.asyncio
async def test_undeletable_leftover_fails_the_target(tmp_path, backup_config, fake_exec, monkeypatch):
    cache = tmp_path / "local" / "documents" / "cache"
    cache.mkdir(parents=True)
    (cache / "docs.7z").write_text("aborted run")
    monkeypatch.setattr(FileOperations, "remove", lambda self, path: False)

    result = await BackupJobService(backup_config, today=SUNDAY).run_all()

    assert result.outcomes[0].status is TargetRunStatus.FAILED
    assert "cannot remove stale archive" in result.outcomes[0].detail
    assert _count(fake_exec, "7z a") == 0
