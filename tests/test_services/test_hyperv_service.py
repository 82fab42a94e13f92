from __future__ import annotations

from pathlib import Path

import pytest

from labops.services.hyperv import (
    PASSPHRASE_ENV,
    HyperVImportService,
    LinuxGuest,
    VmImportRequest,
    find_vmcx,
    ps_quote,
)


@pytest.fixture(autouse=True)
def default_executables(monkeypatch):
    monkeypatch.delenv("LABOPS_POWERSHELL", raising=False)
    monkeypatch.delenv("LABOPS_WSL", raising=False)
    monkeypatch.delenv("WSLENV", raising=False)


@pytest.fixture()
def export_dir(tmp_path):
    export = tmp_path / "export"
    (export / "Virtual Hard Disks").mkdir(parents=True)
    (export / "Virtual Machines").mkdir()
    (export / "Virtual Machines" / "3F2504E0.vmcx").write_text("vm")
    return export


@pytest.fixture()
def guest():
    return LinuxGuest(
        key_path="/home/admin/.ssh/id_ed25519",
        user="admin",
        address="192.168.1.100/24",
        gateway="192.168.1.1",
        dns_servers="192.168.1.1",
        passphrase="s3cret",
    )


def _scripts(recorder, needle):
    return [argv[-1] for argv in recorder.find(needle)]


class TestExportLayout:
    def test_finds_single_definition(self, export_dir):
        assert find_vmcx(export_dir).name == "3F2504E0.vmcx"

    @pytest.mark.parametrize("folder", ["Virtual Hard Disks", "Virtual Machines"])
    def test_missing_folder(self, export_dir, folder):
        for child in (export_dir / folder).iterdir():
            child.unlink()
        (export_dir / folder).rmdir()
        with pytest.raises(FileNotFoundError, match=f"missing '{folder}' folder"):
            find_vmcx(export_dir)

    def test_no_definition(self, export_dir):
        (export_dir / "Virtual Machines" / "3F2504E0.vmcx").unlink()
        with pytest.raises(FileNotFoundError, match="no .vmcx file"):
            find_vmcx(export_dir)

    def test_two_definitions(self, export_dir):
        (export_dir / "Virtual Machines" / "other.vmcx").write_text("vm")
        with pytest.raises(ValueError, match="exactly one .vmcx"):
            find_vmcx(export_dir)


def test_ps_quote_escapes_single_quotes():
    assert ps_quote("O'Brien's VM") == "'O''Brien''s VM'"


def test_import_script_with_destination(export_dir, tmp_path):
    vmcx = find_vmcx(export_dir)
    script = HyperVImportService().import_script(vmcx, "web-01", tmp_path / "vms")
    assert script == (
        f"$vm = Import-VM -Path '{vmcx}' -Copy -GenerateNewId"
        f" -VirtualMachinePath '{tmp_path / 'vms'}'"
        f" -VhdDestinationPath '{tmp_path / 'vms' / 'Virtual Hard Disks'}'"
        "; Rename-VM -VM $vm -NewName 'web-01'"
    )


class TestValidation:
    def test_bad_vm_name(self, export_dir):
        with pytest.raises(ValueError, match="Invalid VM name"):
            VmImportRequest(export_dir, "bad/name").validate()

    def test_bad_mac(self, export_dir):
        with pytest.raises(ValueError, match="Invalid MAC address"):
            VmImportRequest(export_dir, "web-01", mac_address="00:15:5D:00:00").validate()

    def test_linux_guest_needs_passphrase(self, export_dir, guest):
        guest.passphrase = ""
        with pytest.raises(ValueError, match="passphrase is required"):
            VmImportRequest(export_dir, "web-01", linux=guest).validate()


class TestImport:
    @pytest.mark.asyncio
    async def test_plain_import(self, export_dir, fake_exec):
        ok = await HyperVImportService().import_vm(VmImportRequest(export_dir, "web-01"))

        assert ok is True
        assert len(fake_exec.calls) == 1
        argv = fake_exec.commands[0]
        assert argv[:4] == ["powershell.exe", "-NoProfile", "-NonInteractive", "-Command"]
        assert "Import-VM" in argv[4]
        assert fake_exec.find("Start-VM") == []

    @pytest.mark.asyncio
    async def test_mac_and_switch(self, export_dir, fake_exec):
        request = VmImportRequest(export_dir, "web-01", mac_address="00-15-5d-01-02-03", switch_name="LAN")

        assert await HyperVImportService().import_vm(request) is True

        assert _scripts(fake_exec, "Set-VMNetworkAdapter") == [
            "Set-VMNetworkAdapter -VMName 'web-01' -StaticMacAddress '00155D010203'"
        ]
        assert _scripts(fake_exec, "Connect-VMNetworkAdapter") == [
            "Connect-VMNetworkAdapter -VMName 'web-01' -SwitchName 'LAN'"
        ]

    @pytest.mark.asyncio
    async def test_failed_step_raises(self, export_dir, fake_exec):
        fake_exec.on("Import-VM", returncode=1, stderr=b"The operation failed")
        with pytest.raises(RuntimeError, match="import failed: The operation failed"):
            await HyperVImportService().import_vm(VmImportRequest(export_dir, "web-01", switch_name="LAN"))
        assert fake_exec.find("Connect-VMNetworkAdapter") == []

    @pytest.mark.asyncio
    async def test_linux_guest_gets_static_address(self, export_dir, guest, fake_exec, monkeypatch):
        monkeypatch.setenv("WSLENV", "USERPROFILE/p")
        fake_exec.on("Get-VMNetworkAdapter", stdout=b"fe80::215:5dff:fe01:203,192.168.1.77\n")

        service = HyperVImportService(poll_attempts=3, poll_interval=0)
        assert await service.import_vm(VmImportRequest(export_dir, "web-01", linux=guest)) is True

        assert _scripts(fake_exec, "Start-VM") == ["Start-VM -Name 'web-01'"]
        argv, kwargs = fake_exec.calls[-1]
        assert argv == [
            "wsl.exe",
            "--",
            "labops",
            "set-static-ip",
            "-k",
            "/home/admin/.ssh/id_ed25519",
            "-t",
            "192.168.1.77",
            "-u",
            "admin",
            "-a",
            "192.168.1.100/24",
            "-g",
            "192.168.1.1",
            "-d",
            "192.168.1.1",
        ]
        assert kwargs["env"][PASSPHRASE_ENV] == "s3cret"
        assert kwargs["env"]["WSLENV"] == f"USERPROFILE/p:{PASSPHRASE_ENV}"
        assert "s3cret" not in argv

    @pytest.mark.asyncio
    async def test_address_never_reported(self, export_dir, guest, fake_exec):
        fake_exec.on("Get-VMNetworkAdapter", stdout=b"\n")

        service = HyperVImportService(poll_attempts=3, poll_interval=0)
        assert await service.import_vm(VmImportRequest(export_dir, "web-01", linux=guest)) is False

        assert len(fake_exec.find("Get-VMNetworkAdapter")) == 3
        assert fake_exec.find("set-static-ip") == []

    @pytest.mark.asyncio
    async def test_static_ip_step_failure(self, export_dir, guest, fake_exec):
        fake_exec.on("Get-VMNetworkAdapter", stdout=b"192.168.1.77")
        fake_exec.on("set-static-ip", returncode=1)

        service = HyperVImportService(poll_attempts=1, poll_interval=0)
        assert await service.import_vm(VmImportRequest(export_dir, "web-01", linux=guest)) is False

    @pytest.mark.asyncio
    async def test_custom_powershell(self, export_dir, fake_exec, monkeypatch):
        monkeypatch.setenv("LABOPS_POWERSHELL", "pwsh")
        await HyperVImportService().import_vm(VmImportRequest(Path(export_dir), "web-01"))
        assert fake_exec.commands[0][0] == "pwsh"
