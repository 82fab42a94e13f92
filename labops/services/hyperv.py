"""Import an exported Hyper-V VM and optionally hand Linux guests a static IP.

Runs on the Windows host: every Hyper-V step is one PowerShell invocation, and
the static-IP step for Linux guests is delegated to `labops set-static-ip`
inside WSL.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from labops.core import process
from labops.domain.network import (
    is_valid_address,
    is_valid_dns_servers,
    is_valid_ipv4,
    is_valid_mac_address,
    normalize_mac_address,
)


logger = logging.getLogger(__name__)

VHD_DIR = "Virtual Hard Disks"
VM_DIR = "Virtual Machines"
IP_POLL_ATTEMPTS = 30
IP_POLL_INTERVAL = 2.0
PASSPHRASE_ENV = "LABOPS_SSH_PASSPHRASE"

_VM_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 ._-]{0,99}$")


def ps_quote(value: str) -> str:
    """Single-quoted PowerShell literal."""
    return "'" + str(value).replace("'", "''") + "'"


def find_vmcx(source: Path) -> Path:
    """Return the single `.vmcx` of an exported VM directory.

    Raises FileNotFoundError when the export layout is incomplete and
    ValueError when it holds more than one VM definition.
    """
    source = Path(source)
    for sub in (VHD_DIR, VM_DIR):
        if not (source / sub).is_dir():
            raise FileNotFoundError(f"missing '{sub}' folder in {source}")
    definitions = sorted((source / VM_DIR).glob("*.vmcx"))
    if not definitions:
        raise FileNotFoundError(f"no .vmcx file under {source / VM_DIR}")
    if len(definitions) > 1:
        raise ValueError(f"expected exactly one .vmcx file under {source / VM_DIR}, found {len(definitions)}")
    return definitions[0]


@dataclass
class LinuxGuest:
    key_path: str
    user: str
    address: str
    gateway: str
    dns_servers: str
    passphrase: str


@dataclass
class VmImportRequest:
    source: Path
    vm_name: str
    destination: Optional[Path] = None
    mac_address: Optional[str] = None
    switch_name: Optional[str] = None
    linux: Optional[LinuxGuest] = None

    def validate(self) -> Path:
        """Check inputs and return the `.vmcx` to import."""
        if not _VM_NAME_RE.match(self.vm_name or ""):
            raise ValueError(f"Invalid VM name: {self.vm_name!r}")
        if self.mac_address and not is_valid_mac_address(self.mac_address):
            raise ValueError(f"Invalid MAC address: {self.mac_address}")
        if self.linux is not None:
            guest = self.linux
            if not guest.passphrase:
                raise ValueError("a key passphrase is required for Linux guests")
            if not is_valid_address(guest.address):
                raise ValueError(f"Invalid static IP address format: {guest.address}")
            if not is_valid_ipv4(guest.gateway):
                raise ValueError(f"Invalid gateway IP address: {guest.gateway}")
            if not is_valid_dns_servers(guest.dns_servers):
                raise ValueError(f"Invalid DNS server IP: {guest.dns_servers}")
        return find_vmcx(self.source)


class HyperVImportService:
    def __init__(
        self,
        *,
        poll_attempts: int = IP_POLL_ATTEMPTS,
        poll_interval: float = IP_POLL_INTERVAL,
    ) -> None:
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval

    @property
    def powershell(self) -> str:
        return process.get_executable("LABOPS_POWERSHELL", "powershell.exe")

    @property
    def wsl(self) -> str:
        return process.get_executable("LABOPS_WSL", "wsl.exe")

    async def _powershell(self, script: str, step: str) -> str:
        cmd = [self.powershell, "-NoProfile", "-NonInteractive", "-Command", script]
        result = await process.run_command(cmd)
        if not result.ok:
            logger.error("hyperv_step_failed | step=%s returncode=%s stderr=%s", step, result.returncode, result.stderr.strip())
            raise RuntimeError(f"{step} failed: {result.stderr.strip() or f'exit code {result.returncode}'}")
        logger.info("hyperv_step_done | step=%s", step)
        return result.stdout

    def import_script(self, vmcx: Path, vm_name: str, destination: Optional[Path] = None) -> str:
        parts = [f"$vm = Import-VM -Path {ps_quote(vmcx)} -Copy -GenerateNewId"]
        if destination is not None:
            parts[0] += (
                f" -VirtualMachinePath {ps_quote(destination)}"
                f" -VhdDestinationPath {ps_quote(Path(destination) / VHD_DIR)}"
            )
        parts.append(f"Rename-VM -VM $vm -NewName {ps_quote(vm_name)}")
        return "; ".join(parts)

    async def wait_for_ipv4(self, vm_name: str) -> Optional[str]:
        script = f"(Get-VMNetworkAdapter -VMName {ps_quote(vm_name)}).IPAddresses -join ','"
        for attempt in range(1, self.poll_attempts + 1):
            result = await process.run_command([self.powershell, "-NoProfile", "-NonInteractive", "-Command", script])
            if result.ok:
                for candidate in result.stdout.replace("\n", ",").split(","):
                    if is_valid_ipv4(candidate.strip()):
                        logger.info("hyperv_vm_ip | vm=%s address=%s attempt=%s", vm_name, candidate.strip(), attempt)
                        return candidate.strip()
            logger.debug("hyperv_vm_ip_wait | vm=%s attempt=%s", vm_name, attempt)
            await asyncio.sleep(self.poll_interval)
        return None

    def static_ip_args(self, guest: LinuxGuest, current_ip: str) -> List[str]:
        return [
            self.wsl,
            "--",
            "labops",
            "set-static-ip",
            "-k",
            guest.key_path,
            "-t",
            current_ip,
            "-u",
            guest.user,
            "-a",
            guest.address,
            "-g",
            guest.gateway,
            "-d",
            guest.dns_servers,
        ]

    async def import_vm(self, request: VmImportRequest) -> bool:
        """Run the import; raises on the first failing Hyper-V step.

        Returns False when a Linux guest never reported an address or the
        static-IP step inside WSL failed.
        """
        vmcx = request.validate()
        name = request.vm_name
        logger.info("hyperv_import_start | vm=%s source=%s", name, request.source)

        await self._powershell(self.import_script(vmcx, name, request.destination), "import")

        if request.mac_address:
            mac = normalize_mac_address(request.mac_address)
            await self._powershell(
                f"Set-VMNetworkAdapter -VMName {ps_quote(name)} -StaticMacAddress {ps_quote(mac)}", "set_mac"
            )
        if request.switch_name:
            await self._powershell(
                f"Connect-VMNetworkAdapter -VMName {ps_quote(name)} -SwitchName {ps_quote(request.switch_name)}",
                "connect_switch",
            )

        if request.linux is None:
            logger.info("hyperv_import_finished | vm=%s", name)
            return True

        await self._powershell(f"Start-VM -Name {ps_quote(name)}", "start")
        current_ip = await self.wait_for_ipv4(name)
        if current_ip is None:
            logger.error("hyperv_vm_ip_timeout | vm=%s attempts=%s", name, self.poll_attempts)
            return False

        env = process.build_env({PASSPHRASE_ENV: request.linux.passphrase})
        # WSLENV lists the Windows variables that cross into the Linux side
        forwarded = [v for v in env.get("WSLENV", "").split(":") if v and v != PASSPHRASE_ENV]
        env["WSLENV"] = ":".join([*forwarded, PASSPHRASE_ENV])
        try:
            result = await process.run_command(self.static_ip_args(request.linux, current_ip), env=env)
        except OSError as exc:
            logger.error("hyperv_static_ip_failed | vm=%s error=%s", name, exc)
            return False
        if not result.ok:
            logger.error("hyperv_static_ip_failed | vm=%s returncode=%s", name, result.returncode)
            return False

        logger.info("hyperv_import_finished | vm=%s address=%s", name, request.linux.address)
        return True
