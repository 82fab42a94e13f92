"""Hyper-V import sub-command."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from labops.cli.common import CONTEXT_SETTINGS, finish, run_async
from labops.services.hyperv import HyperVImportService, LinuxGuest, VmImportRequest


@click.command(name="import-vm", context_settings=CONTEXT_SETTINGS)
@click.argument("source", type=click.Path(file_okay=False, path_type=Path))
@click.option("-n", "--name", "vm_name", required=True, help="Name of the imported VM.")
@click.option("--destination", type=click.Path(file_okay=False, path_type=Path), help="Where Hyper-V stores the copy.")
@click.option("--mac", "mac_address", help="Static MAC address for the network adapter.")
@click.option("--switch", "switch_name", help="Virtual switch to connect the adapter to.")
@click.option("--linux", is_flag=True, help="Start the guest and give it a static IP through WSL.")
@click.option("-k", "--key", "key_path", help="SSH private key (path inside WSL).")
@click.option("-u", "--user", help="SSH user on the guest.")
@click.option("-a", "--address", help="Static IPv4 address for the guest, e.g. 192.168.1.100/24.")
@click.option("-g", "--gateway", help="Gateway IPv4 address.")
@click.option("-d", "--dns", "dns_servers", help="DNS servers, comma-separated.")
@click.option("-p", "--passphrase", envvar="LABOPS_SSH_PASSPHRASE", show_envvar=True, help="Passphrase of the SSH key.")
def import_vm(
    source: Path,
    vm_name: str,
    destination: Optional[Path],
    mac_address: Optional[str],
    switch_name: Optional[str],
    linux: bool,
    key_path: Optional[str],
    user: Optional[str],
    address: Optional[str],
    gateway: Optional[str],
    dns_servers: Optional[str],
    passphrase: Optional[str],
) -> None:
    """Import the exported VM in SOURCE as a new copy."""
    guest = None
    if linux:
        required = {
            "--key": key_path,
            "--user": user,
            "--address": address,
            "--gateway": gateway,
            "--dns": dns_servers,
        }
        missing = [flag for flag, value in required.items() if not value]
        if missing:
            raise click.UsageError(f"--linux requires {', '.join(missing)}")
        guest = LinuxGuest(
            key_path=key_path,
            user=user,
            address=address,
            gateway=gateway,
            dns_servers=dns_servers,
            passphrase=passphrase or "",
        )

    request = VmImportRequest(
        source=source,
        vm_name=vm_name,
        destination=destination,
        mac_address=mac_address,
        switch_name=switch_name,
        linux=guest,
    )
    ok = run_async(HyperVImportService().import_vm(request))
    finish(ok, f"VM '{vm_name}' imported.", f"VM '{vm_name}' imported but guest setup failed.")
