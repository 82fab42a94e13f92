"""SSH host-key and static-IP sub-commands."""

from __future__ import annotations

from pathlib import Path

import click

from labops.cli.common import CONTEXT_SETTINGS, finish, run_async
from labops.services.hostkeys import HostKeyService
from labops.services.staticip import StaticIpRequest, StaticIpService


@click.command(name="refresh-hostkeys", context_settings=CONTEXT_SETTINGS)
@click.option(
    "-a",
    "--addresses",
    required=True,
    metavar="<ip[,ip...]>",
    help="Comma-separated IPv4 addresses, e.g. '192.168.1.100, 192.168.1.101'.",
)
def refresh_hostkeys(addresses: str) -> None:
    """Replace the known_hosts entries of each host with freshly scanned keys."""
    summary = run_async(HostKeyService().refresh(addresses))
    click.echo(
        f"Total hosts processed: {summary.total}\n"
        f"Successfully processed: {len(summary.succeeded)}\n"
        f"Failed: {len(summary.failed)}"
    )
    finish(summary.success, "All host keys refreshed successfully!", "Some host keys could not be refreshed.")


@click.command(name="set-static-ip", context_settings=CONTEXT_SETTINGS)
@click.option(
    "-p",
    "--passphrase",
    envvar="LABOPS_SSH_PASSPHRASE",
    required=True,
    show_envvar=True,
    help="Passphrase of the SSH private key.",
)
@click.option("-k", "--key", "key_path", required=True, type=click.Path(dir_okay=False, path_type=Path), help="SSH private key.")
@click.option("-t", "--target", required=True, help="Target Linux node (hostname or IP).")
@click.option("-u", "--user", required=True, help="SSH user with password-less sudo on the target.")
@click.option("-a", "--address", required=True, help="Static IPv4 address, e.g. 192.168.1.100/24.")
@click.option("-g", "--gateway", required=True, help="Gateway IPv4 address.")
@click.option("-d", "--dns", "dns_servers", required=True, help="DNS servers, comma-separated.")
@click.option("--settle", type=float, default=5.0, help="Seconds to wait before verifying the new address.")
def set_static_ip(
    passphrase: str,
    key_path: Path,
    target: str,
    user: str,
    address: str,
    gateway: str,
    dns_servers: str,
    settle: float,
) -> None:
    """Configure a static address on a NetworkManager host over SSH and verify it."""
    request = StaticIpRequest(
        passphrase=passphrase,
        key_path=key_path,
        target=target,
        user=user,
        address=address,
        gateway=gateway,
        dns_servers=dns_servers,
    )
    ok = run_async(StaticIpService(settle_seconds=settle).configure(request))
    finish(
        ok,
        "Static IP configuration completed successfully!",
        "Configuration applied but verification failed; check the target system manually.",
    )
