"""Configure a static IPv4 address on a remote NetworkManager host over SSH.

The private key is unlocked into an ssh-agent through a throwaway askpass
helper, so the passphrase never lands on disk or in the environment of any
process except that single `ssh-add`.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shlex
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from labops.core import process
from labops.core.process import CommandResult
from labops.domain.network import (
    is_valid_address,
    is_valid_dns_servers,
    is_valid_hostname,
    is_valid_ipv4,
    strip_prefix,
)


logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10
SETTLE_SECONDS = 5.0

_AGENT_VAR_RE = re.compile(r"(SSH_AUTH_SOCK|SSH_AGENT_PID)=([^;\s]+)")
_INET_RE = re.compile(r"inet\s+(\d+\.\d+\.\d+\.\d+)")

ASKPASS_SCRIPT = '#!/bin/sh\nprintf \'%s\\n\' "$SSH_PASSPHRASE"\n'


def parse_agent_output(output: str) -> Dict[str, str]:
    """Extract `SSH_AUTH_SOCK` and `SSH_AGENT_PID` from `ssh-agent -s` output."""
    return dict(_AGENT_VAR_RE.findall(output))


class SshSession:
    """Async context manager holding an unlocked key for a batch of ssh calls.

    An agent is started only when `SSH_AUTH_SOCK` is not already set; that
    agent and the temporary askpass directory are always torn down on exit.
    """

    def __init__(self, key_path: Path, passphrase: str, user: str) -> None:
        self.key_path = Path(key_path)
        self.passphrase = passphrase
        self.user = user
        self.env: Dict[str, str] = process.build_env()
        self._agent_started = False
        self._temp_dir: Optional[str] = None

    async def __aenter__(self) -> "SshSession":
        try:
            await self._start_agent()
            await self._add_key()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _start_agent(self) -> None:
        if self.env.get("SSH_AUTH_SOCK"):
            logger.debug("ssh_agent_reuse | sock=%s", self.env["SSH_AUTH_SOCK"])
            return
        result = await process.run_command(["ssh-agent", "-s"])
        agent_vars = parse_agent_output(result.stdout)
        if not result.ok or "SSH_AUTH_SOCK" not in agent_vars:
            raise RuntimeError(f"ssh-agent failed to start: {result.stderr.strip() or result.returncode}")
        self.env.update(agent_vars)
        self._agent_started = True
        logger.info("ssh_agent_started | pid=%s", agent_vars.get("SSH_AGENT_PID"))

    async def _add_key(self) -> None:
        self._temp_dir = tempfile.mkdtemp(prefix="labops-ssh-")
        askpass = Path(self._temp_dir) / "askpass"
        askpass.write_text(ASKPASS_SCRIPT, encoding="utf-8")
        askpass.chmod(0o700)

        env = dict(self.env)
        env.update(
            {
                "SSH_ASKPASS": str(askpass),
                # force: use the helper even with a terminal attached
                "SSH_ASKPASS_REQUIRE": "force",
                "DISPLAY": self.env.get("DISPLAY") or ":0",
                "SSH_PASSPHRASE": self.passphrase,
            }
        )
        result = await process.run_command(["ssh-add", str(self.key_path)], env=env, stdin_devnull=True)
        if not result.ok:
            raise RuntimeError(f"failed to add SSH key to agent: {self.key_path}")
        logger.info("ssh_key_added | key=%s", self.key_path)

    async def close(self) -> None:
        if self._agent_started:
            try:
                await process.run_command(["ssh-agent", "-k"], env=self.env)
            except OSError as exc:
                logger.warning("ssh_agent_kill_failed | error=%s", exc)
            self._agent_started = False
        if self._temp_dir:
            shutil.rmtree(self._temp_dir, ignore_errors=True)
            self._temp_dir = None

    def ssh_args(self, host: str, remote_command: str, connect_timeout: Optional[int] = None) -> List[str]:
        args = ["ssh", "-o", "StrictHostKeyChecking=no"]
        if connect_timeout is not None:
            args.extend(["-o", f"ConnectTimeout={connect_timeout}"])
        args.extend([f"{self.user}@{host}", remote_command])
        return args

    async def run(self, host: str, remote_command: str, connect_timeout: Optional[int] = None) -> CommandResult:
        return await process.run_command(
            self.ssh_args(host, remote_command, connect_timeout), env=self.env, stdin_devnull=True
        )


@dataclass
class StaticIpRequest:
    passphrase: str
    key_path: Path
    target: str
    user: str
    address: str
    gateway: str
    dns_servers: str

    def validate(self) -> None:
        """Raise ValueError (or FileNotFoundError for the key) on bad input."""
        required = ("passphrase", "target", "user", "address", "gateway", "dns_servers")
        missing = [name for name in required if not getattr(self, name)]
        if missing:
            raise ValueError(f"missing required parameters: {', '.join(missing)}")
        if not Path(self.key_path).is_file():
            raise FileNotFoundError(f"SSH key file not found: {self.key_path}")
        if not is_valid_hostname(self.target):
            raise ValueError(f"Invalid target node: {self.target}")
        if not is_valid_address(self.address):
            raise ValueError(f"Invalid static IP address format: {self.address}")
        if not is_valid_ipv4(self.gateway):
            raise ValueError(f"Invalid gateway IP address: {self.gateway}")
        if not is_valid_dns_servers(self.dns_servers):
            raise ValueError(f"Invalid DNS server IP: {self.dns_servers}")

    @property
    def new_ip(self) -> str:
        return strip_prefix(self.address)


class StaticIpService:
    """validate -> connect -> check NetworkManager -> snapshot -> nmcli -> verify."""

    def __init__(self, *, settle_seconds: float = SETTLE_SECONDS) -> None:
        self.settle_seconds = settle_seconds

    async def _require(self, ssh: SshSession, host: str, remote_command: str, error: str) -> CommandResult:
        result = await ssh.run(host, remote_command)
        if not result.ok:
            raise RuntimeError(f"{error} (exit code {result.returncode})")
        return result

    async def configure(self, request: StaticIpRequest) -> bool:
        """Apply the address; True when the host answers on it afterwards.

        Raises RuntimeError when a step before verification fails.
        """
        request.validate()
        target = request.target
        logger.info(
            "static_ip_start | target=%s user=%s address=%s gateway=%s dns=%s",
            target,
            request.user,
            request.address,
            request.gateway,
            request.dns_servers,
        )

        async with SshSession(request.key_path, request.passphrase, request.user) as ssh:
            check = await ssh.run(target, "echo 'SSH connection successful'", connect_timeout=CONNECT_TIMEOUT)
            if not check.ok:
                raise RuntimeError(f"Cannot establish SSH connection to {target}")

            nm = await ssh.run(target, "systemctl is-active --quiet NetworkManager")
            if not nm.ok:
                raise RuntimeError(f"NetworkManager service is not running on {target}")

            await self.backup_network_config(ssh, target)
            connection = await self.detect_connection(ssh, target)
            await self.apply(ssh, request, connection)
            return await self.verify(ssh, request)

    async def backup_network_config(self, ssh: SshSession, target: str) -> str:
        backup_file = f"/tmp/network-backup-{datetime.now():%Y%m%d-%H%M%S}.txt"
        path = shlex.quote(backup_file)
        script = "; ".join(
            [
                f"echo '=== Current IP Configuration ===' > {path}",
                f"ip addr show >> {path}",
                f"echo '' >> {path}",
                f"echo '=== Current Routes ===' >> {path}",
                f"ip route show >> {path}",
                f"echo '' >> {path}",
                f"echo '=== NetworkManager Connections ===' >> {path}",
                f"nmcli connection show >> {path}",
            ]
        )
        await self._require(ssh, target, script, "network configuration backup failed")
        logger.info("network_config_saved | target=%s path=%s", target, backup_file)
        return backup_file

    async def detect_connection(self, ssh: SshSession, target: str) -> str:
        result = await ssh.run(target, "nmcli -t -f NAME connection show --active | head -n1")
        connection = result.stdout.strip().splitlines()[0].strip() if result.ok and result.stdout.strip() else ""
        if not connection:
            raise RuntimeError("Could not detect active network connection")
        logger.info("network_connection_detected | target=%s connection=%s", target, connection)
        return connection

    async def apply(self, ssh: SshSession, request: StaticIpRequest, connection: str) -> None:
        name = shlex.quote(connection)
        settings = [
            ("ipv4.addresses", request.address),
            ("ipv4.gateway", request.gateway),
            ("ipv4.dns", request.dns_servers),
            ("ipv4.method", "manual"),
            ("connection.autoconnect", "yes"),
        ]
        for key, value in settings:
            await self._require(
                ssh,
                request.target,
                f"sudo nmcli connection modify {name} {key} {shlex.quote(value)}",
                f"nmcli modify {key} failed",
            )
        await self._require(ssh, request.target, f"sudo nmcli connection up {name}", "nmcli connection up failed")
        logger.info(
            "static_ip_applied | target=%s connection=%s address=%s", request.target, connection, request.address
        )

    async def verify(self, ssh: SshSession, request: StaticIpRequest) -> bool:
        new_ip = request.new_ip
        await asyncio.sleep(self.settle_seconds)

        check = await ssh.run(new_ip, "echo 'Connection verified'", connect_timeout=CONNECT_TIMEOUT)
        if not check.ok:
            logger.warning("static_ip_unreachable | address=%s detail=configuration may be applied", new_ip)
            return False

        shown = await ssh.run(new_ip, "ip -4 addr show")
        found = _INET_RE.findall(shown.stdout) if shown.ok else []
        if new_ip not in found:
            logger.error("static_ip_verify_failed | expected=%s found=%s", new_ip, ",".join(found))
            return False
        logger.info("static_ip_verified | address=%s", new_ip)
        return True
