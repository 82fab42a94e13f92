"""Refresh SSH host keys in `~/.ssh/known_hosts`.

For every host the stale entry is removed with `ssh-keygen -R`, the SSH port is
checked for reachability, and the current keys are appended from `ssh-keyscan -H`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from labops.core import process
from labops.domain.network import parse_host_list


logger = logging.getLogger(__name__)

SSH_PORT = 22
REACH_TIMEOUT = 5.0
SCAN_TIMEOUT = 10.0


@dataclass
class HostKeySummary:
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def success(self) -> bool:
        return not self.failed


class HostKeyService:
    def __init__(
        self,
        ssh_dir: Optional[Union[str, Path]] = None,
        *,
        port: int = SSH_PORT,
        reach_timeout: float = REACH_TIMEOUT,
        scan_timeout: float = SCAN_TIMEOUT,
    ) -> None:
        self.ssh_dir = Path(ssh_dir) if ssh_dir else Path.home() / ".ssh"
        self.known_hosts = self.ssh_dir / "known_hosts"
        self.port = port
        self.reach_timeout = reach_timeout
        self.scan_timeout = scan_timeout

    def ensure_ssh_directory(self) -> None:
        if not self.ssh_dir.is_dir():
            logger.info("ssh_dir_create | path=%s", self.ssh_dir)
            self.ssh_dir.mkdir(parents=True, exist_ok=True)
            self.ssh_dir.chmod(0o700)
        if not self.known_hosts.is_file():
            logger.info("known_hosts_create | path=%s", self.known_hosts)
            self.known_hosts.touch()
            self.known_hosts.chmod(0o644)

    async def remove_host_key(self, host: str) -> None:
        try:
            result = await process.run_command(["ssh-keygen", "-f", str(self.known_hosts), "-R", host])
        except OSError:
            return
        if result.ok:
            logger.info("hostkey_removed | host=%s", host)
        else:
            logger.info("hostkey_not_present | host=%s", host)

    async def is_reachable(self, host: str) -> bool:
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, self.port), self.reach_timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            logger.error("host_unreachable | host=%s port=%s error=%s", host, self.port, exc)
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        logger.info("host_reachable | host=%s port=%s", host, self.port)
        return True

    async def scan_host_key(self, host: str) -> bool:
        try:
            result = await process.run_command(["ssh-keyscan", "-H", host], timeout=self.scan_timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            logger.error("hostkey_scan_failed | host=%s error=%s", host, exc)
            return False
        if not result.ok or not result.stdout.strip():
            logger.error("hostkey_scan_failed | host=%s returncode=%s", host, result.returncode)
            return False
        with self.known_hosts.open("a", encoding="utf-8") as fh:
            fh.write(result.stdout if result.stdout.endswith("\n") else result.stdout + "\n")
        logger.info("hostkey_added | host=%s", host)
        return True

    async def refresh_host(self, host: str) -> bool:
        await self.remove_host_key(host)
        if not await self.is_reachable(host):
            logger.warning("hostkey_scan_skipped | host=%s reason=unreachable", host)
            return False
        return await self.scan_host_key(host)

    async def refresh(self, hosts: Union[str, Sequence[str]]) -> HostKeySummary:
        """Refresh every host in `hosts` (a comma-separated string or a list).

        Raises ValueError before touching anything when an address is invalid.
        """
        host_list = parse_host_list(hosts if isinstance(hosts, str) else ",".join(hosts))
        self.ensure_ssh_directory()
        logger.info("hostkey_refresh_start | hosts=%s known_hosts=%s", ",".join(host_list), self.known_hosts)

        summary = HostKeySummary()
        for host in host_list:
            if await self.refresh_host(host):
                summary.succeeded.append(host)
            else:
                summary.failed.append(host)

        logger.info(
            "hostkey_refresh_finished | total=%s succeeded=%s failed=%s",
            summary.total,
            len(summary.succeeded),
            len(summary.failed),
        )
        return summary
