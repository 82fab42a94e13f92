"""Input validators for addresses, host lists and names."""

from __future__ import annotations

import re
from typing import List


_IPV4_RE = re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}")
_PREFIX_RE = re.compile(r"[0-9]{1,2}")
_HOSTNAME_LABEL_RE = re.compile(r"(?!-)[A-Za-z0-9-]{1,63}(?<!-)")
_MAC_RE = re.compile(r"[0-9A-Fa-f]{2}([-:]?)[0-9A-Fa-f]{2}(\1[0-9A-Fa-f]{2}){4}")


def is_valid_ipv4(value: str) -> bool:
    """Dotted-quad with every octet in 0..255."""
    if not value or not _IPV4_RE.fullmatch(value):
        return False
    return all(0 <= int(octet) <= 255 for octet in value.split("."))


def is_valid_cidr(value: str) -> bool:
    """`a.b.c.d/n` with a valid address and 0 <= n <= 32."""
    if not value or value.count("/") != 1:
        return False
    address, prefix = value.split("/")
    if not _PREFIX_RE.fullmatch(prefix) or not 0 <= int(prefix) <= 32:
        return False
    return is_valid_ipv4(address)


def is_valid_address(value: str) -> bool:
    """Plain IPv4 or CIDR notation."""
    return is_valid_cidr(value) if "/" in (value or "") else is_valid_ipv4(value)


def strip_prefix(value: str) -> str:
    return value.split("/", 1)[0]


def parse_host_list(value: str) -> List[str]:
    """Split a comma-separated host list, trimming whitespace.

    Raises ValueError on empty input, empty items or invalid IPv4 addresses.
    """
    if not value or not value.strip():
        raise ValueError("host list is empty")
    hosts = [item.strip() for item in value.split(",")]
    for host in hosts:
        if not host:
            raise ValueError(f"empty entry in host list: {value!r}")
        if not is_valid_ipv4(host):
            raise ValueError(f"Invalid IP address format: {host}")
    return hosts


def is_valid_dns_servers(value: str) -> bool:
    """Comma-separated IPv4 addresses, at least one."""
    if not value:
        return False
    return all(is_valid_ipv4(server.strip()) for server in value.split(","))


def is_valid_hostname(value: str) -> bool:
    """RFC 1123 host name or an IPv4 address."""
    if not value or len(value) > 253:
        return False
    if _IPV4_RE.fullmatch(value):
        return is_valid_ipv4(value)
    return all(_HOSTNAME_LABEL_RE.fullmatch(label) for label in value.rstrip(".").split("."))


def is_valid_mac_address(value: str) -> bool:
    """Six hex octets, bare or separated consistently by `:` or `-`."""
    return bool(value) and _MAC_RE.fullmatch(value) is not None


def normalize_mac_address(value: str) -> str:
    """Hyper-V expects twelve uppercase hex digits without separators."""
    return re.sub(r"[-:]", "", value).upper()
