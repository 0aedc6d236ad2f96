"""Discovery of the TCP ports a process is listening on."""

from __future__ import annotations

import ipaddress
import os
import re
import sys
from collections.abc import Callable, Iterable
from pathlib import Path

import psutil

IpAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
Listener = tuple[IpAddress, int]

_TCP_LISTEN_STATE = "0A"
_HEX_DIGITS = re.compile(r"\+?[0-9A-Fa-f]+")
_DEC_DIGITS = re.compile(r"\+?[0-9]+")


def _parse_unsigned(text: str, base: int, bits: int) -> int:
    pattern = _HEX_DIGITS if base == 16 else _DEC_DIGITS
    if not text:
        raise ValueError("cannot parse integer from empty string")
    if not pattern.fullmatch(text):
        raise ValueError(f"invalid digit found in string: {text}")
    value = int(text, base)
    if value >= 1 << bits:
        raise ValueError(f"number too large to fit in target type: {text}")
    return value


def find_tcp_listeners_for_pid(pid: int) -> list[Listener]:
    """Return the local (address, port) pairs of TCP sockets ``pid`` listens on."""
    if sys.platform.startswith("linux"):
        return _find_linux_listeners(pid)
    if sys.platform == "darwin" or sys.platform == "win32":
        return _find_psutil_listeners(pid)
    raise RuntimeError(f"unsupported platform for TCP listener discovery: pid {pid}")


def _find_linux_listeners(pid: int) -> list[Listener]:
    inodes = _read_socket_inodes_for_pid(pid)
    if not inodes:
        return []
    listeners = _read_tcp_table(Path("/proc/net/tcp"), inodes, parse_tcp_table_entry)
    listeners.extend(
        _read_tcp_table(Path("/proc/net/tcp6"), inodes, parse_tcp6_table_entry)
    )
    return listeners


def _read_socket_inodes_for_pid(pid: int) -> set[int]:
    fd_dir = Path(f"/proc/{pid}/fd")
    inodes: set[int] = set()
    for name in os.listdir(fd_dir):
        try:
            link = os.readlink(fd_dir / name)
        except OSError:
            continue
        inode = parse_socket_inode(link)
        if inode is not None:
            inodes.add(inode)
    return inodes


def _read_tcp_table(
    path: Path,
    inodes: Iterable[int],
    parse_entry: Callable[[str], tuple[Listener, int] | None],
) -> list[Listener]:
    try:
        source = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    wanted = set(inodes)
    listeners: list[Listener] = []
    for line in source.splitlines()[1:]:
        entry = parse_entry(line)
        if entry is not None and entry[1] in wanted:
            listeners.append(entry[0])
    return listeners


def _find_psutil_listeners(pid: int) -> list[Listener]:
    process = psutil.Process(pid)
    list_connections = getattr(process, "net_connections", None) or process.connections
    listeners: list[Listener] = []
    for connection in list_connections(kind="tcp"):
        if connection.status != psutil.CONN_LISTEN or not connection.laddr:
            continue
        host, port = connection.laddr[0], connection.laddr[1]
        address = ipaddress.ip_address(host.split("%", 1)[0])
        listeners.append((address, port))
    return listeners


def parse_socket_inode(link: str | os.PathLike[str]) -> int | None:
    """Extract the inode from a ``socket:[N]`` descriptor link, if it is one."""
    text = os.fspath(link)
    if not text.startswith("socket:[") or not text.endswith("]"):
        return None
    inner = text[len("socket:[") : -1]
    try:
        return _parse_unsigned(inner, 10, 64)
    except ValueError:
        return None


def _split_local_address(value: str) -> tuple[str, str]:
    ip_hex, found, port_hex = value.partition(":")
    if not found:
        raise ValueError(f"invalid socket address entry: {value}")
    return ip_hex, port_hex


def _listen_fields(line: str) -> list[str] | None:
    fields = line.split()
    if len(fields) <= 9 or fields[3] != _TCP_LISTEN_STATE:
        return None
    return fields


def parse_tcp_table_entry(line: str) -> tuple[Listener, int] | None:
    """Parse a ``/proc/net/tcp`` row; None unless it is a listening socket."""
    fields = _listen_fields(line)
    if fields is None:
        return None
    ip_hex, port_hex = _split_local_address(fields[1])
    raw = _parse_unsigned(ip_hex, 16, 32)
    address = ipaddress.IPv4Address(raw.to_bytes(4, sys.byteorder))
    port = _parse_unsigned(port_hex, 16, 16)
    inode = _parse_unsigned(fields[9], 10, 64)
    return (address, port), inode


def parse_tcp6_table_entry(line: str) -> tuple[Listener, int] | None:
    """Parse a ``/proc/net/tcp6`` row; None unless it is a listening socket."""
    fields = _listen_fields(line)
    if fields is None:
        return None
    ip_hex, port_hex = _split_local_address(fields[1])
    address = parse_ipv6_hex(ip_hex)
    port = _parse_unsigned(port_hex, 16, 16)
    inode = _parse_unsigned(fields[9], 10, 64)
    return (address, port), inode


def parse_ipv6_hex(hex_text: str) -> ipaddress.IPv6Address:
    """Decode the 32-digit IPv6 form used by ``/proc/net/tcp6``."""
    if len(hex_text.encode("utf-8")) != 32 or not hex_text.isascii():
        raise ValueError(f"invalid IPv6 entry length: {hex_text}")
    data = bytes(
        _parse_unsigned(hex_text[start : start + 2], 16, 8) for start in range(0, 32, 2)
    )
    # Each 32-bit word is stored little-endian.
    ordered = b"".join(data[start : start + 4][::-1] for start in range(0, 16, 4))
    return ipaddress.IPv6Address(ordered)