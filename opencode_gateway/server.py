"""Starting, locating and polling the managed OpenCode server."""

from __future__ import annotations

import errno
import ipaddress
import json
import os
import re
import signal
import subprocess
import sys
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .http import http_get, percent_encode
from .options import LauncherOptions
from .paths import GatewayPaths
from .port_probe import find_tcp_listeners_for_pid

DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 4096
SUPERVISOR_POLL_INTERVAL = 0.25
WARM_ATTEMPTS = 30

_JSONC_COMMENTS = re.compile(r'"(?:\\.|[^"\\\n])*"|//[^\n]*|/\*.*?\*/', re.S)
_JSONC_TRAILING_COMMAS = re.compile(r'"(?:\\.|[^"\\\n])*"|,(?=\s*[}\]])', re.S)

_RETRYABLE_ERRORS = (
    BlockingIOError,
    TimeoutError,
    InterruptedError,
    ConnectionRefusedError,
    ConnectionResetError,
    ConnectionAbortedError,
    EOFError,
)


@dataclass(frozen=True)
class ServerEndpoint:
    """Address a server listens on and the address used to reach it."""

    host: str
    connect_host: str
    port: int


def _describe_exit_status(returncode: int) -> str:
    if returncode >= 0:
        return f"exit status: {returncode}"
    number = -returncode
    try:
        return f"signal: {number} ({signal.Signals(number).name})"
    except ValueError:
        return f"signal: {number}"


def spawn_managed_opencode(
    paths: GatewayPaths, environ: Mapping[str, str] | None = None
) -> subprocess.Popen:
    """Start ``opencode serve`` wired to the gateway's managed config."""
    base = os.environ if environ is None else environ
    executable = resolve_opencode_executable(base)
    env = dict(base)
    env.update(
        {
            "OPENCODE_CONFIG": str(paths.opencode_config_file),
            "OPENCODE_CONFIG_DIR": str(paths.opencode_dir),
            "OPENCODE_GATEWAY_MANAGED": "1",
            "OPENCODE_GATEWAY_CONTROL_DIR": str(paths.control_dir),
        }
    )
    return subprocess.Popen([str(executable), "serve"], env=env)


def _resolve_path_executable(name: str, env: Mapping[str, str]) -> Path | None:
    search_path = env.get("PATH")
    if search_path is None:
        return None

    names = [name]
    if sys.platform == "win32":
        names.append(f"{name}.exe")

    for entry in search_path.split(os.pathsep):
        for candidate_name in names:
            candidate = Path(entry) / candidate_name
            if candidate.is_file():
                try:
                    return candidate.resolve(strict=True)
                except OSError:
                    return candidate
    return None


def resolve_opencode_executable(environ: Mapping[str, str] | None = None) -> Path:
    """Find the OpenCode binary, preferring a cached native build."""
    env = os.environ if environ is None else environ
    explicit = env.get("OPENCODE_BIN_PATH")
    if explicit is not None:
        return Path(explicit)

    resolved = _resolve_path_executable("opencode", env) or Path("opencode")
    native = resolve_native_opencode_sibling(resolved)
    return native if native is not None else resolved


def resolve_native_opencode_sibling(path: Path) -> Path | None:
    """Return the ``.opencode`` binary next to an ``opencode`` wrapper, if any."""
    path = Path(path)
    if path.name not in ("opencode", "opencode.exe"):
        return None
    cached = path.parent / ".opencode"
    return cached if cached.is_file() else None


def _inspect_listening_endpoint_for_pid(pid: int) -> ServerEndpoint | None:
    listeners = find_tcp_listeners_for_pid(pid)
    if not listeners:
        return None
    host, port = min(listeners, key=lambda listener: socket_priority(*listener))
    return socket_to_endpoint(host, port)


def wait_for_child_server_endpoint(child: subprocess.Popen) -> ServerEndpoint:
    """Poll until the child process listens on a TCP port."""
    for _ in range(WARM_ATTEMPTS):
        returncode = child.poll()
        if returncode is not None:
            raise RuntimeError(
                "opencode serve exited before its listening port was discovered: "
                f"{_describe_exit_status(returncode)}"
            )

        endpoint = _inspect_listening_endpoint_for_pid(child.pid)
        if endpoint is not None:
            return endpoint

        time.sleep(SUPERVISOR_POLL_INTERVAL)

    raise RuntimeError(
        f"failed to discover a listening OpenCode port for pid {child.pid}"
    )


def wait_until_server_idle(child: subprocess.Popen, endpoint: ServerEndpoint) -> None:
    """Block until the server reports no busy sessions."""
    while True:
        returncode = child.poll()
        if returncode is not None:
            raise RuntimeError(
                "opencode serve exited while waiting to restart: "
                f"{_describe_exit_status(returncode)}"
            )

        if not server_has_busy_sessions(endpoint):
            return

        time.sleep(SUPERVISOR_POLL_INTERVAL)


def warm_project_instance(project_root: Path, endpoint: ServerEndpoint) -> None:
    """Ask the server to load the project so the plugin starts."""
    encoded_directory = percent_encode(os.fsencode(project_root))
    request_path = f"/experimental/tool/ids?directory={encoded_directory}"

    for _ in range(WARM_ATTEMPTS):
        try:
            response = http_get(endpoint.connect_host, endpoint.port, request_path)
        except (OSError, ValueError):
            response = None
        if response is not None and response.status_code == 200:
            return
        time.sleep(SUPERVISOR_POLL_INTERVAL)

    print(
        "warning: failed to warm the project instance automatically; "
        "the plugin may stay idle until the first project-scoped request",
        file=sys.stderr,
    )


def parse_jsonc(source: str) -> Any:
    """Parse JSON with comments and trailing commas; None for an empty document."""

    def drop_comment(match: re.Match[str]) -> str:
        text = match.group(0)
        return text if text.startswith('"') else " "

    def drop_comma(match: re.Match[str]) -> str:
        text = match.group(0)
        return text if text.startswith('"') else ""

    cleaned = _JSONC_COMMENTS.sub(drop_comment, source)
    cleaned = _JSONC_TRAILING_COMMAS.sub(drop_comma, cleaned)
    if not cleaned.strip():
        return None
    return json.loads(cleaned)


def _read_server_config(document: Any) -> tuple[str | None, int | None]:
    if document is None:
        return None, None
    if not isinstance(document, dict):
        raise ValueError("opencode config must be a JSON object")

    server = document.get("server")
    if server is None:
        return None, None
    if not isinstance(server, dict):
        raise ValueError("opencode config `server` must be an object")

    hostname = server.get("hostname")
    if hostname is not None and not isinstance(hostname, str):
        raise ValueError("opencode config `server.hostname` must be a string")

    port = server.get("port")
    if port is not None and (
        isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 0xFFFF
    ):
        raise ValueError("opencode config `server.port` must be a port number")

    return hostname, port


def resolve_server_endpoint(
    paths: GatewayPaths, options: LauncherOptions
) -> ServerEndpoint:
    """Work out the server endpoint from options, then the OpenCode config."""
    if options.server_host is not None or options.server_port is not None:
        host = options.server_host or DEFAULT_SERVER_HOST
        return ServerEndpoint(
            host=host,
            connect_host=normalize_connect_host(host),
            port=(
                options.server_port
                if options.server_port is not None
                else DEFAULT_SERVER_PORT
            ),
        )

    if not paths.opencode_config_file.exists():
        return ServerEndpoint(
            host=DEFAULT_SERVER_HOST,
            connect_host=DEFAULT_SERVER_HOST,
            port=DEFAULT_SERVER_PORT,
        )

    source = paths.opencode_config_file.read_text(encoding="utf-8")
    hostname, port = _read_server_config(parse_jsonc(source))
    host = (hostname or "").strip() or DEFAULT_SERVER_HOST
    return ServerEndpoint(
        host=host,
        connect_host=normalize_connect_host(host),
        port=port if port is not None else DEFAULT_SERVER_PORT,
    )


def normalize_connect_host(host: str) -> str:
    """Map wildcard listen addresses to a loopback address one can connect to."""
    value = host.strip()
    if value in ("0.0.0.0", "*"):
        return "127.0.0.1"
    if value in ("::", "[::]"):
        return "::1"
    return value


def server_has_busy_sessions(endpoint: ServerEndpoint) -> bool:
    """Whether any session is busy; transient failures count as busy."""
    try:
        response = http_get(endpoint.connect_host, endpoint.port, "/session/status")
    except (OSError, ValueError) as error:
        if should_retry_session_status_poll(error):
            return True
        raise

    if response.status_code != 200:
        return True

    statuses = json.loads(response.body)
    if not isinstance(statuses, dict):
        raise ValueError("session status response must be a JSON object")
    return any(is_busy_session_status(value) for value in statuses.values())


def should_retry_session_status_poll(error: BaseException) -> bool:
    """Whether a failed status poll is transient and worth retrying."""
    if isinstance(error, _RETRYABLE_ERRORS):
        return True
    return isinstance(error, OSError) and error.errno == errno.ENOTCONN


def is_busy_session_status(value: Any) -> bool:
    """Whether one session status entry reports ``busy``."""
    return isinstance(value, dict) and value.get("type") == "busy"


def _as_ip(host: Any) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    if isinstance(host, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return host
    return ipaddress.ip_address(str(host))


def _format_ip(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> str:
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return f"::ffff:{address.ipv4_mapped}"
    return str(address)


def socket_priority(host: Any, port: int) -> tuple[int, int]:
    """Sort key preferring loopback, then wildcard, then other addresses."""
    address = _as_ip(host)
    text = _format_ip(address)
    if isinstance(address, ipaddress.IPv4Address):
        loopback = address.is_loopback
    else:
        loopback = address == ipaddress.IPv6Address("::1")

    if loopback:
        rank = 0
    elif text in ("0.0.0.0", "::", "::0"):
        rank = 1
    else:
        rank = 2
    return rank, port


def socket_to_endpoint(host: Any, port: int) -> ServerEndpoint:
    """Build an endpoint from a listening socket address."""
    text = _format_ip(_as_ip(host))
    return ServerEndpoint(host=text, connect_host=normalize_connect_host(text), port=port)