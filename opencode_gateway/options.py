"""Launcher options read from the process environment."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

MANAGED_VAR = "OPENCODE_GATEWAY_LAUNCHER_MANAGED"
CONFIG_DIR_VAR = "OPENCODE_GATEWAY_LAUNCHER_CONFIG_DIR"
SERVER_HOST_VAR = "OPENCODE_GATEWAY_LAUNCHER_SERVER_HOST"
SERVER_PORT_VAR = "OPENCODE_GATEWAY_LAUNCHER_SERVER_PORT"

_PORT_TEXT = re.compile(r"\+?[0-9]+")


@dataclass(frozen=True)
class LauncherOptions:
    """Settings that change where the launcher looks and what it connects to."""

    managed: bool = False
    config_dir: Path | None = None
    server_host: str | None = None
    server_port: int | None = None


def _parse_port(text: str) -> int:
    if not text:
        raise ValueError("cannot parse integer from empty string")
    if not _PORT_TEXT.fullmatch(text):
        raise ValueError("invalid digit found in string")
    value = int(text)
    if value > 0xFFFF:
        raise ValueError("number too large to fit in target type")
    return value


def load_options(environ: Mapping[str, str] | None = None) -> LauncherOptions:
    """Build launcher options from environment variables."""
    env = os.environ if environ is None else environ

    managed = env.get(MANAGED_VAR) == "1"

    config_dir_text = env.get(CONFIG_DIR_VAR)
    config_dir = Path(config_dir_text) if config_dir_text is not None else None

    host_text = env.get(SERVER_HOST_VAR)
    server_host = host_text.strip() if host_text is not None else None
    if not server_host:
        server_host = None

    port_text = env.get(SERVER_PORT_VAR)
    server_port = None
    if port_text is not None:
        try:
            server_port = _parse_port(port_text)
        except ValueError as error:
            raise ValueError(f"invalid {SERVER_PORT_VAR}: {error}") from error

    return LauncherOptions(
        managed=managed,
        config_dir=config_dir,
        server_host=server_host,
        server_port=server_port,
    )