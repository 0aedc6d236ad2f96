"""Discovery of the files and directories the gateway launcher manages."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .options import LauncherOptions

PACKAGE_ROOT_VAR = "OPENCODE_GATEWAY_PACKAGE_ROOT"


@dataclass(frozen=True)
class GatewayPaths:
    """Every location the launcher reads or writes."""

    config_root: Path
    config_file: Path
    workspace_dir: Path
    opencode_dir: Path
    control_dir: Path
    opencode_config_file: Path
    opencode_plugin_loader: Path
    state_dir: Path
    state_db: Path
    restart_request_file: Path
    restart_status_file: Path


def _environ(environ: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def _home_dir(env: Mapping[str, str]) -> Path:
    home = env.get("HOME")
    if home is None:
        raise RuntimeError("HOME is not set")
    return Path(home)


def _xdg_dir(env: Mapping[str, str], key: str, home: Path, fallback: str) -> Path:
    value = env.get(key)
    return Path(value) if value is not None else home / fallback


def _resolve_cli_config_dir(
    options: LauncherOptions, home: Path, env: Mapping[str, str]
) -> Path:
    if options.config_dir is not None:
        try:
            return options.config_dir.resolve(strict=True)
        except OSError:
            return options.config_dir

    if options.managed:
        return _xdg_dir(env, "XDG_CONFIG_HOME", home, ".config") / "opencode-gateway/opencode"

    explicit = env.get("OPENCODE_CONFIG_DIR")
    if explicit is not None:
        return Path(explicit)
    return _xdg_dir(env, "XDG_CONFIG_HOME", home, ".config") / "opencode"


def _resolve_opencode_config_path(config_dir: Path) -> Path:
    jsonc = config_dir / "opencode.jsonc"
    if jsonc.exists():
        return jsonc
    json_file = config_dir / "opencode.json"
    if json_file.exists():
        return json_file
    return jsonc


def discover_paths(
    options: LauncherOptions, environ: Mapping[str, str] | None = None
) -> GatewayPaths:
    """Work out the gateway's paths from the options and environment."""
    env = _environ(environ)
    home = _home_dir(env)
    config_root = _xdg_dir(env, "XDG_CONFIG_HOME", home, ".config") / "opencode-gateway"
    state_dir = _xdg_dir(env, "XDG_DATA_HOME", home, ".local/share") / "opencode-gateway"
    opencode_dir = _resolve_cli_config_dir(options, home, env)
    config_file = opencode_dir / "opencode-gateway.toml"

    return GatewayPaths(
        config_root=config_root,
        config_file=config_file,
        workspace_dir=config_file.parent / "opencode-gateway-workspace",
        opencode_dir=opencode_dir,
        control_dir=opencode_dir / "control",
        opencode_config_file=_resolve_opencode_config_path(opencode_dir),
        opencode_plugin_loader=opencode_dir / "plugins/opencode-gateway.ts",
        state_dir=state_dir,
        state_db=state_dir / "state.db",
        restart_request_file=opencode_dir / "control/restart-request.json",
        restart_status_file=opencode_dir / "control/restart-status.json",
    )


def describe_path(path: Path) -> str:
    """Say whether a path exists, for human-readable reports."""
    state = "present" if path.exists() else "missing"
    return f"{state} at {path}"


def resolve_runtime_root_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return the root directory that holds the plugin runtime files."""
    env = _environ(environ)
    package_root = env.get(PACKAGE_ROOT_VAR)
    if package_root is not None:
        return Path(package_root).resolve(strict=True)
    return Path(__file__).resolve().parent.parent.resolve(strict=True)


def resolve_plugin_entry_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return the plugin entry file, preferring a packaged build."""
    root = resolve_runtime_root_path(environ)
    packaged = root / "dist/index.js"
    if packaged.exists():
        return packaged
    return root / "packages/opencode-plugin/src/index.ts"