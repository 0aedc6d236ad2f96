"""Creation of the gateway's directories, config files and plugin loader."""

from __future__ import annotations

import os
import shutil
import signal
import subprocess
from collections.abc import Mapping
from pathlib import Path

from .paths import PACKAGE_ROOT_VAR, GatewayPaths, resolve_runtime_root_path

_GATEWAY_CONFIG_TEMPLATE = """\
# Opencode Gateway configuration
# Fill in secrets and provider details before enabling real integrations.

[gateway]
state_db = "{state_db}"

[cron]
enabled = true
tick_seconds = 5
max_concurrent_runs = 1
# timezone = "Asia/Shanghai"

[channels.telegram]
enabled = false
# Ask @BotFather for the bot token. Choose exactly one credential source.
# bot_token = "token"
# Or load it from an environment variable:
bot_token_env = "TELEGRAM_BOT_TOKEN"
poll_timeout_seconds = 25
# Ask @userinfobot for your numeric Telegram user id for private-chat allowlists.
allowed_chats = []
allowed_users = []

# Optional long-lived memory sources injected into gateway-managed sessions.
# Relative paths are resolved from opencode-gateway-workspace.
# Missing files and directories are created automatically.
# The workspace also prepares `.opencode/skills/` for workspace-local OpenCode skills.

[[memory.entries]]
path = "USER.md"
description = "Persistent user profile and preference memory. Keep this file accurate and concise. Record stable preferences, communication style, workflow habits, project conventions, tool constraints, review expectations, and other recurring facts that should shape future assistance. Update it proactively when you learn something durable about the user. Do not store one-off task details or transient context here."
inject_content = true

[[memory.entries]]
path = "RULES.md"
description = "Behavior rules and standing operating constraints for the assistant. Keep this file concise, explicit, and current. Use it for durable expectations about behavior, review standards, output style, safety boundaries, and other rules that should consistently shape future responses. Update it proactively when new long-lived rules or boundaries become clear."
inject_content = true

[[memory.entries]]
path = "memory/daily"
description = "Daily notes stored as YYYY-MM-DD.md files. Use this directory for dated logs, short-lived findings, and day-specific working context that should remain searchable without being auto-injected. Create or update the current day's file proactively when meaningful new day-specific context appears."
search_only = true
"""

_MANAGED_OPENCODE_CONFIG = """\
{
  "server": {
    "hostname": "127.0.0.1",
    "port": 4096
  }
}
"""

_PLUGIN_LOADER_TEMPLATE = """\
// Generated by opencode-gateway-launcher.
// OpenCode loads this file through OPENCODE_CONFIG_DIR.
export {{ default, OpencodeGatewayPlugin }} from "{url}";
"""


def _describe_exit_status(returncode: int) -> str:
    if returncode >= 0:
        return f"exit status: {returncode}"
    number = -returncode
    try:
        return f"signal: {number} ({signal.Signals(number).name})"
    except ValueError:
        return f"signal: {number}"


def ensure_layout(paths: GatewayPaths) -> None:
    """Create every directory the gateway needs."""
    for directory in (
        paths.config_root,
        paths.workspace_dir,
        paths.opencode_plugin_loader.parent,
        paths.control_dir,
        paths.state_dir,
    ):
        directory.mkdir(parents=True, exist_ok=True)


def write_gateway_config_if_missing(paths: GatewayPaths) -> None:
    """Write the default gateway TOML config unless one exists."""
    if paths.config_file.exists():
        return
    paths.config_file.write_text(
        _GATEWAY_CONFIG_TEMPLATE.format(state_db=paths.state_db), encoding="utf-8"
    )


def write_managed_opencode_config_if_missing(paths: GatewayPaths) -> None:
    """Write the default OpenCode config unless one exists."""
    if paths.opencode_config_file.exists():
        return
    paths.opencode_config_file.write_text(_MANAGED_OPENCODE_CONFIG, encoding="utf-8")


def _resolve_workspace_template_root_path(environ: Mapping[str, str] | None) -> Path:
    runtime_root = resolve_runtime_root_path(environ)
    candidates = (
        runtime_root / "templates/workspace",
        runtime_root / "packages/opencode-plugin/templates/workspace",
    )
    for candidate in candidates:
        if candidate.exists():
            return candidate
    raise RuntimeError("failed to resolve workspace template root")


def write_workspace_scaffold_if_missing(
    paths: GatewayPaths, environ: Mapping[str, str] | None = None
) -> None:
    """Copy workspace template files that are not there yet."""
    template_root = _resolve_workspace_template_root_path(environ)
    copy_directory_contents_if_missing(template_root, paths.workspace_dir)


def write_plugin_loader(paths: GatewayPaths, plugin_entry: Path) -> None:
    """Write the loader module that re-exports the gateway plugin."""
    entry = Path(plugin_entry).resolve(strict=True)
    paths.opencode_plugin_loader.write_text(
        _PLUGIN_LOADER_TEMPLATE.format(url=file_url(entry)), encoding="utf-8"
    )


def build_binding_if_needed(environ: Mapping[str, str] | None = None) -> None:
    """Build the native binding when running from a source checkout."""
    env = os.environ if environ is None else environ
    if PACKAGE_ROOT_VAR in env:
        return

    project_root = resolve_runtime_root_path(env)
    completed = subprocess.run(
        ["bun", "run", "build:binding"], cwd=project_root, check=False
    )
    if completed.returncode != 0:
        raise RuntimeError(
            "bun run build:binding exited with status "
            f"{_describe_exit_status(completed.returncode)}"
        )


def copy_directory_contents_if_missing(source_dir: Path, target_dir: Path) -> None:
    """Copy a tree into another, leaving files that already exist untouched."""
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    with os.scandir(source_dir) as entries:
        for entry in entries:
            target_path = target_dir / entry.name
            if entry.is_dir(follow_symlinks=False):
                copy_directory_contents_if_missing(Path(entry.path), target_path)
            elif entry.is_file(follow_symlinks=False):
                _copy_file_if_missing(Path(entry.path), target_path)


def _copy_file_if_missing(source_path: Path, target_path: Path) -> None:
    if target_path.exists():
        return
    target_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy(source_path, target_path)


def file_url(path: Path | str) -> str:
    """Render a path as a ``file://`` URL with forward slashes and escaped spaces."""
    text = os.fspath(path).replace("\\", "/").replace(" ", "%20")
    return f"file://{text}"