"""The launcher's sub-commands: init, doctor, warm and serve."""

from __future__ import annotations

import signal
import subprocess
import time
from collections.abc import Mapping
from pathlib import Path

from .options import LauncherOptions
from .paths import (
    GatewayPaths,
    describe_path,
    discover_paths,
    resolve_plugin_entry_path,
    resolve_runtime_root_path,
)
from .restart import (
    RestartRequest,
    RestartState,
    RestartStatus,
    clear_restart_request,
    now_ms,
    read_restart_request,
    reset_restart_control_files,
    write_restart_failure,
    write_restart_status,
)
from .server import (
    SUPERVISOR_POLL_INTERVAL,
    ServerEndpoint,
    resolve_server_endpoint,
    spawn_managed_opencode,
    wait_for_child_server_endpoint,
    wait_until_server_idle,
    warm_project_instance,
)
from .workspace import (
    build_binding_if_needed,
    ensure_layout,
    write_gateway_config_if_missing,
    write_managed_opencode_config_if_missing,
    write_plugin_loader,
    write_workspace_scaffold_if_missing,
)


def _describe_exit_status(returncode: int) -> str:
    if returncode >= 0:
        return f"exit status: {returncode}"
    number = -returncode
    try:
        return f"signal: {number} ({signal.Signals(number).name})"
    except ValueError:
        return f"signal: {number}"


def prepare_gateway_paths(
    options: LauncherOptions, environ: Mapping[str, str] | None = None
) -> tuple[GatewayPaths, Path]:
    """Discover paths and create the managed layout, configs and plugin loader."""
    paths = discover_paths(options, environ)
    plugin_entry = resolve_plugin_entry_path(environ)

    ensure_layout(paths)
    write_workspace_scaffold_if_missing(paths, environ)
    write_gateway_config_if_missing(paths)
    write_managed_opencode_config_if_missing(paths)
    write_plugin_loader(paths, plugin_entry)

    return paths, plugin_entry


def report_binary(binary: str, version_arg: str) -> str:
    """Run ``binary version_arg``, print whether it worked and return that line."""
    try:
        completed = subprocess.run(
            [binary, version_arg], stdout=subprocess.DEVNULL, check=False
        )
    except OSError as error:
        line = f"  {binary}: missing ({error})"
    else:
        if completed.returncode == 0:
            line = f"  {binary}: ok"
        else:
            line = (
                f"  {binary}: failed with status "
                f"{_describe_exit_status(completed.returncode)}"
            )
    print(line)
    return line


def run_init(options: LauncherOptions, environ: Mapping[str, str] | None = None) -> None:
    """Prepare the gateway files and print where they live."""
    paths, _ = prepare_gateway_paths(options, environ)

    print(f"gateway config: {paths.config_file}")
    print(f"managed opencode config: {paths.opencode_config_file}")
    print(f"managed plugin loader: {paths.opencode_plugin_loader}")
    print(f"gateway workspace: {paths.workspace_dir}")
    print(f"state database: {paths.state_db}")


def run_doctor(
    options: LauncherOptions, environ: Mapping[str, str] | None = None
) -> None:
    """Print a report of the generated paths and required tools."""
    paths = discover_paths(options, environ)
    endpoint = resolve_server_endpoint(paths, options)
    try:
        runtime_root: Path | None = resolve_runtime_root_path(environ)
    except (OSError, RuntimeError):
        runtime_root = None

    print("doctor report")
    print(f"  runtime root: {runtime_root if runtime_root is not None else 'unknown'}")
    print(f"  gateway config: {describe_path(paths.config_file)}")
    print(f"  managed opencode config: {describe_path(paths.opencode_config_file)}")
    print(f"  managed plugin loader: {describe_path(paths.opencode_plugin_loader)}")
    print(f"  gateway workspace: {describe_path(paths.workspace_dir)}")
    print(f"  state db: {describe_path(paths.state_db)}")
    print(f"  control dir: {describe_path(paths.control_dir)}")
    print(
        f"  managed server endpoint: {endpoint.host}:{endpoint.port} "
        f"(connect via {endpoint.connect_host}:{endpoint.port})"
    )

    report_binary("opencode", "--version")
    report_binary("bun", "--version")


def run_warm(options: LauncherOptions, environ: Mapping[str, str] | None = None) -> None:
    """Prepare the gateway files and warm the plugin on a running server."""
    paths, _ = prepare_gateway_paths(options, environ)
    endpoint = resolve_server_endpoint(paths, options)
    warm_project_instance(paths.workspace_dir, endpoint)

    print(f"gateway plugin warmed: http://{endpoint.connect_host}:{endpoint.port}")
    print(f"warm directory: {paths.workspace_dir}")


def _restart(
    paths: GatewayPaths,
    child: subprocess.Popen,
    endpoint: ServerEndpoint,
    request: RestartRequest,
    environ: Mapping[str, str] | None,
) -> tuple[subprocess.Popen, ServerEndpoint]:
    write_restart_status(
        paths,
        RestartStatus(
            state=RestartState.PENDING, requested_at_ms=request.requested_at_ms
        ),
    )

    wait_until_server_idle(child, endpoint)
    started_at_ms = now_ms()
    write_restart_status(
        paths,
        RestartStatus(
            state=RestartState.RESTARTING,
            requested_at_ms=request.requested_at_ms,
            started_at_ms=started_at_ms,
        ),
    )

    try:
        child.kill()
    except OSError as error:
        message = f"failed to stop opencode serve for restart: {error}"
        write_restart_failure(paths, request.requested_at_ms, started_at_ms, message)
        raise RuntimeError(message) from error
    try:
        child.wait()
    except OSError:
        pass

    try:
        child = spawn_managed_opencode(paths, environ)
    except OSError as error:
        message = f"failed to restart opencode serve: {error}"
        write_restart_failure(paths, request.requested_at_ms, started_at_ms, message)
        raise RuntimeError(message) from error

    endpoint = wait_for_child_server_endpoint(child)
    warm_project_instance(paths.workspace_dir, endpoint)

    clear_restart_request(paths)
    write_restart_status(
        paths,
        RestartStatus(
            state=RestartState.IDLE,
            started_at_ms=started_at_ms,
            completed_at_ms=now_ms(),
        ),
    )
    return child, endpoint


def run_serve(
    options: LauncherOptions, environ: Mapping[str, str] | None = None
) -> None:
    """Start OpenCode with the gateway plugin and supervise restart requests."""
    paths, _ = prepare_gateway_paths(options, environ)

    build_binding_if_needed(environ)
    reset_restart_control_files(paths)

    print("starting opencode gateway")
    print(f"opencode config root: {paths.opencode_dir}")

    child = spawn_managed_opencode(paths, environ)
    endpoint = wait_for_child_server_endpoint(child)
    print(
        f"opencode server: {endpoint.host}:{endpoint.port} "
        f"(connect via {endpoint.connect_host}:{endpoint.port})"
    )
    warm_project_instance(paths.workspace_dir, endpoint)

    while True:
        returncode = child.poll()
        if returncode is not None:
            if returncode != 0:
                raise RuntimeError(
                    "opencode serve exited with status "
                    f"{_describe_exit_status(returncode)}"
                )
            return

        request = read_restart_request(paths)
        if request is not None:
            child, endpoint = _restart(paths, child, endpoint, request, environ)

        time.sleep(SUPERVISOR_POLL_INTERVAL)