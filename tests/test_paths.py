import pytest

from opencode_gateway.options import LauncherOptions
from opencode_gateway.paths import (
    describe_path,
    discover_paths,
    resolve_plugin_entry_path,
    resolve_runtime_root_path,
)


@pytest.fixture
def home(tmp_path):
    return tmp_path.resolve()


def test_default_layout_uses_xdg_fallbacks(home):
    paths = discover_paths(LauncherOptions(), {"HOME": str(home)})
    assert paths.config_root == home / ".config" / "opencode-gateway"
    assert paths.state_dir == home / ".local/share" / "opencode-gateway"
    assert paths.state_db == paths.state_dir / "state.db"
    assert paths.opencode_dir == home / ".config" / "opencode"


def test_derived_paths_hang_off_opencode_dir(home):
    paths = discover_paths(LauncherOptions(), {"HOME": str(home)})
    base = paths.opencode_dir
    assert paths.config_file == base / "opencode-gateway.toml"
    assert paths.workspace_dir == base / "opencode-gateway-workspace"
    assert paths.control_dir == base / "control"
    assert paths.opencode_plugin_loader == base / "plugins" / "opencode-gateway.ts"
    assert paths.restart_request_file == paths.control_dir / "restart-request.json"
    assert paths.restart_status_file == paths.control_dir / "restart-status.json"


def test_xdg_variables_override_home(home):
    env = {
        "HOME": str(home),
        "XDG_CONFIG_HOME": str(home / "cfg"),
        "XDG_DATA_HOME": str(home / "data"),
    }
    paths = discover_paths(LauncherOptions(), env)
    assert paths.config_root == home / "cfg" / "opencode-gateway"
    assert paths.state_dir == home / "data" / "opencode-gateway"
    assert paths.opencode_dir == home / "cfg" / "opencode"


def test_managed_mode_uses_gateway_owned_dir(home):
    env = {"HOME": str(home), "OPENCODE_CONFIG_DIR": str(home / "ignored")}
    paths = discover_paths(LauncherOptions(managed=True), env)
    assert paths.opencode_dir == paths.config_root / "opencode"


def test_opencode_config_dir_variable_is_used(home):
    env = {"HOME": str(home), "OPENCODE_CONFIG_DIR": str(home / "custom")}
    paths = discover_paths(LauncherOptions(), env)
    assert paths.opencode_dir == home / "custom"


def test_explicit_config_dir_wins_and_is_kept_when_missing(home):
    missing = home / "nowhere"
    paths = discover_paths(LauncherOptions(managed=True, config_dir=missing), {"HOME": str(home)})
    assert paths.opencode_dir == missing


def test_explicit_config_dir_is_canonicalized(home):
    real = home / "real"
    real.mkdir()
    paths = discover_paths(LauncherOptions(config_dir=home / "real" / ".." / "real"), {"HOME": str(home)})
    assert paths.opencode_dir == real


def test_opencode_config_file_preference(home):
    config_dir = home / "oc"
    config_dir.mkdir()
    options = LauncherOptions(config_dir=config_dir)
    env = {"HOME": str(home)}

    assert discover_paths(options, env).opencode_config_file == config_dir / "opencode.jsonc"
    (config_dir / "opencode.json").write_text("{}")
    assert discover_paths(options, env).opencode_config_file == config_dir / "opencode.json"
    (config_dir / "opencode.jsonc").write_text("{}")
    assert discover_paths(options, env).opencode_config_file == config_dir / "opencode.jsonc"


def test_missing_home_raises():
    with pytest.raises(RuntimeError, match="HOME is not set"):
        discover_paths(LauncherOptions(), {})


def test_describe_path(home):
    target = home / "file.txt"
    assert describe_path(target) == f"missing at {target}"
    target.write_text("x")
    assert describe_path(target) == f"present at {target}"


def test_runtime_root_from_environment(home):
    root = home / "pkg"
    root.mkdir()
    env = {"OPENCODE_GATEWAY_PACKAGE_ROOT": str(root / "." / "..")}
    assert resolve_runtime_root_path(env) == home


def test_runtime_root_missing_raises(home):
    with pytest.raises(FileNotFoundError):
        resolve_runtime_root_path({"OPENCODE_GATEWAY_PACKAGE_ROOT": str(home / "missing")})


def test_runtime_root_default_is_a_directory():
    assert resolve_runtime_root_path({}).is_dir()


def test_plugin_entry_prefers_packaged_build(home):
    env = {"OPENCODE_GATEWAY_PACKAGE_ROOT": str(home)}
    assert resolve_plugin_entry_path(env) == home / "packages/opencode-plugin/src/index.ts"
    (home / "dist").mkdir()
    (home / "dist" / "index.js").write_text("")
    assert resolve_plugin_entry_path(env) == home / "dist" / "index.js"