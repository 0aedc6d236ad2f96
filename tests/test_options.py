from pathlib import Path

import pytest

from opencode_gateway.options import LauncherOptions, load_options


def test_empty_environment_gives_defaults():
    assert load_options({}) == LauncherOptions()


def test_managed_only_when_exactly_one():
    assert load_options({"OPENCODE_GATEWAY_LAUNCHER_MANAGED": "1"}).managed is True
    assert load_options({"OPENCODE_GATEWAY_LAUNCHER_MANAGED": "true"}).managed is False
    assert load_options({"OPENCODE_GATEWAY_LAUNCHER_MANAGED": "0"}).managed is False


def test_config_dir_is_taken_as_path():
    options = load_options({"OPENCODE_GATEWAY_LAUNCHER_CONFIG_DIR": "/srv/gateway"})
    assert options.config_dir == Path("/srv/gateway")


def test_server_host_is_trimmed():
    options = load_options({"OPENCODE_GATEWAY_LAUNCHER_SERVER_HOST": "  0.0.0.0 "})
    assert options.server_host == "0.0.0.0"


def test_blank_server_host_is_ignored():
    options = load_options({"OPENCODE_GATEWAY_LAUNCHER_SERVER_HOST": "   "})
    assert options.server_host is None


def test_server_port_is_parsed():
    options = load_options({"OPENCODE_GATEWAY_LAUNCHER_SERVER_PORT": "4096"})
    assert options.server_port == 4096


@pytest.mark.parametrize("value", ["", "abc", "70000", " 80", "-1"])
def test_invalid_server_port_raises(value):
    with pytest.raises(ValueError, match="invalid OPENCODE_GATEWAY_LAUNCHER_SERVER_PORT"):
        load_options({"OPENCODE_GATEWAY_LAUNCHER_SERVER_PORT": value})


def test_reads_process_environment_by_default(monkeypatch):
    monkeypatch.setenv("OPENCODE_GATEWAY_LAUNCHER_SERVER_PORT", "5000")
    monkeypatch.setenv("OPENCODE_GATEWAY_LAUNCHER_MANAGED", "1")
    options = load_options()
    assert options.server_port == 5000
    assert options.managed is True