"""Tests for config loading, key conversion and server lookup."""

import json
from pathlib import Path

import pytest

from stdiorpc.config.loader import (
    _migrate_config,
    convert_keys,
    convert_to_camel,
    get_config_path,
    load_config,
    save_config,
)
from stdiorpc.config.schema import Config, ServerConfig
from stdiorpc.utils.exceptions import ConfigError


def test_load_camel_case_config_preserves_names(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "defaultServer": "axinovaMcp",
                "logLevel": "DEBUG",
                "servers": {
                    "axinovaMcp": {
                        "command": "/opt/axinova/bin/axinova-mcp-server",
                        "env": {"ENV": "prod", "APP_VIKUNJA__TOKEN": "${VIKUNJA_TOKEN}"},
                        "requestTimeout": 12.5,
                        "strictFraming": True,
                    }
                },
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(path)

    server = cfg.get_server()
    assert cfg.log_level == "DEBUG"
    assert list(cfg.servers) == ["axinovaMcp"]
    assert server.command == "/opt/axinova/bin/axinova-mcp-server"
    assert server.env == {"ENV": "prod", "APP_VIKUNJA__TOKEN": "${VIKUNJA_TOKEN}"}
    assert server.request_timeout == 12.5
    assert server.strict_framing is True
    assert server.inherit_env is True


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "absent.json")
    assert cfg.servers == {}
    assert cfg.log_level == "INFO"


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"servers": {"x": {"args": "not-a-list"}}}'])
def test_invalid_file_raises_config_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError) as info:
        load_config(path)
    assert str(path) in info.value.message


def test_migrate_mcp_servers_layout() -> None:
    data = {"mcpServers": {"vikunja": {"command": "npx", "args": ["-y", "srv"]}}, "servers": {}}
    migrated = _migrate_config(data)
    assert "mcpServers" not in migrated
    assert migrated["servers"]["vikunja"]["command"] == "npx"


def test_migrate_does_not_override_existing_server() -> None:
    data = {"mcpServers": {"a": {"command": "new"}}, "servers": {"a": {"command": "old"}}}
    assert _migrate_config(data)["servers"]["a"]["command"] == "old"


def test_convert_keys_roundtrip_keeps_env_names() -> None:
    camel = {"servers": {"myServer": {"inheritEnv": False, "env": {"API_TOKEN": "x", "lowerCamel": "y"}}}}
    snake = convert_keys(camel)
    assert snake == {"servers": {"myServer": {"inherit_env": False, "env": {"API_TOKEN": "x", "lowerCamel": "y"}}}}
    assert convert_to_camel(snake) == camel


def test_save_then_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.json"
    cfg = Config(
        default_server="fake",
        servers={"fake": ServerConfig(command="srv", args=["--stdio"], env={"A_B": "1"}, request_timeout=None)},
    )

    save_config(cfg, path)
    written = json.loads(path.read_text(encoding="utf-8"))
    loaded = load_config(path)

    assert written["defaultServer"] == "fake"
    assert written["servers"]["fake"]["requestTimeout"] is None
    assert loaded.get_server("fake") == cfg.servers["fake"]


def test_get_server_errors() -> None:
    cfg = Config(servers={"a": ServerConfig(command="x"), "b": ServerConfig()})
    with pytest.raises(ConfigError):
        cfg.get_server()
    with pytest.raises(ConfigError):
        cfg.get_server("missing")
    with pytest.raises(ConfigError):
        cfg.get_server("b")
    assert cfg.get_server("a").command == "x"


def test_get_server_uses_lone_entry() -> None:
    cfg = Config(servers={"only": ServerConfig(command="x")})
    assert cfg.get_server().command == "x"


def test_config_path_env_override(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STDIORPC_CONFIG", str(tmp_path / "custom.json"))
    assert get_config_path() == tmp_path / "custom.json"
    monkeypatch.delenv("STDIORPC_CONFIG")
    assert get_config_path() == Path.home() / ".stdiorpc" / "config.json"
