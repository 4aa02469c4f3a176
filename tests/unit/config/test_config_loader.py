"""
Tests unitaires du chargement de configuration.

Les erreurs de configuration doivent être détectées au démarrage, avant que
le serveur n'accepte la moindre requête.
"""
from dataclasses import fields

import pytest

from mcp_http_adapter.config import (
    build_config,
    load_config_file,
    parse_env_vars,
    parse_mapping,
    parse_stdio_command,
    resolve_host,
)
from mcp_http_adapter.config.loader import get_stream_limit_bytes
from mcp_http_adapter.config.settings import Timeouts
from mcp_http_adapter.core.constants import (
    DEFAULT_STREAM_LIMIT,
    MAX_STREAM_LIMIT,
    MIN_STREAM_LIMIT,
    STREAM_LIMIT_ENV_VAR,
)
from mcp_http_adapter.core.exceptions import ConfigurationError

pytestmark = pytest.mark.unit


class TestParseStdioCommand:

    def test_shell_style_quoting(self):
        assert parse_stdio_command("npx -y 'my server' /data") == ["npx", "-y", "my server", "/data"]

    def test_empty_command_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_stdio_command("   ")

    def test_unclosed_quote_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_stdio_command("npx 'oops")
        assert exc_info.value.details == {"key": "stdio"}


class TestParsePairs:

    def test_env_vars_last_wins(self):
        assert parse_env_vars(["A=1", "B=2", "A=3"]) == {"A": "3", "B": "2"}

    @pytest.mark.parametrize("raw", ["NOVALUE", "=value", "KEY=a=b"])
    def test_malformed_env_var(self, raw):
        with pytest.raises(ConfigurationError):
            parse_env_vars([raw])

    def test_env_var_with_empty_value(self):
        assert parse_env_vars(["DEBUG=", "MODE=fast"]) == {"DEBUG": "", "MODE": "fast"}

    def test_mapping_requires_target(self):
        with pytest.raises(ConfigurationError):
            parse_mapping(["X-Team-Id="], config_key="header_arg")

    def test_mapping_keeps_declaration_order(self):
        mapping = parse_mapping(["X-Team-Id=team-id", "X-Channel=channel"], config_key="header_arg")
        assert list(mapping.items()) == [("X-Team-Id", "team-id"), ("X-Channel", "channel")]


class TestResolveHost:

    def test_cli_value_wins(self, monkeypatch):
        monkeypatch.setenv("HOST", "10.0.0.1")
        assert resolve_host("127.0.0.1") == "127.0.0.1"

    def test_env_var(self, monkeypatch):
        monkeypatch.setenv("HOST", "10.0.0.1")
        assert resolve_host(None) == "10.0.0.1"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("HOST", raising=False)
        assert resolve_host(None) == "0.0.0.0"


class TestStreamLimit:

    def test_default(self, monkeypatch):
        monkeypatch.delenv(STREAM_LIMIT_ENV_VAR, raising=False)
        assert get_stream_limit_bytes() == DEFAULT_STREAM_LIMIT

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1", MIN_STREAM_LIMIT),
            (str(1024 * 1024), 1024 * 1024),
            (str(10 * MAX_STREAM_LIMIT), MAX_STREAM_LIMIT),
            ("abc", DEFAULT_STREAM_LIMIT),
            ("-5", DEFAULT_STREAM_LIMIT),
        ],
    )
    def test_clamped(self, monkeypatch, raw, expected):
        monkeypatch.setenv(STREAM_LIMIT_ENV_VAR, raw)
        assert get_stream_limit_bytes() == expected


class TestBuildConfig:

    def test_minimal(self, monkeypatch):
        monkeypatch.delenv("HOST", raising=False)
        config = build_config(stdio="npx -y server-slack")
        assert config.command == "npx"
        assert config.args == ("-y", "server-slack")
        assert config.port == 8080
        assert config.host == "0.0.0.0"
        assert config.timeouts.process == 30.0
        assert config.log_level == "info"
        assert config.dynamic_headers is False

    def test_config_is_immutable(self):
        config = build_config(stdio="cat", env_vars=["A=1"])
        with pytest.raises(TypeError):
            config.default_env["A"] = "2"
        with pytest.raises(AttributeError):
            config.port = 1

    def test_missing_command(self):
        with pytest.raises(ConfigurationError):
            build_config(stdio=None)

    def test_invalid_port(self):
        with pytest.raises(ConfigurationError):
            build_config(stdio="cat", port=70000)

    def test_invalid_log_level(self):
        with pytest.raises(ConfigurationError):
            build_config(stdio="cat", log_level="trace")

    def test_non_positive_timeout(self):
        with pytest.raises(ConfigurationError):
            build_config(stdio="cat", timeouts={"process": 0})

    def test_cli_overrides_file(self, monkeypatch):
        monkeypatch.delenv("HOST", raising=False)
        file_config = {
            "stdio": "file-command",
            "port": 9000,
            "host": "127.0.0.1",
            "env": {"A": "file", "B": "file"},
            "header_env": {"X-Token": "TOKEN"},
            "timeouts": {"process": 5, "read": 2},
            "dynamic_headers": True,
        }
        config = build_config(
            stdio="cli-command --flag",
            env_vars=["A=cli"],
            port=9100,
            timeouts={"process": 7.5, "read": None},
            file_config=file_config,
        )
        assert config.command == "cli-command"
        assert config.port == 9100
        assert config.host == "127.0.0.1"
        assert dict(config.default_env) == {"A": "cli", "B": "file"}
        assert dict(config.header_env_mapping) == {"X-Token": "TOKEN"}
        assert config.timeouts.process == 7.5
        assert config.timeouts.read == 2.0
        assert config.dynamic_headers is True

    def test_timeouts_fields_and_defaults(self):
        timeouts = Timeouts.from_dict({"process": 5})
        assert {f.name for f in fields(Timeouts)} == {"read", "process", "shutdown"}
        assert (timeouts.read, timeouts.process, timeouts.shutdown) == (30.0, 5.0, 5.0)

    def test_describe_hides_env_values(self):
        config = build_config(stdio="cat", env_vars=["SECRET=hunter2"])
        described = config.describe()
        assert described["default_env_keys"] == ["SECRET"]
        assert "hunter2" not in repr(described)


class TestLoadConfigFile:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config_file(str(tmp_path / "absent.toml"))

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("stdio = ", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config_file(str(path))

    def test_env_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WORKSPACE", "acme")
        path = tmp_path / "adapter.toml"
        path.write_text(
            'stdio = "npx -y server-slack"\n'
            "[env]\n"
            'SLACK_WORKSPACE = "${WORKSPACE}"\n'
            'UNKNOWN = "${NOT_DEFINED_ANYWHERE}"\n',
            encoding="utf-8",
        )
        data = load_config_file(str(path))
        assert data["env"]["SLACK_WORKSPACE"] == "acme"
        assert data["env"]["UNKNOWN"] == "${NOT_DEFINED_ANYWHERE}"
