"""
Unit tests for server configuration and the CLI.
"""

import logging

import pytest

from statserver.__main__ import build_parser, config_from_args
from statserver.config import ConfigError, ServerConfig


class TestServerConfig:

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.timeout is None
        assert config.server_name == "statserver/1.0"
        assert config.access_log is True
        config.validate()

    @pytest.mark.parametrize("port", [0, 1, 65535])
    def test_valid_ports(self, port: int):
        ServerConfig(port=port).validate()

    @pytest.mark.parametrize("port", [-1, 65536])
    def test_invalid_ports(self, port: int):
        with pytest.raises(ConfigError):
            ServerConfig(port=port).validate()

    @pytest.mark.parametrize("changes", [
        {"buffer_size": 512},
        {"timeout": 0},
        {"backlog": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
        {"server_name": ""},
    ])
    def test_invalid_values(self, changes: dict):
        with pytest.raises(ConfigError):
            ServerConfig(**changes).validate()

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)

    def test_log_level_value(self):
        assert ServerConfig(log_level="debug").log_level_value == logging.DEBUG

    def test_merge_ignores_none(self):
        config = ServerConfig(port=9000).merge(port=None, host="0.0.0.0")

        assert config.port == 9000
        assert config.host == "0.0.0.0"


class TestFromEnv:

    def test_empty_environment_gives_defaults(self):
        assert ServerConfig.from_env({}) == ServerConfig()

    def test_reads_variables(self):
        config = ServerConfig.from_env({
            "STATSERVER_HOST": "0.0.0.0",
            "STATSERVER_PORT": "3000",
            "STATSERVER_TIMEOUT": "2.5",
            "STATSERVER_LOG_LEVEL": "debug",
            "STATSERVER_LOG_FORMAT": "JSON",
        })

        assert config.host == "0.0.0.0"
        assert config.port == 3000
        assert config.timeout == 2.5
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_bad_number(self):
        with pytest.raises(ConfigError):
            ServerConfig.from_env({"STATSERVER_PORT": "eighty"})

    def test_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("STATSERVER_PORT", "4321")
        assert ServerConfig.from_env().port == 4321


class TestCLI:

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("STATSERVER_PORT", "4321")
        monkeypatch.setenv("STATSERVER_HOST", "0.0.0.0")

        args = build_parser().parse_args(["--port", "5000", "-l", "debug", "--no-access-log"])
        config = config_from_args(args)

        assert config.port == 5000
        assert config.host == "0.0.0.0"
        assert config.log_level == "DEBUG"
        assert config.access_log is False

    def test_unset_flags_keep_defaults(self, monkeypatch):
        for name in ("HOST", "PORT", "TIMEOUT", "LOG_LEVEL", "LOG_FORMAT"):
            monkeypatch.delenv(f"STATSERVER_{name}", raising=False)

        config = config_from_args(build_parser().parse_args([]))

        assert config == ServerConfig()

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])

        assert "statserver 1.0.0" in capsys.readouterr().out
