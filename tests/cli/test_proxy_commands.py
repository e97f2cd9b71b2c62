"""Tests for the serve and config commands."""

import logging
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from modproxy import __version__
from modproxy.cli.main import cli

ENV = {
    "GITHUB_TOKEN": "s3cret",
    "MODPROXY_SOURCE": "example.com",
    "MODPROXY_DESTINATION": "github.com/trusted-cloud",
}


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("MODPROXY_CACHE_DIR", str(tmp_path / "cache"))
    return tmp_path


@pytest.fixture
def no_env(monkeypatch):
    for name in list(ENV) + ["MODPROXY_CACHE_DIR", "MODPROXY_PORT"]:
        monkeypatch.delenv(name, raising=False)


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


class TestConfigCommand:
    def test_prints_masked_config(self, env):
        result = CliRunner().invoke(
            cli, ["config", "--config", str(env / "absent.cfg"), "--port", "9000"]
        )

        assert result.exit_code == 0, result.output
        assert "port = 9000" in result.output
        assert "token = ****" in result.output
        assert "source_namespace = example.com" in result.output
        assert "s3cret" not in result.output

    def test_missing_config_exits(self, no_env, tmp_path):
        result = CliRunner().invoke(cli, ["config", "--config", str(tmp_path / "absent.cfg")])
        assert result.exit_code == 1

    def test_token_not_accepted_as_option(self, env):
        result = CliRunner().invoke(cli, ["config", "--token", "x"])
        assert result.exit_code == 2


class TestServeCommand:
    def test_missing_config_exits(self, no_env, tmp_path):
        with patch("modproxy.cli.serve.create_app") as create_app:
            result = CliRunner().invoke(
                cli, ["serve", "--config", str(tmp_path / "absent.cfg")]
            )

        assert result.exit_code == 1
        create_app.assert_not_called()

    def test_starts_server(self, env):
        with patch("modproxy.cli.serve.create_app") as create_app:
            result = CliRunner().invoke(
                cli,
                [
                    "serve",
                    "--config",
                    str(env / "absent.cfg"),
                    "--host",
                    "127.0.0.1",
                    "--port",
                    "9001",
                ],
            )

        assert result.exit_code == 0, result.output
        cfg = create_app.call_args[0][0]
        assert cfg.port == 9001
        assert cfg.cache_dir.is_dir()
        create_app.return_value.run.assert_called_once_with(
            host="127.0.0.1", port=9001, threaded=True
        )

    def test_debug_flag(self, env):
        with patch("modproxy.cli.serve.create_app"):
            result = CliRunner().invoke(
                cli, ["serve", "--debug", "--config", str(env / "absent.cfg")]
            )
        assert result.exit_code == 0, result.output


class TestLogging:
    def test_default_level_is_info(self, env):
        with patch("modproxy.cli.serve.create_app"):
            CliRunner().invoke(cli, ["serve", "--config", str(env / "absent.cfg")])

        assert logging.getLogger("modproxy").level == logging.INFO
        assert logging.getLogger("werkzeug").level == logging.WARNING

    def test_debug_on_group_reaches_command(self, env):
        with patch("modproxy.cli.serve.create_app"):
            result = CliRunner().invoke(
                cli, ["--debug", "config", "--config", str(env / "absent.cfg")]
            )

        assert result.exit_code == 0, result.output
        assert logging.getLogger("modproxy").level == logging.DEBUG
        assert logging.getLogger("werkzeug").level == logging.INFO

    def test_startup_is_logged(self, env):
        with patch("modproxy.cli.serve.create_app"):
            result = CliRunner().invoke(
                cli, ["serve", "--config", str(env / "absent.cfg"), "--port", "9002"]
            )

        assert "Mapping modules from example.com to github.com/trusted-cloud" in result.output
        assert "Starting server on 0.0.0.0:9002" in result.output
        assert "s3cret" not in result.output

    def test_handler_is_added_once(self, env):
        runner = CliRunner()
        for _ in range(3):
            runner.invoke(cli, ["config", "--config", str(env / "absent.cfg")])

        handlers = [
            h for h in logging.getLogger("modproxy").handlers
            if isinstance(h, logging.StreamHandler)
        ]
        assert len(handlers) == 1
