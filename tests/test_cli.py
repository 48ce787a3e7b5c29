"""Tests for jaterm_helper/cli.py."""

from __future__ import annotations

import json
import subprocess
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from jaterm_helper.cli import cli
from jaterm_helper.exceptions import HelperError, TransportError
from jaterm_helper.helpers.types import ExecResult, HelperStatus
from jaterm_helper.presets.const import HELPER_VERSION


def _last_json(output: str) -> dict:
    """Status JSON is the last line; log records may precede it."""
    return json.loads(output.strip().splitlines()[-1])


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def base_args(tmp_path):
    return ["--config", str(tmp_path / "helper.yaml")]


def test_version_prints_helper_version(cli_runner, base_args):
    result = cli_runner.invoke(cli, [*base_args, "version"])
    assert result.exit_code == 0
    assert result.output.strip() == HELPER_VERSION


@pytest.mark.parametrize(
    ("status", "exit_code"),
    [
        (HelperStatus(ready=True, version="0.1.0", install_path="/h/x"), 0),
        (HelperStatus(ready=False), 1),
    ],
    ids=["ready", "not_ready"],
)
def test_local_prints_status(cli_runner, base_args, status, exit_code):
    with patch("jaterm_helper.cli.ensure_local_helper", AsyncMock(return_value=status)):
        result = cli_runner.invoke(cli, [*base_args, "local"])

    assert result.exit_code == exit_code
    assert _last_json(result.output) == status.as_dict()


def test_ensure_passes_options(cli_runner, base_args):
    status = HelperStatus(ready=True, version="0.1.0", install_path="/root/x")
    ensure_remote = AsyncMock(return_value=status)
    with patch("jaterm_helper.cli._ensure_remote", ensure_remote):
        result = cli_runner.invoke(
            cli, [*base_args, "ensure", "10.0.0.1", "-u", "admin", "-p", "2222", "-y"]
        )

    assert result.exit_code == 0
    config, host, user, port, key_path, yes = ensure_remote.await_args.args
    assert (host, user, port, key_path, yes) == ("10.0.0.1", "admin", 2222, None, True)
    assert config["consent"] == "ask"
    assert _last_json(result.output)["ready"] is True


def test_ensure_reports_unreachable_host(cli_runner, base_args):
    with patch(
        "jaterm_helper.cli.SSHTransport.open_session",
        AsyncMock(side_effect=TransportError("refused")),
    ):
        result = cli_runner.invoke(cli, [*base_args, "ensure", "10.0.0.1"])

    assert result.exit_code == 1
    assert _last_json(result.output)["ready"] is False


def test_exec_forwards_output_and_exit_code(cli_runner, base_args):
    installer = MagicMock()
    installer.exec.return_value = ExecResult(exit_code=3, stdout="out\n", stderr="")
    with patch("jaterm_helper.cli.LocalHelperInstaller", return_value=installer):
        result = cli_runner.invoke(cli, [*base_args, "exec", "git-status", "/repo"])

    assert result.exit_code == 3
    assert "out" in result.output
    installer.exec.assert_called_once_with("git-status", ["/repo"])


def test_exec_without_helper_fails_cleanly(cli_runner, base_args):
    installer = MagicMock()
    installer.exec.side_effect = HelperError("helper not installed")
    with patch("jaterm_helper.cli.LocalHelperInstaller", return_value=installer):
        result = cli_runner.invoke(cli, [*base_args, "exec", "health"])

    assert result.exit_code == 1
    assert "helper not installed" in result.output


def test_invalid_config_aborts(cli_runner, tmp_path):
    config = tmp_path / "helper.yaml"
    config.write_text("consent: sometimes\n")

    result = cli_runner.invoke(cli, ["--config", str(config), "version"])

    assert result.exit_code == 1
    assert "Invalid config" in result.output


def test_exec_timeout_fails_cleanly(cli_runner, base_args):
    installer = MagicMock()
    installer.exec.side_effect = subprocess.TimeoutExpired("helper", 30)
    with patch("jaterm_helper.cli.LocalHelperInstaller", return_value=installer):
        result = cli_runner.invoke(cli, [*base_args, "exec", "health"])

    assert result.exit_code == 1
    assert "timed out" in result.output
    assert not isinstance(result.exception, subprocess.TimeoutExpired)


@pytest.mark.parametrize("command", ["local", "exec"])
def test_local_commands_use_configured_timeout(cli_runner, tmp_path, command):
    config = tmp_path / "helper.yaml"
    config.write_text("command_timeout: 7\n")
    installer = MagicMock()
    installer.exec.return_value = ExecResult(exit_code=0)
    status = HelperStatus(ready=True, version="0.1.0", install_path="/h/x")
    with patch(
        "jaterm_helper.cli.LocalHelperInstaller", return_value=installer
    ) as installer_cls, patch(
        "jaterm_helper.cli.ensure_local_helper", AsyncMock(return_value=status)
    ) as ensure_local:
        args = ["--config", str(config), command]
        result = cli_runner.invoke(cli, args + (["health"] if command == "exec" else []))

    assert result.exit_code == 0
    assert installer_cls.call_args.kwargs["command_timeout"] == 7.0
    if command == "local":
        ensure_local.assert_awaited_once_with(installer)


def test_ensure_with_invalid_key_prints_status(cli_runner, base_args, tmp_path):
    key = tmp_path / "id_ed25519"
    key.write_text("not a key")
    connect = AsyncMock()
    with patch("jaterm_helper.helpers.ssh_client.asyncssh.connect", connect):
        result = cli_runner.invoke(
            cli, [*base_args, "ensure", "127.0.0.1", "-k", str(key), "-y"]
        )

    assert result.exit_code == 1
    assert _last_json(result.output)["ready"] is False
    connect.assert_not_awaited()
