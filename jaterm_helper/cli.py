"""Click CLI for the helper bootstrap."""

from __future__ import annotations

import asyncio
import json
import logging
import subprocess
import sys

import click

from . import __version__
from .bootstrap import HelperBootstrap, ensure_local_helper
from .config_loader import load_config
from .exceptions import ConfigError, HelperError, TransportError
from .helpers.descriptor import default_descriptor
from .helpers.local import LocalHelperInstaller
from .helpers.ssh_client import SSHTransport
from .helpers.types import HelperStatus
from .notifier import LogNotifier
from .presets.const import CONSENT_ALWAYS

_LOGGER = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Route log records to stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _echo_status(status: HelperStatus) -> None:
    click.echo(json.dumps(status.as_dict()))


def _confirm_install(target: str, install_path: str) -> bool:
    return click.confirm(
        f"Install helper on {target} at {install_path}?", default=True, err=True
    )


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML config file",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.version_option(__version__)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Install and check the jaterm helper."""
    setup_logging(verbose)
    try:
        config = load_config(config_path)
    except ConfigError as err:
        raise click.ClickException(str(err)) from err
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


async def _ensure_remote(
    config: dict,
    host: str,
    username: str | None,
    port: int | None,
    key_path: str | None,
    assume_yes: bool,
) -> HelperStatus:
    if assume_yes:
        config = {**config, "consent": CONSENT_ALWAYS}
    async with SSHTransport(config) as transport:
        try:
            session = await transport.open_session(
                host, username=username, port=port, key_path=key_path
            )
        except TransportError as err:
            _LOGGER.error("Cannot open session to %s: %s", host, err)
            return HelperStatus(ready=False)
        bootstrap = HelperBootstrap.from_config(
            transport, config, confirm=_confirm_install
        )
        return await bootstrap.ensure_helper(session, LogNotifier())


@cli.command()
@click.argument("host")
@click.option("--user", "-u", default=None, help="SSH user")
@click.option("--port", "-p", type=int, default=None, help="SSH port")
@click.option("--key", "-k", "key_path", default=None, help="Private key path")
@click.option("--yes", "-y", is_flag=True, help="Skip consent prompt")
@click.pass_context
def ensure(
    ctx: click.Context,
    host: str,
    user: str | None,
    port: int | None,
    key_path: str | None,
    yes: bool,
) -> None:
    """Install or refresh the helper on HOST over SSH."""
    status = asyncio.run(
        _ensure_remote(ctx.obj["config"], host, user, port, key_path, yes)
    )
    _echo_status(status)
    if not status.ready:
        ctx.exit(1)


@cli.command()
@click.pass_context
def local(ctx: click.Context) -> None:
    """Install or refresh the helper on this machine."""
    installer = LocalHelperInstaller(
        command_timeout=ctx.obj["config"]["command_timeout"]
    )
    status = asyncio.run(ensure_local_helper(installer))
    _echo_status(status)
    if not status.ready:
        ctx.exit(1)


@cli.command("exec", context_settings={"ignore_unknown_options": True})
@click.argument("command")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def exec_(ctx: click.Context, command: str, args: tuple[str, ...]) -> None:
    """Run COMMAND with the locally installed helper."""
    installer = LocalHelperInstaller(
        command_timeout=ctx.obj["config"]["command_timeout"]
    )
    try:
        res = installer.exec(command, list(args))
    except (HelperError, OSError, subprocess.SubprocessError) as err:
        raise click.ClickException(str(err)) from err
    if res.stdout:
        click.echo(res.stdout, nl=False)
    if res.stderr:
        click.echo(res.stderr, nl=False, err=True)
    ctx.exit(res.exit_code)


@cli.command()
def version() -> None:
    """Print the helper version this build installs."""
    click.echo(default_descriptor().version)


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
