"""
azblob command line

    azblob [OPTIONS] ls [CONTAINER]
    azblob [OPTIONS] put [CONTAINER] FILE
    azblob [OPTIONS] get [CONTAINER] NAME

CONTAINER is optional, the account's default container from the config file
is used when absent.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Coroutine, NoReturn

try:
    import click
except ImportError:
    raise ImportError('Please install click or azblob with "cli" to use this module')

from . import __version__
from .client import BlobClient
from .config import get_account, load_accounts
from .errors import AzBlobError
from .logs import init_logging

logger = logging.getLogger(__name__)


@dataclass
class CliContext:
    config_path: Path | None
    account: str | None
    endpoint: str | None

    def client(self) -> BlobClient:
        config = get_account(load_accounts(self.config_path), self.account)
        logger.debug("Using account %s, default container %s", config.account, config.container)
        return BlobClient(config, endpoint=self.endpoint)


def _die(message: str) -> NoReturn:
    click.secho(message, fg="red", bold=True, err=True)
    sys.exit(1)


def _run(coro: Coroutine[Any, Any, Any]):
    try:
        return asyncio.run(coro)
    except (AzBlobError, OSError) as e:
        _die(str(e))


@click.group()
@click.version_option(version=__version__, prog_name="azblob")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Account file of STORAGE_ACCOUNT DEFAULT_CONTAINER ACCESS_KEY lines (default: $AZBLOB_CONFIG or ~/.azblob)",
)
@click.option("-a", "--account", help="Storage account (by default the first line of the config file)")
@click.option(
    "--endpoint",
    envvar="AZBLOB_ENDPOINT",
    help="Endpoint template, eg: http://127.0.0.1:10000/{account}",
)
@click.option("-D", "--debug", is_flag=True, help="Log requests and parsed elements")
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default="console",
    show_default=True,
)
@click.pass_context
def cli(ctx, config_path: Path | None, account: str | None, endpoint: str | None, debug: bool, log_format: str):
    """A simple CLI for Azure Blob Storage."""
    root_logger = logging.getLogger("azblob")
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    init_logging(
        root_logger,
        log_format,  # pyright: ignore[reportArgumentType]
        __version__,
        level=logging.DEBUG if debug else logging.WARNING,
    )
    ctx.obj = CliContext(config_path=config_path, account=account, endpoint=endpoint)


@cli.command("ls")
@click.argument("container", required=False)
@click.pass_obj
def ls_cmd(obj: CliContext, container: str | None):
    """List container content."""

    async def _ls():
        async with obj.client() as client:
            async for name in client.list_blobs(container):
                click.echo(name)

    _run(_ls())


@cli.command("put")
@click.argument("container_or_file")
@click.argument("file", required=False, type=click.Path(path_type=Path))
@click.pass_obj
def put_cmd(obj: CliContext, container_or_file: str, file: Path | None):
    """Upload FILE, to CONTAINER when given."""
    container, _file = (None, Path(container_or_file)) if file is None else (container_or_file, file)
    if not _file.is_file():
        _die(f"File {_file} does not exist")

    async def _put():
        async with obj.client() as client:
            return await client.upload_file(_file, container=container)

    url = _run(_put())
    click.echo(f"File uploaded to {url}")


@cli.command("get")
@click.argument("container_or_name")
@click.argument("name", required=False)
@click.pass_obj
def get_cmd(obj: CliContext, container_or_name: str, name: str | None):
    """Download blob NAME, from CONTAINER when given, into the current directory."""
    container, _name = (None, container_or_name) if name is None else (container_or_name, name)

    async def _get():
        async with obj.client() as client:
            await client.download_file(_name, container=container)
            return client.url(_name, container=container)

    url = _run(_get())
    click.echo(f"File {_name} downloaded from {url}")


def main():
    cli()


if __name__ == "__main__":
    main()
