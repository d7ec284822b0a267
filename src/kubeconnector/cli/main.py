# src/kubeconnector/cli/main.py
"""
Entry point of the `kubeconnector` command.

`start` runs the connector as a long-lived service, `collect` runs a single
cycle for one ConnectorConfig, and `version` prints the installed version.
"""

import logging
from typing import Optional

import typer
from typing_extensions import Annotated

from .. import __version__
from ..core.config import config
from . import collect, start

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logging.basicConfig(level=config.LOG_LEVEL.upper(), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="kubeconnector",
    help="Collect Kubernetes resource usage and cost metrics and ship them to the billing service.",
    no_args_is_help=True,
    add_completion=False,
)
app.add_typer(start.app, name="start")
app.command(name="collect")(collect.collect)


def _print_version(requested: bool):
    if requested:
        typer.echo(f"kubeconnector {__version__}")
        raise typer.Exit()


@app.command()
def version():
    """Print the kubeconnector version."""
    typer.echo(f"kubeconnector {__version__}")


@app.callback()
def main(
    show_version: Annotated[
        Optional[bool],
        typer.Option("--version", "-V", callback=_print_version, is_eager=True, help="Print the version and exit."),
    ] = None,
):
    logger.debug("kubeconnector %s, log level %s", __version__, config.LOG_LEVEL)
