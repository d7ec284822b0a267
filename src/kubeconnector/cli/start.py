# src/kubeconnector/cli/start.py
"""
Start command for the kubeconnector CLI.

Runs one collection loop per ConnectorConfig until SIGTERM or SIGINT.
All loops share one set of cluster clients.
"""

import asyncio
import logging
import signal
from typing import List, Optional

import typer
from typing_extensions import Annotated

from ..core.config import config
from ..core.exceptions import ConfigurationError
from ..core.k8s_client import create_client_bundle
from ..core.orchestrator import CollectionOrchestrator
from ..core.scheduler import Scheduler

logger = logging.getLogger(__name__)

app = typer.Typer(name="start", help="Start the kubeconnector collection service.")


async def run_service(connector_names: List[str]) -> None:
    """
    Schedules a collection loop per connector and waits for a shutdown
    signal. Each loop's next sleep follows its connector's interval.
    """
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    def _request_shutdown(sig_name: str):
        logger.info(f"Received {sig_name}, initiating graceful shutdown...")
        shutdown.set()

    clients = await create_client_bundle()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown, sig.name)

    orchestrators = [CollectionOrchestrator(name, clients=clients) for name in connector_names]
    scheduler = Scheduler()
    try:
        for orchestrator in orchestrators:
            scheduler.add_job(
                orchestrator.run_cycle,
                interval_fn=orchestrator.next_interval,
                name=f"collect:{orchestrator.connector_name}",
            )
        logger.info(f"kubeconnector is running for {len(orchestrators)} connector(s). Press CTRL+C to exit.")
        await shutdown.wait()
    finally:
        await scheduler.stop()
        for orchestrator in orchestrators:
            await orchestrator.close()
        await clients.close()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        logger.info("kubeconnector stopped.")


@app.callback(invoke_without_command=True)
def start(
    ctx: typer.Context,
    connector: Annotated[
        Optional[List[str]],
        typer.Option(
            "--connector",
            "-c",
            help="Name of a ConnectorConfig to run. Repeatable. Defaults to CONNECTOR_NAMES.",
        ),
    ] = None,
) -> None:
    """
    Start the collection loop for every configured connector.
    """
    if ctx.invoked_subcommand is not None:
        return

    connector_names = list(connector or config.CONNECTOR_NAMES)
    if not connector_names:
        typer.echo("No connector given. Use --connector or set CONNECTOR_NAMES.", err=True)
        raise typer.Exit(code=1)

    logger.info(f"Initializing kubeconnector for connector(s): {', '.join(connector_names)}")
    try:
        asyncio.run(run_service(connector_names))
    except ConfigurationError as e:
        logger.error(f"Startup failed: {e}")
        raise typer.Exit(code=1)
