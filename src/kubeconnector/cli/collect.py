# src/kubeconnector/cli/collect.py
"""
One-shot collection for a single connector, useful for checking a
ConnectorConfig before running the service.
"""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from ..core.orchestrator import CollectionOrchestrator, CycleResult, CycleState
from ..exporters.json_exporter import JSONExporter

logger = logging.getLogger(__name__)


async def collect_once(connector_name: str, output_dir: Optional[str] = None) -> CycleResult:
    sink = JSONExporter(output_dir) if output_dir else None
    orchestrator = CollectionOrchestrator(connector_name, sink=sink)
    try:
        return await orchestrator.run_cycle()
    finally:
        await orchestrator.close()


def collect(
    connector: Annotated[str, typer.Option("--connector", "-c", help="Name of the ConnectorConfig to collect for.")],
    output: Annotated[
        Optional[str],
        typer.Option("--output", "-o", help="Write batches as JSON files here instead of sending them."),
    ] = None,
) -> None:
    """
    Run a single collection cycle, print a summary table and exit.
    """
    result = asyncio.run(collect_once(connector, output))
    console = Console()

    console.print(
        f"Collected {result.collected} record(s): {result.resources_sent} resource(s) "
        f"and {result.events_sent} event(s) delivered."
    )
    table = Table(title=f"Collection cycle for '{connector}'", header_style="bold magenta")
    table.add_column("State", style="cyan")
    table.add_column("Collected", justify="right")
    table.add_column("Resources sent", style="green", justify="right")
    table.add_column("Events sent", style="green", justify="right")
    table.add_row(result.state.value, str(result.collected), str(result.resources_sent), str(result.events_sent))
    console.print(table)

    for error in result.errors:
        typer.echo(f"  error: {error}", err=True)
    if result.state == CycleState.ERROR:
        raise typer.Exit(code=1)
