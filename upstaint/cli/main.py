import json
import sys

import click
from rich.console import Console
from rich.table import Table

from upstaint import __version__
from upstaint.applier import NodeStatus
from upstaint.config import Settings
from upstaint.monitor import CycleReport, TaintMonitor
from upstaint.nut.client import NUTClient
from upstaint.nut.telemetry import read_snapshot
from upstaint.taints.classify import classify, classify_snapshot
from upstaint.taints.models import DesiredTaintState
from upstaint.utils.logging import setup_logging

from .utils import handle_async_command

console = Console()

STATUS_STYLES = {
    NodeStatus.UNCHANGED: "green",
    NodeStatus.PATCHED: "cyan",
    NodeStatus.WOULD_PATCH: "yellow",
    NodeStatus.FAILED: "red",
}


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enables verbose mode.')
@click.option('--quiet', '-q', is_flag=True, help='Enables quiet mode.')
@click.version_option(__version__)
@click.pass_context
def app(ctx, verbose, quiet):
    """
    upstaint: taint Kubernetes nodes from UPS power state.
    """
    ctx.ensure_object(dict)
    ctx.obj['VERBOSE'] = verbose
    ctx.obj['QUIET'] = quiet

    if verbose:
        setup_logging(level="DEBUG")
    elif quiet:
        setup_logging(level="ERROR")
    else:
        setup_logging()


def _format_decision(desired: DesiredTaintState) -> str:
    if not desired.present:
        return "[green]no taint[/green]"
    return f"[yellow]{desired.value}[/yellow] ({desired.effect.value})"


def _print_report(report: CycleReport) -> None:
    table = Table(title="Dry run" if report.dry_run else "Node taints")
    table.add_column("UPS")
    table.add_column("Status")
    table.add_column("Battery")
    table.add_column("Decision")
    table.add_column("Node")
    table.add_column("Result")

    for ups in report.ups:
        battery = "-" if ups.snapshot.battery_percent is None else f"{ups.snapshot.battery_percent:g}%"
        common = [ups.ups_name, ups.snapshot.status or "-", battery, _format_decision(ups.desired)]
        if not ups.nodes:
            table.add_row(*common, "-", "[dim]no nodes[/dim]")
        for result in ups.nodes:
            style = STATUS_STYLES[result.status]
            table.add_row(*common, result.node_name, f"[{style}]{result.status.value}[/{style}]")

    console.print(table)
    for result in report.failed_nodes:
        console.print(f"[red]{result.node_name}: {result.error_message}[/red]")


@app.command()
@click.option('--dry-run', is_flag=True, help='Compute taint changes without patching nodes.')
@click.option('--watch', is_flag=True, help='Keep running, one cycle every --interval seconds.')
@click.option('--interval', type=float, default=None, help='Seconds between cycles in watch mode.')
@click.option('--json', 'json_output', is_flag=True, help='Print the cycle report as JSON.')
@handle_async_command
async def run(dry_run, watch, interval, json_output) -> None:
    """Reconciles node taints with the current UPS state."""
    settings = Settings()
    monitor = TaintMonitor(settings)

    if watch:
        await monitor.run_forever(interval, dry_run or None)
        return

    report = await monitor.run_once(dry_run or None)
    if json_output:
        click.echo(json.dumps(report.to_dict(), indent=2))
        sys.exit(0 if report.ok else 1)

    _print_report(report)
    if not report.ok:
        console.print(f"[red]{len(report.failed_nodes)} node(s) could not be updated[/red]")
        sys.exit(1)


@app.command(name='classify')
@click.argument('status', default='')
@click.option('--battery', type=float, default=None, help='Battery charge in percent.')
@click.option('--threshold', type=float, default=None, help='Eviction threshold in percent.')
def classify_cmd(status, battery, threshold) -> None:
    """Shows the taint decision for a UPS STATUS string."""
    if threshold is None:
        threshold = Settings().BATTERY_THRESHOLD
    desired = classify(status, battery, threshold)
    console.print(f"Status: [cyan]{status or '(empty)'}[/cyan]")
    console.print(f"Battery: [cyan]{'unknown' if battery is None else f'{battery:g}%'}[/cyan]")
    console.print(f"Decision: {_format_decision(desired)}")


@app.command()
@handle_async_command
async def status() -> None:
    """Shows every UPS and the taint it would produce, without touching the cluster."""
    settings = Settings()
    client = NUTClient.from_settings(settings)
    ups_list = await client.list_ups()

    table = Table(title=f"UPS on {settings.NUT_HOST}:{settings.NUT_PORT}")
    table.add_column("UPS")
    table.add_column("Description")
    table.add_column("Status")
    table.add_column("Battery")
    table.add_column("Decision")

    for name, description in ups_list.items():
        snapshot = await read_snapshot(client, name)
        desired = classify_snapshot(snapshot, settings.BATTERY_THRESHOLD)
        battery = "-" if snapshot.battery_percent is None else f"{snapshot.battery_percent:g}%"
        table.add_row(name, description or "", snapshot.status or "-", battery, _format_decision(desired))

    console.print(table)


if __name__ == '__main__':
    app()
