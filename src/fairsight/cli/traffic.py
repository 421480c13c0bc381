"""
CLI commands for adapters, traffic history and live monitoring.
"""
import asyncio
import time
from typing import Optional

import click

from ..exceptions import BackendError, PayloadShapeError
from ..models import MonitoringState
from ..monitoring import AdapterLifecycleManager, TrafficHistory, summarize_totals, sync_status
from ..utils.formatting import format_bytes, format_duration
from .common import date_range_options, make_client, resolve_range, run

_STATE_LABELS = {
    MonitoringState.NOT_MONITORING: "idle",
    MonitoringState.STARTING: "starting",
    MonitoringState.MONITORING: "monitoring",
}


@click.command()
@click.pass_context
def adapters(ctx):
    """List network adapters known to the backend."""
    client = make_client(ctx)
    try:
        found = run(client.list_adapters())
    except (BackendError, PayloadShapeError) as e:
        click.echo(f"Error listing adapters: {e}", err=True)
        ctx.exit(1)

    if not found:
        click.echo("No adapters found.")
        return

    click.echo("Available adapters:")
    for adapter in found:
        if adapter.is_loopback:
            status = "LOOPBACK"
        else:
            status = "UP" if adapter.is_up else "DOWN"
        addresses = ", ".join(adapter.addresses)
        click.echo(f"  {adapter.name:20} {status:8} {adapter.description}  {addresses}".rstrip())


@click.command()
@date_range_options
@click.pass_context
def history(ctx, start, end, days):
    """
    Show per-day traffic, with today taken from the live counters.

    Examples:
      fairsight history --days 7
      fairsight --backend scapy history --start 2024-05-01 --end 2024-05-07
    """
    start, end = resolve_range(ctx, start, end, days)
    client = make_client(ctx)
    service = TrafficHistory(client, clock=ctx.obj['clock'])

    try:
        reconciled = run(service.fetch(start, end))
    except (BackendError, PayloadShapeError) as e:
        click.echo(f"Failed to fetch network data: {e}", err=True)
        ctx.exit(1)

    if not reconciled:
        click.echo("No traffic recorded in this range.")
        return

    click.echo(f"{'Date':12} {'Incoming':>12} {'Outgoing':>12} {'Sessions':>9} {'Duration':>10}  Source")
    click.echo("-" * 70)
    for day in reconciled:
        source = "live" if day.has_real_time_data else "stored"
        click.echo(f"{day.date:12} {format_bytes(day.total_incoming_bytes):>12} "
                   f"{format_bytes(day.total_outgoing_bytes):>12} {len(day.sessions):>9} "
                   f"{format_duration(day.total_duration):>10}  {source}")

    totals = summarize_totals(reconciled)
    click.echo("-" * 70)
    click.echo(f"{'Total':12} {format_bytes(totals.total_incoming):>12} "
               f"{format_bytes(totals.total_outgoing):>12} {totals.total_sessions:>9} "
               f"{format_duration(totals.total_duration):>10}")
    click.echo(f"Peak unique hosts: {totals.unique_hosts}  "
               f"Peak unique services: {totals.unique_services}")


async def _echo_sync_status(client) -> None:
    try:
        status = sync_status(await client.get_current_totals())
    except (BackendError, PayloadShapeError) as e:
        click.echo(f"Totals unavailable: {e}", err=True)
        return
    click.echo(f"Totals: live {format_bytes(status.live_bytes)}, "
               f"stored sessions {format_bytes(status.session_bytes)}")
    if status.discrepancy:
        click.echo("  Live counters are ahead of stored sessions, they sync when sessions close.")
    if status.needs_consolidation:
        click.echo("  Many sessions recorded today, consider consolidating them.")


async def _monitor(client, config, duration: Optional[int]) -> None:
    manager = AdapterLifecycleManager(
        client,
        discovery_interval=config.discovery_interval,
        poll_interval=config.poll_interval,
    )
    await manager.start()
    if manager.view().unexpected_shutdown:
        click.echo("Warning: the previous session ended unexpectedly. "
                   "Some session data may be missing; lifetime totals were preserved.\n")

    click.echo(f"{'Adapter':20} {'State':11} {'Incoming':>12} {'Outgoing':>12} {'Hosts':>6}")
    started = last_totals = time.monotonic()
    try:
        while duration is None or time.monotonic() - started < duration:
            await asyncio.sleep(config.poll_interval)
            if time.monotonic() - last_totals >= config.totals_refresh_interval:
                last_totals = time.monotonic()
                await _echo_sync_status(client)
            view = manager.view()
            for name, state in sorted(view.states.items()):
                snap = view.snapshots.get(name)
                click.echo(f"{name:20} {_STATE_LABELS[state]:11} "
                           f"{format_bytes(snap.incoming_bytes if snap else 0):>12} "
                           f"{format_bytes(snap.outgoing_bytes if snap else 0):>12} "
                           f"{len(snap.hosts) if snap else 0:>6}")
            if view.discovery_error:
                click.echo(f"Adapter discovery failing: {view.discovery_error}", err=True)
    finally:
        await manager.close()
        try:
            await client.close()
            await client.mark_clean_shutdown()
        except BackendError as e:
            click.echo(f"Clean shutdown could not be recorded: {e}", err=True)


@click.command()
@click.option('--duration', '-d', type=int, help='Duration in seconds (default: run until Ctrl+C)')
@click.pass_context
def monitor(ctx, duration):
    """
    Monitor every adapter that is up and print live stats.

    Examples:
      fairsight monitor -d 30
      fairsight --backend scapy monitor
    """
    client = make_client(ctx)
    click.echo("Press Ctrl+C to stop\n")
    try:
        run(_monitor(client, ctx.obj['config'], duration))
    except KeyboardInterrupt:
        click.echo("\nMonitoring stopped.")
