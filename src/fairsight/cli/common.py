"""
Shared CLI helpers: backend construction and date range options.
"""
import asyncio
from datetime import timedelta

import click

from ..capture import BackendClient, create_backend
from ..utils.dates import default_date_range, to_date


def make_client(ctx) -> BackendClient:
    """Backend client for the current invocation (tests may pre-seed one)."""
    obj = ctx.obj
    if obj.get('backend') is not None:
        return BackendClient(obj['backend'])
    try:
        backend = create_backend(obj['backend_kind'], config=obj['config'], clock=obj['clock'])
    except Exception as e:
        click.echo(f"Error initializing {obj['backend_kind']} backend: {e}", err=True)
        if obj['backend_kind'] == 'scapy':
            click.echo("\nFor live capture install scapy and run with capture privileges", err=True)
            click.echo("(root on Linux/macOS, Npcap on Windows).", err=True)
        ctx.exit(1)
    return BackendClient(backend)


def run(coro):
    return asyncio.run(coro)


def date_range_options(func):
    """--start/--end options, defaulting to the last week."""
    func = click.option('--end', type=click.DateTime(formats=['%Y-%m-%d']),
                        help='Last day (YYYY-MM-DD), default today')(func)
    func = click.option('--start', type=click.DateTime(formats=['%Y-%m-%d']),
                        help='First day (YYYY-MM-DD), default a week ago')(func)
    func = click.option('--days', type=click.IntRange(min=1),
                        help='Shortcut: the last N days including today')(func)
    return func


def resolve_range(ctx, start, end, days):
    clock = ctx.obj['clock']
    if days:
        today = clock.today()
        return today - timedelta(days=days - 1), today
    default_start, default_end = default_date_range(clock)
    start = to_date(start) if start else default_start
    end = to_date(end) if end else default_end
    if start > end:
        raise click.BadParameter("--start must not be after --end")
    return start, end
