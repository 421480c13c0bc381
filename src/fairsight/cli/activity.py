"""
CLI command for the daily activity report.
"""
import click

from ..activity import ActivityAggregator, average_day
from ..exceptions import PayloadShapeError
from ..utils.formatting import format_duration
from .common import date_range_options, make_client, resolve_range, run


@click.command()
@date_range_options
@click.pass_context
def activity(ctx, start, end, days):
    """
    Show active / inactive / not-run time per day.

    Examples:
      fairsight activity --days 7
      fairsight activity --start 2024-05-01 --end 2024-05-31
    """
    start, end = resolve_range(ctx, start, end, days)
    client = make_client(ctx)
    aggregator = ActivityAggregator(client)

    try:
        rows = run(aggregator.aggregate_with_labels(start, end))
    except PayloadShapeError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("The activity service returned unexpected data, try again.", err=True)
        ctx.exit(1)

    click.echo(f"{'Date':12} {'Active':>10} {'Inactive':>10} {'Not run':>10}")
    click.echo("-" * 45)
    for label, summary in rows:
        click.echo(f"{label:12} {format_duration(summary.active_seconds):>10} "
                   f"{format_duration(summary.inactive_seconds):>10} "
                   f"{format_duration(summary.not_run_seconds):>10}")

    if rows:
        avg = average_day([summary for _, summary in rows])
        click.echo("-" * 45)
        click.echo(f"{'Average':12} {format_duration(avg.active_seconds):>10} "
                   f"{format_duration(avg.inactive_seconds):>10} "
                   f"{format_duration(avg.not_run_seconds):>10}")
