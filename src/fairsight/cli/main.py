"""
fairsight CLI - main entry point.
"""
import click

from ..config import load_config
from ..logging_config import setup_logger
from ..utils.dates import Clock
from .activity import activity
from .traffic import adapters, history, monitor


@click.group()
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              envvar='FAIRSIGHT_CONFIG', help='Path to config JSON')
@click.option('--backend', type=click.Choice(['scapy', 'dummy']), default='dummy',
              show_default=True, help='Capture backend to use')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                                               case_sensitive=False),
              default=None, help='Override the configured log level')
@click.pass_context
def cli(ctx, config_path, backend, log_level):
    """fairsight - activity and network traffic monitor."""
    ctx.ensure_object(dict)
    config = ctx.obj.get('config') or load_config(config_path)
    if log_level:
        config.log_level = log_level.upper()
    setup_logger(config.log_level, config.log_file)

    ctx.obj.setdefault('config', config)
    ctx.obj.setdefault('clock', Clock())
    ctx.obj.setdefault('backend_kind', backend)


cli.add_command(adapters)
cli.add_command(activity)
cli.add_command(history)
cli.add_command(monitor)

if __name__ == "__main__":
    cli()
