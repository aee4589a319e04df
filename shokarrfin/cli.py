"""
Command Line Interface (CLI) with Click
"""

import logging
import sys
import time

import click
import schedule
from rich.console import Console

from shokarrfin.cli_config import (
    build_jellyfin_client,
    load_config_from_args,
    setup_context,
)
from shokarrfin.commands import (
    listen_command,
    season_command,
    show_command,
    sync_command,
    test_command,
)
from shokarrfin.config import Config
from shokarrfin.metadata import SeasonProvider
from shokarrfin.resolver import ShowResolver
from shokarrfin.shoko import ShokoClient
from shokarrfin.utils import setup_logging

logger = logging.getLogger(__name__)
console = Console()


@click.group()
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="YAML configuration file"
)
@click.option("--shoko-url", envvar="SHOKO_URL", help="Shoko Server URL")
@click.option("--shoko-api-key", envvar="SHOKO_API_KEY", help="Shoko API key")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
)
@click.pass_context
def cli(ctx, config, shoko_url, shoko_api_key, log_level):
    """ShokarrFin - Shoko series and watch state for Jellyfin"""

    # Setup logging
    setup_logging(log_level)

    # Load and validate configuration
    cfg = load_config_from_args(config, shoko_url, shoko_api_key, log_level)

    # Setup context
    ctx.ensure_object(dict)
    ctx.obj.update(setup_context(cfg))


@cli.command()
@click.argument("series_id")
@click.argument("season_number", type=int)
@click.option("--language", "-l", help="Metadata language (e.g. en, ja, x-jat)")
@click.pass_context
def season(ctx, series_id, season_number, language):
    """Show the metadata of a season of a Shoko series"""

    config: Config = ctx.obj["config"]
    season_provider: SeasonProvider = ctx.obj["season_provider"]

    if season_number < 1:
        console.print("[red]Error:[/red] Season 0 holds the specials and has no season metadata")
        sys.exit(1)

    if not season_command(config, season_provider, series_id, season_number, language):
        sys.exit(1)


@cli.command()
@click.argument("series_id")
@click.pass_context
def show(ctx, series_id):
    """Show the season layout of the show a Shoko series belongs to"""

    config: Config = ctx.obj["config"]
    resolver: ShowResolver = ctx.obj["resolver"]

    try:
        if not show_command(config, resolver, series_id):
            sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        logger.exception("Error while resolving show")
        sys.exit(1)


@cli.command()
@click.pass_context
def sync(ctx):
    """Synchronize user data between Jellyfin and Shoko"""

    config: Config = ctx.obj["config"]
    shoko: ShokoClient = ctx.obj["shoko"]
    jellyfin = build_jellyfin_client(config)

    try:
        sync_command(config, shoko, jellyfin)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        logger.exception("Error during synchronization")
        sys.exit(1)


@cli.command()
@click.option("--host", help="Address to bind, overrides webhook_host")
@click.option("--port", type=int, help="Port to bind, overrides webhook_port")
@click.pass_context
def listen(ctx, host, port):
    """Receive Jellyfin webhook notifications and sync user data as it changes"""

    config: Config = ctx.obj["config"]
    shoko: ShokoClient = ctx.obj["shoko"]
    jellyfin = build_jellyfin_client(config)

    try:
        listen_command(config, shoko, jellyfin, host, port)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        logger.exception("Error in webhook receiver")
        sys.exit(1)


@cli.command()
@click.pass_context
def test(ctx):
    """Test connection to Shoko and Jellyfin"""
    config: Config = ctx.obj["config"]
    shoko: ShokoClient = ctx.obj["shoko"]
    test_command(config, shoko)


@cli.command()
@click.option(
    "--interval",
    type=int,
    help="Override schedule interval from config",
)
@click.option(
    "--unit",
    type=click.Choice(["seconds", "minutes", "hours", "days", "weeks"]),
    help="Override schedule unit from config",
)
@click.pass_context
def schedule_mode(ctx, interval, unit):
    """Run the user data synchronization on a schedule"""

    config: Config = ctx.obj["config"]
    shoko: ShokoClient = ctx.obj["shoko"]
    resolver: ShowResolver = ctx.obj["resolver"]
    jellyfin = build_jellyfin_client(config)

    # Use command-line args if provided, otherwise use config
    schedule_interval = interval if interval is not None else config.schedule_interval
    schedule_unit = unit if unit is not None else config.schedule_unit

    # Validate schedule unit
    valid_units = ["seconds", "minutes", "hours", "days", "weeks"]
    if schedule_unit not in valid_units:
        console.print(f"[red]Invalid schedule unit:[/red] {schedule_unit}")
        console.print(f"Valid units: {', '.join(valid_units)}")
        sys.exit(1)

    console.print("[bold cyan]ShokarrFin - Schedule Mode[/bold cyan]")
    console.print(f"Synchronizing every {schedule_interval} {schedule_unit}")
    console.print("Press Ctrl+C to stop\n")

    def run_sync():
        """Run the sync command"""
        try:
            console.print(f"\n[bold blue]{'=' * 60}[/bold blue]")
            console.print(
                f"[bold blue]Running scheduled sync at {time.strftime('%Y-%m-%d %H:%M:%S')}[/bold blue]"
            )
            console.print(f"[bold blue]{'=' * 60}[/bold blue]\n")

            # Shows may have changed since the last run
            resolver.clear()
            sync_command(config, shoko, jellyfin)

            console.print(
                f"\n[dim]Next run in {schedule_interval} {schedule_unit}[/dim]"
            )

        except Exception as e:
            console.print(f"[red]Error during scheduled sync:[/red] {e}")
            logger.exception("Error during scheduled sync")

    # Setup schedule based on unit
    schedule_job = schedule.every(schedule_interval)
    getattr(schedule_job, schedule_unit).do(run_sync)

    # Run immediately on start
    console.print("[yellow]Running initial sync...[/yellow]")
    run_sync()

    # Keep running
    try:
        while True:
            schedule.run_pending()
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Schedule mode stopped by user[/yellow]")
        sys.exit(0)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
