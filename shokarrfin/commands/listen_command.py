"""
Listen command - Receive Jellyfin webhook notifications
"""

import logging

import uvicorn
from rich.console import Console

from shokarrfin.config import Config
from shokarrfin.jellyfin import JellyfinClient
from shokarrfin.shoko import ShokoClient
from shokarrfin.sync import UserDataSyncManager
from shokarrfin.webhook import WEBHOOK_PATH, create_app

logger = logging.getLogger(__name__)
console = Console()


def listen_command(
    config: Config,
    shoko: ShokoClient,
    jellyfin: JellyfinClient,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """
    Serve the webhook endpoint until interrupted

    The sync manager stays subscribed to the Jellyfin events for the whole run
    and finishes its pending exports on shutdown.
    """
    host = host or config.webhook_host
    port = port or config.webhook_port

    if not config.enabled_users:
        console.print("[yellow]No users enabled for synchronization[/yellow]")

    console.print("[bold cyan]ShokarrFin - Webhook receiver[/bold cyan]")
    console.print(f"Point the Jellyfin Webhook plugin at http://{host}:{port}{WEBHOOK_PATH}")
    console.print("Press Ctrl+C to stop\n")

    with UserDataSyncManager(jellyfin, jellyfin, shoko, config):
        uvicorn.run(
            create_app(jellyfin),
            host=host,
            port=port,
            log_level="debug" if config.log_level == "DEBUG" else "warning",
            access_log=config.log_level == "DEBUG",
        )

    console.print("\n[yellow]Webhook receiver stopped[/yellow]")
