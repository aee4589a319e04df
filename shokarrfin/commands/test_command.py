"""Test command to verify Shoko and Jellyfin connections"""

import sys

from rich.console import Console

from ..config import Config
from ..jellyfin import JellyfinClient
from ..shoko import ShokoClient

console = Console()


def test_command(config: Config, shoko: ShokoClient):
    """Test connection to Shoko and Jellyfin (if configured)

    Args:
        config: Application configuration
        shoko: Shoko API client
    """
    console.print("[bold]Testing Shoko connection...[/bold]")
    console.print(f"URL: {config.shoko_url}")

    if shoko.test_connection():
        console.print("[green]✓ Connection successful![/green]")
    else:
        console.print("[red]✗ Shoko connection failed[/red]")
        sys.exit(1)

    console.print(f"Series grouping: {config.series_grouping}")
    console.print(f"Users enabled for sync: {len(config.enabled_users)}")

    if config.jellyfin_url and config.jellyfin_api_key:
        console.print("\n[bold]Testing Jellyfin connection...[/bold]")
        console.print(f"URL: {config.jellyfin_url}")

        jellyfin = JellyfinClient(config.jellyfin_url, config.jellyfin_api_key)
        if jellyfin.test_connection():
            console.print("[green]✓ Jellyfin connection successful![/green]")
        else:
            console.print("[red]✗ Jellyfin connection failed[/red]")
    else:
        console.print("\n[dim]Jellyfin not configured (skipping test)[/dim]")
