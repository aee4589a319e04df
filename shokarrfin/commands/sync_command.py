"""
Sync command - Reconcile the watch state of the whole library
"""

import logging
import signal
import threading

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from shokarrfin.config import Config
from shokarrfin.jellyfin import JellyfinClient
from shokarrfin.shoko import ShokoClient
from shokarrfin.sync import UserDataSyncManager

logger = logging.getLogger(__name__)
console = Console()


def sync_command(
    config: Config,
    shoko: ShokoClient,
    jellyfin: JellyfinClient,
) -> bool:
    """
    Run the library-wide user data reconciliation

    Ctrl+C stops the scan after the current video.

    Returns:
        True if the scan completed, False if it was cancelled
    """
    enabled_users = config.enabled_users
    if not enabled_users:
        console.print("[yellow]No users enabled for synchronization[/yellow]")
        return True

    console.print(
        f"[bold cyan]Synchronizing user data for {len(enabled_users)} user(s)[/bold cyan]"
    )
    cancel_event = threading.Event()

    with UserDataSyncManager(jellyfin, jellyfin, shoko, config) as manager:
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Synchronizing...", total=100)

            def report(percent: float) -> None:
                progress.update(task, completed=percent)

            # Let Ctrl+C stop the scan between two videos
            previous_handler = signal.signal(
                signal.SIGINT, lambda signum, frame: cancel_event.set()
            )
            try:
                completed = manager.scan_and_sync(report, cancel_event)
            finally:
                signal.signal(signal.SIGINT, previous_handler)

    if completed:
        console.print("[green]✓ User data synchronized[/green]")
    else:
        console.print("[yellow]Synchronization cancelled[/yellow]")
    return completed
