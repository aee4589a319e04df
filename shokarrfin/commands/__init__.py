"""
Commands module for ShokarrFin CLI
"""

from .listen_command import listen_command
from .season_command import season_command, show_command
from .sync_command import sync_command
from .test_command import test_command

__all__ = ["listen_command", "season_command", "show_command", "sync_command", "test_command"]
