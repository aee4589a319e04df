"""
CLI configuration handler
"""

import sys
from pathlib import Path

from rich.console import Console

from .config import Config
from .jellyfin import JellyfinClient
from .metadata import SeasonProvider
from .resolver import ShowResolver
from .shoko import ShokoClient

console = Console()


def load_config_from_args(
    config_file: str | None,
    shoko_url: str | None,
    shoko_api_key: str | None,
    log_level: str,
) -> Config:
    """
    Load configuration from CLI arguments and files

    Args:
        config_file: Path to config file
        shoko_url: Shoko URL from CLI
        shoko_api_key: Shoko API key from CLI
        log_level: Log level

    Returns:
        Config object

    Raises:
        SystemExit if configuration is invalid
    """
    try:
        if config_file:
            cfg = Config.from_env_and_file(Path(config_file))
        elif shoko_url and shoko_api_key:
            cfg = Config(
                shoko_url=shoko_url,
                shoko_api_key=shoko_api_key,
                log_level=log_level,
            )
        else:
            default_config = Path("config.yaml")
            if default_config.exists():
                cfg = Config.from_env_and_file(default_config)
            else:
                cfg = Config.from_env_and_file()
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\nExample:")
        console.print(
            "  shokarrfin --shoko-url http://localhost:8111 --shoko-api-key YOUR_KEY test"
        )
        console.print("\nOr create a config.yaml file (see config.example.yaml)")
        sys.exit(1)

    # CLI values override the file
    if shoko_url:
        cfg.shoko_url = shoko_url
    if shoko_api_key:
        cfg.shoko_api_key = shoko_api_key

    return cfg


def build_jellyfin_client(config: Config) -> JellyfinClient:
    """
    Create the Jellyfin client, exiting when it is not configured

    Raises:
        SystemExit if Jellyfin is not configured
    """
    if not (config.jellyfin_url and config.jellyfin_api_key):
        console.print(
            "[red]Error:[/red] Jellyfin is not configured (jellyfin_url / jellyfin_api_key)"
        )
        sys.exit(1)
    return JellyfinClient(config.jellyfin_url, config.jellyfin_api_key)


def setup_context(config: Config) -> dict:
    """
    Setup CLI context with config, Shoko client, show resolver and season provider

    Args:
        config: Configuration object

    Returns:
        Dictionary with context objects
    """
    shoko = ShokoClient(config.shoko_url, config.shoko_api_key)
    resolver = ShowResolver(shoko, config)
    return {
        "config": config,
        "shoko": shoko,
        "resolver": resolver,
        "season_provider": SeasonProvider(resolver, config),
    }
