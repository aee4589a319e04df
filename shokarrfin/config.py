"""
Configuration management
"""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, List

import yaml

SERIES_GROUPING_MODES = ("default", "shoko_groups")
SYNC_CONFLICT_POLICIES = ("newest", "local", "remote")


@dataclass(frozen=True)
class UserConfiguration:
    """Synchronization settings of a single media server user"""

    user_id: str
    token: str = ""
    enable_synchronization: bool = False
    sync_user_data_on_import: bool = False
    sync_user_data_under_playback: bool = False
    sync_user_data_after_playback: bool = False


@dataclass
class Config:
    """Application configuration"""

    shoko_url: str
    shoko_api_key: str
    jellyfin_url: str | None = None
    jellyfin_api_key: str | None = None
    log_level: str = "INFO"
    # Metadata options
    metadata_language: str = "en"
    series_grouping: str = "default"  # "default" or "shoko_groups"
    filter_on_library_types: bool = False
    add_anidb_id: bool = True
    description_sources: list = field(default_factory=lambda: ["anidb", "tvdb"])
    hide_spoiler_tags: bool = True
    ignored_tags: list = field(default_factory=list)
    # User data synchronization
    users: List[UserConfiguration] = field(default_factory=list)
    sync_conflict_policy: str = "newest"  # "newest", "local" or "remote"
    sync_workers: int = 4
    # Webhook receiver
    webhook_host: str = "0.0.0.0"
    webhook_port: int = 8686
    # Schedule options
    schedule_interval: int = 6
    schedule_unit: str = "hours"

    def __post_init__(self):
        self.users = [
            u if isinstance(u, UserConfiguration) else UserConfiguration(**u)
            for u in self.users or []
        ]
        if self.series_grouping not in SERIES_GROUPING_MODES:
            raise ValueError(
                f"Invalid series_grouping '{self.series_grouping}', "
                f"expected one of: {', '.join(SERIES_GROUPING_MODES)}"
            )
        if self.sync_conflict_policy not in SYNC_CONFLICT_POLICIES:
            raise ValueError(
                f"Invalid sync_conflict_policy '{self.sync_conflict_policy}', "
                f"expected one of: {', '.join(SYNC_CONFLICT_POLICIES)}"
            )

    @property
    def use_groups(self) -> bool:
        return self.series_grouping == "shoko_groups"

    @property
    def enabled_users(self) -> List[UserConfiguration]:
        return [u for u in self.users if u.enable_synchronization]

    def get_user(self, user_id: str) -> UserConfiguration | None:
        """Configuration of a user, only if enabled for synchronization"""
        for user in self.users:
            if user.user_id == user_id and user.enable_synchronization:
                return user
        return None

    @classmethod
    def from_file(cls, config_path: Path) -> "Config":
        """Load configuration from a YAML file"""
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        return cls(**data)

    @classmethod
    def from_env_and_file(cls, config_path: Path | None = None) -> "Config":
        """Load configuration from file and/or environment variables"""
        config_data: dict[str, Any] = {}

        # Load from file if specified
        if config_path and config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}

        # Environment variables take priority
        if os.getenv("SHOKO_URL"):
            config_data["shoko_url"] = os.getenv("SHOKO_URL")
        if os.getenv("SHOKO_API_KEY"):
            config_data["shoko_api_key"] = os.getenv("SHOKO_API_KEY")
        if os.getenv("JELLYFIN_URL"):
            config_data["jellyfin_url"] = os.getenv("JELLYFIN_URL")
        if os.getenv("JELLYFIN_API_KEY"):
            config_data["jellyfin_api_key"] = os.getenv("JELLYFIN_API_KEY")
        if os.getenv("METADATA_LANGUAGE"):
            config_data["metadata_language"] = os.getenv("METADATA_LANGUAGE")

        if "shoko_url" not in config_data or "shoko_api_key" not in config_data:
            raise ValueError(
                "Incomplete configuration. Shoko URL and API Key are required. "
                "Use a config file or environment variables."
            )

        return cls(**config_data)

    def to_file(self, config_path: Path):
        """Save configuration to a YAML file"""
        data = asdict(self)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, allow_unicode=True)
