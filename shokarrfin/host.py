"""
Media server side of the integration: entities, user data, events, and the
interfaces a host (Jellyfin) has to provide
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, Flag, auto
from typing import Callable, List

logger = logging.getLogger(__name__)


@dataclass
class HostItem:
    """Base for media server library items"""

    id: str
    name: str = ""
    provider_ids: dict[str, str] = field(default_factory=dict)


@dataclass
class HostSeries(HostItem):
    """A series in the media server library"""

    presentation_unique_key: str = ""


@dataclass
class HostSeason(HostItem):
    """A season in the media server library"""

    index_number: int | None = None
    series_id: str | None = None
    series_name: str = ""


@dataclass
class HostVideo(HostItem):
    """An episode or a movie in the media server library"""

    kind: str = "Episode"  # "Episode" or "Movie"
    series_id: str | None = None
    is_virtual: bool = False


@dataclass
class UserItemData:
    """Per-user state of an item in the media server"""

    user_id: str
    played: bool = False
    playback_position_ticks: int = 0
    play_count: int = 0
    last_played_date: datetime | None = None
    is_favorite: bool = False
    rating: float | None = None


class UserDataSaveReason(Enum):
    PLAYBACK_START = "PlaybackStart"
    PLAYBACK_PROGRESS = "PlaybackProgress"
    PLAYBACK_FINISHED = "PlaybackFinished"
    TOGGLE_PLAYED = "TogglePlayed"
    UPDATE_USER_RATING = "UpdateUserRating"
    IMPORT = "Import"


class ItemUpdateType(Flag):
    NONE = 0
    FILE_PATH = auto()
    METADATA_IMPORT = auto()
    METADATA_DOWNLOAD = auto()
    METADATA_EDIT = auto()
    IMAGE_UPDATE = auto()


@dataclass
class UserDataSaveEvent:
    """Fired by the host after a user's item data was saved"""

    user_id: str
    item: HostItem
    user_data: UserItemData
    save_reason: UserDataSaveReason


@dataclass
class ItemChangeEvent:
    """Fired by the host when an item was added to or updated in the library"""

    item: HostItem
    parent: HostItem | None = None
    update_reason: ItemUpdateType = ItemUpdateType.NONE


class EventHook:
    """A host event that handlers can subscribe to"""

    def __init__(self, name: str):
        self.name = name
        self._handlers: List[Callable] = []

    def subscribe(self, handler: Callable) -> None:
        self._handlers.append(handler)

    def unsubscribe(self, handler: Callable) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, event) -> None:
        for handler in list(self._handlers):
            handler(event)

    def __len__(self) -> int:
        return len(self._handlers)


class LibraryManager(ABC):
    """Read access to the media server library"""

    def __init__(self):
        self.item_added = EventHook("item_added")
        self.item_updated = EventHook("item_updated")

    @abstractmethod
    def get_video_items(self) -> List[HostVideo]:
        """All non-virtual video items of the library - must be implemented by subclasses"""
        pass

    @abstractmethod
    def get_item(self, item_id: str) -> HostItem | None:
        """Fetch a single item - must be implemented by subclasses"""
        pass


class UserDataManager(ABC):
    """Per-user item data of the media server"""

    def __init__(self):
        self.user_data_saved = EventHook("user_data_saved")

    @abstractmethod
    def get_user_data(self, user_id: str, item: HostItem) -> UserItemData | None:
        """Load the user's data for an item - must be implemented by subclasses"""
        pass

    @abstractmethod
    def save_user_data(
        self,
        user_id: str,
        item: HostItem,
        user_data: UserItemData,
        reason: UserDataSaveReason,
    ) -> None:
        """Persist the user's data for an item - must be implemented by subclasses"""
        pass
