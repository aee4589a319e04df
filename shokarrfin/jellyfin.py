"""
Jellyfin API client acting as the media server host
"""

import logging
from typing import List

from .base_client import BaseApiClient, NotFoundError
from .host import (
    HostItem,
    HostSeason,
    HostSeries,
    HostVideo,
    LibraryManager,
    UserDataManager,
    UserDataSaveReason,
    UserItemData,
)
from .shoko import parse_datetime

logger = logging.getLogger(__name__)


class JellyfinClient(BaseApiClient, LibraryManager, UserDataManager):
    """Client to interact with Jellyfin API"""

    auth_header = "X-Emby-Token"

    def __init__(self, url: str, api_key: str, timeout: int = 30):
        """
        Initialize Jellyfin client

        Args:
            url: Jellyfin server URL (e.g., http://localhost:8096)
            api_key: Jellyfin API key/token
            timeout: Request timeout in seconds
        """
        BaseApiClient.__init__(self, url, api_key, timeout)
        LibraryManager.__init__(self)
        UserDataManager.__init__(self)

    def status_endpoint(self) -> str:
        return "System/Info"

    def get_video_items(self) -> List[HostVideo]:
        """Fetch every physical episode and movie of the library"""
        data = self._get(
            "Items",
            params={
                "Recursive": "true",
                "IncludeItemTypes": "Episode,Movie",
                "MediaTypes": "Video",
                "IsVirtualItem": "false",
                "Fields": "ProviderIds",
                "EnableImages": "false",
            },
        )
        items = [self._to_item(item) for item in (data or {}).get("Items", [])]
        return [item for item in items if isinstance(item, HostVideo)]

    def get_item(self, item_id: str) -> HostItem | None:
        data = self._get("Items", params={"Ids": item_id, "Fields": "ProviderIds"})
        items = (data or {}).get("Items", [])
        if not items:
            return None
        return self._to_item(items[0])

    def get_user_data(self, user_id: str, item: HostItem) -> UserItemData | None:
        try:
            data = self._get(f"Users/{user_id}/Items/{item.id}")
        except NotFoundError:
            return None
        user_data = (data or {}).get("UserData")
        if not user_data:
            return None
        return UserItemData(
            user_id=user_id,
            played=user_data.get("Played", False),
            playback_position_ticks=user_data.get("PlaybackPositionTicks", 0),
            play_count=user_data.get("PlayCount", 0),
            last_played_date=parse_datetime(user_data.get("LastPlayedDate")),
            is_favorite=user_data.get("IsFavorite", False),
            rating=user_data.get("Rating"),
        )

    def save_user_data(
        self,
        user_id: str,
        item: HostItem,
        user_data: UserItemData,
        reason: UserDataSaveReason,
    ) -> None:
        logger.debug(f"Saving user data for {item.name} ({reason.value})")
        payload = {
            "Played": user_data.played,
            "PlaybackPositionTicks": user_data.playback_position_ticks,
            "PlayCount": user_data.play_count,
            "IsFavorite": user_data.is_favorite,
            "Rating": user_data.rating,
        }
        if user_data.last_played_date:
            payload["LastPlayedDate"] = user_data.last_played_date.isoformat()
        self._post(f"UserItems/{item.id}/UserData", data=payload, params={"userId": user_id})

    @staticmethod
    def _to_item(data: dict) -> HostItem:
        """Convert an item of the API into a host entity"""
        common = {
            "id": data["Id"],
            "name": data.get("Name", ""),
            "provider_ids": dict(data.get("ProviderIds") or {}),
        }
        item_type = data.get("Type")
        if item_type == "Series":
            return HostSeries(**common, presentation_unique_key=data.get("PresentationUniqueKey", ""))
        if item_type == "Season":
            return HostSeason(
                **common,
                index_number=data.get("IndexNumber"),
                series_id=data.get("SeriesId"),
                series_name=data.get("SeriesName", ""),
            )
        if item_type in ("Episode", "Movie"):
            return HostVideo(
                **common,
                kind=item_type,
                series_id=data.get("SeriesId"),
                is_virtual=data.get("LocationType") == "Virtual",
            )
        return HostItem(**common)
