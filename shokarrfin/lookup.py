"""
Lookup of Shoko identifiers attached to media server items
"""

import logging

from .host import HostItem, HostSeason, HostSeries, HostVideo, LibraryManager

logger = logging.getLogger(__name__)

# Provider id keys written on media server items
SERIES_PROVIDER = "Shoko Series"
SEASON_OFFSET_PROVIDER = "Shoko Season Offset"
EPISODE_PROVIDER = "Shoko Episode"
FILE_PROVIDER = "Shoko File"
ANIDB_PROVIDER = "AniDB"


class IdLookup:
    """Read-only view over the Shoko ids stored on library items"""

    def __init__(self, library: LibraryManager | None = None):
        # The library is only needed to fall back from a season to its series
        self.library = library

    def get_file_id(self, item: HostItem) -> str | None:
        """Shoko file id of a video"""
        if not isinstance(item, HostVideo):
            return None
        return item.provider_ids.get(FILE_PROVIDER) or None

    def get_episode_id(self, item: HostItem) -> str | None:
        """Shoko episode id of a video"""
        if not isinstance(item, HostVideo):
            return None
        return item.provider_ids.get(EPISODE_PROVIDER) or None

    def get_series_id(self, item: HostItem) -> str | None:
        """Shoko series id of a season or series"""
        if isinstance(item, HostSeries):
            return item.provider_ids.get(SERIES_PROVIDER) or None

        if isinstance(item, HostSeason):
            series_id = item.provider_ids.get(SERIES_PROVIDER)
            if series_id:
                return series_id
            if self.library is not None and item.series_id:
                parent = self.library.get_item(item.series_id)
                if isinstance(parent, HostSeries):
                    return self.get_series_id(parent)

        return None
