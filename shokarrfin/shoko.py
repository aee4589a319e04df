"""
Shoko Server API Client
"""

import logging
import re
from datetime import date, datetime
from enum import IntFlag
from typing import List

from .base_client import BaseApiClient, NotFoundError
from .models import (
    EpisodeBucket,
    EpisodeInfo,
    GroupInfo,
    Person,
    Rating,
    RemoteUserData,
    SeriesInfo,
    Title,
)

logger = logging.getLogger(__name__)

TICKS_PER_MILLISECOND = 10_000

# Episode types of the catalog that make up each bucket
BUCKET_EPISODE_TYPES = {
    EpisodeBucket.MAIN: ("Normal",),
    EpisodeBucket.ALTERNATE: ("Parody",),
    EpisodeBucket.OTHER: ("Other", "Unknown"),
    EpisodeBucket.SPECIALS: ("Special", "ThemeSong", "Trailer"),
}

# Cast roles credited as studios instead of people
STUDIO_ROLES = ("Studio", "Animation Work", "Work")


class TagFilter(IntFlag):
    """Tag categories the server can leave out of a tag listing"""

    NONE = 0
    ANIDB_INTERNAL = 1
    ART_STYLE = 2
    SOURCE = 4
    MISC = 8
    PLOT = 16
    SETTING = 32
    PROGRAMMING = 64
    GENRE = 128


ALL_TAG_CATEGORIES = TagFilter(255)

_EXTRA_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")


def parse_date(value: str | None) -> date | None:
    """Parse an ISO date (or the date part of a timestamp)"""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        logger.debug(f"Ignoring invalid date: {value}")
        return None


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO timestamp (.NET timestamps carry 7 fractional digits)"""
    if not value:
        return None
    try:
        value = _EXTRA_FRACTION_PATTERN.sub(r"\1", value.replace("Z", "+00:00"))
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug(f"Ignoring invalid timestamp: {value}")
        return None


def parse_resume_position(value: str | None) -> int:
    """Convert a "hh:mm:ss.fffffff" resume position to ticks"""
    if not value:
        return 0
    try:
        hours, minutes, seconds = value.split(":")
        total_seconds = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    except ValueError:
        logger.debug(f"Ignoring invalid resume position: {value}")
        return 0
    return int(round(total_seconds * 1000)) * TICKS_PER_MILLISECOND


class ShokoClient(BaseApiClient):
    """Client to interact with the Shoko Server API"""

    api_prefix = "/api/v3"
    auth_header = "apikey"

    def status_endpoint(self) -> str:
        return "Init/Version"

    # Metadata

    def fetch_series(self, series_id: str) -> SeriesInfo:
        """Fetch a series with its descriptive data (no episode lists)"""
        data = self._get(f"Series/{series_id}", params={"includeDataFrom": "AniDB,TvDB"})
        ids = data.get("IDs", {})
        anidb = data.get("AniDB") or {}

        titles = [
            Title(
                name=t["Name"],
                language=(t.get("Language") or "").lower(),
                type=(t.get("Type") or "official").lower(),
            )
            for t in anidb.get("Titles", [])
        ]

        overviews = {}
        if anidb.get("Description"):
            overviews["anidb"] = anidb["Description"]
        for tvdb in data.get("TvDB") or []:
            if tvdb.get("Description"):
                overviews.setdefault("tvdb", tvdb["Description"])

        rating = None
        if anidb.get("Rating"):
            rating = Rating(
                value=anidb["Rating"]["Value"],
                max_value=anidb["Rating"].get("MaxValue", 10),
                votes=anidb["Rating"].get("Votes"),
            )

        cast = self.fetch_cast(series_id)
        group_id = ids.get("ParentGroup")

        return SeriesInfo(
            id=str(ids.get("ID", series_id)),
            name=data["Name"],
            type=anidb.get("Type") or "TV",
            group_id=str(group_id) if group_id is not None else None,
            anidb_id=anidb.get("ID") or ids.get("AniDB"),
            titles=titles,
            overviews=overviews,
            air_date=parse_date(anidb.get("AirDate")),
            end_date=parse_date(anidb.get("EndDate")),
            rating=rating,
            studios=[p.name for p in cast if p.type == "Studio"],
            staff=[p for p in cast if p.type != "Studio"],
        )

    def fetch_tags(
        self, series_id: str, exclude: TagFilter = TagFilter.NONE
    ) -> List[dict]:
        """Fetch the tags of a series, leaving out the excluded categories"""
        data = self._get(
            f"Series/{series_id}/Tags",
            params={"filter": int(exclude), "excludeDescriptions": "true"},
        )
        return [
            {"name": t["Name"], "is_spoiler": t.get("IsSpoiler", False)}
            for t in data or []
        ]

    def fetch_genres(self, series_id: str) -> List[str]:
        """Fetch the genre tags of a series"""
        tags = self.fetch_tags(series_id, exclude=ALL_TAG_CATEGORIES & ~TagFilter.GENRE)
        return [t["name"] for t in tags]

    def fetch_cast(self, series_id: str) -> List[Person]:
        """Fetch staff and studios credited on a series"""
        people = []
        for credit in self._get(f"Series/{series_id}/Cast") or []:
            role = credit.get("RoleName") or ""
            staff = credit.get("Staff") or {}
            if not staff.get("Name"):
                continue
            if role in STUDIO_ROLES:
                people.append(Person(name=staff["Name"], role=role, type="Studio"))
                continue
            character = (credit.get("Character") or {}).get("Name")
            if role == "Seiyuu":
                people.append(Person(name=staff["Name"], role=character, type="Actor"))
            else:
                people.append(
                    Person(
                        name=staff["Name"],
                        role=credit.get("RoleDetails") or role,
                        type=_person_type(role),
                    )
                )
        return people

    def fetch_group(self, group_id: str) -> GroupInfo:
        """Fetch a group and the ids of its direct member series"""
        data = self._get(f"Group/{group_id}")
        ids = data.get("IDs", {})
        members = self._get(
            f"Group/{group_id}/Series",
            params={"recursive": "false", "includeMissing": "true"},
        )
        main_series_id = ids.get("MainSeries")
        return GroupInfo(
            id=str(ids.get("ID", group_id)),
            name=data["Name"],
            main_series_id=str(main_series_id) if main_series_id is not None else None,
            series_ids=[str(s["IDs"]["ID"]) for s in members or []],
        )

    def fetch_episodes(self, series_id: str, bucket: EpisodeBucket) -> List[EpisodeInfo]:
        """Fetch the visible episodes of a series belonging to one bucket"""
        data = self._get(
            f"Series/{series_id}/Episode",
            params={
                "type": ",".join(BUCKET_EPISODE_TYPES[bucket]),
                "includeHidden": "false",
                "includeDataFrom": "AniDB",
                "pageSize": 0,
            },
        )
        episodes = []
        for item in (data or {}).get("List", []):
            anidb = item.get("AniDB") or {}
            episode = EpisodeInfo(
                id=str(item["IDs"]["ID"]),
                series_id=str(series_id),
                number=anidb.get("EpisodeNumber", 0),
                type=anidb.get("Type", BUCKET_EPISODE_TYPES[bucket][0]),
                title=item.get("Name", ""),
                air_date=parse_date(anidb.get("AirDate")),
                is_hidden=item.get("IsHidden", False),
            )
            if not episode.is_hidden:
                episodes.append(episode)
        return sorted(episodes, key=lambda e: e.number)

    # User data

    def get_file_user_data(self, file_id: str, token: str) -> RemoteUserData | None:
        """Fetch the user's watch state of a file, None if never touched"""
        try:
            data = self._get(f"File/{file_id}/UserStats", token=token)
        except NotFoundError:
            return None
        if not data:
            return None
        watched_count = data.get("WatchedCount", 0)
        return RemoteUserData(
            file_id=str(file_id),
            played=watched_count > 0,
            position_ticks=parse_resume_position(data.get("ResumePosition")),
            play_count=watched_count,
            last_played=parse_datetime(data.get("LastWatchedAt")),
            last_updated=parse_datetime(data.get("LastUpdatedAt")),
        )

    def scrobble_file(
        self,
        file_id: str,
        token: str,
        position_ticks: int | None = None,
        watched: bool | None = None,
    ) -> None:
        """Report a playback position and/or the watched state of a file"""
        if watched is not None and position_ticks is None:
            self._post(f"File/{file_id}/Watched/{str(watched).lower()}", token=token)
            return

        params = {"event": "scrobble"}
        if position_ticks is not None:
            params["resumePosition"] = position_ticks // TICKS_PER_MILLISECOND
        if watched is not None:
            params["watched"] = str(watched).lower()
        self._post(f"File/{file_id}/Scrobble", params=params, token=token)

    def vote_series(self, series_id: str, rating: float, token: str) -> None:
        """Set the user's permanent vote (0-10) for a series"""
        self._post(
            f"Series/{series_id}/Vote",
            data={"Value": rating, "MaxValue": 10, "Type": "Permanent"},
            token=token,
        )

    def vote_episode(self, episode_id: str, rating: float, token: str) -> None:
        """Set the user's vote (0-10) for an episode"""
        self._post(
            f"Episode/{episode_id}/Vote",
            data={"Value": rating, "MaxValue": 10},
            token=token,
        )

    def get_series_user_rating(self, series_id: str, token: str) -> float | None:
        """Fetch the user's vote for a series, scaled to 0-10"""
        data = self._get(f"Series/{series_id}", token=token)
        vote = (data or {}).get("UserRating")
        if not vote or not vote.get("MaxValue"):
            return None
        return Rating(value=vote["Value"], max_value=vote["MaxValue"]).to_float(10)


def _person_type(role: str) -> str:
    """Map a catalog role name to the media server's person type"""
    role = role.lower()
    if "director" in role:
        return "Director"
    if "producer" in role:
        return "Producer"
    if "composer" in role or "music" in role:
        return "Composer"
    if "original work" in role or "writer" in role or "script" in role:
        return "Writer"
    return "Staff"
