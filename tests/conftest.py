# ShokarrFin test fakes
from __future__ import annotations

import sys
import threading
import time
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from shokarrfin.base_client import NotFoundError, ServiceError
from shokarrfin.config import Config, UserConfiguration
from shokarrfin.host import (
    HostItem,
    HostVideo,
    LibraryManager,
    UserDataManager,
    UserDataSaveReason,
    UserItemData,
)
from shokarrfin.models import (
    EpisodeBucket,
    EpisodeInfo,
    GroupInfo,
    Rating,
    RemoteUserData,
    SeriesInfo,
    Title,
)


def make_episodes(series_id: str, bucket: str, count: int) -> list[EpisodeInfo]:
    return [
        EpisodeInfo(id=f"{series_id}-{bucket}-{n}", series_id=series_id, number=n, type=bucket)
        for n in range(1, count + 1)
    ]


def make_series(
    series_id: str,
    name: str | None = None,
    *,
    main: int = 12,
    alternate: int = 0,
    others: int = 0,
    air_date: date | None = None,
    type: str = "TV",
    group_id: str | None = None,
    **kwargs: Any,
) -> SeriesInfo:
    return SeriesInfo(
        id=series_id,
        name=name or f"Series {series_id}",
        type=type,
        group_id=group_id,
        air_date=air_date,
        episodes_list=make_episodes(series_id, "Normal", main),
        alternate_episodes_list=make_episodes(series_id, "Parody", alternate),
        others_list=make_episodes(series_id, "Other", others),
        **kwargs,
    )


class FakeShokoClient:
    """In-memory stand-in for ShokoClient"""

    def __init__(self) -> None:
        self.series: dict[str, SeriesInfo] = {}
        self.groups: dict[str, GroupInfo] = {}
        self.tags: dict[str, list[dict]] = {}
        self.genres: dict[str, list[str]] = {}
        self.file_user_data: dict[tuple[str, str], RemoteUserData] = {}
        self.series_ratings: dict[tuple[str, str], float] = {}
        self.unreachable = False
        self.fetch_delay = 0.0
        self.fetch_series_calls: list[str] = []
        self.scrobbles: list[dict[str, Any]] = []
        self.votes: list[tuple[str, str, float, str]] = []
        self.user_data_calls: list[str] = []
        self._lock = threading.Lock()

    def add_series(self, series: SeriesInfo, tags: list[dict] | None = None) -> None:
        self.series[series.id] = series
        self.tags[series.id] = tags or []

    def fetch_series(self, series_id: str) -> SeriesInfo:
        with self._lock:
            self.fetch_series_calls.append(series_id)
        if self.fetch_delay:
            time.sleep(self.fetch_delay)
        if self.unreachable:
            raise ServiceError("connection refused")
        if series_id not in self.series:
            raise NotFoundError(f"Series/{series_id}")
        # The real client returns descriptive data only
        return replace(
            self.series[series_id],
            episodes_list=[],
            alternate_episodes_list=[],
            others_list=[],
            specials_list=[],
        )

    def fetch_tags(self, series_id: str, exclude: Any = None) -> list[dict]:
        return list(self.tags.get(series_id, []))

    def fetch_genres(self, series_id: str) -> list[str]:
        return list(self.genres.get(series_id, []))

    def fetch_group(self, group_id: str) -> GroupInfo:
        if group_id not in self.groups:
            raise NotFoundError(f"Group/{group_id}")
        return self.groups[group_id]

    def fetch_episodes(self, series_id: str, bucket: EpisodeBucket) -> list[EpisodeInfo]:
        series = self.series[series_id]
        return {
            EpisodeBucket.MAIN: series.episodes_list,
            EpisodeBucket.ALTERNATE: series.alternate_episodes_list,
            EpisodeBucket.OTHER: series.others_list,
            EpisodeBucket.SPECIALS: series.specials_list,
        }[bucket]

    def get_file_user_data(self, file_id: str, token: str) -> RemoteUserData | None:
        with self._lock:
            self.user_data_calls.append(file_id)
        if self.unreachable:
            raise ServiceError("connection refused")
        return self.file_user_data.get((file_id, token))

    def scrobble_file(
        self,
        file_id: str,
        token: str,
        position_ticks: int | None = None,
        watched: bool | None = None,
    ) -> None:
        if self.unreachable:
            raise ServiceError("connection refused")
        with self._lock:
            self.scrobbles.append(
                {"file_id": file_id, "token": token, "position_ticks": position_ticks, "watched": watched}
            )

    def vote_series(self, series_id: str, rating: float, token: str) -> None:
        with self._lock:
            self.votes.append(("series", series_id, rating, token))

    def vote_episode(self, episode_id: str, rating: float, token: str) -> None:
        with self._lock:
            self.votes.append(("episode", episode_id, rating, token))

    def get_series_user_rating(self, series_id: str, token: str) -> float | None:
        return self.series_ratings.get((series_id, token))


class FakeHost(LibraryManager, UserDataManager):
    """In-memory media server library"""

    def __init__(self) -> None:
        LibraryManager.__init__(self)
        UserDataManager.__init__(self)
        self.items: dict[str, HostItem] = {}
        self.user_data: dict[tuple[str, str], UserItemData] = {}
        self.saved: list[tuple[str, str, UserItemData, UserDataSaveReason]] = []

    def add(self, item: HostItem) -> HostItem:
        self.items[item.id] = item
        return item

    def get_video_items(self) -> list[HostVideo]:
        return [i for i in self.items.values() if isinstance(i, HostVideo)]

    def get_item(self, item_id: str) -> HostItem | None:
        return self.items.get(item_id)

    def get_user_data(self, user_id: str, item: HostItem) -> UserItemData | None:
        return self.user_data.get((user_id, item.id))

    def save_user_data(
        self,
        user_id: str,
        item: HostItem,
        user_data: UserItemData,
        reason: UserDataSaveReason,
    ) -> None:
        self.user_data[(user_id, item.id)] = user_data
        self.saved.append((user_id, item.id, user_data, reason))


@pytest.fixture()
def shoko() -> FakeShokoClient:
    return FakeShokoClient()


@pytest.fixture()
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture()
def config() -> Config:
    return Config(
        shoko_url="http://shoko.local:8111",
        shoko_api_key="server-key",
        series_grouping="shoko_groups",
        users=[
            UserConfiguration(
                user_id="alice",
                token="alice-token",
                enable_synchronization=True,
                sync_user_data_on_import=True,
                sync_user_data_under_playback=True,
                sync_user_data_after_playback=True,
            )
        ],
    )


@pytest.fixture()
def sample_series() -> SeriesInfo:
    return make_series(
        "101",
        "Shingeki no Kyojin",
        alternate=2,
        air_date=date(2013, 4, 7),
        titles=[
            Title("Shingeki no Kyojin", "x-jat", "main"),
            Title("Attack on Titan", "en", "official"),
            Title("L'Attaque des Titans", "fr", "official"),
        ],
        overviews={"anidb": "Humanity fights the http://anidb.net/ch123 [Titans].\nSource: ANN"},
        end_date=date(2013, 9, 28),
        rating=Rating(value=842, max_value=1000, votes=5000),
        tags=["Action", "Military"],
        genres=["Action"],
        studios=["Wit Studio"],
        anidb_id=9541,
    )
