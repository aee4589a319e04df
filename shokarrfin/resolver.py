"""
Show aggregation: resolves a Shoko series into the show it belongs to
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import replace
from datetime import date
from enum import Enum
from typing import Iterable, List

from .base_client import NotFoundError, ServiceError
from .config import Config
from .models import EpisodeBucket, SeriesInfo, ShowInfo
from .shoko import ShokoClient, TagFilter

logger = logging.getLogger(__name__)


class GroupFilterType(Enum):
    """Which member series of a group make it into the show"""

    DEFAULT = "default"
    MOVIES = "movies"
    OTHERS = "others"


def matches_filter(series: SeriesInfo, filter_type: GroupFilterType) -> bool:
    if filter_type == GroupFilterType.MOVIES:
        return series.is_movie
    if filter_type == GroupFilterType.OTHERS:
        return not series.is_movie
    return True


def _id_sort_key(series_id: str):
    return (0, int(series_id), "") if series_id.isdigit() else (1, 0, series_id)


def order_series(
    series_list: Iterable[SeriesInfo], main_series_id: str | None
) -> List[SeriesInfo]:
    """Main series first, the rest by air date and then by id"""
    series_list = list(series_list)
    main = [s for s in series_list if s.id == main_series_id][:1]
    rest = sorted(
        (s for s in series_list if s not in main),
        key=lambda s: (s.air_date is None, s.air_date or date.min, _id_sort_key(s.id)),
    )
    return main + rest


class ShowResolver:
    """
    Builds and caches show aggregates

    Concurrent requests for the same key share a single in-flight resolution.
    Entries live until cleared; failed resolutions are never cached.
    """

    def __init__(self, client: ShokoClient, config: Config):
        self.client = client
        self.config = config
        self._lock = threading.Lock()
        self._cache: dict[tuple[str, GroupFilterType], Future] = {}

    def resolve_show(
        self, series_id: str, filter_type: GroupFilterType = GroupFilterType.DEFAULT
    ) -> ShowInfo | None:
        """
        Resolve the show a series belongs to

        Args:
            series_id: Shoko series id
            filter_type: Group membership filter

        Returns:
            ShowInfo, or None if the series could not be resolved
        """
        key = (str(series_id), filter_type)
        with self._lock:
            future = self._cache.get(key)
            is_owner = future is None
            if is_owner:
                future = Future()
                self._cache[key] = future

        if not is_owner:
            return future.result()

        try:
            show = self._resolve_uncached(str(series_id), filter_type)
        except BaseException as e:
            self._evict(key, future)
            future.set_exception(e)
            raise

        if show is None:
            self._evict(key, future)
        else:
            with self._lock:
                # Other member series of the show share the same entry
                for member in show.series_list:
                    self._cache.setdefault((member.id, filter_type), future)
        future.set_result(show)
        return show

    def clear(self) -> None:
        """Drop every cached show (e.g. after a library refresh)"""
        with self._lock:
            self._cache.clear()
        logger.debug("Show cache cleared")

    def invalidate(self, series_id: str) -> None:
        """Drop the cached shows containing the given series"""
        series_id = str(series_id)
        with self._lock:
            stale = set()
            for key, future in self._cache.items():
                if key[0] == series_id:
                    stale.add(future)
                elif future.done() and not future.exception():
                    show = future.result()
                    if show and any(s.id == series_id for s in show.series_list):
                        stale.add(future)
            for key in [k for k, f in self._cache.items() if f in stale]:
                del self._cache[key]

    def _evict(self, key, future: Future) -> None:
        with self._lock:
            if self._cache.get(key) is future:
                del self._cache[key]

    def _resolve_uncached(
        self, series_id: str, filter_type: GroupFilterType
    ) -> ShowInfo | None:
        try:
            return self._build_show(series_id, filter_type)
        except NotFoundError:
            logger.warning(f"Unable to find series in Shoko. (Series={series_id})")
            return None
        except ServiceError as e:
            logger.error(f"Unable to resolve show for series {series_id}: {e}")
            return None

    def _build_show(self, series_id: str, filter_type: GroupFilterType) -> ShowInfo | None:
        series = self.get_series_info(series_id)

        if not self.config.use_groups or not series.group_id:
            if not matches_filter(series, filter_type):
                logger.debug(
                    f"Series {series.name} excluded by filter {filter_type.value}"
                )
                return None
            return ShowInfo(id=series.id, name=series.name, series_list=(series,))

        group = self.client.fetch_group(series.group_id)
        members = [series]
        for member_id in group.series_ids:
            if member_id != series.id:
                members.append(self.get_series_info(member_id))

        members = [s for s in members if matches_filter(s, filter_type)]
        if not members:
            logger.debug(
                f"No series left in group {group.name} with filter {filter_type.value}"
            )
            return None

        # No designated main series: air date and id decide the order
        ordered = order_series(members, group.main_series_id)
        logger.debug(
            f"Resolved group {group.name} with {len(ordered)} series (Group={group.id})"
        )
        return ShowInfo(
            id=group.id,
            name=group.name,
            series_list=tuple(ordered),
            group_id=group.id,
        )

    def get_series_info(self, series_id: str) -> SeriesInfo:
        """Fetch a series together with its tags, genres and episode lists"""
        series = self.client.fetch_series(series_id)

        ignored = {t.lower() for t in self.config.ignored_tags}
        tags = [
            t["name"]
            for t in self.client.fetch_tags(series_id, exclude=TagFilter.ANIDB_INTERNAL)
            if t["name"].lower() not in ignored
            and not (self.config.hide_spoiler_tags and t["is_spoiler"])
        ]

        seen: set[str] = set()
        lists = {}
        for bucket in EpisodeBucket:
            episodes = []
            for episode in self.client.fetch_episodes(series_id, bucket):
                if episode.id in seen:
                    continue
                seen.add(episode.id)
                episodes.append(episode)
            lists[bucket] = episodes

        return replace(
            series,
            tags=tags,
            genres=self.client.fetch_genres(series_id),
            episodes_list=lists[EpisodeBucket.MAIN],
            alternate_episodes_list=lists[EpisodeBucket.ALTERNATE],
            others_list=lists[EpisodeBucket.OTHER],
            specials_list=lists[EpisodeBucket.SPECIALS],
        )
