"""
Season numbering for show aggregates

Every series of a show gets a base season number (1, 2, 3, ... in show order).
Seasons above a series' base are "offset" seasons holding the alternate stories
and the other episodes of that series. Season 0 is left to the specials.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from .models import SeriesInfo, ShowInfo

logger = logging.getLogger(__name__)

ALTERNATE_STORIES = "Alternate Stories"
OTHER_EPISODES = "Other Episodes"


@dataclass(frozen=True)
class SeasonAssignment:
    """A resolved (series, season number, offset) triple, never persisted"""

    series: SeriesInfo
    season_number: int
    offset: int

    @property
    def label(self) -> str | None:
        return get_offset_label(self.series, self.offset)


def assign_base_season_numbers(
    series_list: Iterable[SeriesInfo],
) -> dict[SeriesInfo, int]:
    """Map each series to its base season number, starting at 1"""
    return {series: index for index, series in enumerate(series_list, start=1)}


def get_claimed_offsets(series: SeriesInfo) -> set[int]:
    """Offsets a series explicitly fills with episodes"""
    offsets = {0}
    if series.alternate_episodes_list or series.others_list:
        offsets.add(1)
    if series.others_list:
        offsets.add(2)
    return offsets


def get_series_info_by_season_number(
    show: ShowInfo, season_number: int | None
) -> SeriesInfo | None:
    """
    Find the series a season number belongs to

    A series claims a season when the distance to its base is one of its
    claimed offsets; the lowest base wins when several claim it. Unclaimed
    seasons fall through to the closest base at or below the season number.
    """
    if season_number is None or season_number < 1:
        return None

    candidates = sorted(
        (
            (base, series)
            for series, base in show.season_number_base_dictionary.items()
            if base <= season_number
        ),
        key=lambda candidate: candidate[0],
    )
    if not candidates:
        return None

    for base, series in candidates:
        if season_number - base in get_claimed_offsets(series):
            return series

    return candidates[-1][1]


def get_season_offset(show: ShowInfo, series: SeriesInfo, season_number: int) -> int:
    """Distance between a season number and the base of the series"""
    base = show.season_number_base_dictionary[series]
    return abs(season_number - base)


def resolve_season(show: ShowInfo, season_number: int | None) -> SeasonAssignment | None:
    """Resolve a season number of a show into its series and offset"""
    series = get_series_info_by_season_number(show, season_number)
    if series is None or series not in show.season_number_base_dictionary:
        return None
    return SeasonAssignment(
        series=series,
        season_number=season_number,
        offset=get_season_offset(show, series, season_number),
    )


def get_offset_label(series: SeriesInfo, offset: int) -> str | None:
    """Title suffix for an offset season, if any"""
    if offset == 1:
        if series.alternate_episodes_list:
            return ALTERNATE_STORIES
        return OTHER_EPISODES
    if offset == 2:
        return OTHER_EPISODES
    return None


def get_season_numbers(show: ShowInfo, series: SeriesInfo) -> list[int]:
    """Season numbers that resolve back to the given series"""
    base = show.season_number_base_dictionary.get(series)
    if base is None:
        return []

    season_numbers = []
    for offset in sorted(get_claimed_offsets(series)):
        season_number = base + offset
        if get_series_info_by_season_number(show, season_number) is series:
            season_numbers.append(season_number)
        else:
            logger.debug(
                f"Season {season_number} of {series.name} is claimed by an earlier series"
            )
    return season_numbers


def get_season_layout(show: ShowInfo) -> list[SeasonAssignment]:
    """All resolvable seasons of a show, ordered by season number"""
    layout = [
        SeasonAssignment(series, season_number, get_season_offset(show, series, season_number))
        for series in show.series_list
        for season_number in get_season_numbers(show, series)
    ]
    return sorted(layout, key=lambda assignment: assignment.season_number)
