"""
Season metadata projection for the media server
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from .config import Config
from .host import HostSeries
from .lookup import ANIDB_PROVIDER, SEASON_OFFSET_PROVIDER, SERIES_PROVIDER
from .models import MetadataResult, SeasonMetadata, SeriesInfo
from .numbering import get_offset_label, resolve_season
from .resolver import GroupFilterType, ShowResolver
from .text import get_description, get_series_titles

logger = logging.getLogger(__name__)


@dataclass
class SeasonLookupInfo:
    """What the media server knows about a season it wants metadata for"""

    index_number: int | None
    name: str = ""
    series_provider_ids: dict[str, str] = field(default_factory=dict)
    metadata_language: str | None = None
    # Set when refreshing a season that already exists in the library
    series: HostSeries | None = None
    season_id: str | None = None


def create_metadata(
    series_info: SeriesInfo,
    season_number: int,
    offset: int,
    metadata_language: str | None,
    series: HostSeries | None = None,
    season_id: str | None = None,
    add_anidb_id: bool = False,
    description_sources: Iterable[str] = ("anidb", "tvdb"),
) -> SeasonMetadata:
    """
    Build the season record for a series projected into a season number

    Args:
        series_info: Series backing the season
        season_number: Season number in the show
        offset: Distance between the season number and the series' base
        metadata_language: Preferred language for the display title
        series: Owning series in the media server, when updating an existing season
        season_id: Identity of the existing season, kept as-is
        add_anidb_id: Also attach the AniDB id of the series
        description_sources: Overview source preference

    Returns:
        SeasonMetadata
    """
    display_title, alternate_title = get_series_titles(
        series_info.titles, series_info.name, metadata_language
    )
    sort_title = f"S{season_number} - {series_info.name}"

    label = get_offset_label(series_info, offset) if offset > 0 else None
    if label:
        display_title += f" ({label})"
        alternate_title += f" ({label})"

    season = SeasonMetadata(
        name=display_title,
        original_title=alternate_title,
        index_number=season_number,
        sort_name=sort_title,
        forced_sort_name=sort_title,
        overview=get_description(series_info, description_sources),
        premiere_date=series_info.air_date,
        end_date=series_info.end_date,
        production_year=series_info.air_date.year if series_info.air_date else None,
        tags=list(series_info.tags),
        genres=list(series_info.genres),
        studios=list(series_info.studios),
        community_rating=series_info.rating.to_float(10) if series_info.rating else None,
    )

    if series is not None:
        now = datetime.now(timezone.utc)
        season.id = season_id
        season.series_id = series.id
        season.series_name = series.name
        season.series_presentation_unique_key = series.presentation_unique_key
        season.is_virtual_item = True
        season.date_modified = now
        season.date_last_saved = now

    season.provider_ids[SERIES_PROVIDER] = series_info.id
    season.provider_ids[SEASON_OFFSET_PROVIDER] = str(offset)
    if add_anidb_id and series_info.anidb_id:
        season.provider_ids[ANIDB_PROVIDER] = str(series_info.anidb_id)

    return season


class SeasonProvider:
    """Season metadata provider backed by Shoko"""

    name = "Shoko"

    def __init__(self, resolver: ShowResolver, config: Config):
        self.resolver = resolver
        self.config = config

    def get_metadata(self, info: SeasonLookupInfo) -> MetadataResult:
        """
        Look up the metadata of a season

        Never raises; an empty result means "no update this cycle".
        """
        try:
            if not info.index_number:
                return MetadataResult()

            result = MetadataResult()
            filter_type = (
                GroupFilterType.OTHERS
                if self.config.filter_on_library_types
                else GroupFilterType.DEFAULT
            )
            series_id = info.series_provider_ids.get(SERIES_PROVIDER)
            if not series_id:
                logger.debug(
                    f"Unable to refresh Season {info.index_number} {info.name}"
                )
                return result

            season_number = info.index_number
            show_info = self.resolver.resolve_show(series_id, filter_type)
            if show_info is None:
                logger.warning(
                    f"Unable to find show info for Season {season_number}. (Series={series_id})"
                )
                return result

            assignment = resolve_season(show_info, season_number)
            if assignment is None:
                logger.warning(
                    f"Unable to find series info for Season {season_number}. "
                    f"(Series={series_id},Group={show_info.group_id})"
                )
                return result

            logger.info(
                f"Found info for Season {season_number} in Series {show_info.name} "
                f"(Series={series_id},Group={show_info.group_id})"
            )

            result.item = create_metadata(
                assignment.series,
                season_number,
                assignment.offset,
                info.metadata_language or self.config.metadata_language,
                series=info.series,
                season_id=info.season_id,
                add_anidb_id=self.config.add_anidb_id,
                description_sources=self.config.description_sources,
            )
            result.has_metadata = True
            result.people = list(assignment.series.staff)
            return result

        except Exception as e:
            logger.exception(f"Threw unexpectedly; {e}")
            return MetadataResult()
