"""
Data models for ShokarrFin
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List


class EpisodeBucket(Enum):
    """Disjoint episode classifications within a series"""

    MAIN = "main"
    ALTERNATE = "alternate"
    OTHER = "other"
    SPECIALS = "specials"


@dataclass
class Title:
    """A series title in a given language"""

    name: str
    language: str
    type: str = "official"  # "main", "official", "synonym" or "short"


@dataclass
class Rating:
    """Community rating as reported by the external catalog"""

    value: float
    max_value: int = 10
    votes: int | None = None

    def to_float(self, scale: int = 10) -> float:
        """Rescale the rating to a 0..scale range"""
        if not self.max_value:
            return 0.0
        return round(self.value * scale / self.max_value, 2)


@dataclass
class Person:
    """A staff member credited on a series"""

    name: str
    role: str | None = None
    type: str = "Staff"  # "Actor", "Director", "Writer", "Producer", ...


@dataclass
class EpisodeInfo:
    """Represents an episode in Shoko"""

    id: str
    series_id: str
    number: int
    type: str
    title: str = ""
    air_date: date | None = None
    is_hidden: bool = False


@dataclass(eq=False)
class SeriesInfo:
    """Represents a series in Shoko

    Instances compare and hash by identity so they can key the season base
    mapping of a show.
    """

    id: str
    name: str
    type: str = "TV"
    group_id: str | None = None
    anidb_id: int | None = None
    titles: List[Title] = field(default_factory=list)
    overviews: dict[str, str] = field(default_factory=dict)
    air_date: date | None = None
    end_date: date | None = None
    rating: Rating | None = None
    tags: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)
    studios: List[str] = field(default_factory=list)
    staff: List[Person] = field(default_factory=list)
    episodes_list: List[EpisodeInfo] = field(default_factory=list)
    alternate_episodes_list: List[EpisodeInfo] = field(default_factory=list)
    others_list: List[EpisodeInfo] = field(default_factory=list)
    specials_list: List[EpisodeInfo] = field(default_factory=list)

    @property
    def is_movie(self) -> bool:
        return self.type.lower() == "movie"


@dataclass
class GroupInfo:
    """Represents a group of series in Shoko"""

    id: str
    name: str
    main_series_id: str | None = None
    series_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ShowInfo:
    """One logical show as presented to the media server

    The season base mapping is derived once at construction and never changes;
    a new aggregate is built whenever the cached one is dropped.
    """

    id: str
    name: str
    series_list: tuple[SeriesInfo, ...]
    group_id: str | None = None
    season_number_base_dictionary: dict = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self):
        from .numbering import assign_base_season_numbers

        object.__setattr__(
            self,
            "season_number_base_dictionary",
            assign_base_season_numbers(self.series_list),
        )

    @property
    def main_series(self) -> SeriesInfo:
        return self.series_list[0]

    def get_series_info_by_season_number(
        self, season_number: int
    ) -> SeriesInfo | None:
        from .numbering import get_series_info_by_season_number

        return get_series_info_by_season_number(self, season_number)


@dataclass
class RemoteUserData:
    """Per-user watch state of a file in Shoko"""

    file_id: str
    played: bool = False
    position_ticks: int = 0
    play_count: int = 0
    last_played: datetime | None = None
    last_updated: datetime | None = None


@dataclass
class SeasonMetadata:
    """Season-level metadata record ready for the media server to persist"""

    name: str
    original_title: str
    index_number: int
    sort_name: str
    forced_sort_name: str
    overview: str = ""
    premiere_date: date | None = None
    end_date: date | None = None
    production_year: int | None = None
    tags: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)
    studios: List[str] = field(default_factory=list)
    community_rating: float | None = None
    provider_ids: dict[str, str] = field(default_factory=dict)
    # Only set when projecting into an existing season of the host
    id: str | None = None
    series_id: str | None = None
    series_name: str | None = None
    series_presentation_unique_key: str | None = None
    is_virtual_item: bool = False
    date_modified: datetime | None = None
    date_last_saved: datetime | None = None


@dataclass
class MetadataResult:
    """Season metadata lookup result"""

    item: SeasonMetadata | None = None
    has_metadata: bool = False
    people: List[Person] = field(default_factory=list)
