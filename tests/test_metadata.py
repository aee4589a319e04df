"""Tests for season metadata projection"""

from dataclasses import asdict
from datetime import date

from shokarrfin.host import HostSeries
from shokarrfin.lookup import ANIDB_PROVIDER, SEASON_OFFSET_PROVIDER, SERIES_PROVIDER
from shokarrfin.metadata import SeasonLookupInfo, SeasonProvider, create_metadata
from shokarrfin.models import GroupInfo, Person
from shokarrfin.resolver import ShowResolver

from conftest import make_series


def _without_dates(season) -> dict:
    data = asdict(season)
    data.pop("date_modified")
    data.pop("date_last_saved")
    return data


class TestCreateMetadata:
    def test_base_season(self, sample_series):
        season = create_metadata(sample_series, 1, 0, "en")

        assert season.name == "Attack on Titan"
        assert season.original_title == "Shingeki no Kyojin"
        assert season.index_number == 1
        assert season.sort_name == "S1 - Shingeki no Kyojin"
        assert season.forced_sort_name == season.sort_name
        assert season.overview == "Humanity fights the Titans."
        assert season.premiere_date == date(2013, 4, 7)
        assert season.end_date == date(2013, 9, 28)
        assert season.production_year == 2013
        assert season.community_rating == 8.42
        assert season.tags == ["Action", "Military"]
        assert season.genres == ["Action"]
        assert season.studios == ["Wit Studio"]
        assert season.provider_ids == {SERIES_PROVIDER: "101", SEASON_OFFSET_PROVIDER: "0"}

    def test_offset_season_gets_label_on_both_titles(self, sample_series):
        season = create_metadata(sample_series, 2, 1, "en")

        assert season.name == "Attack on Titan (Alternate Stories)"
        assert season.original_title == "Shingeki no Kyojin (Alternate Stories)"
        assert season.sort_name == "S2 - Shingeki no Kyojin"
        assert season.provider_ids[SEASON_OFFSET_PROVIDER] == "1"

    def test_offset_without_label_keeps_titles(self, sample_series):
        season = create_metadata(sample_series, 5, 4, "en")
        assert season.name == "Attack on Titan"

    def test_language_fallback_to_main_title(self, sample_series):
        season = create_metadata(sample_series, 1, 0, "de")
        assert season.name == "Shingeki no Kyojin"

    def test_anidb_id_is_optional(self, sample_series):
        assert ANIDB_PROVIDER not in create_metadata(sample_series, 1, 0, "en").provider_ids

        season = create_metadata(sample_series, 1, 0, "en", add_anidb_id=True)
        assert season.provider_ids[ANIDB_PROVIDER] == "9541"

    def test_new_season_has_no_linkage(self, sample_series):
        season = create_metadata(sample_series, 1, 0, "en")

        assert season.id is None
        assert season.series_id is None
        assert season.is_virtual_item is False
        assert season.date_modified is None

    def test_existing_season_is_linked_to_series(self, sample_series):
        series = HostSeries(id="jf-series", name="Attack on Titan", presentation_unique_key="key-1")

        season = create_metadata(sample_series, 2, 1, "en", series=series, season_id="jf-season")

        assert season.id == "jf-season"
        assert season.series_id == "jf-series"
        assert season.series_name == "Attack on Titan"
        assert season.series_presentation_unique_key == "key-1"
        assert season.is_virtual_item is True
        assert season.date_modified is not None
        assert season.date_modified == season.date_last_saved
        assert season.name == "Attack on Titan (Alternate Stories)"

    def test_projection_is_idempotent(self, sample_series):
        series = HostSeries(id="jf-series", name="Attack on Titan")

        first = create_metadata(sample_series, 2, 1, "en", series=series, season_id="s")
        second = create_metadata(sample_series, 2, 1, "en", series=series, season_id="s")

        assert _without_dates(first) == _without_dates(second)

    def test_description_source_order(self, sample_series):
        sample_series.overviews["tvdb"] = "From TvDB"

        assert create_metadata(sample_series, 1, 0, "en", description_sources=["tvdb"]).overview == "From TvDB"


class TestSeasonProvider:
    def _provider(self, shoko, config):
        return SeasonProvider(ShowResolver(shoko, config), config)

    def _setup_group(self, shoko):
        first = make_series("1", "First", alternate=1, group_id="g1", air_date=date(2010, 1, 1), anidb_id=555)
        second = make_series("2", "Second", group_id="g1", air_date=date(2012, 1, 1))
        first.staff = [Person("Director A", type="Director")]
        shoko.add_series(first)
        shoko.add_series(second)
        shoko.groups["g1"] = GroupInfo(id="g1", name="Group", main_series_id="1", series_ids=["1", "2"])

    def test_missing_index_number(self, shoko, config):
        result = self._provider(shoko, config).get_metadata(
            SeasonLookupInfo(index_number=None, series_provider_ids={SERIES_PROVIDER: "1"})
        )
        assert result.has_metadata is False
        assert result.item is None
        assert shoko.fetch_series_calls == []

    def test_season_zero(self, shoko, config):
        result = self._provider(shoko, config).get_metadata(
            SeasonLookupInfo(index_number=0, series_provider_ids={SERIES_PROVIDER: "1"})
        )
        assert result.has_metadata is False

    def test_missing_series_id(self, shoko, config):
        result = self._provider(shoko, config).get_metadata(SeasonLookupInfo(index_number=1))
        assert result.has_metadata is False
        assert result.item is None

    def test_unknown_series(self, shoko, config):
        result = self._provider(shoko, config).get_metadata(
            SeasonLookupInfo(index_number=1, series_provider_ids={SERIES_PROVIDER: "404"})
        )
        assert result.has_metadata is False

    def test_service_failure_is_swallowed(self, shoko, config):
        self._setup_group(shoko)
        shoko.unreachable = True

        result = self._provider(shoko, config).get_metadata(
            SeasonLookupInfo(index_number=1, series_provider_ids={SERIES_PROVIDER: "1"})
        )
        assert result.has_metadata is False

    def test_unexpected_error_is_swallowed(self, shoko, config):
        class BrokenResolver:
            def resolve_show(self, series_id, filter_type):
                raise RuntimeError("boom")

        provider = SeasonProvider(BrokenResolver(), config)
        result = provider.get_metadata(
            SeasonLookupInfo(index_number=1, series_provider_ids={SERIES_PROVIDER: "1"})
        )
        assert result.has_metadata is False
        assert result.item is None

    def test_offset_season_of_group(self, shoko, config):
        self._setup_group(shoko)

        result = self._provider(shoko, config).get_metadata(
            SeasonLookupInfo(index_number=2, series_provider_ids={SERIES_PROVIDER: "2"})
        )

        assert result.has_metadata is True
        assert result.item.name == "First (Alternate Stories)"
        assert result.item.provider_ids[SERIES_PROVIDER] == "1"
        assert result.item.provider_ids[SEASON_OFFSET_PROVIDER] == "1"
        assert result.item.provider_ids[ANIDB_PROVIDER] == "555"
        assert [p.name for p in result.people] == ["Director A"]

    def test_existing_season_keeps_its_identity(self, shoko, config):
        self._setup_group(shoko)
        series = HostSeries(id="jf-series", name="Group", presentation_unique_key="key-1")

        result = self._provider(shoko, config).get_metadata(
            SeasonLookupInfo(
                index_number=3,
                series_provider_ids={SERIES_PROVIDER: "1"},
                series=series,
                season_id="jf-season-3",
            )
        )

        assert result.has_metadata is True
        assert result.item.id == "jf-season-3"
        assert result.item.series_id == "jf-series"
        assert result.item.series_presentation_unique_key == "key-1"
        assert result.item.is_virtual_item is True
        assert result.item.provider_ids[SERIES_PROVIDER] == "2"

    def test_new_season_from_provider_has_no_linkage(self, shoko, config):
        self._setup_group(shoko)

        result = self._provider(shoko, config).get_metadata(
            SeasonLookupInfo(index_number=1, series_provider_ids={SERIES_PROVIDER: "1"})
        )

        assert result.item.id is None
        assert result.item.series_id is None

    def test_anidb_id_can_be_disabled(self, shoko, config):
        self._setup_group(shoko)
        config.add_anidb_id = False

        result = self._provider(shoko, config).get_metadata(
            SeasonLookupInfo(index_number=1, series_provider_ids={SERIES_PROVIDER: "1"})
        )
        assert result.item.name == "First"
        assert ANIDB_PROVIDER not in result.item.provider_ids
