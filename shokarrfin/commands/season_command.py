"""
Season commands - Inspect how a Shoko series maps onto seasons
"""

import logging

from rich.console import Console
from rich.table import Table

from shokarrfin.config import Config
from shokarrfin.lookup import SERIES_PROVIDER
from shokarrfin.metadata import SeasonLookupInfo, SeasonProvider
from shokarrfin.numbering import ALTERNATE_STORIES, get_season_layout
from shokarrfin.resolver import GroupFilterType, ShowResolver

logger = logging.getLogger(__name__)
console = Console()


def season_command(
    config: Config,
    season_provider: SeasonProvider,
    series_id: str,
    season_number: int,
    language: str | None = None,
) -> bool:
    """
    Print the projected metadata of one season

    Returns:
        True if metadata was found
    """
    result = season_provider.get_metadata(
        SeasonLookupInfo(
            index_number=season_number,
            series_provider_ids={SERIES_PROVIDER: series_id},
            metadata_language=language or config.metadata_language,
        )
    )
    if not result.has_metadata or result.item is None:
        console.print(
            f"[yellow]No metadata for season {season_number} of series {series_id}[/yellow]"
        )
        return False

    season = result.item
    table = Table(title=f"Season {season.index_number}: {season.name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Title", season.name)
    table.add_row("Original title", season.original_title)
    table.add_row("Sort name", season.sort_name)
    table.add_row("Premiere", str(season.premiere_date or "-"))
    table.add_row("End", str(season.end_date or "-"))
    table.add_row("Rating", f"{season.community_rating}" if season.community_rating is not None else "-")
    table.add_row("Genres", ", ".join(season.genres) or "-")
    table.add_row("Tags", ", ".join(season.tags) or "-")
    table.add_row("Studios", ", ".join(season.studios) or "-")
    table.add_row(
        "Provider ids",
        ", ".join(f"{k}={v}" for k, v in season.provider_ids.items()),
    )
    console.print(table)
    if season.overview:
        console.print(f"\n[dim]{season.overview}[/dim]")
    if result.people:
        console.print(
            "\n[bold]Staff:[/bold] "
            + ", ".join(f"{p.name} ({p.role or p.type})" for p in result.people)
        )
    return True


def show_command(
    config: Config,
    resolver: ShowResolver,
    series_id: str,
) -> bool:
    """
    Print the season layout of the show a series belongs to

    Returns:
        True if the show was resolved
    """
    filter_type = (
        GroupFilterType.OTHERS if config.filter_on_library_types else GroupFilterType.DEFAULT
    )
    show = resolver.resolve_show(series_id, filter_type)
    if show is None:
        console.print(f"[yellow]Unable to resolve a show for series {series_id}[/yellow]")
        return False

    table = Table(title=f"{show.name} ({len(show.series_list)} series)")
    table.add_column("Season", style="cyan")
    table.add_column("Series ID", style="dim")
    table.add_column("Series", style="green")
    table.add_column("Offset", style="blue")
    table.add_column("Episodes", style="magenta")

    for assignment in get_season_layout(show):
        series = assignment.series
        if assignment.offset == 0:
            episodes = len(series.episodes_list)
        elif assignment.label == ALTERNATE_STORIES:
            episodes = len(series.alternate_episodes_list)
        else:
            episodes = len(series.others_list)
        name = series.name
        if assignment.label:
            name += f" ({assignment.label})"
        table.add_row(
            str(assignment.season_number),
            series.id,
            name,
            str(assignment.offset),
            str(episodes),
        )

    console.print(table)
    return True
