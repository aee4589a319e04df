"""
Title and description selection for series metadata
"""

import re
from typing import Iterable

from .models import SeriesInfo, Title

ROMANIZED_LANGUAGES = ("x-jat", "x-zht", "x-kot", "x-thr")

# "http://anidb.net/ch1234 [Name]" -> "Name"
_LINK_PATTERN = re.compile(r"https?://anidb\.net/\w+(?:/\w+)? \[([^\]]+)\]")
# Footers such as "Source: ANN" or "Note: ..." at the start of a line
_FOOTER_PATTERN = re.compile(
    r"^\s*(?:\*|--)?\s*(?:Source|Note|Summary)(?: by)?\s*:.*$",
    re.IGNORECASE | re.MULTILINE,
)
_MULTI_NEWLINE_PATTERN = re.compile(r"\n{3,}")
_MULTI_SPACE_PATTERN = re.compile(r"[ \t]{2,}")


def _language_matches(title_language: str, language: str) -> bool:
    """Match "en" against "en", "en-US" against "en" and vice versa"""
    title_language = title_language.lower()
    language = language.lower()
    return (
        title_language == language
        or title_language.split("-")[0] == language.split("-")[0]
    )


def get_title_by_language(titles: Iterable[Title], language: str | None) -> str | None:
    """Official (or main) title in the given language"""
    if not language:
        return None
    candidates = [t for t in titles if _language_matches(t.language, language)]
    for title_type in ("main", "official"):
        for title in candidates:
            if title.type == title_type:
                return title.name
    return None


def get_romanized_title(titles: Iterable[Title]) -> str | None:
    """Main title in a romanized script"""
    titles = list(titles)
    for title in titles:
        if title.type == "main" and title.language in ROMANIZED_LANGUAGES:
            return title.name
    for title in titles:
        if title.type == "main":
            return title.name
    return None


def get_series_titles(
    titles: Iterable[Title], main_title: str, language: str | None
) -> tuple[str, str]:
    """
    Pick the display title and the alternate title of a series

    The display title falls back from the requested language to the series'
    main title, and then to the romanized title. The alternate title is the
    romanized title when there is one.

    Returns:
        Tuple of (display_title, alternate_title)
    """
    titles = list(titles)
    romanized = get_romanized_title(titles)

    display = get_title_by_language(titles, language) or main_title or romanized or ""
    alternate = romanized or main_title or display
    return display, alternate


def sanitize_description(text: str) -> str:
    """Strip catalog link markup and source footers from a description"""
    if not text:
        return ""
    text = text.replace("\r\n", "\n")
    text = _LINK_PATTERN.sub(r"\1", text)
    text = _FOOTER_PATTERN.sub("", text)
    text = _MULTI_SPACE_PATTERN.sub(" ", text)
    text = _MULTI_NEWLINE_PATTERN.sub("\n\n", text)
    return text.strip()


def get_description(series: SeriesInfo, sources: Iterable[str] = ("anidb", "tvdb")) -> str:
    """First non-empty overview of the series in source preference order"""
    for source in sources:
        overview = series.overviews.get(source.lower())
        if overview:
            return sanitize_description(overview)
    return ""
