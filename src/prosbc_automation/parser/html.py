"""Base HTML parsing utilities shared across all parsers."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from prosbc_automation.vendor.prosbc.mappings import LOGIN_PAGE_MARKERS


def parse_html(html: str, parser: str = "lxml") -> BeautifulSoup:
    """Parse an HTML string and return a BeautifulSoup document.

    Args:
        html: Raw HTML content from a console response.
        parser: Parser library to use (default: ``lxml``).

    Returns:
        Parsed BeautifulSoup document.
    """
    return BeautifulSoup(html, parser)


def normalize_text(s: str) -> str:
    """Strip surrounding whitespace and collapse internal runs.

    Args:
        s: Raw text extracted from an HTML element.

    Returns:
        Cleaned string with single spaces between words.
    """
    return re.sub(r"\s+", " ", s).strip()


def is_login_page(html: str) -> bool:
    """True if *html* is the console's login page.

    The console answers an expired session with a 200 login page rather
    than a 401, so authenticated reads must check the body.
    """
    lowered = html.lower()
    return any(marker in lowered for marker in LOGIN_PAGE_MARKERS)


def find_fieldset(soup: BeautifulSoup, legend: str) -> Tag | None:
    """Return the first ``<fieldset>`` whose ``<legend>`` matches *legend*.

    Matching ignores case, colons and whitespace, and accepts containment
    either way ("Routesets Definition:" matches "Routesets Definitions").

    Args:
        soup: Parsed document.
        legend: Legend text to look for.

    Returns:
        Matching ``<fieldset>`` tag, or ``None`` if not found.
    """
    def _key(s: str) -> str:
        return re.sub(r"[\s:]+", "", s).lower()

    wanted = _key(legend)
    for fieldset in soup.find_all("fieldset"):
        tag = fieldset.find("legend")
        if tag is None:
            continue
        found = _key(tag.get_text())
        if found and (wanted in found or found in wanted):
            return fieldset
    return None

