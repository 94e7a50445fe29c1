"""Token, form-field and association extraction from console pages.

All functions are pure: they take a parsed document (see
:func:`~prosbc_automation.parser.html.parse_html`) and never touch the
network.  Locators are CSS selectors evaluated by BeautifulSoup's
``select_one``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from bs4 import BeautifulSoup, Tag

from prosbc_automation.model.nap import Association
from prosbc_automation.parser.html import normalize_text
from prosbc_automation.vendor.prosbc.mappings import (
    DEFAULT_UNIT,
    MULTIPLIER_TO_UNIT,
    TOKEN_REJECT_MARKERS,
    UNIT_TO_MULTIPLIER,
)

TOKEN_FIELD: str = "authenticity_token"

_TOKEN_CHARSET_RE: re.Pattern[str] = re.compile(r"^[A-Za-z0-9+/=_-]+$")
_TOKEN_MIN_LENGTH: int = 11


# ---------------------------------------------------------------------------
# Anti-forgery token
# ---------------------------------------------------------------------------

def is_plausible_token(candidate: str | None) -> bool:
    """True if *candidate* looks like a real form token.

    Rejects anything shorter than 11 characters, anything outside the
    base64/urlsafe charset, and anything containing a script marker such as
    ``(``, ``function`` or ``var`` (a value scraped from inline JavaScript).
    """
    if not candidate or len(candidate) < _TOKEN_MIN_LENGTH:
        return False
    if any(marker in candidate for marker in TOKEN_REJECT_MARKERS):
        return False
    return _TOKEN_CHARSET_RE.match(candidate) is not None


def extract_anti_forgery_token(doc: BeautifulSoup) -> str | None:
    """Return the page's anti-forgery token, or ``None``.

    Looks at every ``input[name="authenticity_token"]`` first, then the
    ``csrf-token`` meta tag.  Implausible candidates are skipped, never
    returned.
    """
    candidates: list[str] = [
        str(tag.get("value") or "")
        for tag in doc.select(f'input[name="{TOKEN_FIELD}"]')
    ]
    meta = doc.select_one('meta[name="csrf-token"]')
    if meta is not None:
        candidates.append(str(meta.get("content") or ""))
    for candidate in candidates:
        if is_plausible_token(candidate):
            return candidate
    return None


def extract_hidden_input(doc: BeautifulSoup, name: str) -> str | None:
    """Return the value of the ``<input>`` named *name*, or ``None``."""
    tag = doc.find("input", attrs={"name": name})
    if tag is None:
        return None
    return str(tag.get("value") or "")


# ---------------------------------------------------------------------------
# Field values
# ---------------------------------------------------------------------------

def _element_value(el: Tag) -> str:
    if el.name == "select":
        return extract_selected_option_value(el)
    if el.name == "textarea":
        return el.get_text()
    return str(el.get("value") or "")


def _first_match(
    doc: BeautifulSoup,
    primary: str,
    fallbacks: Sequence[str],
) -> Tag | None:
    for selector in (primary, *fallbacks):
        el = doc.select_one(selector)
        if el is not None:
            return el
    return None


def extract_field_value(
    doc: BeautifulSoup,
    primary: str,
    fallbacks: Sequence[str] = (),
) -> str:
    """Return the value of the first element matched by the selector chain.

    The console renders the same logical field under different DOM shapes
    in create and edit mode, hence the fallbacks.

    Args:
        doc: Parsed document.
        primary: Preferred CSS selector (usually ``#dom_id``).
        fallbacks: Further selectors tried in order.

    Returns:
        The element's value (selected option for ``<select>``, text for
        ``<textarea>``), or ``""`` when nothing matches.
    """
    el = _first_match(doc, primary, fallbacks)
    return _element_value(el) if el is not None else ""


def extract_checkbox(
    doc: BeautifulSoup,
    primary: str,
    fallbacks: Sequence[str] = (),
) -> bool:
    """Return the ``checked`` state of the first matching element."""
    el = _first_match(doc, primary, fallbacks)
    return el is not None and el.has_attr("checked")


def extract_selected_option_value(select: Tag | None) -> str:
    """Value of the option marked ``selected``, else the first option's."""
    if select is None:
        return ""
    option = select.find("option", selected=True)
    if option is None:
        option = select.find("option")
    if option is None:
        return ""
    value = option.get("value")
    return str(value) if value is not None else normalize_text(option.get_text())


def extract_selected_option_unit(
    doc: BeautifulSoup,
    field_name: str,
    table: dict[str, str] = MULTIPLIER_TO_UNIT,
) -> str:
    """Map the multiplier selected in ``select[name=field_name]`` to a unit.

    Args:
        doc: Parsed document.
        field_name: Form name of the ``*_unit_conversion`` select.
        table: Multiplier -> unit table for the field's base.

    Returns:
        One of ``milliseconds``, ``seconds``, ``minutes``, ``hours`` or
        ``days``; ``seconds`` when no option is marked selected or the
        multiplier is unknown.
    """
    select = doc.find("select", attrs={"name": field_name})
    if select is None:
        return DEFAULT_UNIT
    option = select.find("option", selected=True)
    if option is None:
        return DEFAULT_UNIT
    return table.get(str(option.get("value") or ""), DEFAULT_UNIT)


def unit_from_multiplier(
    multiplier: str | float,
    table: dict[str, str] = MULTIPLIER_TO_UNIT,
) -> str:
    """Unit name for *multiplier*, defaulting to ``seconds``."""
    key = multiplier if isinstance(multiplier, str) else f"{float(multiplier):.1f}"
    return table.get(key, DEFAULT_UNIT)


def unit_to_multiplier(
    unit: str,
    table: dict[str, str] = UNIT_TO_MULTIPLIER,
) -> str:
    """Multiplier string written back for *unit*.

    Raises:
        ValueError: If *unit* is not in *table*.
    """
    try:
        return table[unit]
    except KeyError:
        raise ValueError(
            f"unit must be one of {sorted(table)}, got {unit!r}"
        ) from None


# ---------------------------------------------------------------------------
# Associations
# ---------------------------------------------------------------------------

def extract_association_list(
    doc: BeautifulSoup,
    table_selector: str,
    id_pattern: str,
    kind: str = "",
) -> list[Association]:
    """Return the associations listed in a "current" table.

    Each row's ``a.edit_link`` (or any anchor) whose ``href`` matches
    *id_pattern* yields one entry: the captured id and the anchor text.

    Args:
        doc: Parsed document.
        table_selector: CSS selector of the association table.
        id_pattern: Regex with one group capturing the numeric id.
        kind: Association kind recorded on each entry.

    Returns:
        Associations in table order.
    """
    table = doc.select_one(table_selector)
    if table is None:
        return []
    pattern = re.compile(id_pattern)
    result: list[Association] = []
    rows = table.select("tbody tr") or table.find_all("tr")
    for row in rows:
        anchors = row.select("a.edit_link") or row.find_all("a", href=True)
        for anchor in anchors:
            m = pattern.search(str(anchor.get("href") or ""))
            if m:
                result.append(
                    Association(kind=kind, id=m.group(1), name=normalize_text(anchor.get_text()))
                )
                break
    return result


def extract_select_options(
    doc: BeautifulSoup,
    selector: str,
    kind: str = "",
) -> list[Association]:
    """Return ``(id, name)`` pairs of the options in a select, skipping blanks."""
    select = doc.select_one(selector)
    if select is None:
        return []
    result: list[Association] = []
    for option in select.find_all("option"):
        value = str(option.get("value") or "")
        name = normalize_text(option.get_text())
        if value and name:
            result.append(Association(kind=kind, id=value, name=name))
    return result
