"""Parsers for the routed-file database pages and the configuration selector."""

from __future__ import annotations

import logging
import re

from prosbc_automation.client.errors import ParseError
from prosbc_automation.model.file import ConfigurationEntry, RoutedFile
from prosbc_automation.parser.html import find_fieldset, normalize_text, parse_html
from prosbc_automation.vendor.prosbc.mappings import FILE_TYPES

logger = logging.getLogger(__name__)

_FILE_HREF_RE: re.Pattern[str] = re.compile(
    r"^/file_dbs/(\d+)/(routesets_digitmaps|routesets_definitions)/(\d+)(?:/(edit|export))?$"
)

_DB_ID_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"/file_dbs/(\d+)/routesets_definitions/new"),
    re.compile(r"/file_dbs/(\d+)/routesets_digitmaps/new"),
    re.compile(r"/file_dbs/(\d+)/[^/\"']+/\d+/edit"),
    re.compile(r"/file_dbs/(\d+)/"),
)


def parse_file_listing(html: str, file_type: str) -> dict[str, RoutedFile]:
    """Parse ``/file_dbs/{db}/edit`` into ``name -> RoutedFile`` for one type.

    The rows are taken from the fieldset whose legend names the file type
    ("Routesets Definition" / "Routesets Digitmap"); when the page has no
    such fieldset the whole document is scanned.  Only links of
    *file_type* are considered, so the two sections never bleed into each
    other.

    Args:
        html: Raw HTML of the file database page.
        file_type: ``routesets_definitions`` or ``routesets_digitmaps``.

    Returns:
        Mapping of file name to record, in page order.
    """
    _prefix, legend = FILE_TYPES[file_type]
    soup = parse_html(html)
    container = find_fieldset(soup, legend) or soup

    result: dict[str, RoutedFile] = {}
    for row in container.find_all("tr"):
        cell = row.find("td")
        if cell is None:
            continue
        name = normalize_text(cell.get_text())
        record: RoutedFile | None = None
        for a in row.find_all("a", href=True):
            m = _FILE_HREF_RE.match(str(a["href"]))
            if m is None or m.group(2) != file_type:
                continue
            if record is None:
                record = RoutedFile(id=m.group(3), name=name, file_type=file_type, db_id=m.group(1))
            action = m.group(4)
            if action == "edit":
                record.update_url = m.group(0)
            elif action == "export":
                record.export_url = m.group(0)
            else:
                record.delete_url = m.group(0)
        if record is not None and name and name not in result:
            result[name] = record
    logger.debug("Parsed %d %s record(s)", len(result), file_type)
    return result


def extract_file_db_id(text: str) -> str | None:
    """Find the file database id referenced by a page body or ``Location``."""
    for pattern in _DB_ID_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


def extract_uploaded_content(html: str) -> str | None:
    """Return the CSV text embedded in a file edit page, if any.

    Tries the ``[uploaded_data]`` textarea, any textarea, the
    ``[uploaded_data]`` input and finally a ``<pre>`` block.
    """
    soup = parse_html(html)
    el = soup.select_one('textarea[name$="[uploaded_data]"]') or soup.find("textarea")
    if el is not None:
        return el.get_text()
    el = soup.select_one('input[name$="[uploaded_data]"]')
    if el is not None:
        return str(el.get("value") or "")
    el = soup.find("pre")
    if el is not None:
        return el.get_text()
    return None


def parse_configurations(html: str) -> list[ConfigurationEntry]:
    """Parse the ``#configuration_select`` dropdown of the console home page.

    Raises:
        ParseError: If the page has no configuration selector.
    """
    soup = parse_html(html)
    select = soup.select_one("select#configuration_select")
    if select is None:
        raise ParseError("Configuration selector not found")

    entries: list[ConfigurationEntry] = []
    for option in select.find_all("option"):
        value = str(option.get("value") or "")
        if not value.isdigit():
            continue
        group = option.find_parent("optgroup")
        label = str(group.get("label") or "") if group is not None else ""
        entries.append(
            ConfigurationEntry(
                id=value,
                name=normalize_text(option.get_text()).lstrip("*").strip(),
                active=label.lower() == "active",
                selected=option.has_attr("selected"),
            )
        )
    return entries
