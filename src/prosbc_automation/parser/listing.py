"""Parsers for entity listing pages and create-response identifiers."""

from __future__ import annotations

import json
import logging
import re
from typing import Any
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from prosbc_automation.client.errors import ParseError
from prosbc_automation.model.nap import EntityDescriptor
from prosbc_automation.parser.html import normalize_text, parse_html

logger = logging.getLogger(__name__)

# Tried in order; the first container holding at least one matching anchor wins.
NAP_TABLE_SELECTORS: tuple[str, ...] = (
    "table.list",
    "#naps",
    "table",
)

NAP_EDIT_HREF_RE: re.Pattern[str] = re.compile(r"/naps/(\d+)/edit")

# Applied in order to a create redirect's path.
_LOCATION_ID_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"/naps/(\d+)(?:/edit)?(?:\?.*)?$"),
    re.compile(r"/naps/(\d+)(?:/.*)?$"),
    re.compile(r"nap.*?(\d+)"),
    re.compile(r"/(\d+)(?:/edit)?(?:\?.*)?$"),
)

_BODY_ID_RE: re.Pattern[str] = re.compile(r"/naps/(\d+)")


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

def _anchors(container: BeautifulSoup | Tag, href_re: re.Pattern[str]) -> list[Tag]:
    return [
        a for a in container.find_all("a", href=True)
        if href_re.search(str(a["href"]))
    ]


def parse_entity_listing(
    html: str,
    href_re: re.Pattern[str] = NAP_EDIT_HREF_RE,
    table_selectors: tuple[str, ...] = NAP_TABLE_SELECTORS,
) -> dict[str, EntityDescriptor]:
    """Parse an HTML listing into ``name -> EntityDescriptor``.

    Each anchor whose ``href`` matches *href_re* contributes one entity:
    the captured id and the anchor's visible text as name.  When the same
    name appears twice the first occurrence wins.

    Args:
        html: Raw HTML of the listing page.
        href_re: Pattern with one group capturing the entity id.
        table_selectors: Containers to search, most specific first; the
            whole document is searched when none of them matches.

    Returns:
        Mapping of entity name to descriptor (empty if nothing matched).
    """
    soup = parse_html(html)
    anchors: list[Tag] = []
    for selector in table_selectors:
        for container in soup.select(selector):
            anchors = _anchors(container, href_re)
            if anchors:
                break
        if anchors:
            break
    if not anchors:
        anchors = _anchors(soup, href_re)

    result: dict[str, EntityDescriptor] = {}
    for a in anchors:
        m = href_re.search(str(a["href"]))
        name = normalize_text(a.get_text())
        if m is None or not name or name in result:
            continue
        result[name] = EntityDescriptor(id=m.group(1), name=name)
    return result


def _json_items(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, dict):
        for key in ("naps", "data", "items"):
            if isinstance(payload.get(key), list):
                return _json_items(payload[key])
        return []
    if not isinstance(payload, list):
        return []
    items: list[dict[str, Any]] = []
    for item in payload:
        if isinstance(item, dict) and len(item) == 1 and isinstance(next(iter(item.values())), dict):
            # Rails to_json with include_root_in_json: [{"nap": {...}}]
            item = next(iter(item.values()))
        if isinstance(item, dict):
            items.append(item)
    return items


def parse_json_listing(text: str) -> dict[str, EntityDescriptor]:
    """Parse a JSON listing into ``name -> EntityDescriptor``.

    Accepts ``[{"id", "name", ...}]``, ``[{"nap": {...}}]`` and
    ``{"naps": [...]}``.  Remaining keys become descriptor fields.

    Raises:
        ParseError: If *text* is not JSON.
    """
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ParseError(f"Non-JSON listing: {text[:200]!r}") from exc

    result: dict[str, EntityDescriptor] = {}
    for item in _json_items(payload):
        if item.get("id") is None or not item.get("name"):
            continue
        name = str(item["name"])
        fields = {k: v for k, v in item.items() if k not in ("id", "name")}
        result.setdefault(name, EntityDescriptor(id=str(item["id"]), name=name, fields=fields))
    return result


def highest_identifier(entities: dict[str, EntityDescriptor]) -> str | None:
    """Numerically largest id among *entities*, or ``None``."""
    ids = [int(e.id) for e in entities.values() if e.id.isdigit()]
    return str(max(ids)) if ids else None


# ---------------------------------------------------------------------------
# Create responses
# ---------------------------------------------------------------------------

def extract_id_from_location(location: str | None) -> str | None:
    """Recover a new NAP's id from a create redirect's ``Location``.

    The origin and any ``/api`` prefix are stripped before the ordered
    patterns are tried.
    """
    if not location:
        return None
    parts = urlsplit(location)
    path = parts.path + (f"?{parts.query}" if parts.query else "")
    if path.startswith("/api/"):
        path = path[len("/api"):]
    for pattern in _LOCATION_ID_PATTERNS:
        m = pattern.search(path)
        if m:
            return m.group(1)
    return None


def extract_id_from_body(html: str, name: str) -> str | None:
    """Recover a NAP's id from a page listing it by *name*.

    Looks for a table row with a cell or link whose text is exactly *name*
    and that links to ``/naps/<id>``.
    """
    if not html or name not in html:
        return None
    soup = parse_html(html)
    for row in soup.find_all("tr"):
        texts = {normalize_text(el.get_text()) for el in row.find_all(["td", "th", "a"])}
        if name not in texts:
            continue
        for a in row.find_all("a", href=True):
            m = _BODY_ID_RE.search(str(a["href"]))
            if m:
                return m.group(1)
    return None
