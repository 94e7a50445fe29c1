"""Unit tests for prosbc_automation.parser.listing."""

from __future__ import annotations

import json
import pathlib

import pytest

from prosbc_automation.client.errors import ParseError
from prosbc_automation.model.nap import EntityDescriptor
from prosbc_automation.parser.listing import (
    extract_id_from_body,
    extract_id_from_location,
    highest_identifier,
    parse_entity_listing,
    parse_json_listing,
)

FIXTURES = pathlib.Path(__file__).parent.parent / "fixtures"


# ---------------------------------------------------------------------------
# HTML listing
# ---------------------------------------------------------------------------

def test_html_listing_from_fixture() -> None:
    entities = parse_entity_listing((FIXTURES / "naps_list.html").read_text())
    assert list(entities) == ["PSTN_GW_A", "VEN_ATX_12", "CARRIER_B"]
    assert entities["VEN_ATX_12"].id == "12"
    # Trailing whitespace in the anchor text is dropped.
    assert entities["CARRIER_B"].id == "27"


def test_html_listing_ignores_delete_links() -> None:
    entities = parse_entity_listing((FIXTURES / "naps_list.html").read_text())
    assert "Delete" not in entities


def test_html_listing_first_duplicate_wins() -> None:
    html = """
    <table class="list">
      <tr><td><a href="/naps/4/edit">DUP</a></td></tr>
      <tr><td><a href="/naps/9/edit">DUP</a></td></tr>
    </table>
    """
    assert parse_entity_listing(html)["DUP"].id == "4"


def test_html_listing_without_table_scans_document() -> None:
    html = '<div><a href="/naps/7/edit">LOOSE</a></div>'
    assert parse_entity_listing(html) == {"LOOSE": EntityDescriptor(id="7", name="LOOSE")}


def test_html_listing_empty_page() -> None:
    assert parse_entity_listing("<html><body><table></table></body></html>") == {}


# ---------------------------------------------------------------------------
# JSON listing
# ---------------------------------------------------------------------------

def test_json_listing_flat() -> None:
    text = json.dumps([{"id": 3, "name": "A", "enabled": True}, {"id": 4, "name": "B"}])
    entities = parse_json_listing(text)
    assert entities["A"].id == "3"
    assert entities["A"].fields == {"enabled": True}
    assert entities["B"].id == "4"


def test_json_listing_root_wrapped() -> None:
    text = json.dumps([{"nap": {"id": 12, "name": "VEN_ATX_12"}}])
    assert parse_json_listing(text)["VEN_ATX_12"].id == "12"


def test_json_listing_envelope() -> None:
    text = json.dumps({"naps": [{"id": 5, "name": "E"}]})
    assert parse_json_listing(text)["E"].id == "5"


def test_json_listing_skips_incomplete_items() -> None:
    text = json.dumps([{"id": 1}, {"name": "NO_ID"}, "junk", {"id": 2, "name": "OK"}])
    assert list(parse_json_listing(text)) == ["OK"]


def test_json_listing_rejects_html() -> None:
    with pytest.raises(ParseError):
        parse_json_listing("<html>login</html>")


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "location,expected",
    [
        ("https://10.0.0.5/naps/66/edit", "66"),
        ("https://10.0.0.5/naps/66", "66"),
        ("/naps/66/edit?notice=created", "66"),
        ("/api/naps/71", "71"),
        ("/naps/66/sip_saps", "66"),
        ("/configurations/1/nap_list?new=80", "80"),
        ("/items/90/edit", "90"),
    ],
)
def test_id_from_location(location: str, expected: str) -> None:
    assert extract_id_from_location(location) == expected


@pytest.mark.parametrize("location", [None, "", "https://10.0.0.5/naps", "/naps/new"])
def test_id_from_location_absent(location: str | None) -> None:
    assert extract_id_from_location(location) is None


def test_id_from_body_finds_named_row() -> None:
    html = (FIXTURES / "naps_list.html").read_text()
    assert extract_id_from_body(html, "VEN_ATX_12") == "12"
    assert extract_id_from_body(html, "NOT_LISTED") is None


def test_id_from_body_requires_exact_name() -> None:
    html = (
        "<table>"
        '<tr><td><a href="/naps/66/edit">VEN_ATX_66</a></td></tr>'
        '<tr><td><a href="/naps/70/edit">X</a></td></tr>'
        "</table>"
    )
    assert extract_id_from_body(html, "X") == "70"
    assert extract_id_from_body(html, "ATX") is None


def test_id_from_body_empty() -> None:
    assert extract_id_from_body("", "X") is None


def test_highest_identifier_is_numeric() -> None:
    entities = {
        "a": EntityDescriptor(id="9", name="a"),
        "b": EntityDescriptor(id="27", name="b"),
        "c": EntityDescriptor(id="100", name="c"),
        "d": EntityDescriptor(id="x1", name="d"),
    }
    assert highest_identifier(entities) == "100"
    assert highest_identifier({}) is None
