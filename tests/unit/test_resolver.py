"""Unit tests for prosbc_automation.client.resolver."""

from __future__ import annotations

import json
import pathlib

import pytest
import responses as rsps_lib

from prosbc_automation.client.errors import AuthenticationRequired, NotFound
from prosbc_automation.client.resolver import (
    ListingStrategy,
    list_entities,
    resolve_identifier,
)
from prosbc_automation.client.session import ProSBCCredentials, ProSBCSession
from prosbc_automation.vendor.prosbc.endpoints import LOGIN, LOGIN_CHECK, NAPS

FIXTURES = pathlib.Path(__file__).parent.parent / "fixtures"

BASE_URL = "https://10.0.0.5"
JSON_URL = f"{BASE_URL}/configurations/1/naps"
LOGIN_HTML = (FIXTURES / "login.html").read_text()
LIST_HTML = (FIXTURES / "naps_list.html").read_text()

HTML_FALLBACKS = (
    "/naps",
    "/configurations/1/sip/naps",
    "/sip/naps",
    "/sip_naps",
)


def _make_session() -> ProSBCSession:
    return ProSBCSession(
        base_url=BASE_URL,
        credentials=ProSBCCredentials(username="admin", password="secret"),
        retry_delay_s=0.0,
    )


def _add_login() -> None:
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}{LOGIN}", body=LOGIN_HTML)
    rsps_lib.add(
        rsps_lib.POST,
        f"{BASE_URL}{LOGIN_CHECK}",
        status=302,
        headers={
            "Location": f"{BASE_URL}/",
            "Set-Cookie": "_WebOAMP_session=abc123; path=/",
        },
    )


def _listing_calls() -> list[str]:
    return [
        c.request.url for c in rsps_lib.calls
        if LOGIN not in c.request.url
    ]


# ---------------------------------------------------------------------------
# resolve_identifier
# ---------------------------------------------------------------------------

@rsps_lib.activate
def test_numeric_identifier_needs_no_request() -> None:
    assert resolve_identifier(_make_session(), " 42 ") == "42"
    assert len(rsps_lib.calls) == 0


@rsps_lib.activate
def test_json_listing_tried_first() -> None:
    _add_login()
    rsps_lib.add(
        rsps_lib.GET,
        JSON_URL,
        body=json.dumps([{"id": 12, "name": "VEN_ATX_12"}]),
        content_type="application/json",
    )
    assert resolve_identifier(_make_session(), "VEN_ATX_12") == "12"
    assert _listing_calls() == [JSON_URL]
    assert rsps_lib.calls[-1].request.headers["Accept"] == "application/json"


@rsps_lib.activate
def test_html_listing_used_when_json_is_not_json() -> None:
    _add_login()
    rsps_lib.add(rsps_lib.GET, JSON_URL, body="<html><body>NAPs</body></html>")
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}{NAPS}", body=LIST_HTML)
    assert resolve_identifier(_make_session(), "CARRIER_B") == "27"
    assert _listing_calls() == [JSON_URL, f"{BASE_URL}{NAPS}"]


@rsps_lib.activate
def test_empty_and_failing_strategies_are_skipped() -> None:
    _add_login()
    rsps_lib.add(rsps_lib.GET, JSON_URL, json=[])
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}/naps", status=500)
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}/configurations/1/sip/naps", body=LIST_HTML)
    entities = list_entities(_make_session())
    assert entities["PSTN_GW_A"].id == "3"


@rsps_lib.activate
def test_unknown_name_raises_not_found() -> None:
    _add_login()
    rsps_lib.add(rsps_lib.GET, JSON_URL, status=404)
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}{NAPS}", body=LIST_HTML)
    with pytest.raises(NotFound) as excinfo:
        resolve_identifier(_make_session(), "NO_SUCH_NAP")
    assert excinfo.value.identifier == "NO_SUCH_NAP"


# ---------------------------------------------------------------------------
# list_entities failure modes
# ---------------------------------------------------------------------------

@rsps_lib.activate
def test_all_strategies_failing_returns_empty() -> None:
    _add_login()
    rsps_lib.add(rsps_lib.GET, JSON_URL, status=404)
    for path in HTML_FALLBACKS:
        rsps_lib.add(rsps_lib.GET, f"{BASE_URL}{path}", status=404)
    assert list_entities(_make_session()) == {}


@rsps_lib.activate
def test_login_page_propagates() -> None:
    _add_login()
    rsps_lib.add(rsps_lib.GET, JSON_URL, body=LOGIN_HTML)
    session = _make_session()
    with pytest.raises(AuthenticationRequired):
        list_entities(session)
    assert session.logged_in is False
    assert f"{BASE_URL}{NAPS}" not in _listing_calls()


@rsps_lib.activate
def test_custom_strategies_use_config_id() -> None:
    _add_login()
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}/configurations/3/nap_list", body=LIST_HTML)
    session = _make_session()
    session.config_id = "3"
    strategies = [ListingStrategy("/configurations/{config_id}/nap_list")]
    assert list(list_entities(session, strategies)) == ["PSTN_GW_A", "VEN_ATX_12", "CARRIER_B"]
