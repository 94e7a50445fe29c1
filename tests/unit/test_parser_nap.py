"""Unit tests for prosbc_automation.parser.nap."""

from __future__ import annotations

import pathlib

import pytest

from prosbc_automation.client.errors import ParseError
from prosbc_automation.parser.nap import dom_id, parse_nap_edit_form

FIXTURES = pathlib.Path(__file__).parent.parent / "fixtures"


@pytest.fixture()
def form():
    return parse_nap_edit_form((FIXTURES / "nap_edit.html").read_text(), "12")


# ---------------------------------------------------------------------------
# dom_id
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "name,expected",
    [
        ("nap[name]", "nap_name"),
        ("nap_sip_cfg[poll_proxy]", "nap_sip_cfg_poll_proxy"),
        ("nap_tdm_cfg[append_trailing_f_to_number]", "nap_tdm_cfg_append_trailing_f_to_number"),
    ],
)
def test_dom_id(name: str, expected: str) -> None:
    assert dom_id(name) == expected


# ---------------------------------------------------------------------------
# General fields
# ---------------------------------------------------------------------------

def test_identity_and_token(form) -> None:
    assert form.nap_id == "12"
    assert form.config.name == "VEN_ATX_12"
    assert form.token == "e9Ht4Ks2Mq7Pw1Rz5Tb8Vd3Xf6Yh0Jk2Nm4Qp6Sr8U="


def test_checkboxes(form) -> None:
    cfg = form.config
    assert cfg.enabled is True
    assert cfg.sip_use_proxy is True
    assert cfg.poll_proxy is True
    assert cfg.filter_by_remote_port is False
    assert cfg.register_to_proxy is False


def test_text_and_select_fields(form) -> None:
    cfg = form.config
    assert cfg.profile_id == "1"
    assert cfg.configuration_id == "1"
    assert cfg.sip_destination_ip == "10.1.1.1"
    assert cfg.sip_destination_port == "5080"
    assert cfg.sip_auth_realm == "atx.example.net"
    assert cfg.sip_auth_user == "trunk12"
    assert cfg.sip_auth_pass == "s3cret"
    assert cfg.remote_nat_traversal_method_id == "1"
    assert cfg.remote_sip_nat_traversal_method_id == "0"
    assert cfg.sip_privacy_type_id == "3"
    assert cfg.rate_limit_cps == "25"
    assert cfg.max_incoming_calls == "100"


def test_duration_units(form) -> None:
    cfg = form.config
    assert (cfg.proxy_polling_interval, cfg.proxy_polling_interval_unit) == ("2", "minutes")
    assert (cfg.proxy_polling_response_timeout, cfg.proxy_polling_response_timeout_unit) == (
        "12",
        "seconds",
    )
    assert (cfg.rate_limit_delay_low, cfg.rate_limit_delay_low_unit) == ("3", "seconds")
    assert cfg.congestion_threshold_period_sec_unit == "minutes"


def test_missing_fields_keep_defaults(form) -> None:
    cfg = form.config
    # Not rendered on the fixture page.
    assert cfg.sipi_enable is False
    assert cfg.sipi_isup_protocol_variant_id == "5"
    assert cfg.rate_limit_delay_high == "6"


# ---------------------------------------------------------------------------
# Associations
# ---------------------------------------------------------------------------

def test_current_associations(form) -> None:
    assert [(a.kind, a.id, a.name) for a in form.sip_saps] == [("sip_sap", "3", "SAP_PUBLIC")]
    assert [a.id for a in form.port_ranges] == ["8", "9"]
    assert form.current("port_range") is form.port_ranges


def test_available_associations(form) -> None:
    assert [a.name for a in form.available_sip_saps] == ["SAP_PRIVATE", "SAP_LAB"]
    assert [a.id for a in form.available_port_ranges] == ["10"]


def test_to_descriptor(form) -> None:
    descriptor = form.to_descriptor()
    assert descriptor.id == "12"
    assert descriptor.name == "VEN_ATX_12"
    assert descriptor.fields["sip_destination_ip"] == "10.1.1.1"
    assert len(descriptor.associations) == 3


# ---------------------------------------------------------------------------
# Failure
# ---------------------------------------------------------------------------

def test_page_without_nap_form_raises() -> None:
    with pytest.raises(ParseError):
        parse_nap_edit_form("<html><body><p>Not here</p></body></html>", "12")


def test_field_fallback_without_dom_ids() -> None:
    html = """
    <form>
      <input name="nap[name]" value="NO_IDS"/>
      <input name="nap[sip_destination_ip]" value="192.0.2.10"/>
      <input type="checkbox" name="nap_sip_cfg[sip_use_proxy]" value="1" checked="checked"/>
    </form>
    """
    form = parse_nap_edit_form(html, "5")
    assert form.config.name == "NO_IDS"
    assert form.config.sip_destination_ip == "192.0.2.10"
    assert form.config.sip_use_proxy is True
    assert form.token is None
    assert form.sip_saps == []
