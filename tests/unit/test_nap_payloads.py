"""Unit tests for NAP form payload builders."""

from __future__ import annotations

from prosbc_automation.model.nap import NapConfig
from prosbc_automation.utils.nap_payload import (
    build_association_payload,
    build_configure_payload,
    build_create_payload,
    encode_nap_fields,
)

TOKEN = "k3J9xQ2mN8pR5tW7yZ1bC4dF6gH0jL2nP4sU6wY8aA="


def _values(payload: list[tuple[str, str]], key: str) -> list[str]:
    return [v for k, v in payload if k == key]


# ---------------------------------------------------------------------------
# Field encoding
# ---------------------------------------------------------------------------


def test_checked_checkbox_sends_pair() -> None:
    payload = encode_nap_fields(NapConfig(name="A", sipi_enable=True))
    assert _values(payload, "nap_sip_cfg[sipi_enable]") == ["0", "1"]


def test_unchecked_checkbox_sends_hidden_zero() -> None:
    payload = encode_nap_fields(NapConfig(name="A", poll_proxy=False))
    assert _values(payload, "nap_sip_cfg[poll_proxy]") == ["0"]


def test_millisecond_units() -> None:
    payload = encode_nap_fields(
        NapConfig(name="A", proxy_polling_interval_unit="minutes", rate_limit_delay_low_unit="milliseconds")
    )
    assert _values(payload, "nap_sip_cfg[proxy_polling_interval_unit_conversion]") == ["60000.0"]
    assert _values(payload, "nap[rate_limit_delay_low_unit_conversion]") == ["1.0"]


def test_seconds_based_unit() -> None:
    payload = encode_nap_fields(NapConfig(name="A", congestion_threshold_period_sec_unit="minutes"))
    assert _values(payload, "nap[congestion_threshold_period_sec_unit_conversion]") == ["60.0"]


def test_fixed_fields_always_appended() -> None:
    payload = encode_nap_fields(NapConfig(name="A"), frozenset({"name"}))
    assert payload == [
        ("nap[name]", "A"),
        ("nap[get_stats_on_leg_termination]", "true"),
    ]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def test_create_payload_is_restricted() -> None:
    payload = build_create_payload(NapConfig(name="A", sip_destination_ip="10.0.0.1"), TOKEN)
    assert payload[0] == ("authenticity_token", TOKEN)
    assert payload[-1] == ("commit", "Create")
    assert _values(payload, "nap[sip_destination_ip]") == []
    assert _values(payload, "nap[configuration_id]") == ["1"]
    keys = {k for k, _ in payload}
    assert "nap_sip_cfg[poll_proxy]" not in keys
    assert _values(payload, "nap[rate_limit_cps]") == ["0"]


def test_configure_payload_is_complete() -> None:
    cfg = NapConfig(name="A", sip_destination_ip="10.0.0.1", sip_auth_pass="pw")
    payload = build_configure_payload(cfg, TOKEN)
    assert payload[:2] == [("_method", "put"), ("authenticity_token", TOKEN)]
    assert payload[-1] == ("commit", "Save")
    assert _values(payload, "nap[sip_destination_ip]") == ["10.0.0.1"]
    assert _values(payload, "nap[sip_auth_pass]") == ["pw"]
    assert _values(payload, "nap_sip_cfg[sipi_version]") == ["itu-t"]


def test_association_payload() -> None:
    assert build_association_payload("sip_sap[][sip_sap]", 4, TOKEN) == [  # type: ignore[arg-type]
        ("authenticity_token", TOKEN),
        ("sip_sap[][sip_sap]", "4"),
    ]
