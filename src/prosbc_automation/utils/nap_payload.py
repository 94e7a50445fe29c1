"""Form payload builders for NAP create/configure submissions.

Payloads are ``list[tuple[str, str]]`` because Rails checkboxes need the
same key twice: a hidden ``"0"`` followed by ``"1"`` when checked.

Confirmed payloads:

    CREATE: POST /naps   (redirects disabled)
        authenticity_token=<t>&nap[name]=<n>&nap[enabled]=0&nap[enabled]=1
        &nap[profile_id]=1&nap[get_stats_on_leg_termination]=true
        &nap[rate_limit_*]=...&nap[configuration_id]=1&commit=Create
        -> 302 Location: /naps/<id>/edit

    CONFIGURE: POST /naps/<id>   (redirects disabled)
        _method=put&authenticity_token=<t>&<full field set>&commit=Save
        -> 302 Location: /naps/<id>/edit

    ADD TRANSPORT SERVER: POST /nap/add_sip_sap/<id>
        authenticity_token=<t>&sip_sap[][sip_sap]=<server id>

    ADD PORT RANGE: POST /nap/add_port_range/<id>
        authenticity_token=<t>&port_range[][port_range]=<range id>
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from prosbc_automation.model.nap import NapConfig
from prosbc_automation.parser.tokens import TOKEN_FIELD, unit_to_multiplier
from prosbc_automation.vendor.prosbc.mappings import (
    NAP_CREATE_ATTRS,
    NAP_FIXED_FIELDS,
    NAP_FORM_FIELDS,
    SECONDS_UNIT_TO_MULTIPLIER,
    UNIT_TO_MULTIPLIER,
)

Payload = list[tuple[str, str]]


def _encode_field(name: str, kind: str, value: Any) -> Payload:
    if kind == "checkbox":
        pairs: Payload = [(name, "0")]
        if value:
            pairs.append((name, "1"))
        return pairs
    if kind == "unit_ms":
        return [(name, unit_to_multiplier(value, UNIT_TO_MULTIPLIER))]
    if kind == "unit_s":
        return [(name, unit_to_multiplier(value, SECONDS_UNIT_TO_MULTIPLIER))]
    return [(name, str(value))]


def encode_nap_fields(config: NapConfig, attrs: frozenset[str] | None = None) -> Payload:
    """Encode *config* as form pairs in the console's field order.

    Args:
        config: Values to encode.
        attrs: Restrict to these attributes (all when ``None``).

    Returns:
        Ordered form pairs, followed by the fixed fields.
    """
    values = asdict(config)
    payload: Payload = []
    for attr, name, kind in NAP_FORM_FIELDS:
        if attrs is not None and attr not in attrs:
            continue
        payload.extend(_encode_field(name, kind, values[attr]))
    payload.extend(NAP_FIXED_FIELDS)
    return payload


def build_create_payload(config: NapConfig, token: str) -> Payload:
    """Minimal create payload: name, enabled, profile and default limits."""
    return [
        (TOKEN_FIELD, token),
        *encode_nap_fields(config, NAP_CREATE_ATTRS),
        ("commit", "Create"),
    ]


def build_configure_payload(config: NapConfig, token: str) -> Payload:
    """Full update payload posted to ``/naps/<id>`` with ``_method=put``."""
    return [
        ("_method", "put"),
        (TOKEN_FIELD, token),
        *encode_nap_fields(config),
        ("commit", "Save"),
    ]


def build_association_payload(field_name: str, item_id: str, token: str) -> Payload:
    """Payload for one add-association call."""
    return [(TOKEN_FIELD, token), (field_name, str(item_id))]
