"""Typed models for NAPs (network access points) and their associations."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from prosbc_automation.utils.normalize import normalize_nap_fields


@dataclass
class Association:
    """A link between an entity and a sub-resource.

    Attributes:
        kind: Association kind (``"sip_sap"`` for transport servers,
            ``"port_range"`` for port ranges).
        id: Sub-resource identifier assigned by the console.
        name: Display name of the sub-resource.
    """

    kind: str
    id: str
    name: str = ""


@dataclass
class EntityDescriptor:
    """An entity as seen through the console's listing or edit pages.

    Attributes:
        id: Console-assigned identifier (numeric string).
        name: Caller-supplied unique name.
        fields: Domain attribute -> primitive value.
        associations: Ordered sub-resource links.
    """

    id: str
    name: str
    fields: dict[str, Any] = field(default_factory=dict)
    associations: list[Association] = field(default_factory=list)


@dataclass
class NapConfig:
    """Full field set of a NAP, as rendered by ``/naps/{id}/edit``.

    Attribute names follow the console's form field names (``nap[...]``,
    ``nap_sip_cfg[...]`` and ``nap_tdm_cfg[...]``); the mapping lives in
    :data:`~prosbc_automation.vendor.prosbc.mappings.NAP_FORM_FIELDS`.
    Duration values are paired with a ``*_unit`` attribute holding a unit
    name (``milliseconds`` ... ``days``).  Select-backed attributes hold the
    option *value* (an id), not its label.
    """

    name: str
    enabled: bool = True
    profile_id: str = "1"
    configuration_id: str = "1"

    # SIP proxy
    sip_use_proxy: bool = False
    sip_destination_ip: str = ""
    sip_destination_port: str = "5060"
    filter_by_remote_port: bool = True
    poll_proxy: bool = True
    proxy_polling_interval: str = "1"
    proxy_polling_interval_unit: str = "minutes"

    # Registration / authentication
    accept_only_authorized_users: bool = False
    register_to_proxy: bool = False
    aor: str = ""
    sip_auth_ignore_realm: bool = False
    sip_auth_reuse_challenge: bool = False
    sip_auth_realm: str = ""
    sip_auth_user: str = ""
    sip_auth_pass: str = ""

    # NAT
    remote_nat_traversal_method_id: str = "0"
    remote_sip_nat_traversal_method_id: str = "0"
    nat_cfg_id: str = ""
    nat_cfg_sip_id: str = ""

    # SIP-I
    sipi_enable: bool = False
    sipi_isup_protocol_variant_id: str = "5"
    sipi_version: str = "itu-t"
    sipi_use_info_progress: str = "0"
    append_trailing_f_to_number: bool = False

    # Advanced
    poll_proxy_ping_quirk: bool = True
    proxy_polling_response_timeout: str = "12"
    proxy_polling_response_timeout_unit: str = "seconds"
    proxy_polling_max_forwards: str = "1"
    sip_183_call_progress: bool = False
    sip_privacy_type_id: str = "3"

    # Rate limiting
    rate_limit_cps: str = "0"
    rate_limit_cps_in: str = "0"
    rate_limit_cps_out: str = "0"
    max_incoming_calls: str = "0"
    max_outgoing_calls: str = "0"
    max_incoming_outgoing_calls: str = "0"
    rate_limit_delay_low: str = "3"
    rate_limit_delay_low_unit: str = "seconds"
    rate_limit_delay_high: str = "6"
    rate_limit_delay_high_unit: str = "seconds"
    rate_limit_cpu_usage_low: str = "0"
    rate_limit_cpu_usage_high: str = "0"

    # Congestion threshold
    congestion_threshold_nb_calls: str = "1"
    congestion_threshold_period_sec: str = "1"
    congestion_threshold_period_sec_unit: str = "minutes"

    @classmethod
    def attribute_names(cls) -> frozenset[str]:
        """Names of every configurable attribute."""
        return frozenset(f.name for f in dataclasses.fields(cls))

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> NapConfig:
        """Build a config from a caller field map, defaults filling the rest.

        Supplying ``sip_destination_ip`` without ``sip_use_proxy`` turns the
        proxy on.

        Raises:
            ValueError: On unknown keys, a missing ``name`` or an unknown unit.
        """
        normalized = normalize_nap_fields(fields)
        unknown = set(normalized) - cls.attribute_names()
        if unknown:
            raise ValueError(f"Unknown NAP field(s): {sorted(unknown)}")
        if not normalized.get("name"):
            raise ValueError("NAP name is required")
        if normalized.get("sip_destination_ip") and "sip_use_proxy" not in normalized:
            normalized["sip_use_proxy"] = True
        return cls(**normalized)

    def merged(self, changes: Mapping[str, Any]) -> NapConfig:
        """Return a copy with *changes* applied (same rules as :meth:`from_fields`)."""
        base = dataclasses.asdict(self)
        normalized = normalize_nap_fields(changes)
        unknown = set(normalized) - self.attribute_names()
        if unknown:
            raise ValueError(f"Unknown NAP field(s): {sorted(unknown)}")
        if normalized.get("sip_destination_ip") and "sip_use_proxy" not in normalized:
            normalized["sip_use_proxy"] = True
        base.update(normalized)
        return NapConfig(**base)


@dataclass
class NapEditForm:
    """Everything ``/naps/{id}/edit`` exposes about one NAP.

    Attributes:
        nap_id: NAP identifier.
        config: Current field values.
        token: Anti-forgery token rendered on the edit page.
        sip_saps: Transport servers currently associated.
        port_ranges: Port ranges currently associated.
        available_sip_saps: Transport servers offered for association.
        available_port_ranges: Port ranges offered for association.
    """

    nap_id: str
    config: NapConfig
    token: str | None = None
    sip_saps: list[Association] = field(default_factory=list)
    port_ranges: list[Association] = field(default_factory=list)
    available_sip_saps: list[Association] = field(default_factory=list)
    available_port_ranges: list[Association] = field(default_factory=list)

    def current(self, kind: str) -> list[Association]:
        """Associations of *kind* currently linked."""
        return self.sip_saps if kind == "sip_sap" else self.port_ranges

    def to_descriptor(self) -> EntityDescriptor:
        """View this form as a generic :class:`EntityDescriptor`."""
        return EntityDescriptor(
            id=self.nap_id,
            name=self.config.name,
            fields=dataclasses.asdict(self.config),
            associations=[*self.sip_saps, *self.port_ranges],
        )


@dataclass
class ValidationReport:
    """Result of a pre-submission field check.

    Attributes:
        errors: Problems that prevent submission.
        warnings: Suspicious but accepted values.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """True when there are no errors."""
        return not self.errors
