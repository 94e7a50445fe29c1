"""Pre-submission checks for NAP field maps."""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Mapping
from typing import Any

from prosbc_automation.model.nap import ValidationReport
from prosbc_automation.utils.normalize import coerce_bool

_MAX_NAME_LENGTH: int = 50

_HOSTNAME_RE: re.Pattern[str] = re.compile(
    r"^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*$"
)


def _is_host(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        pass
    # Dotted quads that failed above are malformed addresses, not hostnames.
    if re.fullmatch(r"[\d.]+", value):
        return False
    return _HOSTNAME_RE.match(value) is not None


def _truthy(value: Any) -> bool:
    try:
        return coerce_bool(value)
    except ValueError:
        return bool(value)


def validate_nap_fields(fields: Mapping[str, Any]) -> ValidationReport:
    """Check a NAP field map before it is submitted.

    Errors: missing name, malformed proxy address, port outside 1-65535.
    Warnings: name longer than 50 characters, auth user without password,
    registration without an address of record.

    Args:
        fields: Caller field map (see :class:`~prosbc_automation.model.nap.NapConfig`).

    Returns:
        A :class:`ValidationReport`.
    """
    report = ValidationReport()
    name = str(fields.get("name") or "").strip()
    if not name:
        report.errors.append("NAP name is required")
    elif len(name) > _MAX_NAME_LENGTH:
        report.warnings.append(
            f"NAP name is {len(name)} characters; the console may truncate it"
        )

    address = str(fields.get("sip_destination_ip") or "").strip()
    if address and not _is_host(address):
        report.errors.append(f"Invalid proxy address: {address!r}")

    port = fields.get("sip_destination_port")
    if port not in (None, ""):
        try:
            port_num = int(str(port))
        except ValueError:
            port_num = 0
        if not 1 <= port_num <= 65535:
            report.errors.append(f"Proxy port must be between 1 and 65535, got {port!r}")

    if fields.get("sip_auth_user") and not fields.get("sip_auth_pass"):
        report.warnings.append("Authentication user set without a password")

    if _truthy(fields.get("register_to_proxy")) and not fields.get("aor"):
        report.warnings.append("Registration enabled without an address of record")

    return report
