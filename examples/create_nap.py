#!/usr/bin/env python3
"""Example: create a SIP NAP, configure its proxy and link sub-resources.

Usage::

    export PROSBC_BASE_URL=https://10.0.0.5
    export PROSBC_USERNAME=admin
    export PROSBC_PASSWORD=secret
    export NAP_NAME=VEN_ATX_66
    export NAP_PROXY=10.2.2.2          # optional
    export NAP_SIP_SAPS=4,5            # optional transport server ids
    export NAP_PORT_RANGES=10          # optional port range ids
    python examples/create_nap.py

Environment variables:
    NAP_NAME         Name of the NAP to create (required).
    NAP_PROXY        Proxy address; switches the SIP proxy on.
    NAP_PROXY_PORT   Proxy port (default: 5060).
    NAP_SIP_SAPS     Comma-separated transport server ids.
    NAP_PORT_RANGES  Comma-separated port range ids.
    PROSBC_DEBUG     Set to "1" for debug logging.

The create refuses to run when a NAP of the same name is already listed.
"""

from __future__ import annotations

import json
import logging
import os
import sys

from prosbc_automation.client.errors import ProSBCError
from prosbc_automation.config import ProSBCSettings
from prosbc_automation.driver import ProSBCDriver
from prosbc_automation.utils.render import render_outcome


def _ids(var: str) -> list[str]:
    return [v.strip() for v in os.environ.get(var, "").split(",") if v.strip()]


def main() -> None:
    if os.environ.get("PROSBC_DEBUG") == "1":
        logging.basicConfig(level=logging.DEBUG)

    name = os.environ.get("NAP_NAME", "")
    if not name:
        print("ERROR: NAP_NAME environment variable is required.", file=sys.stderr)
        sys.exit(1)

    fields: dict[str, object] = {"name": name, "enabled": True}
    proxy = os.environ.get("NAP_PROXY")
    if proxy:
        fields["sip_destination_ip"] = proxy
        fields["sip_destination_port"] = os.environ.get("NAP_PROXY_PORT", "5060")
        fields["poll_proxy"] = True
        fields["proxy_polling_interval"] = "1"
        fields["proxy_polling_interval_unit"] = "minutes"

    associations = {
        kind: ids
        for kind, ids in (("sip_sap", _ids("NAP_SIP_SAPS")), ("port_range", _ids("NAP_PORT_RANGES")))
        if ids
    }

    settings = ProSBCSettings.from_env()
    with ProSBCDriver(settings) as driver:
        try:
            outcome = driver.create_nap(fields, associations, check_duplicate=True)
        except ProSBCError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            sys.exit(2)

    print(json.dumps(render_outcome(outcome), indent=2))
    if outcome.heuristic_applied:
        print(f"NOTE: outcome decided by heuristic: {outcome.heuristic_applied}")
    if outcome.failed_associations:
        sys.exit(3)


if __name__ == "__main__":
    main()
