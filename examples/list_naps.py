#!/usr/bin/env python3
"""Example: list the NAPs of a ProSBC console and show one in detail.

Usage::

    export PROSBC_BASE_URL=https://10.0.0.5
    export PROSBC_USERNAME=admin
    export PROSBC_PASSWORD=secret
    python examples/list_naps.py [NAP_NAME]

Set PROSBC_DEBUG=1 to log every request.
"""

from __future__ import annotations

import json
import logging
import os
import sys

from prosbc_automation.config import ProSBCSettings
from prosbc_automation.driver import ProSBCDriver
from prosbc_automation.utils.render import render_nap


def main() -> None:
    if os.environ.get("PROSBC_DEBUG") == "1":
        logging.basicConfig(level=logging.DEBUG)

    try:
        settings = ProSBCSettings.from_env()
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    with ProSBCDriver(settings) as driver:
        naps = driver.list_naps()
        for name, nap in sorted(naps.items()):
            print(f"{nap.id:>6}  {name}")

        if len(sys.argv) > 1:
            form = driver.get_nap(sys.argv[1])
            print(json.dumps(render_nap(form), indent=2))


if __name__ == "__main__":
    main()
