#!/usr/bin/env python3
"""Example: upload (or replace) a routesets definition/digitmap CSV.

Usage::

    export PROSBC_BASE_URL=https://10.0.0.5
    export PROSBC_USERNAME=admin
    export PROSBC_PASSWORD=secret
    python examples/upload_file.py df ./carrier_c_df.csv

The first argument is the file type (``df`` or ``dm``).  When a file of
the same name already exists its content is replaced; otherwise it is
imported.  Set PROSBC_DEBUG=1 for debug logging.
"""

from __future__ import annotations

import logging
import os
import pathlib
import sys

from prosbc_automation.config import ProSBCSettings
from prosbc_automation.driver import ProSBCDriver


def main() -> None:
    if os.environ.get("PROSBC_DEBUG") == "1":
        logging.basicConfig(level=logging.DEBUG)

    if len(sys.argv) != 3:
        print("usage: upload_file.py {df|dm} PATH", file=sys.stderr)
        sys.exit(1)
    file_type, path = sys.argv[1], pathlib.Path(sys.argv[2])
    content = path.read_bytes()

    with ProSBCDriver(ProSBCSettings.from_env()) as driver:
        existing = driver.list_files(file_type)
        if path.name in existing:
            outcome = driver.update_file(file_type, path.name, content)
            action = "Updated"
        else:
            outcome = driver.upload_file(file_type, path.name, content)
            action = "Imported"

    print(f"{action} {path.name} (HTTP {outcome.status_code}, id={outcome.identifier})")


if __name__ == "__main__":
    main()
