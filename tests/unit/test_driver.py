"""Unit tests for ProSBCDriver and DriverRegistry."""

from __future__ import annotations

import json
import pathlib
import threading
import time

import pytest
import responses as rsps_lib

from prosbc_automation.client import nap_ops
from prosbc_automation.client.errors import NotFound, ProSBCError
from prosbc_automation.config import ProSBCSettings
from prosbc_automation.driver import DriverRegistry, ProSBCDriver
from prosbc_automation.model.outcome import SubmissionOutcome
from prosbc_automation.vendor.prosbc.endpoints import LOGIN, LOGIN_CHECK

FIXTURES = pathlib.Path(__file__).parent.parent / "fixtures"

BASE_URL = "https://10.0.0.5"
LOGIN_HTML = (FIXTURES / "login.html").read_text()
EDIT_HTML = (FIXTURES / "nap_edit.html").read_text()
FILE_DB_HTML = (FIXTURES / "file_db_edit.html").read_text()


def _settings(instance_id: str = "default", base_url: str = BASE_URL) -> ProSBCSettings:
    return ProSBCSettings(
        base_url=base_url,
        username="admin",
        password="secret",
        instance_id=instance_id,
        reconcile_delay_s=0.0,
    )


def _add_login(base_url: str = BASE_URL) -> None:
    rsps_lib.add(rsps_lib.GET, f"{base_url}{LOGIN}", body=LOGIN_HTML)
    rsps_lib.add(
        rsps_lib.POST,
        f"{base_url}{LOGIN_CHECK}",
        status=302,
        headers={
            "Location": f"{base_url}/",
            "Set-Cookie": "_WebOAMP_session=abc123; path=/",
        },
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@rsps_lib.activate
def test_context_manager_opens_and_closes() -> None:
    _add_login()
    driver = ProSBCDriver(_settings())
    with driver:
        assert driver.is_alive() == {"is_alive": True}
    assert driver.is_alive() == {"is_alive": False}


def test_operations_require_open() -> None:
    driver = ProSBCDriver(_settings())
    with pytest.raises(ProSBCError, match="not open"):
        driver.list_naps()


def test_close_without_open_is_noop() -> None:
    ProSBCDriver(_settings()).close()


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


@rsps_lib.activate
def test_operations_are_serialised(monkeypatch: pytest.MonkeyPatch) -> None:
    _add_login()
    active = 0
    peak = 0
    guard = threading.Lock()

    def slow_create(session, fields, **kwargs):
        nonlocal active, peak
        with guard:
            active += 1
            peak = max(peak, active)
        time.sleep(0.05)
        with guard:
            active -= 1
        return SubmissionOutcome(success=True, identifier=fields["name"])

    monkeypatch.setattr(nap_ops, "create_nap", slow_create)
    driver = ProSBCDriver(_settings())
    driver.open()

    results: list[str | None] = []
    threads = [
        threading.Thread(
            target=lambda n=n: results.append(driver.create_nap({"name": f"NAP_{n}"}).identifier)
        )
        for n in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert peak == 1
    assert sorted(results) == ["NAP_0", "NAP_1", "NAP_2", "NAP_3"]


# ---------------------------------------------------------------------------
# NAP operations
# ---------------------------------------------------------------------------


@rsps_lib.activate
def test_update_by_name_resolves_identifier() -> None:
    _add_login()
    rsps_lib.add(
        rsps_lib.GET,
        f"{BASE_URL}/configurations/1/naps",
        body=json.dumps([{"id": 12, "name": "VEN_ATX_12"}]),
    )
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}/naps/12/edit", body=EDIT_HTML)
    rsps_lib.add(
        rsps_lib.POST,
        f"{BASE_URL}/naps/12",
        status=302,
        headers={"Location": f"{BASE_URL}/naps/12/edit"},
    )

    with ProSBCDriver(_settings()) as driver:
        outcome = driver.update_nap("VEN_ATX_12", {"rate_limit_cps": 40})

    assert outcome.success is True
    assert outcome.identifier == "12"


@rsps_lib.activate
def test_get_nap_by_numeric_id() -> None:
    _add_login()
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}/naps/12/edit", body=EDIT_HTML)

    with ProSBCDriver(_settings()) as driver:
        form = driver.get_nap("12")

    assert form.config.name == "VEN_ATX_12"
    assert not any("/configurations/1/naps" in c.request.url for c in rsps_lib.calls)


# ---------------------------------------------------------------------------
# Files and configurations
# ---------------------------------------------------------------------------


@rsps_lib.activate
def test_list_files_resolves_database() -> None:
    _add_login()
    rsps_lib.add(
        rsps_lib.GET,
        f"{BASE_URL}/file_dbs",
        status=302,
        headers={"Location": f"{BASE_URL}/file_dbs/1/edit"},
    )
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}/file_dbs/1/edit", body=FILE_DB_HTML)

    with ProSBCDriver(_settings()) as driver:
        files = driver.list_files("df")

    assert list(files) == ["carrier_a_df.csv", "carrier_b_df.csv"]


@rsps_lib.activate
def test_export_unknown_file_raises_not_found() -> None:
    _add_login()
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}/file_dbs/1/edit", body=FILE_DB_HTML)

    with ProSBCDriver(_settings()) as driver:
        with pytest.raises(NotFound):
            driver.export_file("df", "missing.csv", db_id="1")


@rsps_lib.activate
def test_export_file_by_id() -> None:
    _add_login()
    rsps_lib.add(rsps_lib.GET, f"{BASE_URL}/file_dbs/1/edit", body=FILE_DB_HTML)
    rsps_lib.add(
        rsps_lib.GET,
        f"{BASE_URL}/file_dbs/1/routesets_definitions/15/export",
        body=b"a,b\n",
    )

    with ProSBCDriver(_settings()) as driver:
        assert driver.export_file("df", "15", db_id="1") == b"a,b\n"


@rsps_lib.activate
def test_select_configuration_updates_session() -> None:
    _add_login()
    rsps_lib.add(
        rsps_lib.GET,
        f"{BASE_URL}/configurations/2/choose_redirect",
        status=302,
        headers={"Location": f"{BASE_URL}/"},
    )
    rsps_lib.add(
        rsps_lib.GET,
        f"{BASE_URL}/configurations/2/naps",
        body=json.dumps([{"id": 5, "name": "LAB_NAP"}]),
    )

    with ProSBCDriver(_settings()) as driver:
        driver.select_configuration("2")
        assert driver.resolve_nap_id("LAB_NAP") == "5"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@rsps_lib.activate
def test_registry_creates_and_opens_lazily() -> None:
    _add_login()
    _add_login("https://10.0.0.6")
    loaded: list[str] = []

    def loader(instance_id: str) -> ProSBCSettings:
        loaded.append(instance_id)
        url = BASE_URL if instance_id == "east" else "https://10.0.0.6"
        return _settings(instance_id, url)

    registry = DriverRegistry(loader)
    assert "east" not in registry

    east = registry.get("east")
    assert registry.get("east") is east
    west = registry.get("west")

    assert east is not west
    assert loaded == ["east", "west"]
    assert len(registry) == 2
    assert east.is_alive()["is_alive"] is True

    registry.close_all()
    assert len(registry) == 0
    assert east.is_alive()["is_alive"] is False


def test_registry_register_replaces() -> None:
    registry = DriverRegistry(lambda instance_id: _settings(instance_id))
    first = registry.register(_settings("lab"))
    second = registry.register(_settings("lab"))
    assert first is not second
    assert "lab" in registry
    assert len(registry) == 1
