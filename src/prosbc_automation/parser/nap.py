"""Parser for the NAP edit page (``/naps/{id}/edit``)."""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup

from prosbc_automation.client.errors import ParseError
from prosbc_automation.model.nap import NapConfig, NapEditForm
from prosbc_automation.parser.html import parse_html
from prosbc_automation.parser.tokens import (
    extract_anti_forgery_token,
    extract_association_list,
    extract_checkbox,
    extract_field_value,
    extract_select_options,
    extract_selected_option_unit,
)
from prosbc_automation.vendor.prosbc.mappings import (
    ASSOCIATION_KINDS,
    MULTIPLIER_TO_UNIT,
    NAP_FORM_FIELDS,
    SECONDS_MULTIPLIER_TO_UNIT,
)

logger = logging.getLogger(__name__)

_BRACKETS_RE: re.Pattern[str] = re.compile(r"[\[\]]+")


def dom_id(field_name: str) -> str:
    """Rails DOM id of a form field: ``nap_sip_cfg[poll_proxy]`` -> ``nap_sip_cfg_poll_proxy``."""
    return _BRACKETS_RE.sub("_", field_name).strip("_")


def parse_nap_config(soup: BeautifulSoup) -> NapConfig:
    """Read every field of :data:`NAP_FORM_FIELDS` from a NAP form.

    Fields missing from the page keep their :class:`NapConfig` default.

    Raises:
        ParseError: If the page has no ``nap[name]`` field.
    """
    values: dict[str, object] = {}
    for attr, name, kind in NAP_FORM_FIELDS:
        if kind in ("unit_ms", "unit_s"):
            if soup.find("select", attrs={"name": name}) is not None:
                table = SECONDS_MULTIPLIER_TO_UNIT if kind == "unit_s" else MULTIPLIER_TO_UNIT
                values[attr] = extract_selected_option_unit(soup, name, table)
            continue
        primary = f"#{dom_id(name)}"
        if kind == "checkbox":
            fallback = f'input[type="checkbox"][name="{name}"]'
            if soup.select_one(primary) or soup.select_one(fallback):
                values[attr] = extract_checkbox(soup, primary, [fallback])
            continue
        fallbacks = [f'input[name="{name}"]', f'select[name="{name}"]']
        if soup.select_one(primary) or any(soup.select_one(f) for f in fallbacks):
            values[attr] = extract_field_value(soup, primary, fallbacks)

    if not values.get("name"):
        raise ParseError("NAP form has no nap[name] field")
    return NapConfig(**values)  # type: ignore[arg-type]


def parse_nap_edit_form(html: str, nap_id: str) -> NapEditForm:
    """Parse ``/naps/{nap_id}/edit`` into a :class:`NapEditForm`.

    Args:
        html: Raw HTML of the edit page.
        nap_id: Identifier the page was fetched for.

    Returns:
        Current config, page token, and current/available associations.

    Raises:
        ParseError: If the page does not contain a NAP form.
    """
    soup = parse_html(html)
    config = parse_nap_config(soup)
    sip = ASSOCIATION_KINDS["sip_sap"]
    ports = ASSOCIATION_KINDS["port_range"]
    form = NapEditForm(
        nap_id=str(nap_id),
        config=config,
        token=extract_anti_forgery_token(soup),
        sip_saps=extract_association_list(soup, sip["table"], sip["pattern"], "sip_sap"),
        port_ranges=extract_association_list(
            soup, ports["table"], ports["pattern"], "port_range"
        ),
        available_sip_saps=extract_select_options(soup, sip["available"], "sip_sap"),
        available_port_ranges=extract_select_options(
            soup, ports["available"], "port_range"
        ),
    )
    logger.debug(
        "Parsed NAP %s (%r): %d transport server(s), %d port range(s)",
        nap_id, config.name, len(form.sip_saps), len(form.port_ranges),
    )
    return form
