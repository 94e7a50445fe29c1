"""Listing/search resolver: name -> identifier over candidate listing pages.

The console exposes no stable search API.  Candidate endpoints are an
ordered list of :class:`ListingStrategy` records consumed by
:func:`list_entities`; supporting a new listing page is a data change.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from prosbc_automation.client.errors import AuthenticationRequired, NotFound, ProSBCError
from prosbc_automation.client.session import ProSBCSession
from prosbc_automation.model.nap import EntityDescriptor
from prosbc_automation.parser.listing import (
    NAP_EDIT_HREF_RE,
    parse_entity_listing,
    parse_json_listing,
)
from prosbc_automation.vendor.prosbc.endpoints import NAP_LISTING_PAGES, NAPS_JSON

logger = logging.getLogger(__name__)

_NUMERIC_RE: re.Pattern[str] = re.compile(r"^\d+$")


@dataclass(frozen=True)
class ListingStrategy:
    """One candidate listing endpoint.

    Attributes:
        path: URL path; ``{config_id}`` is filled from the session.
        kind: ``"json"`` or ``"html"``.
    """

    path: str
    kind: str = "html"


NAP_LISTING_STRATEGIES: tuple[ListingStrategy, ...] = (
    ListingStrategy(NAPS_JSON, "json"),
    *(ListingStrategy(path, "html") for path in NAP_LISTING_PAGES),
)


def _fetch(
    session: ProSBCSession,
    strategy: ListingStrategy,
    href_re: re.Pattern[str],
) -> dict[str, EntityDescriptor]:
    path = strategy.path.format(config_id=session.config_id)
    if strategy.kind == "json":
        text = session.get_html(path, headers={"Accept": "application/json"})
        return parse_json_listing(text)
    return parse_entity_listing(session.get_html(path), href_re=href_re)


def list_entities(
    session: ProSBCSession,
    strategies: Sequence[ListingStrategy] = NAP_LISTING_STRATEGIES,
    href_re: re.Pattern[str] = NAP_EDIT_HREF_RE,
) -> dict[str, EntityDescriptor]:
    """Return ``name -> EntityDescriptor`` from the first strategy that works.

    A strategy "works" when it returns a parseable, non-empty result.
    Failures other than authentication move on to the next strategy; when
    all of them fail the result is empty rather than an error, so that
    duplicate checks fail open.

    Args:
        session: Authenticated session.
        strategies: Candidate endpoints, tried in order.
        href_re: Anchor pattern for HTML listings.

    Raises:
        AuthenticationRequired: If any candidate serves the login page.
    """
    for strategy in strategies:
        try:
            entities = _fetch(session, strategy, href_re)
        except AuthenticationRequired:
            raise
        except ProSBCError as exc:
            logger.debug("Listing strategy %s failed: %s", strategy.path, exc)
            continue
        if entities:
            logger.debug("Listing strategy %s returned %d entities", strategy.path, len(entities))
            return entities
        logger.debug("Listing strategy %s returned nothing", strategy.path)
    logger.debug("All %d listing strategies failed or were empty", len(strategies))
    return {}


def resolve_identifier(
    session: ProSBCSession,
    name_or_id: str,
    strategies: Sequence[ListingStrategy] = NAP_LISTING_STRATEGIES,
) -> str:
    """Resolve a name (or pass through a numeric id) to an identifier.

    Raises:
        NotFound: If no listing contains *name_or_id*.
        AuthenticationRequired: If the session is not authenticated.
    """
    candidate = str(name_or_id).strip()
    if _NUMERIC_RE.match(candidate):
        return candidate
    entity = list_entities(session, strategies).get(candidate)
    if entity is None:
        raise NotFound(candidate)
    return entity.id
