"""NAP create/configure/associate workflows for the ProSBC web console.

Each function translates typed NAP values into the form payloads captured
from a real console (see :mod:`prosbc_automation.utils.nap_payload`) and
dispatches them through :class:`~prosbc_automation.client.session.ProSBCSession`.

A create runs as a fixed sequence::

    EnsureSession -> EnsureToken -> Create -> [Reconcile] -> [Configure] -> [Associate]

Reconcile runs only when the create response does not name the new NAP.
Configure runs only when fields beyond name/enabled/profile were supplied.
Associate runs only when sub-resources were requested.

The console answers some successful updates with error pages.  Those are
matched against :data:`~prosbc_automation.vendor.prosbc.mappings.BENIGN_RESPONSE_PATTERNS`
and reported with ``heuristic_applied`` set, never silently.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import requests

from prosbc_automation.client.errors import (
    AmbiguousOutcome,
    AuthenticationRequired,
    CrossOriginBlocked,
    ProSBCError,
    ResponseError,
    ValidationFailed,
)
from prosbc_automation.client.resolver import list_entities
from prosbc_automation.client.session import ProSBCSession
from prosbc_automation.model.nap import Association, NapConfig, NapEditForm
from prosbc_automation.model.outcome import AssociationResult, SubmissionOutcome, excerpt
from prosbc_automation.parser.html import normalize_text, parse_html
from prosbc_automation.parser.listing import (
    extract_id_from_body,
    extract_id_from_location,
    highest_identifier,
)
from prosbc_automation.parser.nap import parse_nap_edit_form
from prosbc_automation.parser.tokens import TOKEN_FIELD
from prosbc_automation.utils.association_diff import plan_association_changes
from prosbc_automation.utils.nap_payload import (
    build_association_payload,
    build_configure_payload,
    build_create_payload,
)
from prosbc_automation.utils.normalize import normalize_nap_fields
from prosbc_automation.utils.validate import validate_nap_fields
from prosbc_automation.vendor.prosbc.endpoints import NAP, NAP_EDIT, NAPS
from prosbc_automation.vendor.prosbc.mappings import (
    ASSOCIATION_KINDS,
    BENIGN_RESPONSE_PATTERNS,
    HEURISTIC_BENIGN_PAGE,
    HEURISTIC_BODY_ID,
    HEURISTIC_CROSS_ORIGIN,
    HEURISTIC_HIGHEST_ID,
    HEURISTIC_LISTING_ID,
    NAP_MINIMAL_ATTRS,
    VALIDATION_ERROR_PATTERNS,
)

logger = logging.getLogger(__name__)

_ERROR_LIST_SELECTORS: tuple[str, ...] = (
    "#errorExplanation li",
    ".errorExplanation li",
    "#error_explanation li",
)

_MAX_ASSOCIATION_WORKERS: int = 4


# ---------------------------------------------------------------------------
# Response classification
# ---------------------------------------------------------------------------

def _error_messages(html: str) -> list[str]:
    """Field-level messages from a Rails error list, if the page has one."""
    if "error" not in html.lower():
        return []
    soup = parse_html(html)
    for selector in _ERROR_LIST_SELECTORS:
        items = [normalize_text(li.get_text()) for li in soup.select(selector)]
        items = [i for i in items if i]
        if items:
            return items
    return []


def _matches(body: str, patterns: Sequence[str]) -> str | None:
    lowered = body.lower()
    for pattern in patterns:
        if pattern in lowered:
            return pattern
    return None


def _raise_if_rejected(resp: requests.Response, what: str) -> None:
    """Raise :class:`ValidationFailed` if *resp* reports refused fields."""
    body = resp.text or ""
    messages = _error_messages(body)
    pattern = None if resp.is_redirect else _matches(body, VALIDATION_ERROR_PATTERNS)
    if messages or pattern or resp.status_code == 422:
        raise ValidationFailed(
            f"Console rejected {what} (HTTP {resp.status_code})",
            messages=messages or ([pattern] if pattern else []),
            status_code=resp.status_code,
            diagnostics=excerpt(body),
        )


def classify_configure_response(
    resp: requests.Response, nap_id: str
) -> SubmissionOutcome:
    """Decide the outcome of a configure/update POST.

    Order of evaluation:

    1. 2xx/3xx without an error list: success.
    2. An ``errorExplanation`` list: :class:`ValidationFailed`.
    3. A body matching the benign-page table: success, with
       ``heuristic_applied`` set and the original status kept.
    4. 422 or a validation fragment: :class:`ValidationFailed`.
    5. Anything else: :class:`ResponseError`.
    """
    body = resp.text or ""
    status = resp.status_code
    messages = _error_messages(body)
    if messages:
        raise ValidationFailed(
            f"Console rejected NAP {nap_id} update (HTTP {status})",
            messages=messages,
            status_code=status,
            diagnostics=excerpt(body),
        )
    if status < 400:
        return SubmissionOutcome(
            success=True,
            identifier=nap_id,
            diagnostics=excerpt(body),
            status_code=status,
        )
    benign = _matches(body, BENIGN_RESPONSE_PATTERNS)
    if benign is not None:
        logger.warning(
            "NAP %s update returned HTTP %d; treating as success (matched %r)",
            nap_id, status, benign,
        )
        return SubmissionOutcome(
            success=True,
            identifier=nap_id,
            diagnostics=excerpt(body),
            heuristic_applied=HEURISTIC_BENIGN_PAGE,
            status_code=status,
        )
    _raise_if_rejected(resp, f"NAP {nap_id} update")
    raise ResponseError(status, resp.url or NAP.format(nap_id=nap_id), excerpt(body))


def _join_heuristics(*names: str | None) -> str | None:
    present = [n for n in names if n]
    return ", ".join(present) if present else None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def fetch_nap_for_edit(session: ProSBCSession, nap_id: str) -> NapEditForm:
    """Read ``/naps/{id}/edit`` into a :class:`NapEditForm`.

    The page's token is stored in the session store: the console binds
    update tokens to the edit page they were rendered on.

    Raises:
        ParseError: If the page holds no NAP form.
        AuthenticationRequired: If the session is not authenticated.
    """
    html = session.get_html(NAP_EDIT.format(nap_id=nap_id))
    form = parse_nap_edit_form(html, str(nap_id))
    if form.token:
        session.store.store_token(form.token)
    logger.debug(
        "Fetched NAP %s (%s): %d SIP SAPs, %d port ranges",
        nap_id, form.config.name, len(form.sip_saps), len(form.port_ranges),
    )
    return form


def check_nap_exists(session: ProSBCSession, name: str) -> bool:
    """Best-effort duplicate check.

    A ``False`` result does not guarantee the following create succeeds:
    another client may create the same name in between.  Every failure
    other than authentication yields ``False``.

    Raises:
        AuthenticationRequired: If the session is not authenticated.
    """
    try:
        return name in list_entities(session)
    except AuthenticationRequired:
        raise
    except ProSBCError as exc:
        logger.warning("Duplicate check for %r failed, allowing create: %s", name, exc)
        return False


# ---------------------------------------------------------------------------
# Configure / update
# ---------------------------------------------------------------------------

def configure_nap(
    session: ProSBCSession,
    nap_id: str,
    config: NapConfig,
    token: str,
) -> SubmissionOutcome:
    """POST the full field set of *config* to ``/naps/{id}``.

    Raises:
        ValidationFailed: If the console refuses the fields.
        ResponseError: On an unexpected status that matches no known page.
    """
    path = NAP.format(nap_id=nap_id)
    logger.debug("Configuring NAP %s (%s)", nap_id, config.name)
    try:
        resp = session.submit(path, build_configure_payload(config, token))
    except CrossOriginBlocked as exc:
        logger.warning("NAP %s update redirected off-origin; likely success: %s", nap_id, exc)
        return SubmissionOutcome(
            success=True,
            identifier=str(nap_id),
            diagnostics=str(exc),
            heuristic_applied=HEURISTIC_CROSS_ORIGIN,
        )
    return classify_configure_response(resp, str(nap_id))


def update_nap(
    session: ProSBCSession,
    nap_id: str,
    fields: Mapping[str, Any],
    *,
    form: NapEditForm | None = None,
) -> SubmissionOutcome:
    """Apply *fields* on top of the NAP's current values and save.

    Args:
        session: Active authenticated session.
        nap_id: Existing NAP identifier.
        fields: Attributes to change; everything else keeps its current value.
        form: Result of a prior :func:`fetch_nap_for_edit`.  Fetched when
            omitted.  Its token is used for the submission.

    Raises:
        ValidationFailed: On local validation errors or a console rejection.
        ResponseError: On an unexpected status.
    """
    if form is None:
        form = fetch_nap_for_edit(session, nap_id)
    try:
        config = form.config.merged(fields)
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc

    report = validate_nap_fields({**fields, "name": config.name})
    if not report.is_valid:
        raise ValidationFailed("NAP fields failed validation", messages=report.errors)
    for warning in report.warnings:
        logger.warning("NAP %s: %s", nap_id, warning)

    token = form.token or session.ensure_token()
    return configure_nap(session, str(nap_id), config, token)


# ---------------------------------------------------------------------------
# Associations
# ---------------------------------------------------------------------------

def _association_kind(kind: str) -> dict[str, str]:
    try:
        return ASSOCIATION_KINDS[kind]
    except KeyError:
        raise ValueError(
            f"Unknown association kind {kind!r}; expected one of {sorted(ASSOCIATION_KINDS)}"
        ) from None


def _check_association(resp: requests.Response, path: str) -> None:
    if resp.status_code >= 400:
        raise ResponseError(resp.status_code, path, excerpt(resp.text))


def add_association(
    session: ProSBCSession,
    nap_id: str,
    kind: str,
    item_id: str,
    token: str | None = None,
) -> AssociationResult:
    """Link one transport server (``sip_sap``) or port range to a NAP.

    Raises:
        ValueError: On an unknown *kind*.
        ResponseError: If the console answers with a status >= 400.
    """
    route = _association_kind(kind)
    token = token or session.ensure_token()
    path = route["add"].format(nap_id=nap_id)
    resp = session.submit(path, build_association_payload(route["field"], item_id, token))
    _check_association(resp, path)
    logger.debug("Added %s %s to NAP %s", kind, item_id, nap_id)
    return AssociationResult(kind=kind, item_id=str(item_id), success=True)


def remove_association(
    session: ProSBCSession,
    nap_id: str,
    kind: str,
    item_id: str,
    token: str | None = None,
) -> AssociationResult:
    """Unlink one transport server or port range from a NAP.

    The console expects the item in the query string and an XHR header.
    """
    route = _association_kind(kind)
    token = token or session.ensure_token()
    path = route["remove"].format(nap_id=nap_id)
    resp = session.submit(
        path,
        data=[(TOKEN_FIELD, token)],
        params={route["query"]: str(item_id)},
        headers={"X-Requested-With": "XMLHttpRequest"},
    )
    _check_association(resp, path)
    logger.debug("Removed %s %s from NAP %s", kind, item_id, nap_id)
    return AssociationResult(kind=kind, item_id=str(item_id), success=True)


def _run_association(
    session: ProSBCSession,
    nap_id: str,
    kind: str,
    item_id: str,
    token: str,
    remove: bool,
) -> AssociationResult:
    op = remove_association if remove else add_association
    try:
        return op(session, nap_id, kind, item_id, token)
    except AuthenticationRequired:
        raise
    except ProSBCError as exc:
        logger.warning(
            "%s %s %s on NAP %s failed: %s",
            "Removing" if remove else "Adding", kind, item_id, nap_id, exc,
        )
        return AssociationResult(kind=kind, item_id=str(item_id), success=False, error=str(exc))


def associate(
    session: ProSBCSession,
    nap_id: str,
    items: Mapping[str, Sequence[str]],
    token: str | None = None,
    max_workers: int = _MAX_ASSOCIATION_WORKERS,
    *,
    remove: bool = False,
) -> list[AssociationResult]:
    """Add (or remove) every item of *items* concurrently.

    Each item is one independent call; failures are collected in the
    returned list instead of aborting the others.

    Args:
        session: Active authenticated session.
        nap_id: NAP identifier.
        items: ``kind -> [sub-resource id, ...]``.
        token: Anti-forgery token; the store's token is used when omitted.
        max_workers: Upper bound on concurrent calls (capped at 4).
        remove: Remove instead of add.

    Returns:
        One :class:`AssociationResult` per item, in request order.

    Raises:
        ValueError: On an unknown association kind.
        AuthenticationRequired: If the session is lost mid-way.
    """
    jobs = [(kind, str(item)) for kind, ids in items.items() for item in ids]
    for kind, _ in jobs:
        _association_kind(kind)
    if not jobs:
        return []
    token = token or session.ensure_token()
    workers = max(1, min(max_workers, _MAX_ASSOCIATION_WORKERS, len(jobs)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="prosbc-assoc") as pool:
        futures = [
            pool.submit(_run_association, session, nap_id, kind, item, token, remove)
            for kind, item in jobs
        ]
        results = [f.result() for f in futures]
    failed = sum(1 for r in results if not r.success)
    if failed:
        logger.warning("%d of %d association calls failed for NAP %s", failed, len(results), nap_id)
    return results


def sync_associations(
    session: ProSBCSession,
    nap_id: str,
    kind: str,
    desired_ids: Sequence[str],
    *,
    allow_remove: bool = True,
) -> list[AssociationResult]:
    """Make the NAP's *kind* associations equal *desired_ids*.

    Reads the edit page for the current links and its token, then issues
    the removals followed by the additions.
    """
    _association_kind(kind)
    form = fetch_nap_for_edit(session, nap_id)
    current: list[Association] = form.current(kind)
    changes = plan_association_changes(kind, current, desired_ids, allow_remove=allow_remove)
    if changes.empty:
        logger.debug("NAP %s %s associations already in sync", nap_id, kind)
        return []
    logger.info(
        "Syncing NAP %s %s: add=%s remove=%s", nap_id, kind, changes.add, changes.remove
    )
    results = associate(session, nap_id, {kind: changes.remove}, form.token, remove=True)
    results += associate(session, nap_id, {kind: changes.add}, form.token)
    return results


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def _reconcile(session: ProSBCSession, name: str, delay_s: float) -> tuple[str, str]:
    """Find the new NAP's id by listing; last resort is the highest id."""
    if delay_s > 0:
        time.sleep(delay_s)
    entities = list_entities(session)
    entity = entities.get(name)
    if entity is not None:
        return entity.id, HEURISTIC_LISTING_ID
    highest = highest_identifier(entities)
    if highest is not None:
        logger.warning(
            "NAP %r not found in any listing; assuming highest id %s", name, highest
        )
        return highest, HEURISTIC_HIGHEST_ID
    raise AmbiguousOutcome(f"Create of NAP {name!r} was accepted but no identifier could be found")


def create_nap(
    session: ProSBCSession,
    fields: Mapping[str, Any],
    *,
    associations: Mapping[str, Sequence[str]] | None = None,
    check_duplicate: bool = False,
    reconcile_delay_s: float = 1.0,
    max_workers: int = _MAX_ASSOCIATION_WORKERS,
) -> SubmissionOutcome:
    """Create a NAP, configure it and link its sub-resources.

    Args:
        session: Session for the target console.
        fields: NAP attributes; ``name`` is required.
        associations: ``{"sip_sap": [...], "port_range": [...]}`` to link
            after the create.
        check_duplicate: Refuse to create when a NAP with the same name is
            already listed (best effort).
        reconcile_delay_s: Pause before listing NAPs when the create
            response does not name the new NAP.
        max_workers: Concurrent association calls (at most 4).

    Returns:
        A successful :class:`SubmissionOutcome` with a non-empty
        ``identifier``.  Association failures are reported in
        ``outcome.associations`` and do not fail the create.

    Raises:
        ValidationFailed: On local validation errors, a known duplicate or
            a console rejection.
        AmbiguousOutcome: If the create was accepted but the new NAP cannot
            be identified.
        ResponseError: On an unexpected status.
        AuthenticationRequired: If login fails.
        TokenUnavailable: If no anti-forgery token can be found.
    """
    report = validate_nap_fields(fields)
    if not report.is_valid:
        raise ValidationFailed("NAP fields failed validation", messages=report.errors)
    try:
        config = NapConfig.from_fields(fields)
        supplied = set(normalize_nap_fields(fields))
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc
    for warning in report.warnings:
        logger.warning("NAP %r: %s", config.name, warning)

    session.ensure_session()
    if check_duplicate and check_nap_exists(session, config.name):
        raise ValidationFailed(f"NAP {config.name!r} already exists", messages=["already exists"])

    token = session.ensure_token()
    logger.info("Creating NAP %r", config.name)
    resp = session.submit(NAPS, build_create_payload(config, token))
    body = resp.text or ""
    _raise_if_rejected(resp, f"create of NAP {config.name!r}")
    if resp.status_code >= 400:
        raise ResponseError(resp.status_code, resp.url or NAPS, excerpt(body))

    nap_id: str | None = None
    heuristic: str | None = None
    if resp.is_redirect:
        nap_id = extract_id_from_location(resp.headers.get("Location"))
    elif config.name in body:
        nap_id = extract_id_from_body(body, config.name)
        if nap_id is not None:
            heuristic = HEURISTIC_BODY_ID
    if nap_id is None:
        logger.info("Create response does not name NAP %r; reconciling", config.name)
        nap_id, heuristic = _reconcile(session, config.name, reconcile_delay_s)
    logger.info("Created NAP %r with id %s", config.name, nap_id)

    outcome = SubmissionOutcome(
        success=True,
        identifier=nap_id,
        diagnostics=excerpt(body),
        heuristic_applied=heuristic,
        status_code=resp.status_code,
        create_status_code=resp.status_code,
        create_diagnostics=excerpt(body),
    )

    if supplied - NAP_MINIMAL_ATTRS:
        configured = configure_nap(session, nap_id, config, token)
        outcome.heuristic_applied = _join_heuristics(heuristic, configured.heuristic_applied)
        if configured.status_code is not None:
            outcome.status_code = configured.status_code
        outcome.diagnostics = configured.diagnostics

    if associations:
        outcome.associations = associate(
            session, nap_id, associations, token, max_workers=max_workers
        )
    return outcome
