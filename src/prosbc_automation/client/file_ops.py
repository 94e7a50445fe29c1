"""Routed file (DF/DM) operations for the ProSBC web console.

Routed files are CSV records held in a per-configuration file database:
"Routesets Definition" (DF, ``routesets_definitions``) and "Routesets
Digitmap" (DM, ``routesets_digitmaps``).

Confirmed payloads:

    IMPORT: POST /file_dbs/<db>/<type>   (multipart, redirects disabled)
        authenticity_token=<t>&<prefix>[file]=<csv>
        &<prefix>[tbgw_files_db_id]=<db>&commit=Import
        -> 302 Location: /file_dbs/<db>/edit

    UPDATE: POST /file_dbs/<db>/<type>/<id>   (multipart, redirects disabled)
        _method=put&authenticity_token=<t>&<prefix>[file]=<csv>
        &<prefix>[id]=<record>&<prefix>[tbgw_files_db_id]=<db>&commit=Update

    DELETE: POST /file_dbs/<db>/<type>/<id>
        authenticity_token=<t>&_method=delete&<prefix>[id]=<id>
"""

from __future__ import annotations

import logging

import requests

from prosbc_automation.client.errors import (
    AmbiguousOutcome,
    ParseError,
    ResponseError,
    ValidationFailed,
)
from prosbc_automation.client.session import ProSBCSession
from prosbc_automation.model.file import ConfigurationEntry, RoutedFile
from prosbc_automation.model.outcome import SubmissionOutcome, excerpt
from prosbc_automation.parser.files import (
    extract_file_db_id,
    extract_uploaded_content,
    parse_configurations,
    parse_file_listing,
)
from prosbc_automation.parser.tokens import TOKEN_FIELD, extract_hidden_input
from prosbc_automation.vendor.prosbc.endpoints import (
    CONFIGURATION_CHOOSE,
    FILE_COLLECTION,
    FILE_DB_EDIT,
    FILE_DBS,
    FILE_EDIT,
    FILE_EXPORT,
    FILE_NEW,
    FILE_RECORD,
    HOME,
)
from prosbc_automation.vendor.prosbc.mappings import (
    FILE_TYPE_ALIASES,
    FILE_TYPES,
    HEURISTIC_LISTING_ID,
    VALIDATION_ERROR_PATTERNS,
)

logger = logging.getLogger(__name__)

DEFAULT_FILE_DB_ID: str = "1"

_CSV_CONTENT_TYPE: str = "text/csv"


def normalize_file_type(file_type: str) -> str:
    """Map ``"df"``/``"dm"`` and other aliases to the URL segment.

    Raises:
        ValueError: On an unknown file type.
    """
    key = str(file_type).strip().lower()
    key = FILE_TYPE_ALIASES.get(key, key)
    if key not in FILE_TYPES:
        raise ValueError(
            f"Unknown file type {file_type!r}; expected one of {sorted(FILE_TYPES)}"
        )
    return key


# ---------------------------------------------------------------------------
# Configurations and file databases
# ---------------------------------------------------------------------------

def select_configuration(session: ProSBCSession, config_id: str) -> None:
    """Make *config_id* the console's current configuration.

    Raises:
        ResponseError: If the console answers with anything but 2xx/3xx.
    """
    path = CONFIGURATION_CHOOSE.format(config_id=config_id)
    resp = session.get_unfollowed(path)
    if resp.status_code >= 400:
        raise ResponseError(resp.status_code, path, excerpt(resp.text))
    logger.info("Selected configuration %s", config_id)


def list_configurations(session: ProSBCSession) -> list[ConfigurationEntry]:
    """Return the configurations offered by the home page selector."""
    return parse_configurations(session.get_html(HOME))


def resolve_file_db_id(session: ProSBCSession) -> str:
    """Find the file database of the current configuration.

    ``/file_dbs`` either redirects to the database page or links to it.
    Falls back to :data:`DEFAULT_FILE_DB_ID`.
    """
    resp = session.get_unfollowed(FILE_DBS)
    db_id = extract_file_db_id(resp.headers.get("Location", "")) or extract_file_db_id(
        resp.text or ""
    )
    if db_id is None:
        logger.debug("No file database id on %s; using %s", FILE_DBS, DEFAULT_FILE_DB_ID)
        return DEFAULT_FILE_DB_ID
    return db_id


def list_files(
    session: ProSBCSession,
    file_type: str,
    db_id: str = DEFAULT_FILE_DB_ID,
) -> dict[str, RoutedFile]:
    """List the routed files of one type as ``name -> RoutedFile``."""
    file_type = normalize_file_type(file_type)
    html = session.get_html(FILE_DB_EDIT.format(db_id=db_id))
    return parse_file_listing(html, file_type)


def find_file(
    session: ProSBCSession,
    file_type: str,
    name: str,
    db_id: str = DEFAULT_FILE_DB_ID,
) -> RoutedFile | None:
    """Look a routed file up by name."""
    return list_files(session, file_type, db_id).get(name)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def _classify_file_response(resp: requests.Response, what: str) -> SubmissionOutcome:
    """2xx/3xx succeed unless the body carries a validation message."""
    body = resp.text or ""
    lowered = body.lower()
    hits = [p for p in VALIDATION_ERROR_PATTERNS if p in lowered]
    if resp.status_code == 422 or (hits and not resp.is_redirect):
        raise ValidationFailed(
            f"Console rejected {what} (HTTP {resp.status_code})",
            messages=hits,
            status_code=resp.status_code,
            diagnostics=excerpt(body),
        )
    if resp.status_code >= 400:
        raise ResponseError(resp.status_code, resp.url or what, excerpt(body))
    return SubmissionOutcome(
        success=True,
        diagnostics=excerpt(body),
        status_code=resp.status_code,
    )


def upload_file(
    session: ProSBCSession,
    file_type: str,
    filename: str,
    content: bytes | str,
    db_id: str = DEFAULT_FILE_DB_ID,
) -> SubmissionOutcome:
    """Import a new routed file.

    Args:
        session: Active authenticated session.
        file_type: ``routesets_definitions``/``df`` or ``routesets_digitmaps``/``dm``.
        filename: Name the file is stored under.
        content: CSV payload.
        db_id: File database identifier.

    Raises:
        ValidationFailed: If the console refuses the file (e.g. name taken).
        ResponseError: On an unexpected status.
        AmbiguousOutcome: If the import was accepted but the file cannot
            be found in the listing.
    """
    file_type = normalize_file_type(file_type)
    prefix, _legend = FILE_TYPES[file_type]
    new_path = FILE_NEW.format(db_id=db_id, file_type=file_type)
    token, _soup = session.fetch_form(new_path)

    logger.info("Uploading %s %r to file database %s", file_type, filename, db_id)
    resp = session.submit(
        FILE_COLLECTION.format(db_id=db_id, file_type=file_type),
        data=[
            (TOKEN_FIELD, token),
            (f"{prefix}[tbgw_files_db_id]", str(db_id)),
            ("commit", "Import"),
        ],
        files={f"{prefix}[file]": (filename, content, _CSV_CONTENT_TYPE)},
        headers={"Referer": f"{session.base_url}{new_path}"},
    )
    outcome = _classify_file_response(resp, f"upload of {filename!r}")
    record = parse_file_listing(resp.text or "", file_type).get(filename)
    if record is None:
        logger.debug("Import response does not list %r; looking it up", filename)
        record = find_file(session, file_type, filename, db_id)
        if record is None:
            raise AmbiguousOutcome(
                f"Import of {filename!r} was accepted but the file is not listed",
                outcome.diagnostics,
                resp.status_code,
            )
        outcome.heuristic_applied = HEURISTIC_LISTING_ID
    outcome.identifier = record.id
    return outcome


def update_file(
    session: ProSBCSession,
    file_type: str,
    file_id: str,
    filename: str,
    content: bytes | str,
    db_id: str = DEFAULT_FILE_DB_ID,
) -> SubmissionOutcome:
    """Replace the content of an existing routed file.

    The edit page supplies both the token and the record id the console
    expects in ``<prefix>[id]``.
    """
    file_type = normalize_file_type(file_type)
    prefix, _legend = FILE_TYPES[file_type]
    edit_path = FILE_EDIT.format(db_id=db_id, file_type=file_type, file_id=file_id)
    token, soup = session.fetch_form(edit_path)
    record_id = extract_hidden_input(soup, f"{prefix}[id]") or str(file_id)

    logger.info("Updating %s %s (%r) in file database %s", file_type, file_id, filename, db_id)
    resp = session.submit(
        FILE_RECORD.format(db_id=db_id, file_type=file_type, file_id=file_id),
        data=[
            ("_method", "put"),
            (TOKEN_FIELD, token),
            (f"{prefix}[id]", record_id),
            (f"{prefix}[tbgw_files_db_id]", str(db_id)),
            ("commit", "Update"),
        ],
        files={f"{prefix}[file]": (filename, content, _CSV_CONTENT_TYPE)},
        headers={
            "Referer": f"{session.base_url}{edit_path}",
            "X-Requested-With": "XMLHttpRequest",
        },
    )
    outcome = _classify_file_response(resp, f"update of file {file_id}")
    outcome.identifier = str(file_id)
    return outcome


def delete_file(
    session: ProSBCSession,
    file_type: str,
    file_id: str,
    db_id: str = DEFAULT_FILE_DB_ID,
) -> SubmissionOutcome:
    """Delete a routed file record."""
    file_type = normalize_file_type(file_type)
    prefix, _legend = FILE_TYPES[file_type]
    token = session.ensure_token()
    logger.info("Deleting %s %s from file database %s", file_type, file_id, db_id)
    resp = session.submit(
        FILE_RECORD.format(db_id=db_id, file_type=file_type, file_id=file_id),
        data=[
            (TOKEN_FIELD, token),
            ("_method", "delete"),
            (f"{prefix}[id]", str(file_id)),
        ],
        headers={
            "Referer": f"{session.base_url}{FILE_DB_EDIT.format(db_id=db_id)}",
            "X-Requested-With": "XMLHttpRequest",
        },
    )
    outcome = _classify_file_response(resp, f"delete of file {file_id}")
    outcome.identifier = str(file_id)
    return outcome


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def export_file(
    session: ProSBCSession,
    file_type: str,
    file_id: str,
    db_id: str = DEFAULT_FILE_DB_ID,
) -> bytes:
    """Download a routed file as CSV bytes."""
    file_type = normalize_file_type(file_type)
    resp = session.get_raw(FILE_EXPORT.format(db_id=db_id, file_type=file_type, file_id=file_id))
    return resp.content


def get_file_content(
    session: ProSBCSession,
    file_type: str,
    file_id: str,
    db_id: str = DEFAULT_FILE_DB_ID,
) -> str:
    """Return a routed file's CSV text.

    Uses the export endpoint and falls back to the content embedded in the
    edit page when the export fails.
    """
    file_type = normalize_file_type(file_type)
    try:
        return export_file(session, file_type, file_id, db_id).decode("utf-8", errors="replace")
    except ResponseError as exc:
        logger.debug("Export of %s %s failed (%s); reading edit page", file_type, file_id, exc)
    html = session.get_html(FILE_EDIT.format(db_id=db_id, file_type=file_type, file_id=file_id))
    content = extract_uploaded_content(html)
    if content is None:
        raise ParseError(f"No content for {file_type} {file_id} on its edit page")
    return content
