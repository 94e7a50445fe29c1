"""JSON-serializable renderings of NAPs and submission outcomes."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from prosbc_automation.model.nap import NapEditForm
from prosbc_automation.model.outcome import SubmissionOutcome
from prosbc_automation.vendor.prosbc.mappings import SELECT_LABELS

_SECRET_FIELDS: frozenset[str] = frozenset({"sip_auth_pass"})


def render_nap(form: NapEditForm, *, show_secrets: bool = False) -> dict[str, Any]:
    """Serialize an edit form for display.

    Select-backed ids gain a ``<attr>_label`` entry with the text the web UI
    shows (e.g. ``sip_privacy_type_id="3"`` ->
    ``sip_privacy_type_id_label="P-Asserted-Identity"``).  Secrets are
    masked unless *show_secrets* is set.

    Returns:
        A dict with keys ``id``, ``name``, ``fields``, ``associations`` and
        ``available``.
    """
    fields = asdict(form.config)
    for attr, table in SELECT_LABELS.items():
        value = str(fields.get(attr, ""))
        fields[f"{attr}_label"] = table.get(value, value)
    if not show_secrets:
        for attr in _SECRET_FIELDS:
            if fields.get(attr):
                fields[attr] = "***"
    return {
        "id": form.nap_id,
        "name": form.config.name,
        "fields": fields,
        "associations": {
            "sip_sap": [asdict(a) for a in form.sip_saps],
            "port_range": [asdict(a) for a in form.port_ranges],
        },
        "available": {
            "sip_sap": [asdict(a) for a in form.available_sip_saps],
            "port_range": [asdict(a) for a in form.available_port_ranges],
        },
    }


def render_outcome(outcome: SubmissionOutcome) -> dict[str, Any]:
    """Serialize *outcome*; failed associations are listed separately."""
    data = asdict(outcome)
    data["failed_associations"] = [asdict(a) for a in outcome.failed_associations]
    return data
