"""Typed results returned by form submissions."""

from __future__ import annotations

from dataclasses import dataclass, field

_EXCERPT_CHARS: int = 500


def excerpt(text: str | bytes | None, limit: int = _EXCERPT_CHARS) -> str:
    """First *limit* characters of a response body, for diagnostics."""
    if text is None:
        return ""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return text[:limit]


@dataclass
class AssociationResult:
    """Outcome of one add/remove association call.

    Attributes:
        kind: Association kind.
        item_id: Sub-resource identifier.
        success: Whether the console accepted the call.
        error: Failure description when *success* is False.
    """

    kind: str
    item_id: str
    success: bool
    error: str = ""


@dataclass
class SubmissionOutcome:
    """Result of a create/update submission.

    A heuristic override never discards evidence: *status_code* and
    *diagnostics* hold the last deciding response, and a create followed by
    a configure call keeps its own response in *create_status_code* and
    *create_diagnostics*.

    Attributes:
        success: Whether the submission is considered to have succeeded.
        identifier: Identifier of the affected entity, when known.
        diagnostics: Excerpt of the deciding response body.
        heuristic_applied: Name of the heuristic that decided the outcome,
            or ``None`` when the response was unambiguous.
        status_code: HTTP status of the deciding response.
        associations: Per-item results of the associate step.
        create_status_code: HTTP status of the create response.
        create_diagnostics: Excerpt of the create response body.
    """

    success: bool
    identifier: str | None = None
    diagnostics: str = ""
    heuristic_applied: str | None = None
    status_code: int | None = None
    associations: list[AssociationResult] = field(default_factory=list)
    create_status_code: int | None = None
    create_diagnostics: str = ""

    @property
    def failed_associations(self) -> list[AssociationResult]:
        """Association calls that did not succeed."""
        return [a for a in self.associations if not a.success]
