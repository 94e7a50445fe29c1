"""Custom exceptions for the prosbc-automation client."""

from __future__ import annotations

from dataclasses import dataclass, field


class ProSBCError(Exception):
    """Base exception for all prosbc-automation errors."""


class AuthenticationRequired(ProSBCError):
    """Raised when credentials are missing or rejected, or a login page is
    served where an authenticated page was expected."""


class TokenUnavailable(ProSBCError):
    """Raised when no usable anti-forgery token could be extracted."""


class ParseError(ProSBCError):
    """Raised when HTML/JSON parsing fails or expected elements are not found."""


class NetworkError(ProSBCError):
    """Raised when a network-level error occurs (DNS, connection reset, timeout)."""

    def __init__(self, url: str, cause: Exception) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Request to {url!r} failed: {cause}")


class CrossOriginBlocked(ProSBCError):
    """Raised before any request (or redirect hop) leaves the console's origin."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Refusing cross-origin request to {url!r}")


class ResponseError(ProSBCError):
    """Raised when the console returns an unexpected HTTP status code."""

    def __init__(self, status_code: int, url: str, diagnostics: str = "") -> None:
        self.status_code = status_code
        self.url = url
        self.diagnostics = diagnostics
        super().__init__(f"HTTP {status_code} for {url!r}")


class NotFound(ProSBCError):
    """Raised when an entity name cannot be resolved to an identifier."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"No entity found for {identifier!r}")


@dataclass
class ValidationFailed(ProSBCError):
    """Raised when the console rejects the submitted fields.

    Attributes:
        message: Summary of the failure.
        messages: Field-level messages extracted from the error page, if any.
        status_code: HTTP status of the rejecting response (``None`` when the
            failure was detected before submission).
        diagnostics: Raw response excerpt.
    """

    message: str
    messages: list[str] = field(default_factory=list)
    status_code: int | None = None
    diagnostics: str = ""

    def __post_init__(self) -> None:
        detail = f": {'; '.join(self.messages)}" if self.messages else ""
        super().__init__(f"{self.message}{detail}")


@dataclass
class AmbiguousOutcome(ProSBCError):
    """Raised when a submission was accepted but its result cannot be
    established (e.g. a create whose new identifier is nowhere to be found).

    Attributes:
        message: Summary of what could not be established.
        diagnostics: Raw response excerpt of the submission.
        status_code: HTTP status of the submission response.
    """

    message: str
    diagnostics: str = ""
    status_code: int | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
