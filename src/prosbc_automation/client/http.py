"""Low-level HTTP transport for the ProSBC web console."""

from __future__ import annotations

import importlib.metadata
import logging
from http.cookiejar import DefaultCookiePolicy
from typing import Any
from urllib.parse import urljoin, urlsplit

import requests
from requests.auth import HTTPBasicAuth
from requests.structures import CaseInsensitiveDict

from prosbc_automation.client.errors import (
    AuthenticationRequired,
    CrossOriginBlocked,
    NetworkError,
    ResponseError,
)
from prosbc_automation.client.store import SessionStore

logger = logging.getLogger(__name__)

try:
    _VERSION: str = importlib.metadata.version("prosbc-automation")
except importlib.metadata.PackageNotFoundError:
    _VERSION = "0.0.0"

_USER_AGENT: str = f"prosbc-automation/{_VERSION}"

_DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

FormData = dict[str, str] | list[tuple[str, str]]


def _normalise_base_url(url: str) -> str:
    """Ensure the URL has a scheme (``https`` by default) and no trailing slash."""
    url = url.strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    return url


def _origin(url: str) -> tuple[str, str, int]:
    """Return ``(scheme, host, port)`` with the default port filled in."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    return scheme, (parts.hostname or "").lower(), parts.port or _DEFAULT_PORTS.get(scheme, 0)


def set_cookie_headers(resp: requests.Response) -> list[str]:
    """Every ``Set-Cookie`` value of *resp* (requests folds repeats into one)."""
    raw_headers = getattr(resp.raw, "headers", None)
    getlist = getattr(raw_headers, "getlist", None)
    if callable(getlist):
        return [str(v) for v in getlist("Set-Cookie")]
    value = resp.headers.get("Set-Cookie")
    return [value] if value else []


class ProSBCHTTP:
    """HTTP wrapper around :class:`requests.Session` bound to one console.

    Every request carries, in order: HTTP basic auth built from the configured
    credentials, the session cookie held by the :class:`SessionStore`, then
    caller headers.  Caller headers can override the cookie but never the
    ``Authorization`` header.  TLS verification is relaxed per request and
    only for the console's own origin; requests and redirect hops to any
    other origin raise :exc:`CrossOriginBlocked` before they are sent.

    The session's own cookie jar is disabled: the store is the single source
    of truth for the session cookie.

    Args:
        base_url: Console base URL, e.g. ``https://10.0.0.5``.
        store: Session store for this console.
        auth: Optional ``(username, password)`` for HTTP basic auth.
        timeout_s: Default request timeout in seconds.
        verify_tls: Whether to verify the console's TLS certificate
            (default False: consoles ship self-signed certificates).
    """

    def __init__(
        self,
        base_url: str,
        store: SessionStore,
        auth: tuple[str, str] | None = None,
        timeout_s: float = 15.0,
        verify_tls: bool = False,
    ) -> None:
        self.base_url: str = _normalise_base_url(base_url)
        self.timeout_s: float = timeout_s
        self.verify_tls: bool = verify_tls
        self._origin: tuple[str, str, int] = _origin(self.base_url)
        self._store: SessionStore = store
        self._auth: HTTPBasicAuth | None = HTTPBasicAuth(*auth) if auth else None
        self._session: requests.Session = requests.Session()
        self._session.headers.update({"User-Agent": _USER_AGENT})
        self._session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        data: FormData | None = None,
        files: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        allow_redirects: bool = True,
        timeout: float | None = None,
        raise_for_status: bool = True,
    ) -> requests.Response:
        """Send one request to the console and classify the response.

        Args:
            method: HTTP method.
            path: URL path relative to :attr:`base_url`, or an absolute URL
                on the console's origin (e.g. a ``Location`` header).
            params: Optional query-string parameters.
            data: Form fields.  A ``list[tuple[str, str]]`` preserves repeated
                keys (Rails checkbox pairs).
            files: Multipart file parts, as accepted by :mod:`requests`.
            headers: Extra headers.
            allow_redirects: Follow 3xx responses.  Form submissions pass
                False so the ``Location`` header can be inspected.
            timeout: Per-call timeout in seconds (default :attr:`timeout_s`).
            raise_for_status: Raise :exc:`ResponseError` on status >= 400.

        Returns:
            The :class:`requests.Response`.

        Raises:
            CrossOriginBlocked: If *path* or a redirect hop leaves the origin.
            NetworkError: On any transport-level failure.
            AuthenticationRequired: On 401/403 (the store is invalidated).
            ResponseError: On other statuses >= 400 when *raise_for_status*.
        """
        url = self._resolve(path)
        generation = self._store.generation
        hooks = {"response": [self._guard_redirect]} if allow_redirects else None
        logger.debug("%s %s (redirects=%s)", method, url, allow_redirects)
        try:
            resp = self._session.request(
                method,
                url,
                params=params,
                data=data,
                files=files,
                headers=self._build_headers(headers),
                auth=self._auth,
                allow_redirects=allow_redirects,
                timeout=timeout if timeout is not None else self.timeout_s,
                verify=self.verify_tls,
                hooks=hooks,
            )
        except requests.exceptions.RequestException as exc:
            raise NetworkError(url, exc) from exc

        for hop in (*resp.history, resp):
            self._store.record_session_from_response_headers(
                set_cookie_headers(hop), generation
            )

        if resp.status_code in (401, 403):
            self._store.invalidate()
            raise AuthenticationRequired(
                f"HTTP {resp.status_code} for {resp.url!r}; session invalidated"
            )
        if raise_for_status and resp.status_code >= 400:
            raise ResponseError(resp.status_code, resp.url, resp.text[:500])
        return resp

    def get(
        self,
        path: str,
        params: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Send an HTTP GET to *path* (see :meth:`request`)."""
        return self.request("GET", path, params=params, **kwargs)

    def post_form(
        self,
        path: str,
        data: FormData | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Send a form-encoded POST to *path* (see :meth:`request`)."""
        return self.request("POST", path, data=data, **kwargs)

    def post_multipart(
        self,
        path: str,
        data: FormData | None,
        files: dict[str, Any],
        **kwargs: Any,
    ) -> requests.Response:
        """Send a ``multipart/form-data`` POST to *path* (see :meth:`request`)."""
        return self.request("POST", path, data=data, files=files, **kwargs)

    def close(self) -> None:
        """Close the underlying :class:`requests.Session`."""
        self._session.close()

    def __enter__(self) -> ProSBCHTTP:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            if _origin(path) != self._origin:
                raise CrossOriginBlocked(path)
            return path
        if not path.startswith("/"):
            path = "/" + path
        return self.base_url + path

    def _build_headers(self, extra: dict[str, str] | None) -> CaseInsensitiveDict[str]:
        headers: CaseInsensitiveDict[str] = CaseInsensitiveDict()
        cookie = self._store.cookie
        if cookie:
            headers["Cookie"] = f"{self._store.cookie_name}={cookie}"
        if extra:
            headers.update(extra)
        if self._auth is not None:
            # Basic auth is applied by requests after headers are merged.
            headers.pop("Authorization", None)
        return headers

    def _guard_redirect(
        self,
        resp: requests.Response,
        *args: object,
        **kwargs: object,
    ) -> requests.Response:
        if resp.is_redirect:
            target = urljoin(resp.url, resp.headers.get("Location", ""))
            if _origin(target) != self._origin:
                raise CrossOriginBlocked(target)
        return resp
