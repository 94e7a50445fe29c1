"""Authenticated session for one ProSBC web console."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

import requests
from bs4 import BeautifulSoup

from prosbc_automation.client.errors import AuthenticationRequired, ResponseError, TokenUnavailable
from prosbc_automation.client.http import FormData, ProSBCHTTP, set_cookie_headers
from prosbc_automation.client.store import SessionStore
from prosbc_automation.parser.html import is_login_page, parse_html
from prosbc_automation.parser.tokens import TOKEN_FIELD, extract_anti_forgery_token
from prosbc_automation.utils.retry import retry_network
from prosbc_automation.vendor.prosbc.endpoints import LOGIN, LOGIN_CHECK, TOKEN_SOURCE_PAGES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProSBCCredentials:
    """Immutable credential pair for a ProSBC console.

    Args:
        username: Login username.
        password: Login password.
    """

    username: str
    password: str

    def __repr__(self) -> str:
        return f"ProSBCCredentials(username={self.username!r}, password='***')"


class ProSBCSession:
    """Manages the authenticated session and form tokens for one console.

    Wraps :class:`.ProSBCHTTP` and adds:
    - Form login via ``/login`` + ``/login/check``, single-flight under a lock.
    - Anti-forgery token discovery over an ordered list of form pages.
    - Login-page detection on authenticated reads.
    - Exponential backoff on transient network failures while acquiring a
      session or token (never on authentication or validation failures).

    Args:
        base_url: Console base URL, e.g. ``https://10.0.0.5``.
        credentials: Username/password pair (``None`` makes every login fail).
        store: Session store to use; a fresh one is created by default.
        probe_timeout_s: Timeout for login, token and listing calls.
        submit_timeout_s: Timeout for create/configure/upload submissions.
        verify_tls: Whether to verify the console's TLS certificate.
        basic_auth: Also send the credentials as HTTP basic auth.
        retry_attempts: Attempts for session/token acquisition.
        retry_delay_s: First backoff delay, doubled after each attempt.
        config_id: Console configuration the session works against.
    """

    def __init__(
        self,
        base_url: str,
        credentials: ProSBCCredentials | None,
        store: SessionStore | None = None,
        probe_timeout_s: float = 15.0,
        submit_timeout_s: float = 120.0,
        verify_tls: bool = False,
        basic_auth: bool = True,
        retry_attempts: int = 3,
        retry_delay_s: float = 0.5,
        config_id: str = "1",
    ) -> None:
        self._store: SessionStore = store if store is not None else SessionStore()
        self._credentials: ProSBCCredentials | None = credentials
        auth = (
            (credentials.username, credentials.password)
            if credentials is not None and basic_auth
            else None
        )
        self._http: ProSBCHTTP = ProSBCHTTP(
            base_url=base_url,
            store=self._store,
            auth=auth,
            timeout_s=probe_timeout_s,
            verify_tls=verify_tls,
        )
        self.probe_timeout_s: float = probe_timeout_s
        self.submit_timeout_s: float = submit_timeout_s
        self.retry_attempts: int = retry_attempts
        self.retry_delay_s: float = retry_delay_s
        self.config_id: str = str(config_id)
        self._login_lock = threading.Lock()
        self._token_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self) -> None:
        """Authenticate to the console.

        GETs the login page for its token, then POSTs the credentials with
        redirects disabled.  Network failures are retried with backoff.

        Raises:
            AuthenticationRequired: If no credentials are configured, the
                console rejects them, or no session cookie comes back.
            TokenUnavailable: If the login page carries no token.
            NetworkError: If the console stays unreachable.
        """
        creds = self._credentials
        if creds is None or not creds.username or not creds.password:
            raise AuthenticationRequired("No ProSBC credentials configured")
        retry_network(
            lambda: self._login_once(creds),
            attempts=self.retry_attempts,
            delay_s=self.retry_delay_s,
            what="login",
        )
        logger.info("Logged in to %s", self._http.base_url)

    def ensure_session(self) -> None:
        """Log in unless a valid session exists.

        Concurrent callers serialise on one lock and re-check under it, so an
        expired session triggers exactly one login.
        """
        with self._login_lock:
            if not self._store.has_valid_session():
                logger.debug("No valid session for %s; logging in", self._http.base_url)
                self.login()

    # ------------------------------------------------------------------
    # Anti-forgery tokens
    # ------------------------------------------------------------------

    def ensure_token(self) -> str:
        """Return a fresh anti-forgery token, discovering one if needed.

        Candidate pages from :data:`TOKEN_SOURCE_PAGES` are fetched in
        order; the first plausible token is stored and returned.

        Raises:
            TokenUnavailable: If no candidate page yields a token.
            AuthenticationRequired: If a candidate page is the login page.
        """
        with self._token_lock:
            token = self._store.token
            if token is not None:
                return token
            return self._discover_token()

    def fetch_form(self, path: str) -> tuple[str, BeautifulSoup]:
        """GET a form page, remember its token, and return both.

        The console ties tokens to the page they were rendered on; edit and
        upload flows must use the token of their own form.

        Returns:
            ``(token, parsed page)``.

        Raises:
            TokenUnavailable: If the page carries no plausible token.
        """
        soup = parse_html(self.get_html(path))
        token = extract_anti_forgery_token(soup)
        if token is None:
            raise TokenUnavailable(f"No authenticity_token on {path!r}")
        self._store.store_token(token)
        return token, soup

    # ------------------------------------------------------------------
    # Public request methods
    # ------------------------------------------------------------------

    def get_html(
        self,
        path: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """Perform an authenticated read (redirects followed).

        Raises:
            AuthenticationRequired: If the console serves its login page.
            ResponseError: On a status >= 400.
        """
        self.ensure_session()
        resp = self._http.get(
            path, params=params, headers=headers, timeout=self.probe_timeout_s
        )
        self._reject_login_page(resp, path)
        return resp.text

    def get_raw(self, path: str) -> requests.Response:
        """Authenticated GET returning the response (for binary exports)."""
        self.ensure_session()
        resp = self._http.get(path, timeout=self.submit_timeout_s)
        self._reject_login_page(resp, path)
        return resp

    def get_unfollowed(self, path: str) -> requests.Response:
        """Authenticated GET with redirects disabled; any status is returned."""
        self.ensure_session()
        resp = self._http.get(
            path,
            allow_redirects=False,
            timeout=self.probe_timeout_s,
            raise_for_status=False,
        )
        self._reject_login_page(resp, path)
        return resp

    def submit(
        self,
        path: str,
        data: FormData,
        files: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """POST a form with redirects disabled and return the raw response.

        Non-2xx statuses are returned, not raised: callers classify them.

        Raises:
            AuthenticationRequired: On 401/403, a login page body, or a
                redirect to the login page.
        """
        self.ensure_session()
        resp = self._http.request(
            "POST",
            path,
            data=data,
            files=files,
            params=params,
            headers=headers,
            allow_redirects=False,
            timeout=self.submit_timeout_s,
            raise_for_status=False,
        )
        self._reject_login_page(resp, path)
        return resp

    def close(self) -> None:
        """Drop the session and close the underlying HTTP session."""
        self._store.invalidate()
        self._http.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def logged_in(self) -> bool:
        """True if the store holds a valid session."""
        return self._store.has_valid_session()

    @property
    def store(self) -> SessionStore:
        """Session store owned by this session."""
        return self._store

    @property
    def http(self) -> ProSBCHTTP:
        """Underlying transport."""
        return self._http

    @property
    def base_url(self) -> str:
        """Normalised console base URL."""
        return self._http.base_url

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _login_once(self, creds: ProSBCCredentials) -> None:
        self._store.invalidate()
        try:
            page = self._http.get(LOGIN, timeout=self.probe_timeout_s)
            token = extract_anti_forgery_token(parse_html(page.text))
            if token is None:
                raise TokenUnavailable("Login page carries no authenticity_token")
            resp = self._http.post_form(
                LOGIN_CHECK,
                data={
                    TOKEN_FIELD: token,
                    "user[name]": creds.username,
                    "user[pass]": creds.password,
                    "commit": "Login",
                },
                allow_redirects=False,
                timeout=self.probe_timeout_s,
                raise_for_status=False,
            )
            issued = any(
                f"{self._store.cookie_name}=" in h for h in set_cookie_headers(resp)
            )
            if not issued:
                raise AuthenticationRequired(
                    f"Login rejected by console: HTTP {resp.status_code}, "
                    f"no {self._store.cookie_name} cookie"
                )
            if resp.status_code >= 400 or self._is_login_response(resp):
                raise AuthenticationRequired(
                    f"Login rejected by console: HTTP {resp.status_code}"
                )
        except Exception:
            self._store.invalidate()
            raise

    def _discover_token(self) -> str:
        # Login carries its own retries; only the page fetches are retried here.
        self.ensure_session()
        for template in TOKEN_SOURCE_PAGES:
            path = template.format(config_id=self.config_id)
            try:
                html = retry_network(
                    lambda: self.get_html(path),
                    attempts=self.retry_attempts,
                    delay_s=self.retry_delay_s,
                    what=f"token page {path}",
                )
            except ResponseError as exc:
                logger.debug("No token source at %s: %s", path, exc)
                continue
            token = extract_anti_forgery_token(parse_html(html))
            if token is not None:
                self._store.store_token(token)
                logger.debug("Captured anti-forgery token from %s", path)
                return token
            logger.debug("No plausible token on %s", path)
        raise TokenUnavailable(
            f"No usable authenticity_token on any of {len(TOKEN_SOURCE_PAGES)} candidate pages"
        )

    @staticmethod
    def _is_login_response(resp: requests.Response) -> bool:
        location = resp.headers.get("Location", "")
        if resp.is_redirect and location.rstrip("/").endswith(LOGIN):
            return True
        return resp.status_code == 200 and is_login_page(resp.text)

    def _reject_login_page(self, resp: requests.Response, path: str) -> None:
        if self._is_login_response(resp):
            self._store.invalidate()
            raise AuthenticationRequired(
                f"Console answered {path!r} with its login page; session invalidated"
            )
