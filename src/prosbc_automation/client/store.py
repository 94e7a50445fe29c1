"""Per-deployment session and anti-forgery token state."""

from __future__ import annotations

import logging
import re
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from prosbc_automation.vendor.prosbc.endpoints import SESSION_COOKIE

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_S: float = 20 * 60.0
DEFAULT_TOKEN_TTL_S: float = 30 * 60.0


@dataclass
class Session:
    """Authenticated console session.

    Attributes:
        cookie_value: Value of the session cookie, or ``None`` when absent.
        issued_at: Clock reading when the cookie was last (re)issued.
        expires_after: Lifetime in seconds, measured from *issued_at*.
    """

    cookie_value: str | None = None
    issued_at: float = 0.0
    expires_after: float = DEFAULT_SESSION_TTL_S


@dataclass
class AntiForgeryToken:
    """A captured ``authenticity_token`` value.

    Attributes:
        value: Opaque token string.
        captured_at: Clock reading when the token was extracted.
        ttl: Seconds after which the token must not be reused.
    """

    value: str
    captured_at: float
    ttl: float = DEFAULT_TOKEN_TTL_S


class SessionStore:
    """Holds the session cookie and anti-forgery token for one console.

    One store exists per target deployment; it is never shared between
    deployments.  :attr:`generation` increases on every :meth:`invalidate`
    so that the transport can ignore responses to requests that were sent
    under an older session.

    Args:
        cookie_name: Name of the console's session cookie.
        session_ttl_s: Session lifetime in seconds.
        token_ttl_s: Anti-forgery token lifetime in seconds.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        cookie_name: str = SESSION_COOKIE,
        session_ttl_s: float = DEFAULT_SESSION_TTL_S,
        token_ttl_s: float = DEFAULT_TOKEN_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cookie_name: str = cookie_name
        self.token_ttl_s: float = token_ttl_s
        self._clock = clock
        self._session: Session = Session(expires_after=session_ttl_s)
        self._token: AntiForgeryToken | None = None
        self._generation: int = 0
        self._cookie_re: re.Pattern[str] = re.compile(
            rf"(?:^|[\s,;]){re.escape(cookie_name)}=([^;,\s]+)"
        )
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def has_valid_session(self) -> bool:
        """True only if a cookie is present and has not expired."""
        with self._lock:
            s = self._session
            if not s.cookie_value:
                return False
            return self._clock() - s.issued_at < s.expires_after

    def record_session_from_response_headers(
        self,
        set_cookie_headers: Iterable[str],
        generation: int | None = None,
    ) -> bool:
        """Capture the session cookie from ``Set-Cookie`` header values.

        Responses without the session cookie are ignored.

        Args:
            set_cookie_headers: Every ``Set-Cookie`` value of one response.
            generation: :attr:`generation` observed before the request was
                sent.  When it no longer matches, the response is stale and
                nothing is recorded.

        Returns:
            True if a cookie was recorded.
        """
        for header in set_cookie_headers:
            m = self._cookie_re.search(header)
            if m is None:
                continue
            with self._lock:
                if generation is not None and generation != self._generation:
                    logger.debug("Ignoring session cookie from a stale response")
                    return False
                self._session.cookie_value = m.group(1)
                self._session.issued_at = self._clock()
            logger.debug("Recorded %s cookie", self.cookie_name)
            return True
        return False

    def invalidate(self) -> None:
        """Drop the cookie and token; bumps :attr:`generation`."""
        with self._lock:
            self._session.cookie_value = None
            self._session.issued_at = 0.0
            self._token = None
            self._generation += 1
        logger.debug("Session invalidated")

    @property
    def cookie(self) -> str | None:
        """Current cookie value, or ``None`` if absent or expired."""
        return self._session.cookie_value if self.has_valid_session() else None

    @property
    def generation(self) -> int:
        """Invalidation counter."""
        return self._generation

    @property
    def session(self) -> Session:
        """Snapshot of the session record."""
        with self._lock:
            s = self._session
            return Session(s.cookie_value, s.issued_at, s.expires_after)

    # ------------------------------------------------------------------
    # Anti-forgery token
    # ------------------------------------------------------------------

    def is_token_fresh(self) -> bool:
        """True if a token exists and is younger than its ttl."""
        with self._lock:
            t = self._token
            if t is None:
                return False
            return self._clock() - t.captured_at < t.ttl

    def store_token(self, value: str) -> AntiForgeryToken:
        """Remember *value* as the current token, stamped now."""
        token = AntiForgeryToken(value=value, captured_at=self._clock(), ttl=self.token_ttl_s)
        with self._lock:
            self._token = token
        return token

    @property
    def token(self) -> str | None:
        """Current token value, or ``None`` if absent or stale."""
        with self._lock:
            t = self._token
            if t is None or self._clock() - t.captured_at >= t.ttl:
                return None
            return t.value
