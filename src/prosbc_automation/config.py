"""Connection settings for one ProSBC console."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

_TRUE: frozenset[str] = frozenset({"1", "true", "yes", "on"})
_FALSE: frozenset[str] = frozenset({"0", "false", "no", "off", ""})


def _env_bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"Expected a boolean, got {raw!r}")


@dataclass(frozen=True)
class ProSBCSettings:
    """Immutable settings for one console instance.

    Args:
        base_url: Console URL, e.g. ``https://10.0.0.5``.
        username: Login username.
        password: Login password.
        instance_id: Registry key for this console.
        verify_tls: Verify the console's TLS certificate.
        timeout_s: Timeout for login, token and listing requests.
        submit_timeout_s: Timeout for form submissions.
        config_id: Console configuration to work against.
        basic_auth: Also send the credentials as HTTP basic auth.
        retry_attempts: Attempts for session/token acquisition.
        reconcile_delay_s: Pause before looking up a NAP whose create
            response did not name it.
        max_workers: Concurrent association calls.
    """

    base_url: str
    username: str
    password: str
    instance_id: str = "default"
    verify_tls: bool = False
    timeout_s: float = 15.0
    submit_timeout_s: float = 120.0
    config_id: str = "1"
    basic_auth: bool = True
    retry_attempts: int = 3
    reconcile_delay_s: float = 1.0
    max_workers: int = 4

    def __repr__(self) -> str:
        return (
            f"ProSBCSettings(instance_id={self.instance_id!r}, base_url={self.base_url!r}, "
            f"username={self.username!r}, password='***')"
        )

    @classmethod
    def from_env(
        cls,
        instance_id: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> ProSBCSettings:
        """Read settings from ``PROSBC_*`` environment variables.

        For a named instance ``PROSBC_<ID>_BASE_URL``/``_USERNAME``/``_PASSWORD``
        (``<ID>`` upper-cased) take precedence over the unprefixed variables.
        ``PROSBC_VERIFY_TLS``, ``PROSBC_TIMEOUT`` and ``PROSBC_CONFIG_ID``
        follow the same rule.

        Raises:
            ValueError: If the base URL, username or password is missing, or
                a numeric/boolean variable is malformed.
        """
        env = os.environ if environ is None else environ
        prefix = f"PROSBC_{instance_id.upper()}_" if instance_id else None

        def get(name: str) -> str | None:
            if prefix is not None and f"{prefix}{name}" in env:
                return env[f"{prefix}{name}"]
            return env.get(f"PROSBC_{name}")

        missing = [n for n in ("BASE_URL", "USERNAME", "PASSWORD") if not get(n)]
        if missing:
            scope = prefix or "PROSBC_"
            raise ValueError(
                "Missing ProSBC settings: " + ", ".join(f"{scope}{n}" for n in missing)
            )

        timeout = get("TIMEOUT")
        return cls(
            base_url=str(get("BASE_URL")),
            username=str(get("USERNAME")),
            password=str(get("PASSWORD")),
            instance_id=instance_id or "default",
            verify_tls=_env_bool(get("VERIFY_TLS"), False),
            timeout_s=float(timeout) if timeout else 15.0,
            config_id=get("CONFIG_ID") or "1",
        )
