"""Unit tests for prosbc_automation.config."""

from __future__ import annotations

import pytest

from prosbc_automation.config import ProSBCSettings

BASE_ENV = {
    "PROSBC_BASE_URL": "https://10.0.0.5",
    "PROSBC_USERNAME": "admin",
    "PROSBC_PASSWORD": "secret",
}


def test_from_env_defaults() -> None:
    settings = ProSBCSettings.from_env(environ=BASE_ENV)
    assert settings.base_url == "https://10.0.0.5"
    assert settings.instance_id == "default"
    assert settings.verify_tls is False
    assert settings.timeout_s == 15.0
    assert settings.config_id == "1"


def test_from_env_instance_prefix_wins() -> None:
    env = {
        **BASE_ENV,
        "PROSBC_LAB_BASE_URL": "https://10.9.9.9",
        "PROSBC_LAB_VERIFY_TLS": "yes",
        "PROSBC_TIMEOUT": "30",
    }
    settings = ProSBCSettings.from_env("lab", environ=env)
    assert settings.instance_id == "lab"
    assert settings.base_url == "https://10.9.9.9"
    assert settings.username == "admin"
    assert settings.verify_tls is True
    assert settings.timeout_s == 30.0


def test_from_env_missing_values() -> None:
    with pytest.raises(ValueError, match="PROSBC_PASSWORD"):
        ProSBCSettings.from_env(
            environ={"PROSBC_BASE_URL": "https://10.0.0.5", "PROSBC_USERNAME": "admin"}
        )


def test_from_env_bad_boolean() -> None:
    with pytest.raises(ValueError):
        ProSBCSettings.from_env(environ={**BASE_ENV, "PROSBC_VERIFY_TLS": "sometimes"})


def test_repr_masks_password() -> None:
    settings = ProSBCSettings(base_url="https://10.0.0.5", username="admin", password="secret")
    assert "secret" not in repr(settings)
    assert "***" in repr(settings)
