"""Normalization helpers for caller-supplied NAP field maps.

Normalization produces the canonical primitive types expected by
:class:`~prosbc_automation.model.nap.NapConfig`: booleans for checkboxes,
canonical unit names for ``*_unit`` attributes, strings for everything else.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from prosbc_automation.vendor.prosbc.mappings import (
    MULTIPLIER_TO_UNIT,
    NAP_FORM_FIELDS,
    SECONDS_MULTIPLIER_TO_UNIT,
    SECONDS_UNIT_TO_MULTIPLIER,
    UNIT_ALIASES,
    UNIT_TO_MULTIPLIER,
)

_KIND_BY_ATTR: dict[str, str] = {attr: kind for attr, _name, kind in NAP_FORM_FIELDS}

_TRUE_STRINGS: frozenset[str] = frozenset({"1", "true", "on", "yes", "y"})
_FALSE_STRINGS: frozenset[str] = frozenset({"0", "false", "off", "no", "n", ""})


def coerce_bool(value: Any) -> bool:
    """Interpret checkbox-like input.

    Raises:
        ValueError: If *value* is a string that is neither truthy nor falsy.
    """
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"Not a boolean value: {value!r}")
    return bool(value)


def normalize_unit(value: Any, seconds_based: bool = False) -> str:
    """Return the canonical unit name for *value*.

    Accepts unit names, common abbreviations (``ms``, ``sec``, ``min``...)
    and the console's multiplier strings.

    Raises:
        ValueError: If *value* cannot be mapped to a unit valid for the
            field's base.
    """
    write_table = SECONDS_UNIT_TO_MULTIPLIER if seconds_based else UNIT_TO_MULTIPLIER
    read_table = SECONDS_MULTIPLIER_TO_UNIT if seconds_based else MULTIPLIER_TO_UNIT
    token = str(value).strip().lower()
    if token in read_table:
        return read_table[token]
    token = UNIT_ALIASES.get(token, token)
    if token not in write_table:
        raise ValueError(f"unit must be one of {sorted(write_table)}, got {value!r}")
    return token


def normalize_nap_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Return a normalized copy of *fields*.

    Normalization rules:

    - ``None`` values are dropped (meaning "use the default").
    - Checkbox attributes become ``bool``.
    - Unit attributes become canonical unit names.
    - Every other known attribute becomes a stripped ``str``.
    - Unknown keys are passed through untouched for the caller to reject.
    """
    result: dict[str, Any] = {}
    for key, value in fields.items():
        if value is None:
            continue
        kind = _KIND_BY_ATTR.get(key)
        if kind is None:
            result[key] = value
        elif kind == "checkbox":
            result[key] = coerce_bool(value)
        elif kind in ("unit_ms", "unit_s"):
            result[key] = normalize_unit(value, seconds_based=kind == "unit_s")
        else:
            result[key] = str(value).strip()
    return result
