"""``{name}`` placeholder substitution for operation templates.

Placeholders with no matching parameter are left in place verbatim, so a
body template ``{"work_notes": "{work_notes}"}`` called without
``work_notes`` sends the literal text ``{work_notes}``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_.\-]*)\}")


def _substitute_string(template: str, params: Mapping[str, Any]) -> str | None:
    whole = PLACEHOLDER_PATTERN.fullmatch(template)
    if whole and whole.group(1) in params and params[whole.group(1)] is None:
        # A value that is only a placeholder bound to None becomes None,
        # which lets the request builder drop that query key.
        return None

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in params:
            return match.group(0)
        value = params[name]
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(replace, template)


def substitute(template: Any, params: Mapping[str, Any] | None) -> Any:
    """Return ``template`` with placeholders replaced from ``params``.

    Strings are substituted; mappings and lists/tuples are rebuilt
    recursively with key order preserved; every other value is returned
    unchanged. Inputs are never mutated.

    Args:
        template: String, nested mapping/sequence, or passthrough scalar
        params: Placeholder name -> value; values are stringified

    Returns:
        A structurally identical value
    """
    params = params or {}
    if isinstance(template, str):
        return _substitute_string(template, params)
    if isinstance(template, Mapping):
        return {key: substitute(value, params) for key, value in template.items()}
    if isinstance(template, (list, tuple)):
        return type(template)(substitute(item, params) for item in template)
    return template


def find_placeholders(template: Any) -> set[str]:
    """Return every placeholder name still present anywhere in ``template``."""
    if isinstance(template, str):
        return set(PLACEHOLDER_PATTERN.findall(template))
    if isinstance(template, Mapping):
        names: set[str] = set()
        for value in template.values():
            names |= find_placeholders(value)
        return names
    if isinstance(template, (list, tuple)):
        names = set()
        for item in template:
            names |= find_placeholders(item)
        return names
    return set()
