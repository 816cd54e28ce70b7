"""
Natours API — Input Sanitizers
===============================

Pure functions applied by the sanitization stage to the request body, the
query mapping and resolved path params. None of them raise: hostile input is
degraded (dropped keys, escaped markup, collapsed duplicates) rather than
rejected.

    strip_operator_keys   query-operator injection  ({"$gt": ""}, "a.b")
    escape_markup         script / markup injection ("<script>")
    collapse_duplicates   parameter pollution       (?sort=a&sort=b)
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from markupsafe import escape

_KEY_SEGMENTS = re.compile(r"[^\[\]]+")


def is_operator_key(key: str) -> bool:
    """
    True when any bracket segment of ``key`` starts with ``$`` or contains a dot.

    ``"$where"``, ``"price[$gte]"`` and ``"profile.role"`` all match;
    ``"price[gte]"`` does not.
    """
    return any(
        segment.startswith("$") or "." in segment
        for segment in _KEY_SEGMENTS.findall(key)
    )


def strip_operator_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: strip_operator_keys(item)
            for key, item in value.items()
            if not (isinstance(key, str) and is_operator_key(key))
        }
    if isinstance(value, list):
        return [strip_operator_keys(item) for item in value]
    return value


def escape_markup(value: Any) -> Any:
    if isinstance(value, str):
        return str(escape(value)).strip()
    if isinstance(value, dict):
        return {key: escape_markup(item) for key, item in value.items()}
    if isinstance(value, list):
        return [escape_markup(item) for item in value]
    return value


def collapse_duplicates(
    mapping: Mapping[str, Any], whitelist: Iterable[str]
) -> Dict[str, Any]:
    """
    Keep only the first value of a repeated field unless it is whitelisted.

    Whitelisted fields keep every value as a list, so
    ``?price=100&price=200`` stays ``["100", "200"]`` while
    ``?sort=price&sort=duration`` becomes ``"price"``.
    """
    allowed = set(whitelist)
    collapsed: Dict[str, Any] = {}
    for key, value in mapping.items():
        if isinstance(value, list) and key not in allowed:
            collapsed[key] = value[0] if value else ""
        else:
            collapsed[key] = value
    return collapsed


def pairs_to_mapping(pairs: Iterable[Tuple[str, str]]) -> Dict[str, Any]:
    """Group decoded key/value pairs; repeated keys become lists in arrival order."""
    mapping: Dict[str, Any] = {}
    for key, value in pairs:
        if key not in mapping:
            mapping[key] = value
        elif isinstance(mapping[key], list):
            mapping[key].append(value)
        else:
            mapping[key] = [mapping[key], value]
    return mapping


def mapping_to_pairs(mapping: Mapping[str, Any]) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for key, value in mapping.items():
        if isinstance(value, list):
            pairs.extend((key, str(item)) for item in value)
        else:
            pairs.append((key, str(value)))
    return pairs


def sanitize(value: Any) -> Any:
    """Structural then content sanitization, in that order."""
    return escape_markup(strip_operator_keys(value))
