"""
Field name resolution against a snapshot of the template's field names.

Exact paths are tried first. When a template revision renamed or re-nested a
field, the lowercase substring patterns of the mapping entry are used as a
fallback.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence


def resolve(all_field_names: Sequence[str], patterns: Iterable[str]) -> Optional[str]:
    """
    Return the first field name containing any of `patterns`.

    Matching is case-insensitive and scans `all_field_names` in their original
    order, so the template's own field order breaks ties between patterns.
    """
    lowered = [p.lower() for p in patterns if p]
    if not lowered:
        return None
    for name in all_field_names:
        name_lower = name.lower()
        if any(pattern in name_lower for pattern in lowered):
            return name
    return None


def locate(
    all_field_names: Sequence[str],
    path: str,
    patterns: Iterable[str] = (),
) -> Optional[str]:
    if path in all_field_names:
        return path
    return resolve(all_field_names, patterns)
