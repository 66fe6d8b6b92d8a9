"""Identifier allocation for comments, comment authors and relationships."""

from __future__ import annotations

import re
from typing import Iterable, Optional

_RID_PATTERN = re.compile(r"^rId(\d+)$")


def parse_ids(values: Iterable[Optional[str]]) -> set[int]:
    """Collect the integer identifiers from raw attribute values.

    Missing and non-numeric values are ignored, as hosts tolerate them.
    """
    ids: set[int] = set()
    for value in values:
        if value is None:
            continue
        try:
            ids.add(int(value.strip()))
        except ValueError:
            continue
    return ids


def next_id(existing: Iterable[int], start: int = 0) -> int:
    """
    Return the next free identifier given a snapshot of the current ones.

    Args:
        existing: Identifiers already present in the part.
        start: Value to return when nothing has been allocated yet.

    Returns:
        ``max(existing) + 1``, or ``start`` for an empty snapshot.
    """
    highest = max(existing, default=None)
    if highest is None:
        return start
    return max(highest + 1, start)


def next_relationship_id(existing: Iterable[str]) -> str:
    """Return an ``rIdN`` that does not collide with any existing Id."""
    existing = list(existing)
    numbers = set()
    for rel_id in existing:
        match = _RID_PATTERN.match(rel_id or "")
        if match:
            numbers.add(int(match.group(1)))
    candidate = next_id(numbers, start=1)
    candidate = max(candidate, len(existing) + 1)
    taken = set(existing)
    while f"rId{candidate}" in taken:
        candidate += 1
    return f"rId{candidate}"
