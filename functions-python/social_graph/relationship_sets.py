"""
Set operations over a player's relationship arrays.

Relationship sets are stored as Firestore arrays, so they are ordered lists
here, but they carry set semantics: an id is either a member or not. Every
mutating helper returns ``(new_members, changed)`` and never modifies its
input, so callers can skip writes when nothing changed.
"""

from typing import List, Sequence, Tuple


def contains(members: Sequence[str], target: str) -> bool:
    return target in members


def add_if_absent(members: Sequence[str], target: str) -> Tuple[List[str], bool]:
    """Append ``target`` unless it is already a member."""
    if target in members:
        return list(members), False
    return [*members, target], True


def remove_if_present(members: Sequence[str], target: str) -> Tuple[List[str], bool]:
    """Drop every occurrence of ``target``; order of the rest is kept."""
    kept = [m for m in members if m != target]
    return kept, len(kept) != len(members)
