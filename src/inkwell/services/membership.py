"""
Toggle semantics shared by post likes, comment likes and bookmarks.

A membership set is stored as an array of ObjectIds on the target document. Toggling removes the
actor when present and adds it otherwise; repositories persist the result with `$pull` or
`$addToSet` so each request applies exactly one toggle.
"""

from typing import Any, Iterable, List, Tuple


def _same_id(a: Any, b: Any) -> bool:
    return str(a) == str(b)


def is_member(members: Iterable[Any], actor_id: Any) -> bool:
    return any(_same_id(member, actor_id) for member in members or [])


def toggle_membership(members: Iterable[Any], actor_id: Any) -> Tuple[List[Any], bool]:
    """
    Toggle `actor_id` in `members`.

    Returns:
        Tuple[List[Any], bool]: The resulting members and whether the actor is now a member.
    """
    current = list(members or [])
    if is_member(current, actor_id):
        return [m for m in current if not _same_id(m, actor_id)], False
    return current + [actor_id], True


def toggle_operator(now_member: bool) -> str:
    """MongoDB update operator that persists a toggle outcome."""
    return "$addToSet" if now_member else "$pull"
