"""
Dense ordering for sibling collections.

Plan days, placements within a day, plan sets within a placement and
session sets within a (session, placement) pair all carry a 1-based order
field. After any insert, move or removal the siblings must read 1..N with
no gaps or duplicates. This module is the only place those numbers are
computed; callers persist whatever `set_order` was called on.
"""

from typing import Any, Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def normalize_order(
    existing: Sequence[T],
    changed: Optional[T],
    get_id: Callable[[T], Any],
    get_order: Callable[[T], Optional[int]],
    set_order: Callable[[T, int], None],
) -> List[T]:
    """
    Re-number a sibling collection after one member changed.

    Args:
        existing: Current siblings, in their current order.
        changed: The inserted or moved member, or None for a pure
            recompaction (e.g. after a delete). Its order field is the
            requested position: None appends, values <= 0 prepend, values
            past the end append.
        get_id: Identity accessor used to drop the stale copy of `changed`.
        get_order: Order field accessor.
        set_order: Order field mutator. Called only for members whose
            position changes, and always for `changed`.

    Returns:
        All siblings in their new order, order fields already corrected.
    """
    ordered = list(existing)
    if changed is not None:
        changed_id = get_id(changed)
        ordered = [member for member in ordered if get_id(member) != changed_id]

        requested = get_order(changed)
        if requested is None:
            ordered.append(changed)
        else:
            # Clamp to [1, N+1]
            position = min(max(requested, 1), len(ordered) + 1)
            ordered.insert(position - 1, changed)

    for position, member in enumerate(ordered, start=1):
        if member is changed or get_order(member) != position:
            set_order(member, position)

    return ordered
