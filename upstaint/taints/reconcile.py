"""
Compute the taint list a node should carry for a desired taint state.

The reconciler builds a fresh list instead of editing the existing one and
then compares the two with key-indexed equality. Reconciling a node whose
taints are already correct therefore reports no change, and a malformed
list with several managed entries collapses to a single one in one pass.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from .models import DesiredTaintState, Taint


def reconcile(
    existing: Sequence[Taint],
    desired: DesiredTaintState,
    key: str,
) -> Tuple[Optional[List[Taint]], bool]:
    """
    Bring ``existing`` in line with ``desired`` for the managed ``key``.

    Taints under other keys are copied through unchanged and keep their
    relative order. The first managed entry is replaced in place (or dropped
    when the taint should be absent), later managed entries are dropped, and
    a missing managed entry is appended at the end.

    Returns:
        ``(None, False)`` when no change is needed, otherwise
        ``(new_taints, True)``.
    """
    result: List[Taint] = []
    found = False

    for taint in existing:
        if taint.key != key:
            result.append(taint)
            continue

        if desired.present and not found:
            result.append(desired.to_taint(key))
        found = True

    if not found and desired.present:
        result.append(desired.to_taint(key))

    # Unmanaged taints may repeat a key with different effects, which the key
    # index cannot tell apart.
    if _same_order(existing, result) or taints_equal(existing, result):
        return None, False

    return result, True


def _same_order(a: Sequence[Taint], b: Sequence[Taint]) -> bool:
    if len(a) != len(b):
        return False
    return all(
        (x.key, x.value, x.effect) == (y.key, y.value, y.effect)
        for x, y in zip(a, b)
    )


def taints_equal(a: Sequence[Taint], b: Sequence[Taint]) -> bool:
    """
    Order-independent comparison of two taint lists.

    Both lists must have the same length, and every taint in ``b`` must match
    the taint with the same key in ``a`` on value and effect. When ``a``
    holds duplicate keys the last one wins.
    """
    if len(a) != len(b):
        return False

    index: Dict[str, Taint] = {taint.key: taint for taint in a}

    for taint in b:
        other = index.get(taint.key)
        if other is None or other.value != taint.value or other.effect != taint.effect:
            return False
    return True
