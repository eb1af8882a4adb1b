"""
Taint decision logic.

- classify: UPS status and charge to desired taint state
- reconcile: existing node taints plus desired state to the new taint list
"""

from .models import DesiredTaintState, Taint, TaintEffect
from .classify import classify, classify_snapshot, status_codes
from .reconcile import reconcile, taints_equal

__all__ = [
    "DesiredTaintState", "Taint", "TaintEffect", "classify",
    "classify_snapshot", "status_codes", "reconcile", "taints_equal",
]
