"""
Map a UPS telemetry snapshot to the desired state of the managed taint.

Rules are evaluated in priority order and the first match wins:

1. ``OL`` (mains present) anywhere in the status: no taint.
2. ``OB`` together with ``LB``: ``low-battery``, NoExecute.
3. threshold enabled and a reported charge below it: ``below-threshold``, NoExecute.
4. ``OB``: ``on-battery``, NoSchedule.
5. anything else, including an empty status: ``unknown``, NoSchedule.
"""

from typing import FrozenSet, Optional

from ..nut.models import TelemetrySnapshot
from .models import DesiredTaintState, TaintEffect

STATUS_ONLINE = "OL"
STATUS_ON_BATTERY = "OB"
STATUS_LOW_BATTERY = "LB"

VALUE_LOW_BATTERY = "low-battery"
VALUE_BELOW_THRESHOLD = "below-threshold"
VALUE_ON_BATTERY = "on-battery"
VALUE_UNKNOWN = "unknown"

DEFAULT_THRESHOLD = 20.0


def status_codes(status: Optional[str]) -> FrozenSet[str]:
    """Split a NUT ``ups.status`` string into its individual codes."""
    if not status:
        return frozenset()
    return frozenset(status.split())


def classify(
    status: Optional[str],
    battery_percent: Optional[float],
    threshold: float = DEFAULT_THRESHOLD,
) -> DesiredTaintState:
    """
    Decide whether nodes fed by a UPS should carry the managed taint.

    Args:
        status: The raw ``ups.status`` value, e.g. ``"OB DISCHRG"``.
        battery_percent: Battery charge in percent. None or zero means the
            UPS did not report it, and an unknown charge never satisfies
            the threshold rule.
        threshold: Charge below which nodes are evicted. ``<= 0`` disables
            the rule.

    Returns:
        The desired taint state. Never raises.
    """
    codes = status_codes(status)

    if STATUS_ONLINE in codes:
        return DesiredTaintState.absent()

    if STATUS_ON_BATTERY in codes and STATUS_LOW_BATTERY in codes:
        return DesiredTaintState(True, VALUE_LOW_BATTERY, TaintEffect.NO_EXECUTE)

    if threshold > 0 and battery_percent is not None and 0 < battery_percent < threshold:
        return DesiredTaintState(True, VALUE_BELOW_THRESHOLD, TaintEffect.NO_EXECUTE)

    if STATUS_ON_BATTERY in codes:
        return DesiredTaintState(True, VALUE_ON_BATTERY, TaintEffect.NO_SCHEDULE)

    # An unknown state is not a healthy one
    return DesiredTaintState(True, VALUE_UNKNOWN, TaintEffect.NO_SCHEDULE)


def classify_snapshot(
    snapshot: TelemetrySnapshot,
    threshold: float = DEFAULT_THRESHOLD,
) -> DesiredTaintState:
    """Classify a parsed telemetry snapshot."""
    return classify(snapshot.status, snapshot.battery_percent, threshold)
