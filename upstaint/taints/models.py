"""
Data models for node taints.

``Taint`` mirrors the Kubernetes core/v1 Taint object closely enough to
round-trip it through the API unchanged. ``DesiredTaintState`` is the
output of status classification.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class TaintEffect(str, Enum):
    """Scheduling effects understood by the Kubernetes scheduler."""
    NO_SCHEDULE = "NoSchedule"  # block new workloads
    PREFER_NO_SCHEDULE = "PreferNoSchedule"
    NO_EXECUTE = "NoExecute"  # evict existing workloads


class Taint(BaseModel):
    """
    A single node taint.

    Only ``key``, ``value`` and ``effect`` take part in comparisons made by the
    reconciler. ``time_added`` is carried so that taints owned by someone else
    pass through a patch untouched.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str
    value: str = ""
    effect: TaintEffect
    time_added: Optional[str] = Field(None, alias="timeAdded")

    def to_api(self) -> Dict[str, Any]:
        """Serialize to the Kubernetes wire representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class DesiredTaintState:
    """
    What the managed taint should look like on every node of one UPS.

    ``value`` and ``effect`` are only meaningful when ``present`` is True.
    """

    present: bool
    value: str = ""
    effect: Optional[TaintEffect] = None

    @classmethod
    def absent(cls) -> "DesiredTaintState":
        return cls(present=False)

    def to_taint(self, key: str) -> Taint:
        if not self.present or self.effect is None:
            raise ValueError("An absent taint state has no taint representation")
        return Taint(key=key, value=self.value, effect=self.effect)

    def describe(self) -> str:
        if not self.present:
            return "absent"
        return f"{self.value}:{self.effect.value}"
