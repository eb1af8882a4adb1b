"""
Data models for NUT (Network UPS Tools) telemetry.

This module defines the Pydantic model for a single observation of a UPS
as reported by the NUT server.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TelemetrySnapshot(BaseModel):
    """
    Represents a snapshot of UPS data.

    All fields are optional as they may not be available from all UPS devices.
    A value the device reports but which cannot be parsed is treated as
    unavailable.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    status: Optional[str] = Field(None, alias="ups.status")
    battery_percent: Optional[float] = Field(None, alias="battery.charge")
    battery_runtime: Optional[int] = Field(None, alias="battery.runtime")
    ups_load: Optional[float] = Field(None, alias="ups.load")

    @field_validator("status", mode="before")
    @classmethod
    def _strip_status(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("battery_percent", "ups_load", mode="before")
    @classmethod
    def _parse_float(cls, value: Any) -> Optional[float]:
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("battery_runtime", mode="before")
    @classmethod
    def _parse_int(cls, value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None

    @classmethod
    def from_vars(cls, ups_vars: Optional[Dict[str, Any]]) -> "TelemetrySnapshot":
        """Build a snapshot from the variable map returned by the NUT server."""
        return cls.model_validate(ups_vars or {})

    @classmethod
    def unavailable(cls) -> "TelemetrySnapshot":
        return cls()
