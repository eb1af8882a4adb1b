"""
Reading telemetry snapshots from a NUT server.
"""

import logging

from .client import NUTClient, NUTConnectionError
from .models import TelemetrySnapshot

logger = logging.getLogger(__name__)


async def read_snapshot(client: NUTClient, ups_name: str) -> TelemetrySnapshot:
    """
    Read the current status and battery charge of one UPS.

    A UPS whose variables cannot be fetched yields an empty snapshot, which
    classifies as an unknown (unsafe) power state.
    """
    try:
        ups_vars = await client.get_vars(ups_name)
    except NUTConnectionError as e:
        logger.warning("Telemetry unavailable for UPS '%s': %s", ups_name, e)
        return TelemetrySnapshot.unavailable()

    snapshot = TelemetrySnapshot.from_vars(ups_vars)
    if snapshot.status is None:
        logger.warning("UPS '%s' reported no ups.status", ups_name)
    if snapshot.battery_percent is None:
        logger.warning("UPS '%s' reported no usable battery.charge", ups_name)
    logger.debug(
        "UPS '%s' status=%s battery=%s",
        ups_name,
        snapshot.status,
        snapshot.battery_percent,
    )
    return snapshot
