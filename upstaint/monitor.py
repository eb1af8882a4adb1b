"""
Evaluation cycle: read every UPS, classify it and reconcile its nodes.

One cycle is sequential. A failure to reach the NUT server, list UPS
devices, load cluster credentials or list nodes aborts the cycle; a failed
patch on one node is recorded in the report and the cycle carries on.
"""

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .applier import NodeResult, NodeSource, NodeStatus, NodeTaintApplier
from .config import Settings
from .kube.client import KubeClient, KubeError
from .kube.config import KubeConfigError, load_cluster_config
from .nut.client import NUTClient, NUTError
from .nut.models import TelemetrySnapshot
from .nut.telemetry import read_snapshot
from .taints.classify import classify_snapshot
from .taints.models import DesiredTaintState

logger = logging.getLogger(__name__)


@dataclass
class UPSReport:
    """What one cycle observed and did for a single UPS."""

    ups_name: str
    snapshot: TelemetrySnapshot
    desired: DesiredTaintState
    nodes: List[NodeResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ups": self.ups_name,
            "snapshot": self.snapshot.model_dump(mode="json"),
            "taint": {
                "present": self.desired.present,
                "value": self.desired.value if self.desired.present else None,
                "effect": self.desired.effect.value if self.desired.effect else None,
            },
            "nodes": [result.to_dict() for result in self.nodes],
        }


@dataclass
class CycleReport:
    """Outcome of one evaluation cycle."""

    ups: List[UPSReport] = field(default_factory=list)
    dry_run: bool = False
    duration: float = 0.0

    @property
    def node_results(self) -> List[NodeResult]:
        return [result for report in self.ups for result in report.nodes]

    @property
    def failed_nodes(self) -> List[NodeResult]:
        return [r for r in self.node_results if r.status == NodeStatus.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed_nodes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "dry_run": self.dry_run,
            "duration": round(self.duration, 3),
            "ok": self.ok,
            "ups": [report.to_dict() for report in self.ups],
        }


class TaintMonitor:
    """
    Keeps node taints in line with the power state of their UPS.

    Clients passed in are reused across cycles. When omitted, a NUT client
    and a Kubernetes client are created from ``settings`` at the start of
    each cycle and released at its end.
    """

    def __init__(
        self,
        settings: Settings,
        nut_client: Optional[NUTClient] = None,
        nodes: Optional[NodeSource] = None,
    ):
        self.settings = settings
        self.nut_client = nut_client
        self.nodes = nodes
        self._task: Optional[asyncio.Task] = None
        self._should_stop = asyncio.Event()
        self.last_report: Optional[CycleReport] = None

    async def run_once(self, dry_run: Optional[bool] = None) -> CycleReport:
        """
        Run a single evaluation cycle.

        Raises:
            NUTError: If the NUT server cannot be reached or listed.
            KubeError: If cluster credentials or node lists are unavailable.
        """
        if dry_run is None:
            dry_run = self.settings.DRY_RUN
        start = time.monotonic()
        report = CycleReport(dry_run=dry_run)

        async with AsyncExitStack() as stack:
            nut = self.nut_client or NUTClient.from_settings(self.settings)
            nodes = self.nodes
            if nodes is None:
                cluster = load_cluster_config(self.settings.KUBECONFIG)
                nodes = await stack.enter_async_context(KubeClient(cluster, timeout=self.settings.KUBE_TIMEOUT))

            applier = NodeTaintApplier(
                nodes,
                taint_key=self.settings.TAINT_KEY,
                node_label=self.settings.NODE_LABEL,
                dry_run=dry_run,
            )

            for ups_name in await self._ups_names(nut):
                snapshot = await read_snapshot(nut, ups_name)
                desired = classify_snapshot(snapshot, self.settings.BATTERY_THRESHOLD)
                logger.info(
                    "UPS '%s' status=%s battery=%s -> taint %s",
                    ups_name,
                    snapshot.status,
                    snapshot.battery_percent,
                    desired.describe(),
                )
                results = await applier.apply(ups_name, desired)
                report.ups.append(UPSReport(ups_name, snapshot, desired, results))

        report.duration = time.monotonic() - start
        failed = len(report.failed_nodes)
        changed = sum(1 for r in report.node_results if r.changed)
        logger.info(
            "Cycle finished: %d UPS, %d nodes, %d changed, %d failed in %.2fs",
            len(report.ups),
            len(report.node_results),
            changed,
            failed,
            report.duration,
        )
        self.last_report = report
        return report

    async def _ups_names(self, nut: NUTClient) -> List[str]:
        available = await nut.list_ups()
        if not self.settings.UPS_NAMES:
            return list(available)

        names = []
        for name in self.settings.UPS_NAMES:
            if name in available:
                names.append(name)
            else:
                logger.warning("Configured UPS '%s' is not served by %s", name, nut.host)
        return names

    async def start(self, interval: Optional[float] = None, dry_run: Optional[bool] = None):
        """Start the monitor loop as a background task."""
        if self._task and not self._task.done():
            logger.warning("Monitor is already running.")
            return

        self._should_stop.clear()
        self._task = asyncio.create_task(self.run_forever(interval, dry_run))

    async def stop(self):
        """Stop the monitor loop."""
        self._should_stop.set()
        if not self._task or self._task.done():
            return
        try:
            await asyncio.wait_for(self._task, timeout=10.0)
        except asyncio.CancelledError:
            pass
        except asyncio.TimeoutError:
            logger.error("Monitor task did not stop gracefully within timeout.")
            self._task.cancel()
        logger.info("Taint monitor stopped.")

    async def run_forever(self, interval: Optional[float] = None, dry_run: Optional[bool] = None):
        """Run cycles until stopped. A failed cycle is logged and the next one runs as scheduled."""
        interval = interval or self.settings.POLL_INTERVAL
        logger.info("Starting taint monitor, interval=%ss", interval)
        while not self._should_stop.is_set():
            try:
                await self.run_once(dry_run)
            except NUTError as e:
                logger.error("Cycle aborted, NUT server unavailable: %s", e)
            except (KubeConfigError, KubeError) as e:
                logger.error("Cycle aborted, cluster unavailable: %s", e)
            except Exception:
                logger.exception("An unexpected error occurred in the monitor loop.")

            try:
                await asyncio.wait_for(self._should_stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
