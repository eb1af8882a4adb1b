"""
Apply a desired taint state to every node powered by one UPS.

Listing nodes is fatal for the caller: without the node list no safe
decision can be made. A failed patch only affects the node it was meant
for; it is logged, recorded and the remaining nodes are still processed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .kube.client import Node, NodePatchError
from .taints.models import DesiredTaintState, Taint
from .taints.reconcile import reconcile

logger = logging.getLogger(__name__)


class NodeSource(Protocol):
    """The slice of the cluster API the applier depends on."""

    async def list_nodes(self, label_selector: str) -> List[Node]:
        ...

    async def patch_node_taints(self, node_name: str, taints: Sequence[Taint]) -> None:
        ...


class NodeStatus(Enum):
    """Outcome for a single node."""
    UNCHANGED = "unchanged"
    PATCHED = "patched"
    WOULD_PATCH = "would_patch"
    FAILED = "failed"


@dataclass
class NodeResult:
    """Result of reconciling one node."""

    node_name: str
    status: NodeStatus
    taints: Optional[List[Taint]] = None
    error_message: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    @property
    def changed(self) -> bool:
        return self.status in (NodeStatus.PATCHED, NodeStatus.WOULD_PATCH)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/output."""
        return {
            'node': self.node_name,
            'status': self.status.value,
            'taints': [t.to_api() for t in self.taints] if self.taints is not None else None,
            'error_message': self.error_message,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }


class NodeTaintApplier:
    """
    Reconciles the managed taint on the nodes selected for a UPS.
    """

    def __init__(self, nodes: NodeSource, taint_key: str, node_label: str, dry_run: bool = False):
        self.nodes = nodes
        self.taint_key = taint_key
        self.node_label = node_label
        self.dry_run = dry_run

    def selector(self, ups_name: str) -> str:
        return f"{self.node_label}={ups_name}"

    async def apply(self, ups_name: str, desired: DesiredTaintState) -> List[NodeResult]:
        """
        Bring every node labelled with ``ups_name`` in line with ``desired``.

        Raises:
            KubeConnectionError: If the node list cannot be read.
        """
        nodes = await self.nodes.list_nodes(self.selector(ups_name))
        if not nodes:
            logger.info("No nodes labelled %s", self.selector(ups_name))

        results: List[NodeResult] = []
        for node in nodes:
            results.append(await self.apply_to_node(node, desired))
        return results

    async def apply_to_node(self, node: Node, desired: DesiredTaintState) -> NodeResult:
        new_taints, changed = reconcile(node.taints, desired, self.taint_key)
        if not changed:
            logger.debug("Taints on %s already match %s", node.name, desired.describe())
            return NodeResult(node.name, NodeStatus.UNCHANGED)

        if self.dry_run:
            logger.info("DRY RUN: Would update taints on %s to %s", node.name, desired.describe())
            return NodeResult(node.name, NodeStatus.WOULD_PATCH, taints=new_taints)

        logger.info("Updating taints on %s: %s", node.name, desired.describe())
        try:
            await self.nodes.patch_node_taints(node.name, new_taints)
        except NodePatchError as e:
            logger.error("Failed to update taints on %s: %s", node.name, e)
            return NodeResult(node.name, NodeStatus.FAILED, taints=new_taints, error_message=str(e))

        return NodeResult(node.name, NodeStatus.PATCHED, taints=new_taints)
