"""
Minimal asynchronous client for the Kubernetes node API.

Only two calls are needed: listing the nodes that match a label selector and
replacing the taint list of one node. Errors are split by kind so callers can
tell a cycle-fatal failure (listing, transport) from one isolated to a node
(a rejected patch).
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..taints.models import Taint
from .config import ClusterConfig, KubeConfigError

logger = logging.getLogger(__name__)

STRATEGIC_MERGE_PATCH = "application/strategic-merge-patch+json"


class KubeError(Exception):
    """Base exception for Kubernetes API errors."""
    pass


class KubeConnectionError(KubeError):
    """The API server could not be reached or refused to list nodes."""
    pass


class NodePatchError(KubeError):
    """Updating the taints of a single node failed."""

    def __init__(self, node_name: str, message: str):
        super().__init__(message)
        self.node_name = node_name


@dataclass
class Node:
    """A cluster node and the taints it currently carries."""

    name: str
    taints: List[Taint] = field(default_factory=list)

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "Node":
        metadata = item.get("metadata") or {}
        spec = item.get("spec") or {}
        return cls(
            name=metadata["name"],
            taints=[Taint.model_validate(t) for t in spec.get("taints") or []],
        )


class KubeClient:
    """
    An asynchronous client for the node endpoints of the Kubernetes API.
    """

    def __init__(self, config: ClusterConfig, timeout: float = 30.0):
        self.config = config
        self.timeout = timeout
        try:
            verify = config.ssl_context()
        except KubeConfigError:
            config.cleanup()
            raise
        self._client: Optional[httpx.AsyncClient] = httpx.AsyncClient(
            base_url=config.server,
            headers=config.headers,
            verify=verify,
            timeout=timeout,
        )
        logger.info("Initialized Kubernetes client server=%s source=%s", config.server, config.source)

    async def __aenter__(self) -> "KubeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def list_nodes(self, label_selector: str) -> List[Node]:
        """
        List nodes matching a label selector.

        Raises:
            KubeConnectionError: If the request fails or is rejected.
        """
        start_time = time.monotonic()
        try:
            response = await self._http.get("/api/v1/nodes", params={"labelSelector": label_selector})
            response.raise_for_status()
            items = response.json().get("items") or []
        except httpx.HTTPStatusError as e:
            raise KubeConnectionError(
                f"Listing nodes with selector '{label_selector}' failed: HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise KubeConnectionError(f"Listing nodes with selector '{label_selector}' failed: {e}") from e

        try:
            nodes = [Node.from_api(item) for item in items]
        except (KeyError, ValueError) as e:
            raise KubeConnectionError(f"Malformed node list for selector '{label_selector}'") from e

        latency_ms = int((time.monotonic() - start_time) * 1000)
        logger.info("Listed %d nodes for selector '%s' in %dms", len(nodes), label_selector, latency_ms)
        return nodes

    async def patch_node_taints(self, node_name: str, taints: Sequence[Taint]) -> None:
        """
        Replace the full taint list of a node.

        Raises:
            NodePatchError: If the API server rejects the patch or cannot be reached.
        """
        payload = {"spec": {"taints": [t.to_api() for t in taints]}}
        start_time = time.monotonic()
        try:
            response = await self._http.patch(
                f"/api/v1/nodes/{node_name}",
                json=payload,
                headers={"Content-Type": STRATEGIC_MERGE_PATCH},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NodePatchError(
                node_name, f"Patching taints on node '{node_name}' failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise NodePatchError(node_name, f"Patching taints on node '{node_name}' failed: {e}") from e

        latency_ms = int((time.monotonic() - start_time) * 1000)
        logger.info("Patched taints on node '%s' (%d taints) in %dms", node_name, len(taints), latency_ms)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        self.config.cleanup()

    @property
    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Kubernetes client is closed")
        return self._client
