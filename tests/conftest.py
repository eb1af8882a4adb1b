from typing import Dict, List, Sequence, Set

import pytest
from click.testing import CliRunner

from upstaint.config import Settings
from upstaint.kube.client import KubeConnectionError, Node, NodePatchError
from upstaint.taints.models import Taint


class FakeNodeSource:
    """In-memory stand-in for the Kubernetes node API."""

    def __init__(self):
        self.nodes: Dict[str, List[Node]] = {}
        self.patches: List[tuple] = []
        self.list_calls: List[str] = []
        self.fail_patch: Set[str] = set()
        self.fail_list: Set[str] = set()

    def add(self, selector: str, name: str, taints: Sequence[Taint] = ()) -> None:
        self.nodes.setdefault(selector, []).append(Node(name, list(taints)))

    def taints_of(self, name: str) -> List[Taint]:
        for nodes in self.nodes.values():
            for node in nodes:
                if node.name == name:
                    return node.taints
        raise KeyError(name)

    async def list_nodes(self, label_selector: str) -> List[Node]:
        self.list_calls.append(label_selector)
        if label_selector in self.fail_list:
            raise KubeConnectionError(f"Listing nodes with selector '{label_selector}' failed: HTTP 500")
        return [Node(n.name, list(n.taints)) for n in self.nodes.get(label_selector, [])]

    async def patch_node_taints(self, node_name: str, taints: Sequence[Taint]) -> None:
        if node_name in self.fail_patch:
            raise NodePatchError(node_name, f"Patching taints on node '{node_name}' failed: HTTP 409")
        self.patches.append((node_name, list(taints)))
        for nodes in self.nodes.values():
            for node in nodes:
                if node.name == node_name:
                    node.taints = list(taints)


@pytest.fixture
def fake_nodes():
    return FakeNodeSource()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        NUT_HOST="nut.test",
        BATTERY_THRESHOLD=20.0,
        POLL_INTERVAL=1,
    )


@pytest.fixture
def cli_runner():
    return CliRunner()
