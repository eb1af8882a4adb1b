"""
Kubernetes API access for reading and patching node taints.
"""

from .client import KubeClient, KubeConnectionError, KubeError, Node, NodePatchError
from .config import ClusterConfig, KubeConfigError, load_cluster_config

__all__ = [
    "KubeClient", "KubeConnectionError", "KubeError", "Node", "NodePatchError",
    "ClusterConfig", "KubeConfigError", "load_cluster_config",
]
