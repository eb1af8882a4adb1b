"""
Locating and loading credentials for the Kubernetes API.

The in-cluster service account is preferred. Outside a cluster the
kubeconfig file is read (explicit path, $KUBECONFIG, then ~/.kube/config)
and its current context resolved to a server URL plus credentials.
"""

import base64
import logging
import os
import ssl
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
DEFAULT_KUBECONFIG = Path.home() / ".kube" / "config"


class KubeConfigError(Exception):
    """Raised when no usable cluster configuration can be found."""
    pass


@dataclass
class ClusterConfig:
    """Connection settings for one Kubernetes API server."""

    server: str
    token: Optional[str] = None
    ca_file: Optional[str] = None
    ca_data: Optional[str] = None
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    verify: bool = True
    source: str = "kubeconfig"
    # Inline kubeconfig credentials written to disk for ssl.load_cert_chain
    temp_files: List[str] = field(default_factory=list)

    @property
    def headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def cleanup(self) -> None:
        """Remove temporary credential files written while loading the config."""
        while self.temp_files:
            path = self.temp_files.pop()
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass

    def ssl_context(self) -> ssl.SSLContext | bool:
        """Build the TLS settings handed to httpx."""
        if not self.verify and not self.cert_file:
            return False
        try:
            if self.ca_data:
                context = ssl.create_default_context(cadata=self.ca_data)
            elif self.ca_file:
                context = ssl.create_default_context(cafile=self.ca_file)
            else:
                context = ssl.create_default_context()
            if self.cert_file and self.key_file:
                context.load_cert_chain(self.cert_file, self.key_file)
            if not self.verify:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
        except OSError as e:
            raise KubeConfigError(f"Invalid TLS material for {self.server}: {e}") from e
        return context


def load_cluster_config(kubeconfig: Optional[str] = None) -> ClusterConfig:
    """
    Resolve cluster connection settings.

    Args:
        kubeconfig: Explicit kubeconfig path. When given, the in-cluster
            service account is not considered.

    Raises:
        KubeConfigError: If neither source yields a usable configuration.
    """
    if kubeconfig is None:
        in_cluster = load_incluster_config()
        if in_cluster is not None:
            return in_cluster

    if kubeconfig:
        return load_kubeconfig(Path(kubeconfig).expanduser())
    return load_kubeconfig(_kubeconfig_from_env())


def _kubeconfig_from_env() -> Path:
    """Pick the kubeconfig named by $KUBECONFIG, which may list several paths."""
    candidates = [Path(p).expanduser() for p in os.getenv("KUBECONFIG", "").split(os.pathsep) if p]
    if not candidates:
        return DEFAULT_KUBECONFIG.expanduser()
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def load_incluster_config(
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
) -> Optional[ClusterConfig]:
    """Return the service account configuration, or None outside a cluster."""
    host = os.getenv("KUBERNETES_SERVICE_HOST")
    port = os.getenv("KUBERNETES_SERVICE_PORT")
    token_path = service_account_dir / "token"
    if not host or not port or not token_path.exists():
        return None

    try:
        token = token_path.read_text().strip()
    except OSError as e:
        raise KubeConfigError(f"Cannot read service account token {token_path}") from e

    if ":" in host:
        host = f"[{host}]"
    ca_path = service_account_dir / "ca.crt"
    logger.info("Using in-cluster configuration for %s:%s", host, port)
    return ClusterConfig(
        server=f"https://{host}:{port}",
        token=token,
        ca_file=str(ca_path) if ca_path.exists() else None,
        source="in-cluster",
    )


def load_kubeconfig(path: Path, context: Optional[str] = None) -> ClusterConfig:
    """Load the current (or named) context from a kubeconfig file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise KubeConfigError(f"Cannot read kubeconfig {path}") from e
    except yaml.YAMLError as e:
        raise KubeConfigError(f"Invalid kubeconfig {path}") from e

    context_name = context or data.get("current-context")
    if not context_name:
        raise KubeConfigError(f"Kubeconfig {path} has no current-context")

    ctx = _named(data, "contexts", context_name, "context")
    cluster = _named(data, "clusters", ctx.get("cluster"), "cluster")
    user = _named(data, "users", ctx.get("user"), "user") if ctx.get("user") else {}

    server = cluster.get("server")
    if not server:
        raise KubeConfigError(f"Cluster '{ctx.get('cluster')}' in {path} has no server")

    base_dir = path.parent
    token = user.get("token")
    if not token and user.get("tokenFile"):
        token_path = _resolve(base_dir, user["tokenFile"])
        try:
            token = token_path.read_text().strip()
        except OSError as e:
            raise KubeConfigError(f"Cannot read token file {token_path}") from e

    ca_data = cluster.get("certificate-authority-data")
    temp_files: List[str] = []
    try:
        cert_file = _file_or_data(base_dir, user, "client-certificate", temp_files)
        key_file = _file_or_data(base_dir, user, "client-key", temp_files)
        ca_pem = base64.b64decode(ca_data).decode("utf-8") if ca_data else None
    except (ValueError, OSError) as e:
        for temp_path in temp_files:
            os.unlink(temp_path)
        raise KubeConfigError(f"Invalid inline credentials in kubeconfig {path}") from e
    if user and not token and not (cert_file and key_file):
        logger.warning("Kubeconfig user '%s' has no token or client certificate", ctx.get("user"))

    logger.info("Using kubeconfig %s context '%s' server=%s", path, context_name, server)
    return ClusterConfig(
        server=server,
        token=token,
        ca_file=str(_resolve(base_dir, cluster["certificate-authority"])) if cluster.get("certificate-authority") else None,
        ca_data=ca_pem,
        cert_file=cert_file,
        key_file=key_file,
        verify=not cluster.get("insecure-skip-tls-verify", False),
        source=str(path),
        temp_files=temp_files,
    )


def _named(data: Dict[str, Any], section: str, name: Optional[str], key: str) -> Dict[str, Any]:
    for entry in data.get(section) or []:
        if entry.get("name") == name:
            return entry.get(key) or {}
    raise KubeConfigError(f"No entry '{name}' in kubeconfig {section}")


def _resolve(base_dir: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def _file_or_data(base_dir: Path, user: Dict[str, Any], name: str, temp_files: List[str]) -> Optional[str]:
    """Return a path for a credential given either as a file or inline data."""
    if user.get(name):
        return str(_resolve(base_dir, user[name]))
    data = user.get(f"{name}-data")
    if not data:
        return None
    # ssl.load_cert_chain only accepts paths
    content = base64.b64decode(data)
    with tempfile.NamedTemporaryFile("wb", prefix="upstaint-", suffix=".pem", delete=False) as f:
        temp_files.append(f.name)
        f.write(content)
    return f.name
