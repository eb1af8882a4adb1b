"""
Tests for cluster configuration discovery.
"""

import base64
import os
import tempfile
from pathlib import Path

import pytest
import yaml

from upstaint.kube.config import (
    ClusterConfig,
    KubeConfigError,
    load_cluster_config,
    load_incluster_config,
    load_kubeconfig,
)


def write_kubeconfig(path: Path, user: dict, cluster: dict | None = None, current: str = "lab") -> Path:
    data = {
        "apiVersion": "v1",
        "kind": "Config",
        "current-context": current,
        "contexts": [
            {"name": "lab", "context": {"cluster": "lab-cluster", "user": "lab-admin"}},
            {"name": "other", "context": {"cluster": "missing", "user": "lab-admin"}},
        ],
        "clusters": [
            {"name": "lab-cluster", "cluster": cluster or {"server": "https://10.0.0.1:6443"}},
        ],
        "users": [{"name": "lab-admin", "user": user}],
    }
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture
def service_account(tmp_path):
    sa_dir = tmp_path / "serviceaccount"
    sa_dir.mkdir()
    (sa_dir / "token").write_text("sa-token\n")
    (sa_dir / "ca.crt").write_text("not-a-real-cert")
    return sa_dir


@pytest.fixture
def no_cluster_env(monkeypatch):
    monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
    monkeypatch.delenv("KUBERNETES_SERVICE_PORT", raising=False)
    monkeypatch.delenv("KUBECONFIG", raising=False)


class TestInCluster:

    def test_loads_service_account(self, monkeypatch, service_account):
        monkeypatch.setenv("KUBERNETES_SERVICE_HOST", "10.96.0.1")
        monkeypatch.setenv("KUBERNETES_SERVICE_PORT", "443")

        config = load_incluster_config(service_account)

        assert config.server == "https://10.96.0.1:443"
        assert config.token == "sa-token"
        assert config.ca_file == str(service_account / "ca.crt")
        assert config.source == "in-cluster"
        assert config.headers == {"Authorization": "Bearer sa-token"}

    def test_ipv6_host(self, monkeypatch, service_account):
        monkeypatch.setenv("KUBERNETES_SERVICE_HOST", "fd00::1")
        monkeypatch.setenv("KUBERNETES_SERVICE_PORT", "443")
        assert load_incluster_config(service_account).server == "https://[fd00::1]:443"

    def test_outside_cluster(self, no_cluster_env, service_account):
        assert load_incluster_config(service_account) is None

    def test_missing_token(self, monkeypatch, tmp_path):
        monkeypatch.setenv("KUBERNETES_SERVICE_HOST", "10.96.0.1")
        monkeypatch.setenv("KUBERNETES_SERVICE_PORT", "443")
        assert load_incluster_config(tmp_path) is None


class TestKubeconfig:

    def test_token_user(self, tmp_path):
        path = write_kubeconfig(tmp_path / "config", {"token": "abc123"})
        config = load_kubeconfig(path)
        assert config.server == "https://10.0.0.1:6443"
        assert config.token == "abc123"
        assert config.verify is True
        assert config.source == str(path)

    def test_token_file_relative_to_kubeconfig(self, tmp_path):
        (tmp_path / "token").write_text("from-file\n")
        path = write_kubeconfig(tmp_path / "config", {"tokenFile": "token"})
        assert load_kubeconfig(path).token == "from-file"

    def test_missing_token_file(self, tmp_path):
        path = write_kubeconfig(tmp_path / "config", {"tokenFile": "nope"})
        with pytest.raises(KubeConfigError, match="Cannot read token file"):
            load_kubeconfig(path)

    def test_inline_ca_and_client_cert(self, tmp_path):
        pem = "-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"
        encoded = base64.b64encode(pem.encode()).decode()
        path = write_kubeconfig(
            tmp_path / "config",
            {"client-certificate-data": encoded, "client-key-data": encoded},
            cluster={"server": "https://k8s.lab:6443", "certificate-authority-data": encoded},
        )

        config = load_kubeconfig(path)

        assert config.ca_data == pem
        assert config.token is None
        assert Path(config.cert_file).read_text() == pem
        assert Path(config.key_file).read_text() == pem

        config.cleanup()
        assert not Path(config.cert_file).exists()
        assert not Path(config.key_file).exists()

    def test_repeated_loads_leave_no_credential_files(self, monkeypatch, tmp_path):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))
        encoded = base64.b64encode(b"pem").decode()
        path = write_kubeconfig(tmp_path / "config", {"client-certificate-data": encoded, "client-key-data": encoded})

        for _ in range(5):
            config = load_kubeconfig(path)
            assert len(config.temp_files) == 2
            config.cleanup()

        assert list(scratch.glob("upstaint-*.pem")) == []

    def test_invalid_inline_data_removes_written_files(self, monkeypatch, tmp_path):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))
        encoded = base64.b64encode(b"pem").decode()
        path = write_kubeconfig(
            tmp_path / "config",
            {"client-certificate-data": encoded, "client-key-data": "not base64!"},
        )

        with pytest.raises(KubeConfigError, match="Invalid inline credentials"):
            load_kubeconfig(path)
        assert list(scratch.glob("upstaint-*.pem")) == []

    def test_certificate_paths_resolved(self, tmp_path):
        path = write_kubeconfig(
            tmp_path / "config",
            {"client-certificate": "certs/client.crt", "client-key": "/abs/client.key"},
            cluster={"server": "https://k8s.lab:6443", "certificate-authority": "certs/ca.crt"},
        )
        config = load_kubeconfig(path)
        assert config.ca_file == str(tmp_path / "certs" / "ca.crt")
        assert config.cert_file == str(tmp_path / "certs" / "client.crt")
        assert config.key_file == "/abs/client.key"

    def test_insecure_skip_verify(self, tmp_path):
        path = write_kubeconfig(
            tmp_path / "config",
            {"token": "abc"},
            cluster={"server": "https://k8s.lab:6443", "insecure-skip-tls-verify": True},
        )
        config = load_kubeconfig(path)
        assert config.verify is False
        assert config.ssl_context() is False

    def test_unknown_cluster(self, tmp_path):
        path = write_kubeconfig(tmp_path / "config", {"token": "abc"}, current="other")
        with pytest.raises(KubeConfigError, match="No entry 'missing'"):
            load_kubeconfig(path)

    def test_no_current_context(self, tmp_path):
        path = tmp_path / "config"
        path.write_text(yaml.safe_dump({"clusters": []}))
        with pytest.raises(KubeConfigError, match="no current-context"):
            load_kubeconfig(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(KubeConfigError, match="Cannot read kubeconfig"):
            load_kubeconfig(tmp_path / "absent")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config"
        path.write_text("clusters: [unterminated")
        with pytest.raises(KubeConfigError, match="Invalid kubeconfig"):
            load_kubeconfig(path)

    def test_server_required(self, tmp_path):
        path = write_kubeconfig(tmp_path / "config", {"token": "abc"}, cluster={"insecure-skip-tls-verify": True})
        with pytest.raises(KubeConfigError, match="has no server"):
            load_kubeconfig(path)


class TestLoadClusterConfig:

    def test_explicit_path(self, no_cluster_env, tmp_path):
        path = write_kubeconfig(tmp_path / "config", {"token": "abc"})
        assert load_cluster_config(str(path)).token == "abc"

    def test_kubeconfig_env(self, no_cluster_env, monkeypatch, tmp_path):
        path = write_kubeconfig(tmp_path / "config", {"token": "from-env"})
        monkeypatch.setenv("KUBECONFIG", str(path))
        assert load_cluster_config().token == "from-env"

    def test_kubeconfig_env_path_list(self, no_cluster_env, monkeypatch, tmp_path):
        path = write_kubeconfig(tmp_path / "second", {"token": "second"})
        missing = tmp_path / "first"
        monkeypatch.setenv("KUBECONFIG", os.pathsep.join([str(missing), str(path)]))
        assert load_cluster_config().token == "second"

    def test_kubeconfig_env_path_list_none_exist(self, no_cluster_env, monkeypatch, tmp_path):
        first, second = tmp_path / "first", tmp_path / "second"
        monkeypatch.setenv("KUBECONFIG", os.pathsep.join([str(first), str(second)]))
        with pytest.raises(KubeConfigError, match="first"):
            load_cluster_config()

    def test_prefers_in_cluster(self, monkeypatch):
        in_cluster = ClusterConfig(server="https://10.96.0.1:443", token="sa", source="in-cluster")
        monkeypatch.setattr("upstaint.kube.config.load_incluster_config", lambda: in_cluster)
        assert load_cluster_config() is in_cluster

    def test_explicit_path_skips_in_cluster(self, monkeypatch, tmp_path):
        monkeypatch.setattr(
            "upstaint.kube.config.load_incluster_config",
            lambda: pytest.fail("in-cluster config should not be consulted"),
        )
        path = write_kubeconfig(tmp_path / "config", {"token": "abc"})
        assert load_cluster_config(str(path)).source == str(path)


def test_bad_ca_file_raises_config_error(tmp_path):
    config = ClusterConfig(server="https://k8s.lab", ca_file=str(tmp_path / "missing.crt"))
    with pytest.raises(KubeConfigError, match="Invalid TLS material"):
        config.ssl_context()
