"""Tests for runtime command vocabularies."""
import pytest

from labdeploy.core.runtimes import (
    DRY_RUN_SECRET,
    K3sRuntime,
    KubeadmRuntime,
    SwarmRuntime,
    get_runtime,
)
from labdeploy.exceptions import OrchestrationError, ValidationError
from labdeploy.models import BootstrapRequest, Credential, CredentialKind
from labdeploy.services.remote_executor import RemoteExecutor
from labdeploy.services.ssh_service import DryRunTransport


@pytest.fixture
def request_for(control_host, worker_hosts):
    def build(**kwargs):
        return BootstrapRequest(control_host=control_host, worker_hosts=worker_hosts, **kwargs)

    return build


def _credential(secret, **params):
    return Credential(
        kind=CredentialKind.CLUSTER_JOIN,
        secret=secret,
        issued_by="cp1",
        issued_at="2026-01-01T00:00:00",
        params=params,
    )


class TestKubeadm:
    def test_init_command(self, control_host, request_for):
        cmd = KubeadmRuntime().init_command(control_host, request_for(pod_cidr="10.244.0.0/16"))
        script = cmd.argv[-1]
        assert cmd.argv[:2] == ("sudo", "-n")
        assert "swapoff -a" in script
        assert "--pod-network-cidr=10.244.0.0/16" in script
        assert "--control-plane-endpoint 10.0.0.10:6443" in script

    def test_parse_join_line(self, control_host, kubeadm_join_line):
        output = "W0101 warning line\n" + kubeadm_join_line
        secret, params = KubeadmRuntime().parse_credential(
            CredentialKind.CLUSTER_JOIN, control_host, output
        )
        assert secret == "abcdef.0123456789abcdef"
        assert params == {"endpoint": "10.0.0.10:6443", "ca_cert_hash": "sha256:deadbeef"}

    def test_parse_garbage(self, control_host):
        with pytest.raises(OrchestrationError):
            KubeadmRuntime().parse_credential(CredentialKind.CLUSTER_JOIN, control_host, "nope")

    def test_parse_missing_hash(self, control_host):
        with pytest.raises(OrchestrationError):
            KubeadmRuntime().parse_credential(
                CredentialKind.CLUSTER_JOIN,
                control_host,
                "kubeadm join 10.0.0.10:6443 --token abc.def\n",
            )

    def test_join_command_redacts_token(self, control_host, worker_hosts):
        credential = _credential("abc.def", endpoint="10.0.0.10:6443", ca_cert_hash="sha256:ff")
        cmd = KubeadmRuntime().join_command(worker_hosts[0], credential, control_host)
        assert "abc.def" in cmd.argv
        assert "abc.def" not in cmd.display()
        assert "sha256:ff" in cmd.display()

    def test_token_read_is_sensitive(self):
        assert KubeadmRuntime().token_command(CredentialKind.CLUSTER_JOIN).sensitive_output

    def test_network_plugins(self):
        runtime = KubeadmRuntime()
        assert runtime.supported_plugins() == ["calico", "flannel", "weave"]
        assert runtime.requires_network_plugin
        assert "kube-flannel" in runtime.network_command("flannel").remote_string()
        with pytest.raises(ValidationError):
            runtime.network_command("cilium")

    def test_dry_run_fetch_uses_placeholder(self, control_host):
        transport = DryRunTransport()
        secret, params = KubeadmRuntime().fetch_credential(
            RemoteExecutor(transport), control_host, CredentialKind.CLUSTER_JOIN, 5
        )
        assert secret == DRY_RUN_SECRET
        assert params["endpoint"] == "10.0.0.10:6443"
        assert len(transport.executed) == 1


class TestK3s:
    def test_builtin_flannel_needs_no_command(self):
        runtime = K3sRuntime()
        assert runtime.network_command("flannel") is None
        assert not runtime.requires_network_plugin

    def test_calico_disables_bundled_flannel(self, control_host, request_for):
        runtime = K3sRuntime()
        with_calico = runtime.init_command(control_host, request_for(runtime="k3s", network_plugin="calico"))
        default = runtime.init_command(control_host, request_for(runtime="k3s"))
        assert "--flannel-backend=none" in with_calico.argv[-1]
        assert "--flannel-backend=none" not in default.argv[-1]

    def test_parse_token(self, control_host):
        secret, params = K3sRuntime().parse_credential(
            CredentialKind.CLUSTER_JOIN, control_host, "K10abc::server:xyz\n"
        )
        assert secret == "K10abc::server:xyz"
        assert params["url"] == "https://10.0.0.10:6443"

    def test_join_command_redacts_token(self, control_host, worker_hosts):
        cmd = K3sRuntime().join_command(
            worker_hosts[0], _credential("K10abc::server:xyz"), control_host
        )
        assert "K10abc::server:xyz" in cmd.remote_string()
        assert "K10abc::server:xyz" not in cmd.display()


class TestSwarm:
    def test_issues_worker_and_manager_tokens(self):
        runtime = SwarmRuntime()
        assert runtime.join_kind == CredentialKind.SWARM_WORKER
        assert set(runtime.credential_kinds) == {
            CredentialKind.SWARM_WORKER,
            CredentialKind.SWARM_MANAGER,
        }
        assert runtime.token_command(CredentialKind.SWARM_MANAGER).argv[-1] == "manager"

    def test_join_command(self, control_host, worker_hosts):
        credential = Credential(
            kind=CredentialKind.SWARM_WORKER,
            secret="SWMTKN-1-abc",
            issued_by="cp1",
            issued_at="2026-01-01T00:00:00",
            params={"endpoint": "10.0.0.10:2377"},
        )
        cmd = SwarmRuntime().join_command(worker_hosts[0], credential, control_host)
        assert cmd.argv[-1] == "10.0.0.10:2377"
        assert "SWMTKN-1-abc" not in cmd.display()

    def test_empty_token(self, control_host):
        with pytest.raises(OrchestrationError):
            SwarmRuntime().parse_credential(CredentialKind.SWARM_WORKER, control_host, "\n")


def test_get_runtime():
    assert get_runtime("k3s").name == "k3s"
    with pytest.raises(ValidationError):
        get_runtime("nomad")
