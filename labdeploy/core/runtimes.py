"""
Cluster Runtimes

Command vocabulary for each supported cluster tool. The orchestration
core only sequences these commands; it never interprets them.
"""

import shlex
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from labdeploy.constants import (
    KUBE_API_PORT,
    SWARM_PORT,
    K3S_INSTALL_URL,
    CALICO_OPERATOR_MANIFEST,
    CALICO_RESOURCES_MANIFEST,
    FLANNEL_MANIFEST,
    WEAVE_MANIFEST,
)
from labdeploy.exceptions import OrchestrationError, ValidationError
from labdeploy.models.command import Command
from labdeploy.models.credential import Credential, CredentialKind
from labdeploy.models.host import Host
from labdeploy.models.requests import BootstrapRequest

DRY_RUN_SECRET = "dry-run-token"

KUBECONFIG = "/etc/kubernetes/admin.conf"


class ClusterRuntime(ABC):
    """
    Base class for a cluster tool.

    Subclasses provide the init, token and join commands plus any
    network plugins they can install after the control plane is up.
    """

    name: str = ""
    join_kind: CredentialKind = CredentialKind.CLUSTER_JOIN
    credential_kinds: Tuple[CredentialKind, ...] = (CredentialKind.CLUSTER_JOIN,)
    # plugins that ship with the runtime and need no extra command
    builtin_plugins: frozenset = frozenset()
    # without any plugin the cluster has no working pod network
    requires_network_plugin: bool = False

    @abstractmethod
    def init_command(self, host: Host, request: BootstrapRequest) -> Command:
        """Command that initializes the control plane on host."""

    @abstractmethod
    def token_command(self, kind: CredentialKind) -> Command:
        """Command that prints the join secret of kind."""

    @abstractmethod
    def parse_credential(
        self, kind: CredentialKind, issuer: Host, output: str
    ) -> Tuple[str, Dict[str, str]]:
        """Extract (secret, params) from token command output."""

    @abstractmethod
    def join_command(
        self, host: Host, credential: Credential, control_host: Host
    ) -> Command:
        """Command that attaches host to the cluster."""

    def network_commands(self) -> Dict[str, Command]:
        """Installable network plugins by name."""
        return {}

    def supports(self, plugin: str) -> bool:
        return plugin in self.builtin_plugins or plugin in self.network_commands()

    def network_command(self, plugin: str) -> Optional[Command]:
        """
        Command installing plugin, or None for a built-in plugin.

        Raises:
            ValidationError: Plugin not supported by this runtime
        """
        if plugin in self.builtin_plugins:
            return None
        commands = self.network_commands()
        if plugin not in commands:
            raise ValidationError(
                f"Network plugin '{plugin}' is not supported by {self.name}",
                context=f"Supported: {', '.join(self.supported_plugins()) or 'none'}",
            )
        return commands[plugin]

    def supported_plugins(self) -> list[str]:
        return sorted(set(self.builtin_plugins) | set(self.network_commands()))

    def fetch_credential(
        self, executor, issuer: Host, kind: CredentialKind, timeout: float
    ) -> Tuple[str, Dict[str, str]]:
        """
        Read a join secret from the control plane.

        Args:
            executor: RemoteExecutor
            issuer: Control-plane host
            kind: Credential kind
            timeout: Per-command timeout

        Returns:
            (secret, params)
        """
        if executor.dry_run:
            executor.execute(issuer, self.token_command(kind), timeout)
            return DRY_RUN_SECRET, self.dry_run_params(issuer)
        result = executor.execute(issuer, self.token_command(kind), timeout)
        return self.parse_credential(kind, issuer, result.stdout)

    def dry_run_params(self, issuer: Host) -> Dict[str, str]:
        return {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name})"


class KubeadmRuntime(ClusterRuntime):
    """Upstream Kubernetes bootstrapped with kubeadm."""

    name = "kubeadm"
    requires_network_plugin = True

    def init_command(self, host: Host, request: BootstrapRequest) -> Command:
        endpoint = f"{host.address}:{KUBE_API_PORT}"
        script = " && ".join(
            [
                # kubelet refuses to start with swap enabled
                "swapoff -a",
                "sed -i '/ swap / s/^\\(.*\\)$/#\\1/g' /etc/fstab",
                "kubeadm init"
                f" --pod-network-cidr={shlex.quote(request.pod_cidr)}"
                f" --control-plane-endpoint {shlex.quote(endpoint)}",
                "mkdir -p $HOME/.kube",
                f"cp -f {KUBECONFIG} $HOME/.kube/config",
                "chown $(id -u):$(id -g) $HOME/.kube/config",
            ]
        )
        return Command.shell(script).with_sudo()

    def token_command(self, kind: CredentialKind) -> Command:
        return Command.of(
            "kubeadm", "token", "create", "--print-join-command", sensitive_output=True
        ).with_sudo()

    def parse_credential(
        self, kind: CredentialKind, issuer: Host, output: str
    ) -> Tuple[str, Dict[str, str]]:
        # kubeadm join 10.0.0.10:6443 --token abc.def --discovery-token-ca-cert-hash sha256:...
        lines = [ln.strip() for ln in output.splitlines()]
        line = next((ln for ln in lines if ln.startswith("kubeadm join")), "")
        args = shlex.split(line)
        if len(args) < 3:
            raise OrchestrationError(
                f"Could not read join command from '{issuer.id}'",
                context="kubeadm token create --print-join-command returned no join line",
            )

        params = {"endpoint": args[2]}
        token = None
        for flag, value in zip(args, args[1:]):
            if flag == "--token":
                token = value
            elif flag == "--discovery-token-ca-cert-hash":
                params["ca_cert_hash"] = value

        if not token or "ca_cert_hash" not in params:
            raise OrchestrationError(
                f"Incomplete join command from '{issuer.id}'",
                context="Expected --token and --discovery-token-ca-cert-hash",
            )
        return token, params

    def dry_run_params(self, issuer: Host) -> Dict[str, str]:
        return {
            "endpoint": f"{issuer.address}:{KUBE_API_PORT}",
            "ca_cert_hash": "sha256:dry-run",
        }

    def join_command(
        self, host: Host, credential: Credential, control_host: Host
    ) -> Command:
        endpoint = credential.params.get(
            "endpoint", f"{control_host.address}:{KUBE_API_PORT}"
        )
        return Command.of(
            "kubeadm",
            "join",
            endpoint,
            "--token",
            credential.secret,
            "--discovery-token-ca-cert-hash",
            credential.params.get("ca_cert_hash", ""),
            secrets=(credential.secret,),
        ).with_sudo()

    def network_commands(self) -> Dict[str, Command]:
        kubectl = f"kubectl --kubeconfig {KUBECONFIG}"
        return {
            "calico": Command.shell(
                f"{kubectl} create -f {CALICO_OPERATOR_MANIFEST}"
                f" && {kubectl} create -f {CALICO_RESOURCES_MANIFEST}"
                f" && {kubectl} wait --for=condition=ready pods --all"
                " -n calico-system --timeout=300s"
            ).with_sudo(),
            "flannel": Command.of(
                "kubectl", "--kubeconfig", KUBECONFIG, "apply", "-f", FLANNEL_MANIFEST
            ).with_sudo(),
            "weave": Command.shell(
                f"{kubectl} apply -f \"{WEAVE_MANIFEST}?k8s-version="
                f"$({kubectl} version | base64 | tr -d '\\n')\""
            ).with_sudo(),
        }


class K3sRuntime(ClusterRuntime):
    """Lightweight Kubernetes (k3s) with its bundled flannel."""

    name = "k3s"
    builtin_plugins = frozenset({"flannel"})

    def init_command(self, host: Host, request: BootstrapRequest) -> Command:
        server_args = [
            "server",
            "--cluster-cidr",
            request.pod_cidr,
            "--node-ip",
            host.address,
        ]
        if request.network_plugin in self.network_commands():
            server_args += ["--flannel-backend=none", "--disable-network-policy"]
        script = f"curl -sfL {K3S_INSTALL_URL} | sh -s - " + shlex.join(server_args)
        return Command.shell(script).with_sudo()

    def token_command(self, kind: CredentialKind) -> Command:
        return Command.of(
            "cat", "/var/lib/rancher/k3s/server/node-token", sensitive_output=True
        ).with_sudo()

    def parse_credential(
        self, kind: CredentialKind, issuer: Host, output: str
    ) -> Tuple[str, Dict[str, str]]:
        token = output.strip()
        if not token:
            raise OrchestrationError(f"Empty node token on '{issuer.id}'")
        return token, {"url": f"https://{issuer.address}:{KUBE_API_PORT}"}

    def dry_run_params(self, issuer: Host) -> Dict[str, str]:
        return {"url": f"https://{issuer.address}:{KUBE_API_PORT}"}

    def join_command(
        self, host: Host, credential: Credential, control_host: Host
    ) -> Command:
        url = credential.params.get(
            "url", f"https://{control_host.address}:{KUBE_API_PORT}"
        )
        script = (
            f"curl -sfL {K3S_INSTALL_URL} | "
            f"K3S_URL={shlex.quote(url)} K3S_TOKEN={shlex.quote(credential.secret)} sh -"
        )
        return Command.shell(script, secrets=(credential.secret,)).with_sudo()

    def network_commands(self) -> Dict[str, Command]:
        return {
            "calico": Command.shell(
                f"k3s kubectl create -f {CALICO_OPERATOR_MANIFEST}"
                f" && k3s kubectl create -f {CALICO_RESOURCES_MANIFEST}"
            ).with_sudo(),
        }


class SwarmRuntime(ClusterRuntime):
    """Docker Swarm mode; overlay networking is built in."""

    name = "swarm"
    join_kind = CredentialKind.SWARM_WORKER
    credential_kinds = (CredentialKind.SWARM_WORKER, CredentialKind.SWARM_MANAGER)
    builtin_plugins = frozenset({"overlay"})

    def init_command(self, host: Host, request: BootstrapRequest) -> Command:
        return Command.of(
            "docker", "swarm", "init", "--advertise-addr", host.address
        ).with_sudo()

    def token_command(self, kind: CredentialKind) -> Command:
        role = "manager" if kind == CredentialKind.SWARM_MANAGER else "worker"
        return Command.of(
            "docker", "swarm", "join-token", "-q", role, sensitive_output=True
        ).with_sudo()

    def parse_credential(
        self, kind: CredentialKind, issuer: Host, output: str
    ) -> Tuple[str, Dict[str, str]]:
        token = output.strip()
        if not token:
            raise OrchestrationError(f"Empty swarm join token on '{issuer.id}'")
        return token, {"endpoint": f"{issuer.address}:{SWARM_PORT}"}

    def dry_run_params(self, issuer: Host) -> Dict[str, str]:
        return {"endpoint": f"{issuer.address}:{SWARM_PORT}"}

    def join_command(
        self, host: Host, credential: Credential, control_host: Host
    ) -> Command:
        endpoint = credential.params.get(
            "endpoint", f"{control_host.address}:{SWARM_PORT}"
        )
        return Command.of(
            "docker",
            "swarm",
            "join",
            "--token",
            credential.secret,
            endpoint,
            secrets=(credential.secret,),
        ).with_sudo()


RUNTIMES: Dict[str, ClusterRuntime] = {
    runtime.name: runtime
    for runtime in (KubeadmRuntime(), K3sRuntime(), SwarmRuntime())
}


def get_runtime(name: str) -> ClusterRuntime:
    """
    Look up a runtime by name.

    Raises:
        ValidationError: Unknown runtime
    """
    runtime = RUNTIMES.get(name)
    if runtime is None:
        raise ValidationError(
            f"Unknown runtime '{name}'",
            context=f"Supported: {', '.join(sorted(RUNTIMES))}",
        )
    return runtime
