"""
Deployment Actions

Per-host actions the fan-out deployer can apply: container runs, compose
stacks, image pulls, services, manifests and runtime installs.
"""

import inspect
import shlex
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from labdeploy.constants import (
    DOCKER_INSTALL_URL,
    DOCKER_COMPOSE_RELEASES,
    KUBERNETES_APT_REPO,
)
from labdeploy.exceptions import ValidationError
from labdeploy.models.command import Command
from labdeploy.models.host import Host


@dataclass(frozen=True)
class DeployAction:
    """A named action producing the command to run on each host."""

    name: str
    payload: str
    build: Callable[[Host], Command]

    def command_for(self, host: Host) -> Command:
        return self.build(host)

    def __repr__(self) -> str:
        return f"DeployAction(name={self.name}, payload={self.payload})"


def _static(name: str, payload: str, command: Command) -> DeployAction:
    return DeployAction(name=name, payload=payload, build=lambda host: command)


def run_container(
    image: str, name: Optional[str] = None, ports: Optional[str] = None
) -> DeployAction:
    """docker run -d [--name NAME] [-p PORTS] IMAGE"""
    argv = ["docker", "run", "-d"]
    if name:
        argv += ["--name", name]
    if ports:
        for mapping in ports.split(","):
            argv += ["-p", mapping.strip()]
    argv.append(image)
    return _static("run-container", image, Command.of(*argv).with_sudo())


def compose_up(file: str, project: Optional[str] = None) -> DeployAction:
    """docker compose [-p PROJECT] -f FILE up -d"""
    argv = ["docker", "compose"]
    if project:
        argv += ["-p", project]
    argv += ["-f", file, "up", "-d"]
    return _static("compose-up", file, Command.of(*argv).with_sudo())


def pull_image(image: str) -> DeployAction:
    return _static("pull-image", image, Command.of("docker", "pull", image).with_sudo())


def stop_container(name: str) -> DeployAction:
    return _static(
        "stop-container", name, Command.of("docker", "stop", name).with_sudo()
    )


def start_service(service: str) -> DeployAction:
    return _static(
        "start-service",
        service,
        Command.of("systemctl", "enable", "--now", service).with_sudo(),
    )


def kubectl_apply(manifest: str) -> DeployAction:
    return _static(
        "kubectl-apply", manifest, Command.of("kubectl", "apply", "-f", manifest)
    )


def run_command(argv: Sequence[str]) -> DeployAction:
    """Arbitrary argument vector, passed through without a shell."""
    command = Command.of(*argv)
    return _static("run-command", command.display(), command)


def install_docker() -> DeployAction:
    script = " && ".join(
        [
            "tmp=$(mktemp)",
            f'curl -fsSL {DOCKER_INSTALL_URL} -o "$tmp"',
            'sh "$tmp"',
            'rm -f "$tmp"',
            "systemctl enable --now docker",
        ]
    )
    return _static("install-docker", DOCKER_INSTALL_URL, Command.shell(script).with_sudo())


def install_docker_compose() -> DeployAction:
    plugin_dir = "/usr/local/lib/docker/cli-plugins"
    script = " && ".join(
        [
            f"mkdir -p {plugin_dir}",
            f'curl -fsSL "{DOCKER_COMPOSE_RELEASES}/latest/download/'
            f'docker-compose-$(uname -s)-$(uname -m)" -o {plugin_dir}/docker-compose',
            f"chmod +x {plugin_dir}/docker-compose",
        ]
    )
    return _static(
        "install-docker-compose", DOCKER_COMPOSE_RELEASES, Command.shell(script).with_sudo()
    )


def install_kubernetes() -> DeployAction:
    keyring = "/etc/apt/keyrings/kubernetes-apt-keyring.gpg"
    script = " && ".join(
        [
            "apt-get update",
            "apt-get install -y apt-transport-https ca-certificates curl gpg",
            "mkdir -p /etc/apt/keyrings",
            f"curl -fsSL {KUBERNETES_APT_REPO}Release.key | gpg --dearmor --yes -o {keyring}",
            f"echo {shlex.quote(f'deb [signed-by={keyring}] {KUBERNETES_APT_REPO} /')}"
            " > /etc/apt/sources.list.d/kubernetes.list",
            "apt-get update",
            "apt-get install -y kubelet kubeadm kubectl",
            "apt-mark hold kubelet kubeadm kubectl",
        ]
    )
    return _static(
        "install-kubernetes", KUBERNETES_APT_REPO, Command.shell(script).with_sudo()
    )


# name -> (factory, required parameters)
ACTIONS: Dict[str, tuple] = {
    "run-container": (run_container, ("image",)),
    "compose-up": (compose_up, ("file",)),
    "pull-image": (pull_image, ("image",)),
    "stop-container": (stop_container, ("name",)),
    "start-service": (start_service, ("service",)),
    "kubectl-apply": (kubectl_apply, ("manifest",)),
    "run-command": (run_command, ("argv",)),
    "install-docker": (install_docker, ()),
    "install-docker-compose": (install_docker_compose, ()),
    "install-kubernetes": (install_kubernetes, ()),
}


def build_action(name: str, /, **params) -> DeployAction:
    """
    Build an action from CLI-style parameters.

    Args:
        name: Action name (see ACTIONS)
        **params: Action parameters; None values are ignored

    Raises:
        ValidationError: Unknown action or missing parameter
    """
    if name not in ACTIONS:
        raise ValidationError(
            f"Unknown action '{name}'",
            context=f"Available actions: {', '.join(ACTIONS)}",
        )

    factory, required = ACTIONS[name]
    supplied = {key: value for key, value in params.items() if value}
    missing = [key for key in required if key not in supplied]
    if missing:
        raise ValidationError(
            f"Action '{name}' requires: {', '.join('--' + key for key in missing)}"
        )

    accepted = inspect.signature(factory).parameters
    return factory(**{key: value for key, value in supplied.items() if key in accepted})
