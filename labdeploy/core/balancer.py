"""
Load-Balancer Config Synthesizer

Renders an HAProxy configuration from the worker hosts in the topology
and publishes it to the balancer hosts.
"""

import time
from pathlib import Path
from typing import Optional, Sequence

from jinja2 import Template

from labdeploy.constants import (
    BALANCER_TEMPLATE,
    DEFAULT_BALANCER_CONFIG_PATH,
    DEFAULT_BALANCER_FRONTEND_PORT,
    DEFAULT_BALANCER_RELOAD,
    DEFAULT_COMMAND_TIMEOUT,
    NOTE_NO_BALANCER,
)
from labdeploy.core.fanout import failure_reason
from labdeploy.exceptions import ConfigurationError, ExecError
from labdeploy.logger import DeployLogger
from labdeploy.models.command import Command
from labdeploy.models.host import Host, HostRole
from labdeploy.models.results import (
    DeploymentTask,
    ExecResult,
    RunSummary,
    TaskOutcome,
)
from labdeploy.services.remote_executor import RemoteExecutor
from labdeploy.services.topology_service import TopologyRegistry

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

PUBLISH_ACTION = "publish-balancer"


def load_template(path: Optional[Path] = None) -> Template:
    """
    Load the balancer Jinja2 template.

    Args:
        path: Template file (defaults to the bundled HAProxy template)

    Raises:
        ConfigurationError: If the template file is missing
    """
    path = Path(path) if path else TEMPLATES_DIR / BALANCER_TEMPLATE
    if not path.exists():
        raise ConfigurationError(f"Balancer template not found: {path}")
    return Template(path.read_text(encoding="utf-8"))


class LoadBalancerSynthesizer:
    """
    HAProxy config generation and publication.

    Rendering depends only on the registry's worker list, so publishing
    the same topology twice writes the same file.
    """

    def __init__(
        self,
        executor: RemoteExecutor,
        template: Optional[Template] = None,
        config_path: str = DEFAULT_BALANCER_CONFIG_PATH,
        reload_command: Sequence[str] = DEFAULT_BALANCER_RELOAD,
        frontend_port: int = DEFAULT_BALANCER_FRONTEND_PORT,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        logger: Optional[DeployLogger] = None,
    ):
        self.executor = executor
        self.template = template or load_template()
        self.config_path = config_path
        self.reload_command = tuple(reload_command)
        self.frontend_port = frontend_port
        self.timeout = timeout
        self.logger = logger

    def render(self, registry: TopologyRegistry) -> str:
        """Render config text for the current worker hosts."""
        servers = [
            {"id": host.id, "address": host.address, "port": host.port}
            for host in registry.hosts_by_role(HostRole.WORKER)
        ]
        return self.template.render(
            frontend_name="labdeploy_frontend",
            backend_name="labdeploy_workers",
            frontend_port=self.frontend_port,
            servers=servers,
        )

    def publish(self, host: Host, text: str) -> ExecResult:
        """
        Write config text on host and reload the balancer.

        Returns:
            ExecResult of the reload command

        Raises:
            ExecError: Write or reload failed
        """
        # tee echoes the whole file back on stdout
        write = Command.of(
            "tee", self.config_path, stdin=text, sensitive_output=True
        ).with_sudo()
        self.executor.execute(host, write, self.timeout)
        reload = Command.of(*self.reload_command).with_sudo()
        return self.executor.execute(host, reload, self.timeout)

    def configure(
        self, registry: TopologyRegistry, balancer_ids: Optional[list[str]] = None
    ) -> RunSummary:
        """
        Render once and publish to every balancer host.

        Args:
            registry: Topology to render from
            balancer_ids: Restrict publication to these balancer hosts

        Returns:
            RunSummary with one task per balancer host, or an empty summary
            noting that no balancer is configured
        """
        balancers = [
            host
            for host in registry.hosts_by_role(HostRole.BALANCER)
            if not balancer_ids or host.id in balancer_ids
        ]
        if not balancers:
            if self.logger:
                self.logger.warning(NOTE_NO_BALANCER)
            return RunSummary(operation=PUBLISH_ACTION, notes=[NOTE_NO_BALANCER])

        text = self.render(registry)
        tasks = []
        for host in balancers:
            task = DeploymentTask(
                host_id=host.id, action=PUBLISH_ACTION, payload=self.config_path
            )
            task.attempt = 1
            start_time = time.time()
            try:
                self.publish(host, text)
            except ExecError as e:
                task.complete(TaskOutcome.FAILED, failure_reason(e))
                if self.logger:
                    self.logger.log(e.format_message(), "ERROR")
            else:
                task.complete(TaskOutcome.SUCCESS)
            task.duration_seconds = time.time() - start_time

            if self.logger:
                ok = task.outcome == TaskOutcome.SUCCESS
                self.logger.host_result(
                    host.id, ok, "config published" if ok else task.reason
                )
            tasks.append(task)

        summary = RunSummary.from_tasks(PUBLISH_ACTION, tasks)
        if registry.hosts_by_role(HostRole.WORKER):
            return summary
        summary.add_note("no worker hosts registered, backend is empty")
        return summary
