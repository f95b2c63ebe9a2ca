"""
Bootstrap Orchestrator

Brings up a cluster in strict order: control plane, network plugin,
join credentials, then workers in parallel.
"""

import threading
from dataclasses import replace
from enum import Enum
from typing import Optional

from labdeploy.constants import (
    DEFAULT_PARALLELISM,
    NOTE_JOINS_CANCELLED,
    NOTE_NO_NETWORK_PLUGIN,
)
from labdeploy.core.fanout import CANCELLED, RETRYABLE, FanoutDeployer, failure_reason
from labdeploy.core.runtimes import ClusterRuntime
from labdeploy.exceptions import (
    CredentialConflictError,
    CredentialMissingError,
    ExecError,
    LabDeployError,
    RoleConflictError,
    ValidationError,
)
from labdeploy.logger import DeployLogger
from labdeploy.models.host import Host, HostRole
from labdeploy.models.requests import BootstrapRequest
from labdeploy.models.results import (
    DeploymentTask,
    ExecResult,
    RunSummary,
    TaskOutcome,
)
from labdeploy.services.credential_service import CredentialManager
from labdeploy.services.remote_executor import RemoteExecutor
from labdeploy.services.topology_service import TopologyRegistry

JOIN_ACTION = "join"


class BootstrapStage(Enum):
    """Stages of a cluster bootstrap run."""

    INIT = "init"
    CONTROL_PLANE_UP = "control-plane-up"
    CREDENTIAL_ISSUED = "credential-issued"
    WORKERS_JOINING = "workers-joining"
    READY = "ready"
    FAILED = "failed"


class BootstrapOrchestrator:
    """
    Sequential control-plane bootstrap with a parallel worker-join phase.

    The control-plane stages run on the calling thread. Only the worker
    joins go through the fan-out pool, so every join starts after the
    credential exists.
    """

    def __init__(
        self,
        executor: RemoteExecutor,
        registry: TopologyRegistry,
        credentials: CredentialManager,
        runtime: ClusterRuntime,
        max_workers: int = DEFAULT_PARALLELISM,
        logger: Optional[DeployLogger] = None,
        cancel_event: Optional[threading.Event] = None,
        resume: bool = False,
    ):
        self.executor = executor
        self.registry = registry
        self.credentials = credentials
        self.runtime = runtime
        self.max_workers = max_workers
        self.logger = logger
        self.cancel_event = cancel_event or threading.Event()
        self.resume = resume
        self.stage = BootstrapStage.INIT
        self.history: list[BootstrapStage] = []

    def run(self, request: BootstrapRequest) -> RunSummary:
        """
        Bootstrap the cluster described by request.

        Args:
            request: Control host, workers, plugin and timeouts

        Returns:
            RunSummary over the worker joins. A failed control plane gives a
            fatal summary with every worker skipped.

        Raises:
            ValidationError: Malformed request
            RoleConflictError: Topology or credential conflict, raised before
                any remote command runs
        """
        request.validate()
        if request.runtime != self.runtime.name:
            raise ValidationError(
                f"Request targets runtime '{request.runtime}' "
                f"but orchestrator drives '{self.runtime.name}'"
            )

        self._register(request)
        control = self.registry.get(request.control_host.id)
        notes: list[str] = []

        self._enter(BootstrapStage.INIT)
        if self.cancel_event.is_set():
            return self._abort(request, BootstrapStage.INIT, CANCELLED, notes)

        resumed = self.resume and self._has_credentials()
        if resumed:
            # init is never repeated on a node this cluster already initialized
            note = f"control plane '{control.id}' already initialized, init skipped"
            notes.append(note)
            if self.logger:
                self.logger.success(note)
        else:
            if self.logger:
                self.logger.step(f"Initializing control plane on {control.id}")
            try:
                self.executor.execute(
                    control, self.runtime.init_command(control, request), request.timeout
                )
            except ExecError as e:
                self._record_contact(control, e)
                self._log_failure(e)
                return self._abort(request, BootstrapStage.INIT, e.message, notes)
            except KeyboardInterrupt:
                return self._cancel(request, BootstrapStage.INIT, notes)
            self.registry.mark_reachable(control.id, True)
            if self.logger:
                self.logger.success(f"Control plane initialized on {control.id}")

        self._enter(BootstrapStage.CONTROL_PLANE_UP)
        if not resumed:
            try:
                self._apply_network_plugin(control, request, notes)
            except KeyboardInterrupt:
                return self._cancel(request, BootstrapStage.CONTROL_PLANE_UP, notes)

        if self.logger:
            self.logger.step("Issuing join credentials")
        try:
            for kind in self.runtime.credential_kinds:
                credential = self.credentials.issue(
                    kind,
                    control,
                    fetcher=lambda k, issuer: self.runtime.fetch_credential(
                        self.executor, issuer, k, request.timeout
                    ),
                )
                if self.logger:
                    self.logger.success(f"Credential issued: {credential.redacted_id}")
        except LabDeployError as e:
            if isinstance(e, ExecError):
                self._record_contact(control, e)
            self._log_failure(e)
            return self._abort(
                request, BootstrapStage.CREDENTIAL_ISSUED, e.message, notes
            )
        except KeyboardInterrupt:
            return self._cancel(request, BootstrapStage.CREDENTIAL_ISSUED, notes)
        self._enter(BootstrapStage.CREDENTIAL_ISSUED)

        self._enter(BootstrapStage.WORKERS_JOINING)
        if self.logger:
            self.logger.step(f"Joining {len(request.worker_hosts)} workers")
        fanout = FanoutDeployer(
            self.executor,
            max_workers=self.max_workers,
            timeout=request.timeout,
            registry=self.registry,
            logger=self.logger,
            cancel_event=self.cancel_event,
        )
        workers = [self.registry.get(w.id) for w in request.worker_hosts]
        tasks = fanout.run_each(
            workers,
            JOIN_ACTION,
            self.runtime.name,
            lambda host: self.join_worker(host, request),
        )

        if self.cancel_event.is_set():
            # control plane and credential stay valid; the joins can be resumed
            notes.append(NOTE_JOINS_CANCELLED)
            if self.logger:
                self.logger.warning(NOTE_JOINS_CANCELLED)
            return RunSummary.from_tasks(
                "bootstrap",
                tasks,
                notes=notes,
                stage=BootstrapStage.WORKERS_JOINING.value,
            )

        self._enter(BootstrapStage.READY)
        summary = RunSummary.from_tasks(
            "bootstrap",
            tasks,
            notes=notes,
            stage=BootstrapStage.READY.value,
        )
        if self.logger:
            if summary.is_degraded:
                self.logger.warning(
                    f"Cluster ready, {summary.failed} of {summary.total} workers failed to join"
                )
            else:
                self.logger.success(f"Cluster ready with {summary.succeeded} workers")
        return summary

    def join_worker(self, host: Host, request: BootstrapRequest) -> ExecResult:
        """
        Attach one worker using the issued join credential.

        Raises:
            CredentialMissingError: No join credential issued yet
            ExecError: Join command failed
        """
        credential = self.credentials.get(self.runtime.join_kind)
        if credential is None:
            raise CredentialMissingError(self.runtime.join_kind.value, host.id)

        control = self.registry.control_plane or request.control_host
        command = self.runtime.join_command(host, credential, control)
        return self.executor.execute(host, command, request.timeout)

    def _register(self, request: BootstrapRequest) -> None:
        """Record hosts and roles; all conflicts surface before mutation."""
        control = request.control_host
        current = self.registry.control_plane
        if current is not None and current.id != control.id:
            raise RoleConflictError(
                f"Cannot bootstrap '{control.id}' as control-plane",
                context=f"'{current.id}' already holds the control-plane role",
            )

        for kind in self.runtime.credential_kinds:
            existing = self.credentials.get(kind)
            if existing is not None and existing.issued_by != control.id:
                raise CredentialConflictError(kind.value, existing.issued_by, control.id)

        for host, role in [(control, HostRole.CONTROL_PLANE)] + [
            (worker, HostRole.WORKER) for worker in request.worker_hosts
        ]:
            if host.id in self.registry:
                self.registry.set_role(host.id, role)
            else:
                self.registry.add_host(replace(host, role=role))

    def _apply_network_plugin(
        self, control: Host, request: BootstrapRequest, notes: list[str]
    ) -> None:
        plugin = request.network_plugin
        if not plugin:
            if self.runtime.requires_network_plugin:
                notes.append(NOTE_NO_NETWORK_PLUGIN)
                if self.logger:
                    self.logger.warning(NOTE_NO_NETWORK_PLUGIN)
            return

        if self.logger:
            self.logger.step(f"Applying network plugin '{plugin}'")
        try:
            command = self.runtime.network_command(plugin)
        except ValidationError as e:
            note = f"network plugin '{plugin}' skipped: {e.message}"
            notes.append(note)
            if self.logger:
                self.logger.warning(note)
            return

        if command is None:
            if self.logger:
                self.logger.success(f"Network plugin '{plugin}' is built into {self.runtime.name}")
            return

        try:
            self.executor.execute(control, command, request.timeout)
        except ExecError as e:
            note = f"network plugin '{plugin}' failed: {failure_reason(e)}"
            notes.append(note)
            if self.logger:
                self.logger.warning(note)
            return
        if self.logger:
            self.logger.success(f"Network plugin '{plugin}' applied")

    def _abort(
        self,
        request: BootstrapRequest,
        stage: BootstrapStage,
        error: str,
        notes: list[str],
    ) -> RunSummary:
        reason = CANCELLED if error == CANCELLED else f"{stage.value} failed"
        tasks = []
        for worker in request.worker_hosts:
            task = DeploymentTask(
                host_id=worker.id, action=JOIN_ACTION, payload=self.runtime.name
            )
            task.complete(TaskOutcome.SKIPPED, reason)
            tasks.append(task)

        self._enter(BootstrapStage.FAILED)
        return RunSummary.from_tasks(
            "bootstrap",
            tasks,
            notes=notes,
            fatal=True,
            stage=BootstrapStage.FAILED.value,
            failed_stage=stage.value,
            error=error,
        )

    def _has_credentials(self) -> bool:
        """All join credentials present (issuer already checked by _register)."""
        return all(
            self.credentials.get(kind) is not None
            for kind in self.runtime.credential_kinds
        )

    def _cancel(
        self, request: BootstrapRequest, stage: BootstrapStage, notes: list[str]
    ) -> RunSummary:
        """Ctrl-C during a control-plane stage: stop before any join."""
        self.cancel_event.set()
        if self.logger:
            self.logger.warning(f"Cancelled during {stage.value}")
        return self._abort(request, stage, CANCELLED, notes)

    def _record_contact(self, host: Host, error: ExecError) -> None:
        self.registry.mark_reachable(host.id, not isinstance(error, RETRYABLE))

    def _enter(self, stage: BootstrapStage) -> None:
        self.stage = stage
        self.history.append(stage)
        if self.logger:
            self.logger.log(f"Bootstrap stage: {stage.value}")

    def _log_failure(self, error: LabDeployError) -> None:
        if self.logger:
            self.logger.log_error(error.message, context=error.context)
