"""
Fan-out Deployer

Applies one action to many hosts through a bounded thread pool. Every
host gets exactly one DeploymentTask; a failure on one host never stops
the others.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Optional

from labdeploy.constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_PARALLELISM,
    DEFAULT_RETRIES,
)
from labdeploy.core.actions import DeployAction
from labdeploy.exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    ExecError,
    LabDeployError,
    UnreachableError,
    ValidationError,
)
from labdeploy.logger import DeployLogger
from labdeploy.models.host import Host
from labdeploy.models.results import DeploymentTask, RunSummary, TaskOutcome
from labdeploy.services.remote_executor import RemoteExecutor
from labdeploy.services.topology_service import TopologyRegistry

CANCELLED = "cancelled"
INTERRUPTED = "interrupted"

# Only transport-level failures are worth another attempt
RETRYABLE = (UnreachableError, CommandTimeoutError)


def failure_reason(error: LabDeployError) -> str:
    """Short reason recorded on a failed task."""
    if isinstance(error, CommandFailedError):
        return f"{error.reason} (exit {error.code})"
    if isinstance(error, ExecError):
        return error.reason
    return error.message


class FanoutDeployer:
    """
    Bounded parallel executor of per-host work.

    Responsibilities:
    - One task per host, duplicates rejected up front
    - Barrier on all futures before summarizing
    - Cooperative cancellation between tasks, Ctrl-C included
    - Retries for unreachable/timeout only
    - Reachability updates on the topology registry
    """

    def __init__(
        self,
        executor: RemoteExecutor,
        max_workers: int = DEFAULT_PARALLELISM,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        registry: Optional[TopologyRegistry] = None,
        logger: Optional[DeployLogger] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize deployer.

        Args:
            executor: Remote executor shared by all tasks
            max_workers: Upper bound on concurrent remote calls
            timeout: Per-command timeout in seconds
            retries: Extra attempts after an unreachable/timeout failure
            registry: Topology to record reachability in (optional)
            logger: Run logger (optional)
            cancel_event: Set to stop starting new tasks
        """
        if max_workers < 1:
            raise ValidationError("Parallelism must be at least 1")
        if retries < 0:
            raise ValidationError("Retries cannot be negative")
        if timeout <= 0:
            raise ValidationError("Timeout must be positive")

        self.executor = executor
        self.max_workers = max_workers
        self.timeout = timeout
        self.retries = retries
        self.registry = registry
        self.logger = logger
        self.cancel_event = cancel_event or threading.Event()

    def deploy(self, hosts: Iterable[Host], action: DeployAction) -> RunSummary:
        """
        Apply action to every host.

        Args:
            hosts: Target hosts (ids must be unique)
            action: Action to apply

        Returns:
            RunSummary with one task per host, in input order
        """
        tasks = self.run_each(
            hosts,
            action.name,
            action.payload,
            lambda host: self.executor.execute(
                host, action.command_for(host), self.timeout
            ),
        )
        return RunSummary.from_tasks(action.name, tasks)

    def run_each(
        self,
        hosts: Iterable[Host],
        action_name: str,
        payload: str,
        work: Callable[[Host], object],
    ) -> list[DeploymentTask]:
        """
        Run work once per host on the pool and wait for all of it.

        Args:
            hosts: Target hosts
            action_name: Name recorded on each task
            payload: Payload recorded on each task
            work: Callable raising ExecError (or another LabDeployError) on failure

        Returns:
            Terminal DeploymentTasks in input order. After Ctrl-C the
            tasks not yet started are SKIPPED "cancelled" and
            cancel_event is left set.

        Raises:
            ValidationError: Duplicate host ids
        """
        host_list = list(hosts)
        seen: set[str] = set()
        for host in host_list:
            if host.id in seen:
                raise ValidationError(f"Host '{host.id}' listed more than once")
            seen.add(host.id)

        tasks = [
            DeploymentTask(host_id=host.id, action=action_name, payload=payload)
            for host in host_list
        ]
        if not host_list:
            return tasks

        workers = min(self.max_workers, len(host_list))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self._run_task, host, task, work): task
                for host, task in zip(host_list, tasks)
            }
            self._wait(futures)

        return tasks

    def _wait(self, futures) -> None:
        """Barrier on every future; Ctrl-C cancels but keeps waiting."""
        pending = set(futures)
        while pending:
            try:
                for future in as_completed(pending):
                    pending.discard(future)
                    # Surface programming errors; task failures are recorded inside
                    future.result()
            except KeyboardInterrupt:
                # queued tasks drain as skipped, in-flight commands finish
                if not self.cancel_event.is_set() and self.logger:
                    self.logger.warning("Cancelled, waiting for running commands")
                self.cancel_event.set()

    def _run_task(
        self, host: Host, task: DeploymentTask, work: Callable[[Host], object]
    ) -> None:
        if self.cancel_event.is_set():
            task.complete(TaskOutcome.SKIPPED, CANCELLED)
            self._log_result(host, task)
            return

        start_time = time.time()
        while True:
            task.attempt += 1
            try:
                work(host)
            except RETRYABLE as e:
                if task.attempt <= self.retries and not self.cancel_event.is_set():
                    if self.logger:
                        self.logger.log(
                            f"[{host.id}] {e.message}, retrying "
                            f"({task.attempt}/{self.retries})",
                            "WARNING",
                        )
                    continue
                self._mark_reachable(host, False)
                self._fail(task, e)
            except ExecError as e:
                # the host answered, the command itself failed
                self._mark_reachable(host, True)
                self._fail(task, e)
            except LabDeployError as e:
                self._fail(task, e)
            except KeyboardInterrupt:
                self.cancel_event.set()
                task.complete(TaskOutcome.FAILED, INTERRUPTED)
                task.duration_seconds = time.time() - start_time
                self._log_result(host, task)
                raise
            else:
                self._mark_reachable(host, True)
                task.complete(TaskOutcome.SUCCESS)
            break

        task.duration_seconds = time.time() - start_time
        self._log_result(host, task)

    def _fail(self, task: DeploymentTask, error: LabDeployError) -> None:
        task.complete(TaskOutcome.FAILED, failure_reason(error))
        if self.logger:
            self.logger.log(error.format_message(), "ERROR")

    def _mark_reachable(self, host: Host, reachable: bool) -> None:
        if self.registry is not None and host.id in self.registry:
            self.registry.mark_reachable(host.id, reachable)

    def _log_result(self, host: Host, task: DeploymentTask) -> None:
        if not self.logger:
            return
        if task.outcome == TaskOutcome.SUCCESS:
            self.logger.host_result(host.id, True, f"{task.action} ok")
        else:
            self.logger.host_result(
                host.id, False, f"{task.action} {task.outcome.value}: {task.reason}"
            )
