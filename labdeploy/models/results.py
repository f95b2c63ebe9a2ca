"""
Result Models

Dataclass models for command results, per-host tasks and run summaries.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, Iterable

from labdeploy.exceptions import StateError


@dataclass
class ExecResult:
    """Result of a remote command execution."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    host: str = ""
    command: str = ""
    duration_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        """Check if command succeeded."""
        return self.returncode == 0

    @property
    def is_failure(self) -> bool:
        """Check if command failed."""
        return self.returncode != 0

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    def __repr__(self) -> str:
        return f"ExecResult(host={self.host}, returncode={self.returncode}, duration={self.duration_seconds:.2f}s)"


class TaskOutcome(Enum):
    """Outcome of a single per-host task."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(Enum):
    """Top-level status of a run."""

    SUCCESS = "success"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass
class DeploymentTask:
    """One (host x action) unit of work."""

    host_id: str
    action: str
    payload: str = ""
    attempt: int = 0
    outcome: TaskOutcome = TaskOutcome.PENDING
    reason: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def is_terminal(self) -> bool:
        return self.outcome != TaskOutcome.PENDING

    def complete(self, outcome: TaskOutcome, reason: Optional[str] = None) -> None:
        """Move the task to its terminal outcome. Allowed exactly once."""
        if outcome == TaskOutcome.PENDING:
            raise StateError(f"Task for '{self.host_id}' cannot complete as pending")
        if self.is_terminal:
            raise StateError(
                f"Task for '{self.host_id}' already {self.outcome.value}",
                context=f"Action: {self.action}",
            )
        self.outcome = outcome
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host_id,
            "action": self.action,
            "attempt": self.attempt,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "duration_seconds": round(self.duration_seconds, 2),
        }


@dataclass
class RunSummary:
    """
    Aggregate of all task outcomes for a run.

    Counts are always derived from the task list, never stored.
    """

    operation: str
    tasks: list[DeploymentTask] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    fatal: bool = False
    stage: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_tasks(
        cls, operation: str, tasks: Iterable[DeploymentTask], **kwargs
    ) -> "RunSummary":
        """Fold a completed task list into a summary."""
        task_list = list(tasks)
        pending = [t.host_id for t in task_list if not t.is_terminal]
        if pending:
            raise StateError(
                "Cannot summarize a run with pending tasks",
                context=f"Pending: {', '.join(pending)}",
            )
        return cls(operation=operation, tasks=task_list, **kwargs)

    def _count(self, outcome: TaskOutcome) -> int:
        return sum(1 for task in self.tasks if task.outcome == outcome)

    @property
    def total(self) -> int:
        return len(self.tasks)

    @property
    def succeeded(self) -> int:
        return self._count(TaskOutcome.SUCCESS)

    @property
    def failed(self) -> int:
        return self._count(TaskOutcome.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(TaskOutcome.SKIPPED)

    @property
    def status(self) -> RunStatus:
        """Fatal runs are FAILED; partial per-host failure is DEGRADED."""
        if self.fatal:
            return RunStatus.FAILED
        if self.failed > 0:
            return RunStatus.DEGRADED
        return RunStatus.SUCCESS

    @property
    def is_degraded(self) -> bool:
        return self.status == RunStatus.DEGRADED

    @property
    def exit_code(self) -> int:
        if self.fatal or self.failed > 0:
            return 1
        return 0

    def outcome_for(self, host_id: str) -> Optional[DeploymentTask]:
        """Get the task recorded for a host."""
        for task in self.tasks:
            if task.host_id == host_id:
                return task
        return None

    def add_note(self, note: str) -> None:
        if note not in self.notes:
            self.notes.append(note)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        data: Dict[str, Any] = {
            "operation": self.operation,
            "status": self.status.value,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "tasks": [task.to_dict() for task in self.tasks],
            "notes": list(self.notes),
        }
        if self.stage:
            data["stage"] = self.stage
        if self.failed_stage:
            data["failed_stage"] = self.failed_stage
        if self.error:
            data["error"] = self.error
        return data

    def __repr__(self) -> str:
        return (
            f"RunSummary(operation={self.operation}, status={self.status.value}, "
            f"total={self.total}, succeeded={self.succeeded}, failed={self.failed}, "
            f"skipped={self.skipped})"
        )
