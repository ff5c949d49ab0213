"""Domain models for per-item jobs and their outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from fanrun.orchestrator.backend.base import ProcessHandle


class ItemStatus(str, Enum):
    """Per-item lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.SUCCEEDED, ItemStatus.FAILED)


class FailureClass(str, Enum):
    """Why an item ended in the failed state."""

    RETRIES_EXHAUSTED = "retries_exhausted"
    ABNORMAL_TERMINATION = "abnormal_termination"
    LAUNCH_ERROR = "launch_error"


@dataclass(slots=True)
class JobArtifacts:
    """Workdir paths owned by one item for the duration of a run."""

    wrapper_path: Path
    success_marker: Path
    failure_marker: Path
    log_path: Path


@dataclass(slots=True)
class Job:
    """Runtime unit for one item while it occupies a worker slot."""

    item: str
    command: str
    artifacts: JobArtifacts
    handle: ProcessHandle
    status: ItemStatus = ItemStatus.RUNNING


@dataclass(slots=True)
class ItemOutcome:
    """Terminal result of one item as seen by the orchestrator."""

    item: str
    status: ItemStatus
    failure_class: FailureClass | None = None
    attempts: int | None = None
    exit_code: int | None = None
    log_path: Path | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ItemStatus.SUCCEEDED
