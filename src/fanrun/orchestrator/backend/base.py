"""Process launcher interface for wrapper execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


@dataclass(slots=True)
class LaunchRequest:
    """Inputs required to start one generated wrapper."""

    item: str
    wrapper_path: Path
    log_path: Path
    env: dict[str, str] = field(default_factory=dict)


class ProcessHandle(Protocol):
    """Minimal view of a running child process."""

    @property
    def pid(self) -> int | None:
        """OS process id, when known."""

    @property
    def returncode(self) -> int | None:
        """Exit status once the process has exited."""

    def has_exited(self) -> bool:
        """Return True once the process is no longer running."""

    def kill(self) -> None:
        """Forcibly stop the process if it is still alive."""


class ProcessLauncher(Protocol):
    """Protocol implemented by wrapper launchers."""

    def launch(self, request: LaunchRequest) -> ProcessHandle:
        """Start the wrapper without blocking and return its handle."""
