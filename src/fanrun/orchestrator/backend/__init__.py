"""Process launcher implementations."""

from fanrun.orchestrator.backend.base import LaunchRequest, ProcessHandle, ProcessLauncher
from fanrun.orchestrator.backend.launcher import LaunchError, SubprocessHandle, SubprocessLauncher

__all__ = [
    "LaunchError",
    "LaunchRequest",
    "ProcessHandle",
    "ProcessLauncher",
    "SubprocessHandle",
    "SubprocessLauncher",
]
