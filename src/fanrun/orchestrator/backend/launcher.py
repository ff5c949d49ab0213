"""Subprocess-based launcher for generated wrapper scripts."""

from __future__ import annotations

import os
import signal
import subprocess
import sys

from fanrun.orchestrator.backend.base import LaunchRequest


class LaunchError(RuntimeError):
    """Wrapper could not be started, with retryability hint."""

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


class SubprocessHandle:
    """Process handle backed by :class:`subprocess.Popen`."""

    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        self._process = process

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    def has_exited(self) -> bool:
        return self._process.poll() is not None

    def kill(self) -> None:
        _terminate_process(self._process)


class SubprocessLauncher:
    """Start each wrapper as a detached interpreter process."""

    def __init__(self, python_executable: str | None = None) -> None:
        self.python_executable = python_executable or sys.executable

    def launch(self, request: LaunchRequest) -> SubprocessHandle:
        env = os.environ.copy()
        env.update(request.env)
        request.log_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with request.log_path.open("ab") as log_handle:
                process = subprocess.Popen(  # noqa: S603
                    [self.python_executable, str(request.wrapper_path)],
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=log_handle,
                    stderr=subprocess.STDOUT,
                    **_detach_kwargs(),
                )
        except FileNotFoundError as error:
            raise LaunchError(
                f"Wrapper interpreter not found: {self.python_executable}",
                transient=False,
            ) from error
        except OSError as error:
            raise LaunchError(
                f"Wrapper for {request.item!r} failed to start: {error}",
                transient=True,
            ) from error
        return SubprocessHandle(process)


def _detach_kwargs(os_name: str | None = None) -> dict[str, object]:
    if (os_name or os.name) == "nt":
        return {"creationflags": getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)}
    return {"start_new_session": True}


def _terminate_process(process: subprocess.Popen[bytes]) -> None:
    """Stop the wrapper and, on POSIX, every process in its session.

    Wrappers run the command through a shell, so signalling only the wrapper
    pid would leave the command itself running.
    """

    if os.name == "nt":
        _terminate_single(process)
        return
    if process.poll() is None:
        _signal_group(process.pid, signal.SIGTERM)
        try:
            process.wait(timeout=2)
        except subprocess.TimeoutExpired:
            _signal_group(process.pid, signal.SIGKILL)
            process.wait(timeout=2)
    # Group members can outlive the wrapper that led them.
    _signal_group(process.pid, signal.SIGKILL)


def _terminate_single(process: subprocess.Popen[bytes]) -> None:
    if process.poll() is not None:
        return
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)


def _signal_group(pgid: int, sig: int) -> None:
    try:
        os.killpg(pgid, sig)
    except (ProcessLookupError, PermissionError):
        return
