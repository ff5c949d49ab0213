"""Shared test fixtures."""

from __future__ import annotations

import os
import shlex
import sys
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from fanrun.orchestrator.backend.base import LaunchRequest
from fanrun.orchestrator.workdir import RunWorkdirManager

_SCRIPTED_COMMAND = f"{shlex.quote(sys.executable)} -m fanrun.orchestrator.backend.scripted_command"


@pytest.fixture()
def fast_run_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point fanrun at a temp workdir with zero retry delay and a short poll interval."""

    workdir = tmp_path / "workdir"
    monkeypatch.setenv("FANRUN_WORKDIR", str(workdir))
    monkeypatch.setenv("FANRUN_RETRY_DELAY_SECONDS", "0")
    monkeypatch.setenv("FANRUN_POLL_INTERVAL_SECONDS", "0.02")
    monkeypatch.delenv("FANRUN_MAX_WORKERS", raising=False)
    monkeypatch.delenv("FANRUN_RETRY_COUNT", raising=False)
    monkeypatch.delenv("FANRUN_PLACEHOLDER", raising=False)
    return workdir


@pytest.fixture()
def scripted_command(tmp_path: Path) -> Callable[..., str]:
    """Build a command line for the scripted demo command.

    The returned template keeps any placeholder in ``state_name`` so each item
    can count its own invocations.
    """

    def _build(*, state_name: str = "{ID}", fail_times: int = 0, exit_code: int = 1) -> str:
        state_dir = shlex.quote(str(tmp_path / "state"))
        return (
            f"{_SCRIPTED_COMMAND} --state-file {state_dir}/{state_name}.calls "
            f"--fail-times {fail_times} --exit-code {exit_code}"
        )

    return _build


class FakeHandle:
    """In-memory process handle that finishes after a number of exit queries."""

    def __init__(
        self,
        *,
        launcher: FakeLauncher,
        request: LaunchRequest,
        outcome: str,
        ticks: int,
    ) -> None:
        self._launcher = launcher
        self._request = request
        self._outcome = outcome
        self._ticks_left = ticks
        self._returncode: int | None = None
        self.killed = False

    @property
    def pid(self) -> int | None:
        return None

    @property
    def returncode(self) -> int | None:
        return self._returncode

    def has_exited(self) -> bool:
        if self._returncode is not None:
            return True
        if self._outcome == "hang":
            return False
        if self._ticks_left > 0:
            self._ticks_left -= 1
            return False
        self._finish()
        return True

    def kill(self) -> None:
        self.killed = True
        if self._returncode is None:
            self._returncode = -9
            self._launcher.alive.discard(self._request.item)

    def _finish(self) -> None:
        workdir = RunWorkdirManager(self._request.wrapper_path.parent.parent)
        artifacts = workdir.artifacts_for(self._request.item)
        if self._outcome == "success":
            artifacts.success_marker.write_text('{"attempts": 1, "exit_code": 0}', "utf-8")
            self._returncode = 0
        elif self._outcome == "failure":
            artifacts.failure_marker.write_text('{"attempts": 3, "exit_code": 2}', "utf-8")
            self._returncode = 1
        else:
            self._returncode = -11
        self._launcher.alive.discard(self._request.item)


class FakeLauncher:
    """Launcher that records concurrency instead of starting processes."""

    def __init__(self, outcomes: dict[str, str] | None = None, *, ticks: int = 1) -> None:
        self.outcomes = outcomes or {}
        self.ticks = ticks
        self.launched: list[str] = []
        self.alive: set[str] = set()
        self.peak_alive = 0
        self.handles: dict[str, FakeHandle] = {}

    def launch(self, request: LaunchRequest) -> FakeHandle:
        assert request.wrapper_path.exists()
        self.launched.append(request.item)
        self.alive.add(request.item)
        self.peak_alive = max(self.peak_alive, len(self.alive))
        handle = FakeHandle(
            launcher=self,
            request=request,
            outcome=self.outcomes.get(request.item, "success"),
            ticks=self.ticks,
        )
        self.handles[request.item] = handle
        return handle


@pytest.fixture()
def fake_launcher_factory() -> Callable[..., FakeLauncher]:
    return FakeLauncher


def _process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    try:
        stat = Path(f"/proc/{pid}/stat").read_text("utf-8")
    except OSError:
        return True
    # Unreaped zombies still answer signal 0.
    return stat.rsplit(")", 1)[-1].split()[0] != "Z"


@pytest.fixture()
def process_exits() -> Callable[..., bool]:
    """Return a waiter reporting whether ``pid`` disappears within ``timeout`` seconds."""

    def _wait(pid: int, timeout: float = 10.0) -> bool:
        deadline = time.monotonic() + timeout
        while _process_alive(pid):
            if time.monotonic() > deadline:
                return False
            time.sleep(0.05)
        return True

    return _wait
