"""Bounded-concurrency control loop over per-item wrapper processes."""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable, Sequence

from fanrun.orchestrator.backend import LaunchError, LaunchRequest, ProcessLauncher
from fanrun.orchestrator.models import FailureClass, ItemOutcome, ItemStatus, Job
from fanrun.orchestrator.reconciler import StatusReconciler
from fanrun.orchestrator.rendering import Placeholder, normalize_placeholder, render_command
from fanrun.orchestrator.reporter import Reporter, RunSummary
from fanrun.orchestrator.workdir import RunWorkdirManager
from fanrun.orchestrator.wrapper import WrapperSpec, generate_wrapper

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs every item to a terminal state with at most ``max_workers`` in flight.

    All queue state lives inside :meth:`run`; the only suspension point is the
    short sleep between loop iterations.  Retries happen inside each generated
    wrapper, so an item is launched exactly once per run.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        launcher: ProcessLauncher,
        workdir: RunWorkdirManager,
        reporter: Reporter,
        max_workers: int,
        retry_count: int = 3,
        retry_delay_seconds: float = 2.0,
        poll_interval_seconds: float = 0.1,
        placeholder: Placeholder | None = None,
        reconciler: StatusReconciler | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if retry_count < 1:
            raise ValueError(f"retry_count must be >= 1, got {retry_count}")
        if retry_delay_seconds < 0:
            raise ValueError(f"retry_delay_seconds must be >= 0, got {retry_delay_seconds}")
        self.launcher = launcher
        self.workdir = workdir
        self.reporter = reporter
        self.max_workers = max_workers
        self.retry_count = retry_count
        self.retry_delay_seconds = retry_delay_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.placeholder = placeholder or normalize_placeholder(None)
        self.reconciler = reconciler or StatusReconciler()
        self._sleep = sleep

    def run(self, template: str, items: Sequence[str]) -> RunSummary:
        """Execute ``template`` once per item and block until every item is terminal."""

        if not items:
            raise ValueError("At least one item is required.")
        if len(set(items)) != len(items):
            raise ValueError("Items must be unique within a run.")

        self.workdir.prepare()
        pending: deque[str] = deque(items)
        running: dict[str, Job] = {}
        self.reporter.start(items)
        logger.info(
            "Starting run: items=%d max_workers=%d retry_count=%d",
            len(items),
            self.max_workers,
            self.retry_count,
        )

        try:
            while pending or running:
                self._reconcile(running)
                self._admit(template=template, pending=pending, running=running)
                if pending or running:
                    self._sleep(self.poll_interval_seconds)
        except BaseException:
            logger.warning("Run aborted; stopping %d running job(s)", len(running))
            for job in running.values():
                job.handle.kill()
            raise

        return self.reporter.finish()

    def _reconcile(self, running: dict[str, Job]) -> None:
        for item, job in list(running.items()):
            outcome = self.reconciler.reconcile(job)
            if outcome is None:
                continue
            del running[item]
            if not job.handle.has_exited():
                job.handle.kill()
            job.status = outcome.status
            self.reporter.record(outcome)

    def _admit(self, *, template: str, pending: deque[str], running: dict[str, Job]) -> None:
        while pending and len(running) < self.max_workers:
            item = pending.popleft()
            try:
                job = self._start_job(template=template, item=item)
            except LaunchError as error:
                logger.warning("Launch failed for %s (transient=%s)", item, error.transient)
                self._record_launch_error(item, str(error))
                continue
            except Exception as error:  # noqa: BLE001
                logger.exception("Unexpected error while starting %r", item)
                self._record_launch_error(item, f"{type(error).__name__}: {error}")
                continue
            running[item] = job
            self.reporter.initiated(
                item,
                running=len(running),
                slots=self.max_workers,
                pending=len(pending),
            )

    def _record_launch_error(self, item: str, message: str) -> None:
        self.reporter.record(
            ItemOutcome(
                item=item,
                status=ItemStatus.FAILED,
                failure_class=FailureClass.LAUNCH_ERROR,
                error=message,
            ),
        )

    def _start_job(self, *, template: str, item: str) -> Job:
        command = render_command(template, self.placeholder, item)
        artifacts = self.workdir.artifacts_for(item)
        try:
            generate_wrapper(
                WrapperSpec(
                    item=item,
                    command=command,
                    retry_count=self.retry_count,
                    retry_delay_seconds=self.retry_delay_seconds,
                    artifacts=artifacts,
                ),
            )
        except OSError as error:
            raise LaunchError(
                f"Could not write wrapper {artifacts.wrapper_path}: {error}",
                transient=True,
            ) from error
        handle = self.launcher.launch(
            LaunchRequest(
                item=item,
                wrapper_path=artifacts.wrapper_path,
                log_path=artifacts.log_path,
                env={"FANRUN_ITEM": item},
            ),
        )
        return Job(item=item, command=command, artifacts=artifacts, handle=handle)
