"""Marker and process-exit based outcome classification for running jobs."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from fanrun.orchestrator.models import FailureClass, ItemOutcome, ItemStatus, Job

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MarkerPayload:
    """Best-effort content of a marker file."""

    attempts: int | None = None
    exit_code: int | None = None


class StatusReconciler:
    """Classify a running job from its markers and process handle.

    Check order is success marker, failure marker, then process exit.  A marker
    is removed as soon as it is observed; a removal that fails is retried once
    after ``removal_retry_seconds`` and then ignored, because the in-memory
    outcome is already decided.
    """

    def __init__(
        self,
        *,
        removal_retry_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.removal_retry_seconds = removal_retry_seconds
        self._sleep = sleep

    def reconcile(self, job: Job) -> ItemOutcome | None:
        """Return the terminal outcome for ``job`` or None while it is still running."""

        outcome = self._check_markers(job)
        if outcome is not None:
            return outcome
        if not job.handle.has_exited():
            return None

        # The wrapper writes its marker before exiting, so one more look settles
        # a marker that landed between the first check and the exit query.
        outcome = self._check_markers(job)
        if outcome is not None:
            return outcome
        return ItemOutcome(
            item=job.item,
            status=ItemStatus.FAILED,
            failure_class=FailureClass.ABNORMAL_TERMINATION,
            exit_code=job.handle.returncode,
            log_path=job.artifacts.log_path,
        )

    def _check_markers(self, job: Job) -> ItemOutcome | None:
        artifacts = job.artifacts
        if artifacts.success_marker.exists():
            payload = self._consume_marker(artifacts.success_marker)
            return ItemOutcome(
                item=job.item,
                status=ItemStatus.SUCCEEDED,
                attempts=payload.attempts,
                exit_code=payload.exit_code,
                log_path=artifacts.log_path,
            )
        if artifacts.failure_marker.exists():
            payload = self._consume_marker(artifacts.failure_marker)
            return ItemOutcome(
                item=job.item,
                status=ItemStatus.FAILED,
                failure_class=FailureClass.RETRIES_EXHAUSTED,
                attempts=payload.attempts,
                exit_code=payload.exit_code,
                log_path=artifacts.log_path,
            )
        return None

    def _consume_marker(self, path: Path) -> MarkerPayload:
        payload = read_marker_payload(path)
        self._remove_marker(path)
        return payload

    def _remove_marker(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
            return
        except OSError:
            logger.debug("Marker removal failed, retrying once: %s", path, exc_info=True)
        self._sleep(self.removal_retry_seconds)
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.debug("Marker removal failed again, leaving it: %s", path, exc_info=True)


def read_marker_payload(path: Path) -> MarkerPayload:
    """Parse a marker's JSON payload; unreadable content yields empty fields."""

    try:
        raw = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError):
        return MarkerPayload()
    if not isinstance(raw, dict):
        return MarkerPayload()
    return MarkerPayload(
        attempts=_optional_int(raw.get("attempts")),
        exit_code=_optional_int(raw.get("exit_code")),
    )


def _optional_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value
