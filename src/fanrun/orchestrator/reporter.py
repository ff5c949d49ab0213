"""Progress lines and the final run summary."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from fanrun.orchestrator.models import FailureClass, ItemOutcome, ItemStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunSummary:
    """Aggregate counters for one run."""

    total: int = 0
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    outcomes: dict[str, ItemOutcome] = field(default_factory=dict)
    statuses: dict[str, ItemStatus] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    peak_running: int = 0

    @property
    def exit_code(self) -> int:
        return 0 if not self.failed else 1

    @property
    def elapsed(self) -> str:
        return format_elapsed(self.elapsed_seconds)

    def items_in(self, status: ItemStatus) -> list[str]:
        return [item for item, current in self.statuses.items() if current == status]


class Reporter:
    """Accumulates item outcomes and emits one progress line per transition."""

    def __init__(
        self,
        *,
        on_progress: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        timestamps: bool = True,
    ) -> None:
        self._on_progress = on_progress or (lambda _msg: None)
        self._clock = clock
        self._timestamps = timestamps
        self._started_at: float | None = None
        self._summary = RunSummary()

    @property
    def summary(self) -> RunSummary:
        return self._summary

    def start(self, items: Sequence[str]) -> None:
        """Begin a run with every item pending."""

        self._started_at = self._clock()
        self._summary = RunSummary(
            total=len(items),
            statuses={item: ItemStatus.PENDING for item in items},
        )

    def initiated(self, item: str, *, running: int, slots: int, pending: int) -> None:
        self._summary.statuses[item] = ItemStatus.RUNNING
        self._summary.peak_running = max(self._summary.peak_running, running)
        self._emit(f"Initiated: {item} (running={running}/{slots}, pending={pending})")

    def record(self, outcome: ItemOutcome) -> None:
        """Store a terminal outcome and emit its line."""

        if not outcome.status.is_terminal:
            raise ValueError(
                f"Outcome for {outcome.item!r} is not terminal: {outcome.status.value}",
            )
        previous = self._summary.statuses.get(outcome.item, ItemStatus.PENDING)
        if previous.is_terminal:
            raise RuntimeError(f"Item {outcome.item!r} already reached a terminal state.")
        self._summary.statuses[outcome.item] = outcome.status
        self._summary.outcomes[outcome.item] = outcome
        if outcome.succeeded:
            self._summary.succeeded.append(outcome.item)
            self._emit(f"Completed: {outcome.item}{_attempts_suffix(outcome)}")
            return
        self._summary.failed.append(outcome.item)
        self._emit(f"Failed: {outcome.item} ({describe_failure(outcome)})", level=logging.WARNING)

    def finish(self) -> RunSummary:
        if self._started_at is not None:
            self._summary.elapsed_seconds = max(0.0, self._clock() - self._started_at)
        return self._summary

    def _emit(self, message: str, *, level: int = logging.INFO) -> None:
        logger.log(level, message)
        if self._timestamps:
            message = f"[{datetime.now().strftime('%H:%M:%S')}] {message}"
        self._on_progress(message)


def render_summary_lines(summary: RunSummary) -> list[str]:
    lines = [
        "Run summary: "
        f"succeeded={len(summary.succeeded)} failed={len(summary.failed)} "
        f"total={summary.total} elapsed={summary.elapsed}",
    ]
    if summary.failed:
        lines.append(f"Failed items: {', '.join(summary.failed)}")
    return lines


def describe_failure(outcome: ItemOutcome) -> str:
    details: list[str] = []
    if outcome.failure_class == FailureClass.ABNORMAL_TERMINATION:
        details.append(
            "abnormal termination: wrapper exited "
            f"with code {outcome.exit_code} without writing a marker",
        )
    elif outcome.failure_class == FailureClass.LAUNCH_ERROR:
        details.append(f"launch error: {outcome.error or 'unknown'}")
    else:
        attempts = outcome.attempts if outcome.attempts is not None else "?"
        details.append(f"retries exhausted after {attempts} attempt(s)")
        if outcome.exit_code is not None:
            details.append(f"exit_code={outcome.exit_code}")
    if outcome.log_path is not None:
        details.append(f"log={outcome.log_path}")
    return ", ".join(details)


def format_elapsed(seconds: float) -> str:
    """Format a duration as ``HH:MM:SS``; hours are not wrapped at 24."""

    total = int(max(0.0, seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _attempts_suffix(outcome: ItemOutcome) -> str:
    if outcome.attempts is None or outcome.attempts <= 1:
        return ""
    return f" (after {outcome.attempts} attempts)"
