"""Controllers for fanrun CLI commands."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path

from fanrun.config import Settings
from fanrun.orchestrator.backend import SubprocessLauncher
from fanrun.orchestrator.reconciler import StatusReconciler
from fanrun.orchestrator.rendering import normalize_placeholder, render_command
from fanrun.orchestrator.reporter import Reporter, RunSummary, render_summary_lines
from fanrun.orchestrator.scheduler import Orchestrator
from fanrun.orchestrator.workdir import RunWorkdirManager, WorkdirError


class InvocationError(ValueError):
    """Invalid invocation detected before any job is started."""


@dataclass(slots=True)
class RunItemsCommand:
    """CLI input for one fan-out run."""

    command_template: str | None
    items: tuple[str, ...]
    items_file: Path | None = None
    placeholder: str | None = None
    retry_count: int | None = None
    max_workers: int | None = None
    workdir: Path | None = None
    retry_delay_seconds: float | None = None
    dry_run: bool = False


@dataclass(slots=True)
class RunItemsResult:
    """Lines to print plus the final run summary, if a run happened."""

    lines: list[str] = field(default_factory=list)
    summary: RunSummary | None = None

    @property
    def success(self) -> bool:
        return self.summary is None or self.summary.exit_code == 0

    @property
    def failed_items(self) -> list[str]:
        return [] if self.summary is None else list(self.summary.failed)


class RunCliController:
    """Controller for the ``fanrun run`` command."""

    def run_items(
        self,
        command: RunItemsCommand,
        *,
        on_progress: Callable[[str], None] | None = None,
    ) -> RunItemsResult:
        template = (command.command_template or "").strip()
        if not template:
            raise InvocationError("A command template is required (--command).")

        items, duplicates = collect_items(command.items, command.items_file)
        if not items:
            raise InvocationError("At least one item is required.")

        settings = _resolve_settings(command)
        try:
            settings.validate()
        except ValueError as error:
            raise InvocationError(str(error)) from error

        placeholder = normalize_placeholder(settings.run.placeholder)
        result = RunItemsResult()
        emit = on_progress or result.lines.append
        for item in duplicates:
            emit(f"Skipping duplicate item: {item}")
        if placeholder.token not in template:
            emit(
                f"Placeholder {placeholder.token} not found in command; "
                "every item runs the same command.",
            )

        if command.dry_run:
            for item in items:
                emit(f"{item}: {render_command(template, placeholder, item)}")
            return result

        orchestrator = Orchestrator(
            launcher=SubprocessLauncher(),
            workdir=RunWorkdirManager(settings.workdir),
            reporter=Reporter(on_progress=emit),
            max_workers=settings.run.effective_max_workers,
            retry_count=settings.run.retry_count,
            retry_delay_seconds=settings.run.retry_delay_seconds,
            poll_interval_seconds=settings.run.poll_interval_seconds,
            placeholder=placeholder,
            reconciler=StatusReconciler(
                removal_retry_seconds=settings.run.marker_removal_retry_seconds,
            ),
        )
        try:
            result.summary = orchestrator.run(template, items)
        except WorkdirError as error:
            raise InvocationError(str(error)) from error
        for line in render_summary_lines(result.summary):
            emit(line)
        return result


def collect_items(
    items: tuple[str, ...] | list[str],
    items_file: Path | None = None,
) -> tuple[list[str], list[str]]:
    """Merge argument and file items in order, dropping empties and repeats.

    Argument items are kept verbatim.  Lines from ``items_file`` are stripped
    and blank or ``#`` lines are skipped.  Returns the unique items and the
    duplicates that were skipped.
    """

    values = list(items)
    if items_file is not None:
        try:
            raw = items_file.read_text("utf-8")
        except OSError as error:
            raise InvocationError(f"Cannot read items file {items_file}: {error}") from error
        for line in raw.splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#"):
                values.append(stripped)

    unique: list[str] = []
    duplicates: list[str] = []
    seen: set[str] = set()
    for value in values:
        if not value:
            continue
        if value in seen:
            duplicates.append(value)
            continue
        seen.add(value)
        unique.append(value)
    return unique, duplicates


def _resolve_settings(command: RunItemsCommand) -> Settings:
    try:
        settings = Settings.from_env(workdir=command.workdir)
    except ValueError as error:
        raise InvocationError(str(error)) from error

    overrides: dict[str, object] = {}
    if command.placeholder is not None:
        overrides["placeholder"] = command.placeholder
    if command.retry_count is not None:
        overrides["retry_count"] = command.retry_count
    if command.max_workers is not None:
        overrides["max_workers"] = command.max_workers
    if command.retry_delay_seconds is not None:
        overrides["retry_delay_seconds"] = command.retry_delay_seconds
    if not overrides:
        return settings
    return replace(settings, run=replace(settings.run, **overrides))
