"""Runtime configuration for fanrun runs."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from fanrun.orchestrator.rendering import DEFAULT_PLACEHOLDER

FALLBACK_PARALLELISM = 4


@dataclass(slots=True)
class RunSettings:
    """Scheduling and retry settings for one run."""

    max_workers: int | None = None
    retry_count: int = 3
    retry_delay_seconds: float = 2.0
    poll_interval_seconds: float = 0.1
    placeholder: str = DEFAULT_PLACEHOLDER
    marker_removal_retry_seconds: float = 0.2

    @property
    def effective_max_workers(self) -> int:
        if self.max_workers is not None:
            return self.max_workers
        return default_parallelism()


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    workdir: Path = Path(".fanrun")
    run: RunSettings = field(default_factory=RunSettings)

    @classmethod
    def from_env(cls, workdir: Path | None = None) -> Settings:
        """Load settings from environment with defaults suitable for local runs."""

        return cls(
            workdir=workdir or Path(os.getenv("FANRUN_WORKDIR", ".fanrun")),
            run=RunSettings(
                max_workers=_env_optional_int("FANRUN_MAX_WORKERS"),
                retry_count=_env_int("FANRUN_RETRY_COUNT", 3),
                retry_delay_seconds=_env_float("FANRUN_RETRY_DELAY_SECONDS", 2.0),
                poll_interval_seconds=_env_float("FANRUN_POLL_INTERVAL_SECONDS", 0.1),
                placeholder=os.getenv("FANRUN_PLACEHOLDER", DEFAULT_PLACEHOLDER),
                marker_removal_retry_seconds=_env_float(
                    "FANRUN_MARKER_REMOVAL_RETRY_SECONDS",
                    0.2,
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the orchestrator cannot run with."""

        if self.run.retry_count < 1:
            raise ValueError("FANRUN_RETRY_COUNT must be >= 1.")
        if self.run.max_workers is not None and self.run.max_workers < 1:
            raise ValueError("FANRUN_MAX_WORKERS must be >= 1.")
        if self.run.retry_delay_seconds < 0:
            raise ValueError("FANRUN_RETRY_DELAY_SECONDS must be >= 0.")
        if self.run.poll_interval_seconds <= 0:
            raise ValueError("FANRUN_POLL_INTERVAL_SECONDS must be > 0.")
        if self.run.marker_removal_retry_seconds < 0:
            raise ValueError("FANRUN_MARKER_REMOVAL_RETRY_SECONDS must be >= 0.")


def default_parallelism() -> int:
    """Worker slots when none are configured: processor count, else a fixed fallback."""

    raw = os.getenv("NUMBER_OF_PROCESSORS", "").strip()
    if raw:
        try:
            value = int(raw)
        except ValueError:
            value = 0
        if value > 0:
            return value
    return os.cpu_count() or FALLBACK_PARALLELISM


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_optional_int(name: str) -> int | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return _env_int(name, 0)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error
