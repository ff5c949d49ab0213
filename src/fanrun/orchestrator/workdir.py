"""Side-channel directory layout for wrappers, markers and logs."""

from __future__ import annotations

import hashlib
import re
import shutil
from pathlib import Path

from fanrun.orchestrator.models import JobArtifacts

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
SUCCESS_SUFFIX = ".success"
FAILURE_SUFFIX = ".failure"
SENTINEL_NAME = ".fanrun-workdir"


class WorkdirError(RuntimeError):
    """Workdir cannot be claimed for a run."""


class RunWorkdirManager:
    """Creates deterministic per-item paths under one run root.

    The root is marked with a sentinel file on first use.  A directory that
    already has content but no sentinel is never purged.
    """

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = root_dir
        self.sentinel_path = root_dir / SENTINEL_NAME
        self.wrappers_dir = root_dir / "wrappers"
        self.markers_dir = root_dir / "markers"
        self.logs_dir = root_dir / "logs"

    def prepare(self) -> None:
        """Purge everything a previous run left behind, then recreate the layout."""

        self._claim_root()
        for directory in (self.wrappers_dir, self.markers_dir, self.logs_dir):
            if directory.exists():
                shutil.rmtree(directory)
            directory.mkdir(parents=True, exist_ok=True)

    def artifacts_for(self, item: str) -> JobArtifacts:
        stem = artifact_stem(item)
        return JobArtifacts(
            wrapper_path=self.wrappers_dir / f"{stem}.py",
            success_marker=self.markers_dir / f"{stem}{SUCCESS_SUFFIX}",
            failure_marker=self.markers_dir / f"{stem}{FAILURE_SUFFIX}",
            log_path=self.logs_dir / f"{stem}.log",
        )

    def _claim_root(self) -> None:
        if self.root_dir.exists():
            if not self.root_dir.is_dir():
                raise WorkdirError(f"Workdir is not a directory: {self.root_dir}")
            if not self.sentinel_path.exists() and any(self.root_dir.iterdir()):
                raise WorkdirError(
                    f"Refusing to use non-empty directory {self.root_dir} as workdir: "
                    f"it was not created by fanrun (missing {SENTINEL_NAME}).",
                )
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.sentinel_path.touch()


def artifact_stem(item: str) -> str:
    """Return a filesystem-safe name that stays unique per item."""

    safe = _UNSAFE_CHARS.sub("_", item)
    if safe == item and safe not in {"", ".", ".."}:
        return safe
    # Undecodable argv bytes arrive as lone surrogates.
    raw = item.encode("utf-8", "surrogatepass")
    digest = hashlib.sha1(raw).hexdigest()[:8]  # noqa: S324
    return f"{safe}-{digest}"
