"""Per-item retry wrapper generation.

The generated script is plain Python run by the current interpreter.  It runs
the rendered command through the shell, retries non-zero exits after a fixed
delay, and finally writes exactly one marker file describing the outcome.
Markers are written to a temporary name first and renamed into place, so the
reconciler never observes a partially written marker.
"""

from __future__ import annotations

import string
from dataclasses import dataclass

from fanrun.orchestrator.models import JobArtifacts

WRAPPER_FORMAT_VERSION = 1

_WRAPPER_TEMPLATE = string.Template(
    '''\
# Generated by fanrun (wrapper format $version) for item $item_repr.
import json
import os
import subprocess
import sys
import time

ITEM = $item_repr
COMMAND = $command_repr
RETRY_COUNT = $retry_count
RETRY_DELAY_SECONDS = $retry_delay
SUCCESS_MARKER = $success_marker
FAILURE_MARKER = $failure_marker


def _write_marker(path, attempts, exit_code):
    payload = {"item": ITEM, "attempts": attempts, "exit_code": exit_code}
    tmp_path = path + ".tmp"
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle)
    os.replace(tmp_path, path)


def main():
    sys.stdout.reconfigure(errors="backslashreplace")
    attempts = 0
    while True:
        attempts += 1
        env = dict(os.environ, FANRUN_ITEM=ITEM, FANRUN_ATTEMPT=str(attempts))
        print(f"[fanrun] {ITEM}: attempt {attempts}/{RETRY_COUNT}: {COMMAND}", flush=True)
        exit_code = subprocess.call(COMMAND, shell=True, env=env)
        if exit_code == 0:
            _write_marker(SUCCESS_MARKER, attempts, exit_code)
            return 0
        print(f"[fanrun] {ITEM}: attempt {attempts} exited with {exit_code}", flush=True)
        if attempts >= RETRY_COUNT:
            _write_marker(FAILURE_MARKER, attempts, exit_code)
            return 1
        time.sleep(RETRY_DELAY_SECONDS)


if __name__ == "__main__":
    sys.exit(main())
''',
)


@dataclass(slots=True)
class WrapperSpec:
    """Everything baked into one generated wrapper."""

    item: str
    command: str
    retry_count: int
    retry_delay_seconds: float
    artifacts: JobArtifacts


def render_wrapper_source(spec: WrapperSpec) -> str:
    if spec.retry_count < 1:
        raise ValueError(f"retry_count must be >= 1, got {spec.retry_count}")
    if spec.retry_delay_seconds < 0:
        raise ValueError(f"retry_delay_seconds must be >= 0, got {spec.retry_delay_seconds}")
    return _WRAPPER_TEMPLATE.substitute(
        version=WRAPPER_FORMAT_VERSION,
        item_repr=repr(spec.item),
        command_repr=repr(spec.command),
        retry_count=int(spec.retry_count),
        retry_delay=repr(float(spec.retry_delay_seconds)),
        success_marker=repr(str(spec.artifacts.success_marker)),
        failure_marker=repr(str(spec.artifacts.failure_marker)),
    )


def generate_wrapper(spec: WrapperSpec) -> None:
    """Write the wrapper script for one item into its workdir path."""

    wrapper_path = spec.artifacts.wrapper_path
    wrapper_path.parent.mkdir(parents=True, exist_ok=True)
    wrapper_path.write_text(render_wrapper_source(spec), "utf-8")
