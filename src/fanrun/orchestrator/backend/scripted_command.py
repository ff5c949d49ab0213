"""Deterministic demo command for wrapper and orchestrator integration tests."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Record one invocation and fail until ``--fail-times`` is exhausted."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--state-file", required=True)
    parser.add_argument("--fail-times", type=int, default=0)
    parser.add_argument("--exit-code", type=int, default=1)
    parser.add_argument("--item", default=None)
    args = parser.parse_args(argv)

    state_file = Path(args.state_file)
    state_file.parent.mkdir(parents=True, exist_ok=True)
    item = args.item or os.getenv("FANRUN_ITEM", "")
    with state_file.open("a", encoding="utf-8") as handle:
        handle.write(f"{item}\n")
    invocations = len(state_file.read_text("utf-8").splitlines())

    if args.fail_times < 0 or invocations <= args.fail_times:
        print(f"scripted failure {invocations} for {item!r}", file=sys.stderr)
        return args.exit_code
    print(f"scripted success {invocations} for {item!r}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
