from __future__ import annotations

import shlex
import sys
from pathlib import Path

import allure
from click.testing import CliRunner

from fanrun import __version__
from fanrun.main import fanrun

pytestmark = [
    allure.epic("Fan-out Runs"),
    allure.feature("CLI"),
]


def _write_exit_script(path: Path, exit_code: int) -> None:
    path.write_text(f"import sys\nsys.exit({exit_code})\n", "utf-8")


def test_version_option() -> None:
    result = CliRunner().invoke(fanrun, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_empty_item_list_is_invocation_error(fast_run_env: Path) -> None:
    result = CliRunner().invoke(fanrun, ["run", "--command", "echo {ID}"])

    assert result.exit_code == 1
    assert "At least one item is required" in result.output
    assert not fast_run_env.exists()


def test_missing_command_template_is_invocation_error(fast_run_env: Path) -> None:
    result = CliRunner().invoke(fanrun, ["run", "a", "b"])

    assert result.exit_code == 1
    assert "command template is required" in result.output
    assert not fast_run_env.exists()


def test_invalid_retry_count_is_invocation_error(fast_run_env: Path) -> None:
    result = CliRunner().invoke(fanrun, ["run", "-c", "echo {ID}", "-r", "0", "a"])

    assert result.exit_code == 1
    assert "FANRUN_RETRY_COUNT" in result.output
    assert not fast_run_env.exists()


def test_run_reports_success_and_failure(tmp_path: Path, fast_run_env: Path) -> None:
    scripts = tmp_path / "scripts"
    scripts.mkdir()
    _write_exit_script(scripts / "a.py", 0)
    _write_exit_script(scripts / "b.py", 1)
    template = f"{shlex.quote(sys.executable)} {shlex.quote(str(scripts))}/{{X}}.py --flag"

    result = CliRunner().invoke(
        fanrun,
        ["run", "--command", template, "--placeholder", "{X}", "--retry-count", "1", "a", "b"],
    )

    assert result.exit_code == 1
    assert "Initiated: a" in result.output
    assert "Completed: a" in result.output
    assert "Failed: b (retries exhausted after 1 attempt(s)" in result.output
    assert "Run summary: succeeded=1 failed=1 total=2 elapsed=" in result.output
    assert "Failed items: b" in result.output
    assert "1 item(s) failed: b" in result.output


def test_run_with_limited_slots_succeeds(fast_run_env: Path, scripted_command) -> None:
    result = CliRunner().invoke(
        fanrun,
        ["run", "-c", scripted_command(), "-w", "2", "a", "b", "c", "d"],
    )

    assert result.exit_code == 0, result.output
    assert "Run summary: succeeded=4 failed=0 total=4" in result.output
    assert "running=3/" not in result.output
    assert (fast_run_env / "markers").is_dir()
    assert list((fast_run_env / "markers").iterdir()) == []


def test_items_file_and_duplicates(tmp_path: Path, fast_run_env: Path) -> None:
    items_file = tmp_path / "items.txt"
    items_file.write_text("# regions\nfr\n\nde\nfr\n", "utf-8")

    result = CliRunner().invoke(
        fanrun,
        ["run", "-c", "deploy {ID}", "--items-file", str(items_file), "--dry-run", "it", "de"],
    )

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines.count("Skipping duplicate item: de") == 1
    assert lines.count("Skipping duplicate item: fr") == 1
    assert [line for line in lines if ": deploy " in line] == [
        "it: deploy it",
        "de: deploy de",
        "fr: deploy fr",
    ]
    assert not fast_run_env.exists()


def test_placeholder_missing_from_template_is_reported(fast_run_env: Path) -> None:
    result = CliRunner().invoke(fanrun, ["run", "-c", "echo hi", "--dry-run", "x", "y"])

    assert result.exit_code == 0
    assert "Placeholder {ID} not found in command" in result.output
    assert "x: echo hi" in result.output
    assert "y: echo hi" in result.output


def test_argument_items_are_used_verbatim(fast_run_env: Path) -> None:
    result = CliRunner().invoke(
        fanrun,
        ["run", "-c", "echo [{ID}]", "--dry-run", " a", "a", "a "],
    )

    assert result.exit_code == 0, result.output
    assert "Skipping duplicate item" not in result.output
    lines = result.output.splitlines()
    assert " a: echo [ a]" in lines
    assert "a: echo [a]" in lines
    assert "a : echo [a ]" in lines


def test_foreign_workdir_is_refused_before_anything_runs(
    tmp_path: Path,
    fast_run_env: Path,
) -> None:
    foreign = tmp_path / "project"
    (foreign / "logs").mkdir(parents=True)
    kept = foreign / "logs" / "build.log"
    kept.write_text("important", "utf-8")
    marker = tmp_path / "ran"

    result = CliRunner().invoke(
        fanrun,
        [
            "run",
            "-c",
            f"touch {shlex.quote(str(marker))}",
            "--workdir",
            str(foreign),
            "a",
        ],
    )

    assert result.exit_code == 1
    assert "Refusing to use non-empty directory" in result.output
    assert kept.read_text("utf-8") == "important"
    assert not marker.exists()
