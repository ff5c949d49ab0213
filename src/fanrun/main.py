"""CLI entrypoint for fanrun."""

import logging
from pathlib import Path

import rich_click as click

from fanrun import __version__
from fanrun.orchestrator.controllers import InvocationError, RunCliController, RunItemsCommand
from fanrun.orchestrator.rendering import DEFAULT_PLACEHOLDER

click.rich_click.USE_MARKDOWN = True
RUN_CONTROLLER = RunCliController()


@click.group()
@click.version_option(version=__version__, prog_name="fanrun")
def fanrun() -> None:
    """Run one command per item with bounded concurrency and retries."""


@fanrun.command("run")
@click.argument("items", nargs=-1)
@click.option(
    "-c",
    "--command",
    "command_template",
    default=None,
    help=f"Command template. Every occurrence of the placeholder (default {DEFAULT_PLACEHOLDER}) "
    "is replaced by the item.",
)
@click.option(
    "-p",
    "--placeholder",
    default=None,
    help="Placeholder token; braces are added when omitted. Defaults to FANRUN_PLACEHOLDER.",
)
@click.option(
    "-r",
    "--retry-count",
    type=int,
    default=None,
    help="Attempts per item including the first run. Defaults to FANRUN_RETRY_COUNT or 3.",
)
@click.option(
    "-w",
    "--max-workers",
    type=int,
    default=None,
    help="Items running at once. Defaults to FANRUN_MAX_WORKERS or the processor count.",
)
@click.option(
    "--items-file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="File with additional items, one per line, stripped; lines starting with # are ignored. "
    "Positional items are used verbatim.",
)
@click.option(
    "--workdir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory for wrappers, markers and logs, cleared at the start of every run. "
    "A non-empty directory not created by fanrun is refused.",
)
@click.option(
    "--retry-delay",
    "retry_delay_seconds",
    type=float,
    default=None,
    help="Fixed delay in seconds between attempts. Defaults to 2.",
)
@click.option(
    "--dry-run/--no-dry-run",
    default=False,
    show_default=True,
    help="Print rendered commands without running anything.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log orchestration details.")
def run(  # noqa: PLR0913
    items: tuple[str, ...],
    command_template: str | None,
    placeholder: str | None,
    retry_count: int | None,
    max_workers: int | None,
    items_file: Path | None,
    workdir: Path | None,
    retry_delay_seconds: float | None,
    dry_run: bool,
    verbose: bool,
) -> None:
    """Run the command template once per item and report a summary.

    Exits with status 1 when the invocation is invalid or any item fails.
    """

    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    try:
        result = RUN_CONTROLLER.run_items(
            RunItemsCommand(
                command_template=command_template,
                items=items,
                items_file=items_file,
                placeholder=placeholder,
                retry_count=retry_count,
                max_workers=max_workers,
                workdir=workdir,
                retry_delay_seconds=retry_delay_seconds,
                dry_run=dry_run,
            ),
            on_progress=click.echo,
        )
    except InvocationError as error:
        raise click.ClickException(str(error)) from error

    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(
            f"{len(result.failed_items)} item(s) failed: {', '.join(result.failed_items)}",
        )


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    fanrun()
