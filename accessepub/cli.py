"""CLI entry point: all commands defined here."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from accessepub import __version__
from accessepub.config import AccessEPUBConfig

app = typer.Typer(
    name="accessepub",
    help="EPUB accessibility checker.",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"accessepub {__version__}")
        raise typer.Exit()


def setup_logging(*, verbose: bool = False, silent: bool = False) -> None:
    """Route library logging through rich."""
    level = logging.DEBUG if verbose else logging.WARNING if silent else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, show_time=False)],
        force=True,
    )


def load_config(path: Optional[Path]) -> AccessEPUBConfig:  # noqa: UP007
    try:
        return AccessEPUBConfig.load(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        console.print(f"[red]Invalid config:[/red] {exc}")
        raise typer.Exit(code=1)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(  # noqa: UP007
        None, "--version", "-v", callback=version_callback, is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """AccessEPUB: accessibility checks for EPUB publications."""


@app.command()
def check(
    epub: Path = typer.Argument(..., help="EPUB file or unpacked EPUB directory."),
    outdir: Optional[Path] = typer.Option(  # noqa: UP007
        None, "--outdir", "-o", help="Save the JSON report to this directory.",
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing report."),
    subdir: bool = typer.Option(
        False, "--subdir", help="Write the report to a sub-directory named after the EPUB.",
    ),
    config_path: Optional[Path] = typer.Option(  # noqa: UP007
        None, "--config", "-c", help="Path to an accessepub.yaml config file.",
    ),
    continue_on_error: bool = typer.Option(
        False, "--continue-on-error", help="Keep checking after a document fails to load.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Display verbose output."),
    silent: bool = typer.Option(False, "--silent", "-s", help="Only display warnings and errors."),
) -> None:
    """Check every content document of an EPUB for accessibility issues."""
    setup_logging(verbose=verbose, silent=silent)

    if not epub.exists():
        console.print(f"[red]File not found:[/red] {epub}")
        raise typer.Exit(code=1)

    config = load_config(config_path)
    if continue_on_error:
        config.check.on_error = "continue"

    report_path = None
    if outdir is not None:
        if subdir:
            outdir = outdir / epub.stem
        report_path = outdir / config.output.report_name
        if report_path.exists() and not force:
            console.print(f"[yellow]Report already exists:[/yellow] {report_path}")
            console.print("Use option --force to override.")
            raise typer.Exit(code=1)

    from accessepub.epub import InvalidEPUB, load_publication
    from accessepub.errors import AccessEPUBError
    from accessepub.pipeline import check_publication
    from accessepub.reporter import build_report, write_json_report
    from rich.progress import Progress

    try:
        publication = load_publication(epub)
    except InvalidEPUB as exc:
        console.print(f"[red]Invalid EPUB:[/red] {exc}")
        raise typer.Exit(code=1)

    with publication:
        console.print(f"[dim]Checking {len(publication.descriptors)} document(s) in {epub.name}[/dim]")

        try:
            with Progress(console=console, disable=silent) as progress:
                task = progress.add_task("Checking...", total=len(publication.descriptors))
                run = check_publication(
                    publication.descriptors,
                    config,
                    progress=lambda _result: progress.advance(task),
                )
        except AccessEPUBError as exc:
            console.print(f"[red]Check failed:[/red] {exc}")
            raise typer.Exit(code=1)

        report = build_report(run, title=publication.title)

        table = Table(title=f"Accessibility Report: {publication.title or epub.name}")
        table.add_column("Document", style="bold")
        table.add_column("Issues")
        for result in run:
            if result.error is not None:
                table.add_row(result.descriptor.relpath, "[red]not checked[/red]")
            elif result.issue_count:
                table.add_row(result.descriptor.relpath, f"[yellow]{result.issue_count}[/yellow]")
            else:
                table.add_row(result.descriptor.relpath, "[green]0[/green]")
        console.print(table)

        if report_path is not None:
            write_json_report(report, report_path)
            console.print(f"[dim]Report written to {report_path}[/dim]")

        if report.outcome.value == "fail":
            console.print(f"[red]FAIL[/red] {report.issue_count} issue(s) found.")
            raise typer.Exit(code=2)
        console.print("[green]OK[/green] No issues found.")


@app.command()
def capabilities(
    config_path: Optional[Path] = typer.Option(  # noqa: UP007
        None, "--config", "-c", help="Path to an accessepub.yaml config file.",
    ),
) -> None:
    """Show the scripts injected into each document and whether they resolve."""
    from accessepub.preflight import ScriptBundle, list_capabilities

    config = load_config(config_path)
    results = list_capabilities(ScriptBundle.from_config(config.scripts))

    table = Table(title="Injected Scripts")
    table.add_column("Script", style="bold")
    table.add_column("Available")
    table.add_column("Path")

    for name, path, available in results:
        status = "[green]Yes[/green]" if available else "[red]No[/red]"
        table.add_row(name, status, str(path))

    console.print(table)

    if not all(available for _, _, available in results):
        raise typer.Exit(code=1)
