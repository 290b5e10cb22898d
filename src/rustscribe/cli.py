"""Command line interface for rustscribe."""

from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from rustscribe.config import AppConfig
from rustscribe.errors import ParseError
from rustscribe.synthesis.pipeline import DocSynthesizer, SynthesisResult
from rustscribe.synthesis.planner import SKIP_INFERENCE_FAILED, PlacementEngine
from rustscribe.syntax.items import extract_items
from rustscribe.syntax.parser import parse
from rustscribe.utils.files import iter_rust_paths, read_source


console = Console()
app = typer.Typer(help="rustscribe - add documentation comments to Rust sources")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _status(result: SynthesisResult) -> str:
    if result.error is not None:
        return f"[red]failed ({result.error.stage})[/red]"
    if result.changed:
        return "[green]documented[/green]"
    return "unchanged"


def _print_diff(result: SynthesisResult) -> None:
    diff = difflib.unified_diff(
        result.original.splitlines(keepends=True),
        result.text.splitlines(keepends=True),
        fromfile=f"a/{result.path}",
        tofile=f"b/{result.path}",
    )
    text = "".join(diff)
    if text:
        console.print(Syntax(text, "diff", theme="ansi_dark"))


@app.command()
def annotate(
    inputs: List[Path] = typer.Argument(
        ..., help="Rust files or directories to document.", resolve_path=True
    ),
    write: bool = typer.Option(False, "--write/--check", help="Rewrite files in place"),
    diff: bool = typer.Option(False, "--diff", help="Show a unified diff of the changes"),
    document_private: bool = typer.Option(
        AppConfig().document_private, "--document-private", help="Also document private items"
    ),
    document_root: bool = typer.Option(
        AppConfig().document_module_root, "--document-root", help="Add //! docs to each file"
    ),
    min_doc_len: int = typer.Option(
        AppConfig().min_existing_doc_len, help="Existing docs shorter than this are extended"
    ),
    timeout_ms: int = typer.Option(AppConfig().inference_timeout_ms, help="Per-item inference timeout"),
    concurrency: int = typer.Option(
        AppConfig().inference_concurrency, help="Concurrent inference calls per file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Insert documentation comments into Rust sources."""
    _setup_logging(verbose)
    try:
        config = AppConfig(
            document_private=document_private,
            min_existing_doc_len=min_doc_len,
            inference_timeout_ms=timeout_ms,
            inference_concurrency=concurrency,
            document_module_root=document_root,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    if not list(iter_rust_paths(inputs)):
        console.print("[yellow]No Rust files found.[/yellow]")
        return

    synthesizer = DocSynthesizer(config=config)
    stats, results = synthesizer.process(inputs, write=write)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("File")
    table.add_column("Inserted")
    table.add_column("Merged")
    table.add_column("Skipped")
    table.add_column("No doc")
    table.add_column("Status")
    for result in results:
        table.add_row(
            escape(str(result.path)),
            str(result.inserted),
            str(result.merged),
            str(len(result.plan.skipped())),
            str(len(result.plan.skipped(SKIP_INFERENCE_FAILED))),
            _status(result),
        )
        if diff and result.changed:
            _print_diff(result)
    console.print(table)

    for result in results:
        if result.error is not None:
            console.print(
                f"[red]{escape(result.error.file)}[/red] ({result.error.stage}): {escape(result.error.detail)}"
            )
    verb = "Updated" if write else "Would update"
    console.print(
        f"{verb}: {stats.changed}, unchanged: {stats.unchanged}, failed: {stats.failed}"
    )
    if stats.failed or (not write and stats.changed):
        raise typer.Exit(code=1)


@app.command()
def items(
    path: Path = typer.Argument(..., help="Rust source file", exists=True, dir_okay=False),
    document_private: bool = typer.Option(False, "--document-private", help="Treat private items as eligible"),
    document_root: bool = typer.Option(False, "--document-root", help="Include the file root module"),
) -> None:
    """List documentable items and what would happen to them."""
    config = AppConfig(document_private=document_private, document_module_root=document_root)
    try:
        root = parse(read_source(path))
    except ParseError as exc:
        console.print(f"[red]Parse error[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    engine = PlacementEngine(config)
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Item")
    table.add_column("Kind")
    table.add_column("Public")
    table.add_column("Eligible")
    table.add_column("Has doc")
    table.add_column("Decision")
    for item in extract_items(root, include_root=config.document_module_root):
        skip = engine.triage(item)
        table.add_row(
            "  " * item.depth + item.id,
            item.kind.value,
            "yes" if item.is_public else "no",
            "yes" if item.doc_eligible else "no",
            "yes" if item.has_doc else "no",
            skip.reason if skip is not None else "document",
        )
    console.print(table)
