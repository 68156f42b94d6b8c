"""Command line interface for talkspan."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from talkspan.config import SiteConfig, load_site_config
from talkspan.errors import ConfigError, LocateError
from talkspan.locate.comment import CommentLocator
from talkspan.locate.edit_origin import find_originating_edit
from talkspan.parsing.signatures import scan as scan_signatures
from talkspan.payloads import RevisionPayload, TargetPayload
from talkspan.utils.text import normalize_code


console = Console()
app = typer.Typer(help="talkspan - find comments and their edits in wiki discussions")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load_config(path: Optional[Path]) -> SiteConfig:
    if path is None:
        return SiteConfig()
    try:
        return load_site_config(path)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"Cannot read {path}: {exc}") from exc


def _read_target(path: Path) -> TargetPayload:
    try:
        return TargetPayload.model_validate(_read_json(path))
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid target {path}: {exc}") from exc


def _fail(exc: LocateError) -> None:
    logging.getLogger(__name__).debug("%s: %s", exc.code, exc)
    console.print(f"[red]{escape(exc.user_message)}[/red]")
    raise typer.Exit(code=1)


def _snippet(text: str, limit: int = 120) -> str:
    return escape(text.replace("\n", " ")[:limit])


@app.command()
def scan(
    source: Path = typer.Argument(..., help="Wikitext file to scan.", exists=True, dir_okay=False),
    config_path: Path = typer.Option(None, "--config", help="Site configuration JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List the signatures found in a wikitext file."""
    _setup_logging(verbose)
    config = _load_config(config_path)
    records = scan_signatures(normalize_code(source.read_text(encoding="utf-8")), config)
    if not records:
        console.print("[yellow]No signatures found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#")
    table.add_column("Author")
    table.add_column("Timestamp")
    table.add_column("Kind")
    table.add_column("Span")

    for record in records:
        table.add_row(
            str(record.ordinal),
            escape(record.author.name),
            escape(record.timestamp_text or ""),
            record.kind,
            f"{record.comment_start_index}-{record.end_index}",
        )

    console.print(table)


@app.command()
def locate(
    source: Path = typer.Argument(..., help="Wikitext file to search.", exists=True, dir_okay=False),
    target: Path = typer.Argument(..., help="Target comment JSON.", exists=True, dir_okay=False),
    config_path: Path = typer.Option(None, "--config", help="Site configuration JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Find the span of a comment in a wikitext file."""
    _setup_logging(verbose)
    config = _load_config(config_path)
    descriptor = _read_target(target).to_descriptor()
    source_text = normalize_code(source.read_text(encoding="utf-8"))

    try:
        span = CommentLocator(source_text, config).locate(descriptor)
    except LocateError as exc:
        _fail(exc)
        return

    record = span.boundary.signature
    console.print(
        f"Found comment by [bold]{escape(record.author.name)}[/bold] "
        f"at {span.start}-{span.end} (score {span.score:.3f})"
    )
    console.print(_snippet(span.text(source_text).strip(), limit=400))


@app.command("find-edit")
def find_edit(
    target: Path = typer.Argument(..., help="Target comment JSON.", exists=True, dir_okay=False),
    revisions: Path = typer.Argument(
        ..., help="JSON list of revisions with their diffs.", exists=True, dir_okay=False
    ),
    config_path: Path = typer.Option(None, "--config", help="Site configuration JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Find the revision that added a comment."""
    _setup_logging(verbose)
    config = _load_config(config_path)
    descriptor = _read_target(target).to_descriptor()
    try:
        payloads = TypeAdapter(List[RevisionPayload]).validate_python(_read_json(revisions))
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid revisions {revisions}: {exc}") from exc

    try:
        revision = find_originating_edit(
            descriptor, [payload.to_pair() for payload in payloads], config
        )
    except LocateError as exc:
        _fail(exc)
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Revision")
    table.add_column("Timestamp")
    table.add_column("User")
    table.add_column("Summary")
    table.add_row(
        str(revision.revision_id),
        revision.timestamp.isoformat(),
        escape(revision.user.name if revision.user else ""),
        _snippet(revision.summary),
    )
    console.print(table)
