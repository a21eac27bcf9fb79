"""CLI for canonlink.

Commands:
    init-db                      - Create tables
    ingest <segments.json>       - Detect and resolve mentions in a segmented document
    mentions                     - List mentions in a universe
    review-list                  - List ambiguity items awaiting review
    review-resolve <item> <ent>  - Resolve an ambiguity item to an entity
    review-dismiss <item>        - Dismiss an ambiguity item
    show-run <id>                - Show a pipeline run
    show-entity <id>             - Show an entity, its aliases and mentions
    add-alias <id> <text>        - Attach an alias to an entity
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated
from uuid import UUID

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from canonlink.config import settings
from canonlink.db import async_session_factory, init_db
from canonlink.errors import CanonlinkError
from canonlink.models import AmbiguityStatus, ResolutionStatus, RunStatus
from canonlink.resolution import AliasIndex
from canonlink.schemas import IngestRequest
from canonlink.services import CatalogService, IngestionPipeline, ReviewService

app = typer.Typer(
    name="canonlink",
    help="canonlink: entity mention detection and resolution for narrative text",
    no_args_is_help=True,
)
console = Console()

UniverseOption = Annotated[UUID, typer.Option("--universe", "-u", help="Universe (tenant) ID")]

STATUS_STYLES = {
    ResolutionStatus.RESOLVED: "green",
    ResolutionStatus.CANDIDATE: "yellow",
    ResolutionStatus.UNRESOLVED: "dim",
    RunStatus.SUCCEEDED: "green",
    RunStatus.FAILED: "red",
    RunStatus.RUNNING: "blue",
    RunStatus.QUEUED: "dim",
}


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


def _styled(status) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


@app.callback()
def configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


@app.command("init-db")
def init_database():
    """Initialize the database schema (creates tables if they don't exist)."""
    async def _init():
        await init_db()
        console.print("[green]Database initialized successfully.[/green]")

    run_async(_init())


@app.command()
def ingest(
    path: Annotated[Path, typer.Argument(help="Segments JSON file", exists=True, dir_okay=False)],
    universe: UniverseOption,
):
    """Ingest a pre-segmented document.

    The file holds {"document_id"?, "version_id"?, "segments": [{"text", ...}]}.
    """
    try:
        request = IngestRequest.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Error:[/red] Invalid segments file {path}: {e}")
        raise typer.Exit(1) from None

    async def _ingest():
        await init_db()
        async with async_session_factory() as session:
            pipeline = IngestionPipeline(session)
            run_id = await pipeline.ingest(universe, request.document_id, request.to_segments())
            run = await CatalogService(session).get_pipeline_run(run_id)

        _print_run(run)
        if run.status == RunStatus.FAILED:
            raise typer.Exit(1)

    console.print(f"[blue]Ingesting {len(request.segments)} segment(s) from {path}...[/blue]")
    run_async(_ingest())


@app.command()
def mentions(
    universe: UniverseOption,
    status: Annotated[
        ResolutionStatus | None, typer.Option("--status", "-s", help="Filter by status")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Max rows")] = 100,
):
    """List mentions in document order."""
    async def _list():
        await init_db()
        async with async_session_factory() as session:
            rows = await CatalogService(session).list_mentions(
                universe, status=status, limit=limit
            )

        if not rows:
            console.print("[yellow]No mentions found.[/yellow]")
            return

        table = Table(title=f"Mentions ({len(rows)})")
        table.add_column("Mention", style="dim")
        table.add_column("Surface form", style="cyan")
        table.add_column("Span")
        table.add_column("Conf", justify="right")
        table.add_column("Status")
        table.add_column("Entity", style="dim")
        for m in rows:
            table.add_row(
                str(m.mention_id)[:8],
                m.surface_form,
                f"{m.span_start}-{m.span_end}",
                f"{m.confidence:.2f}",
                _styled(m.resolution_status),
                str(m.entity_id)[:8] if m.entity_id else "-",
            )
        console.print(table)

    run_async(_list())


@app.command("review-list")
def review_list(
    universe: UniverseOption,
    all_items: Annotated[
        bool, typer.Option("--all", "-a", help="Include resolved and dismissed items")
    ] = False,
):
    """List ambiguity items awaiting review."""
    async def _list():
        await init_db()
        async with async_session_factory() as session:
            items = await CatalogService(session).list_ambiguity_items(
                universe, status=None if all_items else AmbiguityStatus.OPEN
            )

        if not items:
            console.print("[green]Nothing to review.[/green]")
            return

        for item in items:
            lines = [
                f"[bold]Surface form:[/bold] {item.details.get('surface_form', '-')}",
                f"[bold]Status:[/bold] {item.status.value}",
                f"[bold]Severity:[/bold] {item.severity.value}",
                "[bold]Candidates:[/bold]",
            ]
            for c in item.candidates:
                lines.append(
                    f"  • {c['canonical_name']} ({c['entity_type']}) "
                    f"score={c['score']:.3f} [dim]{c['entity_id']}[/dim]"
                )
            if item.notes:
                lines.append(f"[bold]Notes:[/bold] {item.notes}")
            console.print(Panel("\n".join(lines), title=f"Ambiguity {item.item_id}"))

    run_async(_list())


@app.command("review-resolve")
def review_resolve(
    item_id: Annotated[UUID, typer.Argument(help="Ambiguity item ID")],
    entity_id: Annotated[UUID, typer.Argument(help="Chosen entity ID")],
    notes: Annotated[str | None, typer.Option("--notes", help="Reviewer notes")] = None,
    reviewer: Annotated[str, typer.Option("--by", help="Reviewer name")] = "author",
):
    """Resolve an ambiguity item to the chosen entity and link its mention."""
    async def _resolve():
        async with async_session_factory() as session:
            try:
                item = await ReviewService(session).resolve(
                    item_id, entity_id, notes=notes, resolved_by=reviewer
                )
            except CanonlinkError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None
            await session.commit()
        console.print(f"[green]Resolved {item.item_id} → {item.resolved_entity_id}[/green]")

    run_async(_resolve())


@app.command("review-dismiss")
def review_dismiss(
    item_id: Annotated[UUID, typer.Argument(help="Ambiguity item ID")],
    notes: Annotated[str | None, typer.Option("--notes", help="Reviewer notes")] = None,
    reviewer: Annotated[str, typer.Option("--by", help="Reviewer name")] = "author",
):
    """Dismiss an ambiguity item; its mention stays a candidate."""
    async def _dismiss():
        async with async_session_factory() as session:
            try:
                item = await ReviewService(session).dismiss(
                    item_id, notes=notes, resolved_by=reviewer
                )
            except CanonlinkError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None
            await session.commit()
        console.print(f"[yellow]Dismissed {item.item_id}[/yellow]")

    run_async(_dismiss())


@app.command("show-run")
def show_run(
    run_id: Annotated[UUID, typer.Argument(help="Pipeline run ID")],
):
    """Show status and progress of a pipeline run."""
    async def _show():
        async with async_session_factory() as session:
            try:
                run = await CatalogService(session).get_pipeline_run(run_id)
            except CanonlinkError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None
        _print_run(run)

    run_async(_show())


@app.command("show-entity")
def show_entity(
    entity_id: Annotated[UUID, typer.Argument(help="Entity ID")],
):
    """Show an entity with its aliases and linked mentions."""
    async def _show():
        async with async_session_factory() as session:
            catalog = CatalogService(session)
            try:
                entity = await catalog.get_entity(entity_id)
            except CanonlinkError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None
            linked = await catalog.mentions_for_entity(entity_id)

        panel_content = [
            f"[bold]ID:[/bold] {entity.entity_id}",
            f"[bold]Name:[/bold] {entity.canonical_name}",
            f"[bold]Type:[/bold] {entity.entity_type.value}",
            f"[bold]Universe:[/bold] {entity.universe_id}",
            f"[bold]Mentions:[/bold] {len(linked)}",
            f"[bold]Created:[/bold] {entity.created_at}",
        ]
        console.print(Panel("\n".join(panel_content), title="Entity Details"))

        if entity.aliases:
            _print_aliases(sorted(entity.aliases, key=lambda a: -a.confidence))

    run_async(_show())


@app.command("add-alias")
def add_alias(
    entity_id: Annotated[UUID, typer.Argument(help="Entity ID")],
    text: Annotated[str, typer.Argument(help="Alias as written in prose")],
    confidence: Annotated[
        float, typer.Option("--confidence", "-c", min=0.0, max=1.0, help="Alias confidence")
    ] = 0.8,
):
    """Attach a hand-added alias to an entity."""
    async def _add():
        async with async_session_factory() as session:
            index = AliasIndex(session)
            try:
                entity = await CatalogService(session).get_entity(entity_id)
                alias = await index.add_alias(entity, text, confidence)
            except (CanonlinkError, ValueError) as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None
            await session.commit()
            aliases = await index.aliases_for(entity_id)

        console.print(f"[green]Alias {alias.alias!r} on {entity.canonical_name}[/green]")
        _print_aliases(aliases)

    run_async(_add())


def _print_aliases(aliases) -> None:
    table = Table(title="Aliases")
    table.add_column("Alias", style="cyan")
    table.add_column("Normalized")
    table.add_column("Confidence", justify="right")
    for alias in aliases:
        table.add_row(alias.alias, alias.alias_norm, f"{alias.confidence:.2f}")
    console.print(table)


def _print_run(run) -> None:
    panel_content = [
        f"[bold]Run:[/bold] {run.run_id}",
        f"[bold]Status:[/bold] {_styled(run.status)}",
        f"[bold]Universe:[/bold] {run.universe_id}",
        f"[bold]Document:[/bold] {run.document_id or '-'}",
    ]
    for key, value in (run.progress or {}).items():
        panel_content.append(f"  • {key}: {value}")
    if run.error:
        panel_content.append(f"[bold red]Error:[/bold red] {run.error}")
    if run.completed_at:
        panel_content.append(f"[bold]Completed:[/bold] {run.completed_at}")
    console.print(Panel("\n".join(panel_content), title="Pipeline Run"))


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
