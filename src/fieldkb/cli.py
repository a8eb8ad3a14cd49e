"""
Command-line interface for fieldkb.

Commands:
    serve   - Start the FastAPI server
    index   - Index pending sources (or one source)
    reindex - Replace one source's chunks
    search  - Run a similarity query
    status  - Show indexing status of active sources
"""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="fieldkb",
    help="Knowledge-base indexing and semantic retrieval",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
) -> None:
    """Configure logging for every command."""
    from fieldkb.config import settings
    from fieldkb.logging_config import setup_logging

    setup_logging(log_level or settings.log_level, console=Console(stderr=True))


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind"),
    port: Optional[int] = typer.Option(None, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the FastAPI server."""
    import uvicorn

    from fieldkb.config import settings

    host = host or settings.api_host
    port = port or settings.api_port
    console.print(f"[green]Starting fieldkb server on {host}:{port}[/green]")

    uvicorn.run(
        "fieldkb.api.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=settings.api_workers,
    )


@app.command()
def index(
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Index only this source id"),
    force: bool = typer.Option(False, "--force", "-f", help="Reindex the source even if indexed"),
) -> None:
    """Index all pending sources, or a single source."""
    from fieldkb.retrieval.resources import get_indexer, persist_chunk_store

    indexer = get_indexer()

    if source is not None:
        operation = indexer.reindex_document if force else indexer.index_document
        written = _run_single(operation, source)
        persist_chunk_store()
        console.print(f"[green]✓ Indexed {written} chunks for {source}[/green]")
        return

    if force:
        console.print("[red]--force requires --source[/red]")
        raise typer.Exit(1)

    with console.status("[bold green]Indexing pending sources..."):
        report = indexer.index_all_pending()
    persist_chunk_store()

    table = Table(title="Indexing Report")
    table.add_column("Outcome", style="cyan")
    table.add_column("Sources", style="green")
    table.add_row("Indexed", str(len(report.indexed)))
    table.add_row("Repaired", str(len(report.reindexed)))
    table.add_row("Skipped", str(len(report.skipped)))
    table.add_row("Failed", str(len(report.failed)))
    table.add_row("Chunks written", str(report.chunks_written))
    console.print(table)

    for failure in report.failed:
        where = f"chunk {failure.ordinal}" if failure.ordinal is not None else "start"
        console.print(f"[red]✗ {failure.source_id} failed at {where}: {failure.reason}[/red]")

    if report.failed:
        console.print("[yellow]Run `fieldkb reindex <source>` to repair failed sources.[/yellow]")
        raise typer.Exit(1)


@app.command()
def reindex(
    source: str = typer.Argument(..., help="Source id to reindex"),
) -> None:
    """Delete a source's chunks and index it again."""
    from fieldkb.retrieval.resources import get_indexer, persist_chunk_store

    written = _run_single(get_indexer().reindex_document, source)
    persist_chunk_store()
    console.print(f"[green]✓ Reindexed {source}: {written} chunks[/green]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    threshold: Optional[float] = typer.Option(None, help="Minimum similarity (0-1)"),
    limit: Optional[int] = typer.Option(None, help="Maximum number of results"),
    source_type: Optional[list[str]] = typer.Option(None, "--source-type", help="Source type filter"),
    category: Optional[list[str]] = typer.Option(None, "--category", help="Category filter"),
    sensitivity: Optional[str] = typer.Option(None, help="Highest sensitivity to return"),
    role: Optional[str] = typer.Option(None, help="Use this role's clearance"),
) -> None:
    """Run a similarity query against the knowledge base."""
    from fieldkb.exceptions import KnowledgeBaseError
    from fieldkb.retrieval.resources import get_retriever

    try:
        results = get_retriever().search(
            query,
            threshold=threshold,
            limit=limit,
            source_type=source_type or None,
            categories=category or None,
            sensitivity=sensitivity,
            role=role,
        )
    except (KnowledgeBaseError, ValueError) as e:
        console.print(f"[red]Search failed: {e}[/red]")
        raise typer.Exit(1)

    if not results:
        console.print("[yellow]No results.[/yellow]")
        return

    table = Table(title=f"Results for: {query}")
    table.add_column("Score", style="green")
    table.add_column("Source", style="cyan")
    table.add_column("Type")
    table.add_column("#", justify="right")
    table.add_column("Text")
    for result in results:
        chunk = result.chunk
        preview = chunk.text if len(chunk.text) <= 80 else chunk.text[:77] + "..."
        table.add_row(
            f"{result.score:.3f}",
            chunk.metadata.source_title,
            chunk.metadata.source_type,
            str(chunk.ordinal),
            preview,
        )
    console.print(table)


@app.command()
def status() -> None:
    """Show indexing status and chunk count of every active source."""
    from fieldkb.retrieval.resources import get_indexer

    indexer = get_indexer()
    table = Table(title="Knowledge Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Title")
    table.add_column("Status", style="green")
    table.add_column("Chunks", justify="right")

    for summary in indexer.sources.list_active_sources():
        table.add_row(
            summary.id,
            summary.title,
            indexer.status(summary.id).value,
            str(indexer.store.count_chunks(summary.id)),
        )
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from fieldkb import __version__

    console.print(f"fieldkb v{__version__}")


def _run_single(operation, source_id: str) -> int:
    from fieldkb.exceptions import IndexingError, SourceNotFound

    try:
        return operation(source_id)
    except SourceNotFound:
        console.print(f"[red]Source not found: {source_id}[/red]")
        raise typer.Exit(1)
    except IndexingError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
